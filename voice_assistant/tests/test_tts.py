"""Tests for TTS providers."""

import asyncio
import pytest
from unittest.mock import MagicMock, patch

from voice_assistant.errors import SynthesisPlaybackFailed, SynthesisRequestFailed
from voice_assistant.providers.mock import MockTTSProvider
from voice_assistant.providers.tts.elevenlabs import ElevenLabsProvider


class FakePygameError(Exception):
    pass


def make_client(chunks=(b"abc", b"def"), gate=None, error=None):
    """Build a stand-in AsyncElevenLabs client that streams chunks."""

    async def convert(**kwargs):
        if gate is not None:
            await gate.wait()
        if error is not None:
            raise error
        for chunk in chunks:
            yield chunk

    client = MagicMock()
    client.text_to_speech.convert = MagicMock(side_effect=convert)
    return client


@pytest.fixture
def mock_pygame():
    with patch("voice_assistant.providers.tts.elevenlabs.pygame") as pygame_mock:
        pygame_mock.error = FakePygameError
        pygame_mock.mixer.music.get_busy.side_effect = [True, False]
        yield pygame_mock


@pytest.fixture
def mock_client_class():
    with patch("voice_assistant.providers.tts.elevenlabs.AsyncElevenLabs") as client_class:
        client_class.return_value = make_client()
        yield client_class


class TestElevenLabsProvider:
    """Test ElevenLabs synthesis and playback."""

    @pytest.mark.asyncio
    async def test_speak_plays_audio(self, mock_pygame, mock_client_class):
        provider = ElevenLabsProvider(poll_interval=0.001)

        assert await provider.speak("Hello there", "test-key") is True

        mock_client_class.assert_called_once_with(api_key="test-key", timeout=10.0)
        kwargs = mock_client_class.return_value.text_to_speech.convert.call_args.kwargs
        assert kwargs["text"] == "Hello there"
        assert kwargs["voice_id"] == "EXAVITQu4vr4xnSDxMaL"
        assert kwargs["output_format"] == "mp3_44100_128"

        mock_pygame.mixer.init.assert_called_once()
        buffer, namehint = mock_pygame.mixer.music.load.call_args.args
        assert buffer.getvalue() == b"abcdef"
        assert namehint == "mp3"
        mock_pygame.mixer.music.play.assert_called_once()
        assert not provider.is_speaking

    @pytest.mark.asyncio
    async def test_missing_credential(self, mock_pygame, mock_client_class):
        provider = ElevenLabsProvider()

        with pytest.raises(SynthesisRequestFailed):
            await provider.speak("Hello", "")

        mock_client_class.assert_not_called()

    @pytest.mark.asyncio
    async def test_request_error(self, mock_pygame, mock_client_class):
        mock_client_class.return_value = make_client(error=RuntimeError("401 Unauthorized"))
        provider = ElevenLabsProvider()

        with pytest.raises(SynthesisRequestFailed, match="401"):
            await provider.speak("Hello", "bad-key")

        mock_pygame.mixer.music.play.assert_not_called()
        assert not provider.is_speaking

    @pytest.mark.asyncio
    async def test_request_timeout(self, mock_pygame, mock_client_class):
        mock_client_class.return_value = make_client(gate=asyncio.Event())
        provider = ElevenLabsProvider(request_timeout=0.01)

        with pytest.raises(SynthesisRequestFailed, match="timed out"):
            await provider.speak("Hello", "test-key")

    @pytest.mark.asyncio
    async def test_empty_audio(self, mock_pygame, mock_client_class):
        mock_client_class.return_value = make_client(chunks=())
        provider = ElevenLabsProvider()

        with pytest.raises(SynthesisRequestFailed, match="no audio"):
            await provider.speak("Hello", "test-key")

    @pytest.mark.asyncio
    async def test_playback_error(self, mock_pygame, mock_client_class):
        mock_pygame.mixer.music.play.side_effect = FakePygameError("no audio device")
        provider = ElevenLabsProvider()

        with pytest.raises(SynthesisPlaybackFailed, match="no audio device"):
            await provider.speak("Hello", "test-key")

    @pytest.mark.asyncio
    async def test_stop_during_request_discards_audio(self, mock_pygame, mock_client_class):
        gate = asyncio.Event()
        mock_client_class.return_value = make_client(gate=gate)
        provider = ElevenLabsProvider()

        task = asyncio.create_task(provider.speak("Hello", "test-key"))
        await asyncio.sleep(0)
        assert provider.is_speaking

        provider.stop()
        gate.set()

        assert await task is False
        mock_pygame.mixer.music.play.assert_not_called()

    @pytest.mark.asyncio
    async def test_stop_during_playback(self, mock_pygame, mock_client_class):
        mock_pygame.mixer.music.get_busy.side_effect = None
        mock_pygame.mixer.music.get_busy.return_value = True
        provider = ElevenLabsProvider(poll_interval=0.001)

        task = asyncio.create_task(provider.speak("Hello", "test-key"))
        await asyncio.sleep(0.01)
        assert provider.is_playing

        provider.stop()

        mock_pygame.mixer.music.stop.assert_called_once()
        assert await task is False
        assert not provider.is_speaking

    @pytest.mark.asyncio
    async def test_client_rebuilt_when_key_changes(self, mock_pygame, mock_client_class):
        mock_client_class.side_effect = lambda **kwargs: make_client()
        mock_pygame.mixer.music.get_busy.side_effect = None
        mock_pygame.mixer.music.get_busy.return_value = False
        provider = ElevenLabsProvider()

        await provider.speak("one", "key-a")
        await provider.speak("two", "key-a")
        await provider.speak("three", "key-b")

        assert mock_client_class.call_count == 2

    @pytest.mark.asyncio
    async def test_close(self, mock_pygame, mock_client_class):
        provider = ElevenLabsProvider(poll_interval=0.001)
        await provider.speak("Hello", "test-key")

        provider.close()

        mock_pygame.mixer.quit.assert_called_once()
        status = provider.get_status()
        assert status["initialized"] is False
        assert status["mixer_initialized"] is False

    def test_get_status(self):
        provider = ElevenLabsProvider(voice_id="voice-1", model_id="model-1")

        status = provider.get_status()

        assert status["provider"] == "elevenlabs"
        assert status["voice_id"] == "voice-1"
        assert status["model_id"] == "model-1"
        assert status["is_playing"] is False


class TestMockTTSProvider:
    """Test the mock TTS provider."""

    @pytest.mark.asyncio
    async def test_speak(self):
        provider = MockTTSProvider()

        assert await provider.speak("Hello", "key") is True
        assert provider.spoken == ["Hello"]
        assert provider.completed == ["Hello"]

    @pytest.mark.asyncio
    async def test_hold_and_stop(self):
        provider = MockTTSProvider(hold=True)

        task = asyncio.create_task(provider.speak("Hello", "key"))
        await asyncio.sleep(0)
        assert provider.is_speaking

        provider.stop()

        assert await task is False
        assert provider.completed == []

    @pytest.mark.asyncio
    async def test_later_speak_wins(self):
        provider = MockTTSProvider(hold=True)

        first = asyncio.create_task(provider.speak("first", "key"))
        await asyncio.sleep(0)
        second = asyncio.create_task(provider.speak("second", "key"))
        await asyncio.sleep(0)
        provider.finish()

        assert await first is False
        assert await second is True
        assert provider.completed == ["second"]
