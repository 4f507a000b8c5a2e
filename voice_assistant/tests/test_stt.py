"""Tests for speech capture providers."""

import asyncio
import threading
import time
import pytest
import speech_recognition as sr
from unittest.mock import patch

from voice_assistant.providers.mock import MockSTTProvider
from voice_assistant.providers.stt.base import NOT_SUPPORTED
from voice_assistant.providers.stt.speechrecognition import (
    SpeechRecognitionProvider,
    microphone_available,
)


class Recorder:
    """Collects handler calls from a capture provider."""

    def __init__(self, provider):
        self.utterances = []
        self.errors = []
        provider.set_handlers(self.utterances.append, self.errors.append)


def available():
    return True


class TestSpeechRecognitionProvider:
    """Test SpeechRecognition-backed capture."""

    @pytest.mark.asyncio
    async def test_not_supported_is_reported_synchronously(self):
        provider = SpeechRecognitionProvider(is_available=lambda: False)
        recorder = Recorder(provider)

        provider.start()

        assert recorder.errors == [NOT_SUPPORTED]
        assert not provider.is_listening
        assert provider.captures_started == 0

    @pytest.mark.asyncio
    async def test_utterance(self):
        provider = SpeechRecognitionProvider(is_available=available)
        recorder = Recorder(provider)

        with patch.object(provider, "_listen_once", return_value="what is a codon"):
            provider.start()
            assert provider.is_listening
            await provider._task

        assert recorder.utterances == ["what is a codon"]
        assert recorder.errors == []
        assert not provider.is_listening

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,code",
        [
            (sr.WaitTimeoutError("listening timed out"), "no-speech"),
            (sr.UnknownValueError(), "no-match"),
            (sr.RequestError("service unavailable"), "network"),
            (OSError("no default input device"), "audio-capture"),
            (ValueError("unexpected"), "unknown"),
        ],
    )
    async def test_error_codes(self, error, code):
        provider = SpeechRecognitionProvider(is_available=available)
        recorder = Recorder(provider)

        with patch.object(provider, "_listen_once", side_effect=error):
            provider.start()
            await provider._task

        assert recorder.errors == [code]
        assert recorder.utterances == []
        assert not provider.is_listening

    @pytest.mark.asyncio
    async def test_stop_discards_late_result(self):
        provider = SpeechRecognitionProvider(is_available=available)
        recorder = Recorder(provider)
        release = threading.Event()

        def slow_listen():
            release.wait(timeout=1.0)
            return "too late"

        with patch.object(provider, "_listen_once", side_effect=slow_listen):
            provider.start()
            await asyncio.sleep(0.01)
            provider.stop()
            release.set()
            await asyncio.sleep(0.05)

        assert recorder.utterances == []
        assert recorder.errors == []
        assert not provider.is_listening

    @pytest.mark.asyncio
    async def test_start_while_listening_is_ignored(self):
        provider = SpeechRecognitionProvider(is_available=available)
        Recorder(provider)

        with patch.object(provider, "_listen_once", return_value="hello"):
            provider.start()
            task = provider._task
            provider.start()
            await task

        assert provider.captures_started == 1

    @pytest.mark.asyncio
    async def test_restart_waits_for_abandoned_read(self):
        provider = SpeechRecognitionProvider(is_available=available)
        recorder = Recorder(provider)
        lock = threading.Lock()
        active = [0]
        peak = [0]

        def counting_listen():
            with lock:
                active[0] += 1
                peak[0] = max(peak[0], active[0])
            time.sleep(0.05)
            with lock:
                active[0] -= 1
            return "second"

        with patch.object(provider, "_listen_once", side_effect=counting_listen):
            provider.start()
            await asyncio.sleep(0.01)
            provider.stop()
            provider.start()
            await provider._task

        assert peak[0] == 1
        assert recorder.utterances == ["second"]
        provider.close()

    @pytest.mark.asyncio
    async def test_close_releases_worker(self):
        provider = SpeechRecognitionProvider(is_available=available)
        recorder = Recorder(provider)

        with patch.object(provider, "_listen_once", return_value="hello"):
            provider.start()
            await provider._task
            worker = provider._executor

            provider.close()
            assert provider._executor is None
            with pytest.raises(RuntimeError):
                worker.submit(time.sleep, 0)

            provider.start()
            await provider._task

        assert recorder.utterances == ["hello", "hello"]
        provider.close()

    def test_get_status(self):
        provider = SpeechRecognitionProvider(language="en-GB", is_available=available)

        status = provider.get_status()

        assert status["provider"] == "speech_recognition"
        assert status["language"] == "en-GB"
        assert status["is_listening"] is False


class TestMicrophoneAvailable:
    """Test microphone detection."""

    def test_microphone_present(self):
        with patch.object(sr.Microphone, "list_microphone_names", return_value=["Built-in"]):
            assert microphone_available() is True

    def test_no_microphones(self):
        with patch.object(sr.Microphone, "list_microphone_names", return_value=[]):
            assert microphone_available() is False

    def test_pyaudio_missing(self):
        with patch.object(
            sr.Microphone,
            "list_microphone_names",
            side_effect=AttributeError("Could not find PyAudio"),
        ):
            assert microphone_available() is False


class TestMockSTTProvider:
    """Test the mock capture provider."""

    @pytest.mark.asyncio
    async def test_auto_complete(self):
        provider = MockSTTProvider(utterances=["first", "second"])
        recorder = Recorder(provider)

        provider.start()
        await asyncio.sleep(0)
        provider.start()
        await asyncio.sleep(0)

        assert recorder.utterances == ["first", "second"]

    @pytest.mark.asyncio
    async def test_stop_cancels_auto_complete(self):
        provider = MockSTTProvider()
        recorder = Recorder(provider)

        provider.start()
        provider.stop()
        await asyncio.sleep(0)

        assert recorder.utterances == []

    def test_unsupported(self):
        provider = MockSTTProvider(supported=False)
        recorder = Recorder(provider)

        provider.start()

        assert recorder.errors == [NOT_SUPPORTED]

    def test_manual_fail(self):
        provider = MockSTTProvider(auto_complete=False)
        recorder = Recorder(provider)

        provider.start()
        provider.fail("no-speech")
        provider.fail("no-speech")

        assert recorder.errors == ["no-speech"]
