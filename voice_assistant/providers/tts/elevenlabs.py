"""ElevenLabs TTS provider implementation."""

import asyncio
from io import BytesIO
from typing import Optional
import pygame
from elevenlabs import VoiceSettings
from elevenlabs.client import AsyncElevenLabs
import structlog

from .base import TTSProvider
from ...errors import SynthesisPlaybackFailed, SynthesisRequestFailed


logger = structlog.get_logger()


class ElevenLabsProvider(TTSProvider):
    """
    ElevenLabs TTS provider with pygame playback.

    The whole clip is fetched, then played through pygame.mixer.music. Every
    speak() runs under a generation number; stop() bumps the generation and
    halts the mixer, so audio fetched for an older generation is never played.
    """

    def __init__(
        self,
        voice_id: str = "EXAVITQu4vr4xnSDxMaL",  # Sarah voice
        model_id: str = "eleven_multilingual_v2",
        output_format: str = "mp3_44100_128",
        stability: float = 0.5,
        similarity_boost: float = 0.5,
        request_timeout: float = 10.0,
        poll_interval: float = 0.05,
    ):
        self.voice_id = voice_id
        self.model_id = model_id
        self.output_format = output_format
        self.request_timeout = request_timeout
        self.poll_interval = poll_interval

        # Voice settings
        self.voice_settings = VoiceSettings(
            stability=stability,
            similarity_boost=similarity_boost,
        )

        self.client: Optional[AsyncElevenLabs] = None
        self._client_key: Optional[str] = None
        self._generation = 0
        self.is_requesting = False
        self.is_playing = False
        self.mixer_initialized = False

    @property
    def is_speaking(self) -> bool:
        return self.is_requesting or self.is_playing

    def _get_client(self, credential: str) -> AsyncElevenLabs:
        """Return a client for this credential, rebuilding it if the key changed."""
        if self.client is None or self._client_key != credential:
            self.client = AsyncElevenLabs(api_key=credential, timeout=self.request_timeout)
            self._client_key = credential
        return self.client

    def _ensure_mixer(self) -> None:
        if not self.mixer_initialized:
            pygame.mixer.init()
            self.mixer_initialized = True
            logger.debug("Initialized pygame mixer")

    async def _request_audio(self, text: str, credential: str) -> bytes:
        client = self._get_client(credential)
        chunks = []
        async for chunk in client.text_to_speech.convert(
            voice_id=self.voice_id,
            text=text,
            model_id=self.model_id,
            output_format=self.output_format,
            voice_settings=self.voice_settings,
        ):
            chunks.append(chunk)
        return b"".join(chunks)

    async def speak(self, text: str, credential: str) -> bool:
        """Fetch audio for text from ElevenLabs and play it."""
        if not credential:
            raise SynthesisRequestFailed("No ElevenLabs API key provided")

        # Last call wins
        self.stop()
        generation = self._generation

        logger.debug("Generating TTS audio", text_length=len(text), generation=generation)
        self.is_requesting = True
        try:
            audio_data = await asyncio.wait_for(
                self._request_audio(text, credential), timeout=self.request_timeout
            )
        except asyncio.TimeoutError as e:
            if generation != self._generation:
                return False
            logger.error("TTS request timed out", timeout=self.request_timeout)
            raise SynthesisRequestFailed(
                f"TTS request timed out after {self.request_timeout}s"
            ) from e
        except Exception as e:
            if generation != self._generation:
                return False
            logger.error("Error generating TTS audio", error=str(e))
            raise SynthesisRequestFailed(str(e)) from e
        finally:
            if generation == self._generation:
                self.is_requesting = False

        if generation != self._generation:
            logger.debug("Discarding stale TTS audio", generation=generation)
            return False

        if not audio_data:
            raise SynthesisRequestFailed("TTS request returned no audio")

        try:
            self._ensure_mixer()
            pygame.mixer.music.load(BytesIO(audio_data), self.output_format.split("_")[0])
            pygame.mixer.music.play()
        except pygame.error as e:
            logger.error("Error starting audio playback", error=str(e))
            raise SynthesisPlaybackFailed(str(e)) from e

        self.is_playing = True
        logger.debug("Started audio playback", total_bytes=len(audio_data))

        try:
            while pygame.mixer.music.get_busy():
                await asyncio.sleep(self.poll_interval)
                if generation != self._generation:
                    return False
        finally:
            if generation == self._generation:
                self.is_playing = False

        if generation != self._generation:
            return False

        logger.debug("Audio playback completed", generation=generation)
        return True

    def stop(self) -> None:
        """Stop current request and audio playback."""
        self._generation += 1
        self.is_requesting = False

        if self.is_playing:
            logger.debug("Stopping audio playback")
            pygame.mixer.music.stop()
            self.is_playing = False

    def close(self) -> None:
        """Stop ElevenLabs provider."""
        logger.info("Stopping ElevenLabs provider")

        self.stop()
        if self.mixer_initialized:
            pygame.mixer.quit()
            self.mixer_initialized = False
        self.client = None
        self._client_key = None

    def get_status(self) -> dict:
        """Get ElevenLabs provider status."""
        return {
            "provider": "elevenlabs",
            "voice_id": self.voice_id,
            "model_id": self.model_id,
            "is_requesting": self.is_requesting,
            "is_playing": self.is_playing,
            "generation": self._generation,
            "initialized": self.client is not None,
            "mixer_initialized": self.mixer_initialized,
        }
