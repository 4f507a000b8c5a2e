"""Base interface for Text-to-Speech providers."""

from abc import ABC, abstractmethod


class TTSProvider(ABC):
    """Abstract base class for TTS providers."""

    @abstractmethod
    async def speak(self, text: str, credential: str) -> bool:
        """
        Synthesize text and play it to completion.

        Starting a new speak() stops the previous one first.

        Args:
            text: The text to convert to speech
            credential: API key for the remote synthesis service

        Returns:
            True when playback completed, False when stop() superseded it

        Raises:
            SynthesisRequestFailed: The request failed or timed out
            SynthesisPlaybackFailed: The audio could not be played
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop any request or playback immediately. Safe when idle."""
        pass

    @property
    @abstractmethod
    def is_speaking(self) -> bool:
        """Whether a request or playback is in progress."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Stop the TTS provider and clean up resources."""
        pass

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the TTS provider."""
        pass
