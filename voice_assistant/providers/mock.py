"""
Mock provider implementations for offline runs and tests.
"""

import asyncio
from typing import List, Optional
import structlog

from .stt.base import STTProvider, NOT_SUPPORTED
from .ai.base import ReplySource
from .tts.base import TTSProvider


logger = structlog.get_logger()


class MockSTTProvider(STTProvider):
    """
    Mock capture provider that "hears" scripted utterances.

    With auto_complete, each start() yields the next scripted utterance on the
    following loop iteration. Otherwise the capture stays open until
    complete() or fail() is called.
    """

    def __init__(
        self,
        utterances: Optional[List[str]] = None,
        supported: bool = True,
        auto_complete: bool = True,
    ):
        super().__init__()
        self.utterances = utterances or [
            "How does translation work?",
            "What is a ribosome?",
            "Tell me about messenger RNA.",
        ]
        self.supported = supported
        self.auto_complete = auto_complete
        self.utterance_index = 0
        self.start_calls = 0
        self.stop_calls = 0
        self._listening = False
        self._generation = 0

    @property
    def is_listening(self) -> bool:
        return self._listening

    def is_supported(self) -> bool:
        return self.supported

    def start(self) -> None:
        """Start mock capture."""
        self.start_calls += 1
        if self._listening:
            return
        if not self.supported:
            self._emit_error(NOT_SUPPORTED)
            return

        self._listening = True
        self._generation += 1
        if self.auto_complete:
            generation = self._generation
            asyncio.get_running_loop().call_soon(self._auto_complete, generation)

    def _auto_complete(self, generation: int) -> None:
        if generation != self._generation or not self._listening:
            return
        text = self.utterances[self.utterance_index % len(self.utterances)]
        self.utterance_index += 1
        self.complete(text)

    def complete(self, text: str) -> None:
        """Finish the open capture with an utterance."""
        if not self._listening:
            return
        self._listening = False
        self._emit_utterance(text)

    def fail(self, code: str) -> None:
        """Finish the open capture with an error code."""
        if not self._listening:
            return
        self._listening = False
        self._emit_error(code)

    def stop(self) -> None:
        """Stop mock capture."""
        self.stop_calls += 1
        self._generation += 1
        self._listening = False

    def get_status(self) -> dict:
        """Get mock STT provider status."""
        return {
            "provider": "mock_stt",
            "is_listening": self._listening,
            "utterances_generated": self.utterance_index,
        }


class MockReplySource(ReplySource):
    """Mock reply source that cycles through canned replies."""

    def __init__(
        self,
        responses: Optional[List[str]] = None,
        delay: float = 0.0,
        fail_with: Optional[Exception] = None,
    ):
        super().__init__()
        self.responses = responses or [
            "Protein synthesis has two main stages: transcription and translation.",
            "Ribosomes read messenger RNA and link amino acids into a chain.",
            "Transfer RNA carries each amino acid to the ribosome.",
        ]
        self.delay = delay
        self.fail_with = fail_with
        self.response_index = 0
        self.requests: List[str] = []

    async def generate_reply(self, user_text: str) -> str:
        """Return the next canned reply after the configured delay."""
        self.requests.append(user_text)
        self.add_to_history("user", user_text)
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with

        reply = self.responses[self.response_index % len(self.responses)]
        self.response_index += 1
        self.add_to_history("assistant", reply)
        return reply

    def get_status(self) -> dict:
        """Get mock reply source status."""
        return {
            "provider": "mock_ai",
            "responses_generated": self.response_index,
            "history_length": len(self.conversation_history),
        }


class MockTTSProvider(TTSProvider):
    """
    Mock TTS provider that simulates playback time.

    With hold=True, speak() keeps "playing" until finish() is called, which
    lets tests observe the SPEAKING state for as long as they need.
    """

    def __init__(
        self,
        duration: float = 0.0,
        hold: bool = False,
        fail_with: Optional[Exception] = None,
    ):
        self.duration = duration
        self.hold = hold
        self.fail_with = fail_with
        self.spoken: List[str] = []
        self.credentials: List[str] = []
        self.completed: List[str] = []
        self.stop_calls = 0
        self.is_playing = False
        self._generation = 0
        self._release: Optional[asyncio.Future] = None

    @property
    def is_speaking(self) -> bool:
        return self.is_playing

    async def speak(self, text: str, credential: str) -> bool:
        """Pretend to synthesize and play text."""
        self.stop()
        generation = self._generation
        self.spoken.append(text)
        self.credentials.append(credential)

        if self.fail_with is not None:
            raise self.fail_with

        self.is_playing = True
        try:
            if self.hold:
                self._release = asyncio.get_running_loop().create_future()
                await self._release
            elif self.duration > 0:
                await asyncio.sleep(self.duration)
        finally:
            if generation == self._generation:
                self.is_playing = False

        if generation != self._generation:
            return False
        self.completed.append(text)
        return True

    def finish(self) -> None:
        """Let a held playback complete."""
        if self._release is not None and not self._release.done():
            self._release.set_result(None)

    def stop(self) -> None:
        """Stop mock audio playback."""
        self.stop_calls += 1
        self._generation += 1
        self.is_playing = False
        self.finish()

    def close(self) -> None:
        """Stop mock TTS provider."""
        self.stop()

    def get_status(self) -> dict:
        """Get mock TTS provider status."""
        return {
            "provider": "mock_tts",
            "is_playing": self.is_playing,
            "utterances_spoken": len(self.spoken),
        }
