"""Error types for capture, synthesis and reply generation."""

from typing import Optional


class AssistantError(Exception):
    """Base class for errors the session recovers from locally."""


class CaptureUnsupported(AssistantError):
    """Speech recognition is not available on this system."""

    code = "not-supported"

    def __init__(self, message: str = "Speech recognition is not supported on this system."):
        super().__init__(message)


class CaptureError(AssistantError):
    """Speech recognition ended with an error code."""

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        super().__init__(message or f"Speech recognition error: {code}")


class SynthesisError(AssistantError):
    """Base class for text-to-speech failures."""


class SynthesisRequestFailed(SynthesisError):
    """The remote TTS request failed, timed out or returned no audio."""


class SynthesisPlaybackFailed(SynthesisError):
    """Audio was received but could not be played."""


class ReplyGenerationFailed(AssistantError):
    """The reply source raised, timed out or returned nothing usable."""


class InvalidTransition(RuntimeError):
    """An activity state change not allowed by the transition table."""

    def __init__(self, current, target, trigger: str):
        self.current = current
        self.target = target
        self.trigger = trigger
        super().__init__(
            f"Cannot move from {current.value} to {target.value} on {trigger}"
        )
