"""Base interface for speech capture providers."""

from abc import ABC, abstractmethod
from typing import Callable, Optional
import structlog


logger = structlog.get_logger()


# Error code yielded when the platform has no usable recognizer
NOT_SUPPORTED = "not-supported"

UtteranceHandler = Callable[[str], None]
ErrorHandler = Callable[[str], None]


class STTProvider(ABC):
    """
    Abstract base class for single-utterance speech capture.

    After start(), a provider delivers exactly one of on_utterance(text) or
    on_error(code) and then returns to idle, ready to be started again.
    stop() abandons the capture without delivering anything.
    """

    def __init__(self):
        self._on_utterance: Optional[UtteranceHandler] = None
        self._on_error: Optional[ErrorHandler] = None

    def set_handlers(self, on_utterance: UtteranceHandler, on_error: ErrorHandler) -> None:
        """Set the callbacks that receive the capture outcome."""
        self._on_utterance = on_utterance
        self._on_error = on_error

    @property
    @abstractmethod
    def is_listening(self) -> bool:
        """Whether a capture is currently in progress."""
        pass

    @abstractmethod
    def is_supported(self) -> bool:
        """Capability check for the underlying recognizer."""
        pass

    @abstractmethod
    def start(self) -> None:
        """
        Begin listening for one utterance.

        Yields NOT_SUPPORTED through on_error immediately when the recognizer
        is unavailable. A no-op while a capture is already running.
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Cancel the in-progress capture, if any, without yielding."""
        pass

    def close(self) -> None:
        """Release any resources. The default simply stops capture."""
        self.stop()

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the STT provider."""
        pass

    def _emit_utterance(self, text: str) -> None:
        if self._on_utterance is None:
            logger.warning("No utterance handler set, dropping result")
            return
        self._on_utterance(text)

    def _emit_error(self, code: str) -> None:
        if self._on_error is None:
            logger.warning("No error handler set, dropping capture error", code=code)
            return
        self._on_error(code)
