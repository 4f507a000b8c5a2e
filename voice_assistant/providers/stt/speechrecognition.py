"""Speech capture provider backed by the SpeechRecognition package."""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional
import speech_recognition as sr
import structlog

from .base import STTProvider, NOT_SUPPORTED


logger = structlog.get_logger()


def microphone_available() -> bool:
    """Return True when PyAudio can enumerate at least one microphone."""
    try:
        return len(sr.Microphone.list_microphone_names()) > 0
    except (AttributeError, OSError) as e:
        # AttributeError is raised by SpeechRecognition when PyAudio is missing
        logger.debug("Microphone lookup failed", error=str(e))
        return False


class SpeechRecognitionProvider(STTProvider):
    """
    Single-utterance microphone capture using Google's web recognizer.

    The blocking listen/recognize call runs on a single worker thread, so an
    abandoned microphone read always finishes before the next one opens the
    device. Each start() takes a new generation; a result that arrives after
    stop() (or after a newer start()) carries an old generation and is dropped.
    """

    def __init__(
        self,
        language: str = "en-US",
        phrase_time_limit: Optional[float] = 10.0,
        listen_timeout: Optional[float] = 5.0,
        adjust_noise_seconds: float = 0.2,
        is_available: Callable[[], bool] = microphone_available,
    ):
        super().__init__()
        self.language = language
        self.phrase_time_limit = phrase_time_limit
        self.listen_timeout = listen_timeout
        self.adjust_noise_seconds = max(0.0, adjust_noise_seconds)
        self._is_available = is_available

        self._recognizer = sr.Recognizer()
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self.captures_started = 0

    @property
    def is_listening(self) -> bool:
        return self._task is not None

    def is_supported(self) -> bool:
        return bool(self._is_available())

    def start(self) -> None:
        """Start capturing one utterance on the running event loop."""
        if self._task is not None:
            logger.debug("Capture already in progress, ignoring start")
            return

        if not self.is_supported():
            logger.warning("Speech recognition not supported")
            self._emit_error(NOT_SUPPORTED)
            return

        self._generation += 1
        self.captures_started += 1
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._capture(self._generation))
        logger.debug("Speech capture started", generation=self._generation)

    async def _capture(self, generation: int) -> None:
        loop = asyncio.get_running_loop()
        text: Optional[str] = None
        error_code: Optional[str] = None

        try:
            text = await loop.run_in_executor(self._get_executor(), self._listen_once)
        except sr.WaitTimeoutError:
            error_code = "no-speech"
        except sr.UnknownValueError:
            error_code = "no-match"
        except sr.RequestError as e:
            logger.error("Speech recognition request failed", error=str(e))
            error_code = "network"
        except OSError as e:
            logger.error("Microphone unavailable", error=str(e))
            error_code = "audio-capture"
        except Exception as e:
            logger.error("Speech capture error", error=str(e))
            error_code = "unknown"

        if generation != self._generation:
            logger.debug("Discarding stale capture result", generation=generation)
            return

        self._task = None
        if error_code is not None:
            logger.info("Speech capture failed", code=error_code)
            self._emit_error(error_code)
        else:
            logger.debug("Speech captured", text=text[:50])
            self._emit_utterance(text)

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="speech-capture"
            )
        return self._executor

    def _listen_once(self) -> str:
        """Record one phrase from the default microphone and transcribe it."""
        with sr.Microphone() as source:
            if self.adjust_noise_seconds > 0:
                self._recognizer.adjust_for_ambient_noise(
                    source, duration=self.adjust_noise_seconds
                )
            audio = self._recognizer.listen(
                source,
                timeout=self.listen_timeout,
                phrase_time_limit=self.phrase_time_limit,
            )
        return self._recognizer.recognize_google(audio, language=self.language)

    def stop(self) -> None:
        """Abandon the current capture. A read already in progress runs to its timeout."""
        if self._task is None:
            return

        logger.debug("Stopping speech capture", generation=self._generation)
        self._generation += 1
        self._task.cancel()
        self._task = None

    def close(self) -> None:
        """Stop capturing and release the worker thread without waiting on it."""
        self.stop()
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def get_status(self) -> dict:
        """Get speech capture provider status."""
        return {
            "provider": "speech_recognition",
            "language": self.language,
            "is_listening": self.is_listening,
            "generation": self._generation,
            "captures_started": self.captures_started,
        }
