"""
Session controller: owns the transcript and arbitrates listening, loading
and speaking on a single asyncio event loop.
"""

import asyncio
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, List, Optional, Set, Tuple
from uuid import uuid4
import structlog

from ..errors import (
    AssistantError,
    CaptureError,
    CaptureUnsupported,
    ReplyGenerationFailed,
    SynthesisError,
    SynthesisPlaybackFailed,
)
from ..providers.ai.base import ReplySource
from ..providers.stt.base import NOT_SUPPORTED, STTProvider
from ..providers.tts.base import TTSProvider
from ..state.activity import ActivityState, ActivityStateMachine
from ..state.transcript import Speaker, Transcript, Turn
from ..config.settings import AssistantSettings
from ..utils.logging import bind_session, unbind_session


logger = structlog.get_logger()


@dataclass
class ControllerConfig:
    """Configuration for the session controller."""

    greeting: str = AssistantSettings.greeting
    failure_notice: str = AssistantSettings.failure_notice
    reply_delay: float = 0.0
    reply_timeout: Optional[float] = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the session handed to subscribers."""

    transcript: Tuple[Turn, ...]
    activity: ActivityState
    muted: bool
    has_credential: bool


@dataclass(frozen=True)
class Notice:
    """A transient, toast-style message for the presentation layer."""

    title: str
    description: str
    error: Optional[AssistantError] = field(default=None, compare=False)


SnapshotListener = Callable[[SessionSnapshot], None]
NoticeListener = Callable[[Notice], None]


class SessionController:
    """
    Voice-enabled session controller.

    Sequences the capture provider, the reply source and the TTS provider so
    that at most one of listening, loading and speaking is active. Every
    asynchronous call is tagged with an epoch; completions whose epoch is no
    longer current are dropped.
    """

    def __init__(
        self,
        reply_source: ReplySource,
        capture: STTProvider,
        synthesizer: TTSProvider,
        config: Optional[ControllerConfig] = None,
        credential: Optional[str] = None,
    ):
        self.config = config or ControllerConfig()
        self._reply_source = reply_source
        self._capture = capture
        self._synthesizer = synthesizer

        self.session_id: Optional[str] = None
        self.is_running = False
        self.transcript = Transcript()
        self.muted_by_user = False
        self._credential = self._clean_credential(credential)
        self._machine = ActivityStateMachine()

        self._listeners: List[SnapshotListener] = []
        self._notice_listeners: List[NoticeListener] = []

        # Epochs for outstanding async work
        self._session_epoch = 0
        self._capture_epoch = 0
        self._speech_epoch = 0

        self._speech_task: Optional[asyncio.Task] = None
        self._reply_tasks: Set[asyncio.Task] = set()
        self._spoken_any = False

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def activity(self) -> ActivityState:
        return self._machine.state

    @property
    def has_credential(self) -> bool:
        return self._credential is not None

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            transcript=self.transcript.snapshot(),
            activity=self.activity,
            muted=self.muted_by_user,
            has_credential=self.has_credential,
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a snapshot listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_notice(self, listener: NoticeListener) -> Callable[[], None]:
        """Register a notice listener. Returns a function that unsubscribes it."""
        self._notice_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._notice_listeners:
                self._notice_listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Create the session: append the greeting and speak it when possible.

        Must be called from a running event loop when a credential is already
        set, since speaking schedules a task.
        """
        if self.is_running:
            logger.debug("Session already running", session_id=self.session_id)
            return

        # Raises before any session state changes, e.g. on a missing API key
        self._reply_source.initialize()

        self.session_id = f"session_{uuid4()}"
        self.is_running = True
        self._session_epoch += 1
        self.transcript = Transcript()
        self._machine = ActivityStateMachine()
        self._spoken_any = False
        bind_session(self.session_id)

        logger.info(
            "Starting session",
            session_id=self.session_id,
            has_credential=self.has_credential,
        )

        greeting = self.transcript.add_assistant_turn(self.config.greeting)
        if self._can_speak():
            self._speak(greeting.text)
        else:
            self._publish()

    def stop(self) -> None:
        """Destroy the session, abandoning capture, playback and pending replies."""
        if not self.is_running:
            return

        logger.info(
            "Stopping session",
            session_id=self.session_id,
            turns=len(self.transcript),
        )

        self.is_running = False
        self._session_epoch += 1
        self._cancel_speech()
        self._cancel_capture()

        for task in list(self._reply_tasks):
            task.cancel()
        self._reply_tasks.clear()

        try:
            self._capture.close()
            self._synthesizer.close()
            self._reply_source.stop()
        except Exception as e:
            logger.warning("Error stopping providers", error=str(e))

        self._machine.reset()
        unbind_session()

    # ------------------------------------------------------------------
    # Presentation-layer operations
    # ------------------------------------------------------------------

    async def submit_text(self, text: str) -> bool:
        """
        Submit user text and wait for the reply to be appended.

        Cancelling the wait appends the failure notice and returns to idle.

        Returns:
            False if the text was rejected (empty, already loading, or no
            running session), True once the reply turn has been appended
        """
        if not self._admit(text):
            return False
        await self._complete_reply(text.strip())
        return True

    def start_capture(self) -> bool:
        """Stop any playback and begin listening for one utterance."""
        if not self.is_running:
            logger.warning("Capture requested without a running session")
            return False

        if self.activity in (ActivityState.LISTENING, ActivityState.LOADING):
            logger.debug("Ignoring capture request", activity=self.activity.value)
            return False

        if not self.has_credential:
            self._notify(
                "Voice Input Not Available",
                "Add your ElevenLabs API key to enable voice features.",
            )
            return False

        self._cancel_speech()

        self._capture_epoch += 1
        epoch = self._capture_epoch
        self._capture.set_handlers(
            partial(self._on_capture_utterance, epoch),
            partial(self._on_capture_error, epoch),
        )
        self._machine.transition(ActivityState.LISTENING, "start_capture")
        self._publish()

        # May report NOT_SUPPORTED synchronously through the error handler
        self._capture.start()
        return True

    def stop_capture(self) -> bool:
        """Cancel listening without producing a user turn."""
        if self.activity is not ActivityState.LISTENING:
            return False

        self._cancel_capture()
        self._machine.transition(ActivityState.IDLE, "stop_capture")
        self._publish()
        return True

    def stop_speaking(self) -> bool:
        """Halt playback immediately. Returns True if something was playing."""
        was_speaking = self.activity is ActivityState.SPEAKING
        self._cancel_speech()
        if was_speaking:
            self._publish()
        return was_speaking

    def toggle_mute(self) -> bool:
        """Flip the user's mute preference. Muting stops playback at once."""
        self.muted_by_user = not self.muted_by_user
        logger.info("Mute toggled", muted=self.muted_by_user)

        if self.muted_by_user:
            self._cancel_speech()
        self._publish()
        return self.muted_by_user

    def set_credential(self, credential: Optional[str]) -> None:
        """
        Set or clear the speech credential.

        If only the greeting exists and nothing has been spoken yet, the
        greeting is spoken now. Past turns are otherwise left alone.
        """
        self._credential = self._clean_credential(credential)
        logger.info("Credential updated", has_credential=self.has_credential)

        if (
            self.is_running
            and self._can_speak()
            and not self._spoken_any
            and len(self.transcript) == 1
            and self.transcript[0].speaker is Speaker.ASSISTANT
            and self.activity is ActivityState.IDLE
        ):
            self._speak(self.transcript[0].text)
        else:
            self._publish()

    async def wait_for_activity(
        self, state: ActivityState, timeout: Optional[float] = 5.0
    ) -> None:
        """Wait until the session reaches the given activity."""

        async def _poll() -> None:
            while self.activity is not state:
                await asyncio.sleep(0.005)

        await asyncio.wait_for(_poll(), timeout=timeout)

    def get_status(self) -> dict:
        """Get current session status."""
        return {
            "session_id": self.session_id,
            "is_running": self.is_running,
            "activity": self.activity.value,
            "turns": len(self.transcript),
            "muted": self.muted_by_user,
            "has_credential": self.has_credential,
            "pending_replies": len(self._reply_tasks),
            "providers_status": {
                "stt": self._capture.get_status(),
                "ai": self._reply_source.get_status(),
                "tts": self._synthesizer.get_status(),
            },
        }

    # ------------------------------------------------------------------
    # Reply flow
    # ------------------------------------------------------------------

    def _admit(self, text: str) -> bool:
        """Synchronous part of submit: checks, cancellations, USER turn."""
        if not self.is_running:
            logger.warning("Submission without a running session")
            return False

        text = text.strip()
        if not text:
            logger.debug("Ignoring empty submission")
            return False

        if self.activity is ActivityState.LOADING:
            logger.debug("Ignoring submission while a reply is pending")
            return False

        self._cancel_speech()
        if self.activity is ActivityState.LISTENING:
            self._cancel_capture()

        self.transcript.add_user_turn(text)
        self._machine.transition(ActivityState.LOADING, "submit_text")
        self._publish()
        return True

    async def _complete_reply(self, text: str) -> None:
        epoch = self._session_epoch

        try:
            if self.config.reply_delay > 0:
                await asyncio.sleep(self.config.reply_delay)
            reply = await self._request_reply(text)
        except ReplyGenerationFailed as e:
            logger.error("Reply generation failed", error=str(e))
            reply = self.config.failure_notice
        except asyncio.CancelledError:
            if epoch == self._session_epoch:
                logger.warning("Reply cancelled by caller")
                self.transcript.add_assistant_turn(self.config.failure_notice)
                self._machine.transition(ActivityState.IDLE, "reply_cancelled")
                self._publish()
            raise

        if epoch != self._session_epoch:
            logger.debug("Discarding reply for a closed session")
            return

        self.transcript.add_assistant_turn(reply)
        if self._can_speak():
            self._speak(reply)
        else:
            self._machine.transition(ActivityState.IDLE, "reply")
            self._publish()

    async def _request_reply(self, text: str) -> str:
        try:
            if self.config.reply_timeout:
                reply = await asyncio.wait_for(
                    self._reply_source.generate_reply(text),
                    timeout=self.config.reply_timeout,
                )
            else:
                reply = await self._reply_source.generate_reply(text)
        except asyncio.TimeoutError as e:
            raise ReplyGenerationFailed(
                f"Reply timed out after {self.config.reply_timeout}s"
            ) from e
        except Exception as e:
            raise ReplyGenerationFailed(str(e)) from e

        if not isinstance(reply, str) or not reply.strip():
            raise ReplyGenerationFailed("Reply source returned no text")
        return reply

    # ------------------------------------------------------------------
    # Capture callbacks
    # ------------------------------------------------------------------

    def _on_capture_utterance(self, epoch: int, text: str) -> None:
        if epoch != self._capture_epoch or self.activity is not ActivityState.LISTENING:
            logger.debug("Discarding stale utterance", epoch=epoch)
            return

        self._capture_epoch += 1
        logger.info("Utterance captured", text=text[:50])

        if self._admit(text):
            task = asyncio.get_running_loop().create_task(
                self._complete_reply(text.strip())
            )
            self._reply_tasks.add(task)
            task.add_done_callback(self._reply_tasks.discard)
        else:
            self._machine.transition(ActivityState.IDLE, "empty_utterance")
            self._publish()

    def _on_capture_error(self, epoch: int, code: str) -> None:
        if epoch != self._capture_epoch:
            logger.debug("Discarding stale capture error", epoch=epoch, code=code)
            return

        self._capture_epoch += 1
        if code == NOT_SUPPORTED:
            self._notify(
                "Voice Input Not Available",
                "Speech recognition is not supported on this system.",
                CaptureUnsupported(),
            )
        else:
            self._notify(
                "Voice Recognition Error",
                f"Error: {code}. Please try again.",
                CaptureError(code),
            )

        if self.activity is ActivityState.LISTENING:
            self._machine.transition(ActivityState.IDLE, "capture_error")
            self._publish()

    def _cancel_capture(self) -> None:
        self._capture_epoch += 1
        self._capture.stop()

    # ------------------------------------------------------------------
    # Speech flow
    # ------------------------------------------------------------------

    def _can_speak(self) -> bool:
        return self.has_credential and not self.muted_by_user

    def _speak(self, text: str) -> None:
        self._cancel_speech()

        self._speech_epoch += 1
        epoch = self._speech_epoch
        self._spoken_any = True
        self._machine.transition(ActivityState.SPEAKING, "speak")
        self._publish()

        self._speech_task = asyncio.get_running_loop().create_task(
            self._run_speech(text, self._credential, epoch)
        )

    async def _run_speech(self, text: str, credential: str, epoch: int) -> None:
        try:
            completed = await self._synthesizer.speak(text, credential)
        except Exception as e:
            if epoch != self._speech_epoch:
                return
            error = e if isinstance(e, SynthesisError) else SynthesisPlaybackFailed(str(e))
            logger.warning("Speech synthesis failed", error=str(e), exc_info=error is not e)
            self._notify(
                "Voice Playback Error",
                "Could not play the voice response. Please check your API key.",
                error,
            )
            self._finish_speech("speech_error")
            return

        if epoch != self._speech_epoch:
            logger.debug("Discarding stale speech completion", epoch=epoch)
            return

        logger.debug("Speech finished", completed=completed)
        self._finish_speech("speech_complete")

    def _finish_speech(self, trigger: str) -> None:
        self._speech_task = None
        if self.activity is ActivityState.SPEAKING:
            self._machine.transition(ActivityState.IDLE, trigger)
            self._publish()

    def _cancel_speech(self) -> None:
        """Stop playback synchronously and detach from the pending speak()."""
        self._speech_epoch += 1
        self._synthesizer.stop()

        if self._speech_task is not None:
            self._speech_task.cancel()
            self._speech_task = None

        if self.activity is ActivityState.SPEAKING:
            self._machine.transition(ActivityState.IDLE, "stop_speaking")

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error("Snapshot listener error", error=str(e))

    def _notify(
        self, title: str, description: str, error: Optional[AssistantError] = None
    ) -> None:
        logger.warning("Notice raised", title=title, description=description)
        notice = Notice(title=title, description=description, error=error)
        for listener in list(self._notice_listeners):
            try:
                listener(notice)
            except Exception as e:
                logger.error("Notice listener error", error=str(e))

    @staticmethod
    def _clean_credential(credential: Optional[str]) -> Optional[str]:
        if credential is None:
            return None
        return credential.strip() or None
