"""Activity state machine for the session controller."""

from enum import Enum
from typing import Callable, Dict, FrozenSet, List
import structlog

from ..errors import InvalidTransition


logger = structlog.get_logger()


class ActivityState(Enum):
    """What the session is doing right now. Exactly one at a time."""

    IDLE = "idle"
    LISTENING = "listening"
    LOADING = "loading"
    SPEAKING = "speaking"


# Allowed target states per source state
TRANSITIONS: Dict[ActivityState, FrozenSet[ActivityState]] = {
    ActivityState.IDLE: frozenset(
        {ActivityState.LISTENING, ActivityState.LOADING, ActivityState.SPEAKING}
    ),
    ActivityState.LISTENING: frozenset({ActivityState.IDLE, ActivityState.LOADING}),
    ActivityState.LOADING: frozenset({ActivityState.IDLE, ActivityState.SPEAKING}),
    ActivityState.SPEAKING: frozenset(
        {ActivityState.IDLE, ActivityState.LISTENING, ActivityState.LOADING}
    ),
}


class ActivityStateMachine:
    """Holds the current activity and enforces the transition table."""

    def __init__(self, initial: ActivityState = ActivityState.IDLE):
        self._state = initial
        self._callbacks: List[Callable[[ActivityState, ActivityState], None]] = []
        self.history: List[ActivityState] = [initial]

    @property
    def state(self) -> ActivityState:
        return self._state

    def can_transition(self, target: ActivityState) -> bool:
        """Check whether moving to target is allowed from the current state."""
        return target in TRANSITIONS[self._state]

    def transition(self, target: ActivityState, trigger: str) -> bool:
        """
        Move to target state.

        Args:
            target: The state to enter
            trigger: Name of the event causing the change, for logging

        Returns:
            False if already in target (no change), True otherwise

        Raises:
            InvalidTransition: If the table does not allow the change
        """
        if target is self._state:
            return False
        if not self.can_transition(target):
            raise InvalidTransition(self._state, target, trigger)

        previous = self._state
        self._state = target
        self.history.append(target)
        logger.debug(
            "Activity changed",
            previous=previous.value,
            current=target.value,
            trigger=trigger,
        )

        for callback in self._callbacks:
            try:
                callback(previous, target)
            except Exception as e:
                logger.error("Activity callback error", error=str(e))
        return True

    def reset(self) -> None:
        """Force the machine back to IDLE, bypassing the table."""
        if self._state is not ActivityState.IDLE:
            self._state = ActivityState.IDLE
            self.history.append(ActivityState.IDLE)

    def register_callback(
        self, callback: Callable[[ActivityState, ActivityState], None]
    ) -> None:
        """Register a callback invoked with (previous, current) on each change."""
        self._callbacks.append(callback)

    def unregister_callback(
        self, callback: Callable[[ActivityState, ActivityState], None]
    ) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)
