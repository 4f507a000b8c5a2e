"""Conversation transcript: an append-only, chronological list of turns."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Tuple


class Speaker(Enum):
    """Author of a turn."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Turn:
    """One message in the transcript."""

    text: str
    speaker: Speaker
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert turn to dictionary for display or logging."""
        return {
            "role": self.speaker.value,
            "content": self.text,
            "timestamp": self.created_at.isoformat(),
        }


class Transcript:
    """
    Ordered turns of a single session.

    Turns are only ever appended; nothing is reordered, edited or deduplicated.
    Readers get tuples from snapshot() so they cannot mutate the history.
    """

    def __init__(self):
        self._turns: List[Turn] = []

    def append(self, text: str, speaker: Speaker) -> Turn:
        """Append a turn and return it."""
        turn = Turn(text=text, speaker=speaker)
        self._turns.append(turn)
        return turn

    def add_user_turn(self, text: str) -> Turn:
        """Add a user turn to the transcript."""
        return self.append(text, Speaker.USER)

    def add_assistant_turn(self, text: str) -> Turn:
        """Add an assistant turn to the transcript."""
        return self.append(text, Speaker.ASSISTANT)

    def snapshot(self) -> Tuple[Turn, ...]:
        return tuple(self._turns)

    def count(self, speaker: Speaker) -> int:
        """Number of turns authored by the given speaker."""
        return sum(1 for turn in self._turns if turn.speaker is speaker)

    def last(self) -> Turn:
        if not self._turns:
            raise IndexError("Transcript is empty")
        return self._turns[-1]

    def to_dict(self) -> List[Dict[str, Any]]:
        return [turn.to_dict() for turn in self._turns]

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))

    def __getitem__(self, index: int) -> Turn:
        return self._turns[index]
