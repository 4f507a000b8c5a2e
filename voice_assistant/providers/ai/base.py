"""Base interface for reply sources."""

import inspect
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Union


class ReplySource(ABC):
    """Abstract base class for anything that turns user text into a reply."""

    def __init__(self, system_prompt: str = ""):
        self.system_prompt = system_prompt
        self.conversation_history: List[dict] = []

    def initialize(self) -> None:
        """Initialize the reply source. Most sources need nothing."""

    @abstractmethod
    async def generate_reply(self, user_text: str) -> str:
        """
        Produce the assistant's reply.

        Args:
            user_text: The user's message

        Returns:
            The reply text

        Raises:
            Exception: Any failure; the caller turns it into a failure notice
        """
        pass

    def stop(self) -> None:
        """Stop the reply source and clean up resources."""

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the reply source."""
        pass

    def add_to_history(self, role: str, content: str) -> None:
        """Add a message to conversation history."""
        self.conversation_history.append({"role": role, "content": content})

    def clear_history(self) -> None:
        """Clear conversation history."""
        self.conversation_history.clear()


ReplyFunction = Callable[[str], Union[str, Awaitable[str]]]


class FunctionReplySource(ReplySource):
    """Wraps a plain or async function mapping user text to reply text."""

    def __init__(self, func: ReplyFunction, name: str = "function"):
        super().__init__()
        self.func = func
        self.name = name
        self.calls = 0

    async def generate_reply(self, user_text: str) -> str:
        self.calls += 1
        result = self.func(user_text)
        if inspect.isawaitable(result):
            result = await result
        return result

    def get_status(self) -> dict:
        return {"provider": self.name, "calls": self.calls}
