"""Gemini reply source implementation."""

import os
from typing import Optional
import google.generativeai as genai
import structlog

from .base import ReplySource


logger = structlog.get_logger()


class GeminiReplySource(ReplySource):
    """
    Reply source backed by a Gemini chat session.

    The chat session keeps its own history, so each reply sees the earlier
    turns of the conversation.
    """

    def __init__(
        self,
        system_prompt: str,
        model_name: str = "gemini-1.5-flash",
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ):
        super().__init__(system_prompt)
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.model: Optional[genai.GenerativeModel] = None
        self.chat_session = None
        self.is_generating = False

    def initialize(self) -> None:
        """Initialize Gemini API client."""
        logger.info("Initializing Gemini reply source", model=self.model_name)

        api_key = os.getenv("GOOGLE_API_KEY")
        if not api_key:
            raise ValueError("GOOGLE_API_KEY environment variable not set")

        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(
            model_name=self.model_name, system_instruction=self.system_prompt
        )
        self.chat_session = self.model.start_chat(history=[])

        logger.info("Gemini client initialized")

    async def generate_reply(self, user_text: str) -> str:
        """Send the user text to Gemini and return the full reply."""
        if not self.model or not self.chat_session:
            raise RuntimeError("Gemini not initialized")

        self.add_to_history("user", user_text)
        self.is_generating = True
        try:
            response = await self.chat_session.send_message_async(
                user_text,
                generation_config=genai.GenerationConfig(
                    temperature=self.temperature,
                    max_output_tokens=self.max_tokens,
                ),
            )
        except Exception as e:
            logger.error("Gemini request failed", error=str(e))
            raise
        finally:
            self.is_generating = False

        reply = response.text
        self.add_to_history("assistant", reply)
        return reply

    def stop(self) -> None:
        """Stop Gemini reply source."""
        logger.info("Stopping Gemini reply source")
        self.model = None
        self.chat_session = None

    def get_status(self) -> dict:
        """Get Gemini reply source status."""
        return {
            "provider": "gemini",
            "model": self.model_name,
            "is_generating": self.is_generating,
            "initialized": self.model is not None,
            "history_length": len(self.conversation_history),
        }
