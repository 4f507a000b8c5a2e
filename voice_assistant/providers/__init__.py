"""Capture, reply and synthesis providers, looked up by name through `registry`."""

from .registry import registry, ProviderRegistry
from .stt.base import STTProvider
from .ai.base import ReplySource, FunctionReplySource
from .tts.base import TTSProvider
from . import stt, ai, tts


# Concrete providers import settings, so each kind registers after the bases exist
for _kind in (stt, ai, tts):
    _kind.register_providers()


__all__ = [
    "registry",
    "ProviderRegistry",
    "STTProvider",
    "ReplySource",
    "FunctionReplySource",
    "TTSProvider",
]
