"""Text-to-Speech providers."""


def register_providers():
    """Register the TTS providers with the global registry."""
    from ..registry import registry
    from ...config.settings import settings
    from .elevenlabs import ElevenLabsProvider
    from ..mock import MockTTSProvider

    registry.register_tts_provider(
        "elevenlabs",
        ElevenLabsProvider,
        lambda: settings.get_provider_config("elevenlabs"),
    )
    registry.register_tts_provider("mock", MockTTSProvider)
