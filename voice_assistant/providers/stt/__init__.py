"""Speech capture providers."""


def register_providers():
    """Register the capture providers with the global registry."""
    from ..registry import registry
    from ...config.settings import settings
    from .speechrecognition import SpeechRecognitionProvider
    from ..mock import MockSTTProvider

    registry.register_stt_provider(
        "speech_recognition",
        SpeechRecognitionProvider,
        lambda: settings.get_provider_config("speech_recognition"),
    )
    registry.register_stt_provider("mock", MockSTTProvider)
