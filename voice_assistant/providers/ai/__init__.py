"""Reply sources."""


def register_providers():
    """Register the reply sources with the global registry."""
    from ..registry import registry
    from ...config.settings import settings
    from .gemini import GeminiReplySource
    from ..mock import MockReplySource

    def get_gemini_config():
        config = settings.get_provider_config("gemini")
        return {
            "system_prompt": config["system_prompt"],
            "model_name": config["model"],
            "temperature": config["temperature"],
            "max_tokens": config["max_tokens"],
        }

    registry.register_ai_provider("gemini", GeminiReplySource, get_gemini_config)
    registry.register_ai_provider("mock", MockReplySource)
