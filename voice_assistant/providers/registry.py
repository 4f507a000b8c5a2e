"""Provider registry for dynamic provider loading."""

from typing import Dict, Type, Callable, Any, Optional
import structlog

from .stt.base import STTProvider
from .ai.base import ReplySource
from .tts.base import TTSProvider


logger = structlog.get_logger()


class ProviderRegistry:
    """Registry for capture, reply and synthesis implementations."""

    def __init__(self):
        self._stt_providers: Dict[str, Type[STTProvider]] = {}
        self._ai_providers: Dict[str, Type[ReplySource]] = {}
        self._tts_providers: Dict[str, Type[TTSProvider]] = {}
        self._provider_configs: Dict[str, Callable[[], Dict[str, Any]]] = {}

    def _register(
        self,
        kind: str,
        table: Dict[str, type],
        name: str,
        provider_class: type,
        config_getter: Optional[Callable[[], Dict[str, Any]]],
    ) -> None:
        table[name] = provider_class
        if config_getter:
            self._provider_configs[f"{kind}:{name}"] = config_getter
        logger.debug(
            f"Registered {kind.upper()} provider",
            name=name,
            class_name=provider_class.__name__,
        )

    def _create(self, kind: str, table: Dict[str, type], name: str, **kwargs):
        if name not in table:
            raise ValueError(f"Unknown {kind.upper()} provider: {name}")

        # Explicit kwargs win over configured values
        config_key = f"{kind}:{name}"
        if config_key in self._provider_configs:
            config = self._provider_configs[config_key]()
            config.update(kwargs)
            kwargs = config

        return table[name](**kwargs)

    def register_stt_provider(
        self,
        name: str,
        provider_class: Type[STTProvider],
        config_getter: Callable[[], Dict[str, Any]] = None,
    ) -> None:
        """Register a speech capture provider."""
        self._register("stt", self._stt_providers, name, provider_class, config_getter)

    def register_ai_provider(
        self,
        name: str,
        provider_class: Type[ReplySource],
        config_getter: Callable[[], Dict[str, Any]] = None,
    ) -> None:
        """Register a reply source."""
        self._register("ai", self._ai_providers, name, provider_class, config_getter)

    def register_tts_provider(
        self,
        name: str,
        provider_class: Type[TTSProvider],
        config_getter: Callable[[], Dict[str, Any]] = None,
    ) -> None:
        """Register a TTS provider."""
        self._register("tts", self._tts_providers, name, provider_class, config_getter)

    def get_stt_provider(self, name: str, **kwargs) -> STTProvider:
        """Get a speech capture provider instance."""
        return self._create("stt", self._stt_providers, name, **kwargs)

    def get_ai_provider(self, name: str, **kwargs) -> ReplySource:
        """Get a reply source instance."""
        return self._create("ai", self._ai_providers, name, **kwargs)

    def get_tts_provider(self, name: str, **kwargs) -> TTSProvider:
        """Get a TTS provider instance."""
        return self._create("tts", self._tts_providers, name, **kwargs)

    def list_stt_providers(self) -> list[str]:
        """List available speech capture providers."""
        return list(self._stt_providers.keys())

    def list_ai_providers(self) -> list[str]:
        """List available reply sources."""
        return list(self._ai_providers.keys())

    def list_tts_providers(self) -> list[str]:
        """List available TTS providers."""
        return list(self._tts_providers.keys())

    def clear(self) -> None:
        """Clear all registered providers."""
        self._stt_providers.clear()
        self._ai_providers.clear()
        self._tts_providers.clear()
        self._provider_configs.clear()


# Global registry instance
registry = ProviderRegistry()
