"""Configuration settings for the voice assistant."""

import os
import json
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union
import structlog
from dotenv import find_dotenv, load_dotenv


logger = structlog.get_logger()


@dataclass
class SystemPrompts:
    """System prompts for reply sources."""
    default: str = (
        "You are BioBuddy, a friendly tutor who explains protein synthesis "
        "clearly and briefly. Keep answers short enough to be read aloud."
    )


@dataclass
class AssistantSettings:
    """Fixed texts and pacing of the assistant."""
    name: str = "BioBuddy"
    greeting: str = (
        "Hello, I am BioBuddy, and I'm here to assist you. "
        "Feel free to ask me anything related to protein synthesis!"
    )
    failure_notice: str = (
        "I'm sorry, I couldn't process your request at the moment. "
        "Please try again later."
    )
    reply_delay: float = 1.0  # pause before each reply is requested


@dataclass
class CaptureSettings:
    """Speech capture settings."""
    language: str = "en-US"
    phrase_time_limit: float = 10.0  # longest single utterance
    listen_timeout: float = 5.0  # wait for speech to begin
    adjust_noise_seconds: float = 0.2


@dataclass
class ProviderSettings:
    """Provider-specific settings."""
    # Gemini
    gemini_model: str = "gemini-1.5-flash"
    gemini_temperature: float = 0.7
    gemini_max_tokens: int = 1024

    # ElevenLabs
    elevenlabs_voice_id: str = "EXAVITQu4vr4xnSDxMaL"  # Sarah
    elevenlabs_model_id: str = "eleven_multilingual_v2"
    elevenlabs_output_format: str = "mp3_44100_128"
    elevenlabs_stability: float = 0.5
    elevenlabs_similarity_boost: float = 0.5


@dataclass
class TimeoutSettings:
    """Timeouts in seconds."""
    tts_request_timeout: float = 10.0
    reply_timeout: float = 30.0


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = "WARNING"
    format: str = "dev"
    file_enabled: bool = False
    file_rotation_mb: int = 10
    file_backup_count: int = 7


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# (environment variable, section, field, converter)
ENV_OVERRIDES: Tuple[Tuple[str, str, str, Callable[[str], Any]], ...] = (
    ("SYSTEM_PROMPT_DEFAULT", "system_prompts", "default", str),
    ("ASSISTANT_NAME", "assistant", "name", str),
    ("ASSISTANT_GREETING", "assistant", "greeting", str),
    ("ASSISTANT_FAILURE_NOTICE", "assistant", "failure_notice", str),
    ("REPLY_DELAY", "assistant", "reply_delay", float),
    ("CAPTURE_LANGUAGE", "capture", "language", str),
    ("CAPTURE_PHRASE_TIME_LIMIT", "capture", "phrase_time_limit", float),
    ("CAPTURE_LISTEN_TIMEOUT", "capture", "listen_timeout", float),
    ("GEMINI_MODEL", "providers", "gemini_model", str),
    ("GEMINI_TEMPERATURE", "providers", "gemini_temperature", float),
    ("GEMINI_MAX_TOKENS", "providers", "gemini_max_tokens", int),
    ("ELEVENLABS_VOICE_ID", "providers", "elevenlabs_voice_id", str),
    ("ELEVENLABS_MODEL_ID", "providers", "elevenlabs_model_id", str),
    ("ELEVENLABS_OUTPUT_FORMAT", "providers", "elevenlabs_output_format", str),
    ("TTS_REQUEST_TIMEOUT", "timeouts", "tts_request_timeout", float),
    ("REPLY_TIMEOUT", "timeouts", "reply_timeout", float),
    ("LOG_LEVEL", "logging", "level", str),
    ("LOG_FORMAT", "logging", "format", str),
    ("LOG_FILE_ENABLED", "logging", "file_enabled", _flag),
)


class Settings:
    """
    Main settings object.

    Values are layered: dataclass defaults, then the optional JSON config
    file, then environment variables (including those from a .env file).
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        self.config_file = Path(config_file) if config_file else None
        self._lock = threading.RLock()

        self.system_prompts = SystemPrompts()
        self.assistant = AssistantSettings()
        self.capture = CaptureSettings()
        self.providers = ProviderSettings()
        self.timeouts = TimeoutSettings()
        self.logging = LoggingSettings()

        self._load_env_file()
        self.load_from_file()
        self.load_from_env()

    def _sections(self) -> Dict[str, Any]:
        return {
            "system_prompts": self.system_prompts,
            "assistant": self.assistant,
            "capture": self.capture,
            "providers": self.providers,
            "timeouts": self.timeouts,
            "logging": self.logging,
        }

    def _load_env_file(self) -> None:
        """Load the nearest .env file, searching upward from the working directory."""
        env_file = find_dotenv(usecwd=True)
        if env_file:
            load_dotenv(env_file)
            logger.debug("Loaded .env file", path=env_file)

    def load_from_file(self) -> None:
        """Load settings from the JSON configuration file, if there is one."""
        if not self.config_file or not self.config_file.exists():
            return

        try:
            config = json.loads(self.config_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(
                "Failed to load settings from file",
                file=str(self.config_file),
                error=str(e),
            )
            return

        with self._lock:
            sections = self._sections()
            for section_name, values in config.items():
                section = sections.get(section_name)
                if section is None or not isinstance(values, dict):
                    logger.warning("Ignoring unknown settings section", section=section_name)
                    continue
                for key, value in values.items():
                    if hasattr(section, key):
                        setattr(section, key, value)
                    else:
                        logger.warning("Ignoring unknown setting", section=section_name, key=key)

        logger.info("Loaded settings from file", file=str(self.config_file))

    def load_from_env(self) -> None:
        """Apply environment variable overrides."""
        with self._lock:
            self.ai_provider = os.getenv("AI_PROVIDER", "gemini")
            self.tts_provider = os.getenv("TTS_PROVIDER", "elevenlabs")
            self.stt_provider = os.getenv("STT_PROVIDER", "speech_recognition")

            # Initial speech credential; never written to the config file
            self.elevenlabs_api_key = os.getenv("ELEVENLABS_API_KEY") or None

            sections = self._sections()
            for env_name, section_name, key, convert in ENV_OVERRIDES:
                raw = os.getenv(env_name)
                if not raw:
                    continue
                try:
                    setattr(sections[section_name], key, convert(raw))
                except ValueError:
                    logger.warning("Ignoring invalid environment value", variable=env_name, value=raw)

    def save_to_file(self, file_path: Optional[Union[str, Path]] = None) -> None:
        """Write all sections to JSON. The API key is not part of any section."""
        save_path = Path(file_path) if file_path else self.config_file
        if not save_path:
            raise ValueError("No file path provided")

        with self._lock:
            config = {name: asdict(section) for name, section in self._sections().items()}

        save_path.parent.mkdir(parents=True, exist_ok=True)
        save_path.write_text(json.dumps(config, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("Saved settings to file", file=str(save_path))

    def get_provider_config(self, provider_type: str) -> Dict[str, Any]:
        """Get constructor settings for a named provider."""
        if provider_type == "speech_recognition":
            return asdict(self.capture)
        elif provider_type == "gemini":
            return {
                "model": self.providers.gemini_model,
                "temperature": self.providers.gemini_temperature,
                "max_tokens": self.providers.gemini_max_tokens,
                "system_prompt": self.system_prompts.default,
            }
        elif provider_type == "elevenlabs":
            config = {
                key[len("elevenlabs_"):]: value
                for key, value in asdict(self.providers).items()
                if key.startswith("elevenlabs_")
            }
            config["request_timeout"] = self.timeouts.tts_request_timeout
            return config
        else:
            raise ValueError(f"Unknown provider type: {provider_type}")

    def reload(self) -> None:
        """Reload settings from file and environment."""
        with self._lock:
            self.load_from_file()
            self.load_from_env()
        logger.info("Settings reloaded")

    def validate(self) -> list[str]:
        """Validate current settings and return list of issues."""
        issues = []

        if not self.assistant.greeting.strip():
            issues.append("Greeting must not be empty")
        if not self.assistant.failure_notice.strip():
            issues.append("Failure notice must not be empty")
        if self.assistant.reply_delay < 0:
            issues.append(f"Invalid reply delay: {self.assistant.reply_delay}")

        for name in ("tts_request_timeout", "reply_timeout"):
            if getattr(self.timeouts, name) <= 0:
                issues.append(f"Invalid {name}: {getattr(self.timeouts, name)}")

        for name in ("elevenlabs_stability", "elevenlabs_similarity_boost"):
            if not 0.0 <= getattr(self.providers, name) <= 1.0:
                issues.append(f"Invalid {name}: {getattr(self.providers, name)}")

        return issues

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for display."""
        data = {
            "ai_provider": self.ai_provider,
            "tts_provider": self.tts_provider,
            "stt_provider": self.stt_provider,
            "has_elevenlabs_api_key": self.elevenlabs_api_key is not None,
        }
        data.update({name: asdict(section) for name, section in self._sections().items()})
        return data


# Global settings instance
settings = Settings()
