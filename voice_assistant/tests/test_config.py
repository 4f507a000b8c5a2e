"""Tests for settings and the provider registry."""

import json
import os
import pytest
from unittest.mock import patch

from voice_assistant.config.settings import Settings
from voice_assistant.providers import registry
from voice_assistant.providers.mock import MockReplySource, MockSTTProvider, MockTTSProvider
from voice_assistant.providers.stt.speechrecognition import SpeechRecognitionProvider
from voice_assistant.providers.tts.elevenlabs import ElevenLabsProvider


class TestSettings:
    """Test settings loading."""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

        assert settings.assistant.name == "BioBuddy"
        assert settings.assistant.greeting.startswith("Hello, I am BioBuddy")
        assert settings.assistant.reply_delay == 1.0
        assert settings.ai_provider == "gemini"
        assert settings.tts_provider == "elevenlabs"
        assert settings.stt_provider == "speech_recognition"
        assert settings.elevenlabs_api_key is None
        assert settings.validate() == []

    def test_environment_overrides(self):
        env = {
            "AI_PROVIDER": "mock",
            "ELEVENLABS_API_KEY": "test-key",
            "REPLY_DELAY": "0",
            "ELEVENLABS_VOICE_ID": "voice-1",
            "REPLY_TIMEOUT": "12.5",
            "LOG_FILE_ENABLED": "true",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings()

        assert settings.ai_provider == "mock"
        assert settings.elevenlabs_api_key == "test-key"
        assert settings.assistant.reply_delay == 0.0
        assert settings.providers.elevenlabs_voice_id == "voice-1"
        assert settings.timeouts.reply_timeout == 12.5
        assert settings.logging.file_enabled is True

    def test_config_file(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "assistant": {"name": "Helix", "reply_delay": 0.5},
            "capture": {"language": "de-DE", "bogus": 1},
        }))

        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(config_file)

        assert settings.assistant.name == "Helix"
        assert settings.assistant.reply_delay == 0.5
        assert settings.capture.language == "de-DE"
        assert not hasattr(settings.capture, "bogus")

    def test_save_never_writes_api_key(self, tmp_path):
        with patch.dict(os.environ, {"ELEVENLABS_API_KEY": "secret"}, clear=True):
            settings = Settings()
        path = tmp_path / "saved" / "config.json"

        settings.save_to_file(path)

        assert "secret" not in path.read_text()
        assert json.loads(path.read_text())["assistant"]["name"] == "BioBuddy"

    def test_validate_reports_problems(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()
        settings.assistant.greeting = "  "
        settings.timeouts.reply_timeout = 0
        settings.providers.elevenlabs_stability = 1.5

        issues = settings.validate()

        assert len(issues) == 3

    def test_provider_config(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

        assert settings.get_provider_config("elevenlabs")["request_timeout"] == 10.0
        assert settings.get_provider_config("speech_recognition")["language"] == "en-US"
        assert "system_prompt" in settings.get_provider_config("gemini")
        with pytest.raises(ValueError):
            settings.get_provider_config("whisper")


class TestProviderRegistry:
    """Test provider lookup."""

    def test_registered_providers(self):
        assert registry.list_stt_providers() == ["speech_recognition", "mock"]
        assert registry.list_ai_providers() == ["gemini", "mock"]
        assert registry.list_tts_providers() == ["elevenlabs", "mock"]

    def test_mock_providers(self):
        assert isinstance(registry.get_stt_provider("mock"), MockSTTProvider)
        assert isinstance(registry.get_ai_provider("mock"), MockReplySource)
        assert isinstance(registry.get_tts_provider("mock"), MockTTSProvider)

    def test_configured_provider(self):
        provider = registry.get_tts_provider("elevenlabs")
        assert isinstance(provider, ElevenLabsProvider)
        assert provider.model_id == "eleven_multilingual_v2"

    def test_explicit_arguments_override_config(self):
        provider = registry.get_tts_provider("elevenlabs", voice_id="custom-voice")
        assert provider.voice_id == "custom-voice"

        capture = registry.get_stt_provider("speech_recognition", language="fr-FR")
        assert isinstance(capture, SpeechRecognitionProvider)
        assert capture.language == "fr-FR"

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown TTS provider"):
            registry.get_tts_provider("nonexistent")
