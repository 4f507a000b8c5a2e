"""Setup script for the voice assistant."""

from setuptools import setup, find_packages

setup(
    name="voice-assistant",
    version="1.0.0",
    description="Conversational assistant with spoken input and ElevenLabs voice replies",
    packages=find_packages(include=['voice_assistant', 'voice_assistant.*']),
    python_requires=">=3.11",
    install_requires=[
        "python-dotenv>=1.0.0",
        "google-generativeai>=0.3.0",
        "elevenlabs>=2.0.0",
        "pygame>=2.5.0",
        "SpeechRecognition>=3.10.0",
        "structlog>=23.0.0",
        "click>=8.0.0",
    ],
    extras_require={
        "microphone": ["PyAudio>=0.2.13"],
        "test": ["pytest>=7.0.0", "pytest-asyncio>=0.23.0"],
    },
    entry_points={
        "console_scripts": [
            "voice-assistant=voice_assistant.cli.main:cli",
        ],
    },
)
