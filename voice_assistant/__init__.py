"""
Voice Assistant - a conversational assistant with spoken input and output.

A session controller that arbitrates between speech capture (SpeechRecognition),
reply generation (Gemini or any async reply source), and speech synthesis
(ElevenLabs) on a single asyncio event loop.
"""

__version__ = "1.0.0"
