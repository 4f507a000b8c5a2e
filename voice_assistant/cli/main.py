"""CLI entry point for the voice assistant."""

import asyncio
import json
import sys
import threading
from pathlib import Path
from typing import Optional, TextIO
import click
import structlog

from ..config.settings import settings
from ..core.session_controller import ControllerConfig, Notice, SessionController, SessionSnapshot
from ..providers import registry
from ..state.activity import ActivityState
from ..state.transcript import Speaker
from ..utils.logging import setup_logging


logger = structlog.get_logger()


HELP_TEXT = """Commands:
  /listen      speak one message instead of typing it
  /stop        stop listening or stop the voice reply
  /mute        toggle spoken replies
  /key VALUE   set the ElevenLabs API key (no value clears it)
  /status      show session status
  /quit        leave the chat"""


def validate_provider(ctx, param, value):
    """Validate provider selection."""
    if param.name == "capture_provider":
        valid_providers = registry.list_stt_providers()
        provider_type = "capture"
    elif param.name == "reply_provider":
        valid_providers = registry.list_ai_providers()
        provider_type = "reply"
    elif param.name == "tts_provider":
        valid_providers = registry.list_tts_providers()
        provider_type = "TTS"
    else:
        return value

    if value not in valid_providers:
        raise click.BadParameter(
            f"Invalid {provider_type} provider '{value}'. "
            f"Available options: {', '.join(valid_providers)}"
        )
    return value


class ChatPresenter:
    """Renders session snapshots and notices as terminal lines."""

    def __init__(self, assistant_name: str):
        self.assistant_name = assistant_name
        self.printed_turns = 0
        self.last_activity = None

    def render(self, snapshot: SessionSnapshot) -> None:
        for turn in snapshot.transcript[self.printed_turns:]:
            if turn.speaker is Speaker.ASSISTANT:
                click.echo(click.style(f"{self.assistant_name}: ", fg="cyan", bold=True) + turn.text)
            else:
                click.echo(click.style("You: ", fg="green", bold=True) + turn.text)
        self.printed_turns = len(snapshot.transcript)

        if snapshot.activity is not self.last_activity:
            self.last_activity = snapshot.activity
            if snapshot.activity is not ActivityState.IDLE:
                click.echo(click.style(f"[{snapshot.activity.value}]", dim=True))

    def notice(self, notice: Notice) -> None:
        click.echo(click.style(f"⚠️  {notice.title}: {notice.description}", fg="yellow"))


async def handle_command(controller: SessionController, line: str) -> bool:
    """Run a slash command. Returns False when the chat should end."""
    command, _, argument = line.partition(" ")
    command = command.lower()

    if command in ("/quit", "/exit"):
        return False
    elif command == "/listen":
        controller.start_capture()
    elif command == "/stop":
        if not controller.stop_capture():
            controller.stop_speaking()
    elif command == "/mute":
        muted = controller.toggle_mute()
        click.echo("Voice muted." if muted else "Voice unmuted.")
    elif command == "/key":
        controller.set_credential(argument or None)
        click.echo("API key set." if controller.has_credential else "API key cleared.")
    elif command == "/status":
        click.echo(json.dumps(controller.get_status(), indent=2, default=str))
    elif command == "/help":
        click.echo(HELP_TEXT)
    else:
        click.echo(f"Unknown command: {command}. Type /help for commands.")
    return True


class LineReader:
    """
    Reads lines from a stream on a daemon thread and hands them to the loop.

    A read blocked on the terminal never holds up interpreter or event loop
    shutdown, so Ctrl-C exits without waiting for Enter.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, stream: Optional[TextIO] = None):
        self._loop = loop
        self._stream = stream if stream is not None else sys.stdin
        self._lines: asyncio.Queue = asyncio.Queue()
        self._thread = threading.Thread(target=self._pump, name="chat-input", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def _pump(self) -> None:
        while True:
            try:
                line = self._stream.readline()
            except (OSError, ValueError) as e:
                # ValueError: the stream was closed under us
                logger.debug("Input stream closed", error=str(e))
                line = ""
            try:
                self._loop.call_soon_threadsafe(self._lines.put_nowait, line)
            except RuntimeError:
                return  # event loop already closed
            if not line:
                return

    async def readline(self) -> str:
        """Next line including its newline, or "" at end of input."""
        return await self._lines.get()


async def run_chat(
    controller: SessionController,
    presenter: ChatPresenter,
    stream: Optional[TextIO] = None,
) -> None:
    """Read lines from the input stream and drive the controller until EOF or /quit."""
    reader = LineReader(asyncio.get_running_loop(), stream)
    controller.subscribe(presenter.render)
    controller.on_notice(presenter.notice)
    controller.start()
    reader.start()

    try:
        while True:
            line = await reader.readline()
            if not line:
                break
            line = line.strip()
            if not line:
                continue

            if line.startswith("/"):
                if not await handle_command(controller, line):
                    break
            elif not await controller.submit_text(line):
                click.echo(click.style("Still working on the last message...", dim=True))
    finally:
        controller.stop()


@click.command()
@click.option(
    "--capture-provider",
    callback=validate_provider,
    default=settings.stt_provider,
    help="Speech capture provider to use",
)
@click.option(
    "--reply-provider",
    callback=validate_provider,
    default=settings.ai_provider,
    help="Reply source to use",
)
@click.option(
    "--tts-provider",
    callback=validate_provider,
    default=settings.tts_provider,
    help="TTS provider to use",
)
@click.option("--api-key", envvar="ELEVENLABS_API_KEY", help="ElevenLabs API key")
@click.option("--reply-delay", type=float, help="Seconds to wait before each reply")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--mock", is_flag=True, help="Use mock providers (no microphone or API calls)")
@click.option(
    "--config", type=click.Path(exists=True), help="Path to configuration file"
)
def chat(
    capture_provider: str,
    reply_provider: str,
    tts_provider: str,
    api_key: Optional[str],
    reply_delay: Optional[float],
    debug: bool,
    mock: bool,
    config: Optional[str],
):
    """
    Chat with the assistant in the terminal.

    Type a message and press Enter, or use /listen to speak it. Replies are
    read aloud when an ElevenLabs API key is set and voice is not muted.
    """
    if config:
        settings.config_file = Path(config)
        settings.load_from_file()

    setup_logging(
        debug=debug,
        log_file=settings.logging.file_enabled,
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        file_rotation_mb=settings.logging.file_rotation_mb,
        file_backup_count=settings.logging.file_backup_count,
    )

    if mock:
        capture_provider = reply_provider = tts_provider = "mock"

    try:
        controller = SessionController(
            reply_source=registry.get_ai_provider(reply_provider),
            capture=registry.get_stt_provider(capture_provider),
            synthesizer=registry.get_tts_provider(tts_provider),
            config=ControllerConfig(
                greeting=settings.assistant.greeting,
                failure_notice=settings.assistant.failure_notice,
                reply_delay=settings.assistant.reply_delay if reply_delay is None else reply_delay,
                reply_timeout=settings.timeouts.reply_timeout,
            ),
            credential=api_key,
        )
    except Exception as e:
        logger.error("Failed to create providers", error=str(e))
        click.echo(click.style(f"❌ Error: {str(e)}", fg="red"))
        sys.exit(1)

    click.echo(click.style(f"🎙️  {settings.assistant.name} Assistant", fg="green", bold=True))
    click.echo(f"Capture: {capture_provider} | Replies: {reply_provider} | TTS: {tts_provider}")
    if mock:
        click.echo(click.style("⚠️  Running in MOCK mode - no API calls will be made", fg="yellow"))
    if not api_key:
        click.echo("No ElevenLabs API key set; voice is off until you use /key.")
    click.echo("Type /help for commands.\n")

    presenter = ChatPresenter(settings.assistant.name)
    try:
        asyncio.run(run_chat(controller, presenter))
    except KeyboardInterrupt:
        click.echo("\n\nShutting down...")
    except Exception as e:
        logger.error("Fatal error", error=str(e), exc_info=True)
        click.echo(click.style(f"\n❌ Error: {str(e)}", fg="red"))
        sys.exit(1)

    click.echo("\n👋 Goodbye!")


@click.command()
def providers():
    """List available providers."""
    click.echo("🔌 Available Providers")
    click.echo("-" * 50)

    stt_providers = registry.list_stt_providers()
    click.echo(f"\n🎙️  Capture Providers ({len(stt_providers)})")
    for provider in stt_providers:
        click.echo(f"  - {provider}")

    ai_providers = registry.list_ai_providers()
    click.echo(f"\n🤖 Reply Sources ({len(ai_providers)})")
    for provider in ai_providers:
        click.echo(f"  - {provider}")

    tts_providers = registry.list_tts_providers()
    click.echo(f"\n🔊 TTS Providers ({len(tts_providers)})")
    for provider in tts_providers:
        click.echo(f"  - {provider}")

    click.echo("\nUse --<type>-provider flag to select a specific provider.")
    click.echo("Example: voice-assistant chat --reply-provider mock")


# Create CLI group
cli = click.Group(help="Voice-enabled conversational assistant.")
cli.add_command(chat)
cli.add_command(providers)


if __name__ == "__main__":
    cli()
