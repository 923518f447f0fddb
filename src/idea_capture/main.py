"""
Idea Capture
Main entry point
"""

import sys
import signal
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .config import SettingsManager
from .audio import AudioConstraints, AudioDeviceManager, CaptureSessionController, CapturedAudio, open_pyaudio_device
from .assistant import AssistantEngine, is_demo_mode
from .speech import SpeechRecognizer, SpeechSynthesizer
from .session import ConversationSession, SessionStore, render_markdown
from .export import (
    DestinationSink,
    ExportArtifact,
    ExportPipeline,
    FileDestination,
    LinkedAppDestination,
    dated_file_name,
)
from .exceptions import (
    AssistantError,
    BudgetExceeded,
    CaptureError,
    ConfigurationError,
    DeliveryFailed,
    EmptyContent,
    IdeaCaptureError,
    SummarizationFailed,
)


# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

Destination = Union[LinkedAppDestination, FileDestination]


def setup_logging(level: str = "INFO"):
    """Setup logging configuration"""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(message)s",
        handlers=[
            RichHandler(
                rich_tracebacks=True,
                show_time=True,
                show_path=False,
            )
        ]
    )


class IdeaCaptureApp:
    """Main application class"""

    def __init__(
        self,
        settings: Optional[SettingsManager] = None,
        engine: Optional[AssistantEngine] = None,
        device_manager: Optional[AudioDeviceManager] = None,
        recognizer: Optional[SpeechRecognizer] = None,
        synthesizer: Optional[SpeechSynthesizer] = None,
        store: Optional[SessionStore] = None,
        sink: Optional[DestinationSink] = None,
        console: Optional[Console] = None,
    ):
        self.settings = settings or SettingsManager()
        self.console = console or Console()

        self._init_audio(device_manager)
        self.recognizer = recognizer or self._create_recognizer()
        self.synthesizer = synthesizer or self._create_synthesizer()
        self.speech_enabled = bool(self.settings.get('speech', 'tts_enabled'))
        self.engine = engine or AssistantEngine(self.settings.all)
        self.store = store or SessionStore(self.settings.get_session_dir())
        self._init_export(sink)

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop: Optional[asyncio.Event] = None
        self._tasks: set = set()
        self._exporting = False

    def _init_audio(self, device_manager: Optional[AudioDeviceManager]):
        """Initialize device manager and capture controller"""
        audio_config = self.settings.get('audio')
        constraints = AudioConstraints(
            sample_rate=audio_config.get('sample_rate', 16000),
            chunk_duration_ms=audio_config.get('chunk_duration_ms', 100),
            device_index=audio_config.get('device_index'),
        )
        self.device_manager = device_manager or AudioDeviceManager(open_pyaudio_device, constraints)
        self.controller = CaptureSessionController(
            self.device_manager,
            max_duration_seconds=audio_config.get('max_duration_seconds', 60),
            mime_hint=audio_config.get('mime_hint', 'audio/wav'),
            on_artifact=self._on_artifact,
            on_error=self._on_capture_error,
            on_timeout=self._on_capture_timeout,
        )

    def _create_recognizer(self) -> SpeechRecognizer:
        speech_config = self.settings.get('speech')
        return SpeechRecognizer(
            model_size=speech_config.get('local_model', 'base'),
            api_model=speech_config.get('api_model', 'whisper-1'),
            language=speech_config.get('language', 'en'),
            use_api=speech_config.get('use_api', True),
        )

    def _create_synthesizer(self) -> Optional[SpeechSynthesizer]:
        if is_demo_mode():
            logger.info("Demo mode: replies will not be read aloud")
            return None
        speech_config = self.settings.get('speech')
        return SpeechSynthesizer(
            model=speech_config.get('tts_model', 'tts-1'),
            voice=speech_config.get('tts_voice', 'alloy'),
        )

    def _init_export(self, sink: Optional[DestinationSink]):
        """Initialize export pipeline with the assistant as collaborator"""
        export_config = self.settings.get('export')
        self.pipeline = ExportPipeline(
            enricher=self.engine.enrich,
            summarizer=self.engine.summarize,
            enrichment_timeout=export_config.get('enrichment_timeout_seconds', 5),
            summary_max_length=export_config.get('summary_max_length', 1000),
        )
        self.sink = sink or DestinationSink()

    # Capture

    def _track(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _on_artifact(self, artifact: Optional[CapturedAudio]):
        if artifact is None:
            self.console.print("[dim]Nothing captured, hold the key a little longer[/dim]")
            return
        self._track(self.process_capture(artifact))

    def _on_capture_error(self, error: CaptureError):
        self.console.print(f"[red]Microphone error:[/red] {error}")

    def _on_capture_timeout(self):
        limit = self.controller.max_duration_seconds
        self.console.print(f"[yellow]Recording reached the {limit:.0f} second limit[/yellow]")

    async def process_capture(self, artifact: CapturedAudio) -> Optional[ConversationSession]:
        """Transcribe a capture, store it, and add the assistant's reply, read aloud when enabled"""
        loop = asyncio.get_running_loop()
        self.console.print("[dim]Transcribing...[/dim]")
        text, confidence = await loop.run_in_executor(None, self.recognizer.transcribe, artifact)
        if not text:
            self.console.print("[yellow]Could not recognise any speech[/yellow]")
            return None

        session = self.store.get_or_create_current()
        session.add_message("user", text)
        self.store.save(session)
        self.console.print(f"[bold cyan]You:[/bold cyan] {text}")

        try:
            reply = await self.engine.reply(session.chat_messages())
        except AssistantError as e:
            logger.error(f"Assistant reply failed: {e}")
            self.console.print(f"[red]Assistant unavailable:[/red] {e}")
            return session

        session.add_message("assistant", reply)
        self.store.save(session)
        self.console.print(f"[bold magenta]AI:[/bold magenta] {reply}")

        if self.speech_enabled and self.synthesizer is not None:
            await loop.run_in_executor(None, self.synthesizer.speak, reply)
        return session

    def toggle_speech(self) -> bool:
        """Turn reading replies aloud on or off"""
        self.speech_enabled = not self.speech_enabled
        state = "on" if self.speech_enabled else "off"
        if self.speech_enabled and self.synthesizer is None:
            self.console.print("[yellow]Speech output needs an OpenAI API key[/yellow]")
        else:
            self.console.print(f"[dim]Reading replies aloud: {state}[/dim]")
        return self.speech_enabled

    # Export

    def linked_app_destination(self) -> LinkedAppDestination:
        vault = self.settings.get_vault_name()
        if not vault:
            raise ConfigurationError("Vault name is not set (export.vault_name or OBSIDIAN_VAULT_NAME)")
        export_config = self.settings.get('export')
        return LinkedAppDestination(
            vault=vault,
            file_name=dated_file_name(export_config.get('file_prefix', 'idea')),
            max_uri_length=export_config.get('max_uri_length', 2000),
            safety_margin=export_config.get('safety_margin', 100),
        )

    def file_destination(self) -> FileDestination:
        return FileDestination(
            directory=self.settings.get_download_dir(),
            file_name=dated_file_name(self.settings.get('export', 'file_prefix') or 'idea'),
        )

    async def export_session(self, session_id: Optional[str] = None, to_file: bool = False):
        """
        Export a session: prepare, escalate if over budget, preview, deliver.

        Returns:
            The sink's result (URI or file path), or None when nothing was delivered
        """
        session = self.store.load(session_id) if session_id else self.store.get_or_create_current()
        if session is None:
            self.console.print(f"[red]No session {session_id}[/red]")
            return None

        destination: Destination
        if to_file:
            destination = self.file_destination()
        else:
            try:
                destination = self.linked_app_destination()
            except ConfigurationError as e:
                self.console.print(f"[yellow]{e}; saving as a Markdown file instead[/yellow]")
                destination = self.file_destination()

        content = render_markdown(session) if session.messages else ""
        self.console.print("[dim]Linking keywords...[/dim]")
        try:
            artifact = await self.pipeline.prepare(content, destination)
        except EmptyContent:
            self.console.print("[red]There is nothing to export yet[/red]")
            return None

        can_summarize = True
        while artifact.over_budget and destination.budget is not None:
            can_summarize = can_summarize and not artifact.summarized
            choice = await self._ask(self._choose_escalation, artifact, can_summarize)
            if choice == "cancel":
                return None
            if choice == "file":
                destination = self.file_destination()
                artifact = self.pipeline.fallback(artifact, destination)
                break

            self.console.print("[dim]Summarizing conversation...[/dim]")
            try:
                artifact = await self.pipeline.summarize(artifact, destination)
            except SummarizationFailed as e:
                self.console.print(f"[red]{e}[/red]")
                can_summarize = False
                continue
            if artifact.over_budget:
                self.console.print("[yellow]The summary is still too long for the note app[/yellow]")

        if not await self._ask(self._confirm_preview, artifact):
            return None

        try:
            return self.pipeline.deliver(artifact, destination, self.sink)
        except BudgetExceeded as e:
            self.console.print(f"[yellow]{e}. Export to a Markdown file instead.[/yellow]")
        except DeliveryFailed as e:
            self.console.print(f"[red]{e}[/red]")
        return None

    async def _ask(self, prompt_fn, *args):
        """Run a blocking rich prompt off the event loop"""
        return await asyncio.get_running_loop().run_in_executor(None, prompt_fn, *args)

    def _choose_escalation(self, artifact: ExportArtifact, can_summarize: bool = True) -> str:
        self.console.print(Panel(
            f"The note is too long to open directly ({artifact.encoded_length} encoded "
            f"characters, limit {artifact.budget}).",
            title="Too long",
            border_style="yellow",
        ))
        choices = ["summarize", "file", "cancel"] if can_summarize else ["file", "cancel"]
        return Prompt.ask("Summarize with AI, save a Markdown file, or cancel?", choices=choices, default=choices[0])

    def _confirm_preview(self, artifact: ExportArtifact) -> bool:
        title = "Preview (AI summary)" if artifact.summarized else "Preview"
        self.console.print(Panel(Markdown(artifact.content), title=title, border_style="magenta"))
        return Confirm.ask(f"Save to {artifact.destination_kind.value}?", default=True)

    def _schedule_export(self, to_file: bool):
        if self._exporting:
            logger.info("Export already in progress")
            return

        async def _run():
            self._exporting = True
            try:
                result = await self.export_session(to_file=to_file)
                if result:
                    self.console.print(f"[green]Exported:[/green] {result}")
            finally:
                self._exporting = False

        self._track(_run())

    # Lifecycle

    async def run(self):
        """Listen for hold-to-talk and export hotkeys until quit"""
        from .utils.hotkeys import HoldHotkey, HotkeyManager

        self._loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        loop = self._loop

        hotkey_config = self.settings.get('hotkeys')
        hold = HoldHotkey(
            hotkey_config['hold_to_talk'],
            on_press=lambda: loop.call_soon_threadsafe(self.controller.hold_start),
            on_release=lambda: loop.call_soon_threadsafe(self.controller.hold_end),
        )
        hotkeys = HotkeyManager()
        if hotkey_config.get('export_linked_app'):
            hotkeys.register(
                hotkey_config['export_linked_app'],
                lambda: loop.call_soon_threadsafe(self._schedule_export, False),
            )
        if hotkey_config.get('export_file'):
            hotkeys.register(
                hotkey_config['export_file'],
                lambda: loop.call_soon_threadsafe(self._schedule_export, True),
            )
        if hotkey_config.get('toggle_speech'):
            hotkeys.register(
                hotkey_config['toggle_speech'],
                lambda: loop.call_soon_threadsafe(self.toggle_speech),
            )
        if hotkey_config.get('quit'):
            hotkeys.register(hotkey_config['quit'], lambda: loop.call_soon_threadsafe(self._stop.set))

        # Handle Ctrl+C gracefully
        signal.signal(signal.SIGINT, lambda *args: loop.call_soon_threadsafe(self._stop.set))

        hold.start()
        hotkeys.start()
        self.console.print(
            f"Hold [bold]{hotkey_config['hold_to_talk']}[/bold] to talk, "
            f"[bold]{hotkey_config.get('export_linked_app')}[/bold] to export, "
            f"[bold]{hotkey_config.get('quit')}[/bold] to quit"
        )
        logger.info(f"Assistant providers: {self.engine.available_providers} (default: {self.engine.default_provider})")

        try:
            await self._stop.wait()
        finally:
            hold.stop()
            hotkeys.stop()
            await self.shutdown()

    async def shutdown(self):
        """Finish the active capture and pending work, then release the microphone"""
        logger.info("Shutting down...")
        self.controller.hold_end()
        await self.controller.wait_idle()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self.device_manager.release()

    def print_sessions(self):
        table = Table(title="Sessions")
        table.add_column("Id")
        table.add_column("Title")
        table.add_column("Updated")
        table.add_column("Messages", justify="right")
        current = self.store.current_session_id
        for info in self.store.list_sessions():
            marker = " *" if info["session_id"] == current else ""
            table.add_row(
                f"{info['session_id']}{marker}",
                info["title"],
                info["updated_at"],
                str(info["message_count"]),
            )
        self.console.print(table)

    def new_session(self) -> ConversationSession:
        session = ConversationSession()
        self.store.save(session)
        self.store.current_session_id = session.id
        self.console.print(f"Started session [bold]{session.id}[/bold]")
        return session


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="idea-capture", description="Hold-to-talk idea capture")
    parser.add_argument("--config-dir", type=Path, default=None, help="Settings directory")
    parser.add_argument("--log-level", default=None, help="Override logging.level")
    parser.add_argument("--no-speech", action="store_true", help="Do not read assistant replies aloud")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("listen", help="Listen for hold-to-talk (default)")
    export = commands.add_parser("export", help="Export a session")
    export.add_argument("--session", default=None, help="Session id (default: current)")
    export.add_argument("--file", action="store_true", help="Save a Markdown file instead of opening the note app")
    commands.add_parser("sessions", help="List sessions")
    commands.add_parser("new", help="Start a new session")
    return parser


def main():
    """Entry point"""
    args = build_parser().parse_args()

    try:
        settings = SettingsManager(args.config_dir)
        setup_logging(args.log_level or settings.get('logging', 'level') or "INFO")
        if args.no_speech:
            settings.set('speech', 'tts_enabled', False)
        app = IdeaCaptureApp(settings)

        if args.command == "export":
            result = asyncio.run(app.export_session(args.session, to_file=args.file))
            if result:
                app.console.print(f"[green]Exported:[/green] {result}")
            sys.exit(0 if result else 1)
        elif args.command == "sessions":
            app.print_sessions()
        elif args.command == "new":
            app.new_session()
        else:
            asyncio.run(app.run())
    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(0)
    except IdeaCaptureError as e:
        logging.getLogger(__name__).error(str(e))
        sys.exit(1)
    except Exception as e:
        logging.getLogger(__name__).exception(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
