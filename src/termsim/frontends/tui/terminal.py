"""Interactive shell - prompt_toolkit input loop around the CommandDispatcher.

Input is read with a PromptSession inside ``patch_stdout`` so sequence
output and the prompt don't overwrite each other. Ctrl-C at the prompt and
SIGINT while a sequence renders both go to ``dispatcher.interrupt()``.
"""

from __future__ import annotations

import asyncio
import logging
import random
import signal
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.styles import Style
from rich.console import Console

from termsim.config import Settings
from termsim.core.clock import SystemClock
from termsim.core.interpreter import SequenceInterpreter
from termsim.frontends.tui.console_sink import ConsoleSink
from termsim.frontends.tui.file_manager import FileManagerApp
from termsim.frontends.tui.media import MediaState
from termsim.frontends.tui.themes import get_theme
from termsim.gateway.client import BackendClient, BackendConfig, OfflineBackend
from termsim.gateway.types import Backend
from termsim.session.dispatcher import CommandDispatcher
from termsim.session.store import JsonFileStore, SessionStore

logger = logging.getLogger(__name__)


def motd_lines(hostname: str, rng: random.Random | None = None) -> list[str]:
    """Login banner in the style of an Ubuntu server."""
    rng = rng or random.Random()
    now = datetime.now(timezone.utc)
    last_login = now - timedelta(seconds=rng.random() * 86400 * 2)
    ip = f"192.168.{rng.randrange(255)}.{rng.randrange(255)}"
    return [
        "Welcome to Ubuntu 25.04 (GNU/Linux 6.14.0-36-generic x86_64)",
        "",
        " * Documentation:  https://help.ubuntu.com",
        " * Management:     https://landscape.canonical.com",
        " * Support:        https://ubuntu.com/pro",
        "",
        f" System information as of {now:%a %b %d %H:%M:%S UTC %Y}",
        "",
        f"  System load:  {rng.random() * 0.5 + 0.1:.2f}               "
        f"Processes:             {rng.randrange(80, 130)}",
        f"  Usage of /:   {rng.random() * 20 + 10:.1f}% of {rng.random() * 20 + 40:.2f}GB   "
        "Users logged in:       1",
        f"  Memory usage: {rng.randrange(15, 45)}%                IPv4 address for eth0: {ip}",
        "",
        f"Last login: {last_login:%a %b %d %H:%M:%S %Y} from 192.168.{rng.randrange(255)}.{rng.randrange(255)}",
        f"[dim]Connected to {hostname}. Type 'help' for commands.[/]",
        "",
    ]


@dataclass
class TerminalSession:
    """Interactive shell bound to a console.

    Args:
        settings: Runtime settings.
        offline: Never contact the backend; every round-trip falls back.
    """

    settings: Settings
    offline: bool = False

    console: Console = field(init=False)
    sink: ConsoleSink = field(init=False)
    media: MediaState = field(default_factory=MediaState)
    _prompt_session: PromptSession[str] = field(init=False)
    _client: BackendClient | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        # force_terminal=True keeps cursor control codes working under patch_stdout()
        self.console = Console(theme=get_theme(self.settings.theme), force_terminal=True)
        self.sink = ConsoleSink(self.console)
        self._prompt_session = PromptSession(
            history=InMemoryHistory(),
            bottom_toolbar=self.media.describe,
            style=Style.from_dict({"bottom-toolbar": "noreverse"}),
        )

    async def _connect(self) -> Backend:
        if self.offline or not self.settings.backend_url:
            logger.info("Running without backend")
            return OfflineBackend()
        self._client = BackendClient(
            BackendConfig(base_url=self.settings.backend_url, api_key=self.settings.api_key)
        )
        await self._client.connect()
        return self._client

    def build_dispatcher(self, backend: Backend, store: SessionStore) -> CommandDispatcher:
        interpreter = SequenceInterpreter(
            self.sink,
            SystemClock(),
            device=self.media,
            fetcher=backend.scan,
            frame_interval_ms=self.settings.frame_ms,
            scan_min_duration_ms=self.settings.scan_min_ms,
            scan_assumed_max_ms=self.settings.scan_assumed_max_ms,
            scan_timeout_ms=self.settings.scan_timeout_ms,
        )
        return CommandDispatcher(
            interpreter,
            backend,
            store,
            help_threshold=self.settings.help_threshold,
            hostname=self.settings.hostname,
            file_manager=lambda: FileManagerApp().run(),
        )

    async def run(self) -> None:
        """Run the shell until logout or EOF."""
        backend = await self._connect()
        store = SessionStore(JsonFileStore(self.settings.store_path))
        for line in store.history():
            self._prompt_session.history.append_string(line)
        dispatcher = self.build_dispatcher(backend, store)

        for line in motd_lines(self.settings.hostname):
            self.sink.append_line(line)

        loop = asyncio.get_running_loop()
        original_handler = signal.getsignal(signal.SIGINT)

        def sigint_handler(signum: int, frame: Any) -> None:
            """Ctrl-C while a sequence renders: ask it to stop."""
            loop.call_soon_threadsafe(dispatcher.interrupt)

        signal.signal(signal.SIGINT, sigint_handler)

        try:
            # raw=True preserves ANSI escape sequences in output
            with patch_stdout(raw=True):
                while not dispatcher.closed:
                    try:
                        line = await self._prompt_session.prompt_async(dispatcher.prompt())
                    except KeyboardInterrupt:
                        dispatcher.interrupt()
                        continue
                    except EOFError:
                        break
                    await dispatcher.submit(line)
        finally:
            signal.signal(signal.SIGINT, original_handler)
            if self._client is not None:
                await self._client.close()
                self._client = None


async def run_terminal(settings: Settings, offline: bool = False) -> None:
    """Run the interactive shell.

    Args:
        settings: Runtime settings (see termsim.config).
        offline: Skip the backend entirely.
    """
    await TerminalSession(settings=settings, offline=offline).run()
