"""CLI entry point."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path


def main() -> None:
    """Main entry point for the CLI."""
    _run_cli()


async def play_sequence(path: Path, animate: bool, theme: str) -> int:
    """Render a sequence JSON file to the console. Returns an exit code."""
    from rich.console import Console

    from termsim.config import Settings
    from termsim.core.clock import SystemClock, VirtualClock
    from termsim.core.interpreter import RunOutcome, SequenceInterpreter
    from termsim.core.sequence import SequenceParseError, parse_sequence
    from termsim.frontends.tui.console_sink import ConsoleSink
    from termsim.frontends.tui.media import MediaState
    from termsim.frontends.tui.themes import get_theme
    from termsim.gateway.client import BackendClient, BackendConfig

    console = Console(theme=get_theme(theme))
    try:
        sequence = parse_sequence(json.loads(path.read_text()))
    except (OSError, json.JSONDecodeError, SequenceParseError) as e:
        console.print(f"[error]Cannot load {path}: {e}[/]", markup=True)
        return 1

    settings = Settings.from_env()
    client = None
    if settings.backend_url:
        client = BackendClient(BackendConfig(base_url=settings.backend_url, api_key=settings.api_key))
        await client.connect()

    clock = SystemClock() if animate else VirtualClock()
    interpreter = SequenceInterpreter(
        ConsoleSink(console),
        clock,
        device=MediaState(),
        fetcher=client.scan if client else None,
        frame_interval_ms=settings.frame_ms,
        scan_min_duration_ms=settings.scan_min_ms,
        scan_assumed_max_ms=settings.scan_assumed_max_ms,
        scan_timeout_ms=settings.scan_timeout_ms,
    )
    try:
        if isinstance(clock, VirtualClock):
            outcome = await clock.run(interpreter.run(sequence))
        else:
            outcome = await interpreter.run(sequence)
    finally:
        if client is not None:
            await client.close()
    return 0 if outcome is RunOutcome.COMPLETED else 130


def _run_cli() -> None:
    """CLI definition and runner."""
    import rich_click as click

    # Configure rich-click styling
    click.rich_click.USE_RICH_MARKUP = True
    click.rich_click.USE_MARKDOWN = True
    click.rich_click.SHOW_ARGUMENTS = True
    click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
    click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
    click.rich_click.ERRORS_SUGGESTION = "Try running '--help' for more information."
    click.rich_click.ERRORS_EPILOGUE = ""
    click.rich_click.MAX_WIDTH = 100

    @click.group()
    @click.version_option(package_name="termsim")
    def cli():
        """termsim - Simulated remote shell with animated assistant output.

        **Commands:**

            termsim shell    Interactive shell session

            termsim play     Render a sequence JSON file
        """
        pass

    @cli.command()
    @click.option("--store", "store_path", type=click.Path(dir_okay=False), help="Session file")
    @click.option("--theme", default=None, help="Theme (default, nord, dracula, mono)")
    @click.option("--offline", is_flag=True, help="Never contact the backend")
    def shell(store_path: str | None, theme: str | None, offline: bool):
        """Start an interactive shell session.

        Logs go to TERMSIM_LOG_FILE (default ~/.termsim/termsim.log) so they
        never mix with terminal output.

        **Examples:**

            termsim shell

            termsim shell --offline --theme nord
        """
        import dataclasses
        import os

        from termsim.config import Settings
        from termsim.core.logging_config import configure_logging
        from termsim.frontends.tui.terminal import run_terminal

        settings = Settings.from_env()
        overrides: dict = {}
        if store_path:
            overrides["store_path"] = Path(store_path).expanduser()
        if theme:
            overrides["theme"] = theme
        settings = dataclasses.replace(settings, **overrides)

        log_file = os.environ.get("TERMSIM_LOG_FILE")
        if not log_file:
            log_path = settings.store_path.parent / "termsim.log"
            log_path.parent.mkdir(parents=True, exist_ok=True)
            log_file = str(log_path)
        configure_logging(file_path=log_file)

        asyncio.run(run_terminal(settings, offline=offline))

    @cli.command()
    @click.argument("file", type=click.Path(exists=True, dir_okay=False))
    @click.option("--no-animate", is_flag=True, help="Print final frames only, no delays")
    @click.option("--theme", default="default", help="Theme (default, nord, dracula, mono)")
    def play(file: str, no_animate: bool, theme: str):
        """Render a sequence JSON file through the interpreter.

        **Examples:**

            termsim play welcome.json

            termsim play welcome.json --no-animate
        """
        from termsim.core.logging_config import configure_logging

        configure_logging()
        sys.exit(asyncio.run(play_sequence(Path(file), animate=not no_animate, theme=theme)))

    cli()


if __name__ == "__main__":
    main()
