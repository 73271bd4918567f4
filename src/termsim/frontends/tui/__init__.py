"""Terminal UI - prompt_toolkit shell with rich output."""

from termsim.frontends.tui.console_sink import ConsoleSink
from termsim.frontends.tui.media import MediaState
from termsim.frontends.tui.terminal import TerminalSession, run_terminal
from termsim.frontends.tui.themes import THEMES, get_theme

__all__ = ["ConsoleSink", "MediaState", "TerminalSession", "run_terminal", "THEMES", "get_theme"]
