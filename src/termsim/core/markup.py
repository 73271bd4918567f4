"""Output line markup.

Output lines are Rich console markup strings. Styles refer to names defined
by the terminal theme (see termsim.frontends.tui.themes), so the core never
hardcodes colors. Every piece of content that did not originate here is
escaped before it is wrapped.
"""

from __future__ import annotations

from typing import Literal

from rich.markup import escape
from rich.text import Text

TextStyle = Literal[
    "normal", "success", "error", "warning", "info", "dim", "highlight", "accent"
]

# "quantum" is the name older sequence scripts use for the accent color
STYLE_ALIASES: dict[str, TextStyle] = {"quantum": "accent"}

TEXT_STYLES: frozenset[str] = frozenset(
    {"normal", "success", "error", "warning", "info", "dim", "highlight", "accent"}
)

IMAGE_MARKER = "@@image:"
CANCEL_MARKER = "[warning]^C[/]"

SPINNERS: dict[str, tuple[str, ...]] = {
    "dots": ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"),
    "line": ("|", "/", "-", "\\"),
    "pulse": ("█", "▓", "▒", "░", "▒", "▓"),
    "blocks": ("▏", "▎", "▍", "▌", "▋", "▊", "▉", "█"),
    "orbit": ("◐", "◓", "◑", "◒"),
    "braille": ("⣾", "⣽", "⣻", "⢿", "⡿", "⣟", "⣯", "⣷"),
}

_STATUS_LABELS: dict[str, tuple[str, str]] = {
    "ok": ("  OK  ", "success"),
    "fail": (" FAIL ", "error"),
    "warn": (" WARN ", "warning"),
    "info": (" INFO ", "info"),
    "skip": (" SKIP ", "dim"),
    "done": (" DONE ", "success"),
}


def normalize_style(style: str | None) -> TextStyle:
    """Map a style name (including legacy aliases) to a known theme style."""
    if not style:
        return "normal"
    style = STYLE_ALIASES.get(style, style)  # type: ignore[assignment]
    if style not in TEXT_STYLES:
        return "normal"
    return style  # type: ignore[return-value]


def styled(text: str, style: str | None = "normal") -> str:
    """Escape text and wrap it in a theme style tag."""
    resolved = normalize_style(style)
    if resolved == "normal":
        return escape(text)
    return f"[{resolved}]{escape(text)}[/]"


def status_prefix(kind: str) -> str:
    """Bracketed status badge, e.g. ``[  OK  ]`` in the success style."""
    label, style = _STATUS_LABELS.get(kind, _STATUS_LABELS["info"])
    return f"[{style}]\\[{label}][/]"


def image_line(mime_type: str, data: str) -> str:
    """Line carrying an inline image as a data URL."""
    return f"{IMAGE_MARKER}data:{mime_type};base64,{data}"


def is_image_line(line: str) -> bool:
    return line.startswith(IMAGE_MARKER)


def plain(line: str) -> str:
    """Strip markup from an output line (image lines are returned as-is)."""
    if is_image_line(line):
        return line
    return Text.from_markup(line).plain
