"""OutputSink that draws onto a rich Console.

Replacing or removing lines moves the cursor up over what was printed, so
it only works for lines still on screen; the sink tracks how many terminal
rows each recent line took after wrapping.
"""

from __future__ import annotations

from rich.console import Console
from rich.control import Control, ControlType
from rich.markup import escape
from rich.text import Text

from termsim.core.markup import IMAGE_MARKER, is_image_line

# Enough rows to cover any clear-line step; older lines are off screen anyway
MAX_TRACKED_LINES = 200


def image_placeholder(line: str) -> str:
    """Markup shown in place of an inline image line."""
    data_url = line[len(IMAGE_MARKER) :]
    header, _, payload = data_url.partition(",")
    mime_type = header.removeprefix("data:").split(";")[0] or "image"
    size_kb = len(payload) * 3 / 4 / 1024
    return f"[image]\\[{escape(mime_type)} {size_kb:.1f} KB image: not shown in terminal][/]"


class ConsoleSink:
    def __init__(self, console: Console) -> None:
        self.console = console
        self._rows: list[int] = []

    def _render(self, line: str) -> Text:
        if is_image_line(line):
            line = image_placeholder(line)
        return self.console.render_str(line, highlight=False)

    def _write(self, line: str) -> None:
        text = self._render(line)
        rows = max(1, len(text.wrap(self.console, max(self.console.width, 1))))
        self.console.print(text, highlight=False)
        self._rows.append(rows)
        if len(self._rows) > MAX_TRACKED_LINES:
            del self._rows[0]

    def _erase(self, count: int) -> None:
        rows = 0
        for _ in range(min(count, len(self._rows))):
            rows += self._rows.pop()
        if not rows:
            return
        codes: list[ControlType | tuple[ControlType, int]] = []
        for _ in range(rows):
            codes.extend([(ControlType.CURSOR_UP, 1), (ControlType.ERASE_IN_LINE, 2)])
        codes.append(ControlType.CARRIAGE_RETURN)
        self.console.control(Control(*codes))

    def append_line(self, text: str) -> None:
        self._write(text)

    def replace_last_line(self, text: str) -> None:
        self._erase(1)
        self._write(text)

    def remove_last_lines(self, count: int) -> None:
        if count > 0:
            self._erase(count)

    def clear(self) -> None:
        self.console.clear()
        self._rows.clear()
