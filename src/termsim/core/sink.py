"""Output sink - the line buffer the interpreter writes into."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from termsim.core.markup import plain


class OutputSink(Protocol):
    """Append-only scrollback with in-place edits of the tail."""

    def append_line(self, text: str) -> None: ...

    def replace_last_line(self, text: str) -> None: ...

    def remove_last_lines(self, count: int) -> None: ...

    def clear(self) -> None: ...


@dataclass
class LineBuffer:
    """In-memory OutputSink.

    Keeps every write in ``history`` as ``(op, text)`` pairs so tests can
    assert on frame order, not just on the final buffer.
    """

    max_lines: int | None = None
    lines: list[str] = field(default_factory=list)
    history: list[tuple[str, str]] = field(default_factory=list)

    def append_line(self, text: str) -> None:
        self.lines.append(text)
        self.history.append(("append", text))
        if self.max_lines is not None and len(self.lines) > self.max_lines:
            del self.lines[: len(self.lines) - self.max_lines]

    def replace_last_line(self, text: str) -> None:
        if self.lines:
            self.lines[-1] = text
        else:
            self.lines.append(text)
        self.history.append(("replace", text))

    def remove_last_lines(self, count: int) -> None:
        if count <= 0:
            return
        del self.lines[-count:]
        self.history.append(("remove", str(count)))

    def clear(self) -> None:
        self.lines.clear()
        self.history.append(("clear", ""))

    @property
    def plain_lines(self) -> list[str]:
        """Buffer contents with markup stripped."""
        return [plain(line) for line in self.lines]

    @property
    def last(self) -> str | None:
        return self.lines[-1] if self.lines else None
