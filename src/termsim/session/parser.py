"""Command line parsing for the shell emulator.

Splits a line into command, positional args and flags. Quotes group words;
there is no escaping, globbing or piping.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ParsedCommand:
    """A parsed shell line.

    Attributes:
        command: First word, or "" for a blank line.
        args: Positional arguments.
        flags: ``--name value`` / ``--name`` / ``-abc`` flags. Short flags
            and valueless long flags map to True.
        raw: The stripped input line.
    """

    command: str
    args: list[str] = field(default_factory=list)
    flags: dict[str, bool | str] = field(default_factory=dict)
    raw: str = ""


def split_words(line: str) -> list[str]:
    """Split on spaces, keeping quoted spans (single or double) together."""
    parts: list[str] = []
    current = ""
    quote: str | None = None
    for char in line:
        if quote is None and char in ("'", '"'):
            quote = char
        elif char == quote:
            quote = None
        elif char == " " and quote is None:
            if current:
                parts.append(current)
                current = ""
        else:
            current += char
    if current:
        parts.append(current)
    return parts


def parse_command(line: str) -> ParsedCommand:
    raw = line.strip()
    parts = split_words(raw)
    if not parts:
        return ParsedCommand(command="", raw=raw)

    parsed = ParsedCommand(command=parts[0], raw=raw)
    i = 1
    while i < len(parts):
        arg = parts[i]
        if arg.startswith("--"):
            name = arg[2:]
            if i + 1 < len(parts) and not parts[i + 1].startswith("-"):
                parsed.flags[name] = parts[i + 1]
                i += 1
            else:
                parsed.flags[name] = True
        elif arg.startswith("-") and len(arg) > 1:
            for letter in arg[1:]:
                parsed.flags[letter] = True
        else:
            parsed.args.append(arg)
        i += 1
    return parsed
