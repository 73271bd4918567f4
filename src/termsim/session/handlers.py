"""Builtin command handlers and the registry the dispatcher consults.

Each handler receives the parsed command and a ShellContext and returns a
string, a list of lines, or CLEAR. Handlers may be plain functions or
coroutines; the dispatcher awaits whatever comes back.

Register extra commands with the decorator:

    @command("uptime")
    def cmd_uptime(parsed, ctx):
        return " 10:14:03 up 42 days,  3:12,  1 user,  load average: 0.08"
"""

from __future__ import annotations

import enum
import platform
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TypeAlias

from termsim.session.parser import ParsedCommand
from termsim.session.store import SessionStore


class Sentinel(enum.Enum):
    CLEAR = "clear"


CLEAR = Sentinel.CLEAR

HandlerResult: TypeAlias = str | list[str] | Sentinel


@dataclass
class ShellContext:
    """What a handler may see of the session."""

    current_dir: str
    store: SessionStore
    hostname: str = "prod-srv-42"
    user: str = "root"


CommandHandler = Callable[
    [ParsedCommand, ShellContext], HandlerResult | Awaitable[HandlerResult]
]

COMMANDS: dict[str, CommandHandler] = {}


def command(name: str, *aliases: str) -> Callable[[CommandHandler], CommandHandler]:
    """Register a handler under ``name`` and any aliases."""

    def decorator(fn: CommandHandler) -> CommandHandler:
        for key in (name, *aliases):
            COMMANDS[key] = fn
        return fn

    return decorator


def get_handler(name: str) -> CommandHandler | None:
    return COMMANDS.get(name)


@command("help")
def cmd_help(parsed: ParsedCommand, ctx: ShellContext) -> list[str]:
    return [
        "GNU bash, version 5.1.16(1)-release (x86_64-pc-linux-gnu)",
        "These shell commands are defined internally.",
        "",
        f"  {'  '.join(sorted(COMMANDS))}",
        "",
        "Session commands:",
        "  mc             open the file manager",
        "  agent <n>      connect to agent channel n",
        "  assistant      start the guided assistant",
        "  exit, logout   end the session",
        "",
        "Anything else is passed to the remote host.",
    ]


@command("pwd")
def cmd_pwd(parsed: ParsedCommand, ctx: ShellContext) -> str:
    return ctx.current_dir


@command("echo")
def cmd_echo(parsed: ParsedCommand, ctx: ShellContext) -> str:
    text = " ".join(parsed.args)
    if parsed.flags.get("e"):
        text = text.replace("\\n", "\n").replace("\\t", "\t")
    return text


@command("whoami")
def cmd_whoami(parsed: ParsedCommand, ctx: ShellContext) -> str:
    return ctx.user


@command("hostname")
def cmd_hostname(parsed: ParsedCommand, ctx: ShellContext) -> str:
    return ctx.hostname


_DATE_CODES = {
    "%Y": "%Y",
    "%m": "%m",
    "%d": "%d",
    "%H": "%H",
    "%M": "%M",
    "%S": "%S",
    "%F": "%Y-%m-%d",
    "%T": "%H:%M:%S",
}


@command("date")
def cmd_date(parsed: ParsedCommand, ctx: ShellContext) -> str:
    now = datetime.now().astimezone()
    fmt = next((a for a in parsed.args if a.startswith("+")), None)
    if fmt is None:
        return now.strftime("%a %b %d %H:%M:%S %Z %Y")
    out = fmt[1:].replace("%s", str(int(now.timestamp())))
    for code, replacement in _DATE_CODES.items():
        out = out.replace(code, now.strftime(replacement))
    return out


@command("uname")
def cmd_uname(parsed: ParsedCommand, ctx: ShellContext) -> str:
    kernel = "5.15.0-91-generic"
    if parsed.flags.get("a"):
        return (
            f"Linux {ctx.hostname} {kernel} #101-Ubuntu SMP "
            f"{platform.machine() or 'x86_64'} GNU/Linux"
        )
    if parsed.flags.get("r"):
        return kernel
    if parsed.flags.get("n"):
        return ctx.hostname
    return "Linux"


@command("history")
def cmd_history(parsed: ParsedCommand, ctx: ShellContext) -> list[str] | str:
    if parsed.flags.get("c") or parsed.flags.get("clear"):
        ctx.store.backend.set(SessionStore.HISTORY, [])
        return ""
    history = ctx.store.history()
    count = len(history)
    if parsed.args:
        try:
            count = max(0, int(parsed.args[0]))
        except ValueError:
            return f"history: {parsed.args[0]}: numeric argument required"
    start = len(history) - min(count, len(history))
    return [f"  {start + i + 1:>4}  {cmd}" for i, cmd in enumerate(history[start:])]


@command("clear", "cls", "reset")
def cmd_clear(parsed: ParsedCommand, ctx: ShellContext) -> Sentinel:
    return CLEAR
