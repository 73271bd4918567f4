"""User level detection from command history."""

from __future__ import annotations

import enum
from collections.abc import Iterable


class UserLevel(str, enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


ADVANCED_COMMANDS = (
    "awk", "sed", "grep", "find", "xargs", "tar", "gzip", "ssh", "scp",
    "rsync", "cron", "systemctl", "journalctl", "iptables", "netstat",
    "tcpdump", "strace", "gdb", "vim", "emacs", "git", "docker", "kubectl",
)  # fmt: skip

INTERMEDIATE_COMMANDS = (
    "cd", "ls", "cat", "mkdir", "rm", "cp", "mv", "chmod", "chown",
    "ps", "top", "df", "du", "free", "wget", "curl", "nano",
)  # fmt: skip


def detect_user_level(history: Iterable[str]) -> UserLevel:
    """Classify a user by what they have typed so far.

    Substring matches against known command families, plus whether pipes,
    redirects or background jobs were ever used.
    """
    history = list(history)
    if not history:
        return UserLevel.BEGINNER

    advanced = sum(1 for cmd in history if any(a in cmd for a in ADVANCED_COMMANDS))
    intermediate = sum(1 for cmd in history if any(c in cmd for c in INTERMEDIATE_COMMANDS))
    complex_syntax = any(
        "|" in cmd or ">" in cmd or "<" in cmd or "&" in cmd for cmd in history
    )

    if advanced > 5 or (advanced > 2 and complex_syntax):
        return UserLevel.ADVANCED
    if intermediate > 10 or complex_syntax or advanced > 0:
        return UserLevel.INTERMEDIATE
    return UserLevel.BEGINNER
