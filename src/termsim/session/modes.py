"""Session mode state machine.

Pure routing: given the current ModeState and a raw input line (or an
interrupt), decide the next state and the Action the dispatcher must carry
out. Nothing here renders, awaits or touches storage.

States:
    SHELL            default; lines are shell commands
    AGENT_CHAT(n)    lines go to agent channel n
    GUIDED_ASSISTANT lines go to the guided assistant
    FILE_MANAGER     full-screen surface owns the keyboard; lines are ignored
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TypeAlias

FILE_MANAGER_KEYWORD = "mc"
AGENT_KEYWORD = "agent"
ASSISTANT_KEYWORD = "assistant"
LOGOUT_KEYWORDS = frozenset({"exit", "logout"})
LEAVE_KEYWORDS = frozenset({"exit", "quit", "disconnect"})
CLEAR_KEYWORDS = frozenset({"clear", "cls"})


class SessionMode(enum.Enum):
    SHELL = "shell"
    AGENT_CHAT = "agent_chat"
    GUIDED_ASSISTANT = "guided_assistant"
    FILE_MANAGER = "file_manager"


@dataclass(frozen=True)
class ModeState:
    mode: SessionMode = SessionMode.SHELL
    agent_id: int | None = None

    def __post_init__(self) -> None:
        if (self.mode is SessionMode.AGENT_CHAT) != (self.agent_id is not None):
            raise ValueError(f"agent_id must be set exactly for agent chat, got {self!r}")

    @property
    def owns_input(self) -> bool:
        """True when lines go to a chat backend rather than the shell."""
        return self.mode in (SessionMode.AGENT_CHAT, SessionMode.GUIDED_ASSISTANT)


SHELL = ModeState()


# =============================================================================
# Actions
# =============================================================================


@dataclass(frozen=True)
class Ignore:
    pass


@dataclass(frozen=True)
class ClearScreen:
    pass


@dataclass(frozen=True)
class Logout:
    pass


@dataclass(frozen=True)
class RunShellCommand:
    line: str


@dataclass(frozen=True)
class LaunchFileManager:
    pass


@dataclass(frozen=True)
class ConnectAgent:
    agent_id: int


@dataclass(frozen=True)
class StartAssistant:
    pass


@dataclass(frozen=True)
class ForwardToAgent:
    agent_id: int
    line: str


@dataclass(frozen=True)
class ForwardToAssistant:
    line: str


@dataclass(frozen=True)
class DisconnectAgent:
    agent_id: int


@dataclass(frozen=True)
class CloseAssistant:
    pass


@dataclass(frozen=True)
class Usage:
    message: str


@dataclass(frozen=True)
class AbortSequence:
    pass


@dataclass(frozen=True)
class Interrupted:
    pass


Action: TypeAlias = (
    Ignore
    | ClearScreen
    | Logout
    | RunShellCommand
    | LaunchFileManager
    | ConnectAgent
    | StartAssistant
    | ForwardToAgent
    | ForwardToAssistant
    | DisconnectAgent
    | CloseAssistant
    | Usage
    | AbortSequence
    | Interrupted
)


@dataclass(frozen=True)
class Transition:
    state: ModeState
    action: Action


# =============================================================================
# Routing
# =============================================================================


def route(state: ModeState, line: str) -> Transition:
    """Route one submitted line."""
    text = line.strip()
    words = text.split()
    keyword = words[0].lower() if words else ""

    if state.mode is SessionMode.FILE_MANAGER or not text:
        return Transition(state, Ignore())

    if keyword in CLEAR_KEYWORDS and len(words) == 1:
        return Transition(state, ClearScreen())

    if state.mode is SessionMode.AGENT_CHAT and state.agent_id is not None:
        if keyword in LEAVE_KEYWORDS and len(words) == 1:
            return Transition(SHELL, DisconnectAgent(state.agent_id))
        return Transition(state, ForwardToAgent(state.agent_id, text))

    if state.mode is SessionMode.GUIDED_ASSISTANT:
        if keyword in LEAVE_KEYWORDS and len(words) == 1:
            return Transition(SHELL, CloseAssistant())
        return Transition(state, ForwardToAssistant(text))

    if keyword == FILE_MANAGER_KEYWORD and len(words) == 1:
        return Transition(ModeState(SessionMode.FILE_MANAGER), LaunchFileManager())
    if keyword == AGENT_KEYWORD:
        if len(words) == 2 and words[1].isdigit():
            agent_id = int(words[1])
            return Transition(ModeState(SessionMode.AGENT_CHAT, agent_id), ConnectAgent(agent_id))
        return Transition(state, Usage("usage: agent <number>"))
    if keyword == ASSISTANT_KEYWORD and len(words) == 1:
        return Transition(ModeState(SessionMode.GUIDED_ASSISTANT), StartAssistant())
    if keyword in LOGOUT_KEYWORDS and len(words) == 1:
        return Transition(state, Logout())
    return Transition(state, RunShellCommand(text))


def route_interrupt(state: ModeState, in_flight: bool) -> Transition:
    """Route the interrupt keystroke.

    A running sequence is aborted and the mode kept. With nothing running,
    chat modes drop back to the shell; the shell just shows the marker.
    """
    if state.mode is SessionMode.FILE_MANAGER:
        return Transition(state, Ignore())
    if in_flight:
        return Transition(state, AbortSequence())
    if state.owns_input:
        return Transition(SHELL, Interrupted())
    return Transition(state, Interrupted())


def route_file_manager_exit(state: ModeState) -> Transition:
    if state.mode is SessionMode.FILE_MANAGER:
        return Transition(SHELL, Ignore())
    return Transition(state, Ignore())
