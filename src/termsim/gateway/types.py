"""Request/response types for the four backend round-trips.

Requests serialize to the backend's camelCase JSON via ``to_payload()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from termsim.core.interpreter import ScanResult
from termsim.core.sequence import Sequence
from termsim.core.steps import ScanStep

AssistantAction = Literal["welcome", "exit", "help", "message"]


@dataclass
class InterpretRequest:
    """Model fallback for a command no builtin handles."""

    command: str
    current_dir: str
    user_level: str = "beginner"
    recent_commands: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "command": self.command,
            "context": {
                "currentDir": self.current_dir,
                "userLevel": self.user_level,
                "recentCommands": self.recent_commands,
            },
        }


@dataclass
class ModelReply:
    output: str | None = None
    error: str | None = None


@dataclass
class AssistantRequest:
    message: str
    action: AssistantAction = "message"
    failed_commands: list[str] = field(default_factory=list)
    session_history: str = ""
    conversation_history: list[dict[str, str]] = field(default_factory=list)
    initiation_level: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "action": self.action,
            "context": {
                "failedCommands": self.failed_commands,
                "sessionHistory": self.session_history,
                "conversationHistory": self.conversation_history,
                "initiationLevel": self.initiation_level,
            },
        }


@dataclass
class AssistantReply:
    sequence: Sequence
    state_update: dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentRequest:
    agent_id: int
    message: str
    history: list[dict[str, Any]] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {"agentId": self.agent_id, "message": self.message, "history": self.history}


@dataclass
class AgentReply:
    """Agent answer; ``text`` is what gets stored in the thread."""

    sequence: Sequence
    text: str


def scan_payload(step: ScanStep) -> dict[str, Any]:
    payload: dict[str, Any] = {"target": step.target, "classification": step.classification}
    if step.dimension:
        payload["dimension"] = step.dimension
    if step.timestamp:
        payload["timestamp"] = step.timestamp
    return payload


class Backend(Protocol):
    """What the dispatcher needs from the backend.

    Every method may raise BackendError.
    """

    async def interpret(self, request: InterpretRequest) -> ModelReply: ...

    async def assistant(self, request: AssistantRequest) -> AssistantReply: ...

    async def agent(self, request: AgentRequest) -> AgentReply: ...

    async def scan(self, step: ScanStep) -> ScanResult: ...
