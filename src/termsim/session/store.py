"""Session persistence - small key/value state kept across runs.

Two layers:

- KeyValueStore: untyped get/set/delete of JSON-compatible values.
  MemoryStore for tests, JsonFileStore for the real shell.
- SessionStore: typed accessors for everything the session keeps
  (history, failure tally, agent threads, assistant conversation, ...).
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 1000
FAILED_COMMANDS_LIMIT = 20
CONVERSATION_LIMIT = 200
AGENT_MESSAGES_LIMIT = 200
DEFAULT_DIR = "/root"


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


@dataclass
class MemoryStore:
    """KeyValueStore backed by a dict."""

    data: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore:
    """KeyValueStore persisted to a single JSON file.

    The file is read once on construction and rewritten after every change.
    A missing or unreadable file starts an empty store.

    Example:
        >>> store = JsonFileStore(Path("~/.termsim/session.json"))
        >>> store.set("terminal_current_dir", "/var/log")
    """

    version = "1.0.0"

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        self.data: dict[str, Any] = {}
        if self.path.exists():
            try:
                with open(self.path) as f:
                    loaded = json.load(f)
                self.data = dict(loaded.get("values", {}))
            except (OSError, json.JSONDecodeError, AttributeError) as e:
                logger.warning("Ignoring unreadable session file %s: %s", self.path, e)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.save()

    def delete(self, key: str) -> None:
        if self.data.pop(key, None) is not None:
            self.save()

    def save(self) -> None:
        """Write the store to disk, creating parent directories if needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump({"version": self.version, "values": self.data}, f, indent=2)


def get_default_store_path() -> Path:
    return Path.home() / ".termsim" / "session.json"


class SessionStore:
    """Typed view over a KeyValueStore.

    Every accessor reads through to the underlying store, so two
    SessionStores over the same backing store always agree.
    """

    HISTORY = "terminal_history"
    CURRENT_DIR = "terminal_current_dir"
    USER_LEVEL = "terminal_user_level"
    TALLY_COUNT = "terminal_unknown_count"
    TALLY_PROMPTED = "terminal_help_prompted"
    FAILED_COMMANDS = "terminal_failed_commands"
    AGENTS = "terminal_agents"
    CONVERSATION = "terminal_assistant_conversation"
    INITIATION_LEVEL = "terminal_initiation_level"

    def __init__(self, backend: KeyValueStore | None = None) -> None:
        self.backend: KeyValueStore = backend if backend is not None else MemoryStore()

    # History

    def history(self) -> list[str]:
        return list(self.backend.get(self.HISTORY) or [])

    def add_history(self, command: str) -> None:
        history = self.history()
        history.append(command)
        self.backend.set(self.HISTORY, history[-HISTORY_LIMIT:])

    def recent_commands(self, count: int = 10) -> list[str]:
        return self.history()[-count:]

    # Shell state

    @property
    def current_dir(self) -> str:
        return self.backend.get(self.CURRENT_DIR) or DEFAULT_DIR

    @current_dir.setter
    def current_dir(self, path: str) -> None:
        self.backend.set(self.CURRENT_DIR, path)

    @property
    def user_level(self) -> str:
        return self.backend.get(self.USER_LEVEL) or "beginner"

    @user_level.setter
    def user_level(self, level: str) -> None:
        self.backend.set(self.USER_LEVEL, level)

    # Failure tally

    @property
    def tally_count(self) -> int:
        return int(self.backend.get(self.TALLY_COUNT) or 0)

    @tally_count.setter
    def tally_count(self, value: int) -> None:
        self.backend.set(self.TALLY_COUNT, value)

    @property
    def tally_prompted(self) -> bool:
        return bool(self.backend.get(self.TALLY_PROMPTED))

    @tally_prompted.setter
    def tally_prompted(self, value: bool) -> None:
        self.backend.set(self.TALLY_PROMPTED, value)

    def failed_commands(self) -> list[str]:
        return list(self.backend.get(self.FAILED_COMMANDS) or [])

    def add_failed_command(self, command: str) -> None:
        failed = self.failed_commands()
        failed.append(command)
        self.backend.set(self.FAILED_COMMANDS, failed[-FAILED_COMMANDS_LIMIT:])

    # Agent threads

    def agent_thread(self, agent_id: int) -> dict[str, Any] | None:
        agents = self.backend.get(self.AGENTS) or {}
        return agents.get(str(agent_id))

    def add_agent_message(self, agent_id: int, role: str, content: str) -> None:
        agents = dict(self.backend.get(self.AGENTS) or {})
        now = int(time.time() * 1000)
        thread = agents.get(str(agent_id)) or {"id": agent_id, "createdAt": now, "messages": []}
        messages = [*thread["messages"], {"role": role, "content": content, "timestamp": now}]
        thread["messages"] = messages[-AGENT_MESSAGES_LIMIT:]
        agents[str(agent_id)] = thread
        self.backend.set(self.AGENTS, agents)

    def agent_messages(self, agent_id: int, count: int = 10) -> list[dict[str, Any]]:
        thread = self.agent_thread(agent_id)
        return list(thread["messages"][-count:]) if thread else []

    # Guided assistant

    def conversation(self) -> list[dict[str, str]]:
        return list(self.backend.get(self.CONVERSATION) or [])

    def add_conversation_turn(self, role: str, content: str) -> None:
        turns = [*self.conversation(), {"role": role, "content": content}]
        self.backend.set(self.CONVERSATION, turns[-CONVERSATION_LIMIT:])

    @property
    def initiation_level(self) -> int:
        return int(self.backend.get(self.INITIATION_LEVEL) or 0)

    @initiation_level.setter
    def initiation_level(self, value: int) -> None:
        self.backend.set(self.INITIATION_LEVEL, max(0, min(100, int(value))))
