"""Session - input routing, builtins and persisted session state.

Architecture:
    parser      Shell line parsing
    handlers    Builtin command registry
    modes       Pure mode routing (route / route_interrupt)
    dispatcher  CommandDispatcher, carries out routed actions
    tally       FailureTally
    store       KeyValueStore backends and the typed SessionStore
    library     Locally generated sequences
    user_level  User level heuristics
"""

from termsim.session.dispatcher import CommandDispatcher
from termsim.session.handlers import CLEAR, COMMANDS, ShellContext, command
from termsim.session.modes import ModeState, SessionMode, Transition, route, route_interrupt
from termsim.session.parser import ParsedCommand, parse_command
from termsim.session.store import JsonFileStore, KeyValueStore, MemoryStore, SessionStore
from termsim.session.tally import FailureTally
from termsim.session.user_level import UserLevel, detect_user_level

__all__ = [
    "CommandDispatcher",
    "CLEAR",
    "COMMANDS",
    "ShellContext",
    "command",
    "ModeState",
    "SessionMode",
    "Transition",
    "route",
    "route_interrupt",
    "ParsedCommand",
    "parse_command",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "SessionStore",
    "FailureTally",
    "UserLevel",
    "detect_user_level",
]
