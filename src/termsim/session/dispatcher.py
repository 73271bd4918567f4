"""Command dispatcher - carries out the actions the mode router decides on.

Owns the current ModeState, the CancellationToken of the in-flight action
and the FailureTally. Every backend round-trip has a local fallback and
every handler or interpreter error is rendered inline, so nothing raised
below this layer reaches the input loop.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import assert_never

from termsim.core.interpreter import RunOutcome, SequenceInterpreter
from termsim.core.markup import CANCEL_MARKER, styled
from termsim.core.sequence import CancellationToken, Sequence
from termsim.core.sink import OutputSink
from termsim.core.steps import TextStep
from termsim.gateway.errors import BackendError
from termsim.gateway.types import AgentRequest, AssistantRequest, Backend, InterpretRequest
from termsim.session import library
from termsim.session.handlers import (
    COMMANDS,
    CommandHandler,
    HandlerResult,
    Sentinel,
    ShellContext,
)
from termsim.session.modes import (
    AbortSequence,
    Action,
    ClearScreen,
    CloseAssistant,
    ConnectAgent,
    DisconnectAgent,
    ForwardToAgent,
    ForwardToAssistant,
    Ignore,
    Interrupted,
    LaunchFileManager,
    Logout,
    ModeState,
    RunShellCommand,
    SessionMode,
    StartAssistant,
    Transition,
    Usage,
    route,
    route_file_manager_exit,
    route_interrupt,
)
from termsim.session.parser import ParsedCommand, parse_command
from termsim.session.store import SessionStore
from termsim.session.tally import DEFAULT_THRESHOLD, FailureTally
from termsim.session.user_level import detect_user_level

logger = logging.getLogger(__name__)

NOT_FOUND_SUFFIX = "command not found"
RECENT_COMMANDS = 10
AGENT_CONTEXT_MESSAGES = 10
ASSISTANT_CONTEXT_TURNS = 5

FileManagerLauncher = Callable[[], Awaitable[None]]


def sequence_text(sequence: Sequence) -> str:
    """Plain text of a sequence's text steps, for conversation storage."""
    return "\n".join(
        step.content for step in sequence.steps if isinstance(step, TextStep) and step.content
    )


class CommandDispatcher:
    """Resolves submitted lines against the current session mode.

    Args:
        interpreter: Renders sequences; its sink receives every line.
        backend: Model/assistant/agent round-trips.
        store: Persistent session state.
        commands: Builtin handler table (defaults to the global registry).
        help_threshold: Consecutive misses before the assistant is offered.
        hostname: Shown in the prompt and by builtins.
        file_manager: Runs the full-screen file manager until it exits.
            Without one, the session stays in FILE_MANAGER until
            ``file_manager_exited()`` is called.

    Example:
        >>> dispatcher = CommandDispatcher(interpreter, OfflineBackend(), SessionStore())
        >>> await dispatcher.submit("whoami")
    """

    def __init__(
        self,
        interpreter: SequenceInterpreter,
        backend: Backend,
        store: SessionStore,
        commands: Mapping[str, CommandHandler] | None = None,
        help_threshold: int = DEFAULT_THRESHOLD,
        hostname: str = "prod-srv-42",
        file_manager: FileManagerLauncher | None = None,
    ) -> None:
        self.interpreter = interpreter
        self.backend = backend
        self.store = store
        self.commands = commands if commands is not None else COMMANDS
        self.tally = FailureTally(store, help_threshold)
        self.hostname = hostname
        self.file_manager = file_manager
        self.state = ModeState()
        self.closed = False
        self._token: CancellationToken | None = None
        self._in_flight = 0

    @property
    def sink(self) -> OutputSink:
        return self.interpreter.sink

    @property
    def in_flight(self) -> bool:
        """True while a sequence is being rendered."""
        return self._in_flight > 0

    @property
    def mode(self) -> SessionMode:
        return self.state.mode

    def prompt(self) -> str:
        """Prompt text for the current mode."""
        if self.state.mode is SessionMode.AGENT_CHAT:
            return f"agent[{self.state.agent_id}]> "
        if self.state.mode is SessionMode.GUIDED_ASSISTANT:
            return "assistant> "
        cwd = self.store.current_dir
        display = "~" if cwd in ("/root", "/home/user") else cwd
        return f"root@{self.hostname}:{display}# "

    def begin_action(self) -> CancellationToken:
        """Start a new top-level action, invalidating the previous token."""
        if self._token is not None:
            self._token.abort()
        self._token = CancellationToken()
        return self._token

    # =========================================================================
    # Entry points
    # =========================================================================

    async def submit(self, line: str) -> Transition:
        """Handle one submitted input line."""
        transition = route(self.state, line)
        if transition.state != self.state:
            logger.info("Mode %s -> %s", self.state.mode.value, transition.state.mode.value)
        self.state = transition.state
        if isinstance(transition.action, Ignore):
            return transition
        token = self.begin_action()
        await self._perform(transition.action, token)
        return transition

    def interrupt(self) -> Transition:
        """Handle the interrupt keystroke.

        Synchronous so it can be called straight from a signal handler or
        key binding while ``submit`` is still awaiting.
        """
        transition = route_interrupt(self.state, self.in_flight)
        match transition.action:
            case AbortSequence():
                if self._token is not None:
                    self._token.abort()
            case Interrupted():
                # A pending round-trip must not draw its reply afterwards
                if self._token is not None:
                    self._token.abort()
                self.sink.append_line(CANCEL_MARKER)
                if transition.state != self.state:
                    logger.info("Interrupted %s; back to shell", self.state.mode.value)
                    self.sink.append_line(
                        styled("Session interrupted. Returning to shell.", "warning")
                    )
                self.state = transition.state
            case _:
                pass
        return transition

    def file_manager_exited(self) -> None:
        self.state = route_file_manager_exit(self.state).state

    # =========================================================================
    # Actions
    # =========================================================================

    async def _perform(self, action: Action, token: CancellationToken) -> None:
        match action:
            case Ignore() | AbortSequence() | Interrupted():
                pass
            case ClearScreen():
                self.sink.clear()
            case Logout():
                await self._run(library.logout_sequence(self.hostname), token)
                self.closed = True
            case RunShellCommand(line=line):
                await self._run_shell(line, token)
            case LaunchFileManager():
                if self.file_manager is not None:
                    try:
                        await self.file_manager()
                    except Exception as e:
                        logger.exception("File manager crashed")
                        self.sink.append_line(styled(f"mc: {e}", "error"))
                    finally:
                        self.file_manager_exited()
            case ConnectAgent(agent_id=agent_id):
                resumed = self.store.agent_thread(agent_id) is not None
                await self._run(library.agent_connect_sequence(agent_id, resumed), token)
            case DisconnectAgent(agent_id=agent_id):
                await self._run(library.agent_disconnect_sequence(agent_id), token)
            case ForwardToAgent(agent_id=agent_id, line=line):
                await self._forward_to_agent(agent_id, line, token)
            case StartAssistant():
                await self._start_assistant(token)
            case ForwardToAssistant(line=line):
                await self._forward_to_assistant(line, token)
            case CloseAssistant():
                await self._run(library.assistant_exit_sequence(), token)
            case Usage(message=message):
                self.sink.append_line(styled(message, "warning"))
            case _:
                assert_never(action)

    async def _run(self, sequence: Sequence, token: CancellationToken) -> RunOutcome:
        self._in_flight += 1
        try:
            return await self.interpreter.run(sequence, token)
        except Exception as e:
            logger.exception("Rendering sequence %s failed", sequence.id)
            self.sink.append_line(styled(f"render error: {e}", "error"))
            return RunOutcome.ABORTED
        finally:
            self._in_flight -= 1

    def _append_text(self, text: str, style: str = "normal") -> None:
        for line in text.split("\n"):
            self.sink.append_line(styled(line, style))

    # Shell -------------------------------------------------------------------

    async def _run_shell(self, line: str, token: CancellationToken) -> None:
        parsed = parse_command(line)
        self.store.add_history(line)

        handler = self.commands.get(parsed.command)
        if handler is not None:
            if await self._run_handler(handler, parsed):
                self.tally.record_success()
            return

        output = await self._ask_model(parsed)
        if token.aborted:
            return
        if output is not None:
            self._append_text(output)
            self.tally.record_success()
            return

        self.sink.append_line(styled(f"{parsed.command}: {NOT_FOUND_SUFFIX}"))
        if self.tally.record_miss(line):
            await self._run(library.help_offer_sequence(self.tally.count), token)

    async def _run_handler(self, handler: CommandHandler, parsed: ParsedCommand) -> bool:
        ctx = ShellContext(
            current_dir=self.store.current_dir, store=self.store, hostname=self.hostname
        )
        try:
            result: HandlerResult = handler(parsed, ctx)  # type: ignore[assignment]
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.debug("Handler %s raised", parsed.command, exc_info=True)
            self.sink.append_line(styled(f"{parsed.command}: {e}", "error"))
            return False

        if result is Sentinel.CLEAR:
            self.sink.clear()
        elif isinstance(result, list):
            for item in result:
                self._append_text(item)
        elif result:
            self._append_text(result)
        return True

    async def _ask_model(self, parsed: ParsedCommand) -> str | None:
        """Model fallback. Returns None when the command counts as not found."""
        history = self.store.history()
        level = detect_user_level(history)
        if level.value != self.store.user_level:
            self.store.user_level = level.value
        request = InterpretRequest(
            command=parsed.raw,
            current_dir=self.store.current_dir,
            user_level=level.value,
            recent_commands=history[-RECENT_COMMANDS:],
        )
        try:
            reply = await self.backend.interpret(request)
        except BackendError as e:
            logger.warning("Model fallback failed for %r: %s", parsed.command, e)
            return None
        if reply.error:
            logger.info("Model fallback error for %r: %s", parsed.command, reply.error)
            return None
        output = (reply.output or "").rstrip()
        if not output or output.endswith(NOT_FOUND_SUFFIX):
            return None
        return output

    # Agent chat ------------------------------------------------------------

    async def _forward_to_agent(self, agent_id: int, line: str, token: CancellationToken) -> None:
        history = self.store.agent_messages(agent_id, AGENT_CONTEXT_MESSAGES)
        self.store.add_agent_message(agent_id, "user", line)
        try:
            reply = await self.backend.agent(AgentRequest(agent_id, line, history))
        except BackendError as e:
            logger.warning("Agent %d round-trip failed: %s", agent_id, e)
            if not token.aborted:
                await self._run(library.fallback_sequence(str(e)), token)
            return
        if token.aborted:
            logger.info("Dropping agent %d reply after interrupt", agent_id)
            return
        if reply.text:
            self.store.add_agent_message(agent_id, "assistant", reply.text)
        await self._run(reply.sequence, token)

    # Guided assistant --------------------------------------------------------

    def _assistant_request(self, message: str, action: str) -> AssistantRequest:
        return AssistantRequest(
            message=message,
            action=action,  # type: ignore[arg-type]
            failed_commands=self.store.failed_commands(),
            session_history="; ".join(self.store.recent_commands(RECENT_COMMANDS)),
            conversation_history=self.store.conversation()[-ASSISTANT_CONTEXT_TURNS:],
            initiation_level=self.store.initiation_level,
        )

    def _apply_state_update(self, update: Mapping[str, object]) -> None:
        level = update.get("initiationLevel")
        if isinstance(level, (int, float)) and not isinstance(level, bool):
            self.store.initiation_level = int(level)

    async def _start_assistant(self, token: CancellationToken) -> None:
        self.tally.reset()
        try:
            reply = await self.backend.assistant(self._assistant_request("", "welcome"))
        except BackendError as e:
            logger.warning("Assistant welcome failed, using local sequence: %s", e)
            if not token.aborted:
                await self._run(
                    library.assistant_welcome_sequence(self.store.initiation_level), token
                )
            return
        if token.aborted:
            return
        self._apply_state_update(reply.state_update)
        await self._run(reply.sequence, token)

    async def _forward_to_assistant(self, line: str, token: CancellationToken) -> None:
        if line.lower() == "help":
            await self._run(library.assistant_help_sequence(), token)
            return
        request = self._assistant_request(line, "message")
        self.store.add_conversation_turn("user", line)
        try:
            reply = await self.backend.assistant(request)
        except BackendError as e:
            logger.warning("Assistant round-trip failed: %s", e)
            if not token.aborted:
                await self._run(library.fallback_sequence(str(e)), token)
            return
        if token.aborted:
            return
        self._apply_state_update(reply.state_update)
        text = sequence_text(reply.sequence)
        if text:
            self.store.add_conversation_turn("assistant", text)
        await self._run(reply.sequence, token)
