"""Pytest configuration and fixtures."""

import asyncio
import random

import pytest

from termsim.core.clock import VirtualClock
from termsim.core.interpreter import ScanError, ScanResult, SequenceInterpreter
from termsim.core.sequence import Sequence, text_sequence
from termsim.core.sink import LineBuffer
from termsim.core.steps import ScanStep, TextStep
from termsim.gateway.errors import UpstreamError
from termsim.gateway.types import (
    AgentReply,
    AgentRequest,
    AssistantReply,
    AssistantRequest,
    InterpretRequest,
    ModelReply,
)
from termsim.session.dispatcher import CommandDispatcher
from termsim.session.store import MemoryStore, SessionStore


class FakeBackend:
    """Backend double that records every request.

    ``outputs`` maps a raw command line to the model's output; anything
    else comes back as an error reply. Set ``fail`` to make the assistant
    and agent round-trips raise. Set ``gate`` to hold every reply until the
    event is set.
    """

    def __init__(self) -> None:
        self.outputs: dict[str, str] = {}
        self.fail = False
        self.interpret_calls: list[InterpretRequest] = []
        self.assistant_calls: list[AssistantRequest] = []
        self.agent_calls: list[AgentRequest] = []
        self.gate: asyncio.Event | None = None

    async def _wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()

    async def interpret(self, request: InterpretRequest) -> ModelReply:
        self.interpret_calls.append(request)
        await self._wait()
        output = self.outputs.get(request.command)
        if output is None:
            return ModelReply(error="no such command")
        return ModelReply(output=output)

    async def assistant(self, request: AssistantRequest) -> AssistantReply:
        self.assistant_calls.append(request)
        await self._wait()
        if self.fail:
            raise UpstreamError("Backend returned 503", 503)
        return AssistantReply(
            sequence=Sequence(id="reply", steps=(TextStep("Greetings, operator."),)),
            state_update={"initiationLevel": 5},
        )

    async def agent(self, request: AgentRequest) -> AgentReply:
        self.agent_calls.append(request)
        await self._wait()
        if self.fail:
            raise UpstreamError("Backend returned 503", 503)
        text = f"agent {request.agent_id} heard: {request.message}"
        return AgentReply(sequence=text_sequence(text), text=text)

    async def scan(self, step: ScanStep) -> ScanResult:
        raise ScanError("archive offline")


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def sink():
    return LineBuffer()


@pytest.fixture
def interpreter(sink, clock):
    return SequenceInterpreter(sink, clock, rng=random.Random(7))


@pytest.fixture
def store():
    return SessionStore(MemoryStore())


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def dispatcher(interpreter, backend, store):
    return CommandDispatcher(interpreter, backend, store)
