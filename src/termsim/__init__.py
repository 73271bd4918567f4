"""termsim - an animated remote-shell emulator.

termsim renders a scrollback buffer fed by three kinds of producers:
deterministic builtin commands, a hosted language model that improvises
output for unknown commands, and scripted assistant personas that reply
with declarative animation sequences.

Layers:
    core/       Step model, sequences, clocks, interpreter (no I/O)
    session/    Mode state machine, dispatcher, failure tally, persistence
    gateway/    HTTP client for the backend round-trips
    frontends/  Terminal UI (prompt_toolkit + rich) and CLI

Quick Start (render a sequence into a line buffer):
    >>> from termsim.core import (
    ...     CancellationToken, LineBuffer, Sequence, SequenceInterpreter, TextStep,
    ... )
    >>> buffer = LineBuffer()
    >>> interpreter = SequenceInterpreter(sink=buffer)
    >>> seq = Sequence(id="hello", steps=(TextStep(content="Hello"),))
    >>> await interpreter.run(seq, CancellationToken())
    >>> buffer.lines
    ['Hello']
"""

__version__ = "0.3.0"
