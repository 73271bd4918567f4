"""Tests for SequenceInterpreter: ordering, frame timing and cancellation."""

import asyncio
import random
from dataclasses import dataclass, field

from termsim.core.clock import VirtualClock
from termsim.core.interpreter import RunOutcome, SequenceInterpreter
from termsim.core.markup import CANCEL_MARKER
from termsim.core.sequence import CancellationToken, Sequence
from termsim.core.sink import LineBuffer
from termsim.core.steps import (
    AsciiArtStep,
    ClearLineStep,
    MatrixStep,
    ProcessStep,
    ProgressStep,
    SectionStep,
    StatusStep,
    StreamStep,
    TextStep,
    WaitStep,
)


@dataclass
class AbortingBuffer(LineBuffer):
    """Aborts ``token`` when the last line is replaced with ``trigger``.

    With no trigger, the first replace aborts.
    """

    token: CancellationToken = field(default_factory=CancellationToken)
    trigger: str | None = None

    def replace_last_line(self, text: str) -> None:
        super().replace_last_line(text)
        if self.trigger is None or text == self.trigger:
            self.token.abort()


class RecordingDevice:
    def __init__(self, fail: bool = False) -> None:
        self.calls: list[tuple[str, float | None]] = []
        self.fail = fail

    def command(self, action: str, value: float | None = None) -> None:
        self.calls.append((action, value))
        if self.fail:
            raise OSError("device unplugged")


def make_interpreter(sink, clock, **kwargs) -> SequenceInterpreter:
    return SequenceInterpreter(sink, clock, rng=random.Random(3), **kwargs)


class TestOrdering:
    """Steps render strictly in sequence order."""

    async def test_mixed_steps_in_order(self, interpreter, sink, clock) -> None:
        seq = Sequence(
            id="order",
            steps=(
                StatusStep("ok", "one"),
                TextStep("two", animation="typewriter", speed=10),
                StatusStep("info", "three"),
            ),
        )

        outcome = await clock.run(interpreter.run(seq))

        assert outcome is RunOutcome.COMPLETED
        assert sink.plain_lines == ["[  OK  ] one", "two", "[ INFO ] three"]

    async def test_empty_sequence_completes(self, interpreter, sink, clock) -> None:
        outcome = await clock.run(interpreter.run(Sequence(id="empty")))

        assert outcome is RunOutcome.COMPLETED
        assert sink.lines == []


class TestFrameLoop:
    """Tests for frame timing of animated steps."""

    async def test_typewriter_frames(self, interpreter, sink, clock) -> None:
        """A 400ms step at 80ms frames: first frame, four updates, then resting."""
        seq = Sequence(id="t", steps=(TextStep("abcd", animation="typewriter", speed=100),))

        await clock.run(interpreter.run(seq))

        ops = [op for op, _ in sink.history]
        assert ops == ["append"] + ["replace"] * 5
        assert sink.history[-1] == ("replace", "abcd")
        assert clock.now() == 400

    async def test_frames_only_grow(self, interpreter, sink, clock) -> None:
        """Typewriter frames reveal a growing prefix of the content."""
        seq = Sequence(id="t", steps=(TextStep("abcdefgh", animation="typewriter", speed=50),))

        await clock.run(interpreter.run(seq))

        frames = [text for _, text in sink.history]
        assert all("abcdefgh".startswith(frame) for frame in frames)
        assert [len(f) for f in frames] == sorted(len(f) for f in frames)

    async def test_delay_before_text(self, interpreter, sink, clock) -> None:
        seq = Sequence(id="d", steps=(TextStep("late", delay=200),))

        await clock.run(interpreter.run(seq))

        assert clock.now() == 200
        assert sink.lines == ["late"]

    async def test_progress_resting_frame(self, interpreter, sink, clock) -> None:
        seq = Sequence(id="p", steps=(ProgressStep(duration=300),))

        await clock.run(interpreter.run(seq))

        assert len(sink.lines) == 1
        assert sink.plain_lines[0].endswith("100%")

    async def test_process_stages(self, interpreter, sink, clock) -> None:
        """Each stage leaves one checked line behind."""
        seq = Sequence(
            id="proc",
            steps=(ProcessStep(kind="loading", duration=400, stages=("one", "two")),),
        )

        await clock.run(interpreter.run(seq))

        assert sink.plain_lines == ["✓ one", "✓ two"]
        assert clock.now() == 400

    async def test_matrix_resolves_to_message(self, interpreter, sink, clock) -> None:
        seq = Sequence(id="m", steps=(MatrixStep(duration=240, message="WAKE UP"),))

        await clock.run(interpreter.run(seq))

        assert sink.plain_lines[0].strip() == "WAKE UP"


class TestSynchronousSteps:
    """Tests for steps that do not animate."""

    async def test_wait(self, interpreter, sink, clock) -> None:
        await clock.run(interpreter.run(Sequence(id="w", steps=(WaitStep(250),))))

        assert clock.now() == 250
        assert sink.lines == []

    async def test_clear_line(self, interpreter, sink, clock) -> None:
        seq = Sequence(
            id="c",
            steps=(
                StatusStep("ok", "a"),
                StatusStep("ok", "b"),
                StatusStep("ok", "c"),
                ClearLineStep(2),
            ),
        )

        await clock.run(interpreter.run(seq))

        assert sink.plain_lines == ["[  OK  ] a"]

    async def test_section_block(self, interpreter, sink, clock) -> None:
        seq = Sequence(id="s", steps=(SectionStep("Status", ("all good",)),))

        await clock.run(interpreter.run(seq))

        assert sink.plain_lines[0].startswith("╔")
        assert "Status" in sink.plain_lines[1]
        assert sink.plain_lines[-1].startswith("╚")

    async def test_ascii_art_instant(self, interpreter, sink, clock) -> None:
        seq = Sequence(id="a", steps=(AsciiArtStep("+-+\n| |"),))

        await clock.run(interpreter.run(seq))

        assert sink.plain_lines == ["+-+", "| |"]
        assert clock.now() == 0

    async def test_ascii_art_animated(self, interpreter, sink, clock) -> None:
        seq = Sequence(id="a", steps=(AsciiArtStep("a\nb", animation="typewriter"),))

        await clock.run(interpreter.run(seq))

        assert sink.plain_lines == ["a", "b"]
        assert clock.now() == 100


class TestStreamStep:
    """Tests for the device side effect."""

    async def test_device_receives_command(self, sink, clock) -> None:
        device = RecordingDevice()
        interpreter = make_interpreter(sink, clock, device=device)
        seq = Sequence(id="s", steps=(StreamStep(action="volume", value=40),))

        await clock.run(interpreter.run(seq))

        assert device.calls == [("volume", 40)]
        assert sink.plain_lines == ["[stream] Audio level: 40%"]

    async def test_device_failure_is_contained(self, sink, clock) -> None:
        """A failing device still gets its status line and later steps run."""
        interpreter = make_interpreter(sink, clock, device=RecordingDevice(fail=True))
        seq = Sequence(
            id="s",
            steps=(StreamStep(action="play"), StatusStep("ok", "after")),
        )

        outcome = await clock.run(interpreter.run(seq))

        assert outcome is RunOutcome.COMPLETED
        assert sink.plain_lines == ["[stream] Stream activated", "[  OK  ] after"]

    async def test_no_device(self, interpreter, sink, clock) -> None:
        seq = Sequence(id="s", steps=(StreamStep(action="pause"),))

        await clock.run(interpreter.run(seq))

        assert sink.plain_lines == ["[stream] Stream paused"]


class TestCancellation:
    """Tests for cooperative cancellation."""

    def _three_texts(self, interruptible: bool = True) -> Sequence:
        return Sequence(
            id="three",
            interruptible=interruptible,
            steps=(
                TextStep("alpha", animation="typewriter", speed=10),
                TextStep("beta", animation="typewriter", speed=10),
                TextStep("gamma", animation="typewriter", speed=10),
            ),
        )

    async def test_abort_between_steps(self) -> None:
        """Abort during step one: step one stays, a marker follows, nothing else."""
        clock = VirtualClock()
        sink = AbortingBuffer(trigger="alpha")
        interpreter = make_interpreter(sink, clock)

        outcome = await clock.run(interpreter.run(self._three_texts(), sink.token))

        assert outcome is RunOutcome.ABORTED
        assert sink.lines == ["alpha", CANCEL_MARKER]

    async def test_abort_before_first_step(self, interpreter, sink, clock) -> None:
        token = CancellationToken()
        token.abort()

        outcome = await clock.run(interpreter.run(self._three_texts(), token))

        assert outcome is RunOutcome.ABORTED
        assert sink.lines == [CANCEL_MARKER]

    async def test_non_interruptible_ignores_token(self, interpreter, sink, clock) -> None:
        token = CancellationToken()
        token.abort()

        outcome = await clock.run(interpreter.run(self._three_texts(interruptible=False), token))

        assert outcome is RunOutcome.COMPLETED
        assert sink.lines == ["alpha", "beta", "gamma"]

    async def test_abort_mid_frame(self) -> None:
        """Abort during a progress bar stops it and skips the rest."""
        clock = VirtualClock()
        sink = AbortingBuffer()
        interpreter = make_interpreter(sink, clock)
        seq = Sequence(
            id="p",
            steps=(ProgressStep(duration=1000), StatusStep("ok", "after")),
        )

        outcome = await clock.run(interpreter.run(seq, sink.token))

        assert outcome is RunOutcome.ABORTED
        assert len(sink.lines) == 2
        assert sink.lines[-1] == CANCEL_MARKER
        assert not any("after" in line for line in sink.plain_lines)
        assert clock.now() < 1000

    async def test_non_interruptible_mid_frame(self) -> None:
        clock = VirtualClock()
        sink = AbortingBuffer()
        interpreter = make_interpreter(sink, clock)
        seq = Sequence(
            id="p",
            interruptible=False,
            steps=(ProgressStep(duration=1000), StatusStep("ok", "after")),
        )

        outcome = await clock.run(interpreter.run(seq, sink.token))

        assert outcome is RunOutcome.COMPLETED
        assert sink.plain_lines[0].endswith("100%")
        assert sink.plain_lines[1] == "[  OK  ] after"

    async def test_abort_during_wait(self) -> None:
        clock = VirtualClock()
        sink = LineBuffer()
        interpreter = make_interpreter(sink, clock)
        token = CancellationToken()
        seq = Sequence(id="w", steps=(WaitStep(5000), StatusStep("ok", "after")))

        async def abort_later() -> None:
            await clock.sleep(200)
            token.abort()

        async def both():
            results = await asyncio.gather(interpreter.run(seq, token), abort_later())
            return results[0]

        outcome = await clock.run(both())

        assert outcome is RunOutcome.ABORTED
        assert sink.lines == [CANCEL_MARKER]
        assert clock.now() < 5000

    async def test_fresh_token_per_run(self, interpreter, sink, clock) -> None:
        """A new token lets the next sequence run in full."""
        token = CancellationToken()
        token.abort()
        await clock.run(interpreter.run(self._three_texts(), token))

        outcome = await clock.run(interpreter.run(self._three_texts(), CancellationToken()))

        assert outcome is RunOutcome.COMPLETED
        assert sink.lines[-3:] == ["alpha", "beta", "gamma"]
