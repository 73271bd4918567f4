"""Tests for the scan step: latency-aware progress around a remote fetch."""

import asyncio
import random
import re
from dataclasses import dataclass, field

import pytest

from termsim.core.clock import VirtualClock
from termsim.core.interpreter import (
    RunOutcome,
    ScanError,
    ScanResult,
    SequenceInterpreter,
    scan_progress,
)
from termsim.core.markup import CANCEL_MARKER, IMAGE_MARKER
from termsim.core.sequence import CancellationToken, Sequence
from termsim.core.sink import LineBuffer
from termsim.core.steps import ScanStep, StatusStep

LABEL = "Extracting image from archive..."


@dataclass
class TimedBuffer(LineBuffer):
    """LineBuffer that also records the virtual time of every write."""

    clock: VirtualClock | None = None
    timeline: list[tuple[float, str]] = field(default_factory=list)

    def append_line(self, text: str) -> None:
        super().append_line(text)
        self.timeline.append((self.clock.now(), text))

    def replace_last_line(self, text: str) -> None:
        super().replace_last_line(text)
        self.timeline.append((self.clock.now(), text))


def percents(texts: list[str]) -> list[int]:
    return [int(m.group(1)) for t in texts if (m := re.search(r"(\d+)%", t))]


def scan_sequence(*extra) -> Sequence:
    return Sequence(id="scan", steps=(ScanStep(target="img-7", dimension="C-137"), *extra))


class TestScanProgress:
    """Tests for the progress function itself."""

    def test_unsettled_tracks_assumed_max(self) -> None:
        assert scan_progress(100, False, 1500, 10000) == pytest.approx(0.01)

    def test_unsettled_never_completes(self) -> None:
        assert scan_progress(60000, False, 1500, 10000) == 0.99

    def test_settled_early_waits_for_minimum(self) -> None:
        assert scan_progress(400, True, 1500, 10000) == pytest.approx(400 / 1500)
        assert scan_progress(1499, True, 1500, 10000) < 1.0

    def test_settled_after_minimum(self) -> None:
        assert scan_progress(1500, True, 1500, 10000) == 1.0


class TestScanStep:
    """Rendering of scan steps with fetchers of different latency."""

    async def test_fast_fetch_respects_minimum_duration(self) -> None:
        """A 400ms fetch still takes the full 1500ms to reach 100%."""
        clock = VirtualClock()
        sink = TimedBuffer(clock=clock)

        async def fetcher(step: ScanStep) -> ScanResult:
            await clock.sleep(400)
            return ScanResult(
                image="aGVsbG8=",
                metadata={"classification": "SECRET", "dimension": step.dimension},
            )

        interpreter = SequenceInterpreter(sink, clock, fetcher=fetcher, rng=random.Random(1))

        outcome = await clock.run(interpreter.run(scan_sequence()))

        assert outcome is RunOutcome.COMPLETED
        complete = [t for t, text in sink.timeline if "100%" in text]
        assert complete
        assert min(complete) >= 1500

        frames = [text for _, text in sink.timeline if LABEL in text]
        values = percents(frames)
        assert values == sorted(values)
        assert values[-1] == 100

        lines = sink.plain_lines
        assert lines[0] == f"✓ {LABEL}"
        assert "SCAN RESULT" in lines
        assert "Classification: SECRET" in lines
        assert "Dimension: C-137" in lines
        assert f"{IMAGE_MARKER}data:image/png;base64,aGVsbG8=" in sink.lines

    async def test_slow_fetch_completes_after_settling(self) -> None:
        """A fetch slower than the minimum finishes right after it settles."""
        clock = VirtualClock()
        sink = TimedBuffer(clock=clock)

        async def fetcher(step: ScanStep) -> ScanResult:
            await clock.sleep(3000)
            return ScanResult(image="AAAA")

        interpreter = SequenceInterpreter(sink, clock, fetcher=fetcher)

        await clock.run(interpreter.run(scan_sequence()))

        complete = [t for t, text in sink.timeline if "100%" in text]
        assert min(complete) >= 3000
        in_flight = percents([text for t, text in sink.timeline if t < 3000])
        assert max(in_flight) <= 99

    async def test_fetch_failure(self) -> None:
        """A failed fetch renders FAIL lines and the sequence continues."""
        clock = VirtualClock()
        sink = LineBuffer()

        async def fetcher(step: ScanStep) -> ScanResult:
            await clock.sleep(100)
            raise ScanError("dimension unreachable")

        interpreter = SequenceInterpreter(sink, clock, fetcher=fetcher)

        outcome = await clock.run(interpreter.run(scan_sequence(StatusStep("ok", "after"))))

        assert outcome is RunOutcome.COMPLETED
        assert sink.plain_lines == [
            f"[FAIL] {LABEL}",
            "Scan failed: dimension unreachable",
            "[  OK  ] after",
        ]
        assert clock.now() >= 1500

    async def test_no_fetcher(self, interpreter, sink, clock) -> None:
        await clock.run(interpreter.run(scan_sequence()))

        assert sink.plain_lines[1] == "Scan failed: archive connection unavailable"

    async def test_timeout(self) -> None:
        """A fetch that never answers is cancelled at the timeout."""
        clock = VirtualClock()
        sink = LineBuffer()
        cancelled = []

        async def fetcher(step: ScanStep) -> ScanResult:
            try:
                await clock.sleep(10**9)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise
            return ScanResult(image="never")

        interpreter = SequenceInterpreter(sink, clock, fetcher=fetcher, scan_timeout_ms=2000)

        outcome = await clock.run(interpreter.run(scan_sequence()))

        assert outcome is RunOutcome.COMPLETED
        assert cancelled == [True]
        assert sink.plain_lines[1] == "Scan failed: archive did not respond"
        assert clock.now() < 2500

    async def test_abort_cancels_fetch(self) -> None:
        """Aborting mid-scan stops rendering and cancels the request."""
        clock = VirtualClock()
        token = CancellationToken()
        sink = LineBuffer()
        cancelled = []

        async def fetcher(step: ScanStep) -> ScanResult:
            try:
                await clock.sleep(5000)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise
            return ScanResult(image="late")

        async def abort_later() -> None:
            await clock.sleep(300)
            token.abort()

        interpreter = SequenceInterpreter(sink, clock, fetcher=fetcher)

        async def both():
            results = await asyncio.gather(interpreter.run(scan_sequence(), token), abort_later())
            return results[0]

        outcome = await clock.run(both())

        assert outcome is RunOutcome.ABORTED
        assert sink.lines[-1] == CANCEL_MARKER
        assert cancelled == [True]
        assert not any("SCAN RESULT" in line for line in sink.plain_lines)
