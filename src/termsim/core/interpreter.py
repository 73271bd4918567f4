"""Sequence interpreter - renders a Sequence step by step into an OutputSink.

Steps run strictly in order. Cancellation is cooperative: the token is
checked before every step and after every frame sleep, and only honoured
when the sequence is interruptible. Nothing already written is rolled back.

Frame-based steps go through one loop (``_animate``): append a first frame,
then sleep one frame interval, re-check the token and replace the last line,
until the step's duration is used up. The resting frame is always written
last, so the final state never depends on timer drift.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import random
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, assert_never

from termsim.core import renderers
from termsim.core.clock import Clock, SystemClock
from termsim.core.markup import CANCEL_MARKER, styled
from termsim.core.sequence import CancellationToken, Sequence
from termsim.core.sink import OutputSink
from termsim.core.steps import (
    AsciiArtStep,
    ClearLineStep,
    CodeStep,
    MatrixStep,
    ProcessStep,
    ProgressStep,
    ScanStep,
    SectionStep,
    StatusStep,
    Step,
    StreamStep,
    TableStep,
    TextStep,
    TreeStep,
    WaitStep,
)

logger = logging.getLogger(__name__)

ART_LINE_MS = 50


class RunOutcome(enum.Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"


class DeviceController(Protocol):
    """Ambient media device driven by ``stream`` steps. Fire-and-forget."""

    def command(self, action: str, value: float | None = None) -> None: ...


@dataclass(frozen=True)
class ScanResult:
    """Payload returned by the remote archive for a ``scan`` step."""

    image: str  # base64
    mime_type: str = "image/png"
    metadata: Mapping[str, Any] = field(default_factory=dict)


class ScanError(Exception):
    """Raised by a fetcher when the archive cannot produce an image."""


Fetcher = Callable[[ScanStep], Awaitable[ScanResult]]


class _Aborted(Exception):
    """Unwinds the current step when the token fires."""


def _retrieve(task: asyncio.Future[Any]) -> None:
    # Mark the outcome as observed even when the step was aborted first
    if not task.cancelled():
        task.exception()


def scan_progress(
    elapsed: float, settled: bool, min_duration: float, assumed_max: float
) -> float:
    """Progress fraction for a remote fetch of unknown duration.

    Stays below 1.0 until the request has settled *and* the minimum cosmetic
    duration has passed; returns exactly 1.0 from then on.
    """
    if not settled:
        return min(0.99, elapsed / assumed_max) if assumed_max > 0 else 0.99
    if elapsed < min_duration:
        return min(0.99, elapsed / min_duration)
    return 1.0


class SequenceInterpreter:
    """Renders sequences into an OutputSink.

    Args:
        sink: Where lines are written.
        clock: Time source; pass a VirtualClock for deterministic runs.
        device: Receives ``stream`` step commands. Optional.
        fetcher: Performs ``scan`` requests. Without one every scan fails.
        frame_interval_ms: Sleep between frames.
        scan_min_duration_ms: Scan bar never reaches 100% before this.
        scan_assumed_max_ms: Ceiling used to estimate in-flight scan progress.
        scan_timeout_ms: Give up on a scan request after this long. None
            waits forever.
        rng: Source of randomness for glitch/matrix/wget frames.

    Example:
        >>> interpreter = SequenceInterpreter(LineBuffer(), VirtualClock())
        >>> outcome = await interpreter.run(sequence, CancellationToken())
    """

    def __init__(
        self,
        sink: OutputSink,
        clock: Clock | None = None,
        device: DeviceController | None = None,
        fetcher: Fetcher | None = None,
        frame_interval_ms: float = 80,
        scan_min_duration_ms: float = 1500,
        scan_assumed_max_ms: float = 10000,
        scan_timeout_ms: float | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.sink = sink
        self.clock = clock or SystemClock()
        self.device = device
        self.fetcher = fetcher
        self.frame_interval_ms = frame_interval_ms
        self.scan_min_duration_ms = scan_min_duration_ms
        self.scan_assumed_max_ms = scan_assumed_max_ms
        self.scan_timeout_ms = scan_timeout_ms
        self.rng = rng or random.Random()

    async def run(
        self, sequence: Sequence, token: CancellationToken | None = None
    ) -> RunOutcome:
        """Render every step of ``sequence`` in order.

        Returns:
            COMPLETED if all steps finished, ABORTED if the token fired while
            an interruptible sequence was running (a ``^C`` marker line is
            written in that case).
        """
        token = token or CancellationToken()
        logger.debug(
            "Running sequence %s (%d steps, interruptible=%s)",
            sequence.id,
            len(sequence),
            sequence.interruptible,
        )
        try:
            for index, step in enumerate(sequence.steps):
                self._checkpoint(sequence, token)
                logger.debug("Sequence %s step %d: %s", sequence.id, index, type(step).__name__)
                await self._render(step, sequence, token)
        except _Aborted:
            self.sink.append_line(CANCEL_MARKER)
            logger.info("Sequence %s aborted", sequence.id)
            return RunOutcome.ABORTED
        return RunOutcome.COMPLETED

    def _checkpoint(self, sequence: Sequence, token: CancellationToken) -> None:
        if sequence.interruptible and token.aborted:
            raise _Aborted()

    # =========================================================================
    # Step dispatch
    # =========================================================================

    async def _render(self, step: Step, seq: Sequence, token: CancellationToken) -> None:
        match step:
            case TextStep():
                await self._render_text(step, seq, token)
            case ProgressStep():
                await self._animate(
                    seq,
                    token,
                    step.duration,
                    lambda p, i: renderers.progress_frame(step, p, i, self.rng),
                    renderers.progress_resting(step, self.rng),
                )
            case ProcessStep():
                await self._render_process(step, seq, token)
            case MatrixStep():
                await self._animate(
                    seq,
                    token,
                    step.duration,
                    lambda p, i: renderers.matrix_frame(step, self.rng),
                    renderers.matrix_resting(step, self.rng),
                )
            case ScanStep():
                await self._render_scan(step, seq, token)
            case SectionStep():
                self._append_all(renderers.section_lines(step))
            case TableStep():
                self._append_all(renderers.table_lines(step))
            case StatusStep():
                self.sink.append_line(renderers.status_line(step))
            case TreeStep():
                self._append_all(renderers.tree_lines(step))
            case CodeStep():
                self._append_all(renderers.code_lines(step))
            case StreamStep():
                self._send_device(step)
                self.sink.append_line(renderers.stream_line(step))
            case WaitStep():
                await self._pause(seq, token, step.duration)
            case ClearLineStep():
                self.sink.remove_last_lines(step.count)
            case AsciiArtStep():
                await self._render_art(step, seq, token)
            case _:
                assert_never(step)

    def _append_all(self, lines: list[str]) -> None:
        for line in lines:
            self.sink.append_line(line)

    async def _pause(self, seq: Sequence, token: CancellationToken, duration: float) -> None:
        """Sleep ``duration`` in frame-sized slices, checking the token after each."""
        end = self.clock.now() + duration
        while (remaining := end - self.clock.now()) > 0:
            await self.clock.sleep(min(self.frame_interval_ms, remaining))
            self._checkpoint(seq, token)

    async def _animate(
        self,
        seq: Sequence,
        token: CancellationToken,
        duration: float,
        frame: Callable[[float, int], str],
        resting: str,
    ) -> None:
        start = self.clock.now()
        index = 0
        self.sink.append_line(frame(0.0, index))
        while (elapsed := self.clock.now() - start) < duration:
            await self.clock.sleep(min(self.frame_interval_ms, duration - elapsed))
            self._checkpoint(seq, token)
            index += 1
            elapsed = self.clock.now() - start
            if elapsed >= duration:
                break
            self.sink.replace_last_line(frame(elapsed / duration, index))
        self.sink.replace_last_line(resting)

    # =========================================================================
    # Frame-based steps
    # =========================================================================

    async def _render_text(self, step: TextStep, seq: Sequence, token: CancellationToken) -> None:
        if step.delay:
            await self._pause(seq, token, step.delay)
        duration = renderers.text_duration(step)
        if step.animation == "instant" or duration <= 0:
            self.sink.append_line(renderers.text_resting(step))
            return
        await self._animate(
            seq,
            token,
            duration,
            lambda p, i: renderers.text_frame(step, p, self.rng),
            renderers.text_resting(step),
        )

    async def _render_process(
        self, step: ProcessStep, seq: Sequence, token: CancellationToken
    ) -> None:
        stages = step.stage_texts
        stage_duration = step.duration / len(stages)
        for stage in stages:
            await self._animate(
                seq,
                token,
                stage_duration,
                lambda p, i, stage=stage: renderers.process_frame(step, stage, p, i),
                renderers.process_resting(stage),
            )

    async def _render_art(self, step: AsciiArtStep, seq: Sequence, token: CancellationToken) -> None:
        for line in step.art.split("\n"):
            self.sink.append_line(styled(line, step.color))
            if step.animation != "none":
                await self.clock.sleep(ART_LINE_MS)
                self._checkpoint(seq, token)

    async def _render_scan(self, step: ScanStep, seq: Sequence, token: CancellationToken) -> None:
        label = step.label
        start = self.clock.now()
        task = asyncio.ensure_future(self._fetch(step))
        task.add_done_callback(_retrieve)
        timed_out = False
        progress = 0.0
        index = 0
        self.sink.append_line(renderers.scan_frame(label, progress, index))
        try:
            while True:
                await self.clock.sleep(self.frame_interval_ms)
                self._checkpoint(seq, token)
                index += 1
                elapsed = self.clock.now() - start
                if (
                    not task.done()
                    and self.scan_timeout_ms is not None
                    and elapsed >= self.scan_timeout_ms
                ):
                    logger.warning("Scan of %r timed out after %.0f ms", step.target, elapsed)
                    task.cancel()
                    timed_out = True
                settled = timed_out or task.done()
                value = scan_progress(
                    elapsed, settled, self.scan_min_duration_ms, self.scan_assumed_max_ms
                )
                if value >= 1.0:
                    break
                progress = max(progress, value)
                self.sink.replace_last_line(renderers.scan_frame(label, progress, index))
        finally:
            if not task.done():
                task.cancel()

        self.sink.replace_last_line(renderers.scan_complete_frame(label, index))
        await self.clock.sleep(self.frame_interval_ms)

        if timed_out or task.cancelled():
            lines = renderers.scan_failure_lines(label, "archive did not respond")
        elif (error := task.exception()) is not None:
            logger.warning("Scan of %r failed: %s", step.target, error)
            lines = renderers.scan_failure_lines(label, str(error) or type(error).__name__)
        else:
            result = task.result()
            lines = renderers.scan_success_lines(
                label, result.mime_type, result.image, result.metadata
            )
        self.sink.replace_last_line(lines[0])
        self._append_all(lines[1:])

    async def _fetch(self, step: ScanStep) -> ScanResult:
        if self.fetcher is None:
            raise ScanError("archive connection unavailable")
        return await self.fetcher(step)

    def _send_device(self, step: StreamStep) -> None:
        if self.device is None:
            return
        try:
            self.device.command(step.action, step.value)
        except Exception as e:
            logger.warning("Device command %s failed: %s", step.action, e)
