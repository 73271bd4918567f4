"""Step model - the closed vocabulary of renderable units.

Each Step is an immutable dataclass. ``Step`` is the union of every variant;
the interpreter matches on it exhaustively, so adding a variant means adding
a renderer before type checking passes again.

Durations are milliseconds. Variants listed in FRAME_STEPS animate through
the interpreter's frame loop; the others render as synchronous appends.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, TypeAlias

TextAnimation = Literal["instant", "typewriter", "reveal", "glitch", "fade-in"]
ProgressStyle = Literal["npm", "wget", "spinner", "dots", "bar", "pulse", "blocks"]
ProcessKind = Literal[
    "loading", "scanning", "compiling", "decrypt", "upload", "download", "analyze", "sync"
]
StatusKind = Literal["ok", "fail", "warn", "info", "skip", "done"]
SectionStyle = Literal["box", "line", "minimal"]
TableStyle = Literal["simple", "box"]
ArtAnimation = Literal["none", "typewriter", "reveal"]
DeviceAction = Literal["play", "pause", "stop", "seek", "volume", "mute", "unmute", "status"]


@dataclass(frozen=True)
class TextStep:
    """Text line, optionally revealed character by character."""

    content: str
    animation: TextAnimation = "instant"
    style: str = "normal"
    speed: int = 30  # ms per character
    delay: int = 0  # ms before the first frame


@dataclass(frozen=True)
class ProgressStep:
    """Progress indicator running for a fixed duration.

    ``percent`` pins the displayed percentage (the bar still fills with time).
    """

    style: ProgressStyle = "bar"
    text: str = ""
    duration: int = 1000
    percent: int | None = None
    show_percent: bool = True


@dataclass(frozen=True)
class ProcessStep:
    """Multi-stage process; each stage gets an equal share of the duration."""

    kind: ProcessKind = "loading"
    text: str = ""
    duration: int = 1000
    stages: tuple[str, ...] = ()
    show_spinner: bool = True

    @property
    def stage_texts(self) -> tuple[str, ...]:
        return self.stages or (self.text,)


@dataclass(frozen=True)
class SectionStep:
    """Titled block of lines with a border."""

    title: str
    content: tuple[str, ...] = ()
    style: SectionStyle = "box"
    color: str = "info"


@dataclass(frozen=True)
class TableStep:
    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...] = ()
    style: TableStyle = "simple"


@dataclass(frozen=True)
class StatusStep:
    """Single ``[  OK  ] text`` style status line."""

    kind: StatusKind
    text: str
    prefix: str | None = None


@dataclass(frozen=True)
class MatrixStep:
    """Falling-character effect, optionally resolving to a centered message."""

    duration: int = 1500
    density: int = 5  # 1-10
    message: str | None = None


@dataclass(frozen=True)
class TreeNode:
    name: str
    children: tuple[TreeNode, ...] = ()


@dataclass(frozen=True)
class TreeStep:
    root: TreeNode


@dataclass(frozen=True)
class CodeStep:
    """Numbered code listing; ``highlight`` holds 1-based line numbers."""

    content: str
    language: str | None = None
    highlight: tuple[int, ...] = ()


@dataclass(frozen=True)
class StreamStep:
    """Command for the ambient media device, plus a status line."""

    action: DeviceAction
    value: float | None = None
    message: str | None = None


@dataclass(frozen=True)
class ScanStep:
    """Remote fetch of an archived image, shown with a latency-aware bar."""

    target: str
    dimension: str | None = None
    classification: str = "CLASSIFIED"
    timestamp: str | None = None
    label: str = "Extracting image from archive..."


@dataclass(frozen=True)
class WaitStep:
    duration: int


@dataclass(frozen=True)
class ClearLineStep:
    count: int = 1


@dataclass(frozen=True)
class AsciiArtStep:
    art: str
    animation: ArtAnimation = "none"
    color: str = "normal"


Step: TypeAlias = (
    TextStep
    | ProgressStep
    | ProcessStep
    | SectionStep
    | TableStep
    | StatusStep
    | MatrixStep
    | TreeStep
    | CodeStep
    | StreamStep
    | ScanStep
    | WaitStep
    | ClearLineStep
    | AsciiArtStep
)

FRAME_STEPS: tuple[type, ...] = (TextStep, ProgressStep, ProcessStep, MatrixStep, ScanStep)


@dataclass(frozen=True)
class StepInfo:
    """Static description of a variant, used by ``describe_step``."""

    tool: str
    frame_based: bool
    side_effect: str | None = None
    duration: int | None = None


def describe_step(step: Step) -> StepInfo:
    """Wire name, animation mode, side effect and explicit duration of a step."""
    from termsim.core.sequence import tool_name

    duration = getattr(step, "duration", None)
    side_effect = None
    if isinstance(step, StreamStep):
        side_effect = "device"
    elif isinstance(step, ScanStep):
        side_effect = "fetch"
    frame_based = isinstance(step, FRAME_STEPS) and not (
        isinstance(step, TextStep) and step.animation == "instant"
    )
    return StepInfo(
        tool=tool_name(step),
        frame_based=frame_based,
        side_effect=side_effect,
        duration=duration,
    )
