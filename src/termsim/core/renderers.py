"""Frame builders for each step variant.

Pure functions from (step, progress) to output lines. The interpreter owns
timing and cancellation; everything here is deterministic given the random
generator passed in.
"""

from __future__ import annotations

import random
from collections.abc import Mapping
from typing import Any

from rich.markup import escape

from termsim.core.markup import SPINNERS, image_line, status_prefix, styled
from termsim.core.steps import (
    CodeStep,
    MatrixStep,
    ProcessStep,
    ProgressStep,
    SectionStep,
    StatusStep,
    StreamStep,
    TableStep,
    TextStep,
    TreeNode,
    TreeStep,
)

GLITCH_CHARS = "!@#$%^&*()_+-=[]{}|;:,.<>?/~`"
FADE_CHARS = ("░", "▒", "▓", "█")
FADE_PHASE_MS = 100
GLITCH_TRAIL = 5
MATRIX_CHARS = "ｱｲｳｴｵｶｷｸｹｺｻｼｽｾｿﾀﾁﾂﾃﾄﾅﾆﾇﾈﾉﾊﾋﾌﾍﾎﾏﾐﾑﾒﾓﾔﾕﾖﾗﾘﾙﾚﾛﾜﾝ0123456789"
MATRIX_WIDTH = 60
SCAN_BAR_WIDTH = 20
SCAN_CHARS = ("█", "▓", "▒", "░")
RULE = "━" * 40


def _pct(progress: float) -> int:
    return round(max(0.0, min(progress, 1.0)) * 100)


# =============================================================================
# Text
# =============================================================================


def text_duration(step: TextStep) -> int:
    """Total animation time for a text step (excluding ``delay``)."""
    length = len(step.content)
    if step.animation == "typewriter":
        return length * step.speed
    if step.animation == "reveal":
        return length * step.speed * 2
    if step.animation == "glitch":
        return (length + GLITCH_TRAIL) * step.speed
    if step.animation == "fade-in":
        return len(FADE_CHARS) * FADE_PHASE_MS
    return 0


def text_frame(step: TextStep, progress: float, rng: random.Random) -> str:
    content = step.content
    if step.animation == "typewriter":
        shown = int(progress * len(content))
        return styled(content[:shown], step.style)
    if step.animation == "reveal":
        shown = int(progress * len(content))
        hidden = "█" * (len(content) - shown)
        return styled(content[:shown], step.style) + (styled(hidden, "dim") if hidden else "")
    if step.animation == "glitch":
        head = int(progress * (len(content) + GLITCH_TRAIL))
        chars = []
        for j, ch in enumerate(content):
            if j < head - GLITCH_TRAIL:
                chars.append(ch)
            elif j < head:
                chars.append(rng.choice(GLITCH_CHARS))
            else:
                chars.append(" ")
        return styled("".join(chars), step.style)
    if step.animation == "fade-in":
        phase = min(int(progress * len(FADE_CHARS)), len(FADE_CHARS) - 1)
        return styled(FADE_CHARS[phase] * len(content), "dim")
    return text_resting(step)


def text_resting(step: TextStep) -> str:
    return styled(step.content, step.style)


# =============================================================================
# Progress
# =============================================================================


def progress_frame(
    step: ProgressStep, progress: float, index: int, rng: random.Random
) -> str:
    """One frame of a progress indicator at ``progress`` (0.0-1.0)."""
    progress = max(0.0, min(progress, 1.0))
    percent = step.percent if step.percent is not None else _pct(progress)
    suffix = f" {percent}%" if step.show_percent else ""

    if step.style == "npm":
        width = 40
        filled = round(progress * width)
        bar = "█" * filled + "░" * (width - filled)
        line = f"{step.text or 'Loading'} [{bar}]{suffix}"
    elif step.style == "wget":
        width = 50
        filled = round(progress * width)
        bar = "=" * max(0, filled - 1) + (">" if filled > 0 else "") + " " * (width - filled)
        speed = (rng.random() * 5 + 1) * progress
        line = f"{step.text or 'Downloading'} {percent}%[{bar}] {speed:.2f}MB/s"
    elif step.style == "spinner":
        frames = SPINNERS["dots"]
        line = f"{frames[index % len(frames)]} {step.text or 'Processing...'}"
    elif step.style == "dots":
        dots = "." * ((index // 5) % 4)
        line = f"{step.text or 'Loading'}{dots.ljust(3)}"
    elif step.style == "pulse":
        frames = SPINNERS["pulse"]
        line = f"{frames[index % len(frames)]} {step.text or 'Processing...'}"
    elif step.style == "blocks":
        line = f"[{_block_bar(progress, 20, SPINNERS['blocks'])}] {step.text}".rstrip()
    else:
        width = 30
        filled = round(progress * width)
        line = f"[{'▓' * filled}{'░' * (width - filled)}]{suffix}"
        if step.text:
            line = f"{step.text} {line}"
    return escape(line)


def progress_resting(step: ProgressStep, rng: random.Random) -> str:
    """Completed state of a progress indicator."""
    if step.style in ("spinner", "pulse"):
        return f"{styled('✓', 'success')} {escape(step.text or 'Processing...')}"
    if step.style == "dots":
        return escape(f"{step.text or 'Loading'}...")
    return progress_frame(step, 1.0, 0, rng)


def _block_bar(progress: float, width: int, partials: tuple[str, ...]) -> str:
    cells = []
    for i in range(width):
        phase = progress * width - i
        if 0 < phase < 1:
            cells.append(partials[int(phase * len(partials))])
        elif phase >= 1:
            cells.append("█")
        else:
            cells.append("░")
    return "".join(cells)


# =============================================================================
# Process
# =============================================================================


def process_frame(step: ProcessStep, stage_text: str, progress: float, index: int) -> str:
    spinner = ""
    if step.show_spinner:
        frames = SPINNERS["orbit"]
        spinner = f"{frames[index % len(frames)]} "
    percent = _pct(progress)
    status = stage_text
    if step.kind == "decrypt":
        status = f"{stage_text} [{percent}%]"
    elif step.kind == "scanning":
        status = f"{stage_text} {'·' * (index % 4)}"
    elif step.kind == "sync":
        status = f"{stage_text} ↔ {percent}%"
    return styled(f"{spinner}{status}", "info")


def process_resting(stage_text: str) -> str:
    return f"{styled('✓', 'success')} {escape(stage_text)}"


# =============================================================================
# Matrix
# =============================================================================


def matrix_frame(step: MatrixStep, rng: random.Random, width: int = MATRIX_WIDTH) -> str:
    cells = []
    for _ in range(width):
        if rng.random() < step.density / 20:
            cells.append(styled(rng.choice(MATRIX_CHARS), "success"))
        else:
            cells.append(" ")
    return "".join(cells)


def matrix_resting(step: MatrixStep, rng: random.Random, width: int = MATRIX_WIDTH) -> str:
    if not step.message:
        return matrix_frame(step, rng, width)
    padding = max(0, (width - len(step.message)) // 2)
    return " " * padding + styled(step.message, "highlight")


# =============================================================================
# Static blocks
# =============================================================================


def section_lines(step: SectionStep) -> list[str]:
    color = step.color
    lines = list(step.content)
    width = max([len(step.title), *(len(line) for line in lines)]) + 4

    if step.style == "line":
        rule = "─" * max(0, width - len(step.title) - 4)
        return [styled(f"── {step.title} {rule}", color)] + [escape(f"  {line}") for line in lines]

    if step.style == "minimal":
        return [styled(f"[{step.title}]", color)] + [escape(f"  {line}") for line in lines]

    edge = styled("║", color)
    out = [styled(f"╔{'═' * width}╗", color)]
    out.append(f"{edge} {escape(step.title.ljust(width - 1))}{edge}")
    out.append(styled(f"╠{'═' * width}╣", color))
    for line in lines:
        out.append(f"{edge} {escape(line.ljust(width - 1))}{edge}")
    out.append(styled(f"╚{'═' * width}╝", color))
    return out


def table_lines(step: TableStep) -> list[str]:
    headers = list(step.headers)
    rows = [list(row) + [""] * (len(headers) - len(row)) for row in step.rows]
    widths = [
        max([len(h), *(len(row[i]) for row in rows)]) for i, h in enumerate(headers)
    ]
    total = sum(widths) + (len(widths) - 1) * 3

    def join(cells: list[str], sep: str) -> str:
        return sep.join(cell.ljust(widths[i]) for i, cell in enumerate(cells[: len(widths)]))

    if step.style == "box":
        out = [f"┌{'─' * (total + 2)}┐", escape(f"│ {join(headers, ' │ ')} │")]
        out.append(f"├{'─' * (total + 2)}┤")
        out.extend(escape(f"│ {join(row, ' │ ')} │") for row in rows)
        out.append(f"└{'─' * (total + 2)}┘")
        return out

    out = [styled(join(headers, "  "), "highlight"), "─" * total]
    out.extend(escape(join(row, "  ")) for row in rows)
    return out


def tree_lines(step: TreeStep) -> list[str]:
    out = [escape(step.root.name)]

    def walk(node: TreeNode, prefix: str, is_last: bool) -> None:
        connector = "└── " if is_last else "├── "
        out.append(escape(f"{prefix}{connector}{node.name}"))
        extension = "    " if is_last else "│   "
        for i, child in enumerate(node.children):
            walk(child, prefix + extension, i == len(node.children) - 1)

    for i, child in enumerate(step.root.children):
        walk(child, "", i == len(step.root.children) - 1)
    return out


def code_lines(step: CodeStep) -> list[str]:
    out = []
    for number, line in enumerate(step.content.split("\n"), start=1):
        marked = number in step.highlight
        gutter = styled(str(number).rjust(3), "highlight" if marked else "dim")
        out.append(f"{gutter} │ {styled(line, 'warning' if marked else 'normal')}")
    return out


def status_line(step: StatusStep) -> str:
    prefix = f"{step.prefix} " if step.prefix else ""
    return f"{status_prefix(step.kind)} {escape(prefix + step.text)}"


_STREAM_MESSAGES = {
    "play": "Stream activated",
    "pause": "Stream paused",
    "stop": "Stream terminated",
    "mute": "Audio channel muted",
    "unmute": "Audio channel restored",
    "status": "Checking stream status...",
}


def stream_line(step: StreamStep) -> str:
    if step.message:
        message = step.message
    elif step.action == "seek":
        message = f"Temporal position: {step.value}s"
    elif step.action == "volume":
        message = f"Audio level: {step.value}%"
    else:
        message = _STREAM_MESSAGES.get(step.action, step.action)
    return f"{styled('[stream]', 'accent')} {escape(message)}"


# =============================================================================
# Scan (remote fetch)
# =============================================================================


def scan_bar(progress: float, width: int = SCAN_BAR_WIDTH) -> str:
    cells = []
    for i in range(width):
        phase = (progress * width - i) * 2
        if 0 < phase < 1:
            cells.append(SCAN_CHARS[int(phase * len(SCAN_CHARS))])
        elif phase >= 1:
            cells.append("█")
        else:
            cells.append("░")
    return "".join(cells)


def scan_frame(label: str, progress: float, index: int) -> str:
    """In-flight frame; never shows more than 99%."""
    frames = SPINNERS["orbit"]
    percent = min(99, _pct(progress))
    return (
        f"{styled(frames[index % len(frames)], 'info')} "
        f"{escape(f'{label} [{scan_bar(progress)}] {percent}%')}"
    )


def scan_complete_frame(label: str, index: int) -> str:
    frames = SPINNERS["orbit"]
    return (
        f"{styled(frames[index % len(frames)], 'info')} "
        f"{escape(f'{label} [{scan_bar(1.0)}] 100%')}"
    )


def scan_success_lines(label: str, mime_type: str, image: str, metadata: Mapping[str, Any]) -> list[str]:
    """Lines following the completed frame; the first replaces it."""

    def row(name: str, value: Any) -> str:
        return f"{styled(name + ':', 'info')} {escape(str(value))}"

    date = metadata.get("dateCreated", "unknown")
    year = metadata.get("year")
    return [
        f"{styled('✓', 'success')} {escape(label)}",
        "",
        styled(RULE, "dim"),
        styled("SCAN RESULT", "highlight"),
        styled(RULE, "dim"),
        row("Classification", metadata.get("classification", "UNKNOWN")),
        row("Date", f"{date} ({year})" if year else date),
        row("Dimension", metadata.get("dimension", "unknown")),
        row("Hex Code", metadata.get("hexCode", "-")),
        row("Source", metadata.get("source", "-")),
        "",
        image_line(mime_type, image),
        styled(RULE, "dim"),
        styled("Note: the image may be distorted by dimensional interference.", "warning"),
    ]


def scan_failure_lines(label: str, error: str) -> list[str]:
    return [
        f"{styled('[FAIL]', 'error')} {escape(label)}",
        styled(f"Scan failed: {error}", "error"),
    ]
