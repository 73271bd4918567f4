"""Sequences, cancellation tokens and the wire format for both.

A Sequence arrives either from a local generator (termsim.session.library)
or as JSON from the assistant backend:

    {
        "id": "greeting-001",
        "interruptible": true,
        "steps": [
            {"tool": "text", "content": "Bridge online", "animation": "typewriter"},
            {"tool": "status", "type": "ok", "text": "Handshake complete"}
        ]
    }
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

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
    TreeNode,
    TreeStep,
    WaitStep,
)

logger = logging.getLogger(__name__)

# Raw text from a malformed response is cut to this length before display
FALLBACK_TEXT_LIMIT = 500


class SequenceParseError(ValueError):
    """Raised when a payload cannot be turned into a Sequence."""


@dataclass(frozen=True)
class Sequence:
    """Ordered, immutable script of steps.

    ``interruptible=False`` sequences ignore cancellation entirely; they are
    used for flourishes that must never be left half-rendered.
    """

    id: str
    steps: tuple[Step, ...] = ()
    interruptible: bool = True
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.steps)


@dataclass
class CancellationToken:
    """Shared flag asking the in-flight sequence to stop.

    One token per top-level action; once aborted it stays aborted.
    """

    aborted: bool = False

    def abort(self) -> None:
        self.aborted = True


# =============================================================================
# Parsing
# =============================================================================


def _require(data: Mapping[str, Any], key: str, tool: str) -> Any:
    if key not in data or data[key] is None:
        raise SequenceParseError(f"'{tool}' step is missing '{key}'")
    return data[key]


def _text(value: Any, key: str, tool: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise SequenceParseError(f"'{tool}.{key}' must be a string")


def _int(value: Any, key: str, tool: str, *, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SequenceParseError(f"'{tool}.{key}' must be a number")
    return max(minimum, int(value))


def _lines(value: Any, key: str, tool: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(value.split("\n"))
    if isinstance(value, list):
        return tuple(_text(item, key, tool) for item in value)
    raise SequenceParseError(f"'{tool}.{key}' must be a string or list of strings")


def _tree_node(data: Any) -> TreeNode:
    if not isinstance(data, Mapping):
        raise SequenceParseError("'tree' nodes must be objects")
    children = data.get("children") or []
    if not isinstance(children, list):
        raise SequenceParseError("'tree.children' must be a list")
    return TreeNode(
        name=_text(_require(data, "name", "tree"), "name", "tree"),
        children=tuple(_tree_node(child) for child in children),
    )


def _parse_text(d: Mapping[str, Any]) -> TextStep:
    return TextStep(
        content=_text(d.get("content", ""), "content", "text"),
        animation=d.get("animation") or "instant",
        style=d.get("style") or "normal",
        speed=_int(d.get("speed", 30), "speed", "text", minimum=1),
        delay=_int(d.get("delay", 0), "delay", "text"),
    )


def _parse_progress(d: Mapping[str, Any]) -> ProgressStep:
    percent = d.get("percent")
    return ProgressStep(
        style=d.get("style") or "bar",
        text=_text(d.get("text", ""), "text", "progress"),
        duration=_int(_require(d, "duration", "progress"), "duration", "progress"),
        percent=None if percent is None else _int(percent, "percent", "progress"),
        show_percent=d.get("showPercent", True) is not False,
    )


def _parse_process(d: Mapping[str, Any]) -> ProcessStep:
    stages = d.get("stages") or []
    return ProcessStep(
        kind=d.get("type") or "loading",
        text=_text(d.get("text", ""), "text", "process"),
        duration=_int(_require(d, "duration", "process"), "duration", "process"),
        stages=_lines(stages, "stages", "process") if stages else (),
        show_spinner=d.get("showSpinner", True) is not False,
    )


def _parse_section(d: Mapping[str, Any]) -> SectionStep:
    return SectionStep(
        title=_text(_require(d, "title", "section"), "title", "section"),
        content=_lines(d.get("content", []), "content", "section"),
        style=d.get("style") or "box",
        color=d.get("color") or "info",
    )


def _parse_table(d: Mapping[str, Any]) -> TableStep:
    headers = _require(d, "headers", "table")
    rows = d.get("rows") or []
    if not isinstance(headers, list) or not isinstance(rows, list):
        raise SequenceParseError("'table.headers' and 'table.rows' must be lists")
    return TableStep(
        headers=_lines(headers, "headers", "table"),
        rows=tuple(_lines(row, "rows", "table") for row in rows),
        style=d.get("style") or "simple",
    )


def _parse_status(d: Mapping[str, Any]) -> StatusStep:
    prefix = d.get("prefix")
    return StatusStep(
        kind=d.get("type") or "info",
        text=_text(_require(d, "text", "status"), "text", "status"),
        prefix=None if prefix is None else _text(prefix, "prefix", "status"),
    )


def _parse_matrix(d: Mapping[str, Any]) -> MatrixStep:
    message = d.get("message")
    return MatrixStep(
        duration=_int(d.get("duration", 1500), "duration", "matrix"),
        density=min(10, _int(d.get("density", 5), "density", "matrix", minimum=1)),
        message=None if message is None else _text(message, "message", "matrix"),
    )


def _parse_tree(d: Mapping[str, Any]) -> TreeStep:
    return TreeStep(root=_tree_node(_require(d, "data", "tree")))


def _parse_code(d: Mapping[str, Any]) -> CodeStep:
    highlight = d.get("highlight") or []
    if not isinstance(highlight, list):
        raise SequenceParseError("'code.highlight' must be a list of line numbers")
    return CodeStep(
        content=_text(_require(d, "content", "code"), "content", "code"),
        language=d.get("language"),
        highlight=tuple(_int(n, "highlight", "code", minimum=1) for n in highlight),
    )


def _parse_stream(d: Mapping[str, Any]) -> StreamStep:
    value = d.get("value")
    if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
        raise SequenceParseError("'stream.value' must be a number")
    message = d.get("message")
    return StreamStep(
        action=_text(_require(d, "action", "stream"), "action", "stream"),  # type: ignore[arg-type]
        value=value,
        message=None if message is None else _text(message, "message", "stream"),
    )


def _parse_scan(d: Mapping[str, Any]) -> ScanStep:
    kwargs: dict[str, Any] = {"target": _text(_require(d, "target", "scan"), "target", "scan")}
    for key in ("dimension", "timestamp", "classification", "label"):
        if d.get(key) is not None:
            kwargs[key] = _text(d[key], key, "scan")
    return ScanStep(**kwargs)


def _parse_wait(d: Mapping[str, Any]) -> WaitStep:
    return WaitStep(duration=_int(_require(d, "duration", "wait"), "duration", "wait"))


def _parse_clear_line(d: Mapping[str, Any]) -> ClearLineStep:
    return ClearLineStep(count=_int(d.get("count", 1), "count", "clear-line", minimum=1))


def _parse_ascii_art(d: Mapping[str, Any]) -> AsciiArtStep:
    return AsciiArtStep(
        art=_text(_require(d, "art", "ascii-art"), "art", "ascii-art"),
        animation=d.get("animation") or "none",
        color=d.get("color") or "normal",
    )


# Wire name -> parser. Aliases accept names used by older assistant prompts.
STEP_PARSERS: dict[str, Callable[[Mapping[str, Any]], Step]] = {
    "text": _parse_text,
    "progress": _parse_progress,
    "process": _parse_process,
    "section": _parse_section,
    "table": _parse_table,
    "status": _parse_status,
    "matrix": _parse_matrix,
    "tree": _parse_tree,
    "code": _parse_code,
    "stream": _parse_stream,
    "quantum-stream": _parse_stream,
    "scan": _parse_scan,
    "quantum-scan": _parse_scan,
    "wait": _parse_wait,
    "clear-line": _parse_clear_line,
    "ascii-art": _parse_ascii_art,
}

_TOOL_NAMES: dict[type, str] = {
    TextStep: "text",
    ProgressStep: "progress",
    ProcessStep: "process",
    SectionStep: "section",
    TableStep: "table",
    StatusStep: "status",
    MatrixStep: "matrix",
    TreeStep: "tree",
    CodeStep: "code",
    StreamStep: "stream",
    ScanStep: "scan",
    WaitStep: "wait",
    ClearLineStep: "clear-line",
    AsciiArtStep: "ascii-art",
}


def tool_name(step: Step) -> str:
    """Wire discriminant for a step instance."""
    return _TOOL_NAMES[type(step)]


def parse_step(data: Any) -> Step | None:
    """Parse one step object.

    Returns:
        The step, or None when the tool is unknown (the step is skipped).

    Raises:
        SequenceParseError: If the object is not a step or a known step is malformed.
    """
    if not isinstance(data, Mapping):
        raise SequenceParseError("steps must be objects")
    tool = data.get("tool")
    if not isinstance(tool, str):
        raise SequenceParseError("step is missing 'tool'")
    parser = STEP_PARSERS.get(tool)
    if parser is None:
        logger.warning("Skipping unsupported step tool: %s", tool)
        return None
    return parser(data)


def parse_sequence(payload: Any) -> Sequence:
    """Build a Sequence from a decoded JSON object.

    Raises:
        SequenceParseError: If the payload is not a valid sequence.
    """
    if not isinstance(payload, Mapping):
        raise SequenceParseError("sequence must be an object")
    raw_steps = payload.get("steps")
    if not isinstance(raw_steps, list):
        raise SequenceParseError("sequence is missing a 'steps' list")

    steps = tuple(step for step in (parse_step(s) for s in raw_steps) if step is not None)
    seq_id = payload.get("id")
    interruptible = payload.get("interruptible")
    metadata = payload.get("metadata")
    return Sequence(
        id=str(seq_id) if seq_id else f"seq-{int(time.time() * 1000)}",
        steps=steps,
        interruptible=True if interruptible is None else bool(interruptible),
        metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
    )


def text_sequence(text: str, *, seq_id: str | None = None) -> Sequence:
    """Minimal sequence that types out raw text."""
    return Sequence(
        id=seq_id or f"seq-fallback-{int(time.time() * 1000)}",
        steps=(
            TextStep(content=text[:FALLBACK_TEXT_LIMIT], animation="typewriter", speed=20),
        ),
    )


def sequence_from_response(raw: Any) -> Sequence:
    """Turn a backend response into a Sequence without ever raising.

    Accepts ``{"sequence": {...}}``, a bare sequence object, or a JSON string
    of either (markdown code fences are stripped). Anything malformed is
    wrapped into a text-only sequence built from the raw response.
    """
    payload = raw
    if isinstance(raw, str):
        cleaned = raw.replace("```json", "").replace("```", "").strip()
        try:
            payload = json.loads(cleaned)
        except json.JSONDecodeError:
            return text_sequence(cleaned)

    if isinstance(payload, Mapping) and "sequence" in payload:
        payload = payload["sequence"]

    try:
        return parse_sequence(payload)
    except SequenceParseError as e:
        logger.warning("Malformed sequence in response: %s", e)
        if isinstance(raw, str):
            return text_sequence(raw)
        return text_sequence(json.dumps(raw, default=str))
