"""Core - Sequence model and interpreter.

This module contains no knowledge of:
- Terminals, prompts, or keyboards
- Networking or the assistant backend
- Session modes or persisted state

Architecture:
    steps        Closed Step vocabulary (frozen dataclasses)
    sequence     Sequence, CancellationToken, JSON wire parsing
    markup       Output line markup helpers
    clock        SystemClock / VirtualClock
    sink         OutputSink protocol and in-memory LineBuffer
    renderers    Pure frame builders per step
    interpreter  SequenceInterpreter

Example:
    >>> from termsim.core import LineBuffer, SequenceInterpreter, VirtualClock
    >>> from termsim.core import parse_sequence
    >>>
    >>> async def main():
    ...     clock = VirtualClock()
    ...     sink = LineBuffer()
    ...     seq = parse_sequence({"steps": [{"tool": "text", "content": "hi"}]})
    ...     await clock.run(SequenceInterpreter(sink, clock).run(seq))
    ...     print(sink.plain_lines)
"""

from termsim.core.clock import Clock, SystemClock, VirtualClock
from termsim.core.interpreter import (
    DeviceController,
    Fetcher,
    RunOutcome,
    ScanError,
    ScanResult,
    SequenceInterpreter,
    scan_progress,
)
from termsim.core.markup import CANCEL_MARKER, IMAGE_MARKER, plain, styled
from termsim.core.sequence import (
    CancellationToken,
    Sequence,
    SequenceParseError,
    parse_sequence,
    sequence_from_response,
    text_sequence,
    tool_name,
)
from termsim.core.sink import LineBuffer, OutputSink
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
    describe_step,
)

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    "VirtualClock",
    # Interpreter
    "SequenceInterpreter",
    "RunOutcome",
    "DeviceController",
    "Fetcher",
    "ScanError",
    "ScanResult",
    "scan_progress",
    # Markup
    "CANCEL_MARKER",
    "IMAGE_MARKER",
    "plain",
    "styled",
    # Sequence
    "Sequence",
    "CancellationToken",
    "SequenceParseError",
    "parse_sequence",
    "sequence_from_response",
    "text_sequence",
    "tool_name",
    # Sink
    "OutputSink",
    "LineBuffer",
    # Steps
    "Step",
    "TextStep",
    "ProgressStep",
    "ProcessStep",
    "SectionStep",
    "TableStep",
    "StatusStep",
    "MatrixStep",
    "TreeNode",
    "TreeStep",
    "CodeStep",
    "StreamStep",
    "ScanStep",
    "WaitStep",
    "ClearLineStep",
    "AsciiArtStep",
    "describe_step",
]
