"""Tests for frame builders and markup helpers."""

import random

import pytest

from termsim.core import renderers
from termsim.core.markup import (
    CANCEL_MARKER,
    image_line,
    is_image_line,
    normalize_style,
    plain,
    styled,
)
from termsim.core.sink import LineBuffer
from termsim.core.steps import (
    CodeStep,
    MatrixStep,
    ProgressStep,
    SectionStep,
    StatusStep,
    StreamStep,
    TableStep,
    TextStep,
    TreeNode,
    TreeStep,
)


@pytest.fixture
def rng():
    return random.Random(0)


class TestMarkup:
    """Tests for markup helpers."""

    def test_styled_escapes_content(self) -> None:
        """Brackets in content are never interpreted as markup."""
        line = styled("[bold]not bold[/bold]", "info")

        assert plain(line) == "[bold]not bold[/bold]"

    def test_style_aliases(self) -> None:
        assert normalize_style("quantum") == "accent"
        assert normalize_style("neon") == "normal"
        assert normalize_style(None) == "normal"

    def test_cancel_marker(self) -> None:
        assert plain(CANCEL_MARKER) == "^C"

    def test_image_lines_pass_through(self) -> None:
        line = image_line("image/png", "AAAA")

        assert is_image_line(line)
        assert plain(line) == line


class TestLineBuffer:
    """Tests for the in-memory sink."""

    def test_replace_on_empty_appends(self) -> None:
        sink = LineBuffer()

        sink.replace_last_line("first")

        assert sink.lines == ["first"]

    def test_remove_more_than_present(self) -> None:
        sink = LineBuffer()
        sink.append_line("a")

        sink.remove_last_lines(5)

        assert sink.lines == []

    def test_max_lines(self) -> None:
        sink = LineBuffer(max_lines=2)
        for text in ("a", "b", "c"):
            sink.append_line(text)

        assert sink.lines == ["b", "c"]
        assert sink.last == "c"


class TestText:
    """Tests for text frames."""

    @pytest.mark.parametrize(
        ("animation", "expected"),
        [("instant", 0), ("typewriter", 120), ("reveal", 240), ("glitch", 270), ("fade-in", 400)],
    )
    def test_durations(self, animation, expected) -> None:
        step = TextStep("abcd", animation=animation, speed=30)

        assert renderers.text_duration(step) == expected

    def test_reveal_masks_hidden_part(self, rng) -> None:
        step = TextStep("abcd", animation="reveal")

        assert plain(renderers.text_frame(step, 0.5, rng)) == "ab██"

    def test_fade_in_uses_fade_chars(self, rng) -> None:
        step = TextStep("abc", animation="fade-in")

        assert plain(renderers.text_frame(step, 0.0, rng)) == "░░░"
        assert plain(renderers.text_frame(step, 0.99, rng)) == "███"

    def test_glitch_keeps_length(self, rng) -> None:
        step = TextStep("signal", animation="glitch")

        assert len(plain(renderers.text_frame(step, 0.5, rng))) == len("signal")


class TestProgress:
    """Tests for progress frames."""

    def test_bar_half(self, rng) -> None:
        line = plain(renderers.progress_frame(ProgressStep(), 0.5, 0, rng))

        assert line == "[" + "▓" * 15 + "░" * 15 + "] 50%"

    def test_pinned_percent(self, rng) -> None:
        line = plain(renderers.progress_frame(ProgressStep(percent=42), 0.1, 0, rng))

        assert line.endswith("42%")

    def test_hidden_percent(self, rng) -> None:
        line = plain(renderers.progress_frame(ProgressStep(show_percent=False), 0.5, 0, rng))

        assert "%" not in line

    def test_npm_width(self, rng) -> None:
        step = ProgressStep(style="npm", text="deps")
        line = plain(renderers.progress_frame(step, 1.0, 0, rng))

        assert line == "deps [" + "█" * 40 + "] 100%"

    def test_spinner_resting(self, rng) -> None:
        step = ProgressStep(style="spinner", text="Indexing")

        assert plain(renderers.progress_resting(step, rng)) == "✓ Indexing"

    def test_dots_resting(self, rng) -> None:
        step = ProgressStep(style="dots", text="Saving")

        assert plain(renderers.progress_resting(step, rng)) == "Saving..."


class TestBlocks:
    """Tests for static blocks."""

    def test_section_box(self) -> None:
        lines = [plain(line) for line in renderers.section_lines(SectionStep("Hi", ("hello",)))]

        assert lines == [
            "╔" + "═" * 9 + "╗",
            "║ Hi      ║",
            "╠" + "═" * 9 + "╣",
            "║ hello   ║",
            "╚" + "═" * 9 + "╝",
        ]

    def test_section_minimal(self) -> None:
        step = SectionStep("Net", ("up",), style="minimal")

        assert [plain(line) for line in renderers.section_lines(step)] == ["[Net]", "  up"]

    def test_simple_table(self) -> None:
        step = TableStep(headers=("PID", "CMD"), rows=(("1", "init"),))
        lines = [plain(line) for line in renderers.table_lines(step)]

        assert lines[0].split() == ["PID", "CMD"]
        assert set(lines[1]) == {"─"}
        assert lines[2].split() == ["1", "init"]

    def test_box_table_pads_short_rows(self) -> None:
        step = TableStep(headers=("A", "B"), rows=(("x",),), style="box")
        lines = [plain(line) for line in renderers.table_lines(step)]

        assert len({len(line) for line in lines}) == 1

    def test_tree(self) -> None:
        root = TreeNode("/", (TreeNode("a", (TreeNode("x"),)), TreeNode("b")))

        assert [plain(line) for line in renderers.tree_lines(TreeStep(root))] == [
            "/",
            "├── a",
            "│   └── x",
            "└── b",
        ]

    def test_code_highlight(self) -> None:
        lines = renderers.code_lines(CodeStep("a = 1\nb = 2", highlight=(2,)))

        assert [plain(line) for line in lines] == ["  1 │ a = 1", "  2 │ b = 2"]
        assert "[warning]" in lines[1]
        assert "[warning]" not in lines[0]

    def test_status_with_prefix(self) -> None:
        line = renderers.status_line(StatusStep("fail", "disk check", prefix="sda1"))

        assert plain(line) == "[ FAIL ] sda1 disk check"

    def test_stream_default_messages(self) -> None:
        assert plain(renderers.stream_line(StreamStep("seek", 12))) == "[stream] Temporal position: 12s"
        assert plain(renderers.stream_line(StreamStep("mute"))) == "[stream] Audio channel muted"
        assert plain(renderers.stream_line(StreamStep("play", message="Go"))) == "[stream] Go"

    def test_matrix_width(self, rng) -> None:
        line = renderers.matrix_frame(MatrixStep(density=10), rng)

        assert len(plain(line)) == renderers.MATRIX_WIDTH


class TestScanFrames:
    """Tests for scan frames."""

    def test_in_flight_frame_caps_at_99(self) -> None:
        line = plain(renderers.scan_frame("Scanning", 1.0, 0))

        assert line.endswith("99%")

    def test_complete_frame(self) -> None:
        assert plain(renderers.scan_complete_frame("Scanning", 3)).endswith("100%")

    def test_bar_half(self) -> None:
        assert renderers.scan_bar(0.5) == "█" * 10 + "░" * 10

    def test_metadata_year(self) -> None:
        lines = renderers.scan_success_lines(
            "Scanning", "image/jpeg", "AAAA", {"dateCreated": "March 3", "year": 1987}
        )

        assert "Date: March 3 (1987)" in [plain(line) for line in lines]
        assert lines[11] == image_line("image/jpeg", "AAAA")
