"""Tests for the display owner and render sinks."""

import io

import pytest

from typecalc_pkg.api import Session, new_session
from typecalc_pkg.buffer import ExpressionBuffer
from typecalc_pkg.display import MathDisplay, MathtextRenderSink, TerminalRenderSink
from typecalc_pkg.notation import to_latex
from typecalc_pkg.scheduling import ManualScheduler
from typecalc_pkg.types import EvalResult


class NullEvaluator:
    async def evaluate(self, expression):
        return EvalResult(success=False, error="unused")


class RejectingSink:
    """Rejects every markup string, like a renderer hitting a parse error."""

    def __init__(self):
        self.texts = []

    def render(self, markup, display_mode=True):
        raise ValueError(f"cannot render {markup}")

    def show_text(self, text):
        self.texts.append(text)


@pytest.fixture
def buffer():
    return ExpressionBuffer(NullEvaluator(), scheduler=ManualScheduler())


class TestMathDisplay:
    def test_empty_buffer_shows_zero(self, buffer):
        sink = TerminalRenderSink(io.StringIO())
        MathDisplay(buffer, sink)
        assert sink.last_output == "0"

    def test_renders_markup_on_every_change(self, buffer):
        stream = io.StringIO()
        sink = TerminalRenderSink(stream)
        MathDisplay(buffer, sink)
        buffer.apply_digit("3")
        buffer.apply_operator("÷")
        assert sink.last_output == "$$" + to_latex("3÷") + "$$"
        assert stream.getvalue().splitlines() == ["0", "$$3$$", r"$$3 \div $$"]

    def test_inline_mode(self, buffer):
        sink = TerminalRenderSink(io.StringIO())
        MathDisplay(buffer, sink, display_mode=False)
        buffer.apply_digit("7")
        assert sink.last_output == "$7$"

    def test_render_failure_falls_back_to_raw_text(self, buffer):
        sink = RejectingSink()
        display = MathDisplay(buffer, sink)
        buffer.apply_digit("1")
        buffer.apply_operator("×")
        assert sink.texts == ["0", "1", "1×"]
        assert display.fallback_count == 2

    def test_close_stops_updates(self, buffer):
        sink = TerminalRenderSink(io.StringIO())
        display = MathDisplay(buffer, sink)
        display.close()
        buffer.apply_digit("9")
        assert sink.last_output == "0"


class TestMathtextRenderSink:
    def test_renders_png(self, tmp_path):
        target = tmp_path / "display.png"
        sink = MathtextRenderSink(target, dpi=50)
        sink.render(to_latex("(2+3)/(5-1)"))
        assert sink.last_image.startswith(b"\x89PNG")
        assert target.read_bytes() == sink.last_image

    def test_invalid_markup_raises(self):
        sink = MathtextRenderSink(dpi=50)
        with pytest.raises(ValueError):
            sink.render(r"\frac{1}{")

    def test_show_text_clears_image(self):
        sink = MathtextRenderSink(dpi=50)
        sink.render("2^{10}")
        sink.show_text("raw")
        assert sink.last_image is None
        assert sink.last_text == "raw"


class TestSession:
    def test_session_wires_display(self):
        sink = TerminalRenderSink(io.StringIO())
        with new_session(sink=sink, scheduler=ManualScheduler()) as session:
            session.buffer.apply_digit("2")
            assert session.latex == "2"
            assert sink.last_output == "$$2$$"
        session.buffer.apply_digit("5")
        assert sink.last_output == "$$2$$"

    def test_session_without_sink(self):
        session = Session(scheduler=ManualScheduler())
        assert session.display is None
        assert session.latex == "0"
        session.close()
