"""Display owner and render sinks for the expression buffer."""

from __future__ import annotations

import io
import sys
from pathlib import Path
from typing import IO, Callable, Protocol

import matplotlib

matplotlib.use("Agg")  # Non-GUI backend; images are written to files or memory
from matplotlib import mathtext

from .buffer import ExpressionBuffer
from .config import RENDER_DPI, ZERO_GLYPH
from .logging_config import get_logger
from .notation import to_latex

logger = get_logger("display")


class RenderSink(Protocol):
    def render(self, markup: str, display_mode: bool = True) -> None: ...

    def show_text(self, text: str) -> None: ...


class TerminalRenderSink:
    """Writes markup (or raw text) as lines on a text stream."""

    def __init__(self, stream: IO[str] | None = None):
        self.stream = stream or sys.stdout
        self.last_output: str | None = None

    def render(self, markup: str, display_mode: bool = True) -> None:
        self._write(f"$${markup}$$" if display_mode else f"${markup}$")

    def show_text(self, text: str) -> None:
        self._write(text)

    def _write(self, line: str) -> None:
        self.last_output = line
        self.stream.write(line + "\n")
        self.stream.flush()


class MathtextRenderSink:
    """Renders markup to PNG with matplotlib's mathtext engine.

    Invalid markup raises ``ValueError`` from the mathtext parser; the
    display owner is expected to fall back to raw text in that case.

    Args:
        path: Optional file to (over)write on every render; when None only
            ``last_image`` is kept
        dpi: Output resolution
    """

    def __init__(self, path: str | Path | None = None, dpi: int = RENDER_DPI):
        self.path = Path(path) if path is not None else None
        self.dpi = dpi
        self.last_image: bytes | None = None
        self.last_text: str | None = None

    def render(self, markup: str, display_mode: bool = True) -> None:
        # mathtext has no block/inline distinction; display mode only scales up.
        image = io.BytesIO()
        mathtext.math_to_image(
            f"${markup}$",
            image,
            dpi=self.dpi * (2 if display_mode else 1),
            format="png",
        )
        self.last_image = image.getvalue()
        self.last_text = None
        if self.path is not None:
            self.path.write_bytes(self.last_image)

    def show_text(self, text: str) -> None:
        self.last_text = text
        self.last_image = None


class MathDisplay:
    """Keeps a render sink in sync with an expression buffer.

    An empty buffer shows the zero glyph as plain text. If the sink rejects
    the markup, the raw buffer text is shown verbatim instead.
    """

    def __init__(self, buffer: ExpressionBuffer, sink: RenderSink, display_mode: bool = True):
        self.buffer = buffer
        self.sink = sink
        self.display_mode = display_mode
        self.fallback_count = 0
        self._unsubscribe: Callable[[], None] | None = buffer.subscribe(self._on_change)
        self.refresh()

    def _on_change(self, buffer: ExpressionBuffer) -> None:
        self.refresh()

    def refresh(self) -> None:
        text = self.buffer.text
        if not text:
            self.sink.show_text(ZERO_GLYPH)
            return
        markup = to_latex(text)
        try:
            self.sink.render(markup, display_mode=self.display_mode)
        except Exception as e:
            self.fallback_count += 1
            logger.warning("Render failed for %r (%s); showing raw text", markup, e)
            self.sink.show_text(text)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
