"""Public API for typecalc."""

from __future__ import annotations

from .buffer import ExpressionBuffer
from .config import DEFAULT_ANGLE_MODE, ERROR_CLEAR_DELAY, EVALUATOR_TIMEOUT
from .display import MathDisplay, RenderSink
from .evaluator import SympyEvaluator
from .notation import result_to_latex, to_latex
from .scheduling import Scheduler
from .types import EvalResult

__all__ = ["Session", "evaluate", "new_session", "result_to_latex", "to_latex"]


def evaluate(
    expression: str,
    angle_mode: str = DEFAULT_ANGLE_MODE,
    timeout: float = EVALUATOR_TIMEOUT,
) -> EvalResult:
    """Evaluate a mathematical expression synchronously.

    The work runs in a child process that is killed after ``timeout``
    seconds, in which case the result carries error code ``TIMEOUT``.

    Args:
        expression: Expression using ``*`` and ``/`` (e.g., "8/2", "sin(30)")
        angle_mode: "deg", "rad" or "grad"
        timeout: Wall-clock limit in seconds

    Returns:
        EvalResult with the formatted result or an error

    Example:
        >>> from typecalc_pkg.api import evaluate
        >>> evaluate("8/2").result
        '4'
    """
    return SympyEvaluator(angle_mode=angle_mode, timeout=timeout).evaluate_bounded(expression)


class Session:
    """One calculator session: a buffer, its evaluator and optionally a display.

    The session owns these objects for its whole lifetime; ``close`` detaches
    the display. Usable as a context manager.
    """

    def __init__(
        self,
        evaluator: SympyEvaluator | None = None,
        sink: RenderSink | None = None,
        scheduler: Scheduler | None = None,
        error_clear_delay: float = ERROR_CLEAR_DELAY,
        display_mode: bool = True,
    ):
        self.evaluator = evaluator or SympyEvaluator()
        self.buffer = ExpressionBuffer(
            self.evaluator, scheduler=scheduler, error_clear_delay=error_clear_delay
        )
        self.display = MathDisplay(self.buffer, sink, display_mode) if sink is not None else None

    @property
    def latex(self) -> str:
        return to_latex(self.buffer.text)

    def close(self) -> None:
        if self.display is not None:
            self.display.close()
            self.display = None

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def new_session(
    sink: RenderSink | None = None,
    angle_mode: str = DEFAULT_ANGLE_MODE,
    scheduler: Scheduler | None = None,
) -> Session:
    """Create a session backed by a fresh SymPy evaluator."""
    return Session(SympyEvaluator(angle_mode=angle_mode), sink=sink, scheduler=scheduler)
