"""Expression buffer: the edit state machine behind the calculator display.

States:
- EDITING: normal editing
- ERROR_DISPLAY: the "Error" sentinel after a failed commit; cleared
  automatically after ``ERROR_CLEAR_DELAY`` seconds unless an edit
  supersedes it first

The buffer never renders anything itself. Observers register with
``subscribe`` and pull ``text`` when notified.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol

from .config import (
    BACKSPACE_GLYPH,
    ERROR_CLEAR_DELAY,
    ERROR_SENTINEL,
    EVALUATOR_TOKENS,
    OPERATOR_GLYPHS,
    SIGN_TOGGLE_GLYPH,
)
from .logging_config import get_logger
from .scheduling import AsyncioScheduler, Cancellable, Scheduler
from .types import BufferState, EditEvent, EditKind, EvalResult, ValidationError

logger = get_logger("buffer")

Listener = Callable[["ExpressionBuffer"], None]


class Evaluator(Protocol):
    def evaluate(self, expression: str) -> Awaitable[EvalResult]: ...


def normalize_expression(text: str) -> str:
    """Translate display glyphs into the evaluator's operator tokens.

    Args:
        text: Buffer text (e.g., "8÷2×3")

    Returns:
        Evaluator input (e.g., "8/2*3")
    """
    for glyph, token in EVALUATOR_TOKENS.items():
        text = text.replace(glyph, token)
    return text


class ExpressionBuffer:
    """Owns the expression being composed and applies edit events to it.

    Every change bumps ``version``. Commits are tagged with a generation
    number; a response is applied only if no newer commit (or clear) was
    issued while it was outstanding.
    """

    def __init__(
        self,
        evaluator: Evaluator,
        scheduler: Scheduler | None = None,
        error_clear_delay: float = ERROR_CLEAR_DELAY,
    ):
        self._evaluator = evaluator
        self._scheduler = scheduler or AsyncioScheduler()
        self._error_clear_delay = error_clear_delay
        self._text = ""
        self._state = BufferState.EDITING
        self._version = 0
        self._generation = 0
        self._pending_clear: Cancellable | None = None
        self._listeners: list[Listener] = []

    @property
    def text(self) -> str:
        return self._text

    @property
    def state(self) -> BufferState:
        return self._state

    @property
    def version(self) -> int:
        return self._version

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, text: str, state: BufferState = BufferState.EDITING) -> None:
        if text == self._text and state == self._state:
            return
        self._text = text
        self._state = state
        self._version += 1
        for listener in list(self._listeners):
            listener(self)

    def _cancel_pending_clear(self) -> None:
        if self._pending_clear is not None:
            self._pending_clear.cancel()
            self._pending_clear = None

    def _leave_error_display(self) -> None:
        # Any edit discards the sentinel before it is applied.
        self._cancel_pending_clear()
        if self._state is BufferState.ERROR_DISPLAY:
            self._set("", BufferState.EDITING)

    def apply_clear(self) -> None:
        self._cancel_pending_clear()
        self._generation += 1
        self._set("", BufferState.EDITING)

    def apply_digit(self, d: str) -> None:
        if len(d) != 1 or d not in "0123456789":
            raise ValidationError(f"Not a digit: {d!r}", "INVALID_DIGIT")
        self._leave_error_display()
        self._set(self._text + d)

    def apply_decimal(self) -> None:
        # Repeated decimal points within one number are accepted here.
        self._leave_error_display()
        self._set(self._text + ".")

    def apply_operator(self, glyph: str) -> None:
        if glyph == BACKSPACE_GLYPH:
            self.apply_backspace()
            return
        if glyph == SIGN_TOGGLE_GLYPH:
            self.apply_sign_toggle()
            return
        if glyph not in OPERATOR_GLYPHS:
            raise ValidationError(f"Unknown operator: {glyph!r}", "INVALID_OPERATOR")
        self._leave_error_display()
        if not self._text or self._text[-1] in OPERATOR_GLYPHS:
            logger.debug("Rejected operator %r after %r", glyph, self._text)
            return
        self._set(self._text + glyph)

    def apply_backspace(self) -> None:
        self._leave_error_display()
        if self._text:
            self._set(self._text[:-1])

    def apply_sign_toggle(self) -> None:
        self._leave_error_display()
        if self._text.startswith("-"):
            self._set(self._text[1:])
        elif self._text:
            self._set("-" + self._text)

    async def apply_commit(self) -> None:
        """Send the buffer to the evaluator and replace it with the outcome."""
        self._leave_error_display()
        if not self._text:
            return

        normalized = normalize_expression(self._text)
        self._generation += 1
        generation = self._generation
        logger.debug("Commit: %s", normalized, extra={"generation": generation})

        try:
            outcome = await self._evaluator.evaluate(normalized)
        except Exception as e:
            logger.warning("Evaluator raised for %r: %s", normalized, e)
            outcome = EvalResult(success=False, error=str(e), error_code="EVALUATOR_FAILURE")

        if generation != self._generation:
            logger.debug(
                "Dropping stale response (current generation %d)",
                self._generation,
                extra={"generation": generation},
            )
            return

        if outcome.success and outcome.result is not None:
            self._cancel_pending_clear()
            self._set(outcome.result, BufferState.EDITING)
            return

        logger.info(
            "Evaluation failed: %s",
            outcome.error,
            extra={"generation": generation, "error_code": outcome.error_code},
        )
        self._enter_error_display()

    def _enter_error_display(self) -> None:
        self._cancel_pending_clear()
        self._set(ERROR_SENTINEL, BufferState.ERROR_DISPLAY)
        version = self._version
        self._pending_clear = self._scheduler.call_later(
            self._error_clear_delay, lambda: self._auto_clear(version)
        )

    def _auto_clear(self, version: int) -> None:
        self._pending_clear = None
        if version != self._version or self._state is not BufferState.ERROR_DISPLAY:
            return
        logger.debug("Clearing error sentinel", extra={"version": version})
        self._set("", BufferState.EDITING)

    async def dispatch(self, event: EditEvent) -> None:
        """Apply one edit event."""
        kind = event.kind
        if kind is EditKind.CLEAR:
            self.apply_clear()
        elif kind is EditKind.DIGIT:
            self.apply_digit(event.value or "")
        elif kind is EditKind.DECIMAL:
            self.apply_decimal()
        elif kind is EditKind.OPERATOR:
            self.apply_operator(event.value or "")
        elif kind is EditKind.BACKSPACE:
            self.apply_backspace()
        elif kind is EditKind.SIGN_TOGGLE:
            self.apply_sign_toggle()
        elif kind is EditKind.COMMIT:
            await self.apply_commit()
        else:
            raise ValidationError(f"Unknown edit event: {event!r}", "INVALID_EVENT")
