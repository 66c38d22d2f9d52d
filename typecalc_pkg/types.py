"""Type definitions, edit events and result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class EditKind(str, Enum):
    """Discrete edit actions accepted by the expression buffer."""

    CLEAR = "clear"
    DIGIT = "digit"
    DECIMAL = "decimal"
    OPERATOR = "operator"
    BACKSPACE = "backspace"
    SIGN_TOGGLE = "sign_toggle"
    COMMIT = "commit"


@dataclass(frozen=True)
class EditEvent:
    """A single edit action; ``value`` carries the digit or operator glyph."""

    kind: EditKind
    value: str | None = None

    @classmethod
    def clear(cls) -> EditEvent:
        return cls(EditKind.CLEAR)

    @classmethod
    def digit(cls, d: str) -> EditEvent:
        return cls(EditKind.DIGIT, d)

    @classmethod
    def decimal(cls) -> EditEvent:
        return cls(EditKind.DECIMAL)

    @classmethod
    def operator(cls, glyph: str) -> EditEvent:
        return cls(EditKind.OPERATOR, glyph)

    @classmethod
    def backspace(cls) -> EditEvent:
        return cls(EditKind.BACKSPACE)

    @classmethod
    def sign_toggle(cls) -> EditEvent:
        return cls(EditKind.SIGN_TOGGLE)

    @classmethod
    def commit(cls) -> EditEvent:
        return cls(EditKind.COMMIT)


class BufferState(str, Enum):
    EDITING = "editing"
    ERROR_DISPLAY = "error_display"


@dataclass
class EvalResult:
    """Outcome of evaluating an expression."""

    success: bool
    result: str | None = None
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"success": self.success}
        if self.result is not None:
            result_dict["result"] = self.result
        if self.error is not None:
            result_dict["error"] = self.error
        if self.error_code is not None:
            result_dict["error_code"] = self.error_code
        return result_dict

    def __repr__(self) -> str:
        """Return string representation of the result."""
        if not self.success:
            return f"EvalResult(success=False, error={self.error!r}, error_code={self.error_code!r})"
        return f"EvalResult(success=True, result={self.result!r})"


class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message
