"""SymPy-backed expression evaluator.

This module handles:
- Input sanitization and validation
- Expression preprocessing (glyphs, percent, unicode root)
- SymPy parsing against a whitelisted namespace
- Angle modes for trigonometric functions and the ``ans`` variable
- Result formatting
- Running evaluations in a child process that is terminated on timeout

SymPy arithmetic on huge integers holds the GIL, so a thread cannot bound
it. Every bounded evaluation gets its own process; the parent only polls
a pipe, which keeps the event loop free.
"""

from __future__ import annotations

import asyncio
import math
import multiprocessing
import signal
import sys
import threading
from multiprocessing.connection import Connection
from tokenize import TokenError
from typing import Any, Callable

import sympy as sp
from sympy import parse_expr

from .config import (
    ALLOWED_SYMPY_NAMES,
    ANGLE_MODES,
    DEFAULT_ANGLE_MODE,
    EVALUATOR_TIMEOUT,
    EVALUATOR_TOKENS,
    MAX_INPUT_LENGTH,
    OUTPUT_PRECISION,
    PERCENT_REGEX,
    POLL_INTERVAL,
    TRANSFORMATIONS,
)
from .logging_config import get_logger
from .types import EvalResult, ValidationError

try:
    import resource

    HAS_RESOURCE = True
except ImportError:
    HAS_RESOURCE = False

logger = get_logger("evaluator")

# Basic denylist to avoid dangerous tokens before SymPy parsing
FORBIDDEN_TOKENS = (
    "__",
    "import",
    "lambda",
    "eval",
    "exec",
    "open",
    "os.",
    "sys.",
    "subprocess",
    "builtins",
    "getattr",
    "setattr",
    "delattr",
    "compile",
    "globals",
    "locals",
)

# Multiplier taking an angle in the given mode to radians
_ANGLE_TO_RADIANS = {
    "deg": sp.pi / 180,
    "rad": sp.Integer(1),
    "grad": sp.pi / 200,
}


def is_balanced(input_str: str) -> tuple[bool, int | None]:
    """Check if parentheses are balanced. Returns (is_balanced, error_position)."""
    depth = 0
    first_open: list[int] = []
    for i, char in enumerate(input_str):
        if char == "(":
            depth += 1
            first_open.append(i)
        elif char == ")":
            if depth == 0:
                return False, i
            depth -= 1
            first_open.pop()
    if first_open:
        return False, first_open[0]
    return True, None


def format_number(val: Any, precision: int = OUTPUT_PRECISION) -> str:
    """Format a numeric value with specified precision.

    Args:
        val: Numeric value to format
        precision: Number of significant digits (default: OUTPUT_PRECISION)

    Returns:
        Formatted string representation of the number
    """
    try:
        fmt = "{:." + str(int(precision)) + "g}"
        return fmt.format(float(val))
    except (ValueError, TypeError, OverflowError):
        return str(val)


def preprocess(input_str: str) -> str:
    """Validate evaluator input and rewrite it into SymPy-parseable text.

    Args:
        input_str: Normalized expression (e.g., "50%*8", "√(4)+π")

    Returns:
        Preprocessed text (e.g., "(50/100)*8", "sqrt(4)+pi")

    Raises:
        ValidationError: On empty, too long, forbidden or unbalanced input
    """
    text = input_str.strip()
    if not text:
        raise ValidationError("Empty expression", "EMPTY_INPUT")
    if len(text) > MAX_INPUT_LENGTH:
        raise ValidationError(
            f"Input too long (max {MAX_INPUT_LENGTH} characters)", "TOO_LONG"
        )
    lowered = text.lower()
    for token in FORBIDDEN_TOKENS:
        if token in lowered:
            raise ValidationError(f"Input contains forbidden token: {token}", "FORBIDDEN_TOKEN")
    balanced, position = is_balanced(text)
    if not balanced:
        raise ValidationError(f"Unbalanced parentheses at position {position}", "UNBALANCED")

    for glyph, token in EVALUATOR_TOKENS.items():
        text = text.replace(glyph, token)
    text = text.replace("π", "pi").replace("√(", "sqrt(")
    return PERCENT_REGEX.sub(r"(\1/100)", text)


def format_result(value: sp.Basic, precision: int = OUTPUT_PRECISION) -> str:
    """Format an evaluated real number for the buffer.

    Integers are printed exactly; everything else to ``precision``
    significant digits.
    """
    if value.is_Integer:
        return str(int(value))
    numeric = float(sp.N(value, precision + 5))
    if numeric.is_integer() and abs(numeric) < 10**precision:
        return str(int(numeric))
    return format_number(numeric, precision)


class SympyEvaluator:
    """Evaluates calculator expressions with SymPy.

    Holds a small context: angle mode and variables (``PI``, ``E`` and
    ``ans``, the last successful result).
    """

    def __init__(
        self,
        angle_mode: str = DEFAULT_ANGLE_MODE,
        timeout: float = EVALUATOR_TIMEOUT,
        precision: int = OUTPUT_PRECISION,
    ):
        self._angle_mode = "deg"
        self.set_angle_mode(angle_mode)
        self.timeout = timeout
        self.precision = precision
        self._variables: dict[str, sp.Basic] = {}
        self._lock = threading.Lock()

    def get_angle_mode(self) -> str:
        return self._angle_mode

    def set_angle_mode(self, mode: str) -> None:
        if mode not in ANGLE_MODES:
            raise ValidationError(
                f"Invalid angle mode: {mode!r} (expected one of {', '.join(ANGLE_MODES)})",
                "INVALID_ANGLE_MODE",
            )
        self._angle_mode = mode

    def get_variables(self) -> dict[str, float]:
        """Return the named values visible to expressions."""
        values = {"PI": float(sp.pi), "E": float(sp.E)}
        with self._lock:
            values.update({name: float(value) for name, value in self._variables.items()})
        return values

    def _namespace(self) -> dict[str, Any]:
        factor = _ANGLE_TO_RADIANS[self._angle_mode]

        def forward(func: Callable[[Any], sp.Basic]) -> Callable[[Any], sp.Basic]:
            return lambda arg: func(arg * factor)

        def inverse(func: Callable[[Any], sp.Basic]) -> Callable[[Any], sp.Basic]:
            return lambda arg: func(arg) / factor

        namespace: dict[str, Any] = dict(ALLOWED_SYMPY_NAMES)
        namespace.update(
            {
                "sin": forward(sp.sin),
                "cos": forward(sp.cos),
                "tan": forward(sp.tan),
                "asin": inverse(sp.asin),
                "acos": inverse(sp.acos),
                "atan": inverse(sp.atan),
                "log": lambda arg: sp.log(arg, 10),
            }
        )
        with self._lock:
            namespace.update(self._variables)
        return namespace

    def evaluate_sync(self, expression: str) -> EvalResult:
        """Evaluate ``expression`` on the calling thread."""
        logger.debug("Evaluating expression: %s", expression[:100])
        try:
            text = preprocess(expression)
        except ValidationError as e:
            logger.debug("Validation error: %s - %s", e.code, e.message)
            return EvalResult(success=False, error=e.message, error_code=e.code)

        try:
            expr = sp.sympify(self._parse(text, evaluate=True))
        except ZeroDivisionError:
            # Mod(x, 0) raises instead of returning nan
            return EvalResult(success=False, error="Division by zero", error_code="DIVISION_BY_ZERO")
        except (SyntaxError, TokenError, TypeError, ValueError, AttributeError, ArithmeticError) as e:
            logger.debug("Parse/tokenize error: %s", e)
            return EvalResult(
                success=False,
                error=f"Invalid expression: {expression}",
                error_code="PARSE_ERROR",
            )

        return self._finish(expr, text)

    def _parse(self, text: str, evaluate: bool) -> sp.Basic:
        return parse_expr(
            text,
            local_dict=self._namespace(),
            transformations=TRANSFORMATIONS,
            evaluate=evaluate,
        )

    def _divides_by_zero(self, text: str) -> bool:
        """Whether the unevaluated expression contains a zero divisor."""
        try:
            tree = self._parse(text, evaluate=False)
        except (SyntaxError, TokenError, TypeError, ValueError, AttributeError, ArithmeticError):
            return False
        for node in sp.preorder_traversal(tree):
            if isinstance(node, sp.Pow) and node.exp.is_negative and node.base.doit().is_zero:
                return True
        return False

    def _finish(self, expr: sp.Basic, text: str) -> EvalResult:
        if expr.has(sp.zoo) or expr in (sp.oo, -sp.oo):
            if self._divides_by_zero(text):
                return EvalResult(
                    success=False, error="Division by zero", error_code="DIVISION_BY_ZERO"
                )
            return EvalResult(success=False, error="Result is infinite", error_code="INFINITE_RESULT")
        if expr.has(sp.nan):
            return EvalResult(success=False, error="Undefined result", error_code="EVAL_ERROR")
        free = sorted(str(s) for s in expr.free_symbols)
        if free:
            return EvalResult(
                success=False,
                error=f"Undefined variable: {', '.join(free)}",
                error_code="UNDEFINED_VARIABLE",
            )
        try:
            value = sp.N(expr, self.precision + 5)
            if not value.is_number:
                raise TypeError(f"Not a number: {value}")
            if value.is_real is False or abs(sp.im(value)) > 10 ** (-self.precision):
                return EvalResult(success=False, error="Result is not a real number", error_code="NOT_REAL")
            value = sp.re(value) if value.is_real is not True else value
            exact = expr if expr.is_Integer else value
            result = format_result(exact, self.precision)
        except (TypeError, ValueError, ArithmeticError) as e:
            return EvalResult(success=False, error=f"Evaluation failed: {e}", error_code="EVAL_ERROR")

        with self._lock:
            self._variables["ans"] = expr if expr.is_Integer else value
        return EvalResult(success=True, result=result)

    def evaluate_bounded(self, expression: str) -> EvalResult:
        """Evaluate ``expression`` in a child process, blocking for at most ``timeout``."""
        process, reader = self._start_child(expression)
        try:
            ready = reader.poll(self.timeout)
            return self._collect(process, reader, ready, expression)
        finally:
            _stop_child(process, reader)

    async def evaluate(self, expression: str) -> EvalResult:
        """Evaluate ``expression`` in a child process without blocking the running loop."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        process, reader = self._start_child(expression)
        try:
            while not reader.poll():
                if loop.time() >= deadline:
                    return self._collect(process, reader, False, expression)
                await asyncio.sleep(POLL_INTERVAL)
            return self._collect(process, reader, True, expression)
        finally:
            _stop_child(process, reader)

    def _start_child(
        self, expression: str
    ) -> tuple[multiprocessing.process.BaseProcess, Connection]:
        context = _process_context()
        reader, writer = context.Pipe(duplex=False)
        with self._lock:
            variables = dict(self._variables)
        process = context.Process(
            target=_child_main,
            args=(writer, expression, self._angle_mode, self.precision, self.timeout, variables),
            daemon=True,
        )
        process.start()
        # The child holds the only write end, so a crash shows up as EOF.
        writer.close()
        return process, reader

    def _collect(
        self,
        process: multiprocessing.process.BaseProcess,
        reader: Connection,
        ready: bool,
        expression: str,
    ) -> EvalResult:
        if not ready:
            logger.warning(
                "Evaluation timed out after %ss: %s",
                self.timeout,
                expression[:100],
                extra={"error_code": "TIMEOUT"},
            )
            return EvalResult(
                success=False,
                error=f"Evaluation timed out after {self.timeout}s",
                error_code="TIMEOUT",
            )
        try:
            result, ans = reader.recv()
        except EOFError:
            process.join(timeout=1.0)
            logger.error(
                "Evaluation process exited without a result (exit code %s)",
                process.exitcode,
                extra={"error_code": "WORKER_FAILURE"},
            )
            return EvalResult(
                success=False,
                error="Evaluation process failed",
                error_code="WORKER_FAILURE",
            )
        if result.success and ans is not None:
            with self._lock:
                self._variables["ans"] = ans
        return result


def _process_context() -> multiprocessing.context.BaseContext:
    # fork avoids re-importing SymPy per evaluation; elsewhere keep the default.
    if sys.platform.startswith("linux"):
        return multiprocessing.get_context("fork")
    return multiprocessing.get_context()


def _limit_resources(timeout: float) -> None:
    """Cap the child's CPU time a little above the wall-clock limit (Unix only)."""
    if not HAS_RESOURCE:
        return
    seconds = math.ceil(timeout) + 1
    try:
        resource.setrlimit(resource.RLIMIT_CPU, (seconds, seconds + 1))
    except (OSError, ValueError) as e:
        logger.debug("Could not set CPU limit: %s", e)


def _child_main(
    writer: Connection,
    expression: str,
    angle_mode: str,
    precision: int,
    timeout: float,
    variables: dict[str, sp.Basic],
) -> None:
    # A handler inherited from the parent would only run between bytecodes.
    signal.signal(signal.SIGTERM, signal.SIG_DFL)
    _limit_resources(timeout)
    evaluator = SympyEvaluator(angle_mode=angle_mode, timeout=timeout, precision=precision)
    evaluator._variables.update(variables)
    try:
        result = evaluator.evaluate_sync(expression)
    except MemoryError:
        result = EvalResult(success=False, error="Out of memory", error_code="RESOURCE_LIMIT")
    ans = evaluator._variables.get("ans") if result.success else None
    writer.send((result, ans))
    writer.close()


def _stop_child(process: multiprocessing.process.BaseProcess, reader: Connection) -> None:
    reader.close()
    if process.is_alive():
        process.terminate()
    process.join(timeout=1.0)
    if process.is_alive():
        process.kill()
        process.join()
