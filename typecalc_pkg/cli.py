from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from .api import Session, evaluate
from .config import (
    ANGLE_MODES,
    BACKSPACE_GLYPH,
    DEFAULT_ANGLE_MODE,
    DIVIDE_GLYPH,
    EVALUATOR_TIMEOUT,
    LOG_FILE,
    LOG_LEVEL,
    MINUS_GLYPH,
    MULTIPLY_GLYPH,
    SIGN_TOGGLE_GLYPH,
    VERSION,
)
from .display import MathtextRenderSink, TerminalRenderSink
from .evaluator import SympyEvaluator
from .logging_config import get_logger, setup_logging
from .notation import to_latex
from .types import BufferState, EditEvent, ValidationError

logger = get_logger("cli")

# Keyboard key -> edit event
KEYMAP = {
    "c": EditEvent.clear(),
    "C": EditEvent.clear(),
    "b": EditEvent.backspace(),
    BACKSPACE_GLYPH: EditEvent.backspace(),
    "s": EditEvent.sign_toggle(),
    SIGN_TOGGLE_GLYPH: EditEvent.sign_toggle(),
    "=": EditEvent.commit(),
    ".": EditEvent.decimal(),
    "+": EditEvent.operator("+"),
    "-": EditEvent.operator("-"),
    MINUS_GLYPH: EditEvent.operator(MINUS_GLYPH),
    "%": EditEvent.operator("%"),
    "*": EditEvent.operator(MULTIPLY_GLYPH),
    "x": EditEvent.operator(MULTIPLY_GLYPH),
    MULTIPLY_GLYPH: EditEvent.operator(MULTIPLY_GLYPH),
    "/": EditEvent.operator(DIVIDE_GLYPH),
    DIVIDE_GLYPH: EditEvent.operator(DIVIDE_GLYPH),
}
KEYMAP.update({d: EditEvent.digit(d) for d in "0123456789"})


def parse_keys(keys: str) -> list[EditEvent]:
    """Translate a key sequence into edit events; whitespace is ignored.

    Raises:
        ValidationError: If a key has no mapping
    """
    events = []
    for position, key in enumerate(keys):
        if key.isspace():
            continue
        if key not in KEYMAP:
            raise ValidationError(f"Unknown key {key!r} at position {position}", "UNKNOWN_KEY")
        events.append(KEYMAP[key])
    return events


async def feed_keys(session: Session, keys: str) -> None:
    for event in parse_keys(keys):
        await session.buffer.dispatch(event)


def _emit(payload: dict[str, Any], output_format: str) -> None:
    if output_format == "json":
        print(json.dumps(payload, ensure_ascii=False))
        return
    for key, value in payload.items():
        print(f"{key}: {value}")


async def _run_keys(args: argparse.Namespace, output_format: str) -> int:
    sink = MathtextRenderSink(args.render) if args.render else None
    evaluator = SympyEvaluator(angle_mode=args.angle_mode, timeout=args.timeout)
    with Session(evaluator, sink=sink) as session:
        await feed_keys(session, args.keys)
        failed = session.buffer.state is BufferState.ERROR_DISPLAY
        payload: dict[str, Any] = {
            "buffer": session.buffer.text,
            "latex": session.latex,
            "state": session.buffer.state.value,
        }
        if sink is not None:
            payload["rendered"] = "image" if sink.last_image is not None else "text"
    _emit(payload, output_format)
    return 1 if failed else 0


async def repl_loop(angle_mode: str, timeout: float = EVALUATOR_TIMEOUT) -> int:
    """Interactive loop: every input line is a key sequence."""
    print(f"typecalc {VERSION} - type keys (digits . + - * / % = c b s), 'quit' to exit")
    loop = asyncio.get_running_loop()
    evaluator = SympyEvaluator(angle_mode=angle_mode, timeout=timeout)
    with Session(evaluator, sink=TerminalRenderSink()) as session:
        while True:
            try:
                line = await loop.run_in_executor(None, input, "> ")
            except (EOFError, KeyboardInterrupt):
                print()
                return 0
            line = line.strip()
            if line in ("quit", "exit"):
                return 0
            if line in ("deg", "rad", "grad"):
                evaluator.set_angle_mode(line)
                print(f"angle mode: {line}")
                continue
            if line == "vars":
                for name, value in evaluator.get_variables().items():
                    print(f"{name} = {value}")
                continue
            try:
                await feed_keys(session, line)
            except ValidationError as e:
                print(f"error: {e}")


def main_entry(argv: list[str] | None = None) -> int:
    """
    Main entry point for the typecalc CLI.

    Args:
        argv: Optional command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = argparse.ArgumentParser(prog="typecalc")
    parser.add_argument(
        "-k",
        "--keys",
        type=str,
        help="Feed a key sequence into a fresh buffer and print the result",
    )
    parser.add_argument(
        "-l", "--latex", type=str, help="Print the typeset markup for an expression"
    )
    parser.add_argument(
        "-e",
        "--eval",
        type=str,
        help="Evaluate one expression and exit (non-interactive)",
        dest="eval_expr",
    )
    parser.add_argument(
        "--angle-mode",
        type=str,
        choices=list(ANGLE_MODES),
        default=DEFAULT_ANGLE_MODE,
        help="Angle unit for trigonometric functions",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=float,
        default=EVALUATOR_TIMEOUT,
        help="Evaluation time limit in seconds",
    )
    parser.add_argument(
        "--render", type=str, help="With --keys, write the rendered display to this PNG file"
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["json", "human"],
        default="human",
        help="Output format: json (machine-readable) or human (human-readable)",
    )
    parser.add_argument(
        "-v", "--version", action="store_true", help="Show program version"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=LOG_LEVEL,
        help="Set logging level (default: TYPECALC_LOG_LEVEL or WARNING)",
    )
    parser.add_argument(
        "--log-file", type=str, default=LOG_FILE, help="Write logs to file"
    )
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level, log_file=args.log_file)

    if args.version:
        print(VERSION)
        return 0

    if args.latex is not None:
        _emit({"latex": to_latex(args.latex)}, args.format)
        return 0

    if args.eval_expr is not None:
        result = evaluate(
            args.eval_expr, angle_mode=args.angle_mode, timeout=args.timeout
        )
        if args.format == "json":
            print(json.dumps(result.to_dict(), ensure_ascii=False))
        elif result.success:
            print(result.result)
        else:
            print(f"Error: {result.error}", file=sys.stderr)
        return 0 if result.success else 1

    if args.keys is not None:
        try:
            return asyncio.run(_run_keys(args, args.format))
        except ValidationError as e:
            logger.debug("Rejected key sequence: %s", e.code)
            print(f"Error: {e}", file=sys.stderr)
            return 1

    return asyncio.run(repl_loop(args.angle_mode, args.timeout))


if __name__ == "__main__":
    sys.exit(main_entry())
