"""Centralized configuration for typecalc.

This module defines:
- Timing for the edit buffer (error recovery delay)
- Rewrite bounds for the notation transformer
- Evaluator limits (timeout, input length, output precision)
- Glyph tables shared by the buffer and the transformer
- Allowed SymPy functions and transformations
- Regex patterns for notation rewriting and evaluation preprocessing

Configuration can be overridden via:
- CLI flags (see cli.py)
- Environment variables (prefixed with TYPECALC_)
"""

import os
import re

import sympy as sp
from sympy.parsing.sympy_parser import (
    convert_xor,
    implicit_multiplication_application,
    standard_transformations,
)

try:
    import importlib.metadata

    VERSION = importlib.metadata.version("typecalc")
except Exception:
    # Fallback if package not installed
    VERSION = "0.1.0"

# Edit buffer
ERROR_CLEAR_DELAY = float(
    os.getenv("TYPECALC_ERROR_CLEAR_DELAY", "2.0")
)  # seconds the "Error" sentinel stays visible
ERROR_SENTINEL = "Error"

# Notation transformer
FRACTION_MAX_PASSES = int(
    os.getenv("TYPECALC_FRACTION_MAX_PASSES", "3")
)  # nesting depth handled by fraction rewriting
ZERO_GLYPH = "0"

# Evaluator
EVALUATOR_TIMEOUT = float(os.getenv("TYPECALC_EVALUATOR_TIMEOUT", "10"))
OUTPUT_PRECISION = int(
    os.getenv("TYPECALC_OUTPUT_PRECISION", "12")
)  # significant digits
MAX_INPUT_LENGTH = int(os.getenv("TYPECALC_MAX_INPUT_LENGTH", "1000"))  # characters
DEFAULT_ANGLE_MODE = os.getenv("TYPECALC_DEFAULT_ANGLE_MODE", "deg")
ANGLE_MODES = ("deg", "rad", "grad")
POLL_INTERVAL = 0.01  # seconds between checks on a running evaluation

# Logging
LOG_LEVEL = os.getenv("TYPECALC_LOG_LEVEL", "WARNING")
LOG_FILE = os.getenv("TYPECALC_LOG_FILE") or None

# Rendering
RENDER_DPI = int(os.getenv("TYPECALC_RENDER_DPI", "120"))

# Glyphs
MULTIPLY_GLYPH = "×"
DIVIDE_GLYPH = "÷"
MINUS_GLYPH = "−"
BACKSPACE_GLYPH = "⌫"
SIGN_TOGGLE_GLYPH = "±"
OPERATOR_GLYPHS = frozenset({"+", "-", MINUS_GLYPH, MULTIPLY_GLYPH, DIVIDE_GLYPH, "%"})

# Display glyph -> evaluator token
EVALUATOR_TOKENS = {
    MULTIPLY_GLYPH: "*",
    DIVIDE_GLYPH: "/",
    MINUS_GLYPH: "-",
}

# Function name -> (template) for notation rewriting; "{}" is the argument
FUNCTION_TEMPLATES = {
    "sqrt": r"\sqrt{{{}}}",
    "sin": r"\sin({})",
    "cos": r"\cos({})",
    "tan": r"\tan({})",
    "asin": r"\arcsin({})",
    "acos": r"\arccos({})",
    "atan": r"\arctan({})",
    "log": r"\log({})",
    "ln": r"\ln({})",
    "abs": "|{}|",
    "exp": "e^{{{}}}",
}

# Literal glyph -> markup
SYMBOL_MARKUP = {
    MULTIPLY_GLYPH: r" \times ",
    "*": r" \times ",
    DIVIDE_GLYPH: r" \div ",
    "π": r"\pi",
    "∞": r"\infty",
    "≤": r"\leq",
    "≥": r"\geq",
    "≠": r"\neq",
    MINUS_GLYPH: "-",
}

# Call syntax name(arg) is never a fraction operand; function wrapping handles it
_OPERAND = r"(?<![A-Za-z])\([^()]+\)|\d+(?:\.\d*)?|\.\d+|[a-zA-Z]+(?![A-Za-z(])"
FRACTION_REGEX = re.compile(rf"({_OPERAND})\s*/\s*({_OPERAND})")
OUTER_PARENS_REGEX = re.compile(r"^\((.+)\)$")
FUNCTION_REGEX = re.compile(
    r"(?<![A-Za-z\\])(" + "|".join(FUNCTION_TEMPLATES) + r")\(([^()]+)\)"
)
POWER_DIGITS_REGEX = re.compile(r"\^(\d+)")
POWER_GROUP_REGEX = re.compile(r"\^\(([^()]+)\)")
PI_WORD_REGEX = re.compile(r"(?<!\\)\bpi\b")

PERCENT_REGEX = re.compile(r"(\d+(?:\.\d+)?)%(?![\d.(A-Za-z])")

ALLOWED_SYMPY_NAMES = {
    "pi": sp.pi,
    "PI": sp.pi,
    "E": sp.E,
    "e": sp.E,
    "sqrt": sp.sqrt,
    "ln": sp.log,
    "exp": sp.exp,
    "abs": sp.Abs,
    "Abs": sp.Abs,
    "factorial": sp.factorial,
    "Mod": sp.Mod,
}

TRANSFORMATIONS = standard_transformations + (
    implicit_multiplication_application,
    convert_xor,
)
