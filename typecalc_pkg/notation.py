"""Infix expression to typeset markup.

The rewriting is done with bounded regex substitution rather than a parser:

- fractions nest correctly up to ``FRACTION_MAX_PASSES`` levels
- function arguments and parenthesized exponents must not contain
  parentheses themselves, otherwise they are left as literal text

Anything that cannot be restructured passes through unchanged, so
``to_latex`` never raises.
"""

from __future__ import annotations

import math
import re

from .config import (
    FRACTION_MAX_PASSES,
    FRACTION_REGEX,
    FUNCTION_REGEX,
    FUNCTION_TEMPLATES,
    OUTER_PARENS_REGEX,
    PI_WORD_REGEX,
    POWER_DIGITS_REGEX,
    POWER_GROUP_REGEX,
    SYMBOL_MARKUP,
    ZERO_GLYPH,
)

_SYMBOL_REGEX = re.compile("|".join(re.escape(glyph) for glyph in SYMBOL_MARKUP))


def _strip_parens(operand: str) -> str:
    return OUTER_PARENS_REGEX.sub(r"\1", operand)


def _fraction(match: re.Match) -> str:
    numerator = _strip_parens(match.group(1))
    denominator = _strip_parens(match.group(2))
    return rf"\frac{{{numerator}}}{{{denominator}}}"


def convert_fractions(expr: str, max_passes: int = FRACTION_MAX_PASSES) -> str:
    """Rewrite ``a/b`` spans as ``\\frac{a}{b}``.

    Operands are a parenthesized group without nested parentheses, a
    number or a bare identifier. Each pass rewrites the innermost layer
    that is visible to the pattern; passes stop early once nothing changes.

    Args:
        expr: Expression text (e.g., "(2+3)/(5-1)")
        max_passes: Upper bound on rewrite passes

    Returns:
        Text with fractions converted (e.g., "\\frac{2+3}{5-1}")
    """
    result = expr
    for _ in range(max_passes):
        previous = result
        result = FRACTION_REGEX.sub(_fraction, result)
        if result == previous:
            break
    return result


def _function(match: re.Match) -> str:
    return FUNCTION_TEMPLATES[match.group(1)].format(match.group(2))


def wrap_functions(expr: str) -> str:
    """Rewrite ``name(arg)`` calls into their typeset form (single pass)."""
    return FUNCTION_REGEX.sub(_function, expr)


def brace_powers(expr: str) -> str:
    """Brace ``^123`` and ``^(a+b)`` exponents; other ``^x`` stays as is."""
    result = POWER_DIGITS_REGEX.sub(r"^{\1}", expr)
    return POWER_GROUP_REGEX.sub(r"^{\1}", result)


def substitute_symbols(expr: str) -> str:
    """Replace display glyphs and constants with their markup equivalents.

    The identifier ``e`` is already valid markup and is left alone.
    """
    result = PI_WORD_REGEX.sub(lambda _: r"\pi", expr)
    return _SYMBOL_REGEX.sub(lambda m: SYMBOL_MARKUP[m.group(0)], result)


def to_latex(expression: str) -> str:
    """Convert an infix expression to typeset markup.

    Total and pure: malformed input yields malformed-but-valid text, never an
    exception. Factorials (``5!``, ``n!``) need no rewriting.

    Args:
        expression: Buffer text (e.g., "3/4", "sin(30)", "2^(3+4)")

    Returns:
        Non-empty markup string (e.g., "\\frac{3}{4}", "\\sin(30)", "2^{3+4}")

    Example:
        >>> to_latex("(2+3)/(5-1)")
        '\\\\frac{2+3}{5-1}'
        >>> to_latex("")
        '0'
    """
    if not expression or expression == ZERO_GLYPH:
        return ZERO_GLYPH

    latex = convert_fractions(expression)
    latex = wrap_functions(latex)
    latex = brace_powers(latex)
    latex = substitute_symbols(latex)
    return latex or ZERO_GLYPH


def result_to_latex(value: float) -> str:
    """Format a numeric result, switching to scientific notation when needed.

    Magnitudes above 1e6, or non-zero magnitudes below 1e-6, are written as
    ``m.mm \\times 10^{k}``.

    Args:
        value: Numeric result (e.g., 1234567.0)

    Returns:
        Markup string (e.g., "1.23 \\times 10^{6}")
    """
    if not math.isfinite(value):
        if math.isnan(value):
            return r"\mathrm{NaN}"
        return r"\infty" if value > 0 else r"-\infty"
    magnitude = abs(value)
    if magnitude > 1e6 or (magnitude < 1e-6 and value != 0):
        exponent = math.floor(math.log10(magnitude))
        mantissa = value / 10**exponent
        return f"{mantissa:.2f} \\times 10^{{{exponent}}}"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))
