"""Unit tests for the notation transformer."""

import unittest

from typecalc_pkg.notation import (
    brace_powers,
    convert_fractions,
    result_to_latex,
    substitute_symbols,
    to_latex,
    wrap_functions,
)


class TestZeroGuard(unittest.TestCase):
    def test_empty_and_zero(self):
        self.assertEqual(to_latex(""), "0")
        self.assertEqual(to_latex("0"), "0")

    def test_leading_zero_not_short_circuited(self):
        self.assertEqual(to_latex("05"), "05")


class TestFractions(unittest.TestCase):
    """Test fraction conversion."""

    def test_simple_fraction(self):
        self.assertEqual(to_latex("3/4"), r"\frac{3}{4}")

    def test_parenthesized_operands_are_stripped(self):
        self.assertEqual(to_latex("(2+3)/(5-1)"), r"\frac{2+3}{5-1}")

    def test_identifiers_and_decimals(self):
        self.assertEqual(to_latex("x/y"), r"\frac{x}{y}")
        self.assertEqual(to_latex("1.5/2"), r"\frac{1.5}{2}")

    def test_spaces_around_slash(self):
        self.assertEqual(convert_fractions("1 / 2"), r"\frac{1}{2}")

    def test_two_fractions(self):
        self.assertEqual(to_latex("1/2+3/4"), r"\frac{1}{2}+\frac{3}{4}")

    def test_nested_fraction(self):
        self.assertEqual(to_latex("(1/2)/3"), r"\frac{\frac{1}{2}}{3}")

    def test_nesting_beyond_pass_bound_is_left_partial(self):
        expr = "(((1/2)/3)/4)/5"
        partial = to_latex(expr)
        self.assertIn("1/2", partial)
        self.assertTrue(partial.startswith(r"\frac{\frac{\frac{"))
        self.assertNotIn("/", convert_fractions(expr, max_passes=4))

    def test_function_call_is_not_an_operand(self):
        self.assertEqual(to_latex("sqrt(4)/2"), r"\sqrt{4}/2")
        self.assertEqual(to_latex("abs(-5)/3"), "|-5|/3")
        self.assertEqual(to_latex("2/sqrt(4)"), r"2/\sqrt{4}")
        self.assertEqual(to_latex("log(10/2)"), r"\log(\frac{10}{2})")

    def test_stops_early_when_unchanged(self):
        self.assertEqual(convert_fractions("1+2"), "1+2")


class TestFunctions(unittest.TestCase):
    """Test named-function wrapping."""

    def test_trig(self):
        self.assertEqual(to_latex("sin(30)"), r"\sin(30)")
        self.assertEqual(to_latex("cos(x)"), r"\cos(x)")
        self.assertEqual(to_latex("tan(45)"), r"\tan(45)")

    def test_inverse_trig_uses_arc_macros(self):
        self.assertEqual(to_latex("asin(1)"), r"\arcsin(1)")
        self.assertEqual(to_latex("acos(0)"), r"\arccos(0)")
        self.assertEqual(to_latex("atan(1)"), r"\arctan(1)")

    def test_radical_logs_and_exp(self):
        self.assertEqual(to_latex("sqrt(16)"), r"\sqrt{16}")
        self.assertEqual(to_latex("log(100)"), r"\log(100)")
        self.assertEqual(to_latex("ln(5)"), r"\ln(5)")
        self.assertEqual(to_latex("exp(2)"), "e^{2}")

    def test_abs_uses_vertical_bars(self):
        self.assertEqual(to_latex("abs(-5)"), "|-5|")

    def test_nested_parentheses_are_left_literal(self):
        self.assertEqual(wrap_functions("sin((1+2))"), "sin((1+2))")

    def test_inner_call_is_rewritten_outer_is_not(self):
        self.assertEqual(wrap_functions("sin(cos(30))"), r"sin(\cos(30))")

    def test_unknown_function_untouched(self):
        self.assertEqual(to_latex("sinh(2)"), "sinh(2)")


class TestPowers(unittest.TestCase):
    def test_digit_exponent(self):
        self.assertEqual(to_latex("2^10"), "2^{10}")

    def test_group_exponent(self):
        self.assertEqual(to_latex("2^(3+4)"), "2^{3+4}")

    def test_single_letter_exponent_unbraced(self):
        self.assertEqual(brace_powers("x^y"), "x^y")

    def test_nested_group_exponent_untouched(self):
        self.assertEqual(brace_powers("2^((1))"), "2^((1))")


class TestSymbols(unittest.TestCase):
    def test_multiplication_and_division(self):
        self.assertEqual(to_latex("2×3"), r"2 \times 3")
        self.assertEqual(to_latex("2*3"), r"2 \times 3")
        self.assertEqual(to_latex("8÷2"), r"8 \div 2")

    def test_pi(self):
        self.assertEqual(to_latex("pi"), r"\pi")
        self.assertEqual(to_latex("π"), r"\pi")
        self.assertEqual(to_latex("2×pi"), r"2 \times \pi")
        self.assertEqual(substitute_symbols("pin"), "pin")

    def test_pi_substitution_is_idempotent(self):
        once = substitute_symbols("pi+π")
        self.assertEqual(once, r"\pi+\pi")
        self.assertEqual(substitute_symbols(once), once)

    def test_e_unchanged(self):
        self.assertEqual(to_latex("e"), "e")

    def test_relations_and_infinity(self):
        self.assertEqual(to_latex("∞"), r"\infty")
        self.assertEqual(to_latex("x≤1"), r"x\leq1")
        self.assertEqual(to_latex("x≥1"), r"x\geq1")
        self.assertEqual(to_latex("x≠1"), r"x\neq1")

    def test_factorial_passes_through(self):
        self.assertEqual(to_latex("5!"), "5!")
        self.assertEqual(to_latex("n!"), "n!")


class TestTotality(unittest.TestCase):
    def test_never_empty_never_raises(self):
        samples = [
            "(", ")", "/", "//", "^", "^(", "sqrt(", "((((", "1/", "/2",
            "×÷", "abc", " ", "\\", "{}", "$", "-", "5+", "Error", "1..2",
        ]
        for sample in samples:
            with self.subTest(sample=sample):
                result = to_latex(sample)
                self.assertIsInstance(result, str)
                self.assertTrue(result)

    def test_deterministic(self):
        self.assertEqual(to_latex("sqrt(2)^(1/2)"), to_latex("sqrt(2)^(1/2)"))


class TestResultToLatex(unittest.TestCase):
    def test_plain_numbers(self):
        self.assertEqual(result_to_latex(4.0), "4")
        self.assertEqual(result_to_latex(0.5), "0.5")
        self.assertEqual(result_to_latex(0), "0")

    def test_scientific_notation(self):
        self.assertEqual(result_to_latex(1234567.0), r"1.23 \times 10^{6}")
        self.assertEqual(result_to_latex(-2000000.0), r"-2.00 \times 10^{6}")
        self.assertEqual(result_to_latex(2.5e-7), r"2.50 \times 10^{-7}")

    def test_non_finite(self):
        self.assertEqual(result_to_latex(float("inf")), r"\infty")


if __name__ == "__main__":
    unittest.main()
