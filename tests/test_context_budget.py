"""
Metatron Test Suite — Context Budget Monitor
==============================================
Usage:
    python -m pytest tests/test_context_budget.py -v
"""
import sys
import os
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from metatron.context_budget import (
    context_usage, estimate_tokens,
    SEVERITY_NONE, SEVERITY_WARNING, SEVERITY_CRITICAL,
)

MAX_TOKENS = 128000


class TestTokenEstimation(unittest.TestCase):

    def test_plain_division(self):
        self.assertEqual(estimate_tokens("1234"), 1)
        self.assertEqual(estimate_tokens("123456"), 1.5)

    def test_empty_string(self):
        self.assertEqual(estimate_tokens(""), 0)


class TestContextUsage(unittest.TestCase):

    def test_small_context_needs_no_warning(self):
        usage = context_usage("Overall task: x\n\n", MAX_TOKENS)
        self.assertEqual(usage.severity, SEVERITY_NONE)
        self.assertFalse(usage.needs_warning)

    def test_warning_above_eighty_percent(self):
        usage = context_usage("a" * 410_000, MAX_TOKENS)
        self.assertEqual(usage.estimated_tokens, 102_500)
        self.assertAlmostEqual(usage.percent, 80.078125)
        self.assertEqual(usage.severity, SEVERITY_WARNING)
        self.assertTrue(usage.needs_warning)
        self.assertFalse(usage.is_critical)

    def test_exactly_eighty_percent_is_not_a_warning(self):
        usage = context_usage("a" * 409_600, MAX_TOKENS)
        self.assertEqual(usage.severity, SEVERITY_NONE)

    def test_critical_at_ninety_five_percent(self):
        usage = context_usage("a" * 486_400, MAX_TOKENS)
        self.assertEqual(usage.severity, SEVERITY_CRITICAL)
        self.assertTrue(usage.is_critical)

    def test_just_below_critical(self):
        usage = context_usage("a" * 486_396, MAX_TOKENS)
        self.assertEqual(usage.severity, SEVERITY_WARNING)

    def test_over_the_limit_stays_critical(self):
        usage = context_usage("a" * 600_000, MAX_TOKENS)
        self.assertEqual(usage.severity, SEVERITY_CRITICAL)
        self.assertGreater(usage.percent, 100)

    def test_ceiling_is_a_parameter(self):
        text = "a" * 120_000  # 30,000 tokens
        self.assertEqual(context_usage(text, MAX_TOKENS).severity, SEVERITY_NONE)
        self.assertEqual(context_usage(text, 32768).severity, SEVERITY_WARNING)

    def test_non_positive_ceiling_rejected(self):
        with self.assertRaises(ValueError):
            context_usage("abc", 0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
