"""
Tests for SQL literal rendering.
"""

import unittest
import uuid
from datetime import date, datetime
from decimal import Decimal

from literal_formatter import LiteralKind, classify_literal, format_literal


class TestClassifyLiteral(unittest.TestCase):

    def test_kinds(self):
        cases = [
            ("text", LiteralKind.TEXT),
            ("", LiteralKind.TEXT),
            (True, LiteralKind.BOOLEAN),
            (False, LiteralKind.BOOLEAN),
            (datetime(2024, 1, 2, 3, 4, 5), LiteralKind.DATETIME),
            (date(2024, 1, 2), LiteralKind.DATETIME),
            (42, LiteralKind.NUMERIC),
            (1.5, LiteralKind.NUMERIC),
            (Decimal("99.99"), LiteralKind.NUMERIC),
            (None, LiteralKind.NULL),
            (uuid.UUID(int=1), LiteralKind.FALLBACK),
            (object(), LiteralKind.FALLBACK),
        ]
        for value, expected in cases:
            with self.subTest(value=value):
                self.assertIs(classify_literal(value), expected)

    def test_bool_is_not_numeric(self):
        self.assertIs(classify_literal(True), LiteralKind.BOOLEAN)


class TestFormatLiteral(unittest.TestCase):

    def test_text_is_quoted(self):
        self.assertEqual(format_literal("Value1"), "'Value1'")

    def test_quotes_are_doubled(self):
        self.assertEqual(format_literal("O'Reilly"), "'O''Reilly'")
        self.assertEqual(format_literal("''"), "''''''")

    def test_booleans(self):
        self.assertEqual(format_literal(True), "1")
        self.assertEqual(format_literal(False), "0")

    def test_datetime_drops_fraction(self):
        value = datetime(2023, 10, 1, 23, 5, 9, 999999)
        self.assertEqual(format_literal(value), "'2023-10-01 23:05:09'")

    def test_date_renders_at_midnight(self):
        self.assertEqual(format_literal(date(2023, 10, 1)), "'2023-10-01 00:00:00'")

    def test_numbers_unquoted(self):
        self.assertEqual(format_literal(42), "42")
        self.assertEqual(format_literal(-7), "-7")
        self.assertEqual(format_literal(36.6), "36.6")
        self.assertEqual(format_literal(Decimal("99.990")), "99.990")

    def test_guid_unquoted(self):
        guid = uuid.UUID("550e8400-e29b-41d4-a716-446655440000")
        self.assertEqual(format_literal(guid), "550e8400-e29b-41d4-a716-446655440000")

    def test_fallback_uses_str(self):
        class Code:
            def __str__(self):
                return "X-1"

        self.assertEqual(format_literal(Code()), "X-1")

    def test_null(self):
        self.assertEqual(format_literal(None), "NULL")


if __name__ == "__main__":
    unittest.main()
