"""
Tests for typed parameter inference from raw strings.

Covers the parse cascade, WHERE clause analysis, field-set validation and
the round trip through generate_select_statement().
"""

import unittest
import uuid
from datetime import datetime
from decimal import Decimal

from parameter_inference import (
    ValueKind,
    describe_parameters,
    extract_field_name,
    extract_where_conditions,
    generate_parameters,
    infer_value,
)
from schema_model import ColumnInfo, DatabaseInfo, TableInfo
from sql_generator import QueryParameter, generate_select_statement


class TestInferValue(unittest.TestCase):
    """Parse cascade, one kind at a time."""

    def assertInferred(self, raw, kind, value):
        inferred = infer_value(raw)
        self.assertIs(inferred.kind, kind, raw)
        self.assertEqual(inferred.value, value, raw)
        self.assertIs(type(inferred.value), type(value), raw)

    def test_integer(self):
        self.assertInferred("42", ValueKind.INTEGER, 42)
        self.assertInferred("-7", ValueKind.INTEGER, -7)
        self.assertInferred(" 30 ", ValueKind.INTEGER, 30)

    def test_integer_out_of_int32_range_is_decimal(self):
        self.assertInferred("2147483648", ValueKind.DECIMAL, Decimal("2147483648"))
        self.assertInferred("2147483647", ValueKind.INTEGER, 2147483647)

    def test_decimal(self):
        self.assertInferred("99.99", ValueKind.DECIMAL, Decimal("99.99"))
        self.assertInferred("36.6", ValueKind.DECIMAL, Decimal("36.6"))
        self.assertInferred("1,000.5", ValueKind.DECIMAL, Decimal("1000.5"))
        self.assertInferred(".5", ValueKind.DECIMAL, Decimal(".5"))

    def test_float(self):
        self.assertInferred("1e5", ValueKind.FLOAT, 100000.0)
        self.assertInferred("-2.5E-3", ValueKind.FLOAT, -0.0025)
        self.assertInferred("Infinity", ValueKind.FLOAT, float("inf"))

    def test_float_nan(self):
        inferred = infer_value("NaN")
        self.assertIs(inferred.kind, ValueKind.FLOAT)
        self.assertNotEqual(inferred.value, inferred.value)

    def test_huge_number_falls_through_to_float(self):
        inferred = infer_value("9" * 40)
        self.assertIs(inferred.kind, ValueKind.FLOAT)

    def test_datetime(self):
        self.assertInferred("2023-10-01T12:00:00", ValueKind.DATETIME, datetime(2023, 10, 1, 12, 0, 0))
        self.assertInferred("2023-10-01 12:00:00", ValueKind.DATETIME, datetime(2023, 10, 1, 12, 0, 0))
        self.assertInferred("2023-10-01", ValueKind.DATETIME, datetime(2023, 10, 1))
        self.assertInferred("10/01/2023", ValueKind.DATETIME, datetime(2023, 10, 1))

    def test_boolean(self):
        self.assertInferred("true", ValueKind.BOOLEAN, True)
        self.assertInferred("False", ValueKind.BOOLEAN, False)
        self.assertInferred("TRUE", ValueKind.BOOLEAN, True)

    def test_guid(self):
        guid = uuid.UUID("550e8400-e29b-41d4-a716-446655440000")
        self.assertInferred("550e8400-e29b-41d4-a716-446655440000", ValueKind.GUID, guid)
        self.assertInferred("{550e8400-e29b-41d4-a716-446655440000}", ValueKind.GUID, guid)
        self.assertInferred("550e8400e29b41d4a716446655440000", ValueKind.GUID, guid)

    def test_quoted_text(self):
        self.assertInferred("'Value1'", ValueKind.TEXT, "Value1")
        self.assertInferred("'O''Reilly'", ValueKind.TEXT, "O'Reilly")
        self.assertInferred("''", ValueKind.TEXT, "")

    def test_quoted_number_is_text(self):
        self.assertInferred("'30'", ValueKind.TEXT, "30")

    def test_null(self):
        self.assertInferred("NULL", ValueKind.NULL, None)
        self.assertInferred("null", ValueKind.NULL, None)

    def test_raw(self):
        self.assertInferred("Value1", ValueKind.RAW, "Value1")
        self.assertInferred("John Doe", ValueKind.RAW, "John Doe")
        self.assertInferred("'unterminated", ValueKind.RAW, "'unterminated")

    def test_integer_wins_over_text(self):
        self.assertIs(infer_value("30").kind, ValueKind.INTEGER)


class TestWhereAnalysis(unittest.TestCase):

    def test_conditions_from_generated_statement(self):
        sql = (
            "USE [Db];\n"
            "SELECT [T].[A] AS [T.A]\n"
            "FROM [Db].[dbo].[T] AS [T]\n"
            "WHERE [T].[A] = 'x' AND [T].[B] IS NULL\n"
        )
        self.assertEqual(extract_where_conditions(sql), ["[T].[A] = 'x'", "[T].[B] IS NULL"])

    def test_where_is_case_insensitive(self):
        self.assertEqual(extract_where_conditions("select * from t where a = 1"), ["a = 1"])

    def test_no_where(self):
        self.assertEqual(extract_where_conditions("SELECT * FROM Users"), [])
        self.assertEqual(extract_where_conditions(""), [])

    def test_trailing_comment_does_not_hide_where(self):
        sql = "SELECT * FROM Users WHERE Name = @Name;\n-- generated"
        self.assertEqual(extract_where_conditions(sql), ["Name = @Name"])
        self.assertEqual(generate_parameters(sql, {"Name": "John"}), {"@Name": "John"})

    def test_trailing_batch_separator(self):
        sql = "USE [Db];\nSELECT * FROM [T] WHERE [T].[A] = 1 AND [T].[B] = 2;\nGO\n"
        self.assertEqual(extract_where_conditions(sql), ["[T].[A] = 1", "[T].[B] = 2"])

    def test_field_name_forms(self):
        self.assertEqual(extract_field_name("[Users].[Name] = 'x'"), "Name")
        self.assertEqual(extract_field_name("[Test Table].[Column Name] IS NULL"), "Column Name")
        self.assertEqual(extract_field_name("[Name] = 'x'"), "Name")
        self.assertEqual(extract_field_name("Name = @Name"), "Name")
        self.assertEqual(extract_field_name("Age>30"), "Age")


class TestGenerateParameters(unittest.TestCase):

    def test_empty_when_no_parameters(self):
        self.assertEqual(generate_parameters("SELECT * FROM Users", {}), {})

    def test_empty_when_sql_blank(self):
        self.assertEqual(generate_parameters("   ", {"Name": "x"}), {})
        self.assertEqual(generate_parameters(None, {"Name": "x"}), {})

    def test_string_parameter(self):
        result = generate_parameters("SELECT * FROM Users WHERE Name = @Name", {"Name": "John Doe"})
        self.assertEqual(result, {"@Name": "John Doe"})

    def test_int_parameters(self):
        result = generate_parameters(
            "SELECT * FROM Users WHERE Id = @Id AND Age = @Age", {"Id": "123", "Age": "30"}
        )
        self.assertEqual(result, {"@Id": 123, "@Age": 30})

    def test_all_types(self):
        sql = (
            "SELECT * FROM MixedTypes WHERE StringParam = @StringParam AND IntParam = @IntParam "
            "AND DateTimeParam = @DateTimeParam AND BoolParam = @BoolParam "
            "AND DecimalParam = @DecimalParam AND DoubleParam = @DoubleParam AND GuidParam = @GuidParam"
        )
        values = {
            "StringParam": "Test",
            "IntParam": "42",
            "DateTimeParam": "2023-10-01T12:00:00",
            "BoolParam": "true",
            "DecimalParam": "99.99",
            "DoubleParam": "1.23456789e2",
            "GuidParam": "550e8400-e29b-41d4-a716-446655440000",
        }
        result = generate_parameters(sql, values)
        self.assertEqual(result, {
            "@StringParam": "Test",
            "@IntParam": 42,
            "@DateTimeParam": datetime(2023, 10, 1, 12, 0, 0),
            "@BoolParam": True,
            "@DecimalParam": Decimal("99.99"),
            "@DoubleParam": 123.456789,
            "@GuidParam": uuid.UUID("550e8400-e29b-41d4-a716-446655440000"),
        })

    def test_keys_with_at_prefix(self):
        result = generate_parameters("SELECT * FROM Users WHERE Id = @Id", {"@Id": "5"})
        self.assertEqual(result, {"@Id": 5})

    def test_field_match_is_case_insensitive(self):
        result = generate_parameters("SELECT * FROM T WHERE [T].[UserName] = 'x'", {"username": "x"})
        self.assertEqual(result, {"@username": "x"})

    def test_count_mismatch(self):
        with self.assertRaises(ValueError) as ctx:
            generate_parameters("SELECT * FROM Users WHERE Id = @Id AND Age = @Age", {"Id": "1"})
        self.assertIn("count mismatch", str(ctx.exception))
        self.assertIn("2 WHERE condition(s)", str(ctx.exception))

    def test_values_without_where(self):
        with self.assertRaises(ValueError):
            generate_parameters("SELECT * FROM Users", {"Id": "1"})

    def test_field_mismatch_names_both_sides(self):
        with self.assertRaises(ValueError) as ctx:
            generate_parameters(
                "SELECT * FROM Users WHERE Id = @Id AND Age = @Age", {"Id": "1", "Name": "x"}
            )
        message = str(ctx.exception)
        self.assertIn("Missing fields: Age", message)
        self.assertIn("Extra fields: Name", message)


class TestRoundTrip(unittest.TestCase):

    def setUp(self):
        table = TableInfo(1, "T", [ColumnInfo(1, "Col1", 1), ColumnInfo(2, "Col2", 1)])
        self.db = DatabaseInfo(name="Db", tables=[table])

    def test_generated_statement_round_trips(self):
        sql = generate_select_statement(
            self.db.tables[0].columns, self.db,
            [QueryParameter("T", "Col1", "Value1"), QueryParameter("T", "Col2", 42)],
        )
        result = generate_parameters(sql, {"Col1": "Value1", "Col2": "42"})
        self.assertEqual(result, {"@Col1": "Value1", "@Col2": 42})
        self.assertIsInstance(result["@Col2"], int)

    def test_is_null_condition_round_trips(self):
        sql = generate_select_statement(
            self.db.tables[0].columns, self.db,
            [QueryParameter("T", "Col1", None), QueryParameter("T", "Col2", True)],
        )
        result = generate_parameters(sql, {"Col1": "NULL", "Col2": "true"})
        self.assertEqual(result, {"@Col1": None, "@Col2": True})

    def test_describe_parameters(self):
        kinds = describe_parameters({"Col1": "Value1", "@Col2": "42"})
        self.assertEqual(kinds, {"@Col1": "raw", "@Col2": "integer"})


if __name__ == "__main__":
    unittest.main()
