"""
Unit tests for record types
"""

import pickle

import pytest

from dvalueavg.errors import EmptyGroupInvariantViolation, MalformedRecordError
from dvalueavg.records import (
    Aggregate,
    AverageRow,
    CompositeKey,
    DeviceFact,
    ValueFact,
    parse_device_id,
    parse_value,
)


class TestFactParsing:
    """Tests for registry and values line parsing"""

    def test_parses_device_fact_ignoring_extra_fields(self):
        assert DeviceFact.parse("2,sensorA,extra") == DeviceFact(2, "sensorA")

    def test_parses_value_fact_keeping_value_as_text(self):
        fact = ValueFact.parse("3,2023-01-01,12.50")
        assert fact == ValueFact(3, "2023-01-01", "12.50")

    def test_non_numeric_device_id_is_malformed(self):
        with pytest.raises(MalformedRecordError) as exc_info:
            DeviceFact.parse("abc,sensorA")
        assert exc_info.value.record == "abc,sensorA"

    def test_missing_fields_are_malformed(self):
        with pytest.raises(MalformedRecordError):
            ValueFact.parse("3,2023-01-01")
        with pytest.raises(MalformedRecordError):
            DeviceFact.parse("3")

    @pytest.mark.parametrize("line,retained", [
        ("1,2023-01-01,5", True),
        ("9,2023-01-01,5", True),
        ("0,2023-01-01,5", False),
        ("10,2023-01-01,5", False),
        ("-4,2023-01-01,5", False),
        ("3,\\N,5", False),
    ])
    def test_retention_bounds(self, line, retained):
        assert ValueFact.parse(line).is_retained() is retained

    @pytest.mark.parametrize("line", ["0,2023-01-01", "12,2023-01-01", "3,\\N"])
    def test_dropped_lines_do_not_need_a_value(self, line):
        fact = ValueFact.parse(line)
        assert fact.is_retained() is False
        assert fact.value is None

    @pytest.mark.parametrize("text", ["0_5", "٥", " 5", "5 ", "+", "", "1.0"])
    def test_device_id_must_be_plain_ascii_integer(self, text):
        with pytest.raises(MalformedRecordError):
            parse_device_id(text)

    def test_device_id_accepts_sign(self):
        assert parse_device_id("+7") == 7
        assert parse_device_id("-4") == -4

    @pytest.mark.parametrize("text", ["1_000.5", "٥", "١.5", "warm"])
    def test_value_rejects_non_numeric_text(self, text):
        with pytest.raises(MalformedRecordError):
            parse_value(text)

    def test_value_accepts_decimal_and_exponent(self):
        assert parse_value("12.50") == 12.5
        assert parse_value("-1e3") == -1000.0


class TestCompositeKey:
    """Tests for the (date, device type) key"""

    def test_internal_and_external_forms(self):
        key = CompositeKey("2023-01-01", "sensorA")
        assert str(key) == "2023-01-01,sensorA"
        assert key.external() == "2023-01-01\tsensorA"

    def test_parse_reads_internal_form(self):
        assert CompositeKey.parse("2023-01-01,sensorA") == CompositeKey("2023-01-01", "sensorA")

    def test_parse_without_delimiter_is_malformed(self):
        with pytest.raises(MalformedRecordError):
            CompositeKey.parse("2023-01-01")

    def test_keys_survive_pickling(self):
        key = CompositeKey("2023-01-01", "sensorA")
        assert pickle.loads(pickle.dumps(key)) == key
        assert hash(pickle.loads(pickle.dumps(key))) == hash(key)


class TestAggregate:
    """Tests for the (sum, count) accumulator"""

    def test_merge_adds_sums_and_counts(self):
        merged = Aggregate(10.0, 2).merge(Aggregate(5.0, 1))
        assert merged == Aggregate(15.0, 3)
        assert merged.average() == 5.0

    def test_lift_passes_aggregates_through(self):
        partial = Aggregate(3.0, 2)
        assert Aggregate.lift(partial) is partial
        assert Aggregate.lift(4) == Aggregate(4.0, 1)

    def test_empty_average_is_invariant_violation(self):
        with pytest.raises(EmptyGroupInvariantViolation):
            Aggregate().average()


class TestAverageRow:
    """Tests for final output lines"""

    def test_line_format(self):
        assert AverageRow("2023-01-02", "sensorA", 5.0).to_line() == "2023-01-02\tsensorA\t5.0"

    def test_parse_reads_output_line(self):
        row = AverageRow.parse("2023-01-01\tsensorA\t15.0\n")
        assert row == AverageRow("2023-01-01", "sensorA", 15.0)
        assert row.key == CompositeKey("2023-01-01", "sensorA")

    def test_parse_rejects_wrong_field_count(self):
        with pytest.raises(MalformedRecordError):
            AverageRow.parse("2023-01-01\t15.0")
