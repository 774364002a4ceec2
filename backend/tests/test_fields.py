"""Tests for custom field access and number normalization."""

import pytest

from services.exceptions import UnparsableFieldValue
from services.fields import FieldAccessor, parse_decimal
from services.models import FieldValue


class TestParseDecimal:
    """Test locale aware number parsing."""

    def test_comma_decimal_separator(self):
        assert parse_decimal("3,5") == 3.5

    def test_dot_decimal_separator(self):
        assert parse_decimal("3.5") == 3.5

    def test_strips_whitespace(self):
        assert parse_decimal("  8 ") == 8.0

    def test_european_grouping(self):
        """Dot grouping with comma decimals."""
        assert parse_decimal("1.234,5") == 1234.5

    def test_english_grouping(self):
        """Comma grouping with dot decimals."""
        assert parse_decimal("1,234.5") == 1234.5

    def test_space_and_apostrophe_grouping(self):
        assert parse_decimal("1 234,5") == 1234.5
        assert parse_decimal("1'234.5") == 1234.5

    def test_accepts_numbers(self):
        assert parse_decimal(5) == 5.0
        assert parse_decimal(2.5) == 2.5

    @pytest.mark.parametrize("raw", ["abc", "1,2,3", "1_000", "nan", "inf", "", True, ["3"]])
    def test_rejects_malformed(self, raw):
        with pytest.raises(UnparsableFieldValue):
            parse_decimal(raw, "customfield_10002")

    def test_error_carries_field_and_value(self):
        with pytest.raises(UnparsableFieldValue) as exc_info:
            parse_decimal("lots", "customfield_10002")
        assert exc_info.value.field_id == "customfield_10002"
        assert exc_info.value.raw == "lots"
        assert isinstance(exc_info.value, ValueError)


class TestFieldAccessorGet:
    """Test tagged value extraction."""

    def test_missing_field_is_absent(self):
        assert FieldAccessor({}).get("customfield_1").is_absent

    def test_none_field_id_is_absent(self):
        assert FieldAccessor({"customfield_1": "3"}).get(None).is_absent

    def test_null_value_is_absent(self):
        assert FieldAccessor({"customfield_1": None}).get("customfield_1").is_absent

    def test_blank_string_is_absent(self):
        assert FieldAccessor({"customfield_1": "  "}).get("customfield_1").is_absent

    def test_wrapped_value_is_unwrapped(self):
        value = FieldAccessor({"customfield_1": {"value": "3,5"}}).get("customfield_1")
        assert value == FieldValue.numeric("3,5")

    def test_wrapped_null_is_absent(self):
        assert FieldAccessor({"customfield_1": {"value": None}}).get("customfield_1").is_absent

    def test_list_becomes_labels(self):
        value = FieldAccessor({"labels": ["a", None, {"value": "b"}, {"name": "c"}]}).get("labels")
        assert value.kind == FieldValue.LABELS
        assert value.payload == ("a", "b", "c")

    def test_none_custom_fields(self):
        assert FieldAccessor(None).get("customfield_1").is_absent


class TestFieldAccessorNumeric:
    """Test numeric extraction."""

    def test_parses_string(self):
        assert FieldAccessor({"customfield_1": "3,5"}).numeric("customfield_1") == 3.5

    def test_absent_is_none(self):
        assert FieldAccessor({}).numeric("customfield_1") is None

    def test_labels_are_not_numeric(self):
        with pytest.raises(UnparsableFieldValue):
            FieldAccessor({"customfield_1": ["5"]}).numeric("customfield_1")

    def test_malformed_raises(self):
        with pytest.raises(UnparsableFieldValue):
            FieldAccessor({"customfield_1": "five"}).numeric("customfield_1")


class TestFieldAccessorLabels:
    """Test label extraction."""

    def test_label_list(self):
        accessor = FieldAccessor({"customfield_1": {"value": ["Unplanned", "Hotfix"]}})
        assert accessor.labels("customfield_1") == ["Unplanned", "Hotfix"]

    def test_single_string_is_one_label(self):
        assert FieldAccessor({"customfield_1": "Unplanned"}).labels("customfield_1") == ["Unplanned"]

    def test_absent_is_empty(self):
        assert FieldAccessor({}).labels("customfield_1") == []

    def test_number_is_not_a_label(self):
        assert FieldAccessor({"customfield_1": 3}).labels("customfield_1") == []
