"""Typed access to dynamically keyed Jira custom fields."""

import math
from typing import Optional

from services.exceptions import UnparsableFieldValue
from services.models import FieldValue

# Characters used as thousands grouping in common locales
# (space, no-break space, narrow no-break space, apostrophes).
GROUPING_CHARS = (" ", "\u00a0", "\u202f", "'", "\u2019")


def parse_decimal(raw, field_id: str = "") -> float:
    """Parse a locale formatted number.

    Rule: grouping characters are stripped. If both ``.`` and ``,`` occur,
    the rightmost one is the decimal separator and the other one is
    grouping. A lone ``,`` is the decimal separator. So ``"3,5"`` -> 3.5,
    ``"1.234,5"`` -> 1234.5 and ``"1,234.5"`` -> 1234.5.

    Raises:
        UnparsableFieldValue: the value is not a finite number
    """
    if isinstance(raw, bool):
        raise UnparsableFieldValue(field_id, raw)

    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        text = raw.strip()
        for char in GROUPING_CHARS:
            text = text.replace(char, "")

        # float() accepts "1_000", Jira never formats numbers that way
        if "_" in text:
            raise UnparsableFieldValue(field_id, raw)

        if "," in text and "." in text:
            if text.rfind(",") > text.rfind("."):
                text = text.replace(".", "").replace(",", ".")
            else:
                text = text.replace(",", "")
        else:
            text = text.replace(",", ".")

        try:
            value = float(text)
        except ValueError:
            raise UnparsableFieldValue(field_id, raw) from None
    else:
        raise UnparsableFieldValue(field_id, raw)

    if not math.isfinite(value):
        raise UnparsableFieldValue(field_id, raw)

    return value


class FieldAccessor:
    """Reads custom fields of an issue as tagged values.

    A field record is either the raw value (current REST API) or a dict
    carrying it under ``"value"`` (2.0.alpha API, select options).
    """

    def __init__(self, custom_fields: Optional[dict]):
        self.custom_fields = custom_fields or {}

    def get(self, field_id: Optional[str]) -> FieldValue:
        if not field_id:
            return FieldValue.absent()

        record = self.custom_fields.get(field_id)
        if isinstance(record, dict):
            record = record.get("value")

        if record is None or (isinstance(record, str) and not record.strip()):
            return FieldValue.absent()

        if isinstance(record, list):
            return FieldValue.labels(
                label for label in (self._label(item) for item in record) if label is not None
            )

        return FieldValue.numeric(record)

    def numeric(self, field_id: Optional[str]) -> Optional[float]:
        """Numeric value of a field, None if absent.

        Raises:
            UnparsableFieldValue: the field holds something other than a number
        """
        value = self.get(field_id)
        if value.is_absent:
            return None
        if value.kind == FieldValue.LABELS:
            raise UnparsableFieldValue(field_id, list(value.payload))
        return parse_decimal(value.payload, field_id)

    def labels(self, field_id: Optional[str]) -> list:
        """Label strings of a field, empty if absent.

        A plain string counts as a single label.
        """
        value = self.get(field_id)
        if value.kind == FieldValue.LABELS:
            return list(value.payload)
        if value.kind == FieldValue.NUMERIC and isinstance(value.payload, str):
            return [value.payload]
        return []

    @staticmethod
    def _label(item) -> Optional[str]:
        # Multi-select options come as {"value": "..."}, groups and users as {"name": "..."}
        if isinstance(item, dict):
            item = item.get("value", item.get("name"))
        if item is None:
            return None
        return str(item)
