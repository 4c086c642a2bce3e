"""
Helpers for loosely typed configuration field values (bool | number | string).
"""
import math
from typing import Optional

from .models import FieldValue


def is_number(value: Optional[FieldValue]) -> bool:
    """True for finite int/float values that are not bools."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_active(value: Optional[FieldValue]) -> bool:
    """
    Whether a field value counts as "on" for auto-add purposes.

    Active: boolean True, number > 0, non-empty string after trimming.
    Missing (None) and anything else is inactive.
    """
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value > 0
    if isinstance(value, str):
        return value.strip() != ''
    return False


def numeric_value(value: Optional[FieldValue]) -> float:
    """Number for quantity math; non-numeric or missing values count as 0."""
    if is_number(value):
        return float(value)
    return 0.0
