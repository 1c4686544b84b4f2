"""Strict numeric coercion for fields that may arrive as strings."""

from typing import Any

from .exceptions import NumberCoercionException


def coerce_int(value: Any, field_name: str) -> int:
    """
    Convert ``value`` to an int or raise.

    Accepts ints, integral floats and numeric-looking strings ("12", " -1 ",
    "3.0"). Booleans, empty strings and anything non-numeric raise
    NumberCoercionException.
    """
    if isinstance(value, bool):
        raise NumberCoercionException(field_name, value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise NumberCoercionException(field_name, value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            raise NumberCoercionException(field_name, value)
        if number.is_integer():
            return int(number)
    raise NumberCoercionException(field_name, value)
