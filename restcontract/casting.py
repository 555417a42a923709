"""
Coercion of raw request parameter values to their declared scalar types.

Coercion is advisory: when a value cannot be interpreted as the declared type
the caster returns ``None`` and the caller keeps the raw value, leaving the
constraint assertions to reject it. Only conversions that fail hard, such as
an unparseable date or an unknown type, raise ``CastError``.
"""

import logging
import re
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from dateutil import parser as date_parser

from .exceptions import CastError

logger = logging.getLogger(__name__)

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_TRUE_VALUES = {"true", "1", "yes", "on", "y"}
_FALSE_VALUES = {"false", "0", "no", "off", "n", ""}


class ParameterType(str, Enum):
    """Scalar types a parameter may declare."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ARRAY = "array"


def cast(value: Any, parameter_type: "ParameterType | str") -> Any:
    """Coerce ``value`` to ``parameter_type``.

    Returns the casted value, or the raw value unchanged when the generic
    coercion cannot interpret it.

    Raises:
        CastError: if the type is unknown or a date cannot be parsed
    """
    try:
        parameter_type = ParameterType(parameter_type)
    except ValueError:
        raise CastError(f"Unknown parameter type {parameter_type!r}")

    if parameter_type is ParameterType.DATE:
        cast_value = _cast_date(value)
    else:
        cast_value = _CASTERS[parameter_type](value)

    # The cast did not work, the parameter is probably not of this type
    if cast_value is None:
        return value
    return cast_value


def _cast_date(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return date_parser.parse(str(value))
    except (ValueError, OverflowError) as e:
        logger.debug(f"Date cast failed for {value!r}: {e}")
        raise CastError(f"Failed to parse date {value!r}")


def _cast_string(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (list, dict)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _cast_integer(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and _INTEGER_RE.match(value.strip()):
        return int(value.strip())
    return None


def _cast_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if _INTEGER_RE.match(text):
            return int(text)
        try:
            number = float(text)
        except ValueError:
            return None
        # Reject nan and inf, they are never meaningful parameter values
        if number != number or number in (float("inf"), float("-inf")):
            return None
        return number
    return None


def _cast_boolean(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
        return None
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
    return None


def _cast_array(value: Any) -> Optional[list]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]
    return [value]


_CASTERS = {
    ParameterType.STRING: _cast_string,
    ParameterType.INTEGER: _cast_integer,
    ParameterType.NUMBER: _cast_number,
    ParameterType.BOOLEAN: _cast_boolean,
    ParameterType.ARRAY: _cast_array,
}
