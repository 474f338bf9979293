# Copyright DataStax, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

import datetime
import decimal
import re
from typing import Any, Callable, Dict

from athenapy.constants import ValueType
from athenapy.exceptions import ValueConversionException

INTEGER_PATTERN = re.compile(r"[+-]?\d+")
TIMESTAMP_PATTERN = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[ T](\d{2}):(\d{2}):(\d{2})(?:\.(\d{1,9}))?"
)

# inclusive bounds of the integer targets
INTEGER_RANGES = {
    ValueType.BYTE: (-(1 << 7), (1 << 7) - 1),
    ValueType.SHORT: (-(1 << 15), (1 << 15) - 1),
    ValueType.INTEGER: (-(1 << 31), (1 << 31) - 1),
    ValueType.LONG: (-(1 << 63), (1 << 63) - 1),
}

# what a SQL null becomes, per target type
NULL_VALUES: dict[ValueType, Any] = {
    ValueType.STRING: None,
    ValueType.BOOLEAN: False,
    ValueType.BYTE: 0,
    ValueType.SHORT: 0,
    ValueType.INTEGER: 0,
    ValueType.LONG: 0,
    ValueType.FLOAT: 0.0,
    ValueType.DOUBLE: 0.0,
    ValueType.DECIMAL: None,
    ValueType.DATE: None,
    ValueType.TIMESTAMP: None,
}


def _conversion_error(value: str, value_type: ValueType) -> ValueConversionException:
    return ValueConversionException(
        f'Cannot convert "{value}" to {value_type.value}',
        value=value,
        target_type=value_type.value,
    )


def _to_boolean(value: str, value_type: ValueType) -> bool:
    # anything but "0" and "false" is true, including unparseable text
    return value != "0" and value.lower() != "false"


def _to_integer(value: str, value_type: ValueType) -> int:
    if not INTEGER_PATTERN.fullmatch(value):
        raise _conversion_error(value, value_type)
    int_value = int(value)
    min_value, max_value = INTEGER_RANGES[value_type]
    if int_value < min_value or int_value > max_value:
        raise _conversion_error(value, value_type)
    return int_value


def _to_float(value: str, value_type: ValueType) -> float:
    try:
        return float(value)
    except ValueError:
        raise _conversion_error(value, value_type)


def _to_decimal(value: str, value_type: ValueType) -> decimal.Decimal:
    try:
        dec_value = decimal.Decimal(value)
    except decimal.InvalidOperation:
        raise _conversion_error(value, value_type)
    if not dec_value.is_finite():
        raise _conversion_error(value, value_type)
    return dec_value


def _to_date(value: str, value_type: ValueType) -> datetime.date:
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise _conversion_error(value, value_type)


def _to_timestamp(value: str, value_type: ValueType) -> datetime.datetime:
    match = TIMESTAMP_PATTERN.fullmatch(value)
    if match is None:
        raise _conversion_error(value, value_type)
    year, month, day, hour, minute, second, fraction = match.groups()
    # sub-microsecond digits are truncated
    microsecond = int((fraction or "").ljust(6, "0")[:6])
    try:
        return datetime.datetime(
            int(year),
            int(month),
            int(day),
            int(hour),
            int(minute),
            int(second),
            microsecond,
        )
    except ValueError:
        raise _conversion_error(value, value_type)


CONVERTERS: Dict[ValueType, Callable[[str, ValueType], Any]] = {
    ValueType.STRING: lambda value, value_type: value,
    ValueType.BOOLEAN: _to_boolean,
    ValueType.BYTE: _to_integer,
    ValueType.SHORT: _to_integer,
    ValueType.INTEGER: _to_integer,
    ValueType.LONG: _to_integer,
    ValueType.FLOAT: _to_float,
    ValueType.DOUBLE: _to_float,
    ValueType.DECIMAL: _to_decimal,
    ValueType.DATE: _to_date,
    ValueType.TIMESTAMP: _to_timestamp,
}


def convert_value(value: str | None, value_type: ValueType | str) -> Any:
    """
    Convert a cell value, as returned by the query service, to a target type.

    Args:
        value: the string value of the cell, None for SQL null.
        value_type: a ValueType (or its string name) for the desired result.

    Returns:
        the converted value. Nulls become 0 (or 0.0) for numeric types, False
        for booleans and None for strings, decimals, dates and timestamps.

    Raises:
        ValueConversionException: if the string cannot be parsed as the target
            type, or is out of range for integer targets.
    """

    _value_type = ValueType.coerce(value_type)
    if value is None:
        return NULL_VALUES[_value_type]
    return CONVERTERS[_value_type](value, _value_type)
