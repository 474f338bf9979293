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

from typing import Optional, Tuple

from athenapy.utils.str_enum import StrEnum

CallerType = Tuple[Optional[str], Optional[str]]


class FetchDirection:
    """
    Admitted values for the `set_fetch_direction` method of result sets.
    Only forward fetching is supported.
    """

    def __init__(self) -> None:
        raise NotImplementedError

    FORWARD = "forward"
    REVERSE = "reverse"
    UNKNOWN = "unknown"


class ValueType(StrEnum):
    """
    The target types a string cell value can be converted to when reading
    from a result set.
    """

    STRING = "string"
    BOOLEAN = "boolean"
    BYTE = "byte"
    SHORT = "short"
    INTEGER = "integer"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"
    DATE = "date"
    TIMESTAMP = "timestamp"


# How the column types declared by the query service map to conversion targets.
# Anything not listed here is returned as a string.
COLUMN_TYPE_MAP = {
    "boolean": ValueType.BOOLEAN,
    "tinyint": ValueType.BYTE,
    "smallint": ValueType.SHORT,
    "integer": ValueType.INTEGER,
    "int": ValueType.INTEGER,
    "bigint": ValueType.LONG,
    "float": ValueType.FLOAT,
    "real": ValueType.FLOAT,
    "double": ValueType.DOUBLE,
    "decimal": ValueType.DECIMAL,
    "date": ValueType.DATE,
    "timestamp": ValueType.TIMESTAMP,
}
