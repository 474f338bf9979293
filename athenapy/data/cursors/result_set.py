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
import logging
from types import TracebackType
from typing import Any, Iterator, Union

from athenapy.constants import FetchDirection, ValueType
from athenapy.data.cursors.result_cursor import ResultCursor, ResultPosition
from athenapy.data.info.result_metadata import ResultSetMetadata
from athenapy.data.utils.value_converters import convert_value
from athenapy.exceptions import (
    ClosedResourceException,
    ColumnNotFoundException,
    CursorPositionException,
    UnsupportedOperationException,
)

logger = logging.getLogger(__name__)

# a column is addressed either by its 1-based index or by its label
ColumnType = Union[int, str]


class ResultSet:
    """
    A forward-only, read-only view over the rows of a query result.

    The result set moves through the rows with `next()` (or plain iteration,
    which yields each row as a tuple of strings) and gives typed access to the
    values of the current row. Columns are addressed by 1-based index or label.
    Every read checks that the result set is open, is positioned on a row and
    that the column exists.

    Example:
        >>> with client.get_result("8a6f...") as result_set:
        ...     while result_set.next():
        ...         print(result_set.get_string("name"), result_set.get_int(2))
        ...
        alice 31
        bob 27

    Args:
        cursor: the ResultCursor this result set reads from.
    """

    def __init__(self, cursor: ResultCursor) -> None:
        self._cursor = cursor
        self._was_null = False
        self._closed = False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._cursor})"

    def __enter__(self) -> ResultSet:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None = None,
        exc_value: BaseException | None = None,
        traceback: TracebackType | None = None,
    ) -> None:
        self.close()

    def __iter__(self) -> Iterator[tuple[str | None, ...]]:
        return self

    def __next__(self) -> tuple[str | None, ...]:
        if not self.next():
            raise StopIteration
        # next() returning True guarantees a current row
        assert self._cursor.current_row is not None
        return self._cursor.current_row.as_tuple()

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClosedResourceException(
                text="Result set is closed",
                resource="result set",
            )

    def _check_vertical_position(self) -> None:
        if self.is_before_first():
            raise CursorPositionException(
                text="Cannot read from a result set positioned before the first row",
                cursor_state=ResultPosition.BEFORE_FIRST.value,
            )
        elif self._cursor.current_row is None:
            raise CursorPositionException(
                text="Cannot read from a result set positioned after the last row",
                cursor_state=ResultPosition.AFTER_LAST.value,
            )

    def _check_horizontal_position(self, column_index: int) -> None:
        column_count = self._cursor.get_metadata().column_count
        if column_index < 1:
            raise CursorPositionException(
                text=f"Invalid column index {column_index}",
                cursor_state=self._cursor.get_position().value,
            )
        elif column_index > column_count:
            raise CursorPositionException(
                text=f"Column index out of bounds ({column_index} > {column_count})",
                cursor_state=self._cursor.get_position().value,
            )

    def _resolve_column(self, column: ColumnType) -> int:
        if isinstance(column, str):
            return self.find_column(column)
        return column

    def _get_value(self, column: ColumnType, value_type: ValueType) -> Any:
        self._ensure_open()
        self._check_vertical_position()
        column_index = self._resolve_column(column)
        self._check_horizontal_position(column_index)
        str_value = self._cursor.get_string(column_index)
        self._was_null = str_value is None
        return convert_value(str_value, value_type)

    @property
    def cursor(self) -> ResultCursor:
        return self._cursor

    def next(self) -> bool:
        """
        Move to the next row.

        Returns:
            True if the result set is on a row after the call,
            False if there are no more rows.
        """
        self._ensure_open()
        return self._cursor.advance()

    def close(self) -> None:
        """Close the result set and its cursor. Idempotent."""
        self._closed = True
        self._cursor.close()

    def is_closed(self) -> bool:
        return self._closed

    def get_metadata(self) -> ResultSetMetadata:
        """The column descriptions of the result (fetching the first page if needed)."""
        self._ensure_open()
        return self._cursor.get_metadata()

    def find_column(self, label: str) -> int:
        """
        Return the 1-based index of a column given its label.

        Raises:
            ColumnNotFoundException: if no column has this label.
        """
        self._ensure_open()
        column_index = self._cursor.get_metadata().find_column(label)
        if column_index is None:
            raise ColumnNotFoundException(
                text=f'Result set does not contain any column with label "{label}"',
                column_label=label,
            )
        return column_index

    def was_null(self) -> bool:
        """Whether the last value read was a SQL null."""
        return self._was_null

    def get_fetch_size(self) -> int:
        self._ensure_open()
        return self._cursor.fetch_size

    def set_fetch_size(self, fetch_size: int) -> None:
        """
        Set the number of rows to request with the next page fetch.

        Raises:
            InvalidConfigurationException: if the value is negative or
                larger than the maximum page size.
        """
        self._ensure_open()
        self._cursor.set_fetch_size(fetch_size)

    def get_fetch_direction(self) -> str:
        self._ensure_open()
        return FetchDirection.FORWARD

    def set_fetch_direction(self, direction: str) -> None:
        self._ensure_open()
        if direction != FetchDirection.FORWARD:
            raise UnsupportedOperationException(
                text=f"Only forward fetch direction is supported (got {direction})",
                cursor_state=self._cursor.get_position().value,
            )

    def get_row(self) -> int:
        """The current row number, 0 if not positioned on a row."""
        self._ensure_open()
        if self.is_before_first() or self.is_after_last():
            return 0
        return self._cursor.get_row_number()

    def is_before_first(self) -> bool:
        self._ensure_open()
        return self._cursor.get_row_number() == 0

    def is_first(self) -> bool:
        self._ensure_open()
        return (
            self._cursor.get_row_number() == 1
            and self._cursor.current_row is not None
        )

    def is_last(self) -> bool:
        self._ensure_open()
        return self._cursor.on_last_row

    def is_after_last(self) -> bool:
        self._ensure_open()
        return (
            self._cursor.get_row_number() > 0 and self._cursor.current_row is None
        )

    def get_string(self, column: ColumnType) -> str | None:
        return self._get_value(column, ValueType.STRING)

    def get_boolean(self, column: ColumnType) -> bool:
        return self._get_value(column, ValueType.BOOLEAN)

    def get_byte(self, column: ColumnType) -> int:
        return self._get_value(column, ValueType.BYTE)

    def get_short(self, column: ColumnType) -> int:
        return self._get_value(column, ValueType.SHORT)

    def get_int(self, column: ColumnType) -> int:
        return self._get_value(column, ValueType.INTEGER)

    def get_long(self, column: ColumnType) -> int:
        return self._get_value(column, ValueType.LONG)

    def get_float(self, column: ColumnType) -> float:
        return self._get_value(column, ValueType.FLOAT)

    def get_double(self, column: ColumnType) -> float:
        return self._get_value(column, ValueType.DOUBLE)

    def get_decimal(self, column: ColumnType) -> decimal.Decimal | None:
        return self._get_value(column, ValueType.DECIMAL)

    def get_date(self, column: ColumnType) -> datetime.date | None:
        return self._get_value(column, ValueType.DATE)

    def get_timestamp(self, column: ColumnType) -> datetime.datetime | None:
        return self._get_value(column, ValueType.TIMESTAMP)

    def get_object(self, column: ColumnType) -> Any:
        """
        Read a value converting it according to the declared type of its column.
        Columns of types with no specific conversion are read as strings.
        Unlike the primitive getters, nulls are always returned as None.
        """
        self._ensure_open()
        self._check_vertical_position()
        column_index = self._resolve_column(column)
        self._check_horizontal_position(column_index)
        column_info = self._cursor.get_metadata().get_column(column_index)
        str_value = self._cursor.get_string(column_index)
        self._was_null = str_value is None
        if str_value is None:
            return None
        return convert_value(str_value, column_info.value_type)

    def relative(self, rows: int) -> bool:
        """
        Move forward by a number of rows, which must be at least one.

        Returns:
            the result of the last of the `rows` moves.
        """
        self._ensure_open()
        if rows < 1:
            raise CursorPositionException(
                text="Only forward relative movement is supported",
                cursor_state=self._cursor.get_position().value,
            )
        status = False
        for _ in range(rows):
            status = self.next()
        return status

    def _movements_not_supported(self) -> UnsupportedOperationException:
        return UnsupportedOperationException(
            text="Result set movements other than forward are not supported",
            cursor_state=self._cursor.get_position().value
            if not self._closed
            else "closed",
        )

    def before_first(self) -> None:
        raise self._movements_not_supported()

    def after_last(self) -> None:
        raise self._movements_not_supported()

    def first(self) -> bool:
        raise self._movements_not_supported()

    def last(self) -> bool:
        raise self._movements_not_supported()

    def absolute(self, row: int) -> bool:
        raise self._movements_not_supported()

    def previous(self) -> bool:
        raise self._movements_not_supported()
