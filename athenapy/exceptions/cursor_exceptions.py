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

from dataclasses import dataclass

from athenapy.exceptions.common_exceptions import AthenaPyException


@dataclass
class CursorException(AthenaPyException):
    """
    A cursor (or result set) operation cannot be carried out in the current
    position of the cursor.

    Attributes:
        text: a text message about the exception.
        cursor_state: a string description of the current logical position
            of the cursor. See `ResultPosition`.
    """

    text: str
    cursor_state: str

    def __init__(
        self,
        text: str,
        *,
        cursor_state: str,
    ) -> None:
        super().__init__(text)
        self.text = text
        self.cursor_state = cursor_state


class CursorPositionException(CursorException):
    """
    A read was attempted before the first row, after the last row,
    or on a column index outside of the result columns; or a backward
    relative movement was requested.
    """

    pass


class UnsupportedOperationException(CursorException):
    """
    The requested repositioning (absolute moves, jumps to first/last,
    backward moves) is not supported by a forward-only cursor.
    """

    pass


@dataclass
class ColumnNotFoundException(AthenaPyException):
    """
    A column was requested by a label that is not in the result columns.

    Attributes:
        text: a text message about the exception.
        column_label: the label that could not be found.
    """

    text: str
    column_label: str

    def __init__(self, text: str, *, column_label: str) -> None:
        super().__init__(text)
        self.text = text
        self.column_label = column_label


@dataclass
class ValueConversionException(AthenaPyException):
    """
    A cell value could not be converted to the requested type.

    Attributes:
        text: a text message about the exception.
        value: the string value found in the result.
        target_type: the name of the requested type.
    """

    text: str
    value: str
    target_type: str

    def __init__(self, text: str, *, value: str, target_type: str) -> None:
        super().__init__(text)
        self.text = text
        self.value = value
        self.target_type = target_type
