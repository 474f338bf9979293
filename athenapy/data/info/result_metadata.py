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
from typing import Any

from athenapy.constants import COLUMN_TYPE_MAP, ValueType
from athenapy.exceptions import UnexpectedQueryServiceResponseException


@dataclass
class ColumnInfo:
    """
    The description of a column in a query result, as returned by the
    query service alongside the first page of results.

    Attributes:
        name: the column name.
        label: the column label, used to look up columns by name.
            It coincides with the name unless the query aliased the column.
        type: the column type as declared by the service, e.g. "varchar", "bigint".
        precision: for numeric types, the precision; for strings, the max length.
        scale: for decimal types, the number of fractional digits.
        nullable: one of "NOT_NULL", "NULLABLE", "UNKNOWN".
        case_sensitive: whether values of the column are case-sensitive.
        catalog_name: the catalog the column comes from, if known.
        schema_name: the schema (database) the column comes from, if known.
        table_name: the table the column comes from, if known.
    """

    name: str
    label: str
    type: str
    precision: int = 0
    scale: int = 0
    nullable: str = "UNKNOWN"
    case_sensitive: bool = False
    catalog_name: str | None = None
    schema_name: str | None = None
    table_name: str | None = None

    def __repr__(self) -> str:
        pieces = [
            pc
            for pc in (
                f'"{self.label}"',
                f"type={self.type}",
                f"precision={self.precision}" if self.precision else None,
                f"scale={self.scale}" if self.scale else None,
                f"nullable={self.nullable}" if self.nullable != "UNKNOWN" else None,
            )
            if pc is not None
        ]
        return f"{self.__class__.__name__}({', '.join(pieces)})"

    @property
    def value_type(self) -> ValueType:
        """The conversion target matching the declared type of the column."""
        return COLUMN_TYPE_MAP.get(self.type.lower(), ValueType.STRING)

    def as_dict(self) -> dict[str, Any]:
        """Recast this object into a dictionary in the service format."""

        return {
            k: v
            for k, v in {
                "Name": self.name,
                "Label": self.label,
                "Type": self.type,
                "Precision": self.precision,
                "Scale": self.scale,
                "Nullable": self.nullable,
                "CaseSensitive": self.case_sensitive,
                "CatalogName": self.catalog_name,
                "SchemaName": self.schema_name,
                "TableName": self.table_name,
            }.items()
            if v is not None
        }

    @classmethod
    def _from_dict(cls, raw_dict: dict[str, Any]) -> ColumnInfo:
        """
        Create an instance of ColumnInfo from a dictionary
        such as one from the query service.
        """

        return ColumnInfo(
            name=raw_dict["Name"],
            label=raw_dict.get("Label") or raw_dict["Name"],
            type=raw_dict["Type"],
            precision=raw_dict.get("Precision", 0),
            scale=raw_dict.get("Scale", 0),
            nullable=raw_dict.get("Nullable", "UNKNOWN"),
            case_sensitive=raw_dict.get("CaseSensitive", False),
            catalog_name=raw_dict.get("CatalogName"),
            schema_name=raw_dict.get("SchemaName"),
            table_name=raw_dict.get("TableName"),
        )


@dataclass
class ResultSetMetadata:
    """
    The column descriptions of a query result.

    Attributes:
        columns: the list of ColumnInfo objects, in result order.
    """

    columns: list[ColumnInfo]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(columns=[{','.join(self.labels)}])"

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def labels(self) -> list[str]:
        return [column.label for column in self.columns]

    def get_column(self, column_index: int) -> ColumnInfo:
        """Return the description of a column by its 1-based index."""
        return self.columns[column_index - 1]

    def find_column(self, label: str) -> int | None:
        """
        Return the 1-based index of the first column with the given label,
        or None if there is none. Labels are matched exactly.
        """
        for index, column in enumerate(self.columns):
            if column.label == label:
                return index + 1
        return None

    def as_dict(self) -> dict[str, Any]:
        return {"ColumnInfo": [column.as_dict() for column in self.columns]}

    @classmethod
    def _from_dict(cls, raw_dict: dict[str, Any]) -> ResultSetMetadata:
        return ResultSetMetadata(
            columns=[
                ColumnInfo._from_dict(col_dict)
                for col_dict in raw_dict.get("ColumnInfo") or []
            ],
        )


@dataclass
class Row:
    """
    A row of a query result: an ordered list of string cell values,
    None standing for SQL null.

    Attributes:
        values: the cell values.
    """

    values: list[str | None]

    def __len__(self) -> int:
        return len(self.values)

    def get(self, column_index: int) -> str | None:
        """Return the value in a column by its 1-based index."""
        return self.values[column_index - 1]

    def as_tuple(self) -> tuple[str | None, ...]:
        return tuple(self.values)

    @classmethod
    def _from_dict(cls, raw_dict: dict[str, Any]) -> Row:
        return Row(
            values=[datum.get("VarCharValue") for datum in raw_dict.get("Data") or []]
        )


@dataclass
class ResultPage:
    """
    A whole pageful of results, as returned by one call to the query service.

    Attributes:
        rows: the rows in the page. On the first page of a result, the first
            row is the header row (carrying the column labels).
        next_token: the continuation token for the next page. If the result
            does not admit any further page, this is None.
        metadata: the description of the result columns.
    """

    rows: list[Row]
    next_token: str | None
    metadata: ResultSetMetadata

    def __repr__(self) -> str:
        pieces = [
            pc
            for pc in (
                f"rows=<{len(self.rows)} rows>",
                "next_token=..." if self.next_token else None,
                f"metadata={self.metadata}",
            )
            if pc is not None
        ]
        return f"{self.__class__.__name__}({', '.join(pieces)})"

    @classmethod
    def _from_dict(cls, raw_dict: dict[str, Any]) -> ResultPage:
        """
        Create a ResultPage from a GetQueryResults response.

        Raises:
            UnexpectedQueryServiceResponseException: if the response lacks
                the result set.
        """

        result_set = raw_dict.get("ResultSet")
        if not isinstance(result_set, dict):
            raise UnexpectedQueryServiceResponseException(
                text="Faulty response from query service: no 'ResultSet' found.",
                raw_response=raw_dict,
            )
        return ResultPage(
            rows=[Row._from_dict(row_dict) for row_dict in result_set.get("Rows") or []],
            next_token=raw_dict.get("NextToken") or None,
            metadata=ResultSetMetadata._from_dict(
                result_set.get("ResultSetMetadata") or {}
            ),
        )
