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

from dataclasses import dataclass, field
from typing import Mapping

from athenapy.exceptions import InvalidConfigurationException
from athenapy.settings.defaults import (
    DEFAULT_API_CALL_TIMEOUT_MS,
    DEFAULT_FETCH_SIZE,
    DEFAULT_OBJECT_READ_TIMEOUT_MS,
    DEFAULT_REQUEST_TIMEOUT_MS,
    FIXED_SECRET_PLACEHOLDER,
    MAX_FETCH_SIZE,
)
from athenapy.utils.unset import _UNSET, UnsetType


def check_fetch_size(fetch_size: int) -> int:
    """
    Validate a fetch size (maximum number of rows per page request).

    Raises:
        InvalidConfigurationException: if the value is negative or larger
            than what the query service accepts.
    """
    if fetch_size < 0:
        raise InvalidConfigurationException(
            f"Fetch size cannot be negative (got {fetch_size})",
            setting="fetch_size",
            value=fetch_size,
        )
    if fetch_size > MAX_FETCH_SIZE:
        raise InvalidConfigurationException(
            f"Fetch size too large (got {fetch_size}, max is {MAX_FETCH_SIZE})",
            setting="fetch_size",
            value=fetch_size,
        )
    return fetch_size


@dataclass
class TimeoutOptions:
    """
    The group of settings concerning the timeouts for the various kinds
    of operations.

    All timeout values are integers expressed in milliseconds. A timeout of zero
    signifies that no timeout is imposed at all on that kind of operation.
    Values that are left unspecified keep the values of the options they
    are applied to as override (see `FullTimeoutOptions.with_override`).

    Attributes:
        request_timeout_ms: the timeout imposed on a single HTTP request, to
            both the query service and the object store. Defaults to 10 s.
        api_call_timeout_ms: how long a result cursor waits for a page of
            results before giving up with a QueryTimeoutException. Defaults to 60 s.
        object_read_timeout_ms: how long opening an object stream may take,
            i.e. until the response headers from the object store are available.
            Reading the object body afterwards is not subject to this timeout.
            Defaults to 30 s.
    """

    request_timeout_ms: int | UnsetType = _UNSET
    api_call_timeout_ms: int | UnsetType = _UNSET
    object_read_timeout_ms: int | UnsetType = _UNSET


@dataclass
class FullTimeoutOptions(TimeoutOptions):
    """
    The "full" version of `TimeoutOptions`, with the guarantee that all of its
    members have defined values. This is what the client and the cursors use.

    Attributes:
        request_timeout_ms: the timeout imposed on a single HTTP request.
        api_call_timeout_ms: the timeout for waiting on a page of results.
        object_read_timeout_ms: the timeout for opening an object stream.
    """

    request_timeout_ms: int
    api_call_timeout_ms: int
    object_read_timeout_ms: int

    def __init__(
        self,
        *,
        request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS,
        api_call_timeout_ms: int = DEFAULT_API_CALL_TIMEOUT_MS,
        object_read_timeout_ms: int = DEFAULT_OBJECT_READ_TIMEOUT_MS,
    ) -> None:
        TimeoutOptions.__init__(
            self,
            request_timeout_ms=request_timeout_ms,
            api_call_timeout_ms=api_call_timeout_ms,
            object_read_timeout_ms=object_read_timeout_ms,
        )

    def with_override(self, other: TimeoutOptions) -> FullTimeoutOptions:
        """
        Given an "overriding" set of options, possibly not defined in all its
        attributes, apply the override logic and return a new full options object.

        Args:
            other: a not-necessarily-fully-specified options object. All its defined
                settings take precedence.
        """

        return FullTimeoutOptions(
            request_timeout_ms=(
                other.request_timeout_ms
                if not isinstance(other.request_timeout_ms, UnsetType)
                else self.request_timeout_ms
            ),
            api_call_timeout_ms=(
                other.api_call_timeout_ms
                if not isinstance(other.api_call_timeout_ms, UnsetType)
                else self.api_call_timeout_ms
            ),
            object_read_timeout_ms=(
                other.object_read_timeout_ms
                if not isinstance(other.object_read_timeout_ms, UnsetType)
                else self.object_read_timeout_ms
            ),
        )


@dataclass
class ConnectionConfiguration:
    """
    Everything needed to read query results and result objects.

    Attributes:
        query_service_endpoint: the base URL of the query service,
            e.g. "https://athena.eu-west-1.amazonaws.com".
        object_store_endpoint: the base URL of the object store, objects being
            addressed as "{object_store_endpoint}/{bucket}/{key}".
        database_name: the default database (schema) queries run against.
        work_group: the work group queries are submitted to.
        output_location: where the service writes query results, e.g.
            "s3://bucket/prefix/".
        headers: additional headers sent with every request, for instance
            authorization headers. Headers known to carry secrets are redacted
            in logs and in the repr of this object.
        fetch_size: the default number of rows per page for new result sets.
        timeout_options: a `FullTimeoutOptions` object.
    """

    query_service_endpoint: str
    object_store_endpoint: str | None = None
    database_name: str | None = None
    work_group: str | None = None
    output_location: str | None = None
    headers: Mapping[str, str | None] = field(default_factory=dict)
    fetch_size: int = DEFAULT_FETCH_SIZE
    timeout_options: FullTimeoutOptions = field(default_factory=FullTimeoutOptions)

    def __post_init__(self) -> None:
        check_fetch_size(self.fetch_size)

    def __repr__(self) -> str:
        pieces = [
            pc
            for pc in (
                f"query_service_endpoint={self.query_service_endpoint}",
                f"object_store_endpoint={self.object_store_endpoint}"
                if self.object_store_endpoint
                else None,
                f'database_name="{self.database_name}"'
                if self.database_name
                else None,
                f'work_group="{self.work_group}"' if self.work_group else None,
                f'output_location="{self.output_location}"'
                if self.output_location
                else None,
                f"headers=<{len(self.headers)} headers, {FIXED_SECRET_PLACEHOLDER}>"
                if self.headers
                else None,
                f"fetch_size={self.fetch_size}",
            )
            if pc is not None
        ]
        return f"{self.__class__.__name__}({', '.join(pieces)})"

    @property
    def api_call_timeout_ms(self) -> int:
        return self.timeout_options.api_call_timeout_ms

    def _copy(
        self,
        *,
        database_name: str | None | UnsetType = _UNSET,
        timeout_options: FullTimeoutOptions | UnsetType = _UNSET,
        fetch_size: int | UnsetType = _UNSET,
    ) -> ConnectionConfiguration:
        return ConnectionConfiguration(
            query_service_endpoint=self.query_service_endpoint,
            object_store_endpoint=self.object_store_endpoint,
            database_name=self.database_name
            if isinstance(database_name, UnsetType)
            else database_name,
            work_group=self.work_group,
            output_location=self.output_location,
            headers=dict(self.headers),
            fetch_size=self.fetch_size
            if isinstance(fetch_size, UnsetType)
            else fetch_size,
            timeout_options=self.timeout_options
            if isinstance(timeout_options, UnsetType)
            else timeout_options,
        )

    def with_database_name(self, database_name: str | None) -> ConnectionConfiguration:
        """Return a copy of this configuration pointing to another database."""
        return self._copy(database_name=database_name)

    def with_timeout(self, api_call_timeout_ms: int) -> ConnectionConfiguration:
        """
        Return a copy of this configuration with another API call timeout.
        Shorthand for `with_timeout_options(TimeoutOptions(api_call_timeout_ms=...))`.
        """
        return self._copy(
            timeout_options=self.timeout_options.with_override(
                TimeoutOptions(api_call_timeout_ms=api_call_timeout_ms)
            )
        )

    def with_timeout_options(
        self, timeout_options: TimeoutOptions
    ) -> ConnectionConfiguration:
        """Return a copy of this configuration, the given timeouts overriding the current ones."""
        return self._copy(
            timeout_options=self.timeout_options.with_override(timeout_options)
        )

    def with_fetch_size(self, fetch_size: int) -> ConnectionConfiguration:
        return self._copy(fetch_size=fetch_size)
