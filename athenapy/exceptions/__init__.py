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

import time
from dataclasses import dataclass

import httpx

from athenapy.exceptions.common_exceptions import (
    AthenaPyException,
    ClosedResourceException,
    InvalidConfigurationException,
)
from athenapy.exceptions.cursor_exceptions import (
    ColumnNotFoundException,
    CursorException,
    CursorPositionException,
    UnsupportedOperationException,
    ValueConversionException,
)
from athenapy.exceptions.query_service_exceptions import (
    QueryFailedException,
    QueryServiceErrorDescriptor,
    QueryServiceException,
    QueryServiceHttpException,
    QueryTimeoutException,
    UnexpectedQueryServiceResponseException,
)
from athenapy.exceptions.stream_exceptions import ObjectStreamException


def _timeout_text(text_0: str, timeout_context: _TimeoutContext) -> str:
    timeout_ms = timeout_context.nominal_ms or timeout_context.request_ms
    timeout_label = timeout_context.label
    if timeout_ms:
        if timeout_label:
            return f"{text_0} (timeout honoured: {timeout_label} = {timeout_ms} ms)"
        else:
            return f"{text_0} (timeout honoured: {timeout_ms} ms)"
    return text_0


def to_query_timeout_exception(
    httpx_timeout: httpx.TimeoutException,
    timeout_context: _TimeoutContext,
) -> QueryTimeoutException:
    text = _timeout_text(str(httpx_timeout) or "timed out", timeout_context)
    if isinstance(httpx_timeout, httpx.ConnectTimeout):
        timeout_type = "connect"
    elif isinstance(httpx_timeout, httpx.ReadTimeout):
        timeout_type = "read"
    elif isinstance(httpx_timeout, httpx.WriteTimeout):
        timeout_type = "write"
    elif isinstance(httpx_timeout, httpx.PoolTimeout):
        timeout_type = "pool"
    else:
        timeout_type = "generic"
    try:
        request = httpx_timeout.request
    except RuntimeError:
        # httpx raises if the exception was built without a request
        request = None
    if request is not None:
        endpoint = str(request.url)
        if isinstance(request.content, bytes):
            raw_payload = request.content.decode()
        else:
            raw_payload = None
    else:
        endpoint = None
        raw_payload = None
    return QueryTimeoutException(
        text=text,
        timeout_type=timeout_type,
        endpoint=endpoint,
        raw_payload=raw_payload,
    )


def to_generic_timeout_exception(
    text_0: str,
    timeout_context: _TimeoutContext,
) -> QueryTimeoutException:
    """Build the timeout exception for a wait not tied to a single HTTP request."""
    return QueryTimeoutException(
        text=_timeout_text(text_0, timeout_context),
        timeout_type="generic",
        endpoint=None,
        raw_payload=None,
    )


@dataclass
class _TimeoutContext:
    """
    This class encodes standardized "enriched information" attached to a timeout
    value to obey. This makes it possible, in case the timeout is raised, to present
    the user with a better error message detailing the name of the setting responsible
    for the timeout and the "nominal" value (which may not always coincide with the
    actual elapsed number of milliseconds because of cumulative timeouts spanning
    several waits).

    Args:
        nominal_ms: the original timeout in milliseconds that was ultimately set by
            the user.
        request_ms: the actual number of millisecond a given wait was allowed
            to last. This may be smaller than `nominal_ms` because of timeouts imposed
            on a succession of operations.
        label: a string, providing the name of the timeout setting as known by the user.
    """

    nominal_ms: int | None
    request_ms: int | None
    label: str | None

    def __init__(
        self,
        *,
        request_ms: int | None,
        nominal_ms: int | None = None,
        label: str | None = None,
    ) -> None:
        self.nominal_ms = nominal_ms
        self.request_ms = request_ms
        self.label = label

    def __bool__(self) -> bool:
        return self.nominal_ms is not None or self.request_ms is not None

    @property
    def request_s(self) -> float | None:
        """The wait allowance in seconds, None (or zero in the source) meaning no limit."""
        if not self.request_ms:
            return None
        return self.request_ms / 1000


class MultiCallTimeoutManager:
    """
    A helper class to keep track of timing and timeouts
    in a multi-step operation, such as opening an object stream
    (sending the request, then waiting for the response headers).

    Args:
        overall_timeout_ms: an optional max duration to track (milliseconds)
        timeout_label: a string label identifying the `overall_timeout_ms` in a way
            that is understood by the user who can set timeouts.

    Attributes:
        overall_timeout_ms: an optional max duration to track (milliseconds)
        started_ms: timestamp of the instance construction (milliseconds)
        deadline_ms: optional deadline in milliseconds (computed by the class).
        timeout_label: the label for `overall_timeout_ms`.
    """

    overall_timeout_ms: int | None
    started_ms: int = -1
    deadline_ms: int | None
    timeout_label: str | None

    def __init__(
        self,
        overall_timeout_ms: int | None,
        timeout_label: str | None = None,
    ) -> None:
        self.started_ms = int(time.time() * 1000)
        self.timeout_label = timeout_label
        # zero timeouts provided internally are mapped to None for deadline mgmt:
        self.overall_timeout_ms = overall_timeout_ms or None
        if self.overall_timeout_ms is not None:
            self.deadline_ms = self.started_ms + self.overall_timeout_ms
        else:
            self.deadline_ms = None

    def remaining_timeout(
        self, cap_time_ms: int | None = None, cap_timeout_label: str | None = None
    ) -> _TimeoutContext:
        """
        Ensure the deadline, if any, is not yet in the past.
        If it is, raise a QueryTimeoutException.
        If not, return a context with the remaining milliseconds (or no limit).

        Args:
            cap_time_ms: an additional timeout constraint to cap the result of
                this method. If the remaining timeout from this manager exceeds
                the provided cap, the cap is returned.
            cap_timeout_label: the label identifying the "cap timeout" if one is set.

        Returns:
            A _TimeoutContext detailing the residual time the operation is
            allowed to last.
        """

        # a zero 'cap' must be treated as None:
        _cap_time_ms = cap_time_ms or None
        now_ms = int(time.time() * 1000)
        if self.deadline_ms is not None:
            if now_ms < self.deadline_ms:
                remaining = self.deadline_ms - now_ms
                if _cap_time_ms is not None and remaining > _cap_time_ms:
                    return _TimeoutContext(
                        nominal_ms=_cap_time_ms,
                        request_ms=_cap_time_ms,
                        label=cap_timeout_label,
                    )
                return _TimeoutContext(
                    nominal_ms=self.overall_timeout_ms,
                    request_ms=remaining,
                    label=self.timeout_label,
                )
            else:
                raise to_generic_timeout_exception(
                    "Operation timed out",
                    _TimeoutContext(
                        nominal_ms=self.overall_timeout_ms,
                        request_ms=None,
                        label=self.timeout_label,
                    ),
                )
        else:
            if _cap_time_ms is None:
                return _TimeoutContext(
                    nominal_ms=self.overall_timeout_ms,
                    request_ms=None,
                    label=self.timeout_label,
                )
            else:
                return _TimeoutContext(
                    nominal_ms=_cap_time_ms,
                    request_ms=_cap_time_ms,
                    label=cap_timeout_label,
                )


__all__ = [
    "AthenaPyException",
    "ClosedResourceException",
    "ColumnNotFoundException",
    "CursorException",
    "CursorPositionException",
    "InvalidConfigurationException",
    "MultiCallTimeoutManager",
    "ObjectStreamException",
    "QueryFailedException",
    "QueryServiceErrorDescriptor",
    "QueryServiceException",
    "QueryServiceHttpException",
    "QueryTimeoutException",
    "UnexpectedQueryServiceResponseException",
    "UnsupportedOperationException",
    "ValueConversionException",
]

__pdoc__ = {
    "to_query_timeout_exception": False,
    "to_generic_timeout_exception": False,
    "MultiCallTimeoutManager": False,
}
