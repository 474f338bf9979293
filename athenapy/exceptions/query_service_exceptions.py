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

import httpx

from athenapy.exceptions.common_exceptions import AthenaPyException


class QueryServiceException(AthenaPyException):
    """
    Any exception occurred while retrieving query results from the remote
    query service and specific to it, such as:
      - the service answering with an error status,
      - a page request exceeding its timeout,
      - the service returning a malformed response.
    """

    pass


@dataclass
class QueryServiceErrorDescriptor:
    """
    An object representing the error payload returned by the query service
    alongside an HTTP 4xx/5xx status.

    Attributes:
        error_type: the error type as found in the "__type" field of the response,
            stripped of its namespace prefix, e.g. "InvalidRequestException".
        message: the error message, if any.
        attributes: any other field found in the error payload.
    """

    error_type: str | None
    message: str | None
    attributes: dict[str, Any]

    def __init__(self, error_dict: dict[str, Any]) -> None:
        raw_type = error_dict.get("__type")
        self.error_type = raw_type.split("#")[-1] if raw_type else None
        self.message = error_dict.get("message") or error_dict.get("Message")
        self.attributes = {
            k: v
            for k, v in error_dict.items()
            if k not in {"__type", "message", "Message"}
        }

    def summary(self) -> str:
        if self.error_type and self.message:
            return f"{self.error_type}: {self.message}"
        return self.message or self.error_type or "(no error details)"


@dataclass
class QueryServiceHttpException(QueryServiceException, httpx.HTTPStatusError):
    """
    A request to the query service resulted in an HTTP 4xx or 5xx response.

    The error payload, when one can be parsed, is exposed in structured form
    while still raising (a subclass of) `httpx.HTTPStatusError`.

    Attributes:
        text: a text message about the exception.
        error_descriptor: a QueryServiceErrorDescriptor, if the response carried
            a parseable error payload, otherwise None.
    """

    text: str | None
    error_descriptor: QueryServiceErrorDescriptor | None

    def __init__(
        self,
        text: str | None,
        *,
        httpx_error: httpx.HTTPStatusError,
        error_descriptor: QueryServiceErrorDescriptor | None,
    ) -> None:
        QueryServiceException.__init__(self, text)
        httpx.HTTPStatusError.__init__(
            self,
            message=str(httpx_error),
            request=httpx_error.request,
            response=httpx_error.response,
        )
        self.text = text
        self.httpx_error = httpx_error
        self.error_descriptor = error_descriptor

    def __str__(self) -> str:
        return self.text or str(self.httpx_error)

    @classmethod
    def from_httpx_error(
        cls,
        httpx_error: httpx.HTTPStatusError,
        **kwargs: Any,
    ) -> QueryServiceHttpException:
        """Parse a httpx status error into this exception."""

        raw_response: dict[str, Any]
        # the attempt to extract a response structure cannot afford failure.
        try:
            raw_response = httpx_error.response.json() or {}
        except Exception:
            raw_response = {}
        error_descriptor: QueryServiceErrorDescriptor | None
        if isinstance(raw_response, dict) and raw_response:
            error_descriptor = QueryServiceErrorDescriptor(raw_response)
            text = f"{error_descriptor.summary()}. {str(httpx_error)}"
        else:
            error_descriptor = None
            text = str(httpx_error)

        return cls(
            text=text,
            httpx_error=httpx_error,
            error_descriptor=error_descriptor,
            **kwargs,
        )


@dataclass
class QueryTimeoutException(QueryServiceException):
    """
    A query service operation timed out. This can be the HTTP request for a page
    timing out, or the overall wait for a page (or for an object stream to open)
    exceeding its allotted time.

    Timeouts are distinct from other failures: the service may simply be slow,
    and the caller can decide to retry.

    Attributes:
        text: a textual description of the error
        timeout_type: this denotes the phase of the HTTP request when the event
            occurred ("connect", "read", "write", "pool") or "generic" if there is
            not a specific request associated to the exception.
        endpoint: if the timeout is tied to a specific request, this is the
            URL that the request was targeting.
        raw_payload:  if the timeout is tied to a specific request, this is the
            associated payload (as a string).
    """

    text: str
    timeout_type: str
    endpoint: str | None
    raw_payload: str | None

    def __init__(
        self,
        text: str,
        *,
        timeout_type: str,
        endpoint: str | None,
        raw_payload: str | None,
    ) -> None:
        super().__init__(text)
        self.text = text
        self.timeout_type = timeout_type
        self.endpoint = endpoint
        self.raw_payload = raw_payload


@dataclass
class QueryFailedException(QueryServiceException):
    """
    The request for a page of results completed, but failed. The original
    cause is always chained to this exception (as its `__cause__`).

    Attributes:
        text: a text message about the exception.
        query_execution_id: the identifier of the query whose results
            were being retrieved.
    """

    text: str
    query_execution_id: str | None

    def __init__(
        self,
        text: str,
        *,
        query_execution_id: str | None,
    ) -> None:
        super().__init__(text)
        self.text = text
        self.query_execution_id = query_execution_id


@dataclass
class UnexpectedQueryServiceResponseException(QueryServiceException):
    """
    The query service response is malformed in that it does not have
    expected field(s), or they are of the wrong type.

    Attributes:
        text: a text message about the exception.
        raw_response: the response returned by the API in the form of a dict.
    """

    text: str
    raw_response: dict[str, Any] | None

    def __init__(
        self,
        text: str,
        raw_response: dict[str, Any] | None,
    ) -> None:
        super().__init__(text)
        self.text = text
        self.raw_response = raw_response
