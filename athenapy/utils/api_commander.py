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

import json
import logging
from types import TracebackType
from typing import Any, Dict, Iterable, Mapping, Sequence, cast

import httpx

from athenapy import __version__
from athenapy.constants import CallerType
from athenapy.exceptions import (
    QueryServiceHttpException,
    UnexpectedQueryServiceResponseException,
    _TimeoutContext,
    to_query_timeout_exception,
)
from athenapy.settings.defaults import (
    DEFAULT_REDACTED_HEADER_NAMES,
    FIXED_SECRET_PLACEHOLDER,
)
from athenapy.utils.request_tools import (
    HttpMethod,
    log_httpx_request,
    log_httpx_response,
    to_httpx_timeout,
)

logger = logging.getLogger(__name__)


def compose_full_user_agent(callers: Sequence[CallerType]) -> str | None:
    """
    Build a User-Agent string out of (name, version) pairs, in order,
    skipping nameless callers, e.g. "myapp/1.2 athenapy/0.1.0".
    """
    ua_strings = [
        f"{c_name}/{c_version}" if c_version else c_name
        for c_name, c_version in callers
        if c_name
    ]
    return " ".join(ua_strings) if ua_strings else None


class APICommander:
    """
    The single place where HTTP requests are issued, with standard logging,
    header redaction and mapping of httpx errors into athenapy exceptions.

    Requests are made with an `httpx.AsyncClient`, hence all methods issuing
    requests are coroutines, meant to run on the `AsyncRunner` loop. The client
    may be shared by several commanders: only the commander that created it
    closes it in `aclose`.
    """

    def __init__(
        self,
        *,
        api_endpoint: str,
        path: str = "",
        headers: Mapping[str, str | None] = {},
        callers: Sequence[CallerType] = [],
        redacted_header_names: Iterable[str] | None = None,
        content_type: str = "application/json",
        async_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = async_client is None
        self.async_client = async_client or httpx.AsyncClient()
        self.api_endpoint = api_endpoint.rstrip("/")
        self.path = path.lstrip("/")
        self.headers = dict(headers)
        self.callers = list(callers)
        self.content_type = content_type
        self.redacted_header_names = set(redacted_header_names or [])
        self.upper_full_redacted_header_names = {
            header_name.upper()
            for header_name in (
                self.redacted_header_names | DEFAULT_REDACTED_HEADER_NAMES
            )
        }

        full_user_agent_string = compose_full_user_agent(
            self.callers + [("athenapy", __version__)]
        )
        self.caller_header: dict[str, str] = (
            {"User-Agent": full_user_agent_string} if full_user_agent_string else {}
        )
        self.full_headers: dict[str, str] = {
            k: v
            for k, v in {
                **{
                    "Content-Type": self.content_type,
                    "Accept": "application/json",
                },
                **self.caller_header,
                **self.headers,
            }.items()
            if v is not None
        }
        self._loggable_headers = self._redact(self.full_headers)
        self.full_path = ("/".join([self.api_endpoint, self.path])).rstrip("/")

    def __repr__(self) -> str:
        pieces = [
            f"api_endpoint={self.api_endpoint}",
            f"path={self.path}",
            f"callers={self.callers}",
        ]
        return f"{self.__class__.__name__}({', '.join(pieces)})"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, APICommander):
            return all(
                [
                    self.api_endpoint == other.api_endpoint,
                    self.path == other.path,
                    self.headers == other.headers,
                    self.callers == other.callers,
                    self.redacted_header_names == other.redacted_header_names,
                    self.content_type == other.content_type,
                ]
            )
        else:
            return False

    async def __aenter__(self) -> APICommander:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None = None,
        exc_value: BaseException | None = None,
        traceback: TracebackType | None = None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.async_client.aclose()

    def _redact(self, headers: Mapping[str, str]) -> dict[str, str]:
        return {
            k: v
            if k.upper() not in self.upper_full_redacted_header_names
            else FIXED_SECRET_PLACEHOLDER
            for k, v in headers.items()
        }

    def _compose_request_url(self, additional_path: str | None) -> str:
        if additional_path:
            return "/".join([self.full_path.rstrip("/"), additional_path.lstrip("/")])
        else:
            return self.full_path

    def _raw_response_to_json(
        self,
        raw_response: httpx.Response,
        payload: dict[str, Any] | None,
    ) -> dict[str, Any]:
        # try to process the httpx raw response into a JSON or throw a failure
        try:
            raw_response_json = cast(
                Dict[str, Any],
                json.loads(raw_response.text),
            )
        except ValueError:
            # json() parsing has failed (e.g., empty body)
            if payload is not None:
                command_desc = "/".join(sorted(payload.keys()))
            else:
                command_desc = "(none)"
            raise UnexpectedQueryServiceResponseException(
                text=f"Unparseable response from API '{command_desc}' request.",
                raw_response={
                    "raw_response": raw_response.text,
                },
            )
        if not isinstance(raw_response_json, dict):
            raise UnexpectedQueryServiceResponseException(
                text="Response from API is not a JSON object.",
                raw_response={"raw_response": raw_response_json},
            )
        return raw_response_json

    async def _raise_for_status(self, raw_response: httpx.Response) -> None:
        try:
            raw_response.raise_for_status()
        except httpx.HTTPStatusError as http_exc:
            if not raw_response.is_closed:
                await raw_response.aread()
                await raw_response.aclose()
            logger.warning(
                f"APICommander about to raise from: HTTP {raw_response.status_code} "
                f"'{raw_response.text}'"
            )
            raise QueryServiceHttpException.from_httpx_error(http_exc)

    async def async_raw_request(
        self,
        *,
        http_method: str = HttpMethod.POST,
        payload: dict[str, Any] | None = None,
        additional_path: str | None = None,
        request_params: dict[str, Any] = {},
        additional_headers: Mapping[str, str] = {},
        timeout_context: _TimeoutContext | None = None,
        stream: bool = False,
    ) -> httpx.Response:
        """
        Issue a request and return the httpx response, raising the
        appropriate athenapy exception on timeouts and error statuses.
        With `stream=True` the body is not read: the caller must close
        the returned response.
        """
        request_url = self._compose_request_url(additional_path)
        _timeout_context = timeout_context or _TimeoutContext(request_ms=None)
        encoded_payload = (
            json.dumps(
                payload,
                allow_nan=False,
                separators=(",", ":"),
                ensure_ascii=False,
            )
            if payload is not None
            else None
        )
        request_headers = {**self.full_headers, **additional_headers}
        httpx_request = self.async_client.build_request(
            method=http_method,
            url=request_url,
            content=encoded_payload.encode() if encoded_payload is not None else None,
            params=request_params,
            timeout=to_httpx_timeout(_timeout_context),
            headers=request_headers,
        )
        log_httpx_request(
            httpx_request,
            redacted_headers=self._redact(request_headers),
            timeout_context=_timeout_context,
        )

        try:
            raw_response = await self.async_client.send(httpx_request, stream=stream)
        except httpx.TimeoutException as timeout_exc:
            raise to_query_timeout_exception(
                timeout_exc, timeout_context=_timeout_context
            )

        await self._raise_for_status(raw_response)
        log_httpx_response(response=raw_response, streamed=stream)
        return raw_response

    async def async_request(
        self,
        *,
        http_method: str = HttpMethod.POST,
        payload: dict[str, Any] | None = None,
        additional_path: str | None = None,
        request_params: dict[str, Any] = {},
        additional_headers: Mapping[str, str] = {},
        timeout_context: _TimeoutContext | None = None,
    ) -> dict[str, Any]:
        raw_response = await self.async_raw_request(
            http_method=http_method,
            payload=payload,
            additional_path=additional_path,
            request_params=request_params,
            additional_headers=additional_headers,
            timeout_context=timeout_context,
        )
        return self._raw_response_to_json(raw_response, payload=payload)
