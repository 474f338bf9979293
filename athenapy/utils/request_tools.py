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

import logging
from typing import Mapping

import httpx

from athenapy.exceptions import _TimeoutContext
from athenapy.settings.defaults import MAX_LOGGED_BODY_LENGTH, REQUEST_ID_HEADERS

logger = logging.getLogger(__name__)


def _truncate_body(body: str) -> str:
    if len(body) <= MAX_LOGGED_BODY_LENGTH:
        return body
    return f"{body[:MAX_LOGGED_BODY_LENGTH]}... ({len(body)} characters)"


def log_httpx_request(
    request: httpx.Request,
    *,
    redacted_headers: Mapping[str, str],
    timeout_context: _TimeoutContext,
) -> None:
    """
    Log an outgoing request at debug level. Long payloads are truncated.

    Args:
        request: the httpx.Request about to be sent.
        redacted_headers: the headers to log. Caution, these are logged as
            they are: secrets must have been redacted already.
        timeout_context: the timeout information for the request.
    """
    logger.debug(f"Request: {request.method} {request.url}")
    if redacted_headers:
        logger.debug(f"Request headers: '{dict(redacted_headers)}'")
    if request.content:
        logger.debug(
            "Request payload: "
            f"'{_truncate_body(request.content.decode(errors='replace'))}'"
        )
    if timeout_context:
        logger.debug(
            f"Timeout (ms): for request {timeout_context.request_ms or '(unset)'} ms"
            f", overall operation {timeout_context.nominal_ms or '(unset)'} ms"
        )


def log_httpx_response(response: httpx.Response, *, streamed: bool = False) -> None:
    """
    Log a response at debug level, including the service request id if any.

    Args:
        response: the httpx.Response received.
        streamed: if True, the body is left unread and only its declared
            length is logged.
    """
    request_id = next(
        (response.headers[hdr] for hdr in REQUEST_ID_HEADERS if hdr in response.headers),
        None,
    )
    logger.debug(
        f"Response: HTTP {response.status_code} {response.reason_phrase}"
        + (f" (request id {request_id})" if request_id else "")
    )
    if streamed:
        logger.debug(
            "Response body streamed, content length "
            f"{response.headers.get('Content-Length', '(unknown)')}"
        )
    else:
        logger.debug(f"Response text: '{_truncate_body(response.text)}'")


class HttpMethod:
    GET = "GET"
    POST = "POST"


def to_httpx_timeout(timeout_context: _TimeoutContext) -> httpx.Timeout | None:
    """The httpx timeout for a request, None meaning no timeout at all."""
    request_s = timeout_context.request_s
    if request_s is None:
        return None
    return httpx.Timeout(request_s)
