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

import concurrent.futures
import logging
from typing import Any

from athenapy.data.info.result_metadata import ResultPage
from athenapy.exceptions import (
    QueryFailedException,
    QueryTimeoutException,
    _TimeoutContext,
    to_generic_timeout_exception,
)
from athenapy.settings.defaults import (
    GET_QUERY_RESULTS_TARGET,
    MAX_FETCH_SIZE,
    QUERY_SERVICE_TARGET_HEADER,
)
from athenapy.utils.api_commander import APICommander
from athenapy.utils.api_options import check_fetch_size
from athenapy.utils.async_runner import AsyncRunner
from athenapy.utils.request_tools import HttpMethod

logger = logging.getLogger(__name__)


class PageFetcher:
    """
    Retrieves pages of results for one query execution from the query service.

    Requests run on the event loop of an AsyncRunner; callers get back
    a `concurrent.futures.Future` (see `fetch_page`) or block for a bounded
    time on the result (see `load_page`). Pages are never retried here.

    Args:
        query_execution_id: the identifier of the query whose results are read.
        commander: an APICommander targeting the query service.
        runner: the AsyncRunner whose loop issues the requests.
        request_timeout_ms: a timeout for each single HTTP request, in
            milliseconds. Zero or None mean no HTTP-level timeout.
    """

    def __init__(
        self,
        *,
        query_execution_id: str,
        commander: APICommander,
        runner: AsyncRunner,
        request_timeout_ms: int | None = None,
    ) -> None:
        self.query_execution_id = query_execution_id
        self.commander = commander
        self.runner = runner
        self.request_timeout_ms = request_timeout_ms

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(query_execution_id="{self.query_execution_id}", '
            f"commander={self.commander})"
        )

    def _build_payload(
        self, next_token: str | None, max_results: int
    ) -> dict[str, Any]:
        return {
            k: v
            for k, v in {
                "QueryExecutionId": self.query_execution_id,
                "MaxResults": max_results or MAX_FETCH_SIZE,
                "NextToken": next_token,
            }.items()
            if v is not None
        }

    async def _async_fetch_page(
        self, next_token: str | None, max_results: int
    ) -> ResultPage:
        payload = self._build_payload(next_token, max_results)
        logger.info(
            f"fetching a page of results for query '{self.query_execution_id}'"
        )
        raw_response = await self.commander.async_request(
            http_method=HttpMethod.POST,
            payload=payload,
            additional_headers={QUERY_SERVICE_TARGET_HEADER: GET_QUERY_RESULTS_TARGET},
            timeout_context=_TimeoutContext(
                request_ms=self.request_timeout_ms, label="request_timeout_ms"
            ),
        )
        page = ResultPage._from_dict(raw_response)
        logger.info(
            f"finished fetching a page of results for query "
            f"'{self.query_execution_id}': {len(page.rows)} rows"
        )
        return page

    def fetch_page(
        self,
        next_token: str | None = None,
        max_results: int = MAX_FETCH_SIZE,
    ) -> concurrent.futures.Future[ResultPage]:
        """
        Schedule the request for a page of results.

        Args:
            next_token: the continuation token of the page, None for the first one.
            max_results: the maximum number of rows in the page. Zero stands for
                the largest page the service admits.

        Returns:
            a concurrent.futures.Future resolving to a ResultPage.

        Raises:
            InvalidConfigurationException: if `max_results` is out of range.
        """
        check_fetch_size(max_results)
        return self.runner.submit(self._async_fetch_page(next_token, max_results))

    def load_page(
        self,
        next_token: str | None,
        max_results: int,
        timeout_context: _TimeoutContext,
    ) -> ResultPage:
        """
        Fetch a page of results, blocking until it is available.

        Args:
            next_token: the continuation token of the page, None for the first one.
            max_results: the maximum number of rows in the page.
            timeout_context: how long to wait for the page. Its `request_ms`
                being None or zero means waiting indefinitely.

        Returns:
            the ResultPage.

        Raises:
            QueryTimeoutException: if the page is not available in time. The
                pending request is cancelled.
            QueryFailedException: if the request failed for any other reason.
                The original error is chained as the cause.
        """
        future = self.fetch_page(next_token=next_token, max_results=max_results)
        try:
            return future.result(timeout=timeout_context.request_s)
        except concurrent.futures.TimeoutError:
            future.cancel()
            logger.info(
                f"timed out waiting for a page of results for query "
                f"'{self.query_execution_id}'"
            )
            raise to_generic_timeout_exception(
                "Timed out waiting for a page of query results",
                timeout_context,
            )
        except QueryTimeoutException:
            raise
        except concurrent.futures.CancelledError as exc:
            raise QueryFailedException(
                f"Fetching results for query '{self.query_execution_id}' was cancelled",
                query_execution_id=self.query_execution_id,
            ) from exc
        except Exception as exc:
            raise QueryFailedException(
                f"Fetching results for query '{self.query_execution_id}' failed: {exc}",
                query_execution_id=self.query_execution_id,
            ) from exc
