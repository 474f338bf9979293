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
import threading
from types import TracebackType
from typing import Sequence

import httpx

from athenapy.constants import CallerType
from athenapy.data.cursors.result_cursor import ResultCursor
from athenapy.data.cursors.result_set import ResultSet
from athenapy.data.query_results import PageFetcher
from athenapy.exceptions import ClosedResourceException, InvalidConfigurationException
from athenapy.settings.defaults import (
    ASYNC_RUNNER_SHUTDOWN_TIMEOUT_S,
    QUERY_SERVICE_CONTENT_TYPE,
)
from athenapy.streaming.object_store import ObjectStoreClient
from athenapy.streaming.object_stream import ObjectStreamTransformer
from athenapy.utils.api_commander import APICommander
from athenapy.utils.api_options import ConnectionConfiguration, check_fetch_size
from athenapy.utils.async_runner import AsyncRunner

logger = logging.getLogger(__name__)


class QueryResultsClient:
    """
    A client to read the results of queries run by the query service, and
    to stream result objects from the object store.

    The client owns a background event loop (see AsyncRunner) where all
    HTTP traffic happens, and a single httpx.AsyncClient shared by every
    result set and object stream it creates. Close the client (or use it as
    a context manager) to release them.

    Args:
        configuration: a ConnectionConfiguration with the endpoints, headers,
            fetch size and timeouts to use.
        callers: a list of caller identities, each a (name, version) pair, to
            prepend to the User-Agent header of requests.
        async_client: an httpx.AsyncClient to use for requests. If one is
            passed, closing this object does not close it.

    Example:
        >>> from athenapy import ConnectionConfiguration, QueryResultsClient
        >>> configuration = ConnectionConfiguration(
        ...     query_service_endpoint="https://athena.eu-west-1.amazonaws.com",
        ...     headers={"Authorization": "..."},
        ... )
        >>> with QueryResultsClient(configuration) as client:
        ...     result_set = client.get_result("8a6f90d2-...")
        ...     for row in result_set:
        ...         print(row)
        ...
        ('alice', '31')
        ('bob', '27')
    """

    def __init__(
        self,
        configuration: ConnectionConfiguration,
        *,
        callers: Sequence[CallerType] = [],
        async_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.configuration = configuration
        self.callers = list(callers)
        self._owns_async_client = async_client is None
        self._async_client = async_client or httpx.AsyncClient()
        self._runner = AsyncRunner()
        self._lock = threading.Lock()
        self._closed = False
        self._query_commander = APICommander(
            api_endpoint=configuration.query_service_endpoint,
            headers=configuration.headers,
            callers=self.callers,
            content_type=QUERY_SERVICE_CONTENT_TYPE,
            async_client=self._async_client,
        )
        self._object_store: ObjectStoreClient | None
        if configuration.object_store_endpoint:
            self._object_store = ObjectStoreClient(
                commander=APICommander(
                    api_endpoint=configuration.object_store_endpoint,
                    headers=configuration.headers,
                    callers=self.callers,
                    async_client=self._async_client,
                ),
                runner=self._runner,
                request_timeout_ms=configuration.timeout_options.request_timeout_ms,
                object_read_timeout_ms=configuration.timeout_options.object_read_timeout_ms,
            )
        else:
            self._object_store = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.configuration})"

    def __enter__(self) -> QueryResultsClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None = None,
        exc_value: BaseException | None = None,
        traceback: TracebackType | None = None,
    ) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClosedResourceException(
                text="The client is closed.",
                resource="client",
            )

    def _get_object_store(self) -> ObjectStoreClient:
        self._ensure_open()
        if self._object_store is None:
            raise InvalidConfigurationException(
                "No object store endpoint is configured.",
                setting="object_store_endpoint",
                value=None,
            )
        return self._object_store

    def get_result(
        self,
        query_execution_id: str,
        *,
        fetch_size: int | None = None,
        timeout_ms: int | None = None,
    ) -> ResultSet:
        """
        Get a result set over the results of a query. No request is made
        until rows (or the metadata) are read from the result set.

        Args:
            query_execution_id: the identifier of a query execution.
            fetch_size: the number of rows per page, defaulting to the
                fetch size in the configuration.
            timeout_ms: how long each advance of the result set may wait for
                the pages it needs, defaulting to the `api_call_timeout_ms`
                of the configuration.

        Returns:
            a ResultSet.
        """
        self._ensure_open()
        _fetch_size = check_fetch_size(
            self.configuration.fetch_size if fetch_size is None else fetch_size
        )
        fetcher = PageFetcher(
            query_execution_id=query_execution_id,
            commander=self._query_commander,
            runner=self._runner,
            request_timeout_ms=self.configuration.timeout_options.request_timeout_ms,
        )
        cursor = ResultCursor(
            fetcher,
            fetch_size=_fetch_size,
            timeout_ms=(
                self.configuration.api_call_timeout_ms
                if timeout_ms is None
                else timeout_ms
            ),
            timeout_label="api_call_timeout_ms" if timeout_ms is None else "timeout_ms",
        )
        return ResultSet(cursor)

    def get_object(
        self, location: str
    ) -> concurrent.futures.Future[ObjectStreamTransformer]:
        """
        Start retrieving an object from the object store, without waiting.

        Args:
            location: the object location, as in "s3://bucket/key".

        Returns:
            a future resolving to a readable stream over the object body once
            the response headers are available.
        """
        _, future = self._get_object_store().get_object(location)
        return future

    def open_object(
        self, location: str, *, timeout_ms: int | None = None
    ) -> ObjectStreamTransformer:
        """
        Open a readable binary stream over an object in the object store.

        Args:
            location: the object location, as in "s3://bucket/key".
            timeout_ms: how long to wait for the stream to be open, defaulting
                to the `object_read_timeout_ms` of the configuration.

        Returns:
            an ObjectStreamTransformer, to be closed after use.
        """
        return self._get_object_store().open_object(location, timeout_ms=timeout_ms)

    def close(self) -> None:
        """
        Close the HTTP client (if owned by this object) and stop the background
        event loop. Result sets and streams still open stop working. Idempotent.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self._owns_async_client:
            try:
                self._runner.submit(self._async_client.aclose()).result(
                    timeout=ASYNC_RUNNER_SHUTDOWN_TIMEOUT_S
                )
            except concurrent.futures.TimeoutError:
                logger.warning("timed out closing the HTTP client")
        self._runner.close()
