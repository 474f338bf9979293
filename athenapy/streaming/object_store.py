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

import asyncio
import concurrent.futures
import logging
from typing import Any, Callable
from urllib.parse import quote, urlparse

import httpx
from typing_extensions import override

from athenapy.exceptions import (
    AthenaPyException,
    MultiCallTimeoutManager,
    ObjectStreamException,
    _TimeoutContext,
    to_generic_timeout_exception,
)
from athenapy.settings.defaults import OBJECT_STORE_URI_SCHEME, UNBOUNDED_DEMAND
from athenapy.streaming.object_stream import ObjectStreamTransformer
from athenapy.streaming.subscription import Publisher, Subscriber, Subscription
from athenapy.utils.api_commander import APICommander
from athenapy.utils.async_runner import AsyncRunner
from athenapy.utils.request_tools import HttpMethod

logger = logging.getLogger(__name__)


def parse_object_location(location: str) -> tuple[str, str]:
    """
    Split an object location such as "s3://bucket/path/to/key" into
    bucket and key.

    Raises:
        ValueError: if the location is not in the expected form.
    """
    parsed = urlparse(location)
    bucket = parsed.netloc
    key = parsed.path.lstrip("/")
    if parsed.scheme != OBJECT_STORE_URI_SCHEME or not bucket or not key:
        raise ValueError(
            f"Invalid object location '{location}': expected "
            f"'{OBJECT_STORE_URI_SCHEME}://bucket/key'."
        )
    return bucket, key


class HttpxSubscription(Subscription):
    """
    A subscription pulling the body of a streamed httpx response chunk
    by chunk, and only when the subscriber has signaled demand: when no
    chunk is requested, nothing is read from the connection.

    The pumping coroutine runs on the event loop given at construction; `request`
    and `cancel` can be called from any thread. The response is closed once the
    body is exhausted, on error or on cancellation.
    """

    def __init__(
        self,
        response: httpx.Response,
        subscriber: Subscriber,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._response = response
        self._subscriber = subscriber
        self._loop = loop
        self._demand = 0
        self._demand_event: asyncio.Event | None = None
        self._cancelled = False
        self._pump_future: concurrent.futures.Future[None] | None = None

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(demand={self._demand}, "
            f"cancelled={self._cancelled})"
        )

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _call_on_loop(self, callback: Callable[..., Any], *args: Any) -> None:
        if self._loop.is_closed():
            return
        try:
            self._loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # the loop was closed in the meantime: nothing left to wake up
            logger.debug("httpx subscription: event loop closed, signal dropped")

    def _add_demand(self, n: int) -> None:
        self._demand = min(self._demand + n, UNBOUNDED_DEMAND)
        if self._demand_event is not None:
            self._demand_event.set()

    def _wake_up(self) -> None:
        if self._demand_event is not None:
            self._demand_event.set()

    @override
    def request(self, n: int) -> None:
        if n <= 0:
            raise ValueError(f"Demand must be positive (got {n})")
        self._call_on_loop(self._add_demand, n)

    @override
    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._call_on_loop(self._wake_up)
        if self._pump_future is not None and not self._loop.is_closed():
            self._pump_future.cancel()

    def start(self) -> None:
        """Schedule the pumping coroutine on the loop."""
        self._pump_future = asyncio.run_coroutine_threadsafe(self._pump(), self._loop)

    async def _pump(self) -> None:
        self._demand_event = asyncio.Event()
        chunks = self._response.aiter_bytes()
        try:
            while True:
                while self._demand == 0 and not self._cancelled:
                    self._demand_event.clear()
                    await self._demand_event.wait()
                if self._cancelled:
                    logger.debug("httpx subscription: cancelled")
                    return
                try:
                    chunk = await chunks.__anext__()
                except StopAsyncIteration:
                    self._subscriber.on_complete()
                    return
                if self._cancelled:
                    return
                if self._demand < UNBOUNDED_DEMAND:
                    self._demand -= 1
                self._subscriber.on_next(chunk)
        except asyncio.CancelledError:
            # the loop is shutting down: the subscriber must still get a terminal signal
            if not self._cancelled:
                self._cancelled = True
                self._subscriber.on_error(
                    ObjectStreamException("The object download was cancelled.")
                )
            raise
        except Exception as exc:
            if not self._cancelled:
                self._subscriber.on_error(exc)
        finally:
            await self._response.aclose()


class HttpxObjectPublisher(Publisher):
    """
    A publisher of the body of a streamed httpx response. It admits a single
    subscriber: the body can be read only once.
    """

    def __init__(
        self,
        response: httpx.Response,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._response = response
        self._loop = loop
        self._subscription: HttpxSubscription | None = None

    @override
    def subscribe(self, subscriber: Subscriber) -> None:
        if self._subscription is not None:
            subscriber.on_error(
                ObjectStreamException("The object body can be subscribed to only once.")
            )
            return
        self._subscription = HttpxSubscription(self._response, subscriber, self._loop)
        subscriber.on_subscribe(self._subscription)
        self._subscription.start()


class ObjectStoreClient:
    """
    Retrieves objects from the object store as blocking, flow-controlled
    binary streams (see ObjectStreamTransformer).

    Args:
        commander: an APICommander targeting the object store endpoint.
        runner: the AsyncRunner whose loop issues the requests and receives
            the object bodies.
        request_timeout_ms: a timeout for the HTTP-level operations (connection,
            and each read from the socket), in milliseconds.
        object_read_timeout_ms: the default overall timeout for `open_object`.
    """

    def __init__(
        self,
        *,
        commander: APICommander,
        runner: AsyncRunner,
        request_timeout_ms: int | None = None,
        object_read_timeout_ms: int | None = None,
    ) -> None:
        self.commander = commander
        self.runner = runner
        self.request_timeout_ms = request_timeout_ms
        self.object_read_timeout_ms = object_read_timeout_ms

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(commander={self.commander})"

    async def _async_get_object(
        self,
        location: str,
        transformer: ObjectStreamTransformer,
        timeout_context: _TimeoutContext,
    ) -> None:
        try:
            bucket, key = parse_object_location(location)
            response = await self.commander.async_raw_request(
                http_method=HttpMethod.GET,
                additional_path=f"{quote(bucket)}/{quote(key)}",
                timeout_context=timeout_context,
                stream=True,
            )
        except Exception as exc:
            transformer.exception_occurred(exc)
            return
        content_length_header = response.headers.get("Content-Length")
        content_length = (
            int(content_length_header)
            if content_length_header and content_length_header.isdigit()
            else None
        )
        transformer.on_response(content_length)
        transformer.on_stream(
            HttpxObjectPublisher(response, loop=asyncio.get_running_loop())
        )

    def get_object(
        self,
        location: str,
        *,
        request_timeout_ms: int | None = None,
    ) -> tuple[ObjectStreamTransformer, concurrent.futures.Future[ObjectStreamTransformer]]:
        """
        Start retrieving an object, without waiting.

        Args:
            location: the object location, as in "s3://bucket/key".
            request_timeout_ms: a timeout for the HTTP-level operations,
                defaulting to the one given at construction.

        Returns:
            the stream and the future resolving to it once the response
            headers are available.
        """
        transformer = ObjectStreamTransformer(location=location)
        timeout_context = _TimeoutContext(
            request_ms=request_timeout_ms or self.request_timeout_ms,
            label="request_timeout_ms",
        )
        logger.info(f"opening object stream for '{location}'")
        self.runner.submit(
            self._async_get_object(location, transformer, timeout_context)
        )
        return transformer, transformer.prepare()

    def open_object(
        self,
        location: str,
        *,
        timeout_ms: int | None = None,
    ) -> ObjectStreamTransformer:
        """
        Retrieve an object and return a readable binary stream over its body,
        once the response headers are available.

        Args:
            location: the object location, as in "s3://bucket/key".
            timeout_ms: how long to wait for the stream to be open, defaulting
                to the `object_read_timeout_ms` given at construction.

        Returns:
            an ObjectStreamTransformer, to be closed after use.

        Raises:
            QueryTimeoutException: if the stream could not be opened in time.
            QueryServiceHttpException: if the object store answers with an error.
            ObjectStreamException: for any other failure.
        """
        timeout_manager = MultiCallTimeoutManager(
            overall_timeout_ms=(
                self.object_read_timeout_ms if timeout_ms is None else timeout_ms
            ),
            timeout_label="object_read_timeout_ms",
        )
        timeout_context = timeout_manager.remaining_timeout(
            cap_time_ms=self.request_timeout_ms,
            cap_timeout_label="request_timeout_ms",
        )
        transformer, future = self.get_object(
            location, request_timeout_ms=timeout_context.request_ms
        )
        try:
            return future.result(timeout=timeout_manager.remaining_timeout().request_s)
        except concurrent.futures.TimeoutError:
            transformer.close()
            raise to_generic_timeout_exception(
                f"Timed out opening object stream for '{location}'",
                _TimeoutContext(
                    request_ms=None,
                    nominal_ms=timeout_manager.overall_timeout_ms,
                    label=timeout_manager.timeout_label,
                ),
            )
        except AthenaPyException:
            transformer.close()
            raise
        except Exception as exc:
            transformer.close()
            raise ObjectStreamException(
                f"Opening object stream for '{location}' failed: {exc}",
                location=location,
            ) from exc
