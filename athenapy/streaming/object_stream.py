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
import io
import logging
import threading
from typing import Any

from typing_extensions import override

from athenapy.exceptions import ClosedResourceException, ObjectStreamException
from athenapy.streaming.chunk_queue import END_MARKER, ChunkQueue
from athenapy.streaming.flow_control import FlowController
from athenapy.streaming.subscription import Publisher, Subscriber, Subscription

logger = logging.getLogger(__name__)


class ObjectStreamTransformer(io.RawIOBase, Subscriber):
    """
    A blocking, readable binary stream fed by a push-based producer of chunks.

    The producer side (`on_response`, `on_stream` and the Subscriber methods)
    is driven from the event loop thread; the consumer reads from any other
    thread with the usual `io.RawIOBase` methods (`read`, `readinto`,
    `readall`...), which block until data is available. The amount of data
    requested ahead of the consumer is governed by a FlowController.

    Once the producer signals an error, every read raises an
    ObjectStreamException (with the producer error as its cause).

    Closing the stream before the end cancels the upstream subscription.
    Closing never blocks, and reading a closed stream raises
    ClosedResourceException.

    Example:
        >>> with client.open_object("s3://bucket/results/8a6f.csv") as stream:
        ...     header_line = stream.readline()
        ...     rest = stream.read()

    Args:
        location: the location of the streamed object, used in messages.
        flow_controller: a FlowController for this stream. A default one is
            created if not provided.
    """

    def __init__(
        self,
        *,
        location: str | None = None,
        flow_controller: FlowController | None = None,
    ) -> None:
        super().__init__()
        self.location = location
        self._future: concurrent.futures.Future[ObjectStreamTransformer] = (
            concurrent.futures.Future()
        )
        self._queue = ChunkQueue()
        self._flow = flow_controller or FlowController()
        self._lock = threading.Lock()
        self._subscription: Subscription | None = None
        self._content_length: int | None = None
        self._error: BaseException | None = None
        self._complete = threading.Event()
        self._released = False
        # consumer-side state
        self._read_chunk: Any = None
        self._read_offset = 0

    def __repr__(self) -> str:
        if self.closed:
            status = "closed"
        elif self._error is not None:
            status = "error"
        elif self._complete.is_set():
            status = "complete"
        else:
            status = "open"
        return f'{self.__class__.__name__}("{self.location}", {status})'

    @property
    def content_length(self) -> int | None:
        """The size of the object as declared in the response, if known."""
        return self._content_length

    @property
    def flow_controller(self) -> FlowController:
        return self._flow

    # producer side

    def prepare(self) -> concurrent.futures.Future[ObjectStreamTransformer]:
        """
        Return a future resolving to this stream as soon as the response
        headers are available, or failing with the producer error.
        """
        return self._future

    def _resolve_future(self, error: BaseException | None = None) -> None:
        with self._lock:
            if self._future.done():
                return
            try:
                if error is None:
                    self._future.set_result(self)
                else:
                    self._future.set_exception(error)
            except concurrent.futures.InvalidStateError:
                pass

    def on_response(self, content_length: int | None) -> None:
        logger.debug(
            f"object stream '{self.location}': response received, "
            f"content length {content_length}"
        )
        self._content_length = content_length
        self._resolve_future()

    def on_stream(self, publisher: Publisher) -> None:
        publisher.subscribe(self)

    def exception_occurred(self, error: BaseException) -> None:
        logger.debug(f"object stream '{self.location}': error {error!r}")
        self._error = error
        self._resolve_future(error)
        try:
            self._release()
        except Exception as exc:
            logger.debug(
                f"object stream '{self.location}': ignoring error while "
                f"releasing the stream: {exc!r}"
            )

    @override
    def on_subscribe(self, subscription: Subscription) -> None:
        self._subscription = subscription
        if self._released:
            subscription.cancel()
            return
        subscription.request(self._flow.initial_demand(self._content_length))

    @override
    def on_next(self, chunk: bytes) -> None:
        if self._released:
            return
        chunk_size = len(chunk)
        if chunk_size > 0:
            self._queue.put(chunk)
        self._request_more(self._flow.chunk_received(chunk_size))

    @override
    def on_error(self, error: BaseException) -> None:
        self.exception_occurred(error)

    @override
    def on_complete(self) -> None:
        logger.debug(f"object stream '{self.location}': producer complete")
        self._queue.put_end()
        self._complete.set()

    def _request_more(self, n: int) -> None:
        if n > 0 and self._subscription is not None and not self._released:
            logger.debug(
                f"object stream '{self.location}': requesting {n} more chunks "
                f"({self._flow})"
            )
            self._subscription.request(n)

    # consumer side

    def _raise_for_error(self) -> None:
        if self._error is not None:
            raise ObjectStreamException(
                f"Reading object '{self.location}' failed: {self._error}",
                location=self.location,
            ) from self._error

    def _check_readable(self) -> None:
        if self.closed:
            raise ClosedResourceException(
                text="The object stream is closed.",
                resource="object stream",
            )
        self._raise_for_error()

    def _ensure_chunk(self) -> bool:
        self._check_readable()
        if self._read_chunk is END_MARKER:
            return False
        if self._read_chunk is None or self._read_offset >= len(self._read_chunk):
            item = self._queue.take()
            if item is END_MARKER:
                self._read_chunk = END_MARKER
                # the end marker is also enqueued when an error releases the stream
                self._raise_for_error()
                return False
            self._read_chunk = item
            self._read_offset = 0
            self._request_more(self._flow.chunk_taken(len(item)))
        return True

    @override
    def readable(self) -> bool:
        return True

    @override
    def readinto(self, buffer: Any) -> int:
        """
        Read up to len(buffer) bytes into buffer, blocking until at least one
        byte is available. Return 0 at the end of the stream.
        """
        if not self._ensure_chunk():
            return 0
        view = memoryview(buffer).cast("B")
        chunk_view = memoryview(self._read_chunk)
        size = min(len(view), len(chunk_view) - self._read_offset)
        view[:size] = chunk_view[self._read_offset : self._read_offset + size]
        self._read_offset += size
        return size

    def available(self) -> int:
        """The number of bytes that can be read right away without blocking."""
        self._check_readable()
        if self._read_chunk is None or self._read_chunk is END_MARKER:
            return 0
        return len(self._read_chunk) - self._read_offset

    # release

    def _release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
        self._queue.clear_and_end()
        if not self._complete.is_set():
            if self._subscription is not None:
                self._subscription.cancel()
            self._future.cancel()

    @override
    def close(self) -> None:
        """
        Close the stream. If the producer has not completed yet, the upstream
        subscription is cancelled. Idempotent; never blocks.
        """
        if not self.closed:
            logger.debug(f"object stream '{self.location}': closing")
            self._release()
        super().close()
