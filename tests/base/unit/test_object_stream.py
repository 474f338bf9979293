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
import threading
import time
from typing import Sequence

import pytest

from athenapy.exceptions import ClosedResourceException, ObjectStreamException
from athenapy.settings.defaults import (
    CHUNKS_REQUEST_LIMIT,
    TARGET_BUFFER_SIZE,
    UNBOUNDED_DEMAND,
)
from athenapy.streaming.flow_control import FlowController
from athenapy.streaming.object_stream import ObjectStreamTransformer
from athenapy.streaming.subscription import Publisher, Subscriber, Subscription

LARGE_CONTENT_LENGTH = TARGET_BUFFER_SIZE * 4
JOIN_TIMEOUT_S = 30


class ThreadedSubscription(Subscription):
    """
    Pushes a list of chunks to the subscriber from a dedicated thread,
    honouring the demand, then completes (or fails with `error`).
    """

    def __init__(
        self,
        chunks: Sequence[bytes],
        subscriber: Subscriber,
        error: Exception | None = None,
    ) -> None:
        self.chunks = list(chunks)
        self.subscriber = subscriber
        self.error = error
        self.demand = 0
        self.max_demand = 0
        self.cancelled = False
        self.delivered = 0
        self.condition = threading.Condition()
        self.thread = threading.Thread(target=self._run, daemon=True)

    def request(self, n: int) -> None:
        with self.condition:
            self.demand = min(self.demand + n, UNBOUNDED_DEMAND)
            self.max_demand = max(self.max_demand, self.demand)
            self.condition.notify_all()

    def cancel(self) -> None:
        with self.condition:
            self.cancelled = True
            self.condition.notify_all()

    def _run(self) -> None:
        while True:
            with self.condition:
                if self.delivered >= len(self.chunks):
                    break
                self.condition.wait_for(lambda: self.demand > 0 or self.cancelled)
                if self.cancelled:
                    return
                if self.demand < UNBOUNDED_DEMAND:
                    self.demand -= 1
                chunk = self.chunks[self.delivered]
                self.delivered += 1
            self.subscriber.on_next(chunk)
        if self.error is not None:
            self.subscriber.on_error(self.error)
        else:
            self.subscriber.on_complete()


class ListPublisher(Publisher):
    def __init__(self, chunks: Sequence[bytes], error: Exception | None = None) -> None:
        self.chunks = chunks
        self.error = error
        self.subscription: ThreadedSubscription | None = None

    def subscribe(self, subscriber: Subscriber) -> None:
        self.subscription = ThreadedSubscription(self.chunks, subscriber, self.error)
        subscriber.on_subscribe(self.subscription)
        self.subscription.thread.start()


def _open_stream(
    chunks: Sequence[bytes],
    *,
    content_length: int | None = None,
    error: Exception | None = None,
    flow_controller: FlowController | None = None,
) -> tuple[ObjectStreamTransformer, ListPublisher]:
    stream = ObjectStreamTransformer(
        location="s3://bucket/key", flow_controller=flow_controller
    )
    publisher = ListPublisher(chunks, error=error)
    stream.on_response(
        sum(len(chunk) for chunk in chunks) if content_length is None else content_length
    )
    stream.on_stream(publisher)
    return stream, publisher


def _read_all_in_thread(
    stream: ObjectStreamTransformer, read_size: int, pause_s: float = 0
) -> bytes:
    parts: list[bytes] = []

    def _consume() -> None:
        while True:
            part = stream.read(read_size)
            if not part:
                return
            parts.append(part)
            if pause_s:
                time.sleep(pause_s)

    consumer = threading.Thread(target=_consume, daemon=True)
    consumer.start()
    consumer.join(timeout=JOIN_TIMEOUT_S)
    assert not consumer.is_alive()
    return b"".join(parts)


CHUNK_PATTERNS = [
    [],
    [b""],
    [b"", b"", b""],
    [b"abc"],
    [b"a", b"", b"bc", b"", b"", b"defg"],
    [b"", b"0123456789" * 10, b"x"],
    [bytes([i % 251]) * (i * 37 % 500) for i in range(200)],
]


class TestObjectStream:
    @pytest.mark.describe("test of stream content for any chunking pattern")
    def test_object_stream_concatenation(self) -> None:
        for chunks in CHUNK_PATTERNS:
            expected = b"".join(chunks)
            for read_size in (1, 7, 4096):
                stream, _ = _open_stream(chunks)
                assert _read_all_in_thread(stream, read_size) == expected
                # end of stream is idempotent
                assert stream.read(10) == b""
                assert stream.read() == b""
                assert stream.readinto(bytearray(5)) == 0
                stream.close()

    @pytest.mark.describe("test of stream readall and readinto")
    def test_object_stream_read_methods(self) -> None:
        chunks = [b"hello ", b"", b"world", b"\n", b"second line\n"]
        stream, _ = _open_stream(chunks)
        assert stream.readline() == b"hello world\n"
        buffer = bytearray(3)
        assert stream.readinto(buffer) == 3
        assert bytes(buffer) == b"sec"
        assert stream.available() == len("ond line\n")
        assert stream.read() == b"ond line\n"
        assert stream.available() == 0
        stream.close()

    @pytest.mark.describe("test of prepare future and declared size")
    def test_object_stream_prepare(self) -> None:
        stream = ObjectStreamTransformer(location="s3://bucket/key")
        future = stream.prepare()
        assert not future.done()
        stream.on_response(12)
        assert future.result(timeout=1) is stream
        assert stream.content_length == 12
        stream.close()

    @pytest.mark.describe("test of unbounded demand for small objects")
    def test_object_stream_small_object_demand(self) -> None:
        stream, publisher = _open_stream([b"abc", b"def"])
        assert publisher.subscription is not None
        assert publisher.subscription.max_demand == UNBOUNDED_DEMAND
        assert _read_all_in_thread(stream, 100) == b"abcdef"
        stream.close()

    @pytest.mark.describe("test of bounded outstanding requests with a slow consumer")
    def test_object_stream_backpressure(self) -> None:
        chunks = [bytes([i % 256]) * 16 for i in range(4000)]
        stream, publisher = _open_stream(chunks, content_length=LARGE_CONTENT_LENGTH)
        assert publisher.subscription is not None
        result = _read_all_in_thread(stream, 4000, pause_s=0.001)
        assert result == b"".join(chunks)
        assert 10 <= publisher.subscription.max_demand < CHUNKS_REQUEST_LIMIT
        assert stream.flow_controller.outstanding_requests < CHUNKS_REQUEST_LIMIT
        stream.close()

    @pytest.mark.describe("test of draining when chunks exceed the buffer target")
    def test_object_stream_large_chunks(self) -> None:
        chunks = [bytes([i]) * 700 for i in range(60)]
        flow = FlowController(target_buffer_size=1024)
        stream, _ = _open_stream(
            chunks, content_length=LARGE_CONTENT_LENGTH, flow_controller=flow
        )
        result = _read_all_in_thread(stream, 100, pause_s=0.0005)
        assert result == b"".join(chunks)
        stream.close()

    @pytest.mark.describe("test of closing a stream before its end")
    def test_object_stream_early_close(self) -> None:
        chunks = [b"z" * 1000 for _ in range(10000)]
        stream, publisher = _open_stream(chunks, content_length=LARGE_CONTENT_LENGTH)
        assert stream.read(10) == b"z" * 10
        start = time.monotonic()
        stream.close()
        assert time.monotonic() - start < 1
        assert publisher.subscription is not None
        assert publisher.subscription.cancelled
        assert stream.closed
        stream.close()
        with pytest.raises(ClosedResourceException):
            stream.read(10)
        with pytest.raises(ClosedResourceException):
            stream.available()
        publisher.subscription.thread.join(timeout=JOIN_TIMEOUT_S)
        assert not publisher.subscription.thread.is_alive()
        assert publisher.subscription.delivered < len(chunks)

    @pytest.mark.describe("test of closing a stream before the response")
    def test_object_stream_close_before_response(self) -> None:
        stream = ObjectStreamTransformer(location="s3://bucket/key")
        future = stream.prepare()
        stream.close()
        assert future.cancelled()
        # late producer signals are harmless
        stream.on_response(10)
        publisher = ListPublisher([b"0123456789"])
        stream.on_stream(publisher)
        assert publisher.subscription is not None
        assert publisher.subscription.cancelled

    @pytest.mark.describe("test of closing a stream with a blocked reader")
    def test_object_stream_close_wakes_reader(self) -> None:
        stream = ObjectStreamTransformer(location="s3://bucket/key")
        stream.on_response(LARGE_CONTENT_LENGTH)
        outcome: list[object] = []

        # a subscription that never delivers anything
        class _SilentSubscription(Subscription):
            def __init__(self) -> None:
                self.cancelled = False

            def request(self, n: int) -> None:
                pass

            def cancel(self) -> None:
                self.cancelled = True

        silent = _SilentSubscription()
        stream.on_subscribe(silent)

        def _consume() -> None:
            try:
                outcome.append(stream.read(10))
            except Exception as exc:
                outcome.append(exc)

        consumer = threading.Thread(target=_consume, daemon=True)
        consumer.start()
        time.sleep(0.1)
        stream.close()
        consumer.join(timeout=JOIN_TIMEOUT_S)
        assert not consumer.is_alive()
        assert silent.cancelled
        assert len(outcome) == 1
        assert outcome[0] == b"" or isinstance(outcome[0], ClosedResourceException)

    @pytest.mark.describe("test of producer errors repeating on every read")
    def test_object_stream_error(self) -> None:
        error = RuntimeError("connection reset")
        stream, _ = _open_stream([b"abc", b"def"], error=error)
        with pytest.raises(ObjectStreamException) as exc:
            _read_all_in_thread_raising(stream)
        assert exc.value.__cause__ is error
        assert exc.value.location == "s3://bucket/key"
        for _ in range(3):
            with pytest.raises(ObjectStreamException) as exc:
                stream.read(1)
            assert exc.value.__cause__ is error
        with pytest.raises(ObjectStreamException):
            stream.available()
        stream.close()
        with pytest.raises(ClosedResourceException):
            stream.read(1)

    @pytest.mark.describe("test of producer errors before the response")
    def test_object_stream_error_before_response(self) -> None:
        stream = ObjectStreamTransformer(location="s3://bucket/key")
        error = ValueError("no such bucket")
        stream.exception_occurred(error)
        with pytest.raises(ValueError):
            stream.prepare().result(timeout=1)
        with pytest.raises(ObjectStreamException):
            stream.read(1)
        stream.close()


def _read_all_in_thread_raising(stream: ObjectStreamTransformer) -> bytes:
    """Read to the end in another thread, re-raising what the reader got."""
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(stream.read).result(timeout=JOIN_TIMEOUT_S)
