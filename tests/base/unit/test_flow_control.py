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

import queue
import threading

import pytest

from athenapy.settings.defaults import (
    CHUNKS_REQUEST_LIMIT,
    TARGET_BUFFER_SIZE,
    UNBOUNDED_DEMAND,
)
from athenapy.streaming.chunk_queue import END_MARKER, ChunkQueue, _EndMarker
from athenapy.streaming.flow_control import FlowController


class TestChunkQueue:
    @pytest.mark.describe("test of chunk queue ordering and end marker")
    def test_chunk_queue_basics(self) -> None:
        chunk_queue = ChunkQueue()
        assert chunk_queue.poll() is None
        chunk_queue.put(b"abc")
        chunk_queue.put(b"de")
        chunk_queue.put_end()
        assert len(chunk_queue) == 3
        assert chunk_queue.take() == b"abc"
        assert chunk_queue.poll() == b"de"
        assert chunk_queue.take() is END_MARKER
        assert _EndMarker() is END_MARKER
        with pytest.raises(queue.Empty):
            chunk_queue.take(timeout=0.05)

    @pytest.mark.describe("test of chunk queue clearing")
    def test_chunk_queue_clear_and_end(self) -> None:
        chunk_queue = ChunkQueue()
        for i in range(5):
            chunk_queue.put(bytes([i]))
        chunk_queue.clear_and_end()
        assert len(chunk_queue) == 1
        assert chunk_queue.take() is END_MARKER

    @pytest.mark.describe("test of chunk queue waking up a blocked consumer")
    def test_chunk_queue_blocking_take(self) -> None:
        chunk_queue = ChunkQueue()
        taken: list[object] = []

        def _consume() -> None:
            taken.append(chunk_queue.take())

        consumer = threading.Thread(target=_consume)
        consumer.start()
        chunk_queue.clear_and_end()
        consumer.join(timeout=5)
        assert not consumer.is_alive()
        assert taken == [END_MARKER]


class TestFlowController:
    @pytest.mark.describe("test of initial demand policy")
    def test_flow_controller_initial_demand(self) -> None:
        assert FlowController().initial_demand(1024) == UNBOUNDED_DEMAND
        assert FlowController().initial_demand(TARGET_BUFFER_SIZE) == 10
        assert FlowController().initial_demand(None) == 10

    @pytest.mark.describe("test of chunk accounting and moving average")
    def test_flow_controller_accounting(self) -> None:
        flow = FlowController()
        flow.initial_demand(None)
        assert flow.chunk_received(8192) == 10
        assert flow.outstanding_requests == 19
        assert flow.buffered_bytes == 8192
        assert flow.mean_chunk_size == pytest.approx(8192.0)

        flow.chunk_received(1000)
        assert flow.mean_chunk_size == pytest.approx(8192.0 + 0.2 * (1000 - 8192))
        mean = flow.mean_chunk_size
        outstanding = flow.outstanding_requests
        # empty chunks count as received, but do not move the average
        flow.chunk_received(0)
        assert flow.mean_chunk_size == mean
        assert flow.outstanding_requests in (outstanding - 1, outstanding + 9)

        flow.chunk_taken(8192)
        assert flow.buffered_bytes == 1000
        flow.chunk_taken(5000)
        assert flow.buffered_bytes == 0

    @pytest.mark.describe("test of the hard cap on outstanding requests")
    def test_flow_controller_request_cap(self) -> None:
        flow = FlowController()
        flow.initial_demand(None)
        max_outstanding = flow.outstanding_requests
        requested = 0
        for _ in range(5000):
            requested += flow.chunk_received(1)
            max_outstanding = max(max_outstanding, flow.outstanding_requests)
        assert max_outstanding < CHUNKS_REQUEST_LIMIT
        assert requested > 0
        # the window settles just below the cap
        assert flow.outstanding_requests + 10 >= CHUNKS_REQUEST_LIMIT - 1

    @pytest.mark.describe("test of the target buffer size limit")
    def test_flow_controller_target(self) -> None:
        flow = FlowController(target_buffer_size=100, request_batch=2)
        assert flow.initial_demand(None) == 2
        assert flow.chunk_received(60) == 0
        assert flow.outstanding_requests == 1
        assert flow.chunk_received(60) == 0
        assert flow.outstanding_requests == 0
        # over target: nothing requested even with nothing in flight
        assert flow.buffered_bytes == 120
        # consuming brings the buffer under target: with nothing in flight,
        # a batch is always requested
        assert flow.chunk_taken(60) == 2
        assert flow.outstanding_requests == 2
