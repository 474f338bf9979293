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
import threading

from athenapy.settings.defaults import (
    CHUNK_SIZE_EXPONENTIAL_WEIGHT,
    CHUNK_SIZE_INITIAL_ESTIMATE,
    CHUNKS_REQUEST_BATCH,
    CHUNKS_REQUEST_LIMIT,
    TARGET_BUFFER_SIZE,
    UNBOUNDED_DEMAND,
)

logger = logging.getLogger(__name__)


class FlowController:
    """
    Keeps the (approximate) accounting of an object stream and decides when
    to ask the producer for more chunks.

    The state is made of the number of chunks requested and not yet received,
    an estimate of the bytes received and not yet consumed, and a moving
    average of the chunk size. These are estimates: the goal is to keep roughly
    `target_buffer_size` bytes in flight, not to enforce it exactly.

    All methods are thread-safe. The methods reporting events return the
    number of chunks the caller must request from the subscription (0 if none).

    Args:
        target_buffer_size: the number of bytes to try and keep buffered.
        request_limit: the number of outstanding requests is kept below this.
        request_batch: how many chunks are requested at a time.
        chunk_size_weight: the weight of each new chunk in the moving average.
        chunk_size_estimate: the initial value of the moving average.
    """

    def __init__(
        self,
        *,
        target_buffer_size: int = TARGET_BUFFER_SIZE,
        request_limit: int = CHUNKS_REQUEST_LIMIT,
        request_batch: int = CHUNKS_REQUEST_BATCH,
        chunk_size_weight: float = CHUNK_SIZE_EXPONENTIAL_WEIGHT,
        chunk_size_estimate: float = CHUNK_SIZE_INITIAL_ESTIMATE,
    ) -> None:
        self.target_buffer_size = target_buffer_size
        self.request_limit = request_limit
        self.request_batch = request_batch
        self.chunk_size_weight = chunk_size_weight
        self._lock = threading.Lock()
        self._outstanding_requests = 0
        self._buffered_bytes = 0
        self._mean_chunk_size = chunk_size_estimate

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(outstanding_requests="
            f"{self._outstanding_requests}, buffered_bytes={self._buffered_bytes}, "
            f"mean_chunk_size={self._mean_chunk_size:.1f})"
        )

    @property
    def outstanding_requests(self) -> int:
        return self._outstanding_requests

    @property
    def buffered_bytes(self) -> int:
        return self._buffered_bytes

    @property
    def mean_chunk_size(self) -> float:
        return self._mean_chunk_size

    def initial_demand(self, content_length: int | None) -> int:
        """
        Return the first demand to signal upon subscription: everything at once
        for objects known to fit in the target buffer, a batch otherwise.
        """
        with self._lock:
            if content_length is not None and content_length < self.target_buffer_size:
                self._outstanding_requests = UNBOUNDED_DEMAND
            else:
                self._outstanding_requests = self.request_batch
            logger.debug(
                f"flow control: initial demand {self._outstanding_requests} "
                f"(content length {content_length})"
            )
            return self._outstanding_requests

    def chunk_received(self, chunk_size: int) -> int:
        """Account for a chunk pushed by the producer (possibly an empty one)."""
        with self._lock:
            if chunk_size > 0:
                self._mean_chunk_size += self.chunk_size_weight * (
                    chunk_size - self._mean_chunk_size
                )
            if self._outstanding_requests > 0:
                self._outstanding_requests -= 1
            self._buffered_bytes += chunk_size
            return self._more_demand()

    def chunk_taken(self, chunk_size: int) -> int:
        """Account for a chunk handed over to the consumer."""
        with self._lock:
            self._buffered_bytes = max(0, self._buffered_bytes - chunk_size)
            return self._more_demand()

    def _more_demand(self) -> int:
        # to be called with the lock held
        if self._buffered_bytes >= self.target_buffer_size:
            return 0
        if self._outstanding_requests == 0:
            # nothing in flight: without a request here the stream would stall
            self._outstanding_requests = self.request_batch
            return self.request_batch
        new_requests = self._outstanding_requests + self.request_batch
        if new_requests >= self.request_limit:
            return 0
        if (
            new_requests * self._mean_chunk_size + self._buffered_bytes
            >= self.target_buffer_size
        ):
            return 0
        self._outstanding_requests = new_requests
        return self.request_batch
