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
from typing import Union


class _EndMarker:
    """The class of the END_MARKER singleton."""

    _instance: _EndMarker | None = None

    def __new__(cls) -> _EndMarker:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END_MARKER"


# Signals the end of the stream. Never data; compare by identity.
END_MARKER = _EndMarker()

QueueItem = Union[bytes, _EndMarker]


class ChunkQueue:
    """
    An unbounded, thread-safe queue handing byte chunks over from the producer
    (the event loop thread) to the consumer (the reading thread).

    Chunks are delivered in insertion order. END_MARKER is delivered like a
    chunk and marks the end of the stream.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[QueueItem] = queue.Queue()

    def __len__(self) -> int:
        return self._queue.qsize()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(<{len(self)} items>)"

    def put(self, chunk: bytes) -> None:
        self._queue.put_nowait(chunk)

    def put_end(self) -> None:
        self._queue.put_nowait(END_MARKER)

    def take(self, timeout: float | None = None) -> QueueItem:
        """
        Remove and return the next item, blocking until one is available.

        Raises:
            queue.Empty: if a timeout is given and no item arrives in time.
        """
        return self._queue.get(timeout=timeout)

    def poll(self) -> QueueItem | None:
        """Remove and return the next item if there is one, else None."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def clear_and_end(self) -> None:
        """Discard all queued chunks and enqueue END_MARKER."""
        with self._queue.mutex:
            self._queue.queue.clear()
        self._queue.put_nowait(END_MARKER)
