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
import threading
from typing import Any, Coroutine, TypeVar

from athenapy.exceptions import ClosedResourceException
from athenapy.settings.defaults import (
    ASYNC_RUNNER_SHUTDOWN_TIMEOUT_S,
    ASYNC_RUNNER_THREAD_NAME,
)

R = TypeVar("R")

logger = logging.getLogger(__name__)


class AsyncRunner:
    """
    A dedicated event loop running on a background (daemon) thread.

    Coroutines submitted to the runner are scheduled on that loop and a
    `concurrent.futures.Future` is returned, on which synchronous code can
    block with a timeout. The loop is started lazily on the first submission.

    All producer-side callbacks of object streams run on this loop's thread.
    """

    def __init__(self, name: str = ASYNC_RUNNER_THREAD_NAME) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._closed = False

    def __repr__(self) -> str:
        status = "closed" if self._closed else ("running" if self._loop else "idle")
        return f'{self.__class__.__name__}("{self.name}", {status})'

    def _run_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(
                    asyncio.gather(*pending, return_exceptions=True)
                )
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
            logger.debug(f"async runner '{self.name}': loop closed")

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """The event loop of this runner, starting it if necessary."""
        with self._lock:
            if self._closed:
                raise ClosedResourceException(
                    "The async runner is closed.", resource="async runner"
                )
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(
                    target=self._run_loop,
                    args=(loop,),
                    name=self.name,
                    daemon=True,
                )
                thread.start()
                self._loop = loop
                self._thread = thread
                logger.debug(f"async runner '{self.name}': loop started")
            return self._loop

    def submit(self, coro: Coroutine[Any, Any, R]) -> concurrent.futures.Future[R]:
        """
        Schedule a coroutine on the runner loop.

        Returns:
            a concurrent.futures.Future for the result of the coroutine.
            Cancelling the future cancels the underlying task.
        """
        try:
            loop = self.loop
        except ClosedResourceException:
            coro.close()
            raise
        return asyncio.run_coroutine_threadsafe(coro, loop)

    def in_runner_thread(self) -> bool:
        return self._thread is not None and threading.current_thread() is self._thread

    def close(self) -> None:
        """
        Stop the loop, cancelling whatever is still pending on it, and wait
        (for a bounded time) for the thread to finish. Idempotent.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            loop, thread = self._loop, self._thread
        if loop is None or thread is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        if threading.current_thread() is not thread:
            thread.join(timeout=ASYNC_RUNNER_SHUTDOWN_TIMEOUT_S)
            if thread.is_alive():
                logger.warning(
                    f"async runner '{self.name}': thread still alive after "
                    f"{ASYNC_RUNNER_SHUTDOWN_TIMEOUT_S} s"
                )
