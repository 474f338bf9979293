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

from abc import ABC, abstractmethod


class Subscription(ABC):
    """
    The link between a Publisher and its Subscriber. The subscriber signals
    demand through it, and may cancel it to stop receiving chunks.

    Both methods can be called from any thread.
    """

    @abstractmethod
    def request(self, n: int) -> None:
        """Ask for `n` more chunks (demand is cumulative)."""
        ...

    @abstractmethod
    def cancel(self) -> None:
        """Stop the delivery of chunks and release the upstream resources."""
        ...


class Subscriber(ABC):
    """
    The receiving end of a stream of byte chunks.

    A subscriber receives `on_subscribe` once, then `on_next` for at most as many
    chunks as it requested, then at most one of `on_complete` and `on_error`.
    """

    @abstractmethod
    def on_subscribe(self, subscription: Subscription) -> None: ...

    @abstractmethod
    def on_next(self, chunk: bytes) -> None: ...

    @abstractmethod
    def on_error(self, error: BaseException) -> None: ...

    @abstractmethod
    def on_complete(self) -> None: ...


class Publisher(ABC):
    """A producer of byte chunks, pushing them to subscribers upon demand."""

    @abstractmethod
    def subscribe(self, subscriber: Subscriber) -> None:
        """
        Attach a subscriber. The publisher calls `on_subscribe` on it
        with a fresh Subscription.
        """
        ...
