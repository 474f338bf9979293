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

from athenapy.streaming.chunk_queue import END_MARKER, ChunkQueue
from athenapy.streaming.flow_control import FlowController
from athenapy.streaming.object_store import (
    HttpxObjectPublisher,
    HttpxSubscription,
    ObjectStoreClient,
    parse_object_location,
)
from athenapy.streaming.object_stream import ObjectStreamTransformer
from athenapy.streaming.subscription import Publisher, Subscriber, Subscription

__all__ = [
    "ChunkQueue",
    "END_MARKER",
    "FlowController",
    "HttpxObjectPublisher",
    "HttpxSubscription",
    "ObjectStoreClient",
    "ObjectStreamTransformer",
    "Publisher",
    "Subscriber",
    "Subscription",
    "parse_object_location",
]
