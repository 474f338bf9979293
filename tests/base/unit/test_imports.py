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

# ruff: noqa: F401

from __future__ import annotations

import pytest


@pytest.mark.describe("test namespace")
def test_namespace() -> None:
    import athenapy

    assert str(athenapy.client) != ""
    assert str(athenapy.constants) != ""
    assert str(athenapy.cursors) != ""
    assert str(athenapy.data) != ""
    assert str(athenapy.exceptions) != ""
    assert str(athenapy.settings) != ""
    assert str(athenapy.streaming) != ""
    assert str(athenapy.utils) != ""

    assert str(athenapy.client.QueryResultsClient) != ""
    assert str(athenapy.constants.ValueType.DECIMAL) != ""
    assert str(athenapy.cursors.ResultSet) != ""
    assert str(athenapy.data.query_results) != ""
    assert str(athenapy.exceptions.QueryTimeoutException) != ""
    assert str(athenapy.settings.defaults) != ""
    assert str(athenapy.streaming.ObjectStreamTransformer) != ""
    assert str(athenapy.utils.request_tools) != ""


@pytest.mark.describe("test imports")
def test_imports() -> None:
    from athenapy import (
        ConnectionConfiguration,
        FullTimeoutOptions,
        QueryResultsClient,
        TimeoutOptions,
        __version__,
    )
    from athenapy.constants import (
        COLUMN_TYPE_MAP,
        CallerType,
        FetchDirection,
        ValueType,
    )
    from athenapy.cursors import PageFetcher, ResultCursor, ResultPosition, ResultSet
    from athenapy.exceptions import (
        AthenaPyException,
        ClosedResourceException,
        ColumnNotFoundException,
        CursorException,
        CursorPositionException,
        InvalidConfigurationException,
        MultiCallTimeoutManager,
        ObjectStreamException,
        QueryFailedException,
        QueryServiceErrorDescriptor,
        QueryServiceException,
        QueryServiceHttpException,
        QueryTimeoutException,
        UnexpectedQueryServiceResponseException,
        UnsupportedOperationException,
        ValueConversionException,
    )
    from athenapy.streaming import (
        ChunkQueue,
        FlowController,
        ObjectStoreClient,
        ObjectStreamTransformer,
        Publisher,
        Subscriber,
        Subscription,
    )
