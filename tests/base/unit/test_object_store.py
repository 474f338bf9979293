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

import time
from typing import Iterator

import pytest
import werkzeug
from pytest_httpserver import HTTPServer

from athenapy.exceptions import (
    ClosedResourceException,
    ObjectStreamException,
    QueryServiceHttpException,
    QueryTimeoutException,
)
from athenapy.streaming.object_store import ObjectStoreClient, parse_object_location
from athenapy.streaming.object_stream import ObjectStreamTransformer
from athenapy.utils.api_commander import APICommander
from athenapy.utils.async_runner import AsyncRunner
from athenapy.utils.request_tools import HttpMethod

SLEEPER_TIME_MS = 800
TIMEOUT_PARAM_MS = 150
OBJECT_BODY = b"".join(f"{i},row-{i}\n".encode() for i in range(20000))


@pytest.fixture
def object_store(
    httpserver: HTTPServer, async_runner: AsyncRunner
) -> Iterator[ObjectStoreClient]:
    commander = APICommander(api_endpoint=httpserver.url_for("/"))
    yield ObjectStoreClient(
        commander=commander,
        runner=async_runner,
        request_timeout_ms=5000,
        object_read_timeout_ms=5000,
    )
    async_runner.submit(commander.aclose()).result(timeout=5)


class TestObjectStore:
    @pytest.mark.describe("test of object location parsing")
    def test_parse_object_location(self) -> None:
        assert parse_object_location("s3://bucket/key") == ("bucket", "key")
        assert parse_object_location("s3://bucket/dir/sub/file.csv") == (
            "bucket",
            "dir/sub/file.csv",
        )
        for bad_location in (
            "bucket/key",
            "https://bucket/key",
            "s3://bucket",
            "s3://bucket/",
            "s3:///key",
        ):
            with pytest.raises(ValueError):
                parse_object_location(bad_location)

    @pytest.mark.describe("test of reading an object stream")
    def test_object_store_read(
        self, httpserver: HTTPServer, object_store: ObjectStoreClient
    ) -> None:
        httpserver.expect_oneshot_request(
            "/results/dir/8a6f.csv",
            method=HttpMethod.GET,
        ).respond_with_data(OBJECT_BODY, content_type="text/csv")
        with object_store.open_object("s3://results/dir/8a6f.csv") as stream:
            assert isinstance(stream, ObjectStreamTransformer)
            assert stream.content_length == len(OBJECT_BODY)
            assert stream.readline() == b"0,row-0\n"
            rest = stream.read()
        assert b"0,row-0\n" + rest == OBJECT_BODY
        assert stream.closed
        with pytest.raises(ClosedResourceException):
            stream.read(1)

    @pytest.mark.describe("test of reading an empty object")
    def test_object_store_read_empty(
        self, httpserver: HTTPServer, object_store: ObjectStoreClient
    ) -> None:
        httpserver.expect_oneshot_request("/results/empty.csv").respond_with_data(b"")
        with object_store.open_object("s3://results/empty.csv") as stream:
            assert stream.read() == b""
            assert stream.read(10) == b""

    @pytest.mark.describe("test of the non-blocking object retrieval")
    def test_object_store_get_object(
        self, httpserver: HTTPServer, object_store: ObjectStoreClient
    ) -> None:
        httpserver.expect_oneshot_request("/results/small.csv").respond_with_data(
            b"a,b\n1,2\n"
        )
        transformer, future = object_store.get_object("s3://results/small.csv")
        assert future.result(timeout=5) is transformer
        assert transformer.read() == b"a,b\n1,2\n"
        transformer.close()

    @pytest.mark.describe("test of closing an object stream early")
    def test_object_store_early_close(
        self, httpserver: HTTPServer, object_store: ObjectStoreClient
    ) -> None:
        httpserver.expect_oneshot_request("/results/big.csv").respond_with_data(
            OBJECT_BODY * 10
        )
        stream = object_store.open_object("s3://results/big.csv")
        assert stream.read(8) == b"0,row-0\n"
        start = time.monotonic()
        stream.close()
        assert time.monotonic() - start < 1
        with pytest.raises(ClosedResourceException):
            stream.read(1)

    @pytest.mark.describe("test of missing objects")
    def test_object_store_not_found(
        self, httpserver: HTTPServer, object_store: ObjectStoreClient
    ) -> None:
        httpserver.expect_oneshot_request("/results/missing.csv").respond_with_data(
            "<Error><Code>NoSuchKey</Code></Error>",
            status=404,
        )
        with pytest.raises(QueryServiceHttpException) as exc:
            object_store.open_object("s3://results/missing.csv")
        assert exc.value.response.status_code == 404

    @pytest.mark.describe("test of invalid object locations")
    def test_object_store_invalid_location(
        self, object_store: ObjectStoreClient
    ) -> None:
        with pytest.raises(ObjectStreamException) as exc:
            object_store.open_object("not-a-location")
        assert isinstance(exc.value.__cause__, ValueError)

    @pytest.mark.describe("test of timing out while opening an object stream")
    def test_object_store_timeout(
        self, httpserver: HTTPServer, object_store: ObjectStoreClient
    ) -> None:
        def _sleeper(request: werkzeug.Request) -> werkzeug.Response:
            time.sleep(SLEEPER_TIME_MS / 1000)
            return werkzeug.Response(b"late")

        httpserver.expect_oneshot_request("/results/slow.csv").respond_with_handler(
            _sleeper
        )
        with pytest.raises(QueryTimeoutException):
            object_store.open_object(
                "s3://results/slow.csv", timeout_ms=TIMEOUT_PARAM_MS
            )
