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

# Limits imposed by the query service on a single GetQueryResults call
MAX_FETCH_SIZE = 1000
DEFAULT_FETCH_SIZE = MAX_FETCH_SIZE

# Wire-level settings for the query service JSON protocol
QUERY_SERVICE_CONTENT_TYPE = "application/x-amz-json-1.1"
QUERY_SERVICE_TARGET_HEADER = "X-Amz-Target"
GET_QUERY_RESULTS_TARGET = "AmazonAthena.GetQueryResults"

# Flow control for object streams
TARGET_BUFFER_SIZE = 1 << 25
CHUNKS_REQUEST_LIMIT = 1000
CHUNKS_REQUEST_BATCH = 10
CHUNK_SIZE_EXPONENTIAL_WEIGHT = 0.2
CHUNK_SIZE_INITIAL_ESTIMATE = 8192.0
# stands for "request everything at once" in the subscription protocol
UNBOUNDED_DEMAND = (1 << 63) - 1
OBJECT_STORE_URI_SCHEME = "s3"

# Default timeouts
DEFAULT_REQUEST_TIMEOUT_MS = 10000
DEFAULT_API_CALL_TIMEOUT_MS = 60000
DEFAULT_OBJECT_READ_TIMEOUT_MS = 30000

# Defaults for the async runner
ASYNC_RUNNER_THREAD_NAME = "athenapy-async-runner"
ASYNC_RUNNER_SHUTDOWN_TIMEOUT_S = 5.0

# Logging of HTTP traffic
MAX_LOGGED_BODY_LENGTH = 2048
REQUEST_ID_HEADERS = ("x-amzn-RequestId", "x-amz-request-id")

# Settings for redacting secrets in string representations and logging
FIXED_SECRET_PLACEHOLDER = "***"
DEFAULT_AUTH_HEADER = "Authorization"
DEFAULT_SECURITY_TOKEN_HEADER = "X-Amz-Security-Token"
DEFAULT_REDACTED_HEADER_NAMES = {
    DEFAULT_AUTH_HEADER,
    DEFAULT_SECURITY_TOKEN_HEADER,
}
