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

import importlib.metadata
import os
import re


def get_version() -> str:
    try:
        return importlib.metadata.version(__package__)

    # If the package is not installed, we can still get the version from setup.py
    except importlib.metadata.PackageNotFoundError:
        dir_path = os.path.dirname(os.path.realpath(__file__))
        setup_path = os.path.join(dir_path, "..", "setup.py")

        try:
            with open(setup_path, encoding="utf-8") as setup_file:
                match = re.search(
                    r"""^\s*version\s*=\s*["']([^"']+)["']""",
                    setup_file.read(),
                    re.MULTILINE,
                )
                if match is not None:
                    return match.group(1)

        except FileNotFoundError:
            pass

        # must remain a valid version string for the User-Agent
        return "0.0.0+unknown"


__version__: str = get_version()


import athenapy.constants  # noqa: E402
import athenapy.cursors  # noqa: E402
import athenapy.streaming  # noqa: F401, E402
from athenapy.client import QueryResultsClient  # noqa: E402
from athenapy.utils.api_options import (  # noqa: E402
    ConnectionConfiguration,
    FullTimeoutOptions,
    TimeoutOptions,
)

__all__ = [
    "ConnectionConfiguration",
    "FullTimeoutOptions",
    "QueryResultsClient",
    "TimeoutOptions",
    "__version__",
]


__pdoc__ = {
    "data": False,
    "settings": False,
    "utils": False,
}
