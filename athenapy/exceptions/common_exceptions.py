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

from dataclasses import dataclass


class AthenaPyException(Exception):
    """
    Any exception raised by athenapy while reading query results or
    streaming result objects, such as:
      - the query service returning an error or timing out,
      - a result set being read at an invalid position,
      - an object stream failing while being consumed,
    but not, for instance,
      - programming errors in the caller code (wrong argument types and so on).
    """

    pass


@dataclass
class ClosedResourceException(AthenaPyException):
    """
    An operation was attempted on a resource (result cursor, result set,
    object stream) after it was closed.

    Attributes:
        text: a text message about the exception.
        resource: a short description of the closed resource, e.g. "result set".
    """

    text: str
    resource: str

    def __init__(self, text: str, *, resource: str) -> None:
        super().__init__(text)
        self.text = text
        self.resource = resource


@dataclass
class InvalidConfigurationException(AthenaPyException):
    """
    A setting was given a value outside of its admitted range, for instance
    a fetch size larger than what the query service accepts.

    Attributes:
        text: a text message about the exception.
        setting: the name of the offending setting.
        value: the rejected value.
    """

    text: str
    setting: str
    value: object

    def __init__(self, text: str, *, setting: str, value: object) -> None:
        super().__init__(text)
        self.text = text
        self.setting = setting
        self.value = value
