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

from athenapy.exceptions.common_exceptions import AthenaPyException


@dataclass
class ObjectStreamException(AthenaPyException):
    """
    The producer of an object stream signaled an error. The error is terminal
    for the stream: every subsequent read raises again, with the producer error
    chained as the cause.

    Attributes:
        text: a text message about the exception.
        location: the location of the object being streamed, if known.
    """

    text: str
    location: str | None

    def __init__(self, text: str, *, location: str | None = None) -> None:
        super().__init__(text)
        self.text = text
        self.location = location
