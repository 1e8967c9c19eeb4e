# protocol.py -- Shared parts of the git protocols
# Copyright (C) 2025 The minigit authors
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# minigit is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""Generic functions for talking the git smart server protocol.

Messages are framed as pkt-lines: four hex digits giving the length of
the line including those four digits, then the data. The length 0000 is
a flush packet marking the end of a section.
"""

__all__ = [
    "FLUSH_PKT",
    "MAX_PKT_LINE_LENGTH",
    "Protocol",
    "extract_capabilities",
    "pkt_line",
]

from collections.abc import Callable, Iterator
from typing import Optional

from .errors import GitProtocolError

FLUSH_PKT = b"0000"

MAX_PKT_LINE_LENGTH = 65520


def pkt_line(data: Optional[bytes]) -> bytes:
    """Wrap data in a pkt-line.

    Args:
      data: The data to wrap, as a str or None.
    Returns: The data prefixed with its length in pkt-line format; if data
        was None, returns the flush-pkt ('0000').
    """
    if data is None:
        return FLUSH_PKT
    return f"{len(data) + 4:04x}".encode("ascii") + data


class Protocol:
    """Class for reading pkt-lines from a stream.

    Args:
      read: Function that returns up to the requested number of bytes, and
        an empty bytes object at end of stream
    """

    def __init__(self, read: Callable[[int], bytes]) -> None:
        self.read = read

    def read_exactly(self, size: int) -> bytes:
        """Read exactly size bytes.

        Raises:
          GitProtocolError: if the stream ends first
        """
        data = b""
        while len(data) < size:
            chunk = self.read(size - len(data))
            if not chunk:
                raise GitProtocolError(
                    f"unexpected end of stream: wanted {size} bytes, got {len(data)}"
                )
            data += chunk
        return data

    def read_pkt_line(self) -> Optional[bytes]:
        """Reads a pkt-line from the remote git process.

        Returns: The next string from the stream, or None for a flush-pkt
        Raises:
          GitProtocolError: if the stream ends or the length prefix is invalid
        """
        sizestr = self.read_exactly(4)
        try:
            size = int(sizestr, 16)
        except ValueError as exc:
            raise GitProtocolError(f"Invalid pkt-line length {sizestr!r}") from exc
        if size == 0:
            return None
        if size < 4 or size > MAX_PKT_LINE_LENGTH:
            raise GitProtocolError(f"Invalid pkt-line length {size}")
        return self.read_exactly(size - 4)

    def read_pkt_seq(self) -> Iterator[bytes]:
        """Read a sequence of pkt-lines up to the next flush-pkt."""
        pkt = self.read_pkt_line()
        while pkt is not None:
            yield pkt
            pkt = self.read_pkt_line()


def extract_capabilities(text: bytes) -> tuple[bytes, list[bytes]]:
    """Extract a capabilities list from a string, if present.

    Args:
      text: String to extract from
    Returns: Tuple with text with capabilities removed and list of capabilities
    """
    if b"\0" not in text:
        return text, []
    text, capabilities = text.rstrip().split(b"\0", 1)
    return (text, capabilities.strip().split(b" "))
