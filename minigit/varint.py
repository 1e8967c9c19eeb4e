# varint.py -- Variable-width integers in pack entry headers
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

"""Variable-width integer decoding for pack entries.

Every pack entry starts with a header in which the first byte holds a
continuation flag (bit 7), the object type (bits 4-6) and the low four bits
of the uncompressed size. Each continuation byte adds seven more size bits,
least significant group first. Offset deltas additionally carry their base
offset as a run of bytes marked with the most significant bit.
"""

__all__ = [
    "PackEntryHeaderDecoder",
    "decode_pack_entry_header",
    "take_msb_bytes",
]

from collections.abc import Callable, Iterable
from typing import Optional


class PackEntryHeaderDecoder:
    """State machine decoding one pack entry header a byte at a time.

    Feed bytes with feed() until it returns False; type_num and size then
    hold the decoded values.
    """

    __slots__ = ("_continued", "_shift", "nbytes", "size", "type_num")

    def __init__(self) -> None:
        self.type_num: Optional[int] = None
        self.size = 0
        self.nbytes = 0
        self._shift = 0
        self._continued = True

    @property
    def done(self) -> bool:
        """Whether a byte without the continuation flag has been seen."""
        return not self._continued

    def feed(self, byte: int) -> bool:
        """Consume one header byte.

        Args:
          byte: The next byte of the header, as an integer
        Returns: True if more bytes are needed
        Raises:
          ValueError: if the header was already complete
        """
        if not self._continued:
            raise ValueError("pack entry header already complete")
        if self.type_num is None:
            self.type_num = (byte >> 4) & 0x07
            self.size = byte & 0x0F
            self._shift = 4
        else:
            self.size |= (byte & 0x7F) << self._shift
            self._shift += 7
        self.nbytes += 1
        self._continued = bool(byte & 0x80)
        return self._continued


def decode_pack_entry_header(data: Iterable[int]) -> tuple[int, int, int]:
    """Decode a pack entry header from a sequence of byte values.

    Args:
      data: Bytes starting at the entry header; trailing bytes are ignored
    Returns: tuple of (type number, uncompressed size, header length)
    Raises:
      ValueError: if the data ends before the header does
    """
    decoder = PackEntryHeaderDecoder()
    for byte in data:
        if not decoder.feed(byte):
            assert decoder.type_num is not None
            return decoder.type_num, decoder.size, decoder.nbytes
    raise ValueError("truncated pack entry header")


def take_msb_bytes(read: Callable[[int], bytes]) -> list[int]:
    """Read bytes marked with most significant bit.

    Args:
      read: Read function
    Returns: list of byte values read, the last one without the MSB set
    """
    ret: list[int] = []
    while len(ret) == 0 or ret[-1] & 0x80:
        b = read(1)
        ret.append(ord(b[:1]))
    return ret
