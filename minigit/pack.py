# pack.py -- For dealing with packed git objects.
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

"""Classes for reading pack streams.

A pack stream is what a server sends in answer to an upload-pack request:
a 12 byte header (signature, version, object count), that many entries,
and usually a 20 byte SHA-1 trailer over everything before it.

Each entry is a variable-width header followed by one zlib member. Entries
of type commit, tree or blob hold the object payload literally. Delta
entries (OFS_DELTA, REF_DELTA) hold instructions against a base object;
they are recognised and skipped, never resolved.
"""

__all__ = [
    "DELTA_TYPES",
    "OFS_DELTA",
    "PACK_SIGNATURE",
    "REF_DELTA",
    "PackStreamReader",
    "UnpackedObject",
    "read_pack_header",
    "unpack_into_store",
]

import logging
import zlib
from collections.abc import Callable, Iterator
from hashlib import sha1
from struct import unpack_from
from typing import TYPE_CHECKING, Optional, Union

from .errors import (
    BadPackSignature,
    ChecksumMismatch,
    PackFormatError,
    UnknownPackType,
)
from .objects import RAW_LENGTH, ObjectID, hash_object, object_class, sha_to_hex
from .varint import PackEntryHeaderDecoder, take_msb_bytes

if TYPE_CHECKING:
    from .object_store import BaseObjectStore

logger = logging.getLogger(__name__)

OFS_DELTA = 6
REF_DELTA = 7

DELTA_TYPES = (OFS_DELTA, REF_DELTA)

PACK_SIGNATURE = b"PACK"

_ZLIB_BUFSIZE = 65536


def read_pack_header(read: Callable[[int], bytes]) -> tuple[int, int]:
    """Read the header of a pack stream.

    Args:
      read: Read function; may return fewer bytes than requested at EOF
    Returns: Tuple of (pack version, number of objects).
    Raises:
      BadPackSignature: if the stream does not start with b"PACK"
      PackFormatError: if the header is truncated or the version is not
        2 or 3
    """
    header = read(12)
    if len(header) < 4 or header[:4] != PACK_SIGNATURE:
        raise BadPackSignature(f"Invalid pack header {header[:4]!r}")
    if len(header) < 12:
        raise PackFormatError(f"truncated pack header ({len(header)} bytes)")
    (version,) = unpack_from(">L", header, 4)
    if version not in (2, 3):
        raise PackFormatError(f"unsupported pack version {version}")
    (num_objects,) = unpack_from(">L", header, 8)
    return (version, num_objects)


class UnpackedObject:
    """A literal (non-delta) object read from a pack stream."""

    __slots__ = [
        "decomp_len",  # Declared and actual decompressed length.
        "offset",  # Offset of the entry header in the stream.
        "pack_type_num",  # Type number of the entry.
        "payload",  # Decompressed object payload.
    ]

    def __init__(
        self, pack_type_num: int, payload: bytes, offset: Optional[int] = None
    ) -> None:
        self.pack_type_num = pack_type_num
        self.payload = payload
        self.decomp_len = len(payload)
        self.offset = offset

    @property
    def type_name(self) -> bytes:
        """The kind of the object: b"commit", b"tree" or b"blob"."""
        return object_class(self.pack_type_num).type_name

    def sha(self) -> ObjectID:
        """Return the hex SHA of this object."""
        return hash_object(self.type_name, self.payload)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UnpackedObject):
            return False
        return (
            self.pack_type_num == other.pack_type_num
            and self.payload == other.payload
            and self.offset == other.offset
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(pack_type_num={self.pack_type_num}, "
            f"decomp_len={self.decomp_len}, offset={self.offset})"
        )


class PackStreamReader:
    """Class to read a pack stream.

    The stream is pulled through ``read_some``, which returns at most the
    requested number of bytes and an empty bytes object at end of stream.
    Bytes fetched beyond the current entry stay in an internal buffer, so
    the cursor always sits exactly at the next entry header.
    """

    def __init__(
        self,
        read_some: Callable[[int], bytes],
        zlib_bufsize: int = _ZLIB_BUFSIZE,
    ) -> None:
        """Initialize pack stream reader.

        Args:
            read_some: Function to read up to n bytes from the stream
            zlib_bufsize: Buffer size for reads feeding the decompressor
        """
        self.read_some = read_some
        self.sha = sha1()
        self._offset = 0
        self._rbuf = bytearray()
        self._eof = False
        self._zlib_bufsize = zlib_bufsize
        self._num_objects = 0
        self.deltas_skipped = 0

    @property
    def offset(self) -> int:
        """Return current offset in the stream."""
        return self._offset

    def _fill(self, size: int) -> bool:
        """Try to buffer at least size bytes; return False on a short stream."""
        while len(self._rbuf) < size:
            if self._eof:
                return False
            data = self.read_some(max(size - len(self._rbuf), self._zlib_bufsize))
            if not data:
                self._eof = True
                return False
            self._rbuf.extend(data)
        return True

    def _consume(self, size: int) -> bytes:
        data = bytes(self._rbuf[:size])
        del self._rbuf[:size]
        self.sha.update(data)
        self._offset += len(data)
        return data

    def read(self, size: int) -> bytes:
        """Read, blocking until size bytes are read.

        Raises:
          PackFormatError: if the stream ends first
        """
        if not self._fill(size):
            raise PackFormatError(
                f"unexpected end of pack stream at offset {self._offset}"
            )
        return self._consume(size)

    def read_available(self, size: int) -> bytes:
        """Read up to size bytes, returning fewer only at end of stream."""
        self._fill(size)
        return self._consume(min(size, len(self._rbuf)))

    def __len__(self) -> int:
        """Return the number of objects in this pack."""
        return self._num_objects

    def inflate(self, expected_size: int) -> bytes:
        """Decompress the zlib member starting at the cursor.

        The cursor advances by the number of compressed bytes the member
        occupies; anything read past it is kept for the next entry.

        Args:
          expected_size: Decompressed length declared by the entry header
        Returns: The decompressed data
        Raises:
          PackFormatError: if the data is not valid zlib, the stream ends
            inside the member, or the decompressed length differs from
            expected_size
        """
        decomp_obj = zlib.decompressobj()
        chunks = []
        while not decomp_obj.eof:
            if not self._rbuf and not self._fill(1):
                raise PackFormatError(
                    f"EOF before end of zlib stream at offset {self._offset}"
                )
            data = bytes(self._rbuf)
            try:
                chunks.append(decomp_obj.decompress(data))
            except zlib.error as exc:
                raise PackFormatError(
                    f"invalid zlib data at offset {self._offset}: {exc}"
                ) from exc
            self._consume(len(data) - len(decomp_obj.unused_data))
        result = b"".join(chunks)
        if len(result) != expected_size:
            raise PackFormatError(
                f"entry declares {expected_size} bytes but inflates to {len(result)}"
            )
        return result

    def _read_entry_header(self) -> tuple[int, int]:
        decoder = PackEntryHeaderDecoder()
        while decoder.feed(self.read(1)[0]):
            pass
        assert decoder.type_num is not None
        return decoder.type_num, decoder.size

    def _skip_delta(self, type_num: int, size: int, offset: int) -> None:
        base: Union[int, bytes]
        if type_num == OFS_DELTA:
            raw = take_msb_bytes(self.read)
            base_offset = raw[0] & 0x7F
            for byte in raw[1:]:
                base_offset += 1
                base_offset <<= 7
                base_offset += byte & 0x7F
            base = offset - base_offset
        else:
            base = sha_to_hex(self.read(RAW_LENGTH))
        self.inflate(size)
        self.deltas_skipped += 1
        logger.debug(
            "skipping delta entry at offset %d (type %d, base %r)",
            offset,
            type_num,
            base,
        )

    def read_objects(self) -> Iterator[UnpackedObject]:
        """Read the literal objects in this pack stream.

        Delta entries are consumed and skipped. After the last entry any
        remaining data must be the SHA-1 trailer of the stream.

        Returns: Iterator over UnpackedObject
        Raises:
          BadPackSignature: if the stream is not a pack
          PackFormatError: on truncated or malformed entries
          UnknownPackType: for an entry type that is neither an object
            nor a delta
          ChecksumMismatch: if the pack trailer does not match the stream
        """
        _pack_version, self._num_objects = read_pack_header(self.read_available)
        logger.debug("reading pack with %d entries", self._num_objects)

        for _ in range(self._num_objects):
            offset = self.offset
            type_num, size = self._read_entry_header()
            if type_num in DELTA_TYPES:
                self._skip_delta(type_num, size, offset)
                continue
            try:
                object_class(type_num)
            except KeyError:
                raise UnknownPackType(type_num, offset) from None
            yield UnpackedObject(type_num, self.inflate(size), offset=offset)

        self._check_trailer()

    def _check_trailer(self) -> None:
        expected = self.sha.digest()
        self._fill(RAW_LENGTH)
        if not self._rbuf:
            logger.debug("pack stream has no trailer")
            return
        if len(self._rbuf) < RAW_LENGTH:
            raise PackFormatError(f"truncated pack trailer ({len(self._rbuf)} bytes)")
        pack_sha = self._consume(RAW_LENGTH)
        if pack_sha != expected:
            raise ChecksumMismatch(sha_to_hex(pack_sha), sha_to_hex(expected))
        logger.debug("pack trailer %s verified", pack_sha.hex())


def unpack_into_store(
    store: "BaseObjectStore", read_some: Callable[[int], bytes]
) -> int:
    """Decode a pack stream and add its literal objects to a store.

    Objects are stored as they are decoded; if decoding fails part way, the
    objects stored so far remain.

    Args:
      store: Object store to add objects to
      read_some: Function to read up to n bytes from the pack stream
    Returns: Number of objects stored
    """
    reader = PackStreamReader(read_some)
    count = 0
    for unpacked in reader.read_objects():
        store.add_raw(unpacked.type_name, unpacked.payload)
        count += 1
    logger.debug(
        "stored %d objects from pack, skipped %d delta entries",
        count,
        reader.deltas_skipped,
    )
    return count
