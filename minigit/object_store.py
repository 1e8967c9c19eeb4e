# object_store.py -- Object store for git objects
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


"""Git object store interfaces and implementation."""

__all__ = [
    "PACK_MODE",
    "BaseObjectStore",
    "DiskObjectStore",
    "MemoryObjectStore",
]

import logging
import os
import zlib
from collections.abc import Iterator
from typing import Union

from .errors import CorruptObject, ObjectNotFound
from .file import GitFile
from .objects import (
    HEX_LENGTH,
    RAW_LENGTH,
    ObjectID,
    ShaFile,
    hash_object,
    hex_to_filename,
    object_class,
    object_header,
    sha_to_hex,
    split_object_header,
    valid_hexsha,
)

logger = logging.getLogger(__name__)

# Loose objects are read-only once written
PACK_MODE = 0o444


def _to_hexsha(sha: bytes) -> ObjectID:
    if len(sha) == HEX_LENGTH and valid_hexsha(sha):
        return ObjectID(sha.lower())
    elif len(sha) == RAW_LENGTH:
        return sha_to_hex(sha)
    raise ValueError(f"Invalid sha {sha!r}")


def _check_type_name(type_name: bytes) -> int:
    try:
        return object_class(type_name).type_num
    except KeyError:
        raise ValueError(f"unknown object type {type_name!r}") from None


class BaseObjectStore:
    """Object store interface.

    Objects go in through add_object() or add_raw() and come back out by
    digest through get_raw() or item access. Stores are append-only: an
    object, once added, is never rewritten or removed.
    """

    def contains(self, sha: ObjectID) -> bool:
        """Check if a particular object is present by hex SHA."""
        raise NotImplementedError(self.contains)

    def __contains__(self, sha: bytes) -> bool:
        """Check if a particular object is present by SHA1 (hex or binary)."""
        return self.contains(_to_hexsha(sha))

    def _get_raw(self, sha: ObjectID) -> tuple[int, bytes]:
        raise NotImplementedError(self._get_raw)

    def get_raw(self, name: bytes) -> tuple[int, bytes]:
        """Obtain the raw text for an object.

        Args:
          name: sha for the object, hex or binary.
        Returns: tuple with numeric type and object contents.
        Raises:
          ObjectNotFound: if no object with that sha is stored
          CorruptObject: if the stored object cannot be decoded
        """
        return self._get_raw(_to_hexsha(name))

    def __getitem__(self, sha: bytes) -> ShaFile:
        """Obtain an object by SHA1."""
        hexsha = _to_hexsha(sha)
        type_num, payload = self._get_raw(hexsha)
        return ShaFile.from_raw_string(type_num, payload, sha=hexsha)

    def __iter__(self) -> Iterator[ObjectID]:
        """Iterate over the SHAs that are present in this store."""
        raise NotImplementedError(self.__iter__)

    def add_object(self, obj: ShaFile) -> ObjectID:
        """Add a single object to this object store.

        Adding an object that is already present is a no-op.

        Returns: the hex sha of the object
        """
        return self.add_raw(obj.type_name, obj.as_raw_string())

    def add_raw(self, type_name: bytes, payload: bytes) -> ObjectID:
        """Add an object given by its kind and payload.

        The payload is stored as-is, without being parsed.

        Args:
          type_name: b"blob", b"tree" or b"commit"
          payload: The object payload, without header
        Returns: the hex sha of the object
        """
        raise NotImplementedError(self.add_raw)

    def close(self) -> None:
        """Close any files opened by this object store."""


class DiskObjectStore(BaseObjectStore):
    """Git-style object store that exists on disk.

    Objects live at ``<path>/<first 2 hex>/<remaining 38 hex>`` as the
    zlib-compressed canonical encoding, exactly as git lays them out.
    """

    def __init__(
        self,
        path: Union[str, "os.PathLike[str]"],
        *,
        loose_compression_level: int = -1,
        fsync_object_files: bool = False,
    ) -> None:
        """Open an object store.

        Args:
          path: Path of the object store.
          loose_compression_level: zlib compression level for loose objects
          fsync_object_files: whether to fsync object files for durability
        """
        self.path = os.fspath(path)
        self.loose_compression_level = loose_compression_level
        self.fsync_object_files = fsync_object_files

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.path!r})>"

    @classmethod
    def init(cls, path: Union[str, "os.PathLike[str]"]) -> "DiskObjectStore":
        """Initialize a new disk object store.

        Args:
          path: Path where the object store should be created
        Returns:
          New DiskObjectStore instance
        """
        try:
            os.mkdir(path)
        except FileExistsError:
            pass
        return cls(path)

    def _get_shafile_path(self, sha: ObjectID) -> str:
        return hex_to_filename(self.path, sha)

    def contains(self, sha: ObjectID) -> bool:
        return os.path.exists(self._get_shafile_path(sha))

    def __iter__(self) -> Iterator[ObjectID]:
        for base in sorted(os.listdir(self.path)):
            if len(base) != 2:
                continue
            for rest in sorted(os.listdir(os.path.join(self.path, base))):
                sha = os.fsencode(base + rest)
                if not valid_hexsha(sha):
                    continue
                yield ObjectID(sha)

    def _get_raw(self, sha: ObjectID) -> tuple[int, bytes]:
        path = self._get_shafile_path(sha)
        try:
            with GitFile(path, "rb") as f:
                compressed = f.read()
        except FileNotFoundError:
            raise ObjectNotFound(sha) from None
        try:
            text = zlib.decompress(compressed)
        except zlib.error as exc:
            raise CorruptObject(sha, f"decompression failed: {exc}") from exc
        try:
            type_name, payload = split_object_header(text)
        except ValueError as exc:
            raise CorruptObject(sha, str(exc)) from exc
        if hash_object(type_name, payload) != sha:
            raise CorruptObject(sha, "contents do not match the object name")
        return object_class(type_name).type_num, payload

    def add_raw(self, type_name: bytes, payload: bytes) -> ObjectID:
        """Add an object given by its kind and payload.

        Args:
          type_name: b"blob", b"tree" or b"commit"
          payload: The object payload, without header
        Returns: the hex sha of the object
        """
        _check_type_name(type_name)
        sha = hash_object(type_name, payload)
        path = self._get_shafile_path(sha)
        dir = os.path.dirname(path)
        try:
            os.mkdir(dir)
        except FileExistsError:
            pass
        if os.path.exists(path):
            logger.debug("object %s already present", sha.decode("ascii"))
            return sha
        compobj = zlib.compressobj(self.loose_compression_level)
        with GitFile(path, "wb", mask=PACK_MODE, fsync=self.fsync_object_files) as f:
            f.write(compobj.compress(object_header(type_name, len(payload))))
            f.write(compobj.compress(payload))
            f.write(compobj.flush())
        logger.debug(
            "wrote %s %s (%d bytes)",
            type_name.decode("ascii"),
            sha.decode("ascii"),
            len(payload),
        )
        return sha


class MemoryObjectStore(BaseObjectStore):
    """Object store that keeps all objects in memory."""

    def __init__(self) -> None:
        self._data: dict[ObjectID, tuple[int, bytes]] = {}

    def contains(self, sha: ObjectID) -> bool:
        return sha in self._data

    def __iter__(self) -> Iterator[ObjectID]:
        return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)

    def _get_raw(self, sha: ObjectID) -> tuple[int, bytes]:
        try:
            return self._data[sha]
        except KeyError:
            raise ObjectNotFound(sha) from None

    def add_raw(self, type_name: bytes, payload: bytes) -> ObjectID:
        type_num = _check_type_name(type_name)
        sha = hash_object(type_name, payload)
        self._data.setdefault(sha, (type_num, payload))
        return sha
