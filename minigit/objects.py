# objects.py -- Access to base git objects
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

"""Access to base git objects.

Objects are immutable values of one of three kinds: Blob, Tree and
Commit. Each knows its canonical encoding ("<kind> <length>\\0<payload>")
and the SHA-1 of that encoding, which is its identity.
"""

__all__ = [
    "OBJECT_CLASSES",
    "S_IFGITLINK",
    "Blob",
    "Commit",
    "ObjectID",
    "RawObjectID",
    "ShaFile",
    "Tree",
    "TreeEntry",
    "format_timezone",
    "hash_object",
    "hex_to_filename",
    "hex_to_sha",
    "key_entry",
    "object_class",
    "object_header",
    "parse_commit",
    "parse_timezone",
    "parse_tree",
    "pretty_format_tree_entry",
    "serialize_commit",
    "serialize_tree",
    "sha_to_hex",
    "sorted_tree_entries",
    "split_object_header",
    "valid_hexsha",
]

import binascii
import os
import posixpath
import stat
from collections.abc import Iterable, Iterator, Sequence
from hashlib import sha1
from typing import NamedTuple, NewType, Optional, Union

from .errors import MalformedCommit, MalformedTree

ObjectID = NewType("ObjectID", bytes)
"""Hex SHA-1 (40 bytes of ASCII) identifying an object."""

RawObjectID = NewType("RawObjectID", bytes)
"""Binary SHA-1 (20 bytes) identifying an object."""

HEX_LENGTH = 40
RAW_LENGTH = 20

# Header fields for commits
_TREE_HEADER = b"tree"
_PARENT_HEADER = b"parent"
_AUTHOR_HEADER = b"author"
_COMMITTER_HEADER = b"committer"

S_IFGITLINK = 0o160000


def sha_to_hex(sha: bytes) -> ObjectID:
    """Takes a string and returns the hex of the sha within."""
    hexsha = binascii.hexlify(sha)
    if len(hexsha) != HEX_LENGTH:
        raise ValueError(f"Incorrect length of sha1 string: {sha!r}")
    return ObjectID(hexsha)


def hex_to_sha(hex: Union[bytes, str]) -> RawObjectID:
    """Takes a hex sha and returns a binary sha."""
    if len(hex) != HEX_LENGTH:
        raise ValueError(f"Incorrect length of hexsha: {hex!r}")
    try:
        return RawObjectID(binascii.unhexlify(hex))
    except (TypeError, binascii.Error) as exc:
        raise ValueError(f"Invalid hexsha {hex!r}") from exc


def valid_hexsha(hex: Union[bytes, str]) -> bool:
    """Check whether a value is a well-formed 40 character hex sha."""
    if len(hex) != HEX_LENGTH:
        return False
    try:
        binascii.unhexlify(hex)
    except (TypeError, binascii.Error):
        return False
    return True


def hex_to_filename(path: Union[str, bytes], hex: Union[str, bytes]) -> str:
    """Takes a hex sha and returns its filename relative to the given path."""
    if isinstance(path, bytes):
        path = os.fsdecode(path)
    if isinstance(hex, bytes):
        hex = hex.decode("ascii")
    # Two-level fan-out: first byte in hex names the directory
    return os.path.join(path, hex[:2], hex[2:])


def object_header(type_name: bytes, length: int) -> bytes:
    """Return an object header for the given kind and payload length."""
    return type_name + b" " + str(length).encode("ascii") + b"\0"


def hash_object(type_name: bytes, payload: bytes) -> ObjectID:
    """Compute the identity of an object from its kind and payload.

    This is the SHA-1 of the full canonical encoding, header included, so
    it is interoperable with digests computed by git.
    """
    digest = sha1(object_header(type_name, len(payload)))
    digest.update(payload)
    return ObjectID(digest.hexdigest().encode("ascii"))


def split_object_header(text: bytes) -> tuple[bytes, bytes]:
    """Split a decompressed loose object into its kind and payload.

    Args:
      text: The canonical encoding of an object
    Returns: tuple of (type name, payload)
    Raises:
      ValueError: if the header is malformed or the declared length does not
        match the payload length.
    """
    try:
        header_end = text.index(b"\0")
    except ValueError:
        raise ValueError("missing NUL after object header") from None
    header = text[:header_end]
    type_name, sep, length_text = header.partition(b" ")
    if not sep:
        raise ValueError(f"malformed object header {header!r}")
    if type_name not in _TYPE_MAP:
        raise ValueError(f"unknown object type {type_name!r}")
    if not length_text.isdigit():
        raise ValueError(f"invalid object length {length_text!r}")
    if length_text.startswith(b"0") and length_text != b"0":
        raise ValueError("object length is not in canonical format")
    payload = text[header_end + 1 :]
    if int(length_text) != len(payload):
        raise ValueError(
            f"declared length {int(length_text)} does not match "
            f"payload length {len(payload)}"
        )
    return type_name, payload


def object_class(type: Union[bytes, int]) -> type["ShaFile"]:
    """Get the object class corresponding to the given type.

    Args:
      type: Either a type name string or a numeric type.
    Returns: The ShaFile subclass corresponding to the given type.
    Raises:
      KeyError: if the type is not blob, tree or commit.
    """
    return _TYPE_MAP[type]


class ShaFile:
    """A git object, identified by the SHA-1 of its canonical encoding.

    Subclasses define ``type_name`` and ``type_num`` and know how to turn
    themselves into a payload (``_serialize``) and back
    (``_deserialize``). Objects are immutable once constructed.
    """

    type_name: bytes
    type_num: int

    __slots__ = ("_raw", "_sha")

    def __init__(self) -> None:
        self._raw: Optional[bytes] = None
        self._sha: Optional[ObjectID] = None

    def _serialize(self) -> bytes:
        raise NotImplementedError(self._serialize)

    @classmethod
    def _deserialize(cls, payload: bytes) -> "ShaFile":
        raise NotImplementedError(cls._deserialize)

    @staticmethod
    def from_raw_string(
        type: Union[bytes, int], payload: bytes, sha: Optional[ObjectID] = None
    ) -> "ShaFile":
        """Create an object of the indicated type from the raw payload given.

        The payload is kept as-is so that re-encoding the object always
        reproduces the bytes it was read from.

        Args:
          type: The type name or number of the object.
          payload: The raw uncompressed contents.
          sha: Optional known id of the object.
        """
        obj = object_class(type)._deserialize(payload)
        obj._raw = payload
        obj._sha = sha
        return obj

    def as_raw_string(self) -> bytes:
        """Return the payload of this object, without header."""
        if self._raw is None:
            self._raw = self._serialize()
        return self._raw

    def raw_length(self) -> int:
        """Returns the length of the raw string of this object."""
        return len(self.as_raw_string())

    def _header(self) -> bytes:
        return object_header(self.type_name, self.raw_length())

    def as_encoded_string(self) -> bytes:
        """Return the canonical encoding: header followed by payload."""
        return self._header() + self.as_raw_string()

    @property
    def id(self) -> ObjectID:
        """The hex SHA of this object."""
        if self._sha is None:
            self._sha = hash_object(self.type_name, self.as_raw_string())
        return self._sha

    def as_pretty_string(self) -> bytes:
        """Return a human-readable rendering of the payload."""
        return self.as_raw_string()

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        """Return true if the sha of the two objects match."""
        return isinstance(other, ShaFile) and self.id == other.id

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.id.decode('ascii')}>"


class Blob(ShaFile):
    """A Git Blob object."""

    type_name = b"blob"
    type_num = 3

    __slots__ = ("data",)

    def __init__(self, data: bytes = b"") -> None:
        super().__init__()
        self.data = data

    def _serialize(self) -> bytes:
        return self.data

    @classmethod
    def _deserialize(cls, payload: bytes) -> "Blob":
        return cls(payload)

    @classmethod
    def from_path(cls, path: Union[str, bytes]) -> "Blob":
        """Create a blob holding the contents of a file."""
        with open(path, "rb") as f:
            return cls(f.read())


class TreeEntry(NamedTuple):
    """Named tuple encapsulating a single tree entry."""

    name: bytes
    mode: int
    sha: ObjectID

    @property
    def kind(self) -> bytes:
        """The kind of object this entry refers to, as inferred from its mode."""
        if stat.S_ISDIR(self.mode):
            return Tree.type_name
        return Blob.type_name

    def in_path(self, path: bytes) -> "TreeEntry":
        """Return a copy of this entry with the given path prepended."""
        return TreeEntry(posixpath.join(path, self.name), self.mode, self.sha)


def parse_tree(text: bytes) -> Iterator[TreeEntry]:
    """Parse a tree text.

    Args:
      text: Serialized text to parse
    Returns: iterator of TreeEntry, in the order they are stored
    Raises:
      MalformedTree: if a delimiter is missing before the end of the text
    """
    count = 0
    length = len(text)
    while count < length:
        mode_end = text.find(b" ", count)
        if mode_end < 0:
            raise MalformedTree(f"missing space after mode at offset {count}")
        mode_text = text[count:mode_end]
        try:
            mode = int(mode_text, 8)
        except ValueError:
            raise MalformedTree(f"invalid mode {mode_text!r}") from None
        name_end = text.find(b"\0", mode_end)
        if name_end < 0:
            raise MalformedTree(f"missing NUL after name at offset {mode_end + 1}")
        name = text[mode_end + 1 : name_end]
        if not name:
            raise MalformedTree(f"empty entry name at offset {mode_end + 1}")
        count = name_end + 1 + RAW_LENGTH
        if count > length:
            raise MalformedTree(f"truncated sha for entry {name!r}")
        sha = text[name_end + 1 : count]
        yield TreeEntry(name, mode, sha_to_hex(sha))


def serialize_tree(items: Iterable[TreeEntry]) -> Iterator[bytes]:
    """Serialize the items in a tree to a text.

    The items are written in the order given; callers that build a tree
    from scratch should pass them through sorted_tree_entries() first.

    Args:
      items: Iterable over TreeEntry
    Returns: Serialized tree text as chunks
    """
    for name, mode, hexsha in items:
        yield (f"{mode:o}".encode("ascii") + b" " + name + b"\0" + hex_to_sha(hexsha))


def key_entry(entry: TreeEntry) -> bytes:
    """Sort key for tree entry.

    Entries are compared as raw bytes; a directory compares as if its name
    ended in a slash, which is the order git writes trees in.
    """
    if stat.S_ISDIR(entry.mode):
        return entry.name + b"/"
    return entry.name


def sorted_tree_entries(entries: Iterable[TreeEntry]) -> list[TreeEntry]:
    """Return tree entries in canonical order."""
    return sorted(entries, key=key_entry)


def pretty_format_tree_entry(name: bytes, mode: int, hexsha: bytes) -> str:
    """Pretty format tree entry.

    Args:
      name: Name of the directory entry
      mode: Mode of entry
      hexsha: Hexsha of the referenced object
    Returns: string describing the tree entry
    """
    if stat.S_ISDIR(mode):
        kind = "tree"
    else:
        kind = "blob"
    return "{:06o} {} {}\t{}\n".format(
        mode,
        kind,
        hexsha.decode("ascii"),
        name.decode("utf-8", "replace"),
    )


class Tree(ShaFile):
    """A Git tree object."""

    type_name = b"tree"
    type_num = 2

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[TreeEntry] = ()) -> None:
        super().__init__()
        self._entries: list[TreeEntry] = list(entries)

    @classmethod
    def from_entries(cls, entries: Iterable[TreeEntry]) -> "Tree":
        """Build a tree from entries in any order, sorting them canonically."""
        return cls(sorted_tree_entries(entries))

    def _serialize(self) -> bytes:
        return b"".join(serialize_tree(self._entries))

    @classmethod
    def _deserialize(cls, payload: bytes) -> "Tree":
        return cls(parse_tree(payload))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: bytes) -> bool:
        return any(entry.name == name for entry in self._entries)

    def __getitem__(self, name: bytes) -> TreeEntry:
        for entry in self._entries:
            if entry.name == name:
                return entry
        raise KeyError(name)

    def iteritems(self) -> Iterator[TreeEntry]:
        """Iterate over entries in the order they are stored."""
        return iter(self._entries)

    def entries(self) -> list[TreeEntry]:
        """Return a list of the entries in this tree."""
        return list(self._entries)

    def as_pretty_string(self) -> bytes:
        return "".join(
            pretty_format_tree_entry(name, mode, hexsha)
            for name, mode, hexsha in self._entries
        ).encode("utf-8")


def parse_timezone(text: bytes) -> int:
    """Parse a timezone text fragment (e.g. b'+0100').

    Args:
      text: Text to parse.
    Returns: Timezone offset in seconds east of UTC
    Raises:
      ValueError: if the text is not of the form [+-]HHMM
    """
    if len(text) != 5 or text[:1] not in (b"+", b"-") or not text[1:].isdigit():
        raise ValueError(f"invalid timezone {text!r}")
    sign = -1 if text[:1] == b"-" else 1
    hours = int(text[1:3])
    minutes = int(text[3:5])
    return sign * (hours * 3600 + minutes * 60)


def format_timezone(offset: int) -> bytes:
    """Format a timezone for Git serialization.

    Args:
      offset: Timezone offset as seconds difference to UTC
    """
    if offset % 60 != 0:
        raise ValueError("Unable to handle non-minute offset.")
    sign = "-" if offset < 0 else "+"
    offset = abs(offset)
    return f"{sign}{offset // 3600:02d}{(offset // 60) % 60:02d}".encode("ascii")


def _parse_identity_line(field: bytes, value: bytes) -> tuple[bytes, int, int]:
    try:
        identity, timetext, timezonetext = value.rsplit(b" ", 2)
        return identity, int(timetext), parse_timezone(timezonetext)
    except ValueError:
        name = field.decode("ascii")
        raise MalformedCommit(f"invalid {name} line {value!r}") from None


def _parse_headers(text: bytes) -> tuple[list[tuple[bytes, bytes]], bytes]:
    """Split a commit payload into (field, value) headers and the message.

    Lines starting with a space continue the value of the previous header.
    """
    headers: list[tuple[bytes, bytes]] = []
    pos = 0
    while True:
        line_end = text.find(b"\n", pos)
        if line_end < 0:
            raise MalformedCommit("header block is not terminated by a blank line")
        line = text[pos:line_end]
        pos = line_end + 1
        if line == b"":
            return headers, text[pos:]
        if line.startswith(b" "):
            if not headers:
                raise MalformedCommit("continuation line before first header")
            field, value = headers[-1]
            headers[-1] = (field, value + b"\n" + line[1:])
            continue
        field, sep, value = line.partition(b" ")
        if not sep:
            raise MalformedCommit(f"header line without value: {line!r}")
        headers.append((field, value))


def parse_commit(text: bytes) -> dict:
    """Parse a commit payload into its fields.

    Args:
      text: Serialized commit payload
    Returns: dict with keys tree, parents, author, author_time,
      author_timezone, committer, commit_time, commit_timezone, extra and
      message
    Raises:
      MalformedCommit: if the tree header is missing or a header is malformed
    """
    headers, message = _parse_headers(text)
    fields: dict = {"parents": [], "extra": [], "message": message}
    for field, value in headers:
        if field == _TREE_HEADER:
            if "tree" in fields:
                raise MalformedCommit("more than one tree header")
            if not valid_hexsha(value):
                raise MalformedCommit(f"invalid tree sha {value!r}")
            fields["tree"] = ObjectID(value)
        elif field == _PARENT_HEADER:
            if not valid_hexsha(value):
                raise MalformedCommit(f"invalid parent sha {value!r}")
            fields["parents"].append(ObjectID(value))
        elif field == _AUTHOR_HEADER:
            (
                fields["author"],
                fields["author_time"],
                fields["author_timezone"],
            ) = _parse_identity_line(field, value)
        elif field == _COMMITTER_HEADER:
            (
                fields["committer"],
                fields["commit_time"],
                fields["commit_timezone"],
            ) = _parse_identity_line(field, value)
        else:
            fields["extra"].append((field, value))
    if "tree" not in fields:
        raise MalformedCommit("missing tree header")
    for required in ("author", "committer"):
        if required not in fields:
            raise MalformedCommit(f"missing {required} header")
    return fields


def serialize_commit(
    tree: bytes,
    parents: Sequence[bytes],
    author: bytes,
    author_time: int,
    author_timezone: int,
    committer: bytes,
    commit_time: int,
    commit_timezone: int,
    message: bytes,
    extra: Sequence[tuple[bytes, bytes]] = (),
) -> bytes:
    """Serialize commit fields to a commit payload."""
    chunks = [_TREE_HEADER + b" " + tree + b"\n"]
    for parent in parents:
        chunks.append(_PARENT_HEADER + b" " + parent + b"\n")
    chunks.append(
        b"%s %s %d %s\n"
        % (_AUTHOR_HEADER, author, author_time, format_timezone(author_timezone))
    )
    chunks.append(
        b"%s %s %d %s\n"
        % (_COMMITTER_HEADER, committer, commit_time, format_timezone(commit_timezone))
    )
    for field, value in extra:
        chunks.append(field + b" " + value.replace(b"\n", b"\n ") + b"\n")
    chunks.append(b"\n")  # There must be a new line after the headers
    chunks.append(message)
    return b"".join(chunks)


class Commit(ShaFile):
    """A git commit object."""

    type_name = b"commit"
    type_num = 1

    __slots__ = (
        "author",
        "author_time",
        "author_timezone",
        "commit_time",
        "commit_timezone",
        "committer",
        "extra",
        "message",
        "parents",
        "tree",
    )

    def __init__(
        self,
        tree: ObjectID,
        parents: Sequence[ObjectID] = (),
        *,
        author: bytes,
        author_time: int,
        author_timezone: int,
        committer: bytes,
        commit_time: int,
        commit_timezone: int,
        message: bytes,
        extra: Sequence[tuple[bytes, bytes]] = (),
    ) -> None:
        super().__init__()
        self.tree = tree
        self.parents = list(parents)
        self.author = author
        self.author_time = author_time
        self.author_timezone = author_timezone
        self.committer = committer
        self.commit_time = commit_time
        self.commit_timezone = commit_timezone
        self.message = message
        self.extra = list(extra)

    @property
    def parent(self) -> Optional[ObjectID]:
        """The first parent of this commit, or None for a root commit."""
        if self.parents:
            return self.parents[0]
        return None

    def _serialize(self) -> bytes:
        return serialize_commit(
            self.tree,
            self.parents,
            self.author,
            self.author_time,
            self.author_timezone,
            self.committer,
            self.commit_time,
            self.commit_timezone,
            self.message,
            self.extra,
        )

    @classmethod
    def _deserialize(cls, payload: bytes) -> "Commit":
        fields = parse_commit(payload)
        tree = fields.pop("tree")
        parents = fields.pop("parents")
        return cls(tree, parents, **fields)


OBJECT_CLASSES = (
    Commit,
    Tree,
    Blob,
)

_TYPE_MAP: dict[Union[bytes, int], type[ShaFile]] = {}

for cls in OBJECT_CLASSES:
    _TYPE_MAP[cls.type_name] = cls
    _TYPE_MAP[cls.type_num] = cls
