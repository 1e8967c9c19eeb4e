# utils.py -- Test utilities
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

"""Utility functions common to minigit tests."""

__all__ = [
    "FakePoolManager",
    "build_pack",
    "encode_entry_header",
    "encode_ofs_offset",
    "make_commit",
    "make_insert_delta",
    "ofs_delta_entry",
    "pack_entry",
    "ref_delta_entry",
    "upload_pack_advertisement",
]

import struct
import zlib
from hashlib import sha1
from io import BytesIO
from typing import Optional

from urllib3.response import HTTPResponse

from minigit.objects import Commit, ObjectID, hex_to_sha
from minigit.protocol import pkt_line


def encode_entry_header(type_num: int, size: int) -> bytes:
    """Encode a pack entry header for the given type and size."""
    byte = (type_num << 4) | (size & 0x0F)
    size >>= 4
    header = []
    while size:
        header.append(byte | 0x80)
        byte = size & 0x7F
        size >>= 7
    header.append(byte)
    return bytes(header)


def encode_ofs_offset(distance: int) -> bytes:
    """Encode the base distance of an offset delta."""
    ret = [distance & 0x7F]
    distance >>= 7
    while distance:
        distance -= 1
        ret.insert(0, 0x80 | (distance & 0x7F))
        distance >>= 7
    return bytes(ret)


def pack_entry(type_num: int, payload: bytes) -> bytes:
    """Return a complete non-delta pack entry."""
    return encode_entry_header(type_num, len(payload)) + zlib.compress(payload)


def make_insert_delta(base: bytes, target: bytes) -> bytes:
    """Return a delta that rebuilds target by inserting it literally."""
    assert len(base) < 0x80 and len(target) < 0x80
    return bytes([len(base), len(target), len(target)]) + target


def ref_delta_entry(base_sha: bytes, delta: bytes) -> bytes:
    """Return a delta entry naming its base by hex sha."""
    return (
        encode_entry_header(7, len(delta))
        + hex_to_sha(base_sha)
        + zlib.compress(delta)
    )


def ofs_delta_entry(distance: int, delta: bytes) -> bytes:
    """Return a delta entry naming its base by distance back in the pack."""
    return (
        encode_entry_header(6, len(delta))
        + encode_ofs_offset(distance)
        + zlib.compress(delta)
    )


def build_pack(
    entries: list[bytes],
    trailer: bool = True,
    count: Optional[int] = None,
    version: int = 2,
) -> bytes:
    """Assemble a pack stream.

    Args:
      entries: Encoded entries, see pack_entry() and friends
      trailer: Whether to append the SHA-1 of the stream
      count: Object count for the header (defaults to len(entries))
      version: Pack version for the header
    """
    if count is None:
        count = len(entries)
    data = b"PACK" + struct.pack(">LL", version, count) + b"".join(entries)
    if trailer:
        data += sha1(data).digest()
    return data


def make_commit(**attrs) -> Commit:  # type: ignore[no-untyped-def]
    """Make a commit with reasonable defaults for anything not given."""
    all_attrs = {
        "tree": ObjectID(b"4b825dc642cb6eb9a060e54bf8d69288fbee4904"),
        "parents": [],
        "author": b"Test Author <test@nodomain.com>",
        "author_time": 1174773719,
        "author_timezone": 0,
        "committer": b"Test Committer <test@nodomain.com>",
        "commit_time": 1174773719,
        "commit_timezone": 0,
        "message": b"Test message.\n",
    }
    all_attrs.update(attrs)
    tree = all_attrs.pop("tree")
    parents = all_attrs.pop("parents")
    return Commit(tree, parents, **all_attrs)


def upload_pack_advertisement(refs: list[tuple[bytes, bytes]]) -> bytes:
    """Encode a smart HTTP reference advertisement for git-upload-pack."""
    lines = [pkt_line(b"# service=git-upload-pack\n"), pkt_line(None)]
    for i, (sha, name) in enumerate(refs):
        line = sha + b" " + name
        if i == 0:
            line += b"\0multi_ack side-band-64k ofs-delta"
        lines.append(pkt_line(line + b"\n"))
    lines.append(pkt_line(None))
    return b"".join(lines)


class FakePoolManager:
    """Stands in for urllib3.PoolManager, answering from canned responses.

    Responses are keyed by (method, url) and given as (status, body).
    Each request is recorded in ``requests``.
    """

    def __init__(self, responses: dict[tuple[str, str], tuple[int, bytes]]) -> None:
        self.headers: dict[str, str] = {}
        self.responses = responses
        self.requests: list[tuple[str, str, dict]] = []

    def request(  # type: ignore[no-untyped-def]
        self, method, url, body=None, headers=None, preload_content=True, **kwargs
    ):
        self.requests.append((method, url, {"body": body, "headers": headers}))
        try:
            status, data = self.responses[(method, url)]
        except KeyError:
            status, data = 404, b""
        return HTTPResponse(
            body=BytesIO(data),
            headers={},
            request_method=method,
            request_url=url,
            preload_content=preload_content,
            status=status,
        )
