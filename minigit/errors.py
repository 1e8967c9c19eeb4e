# errors.py -- errors for minigit
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

"""minigit-related exception classes."""

import binascii
from typing import Optional, Union


def _display_sha(sha: bytes) -> str:
    if len(sha) == 20:
        return binascii.hexlify(sha).decode("ascii")
    return sha.decode("ascii", "replace")


class MinigitError(Exception):
    """Base class for all errors reported by minigit."""


class ChecksumMismatch(MinigitError):
    """A checksum didn't match the expected contents."""

    def __init__(
        self,
        expected: Union[bytes, str],
        got: Union[bytes, str],
        extra: Optional[str] = None,
    ) -> None:
        """Initialize a ChecksumMismatch exception.

        Args:
            expected: The expected checksum value (bytes or hex string).
            got: The actual checksum value (bytes or hex string).
            extra: Optional additional error information.
        """
        if isinstance(expected, bytes):
            expected = _display_sha(expected)
        if isinstance(got, bytes):
            got = _display_sha(got)
        self.expected = expected
        self.got = got
        self.extra = extra
        message = f"Checksum mismatch: Expected {expected}, got {got}"
        if self.extra is not None:
            message += f"; {extra}"
        super().__init__(message)


class ObjectNotFound(MinigitError):
    """Indicates that a requested object is not in the object store."""

    def __init__(self, sha: bytes, *args: object) -> None:
        """Initialize an ObjectNotFound exception.

        Args:
            sha: The SHA (hex or binary) of the missing object.
            *args: Additional positional arguments.
        """
        self.sha = sha
        super().__init__(f"{_display_sha(sha)} is not in the object store", *args)


class MissingObject(ObjectNotFound):
    """An object referenced by a tree, ref or command is absent."""

    def __init__(self, sha: bytes, referrer: Optional[str] = None) -> None:
        """Initialize a MissingObject exception.

        Args:
            sha: The SHA of the missing object.
            referrer: Optional description of what referenced the object.
        """
        super().__init__(sha)
        self.referrer = referrer
        if referrer is not None:
            self.args = (
                f"{_display_sha(sha)} (referenced by {referrer}) is missing",
            )


class WrongObjectException(MinigitError):
    """Baseclass for all the _ is not a _ exceptions on objects.

    Do not instantiate directly.

    Subclasses should define a type_name attribute that indicates what
    was expected if they were raised.
    """

    type_name: str

    def __init__(self, sha: bytes, *args: object) -> None:
        """Initialize a WrongObjectException.

        Args:
            sha: The SHA of the object that was not of the expected type.
            *args: Additional positional arguments.
        """
        self.sha = sha
        super().__init__(f"{_display_sha(sha)} is not a {self.type_name}", *args)


class NotCommitError(WrongObjectException):
    """Indicates that the sha requested does not point to a commit."""

    type_name = "commit"


class NotTreeError(WrongObjectException):
    """Indicates that the sha requested does not point to a tree."""

    type_name = "tree"


class NotBlobError(WrongObjectException):
    """Indicates that the sha requested does not point to a blob."""

    type_name = "blob"


class NotGitRepository(MinigitError):
    """Indicates that no Git repository was found."""


class GitProtocolError(MinigitError):
    """Git protocol exception."""

    def __eq__(self, other: object) -> bool:
        """Check equality between GitProtocolError instances.

        Args:
            other: The object to compare with.

        Returns:
            True if both are GitProtocolError instances with same args, False otherwise.
        """
        return isinstance(other, GitProtocolError) and self.args == other.args

    __hash__ = Exception.__hash__


class TransferError(GitProtocolError):
    """Fetching refs or a pack from the remote failed."""


class FileFormatException(MinigitError):
    """Base class for exceptions relating to reading git file formats."""


class CorruptObject(FileFormatException):
    """A stored object could not be decompressed or its header parsed."""

    def __init__(self, sha: bytes, reason: str) -> None:
        """Initialize a CorruptObject exception.

        Args:
            sha: The SHA of the corrupt object.
            reason: Human-readable description of the problem.
        """
        self.sha = sha
        self.reason = reason
        super().__init__(f"object {_display_sha(sha)} is corrupt: {reason}")


class ObjectFormatException(FileFormatException):
    """Indicates an error parsing an object."""


class MalformedTree(ObjectFormatException):
    """A tree payload is structurally invalid."""


class MalformedCommit(ObjectFormatException):
    """A commit payload is structurally invalid."""


class PackFormatError(FileFormatException):
    """A pack stream is truncated or structurally invalid."""


class BadPackSignature(PackFormatError):
    """The pack stream does not start with the PACK signature."""


class UnknownPackType(PackFormatError):
    """A pack entry carries a type number that cannot be mapped to an object."""

    def __init__(self, type_num: int, offset: Optional[int] = None) -> None:
        """Initialize an UnknownPackType exception.

        Args:
            type_num: The offending type number.
            offset: Offset of the entry in the pack stream, if known.
        """
        self.type_num = type_num
        self.offset = offset
        message = f"unknown pack object type {type_num}"
        if offset is not None:
            message += f" at offset {offset}"
        super().__init__(message)


class ConfigError(MinigitError):
    """A configuration file or setting could not be understood."""


class UsageError(MinigitError):
    """Missing or invalid command-line arguments."""
