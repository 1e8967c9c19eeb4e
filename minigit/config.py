# config.py - Reading and writing Git config files
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

"""Reading and writing Git configuration files.

Section and variable names are case-insensitive; subsection names are
case-sensitive. Values are kept as bytes.

Also holds Identity, the name, email and timezone written into new
commits.
"""

__all__ = [
    "DEFAULT_IDENTITY",
    "Config",
    "ConfigDict",
    "ConfigFile",
    "Identity",
]

import os
from collections.abc import Iterator
from dataclasses import dataclass
from typing import IO, Optional, Union

from .file import GitFile, _GitFile
from .objects import parse_timezone

Section = tuple[bytes, ...]
Name = bytes
Value = bytes
SectionLike = Union[bytes, str, tuple[Union[bytes, str], ...]]
NameLike = Union[bytes, str]
ValueLike = Union[bytes, str]


def lower_key(key: Union[bytes, Section]) -> Union[bytes, Section]:
    """Normalize a section or variable name for comparison.

    Only the section name is folded; a subsection keeps its case.
    """
    if isinstance(key, bytes):
        return key.lower()
    return (key[0].lower(),) + tuple(key[1:])


class _CaseInsensitiveDict:
    """Ordered mapping comparing keys with lower_key(), keeping their spelling."""

    def __init__(self) -> None:
        self._items: dict = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return lower_key(key) in self._items  # type: ignore[arg-type]

    def __getitem__(self, key):  # type: ignore[no-untyped-def]
        return self._items[lower_key(key)][1]

    def __setitem__(self, key, value) -> None:  # type: ignore[no-untyped-def]
        lowered = lower_key(key)
        if lowered in self._items:
            key = self._items[lowered][0]
        self._items[lowered] = (key, value)

    def __delitem__(self, key) -> None:  # type: ignore[no-untyped-def]
        del self._items[lower_key(key)]

    def __iter__(self) -> Iterator:
        return (key for key, _value in self._items.values())

    def items(self) -> Iterator[tuple]:
        return iter(list(self._items.values()))

    def setdefault(self, key, factory=None):  # type: ignore[no-untyped-def]
        lowered = lower_key(key)
        if lowered not in self._items:
            self._items[lowered] = (key, factory() if factory else None)
        return self._items[lowered][1]


class Config:
    """A Git configuration."""

    def get(self, section: SectionLike, name: NameLike) -> Value:
        """Retrieve the contents of a configuration setting.

        Args:
          section: Tuple with section name and optional subsection name
          name: Variable name
        Returns:
          Contents of the setting
        Raises:
          KeyError: if the value is not set
        """
        raise NotImplementedError(self.get)

    def get_boolean(
        self, section: SectionLike, name: NameLike, default: Optional[bool] = None
    ) -> Optional[bool]:
        """Retrieve a configuration setting as boolean.

        Args:
          section: Tuple with section name and optional subsection name
          name: Name of the setting
          default: Default value if setting is not found
        Returns:
          Contents of the setting
        Raises:
          ValueError: if the value is not a boolean
        """
        try:
            value = self.get(section, name)
        except KeyError:
            return default
        if value.lower() in (b"true", b"yes", b"on", b"1"):
            return True
        elif value.lower() in (b"false", b"no", b"off", b"0", b""):
            return False
        raise ValueError(f"not a valid boolean string: {value!r}")

    def set(
        self, section: SectionLike, name: NameLike, value: Union[ValueLike, bool]
    ) -> None:
        """Set a configuration value.

        Args:
          section: Tuple with section name and optional subsection name
          name: Name of the configuration value
          value: value of the setting
        """
        raise NotImplementedError(self.set)

    def sections(self) -> Iterator[Section]:
        """Iterate over the sections.

        Returns: Iterator over section tuples
        """
        raise NotImplementedError(self.sections)


class ConfigDict(Config):
    """Git configuration stored in a dictionary."""

    def __init__(self, encoding: Optional[str] = None) -> None:
        """Create a new ConfigDict."""
        if encoding is None:
            encoding = "utf-8"
        self.encoding = encoding
        self._values = _CaseInsensitiveDict()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({dict(self._values.items())!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, self.__class__):
            return False
        return [
            (lower_key(s), sorted((lower_key(k), v) for k, v in values.items()))
            for s, values in self._values.items()
        ] == [
            (lower_key(s), sorted((lower_key(k), v) for k, v in values.items()))
            for s, values in other._values.items()
        ]

    def _check_section_and_name(
        self, section: SectionLike, name: NameLike
    ) -> tuple[Section, Name]:
        if not isinstance(section, tuple):
            section = (section,)

        checked_section = tuple(
            [
                subsection.encode(self.encoding)
                if not isinstance(subsection, bytes)
                else subsection
                for subsection in section
            ]
        )

        if not isinstance(name, bytes):
            name = name.encode(self.encoding)

        return checked_section, name

    def get(self, section: SectionLike, name: NameLike) -> Value:
        section, name = self._check_section_and_name(section, name)

        if len(section) > 1:
            try:
                return self._values[section][name]
            except KeyError:
                pass

        return self._values[(section[0],)][name]

    def set(
        self, section: SectionLike, name: NameLike, value: Union[ValueLike, bool]
    ) -> None:
        section, name = self._check_section_and_name(section, name)

        if isinstance(value, bool):
            value = b"true" if value else b"false"

        if not isinstance(value, bytes):
            value = value.encode(self.encoding)

        self._values.setdefault(section, _CaseInsensitiveDict)[name] = value

    def items(self, section: SectionLike) -> Iterator[tuple[Name, Value]]:
        """Iterate over the (name, value) pairs of a section."""
        section, _ = self._check_section_and_name(section, b"")
        if section not in self._values:
            return iter([])
        return self._values[section].items()

    def sections(self) -> Iterator[Section]:
        return iter(list(self._values))


def _format_string(value: bytes) -> bytes:
    if (
        value.startswith((b" ", b"\t"))
        or value.endswith((b" ", b"\t"))
        or b"#" in value
        or b";" in value
    ):
        return b'"' + _escape_value(value) + b'"'
    else:
        return _escape_value(value)


_ESCAPE_TABLE = {
    ord(b"\\"): ord(b"\\"),
    ord(b'"'): ord(b'"'),
    ord(b"n"): ord(b"\n"),
    ord(b"t"): ord(b"\t"),
    ord(b"b"): ord(b"\b"),
}
_COMMENT_CHARS = [ord(b"#"), ord(b";")]
_WHITESPACE_CHARS = [ord(b"\t"), ord(b" ")]


def _parse_string(value: bytes) -> bytes:
    value_array = bytearray(value.strip())
    ret = bytearray()
    whitespace = bytearray()
    in_quotes = False
    i = 0
    while i < len(value_array):
        c = value_array[i]
        if c == ord(b"\\"):
            i += 1
            if i >= len(value_array):
                raise ValueError("escape character at end of value")
            try:
                v = _ESCAPE_TABLE[value_array[i]]
            except KeyError as exc:
                raise ValueError(
                    f"escape character followed by unknown character "
                    f"{value_array[i:i + 1]!r} at {i!r} in {value!r}"
                ) from exc
            if whitespace:
                ret.extend(whitespace)
                whitespace = bytearray()
            ret.append(v)
        elif c == ord(b'"'):
            in_quotes = not in_quotes
        elif c in _COMMENT_CHARS and not in_quotes:
            # the rest of the line is a comment
            break
        elif c in _WHITESPACE_CHARS and not in_quotes:
            whitespace.append(c)
        else:
            if whitespace:
                ret.extend(whitespace)
                whitespace = bytearray()
            ret.append(c)
        i += 1

    if in_quotes:
        raise ValueError("missing end quote")

    return bytes(ret)


def _escape_value(value: bytes) -> bytes:
    """Escape a value."""
    value = value.replace(b"\\", b"\\\\")
    value = value.replace(b"\n", b"\\n")
    value = value.replace(b"\t", b"\\t")
    value = value.replace(b'"', b'\\"')
    return value


def _check_variable_name(name: bytes) -> bool:
    for i in range(len(name)):
        c = name[i : i + 1]
        if not c.isalnum() and c != b"-":
            return False
    return True


def _check_section_name(name: bytes) -> bool:
    for i in range(len(name)):
        c = name[i : i + 1]
        if not c.isalnum() and c not in (b"-", b"."):
            return False
    return True


def _strip_comments(line: bytes) -> bytes:
    comment_bytes = {ord(b"#"), ord(b";")}
    quote = ord(b'"')
    string_open = False
    for i, character in enumerate(bytearray(line)):
        # Comment characters outside balanced quotes denote comment start
        if character == quote:
            string_open = not string_open
        elif not string_open and character in comment_bytes:
            return line[:i]
    return line


def _parse_section_header_line(line: bytes) -> tuple[Section, bytes]:
    # Parse section header ("[bla]")
    line = _strip_comments(line).rstrip()
    last = line.find(b"]")
    if last == -1:
        raise ValueError("expected trailing ]")
    pts = line[1:last].split(b" ", 1)
    line = line[last + 1 :]
    section: Section
    if len(pts) == 2:
        if pts[1][:1] != b'"' or pts[1][-1:] != b'"':
            raise ValueError(f"Invalid subsection {pts[1]!r}")
        if not _check_section_name(pts[0]):
            raise ValueError(f"invalid section name {pts[0]!r}")
        section = (pts[0], pts[1][1:-1])
    else:
        if not _check_section_name(pts[0]):
            raise ValueError(f"invalid section name {pts[0]!r}")
        pts = pts[0].split(b".", 1)
        if len(pts) == 2:
            section = (pts[0], pts[1])
        else:
            section = (pts[0],)
    return section, line


class ConfigFile(ConfigDict):
    """A Git configuration file, like .git/config."""

    def __init__(self, encoding: Optional[str] = None) -> None:
        super().__init__(encoding=encoding)
        self.path: Optional[str] = None

    @classmethod
    def from_file(cls, f: IO[bytes]) -> "ConfigFile":
        """Read configuration from a file-like object.

        Raises:
          ValueError: if the file is not valid Git configuration
        """
        ret = cls()
        section: Optional[Section] = None
        setting = None
        continuation = None
        for lineno, line in enumerate(f.readlines()):
            if lineno == 0 and line.startswith(b"\xef\xbb\xbf"):
                line = line[3:]
            line = line.lstrip()
            if setting is None:
                if len(line) > 0 and line[:1] == b"[":
                    section, line = _parse_section_header_line(line)
                    ret._values.setdefault(section, _CaseInsensitiveDict)
                if _strip_comments(line).strip() == b"":
                    continue
                if section is None:
                    raise ValueError(f"setting {line!r} without section")
                try:
                    setting, value = line.split(b"=", 1)
                except ValueError:
                    setting = line
                    value = b"true"
                setting = setting.strip()
                if not _check_variable_name(setting):
                    raise ValueError(f"invalid variable name {setting!r}")
                if value.endswith(b"\\\n"):
                    continuation = value[:-2]
                else:
                    continuation = None
                    ret._values[section][setting] = _parse_string(value)
                    setting = None
            else:  # continuation line
                assert continuation is not None
                if line.endswith(b"\\\n"):
                    continuation += line[:-2]
                else:
                    continuation += line
                    assert section is not None
                    ret._values[section][setting] = _parse_string(continuation)
                    continuation = None
                    setting = None
        return ret

    @classmethod
    def from_path(cls, path: Union[str, "os.PathLike[str]"]) -> "ConfigFile":
        """Read configuration from a file on disk."""
        abs_path = os.fspath(path)
        with GitFile(abs_path, "rb") as f:
            ret = cls.from_file(f)
        ret.path = abs_path
        return ret

    def write_to_path(self, path: Union[str, "os.PathLike[str]", None] = None) -> None:
        """Write configuration to a file on disk."""
        if path is None:
            if self.path is None:
                raise ValueError("No path specified and no default path available")
            path = self.path
        with GitFile(path, "wb") as f:
            self.write_to_file(f)

    def write_to_file(self, f: Union[IO[bytes], _GitFile]) -> None:
        """Write configuration to a file-like object."""
        for section, values in self._values.items():
            try:
                section_name, subsection_name = section
            except ValueError:
                (section_name,) = section
                subsection_name = None
            if subsection_name is None:
                f.write(b"[" + section_name + b"]\n")
            else:
                f.write(b"[" + section_name + b' "' + subsection_name + b'"]\n')
            for key, value in values.items():
                f.write(b"\t" + key + b" = " + _format_string(value) + b"\n")


@dataclass(frozen=True)
class Identity:
    """Who is recorded as author and committer of new commits."""

    name: bytes
    email: bytes
    timezone: int = 0

    def __bytes__(self) -> bytes:
        return self.name + b" <" + self.email + b">"

    @classmethod
    def from_config(cls, config: Config) -> "Identity":
        """Read the identity from the [user] section of a configuration.

        Missing settings fall back to DEFAULT_IDENTITY. ``user.timezone``
        is given as [+-]HHMM.

        Raises:
          ValueError: if user.timezone is not a valid offset
        """
        try:
            name = config.get(("user",), "name")
        except KeyError:
            name = DEFAULT_IDENTITY.name
        try:
            email = config.get(("user",), "email")
        except KeyError:
            email = DEFAULT_IDENTITY.email
        try:
            timezone = parse_timezone(config.get(("user",), "timezone"))
        except KeyError:
            timezone = DEFAULT_IDENTITY.timezone
        return cls(name, email, timezone)


DEFAULT_IDENTITY = Identity(b"minigit", b"minigit@localhost", 0)
