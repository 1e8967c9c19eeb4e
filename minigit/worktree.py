# worktree.py -- Moving trees between the object store and the filesystem
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

"""Moving trees between the object store and the filesystem.

build_tree_from_directory() stores a directory as a tree, walk_tree()
lists a stored tree and checkout_tree() writes one back out.
"""

__all__ = [
    "INVALID_DOTNAMES",
    "build_file_from_blob",
    "build_tree_from_directory",
    "checkout_tree",
    "cleanup_mode",
    "walk_tree",
]

import logging
import os
import posixpath
import stat
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Any, Optional, Union

from .errors import (
    MalformedTree,
    MissingObject,
    NotBlobError,
    NotTreeError,
    ObjectNotFound,
)
from .file import ensure_dir_exists
from .objects import (
    S_IFGITLINK,
    Blob,
    ObjectID,
    Tree,
    TreeEntry,
    pretty_format_tree_entry,
)

if TYPE_CHECKING:
    from .object_store import BaseObjectStore

logger = logging.getLogger(__name__)

INVALID_DOTNAMES = (b".git", b".", b"..", b"")

PathType = Union[str, bytes, "os.PathLike[str]"]


def cleanup_mode(mode: int) -> int:
    """Cleanup a mode value.

    This will return a mode that can be stored in a tree object.

    Args:
      mode: Mode to clean up, as returned by lstat().
    Returns:
      mode
    """
    if stat.S_ISLNK(mode):
        return stat.S_IFLNK
    elif stat.S_ISDIR(mode):
        return stat.S_IFDIR
    ret = stat.S_IFREG | 0o644
    if mode & 0o100:
        ret |= 0o111
    return ret


def _build_tree(
    store: "BaseObjectStore", path: bytes, exclude: Sequence[bytes]
) -> Optional[ObjectID]:
    entries = []
    for name in os.listdir(path):
        if name in exclude:
            continue
        child = os.path.join(path, name)
        st = os.lstat(child)
        if stat.S_ISDIR(st.st_mode):
            sha = _build_tree(store, child, exclude)
            if sha is None:
                logger.debug("omitting empty directory %r", child)
                continue
        elif stat.S_ISLNK(st.st_mode):
            sha = store.add_object(Blob(os.readlink(child)))
        elif stat.S_ISREG(st.st_mode):
            sha = store.add_object(Blob.from_path(child))
        else:
            logger.debug("skipping special file %r", child)
            continue
        entries.append(TreeEntry(name, cleanup_mode(st.st_mode), sha))
    if not entries:
        return None
    return store.add_object(Tree.from_entries(entries))


def build_tree_from_directory(
    store: "BaseObjectStore",
    path: PathType,
    exclude: Sequence[bytes] = (b".git",),
) -> ObjectID:
    """Store the contents of a directory as a tree.

    Subdirectories are stored before the trees that contain them, so by the
    time a tree's id is known every object it refers to is in the store.
    Empty directories cannot be represented and are left out.

    Args:
      store: Object store to add objects to
      path: Directory to read
      exclude: Names to skip at every level
    Returns: hex sha of the tree for ``path``
    """
    sha = _build_tree(store, os.fsencode(path), exclude)
    if sha is None:
        sha = store.add_object(Tree())
    return sha


def _lookup(
    store: "BaseObjectStore",
    sha: ObjectID,
    cls: type,
    error: type,
    referrer: Optional[str] = None,
) -> Any:
    try:
        obj = store[sha]
    except ObjectNotFound:
        raise MissingObject(sha, referrer) from None
    if not isinstance(obj, cls):
        raise error(sha)
    return obj


def walk_tree(
    store: "BaseObjectStore",
    sha: ObjectID,
    recursive: bool = False,
    name_only: bool = False,
) -> Iterator[str]:
    """List the contents of a tree.

    Entries come out in the order they are stored. When recursing, a
    subtree's own line comes before the lines for its contents, and names
    below the top level are given relative to the starting tree.

    Args:
      store: Object store to read from
      sha: hex sha of the tree to list
      recursive: Whether to descend into subtrees
      name_only: Only emit names, not the "<mode> <kind> <sha>\\t" prefix
    Returns: Iterator over lines, each ending in a newline
    Raises:
      MissingObject: if a tree is not in the store
      NotTreeError: if ``sha`` does not refer to a tree
    """

    def list_tree(tree_id: ObjectID, base: bytes) -> Iterator[str]:
        referrer = base.decode("utf-8", "replace") or None
        tree = _lookup(store, tree_id, Tree, NotTreeError, referrer)
        for name, mode, entry_sha in tree.iteritems():
            if base:
                name = posixpath.join(base, name)
            if name_only:
                yield name.decode("utf-8", "replace") + "\n"
            else:
                yield pretty_format_tree_entry(name, mode, entry_sha)
            if stat.S_ISDIR(mode) and recursive:
                yield from list_tree(entry_sha, name)

    return list_tree(sha, b"")


def build_file_from_blob(
    blob: Blob, mode: int, target_path: bytes, honor_filemode: bool = True
) -> None:
    """Build a file or symlink on disk based on a Git object.

    Args:
      blob: The git object
      mode: File mode
      target_path: Path to write to
      honor_filemode: An optional flag to honor core.filemode setting in
        config file, default is core.filemode=True, change executable bit
    """
    contents = blob.as_raw_string()
    if stat.S_ISLNK(mode):
        if os.path.lexists(target_path):
            os.unlink(target_path)
        os.symlink(contents, target_path)
    else:
        with open(target_path, "wb") as f:
            f.write(contents)
        if honor_filemode:
            os.chmod(target_path, mode & 0o777)


def _checkout(
    store: "BaseObjectStore", tree_id: ObjectID, target: bytes, honor_filemode: bool
) -> int:
    tree = _lookup(store, tree_id, Tree, NotTreeError, os.fsdecode(target))
    ensure_dir_exists(target)
    count = 0
    for entry in tree.iteritems():
        if entry.name in INVALID_DOTNAMES or b"/" in entry.name:
            raise MalformedTree(f"refusing to check out path {entry.name!r}")
        path = os.path.join(target, entry.name)
        if stat.S_ISDIR(entry.mode):
            count += _checkout(store, entry.sha, path, honor_filemode)
        elif entry.mode == S_IFGITLINK:
            logger.debug("not checking out submodule %r", path)
            ensure_dir_exists(path)
        else:
            blob = _lookup(store, entry.sha, Blob, NotBlobError, os.fsdecode(path))
            build_file_from_blob(blob, entry.mode, path, honor_filemode)
            count += 1
    return count


def checkout_tree(
    store: "BaseObjectStore",
    sha: ObjectID,
    target: PathType,
    honor_filemode: bool = True,
) -> None:
    """Write the contents of a tree into a directory.

    Directories are created as needed and existing files are overwritten.
    Files get the executable bit when their mode has it, unless
    honor_filemode is false; symlinks are created as symlinks.

    Args:
      store: Object store to read from
      sha: hex sha of the tree to check out
      target: Directory to write into
      honor_filemode: Whether to apply modes from the tree to new files
    Raises:
      MissingObject: if an object the tree refers to is not in the store.
        Whatever was written before the error stays in place.
    """
    count = _checkout(store, sha, os.fsencode(target), honor_filemode)
    logger.debug("checked out %d files from %s", count, sha.decode("ascii"))
