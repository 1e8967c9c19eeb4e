# porcelain.py -- Porcelain-like layer on top of minigit
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

"""Simple wrapper that provides porcelain-like functions on top of minigit.

Currently implemented:
 * cat_file
 * clone
 * commit_tree
 * hash_object
 * init
 * ls_tree
 * write_tree

These functions are meant to behave similarly to the git subcommands.
Differences in behaviour are considered bugs.

Functions should generally accept both unicode strings and bytestrings
"""

__all__ = [
    "cat_file",
    "clone",
    "commit_tree",
    "get_clone_target",
    "hash_object",
    "init",
    "ls_tree",
    "open_repo_closing",
    "write_tree",
]

import logging
import os
import sys
from contextlib import AbstractContextManager, closing, nullcontext
from typing import TYPE_CHECKING, BinaryIO, Optional, TextIO, Union

from .client import Urllib3HttpGitClient
from .errors import MissingObject, NotCommitError, ObjectNotFound, UsageError
from .objects import Blob, Commit, ObjectID, ShaFile, valid_hexsha
from .pack import unpack_into_store
from .refs import LOCAL_BRANCH_PREFIX
from .repo import DEFAULT_BRANCH, Repo
from .worktree import build_tree_from_directory, checkout_tree, walk_tree

if TYPE_CHECKING:
    import urllib3

logger = logging.getLogger(__name__)

RepoPath = Union[str, "os.PathLike[str]", Repo]

DEFAULT_ENCODING = "utf-8"

# Modes understood by cat_file()
CAT_FILE_MODES = ("raw", "pretty", "type", "size")


def open_repo_closing(
    path_or_repo: RepoPath,
) -> AbstractContextManager[Repo]:
    """Open an argument that can be a repository or a path for a repository.

    returns a context manager that will close the repo on exit if the argument
    is a path, else does nothing if the argument is a repo.
    """
    if isinstance(path_or_repo, Repo):
        return nullcontext(path_or_repo)
    return closing(Repo(path_or_repo))


def _to_sha(value: Union[str, bytes]) -> ObjectID:
    if isinstance(value, str):
        value = value.encode("ascii", "replace")
    if not valid_hexsha(value):
        name = value.decode("ascii", "replace")
        raise UsageError(f"not a valid object name: {name}")
    return ObjectID(value.lower())


def _get_object(r: Repo, sha: ObjectID) -> ShaFile:
    try:
        return r.object_store[sha]
    except ObjectNotFound:
        raise MissingObject(sha) from None


def init(path: Union[str, "os.PathLike[str]"] = ".") -> Repo:
    """Create a new git repository.

    Args:
      path: Path to repository; created if it does not exist.
    Returns: A Repo instance
    """
    if not os.path.exists(path):
        os.mkdir(path)
    return Repo.init(path)


def cat_file(
    repo: RepoPath,
    sha: Union[str, bytes],
    outstream: BinaryIO,
    mode: str = "raw",
) -> None:
    """Write an object, or facts about it, to a stream.

    Args:
      repo: Path to the repository
      sha: hex sha of the object
      outstream: Binary stream to write to
      mode: "raw" writes the payload unchanged; "pretty" does the same
        except that trees are listed one entry per line; "type" writes the
        kind and "size" the payload length, each followed by a newline
    Raises:
      UsageError: if sha is not a 40 digit hex sha
      MissingObject: if there is no such object
    """
    if mode not in CAT_FILE_MODES:
        raise ValueError(f"unknown cat-file mode {mode!r}")
    with open_repo_closing(repo) as r:
        obj = _get_object(r, _to_sha(sha))
        if mode == "type":
            outstream.write(obj.type_name + b"\n")
        elif mode == "size":
            outstream.write(b"%d\n" % obj.raw_length())
        elif mode == "pretty":
            outstream.write(obj.as_pretty_string())
        else:
            outstream.write(obj.as_raw_string())


def hash_object(repo: RepoPath, path: Union[str, "os.PathLike[str]"]) -> ObjectID:
    """Store the contents of a file as a blob.

    Args:
      repo: Path to the repository
      path: File to read
    Returns: hex sha of the blob
    """
    with open_repo_closing(repo) as r:
        return r.object_store.add_object(Blob.from_path(os.fspath(path)))


def ls_tree(
    repo: RepoPath,
    treeish: Union[str, bytes],
    outstream: TextIO = sys.stdout,
    recursive: bool = False,
    name_only: bool = False,
) -> None:
    """List contents of a tree.

    Args:
      repo: Path to the repository
      treeish: Tree id to list
      outstream: Output stream (defaults to stdout)
      recursive: Whether to recursively list files
      name_only: Only print item name
    """
    with open_repo_closing(repo) as r:
        for line in walk_tree(
            r.object_store, _to_sha(treeish), recursive=recursive, name_only=name_only
        ):
            outstream.write(line)


def write_tree(repo: RepoPath) -> ObjectID:
    """Write a tree object from the working directory.

    Args:
      repo: Repository for which to write tree
    Returns: tree id for the tree that was written
    """
    with open_repo_closing(repo) as r:
        return build_tree_from_directory(r.object_store, r.path)


def commit_tree(
    repo: RepoPath,
    tree: Union[str, bytes],
    message: Union[str, bytes],
    parent: Optional[Union[str, bytes]] = None,
    commit_time: Optional[int] = None,
) -> ObjectID:
    """Create a new commit object.

    Args:
      repo: Path to repository
      tree: hex sha of the tree; it is not required to exist
      message: Commit message
      parent: hex sha of the parent commit, if any
      commit_time: Seconds since the epoch (defaults to now)
    Returns: hex sha of the new commit
    Raises:
      UsageError: if tree or parent is not a 40 digit hex sha
      ConfigError: if the repository's identity settings are invalid
    """
    tree_id = _to_sha(tree)
    parent_id = _to_sha(parent) if parent is not None else None
    if isinstance(message, str):
        message = message.encode(DEFAULT_ENCODING)
    with open_repo_closing(repo) as r:
        return r.commit_builder().commit(
            tree_id, parent_id, message, commit_time=commit_time
        )


def get_clone_target(url: str) -> str:
    """Derive the default clone directory from a repository URL.

    The last path component is used, without any ".git" suffix.
    """
    name = url.rstrip("/").split("/")[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not name:
        raise UsageError(f"unable to derive a directory name from {url!r}")
    return name


def clone(
    source: str,
    target: Optional[Union[str, "os.PathLike[str]"]] = None,
    pool_manager: Optional["urllib3.PoolManager"] = None,
) -> Repo:
    """Clone a remote git repository over smart HTTP.

    The remote's HEAD commit and the objects the server sends with it are
    stored, refs/heads/main is pointed at the commit and its tree is
    checked out into the target directory.

    Args:
      source: URL of the remote repository
      target: Path to target repository (defaults to the URL's last component)
      pool_manager: urllib3 pool manager to send requests through
    Returns: The new repository
    Raises:
      TransferError: if talking to the remote fails
      MissingObject: if the pack lacks an object needed for checkout
    """
    if target is None:
        target = get_clone_target(source)
    logger.info("Cloning into '%s'...", os.fspath(target))
    r = init(target)
    with Urllib3HttpGitClient(source, pool_manager=pool_manager) as client:
        head = client.discover_head()
        read = client.fetch_pack(head)
        count = unpack_into_store(r.object_store, read)
    logger.debug("received %d objects for %s", count, head.decode("ascii"))
    commit = _get_object(r, head)
    if not isinstance(commit, Commit):
        raise NotCommitError(head)
    r.refs.set_ref(LOCAL_BRANCH_PREFIX + DEFAULT_BRANCH, head)
    checkout_tree(
        r.object_store, commit.tree, r.path, honor_filemode=r.honor_filemode()
    )
    return r
