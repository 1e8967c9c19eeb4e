# repo.py -- For dealing with git repositories.
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

"""Repository access.

A repository is a working directory with a ``.git`` control directory
inside it, holding the object store, the refs and the config file.
"""

__all__ = [
    "BASE_DIRECTORIES",
    "CONTROLDIR",
    "DEFAULT_BRANCH",
    "OBJECTDIR",
    "Repo",
]

import logging
import os
from types import TracebackType
from typing import Optional, Union

from .commit import CommitBuilder
from .config import ConfigFile, Identity
from .errors import ConfigError, NotGitRepository
from .file import ensure_dir_exists
from .object_store import DiskObjectStore
from .objects import ObjectID
from .refs import HEADREF, LOCAL_BRANCH_PREFIX, DiskRefsContainer

logger = logging.getLogger(__name__)

CONTROLDIR = ".git"
OBJECTDIR = "objects"
REFSDIR = "refs"
REFSDIR_TAGS = "tags"
REFSDIR_HEADS = "heads"

BASE_DIRECTORIES = [
    [REFSDIR],
    [REFSDIR, REFSDIR_TAGS],
    [REFSDIR, REFSDIR_HEADS],
]

DEFAULT_BRANCH = b"main"

PathType = Union[str, bytes, "os.PathLike[str]"]


class Repo:
    """A git repository backed by local disk.

    To open an existing repository, call the constructor with
    the path of the repository.

    Attributes:
      path: Path to the working tree
      object_store: DiskObjectStore holding the repository's objects
      refs: DiskRefsContainer for the repository's refs
    """

    def __init__(self, root: PathType) -> None:
        """Open a repository on disk.

        Args:
          root: Path to the working tree
        Raises:
          NotGitRepository: if there is no control directory at root
        """
        root = os.fspath(root)
        if isinstance(root, bytes):
            root = os.fsdecode(root)
        controldir = os.path.join(root, CONTROLDIR)
        if not os.path.isdir(os.path.join(controldir, OBJECTDIR)):
            raise NotGitRepository(f"No git repository was found at {root}")
        self.path = root
        self._controldir = controldir
        self.object_store = DiskObjectStore(os.path.join(controldir, OBJECTDIR))
        self.refs = DiskRefsContainer(controldir)

    def __repr__(self) -> str:
        return f"<Repo at {self.path!r}>"

    def controldir(self) -> str:
        """Return the path of the control directory."""
        return self._controldir

    @classmethod
    def discover(cls, start: PathType = ".") -> "Repo":
        """Iterate parent directories to discover a repository.

        Return a Repo object for the first parent directory that looks like a
        Git repository.

        Args:
          start: The directory to start discovery from (defaults to '.')
        """
        path = os.path.abspath(start)
        while True:
            try:
                return cls(path)
            except NotGitRepository:
                new_path, _tail = os.path.split(path)
                if new_path == path:  # Root reached
                    break
                path = new_path
        start_str = os.fsdecode(start)
        raise NotGitRepository(f"No git repository was found at {start_str}")

    @classmethod
    def init(cls, path: PathType, *, mkdir: bool = False) -> "Repo":
        """Create a new repository.

        Running this on an existing repository is safe: missing directories
        are created, while an existing HEAD and config file are left alone.

        Args:
          path: Path in which to create the repository
          mkdir: Whether to create the directory
        Returns: `Repo` instance
        """
        path = os.fspath(path)
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        if mkdir:
            os.mkdir(path)
        controldir = os.path.join(path, CONTROLDIR)
        existing = os.path.isdir(os.path.join(controldir, OBJECTDIR))
        ensure_dir_exists(controldir)
        for d in BASE_DIRECTORIES:
            ensure_dir_exists(os.path.join(controldir, *d))
        DiskObjectStore.init(os.path.join(controldir, OBJECTDIR))
        ret = cls(path)
        if ret.refs.read_loose_ref(HEADREF) is None:
            ret.refs.set_symbolic_ref(HEADREF, LOCAL_BRANCH_PREFIX + DEFAULT_BRANCH)
        if not os.path.exists(ret.get_config_path()):
            ret._init_files()
        if existing:
            logger.debug("reinitialized existing repository in %s", controldir)
        else:
            logger.debug("initialized repository in %s", controldir)
        return ret

    def _init_files(self) -> None:
        """Initialize a default set of named files."""
        cf = ConfigFile()
        cf.set("core", "repositoryformatversion", "0")
        cf.set("core", "filemode", True)
        cf.set("core", "bare", False)
        cf.write_to_path(self.get_config_path())

    def get_config_path(self) -> str:
        """Return the path of the repository's config file."""
        return os.path.join(self._controldir, "config")

    def get_config(self) -> ConfigFile:
        """Retrieve the config object.

        Returns: `ConfigFile` object for the ``.git/config`` file.
        Raises:
          ConfigError: if the file is not valid Git configuration
        """
        path = self.get_config_path()
        try:
            return ConfigFile.from_path(path)
        except FileNotFoundError:
            ret = ConfigFile()
            ret.path = path
            return ret
        except ValueError as exc:
            raise ConfigError(f"bad config file {path}: {exc}") from exc

    def get_identity(self) -> Identity:
        """Return the identity new commits are made with.

        Raises:
          ConfigError: if the config file or its [user] settings are invalid
        """
        try:
            return Identity.from_config(self.get_config())
        except ValueError as exc:
            raise ConfigError(f"bad [user] configuration: {exc}") from exc

    def honor_filemode(self) -> bool:
        """Return whether checkouts should apply the executable bit.

        Follows ``core.filemode``, which defaults to true.
        """
        try:
            return bool(self.get_config().get_boolean(("core",), "filemode", True))
        except ValueError as exc:
            raise ConfigError(f"bad core.filemode setting: {exc}") from exc

    def commit_builder(self) -> CommitBuilder:
        """Return a CommitBuilder writing to this repository's object store."""
        return CommitBuilder(self.object_store, self.get_identity())

    def head(self) -> ObjectID:
        """Return the SHA1 pointed at by HEAD.

        Raises:
          KeyError: if HEAD does not point at a commit yet
        """
        return self.refs[HEADREF]

    def close(self) -> None:
        """Close any files opened by this repository."""
        self.object_store.close()

    def __enter__(self) -> "Repo":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()
