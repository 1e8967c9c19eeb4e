# commit.py -- Building commit objects
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

"""Building commit objects."""

__all__ = ["CommitBuilder"]

import logging
import time
from typing import TYPE_CHECKING, Optional, Union

from .config import Identity
from .objects import Commit, ObjectID, valid_hexsha

if TYPE_CHECKING:
    from .object_store import BaseObjectStore

logger = logging.getLogger(__name__)


class CommitBuilder:
    """Creates commits on behalf of one identity.

    The identity is used for both author and committer. Neither the tree
    nor the parent is looked up: a commit can be written before the
    objects it names.
    """

    def __init__(self, store: "BaseObjectStore", identity: Identity) -> None:
        self.store = store
        self.identity = identity

    def commit(
        self,
        tree: ObjectID,
        parent: Optional[ObjectID] = None,
        message: Union[str, bytes] = b"",
        commit_time: Optional[int] = None,
    ) -> ObjectID:
        """Create and store a new commit.

        Args:
          tree: hex sha of the commit's tree
          parent: hex sha of the parent commit, if any
          message: Commit message; a newline is appended if it lacks one
          commit_time: Seconds since the epoch (defaults to now)
        Returns: hex sha of the new commit
        Raises:
          ValueError: if tree or parent is not a hex sha
        """
        if not valid_hexsha(tree):
            raise ValueError(f"invalid tree sha {tree!r}")
        if parent is not None and not valid_hexsha(parent):
            raise ValueError(f"invalid parent sha {parent!r}")
        if isinstance(message, str):
            message = message.encode("utf-8")
        if not message.endswith(b"\n"):
            message += b"\n"
        if commit_time is None:
            commit_time = int(time.time())
        ident = bytes(self.identity)
        c = Commit(
            ObjectID(tree.lower()),
            [ObjectID(parent.lower())] if parent is not None else [],
            author=ident,
            author_time=commit_time,
            author_timezone=self.identity.timezone,
            committer=ident,
            commit_time=commit_time,
            commit_timezone=self.identity.timezone,
            message=message,
        )
        sha = self.store.add_object(c)
        logger.debug("created commit %s", sha.decode("ascii"))
        return sha
