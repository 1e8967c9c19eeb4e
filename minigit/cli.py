# cli.py -- Simple command-line interface to minigit
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


"""Simple command-line interface to minigit.

Each subcommand is a Command subclass parsing its own arguments; main()
dispatches on the first argument and turns minigit errors into a message
on stderr and a non-zero exit status.
"""

__all__ = [
    "Command",
    "commands",
    "main",
]

import argparse
import logging
import os
import sys
from collections.abc import Sequence
from typing import BinaryIO, ClassVar, NoReturn, Optional

from . import porcelain
from .errors import MinigitError, UsageError
from .log_utils import default_logging_config

logger = logging.getLogger(__name__)


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting."""

    def error(self, message: str) -> NoReturn:
        raise UsageError(f"{self.prog}: {message}")


def _binary_stdout() -> BinaryIO:
    return getattr(sys.stdout, "buffer", sys.stdout)


class Command:
    """A minigit subcommand."""

    name: ClassVar[str]

    def _parser(self) -> argparse.ArgumentParser:
        return _ArgumentParser(prog=f"minigit {self.name}")

    def run(self, args: Sequence[str]) -> Optional[int]:
        """Run the command."""
        raise NotImplementedError(self.run)


class cmd_init(Command):
    """Create an empty Git repository."""

    name = "init"

    def run(self, args: Sequence[str]) -> None:
        parser = self._parser()
        parser.add_argument(
            "path", nargs="?", default=os.getcwd(), help="Repository path"
        )
        parsed_args = parser.parse_args(args)
        porcelain.init(parsed_args.path)
        print("Initialized git directory")


class cmd_cat_file(Command):
    """Provide content or type and size information for repository objects."""

    name = "cat-file"

    def run(self, args: Sequence[str]) -> None:
        parser = self._parser()
        group = parser.add_mutually_exclusive_group()
        group.add_argument(
            "-p",
            dest="mode",
            action="store_const",
            const="pretty",
            help="Pretty-print the object",
        )
        group.add_argument(
            "-t",
            dest="mode",
            action="store_const",
            const="type",
            help="Show the object type",
        )
        group.add_argument(
            "-s",
            dest="mode",
            action="store_const",
            const="size",
            help="Show the object size",
        )
        parser.add_argument("object", help="Object to show")
        parsed_args = parser.parse_args(args)
        with porcelain.open_repo_closing(".") as repo:
            porcelain.cat_file(
                repo,
                parsed_args.object,
                _binary_stdout(),
                mode=parsed_args.mode or "raw",
            )


class cmd_hash_object(Command):
    """Compute object ID and create a blob from a file."""

    name = "hash-object"

    def run(self, args: Sequence[str]) -> None:
        parser = self._parser()
        parser.add_argument(
            "-w",
            action="store_true",
            help="Write the object into the object database",
        )
        parser.add_argument("path", help="File to hash")
        parsed_args = parser.parse_args(args)
        sha = porcelain.hash_object(".", parsed_args.path)
        print(sha.decode("ascii"))


class cmd_ls_tree(Command):
    """List the contents of a tree object."""

    name = "ls-tree"

    def run(self, args: Sequence[str]) -> None:
        parser = self._parser()
        parser.add_argument(
            "-r",
            "--recursive",
            action="store_true",
            help="Recursively list tree contents.",
        )
        parser.add_argument(
            "--name-only", action="store_true", help="Only display name."
        )
        parser.add_argument("treeish", help="Tree to list")
        parsed_args = parser.parse_args(args)
        porcelain.ls_tree(
            ".",
            parsed_args.treeish,
            outstream=sys.stdout,
            recursive=parsed_args.recursive,
            name_only=parsed_args.name_only,
        )


class cmd_write_tree(Command):
    """Create a tree object from the working directory."""

    name = "write-tree"

    def run(self, args: Sequence[str]) -> None:
        parser = self._parser()
        parser.parse_args(args)
        print(porcelain.write_tree(".").decode("ascii"))


class cmd_commit_tree(Command):
    """Create a new commit object from a tree."""

    name = "commit-tree"

    def run(self, args: Sequence[str]) -> None:
        parser = self._parser()
        parser.add_argument("--message", "-m", required=True, help="Commit message")
        parser.add_argument("-p", dest="parent", help="Parent commit")
        parser.add_argument("tree", help="Tree SHA to commit")
        parsed_args = parser.parse_args(args)
        sha = porcelain.commit_tree(
            ".",
            tree=parsed_args.tree,
            message=parsed_args.message,
            parent=parsed_args.parent,
        )
        print(sha.decode("ascii"))


class cmd_clone(Command):
    """Clone a repository into a new directory."""

    name = "clone"

    def run(self, args: Sequence[str]) -> None:
        parser = self._parser()
        parser.add_argument("source", help="Repository to clone from")
        parser.add_argument("target", nargs="?", help="Directory to clone into")
        parsed_args = parser.parse_args(args)
        with porcelain.clone(parsed_args.source, parsed_args.target):
            pass


commands: dict[str, type[Command]] = {
    cls.name: cls
    for cls in (
        cmd_cat_file,
        cmd_clone,
        cmd_commit_tree,
        cmd_hash_object,
        cmd_init,
        cmd_ls_tree,
        cmd_write_tree,
    )
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the minigit CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    if not argv or argv[0] in ("-h", "--help"):
        logger.error(
            "usage: minigit <command> [<args>]\n\nCommands: %s",
            ", ".join(sorted(commands)),
        )
        return 1

    cmd = argv[0]
    try:
        cmd_kls = commands[cmd]
    except KeyError:
        logger.error("No such subcommand: %s", cmd)
        return 1

    try:
        return cmd_kls().run(argv[1:]) or 0
    except UsageError as e:
        logger.error("%s", e)
        return 2
    except MinigitError as e:
        logger.error("fatal: %s", e)
        return 1
    except OSError as e:
        logger.error("fatal: %s", e)
        return 1


def _main() -> None:
    default_logging_config()
    sys.exit(main())


if __name__ == "__main__":
    _main()
