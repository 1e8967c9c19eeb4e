# test_porcelain.py -- tests for minigit.porcelain
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

"""Tests for minigit.porcelain."""

import os
from io import BytesIO, StringIO

from minigit import porcelain
from minigit.errors import (
    ConfigError,
    MissingObject,
    NotCommitError,
    NotGitRepository,
    NotTreeError,
    TransferError,
    UsageError,
)
from minigit.objects import Blob, Commit, Tree, TreeEntry
from minigit.protocol import pkt_line
from minigit.repo import Repo

from . import TestCase
from .utils import FakePoolManager, build_pack, pack_entry, upload_pack_advertisement

EMPTY_TREE = b"4b825dc642cb6eb9a060e54bf8d69288fbee4904"


class PorcelainTestCase(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.test_dir = self.mkdtemp()
        self.repo_path = os.path.join(self.test_dir, "repo")
        self.repo = Repo.init(self.repo_path, mkdir=True)
        self.addCleanup(self.repo.close)

    def write_file(self, relpath: str, contents: bytes) -> str:
        path = os.path.join(self.repo_path, relpath)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(contents)
        return path


class InitTests(TestCase):
    def test_non_existent(self) -> None:
        target = os.path.join(self.mkdtemp(), "new")
        with porcelain.init(target) as r:
            self.assertTrue(os.path.isdir(os.path.join(target, ".git", "objects")))
            self.assertEqual(
                b"refs/heads/main", r.refs.get_symref_target(b"HEAD")
            )

    def test_existing_directory(self) -> None:
        target = self.mkdtemp()
        porcelain.init(target).close()
        self.assertTrue(os.path.isdir(os.path.join(target, ".git", "refs", "heads")))

    def test_twice(self) -> None:
        target = self.mkdtemp()
        porcelain.init(target).close()
        with porcelain.init(target) as r:
            self.assertEqual(
                b"refs/heads/main", r.refs.get_symref_target(b"HEAD")
            )


class CatFileTests(PorcelainTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.blob = Blob(b"hello world\n")
        self.repo.object_store.add_object(self.blob)
        self.tree = Tree([TreeEntry(b"hello.txt", 0o100644, self.blob.id)])
        self.repo.object_store.add_object(self.tree)

    def cat(self, sha, mode: str = "raw") -> bytes:  # type: ignore[no-untyped-def]
        out = BytesIO()
        porcelain.cat_file(self.repo, sha, out, mode=mode)
        return out.getvalue()

    def test_raw_blob(self) -> None:
        self.assertEqual(b"hello world\n", self.cat(self.blob.id))

    def test_pretty_blob(self) -> None:
        self.assertEqual(b"hello world\n", self.cat(self.blob.id, "pretty"))

    def test_pretty_tree(self) -> None:
        self.assertEqual(
            b"100644 blob " + self.blob.id + b"\thello.txt\n",
            self.cat(self.tree.id, "pretty"),
        )

    def test_raw_tree(self) -> None:
        self.assertEqual(self.tree.as_raw_string(), self.cat(self.tree.id))

    def test_type(self) -> None:
        self.assertEqual(b"blob\n", self.cat(self.blob.id, "type"))
        self.assertEqual(b"tree\n", self.cat(self.tree.id, "type"))

    def test_size(self) -> None:
        self.assertEqual(b"12\n", self.cat(self.blob.id, "size"))

    def test_str_sha(self) -> None:
        self.assertEqual(
            b"hello world\n", self.cat(self.blob.id.decode("ascii").upper())
        )

    def test_by_path(self) -> None:
        out = BytesIO()
        porcelain.cat_file(self.repo_path, self.blob.id, out)
        self.assertEqual(b"hello world\n", out.getvalue())

    def test_missing(self) -> None:
        with self.assertRaises(MissingObject) as cm:
            self.cat(b"a" * 40)
        self.assertEqual(b"a" * 40, cm.exception.sha)

    def test_invalid_sha(self) -> None:
        with self.assertRaises(UsageError) as cm:
            self.cat("not-a-sha")
        self.assertIn("not-a-sha", str(cm.exception))

    def test_short_sha(self) -> None:
        self.assertRaises(UsageError, self.cat, self.blob.id[:7])

    def test_unknown_mode(self) -> None:
        self.assertRaises(ValueError, self.cat, self.blob.id, "bogus")

    def test_not_a_repository(self) -> None:
        self.assertRaises(
            NotGitRepository,
            porcelain.cat_file,
            self.test_dir,
            self.blob.id,
            BytesIO(),
        )


class HashObjectTests(PorcelainTestCase):
    def test_simple(self) -> None:
        path = self.write_file("foo", b"hello world\n")
        sha = porcelain.hash_object(self.repo, path)
        self.assertEqual(b"3b18e512dba79e4c8300dd08aeb37f8e728b8dad", sha)
        self.assertEqual(b"hello world\n", self.repo.object_store[sha].data)

    def test_empty(self) -> None:
        path = self.write_file("empty", b"")
        self.assertEqual(
            b"e69de29bb2d1d6434b8b29ae775ad8c2e48c5391",
            porcelain.hash_object(self.repo_path, path),
        )

    def test_missing_file(self) -> None:
        self.assertRaises(
            FileNotFoundError,
            porcelain.hash_object,
            self.repo,
            os.path.join(self.test_dir, "nonexistent"),
        )


class LsTreeTests(PorcelainTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.write_file("foo", b"origstuff")
        self.write_file("adir/afile", b"content")
        self.tree_id = porcelain.write_tree(self.repo)

    def test_empty(self) -> None:
        self.repo.object_store.add_object(Tree())
        f = StringIO()
        porcelain.ls_tree(self.repo, EMPTY_TREE.decode("ascii"), outstream=f)
        self.assertEqual("", f.getvalue())

    def test_simple(self) -> None:
        tree = self.repo.object_store[self.tree_id]
        f = StringIO()
        porcelain.ls_tree(self.repo, self.tree_id, outstream=f)
        self.assertEqual(
            "040000 tree {}\tadir\n100644 blob {}\tfoo\n".format(
                tree[b"adir"].sha.decode("ascii"), tree[b"foo"].sha.decode("ascii")
            ),
            f.getvalue(),
        )

    def test_recursive_name_only(self) -> None:
        f = StringIO()
        porcelain.ls_tree(
            self.repo, self.tree_id, outstream=f, recursive=True, name_only=True
        )
        self.assertEqual("adir\nadir/afile\nfoo\n", f.getvalue())

    def test_not_a_tree(self) -> None:
        blob_id = self.repo.object_store[self.tree_id][b"foo"].sha
        self.assertRaises(
            NotTreeError, porcelain.ls_tree, self.repo, blob_id, outstream=StringIO()
        )

    def test_missing(self) -> None:
        self.assertRaises(
            MissingObject, porcelain.ls_tree, self.repo, b"b" * 40, outstream=StringIO()
        )

    def test_invalid_sha(self) -> None:
        self.assertRaises(
            UsageError, porcelain.ls_tree, self.repo, "HEAD", outstream=StringIO()
        )


class WriteTreeTests(PorcelainTestCase):
    def test_empty(self) -> None:
        self.assertEqual(EMPTY_TREE, porcelain.write_tree(self.repo))

    def test_simple(self) -> None:
        self.write_file("hello.txt", b"hello world\n")
        sha = porcelain.write_tree(self.repo_path)
        blob = Blob(b"hello world\n")
        expected = Tree([TreeEntry(b"hello.txt", 0o100644, blob.id)])
        self.assertEqual(expected.id, sha)
        self.assertIn(blob.id, self.repo.object_store)

    def test_excludes_control_dir(self) -> None:
        self.write_file("a", b"a")
        tree = self.repo.object_store[porcelain.write_tree(self.repo)]
        self.assertNotIn(b".git", tree)


class CommitTreeTests(PorcelainTestCase):
    def test_root_commit(self) -> None:
        sha = porcelain.commit_tree(
            self.repo, EMPTY_TREE, "initial", commit_time=1700000000
        )
        self.assertEqual(
            b"tree 4b825dc642cb6eb9a060e54bf8d69288fbee4904\n"
            b"author minigit <minigit@localhost> 1700000000 +0000\n"
            b"committer minigit <minigit@localhost> 1700000000 +0000\n"
            b"\n"
            b"initial\n",
            self.repo.object_store[sha].as_raw_string(),
        )

    def test_with_parent(self) -> None:
        first = porcelain.commit_tree(
            self.repo, EMPTY_TREE, b"one\n", commit_time=1700000000
        )
        second = porcelain.commit_tree(
            self.repo,
            EMPTY_TREE.decode("ascii"),
            b"two\n",
            parent=first.decode("ascii"),
            commit_time=1700000001,
        )
        commit = self.repo.object_store[second]
        self.assertIsInstance(commit, Commit)
        self.assertEqual([first], commit.parents)
        self.assertEqual(b"two\n", commit.message)

    def test_uses_configured_identity(self) -> None:
        config = self.repo.get_config()
        config.set(("user",), "name", "Jane Doe")
        config.set(("user",), "email", "jane@example.com")
        config.set(("user",), "timezone", "+0200")
        config.write_to_path()
        sha = porcelain.commit_tree(
            self.repo_path, EMPTY_TREE, "msg", commit_time=1700000000
        )
        with Repo(self.repo_path) as r:
            commit = r.object_store[sha]
        self.assertEqual(b"Jane Doe <jane@example.com>", commit.author)
        self.assertEqual(commit.author, commit.committer)
        self.assertEqual(7200, commit.commit_timezone)

    def test_tree_need_not_exist(self) -> None:
        sha = porcelain.commit_tree(self.repo, b"c" * 40, "msg")
        self.assertEqual(b"c" * 40, self.repo.object_store[sha].tree)

    def test_invalid_tree(self) -> None:
        self.assertRaises(
            UsageError, porcelain.commit_tree, self.repo, "nonsense", "msg"
        )

    def test_invalid_parent(self) -> None:
        self.assertRaises(
            UsageError,
            porcelain.commit_tree,
            self.repo,
            EMPTY_TREE,
            "msg",
            parent="abc",
        )

    def test_bad_timezone_config(self) -> None:
        config = self.repo.get_config()
        config.set(("user",), "timezone", "bogus")
        config.write_to_path()
        self.assertRaises(
            ConfigError, porcelain.commit_tree, self.repo, EMPTY_TREE, "msg"
        )


class GetCloneTargetTests(TestCase):
    def test_strips_dot_git(self) -> None:
        self.assertEqual(
            "minigit",
            porcelain.get_clone_target("https://example.com/minigit.git"),
        )

    def test_trailing_slash(self) -> None:
        self.assertEqual("repo", porcelain.get_clone_target("http://host/path/repo/"))

    def test_no_name(self) -> None:
        self.assertRaises(UsageError, porcelain.get_clone_target, "http://host/.git")


BASE_URL = "https://git.example.com/project.git"
REFS_URL = BASE_URL + "/info/refs?service=git-upload-pack"
UPLOAD_URL = BASE_URL + "/git-upload-pack"


class CloneTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.test_dir = self.mkdtemp()
        self.target = os.path.join(self.test_dir, "clone")
        self.readme = Blob(b"# project\n")
        self.script = Blob(b"#!/bin/sh\necho hi\n")
        self.subtree = Tree([TreeEntry(b"run.sh", 0o100755, self.script.id)])
        self.tree = Tree.from_entries(
            [
                TreeEntry(b"README.md", 0o100644, self.readme.id),
                TreeEntry(b"bin", 0o40000, self.subtree.id),
            ]
        )
        self.commit = Commit(
            self.tree.id,
            [],
            author=b"Alice <alice@example.com>",
            author_time=1700000000,
            author_timezone=0,
            committer=b"Alice <alice@example.com>",
            commit_time=1700000000,
            commit_timezone=0,
            message=b"Initial\n",
        )

    def pack_of(self, *objs) -> bytes:  # type: ignore[no-untyped-def]
        return build_pack(
            [pack_entry(o.type_num, o.as_raw_string()) for o in objs]
        )

    def full_pack(self) -> bytes:
        return self.pack_of(
            self.commit, self.tree, self.subtree, self.readme, self.script
        )

    def serve(self, head: bytes, pack: bytes) -> FakePoolManager:
        advert = upload_pack_advertisement(
            [(head, b"HEAD"), (head, b"refs/heads/main")]
        )
        return FakePoolManager(
            {
                ("GET", REFS_URL): (200, advert),
                ("POST", UPLOAD_URL): (200, pkt_line(b"NAK\n") + pack),
            }
        )

    def read(self, relpath: str) -> bytes:
        with open(os.path.join(self.target, relpath), "rb") as f:
            return f.read()

    def test_clone(self) -> None:
        pool = self.serve(
            self.commit.id,
            self.full_pack(),
        )
        with porcelain.clone(BASE_URL, self.target, pool_manager=pool) as r:
            self.assertEqual(self.commit.id, r.refs[b"refs/heads/main"])
            self.assertEqual(self.commit.id, r.head())
            self.assertEqual(5, len(list(r.object_store)))
        self.assertEqual(b"# project\n", self.read("README.md"))
        self.assertEqual(b"#!/bin/sh\necho hi\n", self.read("bin/run.sh"))
        self.assertTrue(os.access(os.path.join(self.target, "bin", "run.sh"), os.X_OK))
        method, url, kwargs = pool.requests[-1]
        self.assertEqual(("POST", UPLOAD_URL), (method, url))
        self.assertEqual(
            b"0032want " + self.commit.id + b"\n00000009done\n", kwargs["body"]
        )

    def test_default_target(self) -> None:
        pool = self.serve(
            self.commit.id,
            self.full_pack(),
        )
        old_cwd = os.getcwd()
        os.chdir(self.test_dir)
        self.addCleanup(os.chdir, old_cwd)
        porcelain.clone(BASE_URL, pool_manager=pool).close()
        readme = os.path.join(self.test_dir, "project", "README.md")
        self.assertTrue(os.path.isfile(readme))

    def test_into_existing_repository(self) -> None:
        with porcelain.init(self.target) as r:
            config = r.get_config()
            config.set(("core",), "filemode", False)
            config.write_to_path()
        pool = self.serve(self.commit.id, self.full_pack())
        porcelain.clone(BASE_URL, self.target, pool_manager=pool).close()
        self.assertEqual(b"#!/bin/sh\necho hi\n", self.read("bin/run.sh"))
        self.assertFalse(
            os.access(os.path.join(self.target, "bin", "run.sh"), os.X_OK)
        )

    def test_logs_progress(self) -> None:
        pool = self.serve(
            self.commit.id,
            self.full_pack(),
        )
        with self.assertLogs("minigit.porcelain", level="INFO") as cm:
            porcelain.clone(BASE_URL, self.target, pool_manager=pool).close()
        self.assertIn("Cloning into", cm.output[0])

    def test_missing_object_in_pack(self) -> None:
        pool = self.serve(
            self.commit.id, self.pack_of(self.commit, self.tree, self.readme)
        )
        with self.assertRaises(MissingObject) as cm:
            porcelain.clone(BASE_URL, self.target, pool_manager=pool)
        self.assertEqual(self.subtree.id, cm.exception.sha)
        # Partial results stay behind
        self.assertEqual(b"# project\n", self.read("README.md"))

    def test_head_not_in_pack(self) -> None:
        pool = self.serve(self.commit.id, self.pack_of(self.readme))
        self.assertRaises(
            MissingObject, porcelain.clone, BASE_URL, self.target, pool_manager=pool
        )

    def test_head_not_a_commit(self) -> None:
        pool = self.serve(self.readme.id, self.pack_of(self.readme))
        self.assertRaises(
            NotCommitError, porcelain.clone, BASE_URL, self.target, pool_manager=pool
        )

    def test_remote_not_found(self) -> None:
        pool = FakePoolManager({})
        self.assertRaises(
            TransferError, porcelain.clone, BASE_URL, self.target, pool_manager=pool
        )
        self.assertTrue(os.path.isdir(os.path.join(self.target, ".git")))

    def test_remote_error(self) -> None:
        advert = upload_pack_advertisement([(self.commit.id, b"HEAD")])
        pool = FakePoolManager(
            {
                ("GET", REFS_URL): (200, advert),
                ("POST", UPLOAD_URL): (200, pkt_line(b"ERR access denied\n")),
            }
        )
        with self.assertRaises(TransferError) as cm:
            porcelain.clone(BASE_URL, self.target, pool_manager=pool)
        self.assertIn("access denied", str(cm.exception))
