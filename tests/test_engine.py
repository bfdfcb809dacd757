# test_engine.py -- Tests for engine.py
# Copyright (C) 2026 The argit authors
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# argit is dual-licensed under the Apache License, Version 2.0 and the GNU
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

"""Tests for argit.engine."""

import os
import warnings

from dulwich import porcelain

from argit.engine import CheckoutError, DulwichEngine, WorkTreeStatus
from argit.filesystem import MemoryFilesystem
from argit.identity import Identity

from . import TestCase

IDENTITY = Identity("Test User", "test@example.com")


def write(fs, path: str, data: bytes) -> None:
    with fs.create(path) as f:
        f.write(data)


def read(fs, path: str) -> bytes:
    with fs.open(path) as f:
        return f.read()


class WorkTreeStatusTests(TestCase):
    def test_clean(self) -> None:
        status = WorkTreeStatus({"add": [], "delete": [], "modify": []}, [], [])
        self.assertTrue(status.is_clean())

    def test_untracked_is_not_clean(self) -> None:
        status = WorkTreeStatus({"add": [], "delete": [], "modify": []}, [], [b"x"])
        self.assertFalse(status.is_clean())


class DulwichRepositoryTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.engine = DulwichEngine()
        self.storage = MemoryFilesystem()
        self.worktree = MemoryFilesystem()
        write(self.worktree, "README.md", b"README")
        write(self.worktree, "dir/file", b"nested\n")
        self.repo = self.engine.init(self.storage, self.worktree)

    def commit_all(self, message: str = "first commit") -> bytes:
        self.repo.add("README.md")
        self.repo.add("/dir/file")
        return self.repo.commit(message, IDENTITY)

    def test_untracked(self) -> None:
        status = self.repo.status()
        self.assertEqual([b"README.md", b"dir/file"], status.untracked)
        self.assertFalse(status.is_clean())

    def test_no_branches_before_commit(self) -> None:
        self.assertEqual([], self.repo.branches())
        self.assertRaises(KeyError, self.repo.head)

    def test_add_stages(self) -> None:
        self.repo.add("README.md")
        status = self.repo.status()
        self.assertEqual([b"README.md"], status.staged["add"])
        self.assertEqual([b"dir/file"], status.untracked)

    def test_commit(self) -> None:
        sha = self.commit_all()
        self.assertEqual(sha, self.repo.head())
        self.assertTrue(self.repo.status().is_clean())
        self.assertEqual([b"master"], self.repo.branches())
        commits = list(self.repo.log())
        self.assertEqual([sha], [c.id for c in commits])
        self.assertEqual(b"first commit", commits[0].message)
        self.assertEqual(b"Test User <test@example.com>", commits[0].author)
        self.assertEqual(commits[0].author, commits[0].committer)

    def test_second_commit(self) -> None:
        first = self.commit_all()
        write(self.worktree, "README.md", b"changed")
        self.assertEqual([b"README.md"], self.repo.status().unstaged)
        self.repo.add("README.md")
        self.assertEqual([b"README.md"], self.repo.status().staged["modify"])
        second = self.repo.commit("second", IDENTITY)
        self.assertEqual([second, first], [c.id for c in self.repo.log()])
        self.assertEqual([first], next(self.repo.log()).parents)

    def test_removed_file_is_unstaged(self) -> None:
        self.commit_all()
        self.worktree.remove("dir/file")
        self.assertEqual([b"dir/file"], self.repo.status().unstaged)

    def test_storage_written(self) -> None:
        self.commit_all()
        self.assertEqual(b"ref: refs/heads/master\n", read(self.storage, "HEAD"))
        self.assertEqual(
            self.repo.head() + b"\n", read(self.storage, "refs/heads/master")
        )

    def test_checkout_after_open(self) -> None:
        self.commit_all()
        worktree = MemoryFilesystem()
        repo = self.engine.open(self.storage, worktree)
        repo.checkout(b"master")
        self.assertEqual(b"README", read(worktree, "README.md"))
        self.assertEqual(b"nested\n", read(worktree, "dir/file"))
        self.assertTrue(repo.status().is_clean())

    def test_checkout_uses_module_tree_iterator(self) -> None:
        self.commit_all()
        repo = self.engine.open(self.storage, MemoryFilesystem())
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", DeprecationWarning)
            repo.checkout(b"master")
            repo.status()
        self.assertEqual(
            [], [w for w in caught if "iter_tree_contents" in str(w.message)]
        )

    def test_checkout_with_missing_files(self) -> None:
        self.commit_all()
        self.worktree.remove("README.md")
        self.repo.checkout(b"master")
        self.assertEqual(b"README", read(self.worktree, "README.md"))

    def test_checkout_with_untracked_file(self) -> None:
        self.commit_all()
        write(self.worktree, "scratch", b"untracked")
        self.assertRaises(CheckoutError, self.repo.checkout, b"master")

    def test_branches_are_full_names(self) -> None:
        sha = self.commit_all()
        self.repo.repo.refs[b"refs/heads/feature/x"] = sha
        self.repo.repo.refs[b"refs/remotes/origin/master"] = sha
        self.assertEqual([b"master", b"feature/x"], self.repo.branches())

    def test_checkout_missing_branch(self) -> None:
        self.commit_all()
        self.assertRaises(KeyError, self.repo.checkout, b"nonexistent")

    def test_checkout_with_local_changes(self) -> None:
        self.commit_all()
        write(self.worktree, "README.md", b"local change")
        self.assertRaises(CheckoutError, self.repo.checkout, b"master")
        self.repo.checkout(b"master", force=True)
        self.assertEqual(b"README", read(self.worktree, "README.md"))

    def test_branches_head_first(self) -> None:
        sha = self.commit_all()
        self.repo.repo.refs[b"refs/heads/aaa"] = sha
        self.repo.repo.refs[b"refs/heads/zzz"] = sha
        self.assertEqual([b"master", b"aaa", b"zzz"], self.repo.branches())
        self.repo.checkout(b"zzz")
        self.assertEqual([b"zzz", b"aaa", b"master"], self.repo.branches())

    def test_commit_follows_head(self) -> None:
        sha = self.commit_all()
        self.repo.repo.refs[b"refs/heads/other"] = sha
        self.repo.checkout(b"other")
        write(self.worktree, "new", b"new")
        self.repo.add("new")
        new = self.repo.commit("on other", IDENTITY)
        self.assertEqual(new, self.repo.repo.refs[b"refs/heads/other"])
        self.assertEqual(sha, self.repo.repo.refs[b"refs/heads/master"])


class DulwichCloneTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.source = self.mkdtemp()
        porcelain.init(self.source)
        with open(os.path.join(self.source, "hello.txt"), "wb") as f:
            f.write(b"hello\n")
        porcelain.add(self.source, paths=[os.path.join(self.source, "hello.txt")])
        self.sha = porcelain.commit(
            self.source,
            message=b"initial",
            author=b"Test User <test@example.com>",
            committer=b"Test User <test@example.com>",
        )

    def test_clone_local_url(self) -> None:
        storage = MemoryFilesystem()
        worktree = MemoryFilesystem()
        repo = DulwichEngine().clone(storage, worktree, self.source)
        self.assertEqual([b"master"], repo.branches())
        self.assertEqual(self.sha, repo.head())
        self.assertEqual(
            self.sha, repo.repo.refs[b"refs/remotes/origin/master"]
        )
        config = repo.repo.get_config()
        self.assertEqual(
            self.source.encode("utf-8"), config.get((b"remote", b"origin"), b"url")
        )
        repo.checkout(b"master")
        self.assertEqual(b"hello\n", read(worktree, "hello.txt"))

    def test_clone_annotated_tag(self) -> None:
        porcelain.tag_create(
            self.source,
            b"v1.0",
            author=b"Test User <test@example.com>",
            message=b"release",
            annotated=True,
        )
        repo = DulwichEngine().clone(MemoryFilesystem(), MemoryFilesystem(), self.source)
        self.assertIn(b"refs/tags/v1.0", repo.repo.refs)
        tag = repo.repo[repo.repo.refs[b"refs/tags/v1.0"]]
        self.assertEqual(self.sha, tag.object[1])
        self.assertFalse(
            [ref for ref in repo.repo.refs.allkeys() if ref.endswith(b"^{}")]
        )
