# engine.py -- Git engine capability layer
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

"""The narrow set of git operations argit needs from a git engine.

argit itself never parses git data structures; it asks an :class:`Engine`
to create, open or clone repositories whose internal storage lives on a
:class:`argit.filesystem.MemoryFilesystem`, and drives them through the
returned :class:`EngineRepository`.

:class:`DulwichEngine` implements this interface on top of dulwich.
"""

__all__ = [
    "CheckoutError",
    "DulwichEngine",
    "DulwichRepository",
    "Engine",
    "EngineRepository",
    "WorkTreeStatus",
]

from collections.abc import Callable, Iterator
from typing import NamedTuple

from dulwich.index import IndexEntry, cleanup_mode, commit_tree
from dulwich.object_store import iter_tree_contents
from dulwich.objects import S_ISGITLINK, Blob, Commit
from dulwich.refs import LOCAL_BRANCH_PREFIX

from .clone import fetch_remote
from .filesystem import FileInfo, Filesystem, MemoryFilesystem, split_path
from .fsrepo import FilesystemRepo
from .identity import Identity
from .log_utils import getLogger
from .walk import walk

logger = getLogger(__name__)


class CheckoutError(Exception):
    """Indicates that a checkout would overwrite local changes."""

    def __init__(self, branch: bytes) -> None:
        Exception.__init__(
            self, f"checkout of {branch!r} would overwrite local changes"
        )
        self.branch = branch


class WorkTreeStatus(NamedTuple):
    """Differences between HEAD, the index and the working tree.

    Attributes:
      staged: Paths changed between HEAD and the index, by kind
        (``add``, ``delete``, ``modify``)
      unstaged: Indexed paths whose working tree copy differs or is missing
      untracked: Working tree paths not in the index
    """

    staged: dict[str, list[bytes]]
    unstaged: list[bytes]
    untracked: list[bytes]

    def is_clean(self) -> bool:
        """Check whether there are no differences at all."""
        return (
            not any(self.staged.values()) and not self.unstaged and not self.untracked
        )


class EngineRepository:
    """A repository handle obtained from an :class:`Engine`.

    Attributes:
      storage: Filesystem holding the repository's internal storage
      worktree: Filesystem holding the working tree
    """

    storage: MemoryFilesystem
    worktree: Filesystem

    def branches(self) -> list[bytes]:
        """List local branch names, the branch HEAD points at first."""
        raise NotImplementedError(self.branches)

    def checkout(self, branch: bytes, force: bool = False) -> None:
        """Check out a local branch into the working tree.

        Args:
          branch: Short branch name, e.g. ``b"master"``
          force: Discard local changes instead of failing
        Raises:
          KeyError: If the branch does not exist
          CheckoutError: If there are local changes and force is not set
        """
        raise NotImplementedError(self.checkout)

    def add(self, path: str) -> None:
        """Stage the working tree copy of path."""
        raise NotImplementedError(self.add)

    def status(self) -> WorkTreeStatus:
        raise NotImplementedError(self.status)

    def commit(self, message: str, author: Identity) -> bytes:
        """Commit the index on top of the current branch.

        Returns: SHA1 of the new commit
        """
        raise NotImplementedError(self.commit)

    def head(self) -> bytes:
        """Return the SHA1 HEAD resolves to.

        Raises:
          KeyError: If HEAD does not resolve to a commit yet
        """
        raise NotImplementedError(self.head)

    def log(self) -> Iterator[Commit]:
        """Iterate over the commits reachable from HEAD, newest first."""
        raise NotImplementedError(self.log)


class Engine:
    """Factory for :class:`EngineRepository` objects."""

    def init(self, storage: MemoryFilesystem, worktree: Filesystem) -> EngineRepository:
        """Create a new, empty repository in storage."""
        raise NotImplementedError(self.init)

    def open(self, storage: MemoryFilesystem, worktree: Filesystem) -> EngineRepository:
        """Open the repository whose internal storage is in storage."""
        raise NotImplementedError(self.open)

    def clone(
        self,
        storage: MemoryFilesystem,
        worktree: Filesystem,
        location: str,
        progress: Callable[[bytes], object] | None = None,
    ) -> EngineRepository:
        """Fetch a remote repository into storage.

        Nothing is checked out.

        Args:
          storage: Empty filesystem to store the repository in
          worktree: Filesystem for the working tree
          location: URL of the remote repository
          progress: Optional callback receiving progress output
        """
        raise NotImplementedError(self.clone)


def _index_entry(mode: int, sha: bytes, info: FileInfo) -> IndexEntry:
    mtime = int(info.mtime)
    return IndexEntry(
        ctime=mtime,
        mtime=mtime,
        dev=0,
        ino=0,
        mode=mode,
        uid=0,
        gid=0,
        size=info.size,
        sha=sha,
    )


def _tree_path(path: str) -> bytes:
    return "/".join(split_path(path)).encode("utf-8")


class DulwichRepository(EngineRepository):
    """EngineRepository backed by a :class:`FilesystemRepo`."""

    def __init__(self, repo: FilesystemRepo, worktree: Filesystem) -> None:
        self.repo = repo
        self.storage = repo.fs
        self.worktree = worktree

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} for {self.repo!r}>"

    def _head_ref(self) -> bytes:
        chain, _ = self.repo.refs.follow(b"HEAD")
        return chain[-1]

    def branches(self) -> list[bytes]:
        names = sorted(
            ref[len(LOCAL_BRANCH_PREFIX) :]
            for ref in self.repo.refs.allkeys()
            if ref.startswith(LOCAL_BRANCH_PREFIX)
        )
        head_ref = self._head_ref()
        if head_ref.startswith(LOCAL_BRANCH_PREFIX):
            current = head_ref[len(LOCAL_BRANCH_PREFIX) :]
            if current in names:
                names.remove(current)
                names.insert(0, current)
        return names

    def _head_tree(self) -> dict[bytes, tuple[int, bytes]]:
        try:
            head = self.repo.refs[b"HEAD"]
        except KeyError:
            return {}
        return {
            entry.path: (entry.mode, entry.sha)
            for entry in iter_tree_contents(self.repo.object_store, self.repo[head].tree)
        }

    def _blob_id(self, path: str) -> bytes:
        with self.worktree.open(path) as f:
            return Blob.from_string(f.read()).id

    def status(self) -> WorkTreeStatus:
        index = self.repo.index
        head_tree = self._head_tree()
        staged: dict[str, list[bytes]] = {"add": [], "delete": [], "modify": []}
        for path, entry in sorted(index.items()):
            if path not in head_tree:
                staged["add"].append(path)
            elif head_tree[path] != (entry.mode, entry.sha):
                staged["modify"].append(path)
        staged["delete"] = sorted(path for path in head_tree if path not in index)

        unstaged = []
        untracked = []
        seen = set()
        for path, info in walk(self.worktree, "/"):
            tree_path = _tree_path(path)
            seen.add(tree_path)
            entry = index.get(tree_path)
            if entry is None:
                untracked.append(tree_path)
            elif info.size != entry.size or self._blob_id(path) != entry.sha:
                unstaged.append(tree_path)
        unstaged.extend(path for path in sorted(index) if path not in seen)
        return WorkTreeStatus(staged, unstaged, untracked)

    def _has_local_changes(self) -> bool:
        # Indexed files missing from the working tree do not block a checkout.
        status = self.status()
        modified = [
            path for path in status.unstaged if self.worktree.exists(path.decode("utf-8"))
        ]
        return any(status.staged.values()) or bool(modified) or bool(status.untracked)

    def checkout(self, branch: bytes, force: bool = False) -> None:
        ref = LOCAL_BRANCH_PREFIX + branch
        commit = self.repo[self.repo.refs[ref]]
        if not force and self._has_local_changes():
            raise CheckoutError(branch)
        for path in self.repo.index:
            name = path.decode("utf-8")
            if self.worktree.exists(name):
                self.worktree.remove(name)
        index = {}
        for entry in iter_tree_contents(self.repo.object_store, commit.tree):
            if S_ISGITLINK(entry.mode):
                logger.debug("skipping submodule %r", entry.path)
                continue
            name = entry.path.decode("utf-8")
            with self.worktree.create(name) as f:
                f.write(self.repo[entry.sha].data)
            index[entry.path] = _index_entry(
                entry.mode, entry.sha, self.worktree.stat(name)
            )
        self.repo.index = index
        self.repo.refs.set_symbolic_ref(b"HEAD", ref)
        self.repo.flush()
        logger.debug("checked out %r with %d files", branch, len(index))

    def add(self, path: str) -> None:
        tree_path = _tree_path(path)
        with self.worktree.open(path) as f:
            blob = Blob.from_string(f.read())
        self.repo.object_store.add_object(blob)
        info = self.worktree.stat(path)
        self.repo.index[tree_path] = _index_entry(
            cleanup_mode(info.mode), blob.id, info
        )
        self.repo.flush()

    def commit(self, message: str, author: Identity) -> bytes:
        tree = commit_tree(
            self.repo.object_store,
            [(path, entry.sha, entry.mode) for path, entry in sorted(self.repo.index.items())],
        )
        who = author.as_bytes()
        # HEAD is symbolic; update the branch it points at.
        sha = self.repo.do_commit(
            message=message.encode("utf-8"),
            committer=who,
            author=who,
            tree=tree,
            ref=self._head_ref(),
        )
        self.repo.flush()
        return sha

    def head(self) -> bytes:
        return self.repo.refs[b"HEAD"]

    def log(self) -> Iterator[Commit]:
        for entry in self.repo.get_walker(include=[self.head()]):
            yield entry.commit


class DulwichEngine(Engine):
    """Engine implemented with dulwich."""

    def init(self, storage: MemoryFilesystem, worktree: Filesystem) -> DulwichRepository:
        return DulwichRepository(FilesystemRepo.init(storage), worktree)

    def open(self, storage: MemoryFilesystem, worktree: Filesystem) -> DulwichRepository:
        return DulwichRepository(FilesystemRepo.open(storage), worktree)

    def clone(
        self,
        storage: MemoryFilesystem,
        worktree: Filesystem,
        location: str,
        progress: Callable[[bytes], object] | None = None,
    ) -> DulwichRepository:
        repo = FilesystemRepo.init(storage)
        fetch_remote(repo, location, progress=progress)
        repo.flush()
        return DulwichRepository(repo, worktree)
