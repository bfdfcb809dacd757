# repo.py -- Repositories stored in tar archives
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

"""Repositories stored in a single archive file.

A :class:`Repository` keeps the repository's internal storage in a
:class:`argit.filesystem.MemoryFilesystem` and its working tree in a second
one. Nothing touches the archive on disk until :meth:`Repository.save` is
called.

Typical use::

    Repository.init("repo.tar", files)
    repo = Repository.open("repo.tar")
    repo.put(OSFilesystem("."), "notes.txt")
    repo.add("notes.txt")
    repo.commit("add notes")
    repo.save("repo.tar")
"""

__all__ = [
    "REMOTE_PREFIXES",
    "ArchiveExists",
    "FileRecord",
    "NoChanges",
    "PathNotFound",
    "Repository",
    "is_remote_location",
    "read_archive",
]

import errno
import os
import posixpath
import shutil
from collections.abc import Callable, Iterator
from typing import BinaryIO, NamedTuple

from dulwich.objects import Commit

from .archive import ArchiveReader, ArchiveWriter
from .engine import DulwichEngine, Engine, EngineRepository, WorkTreeStatus
from .filesystem import Filesystem, MemoryFilesystem, split_path
from .identity import Identity, get_identity
from .log_utils import getLogger
from .storage import archive_existing_repository, load_filesystem, save_filesystem
from .walk import walk

logger = getLogger(__name__)

REMOTE_PREFIXES = ("git:", "git+ssh:", "ssh:", "http:", "https:")

INITIAL_COMMIT_MESSAGE = "first commit"


class ArchiveExists(FileExistsError):
    """The archive to be created already exists."""


class PathNotFound(FileNotFoundError):
    """A path is not present in the working tree."""


class NoChanges(Exception):
    """Nothing to commit: the working tree matches HEAD."""

    def __init__(self) -> None:
        Exception.__init__(self, "no modification")


class FileRecord(NamedTuple):
    """A file in the working tree.

    Attributes:
      name: Base name
      dir: Containing directory, ``/`` for top-level files
      size: Size in bytes
      mtime: Modification time as POSIX timestamp
    """

    name: str
    dir: str
    size: int
    mtime: float

    @property
    def path(self) -> str:
        return posixpath.join(self.dir, self.name)


def is_remote_location(location: str) -> bool:
    """Check whether a clone source names a remote repository."""
    return location.startswith(REMOTE_PREFIXES)


def _create_archive(path: str) -> BinaryIO:
    try:
        return open(path, "xb")
    except FileExistsError as exc:
        raise ArchiveExists(errno.EEXIST, "archive already exists", path) from exc


def _remove_partial(path: str) -> None:
    logger.debug("removing partially written archive %s", path)
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def _write_archive(f: BinaryIO, storage: Filesystem) -> int:
    with ArchiveWriter(f) as writer:
        return save_filesystem(writer, storage)


def read_archive(path: str) -> MemoryFilesystem:
    """Load the contents of an archive into a new memory filesystem.

    Raises:
      FileNotFoundError: If the archive does not exist
      CorruptArchive: If the archive can not be read
    """
    with open(path, "rb") as f, ArchiveReader(f) as reader:
        return load_filesystem(reader)


def _resolve_engine(engine: Engine | None) -> Engine:
    return engine if engine is not None else DulwichEngine()


class Repository:
    """A git repository loaded from an archive.

    Create instances with :meth:`open` or :meth:`clone`.
    """

    def __init__(self, repo: EngineRepository, identity: Identity | None = None) -> None:
        self._repo = repo
        self._identity = identity

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} for {self._repo!r}>"

    @property
    def storage(self) -> MemoryFilesystem:
        """Filesystem holding the repository's internal storage."""
        return self._repo.storage

    @property
    def worktree(self) -> Filesystem:
        """Filesystem holding the checked out working tree."""
        return self._repo.worktree

    @classmethod
    def init(
        cls,
        path: str,
        files: Filesystem,
        identity: Identity | None = None,
        engine: Engine | None = None,
    ) -> None:
        """Create a new archive containing one commit with all of files.

        Args:
          path: Path of the archive to create; must not exist
          files: Filesystem whose files make up the first commit; ``.git``
            entries are skipped
          identity: Author of the first commit, defaults to the identity
            from the user's git configuration
          engine: Git engine to use
        Raises:
          ArchiveExists: If path already exists
          IdentityUnavailable: If no identity was given or configured
        """
        storage = MemoryFilesystem()
        repo = _resolve_engine(engine).init(storage, files)
        for name, _info in walk(files, "/"):
            if ".git" in split_path(name):
                continue
            repo.add(name)
        repo.commit(INITIAL_COMMIT_MESSAGE, identity or get_identity())
        f = _create_archive(path)
        try:
            with f:
                count = _write_archive(f, storage)
        except BaseException:
            _remove_partial(path)
            raise
        logger.debug("created %s with %d files", path, count)

    @classmethod
    def open(
        cls, path: str, identity: Identity | None = None, engine: Engine | None = None
    ) -> "Repository":
        """Open an archive and check out its first branch.

        Args:
          path: Path of the archive
          identity: Author for new commits, defaults to the identity from the
            user's git configuration
          engine: Git engine to use
        Returns: The repository
        """
        storage = read_archive(path)
        repo = _resolve_engine(engine).open(storage, MemoryFilesystem())
        ret = cls(repo, identity)
        ret._checkout_first_branch()
        return ret

    @classmethod
    def clone(
        cls,
        path: str,
        source: str,
        identity: Identity | None = None,
        engine: Engine | None = None,
        progress: Callable[[bytes], object] | None = None,
    ) -> "Repository":
        """Create an archive from an existing repository.

        Sources starting with one of :data:`REMOTE_PREFIXES` are fetched over
        the network. Anything else is taken to be a local repository, whose
        internal storage directory is archived as it is.

        Args:
          path: Path of the archive to create; must not exist
          source: Remote URL, or path to a local repository
          identity: Author for new commits
          engine: Git engine to use
          progress: Optional callback receiving remote progress output
        Returns: The repository, with its first branch checked out
        Raises:
          ArchiveExists: If path already exists
        """
        if is_remote_location(source):
            return cls._clone_remote(path, source, identity, engine, progress)
        gitdir = os.path.join(source, ".git")
        if not os.path.isdir(gitdir):
            gitdir = source
        f = _create_archive(path)
        try:
            with f, ArchiveWriter(f) as writer:
                count = archive_existing_repository(writer, gitdir)
            logger.debug("archived %d files from %s into %s", count, gitdir, path)
            return cls.open(path, identity=identity, engine=engine)
        except BaseException:
            _remove_partial(path)
            raise

    @classmethod
    def _clone_remote(
        cls,
        path: str,
        source: str,
        identity: Identity | None,
        engine: Engine | None,
        progress: Callable[[bytes], object] | None,
    ) -> "Repository":
        if os.path.lexists(path):
            raise ArchiveExists(errno.EEXIST, "archive already exists", path)
        repo = _resolve_engine(engine).clone(
            MemoryFilesystem(), MemoryFilesystem(), source, progress=progress
        )
        ret = cls(repo, identity)
        ret._checkout_first_branch()
        try:
            ret.save(path)
        except FileNotFoundError:
            logger.debug("creating %s before saving", path)
            _create_archive(path).close()
            try:
                ret.save(path)
            except BaseException:
                _remove_partial(path)
                raise
        return ret

    def _checkout_first_branch(self) -> None:
        try:
            branches = self._repo.branches()
        except KeyError as exc:
            logger.debug("unable to resolve branches: %s", exc)
            return
        if not branches:
            logger.debug("no branch to check out")
            return
        self._repo.checkout(branches[0], force=True)

    def save(self, path: str) -> None:
        """Write the repository's storage to an existing archive file.

        The file is truncated first; it is not created.

        Raises:
          FileNotFoundError: If path does not exist
        """
        fd = os.open(path, os.O_WRONLY | os.O_TRUNC | getattr(os, "O_BINARY", 0))
        with os.fdopen(fd, "wb") as f:
            count = _write_archive(f, self.storage)
        logger.debug("saved %d files to %s", count, path)

    def files(self) -> list[FileRecord]:
        """List the files of the working tree."""
        return [
            FileRecord(
                name=info.name,
                dir=posixpath.dirname(name),
                size=info.size,
                mtime=info.mtime,
            )
            for name, info in walk(self.worktree, "/")
        ]

    def _open_worktree_file(self, path: str) -> BinaryIO:
        try:
            return self.worktree.open(path)
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as exc:
            raise PathNotFound(errno.ENOENT, "not in working tree", path) from exc

    def get(self, dest: Filesystem, path: str) -> None:
        """Copy a working tree file to the same path on another filesystem.

        Raises:
          PathNotFound: If path is not a file in the working tree
        """
        with self._open_worktree_file(path) as src:
            dest.mkdir_all(posixpath.dirname("/" + path))
            with dest.create(path) as f:
                shutil.copyfileobj(src, f)

    def put(self, src: Filesystem, path: str) -> None:
        """Copy a file from another filesystem into the working tree.

        The file is not staged.
        """
        with src.open(path) as f:
            self.worktree.mkdir_all(posixpath.dirname("/" + path))
            with self.worktree.create(path) as dest:
                shutil.copyfileobj(f, dest)

    def add(self, path: str) -> None:
        """Stage a working tree file.

        Raises:
          PathNotFound: If path is not a file in the working tree
        """
        self._open_worktree_file(path).close()
        self._repo.add(path)

    def status(self) -> WorkTreeStatus:
        return self._repo.status()

    def commit(self, message: str) -> bytes:
        """Commit the staged changes.

        Returns: SHA1 of the new commit
        Raises:
          NoChanges: If the working tree is clean
          IdentityUnavailable: If no identity was given or configured
        """
        if self._repo.status().is_clean():
            raise NoChanges()
        return self._repo.commit(message, self._identity or get_identity())

    def head(self) -> bytes:
        return self._repo.head()

    def logs(self) -> Iterator[Commit]:
        """Iterate over the commits reachable from HEAD, newest first."""
        return self._repo.log()
