# filesystem.py -- Filesystem abstractions for storage and working trees
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

"""Filesystem abstractions used for repository storage and working trees.

Two implementations are provided: :class:`MemoryFilesystem`, which keeps
everything in memory, and :class:`OSFilesystem`, which maps paths onto a
directory on disk. Both take posix style paths; a leading ``/`` refers to the
root of the filesystem, so ``/README.md`` and ``README.md`` name the same
file.
"""

__all__ = [
    "FileInfo",
    "Filesystem",
    "MemoryFilesystem",
    "OSFilesystem",
    "split_path",
]

import errno
import io
import os
import stat
import time
from dataclasses import dataclass
from typing import BinaryIO, Protocol

DEFAULT_FILE_MODE = stat.S_IFREG | 0o644
DEFAULT_DIR_MODE = stat.S_IFDIR | 0o755


@dataclass(frozen=True)
class FileInfo:
    """Metadata for a single filesystem entry.

    Attributes:
      name: Base name of the entry
      size: Size in bytes (0 for directories)
      mode: Full ``st_mode`` value, including the file type bits
      mtime: Modification time as POSIX timestamp
    """

    name: str
    size: int
    mode: int
    mtime: float

    def is_dir(self) -> bool:
        """Check whether this entry is a directory."""
        return stat.S_ISDIR(self.mode)

    @classmethod
    def from_stat(cls, name: str, st: os.stat_result) -> "FileInfo":
        """Create a FileInfo from an ``os.stat_result``."""
        return cls(name=name, size=st.st_size, mode=st.st_mode, mtime=st.st_mtime)


class Filesystem(Protocol):
    """Operations required from a filesystem by argit."""

    def create(self, path: str) -> BinaryIO:
        """Create (or truncate) a file for writing, with parent directories."""
        ...

    def open(self, path: str) -> BinaryIO:
        """Open an existing file for reading."""
        ...

    def read_dir(self, path: str) -> list[FileInfo]:
        """List the entries of a directory, sorted by name."""
        ...

    def stat(self, path: str) -> FileInfo:
        """Retrieve metadata for a path, without following symlinks."""
        ...

    def mkdir_all(self, path: str) -> None:
        """Create a directory and any missing parents."""
        ...

    def remove(self, path: str) -> None:
        """Remove a file or an empty directory."""
        ...

    def exists(self, path: str) -> bool:
        """Check whether a path exists."""
        ...


def split_path(path: str) -> list[str]:
    """Split a posix style path into its components.

    Empty and ``.`` components are dropped.

    Args:
      path: Path to split
    Returns: List of path components, empty for the root
    Raises:
      ValueError: If the path contains a ``..`` component
    """
    parts = []
    for part in path.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            raise ValueError(f"path escapes filesystem root: {path!r}")
        parts.append(part)
    return parts


def _not_found(path: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)


def _not_a_directory(path: str) -> NotADirectoryError:
    return NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), path)


def _is_a_directory(path: str) -> IsADirectoryError:
    return IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), path)


class _FileNode:
    def __init__(self) -> None:
        self.data = b""
        self.mtime = time.time()


class _DirNode:
    def __init__(self) -> None:
        self.children: dict[str, "_FileNode | _DirNode"] = {}
        self.mtime = time.time()


class _MemoryWriter(io.BytesIO):
    """Writable file on a MemoryFilesystem.

    Contents become visible to readers on flush and on close.
    """

    def __init__(self, node: _FileNode) -> None:
        super().__init__()
        self._node = node

    def _publish(self) -> None:
        self._node.data = self.getvalue()
        self._node.mtime = time.time()

    def flush(self) -> None:
        super().flush()
        if not self.closed:
            self._publish()

    def close(self) -> None:
        if not self.closed:
            self._publish()
        super().close()


class MemoryFilesystem:
    """Filesystem that keeps all directories and files in memory.

    Creating a file implicitly creates its parent directories. There are no
    symlinks and no permissions; every file reports mode ``0644``.
    """

    def __init__(self) -> None:
        self._root = _DirNode()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"

    def _lookup(self, path: str) -> "_FileNode | _DirNode":
        node: _FileNode | _DirNode = self._root
        for part in split_path(path):
            if not isinstance(node, _DirNode):
                raise _not_a_directory(path)
            try:
                node = node.children[part]
            except KeyError:
                raise _not_found(path) from None
        return node

    def _makedirs(self, parts: list[str], path: str) -> _DirNode:
        node = self._root
        for part in parts:
            child = node.children.get(part)
            if child is None:
                child = _DirNode()
                node.children[part] = child
            elif not isinstance(child, _DirNode):
                raise _not_a_directory(path)
            node = child
        return node

    def _info(self, name: str, node: "_FileNode | _DirNode") -> FileInfo:
        if isinstance(node, _DirNode):
            return FileInfo(name=name, size=0, mode=DEFAULT_DIR_MODE, mtime=node.mtime)
        return FileInfo(
            name=name, size=len(node.data), mode=DEFAULT_FILE_MODE, mtime=node.mtime
        )

    def create(self, path: str) -> BinaryIO:
        """Create or truncate a file, creating parent directories as needed.

        Args:
          path: Path of the file
        Returns: Writable file object; contents are stored on close
        Raises:
          IsADirectoryError: If path names a directory
          NotADirectoryError: If a parent component is a file
        """
        parts = split_path(path)
        if not parts:
            raise _is_a_directory(path)
        parent = self._makedirs(parts[:-1], path)
        node = parent.children.get(parts[-1])
        if isinstance(node, _DirNode):
            raise _is_a_directory(path)
        if node is None:
            node = _FileNode()
            parent.children[parts[-1]] = node
        node.data = b""
        node.mtime = time.time()
        return _MemoryWriter(node)

    def open(self, path: str) -> BinaryIO:
        """Open a file for reading.

        Raises:
          FileNotFoundError: If the file does not exist
          IsADirectoryError: If path names a directory
        """
        node = self._lookup(path)
        if isinstance(node, _DirNode):
            raise _is_a_directory(path)
        return io.BytesIO(node.data)

    def read_dir(self, path: str) -> list[FileInfo]:
        """List a directory, sorted by name."""
        node = self._lookup(path)
        if not isinstance(node, _DirNode):
            raise _not_a_directory(path)
        return [self._info(name, child) for name, child in sorted(node.children.items())]

    def stat(self, path: str) -> FileInfo:
        parts = split_path(path)
        return self._info(parts[-1] if parts else "/", self._lookup(path))

    def mkdir_all(self, path: str) -> None:
        self._makedirs(split_path(path), path)

    def remove(self, path: str) -> None:
        """Remove a file or an empty directory."""
        parts = split_path(path)
        if not parts:
            raise PermissionError(errno.EPERM, "cannot remove root", path)
        parent = self._lookup("/".join(parts[:-1]))
        if not isinstance(parent, _DirNode) or parts[-1] not in parent.children:
            raise _not_found(path)
        node = parent.children[parts[-1]]
        if isinstance(node, _DirNode) and node.children:
            raise OSError(errno.ENOTEMPTY, os.strerror(errno.ENOTEMPTY), path)
        del parent.children[parts[-1]]

    def exists(self, path: str) -> bool:
        try:
            self._lookup(path)
        except (FileNotFoundError, NotADirectoryError):
            return False
        return True


class OSFilesystem:
    """Filesystem rooted at a directory on disk.

    All paths are interpreted relative to ``root``; paths that would escape
    it are rejected.
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = os.path.abspath(os.fspath(root))

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} for {self.root!r}>"

    def _path(self, path: str) -> str:
        return os.path.join(self.root, *split_path(path))

    def create(self, path: str) -> BinaryIO:
        full = self._path(path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        return open(full, "wb")

    def open(self, path: str) -> BinaryIO:
        return open(self._path(path), "rb")

    def read_dir(self, path: str) -> list[FileInfo]:
        with os.scandir(self._path(path)) as it:
            entries = [
                FileInfo.from_stat(entry.name, entry.stat(follow_symlinks=False))
                for entry in it
            ]
        entries.sort(key=lambda info: info.name)
        return entries

    def stat(self, path: str) -> FileInfo:
        parts = split_path(path)
        return FileInfo.from_stat(parts[-1] if parts else "/", os.lstat(self._path(path)))

    def mkdir_all(self, path: str) -> None:
        os.makedirs(self._path(path), exist_ok=True)

    def remove(self, path: str) -> None:
        full = self._path(path)
        if os.path.isdir(full) and not os.path.islink(full):
            os.rmdir(full)
        else:
            os.remove(full)

    def exists(self, path: str) -> bool:
        return os.path.lexists(self._path(path))
