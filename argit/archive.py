# archive.py -- Streaming tar archives of regular files
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

"""Streaming tar archives of regular files.

An archive is an ordered sequence of regular files, each with a relative
posix path and a size. Directories are never stored; they are implied by the
paths. Archives are written one entry at a time and read forward only, so
neither side needs to hold more than a single entry in memory.
"""

__all__ = [
    "ARCHIVE_FILE_MODE",
    "ArchiveEntry",
    "ArchiveReader",
    "ArchiveWriter",
    "CorruptArchive",
    "EndOfArchive",
    "SizeMismatch",
]

import tarfile
import time
from collections.abc import Iterator
from types import TracebackType
from typing import BinaryIO, NamedTuple

from .log_utils import getLogger

logger = getLogger(__name__)

# Permission bits recorded for every entry; the source mode is not kept.
ARCHIVE_FILE_MODE = 0o644


class SizeMismatch(Exception):
    """The data written for an entry did not match its declared size."""

    def __init__(self, path: str, expected: int, got: int) -> None:
        """Initialize a SizeMismatch exception.

        Args:
          path: Path of the archive entry
          expected: Declared size
          got: Number of bytes the content reader actually provided
        """
        self.path = path
        self.expected = expected
        self.got = got
        Exception.__init__(self, f"{path}: copied {got} bytes, {expected} expected")


class CorruptArchive(Exception):
    """The archive is structurally inconsistent."""


class EndOfArchive(Exception):
    """There are no more entries left to read."""


class ArchiveEntry(NamedTuple):
    """A regular file read from an archive.

    ``fileobj`` is only valid until the next entry is read.
    """

    path: str
    size: int
    fileobj: BinaryIO


class _CountingReader:
    """Wrap a reader, keeping track of how much was read from it."""

    def __init__(self, f: BinaryIO) -> None:
        self._f = f
        self.count = 0
        self.exhausted = False

    def read(self, size: int = -1) -> bytes:
        data = self._f.read(size)
        self.count += len(data)
        if size is None or size < 0 or len(data) < size:
            self.exhausted = True
        return data

    def drain(self) -> None:
        while self.read(64 * 1024):
            pass


class ArchiveWriter:
    """Write regular files to a tar stream.

    Every entry is recorded with mode 0644 and the time it was archived as
    its modification time. After each entry the underlying file object is
    flushed, so a reader opened later sees every complete entry.
    """

    def __init__(self, fileobj: BinaryIO) -> None:
        """Create a writer.

        Args:
          fileobj: Binary file object to write the archive to. It is not
            closed when the writer is closed.
        """
        self._fileobj = fileobj
        self._tar = tarfile.open(name=None, mode="w", fileobj=fileobj)

    def write_regular_file(self, path: str, size: int, reader: BinaryIO) -> None:
        """Append a regular file to the archive.

        Args:
          path: Relative posix path of the entry
          size: Number of bytes ``reader`` provides
          reader: File-like object providing the contents
        Raises:
          SizeMismatch: If ``reader`` provides more or fewer than ``size``
            bytes. The archive is unusable after this.
          OSError: If writing to the underlying file object fails
        """
        info = tarfile.TarInfo(path)
        info.type = tarfile.REGTYPE
        info.size = size
        info.mode = ARCHIVE_FILE_MODE
        info.mtime = int(time.time())
        counter = _CountingReader(reader)
        try:
            self._tar.addfile(info, counter)
        except OSError as exc:
            if counter.exhausted and counter.count < size:
                raise SizeMismatch(path, size, counter.count) from exc
            raise
        if counter.read(1):
            counter.drain()
            raise SizeMismatch(path, size, counter.count)
        self._fileobj.flush()
        logger.debug("archived %s (%d bytes)", path, size)

    def close(self) -> None:
        """Write the end-of-archive marker."""
        self._tar.close()

    def __enter__(self) -> "ArchiveWriter":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class ArchiveReader:
    """Read regular files from a tar stream, in the order they were written.

    Entries that are not regular files are skipped.
    """

    def __init__(self, fileobj: BinaryIO) -> None:
        """Open an archive for reading.

        Args:
          fileobj: Binary file object to read the archive from
        Raises:
          CorruptArchive: If the stream does not start with a tar header
        """
        try:
            self._tar = tarfile.open(name=None, mode="r|", fileobj=fileobj)
        except tarfile.TarError as exc:
            raise CorruptArchive(str(exc)) from exc

    def read_regular_file(self) -> ArchiveEntry:
        """Advance to the next regular file.

        Returns: The next entry; its file object must be consumed before
          calling this method again.
        Raises:
          EndOfArchive: When all entries have been read
          CorruptArchive: If a header cannot be parsed
        """
        while True:
            try:
                member = self._tar.next()
            except tarfile.TarError as exc:
                raise CorruptArchive(str(exc)) from exc
            if member is None:
                raise EndOfArchive()
            if not member.isreg():
                continue
            f = self._tar.extractfile(member)
            if f is None:
                raise CorruptArchive(f"unable to read {member.name}")
            return ArchiveEntry(member.name, member.size, f)

    def __iter__(self) -> Iterator[ArchiveEntry]:
        while True:
            try:
                yield self.read_regular_file()
            except EndOfArchive:
                return

    def close(self) -> None:
        self._tar.close()

    def __enter__(self) -> "ArchiveReader":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
