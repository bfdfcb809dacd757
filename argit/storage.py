# storage.py -- Transcoding git storage directories to and from archives
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

"""Transcoding git storage directories to and from archives.

Only the part of a git directory needed to reopen the repository is ever
archived: ``packed-refs`` (when present), ``HEAD``, ``config``, ``index``
and everything below ``objects/`` and ``refs/``. The working tree is not
stored, since it can be checked out again from the object database.
"""

__all__ = [
    "OPTIONAL_FILES",
    "REQUIRED_FILES",
    "STORAGE_SUBTREES",
    "archive_existing_repository",
    "load_filesystem",
    "save_filesystem",
]

import shutil
import stat
import tarfile

from .archive import ArchiveReader, ArchiveWriter, CorruptArchive
from .filesystem import Filesystem, MemoryFilesystem, OSFilesystem, split_path
from .log_utils import getLogger
from .walk import walk

logger = getLogger(__name__)

OPTIONAL_FILES = ("packed-refs",)
REQUIRED_FILES = ("HEAD", "config", "index")
STORAGE_SUBTREES = ("objects", "refs")


def _archive_file(
    writer: ArchiveWriter, fs: Filesystem, path: str, size: int, name: str | None = None
) -> None:
    with fs.open(path) as f:
        writer.write_regular_file(path if name is None else name, size, f)


def archive_existing_repository(writer: ArchiveWriter, gitdir: str) -> int:
    """Archive the storage directory of a repository on disk.

    No git semantics are involved: the files are copied as they are, with
    paths relative to ``gitdir``. The process working directory is left
    alone.

    Args:
      writer: Archive to write to
      gitdir: Path to the repository's storage directory (e.g. ``.git``)
    Returns: Number of files archived
    Raises:
      FileNotFoundError: If HEAD, config, index, objects/ or refs/ is
        missing
    """
    fs = OSFilesystem(gitdir)
    count = 0
    for name in OPTIONAL_FILES:
        if fs.exists(name):
            _archive_file(writer, fs, name, fs.stat(name).size)
            count += 1
    for name in REQUIRED_FILES:
        _archive_file(writer, fs, name, fs.stat(name).size)
        count += 1
    for subtree in STORAGE_SUBTREES:
        for path, info in walk(fs, subtree):
            if not stat.S_ISREG(info.mode):
                continue
            _archive_file(writer, fs, path, info.size)
            count += 1
    logger.debug("archived %d files from %s", count, gitdir)
    return count


def save_filesystem(writer: ArchiveWriter, fs: Filesystem) -> int:
    """Write every file of a filesystem to an archive.

    Args:
      writer: Archive to write to
      fs: Filesystem to archive, typically the in-memory storage
    Returns: Number of files archived
    """
    count = 0
    for path, info in walk(fs, "/"):
        _archive_file(writer, fs, path, info.size, name=path.lstrip("/"))
        count += 1
    return count


def load_filesystem(reader: ArchiveReader) -> MemoryFilesystem:
    """Recreate the files of an archive in a new in-memory filesystem.

    Args:
      reader: Archive to read; consumed until its end
    Returns: Filesystem containing exactly the archived files
    Raises:
      CorruptArchive: If an entry cannot be created at its recorded path
    """
    fs = MemoryFilesystem()
    count = 0
    for entry in reader:
        if entry.path.startswith("/"):
            raise CorruptArchive(f"absolute path in archive: {entry.path!r}")
        try:
            if not split_path(entry.path):
                raise CorruptArchive(f"invalid path in archive: {entry.path!r}")
            with fs.create(entry.path) as f:
                shutil.copyfileobj(entry.fileobj, f)
        except (ValueError, OSError, tarfile.TarError) as exc:
            raise CorruptArchive(f"cannot create {entry.path!r}: {exc}") from exc
        count += 1
    logger.debug("loaded %d files from archive", count)
    return fs
