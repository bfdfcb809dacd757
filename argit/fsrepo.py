# fsrepo.py -- Git repositories stored on an argit Filesystem
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

"""Git repositories whose control directory lives on a :class:`Filesystem`.

:class:`FilesystemRepo` is a :class:`dulwich.repo.MemoryRepo` that is loaded
from, and written back to, the standard git directory layout on a filesystem
(usually a :class:`argit.filesystem.MemoryFilesystem`):

- ``HEAD`` and loose refs below ``refs/``, plus ``packed-refs``
- loose objects as ``objects/xx/yyyy...``; packs below ``objects/pack/``
  are read but never written
- ``config`` and ``index``

Changes made through dulwich only reach the filesystem when
:meth:`FilesystemRepo.flush` is called.
"""

__all__ = ["FilesystemRepo", "read_loose_object"]

import posixpath
import zlib
from io import BytesIO

from dulwich.config import ConfigFile
from dulwich.errors import NotGitRepository, ObjectFormatException
from dulwich.index import IndexEntry, read_index_dict, write_index_dict
from dulwich.objects import ShaFile, object_class
from dulwich.refs import LOCAL_BRANCH_PREFIX, SYMREF, read_packed_refs_with_peeled
from dulwich.repo import DEFAULT_BRANCH, MemoryRepo

from .filesystem import Filesystem
from .log_utils import getLogger
from .walk import walk

logger = getLogger(__name__)

HEAD_FILENAME = "HEAD"
CONFIG_FILENAME = "config"
INDEX_FILENAME = "index"
PACKED_REFS_FILENAME = "packed-refs"
OBJECTDIR = "objects"
PACKDIR = "pack"
REFSDIR = "refs"


def read_loose_object(raw: bytes) -> ShaFile:
    """Parse the contents of a loose object file.

    Args:
      raw: zlib compressed object, including its ``<type> <size>`` header
    Returns: The object
    Raises:
      ObjectFormatException: If the data is not a valid loose object
    """
    try:
        data = zlib.decompress(raw)
    except zlib.error as exc:
        raise ObjectFormatException(f"invalid loose object: {exc}") from exc
    header, sep, body = data.partition(b"\0")
    type_name, _, size = header.partition(b" ")
    cls = object_class(type_name)
    if not sep or cls is None:
        raise ObjectFormatException(f"invalid loose object header {header!r}")
    if size != str(len(body)).encode("ascii"):
        raise ObjectFormatException(f"loose object size mismatch: {header!r}")
    return ShaFile.from_raw_string(cls.type_num, body)


def _is_loose_object_path(parts: list[str]) -> bool:
    if len(parts) != 3 or parts[0] != OBJECTDIR or len(parts[1]) != 2:
        return False
    try:
        bytes.fromhex(parts[1] + parts[2])
    except ValueError:
        return False
    return True


class FilesystemRepo(MemoryRepo):
    """MemoryRepo whose objects, refs, config and index live on a Filesystem.

    Other control files (description, info/exclude, reflogs) are kept in
    memory only.

    Attributes:
      fs: Filesystem holding the git directory
      index: Index entries by path
    """

    def __init__(self, fs: Filesystem) -> None:
        """Create an empty repository bound to a filesystem.

        Use :meth:`init` or :meth:`open` rather than calling this directly.
        """
        MemoryRepo.__init__(self)
        self.fs = fs
        self.index: dict[bytes, IndexEntry] = {}
        self._config = ConfigFile()
        self._stored_objects: set[bytes] = set()
        self._packed_refs: dict[bytes, bytes] = {}

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} on {self.fs!r}>"

    def get_config(self) -> ConfigFile:
        """Retrieve the repository configuration."""
        return self._config

    @classmethod
    def init(cls, fs: Filesystem) -> "FilesystemRepo":
        """Create a new, empty repository on a filesystem.

        HEAD points at the (not yet existing) default branch.
        """
        repo = cls(fs)
        repo._config.set((b"core",), b"repositoryformatversion", b"0")
        repo._config.set((b"core",), b"filemode", b"true")
        repo._config.set((b"core",), b"bare", b"false")
        repo._config.set((b"core",), b"logallrefupdates", b"true")
        repo.refs.set_symbolic_ref(b"HEAD", LOCAL_BRANCH_PREFIX + DEFAULT_BRANCH)
        repo.flush()
        return repo

    @classmethod
    def open(cls, fs: Filesystem) -> "FilesystemRepo":
        """Open the repository stored on a filesystem.

        Raises:
          NotGitRepository: If HEAD or config is missing
        """
        for name in (HEAD_FILENAME, CONFIG_FILENAME):
            if not fs.exists(name):
                raise NotGitRepository(f"no {name} in {fs!r}")
        repo = cls(fs)
        repo._load_config()
        repo._load_objects()
        repo._load_refs()
        repo._load_index()
        return repo

    def _read(self, path: str) -> bytes:
        with self.fs.open(path) as f:
            return f.read()

    def _write(self, path: str, contents: bytes) -> None:
        with self.fs.create(path) as f:
            f.write(contents)

    def _load_config(self) -> None:
        with self.fs.open(CONFIG_FILENAME) as f:
            self._config = ConfigFile.from_file(f)

    def _load_objects(self) -> None:
        if not self.fs.exists(OBJECTDIR):
            return
        for path, info in walk(self.fs, OBJECTDIR):
            parts = path.split("/")
            if _is_loose_object_path(parts):
                self.object_store.add_object(read_loose_object(self._read(path)))
            elif (
                len(parts) == 3 and parts[1] == PACKDIR and parts[2].endswith(".pack")
            ):
                logger.debug("unpacking %s", path)
                with self.fs.open(path) as f:
                    self.object_store.add_thin_pack(f.read, None)
        self._stored_objects = set(self.object_store)
        logger.debug("loaded %d objects", len(self._stored_objects))

    def _set_ref_from_contents(self, name: bytes, contents: bytes) -> None:
        contents = contents.strip()
        if contents.startswith(SYMREF):
            self.refs.set_symbolic_ref(name, contents[len(SYMREF) :])
        elif contents:
            self.refs.set_if_equals(name, None, contents)

    def _load_refs(self) -> None:
        if self.fs.exists(PACKED_REFS_FILENAME):
            with self.fs.open(PACKED_REFS_FILENAME) as f:
                for sha, name, _peeled in read_packed_refs_with_peeled(f):
                    self._packed_refs[name] = sha
            for name, sha in self._packed_refs.items():
                self.refs.set_if_equals(name, None, sha)
        if self.fs.exists(REFSDIR):
            for path, _info in walk(self.fs, REFSDIR):
                if path.endswith(".lock"):
                    continue
                self._set_ref_from_contents(path.encode("utf-8"), self._read(path))
        self._set_ref_from_contents(b"HEAD", self._read(HEAD_FILENAME))

    def _load_index(self) -> None:
        if not self.fs.exists(INDEX_FILENAME):
            return
        with self.fs.open(INDEX_FILENAME) as f:
            entries = read_index_dict(f)
        # Unmerged entries cannot be produced here, so they are dropped.
        self.index = {
            path: entry for path, entry in entries.items() if isinstance(entry, IndexEntry)
        }

    def flush(self) -> None:
        """Write new objects, refs, config and index to the filesystem."""
        new_objects = 0
        for sha in self.object_store:
            if sha in self._stored_objects:
                continue
            hexsha = sha.decode("ascii")
            self._write(
                posixpath.join(OBJECTDIR, hexsha[:2], hexsha[2:]),
                self.object_store[sha].as_legacy_object(),
            )
            self._stored_objects.add(sha)
            new_objects += 1
        for name in self.refs.allkeys():
            value = self.refs.read_ref(name)
            if value is None or self._packed_refs.get(name) == value:
                continue
            self._write(name.decode("utf-8"), value + b"\n")
        f = BytesIO()
        self._config.write_to_file(f)
        self._write(CONFIG_FILENAME, f.getvalue())
        f = BytesIO()
        write_index_dict(f, self.index)
        self._write(INDEX_FILENAME, f.getvalue())
        logger.debug("flushed %d new objects to %r", new_objects, self.fs)
