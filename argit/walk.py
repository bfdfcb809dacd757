# walk.py -- Recursive traversal of filesystem trees
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

"""Recursive traversal of a :class:`argit.filesystem.Filesystem`.

The filesystem protocol only offers single-directory listings, so recursive
traversal is provided here on top of it.
"""

__all__ = ["walk"]

import posixpath
from collections.abc import Iterator

from .filesystem import FileInfo, Filesystem


def walk(fs: Filesystem, root: str) -> Iterator[tuple[str, FileInfo]]:
    """Recursively walk a filesystem tree, yielding every non-directory entry.

    Directories are descended into depth-first, one subdirectory completely
    before the next sibling, but are not yielded themselves. Paths are
    joined onto ``root``, so walking ``/`` yields ``/a/b`` while walking
    ``objects`` yields ``objects/ab/cdef...``.

    Any error raised while listing a directory propagates immediately and
    ends the walk.

    Args:
      fs: Filesystem to walk
      root: Path to start from; may name a directory or a single file
    Returns:
      Iterator over (path, FileInfo) tuples
    """
    info = fs.stat(root)
    yield from _walk(fs, root, info)


def _walk(fs: Filesystem, path: str, info: FileInfo) -> Iterator[tuple[str, FileInfo]]:
    if not info.is_dir():
        yield (path, info)
        return
    for child in fs.read_dir(path):
        yield from _walk(fs, posixpath.join(path, child.name), child)
