# test_filesystem.py -- Tests for filesystem.py
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

"""Tests for argit.filesystem."""

import os
import stat

from argit.filesystem import MemoryFilesystem, OSFilesystem, split_path

from . import TestCase


class SplitPathTests(TestCase):
    def test_root(self) -> None:
        self.assertEqual([], split_path("/"))
        self.assertEqual([], split_path(""))

    def test_components(self) -> None:
        self.assertEqual(["a", "b", "c"], split_path("/a//b/./c/"))
        self.assertEqual(["README.md"], split_path("README.md"))

    def test_parent(self) -> None:
        self.assertRaises(ValueError, split_path, "a/../../etc/passwd")


class FilesystemTests:
    """Tests shared by all Filesystem implementations."""

    def make_fs(self):
        raise NotImplementedError(self.make_fs)

    def setUp(self) -> None:
        super().setUp()
        self.fs = self.make_fs()

    def write(self, path: str, data: bytes) -> None:
        with self.fs.create(path) as f:
            f.write(data)

    def read(self, path: str) -> bytes:
        with self.fs.open(path) as f:
            return f.read()

    def test_create_and_open(self) -> None:
        self.write("/dir1/dir2/file", b"contents")
        self.assertEqual(b"contents", self.read("dir1/dir2/file"))
        self.assertTrue(self.fs.stat("/dir1").is_dir())

    def test_create_truncates(self) -> None:
        self.write("file", b"long contents")
        self.write("file", b"short")
        self.assertEqual(b"short", self.read("file"))

    def test_open_missing(self) -> None:
        self.assertRaises(FileNotFoundError, self.fs.open, "missing")

    def test_stat(self) -> None:
        self.write("file", b"12345")
        info = self.fs.stat("/file")
        self.assertEqual("file", info.name)
        self.assertEqual(5, info.size)
        self.assertTrue(stat.S_ISREG(info.mode))
        self.assertFalse(info.is_dir())
        self.assertRaises(FileNotFoundError, self.fs.stat, "missing")

    def test_read_dir_sorted(self) -> None:
        self.write("b", b"")
        self.write("a", b"")
        self.fs.mkdir_all("c/d")
        names = [info.name for info in self.fs.read_dir("/")]
        self.assertEqual(["a", "b", "c"], names)
        self.assertTrue(self.fs.read_dir("/")[2].is_dir())

    def test_read_dir_missing(self) -> None:
        self.assertRaises(FileNotFoundError, self.fs.read_dir, "missing")

    def test_mkdir_all_existing(self) -> None:
        self.fs.mkdir_all("a/b")
        self.fs.mkdir_all("a/b")
        self.assertTrue(self.fs.exists("a/b"))

    def test_remove(self) -> None:
        self.write("a/file", b"x")
        self.fs.remove("a/file")
        self.assertFalse(self.fs.exists("a/file"))
        self.fs.remove("a")
        self.assertFalse(self.fs.exists("a"))

    def test_exists(self) -> None:
        self.assertTrue(self.fs.exists("/"))
        self.assertFalse(self.fs.exists("nope"))


class MemoryFilesystemTests(FilesystemTests, TestCase):
    def make_fs(self):
        return MemoryFilesystem()

    def test_file_under_file(self) -> None:
        self.write("file", b"x")
        self.assertRaises(NotADirectoryError, self.fs.create, "file/child")

    def test_create_directory(self) -> None:
        self.fs.mkdir_all("dir")
        self.assertRaises(IsADirectoryError, self.fs.create, "dir")
        self.assertRaises(IsADirectoryError, self.fs.open, "dir")

    def test_remove_non_empty(self) -> None:
        self.write("a/file", b"x")
        self.assertRaises(OSError, self.fs.remove, "a")

    def test_contents_visible_after_close(self) -> None:
        f = self.fs.create("file")
        f.write(b"data")
        f.close()
        self.assertEqual(b"data", self.read("file"))

    def test_independent_instances(self) -> None:
        self.write("file", b"x")
        self.assertFalse(MemoryFilesystem().exists("file"))


class OSFilesystemTests(FilesystemTests, TestCase):
    def make_fs(self):
        self.root = self.mkdtemp()
        return OSFilesystem(self.root)

    def test_paths_relative_to_root(self) -> None:
        self.write("/sub/file", b"x")
        self.assertTrue(os.path.isfile(os.path.join(self.root, "sub", "file")))

    def test_escape_rejected(self) -> None:
        self.assertRaises(ValueError, self.fs.open, "../outside")
