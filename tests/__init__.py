# __init__.py -- The tests for argit
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

"""Tests for argit."""

__all__ = [
    "TestCase",
    "self_test_suite",
    "test_suite",
]

import os
import shutil
import tempfile
import unittest
from unittest import TestCase as _TestCase


class TestCase(_TestCase):
    """TestCase that isolates the environment from the user's git setup."""

    def setUp(self) -> None:
        super().setUp()
        self.overrideEnv("HOME", "/nonexistent")
        self.overrideEnv("GIT_CONFIG_NOSYSTEM", "1")
        self.overrideEnv("GIT_CONFIG_GLOBAL", None)
        self.overrideEnv("XDG_CONFIG_HOME", None)
        self.overrideEnv("ARGIT_TRACE", None)

    def overrideEnv(self, name: str, value: str | None) -> None:
        """Set an environment variable for the duration of the test.

        Args:
          name: Variable name
          value: New value, or None to unset it
        """

        def restore() -> None:
            if oldval is not None:
                os.environ[name] = oldval
            else:
                os.environ.pop(name, None)

        oldval = os.environ.get(name)
        if value is not None:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)
        self.addCleanup(restore)

    def mkdtemp(self) -> str:
        """Create a temporary directory that is removed after the test."""
        path = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, path)
        return path

    def chdir(self, path: str) -> None:
        """Change the working directory for the duration of the test."""
        self.addCleanup(os.chdir, os.getcwd())
        os.chdir(path)


def self_test_suite() -> unittest.TestSuite:
    names = [
        "archive",
        "cli",
        "engine",
        "filesystem",
        "fsrepo",
        "identity",
        "log_utils",
        "repo",
        "storage",
        "walk",
    ]
    module_names = ["tests.test_" + name for name in names]
    loader = unittest.TestLoader()
    return loader.loadTestsFromNames(module_names)


def test_suite() -> unittest.TestSuite:
    result = unittest.TestSuite()
    result.addTests(self_test_suite())
    return result
