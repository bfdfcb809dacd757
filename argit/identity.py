# identity.py -- Author identity for new commits
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

"""Author identity for new commits.

The identity is taken from the ``[user]`` section of the user's git
configuration: ``$GIT_CONFIG_GLOBAL`` when set, otherwise ``~/.gitconfig``
followed by ``$XDG_CONFIG_HOME/git/config``. Values from earlier files win.
Nothing else (environment variables, system configuration, host name) is
consulted.
"""

__all__ = [
    "Identity",
    "IdentityResolver",
    "IdentityUnavailable",
    "default_config_paths",
    "get_identity",
    "read_identity",
]

import os
import threading
from collections.abc import Sequence
from dataclasses import dataclass

from dulwich.config import ConfigFile, StackedConfig, get_xdg_config_home_path

from .log_utils import getLogger

logger = getLogger(__name__)


class IdentityUnavailable(Exception):
    """No usable author name and email could be found."""


@dataclass(frozen=True)
class Identity:
    """Name and email used as author and committer of new commits."""

    name: str
    email: str

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"

    def as_bytes(self) -> bytes:
        """Format the identity the way git stores it in commits."""
        return str(self).encode("utf-8")


def default_config_paths() -> list[str]:
    """Return the configuration files consulted for the identity."""
    try:
        return [os.environ["GIT_CONFIG_GLOBAL"]]
    except KeyError:
        return [
            os.path.expanduser("~/.gitconfig"),
            get_xdg_config_home_path("git", "config"),
        ]


def read_identity(paths: Sequence[str]) -> Identity:
    """Read the identity from a list of git configuration files.

    Missing files are skipped.

    Args:
      paths: Configuration files, most important first
    Returns: The identity
    Raises:
      IdentityUnavailable: If user.name or user.email is missing or empty
    """
    backends = []
    for path in paths:
        try:
            backends.append(ConfigFile.from_path(path))
        except FileNotFoundError:
            logger.debug("gitconfig not found: %s", path)
            continue
    config = StackedConfig(backends)
    values = {}
    for key in (b"name", b"email"):
        try:
            value = config.get((b"user",), key)
        except KeyError:
            value = b""
        values[key] = value.decode("utf-8", "replace").strip()
    if not values[b"name"] or not values[b"email"]:
        raise IdentityUnavailable(
            "user.name or user.email is not set in " + ", ".join(paths)
        )
    return Identity(name=values[b"name"], email=values[b"email"])


class IdentityResolver:
    """Resolve the identity on first use and keep it afterwards.

    Failed lookups are not remembered, so fixing the configuration and
    trying again works.
    """

    def __init__(self, paths: Sequence[str] | None = None) -> None:
        """Create a resolver.

        Args:
          paths: Configuration files to read, defaults to
            :func:`default_config_paths` evaluated at first use
        """
        self._paths = paths
        self._identity: Identity | None = None
        self._lock = threading.Lock()

    def resolve(self) -> Identity:
        """Return the identity, reading configuration files if needed.

        Raises:
          IdentityUnavailable: If no usable identity is configured
        """
        with self._lock:
            if self._identity is None:
                paths = self._paths if self._paths is not None else default_config_paths()
                self._identity = read_identity(paths)
                logger.debug("resolved identity %s", self._identity)
            return self._identity

    def reset(self) -> None:
        """Forget the cached identity."""
        with self._lock:
            self._identity = None


_default_resolver = IdentityResolver()


def get_identity() -> Identity:
    """Return the process-wide identity, resolving it on first use."""
    return _default_resolver.resolve()
