# log_utils.py -- Logging support for argit
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

"""Logging utilities for argit.

argit is mostly used as a library, so by default nothing is logged: a no-op
handler is attached to the ``argit`` logger to keep the logging module from
complaining about missing handlers. The command line tool calls
:func:`default_logging_config` to get output on stderr.

Setting ``ARGIT_TRACE`` turns on debug output. It accepts ``1``/``2``/``true``
for stderr, a file descriptor number between 3 and 9, or an absolute path.
"""

__all__ = [
    "default_logging_config",
    "getLogger",
    "remove_null_handler",
]

import logging
import os
import sys

getLogger = logging.getLogger

TRACE_ENV = "ARGIT_TRACE"
TRACE_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"


class _NullHandler(logging.Handler):
    """No-op logging handler to avoid unexpected logging warnings."""

    def emit(self, record: logging.LogRecord) -> None:
        pass


_NULL_HANDLER = _NullHandler()
_ARGIT_LOGGER = getLogger("argit")
_ARGIT_LOGGER.addHandler(_NULL_HANDLER)


def _get_trace_target() -> str | int | None:
    """Work out where trace output should go.

    Returns:
      None if tracing is disabled, 2 for stderr, a file descriptor between
      3 and 9, or an absolute file path
    """
    value = os.environ.get(TRACE_ENV, "")
    if not value or value.lower() in ("0", "false"):
        return None
    if value.lower() in ("1", "2", "true"):
        return 2
    try:
        fd = int(value)
    except ValueError:
        pass
    else:
        if 3 <= fd <= 9:
            return fd
        return None
    if os.path.isabs(value):
        return value
    return None


def _configure_logging_from_trace() -> bool:
    """Configure debug logging from ``ARGIT_TRACE``.

    Returns: True if tracing was set up, False otherwise
    """
    target = _get_trace_target()
    if target is None:
        return False
    if target == 2:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr, format=TRACE_FORMAT)
        return True
    if isinstance(target, int):
        try:
            stream = os.fdopen(target, "w", buffering=1)
        except OSError as e:
            sys.stderr.write(f"Warning: Failed to open {TRACE_ENV} fd {target}: {e}\n")
            return False
        logging.basicConfig(level=logging.DEBUG, stream=stream, format=TRACE_FORMAT)
        return True
    if os.path.isdir(target):
        target = os.path.join(target, f"trace.{os.getpid()}")
    try:
        logging.basicConfig(
            level=logging.DEBUG, filename=target, filemode="a", format=TRACE_FORMAT
        )
    except OSError as e:
        sys.stderr.write(f"Warning: Failed to open {TRACE_ENV} file {target}: {e}\n")
        return False
    return True


def default_logging_config() -> None:
    """Set up logging for command line use.

    Messages go to stderr at INFO level, unless ``ARGIT_TRACE`` asks for
    debug output elsewhere.
    """
    remove_null_handler()
    if not _configure_logging_from_trace():
        logging.basicConfig(level=logging.INFO, stream=sys.stderr, format="%(message)s")


def remove_null_handler() -> None:
    """Remove the null handler from the argit logger.

    Callers setting up logging by other means than default_logging_config
    can call this first to skip the no-op handler.
    """
    _ARGIT_LOGGER.removeHandler(_NULL_HANDLER)
