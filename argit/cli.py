# cli.py -- Command line interface for argit
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

"""Command line interface to argit.

Usage: ``argit <archive> <command> [args...]``
"""

__all__ = [
    "Command",
    "cmd_clone",
    "cmd_files",
    "cmd_get",
    "cmd_init",
    "cmd_logs",
    "cmd_put",
    "commands",
    "main",
    "signal_int",
]

import argparse
import os
import signal
import stat
import sys
import time
import types
from collections.abc import Sequence

from dulwich import porcelain
from dulwich.errors import GitProtocolError, NotGitRepository

from .archive import CorruptArchive, SizeMismatch
from .filesystem import MemoryFilesystem, OSFilesystem, split_path
from .identity import IdentityUnavailable
from .log_utils import default_logging_config, getLogger
from .repo import NoChanges, Repository

logger = getLogger(__name__)

INITIAL_README = b"README"
PUT_COMMIT_MESSAGE = "put files"


def signal_int(signal: int, frame: types.FrameType | None) -> None:
    """Handle interrupt signal by exiting."""
    sys.exit(1)


def _decode(value: bytes) -> str:
    return value.decode("utf-8", "replace")


class Command:
    """An argit subcommand."""

    def run(self, archive: str, args: Sequence[str]) -> int | None:
        """Run the command against an archive."""
        raise NotImplementedError(self.run)


class cmd_init(Command):
    """Create a new archive with a README."""

    def run(self, archive: str, args: Sequence[str]) -> None:
        parser = argparse.ArgumentParser(prog="argit ARCHIVE init")
        parser.parse_args(args)
        files = MemoryFilesystem()
        with files.create("README.md") as f:
            f.write(INITIAL_README)
        Repository.init(archive, files)


class cmd_clone(Command):
    """Create an archive from a local or remote repository."""

    def run(self, archive: str, args: Sequence[str]) -> None:
        parser = argparse.ArgumentParser(prog="argit ARCHIVE clone")
        parser.add_argument("source", help="Repository path or URL")
        parsed_args = parser.parse_args(args)
        Repository.clone(archive, parsed_args.source, progress=sys.stderr.buffer.write)


class cmd_logs(Command):
    """Show the commits reachable from HEAD."""

    def run(self, archive: str, args: Sequence[str]) -> None:
        parser = argparse.ArgumentParser(prog="argit ARCHIVE logs")
        parser.parse_args(args)
        repo = Repository.open(archive)
        print("logs")
        for commit in repo.logs():
            porcelain.print_commit(commit, _decode, outstream=sys.stdout)


class cmd_files(Command):
    """List the files in the working tree."""

    def run(self, archive: str, args: Sequence[str]) -> None:
        parser = argparse.ArgumentParser(prog="argit ARCHIVE files")
        parser.parse_args(args)
        repo = Repository.open(archive)
        print("files")
        for record in repo.files():
            dirname = "" if record.dir == "/" else record.dir
            mtime = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.mtime))
            print(f"{dirname}/{record.name} {record.size} {mtime}")


class cmd_get(Command):
    """Copy files from the working tree to the current directory."""

    def run(self, archive: str, args: Sequence[str]) -> int | None:
        parser = argparse.ArgumentParser(prog="argit ARCHIVE get")
        parser.add_argument("paths", nargs="+", help="Files to copy")
        parsed_args = parser.parse_args(args)
        repo = Repository.open(archive)
        present = {"/".join(split_path(record.path)) for record in repo.files()}
        missing = [
            path for path in parsed_args.paths if "/".join(split_path(path)) not in present
        ]
        for path in missing:
            logger.error("file %s is not found", path)
        if missing:
            return 1
        dest = OSFilesystem(".")
        for path in parsed_args.paths:
            repo.get(dest, path)
        return None


class cmd_put(Command):
    """Copy local files into the working tree, commit and save."""

    def run(self, archive: str, args: Sequence[str]) -> int | None:
        parser = argparse.ArgumentParser(prog="argit ARCHIVE put")
        parser.add_argument("paths", nargs="+", help="Files to add")
        parsed_args = parser.parse_args(args)
        for path in parsed_args.paths:
            if not stat.S_ISREG(os.stat(path).st_mode):
                logger.error("%s is not a regular file", path)
                return 1
        repo = Repository.open(archive)
        src = OSFilesystem(".")
        for path in parsed_args.paths:
            repo.put(src, path)
            repo.add(path)
        repo.commit(PUT_COMMIT_MESSAGE)
        repo.save(archive)
        return None


commands = {
    "clone": cmd_clone,
    "files": cmd_files,
    "get": cmd_get,
    "init": cmd_init,
    "logs": cmd_logs,
    "ls": cmd_files,
    "put": cmd_put,
}


def main(argv: Sequence[str] | None = None) -> int | None:
    """Main entry point for the argit CLI.

    Args:
      argv: Command line arguments (defaults to sys.argv[1:])
    Returns: Exit code or None
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(
        prog="argit", description="Git repositories stored in a tar archive"
    )
    parser.add_argument("archive", help="Path of the archive")
    parser.add_argument(
        "command", help=f"Command to run. Available: {', '.join(sorted(commands))}"
    )
    parser.add_argument("args", nargs=argparse.REMAINDER)
    parsed_args = parser.parse_args(argv)

    default_logging_config()

    try:
        cmd_kls = commands[parsed_args.command]
    except KeyError:
        logger.fatal("No such subcommand: %s", parsed_args.command)
        return 1
    try:
        return cmd_kls().run(parsed_args.archive, parsed_args.args)
    except (
        CorruptArchive,
        GitProtocolError,
        IdentityUnavailable,
        NoChanges,
        NotGitRepository,
        OSError,
        SizeMismatch,
    ) as e:
        logger.error("%s: %s", parsed_args.command, e)
        return 1


def _main() -> None:
    signal.signal(signal.SIGINT, signal_int)

    sys.exit(main())


if __name__ == "__main__":
    _main()
