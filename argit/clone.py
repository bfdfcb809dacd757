# clone.py -- Importing the refs of a remote repository
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

"""Remote repository clone handling."""

__all__ = ["fetch_remote"]

from collections.abc import Callable

from dulwich.client import get_transport_and_path
from dulwich.objects import Tag
from dulwich.refs import LOCAL_BRANCH_PREFIX, LOCAL_TAG_PREFIX

from .fsrepo import FilesystemRepo
from .log_utils import getLogger

logger = getLogger(__name__)

# Suffix of the peeled entries servers advertise for annotated tags.
PEELED_TAG_SUFFIX = b"^{}"


def fetch_remote(
    repo: FilesystemRepo,
    location: str,
    origin: bytes = b"origin",
    progress: Callable[[bytes], object] | None = None,
) -> bytes | None:
    """Fetch a remote repository and set up refs as ``git clone`` would.

    Remote branches end up below ``refs/remotes/<origin>/``, tags are copied
    as they are, and a local branch is created for the remote HEAD, which
    the local HEAD then points at.

    Args:
      repo: Freshly initialized repository to fetch into
      location: URL of the remote repository
      origin: Name of the remote
      progress: Optional callback receiving progress output
    Returns: Ref the local HEAD was set to, or None if the remote has no HEAD
    """
    client, path = get_transport_and_path(location)
    logger.debug("fetching %s with %r", location, client)
    result = client.fetch(path, repo, progress=progress)

    config = repo.get_config()
    config.set((b"remote", origin), b"url", location.encode("utf-8"))
    config.set(
        (b"remote", origin),
        b"fetch",
        b"+refs/heads/*:refs/remotes/" + origin + b"/*",
    )

    ref_message = b"clone: from " + location.encode("utf-8")
    remote_refs = {
        name: sha
        for name, sha in result.refs.items()
        if sha is not None and not name.endswith(PEELED_TAG_SUFFIX)
    }
    _import_remote_refs(repo, origin, remote_refs, ref_message)
    origin_head = result.symrefs.get(b"HEAD") or _guess_origin_head(remote_refs)
    _set_origin_head(repo, origin, origin_head)
    head_ref = _set_default_branch(repo, origin, origin_head, ref_message)
    if head_ref is not None:
        _set_head(repo, head_ref, ref_message)
    return head_ref


def _import_remote_refs(
    repo: FilesystemRepo, origin: bytes, refs: dict[bytes, bytes], message: bytes
) -> None:
    origin_base = b"refs/remotes/" + origin + b"/"
    for name, sha in refs.items():
        if name.startswith(LOCAL_BRANCH_PREFIX):
            target = origin_base + name[len(LOCAL_BRANCH_PREFIX) :]
        elif name.startswith(LOCAL_TAG_PREFIX):
            target = name
        else:
            continue
        repo.refs.set_if_equals(target, None, sha, message=message)


def _guess_origin_head(refs: dict[bytes, bytes]) -> bytes | None:
    """Find the branch the remote HEAD points at, for servers without symrefs."""
    head = refs.get(b"HEAD")
    if head is None:
        return None
    candidates = sorted(
        name
        for name, sha in refs.items()
        if sha == head and name.startswith(LOCAL_BRANCH_PREFIX)
    )
    for name in (b"refs/heads/master", b"refs/heads/main"):
        if name in candidates:
            return name
    return candidates[0] if candidates else None


def _set_origin_head(repo: FilesystemRepo, origin: bytes, origin_head: bytes | None) -> None:
    origin_base = b"refs/remotes/" + origin + b"/"
    if origin_head and origin_head.startswith(LOCAL_BRANCH_PREFIX):
        target_ref = origin_base + origin_head[len(LOCAL_BRANCH_PREFIX) :]
        if target_ref in repo.refs:
            repo.refs.set_symbolic_ref(origin_base + b"HEAD", target_ref)


def _set_default_branch(
    repo: FilesystemRepo, origin: bytes, origin_head: bytes | None, message: bytes
) -> bytes | None:
    if not origin_head:
        return None
    if origin_head.startswith(LOCAL_BRANCH_PREFIX):
        origin_ref = b"refs/remotes/" + origin + b"/" + origin_head[len(LOCAL_BRANCH_PREFIX) :]
    else:
        origin_ref = origin_head
    try:
        repo.refs.add_if_new(origin_head, repo.refs[origin_ref], message)
    except KeyError:
        return None
    return origin_head


def _set_head(repo: FilesystemRepo, head_ref: bytes, message: bytes) -> None:
    if head_ref.startswith(LOCAL_TAG_PREFIX):
        # detach HEAD at the tagged commit
        head = repo.refs[head_ref]
        obj = repo[head]
        while isinstance(obj, Tag):
            obj = repo[obj.object[1]]
        del repo.refs[b"HEAD"]
        repo.refs.set_if_equals(b"HEAD", None, obj.id, message=message)
    else:
        repo.refs.set_symbolic_ref(b"HEAD", head_ref)
