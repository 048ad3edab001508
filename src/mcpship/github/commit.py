"""Single-commit writes through the git data API.

Both helpers build exactly one commit and move the branch ref once, so no
intermediate state is ever visible on the branch.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from mcpship.github.base import CommitInfo, HostingAPI, TreeEntry
from mcpship.github.rate_limit import with_rate_limit_retry
from mcpship.lib.errors import HostingAPIError
from mcpship.models.deployment import DeploymentFile

logger = logging.getLogger(__name__)

BLOB_MODE = "100644"
DEFAULT_MAX_WORKERS = 8


def atomic_commit(
    api: HostingAPI,
    owner: str,
    repo: str,
    branch: str,
    files: Sequence[DeploymentFile],
    message: str,
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    call: Callable[[Callable[[], Any]], Any] | None = None,
) -> CommitInfo:
    """Commit all ``files`` on top of ``branch`` as one commit.

    Sequence: get-ref, get-commit (base tree), create-blob per file in
    parallel, create-tree on the base tree, create-commit with the previous
    commit as sole parent, update-ref.

    Args:
        api: Hosting API
        owner: Repository owner
        repo: Repository name
        branch: Branch to advance
        files: Files to write (paths relative to the repository root)
        message: Commit message
        max_workers: Thread pool size for blob creation
        call: Wrapper applied to every API call (e.g. rate-limit retry)

    Returns:
        The created commit
    """
    wrap = call or with_rate_limit_retry

    parent_sha = wrap(lambda: api.get_ref(owner, repo, branch))
    base_tree = wrap(lambda: api.get_commit(owner, repo, parent_sha))

    def _blob(file: DeploymentFile) -> TreeEntry:
        sha = wrap(lambda: api.create_blob(owner, repo, file.content))
        return TreeEntry(path=file.path, mode=BLOB_MODE, type="blob", sha=sha)

    workers = max(1, min(max_workers, len(files)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        entries = list(executor.map(_blob, files))

    tree_sha = wrap(lambda: api.create_tree(owner, repo, entries, base_tree=base_tree))
    commit = wrap(
        lambda: api.create_commit(owner, repo, message, tree_sha, [parent_sha])
    )
    wrap(lambda: api.update_ref(owner, repo, branch, commit.sha))

    logger.info(
        "Committed %d files to %s/%s@%s (%s)",
        len(entries),
        owner,
        repo,
        branch,
        commit.sha[:7],
    )
    return commit


def remove_path_commit(
    api: HostingAPI,
    owner: str,
    repo: str,
    branch: str,
    prefix: str,
    message: str,
    *,
    call: Callable[[Callable[[], Any]], Any] | None = None,
) -> CommitInfo | None:
    """Remove every file under ``prefix`` in one commit.

    The new tree is built from the recursive listing minus matching entries,
    without a base tree. Directory entries are dropped so the API rebuilds
    them from the remaining blob paths.

    Returns:
        The created commit, or None when nothing matched ``prefix``

    Raises:
        HostingAPIError: If the recursive listing was truncated
    """
    wrap = call or with_rate_limit_retry
    prefix = prefix.rstrip("/") + "/"

    parent_sha = wrap(lambda: api.get_ref(owner, repo, branch))
    tree_sha = wrap(lambda: api.get_commit(owner, repo, parent_sha))
    listing = wrap(lambda: api.get_tree(owner, repo, tree_sha, recursive=True))

    if listing.truncated:
        raise HostingAPIError(
            None, f"Tree listing for {owner}/{repo} is truncated; refusing to rewrite"
        )

    blobs = [entry for entry in listing.entries if entry.type != "tree"]
    kept = [entry for entry in blobs if not entry.path.startswith(prefix)]
    if len(kept) == len(blobs):
        logger.info("Nothing under %s in %s/%s; skipping commit", prefix, owner, repo)
        return None

    new_tree = wrap(lambda: api.create_tree(owner, repo, kept))
    commit = wrap(
        lambda: api.create_commit(owner, repo, message, new_tree, [parent_sha])
    )
    wrap(lambda: api.update_ref(owner, repo, branch, commit.sha))

    logger.info(
        "Removed %d files under %s from %s/%s (%s)",
        len(blobs) - len(kept),
        prefix,
        owner,
        repo,
        commit.sha[:7],
    )
    return commit
