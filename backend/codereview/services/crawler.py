"""
Tree Crawler - Lists the indexable blobs of a repository at a branch.
"""

from collections import deque
from typing import Iterable, Optional

from codereview.config import settings
from codereview.models.repo import RepoFile
from codereview.utils.github import GitHubClient
from codereview.utils.logger import get_logger

logger = get_logger(__name__)


class TreeCrawler:
    """
    Lists repository files through the git trees API.

    Workflow:
    1. Resolve the branch to its head commit and root tree
    2. List the whole tree with one recursive call
    3. If GitHub truncated the listing, walk the tree directory by directory
    4. Keep blobs that pass the extension allow-list and the ignore list
    """

    def __init__(
        self,
        github: GitHubClient,
        extensions: Optional[Iterable[str]] = None,
        ignore_patterns: Optional[Iterable[str]] = None,
    ):
        self.github = github
        self.extensions = tuple(extensions if extensions is not None else settings.code_extensions)
        self.ignore_patterns = tuple(ignore_patterns if ignore_patterns is not None else settings.ignore_patterns)

    def is_indexable(self, path: str) -> bool:
        """Extension allow-list plus substring ignore-list."""
        if any(pattern in path for pattern in self.ignore_patterns):
            return False
        return path.endswith(self.extensions)

    async def list_files(self, owner: str, repo: str, branch: str) -> list[RepoFile]:
        """
        List indexable files at ``branch``.

        Returns an empty list when the crawl fails; the failure is logged and
        never raised so the triggering event handler keeps running.
        """
        try:
            branch_info = await self.github.get_branch(owner, repo, branch)
            commit = branch_info["commit"]
            tree_sha = commit["commit"]["tree"]["sha"]

            tree = await self.github.get_tree(owner, repo, tree_sha, recursive=True)
            if tree.get("truncated"):
                logger.warning(
                    "tree_listing_truncated",
                    repo=f"{owner}/{repo}",
                    branch=branch,
                    listed=len(tree.get("tree", [])),
                )
                entries = await self._walk_tree(owner, repo, tree_sha)
            else:
                entries = tree.get("tree", [])
        except Exception as e:
            logger.error("crawl_failed", repo=f"{owner}/{repo}", branch=branch, error=str(e))
            return []

        files = [
            RepoFile(path=entry["path"], sha=entry["sha"], size=entry.get("size"))
            for entry in entries
            if entry.get("type") == "blob" and self.is_indexable(entry["path"])
        ]

        logger.info(
            "crawl_complete",
            repo=f"{owner}/{repo}",
            branch=branch,
            entries=len(entries),
            files=len(files),
            commit=commit.get("sha"),
        )
        return files

    async def _walk_tree(self, owner: str, repo: str, root_sha: str) -> list[dict]:
        """Breadth-first walk with one non-recursive tree call per directory.

        Entry paths are rebuilt relative to the repository root. Ignored
        directories are not descended into.
        """
        entries: list[dict] = []
        pending = deque([("", root_sha)])

        while pending:
            prefix, sha = pending.popleft()
            tree = await self.github.get_tree(owner, repo, sha, recursive=False)
            for entry in tree.get("tree", []):
                path = f"{prefix}{entry['path']}"
                if entry.get("type") == "tree":
                    if not any(pattern in path for pattern in self.ignore_patterns):
                        pending.append((f"{path}/", entry["sha"]))
                    continue
                entries.append({**entry, "path": path})

        return entries
