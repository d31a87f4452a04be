"""
Blob Fetcher - Resolves a blob SHA to its bytes under a size limit.
"""

import base64
from typing import Optional

from codereview.config import settings
from codereview.utils.github import GitHubClient
from codereview.utils.logger import get_logger

logger = get_logger(__name__)


class BlobFetcher:
    """Reads git blobs. Indexing is best-effort per file: nothing here raises."""

    def __init__(self, github: GitHubClient, max_bytes: Optional[int] = None):
        self.github = github
        self.max_bytes = settings.max_blob_bytes if max_bytes is None else max_bytes

    async def fetch_blob(self, owner: str, repo: str, sha: str) -> Optional[bytes]:
        """Return the blob's bytes, or None if it is too large or the read failed."""
        try:
            blob = await self.github.get_blob(owner, repo, sha)
        except Exception as e:
            logger.warning("blob_fetch_failed", repo=f"{owner}/{repo}", sha=sha, error=str(e))
            return None

        size = blob.get("size")
        if size is not None and size > self.max_bytes:
            logger.warning("blob_too_large", repo=f"{owner}/{repo}", sha=sha, size=size, limit=self.max_bytes)
            return None

        raw = blob.get("content") or ""
        if blob.get("encoding") == "base64":
            data = base64.b64decode(raw)
        else:
            data = raw.encode("utf-8")

        if len(data) > self.max_bytes:
            logger.warning("blob_too_large", repo=f"{owner}/{repo}", sha=sha, size=len(data), limit=self.max_bytes)
            return None
        return data

    async def fetch_text(self, owner: str, repo: str, sha: str) -> Optional[str]:
        """Fetch a blob as UTF-8 text; binary content is skipped."""
        data = await self.fetch_blob(owner, repo, sha)
        if data is None:
            return None
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            logger.info("blob_not_text", repo=f"{owner}/{repo}", sha=sha)
            return None
