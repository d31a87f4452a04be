"""
Record store client - Commit/review/PR rows in the relational store.

The store is reached over its local HTTP API. Calls raise ``httpx.HTTPError``
on failure; callers treat them as best-effort side effects.
"""

from typing import List, Optional

import httpx

from codereview.config import settings
from codereview.models.review import ReviewComment
from codereview.utils.logger import get_logger

logger = get_logger(__name__)


class RecordStore:
    """Thin client over the store's ``/api`` endpoints."""

    def __init__(self, base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.store_api_url).rstrip("/"),
            timeout=httpx.Timeout(10.0),
            transport=transport,
        )

    async def _post(self, path: str, payload: dict) -> None:
        response = await self._client.post(path, json=payload)
        response.raise_for_status()
        logger.debug("record_store_write", path=path)

    async def add_commit(self, repo: str, pr_number: int, commit_id: str) -> None:
        await self._post("/addcommit", {"repo": repo, "prNumber": pr_number, "commitId": commit_id})

    async def delete_review(self, repo: str, pr_number: int) -> None:
        await self._post("/deletereview", {"repo": repo, "prNumber": pr_number})

    async def add_review(self, repo: str, pr_number: int, comments: List[ReviewComment]) -> None:
        await self._post(
            "/addreview",
            {"repo": repo, "prNumber": pr_number, "comments": [c.model_dump() for c in comments]},
        )

    async def add_pull_request(self, owner: str, repo: str, pr_number: int) -> None:
        await self._post("/addpr", {"owner": owner, "repo": repo, "prNumber": pr_number})

    async def close(self) -> None:
        await self._client.aclose()
