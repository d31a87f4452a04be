"""
GitHub REST client - the slice of the API the pipeline consumes.

Covers tree listing, blob reads, pull request files/diff, review comments,
review creation and the authenticated user. List endpoints are paginated by
following the ``Link: rel="next"`` header.
"""

from typing import Any, Dict, List, Optional

import httpx

from codereview.config import settings
from codereview.utils.logger import get_logger

logger = get_logger(__name__)

PER_PAGE = 100


class GitHubAPIError(httpx.HTTPError):
    """Raised when GitHub answers with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubClient:
    """Async GitHub REST v3 client authenticated with a token."""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        token = token if token is not None else settings.github_token
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "ai-code-review-backend",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        else:
            logger.warning("github_token_missing", note="Unauthenticated requests are heavily rate-limited")

        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.github_api_url).rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout or settings.github_timeout_seconds),
            transport=transport,
            follow_redirects=True,
        )

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        response = await self._client.request(method, url, **kwargs)
        if response.status_code >= 400:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise GitHubAPIError(
                f"GitHub {method} {url} failed ({response.status_code}): {message}",
                status_code=response.status_code,
            )
        return response

    async def _get_json(self, url: str, params: Optional[dict] = None) -> Any:
        response = await self._request("GET", url, params=params)
        return response.json()

    async def paginate(self, url: str, params: Optional[dict] = None) -> List[Dict[str, Any]]:
        """Collect every page of a list endpoint."""
        items: List[Dict[str, Any]] = []
        params = {"per_page": PER_PAGE, **(params or {})}
        next_url: Optional[str] = url

        while next_url:
            response = await self._request("GET", next_url, params=params)
            items.extend(response.json())
            next_url = response.links.get("next", {}).get("url")
            # The next link already carries the query string.
            params = None

        return items

    # ------------------------------------------------------------------
    # Git data
    # ------------------------------------------------------------------

    async def get_branch(self, owner: str, repo: str, branch: str) -> Dict[str, Any]:
        return await self._get_json(f"/repos/{owner}/{repo}/branches/{branch}")

    async def get_tree(self, owner: str, repo: str, tree_sha: str, recursive: bool = True) -> Dict[str, Any]:
        params = {"recursive": "1"} if recursive else None
        return await self._get_json(f"/repos/{owner}/{repo}/git/trees/{tree_sha}", params=params)

    async def get_blob(self, owner: str, repo: str, sha: str) -> Dict[str, Any]:
        return await self._get_json(f"/repos/{owner}/{repo}/git/blobs/{sha}")

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    async def get_pull(self, owner: str, repo: str, pr_number: int) -> Dict[str, Any]:
        return await self._get_json(f"/repos/{owner}/{repo}/pulls/{pr_number}")

    async def get_pull_diff(self, owner: str, repo: str, pr_number: int) -> str:
        response = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls/{pr_number}",
            headers={"Accept": "application/vnd.github.v3.diff"},
        )
        return response.text

    async def list_pull_files(self, owner: str, repo: str, pr_number: int) -> List[Dict[str, Any]]:
        return await self.paginate(f"/repos/{owner}/{repo}/pulls/{pr_number}/files")

    async def list_review_comments(self, owner: str, repo: str, pr_number: int) -> List[Dict[str, Any]]:
        return await self.paginate(f"/repos/{owner}/{repo}/pulls/{pr_number}/comments")

    async def delete_review_comment(self, owner: str, repo: str, comment_id: int) -> None:
        await self._request("DELETE", f"/repos/{owner}/{repo}/pulls/comments/{comment_id}")

    async def create_review(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        commit_id: str,
        body: str,
        comments: List[Dict[str, Any]],
        event: str = "COMMENT",
    ) -> Dict[str, Any]:
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{pr_number}/reviews",
            json={"commit_id": commit_id, "body": body, "event": event, "comments": comments},
        )
        return response.json()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_authenticated_user(self) -> Dict[str, Any]:
        return await self._get_json("/user")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
