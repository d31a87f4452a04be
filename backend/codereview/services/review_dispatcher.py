"""
Review Dispatcher - Posts AI review comments as inline pull request reviews.

Comments are anchored through the diff position resolver, split into batches
that fit the review API's per-request limit, and submitted with retry and
exponential backoff. A batch that exhausts its retries stops the review.
"""

from typing import List, Optional, Sequence

import backoff
import httpx

from codereview.config import settings
from codereview.models.repo import split_full_name
from codereview.models.review import GithubReviewComment, ReviewComment, ReviewPostResult
from codereview.services.diff_position import resolve_position
from codereview.utils.github import GitHubClient
from codereview.utils.logger import get_logger
from codereview.utils.record_store import RecordStore

logger = get_logger(__name__)

REVIEW_BODY = "Automated code review by Gemini AI"


class ReviewDispatchError(Exception):
    """Base exception for review dispatch errors."""

    pass


class ReviewPostError(ReviewDispatchError):
    """Raised when a review batch fails after all retries."""

    def __init__(self, message: str, batch: int, posted: int):
        super().__init__(message)
        self.batch = batch
        self.posted = posted


def _log_backoff(details: dict) -> None:
    logger.warning(
        "review_batch_retry",
        attempt=details["tries"],
        wait_seconds=round(details["wait"], 3),
        error=str(details["exception"]),
    )


class ReviewDispatcher:
    """Maps AI comments onto PR diff positions and submits them."""

    def __init__(
        self,
        github: GitHubClient,
        records: Optional[RecordStore] = None,
        batch_size: Optional[int] = None,
        max_attempts: Optional[int] = None,
        retry_base_seconds: Optional[float] = None,
        retry_max_seconds: Optional[float] = None,
    ):
        self.github = github
        self.records = records
        self.batch_size = max(1, batch_size or settings.review_batch_size)
        self.max_attempts = max(1, max_attempts or settings.review_max_attempts)
        self.retry_base_seconds = (
            settings.review_retry_base_seconds if retry_base_seconds is None else retry_base_seconds
        )
        self.retry_max_seconds = (
            settings.review_retry_max_seconds if retry_max_seconds is None else retry_max_seconds
        )

    async def resolve_comments(
        self, owner: str, repo: str, pr_number: int, ai_comments: Sequence[ReviewComment]
    ) -> List[GithubReviewComment]:
        """Anchor each comment to its patch position, dropping unmappable ones."""
        files = await self.github.list_pull_files(owner, repo, pr_number)
        patches = {f["filename"]: f.get("patch") for f in files}

        resolved: List[GithubReviewComment] = []
        for c in ai_comments:
            patch = patches.get(c.path)
            if not patch:
                logger.warning("comment_file_not_in_diff", path=c.path, line=c.line)
                continue

            position = resolve_position(patch, c.line)
            if position is None:
                logger.warning("comment_line_not_in_diff", path=c.path, line=c.line)
                continue

            resolved.append(
                GithubReviewComment(path=c.path, body=c.comment or "No comment provided", position=position)
            )
        return resolved

    async def post_review(
        self,
        repo_full_name: str,
        pr_number: int,
        ai_comments: Sequence[ReviewComment],
        head_commit: Optional[str] = None,
    ) -> ReviewPostResult:
        """
        Post ``ai_comments`` on a pull request.

        Raises:
            ReviewPostError: if a batch still fails after all attempts. Batches
                after it are not submitted.
        """
        owner, repo = split_full_name(repo_full_name)
        logger.info("review_post_started", repo=repo_full_name, pr=pr_number, comments=len(ai_comments))

        github_comments = await self.resolve_comments(owner, repo, pr_number, ai_comments)
        result = ReviewPostResult(dropped=len(ai_comments) - len(github_comments))

        if not github_comments:
            logger.warning("no_valid_comments", repo=repo_full_name, pr=pr_number, dropped=result.dropped)
            return result

        if not head_commit:
            pull = await self.github.get_pull(owner, repo, pr_number)
            head_commit = pull["head"]["sha"]

        batches = [
            github_comments[i : i + self.batch_size]
            for i in range(0, len(github_comments), self.batch_size)
        ]

        for number, batch in enumerate(batches, start=1):
            try:
                await self._submit_batch(owner, repo, pr_number, head_commit, batch)
            except httpx.HTTPError as e:
                logger.error(
                    "review_batch_failed",
                    repo=repo_full_name,
                    pr=pr_number,
                    batch=f"{number}/{len(batches)}",
                    posted=result.posted,
                    error=str(e),
                )
                raise ReviewPostError(
                    f"Review batch {number}/{len(batches)} failed after {self.max_attempts} attempts: {e}",
                    batch=number,
                    posted=result.posted,
                ) from e

            result.posted += len(batch)
            result.batches += 1
            logger.info(
                "review_batch_posted",
                repo=repo_full_name,
                pr=pr_number,
                batch=f"{number}/{len(batches)}",
                comments=len(batch),
            )

        result.recorded = await self._record_review(owner, repo, repo_full_name, pr_number, ai_comments)
        return result

    async def _submit_batch(
        self, owner: str, repo: str, pr_number: int, commit_id: str, batch: List[GithubReviewComment]
    ) -> dict:
        submit = backoff.on_exception(
            backoff.expo,
            httpx.HTTPError,
            max_tries=self.max_attempts,
            factor=self.retry_base_seconds,
            max_value=self.retry_max_seconds,
            jitter=None,
            on_backoff=_log_backoff,
        )(self.github.create_review)

        return await submit(
            owner,
            repo,
            pr_number,
            commit_id=commit_id,
            body=REVIEW_BODY,
            comments=[c.model_dump() for c in batch],
        )

    async def _record_review(
        self, owner: str, repo: str, repo_full_name: str, pr_number: int, ai_comments: Sequence[ReviewComment]
    ) -> bool:
        """Best-effort write of the review to the record store. Never raises.

        The posted GitHub review is authoritative; a failure here leaves the
        two out of sync and is only logged.
        """
        if self.records is None:
            return False
        try:
            await self.records.add_review(repo_full_name, pr_number, list(ai_comments))
            await self.records.add_pull_request(owner, repo, pr_number)
        except Exception as e:
            logger.error("review_record_failed", repo=repo_full_name, pr=pr_number, error=str(e))
            return False
        logger.info("review_recorded", repo=repo_full_name, pr=pr_number, comments=len(ai_comments))
        return True

    async def delete_previous_ai_comments(self, repo_full_name: str, pr_number: int) -> int:
        """
        Delete every review comment the authenticated account left on the PR.

        Individual delete failures are logged and skipped. Returns the number
        of comments deleted.
        """
        owner, repo = split_full_name(repo_full_name)
        try:
            bot_login = (await self.github.get_authenticated_user())["login"]
            comments = await self.github.list_review_comments(owner, repo, pr_number)
        except Exception as e:
            logger.error("ai_comment_cleanup_failed", repo=repo_full_name, pr=pr_number, error=str(e))
            return 0

        own_comments = [c for c in comments if (c.get("user") or {}).get("login") == bot_login]

        deleted = 0
        for comment in own_comments:
            try:
                await self.github.delete_review_comment(owner, repo, comment["id"])
                deleted += 1
            except Exception as e:
                logger.warning("comment_delete_failed", repo=repo_full_name, comment_id=comment.get("id"), error=str(e))

        logger.info("ai_comments_deleted", repo=repo_full_name, pr=pr_number, found=len(own_comments), deleted=deleted)
        return deleted
