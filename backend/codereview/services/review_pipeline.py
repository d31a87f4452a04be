"""
Review pipeline - What a pull request event sets in motion.

* opened / synchronize: retrieve repository context for the diff, ask the
  model for comments, post them as a review.
* closed + merged: rebuild the repository index from the base branch.
"""

from typing import Optional

from codereview.models.repo import split_full_name
from codereview.models.review import ReviewPostResult
from codereview.models.webhook import PullRequestEvent
from codereview.services.indexer import IndexSyncEngine
from codereview.services.retriever import RetrievalService
from codereview.services.review_dispatcher import ReviewDispatcher
from codereview.utils.github import GitHubClient
from codereview.utils.llm import ReviewLLM
from codereview.utils.logger import get_logger
from codereview.utils.record_store import RecordStore

logger = get_logger(__name__)

REVIEW_INSTRUCTIONS = (
    "You are an AI assistant specializing in code review. Analyze the code changes in this "
    "pull request, identify issues related to correctness, security, performance, "
    "maintainability and style, and suggest improvements. Prioritize critical issues and give "
    "clear, actionable recommendations. Only comment on lines that are part of the diff and "
    "report each comment against its line number in the new version of the file."
)


def build_review_prompt(diff: str, context: Optional[str]) -> str:
    """Assemble the review prompt, with or without repository context."""
    if not context:
        body = f"No repository context available. Review based on general best practices.\n\nDiff:\n{diff}"
    else:
        body = f"Repository context:\n{context}\n\nDiff:\n{diff}"
    return f"{REVIEW_INSTRUCTIONS}\n\n{body}"


class ReviewPipeline:
    """Runs the review and reindex flows. Nothing here raises to the caller."""

    def __init__(
        self,
        github: GitHubClient,
        retriever: RetrievalService,
        llm: ReviewLLM,
        dispatcher: ReviewDispatcher,
        indexer: IndexSyncEngine,
        records: Optional[RecordStore] = None,
    ):
        self.github = github
        self.retriever = retriever
        self.llm = llm
        self.dispatcher = dispatcher
        self.indexer = indexer
        self.records = records

    async def handle_pull_request(self, event: PullRequestEvent) -> None:
        if event.wants_review:
            await self.review_pull_request(event)
        elif event.is_merge:
            await self.reindex_after_merge(event)
        else:
            logger.debug("pull_request_ignored", repo=event.repo, action=event.action)

    async def review_pull_request(self, event: PullRequestEvent) -> Optional[ReviewPostResult]:
        repo, pr_number, head_sha = event.repo, event.pr_number, event.head_sha
        logger.info("pull_request_review_started", repo=repo, pr=pr_number, action=event.action, commit=head_sha)

        try:
            if event.action == "synchronize":
                await self._prepare_re_review(repo, pr_number, head_sha)

            owner, name = split_full_name(repo)
            diff = await self.github.get_pull_diff(owner, name, pr_number)
            context = await self.retriever.retrieve_context(repo, diff)
            comments = await self.llm.review(build_review_prompt(diff, context))
            result = await self.dispatcher.post_review(repo, pr_number, comments, head_sha)
        except Exception as e:
            logger.error(
                "pull_request_review_failed",
                repo=repo,
                pr=pr_number,
                error=f"{type(e).__name__}: {e}",
            )
            return None

        logger.info(
            "pull_request_review_complete",
            repo=repo,
            pr=pr_number,
            posted=result.posted,
            dropped=result.dropped,
            with_context=context is not None,
        )
        return result

    async def _prepare_re_review(self, repo: str, pr_number: int, head_sha: str) -> None:
        """New commits on the PR: record the commit and clear the previous review."""
        if self.records is not None:
            try:
                await self.records.add_commit(repo, pr_number, head_sha)
            except Exception as e:
                logger.error("commit_record_failed", repo=repo, pr=pr_number, error=str(e))

        await self.dispatcher.delete_previous_ai_comments(repo, pr_number)

        if self.records is not None:
            try:
                await self.records.delete_review(repo, pr_number)
            except Exception as e:
                logger.error("review_record_delete_failed", repo=repo, pr=pr_number, error=str(e))

    async def reindex_after_merge(self, event: PullRequestEvent) -> None:
        repo, branch = event.repo, event.pull_request.base.ref
        try:
            await self.indexer.reindex_repository(repo, branch)
        except Exception as e:
            logger.error("reindex_failed", repo=repo, branch=branch, error=f"{type(e).__name__}: {e}")
