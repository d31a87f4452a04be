"""
Webhook payload models. Only the fields the pipeline reads are declared.
"""

from pydantic import BaseModel
from typing import Optional


class RepositoryRef(BaseModel):
    full_name: str


class BranchRef(BaseModel):
    ref: str
    sha: str


class PullRequestRef(BaseModel):
    number: int
    merged: bool = False
    diff_url: Optional[str] = None
    head: BranchRef
    base: BranchRef


class PullRequestEvent(BaseModel):
    """``pull_request`` webhook event."""
    action: str
    repository: RepositoryRef
    pull_request: PullRequestRef

    @property
    def repo(self) -> str:
        return self.repository.full_name

    @property
    def pr_number(self) -> int:
        return self.pull_request.number

    @property
    def head_sha(self) -> str:
        return self.pull_request.head.sha

    @property
    def wants_review(self) -> bool:
        return self.action in ("opened", "synchronize")

    @property
    def is_merge(self) -> bool:
        return self.action == "closed" and self.pull_request.merged


class WebhookResponse(BaseModel):
    message: str
    queued: bool = False
