"""
Review and diff models.
"""

from pydantic import BaseModel, Field, AliasChoices
from typing import List
from enum import Enum


class DiffLineKind(str, Enum):
    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"
    META = "meta"


class DiffLine(BaseModel):
    """One body line of a hunk with its patch position."""
    kind: DiffLineKind
    text: str
    position: int
    new_line: int | None = None


class DiffHunk(BaseModel):
    """One ``@@ ... @@`` block of a unified diff."""
    header: str
    new_line_start: int
    lines: List[DiffLine] = Field(default_factory=list)


class ReviewComment(BaseModel):
    """A comment as produced by the AI step."""
    path: str
    line: int = Field(..., description="Line number in the new file")
    comment: str = Field(
        default="No comment provided",
        validation_alias=AliasChoices("comment", "body"),
    )


class GithubReviewComment(BaseModel):
    """Inline comment in the shape the pull request review API accepts."""
    path: str
    body: str
    position: int = Field(..., ge=1)


class ReviewPostResult(BaseModel):
    """Outcome of posting a review."""
    posted: int = 0
    dropped: int = 0
    batches: int = 0
    recorded: bool = False
