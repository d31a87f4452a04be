"""
Repository-related Pydantic models.
"""

from pydantic import BaseModel, Field
from typing import Optional
from pathlib import PurePosixPath


def split_full_name(repo_full_name: str) -> tuple[str, str]:
    """Split ``owner/repo`` into its parts."""
    owner, sep, name = repo_full_name.strip().partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ValueError(f"Invalid repository name: {repo_full_name!r} (expected owner/repo)")
    return owner, name


class RepoFile(BaseModel):
    """A blob listed from a repository tree. Identity is the content hash."""
    model_config = {"frozen": True}

    path: str = Field(..., description="Path relative to the repository root")
    sha: str = Field(..., description="Git blob SHA (content hash)")
    size: Optional[int] = Field(default=None, description="Blob size in bytes if reported")

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def file_type(self) -> str:
        """Extension without the dot, e.g. ``py``."""
        name = self.name
        return name.rsplit(".", 1)[-1] if "." in name else name


class IndexResult(BaseModel):
    """Statistics from one indexing pass."""
    repo: str
    branch: str
    files_total: int = 0
    files_indexed: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    chunks_upserted: int = 0
    failed_files: list[str] = Field(default_factory=list)
