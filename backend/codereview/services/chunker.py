"""
Chunker - Splits file text into overlapping fixed-size windows.
"""

from typing import Optional

from codereview.config import settings
from codereview.models.chunk import Chunk
from codereview.models.repo import RepoFile


def chunk_text(text: str, window_size: int = 1000, overlap: int = 200) -> list[str]:
    """
    Split ``text`` into windows of ``window_size`` characters that overlap by
    ``overlap`` characters.

    A window starts every ``max(1, window_size - overlap)`` characters, giving
    ``ceil(len(text) / stride)`` chunks. Every character is covered and a text
    no longer than the stride comes back as a single chunk equal to the input.

    Raises:
        ValueError: if ``window_size`` is not positive or ``overlap`` is negative.
    """
    if window_size <= 0:
        raise ValueError(f"window_size must be positive, got {window_size}")
    if overlap < 0:
        raise ValueError(f"overlap must not be negative, got {overlap}")

    stride = max(1, window_size - overlap)
    return [text[start : start + window_size] for start in range(0, len(text), stride)]


class Chunker:
    """Turns one file's content into Chunk objects keyed by its blob SHA."""

    def __init__(self, window_size: Optional[int] = None, overlap: Optional[int] = None):
        self.window_size = settings.chunk_size if window_size is None else window_size
        self.overlap = settings.chunk_overlap if overlap is None else overlap
        if self.window_size <= 0 or self.overlap < 0:
            raise ValueError("Invalid chunking parameters")

    def chunk_file(self, repo: str, file: RepoFile, content: str) -> list[Chunk]:
        """
        Chunk a file's content.

        Args:
            repo: Repository full name (owner/repo)
            file: The crawled file; its SHA becomes the ID prefix
            content: Decoded file text

        Returns:
            List of Chunk objects, empty for empty content
        """
        pieces = chunk_text(content, self.window_size, self.overlap)
        return [
            Chunk(
                text=piece,
                index=i,
                total_chunks=len(pieces),
                path=file.path,
                repo=repo,
                file_type=file.file_type,
                content_hash=file.sha,
            )
            for i, piece in enumerate(pieces)
        ]
