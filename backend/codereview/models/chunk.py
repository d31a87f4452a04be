"""
Chunking and vector record models.
"""

from pydantic import BaseModel, Field


def make_chunk_id(content_hash: str, index: int) -> str:
    """Content-addressed vector ID; unchanged files map onto the same IDs."""
    return f"{content_hash}-chunk-{index}"


class ChunkMetadata(BaseModel):
    """Metadata stored alongside every vector. ``repo`` scopes queries and deletes."""
    path: str = Field(..., description="Relative file path")
    chunk_index: int = Field(..., description="Position of the chunk within its file")
    total_chunks: int = Field(..., description="Number of chunks the file produced")
    repo: str = Field(..., description="Repository full name, owner/repo")
    file_type: str = Field(default="", description="File extension without the dot")


class Chunk(BaseModel):
    """A window of file text submitted independently for embedding."""
    text: str
    index: int
    total_chunks: int
    path: str
    repo: str
    file_type: str = ""
    content_hash: str

    @property
    def chunk_id(self) -> str:
        return make_chunk_id(self.content_hash, self.index)

    @property
    def metadata(self) -> ChunkMetadata:
        return ChunkMetadata(
            path=self.path,
            chunk_index=self.index,
            total_chunks=self.total_chunks,
            repo=self.repo,
            file_type=self.file_type,
        )


class VectorRecord(BaseModel):
    """A record as stored in the vector store."""
    id: str
    values: list[float]
    document: str
    metadata: ChunkMetadata

    @classmethod
    def from_chunk(cls, chunk: Chunk, values: list[float]) -> "VectorRecord":
        return cls(id=chunk.chunk_id, values=values, document=chunk.text, metadata=chunk.metadata)


class ContextMatch(BaseModel):
    """One nearest-neighbour hit, in store relevance order."""
    id: str
    text: str
    path: str = ""
    score: float = 0.0
