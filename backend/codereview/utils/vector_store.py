"""
Vector store adapter over a ChromaDB collection.

Exposes the three primitives the pipeline relies on: upsert by ID, a
metadata-filtered nearest-neighbour query and deletion by ID list. Every
record carries a ``repo`` metadata field; it is the only handle for scoping
queries and bulk deletes to one repository.
"""

import asyncio
from typing import List, Optional

import chromadb

from codereview.config import settings
from codereview.models.chunk import ContextMatch, VectorRecord
from codereview.utils.logger import get_logger

logger = get_logger(__name__)


def create_chroma_client() -> chromadb.ClientAPI:
    """HTTP client when CHROMA_HOST is set, otherwise an on-disk client."""
    if settings.chroma_host:
        return chromadb.HttpClient(host=settings.chroma_host, port=settings.chroma_port)
    settings.chroma_path.mkdir(parents=True, exist_ok=True)
    return chromadb.PersistentClient(path=str(settings.chroma_path))


class VectorStore:
    """Repository-scoped operations on one Chroma collection.

    Chroma's client is synchronous; calls run in a worker thread so the event
    loop keeps serving other pipelines.
    """

    def __init__(
        self,
        client: Optional[chromadb.ClientAPI] = None,
        collection_name: Optional[str] = None,
    ):
        self.client = client or create_chroma_client()
        self.collection_name = collection_name or settings.chroma_collection
        self.collection = self.client.get_or_create_collection(
            name=self.collection_name, metadata={"hnsw:space": "cosine"}
        )
        logger.info("vector_store_ready", collection=self.collection_name)

    @staticmethod
    def _repo_filter(repo: str) -> dict:
        return {"repo": repo}

    async def upsert(self, records: List[VectorRecord]) -> int:
        """Insert or overwrite records by ID."""
        if not records:
            return 0
        await asyncio.to_thread(
            self.collection.upsert,
            ids=[r.id for r in records],
            embeddings=[r.values for r in records],
            documents=[r.document for r in records],
            metadatas=[r.metadata.model_dump() for r in records],
        )
        return len(records)

    async def query(self, vector: List[float], top_k: int, repo: str) -> List[ContextMatch]:
        """Nearest neighbours of ``vector`` among ``repo``'s records, most relevant first."""
        available = await asyncio.to_thread(self.collection.count)
        if available == 0:
            return []

        results = await asyncio.to_thread(
            self.collection.query,
            query_embeddings=[vector],
            n_results=min(top_k, available),
            where=self._repo_filter(repo),
            include=["documents", "metadatas", "distances"],
        )

        # Chroma returns lists of lists (one per query)
        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0]
        metadatas = results["metadatas"][0]
        distances = results["distances"][0] if results.get("distances") else [0.0] * len(ids)

        return [
            ContextMatch(
                id=chunk_id,
                text=documents[i] or "",
                path=(metadatas[i] or {}).get("path", ""),
                score=1.0 - float(distances[i]),
            )
            for i, chunk_id in enumerate(ids)
        ]

    async def list_ids(self, repo: str, limit: int) -> List[str]:
        """IDs of up to ``limit`` records tagged with ``repo``."""
        results = await asyncio.to_thread(
            self.collection.get,
            where=self._repo_filter(repo),
            limit=limit,
            include=[],
        )
        return list(results["ids"])

    async def delete_ids(self, ids: List[str]) -> int:
        if not ids:
            return 0
        await asyncio.to_thread(self.collection.delete, ids=ids)
        return len(ids)

    async def count(self) -> int:
        return await asyncio.to_thread(self.collection.count)
