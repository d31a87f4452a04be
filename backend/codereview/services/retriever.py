"""
Retriever service - Semantic search over a repository's indexed chunks.
"""

from typing import List, Optional

from codereview.config import settings
from codereview.models.chunk import ContextMatch
from codereview.utils.embeddings import EmbeddingService
from codereview.utils.logger import get_logger
from codereview.utils.vector_store import VectorStore

logger = get_logger(__name__)

CONTEXT_SEPARATOR = "\n\n"


class RetrievalService:
    """
    Retrieves relevant chunks for a query (usually a PR diff).

    Must share its EmbeddingService configuration with the indexer.
    """

    def __init__(self, embeddings: EmbeddingService, store: VectorStore, default_k: Optional[int] = None):
        self.embeddings = embeddings
        self.store = store
        self.default_k = default_k or settings.top_k

    async def search(self, repo: str, query: str, k: Optional[int] = None) -> List[ContextMatch]:
        """Top-k matches for ``query`` restricted to ``repo``. Raises on store errors."""
        k = k or self.default_k
        vector = await self.embeddings.embed(query)
        if vector is None:
            logger.warning("query_embedding_failed", repo=repo)
            return []
        return await self.store.query(vector, k, repo)

    async def retrieve_context(self, repo: str, query: str, k: Optional[int] = None) -> Optional[str]:
        """
        Join the top-k chunk texts with blank lines, most relevant first.

        Returns None when nothing is indexed or retrieval failed, so the caller
        can fall back to a context-free prompt.
        """
        try:
            matches = await self.search(repo, query, k)
        except Exception as e:
            logger.error("context_retrieval_failed", repo=repo, error=str(e))
            return None

        if not matches:
            logger.info("no_context_found", repo=repo)
            return None

        logger.info("retrieved_chunks", repo=repo, count=len(matches))
        return CONTEXT_SEPARATOR.join(m.text for m in matches)
