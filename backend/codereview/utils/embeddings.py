"""
Embedding Service - Turns chunk and query text into fixed-length vectors.

Gemini ``text-embedding-004`` (768 dims) when GEMINI_API_KEY is set, otherwise
deterministic mock vectors of the same dimension. Indexing and retrieval must
share one configuration: vectors from different models are not comparable.
"""

import asyncio
import hashlib
import zlib
from typing import List, Optional

import numpy as np
from google import genai
from google.genai import types

from codereview.config import settings
from codereview.utils.logger import get_logger

logger = get_logger(__name__)


class EmbeddingService:
    """Generates embeddings for text chunks and queries."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimension: Optional[int] = None,
    ):
        api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_embedding_model
        self.dimension = dimension or settings.embedding_dimension
        self.gemini_client = None
        self.provider = "mock"

        if api_key:
            self.gemini_client = genai.Client(api_key=api_key)
            self.provider = "gemini"
            logger.info("embeddings_initialized", provider="Gemini", model=self.model, dimension=self.dimension)
        else:
            logger.warning(
                "embeddings_initialized",
                provider="mock",
                reason="No GEMINI_API_KEY configured",
            )

    async def embed(self, text: str) -> Optional[List[float]]:
        """Embed one text. Returns None on failure instead of raising."""
        try:
            if self.provider == "gemini":
                return await self._get_gemini_embedding(text)
            return self._get_mock_embeddings([text])[0]
        except Exception as e:
            error_detail = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
            logger.warning("embedding_failed", provider=self.provider, text_len=len(text), error=error_detail)
            return None

    async def embed_many(self, texts: List[str], concurrency: int = 4) -> List[Optional[List[float]]]:
        """Embed several texts with at most ``concurrency`` calls in flight.

        Output order matches input order; failed entries are None.
        """
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def _one(text: str) -> Optional[List[float]]:
            async with semaphore:
                return await self.embed(text)

        return list(await asyncio.gather(*[_one(t) for t in texts]))

    async def _get_gemini_embedding(self, text: str) -> List[float]:
        result = await self.gemini_client.aio.models.embed_content(
            model=self.model,
            contents=text,
            config=types.EmbedContentConfig(output_dimensionality=self.dimension),
        )
        values = list(result.embeddings[0].values)
        if len(values) != self.dimension:
            raise ValueError(f"Expected {self.dimension} dimensions, got {len(values)}")
        return values

    def _get_mock_embeddings(self, texts: List[str]) -> List[List[float]]:
        """Generate deterministic fake embeddings."""
        embeddings = []
        dim = self.dimension
        token_cap = 256

        for text in texts:
            vector = np.zeros(dim, dtype=np.float32)
            tokens = text.split()

            if not tokens:
                tokens = [hashlib.sha256(text.encode("utf-8", errors="ignore")).hexdigest()]

            for token in tokens[:token_cap]:
                token_bytes = token.encode("utf-8", errors="ignore")
                h = zlib.crc32(token_bytes)
                idx = h % dim
                sign = 1.0 if (h & 1) else -1.0
                vector[idx] += sign

            norm = np.linalg.norm(vector)
            if norm > 0:
                vector = vector / norm

            embeddings.append(vector.tolist())
        return embeddings
