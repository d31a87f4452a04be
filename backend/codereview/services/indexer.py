"""
Index Sync Engine - Keeps the vector index of a repository in sync.

Pipeline per repository: crawl -> fetch blob -> chunk -> embed -> upsert.
"""

import asyncio
import time
from typing import Optional

from codereview.config import settings
from codereview.models.chunk import VectorRecord
from codereview.models.repo import IndexResult, RepoFile, split_full_name
from codereview.services.blob_fetcher import BlobFetcher
from codereview.services.chunker import Chunker
from codereview.services.crawler import TreeCrawler
from codereview.utils.embeddings import EmbeddingService
from codereview.utils.logger import get_logger
from codereview.utils.vector_store import VectorStore

logger = get_logger(__name__)


class IndexSyncEngine:
    """
    Manages the indexing process:
    1. List files at a branch
    2. Fetch and chunk each file (fixed worker pool)
    3. Generate embeddings (bounded per file)
    4. Upsert into the vector store in batches

    Merges trigger a full delete-then-rebuild. Every merge re-embeds the
    whole repository; that is the known scaling ceiling of this design.
    """

    def __init__(
        self,
        crawler: TreeCrawler,
        fetcher: BlobFetcher,
        chunker: Chunker,
        embeddings: EmbeddingService,
        store: VectorStore,
        workers: Optional[int] = None,
        embed_concurrency: Optional[int] = None,
        upsert_batch_size: Optional[int] = None,
        delete_query_cap: Optional[int] = None,
        delete_batch_size: Optional[int] = None,
    ):
        self.crawler = crawler
        self.fetcher = fetcher
        self.chunker = chunker
        self.embeddings = embeddings
        self.store = store
        self.workers = max(1, workers or settings.index_workers)
        self.embed_concurrency = max(1, embed_concurrency or settings.embed_concurrency)
        self.upsert_batch_size = max(1, upsert_batch_size or settings.upsert_batch_size)
        self.delete_query_cap = max(1, delete_query_cap or settings.delete_query_cap)
        self.delete_batch_size = max(1, delete_batch_size or settings.delete_batch_size)
        self._repo_locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, repo_full_name: str) -> asyncio.Lock:
        lock = self._repo_locks.get(repo_full_name)
        if lock is None:
            lock = asyncio.Lock()
            self._repo_locks[repo_full_name] = lock
        return lock

    async def index_repository(self, repo_full_name: str, branch: str = "main") -> IndexResult:
        """
        Full indexing pass for a repository at ``branch``.

        A failure on one file is logged and the worker moves on; the file's
        chunks are simply absent from the index.
        """
        owner, repo = split_full_name(repo_full_name)
        started = time.monotonic()
        logger.info("indexing_started", repo=repo_full_name, branch=branch)

        files = await self.crawler.list_files(owner, repo, branch)
        result = IndexResult(repo=repo_full_name, branch=branch, files_total=len(files))

        if not files:
            logger.warning("no_files_to_index", repo=repo_full_name, branch=branch)
            return result

        cursor = 0

        async def _worker(worker_id: int) -> None:
            nonlocal cursor
            while cursor < len(files):
                # Claim the next file before the first await.
                file = files[cursor]
                cursor += 1
                try:
                    upserted = await self._index_file(owner, repo, repo_full_name, file)
                except Exception as e:
                    result.files_failed += 1
                    result.failed_files.append(file.path)
                    logger.warning(
                        "file_index_failed",
                        repo=repo_full_name,
                        path=file.path,
                        worker=worker_id,
                        error=f"{type(e).__name__}: {e}",
                    )
                    continue

                if upserted is None:
                    result.files_skipped += 1
                else:
                    result.files_indexed += 1
                    result.chunks_upserted += upserted

        await asyncio.gather(*[_worker(i) for i in range(min(self.workers, len(files)))])

        logger.info(
            "indexing_complete",
            repo=repo_full_name,
            branch=branch,
            files=result.files_total,
            indexed=result.files_indexed,
            skipped=result.files_skipped,
            failed=result.files_failed,
            chunks=result.chunks_upserted,
            elapsed_seconds=round(time.monotonic() - started, 2),
        )
        return result

    async def _index_file(self, owner: str, repo: str, repo_full_name: str, file: RepoFile) -> Optional[int]:
        """Index one file. Returns upserted record count, or None when skipped."""
        content = await self.fetcher.fetch_text(owner, repo, file.sha)
        if content is None:
            return None

        chunks = self.chunker.chunk_file(repo_full_name, file, content)
        if not chunks:
            return 0

        vectors = await self.embeddings.embed_many([c.text for c in chunks], concurrency=self.embed_concurrency)
        records = [
            VectorRecord.from_chunk(chunk, values)
            for chunk, values in zip(chunks, vectors)
            if values is not None
        ]

        missing = len(chunks) - len(records)
        if missing:
            logger.warning("chunks_not_embedded", repo=repo_full_name, path=file.path, missing=missing)

        upserted = 0
        for i in range(0, len(records), self.upsert_batch_size):
            batch = records[i : i + self.upsert_batch_size]
            upserted += await self.store.upsert(batch)

        logger.debug("file_indexed", repo=repo_full_name, path=file.path, chunks=upserted)
        return upserted

    async def delete_repo_index(self, repo_full_name: str) -> int:
        """
        Delete every vector tagged with ``repo_full_name``.

        IDs are listed through the metadata filter (up to the query cap) and
        deleted in fixed-size batches. No matches is a normal outcome.
        """
        try:
            ids = await self.store.list_ids(repo_full_name, limit=self.delete_query_cap)
        except Exception as e:
            logger.error("index_delete_failed", repo=repo_full_name, stage="list", error=str(e))
            return 0

        if not ids:
            logger.info("no_vectors_found", repo=repo_full_name)
            return 0

        if len(ids) >= self.delete_query_cap:
            logger.warning("delete_query_cap_reached", repo=repo_full_name, cap=self.delete_query_cap)

        deleted = 0
        try:
            for i in range(0, len(ids), self.delete_batch_size):
                deleted += await self.store.delete_ids(ids[i : i + self.delete_batch_size])
        except Exception as e:
            logger.error("index_delete_failed", repo=repo_full_name, stage="delete", deleted=deleted, error=str(e))
            return deleted

        logger.info("index_deleted", repo=repo_full_name, vectors=deleted)
        return deleted

    async def reindex_repository(self, repo_full_name: str, branch: str = "main") -> IndexResult:
        """Delete then rebuild, serialized per repository."""
        lock = self._lock_for(repo_full_name)
        if lock.locked():
            logger.info("reindex_waiting_for_lease", repo=repo_full_name)
        async with lock:
            await self.delete_repo_index(repo_full_name)
            return await self.index_repository(repo_full_name, branch)
