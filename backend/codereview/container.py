"""
Service wiring. Every service is constructed here explicitly and handed its
collaborators, so tests and scripts can swap any of them.
"""

from dataclasses import dataclass
from typing import Optional

from codereview.services.blob_fetcher import BlobFetcher
from codereview.services.chunker import Chunker
from codereview.services.crawler import TreeCrawler
from codereview.services.indexer import IndexSyncEngine
from codereview.services.job_queue import JobQueue
from codereview.services.retriever import RetrievalService
from codereview.services.review_dispatcher import ReviewDispatcher
from codereview.services.review_pipeline import ReviewPipeline
from codereview.utils.embeddings import EmbeddingService
from codereview.utils.github import GitHubClient
from codereview.utils.llm import ReviewLLM
from codereview.utils.record_store import RecordStore
from codereview.utils.vector_store import VectorStore


@dataclass
class Services:
    github: GitHubClient
    records: RecordStore
    embeddings: EmbeddingService
    store: VectorStore
    indexer: IndexSyncEngine
    retriever: RetrievalService
    dispatcher: ReviewDispatcher
    pipeline: ReviewPipeline
    jobs: JobQueue

    async def close(self) -> None:
        await self.jobs.stop()
        await self.github.close()
        await self.records.close()


def build_services(
    github: Optional[GitHubClient] = None,
    store: Optional[VectorStore] = None,
    embeddings: Optional[EmbeddingService] = None,
) -> Services:
    """Build the service graph from settings."""
    github = github or GitHubClient()
    store = store or VectorStore()
    embeddings = embeddings or EmbeddingService()
    records = RecordStore()

    indexer = IndexSyncEngine(
        crawler=TreeCrawler(github),
        fetcher=BlobFetcher(github),
        chunker=Chunker(),
        embeddings=embeddings,
        store=store,
    )
    retriever = RetrievalService(embeddings, store)
    dispatcher = ReviewDispatcher(github, records=records)
    pipeline = ReviewPipeline(
        github=github,
        retriever=retriever,
        llm=ReviewLLM(),
        dispatcher=dispatcher,
        indexer=indexer,
        records=records,
    )

    return Services(
        github=github,
        records=records,
        embeddings=embeddings,
        store=store,
        indexer=indexer,
        retriever=retriever,
        dispatcher=dispatcher,
        pipeline=pipeline,
        jobs=JobQueue(),
    )
