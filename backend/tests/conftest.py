import asyncio
import base64
import math

import httpx
import pytest

from codereview.models.chunk import ContextMatch


def blob_payload(text: str) -> dict:
    data = text.encode("utf-8")
    return {"content": base64.b64encode(data).decode("ascii"), "encoding": "base64", "size": len(data)}


class FakeGitHub:
    """In-memory stand-in for GitHubClient."""

    def __init__(self):
        self.files = {}  # path -> (sha, text)
        self.pull_files = []
        self.review_comments = []
        self.login = "review-bot"
        self.head_sha = "head-sha"
        self.diff = ""
        self.create_review_calls = []
        self.create_review_failures = {}  # call number (1-based) -> exception
        self.deleted_comment_ids = []
        self.failing_comment_ids = set()
        self.blob_calls = {}
        self.in_flight_blobs = 0
        self.max_in_flight_blobs = 0

    def set_files(self, files: dict) -> None:
        """``files`` maps path -> text; the SHA is derived from the text."""
        self.files = {path: (f"sha-{abs(hash(text))}", text) for path, text in files.items()}

    async def get_branch(self, owner, repo, branch):
        return {"name": branch, "commit": {"sha": "commit-1", "commit": {"tree": {"sha": "tree-1"}}}}

    async def get_tree(self, owner, repo, tree_sha, recursive=True):
        entries = [
            {"path": path, "type": "blob", "sha": sha, "size": len(text)}
            for path, (sha, text) in self.files.items()
        ]
        return {"sha": tree_sha, "tree": entries, "truncated": False}

    async def get_blob(self, owner, repo, sha):
        self.blob_calls[sha] = self.blob_calls.get(sha, 0) + 1
        self.in_flight_blobs += 1
        self.max_in_flight_blobs = max(self.max_in_flight_blobs, self.in_flight_blobs)
        try:
            await asyncio.sleep(0)
            for file_sha, text in self.files.values():
                if file_sha == sha:
                    return blob_payload(text)
            raise httpx.HTTPError(f"blob {sha} not found")
        finally:
            self.in_flight_blobs -= 1

    async def get_pull(self, owner, repo, pr_number):
        return {"number": pr_number, "head": {"sha": self.head_sha}}

    async def get_pull_diff(self, owner, repo, pr_number):
        return self.diff

    async def list_pull_files(self, owner, repo, pr_number):
        return list(self.pull_files)

    async def list_review_comments(self, owner, repo, pr_number):
        return list(self.review_comments)

    async def delete_review_comment(self, owner, repo, comment_id):
        if comment_id in self.failing_comment_ids:
            raise httpx.HTTPError(f"cannot delete {comment_id}")
        self.deleted_comment_ids.append(comment_id)

    async def create_review(self, owner, repo, pr_number, commit_id, body, comments, event="COMMENT"):
        call_number = len(self.create_review_calls) + 1
        self.create_review_calls.append({"commit_id": commit_id, "body": body, "comments": comments})
        failure = self.create_review_failures.get(call_number)
        if failure is not None:
            raise failure
        return {"id": call_number}

    async def get_authenticated_user(self):
        return {"login": self.login}

    async def close(self):
        pass


class FakeEmbeddings:
    """Deterministic embeddings; texts containing ``FAIL`` cannot be embedded."""

    provider = "fake"
    model = "fake-embedding"

    def __init__(self, dimension: int = 8):
        self.dimension = dimension
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.vectors = {}  # text -> forced vector

    async def embed(self, text):
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if "FAIL" in text:
                return None
            if text in self.vectors:
                return list(self.vectors[text])
            vector = [0.0] * self.dimension
            for i, ch in enumerate(text):
                vector[(ord(ch) + i) % self.dimension] += 1.0
            return vector
        finally:
            self.in_flight -= 1

    async def embed_many(self, texts, concurrency=4):
        semaphore = asyncio.Semaphore(concurrency)

        async def _one(text):
            async with semaphore:
                return await self.embed(text)

        return list(await asyncio.gather(*[_one(t) for t in texts]))


def _cosine(a, b):
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class FakeVectorStore:
    """Dict-backed vector store with the VectorStore interface."""

    collection_name = "fake"

    def __init__(self):
        self.records = {}  # id -> VectorRecord
        self.upsert_calls = []
        self.delete_calls = []
        self.fail_upsert_paths = set()
        self.fail_query = False

    async def upsert(self, records):
        if any(r.metadata.path in self.fail_upsert_paths for r in records):
            raise httpx.HTTPError("upsert rejected")
        self.upsert_calls.append([r.id for r in records])
        for record in records:
            self.records[record.id] = record
        return len(records)

    async def query(self, vector, top_k, repo):
        if self.fail_query:
            raise httpx.HTTPError("store unavailable")
        scored = [
            (_cosine(vector, r.values), r)
            for r in self.records.values()
            if r.metadata.repo == repo
        ]
        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            ContextMatch(id=r.id, text=r.document, path=r.metadata.path, score=score)
            for score, r in scored[:top_k]
        ]

    async def list_ids(self, repo, limit):
        return [rid for rid, r in self.records.items() if r.metadata.repo == repo][:limit]

    async def delete_ids(self, ids):
        self.delete_calls.append(list(ids))
        for rid in ids:
            self.records.pop(rid, None)
        return len(ids)

    async def count(self):
        return len(self.records)

    def ids_for(self, repo):
        return {rid for rid, r in self.records.items() if r.metadata.repo == repo}


class FakeRecordStore:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def _call(self, name, *args):
        self.calls.append((name, *args))
        if self.fail:
            raise httpx.HTTPError(f"{name} failed")

    async def add_commit(self, repo, pr_number, commit_id):
        await self._call("add_commit", repo, pr_number, commit_id)

    async def delete_review(self, repo, pr_number):
        await self._call("delete_review", repo, pr_number)

    async def add_review(self, repo, pr_number, comments):
        await self._call("add_review", repo, pr_number, len(comments))

    async def add_pull_request(self, owner, repo, pr_number):
        await self._call("add_pull_request", owner, repo, pr_number)

    async def close(self):
        pass


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddings()


@pytest.fixture
def fake_store():
    return FakeVectorStore()


@pytest.fixture
def fake_records():
    return FakeRecordStore()


@pytest.fixture
def failing_records():
    return FakeRecordStore(fail=True)
