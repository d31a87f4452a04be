import asyncio

from fastapi.testclient import TestClient

from codereview.main import create_app


class FakeJobs:
    def __init__(self, accept=True):
        self.accept = accept
        self.submitted = []
        self.contexts = []
        self.started = False

    @property
    def pending(self):
        return len(self.submitted)

    def start(self):
        self.started = True

    def submit(self, name, factory, **context):
        if not self.accept:
            return False
        self.submitted.append((name, factory))
        self.contexts.append(context)
        return True


class FakePipeline:
    def __init__(self):
        self.calls = []

    async def review_pull_request(self, event):
        self.calls.append(("review", event.repo, event.pr_number))

    async def reindex_after_merge(self, event):
        self.calls.append(("reindex", event.repo, event.pull_request.base.ref))


class FakeServices:
    def __init__(self, accept=True):
        self.jobs = FakeJobs(accept)
        self.pipeline = FakePipeline()
        self.embeddings = type("Embeddings", (), {"provider": "mock", "model": "test-embedding"})()
        self.store = type("Store", (), {"collection_name": "test"})()
        self.closed = False

    async def close(self):
        self.closed = True


def _payload(action="opened", merged=False):
    return {
        "action": action,
        "number": 7,
        "repository": {"full_name": "acme/shop", "name": "shop", "owner": {"login": "acme"}},
        "pull_request": {
            "number": 7,
            "merged": merged,
            "diff_url": "https://github.com/acme/shop/pull/7.diff",
            "head": {"ref": "feature", "sha": "head-sha"},
            "base": {"ref": "main", "sha": "base-sha"},
        },
    }


def _post(client, payload, event="pull_request", delivery="delivery-1"):
    return client.post(
        "/webhook/github",
        json=payload,
        headers={"X-GitHub-Event": event, "X-GitHub-Delivery": delivery},
    )


def test_opened_pull_request_queues_a_review():
    services = FakeServices()
    with TestClient(create_app(services)) as client:
        response = _post(client, _payload("opened"))

    assert response.status_code == 200
    assert response.json() == {"message": "PR review triggered", "queued": True}
    assert response.headers["X-Delivery-ID"] == "delivery-1"
    assert services.jobs.started
    assert services.closed

    [(name, factory)] = services.jobs.submitted
    assert name == "review:acme/shop#7"
    assert services.jobs.contexts == [{"repo": "acme/shop", "pr": 7}]
    asyncio.run(factory())
    assert services.pipeline.calls == [("review", "acme/shop", 7)]


def test_merged_pull_request_queues_a_reindex():
    services = FakeServices()
    with TestClient(create_app(services)) as client:
        response = _post(client, _payload("closed", merged=True))

    assert response.json() == {"message": "Re-indexing repository after merge", "queued": True}
    [(name, factory)] = services.jobs.submitted
    assert name == "reindex:acme/shop@main"
    assert services.jobs.contexts == [{"repo": "acme/shop", "branch": "main"}]
    asyncio.run(factory())
    assert services.pipeline.calls == [("reindex", "acme/shop", "main")]


def test_other_events_are_acknowledged():
    services = FakeServices()
    with TestClient(create_app(services)) as client:
        push = _post(client, {"ref": "refs/heads/main"}, event="push")
        closed = _post(client, _payload("closed", merged=False))
        labeled = _post(client, _payload("labeled"))

    for response in (push, closed, labeled):
        assert response.status_code == 200
        assert response.json() == {"message": "Webhook received", "queued": False}
    assert services.jobs.submitted == []


def test_invalid_pull_request_payload():
    services = FakeServices()
    with TestClient(create_app(services)) as client:
        response = _post(client, {"action": "opened", "repository": {"full_name": "acme/shop"}})

    assert response.status_code == 400
    assert services.jobs.submitted == []


def test_non_json_body_is_rejected():
    services = FakeServices()
    with TestClient(create_app(services)) as client:
        response = client.post(
            "/webhook/github",
            content="action=opened&number=7",
            headers={"X-GitHub-Event": "pull_request", "Content-Type": "application/x-www-form-urlencoded"},
        )

    assert response.status_code == 400
    assert response.json() == {"message": "Invalid pull_request payload"}
    assert services.jobs.submitted == []


def test_full_queue_returns_503():
    services = FakeServices(accept=False)
    with TestClient(create_app(services)) as client:
        response = _post(client, _payload("synchronize"))

    assert response.status_code == 503
    assert response.json()["queued"] is False


def test_health():
    services = FakeServices()
    with TestClient(create_app(services)) as client:
        response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["pending_jobs"] == 0
