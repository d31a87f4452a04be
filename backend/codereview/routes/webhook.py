"""
GitHub webhook endpoint.

Acknowledges every delivery immediately. Review and reindex work is queued on
the background job queue; its outcome is only visible in the logs.
"""

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from typing import Optional

from codereview.models.webhook import PullRequestEvent, WebhookResponse
from codereview.utils.logger import get_logger

router = APIRouter(prefix="/webhook", tags=["webhook"])
logger = get_logger(__name__)


@router.post("/github", response_model=WebhookResponse)
async def github_webhook(
    request: Request,
    x_github_event: Optional[str] = Header(default=None),
):
    """
    Receive a GitHub event.

    ``pull_request`` opened/synchronize queues a review; a merged ``closed``
    queues a reindex of the base branch. Everything else is acknowledged and
    ignored.
    """
    if x_github_event != "pull_request":
        return WebhookResponse(message="Webhook received")

    try:
        event = PullRequestEvent.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.warning("webhook_payload_invalid", github_event=x_github_event, error=str(e))
        return JSONResponse(status_code=400, content={"message": "Invalid pull_request payload"})

    services = request.app.state.services

    if event.wants_review:
        queued = services.jobs.submit(
            f"review:{event.repo}#{event.pr_number}",
            lambda: services.pipeline.review_pull_request(event),
            repo=event.repo,
            pr=event.pr_number,
        )
        return _accepted("PR review triggered", queued)

    if event.is_merge:
        queued = services.jobs.submit(
            f"reindex:{event.repo}@{event.pull_request.base.ref}",
            lambda: services.pipeline.reindex_after_merge(event),
            repo=event.repo,
            branch=event.pull_request.base.ref,
        )
        return _accepted("Re-indexing repository after merge", queued)

    return WebhookResponse(message="Webhook received")


def _accepted(message: str, queued: bool):
    if not queued:
        return JSONResponse(status_code=503, content={"message": "Job queue full", "queued": False})
    return WebhookResponse(message=message, queued=True)
