"""
AI Code Review Backend - FastAPI Application Entry Point

Receives GitHub pull request webhooks, reviews pull requests with repository
context retrieved from a vector index, and keeps that index in sync on merge.
"""

import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from codereview.config import settings
from codereview.container import Services, build_services
from codereview.utils.logger import setup_logging, get_logger, set_delivery_id
from codereview.routes import health, webhook


def create_app(services: Services | None = None) -> FastAPI:
    """Create the application. ``services`` replaces the default wiring (tests)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown."""
        setup_logging(debug=settings.debug)
        logger = get_logger("main")

        app.state.services = services or build_services()
        app.state.services.jobs.start()

        logger.info(
            "starting_code_review_backend",
            version=settings.app_version,
            embedding_provider=app.state.services.embeddings.provider,
            embedding_model=app.state.services.embeddings.model,
            collection=app.state.services.store.collection_name,
        )

        yield

        logger.info("shutting_down_code_review_backend")
        await app.state.services.close()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Repository-grounded AI code review",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def delivery_id_middleware(request: Request, call_next):
        """Bind the GitHub delivery GUID (or a fresh id) to every log line."""
        delivery_id = set_delivery_id(request.headers.get("X-GitHub-Delivery"))
        response = await call_next(request)
        response.headers["X-Delivery-ID"] = delivery_id
        return response

    app.include_router(health.router)
    app.include_router(webhook.router)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler to ensure JSON response."""
        logger = get_logger("main")
        logger.error("unhandled_exception", error=str(exc), traceback=traceback.format_exc())
        return JSONResponse(
            status_code=500,
            content={"detail": f"Internal Server Error: {str(exc)}"},
        )

    @app.get("/", include_in_schema=False)
    async def root():
        return {"message": "AI Code Review Backend running", "docs": "/docs"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "codereview.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
