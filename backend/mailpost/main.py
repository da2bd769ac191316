"""
Mailpost API
FastAPI application that publishes inbound emails as posts in a GitHub repository.
"""

import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException

from mailpost.config import Settings
from mailpost.deps import get_settings, get_store
from mailpost.errors import StoreError
from mailpost.routers import publish
from mailpost.services.attachment_fetcher import AttachmentFetcher
from mailpost.services.github_store import GitHubStore
from mailpost.services.publisher import Publisher

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

VERSION = "0.1.0"
SERVICE_PORT = 5555


def create_app(
    settings: Settings,
    *,
    store: Optional[GitHubStore] = None,
    fetcher: Optional[AttachmentFetcher] = None,
) -> FastAPI:
    """
    Build the application around one Settings value.

    The GitHub client and the attachment fetcher are created here once and
    shared by every request through ``app.state``. Tests pass fakes in.
    """
    app = FastAPI(
        title="Mailpost API",
        description="Publish inbound emails as posts in a GitHub repository",
        version=VERSION,
    )

    app.state.settings = settings
    app.state.store = store or GitHubStore.from_settings(settings)
    app.state.fetcher = fetcher or AttachmentFetcher.from_settings(settings)
    app.state.publisher = Publisher.from_settings(app.state.store, settings)

    app.include_router(publish.router, prefix="/api", tags=["publish"])

    @app.on_event("startup")
    async def log_startup() -> None:
        logger.info(
            "Mailpost publishing to %s/%s@%s (posts: %r, assets: %r) on port %s",
            settings.github_user,
            settings.github_repo,
            settings.branch,
            settings.posts_dir,
            settings.assets_dir,
            SERVICE_PORT,
        )

    @app.on_event("shutdown")
    async def close_clients() -> None:
        await app.state.fetcher.aclose()
        await app.state.store.aclose()

    @app.get("/")
    async def root():
        return {"message": "Mailpost API", "version": VERSION}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/health/store")
    async def health_store(
        settings: Settings = Depends(get_settings),
        store: GitHubStore = Depends(get_store),
    ):
        """
        Check that the primary branch of the content repository is readable.

        Returns 503 when GitHub cannot be reached or the branch is missing.
        """
        try:
            head = await store.get_branch_head(settings.branch)
        except StoreError as exc:
            logger.error(f"Store health check failed: {exc}")
            raise HTTPException(
                status_code=503,
                detail=f"Repository check failed: {exc}",
            )
        return {"status": "ok", "branch": settings.branch, "head": head}

    return app
