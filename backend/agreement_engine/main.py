"""
Agreement Engine - FastAPI Application

Main entry point for the agreement engine backend.

Architecture:
- Trigger -> JobOrchestrator -> gates -> per member DiscountCheckService
- DiscountCheckService -> EligibilityResolver -> DirectoryClient (one token refresh)
- Members -> Pricing Assembler -> Agreement payload -> DocumentRenderer
- Document -> DownloadTokenStore -> attachment appended to the organization
"""
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings
from .database import build_engine, build_session_factory, init_db
from .routers import discount_check_router, downloads_router, validation_router
from .services.directory import DirectoryClient, RefreshPolicy, build_token_provider
from .services.discount_check import DiscountCheckService
from .services.eligibility import EligibilityResolver
from .services.orchestration import InMemoryJobRegistry, JobOrchestrator
from .services.rendering import DownloadTokenStore, build_renderer
from .services.store import SqlAlchemyStore

logger = logging.getLogger(__name__)

PURGE_INTERVAL_SECONDS = 60


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def wire_services(app: FastAPI, settings: Settings):
    """Build the component graph once and hang it on app.state."""
    engine = build_engine(settings.database_url)
    init_db(engine)
    store = SqlAlchemyStore(build_session_factory(engine), settings.pricing)

    directory = DirectoryClient(
        settings.directory,
        build_token_provider(settings.directory),
        RefreshPolicy(max_refreshes=1),
    )
    resolver = EligibilityResolver(directory, settings.resolver, settings.pricing)
    checks = DiscountCheckService(resolver, directory, store)
    downloads = DownloadTokenStore(ttl_seconds=settings.jobs.download_ttl_seconds)

    app.state.settings = settings
    app.state.engine = engine
    app.state.store = store
    app.state.directory = directory
    app.state.discount_checks = checks
    app.state.downloads = downloads
    app.state.orchestrator = JobOrchestrator(
        store=store,
        checks=checks,
        renderer=build_renderer(settings.jobs),
        downloads=downloads,
        registry=InMemoryJobRegistry(),
        settings=settings,
    )


async def purge_downloads_periodically(downloads: DownloadTokenStore, interval: float = PURGE_INTERVAL_SECONDS):
    while True:
        await asyncio.sleep(interval)
        downloads.purge_expired()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Application factory; settings default to the environment."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build settings and services on startup, release them on shutdown."""
        resolved = settings or Settings.from_env()
        configure_logging(resolved)
        wire_services(app, resolved)
        purger = asyncio.create_task(purge_downloads_periodically(app.state.downloads))
        logger.info("Agreement engine started")
        yield
        purger.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await purger
        await app.state.orchestrator.wait_idle()
        await app.state.directory.close()
        app.state.engine.dispose()

    app = FastAPI(
        lifespan=lifespan,
        title="Agreement Engine",
        description="""
    Agreement Engine - Discount Validation and Agreement Generation

    Validates each nominated member's affiliation discount against the
    external identity directory, prices the organization's memberships and
    generates the incubator agreement.

    ## Pipeline
    1. **Gates**: organization form, confirmation, representative form
    2. **Eligibility Resolver**: member -> directory record -> discount buckets
    3. **Pricing Assembler**: members + pricing matrix -> monthly fee
    4. **Renderer**: agreement payload -> document, attached to the organization
    """,
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(validation_router)
    app.include_router(discount_check_router)
    app.include_router(downloads_router)

    @app.get("/")
    async def root():
        """Root endpoint - API information."""
        return {
            "name": "Agreement Engine",
            "version": "1.0.0",
            "docs": "/docs",
        }

    @app.get("/healthz")
    async def healthz():
        return {"ok": True}

    return app


app = create_app()


# For running with: python -m agreement_engine.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
