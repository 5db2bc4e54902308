"""FastAPI application entry point for the one-and-done pool."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from oneanddone.api import router as api_router
from oneanddone.config import Settings, get_settings
from oneanddone.models.database import Database
from oneanddone.scheduler import SchedulerManager, complete_past_events_job

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around one Database."""
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - startup and shutdown events."""
        # Startup
        logger.info("Starting one-and-done pool...")

        settings.db_path.parent.mkdir(parents=True, exist_ok=True)
        database = Database.from_settings(settings)
        await database.init()
        app.state.db = database

        scheduler = None
        if settings.disable_background:
            logger.info("Background jobs disabled")
        else:
            scheduler = SchedulerManager(database, settings)
            scheduler.setup_daily_jobs()
            await scheduler.start()
            # Catch up on anything that ended while we were down
            try:
                await complete_past_events_job(database)
            except Exception as e:
                logger.error(f"Startup completion sweep failed: {e}")
        app.state.scheduler = scheduler

        yield

        # Shutdown
        logger.info("Shutting down...")
        if app.state.scheduler:
            await app.state.scheduler.stop()
        await database.dispose()

    app = FastAPI(
        title="One and Done",
        description="Season-long golf pool: use each golfer once",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(api_router, tags=["pool"])

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "oneanddone.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
