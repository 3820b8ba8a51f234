import logging
from datetime import timedelta
from fastapi import FastAPI
from app.db import Base, engine
from app.deps import get_dispatcher, get_video_store
from app.logging_setup import configure_logging
from app.settings import settings
from app.routes.videos import router as videos_router
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # ----- startup -----
    configure_logging(settings.LOG_LEVEL)
    # Dev-only: create tables if they do not exist.
    # In prod, prefer running Alembic migrations instead of create_all.
    Base.metadata.create_all(bind=engine)

    # Rows still "processing" from a previous process will never be finished
    swept = get_video_store().fail_stale_processing(timedelta(seconds=settings.stale_processing_after_sec))
    if swept:
        logger.warning("marked %d stale processing videos as failed", swept)

    yield

    # ----- shutdown -----
    await get_dispatcher().shutdown()
    # Dispose pooled DB connections so the process exits cleanly
    engine.dispose()

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

@app.get("/healthz", tags=["health"])
def healthz():
    return {"status": "ok"}

# Versioned API
app.include_router(videos_router, prefix=settings.API_PREFIX)
