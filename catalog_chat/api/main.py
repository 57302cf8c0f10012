import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from catalog_chat import __version__
from catalog_chat.api import deps
from catalog_chat.config import get_settings
from catalog_chat.models.api_io import ChatModelInfo
from catalog_chat.utils.logging import configure_logging

from .routers import chat, chats

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Build the shared clients once, before the first request.
    orchestrator = deps.get_orchestrator()
    repo = deps.get_cloudsql_repo()
    try:
        repo.ensure_schema()
    except Exception as e:
        logger.error("Could not ensure Cloud SQL schema; conversations may not persist: %s", e, exc_info=True)
    logger.info("Catalog chat ready (default model %s)", orchestrator.settings.default_chat_model.model)
    yield
    repo.close()


app = FastAPI(
    title="Catalog Chat Backend",
    description="Chat over an ingested product catalog: search, price prediction and analysis.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Chat-Intent"],
)

app.include_router(chat.router)
app.include_router(chats.router)


@app.get("/models", response_model=List[ChatModelInfo])
async def get_available_models():
    """Models the caller may select by slug for general questions."""
    return [ChatModelInfo(slug=m.slug, is_default=m.is_default) for m in get_settings().chat_models]


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
