"""Main FastAPI application."""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import load_config
from ..core import Embedder
from ..exceptions import IndexServiceError
from ..storage import VectorIndex
from .routes import indexing, search
from .service import build_service

logger = logging.getLogger(__name__)


def create_app(
    cfg: Optional[Dict] = None,
    embedder: Optional[Embedder] = None,
    index: Optional[VectorIndex] = None,
) -> FastAPI:
    """Build the application; run with ``uvicorn codelocate.web.app:create_app --factory``."""
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    cfg = cfg or load_config()
    service = build_service(cfg, embedder=embedder, index=index)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if cfg.get("indexing", {}).get("index_on_startup", True):
            service.start_full_index()
        yield
        await service.shutdown()

    app = FastAPI(title="codelocate", lifespan=lifespan)
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_router = APIRouter(prefix="/api")
    api_router.include_router(indexing.router)
    api_router.include_router(search.router)

    @api_router.get("/health")
    async def health():
        try:
            units = await asyncio.to_thread(service.searcher.index.count)
        except IndexServiceError as e:
            logger.warning(f"Vector index unavailable: {e}")
            return {"status": "degraded", "project": service.project, "indexed_units": None}
        return {"status": "ok", "project": service.project, "indexed_units": units}

    app.include_router(api_router)
    return app
