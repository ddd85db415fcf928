"""HTTP boundary.

``create_app`` builds the FastAPI application around one long-lived
``Aggregator``.  Run it with ``secresearch serve`` or directly with
``uvicorn --factory secresearch.api:create_app``.
"""

import logging
import os

from fastapi import Depends, FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .aggregator import Aggregator, build_aggregator
from .config import AppConfig, find_config, load_config
from .history import SearchHistory
from .status import check_sources

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "search": "/search",
    "history": "/history",
    "sourcesStatus": "/sources/status",
    "health": "/health",
}


def get_aggregator(request: Request) -> Aggregator:
    return request.app.state.aggregator


def get_history(request: Request) -> SearchHistory:
    return request.app.state.history


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def create_app(
    aggregator: Aggregator | None = None,
    config: AppConfig | None = None,
    history: SearchHistory | None = None,
) -> FastAPI:
    """Build the API application.

    Args:
        aggregator: Aggregator to serve (built from ``config`` by default).
        config: Application configuration (loaded from the working
            directory and environment by default).
        history: Search history store.

    Returns:
        Configured ``FastAPI`` instance.
    """
    if config is None:
        config = load_config(find_config())
    app = FastAPI(title="SecResearch API", version=__version__)
    app.state.config = config
    app.state.aggregator = aggregator or build_aggregator(config)
    app.state.history = history or SearchHistory(max_size=config.search.history_size)

    origins = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "DELETE"],
        allow_headers=["*"],
    )

    @app.get("/search")
    async def search(
        q: str = Query(""),
        filter: str = Query("all"),
        sort: str = Query("date"),
        aggregator: Aggregator = Depends(get_aggregator),
        history: SearchHistory = Depends(get_history),
    ):
        """Search every configured source and return ranked results."""
        response = await aggregator.search_all(q, filter=filter, sort=sort)
        if not response.ok:
            return JSONResponse(status_code=500, content=response.to_payload())
        history.record(response.query)
        return response.to_payload()

    @app.get("/sources/status")
    async def sources_status(config: AppConfig = Depends(get_config)):
        """Probe every upstream source."""
        try:
            return await run_in_threadpool(check_sources, config)
        except Exception as e:
            logger.exception("Source status check failed")
            return JSONResponse(status_code=500, content={"status": "error", "error": str(e)})

    @app.get("/history")
    async def get_search_history(history: SearchHistory = Depends(get_history)):
        return {"history": history.items()}

    @app.delete("/history")
    async def clear_search_history(history: SearchHistory = Depends(get_history)):
        history.clear()
        return {"history": []}

    @app.get("/health")
    async def health():
        return {"status": "healthy", "version": __version__, "endpoints": ENDPOINTS}

    return app
