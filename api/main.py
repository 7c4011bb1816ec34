"""FastAPI application for the ShopCompare API.

Run locally with:

    python -m api.main

or through uvicorn directly:

    uvicorn api.main:app --reload
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import APIConfig, load_config
from .database import close_db, init_db
from .routes import router

logger = logging.getLogger(__name__)


def create_app(config: APIConfig | None = None) -> FastAPI:
    """Create the API application.

    The database is initialized when the app starts and disposed when it
    shuts down.

    Args:
        config: API configuration. Loaded from env/YAML when omitted.
    """
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await init_db(config.database_url, echo=config.debug)
        logger.info("ShopCompare API started")
        try:
            yield
        finally:
            await close_db()

    app = FastAPI(title="ShopCompare API", debug=config.debug, lifespan=lifespan)
    app.state.config = config
    app.include_router(router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.DEBUG if app.state.config.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=app.state.config.host, port=app.state.config.port)
