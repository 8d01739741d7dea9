from __future__ import annotations

import logging

from dotenv import load_dotenv
from fastapi import FastAPI

from src.app.auth import auth_enabled
from src.app.routes.api_holdings import router as holdings_router
from src.app.routes.api_pdfs import router as pdfs_router
from src.db.init_db import init_db


load_dotenv()

logger = logging.getLogger(__name__)


def create_app(*, init_database: bool = True) -> FastAPI:
    app = FastAPI(title="Silent Ledger", version="0.1.0")

    if init_database:

        @app.on_event("startup")
        def _startup() -> None:
            init_db()
            if not auth_enabled():
                logger.warning("APP_PASSWORD is not set; the API is unauthenticated. Run locally only.")

    app.include_router(holdings_router)
    app.include_router(pdfs_router)
    return app


app = create_app()
