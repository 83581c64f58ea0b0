from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .admin import router as admin_router
from .auth import router as auth_router
from .business import router as business_router
from .functions import router as functions_router
from .logging_config import setup_logging
from .settings import require_secrets, settings

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Vass Order Desk")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or ["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(business_router)
app.include_router(functions_router)


@app.on_event("startup")
async def _startup() -> None:
    # Imports and tests work without .env; a running server needs the credentials.
    require_secrets()
    logger.info("Started in %s mode", settings.app_env)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
