from __future__ import annotations

import logging

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI

from . import app_context
from .app.routes.products import router as products_router
from .app.routes.teams import router as teams_router
from .config import get_app_config
from .logging_config import configure_logging

load_dotenv()

config = get_app_config()
configure_logging(config.log_level)

logger = logging.getLogger(__name__)


def get_conn():
    return psycopg2.connect(**config.database.connect_kwargs())


app_context.configure(get_conn=get_conn)

app = FastAPI(title="Expiry Teams API")
app.include_router(teams_router)
app.include_router(products_router)


@app.get("/api/health")
def health():
    return {"ok": True}


logger.info(
    "Expiry Teams API ready (cache=%s, subscription enforcement=%s)",
    "redis" if config.redis_url else "memory",
    "on" if config.enforce_team_subscription else "off",
)
