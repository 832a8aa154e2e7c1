import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import subscription, system
from app.core import config
from app.core.errors import register_exception_handlers
from app.core.logging_config import setup_logging

logger = logging.getLogger(__name__)


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Pairing Premium API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)

register_exception_handlers(app)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(subscription.router)
app.include_router(system.router)


# ============================================
# ✅ STARTUP: LOGGING + SCHEMA
# ============================================

@app.on_event("startup")
def on_startup():
    setup_logging(config.LOG_LEVEL)

    if config.RUN_MIGRATIONS:
        from app.db.migrate import run_migrations
        run_migrations()
    else:
        from app.db.init_db import init_db
        init_db()

    logger.info("Pairing Premium API started")


@app.get("/")
def root():
    return {"status": "Pairing Premium API running"}
