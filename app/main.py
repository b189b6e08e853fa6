import logging

from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from app.db.base import get_db
from app.core.config import settings
from app.core.logging_setup import configure_logging
from app.routers import changelog as changelog_router
from app.routers import snapshots as snapshots_router
from app.core.errors import (
    CurvaSException,
    curvas_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Curva S Changelog API",
    description=(
        "**Monthly schedule changelog for construction projects**\n\n"
        "Stores monthly schedule snapshots, classifies what changed between "
        "consecutive months (deadline slips, added, removed and not-done tasks) "
        "and attaches coordinator annotations.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(CurvaSException, curvas_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(snapshots_router.router)
app.include_router(changelog_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        logger.exception("Health check could not reach the database")
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
