from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os

from readowl.core.config import settings
from readowl.routers import (
    auth,
    books,
    chapters,
    social,
    notifications,
    banners,
    home,
    events,
)
from readowl.database import init_db
from readowl.scheduler import start_scheduler, stop_scheduler
from readowl.utils.timing import utcnow

# ----------------------------
# Logging
# ----------------------------
logger = logging.getLogger("readowl")
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Server fingerprint for debugging
SERVER_BOOT_ID = f"readowl-backend::{os.getpid()}::{utcnow().isoformat()}"

app = FastAPI(title="Readowl", debug=settings.DEBUG)


# ----------------------------
# CORS
# ----------------------------
cors_origins = settings.cors_origins_list
logger.info("[CORS] allow_origins=%s", cors_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("[UNHANDLED] %s %s", request.method, request.url.path)

    response = JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"}
    )

    # Ensure CORS headers are present in error responses
    origin = request.headers.get("origin")
    if origin and origin in cors_origins:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"

    return response


# ----------------------------
# Routers
# ----------------------------
app.include_router(auth.router, prefix="/api")
app.include_router(books.router, prefix="/api")
app.include_router(chapters.router, prefix="/api")
app.include_router(social.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")
app.include_router(banners.router, prefix="/api")
app.include_router(home.router, prefix="/api")
app.include_router(events.router, prefix="/api")


@app.on_event("startup")
def on_startup() -> None:
    logger.info("[BOOT] %s", SERVER_BOOT_ID)
    init_db()
    if settings.SCHEDULER_ENABLED:
        start_scheduler()


@app.on_event("shutdown")
def on_shutdown() -> None:
    stop_scheduler()


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/api/health")
def api_health_check():
    return {"status": "ok"}
