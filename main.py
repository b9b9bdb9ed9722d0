import logging
import os
import threading
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.database import Database
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, setup_logging
from database import connect
from errors import AppError, best_effort
from repositories import Services
from routers import ROUTERS
from seed import seed_data

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


# ----------------------------------------------------------------------------
# Rate limiting
# ----------------------------------------------------------------------------

class RateLimiter:
    """Fixed-window request counter per client address."""

    def __init__(self, max_requests: int, window_seconds: float, clock=time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._hits: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()
        self._swept = clock()

    def allow(self, client: str) -> bool:
        now = self.clock()
        with self._lock:
            if now - self._swept >= self.window_seconds:
                self._sweep(now)
            started, count = self._hits.get(client, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            if count >= self.max_requests:
                return False
            self._hits[client] = (started, count + 1)
            return True

    def _sweep(self, now: float) -> None:
        self._hits = {
            client: (started, count)
            for client, (started, count) in self._hits.items()
            if now - started < self.window_seconds
        }
        self._swept = now


# ----------------------------------------------------------------------------
# Error envelopes
# ----------------------------------------------------------------------------

def _error(status_code: int, message: str, key: str = "error", **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, key: message, **extra})


def _describe(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ())[1:])
    return f"{location}: {error['msg']}" if location else error["msg"]


def install_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error(exc.status_code, exc.message, exc.key)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        messages = [_describe(error) for error in exc.errors()]
        logger.warning("Validation failed on %s: %s", request.url.path, messages)
        if request.url.path.startswith(f"{API_PREFIX}/categories"):
            return _error(400, "Validation failed", "message", errors=messages)
        return _error(400, messages[0] if messages else "Validation failed", errors=messages)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error(404, "Route not found")
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        if settings.is_production:
            return _error(500, "Internal Server Error")
        return _error(500, "Internal Server Error", details=str(exc))


# ----------------------------------------------------------------------------
# Application factory
# ----------------------------------------------------------------------------

def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging(settings)
    services = Services.build(settings, database if database is not None else connect(settings))
    started = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services.images.ensure_image_directory()
        os.makedirs(settings.upload_dir, exist_ok=True)
        if settings.seed_on_startup:
            best_effort(seed_data, services, description="Seeding on startup")
        yield

    app = FastAPI(title="Vengase Store API", lifespan=lifespan)
    app.state.services = services

    limiter = RateLimiter(settings.rate_limit_max_requests, settings.rate_limit_window * 60)

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        if request.url.path.startswith("/api/"):
            client = request.client.host if request.client else "unknown"
            if not limiter.allow(client):
                logger.warning("Rate limit exceeded for %s", client)
                return _error(429, "Too many requests from this IP, please try again later.")
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app, settings)

    for prefix, router in ROUTERS:
        app.include_router(router, prefix=API_PREFIX + prefix)

    app.mount("/images", StaticFiles(directory=settings.image_dir, check_dir=False), name="images")
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

    # ------------------------------------------------------------------------
    # Health and Test
    # ------------------------------------------------------------------------

    @app.get("/")
    def root():
        return {"success": True, "message": "Vengase Store API running", "version": "1.0.0"}

    @app.get("/health")
    def health():
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": time.monotonic() - started,
        }

    @app.get("/test")
    def test_database():
        try:
            collections = services.store.collection_names()
        except AppError as exc:
            return {"backend": "ok", "db": f"error: {exc.message}"}
        return {"backend": "ok", "db": "ok", "collections": collections}

    logger.info("Application configured (%s)", settings.app_env)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=app.state.services.settings.port)
