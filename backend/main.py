"""
FastAPI Application Entry

Wires the feature routers together:
- /api/images, /api/serve-image, /api/cleanup   (storage)
- /api/proxy                                    (image proxy)
- /api/scrape                                   (scraper)
- /api/healthcheck
- /uploads/<name>                               (static stored files)

Every /api/* path except the healthcheck also passes the global ingress
limiter, on top of its own per-route limiter.

Run:
    cd backend
    python main.py
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from core.config import AppConfig
from core.errors import RateLimitExceeded, ServiceError
from core.logging_setup import configure_logging
from core.services import Services, build_services
from image_proxy import router as proxy_router
from rate_limit import rate_limit_response, rate_limited
from scraper import router as scraper_router
from storage import router as storage_router

logger = logging.getLogger(__name__)

HEALTHCHECK_PATH = "/api/healthcheck"


def create_app(
    config: Optional[AppConfig] = None,
    services_factory: Callable[[AppConfig], Services] = build_services,
) -> FastAPI:
    """
    Build the application.

    Args:
        config: Settings (defaults to AppConfig.from_env())
        services_factory: Builds the service graph at startup
    """
    config = config or AppConfig.from_env()
    configure_logging(config.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services = services_factory(config)
        app.state.services = services
        await services.start()
        try:
            yield
        finally:
            await services.stop()

    app = FastAPI(title="Image Normalizer API", version="0.1.0", lifespan=lifespan)

    # ============================================
    # Global ingress limiter
    # ============================================

    @app.middleware("http")
    async def global_rate_limit(request: Request, call_next):
        path = request.url.path
        if path.startswith("/api/") and path != HEALTHCHECK_PATH:
            limiter = request.app.state.services.rate_limiters["global"]
            decision = limiter.check_request(request)
            if not decision.allowed:
                return rate_limit_response(decision, limiter.message)
        return await call_next(request)

    # ============================================
    # Error handlers
    # ============================================

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return rate_limit_response(exc.decision, exc.message)

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        if exc.status_code >= 500:
            logger.error(f"[API] {request.url.path}: {exc.message} ({exc.detail})")
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"[API] Unhandled error on {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error", "error": str(exc)},
        )

    # ============================================
    # Routes
    # ============================================

    @app.get(HEALTHCHECK_PATH, tags=["system"], dependencies=[Depends(rate_limited("healthcheck"))])
    async def healthcheck():
        """Liveness endpoint for monitoring tools."""
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    app.include_router(storage_router)
    app.include_router(proxy_router)
    app.include_router(scraper_router)

    app.mount(
        config.public_prefix,
        StaticFiles(directory=config.upload_dir, check_dir=False),
        name="uploads",
    )

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        create_app(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
