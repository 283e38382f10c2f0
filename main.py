#main.py
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.providers.base import PaymentProvider
from app.providers.config import validate_provider_config
from app.store.base import DocumentStore
from deps.services import build_services
from middleware import RequestContextMiddleware
from routes.bookings import router as bookings_router
from routes.health import router as health_router
from routes.metrics import router as metrics_router
from routes.notifications import router as notifications_router
from routes.transactions import router as transactions_router
from services.errors import PaymentError, error_code_for_status
from services.observability import configure_logging, get_request_id
from settings import Settings, settings


logger = logging.getLogger("klinikpay.api")


def _error_body(
    request: Request,
    cfg: Settings,
    *,
    message: str,
    code: str,
    error_type: str,
    details: Any = None,
) -> dict[str, Any]:
    error: dict[str, Any] = {"type": error_type, "code": code}
    # internals never leave a production deployment
    if details is not None and cfg.ENV != "production":
        error["details"] = details
    return {
        "success": False,
        "message": message,
        "error": error,
        "request_id": getattr(request.state, "request_id", None) or get_request_id(),
        "path": request.url.path,
        "method": request.method,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _install_error_handlers(app: FastAPI, cfg: Settings) -> None:
    @app.exception_handler(PaymentError)
    async def payment_error_handler(request: Request, exc: PaymentError):
        if exc.status_code >= 500:
            logger.error("request_failed code=%s path=%s err=%s", exc.code, request.url.path, exc.detail)
        else:
            logger.info("request_rejected code=%s path=%s err=%s", exc.code, request.url.path, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(
                request,
                cfg,
                message=exc.message,
                code=exc.code,
                error_type=type(exc).__name__,
                details={"detail": exc.detail, **exc.context},
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        code = detail if detail.isupper() else error_code_for_status(exc.status_code)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, cfg, message=detail, code=code, error_type="HTTPException"),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_body(
                request,
                cfg,
                message="Validation error",
                code="VALIDATION_ERROR",
                error_type="RequestValidationError",
                details=[
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                    for err in exc.errors()
                ],
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error path=%s", request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                request,
                cfg,
                message="Internal server error",
                code="INTERNAL_ERROR",
                error_type=type(exc).__name__,
                details=str(exc),
            ),
        )


def create_app(
    *,
    store: DocumentStore | None = None,
    provider: PaymentProvider | None = None,
    cfg: Settings | None = None,
) -> FastAPI:
    cfg = cfg or settings
    configure_logging(cfg.LOG_LEVEL)

    missing = validate_provider_config(cfg)
    if missing:
        logger.warning("provider_config_incomplete provider=%s missing=%s", cfg.PAYMENT_PROVIDER, ",".join(missing))

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        if cfg.STORE_BACKEND == "postgres":
            from db import close_pool

            close_pool()

    app = FastAPI(title="KlinikPay API", version="1.0.0", lifespan=lifespan)
    app.state.services = build_services(cfg, store=store, provider=provider)

    # -----------------------------
    # ROUTERS
    # -----------------------------
    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(transactions_router)
    app.include_router(notifications_router)
    app.include_router(bookings_router)

    app.add_middleware(RequestContextMiddleware)
    _install_error_handlers(app, cfg)
    return app


app = create_app()


def _resolve_port() -> int:
    return int((os.getenv("PORT") or "8001").strip())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=os.getenv("HOST", "0.0.0.0"), port=_resolve_port())
