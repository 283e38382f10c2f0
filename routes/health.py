from __future__ import annotations

import os

from fastapi import APIRouter, Depends

from deps.services import Services, get_services
from settings import settings

router = APIRouter(tags=["health"])


def _check_db() -> tuple[bool | None, str | None]:
    if settings.STORE_BACKEND != "postgres":
        return None, None
    try:
        from db import ping

        return ping(), None
    except Exception as exc:
        return False, f"{type(exc).__name__}: {exc}"


def _resolve_git_sha() -> str | None:
    return (os.getenv("GIT_SHA") or "").strip() or None


@router.get("/health")
def health(services: Services = Depends(get_services)):
    db_ok, db_error = _check_db()
    return {
        "ok": db_ok is not False,
        "env": settings.ENV,
        "version": os.getenv("APP_VERSION", "1.0.0"),
        "git_sha": _resolve_git_sha(),
        "store": settings.STORE_BACKEND,
        "provider": services.provider.name,
        "db_ok": db_ok,
        "db_error": db_error,
    }
