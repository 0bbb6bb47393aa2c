from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from authcore.errors import TokenError

from .guard import TokenGuard


# Single external detail for every token failure, so callers can't probe which one it was.
NOT_AUTHENTICATED = "not_authenticated"


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def _app_state(request: Request, name: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return value


def require_user(request: Request) -> str:
    """Authenticate a request and return the token's subject (the username).

    Reads ``Authorization: Bearer <jwt>``. Each failure kind is logged with its
    own code; the response is always a plain 401.
    """

    guard: TokenGuard = _app_state(request, "guard")
    cfg = _app_state(request, "cfg")
    authorization: Optional[str] = request.headers.get("Authorization")

    try:
        return guard.authenticate(authorization)
    except TokenError as e:
        _debug(f"Auth failed ({e.code}) on {request.method} {request.url.path}: {e}")
        detail = e.code if cfg.AUTH_EXPOSE_ERROR_CODES else NOT_AUTHENTICATED
        raise _unauthorized(detail)


def protected_router(**kwargs: Any) -> APIRouter:
    """An APIRouter whose every route sits behind require_user.

    Handlers that need the identity declare ``Depends(require_user)`` too;
    FastAPI resolves it once per request.
    """
    dependencies = list(kwargs.pop("dependencies", None) or [])
    dependencies.insert(0, Depends(require_user))
    return APIRouter(dependencies=dependencies, **kwargs)
