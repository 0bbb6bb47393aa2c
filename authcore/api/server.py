from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from authcore import __version__
from authcore.auth import TokenGuard, TokenIssuer, protected_router, require_user
from authcore.auth.crud import register_user, touch_last_login, verify_user_credentials
from authcore.config import Config, load_config
from authcore.db import connect, init_db
from authcore.errors import DuplicateUser, InvalidCredentials, StoreUnavailable
from authcore.ops.predict import list_predictions, log_prediction, predict_text
from authcore.util.time import Clock, to_iso, utcnow


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


def get_cfg(request: Request) -> Config:
    return request.app.state.cfg


def get_issuer(request: Request) -> TokenIssuer:
    return request.app.state.issuer


# -----------------------------
# Health
# -----------------------------

misc_router = APIRouter()


@misc_router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Auth
# -----------------------------

auth_router = APIRouter(prefix="/auth")


class LoginRequest(BaseModel):
    username: str
    password: str


class RegisterRequest(BaseModel):
    username: str
    password: str


@auth_router.post("/register", status_code=201)
def auth_register(payload: RegisterRequest, cfg: Config = Depends(get_cfg)) -> Dict[str, Any]:
    """Create a new user account. Does not log the user in."""

    username = (payload.username or "").strip().lower()
    password = payload.password or ""
    if len(username) < max(1, cfg.AUTH_MIN_USERNAME_LENGTH):
        raise HTTPException(status_code=400, detail="username_too_short")
    if len(password) < max(1, cfg.AUTH_MIN_PASSWORD_LENGTH):
        raise HTTPException(status_code=400, detail="password_too_short")

    with connect(cfg.DB_DSN) as conn:
        try:
            u = register_user(conn, username=username, password=password)
        except DuplicateUser as e:
            raise HTTPException(status_code=409, detail=e.code)

    return {"message": "user_registered", "user": {"username": u["username"], "created_at": u["created_at"]}}


@auth_router.post("/login")
def auth_login(
    payload: LoginRequest,
    cfg: Config = Depends(get_cfg),
    issuer: TokenIssuer = Depends(get_issuer),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        try:
            username = verify_user_credentials(conn, payload.username, payload.password)
        except InvalidCredentials as e:
            raise HTTPException(status_code=401, detail=e.code, headers={"WWW-Authenticate": "Bearer"})
        touch_last_login(conn, username)

    claims = issuer.claims_for(username)
    token = issuer.sign(claims)
    _debug(f"Issued token for user={username} exp={to_iso(claims.expires_at)}")

    return {
        "access_token": token,
        "token": token,
        "token_type": "bearer",
        "expires_at": to_iso(claims.expires_at),
        "user": {"username": username},
    }


@auth_router.post("/logout")
def auth_logout() -> Dict[str, Any]:
    """Tokens are stateless; logging out means the client drops its copy."""
    return {"ok": True}


# -----------------------------
# Protected operations
# -----------------------------

api_router = protected_router(prefix="/api")


class PredictRequest(BaseModel):
    text: str


@api_router.get("/me")
def api_me(username: str = Depends(require_user)) -> Dict[str, Any]:
    return {"username": username}


@api_router.post("/predict")
def api_predict(
    payload: PredictRequest,
    username: str = Depends(require_user),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    prediction = predict_text(payload.text)
    with connect(cfg.DB_DSN) as conn:
        log_prediction(conn, username=username, input_text=payload.text, output_text=prediction)
    return {"prediction": prediction}


@api_router.get("/predictions")
def api_predictions(
    limit: int = Query(50, ge=1, le=500),
    username: str = Depends(require_user),
    cfg: Config = Depends(get_cfg),
) -> Dict[str, Any]:
    with connect(cfg.DB_DSN) as conn:
        items = list_predictions(conn, username=username, limit=limit)
    return {"items": items}


# -----------------------------
# App factory
# -----------------------------


async def _store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    _debug(f"Store unavailable on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": exc.code}, headers={"Retry-After": "1"})


def create_app(cfg: Optional[Config] = None, *, clock: Clock = utcnow) -> FastAPI:
    """Build the API around one validated config.

    The issuer and guard are created here from the same config, so every token
    this process mints is checked against the same secret.
    """
    cfg = (cfg or load_config()).validate()

    app = FastAPI(title="authcore", version=__version__)
    app.state.cfg = cfg
    app.state.issuer = TokenIssuer(cfg, clock=clock)
    app.state.guard = TokenGuard(cfg, clock=clock)

    @app.on_event("startup")
    def _on_startup() -> None:
        # Ensure schema exists.
        init_db(cfg.DB_DSN)

    app.add_exception_handler(StoreUnavailable, _store_unavailable_handler)

    app.include_router(misc_router)
    app.include_router(auth_router)
    app.include_router(api_router)
    return app


app = create_app()
