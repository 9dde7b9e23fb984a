# ldclash/auth.py
import base64
import binascii
import secrets
from typing import Optional, Tuple

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger

from ldclash.config import Settings

AUTH_COOKIE_NAME = "ldclash_auth"
AUTH_COOKIE_MAX_AGE = 60 * 60 * 24 * 30  # 30 days
BASIC_AUTH_REALM = "LD Clash"

# Static assets are the only paths reachable without Basic credentials.
PUBLIC_PATH_PREFIXES = ("/static/", "/favicon.ico")

router = APIRouter()


def _matches(given: str, expected: str) -> bool:
    return secrets.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


# ---------- Login ----------
@router.post("/api/login")
async def login(request: Request):
    """Exchange the shared site password for a 30-day session cookie."""
    try:
        body = await request.json()
    except ValueError:
        body = {}
    password = body.get("password") if isinstance(body, dict) else None
    if not isinstance(password, str):
        password = ""

    settings: Settings = request.app.state.settings
    expected = settings.site_password
    if not expected:
        logger.error("[AUTH] Login attempted but SITE_PASSWORD is not configured")
        return JSONResponse({"error": "Missing SITE_PASSWORD"}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if not _matches(password, expected):
        logger.info("[AUTH] Rejected login with incorrect password")
        return JSONResponse({"error": "Incorrect password"}, status_code=status.HTTP_401_UNAUTHORIZED)

    response = JSONResponse({"ok": True})
    response.set_cookie(
        AUTH_COOKIE_NAME,
        "ok",
        max_age=AUTH_COOKIE_MAX_AGE,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )
    return response


# ---------- Basic auth gate ----------
def parse_basic_credentials(header: Optional[str]) -> Optional[Tuple[str, str]]:
    """Decode an `Authorization: Basic ...` header into (user, password)."""
    if not header or not header.startswith("Basic "):
        return None
    try:
        decoded = base64.b64decode(header[len("Basic "):].strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    user, sep, password = decoded.partition(":")
    if not sep:
        return None
    return user, password


def unauthorized() -> PlainTextResponse:
    return PlainTextResponse(
        "Authentication required",
        status_code=status.HTTP_401_UNAUTHORIZED,
        headers={"WWW-Authenticate": f'Basic realm="{BASIC_AUTH_REALM}"'},
    )


def is_public_path(path: str) -> bool:
    return any(path == prefix.rstrip("/") or path.startswith(prefix) for prefix in PUBLIC_PATH_PREFIXES)


def credentials_allowed(settings: Settings, header: Optional[str]) -> bool:
    # Missing or half-configured credentials keep the site locked.
    if not settings.basic_auth_user or not settings.basic_auth_pass:
        return False
    creds = parse_basic_credentials(header)
    if creds is None:
        return False
    user, password = creds
    return _matches(user, settings.basic_auth_user) and _matches(password, settings.basic_auth_pass)


async def basic_auth_gate(request: Request, call_next):
    """Require HTTP Basic credentials on every non-public path."""
    settings: Settings = request.app.state.settings
    if not settings.basic_auth_enabled or is_public_path(request.url.path):
        return await call_next(request)
    if credentials_allowed(settings, request.headers.get("authorization")):
        return await call_next(request)
    logger.debug(f"[AUTH] Basic auth challenge for {request.method} {request.url.path}")
    return unauthorized()
