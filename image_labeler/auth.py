"""Google token handling: credential context and identity token verification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import cachetools
import httpx
from fastapi import Request
from jose import jwt

from image_labeler.config import get_settings
from image_labeler.errors import AuthenticationError

logger = logging.getLogger(__name__)

GOOGLE_JWKS_URL = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")

ACCESS_TOKEN_COOKIE = "google_access_token"
ID_TOKEN_COOKIE = "google_id_token"
ACCESS_TOKEN_QUERY_PARAM = "accessToken"
ID_TOKEN_HEADER = "X-Google-Id-Token"

UNKNOWN_USER_EMAIL = "unknown@example.com"


@dataclass(frozen=True)
class TokenPair:
    """Access and identity tokens issued by one OAuth exchange."""
    access_token: str
    id_token: Optional[str] = None


@dataclass(frozen=True)
class CredentialContext:
    """Tokens resolved for one request, threaded through every Drive call."""
    access_token: str
    id_token: Optional[str] = None
    source: str = "header"

    @property
    def tokens(self) -> TokenPair:
        return TokenPair(access_token=self.access_token, id_token=self.id_token)


# JWKS cache with 1-hour TTL
_JWKS_CACHE: cachetools.TTLCache[str, Dict[str, Any]] = cachetools.TTLCache(maxsize=1, ttl=3600)


class AuthError(Exception):
    """Raised when identity token validation fails."""


def _bearer_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization")
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1]:
        return parts[1]
    return None


def extract_access_token(request: Request) -> tuple[Optional[str], Optional[str]]:
    """
    Find the access token for a request.

    Precedence: `accessToken` query parameter, then `Authorization: Bearer`
    header, then the `google_access_token` cookie.

    Returns:
        Tuple of (token, source) where source is "query", "header" or "cookie"
    """
    token = request.query_params.get(ACCESS_TOKEN_QUERY_PARAM)
    if token:
        return token, "query"

    token = _bearer_token(request)
    if token:
        return token, "header"

    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if token:
        return token, "cookie"

    return None, None


def extract_id_token(request: Request) -> Optional[str]:
    """Identity token from the custom header, falling back to its cookie."""
    return request.headers.get(ID_TOKEN_HEADER) or request.cookies.get(ID_TOKEN_COOKIE)


def resolve_credentials(request: Request) -> Optional[CredentialContext]:
    access_token, source = extract_access_token(request)
    if not access_token:
        return None
    return CredentialContext(
        access_token=access_token,
        id_token=extract_id_token(request),
        source=source
    )


def get_credentials(request: Request) -> CredentialContext:
    """
    FastAPI dependency returning the request's credential context.

    The middleware normally resolves it already; resolving again here keeps
    routes usable when the middleware is not installed.
    """
    credentials = getattr(request.state, "credentials", None)
    if credentials is None:
        credentials = resolve_credentials(request)
    if credentials is None:
        raise AuthenticationError("No access token found")
    return credentials


def require_id_token(credentials: CredentialContext) -> str:
    if not credentials.id_token:
        raise AuthenticationError("Authentication tokens not found in headers")
    return credentials.id_token


async def _fetch_jwks() -> Dict[str, Any]:
    """Fetch Google's signing keys with caching."""
    cached = _JWKS_CACHE.get("jwks")
    if cached:
        return cached

    async with httpx.AsyncClient(timeout=5) as client:
        response = await client.get(GOOGLE_JWKS_URL)
        response.raise_for_status()
        jwks = response.json()
        _JWKS_CACHE["jwks"] = jwks
        return jwks


async def verify_google_id_token(token: str, access_token: Optional[str] = None) -> Dict[str, Any]:
    """
    Verify a Google identity token and return its claims.

    Args:
        token: JWT identity token from the OAuth exchange
        access_token: Access token issued alongside it, checked against `at_hash`

    Returns:
        Decoded claims

    Raises:
        AuthError: If the token is malformed, unsigned by Google, or expired
    """
    if not token:
        raise AuthError("Missing identity token")

    try:
        unverified_header = jwt.get_unverified_header(token)
    except Exception as exc:
        raise AuthError("Invalid token header") from exc

    try:
        jwks = await _fetch_jwks()
    except httpx.HTTPError as exc:
        raise AuthError(f"Unable to fetch Google signing keys: {exc}") from exc

    key = next(
        (k for k in jwks.get("keys", []) if k.get("kid") == unverified_header.get("kid")),
        None
    )
    if not key:
        raise AuthError("Unable to find matching JWK")

    audience = get_settings().GOOGLE_OAUTH_CLIENT_ID

    try:
        return jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            audience=audience,
            issuer=GOOGLE_ISSUERS,
            access_token=access_token,
            options={
                "verify_aud": bool(audience),
                "verify_at_hash": bool(access_token),
                "leeway": 60
            }
        )
    except Exception as exc:
        raise AuthError(f"Token validation failed: {exc}") from exc


async def resolve_user_email(credentials: CredentialContext) -> str:
    """Email from the identity token, or a placeholder if it cannot be verified."""
    try:
        claims = await verify_google_id_token(credentials.id_token or "", credentials.access_token)
    except AuthError as e:
        logger.warning(f"Identity token verification failed, using placeholder email: {e}")
        return UNKNOWN_USER_EMAIL

    email = claims.get("email")
    if not email:
        logger.warning("Identity token has no email claim, using placeholder email")
        return UNKNOWN_USER_EMAIL
    return email
