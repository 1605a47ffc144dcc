"""
Token Middleware for the Image Labeler API.
Resolves the Google credential context once per request and rejects API
calls that carry no access token.
"""
import logging
from typing import List, Set

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from image_labeler.auth import resolve_credentials
from image_labeler.errors import error_body

logger = logging.getLogger(__name__)


class TokenContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that attaches a CredentialContext to `request.state.credentials`.
    Paths under /api/ require an access token unless listed as public.
    """

    def __init__(self, app):
        super().__init__(app)

        # Public paths that don't require a token
        self.public_paths: Set[str] = {
            "/",
            "/health",
            "/auth/config",
            "/favicon.ico",
        }

        # Public path prefixes (the OAuth hand-off happens before tokens exist)
        self.public_prefixes: List[str] = [
            "/api/oauth2/",
            "/docs",
            "/openapi.json",
        ]

    def _is_public(self, path: str) -> bool:
        if path in self.public_paths:
            return True
        return any(path.startswith(prefix) for prefix in self.public_prefixes)

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path

        if self._is_public(path):
            return await call_next(request)

        credentials = resolve_credentials(request)
        request.state.credentials = credentials

        if credentials is None:
            if path.startswith("/api/"):
                logger.warning(f"No access token found for {request.method} {path}")
                return self._unauthorized_response()
            return await call_next(request)

        logger.debug(f"Access token for {path} taken from {credentials.source}")
        return await call_next(request)

    def _unauthorized_response(self) -> Response:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content=error_body("No access token found"),
            headers={"WWW-Authenticate": "Bearer"}
        )
