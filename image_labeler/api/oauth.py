"""
FastAPI routes for the Google OAuth hand-off.

The callback stores the token pair in cookies readable by both the server
and the browser, then redirects to the dashboard.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from image_labeler.auth import ACCESS_TOKEN_COOKIE, ID_TOKEN_COOKIE
from image_labeler.config import LabelerSettings, get_settings
from image_labeler.errors import BadRequestError, ServiceUnavailableError, UpstreamError
from image_labeler.services.oauth import GoogleOAuthService, get_oauth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/oauth2", tags=["OAuth"])

STATE_COOKIE = "oauth_state"
STATE_COOKIE_MAX_AGE = 600


@router.get("/login")
async def oauth_login(
    settings: LabelerSettings = Depends(get_settings),
    oauth: GoogleOAuthService = Depends(get_oauth_service)
):
    """Redirect the browser to Google's consent screen."""
    if not oauth.is_configured():
        logger.warning("OAuth login called but GOOGLE_OAUTH_CLIENT_ID or GOOGLE_OAUTH_CLIENT_SECRET not configured")
        raise ServiceUnavailableError("Google OAuth not configured")

    state = oauth.new_state()
    response = RedirectResponse(url=oauth.get_auth_url(state), status_code=302)
    response.set_cookie(
        STATE_COOKIE,
        state,
        max_age=STATE_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=settings.is_production
    )
    return response


@router.get("/callback")
async def oauth_callback(
    request: Request,
    code: Optional[str] = Query(None, description="Authorization code from Google"),
    state: Optional[str] = Query(None, description="State parameter"),
    error: Optional[str] = Query(None, description="Error from OAuth provider"),
    settings: LabelerSettings = Depends(get_settings),
    oauth: GoogleOAuthService = Depends(get_oauth_service)
):
    """
    Handle the redirect back from Google.

    Exchanges the code for tokens, sets `google_access_token` and
    `google_id_token` cookies and redirects to the dashboard.
    """
    logger.info(f"OAuth callback from host {request.headers.get('host')}")

    if error:
        logger.error(f"OAuth callback received error: {error}")
        raise BadRequestError(f"Google OAuth Error: {error}")

    if not code:
        raise BadRequestError("Authorization code not found")

    expected_state = request.cookies.get(STATE_COOKIE)
    if expected_state and not (state and hmac.compare_digest(state, expected_state)):
        logger.warning("OAuth callback state does not match the login state")
        raise BadRequestError("OAuth state mismatch")

    if not oauth.is_configured():
        raise ServiceUnavailableError("Google OAuth not configured")

    try:
        tokens = await run_in_threadpool(oauth.exchange_code, code)
    except Exception as e:
        logger.error(f"OAuth code exchange failed: {e}")
        raise UpstreamError("Failed to exchange code for access token", details=str(e)) from e

    response = RedirectResponse(url=settings.DASHBOARD_URL, status_code=302)
    cookie_options = dict(
        max_age=settings.TOKEN_COOKIE_MAX_AGE,
        samesite="lax",
        secure=settings.is_production,
        httponly=False  # the review client reads them too
    )
    response.set_cookie(ACCESS_TOKEN_COOKIE, tokens.access_token, **cookie_options)
    if tokens.id_token:
        response.set_cookie(ID_TOKEN_COOKIE, tokens.id_token, **cookie_options)
    response.delete_cookie(STATE_COOKIE)
    return response


@router.post("/logout")
async def oauth_logout():
    """Forget the token cookies. Tokens are not revoked with Google."""
    response = JSONResponse({"message": "Logged out"})
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    response.delete_cookie(ID_TOKEN_COOKIE)
    return response
