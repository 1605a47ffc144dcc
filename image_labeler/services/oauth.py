"""
Google OAuth exchange for the Image Labeler.
Builds the consent URL and trades the authorization code for a token pair.
"""
import logging
import os
import secrets
from typing import List, Optional

from google_auth_oauthlib.flow import Flow

from image_labeler.auth import TokenPair
from image_labeler.config import LabelerSettings, get_settings

logger = logging.getLogger(__name__)

# Google reports granted scopes in expanded form (email -> userinfo.email)
os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")


class GoogleOAuthService:
    def __init__(self, settings: Optional[LabelerSettings] = None):
        settings = settings or get_settings()
        self.client_id = settings.GOOGLE_OAUTH_CLIENT_ID
        self.client_secret = settings.GOOGLE_OAUTH_CLIENT_SECRET
        self.redirect_uri = settings.GOOGLE_OAUTH_REDIRECT_URI
        self.scopes: List[str] = list(settings.SCOPES)

    def is_configured(self) -> bool:
        """Check if OAuth credentials are configured."""
        return bool(self.client_id and self.client_secret)

    def _flow(self, state: Optional[str] = None) -> Flow:
        flow = Flow.from_client_config(
            {
                "web": {
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                    "token_uri": "https://oauth2.googleapis.com/token",
                    "redirect_uris": [self.redirect_uri]
                }
            },
            scopes=self.scopes,
            state=state,
            # The callback builds a fresh Flow, so no PKCE verifier survives the redirect
            autogenerate_code_verifier=False
        )
        flow.redirect_uri = self.redirect_uri
        return flow

    @staticmethod
    def new_state() -> str:
        return secrets.token_hex(16)

    def get_auth_url(self, state: str) -> str:
        """Generate the Google consent URL for the given state."""
        if not self.is_configured():
            raise ValueError("Google OAuth not configured. Set GOOGLE_OAUTH_CLIENT_ID and GOOGLE_OAUTH_CLIENT_SECRET.")

        auth_url, _ = self._flow(state).authorization_url(
            access_type='offline',
            include_granted_scopes='true',
            state=state
        )
        return auth_url

    def exchange_code(self, code: str) -> TokenPair:
        """Exchange an authorization code for access and identity tokens."""
        if not self.is_configured():
            raise ValueError("Google OAuth not configured.")

        flow = self._flow()
        flow.fetch_token(code=code)
        token = flow.oauth2session.token or {}

        access_token = token.get("access_token") or flow.credentials.token
        if not access_token:
            raise ValueError("Token response did not include an access token")

        id_token = token.get("id_token")
        if not id_token:
            logger.warning("Token response did not include an identity token")

        logger.info("Exchanged authorization code for Google tokens")
        return TokenPair(access_token=access_token, id_token=id_token)


# Singleton instance
_oauth_service: Optional[GoogleOAuthService] = None


def get_oauth_service() -> GoogleOAuthService:
    global _oauth_service
    if _oauth_service is None:
        _oauth_service = GoogleOAuthService()
    return _oauth_service
