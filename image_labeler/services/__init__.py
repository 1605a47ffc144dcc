"""Google service adapters for the Image Labeler."""

from .drive_gateway import DriveGateway
from .label_ledger import LabelLedger, LedgerWriteResult
from .oauth import GoogleOAuthService, get_oauth_service

__all__ = [
    "DriveGateway",
    "LabelLedger",
    "LedgerWriteResult",
    "GoogleOAuthService",
    "get_oauth_service",
]
