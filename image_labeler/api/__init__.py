"""HTTP routers for the Image Labeler API."""

from .drive import router as drive_router
from .labels import router as labels_router
from .oauth import router as oauth_router

__all__ = [
    "drive_router",
    "labels_router",
    "oauth_router",
]
