"""Pydantic schemas for the Image Labeler API."""

from .schemas import (
    DriveFile,
    LabelRequest,
    LabelResponse,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    "DriveFile",
    "LabelRequest",
    "LabelResponse",
    "ErrorResponse",
    "HealthResponse",
]
