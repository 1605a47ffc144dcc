"""Client-side review workflow: API client and review session state machine."""

from .client import LabelerClient, LabelerClientError
from .session import ReviewSession, SessionState, ViewTransform

__all__ = [
    "LabelerClient",
    "LabelerClientError",
    "ReviewSession",
    "SessionState",
    "ViewTransform",
]
