"""FastAPI dependencies shared by the API routers."""

from fastapi import Depends

from image_labeler.auth import CredentialContext, get_credentials
from image_labeler.config import LabelerSettings, get_settings
from image_labeler.services.drive_gateway import DriveGateway
from image_labeler.services.label_ledger import LabelLedger


def get_drive_gateway(
    credentials: CredentialContext = Depends(get_credentials),
    settings: LabelerSettings = Depends(get_settings)
) -> DriveGateway:
    """Drive gateway bound to the caller's access token."""
    return DriveGateway(
        credentials,
        page_size=settings.DRIVE_PAGE_SIZE,
        chunk_size=settings.DRIVE_CHUNK_SIZE
    )


def get_label_ledger(
    gateway: DriveGateway = Depends(get_drive_gateway),
    settings: LabelerSettings = Depends(get_settings)
) -> LabelLedger:
    return LabelLedger(
        gateway,
        file_name=settings.LABELS_FILE_NAME,
        max_retries=settings.LEDGER_MAX_RETRIES
    )
