"""
FastAPI routes for the label ledger.
"""

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool

from image_labeler.api.deps import get_label_ledger
from image_labeler.auth import CredentialContext, get_credentials, require_id_token, resolve_user_email
from image_labeler.models.schemas import LabelRequest, LabelResponse
from image_labeler.services.label_ledger import LabelLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Labels"])


@router.post("/labels", response_model=LabelResponse)
async def save_label(
    label: LabelRequest,
    credentials: CredentialContext = Depends(get_credentials),
    ledger: LabelLedger = Depends(get_label_ledger)
) -> LabelResponse:
    """
    Append one scoring to the folder's label ledger.

    Needs the access token (bearer) and the identity token
    (`X-Google-Id-Token`); the identity token names the clinician in the row.
    """
    require_id_token(credentials)
    user_email = await resolve_user_email(credentials)

    result = await run_in_threadpool(
        ledger.append,
        folder_id=label.folder_id,
        image_id=label.image_id,
        image_name=label.image_name,
        scores=label.scores,
        comments=label.comments,
        user_email=user_email
    )

    logger.info(
        f"Saved label for {label.image_id} in folder {label.folder_id} "
        f"({'new' if result.created else 'existing'} ledger {result.file_id})"
    )
    return LabelResponse(fileId=result.file_id, created=result.created)


@router.get("/labels")
async def read_labels(
    folder_id: str = Query(..., alias="folderId", min_length=1),
    ledger: LabelLedger = Depends(get_label_ledger)
) -> List[Dict[str, str]]:
    """Rows saved so far for a folder, oldest first."""
    return await run_in_threadpool(ledger.read_rows, folder_id)
