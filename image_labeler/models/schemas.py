"""
Image Labeler - Pydantic Models
Request and response schemas for the Drive and label endpoints.
"""

from typing import List, Optional, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from image_labeler.rubric import CRITERIA_COUNT, SCORE_VALUES


class DriveFile(BaseModel):
    """
    One image stored in a Drive folder.
    Field names follow the Drive API so listings pass through unchanged.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "1AbCdEfGh",
                "name": "scan_0001.png",
                "mimeType": "image/png",
                "webContentLink": "https://drive.google.com/uc?id=1AbCdEfGh&export=download",
                "webViewLink": "https://drive.google.com/file/d/1AbCdEfGh/view"
            }
        }
    )

    id: str
    name: str
    mime_type: str = Field(..., alias="mimeType")
    web_content_link: Optional[str] = Field(None, alias="webContentLink")
    web_view_link: Optional[str] = Field(None, alias="webViewLink")


class LabelRequest(BaseModel):
    """
    One scoring of one image, appended as a row to the folder's label ledger.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "imageId": "1AbCdEfGh",
                "imageName": "scan_0001.png",
                "scores": [1, 1, 0, 1, 1, 0],
                "comments": "N/A",
                "folderId": "0BxFolder"
            }
        }
    )

    image_id: str = Field(..., alias="imageId", min_length=1)
    image_name: str = Field(..., alias="imageName", min_length=1)
    scores: List[int] = Field(..., description="One 0/1 score per rubric criterion")
    comments: str = Field(..., min_length=1)
    folder_id: str = Field(..., alias="folderId", min_length=1)

    @field_validator("scores")
    @classmethod
    def check_scores(cls, scores: List[int]) -> List[int]:
        if len(scores) != CRITERIA_COUNT:
            raise ValueError(f"expected {CRITERIA_COUNT} scores, got {len(scores)}")
        for score in scores:
            if score not in SCORE_VALUES:
                raise ValueError(f"scores must be 0 or 1, got {score}")
        return scores


class LabelResponse(BaseModel):
    message: str = "Labeling data saved successfully!"
    file_id: Optional[str] = Field(None, alias="fileId")
    created: bool = False

    model_config = ConfigDict(populate_by_name=True)


class ErrorResponse(BaseModel):
    error: str
    details: Optional[Any] = None


class HealthResponse(BaseModel):
    """Health check response schema."""
    status: str = "ok"
    service: str = "image-labeler"
    oauth_configured: bool = False
