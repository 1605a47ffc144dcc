"""
HTTP client for the Image Labeler API.

Carries the token pair obtained at login and attaches it to every call:
bearer header for API calls, `accessToken` query parameter for image URLs.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urlencode

import httpx

from image_labeler.auth import ACCESS_TOKEN_COOKIE, ID_TOKEN_COOKIE, ID_TOKEN_HEADER, TokenPair
from image_labeler.models.schemas import DriveFile

logger = logging.getLogger(__name__)


class LabelerClientError(Exception):
    """Raised when the API answers with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LabelerClient:
    def __init__(
        self,
        base_url: str,
        tokens: TokenPair,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0
    ):
        self.tokens = tokens
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    @classmethod
    def from_cookies(cls, base_url: str, cookies: Mapping[str, str], **kwargs) -> "LabelerClient":
        """Build a client from the cookies set by the OAuth callback."""
        access_token = cookies.get(ACCESS_TOKEN_COOKIE)
        if not access_token:
            raise LabelerClientError("Access token not found in cookies.", status_code=401)
        return cls(base_url, TokenPair(access_token, cookies.get(ID_TOKEN_COOKIE)), **kwargs)

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self) -> "LabelerClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    def _headers(self, with_id_token: bool = False) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.tokens.access_token}"}
        if with_id_token:
            if not self.tokens.id_token:
                raise LabelerClientError("Authentication tokens not found in client-side cookies.", status_code=401)
            headers[ID_TOKEN_HEADER] = self.tokens.id_token
        return headers

    @staticmethod
    def _raise_for_error(response: httpx.Response):
        if response.is_success:
            return
        message = f"Error: {response.status_code} {response.reason_phrase}"
        try:
            body = response.json()
            if isinstance(body, dict) and body.get("error"):
                message = body["error"]
        except ValueError:
            pass
        raise LabelerClientError(message, status_code=response.status_code)

    def image_url(self, file_id: str, width: Optional[int] = None, quality: Optional[int] = None) -> str:
        """Relative URL of an image with the access token attached as a query parameter."""
        params = {"fileId": file_id, "accessToken": self.tokens.access_token}
        if width:
            params["w"] = str(width)
        if quality:
            params["q"] = str(quality)
        return f"/api/drive?{urlencode(params)}"

    async def list_images(self, folder_id: str) -> List[DriveFile]:
        response = await self._client.get(
            "/api/drive",
            params={"folderId": folder_id},
            headers=self._headers()
        )
        self._raise_for_error(response)
        return [DriveFile.model_validate(item) for item in response.json()]

    async def fetch_image(self, file_id: str) -> bytes:
        response = await self._client.get(self.image_url(file_id))
        self._raise_for_error(response)
        return response.content

    async def save_label(
        self,
        image: DriveFile,
        scores: Sequence[int],
        comments: str,
        folder_id: str
    ) -> Dict[str, Any]:
        response = await self._client.post(
            "/api/labels",
            json={
                "imageId": image.id,
                "imageName": image.name,
                "scores": list(scores),
                "comments": comments,
                "folderId": folder_id
            },
            headers=self._headers(with_id_token=True)
        )
        self._raise_for_error(response)
        return response.json()

    async def read_labels(self, folder_id: str) -> List[Dict[str, str]]:
        response = await self._client.get(
            "/api/labels",
            params={"folderId": folder_id},
            headers=self._headers()
        )
        self._raise_for_error(response)
        return response.json()
