"""
Google Drive gateway for the Image Labeler.

Thin adapter over the Drive v3 API, authenticated with the user's own
OAuth access token.
"""

import io
import logging
from typing import Any, Dict, Iterator, List, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from image_labeler.auth import CredentialContext

logger = logging.getLogger(__name__)


def _quote(value: str) -> str:
    """Escape a value for use inside a single-quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveGateway:
    """
    Drive client bound to one request's credential context.

    The app lists and reads images, and creates or rewrites the label
    ledger. It never uploads images and never deletes files.
    """

    LISTING_FIELDS = 'nextPageToken, files(id, name, mimeType, webContentLink, webViewLink)'
    CSV_MIME_TYPE = 'text/csv'

    def __init__(
        self,
        credentials: Optional[CredentialContext] = None,
        service: Any = None,
        page_size: int = 100,
        chunk_size: int = 1024 * 1024
    ):
        """
        Initialize the gateway.

        Args:
            credentials: Credential context carrying the user's access token
            service: Prebuilt Drive service; built from `credentials` if None
            page_size: Files per listing request
            chunk_size: Bytes per streamed download chunk
        """
        self.page_size = page_size
        self.chunk_size = chunk_size
        self.service = service
        if self.service is None:
            if credentials is None:
                raise ValueError("Drive gateway needs credentials or a service")
            self._authenticate(credentials)

    def _authenticate(self, credentials: CredentialContext):
        """Build the Drive service from the access token (no refresh token)."""
        creds = Credentials(token=credentials.access_token)
        self.service = build('drive', 'v3', credentials=creds, cache_discovery=False)

    def list_images(self, folder_id: str) -> List[Dict[str, Any]]:
        """
        List every non-trashed image in a folder.

        Follows `nextPageToken` until exhausted. Files are returned in the
        order the API gives them; an id seen on an earlier page is skipped.

        Args:
            folder_id: Google Drive folder ID

        Returns:
            List of file metadata dicts with keys: id, name, mimeType,
            webContentLink, webViewLink
        """
        query = " and ".join([
            f"'{_quote(folder_id)}' in parents",
            "mimeType contains 'image/'",
            "trashed = false"
        ])

        files: List[Dict[str, Any]] = []
        seen = set()
        page_token = None
        pages = 0

        while True:
            try:
                results = self.service.files().list(
                    q=query,
                    spaces='drive',
                    fields=self.LISTING_FIELDS,
                    pageSize=self.page_size,
                    pageToken=page_token
                ).execute()
            except HttpError as e:
                logger.error(f"Drive API error listing folder {folder_id}: {e}")
                raise

            pages += 1
            for file in results.get('files', []):
                if file.get('id') in seen:
                    continue
                seen.add(file.get('id'))
                files.append(file)

            page_token = results.get('nextPageToken')
            if not page_token:
                break

        logger.info(f"Found {len(files)} images in folder {folder_id} across {pages} page(s)")
        return files

    def get_file_metadata(self, file_id: str) -> Dict[str, Any]:
        """Metadata needed to serve a file: id, name, mimeType, version."""
        try:
            return self.service.files().get(
                fileId=file_id,
                fields='id, name, mimeType, version'
            ).execute()
        except HttpError as e:
            logger.error(f"Failed to fetch metadata for {file_id}: {e}")
            raise

    def iter_file_chunks(self, file_id: str) -> Iterator[bytes]:
        """
        Yield the raw bytes of a file chunk by chunk, unmodified.

        Args:
            file_id: Google Drive file ID
        """
        request = self.service.files().get_media(fileId=file_id)
        buffer = io.BytesIO()
        downloader = MediaIoBaseDownload(buffer, request, chunksize=self.chunk_size)

        done = False
        while not done:
            _, done = downloader.next_chunk()
            chunk = buffer.getvalue()
            if chunk:
                yield chunk
            buffer.seek(0)
            buffer.truncate(0)

    def download_bytes(self, file_id: str) -> bytes:
        """Download a whole file into memory."""
        try:
            return b"".join(self.iter_file_chunks(file_id))
        except HttpError as e:
            logger.error(f"Failed to download file {file_id}: {e}")
            raise

    def find_file_by_name(self, folder_id: str, name: str) -> Optional[Dict[str, Any]]:
        """
        Find a non-trashed file in a folder by exact name.

        Returns:
            The oldest match (id, name, version) or None
        """
        query = (f"'{_quote(folder_id)}' in parents and "
                 f"name = '{_quote(name)}' and trashed = false")
        try:
            results = self.service.files().list(
                q=query,
                spaces='drive',
                fields='files(id, name, version)',
                orderBy='createdTime'
            ).execute()
        except HttpError as e:
            logger.error(f"Failed to search for {name} in folder {folder_id}: {e}")
            raise

        files = results.get('files', [])
        if len(files) > 1:
            logger.warning(f"Found {len(files)} files named {name} in folder {folder_id}, using the oldest")
        return files[0] if files else None

    def create_file(
        self,
        folder_id: str,
        name: str,
        content: str,
        mime_type: str = CSV_MIME_TYPE
    ) -> Dict[str, Any]:
        """Create a text file in a folder with a multipart upload."""
        media = MediaIoBaseUpload(
            io.BytesIO(content.encode('utf-8')),
            mimetype=mime_type,
            resumable=False
        )
        metadata = {
            'name': name,
            'parents': [folder_id],
            'mimeType': mime_type
        }
        try:
            created = self.service.files().create(
                body=metadata,
                media_body=media,
                fields='id, name, version'
            ).execute()
        except HttpError as e:
            logger.error(f"Failed to create {name} in folder {folder_id}: {e}")
            raise

        logger.info(f"Created {name} ({created.get('id')}) in folder {folder_id}")
        return created

    def update_file(
        self,
        file_id: str,
        content: str,
        mime_type: str = CSV_MIME_TYPE
    ) -> Dict[str, Any]:
        """Replace a file's content in place."""
        media = MediaIoBaseUpload(
            io.BytesIO(content.encode('utf-8')),
            mimetype=mime_type,
            resumable=False
        )
        try:
            return self.service.files().update(
                fileId=file_id,
                media_body=media,
                fields='id, name, version'
            ).execute()
        except HttpError as e:
            logger.error(f"Failed to update file {file_id}: {e}")
            raise
