"""Shared fixtures: an in-memory Drive and an API client wired to it."""

import itertools
import json
from typing import Any, Dict, Iterator, List, Optional

import httplib2
import pytest
from fastapi.testclient import TestClient
from googleapiclient.errors import HttpError

from image_labeler.api.deps import get_drive_gateway
from image_labeler.main import app


def make_http_error(status: int, message: str = "boom") -> HttpError:
    resp = httplib2.Response({"status": str(status)})
    content = json.dumps({"error": {"code": status, "message": message}}).encode()
    return HttpError(resp, content)


class FakeDriveGateway:
    """In-memory stand-in for DriveGateway with switchable failures."""

    def __init__(self):
        self.files: Dict[str, Dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self.fail_list: Optional[HttpError] = None
        self.fail_search: Optional[HttpError] = None
        self.fail_download: Optional[HttpError] = None
        self.fail_write: Optional[HttpError] = None
        self.calls: List[str] = []

    def add_file(self, folder_id: str, name: str, content: bytes = b"",
                 mime_type: str = "image/png", file_id: Optional[str] = None) -> str:
        file_id = file_id or f"file-{next(self._ids)}"
        self.files[file_id] = {
            "id": file_id,
            "name": name,
            "mimeType": mime_type,
            "parents": [folder_id],
            "content": content,
            "version": 1,
        }
        return file_id

    def content_of(self, file_id: str) -> str:
        return self.files[file_id]["content"].decode("utf-8")

    def files_named(self, folder_id: str, name: str) -> List[Dict[str, Any]]:
        return [
            f for f in self.files.values()
            if f["name"] == name and folder_id in f["parents"]
        ]

    def list_images(self, folder_id: str) -> List[Dict[str, Any]]:
        self.calls.append("list_images")
        if self.fail_list:
            raise self.fail_list
        return [
            {
                "id": f["id"],
                "name": f["name"],
                "mimeType": f["mimeType"],
                "webContentLink": f"https://drive.google.com/uc?id={f['id']}",
                "webViewLink": f"https://drive.google.com/file/d/{f['id']}/view",
            }
            for f in self.files.values()
            if folder_id in f["parents"] and f["mimeType"].startswith("image/")
        ]

    def get_file_metadata(self, file_id: str) -> Dict[str, Any]:
        self.calls.append("get_file_metadata")
        if file_id not in self.files:
            raise make_http_error(404, "File not found")
        f = self.files[file_id]
        return {"id": f["id"], "name": f["name"], "mimeType": f["mimeType"], "version": str(f["version"])}

    def iter_file_chunks(self, file_id: str) -> Iterator[bytes]:
        content = self.files[file_id]["content"]
        for start in range(0, len(content), 4):
            yield content[start:start + 4]

    def download_bytes(self, file_id: str) -> bytes:
        self.calls.append("download_bytes")
        if self.fail_download:
            raise self.fail_download
        return self.files[file_id]["content"]

    def find_file_by_name(self, folder_id: str, name: str) -> Optional[Dict[str, Any]]:
        self.calls.append("find_file_by_name")
        if self.fail_search:
            raise self.fail_search
        matches = self.files_named(folder_id, name)
        if not matches:
            return None
        f = matches[0]
        return {"id": f["id"], "name": f["name"], "version": str(f["version"])}

    def create_file(self, folder_id: str, name: str, content: str, mime_type: str = "text/csv") -> Dict[str, Any]:
        self.calls.append("create_file")
        if self.fail_write:
            raise self.fail_write
        file_id = self.add_file(folder_id, name, content.encode("utf-8"), mime_type)
        return {"id": file_id, "name": name, "version": "1"}

    def update_file(self, file_id: str, content: str, mime_type: str = "text/csv") -> Dict[str, Any]:
        self.calls.append("update_file")
        if self.fail_write:
            raise self.fail_write
        f = self.files[file_id]
        f["content"] = content.encode("utf-8")
        f["version"] += 1
        return {"id": file_id, "name": f["name"], "version": str(f["version"])}


@pytest.fixture
def fake_drive() -> FakeDriveGateway:
    return FakeDriveGateway()


@pytest.fixture
def api(fake_drive):
    app.dependency_overrides[get_drive_gateway] = lambda: fake_drive
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"Authorization": "Bearer test-access-token"}
