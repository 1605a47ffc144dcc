"""
Label ledger: one append-only CSV per Drive folder.

Drive has no append operation, so every save reads the whole ledger,
appends one row and writes the whole file back.
"""

import csv
import io
import logging
import threading
import weakref
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from googleapiclient.errors import HttpError

from image_labeler.errors import UpstreamError, from_http_error
from image_labeler.rubric import LEDGER_COLUMNS, LEDGER_HEADER
from image_labeler.services.drive_gateway import DriveGateway

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_NAME = "image_labels.csv"

# Entries disappear once no save holds the lock
_folder_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
_folder_locks_guard = threading.Lock()


def _folder_lock(folder_id: str) -> threading.Lock:
    """Per-folder lock serializing ledger writes within this process."""
    with _folder_locks_guard:
        lock = _folder_locks.get(folder_id)
        if lock is None:
            lock = threading.Lock()
            _folder_locks[folder_id] = lock
        return lock


@dataclass
class LedgerWriteResult:
    """Result of one ledger append."""
    file_id: Optional[str]
    created: bool
    attempts: int = 1


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-05-01T12:00:00.000Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_row(
    timestamp: str,
    user_email: str,
    image_id: str,
    image_name: str,
    scores: Sequence[int],
    comments: str
) -> str:
    """
    Format one ledger row, newline-terminated.

    The comment is always double-quoted with embedded quotes doubled; the
    other fields are quoted only when they need it.
    """
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="").writerow(
        [timestamp, user_email, image_id, image_name, *scores]
    )
    escaped = comments.replace('"', '""')
    return f'{buffer.getvalue()},"{escaped}"\n'


def merge_content(existing: Optional[str], row: str) -> str:
    """
    Append a row to existing ledger text.

    Empty or missing content starts a fresh ledger. Content without the
    header line gets the header prepended; its bytes are kept after it.
    """
    if not existing:
        return f"{LEDGER_HEADER}\n{row}"

    content = existing
    if LEDGER_HEADER not in content:
        content = f"{LEDGER_HEADER}\n{content}"
    if not content.endswith("\n"):
        content += "\n"
    return content + row


def parse_rows(text: str) -> List[Dict[str, str]]:
    """Parse ledger text into dicts keyed by the ledger columns, skipping header lines."""
    reader = csv.DictReader(io.StringIO(text), fieldnames=LEDGER_COLUMNS)
    return [
        dict(row) for row in reader
        if row.get("timestamp") != LEDGER_COLUMNS[0]
    ]


class LabelLedger:
    """
    Finds or creates the folder's label CSV and appends rows to it.

    Writes are optimistic: the file version seen when reading is compared to
    the current version just before writing, and the read-modify-write is
    retried if another writer got there first.
    """

    def __init__(
        self,
        gateway: DriveGateway,
        file_name: str = DEFAULT_LEDGER_NAME,
        max_retries: int = 3
    ):
        self.gateway = gateway
        self.file_name = file_name
        self.max_retries = max(1, max_retries)

    def _find_ledger(self, folder_id: str) -> Optional[Dict]:
        try:
            return self.gateway.find_file_by_name(folder_id, self.file_name)
        except HttpError as e:
            # Proceed as if the ledger does not exist yet
            logger.error(f"Error searching for {self.file_name} in folder {folder_id}: {e}")
            return None

    def _download(self, file_id: str) -> Optional[str]:
        try:
            return self.gateway.download_bytes(file_id).decode("utf-8", errors="replace")
        except HttpError as e:
            logger.error(f"Error downloading existing ledger {file_id}, a new one will be created: {e}")
            return None

    def _version_changed(self, ledger: Dict) -> bool:
        seen = ledger.get("version")
        if seen is None:
            return False
        try:
            current = self.gateway.get_file_metadata(ledger["id"]).get("version")
        except HttpError as e:
            raise from_http_error("Failed to save labeling data", e) from e
        return current is not None and str(current) != str(seen)

    def append(
        self,
        folder_id: str,
        image_id: str,
        image_name: str,
        scores: Sequence[int],
        comments: str,
        user_email: str,
        timestamp: Optional[str] = None
    ) -> LedgerWriteResult:
        """
        Append exactly one row to the folder's ledger.

        Args:
            folder_id: Drive folder holding the images and the ledger
            image_id: Drive file ID of the scored image
            image_name: File name of the scored image
            scores: One 0/1 score per rubric criterion
            comments: Free-text comment
            user_email: Email of the clinician who scored the image
            timestamp: Row timestamp; defaults to now

        Returns:
            LedgerWriteResult with the ledger's file ID

        Raises:
            AuthenticationError: Drive rejected the access token
            UpstreamError: The ledger could not be written
        """
        row = format_row(
            timestamp or utc_timestamp(),
            user_email,
            image_id,
            image_name,
            scores,
            comments
        )

        with _folder_lock(folder_id):
            for attempt in range(1, self.max_retries + 1):
                ledger = self._find_ledger(folder_id)
                existing = None
                if ledger:
                    existing = self._download(ledger["id"])
                    if existing is None:
                        ledger = None

                content = merge_content(existing, row)

                try:
                    if ledger is None:
                        created = self.gateway.create_file(folder_id, self.file_name, content)
                        return LedgerWriteResult(file_id=created.get("id"), created=True, attempts=attempt)

                    if self._version_changed(ledger):
                        logger.warning(
                            f"Ledger {ledger['id']} changed while appending "
                            f"(attempt {attempt}/{self.max_retries}), retrying"
                        )
                        continue

                    self.gateway.update_file(ledger["id"], content)
                    return LedgerWriteResult(file_id=ledger["id"], created=False, attempts=attempt)
                except HttpError as e:
                    raise from_http_error("Failed to save labeling data", e) from e

        raise UpstreamError(
            "Failed to save labeling data",
            details=f"{self.file_name} kept changing during {self.max_retries} attempts"
        )

    def read_rows(self, folder_id: str) -> List[Dict[str, str]]:
        """Return every ledger row for a folder, or an empty list if there is no ledger."""
        try:
            ledger = self.gateway.find_file_by_name(folder_id, self.file_name)
            if not ledger:
                return []
            text = self.gateway.download_bytes(ledger["id"]).decode("utf-8", errors="replace")
        except HttpError as e:
            raise from_http_error("Failed to read labeling data", e) from e
        return parse_rows(text)
