"""
Review session: the in-memory state of one clinician reviewing one folder.

Tracks the current image, the six scores, the comment, keyboard focus and
the zoom/pan transform of the image viewer. Network work goes through a
LabelerClient.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import cachetools
import httpx

from image_labeler.models.schemas import DriveFile
from image_labeler.review.client import LabelerClient, LabelerClientError
from image_labeler.rubric import CRITERIA_COUNT, SCORE_VALUES

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    BROWSING = "browsing"
    SAVING = "saving"


@dataclass
class ViewTransform:
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0


class ReviewSession:
    ZOOM_STEP = 1.1
    MIN_ZOOM = 1.0
    MAX_ZOOM = 5.0
    DEFAULT_COMMENTS = "N/A"
    IMAGE_CACHE_SIZE = 8

    def __init__(self, client: LabelerClient, advance_on_save: bool = True, prefetch: bool = True):
        self.client = client
        self.advance_on_save = advance_on_save
        self.prefetch = prefetch

        self.state = SessionState.IDLE
        self.folder_id = ""
        self.images: List[DriveFile] = []
        self.index = 0
        self.scores: List[int] = [0] * CRITERIA_COUNT
        self.comments = self.DEFAULT_COMMENTS
        self.focused_criterion: Optional[int] = None
        self.error: Optional[str] = None

        self.view = ViewTransform()
        self.panning = False
        self._pan_start = (0.0, 0.0)
        # Image bytes by file id, filled by prefetch and by current_image_bytes
        self._image_cache: cachetools.LRUCache = cachetools.LRUCache(maxsize=self.IMAGE_CACHE_SIZE)
        self._prefetch_tasks: Dict[str, asyncio.Task] = {}

    @property
    def current_image(self) -> Optional[DriveFile]:
        if 0 <= self.index < len(self.images):
            return self.images[self.index]
        return None

    @property
    def is_busy(self) -> bool:
        return self.state in (SessionState.LOADING, SessionState.SAVING)

    def _reset_scoring(self):
        self.scores = [0] * CRITERIA_COUNT
        self.comments = self.DEFAULT_COMMENTS
        self.focused_criterion = None

    def reset_view(self):
        self.view = ViewTransform()
        self.panning = False

    def dismiss_error(self):
        self.error = None

    # Folder loading

    async def set_folder(self, folder_id: str):
        """Load the images of a folder, resetting all per-folder state."""
        folder_id = (folder_id or "").strip()
        self.folder_id = folder_id

        if not folder_id:
            self.images = []
            self.index = 0
            self.state = SessionState.IDLE
            return

        self.state = SessionState.LOADING
        self.error = None
        try:
            images = await self.client.list_images(folder_id)
        except (LabelerClientError, httpx.HTTPError) as e:
            if self.folder_id != folder_id:
                return
            logger.warning(f"Failed to load folder {folder_id}: {e}")
            self.error = str(e)
            self.images = []
            self.state = SessionState.IDLE
            return

        if self.folder_id != folder_id:
            # A newer folder was requested while this listing was in flight
            logger.debug(f"Dropping stale listing for folder {folder_id}")
            return

        self.images = images
        self.index = 0
        self._image_cache.clear()
        self._reset_scoring()
        self.reset_view()
        self.state = SessionState.BROWSING if images else SessionState.IDLE
        self._prefetch_next()

    # Navigation

    def go_to(self, index: int) -> bool:
        """Move to an image, clamped to the loaded range. Returns True if it moved."""
        if not self.images:
            return False
        index = max(0, min(index, len(self.images) - 1))
        if index == self.index:
            return False
        self.index = index
        self.focused_criterion = None
        self.reset_view()
        self._prefetch_next()
        return True

    def next_image(self) -> bool:
        return self.go_to(self.index + 1)

    def previous_image(self) -> bool:
        return self.go_to(self.index - 1)

    # Scoring

    def set_score(self, criterion: int, value: int):
        if not 0 <= criterion < CRITERIA_COUNT:
            raise IndexError(f"criterion {criterion} out of range")
        if value not in SCORE_VALUES:
            raise ValueError(f"score must be 0 or 1, got {value}")
        self.scores[criterion] = value

    def set_comments(self, comments: str):
        self.comments = comments

    def handle_key(self, key: str) -> bool:
        """
        Apply one key press. Returns True if the key was used.

        Arrow keys navigate. A digit 1-6 focuses a criterion; with a
        criterion focused, 0 or 1 scores it and clears the focus.
        """
        if self.is_busy:
            return False

        if key == "ArrowLeft":
            self.previous_image()
            self.focused_criterion = None
            return True
        if key == "ArrowRight":
            self.next_image()
            self.focused_criterion = None
            return True

        if key in ("0", "1") and self.focused_criterion is not None:
            self.set_score(self.focused_criterion, int(key))
            self.focused_criterion = None
            return True

        if len(key) == 1 and "1" <= key <= str(CRITERIA_COUNT):
            self.focused_criterion = int(key) - 1
            return True

        return False

    # Zoom and pan

    def wheel(self, delta_y: float, mouse_x: float, mouse_y: float):
        """Zoom in (delta_y < 0) or out around the cursor position."""
        previous = self.view.zoom
        zoom = previous * self.ZOOM_STEP if delta_y < 0 else previous / self.ZOOM_STEP
        zoom = max(self.MIN_ZOOM, min(zoom, self.MAX_ZOOM))

        # Keep the point under the cursor fixed
        growth = zoom / previous - 1
        self.view.pan_x -= mouse_x * growth
        self.view.pan_y -= mouse_y * growth
        self.view.zoom = zoom

    def press(self, x: float, y: float):
        if self.view.zoom > self.MIN_ZOOM:
            self.panning = True
            self._pan_start = (x - self.view.pan_x, y - self.view.pan_y)

    def drag(self, x: float, y: float):
        if not self.panning:
            return
        self.view.pan_x = x - self._pan_start[0]
        self.view.pan_y = y - self._pan_start[1]

    def release(self):
        self.panning = False

    def double_click(self):
        self.reset_view()

    # Saving

    async def save(self) -> Optional[Dict[str, Any]]:
        """
        Save the current scores as one ledger row.

        Saves are not serialized: calling this again before the first call
        returns sends a second request.
        """
        image = self.current_image
        if image is None:
            self.error = "No image to save."
            return None

        self.state = SessionState.SAVING
        self.error = None
        try:
            result = await self.client.save_label(image, self.scores, self.comments, self.folder_id)
        except (LabelerClientError, httpx.HTTPError) as e:
            logger.warning(f"Failed to save label for {image.id}: {e}")
            self.error = f"Error saving data: {e}"
            return None
        finally:
            self.state = SessionState.BROWSING

        if self.advance_on_save and self.go_to(self.index + 1):
            self._reset_scoring()
        return result

    # Image bytes and prefetch

    async def current_image_bytes(self) -> Optional[bytes]:
        """
        Bytes of the current image, served from the prefetch cache when possible.

        Waits for an in-flight prefetch of the same image instead of starting a
        second download. Returns None (with `error` set) if the download fails.
        """
        image = self.current_image
        if image is None:
            return None

        cached = self._image_cache.get(image.id)
        if cached is not None:
            return cached

        pending = self._prefetch_tasks.get(image.id)
        try:
            if pending is not None:
                await pending
                cached = self._image_cache.get(image.id)
                if cached is not None:
                    return cached
            data = await self.client.fetch_image(image.id)
        except (LabelerClientError, httpx.HTTPError) as e:
            logger.warning(f"Failed to load image {image.id}: {e}")
            self.error = f"Error loading image: {e}"
            return None

        self._image_cache[image.id] = data
        return data

    def _prefetch_next(self):
        if not self.prefetch:
            return
        next_index = self.index + 1
        if next_index >= len(self.images):
            return
        file_id = self.images[next_index].id
        if file_id in self._image_cache or file_id in self._prefetch_tasks:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._prefetch(file_id, self.folder_id))
        self._prefetch_tasks[file_id] = task
        task.add_done_callback(lambda done: self._prefetch_done(file_id, done))

    async def _prefetch(self, file_id: str, folder_id: str):
        data = await self.client.fetch_image(file_id)
        if self.folder_id == folder_id:
            self._image_cache[file_id] = data

    def _prefetch_done(self, file_id: str, task: asyncio.Task):
        if self._prefetch_tasks.get(file_id) is task:
            del self._prefetch_tasks[file_id]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug(f"Image prefetch failed for {file_id}: {exc}")
