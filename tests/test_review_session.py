"""Review session state machine driven by a scripted client."""

import asyncio

import pytest

from image_labeler.models.schemas import DriveFile
from image_labeler.review.client import LabelerClientError
from image_labeler.review.session import ReviewSession, SessionState


def drive_file(n):
    return DriveFile(id=f"img-{n}", name=f"scan_{n}.png", mimeType="image/png")


class ScriptedClient:
    def __init__(self, count=3, list_error=None, save_error=None, fetch_error=None):
        self.images = [drive_file(n) for n in range(count)]
        self.list_error = list_error
        self.save_error = save_error
        self.fetch_error = fetch_error
        self.saved = []
        self.fetched = []

    async def list_images(self, folder_id):
        if self.list_error:
            raise self.list_error
        return list(self.images)

    async def fetch_image(self, file_id):
        self.fetched.append(file_id)
        if self.fetch_error:
            raise self.fetch_error
        return f"bytes-{file_id}".encode()

    async def save_label(self, image, scores, comments, folder_id):
        if self.save_error:
            raise self.save_error
        self.saved.append((image.id, list(scores), comments, folder_id))
        return {"message": "Labeling data saved successfully!"}


def loaded_session(count=3, **kwargs):
    session = ReviewSession(ScriptedClient(count=count), **kwargs)
    asyncio.run(session.set_folder("folder-1"))
    return session


def test_starts_idle():
    session = ReviewSession(ScriptedClient())
    assert session.state == SessionState.IDLE
    assert session.current_image is None


def test_loading_a_folder():
    session = loaded_session()
    assert session.state == SessionState.BROWSING
    assert session.current_image.id == "img-0"
    assert session.scores == [0] * 6
    assert session.comments == "N/A"


def test_empty_folder_stays_idle():
    session = loaded_session(count=0)
    assert session.state == SessionState.IDLE
    assert session.images == []


def test_blank_folder_id_clears_images():
    session = loaded_session()
    asyncio.run(session.set_folder(""))
    assert session.state == SessionState.IDLE
    assert session.images == []


def test_listing_error_is_shown():
    client = ScriptedClient(list_error=LabelerClientError("Error: 500 Internal Server Error", 500))
    session = ReviewSession(client)
    asyncio.run(session.set_folder("folder-1"))

    assert session.state == SessionState.IDLE
    assert session.error == "Error: 500 Internal Server Error"
    session.dismiss_error()
    assert session.error is None


def test_changing_folder_resets_scores():
    session = loaded_session()
    session.set_score(2, 1)
    session.set_comments("blurry")
    session.next_image()

    asyncio.run(session.set_folder("folder-2"))

    assert session.index == 0
    assert session.scores == [0] * 6
    assert session.comments == "N/A"


def test_arrow_keys_stay_in_bounds():
    session = loaded_session(count=3)

    for _ in range(10):
        session.handle_key("ArrowRight")
        assert 0 <= session.index <= 2
    assert session.index == 2

    for _ in range(10):
        session.handle_key("ArrowLeft")
        assert 0 <= session.index <= 2
    assert session.index == 0


def test_go_to_clamps():
    session = loaded_session(count=3)
    session.go_to(99)
    assert session.index == 2
    session.go_to(-5)
    assert session.index == 0


@pytest.mark.parametrize("criterion_key,score_key", [
    ("1", "1"), ("3", "1"), ("6", "1"), ("4", "0"),
])
def test_digit_then_score_sets_exactly_one_slot(criterion_key, score_key):
    session = loaded_session()
    session.scores = [1, 0, 1, 0, 1, 0] if score_key == "0" else [0] * 6
    before = list(session.scores)

    assert session.handle_key(criterion_key)
    assert session.focused_criterion == int(criterion_key) - 1
    assert session.handle_key(score_key)

    slot = int(criterion_key) - 1
    assert session.scores[slot] == int(score_key)
    for i, value in enumerate(session.scores):
        if i != slot:
            assert value == before[i]
    assert session.focused_criterion is None


def test_digit_refocuses_before_scoring():
    session = loaded_session()
    session.handle_key("2")
    session.handle_key("5")
    session.handle_key("1")
    assert session.scores == [0, 0, 0, 0, 1, 0]


def test_score_key_without_focus_does_nothing():
    session = loaded_session()
    assert session.handle_key("0") is False
    assert session.scores == [0] * 6


def test_unknown_keys_are_ignored():
    session = loaded_session()
    assert session.handle_key("7") is False
    assert session.handle_key("a") is False


def test_navigation_clears_focus():
    session = loaded_session()
    session.handle_key("3")
    session.handle_key("ArrowRight")
    assert session.focused_criterion is None


def test_keys_ignored_while_busy():
    session = loaded_session()
    session.state = SessionState.SAVING
    assert session.handle_key("ArrowRight") is False
    assert session.index == 0


def test_set_score_validates():
    session = loaded_session()
    with pytest.raises(IndexError):
        session.set_score(6, 1)
    with pytest.raises(ValueError):
        session.set_score(0, 2)


def test_zoom_is_clamped():
    session = loaded_session()
    for _ in range(50):
        session.wheel(-1, 0, 0)
    assert session.view.zoom == pytest.approx(5.0)
    for _ in range(50):
        session.wheel(1, 0, 0)
    assert session.view.zoom == pytest.approx(1.0)


def test_zoom_keeps_cursor_point_fixed():
    session = loaded_session()
    session.wheel(-1, 100, 50)
    assert session.view.zoom == pytest.approx(1.1)
    assert session.view.pan_x == pytest.approx(-10.0)
    assert session.view.pan_y == pytest.approx(-5.0)


def test_drag_pans_only_when_zoomed():
    session = loaded_session()
    session.press(10, 10)
    session.drag(50, 50)
    assert (session.view.pan_x, session.view.pan_y) == (0, 0)

    session.wheel(-1, 0, 0)
    session.press(10, 10)
    session.drag(30, 25)
    session.release()
    assert (session.view.pan_x, session.view.pan_y) == (20, 15)
    session.drag(100, 100)
    assert (session.view.pan_x, session.view.pan_y) == (20, 15)


def test_double_click_and_image_change_reset_view():
    session = loaded_session()
    session.wheel(-1, 100, 100)
    session.double_click()
    assert session.view.zoom == 1.0
    assert session.view.pan_x == 0.0

    session.wheel(-1, 100, 100)
    session.next_image()
    assert session.view.zoom == 1.0


def test_save_posts_scores_and_advances():
    session = loaded_session()
    session.handle_key("1")
    session.handle_key("1")
    session.set_comments("good")

    result = asyncio.run(session.save())

    assert result["message"] == "Labeling data saved successfully!"
    assert session.client.saved == [("img-0", [1, 0, 0, 0, 0, 0], "good", "folder-1")]
    assert session.state == SessionState.BROWSING
    assert session.index == 1
    assert session.scores == [0] * 6
    assert session.comments == "N/A"


def test_save_on_last_image_stays():
    session = loaded_session(count=1)
    session.set_score(0, 1)
    asyncio.run(session.save())
    assert session.index == 0
    assert session.scores[0] == 1


def test_save_without_advancing():
    session = loaded_session(advance_on_save=False)
    asyncio.run(session.save())
    assert session.index == 0


def test_save_error_is_shown():
    session = loaded_session()
    session.client.save_error = LabelerClientError("Failed to save labeling data", 500)

    assert asyncio.run(session.save()) is None
    assert session.error == "Error saving data: Failed to save labeling data"
    assert session.state == SessionState.BROWSING
    assert session.index == 0


def test_save_without_image():
    session = ReviewSession(ScriptedClient())
    assert asyncio.run(session.save()) is None
    assert session.error == "No image to save."


def test_next_image_is_prefetched():
    async def scenario():
        session = ReviewSession(ScriptedClient(count=3))
        await session.set_folder("folder-1")
        await asyncio.sleep(0)
        session.next_image()
        await asyncio.sleep(0)
        return session.client.fetched

    assert asyncio.run(scenario()) == ["img-1", "img-2"]


def test_stale_listing_is_dropped():
    class SlowClient(ScriptedClient):
        def __init__(self):
            super().__init__(count=2)
            self.gate = None

        async def list_images(self, folder_id):
            if folder_id == "slow":
                await self.gate.wait()
                return [drive_file(99)]
            return await super().list_images(folder_id)

    async def scenario():
        client = SlowClient()
        client.gate = asyncio.Event()
        session = ReviewSession(client, prefetch=False)
        slow = asyncio.ensure_future(session.set_folder("slow"))
        await asyncio.sleep(0)
        await session.set_folder("fast")
        client.gate.set()
        await slow
        return session

    session = asyncio.run(scenario())
    assert session.folder_id == "fast"
    assert [image.id for image in session.images] == ["img-0", "img-1"]


def test_prefetched_image_is_served_from_cache():
    async def scenario():
        session = ReviewSession(ScriptedClient(count=3))
        await session.set_folder("folder-1")
        await asyncio.sleep(0)
        session.next_image()
        data = await session.current_image_bytes()
        return session, data

    session, data = asyncio.run(scenario())
    assert data == b"bytes-img-1"
    assert session.client.fetched.count("img-1") == 1


def test_current_image_waits_for_in_flight_prefetch():
    async def scenario():
        session = ReviewSession(ScriptedClient(count=3))
        await session.set_folder("folder-1")
        session.next_image()
        data = await session.current_image_bytes()
        return session, data

    session, data = asyncio.run(scenario())
    assert data == b"bytes-img-1"
    assert session.client.fetched.count("img-1") == 1


def test_current_image_is_downloaded_once():
    async def scenario():
        session = ReviewSession(ScriptedClient(count=2), prefetch=False)
        await session.set_folder("folder-1")
        first = await session.current_image_bytes()
        second = await session.current_image_bytes()
        return session, first, second

    session, first, second = asyncio.run(scenario())
    assert first == second == b"bytes-img-0"
    assert session.client.fetched == ["img-0"]


def test_changing_folder_drops_cached_images():
    async def scenario():
        session = ReviewSession(ScriptedClient(count=2), prefetch=False)
        await session.set_folder("folder-1")
        await session.current_image_bytes()
        await session.set_folder("folder-2")
        await session.current_image_bytes()
        return session

    assert asyncio.run(scenario()).client.fetched == ["img-0", "img-0"]


def test_image_download_error_is_shown():
    client = ScriptedClient(fetch_error=LabelerClientError("Failed to fetch file from Google Drive", 500))

    async def scenario():
        session = ReviewSession(client, prefetch=False)
        await session.set_folder("folder-1")
        return session, await session.current_image_bytes()

    session, data = asyncio.run(scenario())
    assert data is None
    assert session.error == "Error loading image: Failed to fetch file from Google Drive"


def test_no_image_no_bytes():
    session = ReviewSession(ScriptedClient())
    assert asyncio.run(session.current_image_bytes()) is None
