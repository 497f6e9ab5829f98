import unittest

from support import RecordingWaker, make_session_factory
from videopipe.router import IngestRouter
from videopipe.schemas import SCRAPE_QUEUE
from videopipe.store import VideoStore
from videopipe.webhook import create_app
from videopipe.work_queue import WorkQueue


class WebhookTestCase(unittest.TestCase):
    def setUp(self) -> None:
        session_factory = make_session_factory()
        self.store = VideoStore(session_factory)
        self.queue = WorkQueue(session_factory)
        self.waker = RecordingWaker()
        app = create_app(IngestRouter(self.store, self.queue, self.waker))
        app.testing = True
        self.client = app.test_client()

    def test_healthcheck(self) -> None:
        response = self.client.get("/healthz")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"ok": True})

    def test_insert_notification_is_routed(self) -> None:
        video_id = self.store.insert("https://www.tiktok.com/@chef/video/1")
        response = self.client.post(
            "/webhooks/videos",
            json={
                "type": "INSERT",
                "table": "videos",
                "record": {"id": video_id, "video_url": "https://www.tiktok.com/@chef/video/1"},
                "old_record": None,
            },
        )

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["action"], "routed")
        self.assertEqual(body["reason"], "tiktok")
        self.assertEqual(self.queue.depth(SCRAPE_QUEUE), 1)
        self.assertEqual(self.waker.calls, ["scrape"])

    def test_ignored_notifications_still_answer_ok(self) -> None:
        response = self.client.post("/webhooks/videos", json={"type": "DELETE", "record": {"id": "x"}})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["action"], "ignored")

    def test_non_json_body_is_ignored(self) -> None:
        response = self.client.post("/webhooks/videos", data="garbage", content_type="text/plain")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["reason"], "not an insert event")

    def test_non_object_body_is_ignored(self) -> None:
        response = self.client.post("/webhooks/videos", json=[1, 2, 3])
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["action"], "ignored")
        self.assertEqual(self.queue.depth(SCRAPE_QUEUE), 0)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
