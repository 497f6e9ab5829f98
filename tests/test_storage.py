import unittest
import uuid

from support import make_session_factory
from videopipe.schemas import ProcessingStatus
from videopipe.store import RecordStoreError, VideoStore


class VideoStoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.store = VideoStore(make_session_factory())

    def test_insert_assigns_uuid7_id(self) -> None:
        video_id = self.store.insert("https://youtu.be/abc")
        self.assertEqual(uuid.UUID(video_id).version, 7)
        record = self.store.get(video_id)
        self.assertEqual(record["id"], video_id)
        self.assertEqual(record["video_url"], "https://youtu.be/abc")
        self.assertIsNone(record["processing_status"])

    def test_partial_update_leaves_other_fields(self) -> None:
        video_id = self.store.insert("https://youtu.be/abc", title="Original")

        self.assertTrue(
            self.store.update_fields(
                video_id,
                {"processing_status": ProcessingStatus.DONE, "tags": ["a", "b"], "lat": 1.5},
            )
        )

        record = self.store.get(video_id)
        self.assertEqual(record["title"], "Original")
        self.assertEqual(record["processing_status"], "done")
        self.assertEqual(record["tags"], ["a", "b"])
        self.assertEqual(record["lat"], 1.5)

    def test_update_of_missing_row_reports_false(self) -> None:
        self.assertFalse(self.store.update_fields(str(uuid.uuid4()), {"title": "x"}))
        self.assertTrue(self.store.update_fields(str(uuid.uuid4()), {}))

    def test_rejects_unknown_fields_and_bad_ids(self) -> None:
        video_id = self.store.insert("https://youtu.be/abc")
        with self.assertRaises(RecordStoreError):
            self.store.update_fields(video_id, {"id": str(uuid.uuid4())})
        with self.assertRaises(RecordStoreError):
            self.store.update_fields(video_id, {"nonsense": 1})
        with self.assertRaises(RecordStoreError):
            self.store.get("not-a-uuid")

    def test_select_filters_by_equality(self) -> None:
        done_id = self.store.insert("https://youtu.be/a", processing_status="done")
        self.store.insert("https://youtu.be/b", processing_status="failed")

        rows = self.store.select(processing_status="done")
        self.assertEqual([row["id"] for row in rows], [done_id])

    def test_select_unrouted(self) -> None:
        fresh_id = self.store.insert("https://youtu.be/a")
        failed_id = self.store.insert("https://youtu.be/b", processing_status="failed")
        self.store.insert("https://youtu.be/c", processing_status="pending")
        self.store.insert("https://youtu.be/d", transcript_text="done already")
        self.store.insert(None)

        self.assertEqual([row["id"] for row in self.store.select_unrouted(10)], [fresh_id])
        self.assertEqual(
            sorted(row["id"] for row in self.store.select_unrouted(10, include_failed=True)),
            sorted([fresh_id, failed_id]),
        )
        self.assertEqual(len(self.store.select_unrouted(1, include_failed=True)), 1)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
