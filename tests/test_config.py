import os
import unittest
from unittest.mock import patch

from videopipe.config import PipelineConfig, load_config


class LoadConfigTestCase(unittest.TestCase):
    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self) -> None:
        config = load_config()

        self.assertIsNone(config.db_url)
        self.assertEqual(config.retry.poison_threshold, 3)
        self.assertEqual(config.visibility_timeout("scrape"), 120)
        self.assertEqual(config.visibility_timeout("enrich"), 300)
        self.assertEqual(config.visibility_timeout("geo"), 120)
        self.assertEqual(config.openai.embedding_dimensions, 1536)
        self.assertEqual(config.scraper.base_url, "https://api.scrapecreators.com")
        self.assertEqual(config.worker.idle_backoff_max, 30.0)

    @patch.dict(
        os.environ,
        {
            "VIDEOPIPE_DATABASE_URL": "postgresql://db/videos",
            "VIDEOPIPE_POISON_THRESHOLD": "5",
            "VIDEOPIPE_ENRICH_VISIBILITY_TIMEOUT": "600",
            "VIDEOPIPE_EMBEDDING_DIMENSIONS": "0",
            "SCRAPECREATORS_API_KEY": " sc-key ",
            "OPENAI_MODEL": "gpt-4o",
            "MAPBOX_ACCESS_TOKEN": "pk.token",
            "VIDEOPIPE_IDLE_BACKOFF_BASE": "not-a-number",
        },
        clear=True,
    )
    def test_environment_overrides(self) -> None:
        config = load_config()

        self.assertEqual(config.db_url, "postgresql://db/videos")
        self.assertEqual(config.retry.poison_threshold, 5)
        self.assertEqual(config.visibility_timeout("enrich"), 600)
        self.assertIsNone(config.openai.embedding_dimensions)
        self.assertEqual(config.scraper.api_key, "sc-key")
        self.assertEqual(config.openai.model, "gpt-4o")
        self.assertEqual(config.geocoder.access_token, "pk.token")
        self.assertEqual(config.worker.idle_backoff_base, 1.0)

    @patch.dict(os.environ, {"VIDEOPIPE_DATABASE_URL": "postgresql://db/videos"}, clear=True)
    def test_explicit_db_url_wins(self) -> None:
        self.assertEqual(load_config("sqlite://").db_url, "sqlite://")

    def test_unknown_stage(self) -> None:
        with self.assertRaises(KeyError):
            PipelineConfig().visibility_timeout("transcode")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
