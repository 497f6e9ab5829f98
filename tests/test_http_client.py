import unittest
from collections import deque

import httpx

from videopipe.config import GeocoderConfig, ScraperConfig
from videopipe.geo import Coordinates, GeocodingError, MapboxGeocoder, build_query
from videopipe.platforms import UnsupportedPlatformError
from videopipe.schemas import Platform
from videopipe.scraper import ProviderError, ProviderResponseError, ScrapeCreatorsClient


class ScrapeCreatorsClientTestCase(unittest.TestCase):
    def _client(self, handler) -> ScrapeCreatorsClient:
        config = ScraperConfig(api_key="sc-key", base_url="https://scraper.example.com")
        return ScrapeCreatorsClient(config, transport=httpx.MockTransport(handler))

    def test_youtube_combines_transcript_and_metadata(self) -> None:
        calls = deque()

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            self.assertEqual(request.headers.get("x-api-key"), "sc-key")
            self.assertEqual(request.url.params.get("url"), "https://www.youtube.com/watch?v=abc")
            if request.url.path == "/v1/youtube/video/transcript":
                return httpx.Response(
                    200,
                    json={"transcript": [{"text": "hello"}, {"text": "world"}], "url": "https://t.example/abc"},
                )
            return httpx.Response(
                200,
                json={"title": "Ramen tour", "channel": {"title": "Noodle Club"}, "publishedAt": "2024-02-03"},
            )

        client = self._client(handler)
        try:
            data = client.fetch_video_data("https://www.youtube.com/watch?v=abc")
        finally:
            client.close()

        self.assertEqual(sorted(calls), ["/v1/youtube/video", "/v1/youtube/video/transcript"])
        self.assertEqual(data.transcript_text, "hello world")
        self.assertEqual(data.transcript_preview, "hello world")
        self.assertEqual(data.transcript_url, "https://t.example/abc")
        self.assertEqual(data.title, "Ramen tour")
        self.assertEqual(data.creator, "Noodle Club")
        self.assertEqual(data.published, "2024-02-03")
        self.assertEqual(data.platform, Platform.YOUTUBE)
        self.assertEqual(data.normalized_url, "www.youtube.com/watch")

    def test_tiktok_uses_short_form_endpoint(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.url.path, "/v1/tiktok/video/transcript")
            return httpx.Response(200, json={"transcript": "x" * 800, "author": "chef"})

        client = self._client(handler)
        try:
            data = client.fetch_video_data("https://www.tiktok.com/@chef/video/1")
        finally:
            client.close()

        self.assertEqual(data.platform, Platform.TIKTOK)
        self.assertEqual(len(data.transcript_text), 800)
        self.assertEqual(len(data.transcript_preview), 500)
        self.assertEqual(data.creator, "chef")
        self.assertIsNone(data.title)

    def test_missing_transcript_becomes_empty_string(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        client = self._client(handler)
        try:
            data = client.fetch_video_data("https://www.instagram.com/reel/xyz/")
        finally:
            client.close()

        self.assertEqual(data.platform, Platform.INSTAGRAM)
        self.assertEqual(data.transcript_text, "")

    def test_unexpected_shape_raises_typed_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"transcript": {"unexpected": True}})

        client = self._client(handler)
        try:
            with self.assertRaises(ProviderResponseError):
                client.fetch_video_data("https://www.tiktok.com/@chef/video/1")
        finally:
            client.close()

    def test_error_status_raises_provider_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="upstream exploded")

        client = self._client(handler)
        try:
            with self.assertRaises(ProviderError) as ctx:
                client.fetch_video_data("https://www.tiktok.com/@chef/video/1")
        finally:
            client.close()
        self.assertNotIsInstance(ctx.exception, ProviderResponseError)
        self.assertIn("500", str(ctx.exception))

    def test_unsupported_platform_is_rejected_before_any_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be called
            raise AssertionError("no request expected")

        client = self._client(handler)
        try:
            with self.assertRaises(UnsupportedPlatformError):
                client.fetch_video_data("https://vimeo.com/1")
        finally:
            client.close()


class BuildQueryTestCase(unittest.TestCase):
    def test_address_and_city_preferred(self) -> None:
        self.assertEqual(
            build_query("Lupe's", "123 Mission St", "San Francisco", "Mission"),
            "123 Mission St, San Francisco",
        )

    def test_falls_back_to_venue_and_neighborhood(self) -> None:
        self.assertEqual(build_query("Lupe's", None, None, "Mission"), "Lupe's, Mission")

    def test_single_field_is_enough(self) -> None:
        self.assertEqual(build_query(None, None, "Austin", None), "Austin")
        self.assertEqual(build_query("Lupe's", None, None, None), "Lupe's")

    def test_nothing_to_query(self) -> None:
        self.assertIsNone(build_query(None, None, None, None))
        self.assertIsNone(build_query("  ", "", None, "\t"))


class MapboxGeocoderTestCase(unittest.TestCase):
    def _geocoder(self, handler) -> MapboxGeocoder:
        config = GeocoderConfig(access_token="pk.secret-token", base_url="https://geo.example.com/places")
        return MapboxGeocoder(config, transport=httpx.MockTransport(handler))

    def test_returns_center_of_top_feature(self) -> None:
        requests = deque()

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={"features": [{"center": [-122.42, 37.76], "place_name": "Mission St"}]},
            )

        geocoder = self._geocoder(handler)
        try:
            coordinates = geocoder.geocode("123 Mission St, San Francisco")
        finally:
            geocoder.close()

        self.assertEqual(coordinates, Coordinates(lat=37.76, lng=-122.42))
        request = requests[0]
        self.assertEqual(request.url.params.get("limit"), "1")
        self.assertEqual(request.url.params.get("access_token"), "pk.secret-token")
        self.assertEqual(request.url.path, "/places/123 Mission St, San Francisco.json")

    def test_no_features_returns_none(self) -> None:
        geocoder = self._geocoder(lambda request: httpx.Response(200, json={"features": []}))
        try:
            self.assertIsNone(geocoder.geocode("Nowhere"))
        finally:
            geocoder.close()

    def test_error_status_raises(self) -> None:
        geocoder = self._geocoder(lambda request: httpx.Response(401, json={"message": "Not Authorized"}))
        try:
            with self.assertRaises(GeocodingError):
                geocoder.geocode("Austin")
        finally:
            geocoder.close()


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
