from __future__ import annotations

import io
import json
import unittest

from ig_profile.config_schema import AppConfig, CaptureConfig, DetailsConfig, SamplingConfig
from ig_profile.errors import ReconciliationFailure
from ig_profile.offline import OfflineBrowserDriver
from ig_profile.pipeline import resolve_sample_size, scrape_profile
from ig_profile.run_log import RunLogger


def _config(**overrides: object) -> AppConfig:
    data: dict = {"capture": CaptureConfig(grace_delay_ms=0)}
    data.update(overrides)
    return AppConfig(**data)


def _factory(driver: OfflineBrowserDriver):
    async def _open() -> OfflineBrowserDriver:
        return driver

    return _open


class TestResolveSampleSize(unittest.TestCase):
    def test_defaults_and_cap(self) -> None:
        sampling = SamplingConfig(default_sample_size=12, max_sample_size=50)
        cases = [
            (None, 12),
            ("", 12),
            ("abc", 12),
            ("0", 12),
            ("-4", 12),
            (-4, 12),
            ("5", 5),
            (" 7 ", 7),
            (20, 20),
            ("500", 50),
        ]
        for requested, expected in cases:
            with self.subTest(requested=requested):
                self.assertEqual(resolve_sample_size(requested, sampling), expected)


class TestScrapeProfile(unittest.IsolatedAsyncioTestCase):
    async def test_offline_run_end_to_end(self) -> None:
        stream = io.StringIO()
        driver = OfflineBrowserDriver()

        record = await scrape_profile(
            "offline.example",
            config=_config(),
            open_driver=_factory(driver),
            logger=RunLogger.to_stream(stream),
        )

        self.assertTrue(driver.closed)
        out = record.to_dict()
        self.assertEqual(out["username"], "offline.example")
        self.assertEqual(out["name"], "Offline Example")
        self.assertEqual(out["followers"], 12000)
        self.assertEqual(out["following"], 321)
        self.assertEqual(out["posts_count"], 87)
        self.assertEqual(out["_meta"]["source"], "fallback-fetch")
        self.assertEqual(
            out["analytics"],
            {
                "sample_size": 6,
                "avg_likes": 350,
                "avg_comments": 18,
                "engagement_rate_pct": 3.07,
            },
        )
        self.assertEqual(len(out["recent_posts"]), 6)
        first = out["recent_posts"][0]
        self.assertEqual(first["caption"], "Offline post number 1")
        self.assertEqual(first["thumbnail"], "https://example.com/offline/OFFLINE01.jpg")
        self.assertEqual(first["likes"], 100)
        self.assertEqual(first["comments"], 5)
        self.assertEqual([d.kind for d in record.diagnostics], ["ParseError"])

        events = [json.loads(ln)["event"] for ln in stream.getvalue().splitlines() if ln.strip()]
        self.assertIn("profile_reconciled", events)
        self.assertLess(events.index("browser_closed"), events.index("scrape_completed"))

    async def test_sample_size_limits_post_pages(self) -> None:
        driver = OfflineBrowserDriver()

        record = await scrape_profile(
            "offline.example",
            config=_config(),
            open_driver=_factory(driver),
            logger=RunLogger.to_stream(io.StringIO()),
            sample_size=2,
        )

        self.assertEqual(
            driver.navigations,
            [
                "https://www.instagram.com/offline.example/",
                "https://www.instagram.com/p/OFFLINE01/",
                "https://www.instagram.com/p/OFFLINE02/",
            ],
        )
        self.assertEqual(record.analytics.sample_size, 2)
        self.assertEqual(record.analytics.avg_likes, 150)
        self.assertEqual(record.analytics.avg_comments, 8)

    async def test_details_disabled_leaves_captions_empty(self) -> None:
        driver = OfflineBrowserDriver()

        record = await scrape_profile(
            "offline.example",
            config=_config(details=DetailsConfig(enabled=False)),
            open_driver=_factory(driver),
            logger=RunLogger.to_stream(io.StringIO()),
        )

        self.assertEqual(driver.navigations, ["https://www.instagram.com/offline.example/"])
        self.assertTrue(all(p.caption is None for p in record.recent_posts))
        self.assertEqual(record.analytics.sample_size, 6)

    async def test_no_observations_raises_and_closes_browser(self) -> None:
        driver = OfflineBrowserDriver(responses=(), fallback_result={"error": "blocked"})

        with self.assertRaises(ReconciliationFailure):
            await scrape_profile(
                "nobody",
                config=_config(),
                open_driver=_factory(driver),
                logger=RunLogger.to_stream(io.StringIO()),
            )

        self.assertTrue(driver.closed)


if __name__ == "__main__":
    unittest.main()
