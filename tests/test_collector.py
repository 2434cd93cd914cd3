from __future__ import annotations

import io
import json
import unittest

from ig_profile.collector import ObservationChannel, ObservationCollector
from ig_profile.config_schema import CaptureConfig
from ig_profile.diagnostics import Diagnostics
from ig_profile.errors import BrowserError
from ig_profile.models import RawObservation
from ig_profile.offline import OfflineBrowserDriver
from ig_profile.reconcile import normalized_candidates, reconcile
from ig_profile.run_log import RunLogger

_PROFILE = {"data": {"user": {"username": "jane", "edge_followed_by": {"count": 5}}}}
_EMBEDDED = (
    'window.__data = {"entry_data": {"ProfilePage": [{"graphql": {"user": {"username": "jane"}}}]}};'
)


def _collector(
    driver: OfflineBrowserDriver, **capture: object
) -> tuple[ObservationCollector, Diagnostics]:
    cfg = CaptureConfig(grace_delay_ms=0, **capture)  # type: ignore[arg-type]
    logger = RunLogger.to_stream(io.StringIO())
    diagnostics = Diagnostics(logger)
    return ObservationCollector(driver, cfg, diagnostics, logger), diagnostics


class TestObservationCollector(unittest.IsolatedAsyncioTestCase):
    async def test_collects_all_channels_in_discovery_order(self) -> None:
        driver = OfflineBrowserDriver(
            responses=[
                ("https://www.instagram.com/static/app.js", "var x = 1;"),
                ("https://www.instagram.com/api/graphql/", json.dumps(_PROFILE)),
                ("https://www.instagram.com/graphql/query/", "{broken"),
            ],
            fallback_result={"status": 200, "json": {"data": {"user": {"username": "jane"}}}},
            profile_scripts=["function () { no json here }", _EMBEDDED],
        )
        collector, diagnostics = _collector(driver)

        observations = await collector.collect("jane")

        self.assertEqual(
            [o.provenance for o in observations],
            ["network-capture", "fallback-fetch", "embedded-script"],
        )
        self.assertEqual(observations[0].source_url, "https://www.instagram.com/api/graphql/")
        self.assertEqual(observations[0].payload, _PROFILE)
        self.assertIn("entry_data", observations[2].payload)
        self.assertEqual(driver.navigations, ["https://www.instagram.com/jane/"])
        self.assertEqual(driver.evaluations, ["fallback", "embedded"])
        self.assertEqual(diagnostics.kinds(), ["ParseError", "ParseError"])

    async def test_first_parseable_script_wins(self) -> None:
        second = 'x = {"graphql": {"user": {"username": "second"}}};'
        driver = OfflineBrowserDriver(
            responses=[],
            fallback_result={"status": 404, "json": {"message": "not found"}},
            profile_scripts=[_EMBEDDED, second],
        )
        collector, _ = _collector(driver)

        observations = await collector.collect("jane")

        self.assertEqual(len(observations), 1)
        self.assertEqual(observations[0].provenance, "embedded-script")
        self.assertNotIn("graphql", observations[0].payload)

    async def test_missing_response_is_a_timeout_not_a_failure(self) -> None:
        driver = OfflineBrowserDriver(responses=[("https://cdn.example.com/a.js", "{}")])
        collector, diagnostics = _collector(driver)

        observations = await collector.collect("jane")

        self.assertEqual([o.provenance for o in observations], ["fallback-fetch"])
        self.assertIn("ChannelTimeout", diagnostics.kinds())

    async def test_navigation_timeout_proceeds_to_fallback(self) -> None:
        driver = OfflineBrowserDriver(fail_navigation_with=TimeoutError("slow page"))
        collector, diagnostics = _collector(driver)

        observations = await collector.collect("jane")

        self.assertEqual([o.provenance for o in observations], ["fallback-fetch"])
        self.assertEqual(diagnostics.kinds()[0], "ChannelTimeout")

    async def test_fallback_failures_are_diagnostics(self) -> None:
        cases = [
            ({"status": 429, "text": "<html>rate limited</html>"}, "ParseError"),
            ({"error": "Failed to fetch"}, "ChannelError"),
            ({"status": 200, "json": {"status": "fail"}}, "ChannelError"),
            (None, "ChannelError"),
        ]
        for result, kind in cases:
            with self.subTest(result=result):
                driver = OfflineBrowserDriver(responses=[], fallback_result=result)
                collector, diagnostics = _collector(driver, embedded_enabled=False)

                observations = await collector.collect("jane")

                self.assertEqual(observations, [])
                self.assertEqual(diagnostics.kinds(), ["ChannelTimeout", kind])

    async def test_username_is_url_quoted(self) -> None:
        driver = OfflineBrowserDriver(responses=[])
        collector, _ = _collector(driver, fallback_enabled=False, embedded_enabled=False)

        await collector.collect("a b/c")

        self.assertEqual(driver.navigations, ["https://www.instagram.com/a%20b%2Fc/"])

    async def test_channel_overflow_is_recorded(self) -> None:
        driver = OfflineBrowserDriver(
            responses=[
                ("https://www.instagram.com/api/graphql/", json.dumps(_PROFILE)),
                ("https://www.instagram.com/api/graphql/", json.dumps(_PROFILE)),
            ],
        )
        collector, diagnostics = _collector(driver, max_observations=1)

        observations = await collector.collect("jane")

        self.assertEqual(len(observations), 1)
        self.assertEqual(diagnostics.kinds(), ["ChannelError", "ChannelError"])

    async def test_stray_fragment_does_not_shadow_later_script(self) -> None:
        profile_script = "window._sharedData = " + json.dumps(
            {
                "entry_data": {
                    "ProfilePage": [
                        {
                            "graphql": {
                                "user": {
                                    "username": "jane",
                                    "edge_followed_by": {"count": 10},
                                    "edge_follow": {"count": 2},
                                }
                            }
                        }
                    ]
                }
            }
        ) + ";"
        driver = OfflineBrowserDriver(
            responses=(),
            fallback_result={"error": "blocked"},
            profile_scripts=[
                'if (graphql) { init(); } var cfg = {"locale": "en_US"};',
                profile_script,
            ],
        )
        collector, diagnostics = _collector(driver)

        observations = await collector.collect("jane")

        self.assertEqual(len(observations), 1)
        self.assertEqual(observations[0].provenance, "embedded-script")
        self.assertNotIn("locale", observations[0].payload)
        self.assertEqual(
            diagnostics.kinds(), ["ChannelTimeout", "ChannelError", "ParseError"]
        )

        profile = reconcile(normalized_candidates(observations, diagnostics))
        self.assertEqual(profile.username, "jane")
        self.assertEqual(profile.follower_count, 10)

    async def test_failed_response_wait_keeps_other_channels(self) -> None:
        driver = OfflineBrowserDriver(
            responses=(),
            profile_scripts=[_EMBEDDED],
            fail_wait_with=BrowserError("Target page, context or browser has been closed"),
        )
        collector, diagnostics = _collector(driver)

        observations = await collector.collect("jane")

        self.assertEqual(driver.evaluations, ["fallback", "embedded"])
        self.assertEqual(
            [o.provenance for o in observations], ["fallback-fetch", "embedded-script"]
        )
        self.assertEqual(diagnostics.kinds(), ["ChannelError"])
        self.assertIn("closed", diagnostics.snapshot()[0].message)

    async def test_log_all_responses_writes_debug_events(self) -> None:
        for flag, expected in ((True, 3), (False, 0)):
            with self.subTest(log_all_responses=flag):
                stream = io.StringIO()
                logger = RunLogger.to_stream(stream)
                collector = ObservationCollector(
                    OfflineBrowserDriver(),
                    CaptureConfig(grace_delay_ms=0, log_all_responses=flag),
                    Diagnostics(logger),
                    logger,
                )

                await collector.collect("jane")

                seen = [
                    rec
                    for rec in (json.loads(ln) for ln in stream.getvalue().splitlines() if ln)
                    if rec["event"] == "response_seen"
                ]
                self.assertEqual(len(seen), expected)
                self.assertTrue(all(rec["level"] == "DEBUG" for rec in seen))


class TestObservationChannel(unittest.IsolatedAsyncioTestCase):
    async def test_bounded_and_closable(self) -> None:
        channel = ObservationChannel(2)
        obs = RawObservation("network-capture", {"a": 1})

        self.assertTrue(channel.publish(obs))
        self.assertTrue(channel.publish(obs))
        self.assertFalse(channel.publish(obs))

        channel.close()
        self.assertFalse(channel.publish(obs))
        self.assertEqual(len(channel.drain()), 2)
        self.assertEqual(channel.drain(), [])


if __name__ == "__main__":
    unittest.main()
