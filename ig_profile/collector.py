from __future__ import annotations

import asyncio
import json
from urllib.parse import quote

from .browser import BrowserDriver, CapturedResponse
from .config_schema import CaptureConfig
from .diagnostics import Diagnostics
from .embedded import extract_json_object
from .errors import BrowserError, CaptureError, ChannelError, ChannelTimeout, ParseError
from .models import (
    EMBEDDED_SCRIPT,
    FALLBACK_FETCH,
    NETWORK_CAPTURE,
    RawObservation,
)
from .run_log import RunLogger

# JS: fetch the profile-info endpoint from inside the page so cookies apply.
FALLBACK_FETCH_JS = """
async ({url, appId}) => {
    try {
        const resp = await fetch(url, {
            headers: {'x-ig-app-id': appId, 'accept': '*/*'},
            credentials: 'include',
        });
        const t = await resp.text();
        try {
            return {status: resp.status, json: JSON.parse(t)};
        } catch (e) {
            return {status: resp.status, text: t.slice(0, 1000)};
        }
    } catch (err) {
        return {error: String(err && err.message)};
    }
}
"""

# JS: inline script texts that look like they carry profile data, in document order.
EMBEDDED_SCRIPTS_JS = """
({minLength, markers}) => {
    const out = [];
    for (const s of Array.from(document.scripts || [])) {
        const txt = (s.textContent || '').trim();
        if (!txt || txt.length < minLength) continue;
        if (markers.some(m => txt.includes(m))) out.push(txt);
    }
    return out;
}
"""


class ObservationChannel:
    """
    Bounded, ordered queue of observations for one run.

    Producers publish as events complete; the pipeline drains once capture is over.
    After close(), further publishes are ignored.
    """

    def __init__(self, maxsize: int) -> None:
        self._queue: asyncio.Queue[RawObservation] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, observation: RawObservation) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(observation)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        self._closed = True

    def drain(self) -> list[RawObservation]:
        out: list[RawObservation] = []
        while True:
            try:
                out.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return out


class ObservationCollector:
    """Gathers raw profile payloads from network responses, an in-page fetch and inline scripts."""

    def __init__(
        self,
        driver: BrowserDriver,
        capture: CaptureConfig,
        diagnostics: Diagnostics,
        logger: RunLogger,
    ) -> None:
        self._driver = driver
        self._cfg = capture
        self._diagnostics = diagnostics
        self._log = logger
        self._channel = ObservationChannel(capture.max_observations)

    def matches_endpoint(self, url: str) -> bool:
        u = url or ""
        return any(p in u for p in self._cfg.endpoint_patterns)

    def profile_url(self, username: str) -> str:
        return self._cfg.profile_url_template.format(username=quote(username, safe=""))

    async def collect(self, username: str) -> list[RawObservation]:
        self._driver.on_response(self._on_response)

        url = self.profile_url(username)
        self._log.info("profile_navigation_started", url=url)
        try:
            await self._driver.navigate(
                url,
                wait_until=self._cfg.navigation_wait_until,
                timeout_ms=self._cfg.navigation_timeout_ms,
            )
        except TimeoutError as e:
            self._diagnostics.record(ChannelTimeout(str(e)), url=url)

        try:
            await self._driver.wait_for_response(
                lambda resp: self.matches_endpoint(resp.url),
                timeout_ms=self._cfg.response_wait_timeout_ms,
            )
            self._log.info("profile_response_observed")
        except TimeoutError as e:
            self._diagnostics.record(ChannelTimeout(str(e)), provenance=NETWORK_CAPTURE)
        except BrowserError as e:
            self._diagnostics.record(
                ChannelError(f"response wait failed: {e}"), provenance=NETWORK_CAPTURE
            )

        if self._cfg.grace_delay_ms > 0:
            await asyncio.sleep(self._cfg.grace_delay_ms / 1000)
        await self._driver.settle()

        if self._cfg.fallback_enabled:
            await self._fallback_fetch(username)
        if self._cfg.embedded_enabled:
            await self._embedded_script(url)

        await self._driver.settle()
        self._channel.close()

        observations = self._channel.drain()
        self._log.info(
            "observations_collected",
            count=len(observations),
            provenances=[o.provenance for o in observations],
        )
        return observations

    def _publish(self, observation: RawObservation) -> None:
        if self._channel.closed:
            return
        if not self._channel.publish(observation):
            self._diagnostics.record(
                ChannelError(f"observation channel full ({self._cfg.max_observations})"),
                provenance=observation.provenance,
                url=observation.source_url,
            )
            return
        self._log.info(
            "observation_captured",
            url=observation.source_url,
            provenance=observation.provenance,
            keys=list(observation.payload)[:6],
        )

    async def _on_response(self, response: CapturedResponse) -> None:
        url = str(response.url)
        if self._cfg.log_all_responses:
            self._log.log("DEBUG", "response_seen", url=url)
        else:
            self._log.debug("response_seen", url=url)
        if self._channel.closed or not self.matches_endpoint(url):
            return

        try:
            text = await response.text()
        except Exception as e:
            self._diagnostics.record(
                ChannelError(f"failed to read response body: {e}"),
                provenance=NETWORK_CAPTURE,
                url=url,
            )
            return

        body = (text or "").strip()
        if not body.startswith("{"):
            self._log.info("response_not_json", url=url, content_len=len(body))
            return

        try:
            payload = json.loads(body)
        except ValueError as e:
            self._diagnostics.record(
                ParseError(f"invalid JSON body: {e}"), provenance=NETWORK_CAPTURE, url=url
            )
            return

        if isinstance(payload, dict):
            self._publish(RawObservation(NETWORK_CAPTURE, payload, url))

    async def _fallback_fetch(self, username: str) -> None:
        endpoint = self._cfg.fallback_endpoint.format(username=quote(username, safe=""))
        self._log.info("fallback_fetch_started", url=endpoint)

        try:
            result = await self._driver.evaluate(
                FALLBACK_FETCH_JS, {"url": endpoint, "appId": self._cfg.app_id}
            )
        except Exception as e:
            self._diagnostics.record(
                ChannelError(f"fallback fetch evaluation failed: {e}"),
                provenance=FALLBACK_FETCH,
                url=endpoint,
            )
            return

        result = result if isinstance(result, dict) else {}
        payload = result.get("json")

        if isinstance(payload, dict) and payload.get("data"):
            self._publish(RawObservation(FALLBACK_FETCH, payload, endpoint))
            return

        if result.get("error"):
            exc: CaptureError = ChannelError(f"fallback fetch failed: {result['error']}")
        elif "text" in result:
            exc = ParseError(
                f"fallback fetch returned non-JSON (status={result.get('status')})"
            )
        else:
            exc = ChannelError(
                f"fallback fetch returned no data (status={result.get('status')})"
            )
        self._diagnostics.record(exc, provenance=FALLBACK_FETCH, url=endpoint)

    async def _embedded_script(self, page_url: str) -> None:
        try:
            scripts = await self._driver.evaluate(
                EMBEDDED_SCRIPTS_JS,
                {
                    "minLength": self._cfg.embedded_min_length,
                    "markers": list(self._cfg.embedded_markers),
                },
            )
        except Exception as e:
            self._diagnostics.record(
                ChannelError(f"inline script scan failed: {e}"),
                provenance=EMBEDDED_SCRIPT,
                url=page_url,
            )
            return

        for index, text in enumerate(scripts or []):
            if not isinstance(text, str):
                continue
            payload = extract_json_object(text)
            if payload is None:
                self._diagnostics.record(
                    ParseError(f"inline script #{index} has no parseable JSON object"),
                    provenance=EMBEDDED_SCRIPT,
                    url=page_url,
                )
                continue
            self._publish(RawObservation(EMBEDDED_SCRIPT, payload, page_url))
            return

        self._log.info("embedded_json_not_found", url=page_url)
