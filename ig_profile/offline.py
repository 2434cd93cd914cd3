from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from .browser import ResponseHandler, ResponsePredicate
from .collector import EMBEDDED_SCRIPTS_JS, FALLBACK_FETCH_JS
from .details import EXTRACT_POST_JS
from .errors import BrowserError


def _offline_edges(count: int) -> list[dict[str, Any]]:
    edges: list[dict[str, Any]] = []
    for i in range(1, count + 1):
        edges.append(
            {
                "node": {
                    "id": f"30000000000000000{i:02d}",
                    "shortcode": f"OFFLINE{i:02d}",
                    "edge_liked_by": {"count": 100 * i},
                    "edge_media_to_comment": {"count": 5 * i},
                    "taken_at_timestamp": 1735689600 + 86400 * i,
                }
            }
        )
    return edges


_OFFLINE_USER: dict[str, Any] = {
    "full_name": "Offline Example",
    "username": "offline.example",
    "profile_pic_url": "https://example.com/offline/profile.jpg",
    "edge_followed_by": {"count": 12000},
    "edge_follow": {"count": 321},
    "edge_owner_to_timeline_media": {"count": 87, "edges": _offline_edges(6)},
}

# Partial GraphQL capture: no follow counts, so the fallback payload wins reconciliation.
_DEFAULT_RESPONSES: list[tuple[str, str]] = [
    ("https://www.instagram.com/static/bundle.js", "/* not json */"),
    (
        "https://www.instagram.com/api/graphql/",
        json.dumps(
            {
                "data": {
                    "user": {
                        "username": "offline.example",
                        "edge_owner_to_timeline_media": {"count": 87, "edges": []},
                    }
                }
            }
        ),
    ),
    ("https://www.instagram.com/graphql/query/", "{not valid json"),
]

_DEFAULT_FALLBACK: dict[str, Any] = {
    "status": 200,
    "json": {"data": {"user": _OFFLINE_USER}, "status": "ok"},
}


def _default_post_pages() -> dict[str, dict[str, Any]]:
    pages: dict[str, dict[str, Any]] = {}
    for i in range(1, 7):
        code = f"OFFLINE{i:02d}"
        pages[code] = {
            "ogImage": f"https://example.com/offline/{code}.jpg",
            "ogTitle": f'Offline Example on Instagram: "Offline post number {i}"',
            "domCaption": None,
            "scripts": [],
        }
    return pages


@dataclass
class OfflineResponse:
    url: str
    body: str

    async def text(self) -> str:
        return self.body


@dataclass
class OfflineBrowserDriver:
    """
    Network-free BrowserDriver for smoke checks and tests.

    Replays canned responses on the first navigation, answers the fallback fetch and
    inline-script scan from fixed data, and serves per-post page data by shortcode.
    Shortcodes listed in `failing_posts` raise on navigation; `fail_navigation_with` and
    `fail_wait_with` make the profile navigation or the response wait raise.
    """

    responses: Sequence[tuple[str, str]] = tuple(_DEFAULT_RESPONSES)
    fallback_result: Any = field(default_factory=lambda: dict(_DEFAULT_FALLBACK))
    profile_scripts: Sequence[str] = ()
    post_pages: Mapping[str, Mapping[str, Any]] = field(default_factory=_default_post_pages)
    failing_posts: Sequence[str] = ()
    fail_navigation_with: BaseException | None = None
    fail_wait_with: BaseException | None = None

    navigations: list[str] = field(default_factory=list)
    evaluations: list[str] = field(default_factory=list)
    closed: bool = False

    def __post_init__(self) -> None:
        self._handlers: list[ResponseHandler] = []
        self._current_url: str | None = None

    def on_response(self, handler: ResponseHandler) -> None:
        self._handlers.append(handler)

    async def navigate(self, url: str, *, wait_until: str, timeout_ms: int) -> None:
        _ = (wait_until, timeout_ms)
        first = not self.navigations
        self.navigations.append(url)
        self._current_url = url

        if first and self.fail_navigation_with is not None:
            raise self.fail_navigation_with

        code = self._shortcode(url)
        if code is not None and code in self.failing_posts:
            raise TimeoutError(f"Navigation timed out: {url}")

        if first:
            for resp_url, body in self.responses:
                for handler in list(self._handlers):
                    await handler(OfflineResponse(resp_url, body))

    async def wait_for_response(
        self, predicate: ResponsePredicate, *, timeout_ms: int
    ) -> None:
        if self.fail_wait_with is not None:
            raise self.fail_wait_with
        for resp_url, body in self.responses:
            if predicate(OfflineResponse(resp_url, body)):
                return
        raise TimeoutError(f"No matching response within {timeout_ms}ms")

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        _ = arg
        if script == FALLBACK_FETCH_JS:
            self.evaluations.append("fallback")
            return self.fallback_result
        if script == EMBEDDED_SCRIPTS_JS:
            self.evaluations.append("embedded")
            return list(self.profile_scripts)
        if script == EXTRACT_POST_JS:
            self.evaluations.append("post")
            code = self._shortcode(self._current_url or "")
            page = self.post_pages.get(code or "")
            if page is None:
                raise BrowserError(f"No offline page for {self._current_url}")
            return dict(page)
        raise BrowserError("Unknown script for offline driver")

    async def settle(self) -> None:
        return None

    async def close(self) -> None:
        self.closed = True

    @staticmethod
    def _shortcode(url: str) -> str | None:
        parts = [p for p in (url or "").split("/") if p]
        if len(parts) >= 2 and parts[-2] == "p":
            return parts[-1]
        return None
