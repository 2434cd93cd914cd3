from __future__ import annotations

from typing import Any, Mapping, Sequence
from urllib.parse import quote

from .browser import BrowserDriver
from .config_schema import DetailsConfig
from .diagnostics import Diagnostics
from .embedded import extract_json_object
from .errors import PostDetailError
from .models import PostDetail, PostSummary
from .normalize import FieldPath, coerce_str, dig, first_value
from .run_log import RunLogger

# JS: structured metadata, visible caption text and candidate inline scripts of a post page.
EXTRACT_POST_JS = """
({captionSelector, minLength, markers}) => {
    const meta = (sel) => document.querySelector(sel)?.getAttribute('content') || null;
    const scripts = [];
    for (const s of Array.from(document.scripts || [])) {
        const txt = (s.textContent || '').trim();
        if (!txt || txt.length < minLength) continue;
        if (markers.some(m => txt.includes(m))) scripts.push(txt);
    }
    let domCaption = null;
    try {
        const el = document.querySelector(captionSelector);
        domCaption = el ? (el.innerText || el.textContent || '').trim() || null : null;
    } catch (e) {}
    return {
        ogImage: meta('meta[property="og:image"]'),
        ogTitle: meta('meta[property="og:title"]'),
        domCaption: domCaption,
        scripts: scripts,
    };
}
"""

_MEDIA_LOCATIONS: tuple[FieldPath, ...] = (
    ("graphql", "shortcode_media"),
    ("data", "shortcode_media"),
    ("data", "xdt_shortcode_media"),
    ("data", "xdt_api__v1__media__shortcode__web_info", "items", 0),
    ("items", 0),
    ("shortcode_media",),
)
_MEDIA_CAPTION: tuple[FieldPath, ...] = (
    ("edge_media_to_caption", "edges", 0, "node", "text"),
    ("caption", "text"),
    ("caption",),
)
_MEDIA_THUMBNAIL: tuple[FieldPath, ...] = (
    ("display_url",),
    ("thumbnail_src",),
    ("image_versions2", "candidates", 0, "url"),
)

_QUOTE_CHARS = "\"'“”‘’"


def media_node(payload: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    if payload is None:
        return None
    for path in _MEDIA_LOCATIONS:
        node = dig(payload, path)
        if isinstance(node, Mapping):
            return node
    return None


def caption_from_title(title: str | None, separator: str) -> str | None:
    """
    Derive a caption from a page title such as `name on Instagram: "text"`.

    Returns None when the title does not use the separator.
    """
    t = coerce_str(title)
    if t is None or not separator or separator not in t:
        return None
    _, _, tail = t.partition(separator)
    return coerce_str(tail.strip().strip(_QUOTE_CHARS))


class PostDetailAugmenter:
    """
    Fetch caption and thumbnail for each sampled post, one page navigation at a time.

    A failure on one post is recorded and never stops the loop.
    """

    def __init__(
        self,
        driver: BrowserDriver,
        details: DetailsConfig,
        diagnostics: Diagnostics,
        logger: RunLogger,
    ) -> None:
        self._driver = driver
        self._cfg = details
        self._diagnostics = diagnostics
        self._log = logger

    def post_url(self, shortcode: str) -> str:
        return self._cfg.post_url_template.format(shortcode=quote(shortcode, safe=""))

    async def augment(self, posts: Sequence[PostSummary]) -> dict[str, PostDetail]:
        results: dict[str, PostDetail] = {}
        for index, post in enumerate(posts):
            detail = await self.fetch_detail(post)
            results[post.id] = detail
            self._log.info(
                "post_detail_done",
                index=index,
                post_id=post.id,
                has_caption=detail.caption is not None,
                has_thumbnail=detail.thumbnail_url is not None,
            )
        return results

    async def fetch_detail(self, post: PostSummary) -> PostDetail:
        if not post.shortcode:
            self._diagnostics.record(
                PostDetailError("post has no shortcode to build a permalink"),
                post_id=post.id,
            )
            return PostDetail(post_id=post.id)

        url = self.post_url(post.shortcode)
        try:
            await self._driver.navigate(
                url,
                wait_until=self._cfg.navigation_wait_until,
                timeout_ms=self._cfg.navigation_timeout_ms,
            )
            data = await self._driver.evaluate(
                EXTRACT_POST_JS,
                {
                    "captionSelector": self._cfg.caption_selector,
                    "minLength": self._cfg.embedded_min_length,
                    "markers": list(self._cfg.embedded_markers),
                },
            )
        except Exception as e:
            self._diagnostics.record(
                PostDetailError(f"{type(e).__name__}: {e}"), url=url, post_id=post.id
            )
            return PostDetail(post_id=post.id)

        page = data if isinstance(data, Mapping) else {}
        node = self._embedded_media(page.get("scripts"), url=url, post_id=post.id)

        thumbnail = coerce_str(page.get("ogImage"))
        if thumbnail is None and node is not None:
            thumbnail = first_value(node, _MEDIA_THUMBNAIL, coerce_str)

        caption = None
        if node is not None:
            caption = first_value(node, _MEDIA_CAPTION, coerce_str)
        if caption is None:
            caption = caption_from_title(page.get("ogTitle"), self._cfg.title_separator)
        if caption is None:
            caption = coerce_str(page.get("domCaption"))

        return PostDetail(post_id=post.id, caption=caption, thumbnail_url=thumbnail)

    def _embedded_media(
        self, scripts: Any, *, url: str, post_id: str
    ) -> Mapping[str, Any] | None:
        if not isinstance(scripts, list):
            return None
        for text in scripts:
            if not isinstance(text, str):
                continue
            node = media_node(extract_json_object(text))
            if node is not None:
                return node
        if scripts:
            self._diagnostics.record(
                PostDetailError("no media object in inline scripts"), url=url, post_id=post_id
            )
        return None


def merge_post_details(
    posts: Sequence[PostSummary],
    details: Mapping[str, PostDetail],
    sample_size: int,
) -> list[PostSummary]:
    """Attach detail results to the sampled prefix of posts, matched by id."""
    n = max(0, int(sample_size))
    return [post.with_detail(details.get(post.id)) for post in posts[:n]]
