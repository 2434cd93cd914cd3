from __future__ import annotations

import math
from typing import Any, Callable, Mapping, Sequence, TypeVar

from .models import NormalizedUser, PostSummary

T = TypeVar("T")

PathKey = str | int
FieldPath = tuple[PathKey, ...]

# Ordered extractor rules: the first path yielding a usable value wins.
_USER_LOCATIONS: tuple[FieldPath, ...] = (
    ("graphql", "user"),
    ("data", "user"),
    ("entry_data", "ProfilePage", 0, "graphql", "user"),
)
_USER_SIGNATURE_KEYS = ("edge_followed_by", "edge_owner_to_timeline_media", "username")

_DISPLAY_NAME: tuple[FieldPath, ...] = (("full_name",), ("name",))
_USERNAME: tuple[FieldPath, ...] = (("username",), ("user", "username"))
_PROFILE_PIC: tuple[FieldPath, ...] = (
    ("profile_pic_url",),
    ("profile_pic_url_hd",),
    ("profile_picture",),
)
_FOLLOWERS: tuple[FieldPath, ...] = (
    ("edge_followed_by", "count"),
    ("followed_by_count",),
    ("followers",),
)
_FOLLOWING: tuple[FieldPath, ...] = (
    ("edge_follow", "count"),
    ("follows_count",),
    ("following",),
)
_POST_COUNT: tuple[FieldPath, ...] = (
    ("edge_owner_to_timeline_media", "count"),
    ("media_count",),
    ("posts_count",),
)
_EDGES: tuple[FieldPath, ...] = (
    ("edge_owner_to_timeline_media", "edges"),
    ("media",),
    ("recent_media",),
)

_POST_ID: tuple[FieldPath, ...] = (("id",), ("shortcode",), ("code",))
_POST_SHORTCODE: tuple[FieldPath, ...] = (("shortcode",), ("code",))
_POST_LIKES: tuple[FieldPath, ...] = (
    ("edge_liked_by", "count"),
    ("edge_media_preview_like", "count"),
    ("like_count",),
)
_POST_COMMENTS: tuple[FieldPath, ...] = (
    ("edge_media_to_comment", "count"),
    ("comment_count",),
)
_POST_TIMESTAMP: tuple[FieldPath, ...] = (("taken_at_timestamp",), ("taken_at",))


def dig(obj: Any, path: FieldPath) -> Any:
    """Follow a path of mapping keys and list indices; None when any step is missing."""
    cur = obj
    for key in path:
        if isinstance(key, int):
            if not isinstance(cur, list) or not (0 <= key < len(cur)):
                return None
            cur = cur[key]
        else:
            if not isinstance(cur, Mapping):
                return None
            cur = cur.get(key)
        if cur is None:
            return None
    return cur


def first_value(
    obj: Any, paths: Sequence[FieldPath], coerce: Callable[[Any], T | None]
) -> T | None:
    for path in paths:
        value = coerce(dig(obj, path))
        if value is not None:
            return value
    return None


def coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    return None


def coerce_id(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        v = value.strip()
        return v if v else None
    if isinstance(value, int):
        return str(value)
    return None


def coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        s = value.strip().replace(",", "").replace("_", "")
        if s.isdigit():
            return int(s)
    return None


def _coerce_list(value: Any) -> list[Any] | None:
    if isinstance(value, list):
        return value
    return None


def _has_signature(value: Any) -> bool:
    if not isinstance(value, Mapping):
        return False
    return any(value.get(k) for k in _USER_SIGNATURE_KEYS)


def _find_user(obj: Any) -> Mapping[str, Any] | None:
    if not isinstance(obj, Mapping):
        return None

    for path in _USER_LOCATIONS:
        user = dig(obj, path)
        if isinstance(user, Mapping):
            return user

    for value in obj.values():
        if _has_signature(value):
            return value

    return None


def locate_user(payload: Mapping[str, Any]) -> Mapping[str, Any] | None:
    """
    Find the embedded user object in a payload of unknown shape.

    Tries the payload itself, then its `data` member, then `data.user`.
    """
    for root in (payload, dig(payload, ("data",)), dig(payload, ("data", "user"))):
        user = _find_user(root)
        if user is not None:
            return user
    return None


def post_summary_from_edge(edge: Any) -> PostSummary | None:
    """Project one post edge into a PostSummary; None when it has no usable id."""
    if not isinstance(edge, Mapping):
        return None

    node = edge.get("node")
    if not isinstance(node, Mapping):
        node = edge

    post_id = first_value(node, _POST_ID, coerce_id)
    if post_id is None:
        return None

    return PostSummary(
        id=post_id,
        shortcode=first_value(node, _POST_SHORTCODE, coerce_str),
        like_count=first_value(node, _POST_LIKES, coerce_int),
        comment_count=first_value(node, _POST_COMMENTS, coerce_int),
        timestamp=first_value(node, _POST_TIMESTAMP, coerce_int),
    )


def normalize_user_payload(payload: Any) -> NormalizedUser | None:
    """
    Best-effort extraction of a profile record from a raw profile payload.

    Tolerates the GraphQL, web_profile_info and inline page-data shapes.
    Returns None when no user structure can be located.
    """
    if not isinstance(payload, Mapping):
        return None

    user = locate_user(payload)
    if user is None:
        return None

    edges = first_value(user, _EDGES, _coerce_list) or []
    posts: list[PostSummary] = []
    for edge in edges:
        post = post_summary_from_edge(edge)
        if post is not None:
            posts.append(post)

    return NormalizedUser(
        display_name=first_value(user, _DISPLAY_NAME, coerce_str),
        username=first_value(user, _USERNAME, coerce_str),
        profile_picture_url=first_value(user, _PROFILE_PIC, coerce_str),
        follower_count=first_value(user, _FOLLOWERS, coerce_int),
        following_count=first_value(user, _FOLLOWING, coerce_int),
        post_count=first_value(user, _POST_COUNT, coerce_int),
        posts=tuple(posts),
    )
