from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal, Mapping, Sequence

from .diagnostics import Diagnostic

Provenance = Literal["network-capture", "fallback-fetch", "embedded-script"]

NETWORK_CAPTURE: Provenance = "network-capture"
FALLBACK_FETCH: Provenance = "fallback-fetch"
EMBEDDED_SCRIPT: Provenance = "embedded-script"


@dataclass(frozen=True)
class RawObservation:
    """One payload captured from a single channel during a pipeline run."""

    provenance: Provenance
    payload: Mapping[str, Any]
    source_url: str | None = None


@dataclass(frozen=True)
class PostDetail:
    post_id: str
    caption: str | None = None
    thumbnail_url: str | None = None


@dataclass(frozen=True)
class PostSummary:
    """A single post edge projected out of a profile payload."""

    id: str
    shortcode: str | None = None
    like_count: int | None = None
    comment_count: int | None = None
    timestamp: int | None = None

    caption: str | None = None
    thumbnail_url: str | None = None

    def with_detail(self, detail: PostDetail | None) -> "PostSummary":
        if detail is None:
            return self
        return replace(self, caption=detail.caption, thumbnail_url=detail.thumbnail_url)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "caption": self.caption,
            "thumbnail": self.thumbnail_url,
            "likes": self.like_count,
            "comments": self.comment_count,
        }


@dataclass(frozen=True)
class NormalizedUser:
    display_name: str | None = None
    username: str | None = None
    profile_picture_url: str | None = None
    follower_count: int | None = None
    following_count: int | None = None
    post_count: int | None = None
    posts: Sequence[PostSummary] = ()

    @property
    def has_follow_counts(self) -> bool:
        return self.follower_count is not None and self.following_count is not None


@dataclass(frozen=True)
class Candidate:
    user: NormalizedUser
    provenance: Provenance
    source_url: str | None = None


@dataclass(frozen=True)
class CanonicalProfile:
    """The single reconciled profile that represents the target for the rest of a run."""

    provenance: Provenance
    display_name: str | None = None
    username: str | None = None
    profile_picture_url: str | None = None
    follower_count: int | None = None
    following_count: int | None = None
    post_count: int | None = None
    posts: Sequence[PostSummary] = ()
    source_url: str | None = None

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "CanonicalProfile":
        user = candidate.user
        return cls(
            provenance=candidate.provenance,
            display_name=user.display_name,
            username=user.username,
            profile_picture_url=user.profile_picture_url,
            follower_count=user.follower_count,
            following_count=user.following_count,
            post_count=user.post_count,
            posts=tuple(user.posts),
            source_url=candidate.source_url,
        )


@dataclass(frozen=True)
class AnalyticsSummary:
    sample_size: int
    avg_likes: int
    avg_comments: int
    engagement_rate_pct: float | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sample_size": self.sample_size,
            "avg_likes": self.avg_likes,
            "avg_comments": self.avg_comments,
            "engagement_rate_pct": self.engagement_rate_pct,
        }


@dataclass(frozen=True)
class ProfileRecord:
    """Final output of one pipeline run."""

    profile: CanonicalProfile
    analytics: AnalyticsSummary
    recent_posts: Sequence[PostSummary]
    scraped_at: str
    diagnostics: Sequence[Diagnostic] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        p = self.profile
        return {
            "name": p.display_name,
            "username": p.username,
            "profile_picture": p.profile_picture_url,
            "followers": p.follower_count,
            "following": p.following_count,
            "posts_count": p.post_count,
            "analytics": self.analytics.to_dict(),
            "recent_posts": [post.to_dict() for post in self.recent_posts],
            "_meta": {"source": p.provenance, "scraped_at": self.scraped_at},
        }
