from __future__ import annotations

import math
from typing import Sequence

from .models import AnalyticsSummary, PostSummary


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _mean(values: Sequence[int]) -> int:
    if not values:
        return 0
    return _round_half_up(sum(values) / len(values))


def sample_posts(posts: Sequence[PostSummary | None], sample_size: int) -> list[PostSummary]:
    """The order-preserving prefix of non-null posts used for analytics."""
    n = max(0, int(sample_size))
    return [p for p in posts if p is not None][:n]


def compute_analytics(
    posts: Sequence[PostSummary | None],
    follower_count: int | None,
    sample_size: int,
) -> AnalyticsSummary:
    """
    Engagement statistics over the first `sample_size` posts.

    Missing like/comment counts count as zero. The engagement rate is only
    defined for a known, positive follower count.
    """
    sample = sample_posts(posts, sample_size)

    avg_likes = _mean([p.like_count or 0 for p in sample])
    avg_comments = _mean([p.comment_count or 0 for p in sample])

    engagement: float | None = None
    if follower_count is not None and follower_count > 0:
        engagement = round((avg_likes + avg_comments) / follower_count * 100, 2)

    return AnalyticsSummary(
        sample_size=len(sample),
        avg_likes=avg_likes,
        avg_comments=avg_comments,
        engagement_rate_pct=engagement,
    )
