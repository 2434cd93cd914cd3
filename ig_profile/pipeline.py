from __future__ import annotations

from typing import Any

from .analytics import compute_analytics
from .browser import DriverFactory
from .collector import ObservationCollector
from .config_schema import AppConfig, SamplingConfig
from .details import PostDetailAugmenter, merge_post_details
from .diagnostics import Diagnostics
from .models import PostDetail, ProfileRecord
from .reconcile import normalized_candidates, reconcile
from .run_log import RunLogger, utc_now_iso


def resolve_sample_size(requested: Any, sampling: SamplingConfig) -> int:
    """
    Map a requested sample size to the one a run will use.

    Absent, unparseable and non-positive values fall back to the default; large
    values are capped.
    """
    try:
        n = int(str(requested).strip()) if requested is not None else 0
    except ValueError:
        n = 0
    if n <= 0:
        n = sampling.default_sample_size
    return min(n, sampling.max_sample_size)


async def scrape_profile(
    username: str,
    *,
    config: AppConfig,
    open_driver: DriverFactory,
    logger: RunLogger,
    sample_size: int | None = None,
) -> ProfileRecord:
    """
    Run one capture → normalize → reconcile → augment → analyze pass for a username.

    Raises ReconciliationFailure when no captured payload yields a profile; every
    other capture problem is recorded as a diagnostic.
    """
    n = resolve_sample_size(sample_size, config.sampling)
    diagnostics = Diagnostics(logger)

    logger.info("scrape_started", username=username, sample_size=n)

    driver = await open_driver()
    try:
        collector = ObservationCollector(driver, config.capture, diagnostics, logger)
        observations = await collector.collect(username)

        profile = reconcile(normalized_candidates(observations, diagnostics))
        logger.info(
            "profile_reconciled",
            url=profile.source_url,
            provenance=profile.provenance,
            username=profile.username,
            followers=profile.follower_count,
            following=profile.following_count,
            posts_count=profile.post_count,
            posts_seen=len(profile.posts),
        )

        sampled = list(profile.posts[:n])
        details: dict[str, PostDetail] = {}
        if config.details.enabled and sampled:
            augmenter = PostDetailAugmenter(driver, config.details, diagnostics, logger)
            details = await augmenter.augment(sampled)
    finally:
        await driver.close()
        logger.info("browser_closed", diagnostics=len(diagnostics))

    recent_posts = merge_post_details(profile.posts, details, n)
    analytics = compute_analytics(recent_posts, profile.follower_count, n)

    logger.info(
        "scrape_completed",
        username=profile.username,
        source=profile.provenance,
        sample_size=analytics.sample_size,
        avg_likes=analytics.avg_likes,
        avg_comments=analytics.avg_comments,
        engagement_rate_pct=analytics.engagement_rate_pct,
        diagnostic_kinds=diagnostics.kinds(),
    )

    return ProfileRecord(
        profile=profile,
        analytics=analytics,
        recent_posts=tuple(recent_posts),
        scraped_at=utc_now_iso(),
        diagnostics=diagnostics.snapshot(),
    )
