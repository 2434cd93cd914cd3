from __future__ import annotations

from typing import Iterable, Iterator

from .diagnostics import Diagnostics
from .errors import NormalizationMiss, ReconciliationFailure
from .models import Candidate, CanonicalProfile, RawObservation
from .normalize import normalize_user_payload


def normalized_candidates(
    observations: Iterable[RawObservation],
    diagnostics: Diagnostics | None = None,
) -> Iterator[Candidate]:
    """
    Lazily normalize observations in arrival order.

    Payloads without a locatable user structure contribute no candidate.
    """
    for obs in observations:
        user = normalize_user_payload(obs.payload)
        if user is None:
            if diagnostics is not None:
                diagnostics.record(
                    NormalizationMiss("no user structure in payload"),
                    provenance=obs.provenance,
                    url=obs.source_url,
                )
            continue
        yield Candidate(user=user, provenance=obs.provenance, source_url=obs.source_url)


def reconcile(candidates: Iterable[Candidate]) -> CanonicalProfile:
    """
    Select the canonical profile from candidates in arrival order.

    The first candidate carrying both follower and following counts wins and the
    iterable is not consumed any further. Without one, the first candidate is kept.
    """
    fallback: Candidate | None = None

    for candidate in candidates:
        if candidate.user.has_follow_counts:
            return CanonicalProfile.from_candidate(candidate)
        if fallback is None:
            fallback = candidate

    if fallback is None:
        raise ReconciliationFailure(
            "Unable to locate profile JSON (no captured payload had user info)."
        )
    return CanonicalProfile.from_candidate(fallback)
