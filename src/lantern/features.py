"""Behavioral feature extractors.

Five independent analyzers read a session and return partial score
contributions per archetype:

  - navigation timing
  - pointer naturalness
  - scroll naturalness
  - exploration / path entropy
  - outbound-call ratio

Contributions only add to the score vector. An extractor that lacks its
minimum sample size abstains and contributes nothing.

The weights and thresholds below are the tuned reference model and are
policy constants, not derived values.
"""

from __future__ import annotations

import math
import statistics
from collections import Counter
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING

from lantern.models import Archetype, Contribution, Session

if TYPE_CHECKING:
    from lantern.config import LanternConfig
    from lantern.profiles import ArchetypeProfile

Extractor = Callable[["Session", "Mapping[str, ArchetypeProfile]", "LanternConfig"], Contribution]

_HUMAN = Archetype.HUMAN.value
_PROGRAMMATIC = Archetype.PROGRAMMATIC.value
_MIXED = Archetype.MIXED.value
_SCANNER = Archetype.SCANNER.value


def _abstain(name: str, **features: float | bool) -> Contribution:
    return Contribution(name=name, abstained=True, features=features)


def _add(scores: dict[str, float], archetype: str, weight: float) -> None:
    scores[archetype] = scores.get(archetype, 0.0) + weight


def _elapsed(previous: float, current: float) -> float:
    """Return the gap between two timestamps, treating zero as one unit."""
    gap = current - previous
    return gap if gap > 0 else 1.0


# ---------------------------------------------------------------------------
# Extractor 1: Navigation timing
# ---------------------------------------------------------------------------

_NAVIGATION_WEIGHT = 0.3


def extract_navigation_timing(
    session: Session,
    profiles: Mapping[str, ArchetypeProfile],
    config: LanternConfig,
) -> Contribution:
    """Score the mean time between page navigations against each profile.

    Every archetype whose navigation-speed range contains the mean gap
    gains a fixed contribution.

    Args:
        session: The session to analyze.
        profiles: The archetype profile table.
        config: Active configuration.

    Returns:
        The navigation timing contribution.
    """
    name = "navigation_timing"
    visits = session.page_visits
    if len(visits) < config.sampling.min_navigation_visits:
        return _abstain(name, visits=len(visits))

    gaps = [visit.since_previous_ms for visit in visits if visit.since_previous_ms > 0]
    if not gaps:
        return _abstain(name, visits=len(visits))

    mean_gap = statistics.fmean(gaps)
    scores = {
        archetype: _NAVIGATION_WEIGHT
        for archetype, profile in profiles.items()
        if profile.navigation_speed.contains(mean_gap)
    }
    return Contribution(name=name, scores=scores, features={"mean_gap_ms": mean_gap})


# ---------------------------------------------------------------------------
# Extractor 2: Pointer naturalness
# ---------------------------------------------------------------------------

# Squared speed units (px/ms)^2
_NATURAL_MOVEMENT_VARIANCE = 50.0


def extract_pointer_naturalness(
    session: Session,
    profiles: Mapping[str, ArchetypeProfile],
    config: LanternConfig,
) -> Contribution:
    """Score the variance of pointer speed between consecutive samples.

    Humans accelerate and decelerate; scripted pointers move at a
    constant rate or teleport in uniform steps.

    Args:
        session: The session to analyze.
        profiles: The archetype profile table.
        config: Active configuration.

    Returns:
        The pointer naturalness contribution.
    """
    name = "pointer_naturalness"
    samples = session.pointer_samples
    if len(samples) < config.sampling.min_pointer_samples:
        return _abstain(name, samples=len(samples))

    speeds = [
        math.hypot(cur.x - prev.x, cur.y - prev.y) / _elapsed(prev.timestamp, cur.timestamp)
        for prev, cur in zip(samples, samples[1:], strict=False)
    ]
    variance = statistics.pvariance(speeds)

    scores: dict[str, float] = {}
    if variance > _NATURAL_MOVEMENT_VARIANCE:
        _add(scores, _HUMAN, 0.25)
        _add(scores, _MIXED, 0.15)
    else:
        _add(scores, _PROGRAMMATIC, 0.2)
        _add(scores, _SCANNER, 0.3)
    return Contribution(name=name, scores=scores, features={"speed_variance": variance})


# ---------------------------------------------------------------------------
# Extractor 3: Scroll naturalness
# ---------------------------------------------------------------------------

_NATURAL_SCROLL_VARIANCE = 10.0
_PAUSE_MS = 1000.0


def extract_scroll_naturalness(
    session: Session,
    profiles: Mapping[str, ArchetypeProfile],
    config: LanternConfig,
) -> Contribution:
    """Score scroll speed variance and the presence of reading pauses.

    Args:
        session: The session to analyze.
        profiles: The archetype profile table.
        config: Active configuration.

    Returns:
        The scroll naturalness contribution.
    """
    name = "scroll_naturalness"
    samples = session.scroll_samples
    if len(samples) < config.sampling.min_scroll_samples:
        return _abstain(name, samples=len(samples))

    pairs = list(zip(samples, samples[1:], strict=False))
    speeds = [
        abs(cur.offset - prev.offset) / _elapsed(prev.timestamp, cur.timestamp)
        for prev, cur in pairs
    ]
    variance = statistics.pvariance(speeds)
    has_pause = any(cur.timestamp - prev.timestamp > _PAUSE_MS for prev, cur in pairs)

    scores: dict[str, float] = {}
    if variance > _NATURAL_SCROLL_VARIANCE and has_pause:
        _add(scores, _HUMAN, 0.2)
        _add(scores, _MIXED, 0.15)
    else:
        _add(scores, _PROGRAMMATIC, 0.15)
        _add(scores, _SCANNER, 0.25)
    return Contribution(
        name=name,
        scores=scores,
        features={"speed_variance": variance, "has_pause": has_pause},
    )


# ---------------------------------------------------------------------------
# Extractor 4: Exploration / path entropy
# ---------------------------------------------------------------------------


def is_subsequence(needle: Sequence[str], haystack: Sequence[str]) -> bool:
    """Return True if needle appears in haystack in order, gaps allowed."""
    remaining = iter(haystack)
    return all(step in remaining for step in needle)


def extract_exploration(
    session: Session,
    profiles: Mapping[str, ArchetypeProfile],
    config: LanternConfig,
) -> Contribution:
    """Score how the visitor explores the site.

    Path entropy is the ratio of distinct paths to total visits. A visit
    sequence that contains one of the curated natural routes reads as
    organic exploration; hitting a service marker path suggests
    automation.

    Args:
        session: The session to analyze.
        profiles: The archetype profile table.
        config: Active configuration.

    Returns:
        The exploration contribution.
    """
    name = "exploration"
    paths = session.paths
    total = len(paths)
    if total < config.sampling.min_exploration_visits:
        return _abstain(name, visits=total)

    entropy = len(set(paths)) / total
    matches_route = any(
        is_subsequence(route, paths) for route in config.exploration.reference_sequences
    )
    has_marker = not set(paths).isdisjoint(config.exploration.marker_paths)
    repeats_path = any(count > 2 for count in Counter(paths).values())

    scores: dict[str, float] = {}
    if entropy > 0.7 and matches_route:
        _add(scores, _HUMAN, 0.25)
    if has_marker and entropy < 0.5:
        _add(scores, _PROGRAMMATIC, 0.3)
    if has_marker and matches_route:
        _add(scores, _MIXED, 0.25)
    if entropy < 0.3 and total > 5:
        _add(scores, _SCANNER, 0.3)

    return Contribution(
        name=name,
        scores=scores,
        features={
            "path_entropy": entropy,
            "matches_route": matches_route,
            "has_marker": has_marker,
            "repeats_path": repeats_path,
        },
    )


# ---------------------------------------------------------------------------
# Extractor 5: Outbound-call ratio
# ---------------------------------------------------------------------------


def extract_outbound_ratio(
    session: Session,
    profiles: Mapping[str, ArchetypeProfile],
    config: LanternConfig,
) -> Contribution:
    """Score the number of outbound calls per page visit.

    Args:
        session: The session to analyze.
        profiles: The archetype profile table.
        config: Active configuration.

    Returns:
        The outbound-call ratio contribution.
    """
    visits = len(session.page_visits)
    ratio = len(session.outbound_calls) / max(visits, 1)

    scores: dict[str, float] = {}
    if ratio > 0.5:
        _add(scores, _PROGRAMMATIC, 0.2)
        _add(scores, _SCANNER, 0.15)
    elif ratio > 0.2:
        _add(scores, _MIXED, 0.2)
    elif ratio == 0 and visits > 3:
        _add(scores, _HUMAN, 0.15)
    return Contribution(name="outbound_ratio", scores=scores, features={"call_ratio": ratio})


DEFAULT_EXTRACTORS: tuple[Extractor, ...] = (
    extract_navigation_timing,
    extract_pointer_naturalness,
    extract_scroll_naturalness,
    extract_exploration,
    extract_outbound_ratio,
)
