"""Session classification from feature extractor contributions.

An evaluation pass zeroes the score vector, lets every extractor add its
contribution, and resolves the highest-scoring archetype:

  - confidence is the maximum score
  - ties go to the archetype listed first in the profile table
  - below the confidence threshold the verdict is 'unknown'

Scores are plain sums of contributions; they are not probabilities and
may exceed 1.0.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from lantern.features import DEFAULT_EXTRACTORS, Extractor
from lantern.models import UNKNOWN, ClassificationResult, Session

if TYPE_CHECKING:
    from lantern.config import LanternConfig
    from lantern.profiles import ArchetypeProfile

logger = logging.getLogger(__name__)


def resolve(
    scores: Mapping[str, float],
    order: Iterable[str],
    threshold: float,
) -> tuple[str, float]:
    """Resolve a score vector into a verdict and confidence.

    Args:
        scores: Score per archetype.
        order: Archetype tie-break order; earlier wins on equal scores.
        threshold: Minimum confidence for a concrete verdict.

    Returns:
        A (verdict, confidence) tuple. The verdict is 'unknown' when the
        confidence is below the threshold or there are no archetypes.
    """
    winner = UNKNOWN
    confidence = 0.0
    for archetype in order:
        score = scores.get(archetype, 0.0)
        if winner == UNKNOWN or score > confidence:
            winner, confidence = archetype, score

    if confidence < threshold:
        return UNKNOWN, confidence
    return winner, confidence


class ClassificationResolver:
    """Runs the feature extractors over a session and records the verdict."""

    def __init__(
        self,
        config: LanternConfig,
        profiles: Mapping[str, ArchetypeProfile] | None = None,
        extractors: Sequence[Extractor] | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            config: Active configuration (threshold, sampling, exploration).
            profiles: Archetype profile table. Defaults to the configured table.
            extractors: Extractors to run. Defaults to all five built-ins.
        """
        self.config = config
        self.profiles = profiles if profiles is not None else config.profile_table()
        self.extractors = tuple(extractors if extractors is not None else DEFAULT_EXTRACTORS)

    @property
    def threshold(self) -> float:
        return self.config.classification.confidence_threshold

    def evaluate(self, session: Session) -> ClassificationResult:
        """Score a session and write the score vector and verdict back to it.

        Args:
            session: The session to evaluate. Mutated in place.

        Returns:
            The ClassificationResult for this pass.
        """
        scores = dict.fromkeys(self.profiles, 0.0)
        contributions = []
        for extractor in self.extractors:
            contribution = extractor(session, self.profiles, self.config)
            contributions.append(contribution)
            if contribution.abstained:
                logger.debug("%s abstained for session %s", contribution.name, session.id)
                continue
            for archetype, weight in contribution.scores.items():
                if archetype not in scores:
                    logger.debug(
                        "Ignoring score for unregistered archetype %r from %s",
                        archetype,
                        contribution.name,
                    )
                    continue
                scores[archetype] += weight

        verdict, confidence = resolve(scores, self.profiles, self.threshold)
        previous = session.verdict

        session.scores = scores
        session.confidence = confidence
        session.verdict = verdict
        session.evaluated_at = datetime.now(UTC)
        session.evaluation_count += 1

        if verdict != previous:
            logger.info(
                "Session %s classified as %s (confidence %.2f)", session.id, verdict, confidence
            )

        return ClassificationResult(
            session_id=session.id,
            verdict=verdict,
            confidence=confidence,
            scores=dict(scores),
            timestamp=session.evaluated_at,
            contributions=contributions,
        )


def explain(result: ClassificationResult) -> dict[str, str | float]:
    """Return a flat breakdown of a classification result.

    Args:
        result: A result returned by ClassificationResolver.evaluate().

    Returns:
        A dict with the verdict, confidence, the dominant extractor (the
        one contributing most to the winning archetype, or to any
        archetype when the verdict is unknown), and each extractor's
        total contribution.
    """
    totals = {c.name: sum(c.scores.values()) for c in result.contributions}
    if result.verdict != UNKNOWN:
        toward = {c.name: c.scores.get(result.verdict, 0.0) for c in result.contributions}
    else:
        toward = totals

    dominant = "none"
    if toward and max(toward.values()) > 0:
        dominant = max(toward, key=lambda k: toward[k])

    return {
        "verdict": result.verdict,
        "confidence": result.confidence,
        "dominant_extractor": dominant,
        **totals,
    }
