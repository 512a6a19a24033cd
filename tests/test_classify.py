"""Tests for the classification resolver."""

from __future__ import annotations

import random

import pytest

from lantern.classify import ClassificationResolver, explain, resolve
from lantern.config import LanternConfig
from lantern.models import UNKNOWN, Contribution, Session
from lantern.profiles import DEFAULT_PROFILES
from lantern.store import SessionStore

ARCHETYPES = list(DEFAULT_PROFILES)


def _config(threshold: float = 0.75) -> LanternConfig:
    return LanternConfig.model_validate({"classification": {"confidence_threshold": threshold}})


def _new_session() -> tuple[SessionStore, Session]:
    store = SessionStore()
    return store, store.create_session("s1", started_at=0.0)


def _random_session(rng: random.Random) -> Session:
    store, session = _new_session()
    ts = 0.0
    for _ in range(rng.randint(0, 12)):
        ts += rng.choice((0.0, 100.0, 400.0, 1500.0, 9000.0))
        store.append_page_visit(session.id, rng.choice(["/", "/about", "/api", "/x"]), ts)
    ts = 0.0
    for _ in range(rng.randint(0, 30)):
        ts += rng.uniform(0.0, 50.0)
        store.append_pointer_sample(session.id, rng.uniform(0, 800), rng.uniform(0, 600), ts)
    ts = 0.0
    for _ in range(rng.randint(0, 12)):
        ts += rng.uniform(0.0, 3000.0)
        store.append_scroll_sample(session.id, rng.uniform(0, 5000), ts, 900.0, 6000.0)
    for i in range(rng.randint(0, 15)):
        store.append_outbound_call(session.id, "/api/data", "GET", float(i))
    return session


# ---------------------------------------------------------------------------
# resolve()
# ---------------------------------------------------------------------------


class TestResolve:
    """Tests for the pure resolve helper."""

    def test_below_threshold_is_unknown(self) -> None:
        verdict, confidence = resolve({"human": 0.5, "programmatic": 0.2}, ARCHETYPES, 0.75)
        assert verdict == UNKNOWN
        assert confidence == 0.5

    def test_at_threshold_is_concrete(self) -> None:
        verdict, confidence = resolve({"human": 0.75}, ARCHETYPES, 0.75)
        assert verdict == "human"
        assert confidence == 0.75

    def test_tie_goes_to_registry_order(self) -> None:
        scores = {"human": 0.0, "programmatic": 0.9, "mixed": 0.0, "scanner": 0.9}
        assert resolve(scores, ARCHETYPES, 0.75) == ("programmatic", 0.9)
        assert resolve(scores, list(reversed(ARCHETYPES)), 0.75) == ("scanner", 0.9)

    def test_all_zero_is_unknown(self) -> None:
        verdict, confidence = resolve(dict.fromkeys(ARCHETYPES, 0.0), ARCHETYPES, 0.75)
        assert verdict == UNKNOWN
        assert confidence == 0.0

    def test_empty_order(self) -> None:
        assert resolve({}, [], 0.75) == (UNKNOWN, 0.0)


# ---------------------------------------------------------------------------
# ClassificationResolver.evaluate()
# ---------------------------------------------------------------------------


class TestEvaluate:
    """Tests for a full evaluation pass."""

    def test_empty_session_is_unknown(self) -> None:
        _, session = _new_session()
        result = ClassificationResolver(_config()).evaluate(session)
        assert result.verdict == UNKNOWN
        assert session.scores == dict.fromkeys(ARCHETYPES, 0.0)
        assert session.evaluation_count == 1
        assert session.evaluated_at is not None

    def test_scores_reset_each_pass(self) -> None:
        _, session = _new_session()
        session.scores = {"human": 5.0, "programmatic": 5.0, "mixed": 5.0, "scanner": 5.0}
        ClassificationResolver(_config()).evaluate(session)
        assert session.scores == dict.fromkeys(ARCHETYPES, 0.0)

    def test_unregistered_archetype_ignored(self) -> None:
        def rogue(session, profiles, config) -> Contribution:
            return Contribution(name="rogue", scores={"alien": 9.0, "human": 1.0})

        _, session = _new_session()
        result = ClassificationResolver(_config(), extractors=[rogue]).evaluate(session)
        assert set(result.scores) == set(ARCHETYPES)
        assert result.verdict == "human"

    def test_scores_can_exceed_one(self) -> None:
        def strong(session, profiles, config) -> Contribution:
            return Contribution(name="strong", scores={"scanner": 0.8})

        _, session = _new_session()
        resolver = ClassificationResolver(_config(), extractors=[strong, strong])
        result = resolver.evaluate(session)
        assert result.confidence == pytest.approx(1.6)
        assert result.verdict == "scanner"

    def test_result_mirrors_session(self) -> None:
        _, session = _new_session()
        result = ClassificationResolver(_config()).evaluate(session)
        assert result.session_id == session.id
        assert result.scores == session.scores
        assert result.confidence == session.confidence
        assert result.verdict == session.verdict
        assert len(result.contributions) == 5

    @pytest.mark.parametrize("seed", range(25))
    def test_invariants_hold_for_random_sessions(self, seed: int) -> None:
        """Score keys, non-negativity, confidence, and the threshold gate."""
        session = _random_session(random.Random(seed))
        threshold = 0.75
        ClassificationResolver(_config(threshold)).evaluate(session)

        assert set(session.scores) == set(ARCHETYPES)
        assert all(score >= 0 for score in session.scores.values())
        assert session.confidence == max(session.scores.values())
        assert (session.verdict == UNKNOWN) == (session.confidence < threshold)
        if session.verdict != UNKNOWN:
            assert session.scores[session.verdict] == session.confidence

    @pytest.mark.parametrize("seed", range(10))
    def test_evaluate_is_idempotent(self, seed: int) -> None:
        session = _random_session(random.Random(seed))
        resolver = ClassificationResolver(_config())
        first = resolver.evaluate(session)
        second = resolver.evaluate(session)
        assert first.scores == second.scores
        assert first.confidence == second.confidence
        assert first.verdict == second.verdict


# ---------------------------------------------------------------------------
# Reference scenarios
# ---------------------------------------------------------------------------


class TestScenarios:
    """End-to-end scoring scenarios for the reference model."""

    def test_two_quick_visits_stay_unknown(self) -> None:
        """Only the navigation extractor fires; 0.3 is below the threshold."""
        store, session = _new_session()
        store.append_page_visit(session.id, "/", 1000.0)
        store.append_page_visit(session.id, "/about", 1300.0)

        result = ClassificationResolver(_config()).evaluate(session)

        assert result.scores == {"human": 0.0, "programmatic": 0.3, "mixed": 0.0, "scanner": 0.0}
        assert result.verdict == UNKNOWN

    def test_natural_exploration_resolves_human(self) -> None:
        store, session = _new_session()
        for i, path in enumerate(["/", "/products", "/pricing", "/about", "/contact"]):
            store.append_page_visit(session.id, path, i * 8000.0)
        x = 0.0
        for i in range(12):
            x += 400.0 if i % 2 else 2.0
            store.append_pointer_sample(session.id, x, 100.0, i * 12.0)

        result = ClassificationResolver(_config()).evaluate(session)

        assert result.scores["human"] == pytest.approx(0.95)
        assert result.verdict == "human"

    def test_call_heavy_low_entropy_picks_higher_score(self) -> None:
        store, session = _new_session()
        for i, path in enumerate(["/a", "/b"] * 5):
            store.append_page_visit(session.id, path, i * 100.0)
        for i in range(20):
            store.append_outbound_call(session.id, "/api/probe", "GET", i * 50.0)

        result = ClassificationResolver(_config(0.7)).evaluate(session)

        assert result.scores["programmatic"] > 0
        assert result.scores["scanner"] > result.scores["programmatic"]
        assert result.verdict == "scanner"

    def test_robotic_pointer_never_scores_human(self) -> None:
        store, session = _new_session()
        for i in range(15):
            store.append_pointer_sample(session.id, i * 5.0, i * 5.0, i * 16.0)

        result = ClassificationResolver(_config()).evaluate(session)

        assert result.scores["human"] == 0.0
        assert result.scores["programmatic"] == pytest.approx(0.2)
        assert result.scores["scanner"] == pytest.approx(0.3)


def test_explain_names_dominant_extractor() -> None:
    store, session = _new_session()
    for i, path in enumerate(["/", "/products", "/pricing", "/about", "/contact"]):
        store.append_page_visit(session.id, path, i * 8000.0)
    result = ClassificationResolver(_config(0.5)).evaluate(session)

    details = explain(result)

    assert details["verdict"] == "human"
    assert details["dominant_extractor"] == "navigation_timing"
    assert details["exploration"] == pytest.approx(0.25)


def test_explain_empty_session() -> None:
    _, session = _new_session()
    details = explain(ClassificationResolver(_config()).evaluate(session))
    assert details["dominant_extractor"] == "none"
