"""Tests for the reaction dispatcher."""

from __future__ import annotations

import pytest

from lantern.dispatch import ReactionDispatcher
from lantern.models import Session


def _session(verdict: str, confidence: float) -> Session:
    return Session(id="s1", started_at=0.0, verdict=verdict, confidence=confidence)


class Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def __call__(self, verdict: str, session: Session) -> None:
        self.calls.append((verdict, session.id))


def test_registered_handler_runs_once() -> None:
    recorder = Recorder()
    dispatcher = ReactionDispatcher()
    dispatcher.register("human", recorder)

    assert dispatcher.dispatch(_session("human", 0.9)) is True
    assert recorder.calls == [("human", "s1")]


def test_unknown_verdict_runs_nothing() -> None:
    recorder = Recorder()
    dispatcher = ReactionDispatcher(fallback=recorder)
    dispatcher.register("human", recorder)

    assert dispatcher.dispatch(_session("unknown", 0.6)) is False
    assert recorder.calls == []


def test_below_threshold_runs_nothing() -> None:
    recorder = Recorder()
    dispatcher = ReactionDispatcher(threshold=0.75)
    dispatcher.register("scanner", recorder)

    assert dispatcher.dispatch(_session("scanner", 0.5)) is False
    assert recorder.calls == []


def test_only_matching_handler_runs() -> None:
    human, scanner = Recorder(), Recorder()
    dispatcher = ReactionDispatcher()
    dispatcher.register("human", human)
    dispatcher.register("scanner", scanner)

    dispatcher.dispatch(_session("scanner", 1.2))

    assert human.calls == []
    assert scanner.calls == [("scanner", "s1")]


def test_fallback_for_unregistered_verdict() -> None:
    fallback = Recorder()
    dispatcher = ReactionDispatcher(fallback=fallback)

    assert dispatcher.dispatch(_session("mixed", 0.8)) is True
    assert fallback.calls == [("mixed", "s1")]


def test_no_handler_still_dispatched() -> None:
    assert ReactionDispatcher().dispatch(_session("mixed", 0.8)) is True


def test_register_replaces_and_unregister_removes() -> None:
    first, second = Recorder(), Recorder()
    dispatcher = ReactionDispatcher()
    dispatcher.register("human", first)
    dispatcher.register("human", second)
    dispatcher.dispatch(_session("human", 1.0))
    assert first.calls == []
    assert second.calls == [("human", "s1")]

    dispatcher.unregister("human")
    dispatcher.unregister("human")
    assert "human" not in dispatcher.handlers()


def test_cannot_register_unknown() -> None:
    with pytest.raises(ValueError, match="unknown"):
        ReactionDispatcher().register("unknown", Recorder())


def test_handlers_view_is_read_only() -> None:
    dispatcher = ReactionDispatcher()
    dispatcher.register("human", Recorder())
    with pytest.raises(TypeError):
        dispatcher.handlers()["scanner"] = Recorder()  # type: ignore[index]


def test_handler_error_propagates() -> None:
    def broken(verdict: str, session: Session) -> None:
        raise RuntimeError("boom")

    dispatcher = ReactionDispatcher()
    dispatcher.register("human", broken)
    with pytest.raises(RuntimeError, match="boom"):
        dispatcher.dispatch(_session("human", 0.9))


def test_threshold_override_per_call() -> None:
    recorder = Recorder()
    dispatcher = ReactionDispatcher(threshold=0.75, fallback=recorder)

    assert dispatcher.dispatch(_session("mixed", 0.6), threshold=0.5) is True
    assert dispatcher.dispatch(_session("mixed", 0.6)) is False
    assert recorder.calls == [("mixed", "s1")]
