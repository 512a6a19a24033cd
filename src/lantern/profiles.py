"""Archetype profile registry.

Reference behavioral parameters for each archetype. The table is built
once at import time and exposed read-only; sessions are scored against it
but never change it.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lantern.models import Archetype


class TimeRange(BaseModel):
    """An inclusive millisecond range."""

    model_config = ConfigDict(frozen=True)

    min_ms: float = Field(ge=0.0)
    max_ms: float = Field(ge=0.0)

    @model_validator(mode="after")
    def _check_order(self) -> TimeRange:
        if self.min_ms > self.max_ms:
            msg = f"min_ms ({self.min_ms}) must not exceed max_ms ({self.max_ms})"
            raise ValueError(msg)
        return self

    def contains(self, value: float) -> bool:
        """Return True if value lies within [min_ms, max_ms]."""
        return self.min_ms <= value <= self.max_ms


class ArchetypeProfile(BaseModel):
    """Reference behavior for one archetype."""

    model_config = ConfigDict(frozen=True)

    navigation_speed: TimeRange = Field(description="Expected time between navigations")
    natural_movement: bool = Field(description="Pointer movement shows natural variation")
    pause_points: bool = Field(description="Reading pauses while scrolling")
    exploration_pattern: str
    programmatic_calls: bool
    return_frequency: str
    session_duration: TimeRange
    path_entropy: str
    focus_pattern: str


_DEFAULT_TABLE: dict[str, dict[str, Any]] = {
    Archetype.HUMAN: {
        "navigation_speed": {"min_ms": 2000, "max_ms": 30000},
        "natural_movement": True,
        "pause_points": True,
        "exploration_pattern": "organic",
        "programmatic_calls": False,
        "return_frequency": "high",
        "session_duration": {"min_ms": 30_000, "max_ms": 1_800_000},
        "path_entropy": "high",
        "focus_pattern": "variable",
    },
    Archetype.PROGRAMMATIC: {
        "navigation_speed": {"min_ms": 50, "max_ms": 1000},
        "natural_movement": False,
        "pause_points": False,
        "exploration_pattern": "direct",
        "programmatic_calls": True,
        "return_frequency": "low",
        "session_duration": {"min_ms": 1_000, "max_ms": 60_000},
        "path_entropy": "low",
        "focus_pattern": "none",
    },
    Archetype.MIXED: {
        "navigation_speed": {"min_ms": 800, "max_ms": 6000},
        "natural_movement": True,
        "pause_points": True,
        "exploration_pattern": "targeted",
        "programmatic_calls": True,
        "return_frequency": "medium",
        "session_duration": {"min_ms": 20_000, "max_ms": 900_000},
        "path_entropy": "medium",
        "focus_pattern": "intermittent",
    },
    Archetype.SCANNER: {
        "navigation_speed": {"min_ms": 0, "max_ms": 200},
        "natural_movement": False,
        "pause_points": False,
        "exploration_pattern": "exhaustive",
        "programmatic_calls": True,
        "return_frequency": "none",
        "session_duration": {"min_ms": 1_000, "max_ms": 300_000},
        "path_entropy": "low",
        "focus_pattern": "none",
    },
}


def build_profiles(
    overrides: Mapping[str, ArchetypeProfile | Mapping[str, Any]] | None = None,
) -> Mapping[str, ArchetypeProfile]:
    """Build a read-only profile table, merging overrides over the defaults.

    Overrides replace a default profile by name. Names not present in the
    defaults are appended after them, so the default archetypes keep their
    tie-break position.

    Args:
        overrides: Optional mapping of archetype name to profile (or raw
            profile fields).

    Returns:
        A read-only mapping in registry order.
    """
    table: dict[str, ArchetypeProfile] = {
        str(name): ArchetypeProfile.model_validate(fields)
        for name, fields in _DEFAULT_TABLE.items()
    }
    for name, profile in (overrides or {}).items():
        table[str(name)] = (
            profile
            if isinstance(profile, ArchetypeProfile)
            else ArchetypeProfile.model_validate(profile)
        )
    return MappingProxyType(table)


DEFAULT_PROFILES: Mapping[str, ArchetypeProfile] = build_profiles()


def profiles() -> Mapping[str, ArchetypeProfile]:
    """Return the default archetype profile table."""
    return DEFAULT_PROFILES
