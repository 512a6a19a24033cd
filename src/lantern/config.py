"""Configuration loading and validation for Lantern."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from lantern.profiles import ArchetypeProfile, build_profiles

DEFAULT_REFERENCE_SEQUENCES: list[list[str]] = [
    ["/", "/about"],
    ["/", "/pricing"],
    ["/", "/products", "/pricing"],
    ["/", "/blog"],
    ["/docs", "/docs/getting-started"],
]

DEFAULT_MARKER_PATHS: list[str] = [
    "/api",
    "/api/v1",
    "/graphql",
    "/openapi.json",
    "/swagger.json",
    "/robots.txt",
    "/sitemap.xml",
    "/.well-known/ai-plugin.json",
    "/llms.txt",
]


class ClassificationConfig(BaseModel):
    """Configuration for the classification resolver."""

    confidence_threshold: float = Field(
        default=0.75,
        ge=0.0,
        description="Minimum winning score required for a concrete verdict",
    )


class SamplingConfig(BaseModel):
    """Minimum sample sizes for extractors and caps for bounded sequences."""

    min_navigation_visits: int = Field(default=2, ge=2)
    min_pointer_samples: int = Field(default=10, ge=2)
    min_scroll_samples: int = Field(default=5, ge=2)
    min_exploration_visits: int = Field(default=3, ge=1)
    pointer_cap: int = Field(default=100, ge=1)
    scroll_cap: int = Field(default=50, ge=1)


class ExplorationConfig(BaseModel):
    """Reference routes and marker paths for the exploration extractor."""

    reference_sequences: list[list[str]] = Field(
        default_factory=lambda: [list(seq) for seq in DEFAULT_REFERENCE_SEQUENCES],
        description="Curated natural exploration routes matched as subsequences",
    )
    marker_paths: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MARKER_PATHS),
        description="Paths that indicate service or automation access",
    )

    @field_validator("reference_sequences")
    @classmethod
    def _non_empty_sequences(cls, value: list[list[str]]) -> list[list[str]]:
        if any(not seq for seq in value):
            msg = "Reference sequences must not be empty"
            raise ValueError(msg)
        return value


class ServerConfig(BaseModel):
    """Configuration for the FastAPI ingestion server."""

    host: str = "127.0.0.1"
    port: int = 8080


class StorageConfig(BaseModel):
    """Configuration for classification result storage."""

    database: str = "./data/lantern.db"
    log_file: str = "./data/results.jsonl"


class LoggingConfig(BaseModel):
    """Configuration for logging output."""

    level: str = "info"
    output: str = "stderr"


class LanternConfig(BaseModel):
    """Top-level Lantern configuration."""

    classification: ClassificationConfig = Field(default_factory=ClassificationConfig)
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    exploration: ExplorationConfig = Field(default_factory=ExplorationConfig)
    profiles: dict[str, ArchetypeProfile] = Field(
        default_factory=dict,
        description="Archetype profile overrides merged over the built-in table",
    )
    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def profile_table(self) -> Mapping[str, ArchetypeProfile]:
        """Return the effective read-only profile table."""
        return build_profiles(self.profiles)


def load_config(path: str | Path | None = None) -> LanternConfig:
    """Load Lantern configuration from a YAML file.

    Args:
        path: Path to the YAML config file. If None, uses 'lantern.yaml'
              in the current directory, falling back to defaults.

    Returns:
        A validated LanternConfig instance.
    """
    path = Path("lantern.yaml") if path is None else Path(path)

    if path.exists():
        with open(path) as f:
            raw: dict[str, Any] = yaml.safe_load(f) or {}
        return LanternConfig.model_validate(raw)

    return LanternConfig()
