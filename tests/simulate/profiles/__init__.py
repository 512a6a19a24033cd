"""Simulator profiles for different visitor archetypes."""

from __future__ import annotations

from tests.simulate.profiles.api_client import APIClientSimulator
from tests.simulate.profiles.assisted_user import AssistedUserSimulator
from tests.simulate.profiles.human_visitor import HumanVisitorSimulator
from tests.simulate.profiles.path_scanner import PathScannerSimulator

__all__ = [
    "APIClientSimulator",
    "AssistedUserSimulator",
    "HumanVisitorSimulator",
    "PathScannerSimulator",
]

PROFILE_REGISTRY: dict[str, type] = {
    "human_visitor": HumanVisitorSimulator,
    "api_client": APIClientSimulator,
    "assisted_user": AssistedUserSimulator,
    "path_scanner": PathScannerSimulator,
}
