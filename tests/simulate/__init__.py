"""Synthetic telemetry simulator for Lantern testing.

This package provides seeded traffic profiles that emit the event streams
of different visitor archetypes: human visitors, programmatic API
clients, assisted (mixed) users, and path scanners.

Write a replay file for `lantern replay` via:
    python scripts/generate_demo_data.py --output data/demo_events.jsonl
"""
