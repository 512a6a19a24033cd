"""Generate a demo telemetry file by running every simulator profile.

The output is a JSON Lines replay file, letting new users try
`lantern replay` immediately without wiring up a capture layer.

Usage:
    python scripts/generate_demo_data.py
    python scripts/generate_demo_data.py --output data/demo_events.jsonl --runs 3
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add the project root to path for imports
_project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_project_root))

from tests.simulate.profiles import PROFILE_REGISTRY  # noqa: E402
from tests.simulate.profiles.config import PROFILE_CONFIGS  # noqa: E402


def generate_lines(runs: int, seed: int) -> list[str]:
    """Return replay lines for `runs` sessions of every profile, merged by time."""
    envelopes = []
    for profile_name, simulator_cls in PROFILE_REGISTRY.items():
        for run_index in range(runs):
            simulator = simulator_cls(
                session_id=f"{profile_name}-{run_index + 1}",
                seed=seed + run_index,
            )
            envelopes.extend(simulator.envelopes())
    envelopes.sort(key=lambda env: env.event.timestamp)
    return [env.model_dump_json() for env in envelopes]


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate Lantern demo telemetry")
    parser.add_argument(
        "--output",
        default="data/demo_events.jsonl",
        help="Output JSON Lines path (default: data/demo_events.jsonl)",
    )
    parser.add_argument("--runs", type=int, default=2, help="Sessions per profile (default: 2)")
    parser.add_argument("--seed", type=int, default=1, help="Base random seed (default: 1)")
    args = parser.parse_args()

    lines = generate_lines(args.runs, args.seed)
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text("\n".join(lines) + "\n")

    print(f"Wrote {len(lines)} events to {output}")
    for name, cfg in PROFILE_CONFIGS.items():
        print(f"  {name:<15} expected: {cfg['expected_verdict']:<13} {cfg['description']}")


if __name__ == "__main__":
    main()
