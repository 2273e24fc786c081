#!/usr/bin/env python3
"""
Headless runner: advance a fresh world for a number of ticks and report.

Usage:
    python simulate.py --ticks 200 --seed 7
    python simulate.py --ticks 50 --seed 7 --json
"""
from __future__ import annotations

import argparse
import json
from typing import Optional

from world import World, advance_world, create_world, snapshot


def run(ticks: int, seed: Optional[int] = None) -> World:
    """Advance a fresh world up to ``ticks`` times; stops early on game over."""
    world = create_world(seed=seed)
    for _ in range(ticks):
        if advance_world(world) is None:
            break
    return world


def format_summary(world: World) -> str:
    lines = [f"tick {world.tick}"]
    for nation in world.nations.values():
        armies = [a for a in world.armies.values() if a.owner == nation.id]
        lines.append(
            f"  {nation.name:<16} provinces={world.province_count(nation.id):>3} "
            f"treasury={nation.treasury:>5} armies={len(armies):>3} "
            f"troops={sum(a.size for a in armies):>6}"
        )
    if world.winner is not None:
        lines.append(f"winner: {world.nation_name(world.winner)}")
    else:
        lines.append("winner: none")
    return "\n".join(lines)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the province simulation without a host loop.")
    parser.add_argument("--ticks", type=int, default=200, help="Maximum number of ticks to advance.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the AI random source.")
    parser.add_argument("--json", action="store_true", help="Print the final world snapshot as JSON.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    world = run(args.ticks, seed=args.seed)
    if args.json:
        print(json.dumps(snapshot(world), indent=2))
    else:
        print(format_summary(world))


if __name__ == "__main__":
    main()
