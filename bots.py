#!/usr/bin/env python3
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from config import SIM_CONFIG
from world import (
    MOVE_TICKS,
    Army,
    Moving,
    Nation,
    Order,
    Province,
    World,
    build_army,
    manhattan,
)

# Chance per AI tick that a nation tries to raise a new army
AI_BUILD_CHANCE: float = float(SIM_CONFIG.get("ai_build_chance", 0.1))
# Best offensive score must exceed this before an army commits to a move
COMMIT_THRESHOLD: float = float(SIM_CONFIG.get("ai_commit_threshold", 5))

# Offense scoring
OWNED_TARGET_BONUS = 15  # someone else's province
NEUTRAL_TARGET_BONUS = 10  # nobody's province
UNDEFENDED_BONUS = 20
OVERWHELMING_RATIO = 1.2
OVERWHELMING_BONUS = 10
ADVANTAGE_BONUS = 5
DISADVANTAGE_PENALTY = -10
CAPITAL_PULL = 10  # max bonus for standing next to a foreign capital


def _foreign_strength_at(world: World, nation_id: str, province_id: int) -> Tuple[int, float]:
    """(army count, effective strength) of everyone but nation_id at a province."""
    count = 0
    strength = 0.0
    for army in world.armies_at(province_id):
        if army.owner == nation_id:
            continue
        count += 1
        strength += army.effective_strength
    return count, strength


def _defense_target(world: World, nation_id: str, origin: Province) -> Optional[int]:
    for nid in origin.neighbors:
        neigh = world.provinces[nid]
        if neigh.owner != nation_id:
            continue
        if any(a.owner != nation_id for a in world.armies_at(nid)):
            return nid
    return None


def _capital_pull(world: World, nation_id: str, target: Province) -> float:
    pull = 0.0
    for cid in world.capitals:
        capital = world.provinces[cid]
        if capital.owner == nation_id:
            continue
        pull += max(0, CAPITAL_PULL - manhattan(target, capital))
    return pull


def score_target(world: World, army: Army, target: Province) -> float:
    """
    Desirability of sending this army into a province it does not own.
    Higher = more attractive.
    """
    score = 0.0
    if target.owner is not None:
        score += OWNED_TARGET_BONUS
    else:
        score += NEUTRAL_TARGET_BONUS

    defenders, defense = _foreign_strength_at(world, army.owner, target.id)
    attack = army.effective_strength
    if defenders == 0:
        score += UNDEFENDED_BONUS
    elif attack > defense * OVERWHELMING_RATIO:
        score += OVERWHELMING_BONUS
    elif attack > defense:
        score += ADVANTAGE_BONUS
    else:
        score += DISADVANTAGE_PENALTY

    score += _capital_pull(world, army.owner, target)
    return score


def choose_target(world: World, army: Army) -> Optional[Order]:
    """Pick where an idle army should go next, or None to stay put."""
    origin = world.provinces[army.location]

    defend = _defense_target(world, army.owner, origin)
    if defend is not None:
        return Order(
            nation=army.owner,
            army_id=army.id,
            origin_id=origin.id,
            target_id=defend,
            reason="defend",
        )

    best: Optional[Province] = None
    best_score = float("-inf")
    for nid in origin.neighbors:
        neigh = world.provinces[nid]
        if neigh.owner == army.owner:
            continue
        s = score_target(world, army, neigh)
        if s > best_score:
            best_score = s
            best = neigh

    if best is None or best_score <= COMMIT_THRESHOLD:
        return None
    return Order(
        nation=army.owner,
        army_id=army.id,
        origin_id=origin.id,
        target_id=best.id,
        reason="attack" if best.owner is not None else "expand",
        score=best_score,
    )


def _maybe_build(world: World, nation: Nation) -> Optional[Army]:
    # Always draw so the random stream does not depend on the treasury.
    roll = world.rng.random()
    if roll >= AI_BUILD_CHANCE:
        return None
    owned = world.owned_provinces(nation.id)
    if not owned:
        return None
    return build_army(world, nation.id, owned[0].id)


def run_ai(world: World) -> Tuple[List[Order], List[int]]:
    """
    Let every computer nation build and move. Returns the movement orders
    issued and the ids of armies raised.
    """
    orders: List[Order] = []
    built: List[int] = []

    for nation in list(world.nations.values()):
        if nation.is_human:
            continue

        army = _maybe_build(world, nation)
        if army is not None:
            built.append(army.id)

        # Occupying armies hold their ground until the province flips.
        idle = [a for a in world.armies.values() if a.owner == nation.id and a.is_idle]
        for army in idle:
            order = choose_target(world, army)
            if order is None:
                continue
            army.state = Moving(order.target_id, MOVE_TICKS)
            orders.append(order)
            text = (
                f"t={world.tick}: {nation.name} sent army #{army.id} "
                f"from province #{order.origin_id} to province #{order.target_id} ({order.reason}"
            )
            if order.score is not None:
                text += f", score {order.score:.0f}"
            text += ")."
            world.log_event("army_move", [order.origin_id, order.target_id], [nation.id], text)

    return orders, built


def get_ai_debug_state(world: World) -> Dict[str, dict]:
    """Per computer nation: treasury and how its armies are occupied."""
    state: Dict[str, dict] = {}
    for nation in world.nations.values():
        if nation.is_human:
            continue
        armies = [a for a in world.armies.values() if a.owner == nation.id]
        state[nation.id] = {
            "treasury": nation.treasury,
            "provinces": world.province_count(nation.id),
            "idle": sum(1 for a in armies if a.is_idle),
            "moving": sum(1 for a in armies if a.is_moving),
            "occupying": sum(1 for a in armies if a.conquest_progress > 0),
            "troops": sum(a.size for a in armies),
        }
    return state
