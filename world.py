#!/usr/bin/env python3
from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from config import SIM_CONFIG

# Map config from JSON
GRID_WIDTH: int = int(SIM_CONFIG.get("grid_width", 5))
GRID_HEIGHT: int = int(SIM_CONFIG.get("grid_height", 4))

# Nations and capitals from JSON
NATION_CONFIG: Dict[str, dict] = SIM_CONFIG.get("nations", {})
CAPITALS: List[int] = [int(pid) for pid in SIM_CONFIG.get("capitals", [])]

# Army / economy tuning
MOVE_TICKS: int = int(SIM_CONFIG.get("move_ticks", 3))  # transit duration between neighbors
CONQUEST_TICKS: int = int(SIM_CONFIG.get("conquest_ticks", 2))  # ticks of sole occupation to flip
INCOME_PER_PROVINCE: int = int(SIM_CONFIG.get("income_per_province", 2))
BUILD_COST: int = int(SIM_CONFIG.get("build_cost", 50))
NEW_ARMY_SIZE: int = int(SIM_CONFIG.get("new_army_size", 1000))
NEW_ARMY_MORALE: float = float(SIM_CONFIG.get("new_army_morale", 1.0))
MIN_ARMY_SIZE: int = int(SIM_CONFIG.get("min_army_size", 100))  # survivors after any battle
STARTING_TREASURY: int = int(SIM_CONFIG.get("starting_treasury", 200))
FIRST_BUILT_ARMY_ID: int = int(SIM_CONFIG.get("first_built_army_id", 100))
AI_CADENCE: int = int(SIM_CONFIG.get("ai_cadence", 2))  # AI acts on ticks divisible by this
VICTORY_SHARE: float = float(SIM_CONFIG.get("victory_share", 0.75))

# Battle tuning
CASUALTY_FACTOR = 0.3
MAX_CASUALTY_RATE = 0.5
HEAVY_CASUALTIES = 0.3
LIGHT_CASUALTIES = 0.1
MORALE_FLOOR_HEAVY = 0.3
MORALE_FLOOR_LIGHT = 0.5
MORALE_CEILING = 1.2

MAX_EVENTS = 80


@dataclass
class Province:
    id: int
    x: int  # grid column
    y: int  # grid row
    neighbors: Tuple[int, ...] = ()  # left, right, up, down; fixed at creation
    owner: Optional[str] = None  # nation id or None


# ---------- Army state ----------


@dataclass(frozen=True)
class Idle:
    """Stationary with no conquest progress."""

    name = "idle"


@dataclass(frozen=True)
class Moving:
    destination: int
    ticks_remaining: int  # always > 0 while in transit

    name = "moving"


@dataclass(frozen=True)
class Occupying:
    progress: int  # ticks of sole occupation of a foreign/unowned province

    name = "occupying"


ArmyState = Union[Idle, Moving, Occupying]
IDLE = Idle()


@dataclass
class Army:
    id: int
    owner: str
    size: int
    location: int
    morale: float = NEW_ARMY_MORALE
    state: ArmyState = IDLE

    @property
    def is_moving(self) -> bool:
        return isinstance(self.state, Moving)

    @property
    def is_idle(self) -> bool:
        return isinstance(self.state, Idle)

    @property
    def destination(self) -> Optional[int]:
        return self.state.destination if isinstance(self.state, Moving) else None

    @property
    def ticks_remaining(self) -> int:
        return self.state.ticks_remaining if isinstance(self.state, Moving) else 0

    @property
    def conquest_progress(self) -> int:
        return self.state.progress if isinstance(self.state, Occupying) else 0

    @property
    def effective_strength(self) -> float:
        return self.size * self.morale


@dataclass
class Nation:
    id: str
    name: str
    color: str = "#ffffff"
    treasury: int = 0
    is_human: bool = False


@dataclass
class HistoricalEvent:
    tick: int
    kind: str  # "battle", "army_destroyed", "conquest", "army_built", "army_move", "victory"
    provinces: List[int]
    nations: List[str]
    text: str


@dataclass
class BattleReport:
    """Outcome of one battle at one province."""

    location: int
    winner: str
    losers: List[str]
    casualty_rate: float
    strengths: Dict[str, float]  # effective strength per nation before the battle
    troops: Dict[str, int]  # raw troops per nation before the battle
    destroyed_armies: List[int]
    troops_destroyed: int  # sum of the losers' pre-battle sizes
    winner_losses: int


@dataclass
class Order:
    """A movement decision taken by an AI nation."""

    nation: str
    army_id: int
    origin_id: int
    target_id: int
    reason: str  # "defend" | "attack" | "expand"
    score: Optional[float] = None


@dataclass
class TickSummary:
    """Aggregated outcome of a single tick."""

    tick: int
    battles: List[BattleReport]
    captures: Dict[int, str]  # province id -> new owner, via occupation
    income: Dict[str, int]
    orders: List[Order]
    built: List[int]
    winner: Optional[str]


@dataclass
class World:
    width: int
    height: int
    provinces: Dict[int, Province]
    nations: Dict[str, Nation]
    armies: Dict[int, Army] = field(default_factory=dict)
    capitals: List[int] = field(default_factory=list)
    tick: int = 0
    paused: bool = False
    game_over: bool = False
    winner: Optional[str] = None
    next_army_id: int = FIRST_BUILT_ARMY_ID
    events: List[str] = field(default_factory=list)
    history: List[HistoricalEvent] = field(default_factory=list)
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)

    # ----- read accessors -----

    def armies_at(self, province_id: int) -> List[Army]:
        return [a for a in self.armies.values() if a.location == province_id]

    def stationary_armies_at(self, province_id: int) -> List[Army]:
        return [a for a in self.armies.values() if a.location == province_id and not a.is_moving]

    def owned_provinces(self, nation_id: str) -> List[Province]:
        return [p for p in self.provinces.values() if p.owner == nation_id]

    def province_count(self, nation_id: str) -> int:
        return sum(1 for p in self.provinces.values() if p.owner == nation_id)

    def income_of(self, nation_id: str) -> int:
        return self.province_count(nation_id) * INCOME_PER_PROVINCE

    def human_nation(self) -> Optional[Nation]:
        return next((n for n in self.nations.values() if n.is_human), None)

    def nation_name(self, nation_id: Optional[str]) -> str:
        if nation_id is None:
            return "nobody"
        nation = self.nations.get(nation_id)
        return nation.name if nation else nation_id

    # ----- mutation surface -----

    def spawn_army(
        self,
        owner: str,
        location: int,
        size: int = NEW_ARMY_SIZE,
        morale: float = NEW_ARMY_MORALE,
        army_id: Optional[int] = None,
    ) -> Army:
        if army_id is None:
            army_id = self.next_army_id
            self.next_army_id += 1
        army = Army(id=army_id, owner=owner, size=size, location=location, morale=morale)
        self.armies[army_id] = army
        return army

    def remove_army(self, army_id: int) -> Optional[Army]:
        return self.armies.pop(army_id, None)

    def set_owner(self, province_id: int, nation_id: Optional[str]) -> None:
        self.provinces[province_id].owner = nation_id

    def credit(self, nation_id: str, amount: int) -> None:
        self.nations[nation_id].treasury += amount

    def debit(self, nation_id: str, amount: int) -> bool:
        nation = self.nations[nation_id]
        if nation.treasury < amount:
            return False
        nation.treasury -= amount
        return True

    def log_event(self, kind: str, province_ids: List[int], nation_ids: List[str], text: str) -> None:
        self.events.append(text)
        if len(self.events) > MAX_EVENTS:
            self.events = self.events[-MAX_EVENTS:]
        self.history.append(
            HistoricalEvent(
                tick=self.tick,
                kind=kind,
                provinces=province_ids,
                nations=nation_ids,
                text=text,
            )
        )


# ---------- Map generation ----------


def grid_neighbors(province_id: int, width: int, height: int) -> Tuple[int, ...]:
    """Orthogonal neighbors in the fixed order left, right, up, down."""
    x = province_id % width
    y = province_id // width
    neighbors: List[int] = []
    if x > 0:
        neighbors.append(province_id - 1)
    if x < width - 1:
        neighbors.append(province_id + 1)
    if y > 0:
        neighbors.append(province_id - width)
    if y < height - 1:
        neighbors.append(province_id + width)
    return tuple(neighbors)


def manhattan(a: Province, b: Province) -> int:
    return abs(a.x - b.x) + abs(a.y - b.y)


def create_world(
    width: int = GRID_WIDTH,
    height: int = GRID_HEIGHT,
    nations: Optional[Dict[str, dict]] = None,
    capitals: Optional[Iterable[int]] = None,
    seed: Optional[int] = None,
    starting_treasury: int = STARTING_TREASURY,
) -> World:
    """
    Build a fresh world. ``nations`` has the same shape as the ``nations``
    block of sim_config.json: id -> {name, color, human, provinces, army}.
    Starting armies are numbered 1..n in nation order; built armies continue
    from FIRST_BUILT_ARMY_ID.
    """
    if nations is None:
        nations = NATION_CONFIG
    if capitals is None:
        capitals = CAPITALS
    if seed is None:
        seed = SIM_CONFIG.get("seed")

    total = width * height
    provinces: Dict[int, Province] = {}
    for pid in range(total):
        provinces[pid] = Province(
            id=pid,
            x=pid % width,
            y=pid // width,
            neighbors=grid_neighbors(pid, width, height),
        )

    capital_ids = [int(pid) for pid in capitals]
    for pid in capital_ids:
        if pid not in provinces:
            raise ValueError(f"Capital {pid} is outside the {width}x{height} map.")

    world = World(
        width=width,
        height=height,
        provinces=provinces,
        nations={},
        capitals=capital_ids,
        rng=random.Random(seed),
    )

    starting_armies: List[Tuple[str, int]] = []
    for nid, ncfg in nations.items():
        world.nations[nid] = Nation(
            id=nid,
            name=ncfg.get("name", nid),
            color=ncfg.get("color", "#ffffff"),
            treasury=int(ncfg.get("treasury", starting_treasury)),
            is_human=bool(ncfg.get("human", False)),
        )
        for pid in ncfg.get("provinces", []):
            pid = int(pid)
            if pid not in provinces:
                raise ValueError(f"Starting province {pid} of {nid} is outside the map.")
            if provinces[pid].owner is not None:
                raise ValueError(
                    f"Starting province {pid} claimed by both {provinces[pid].owner} and {nid}."
                )
            provinces[pid].owner = nid
        army_at = ncfg.get("army")
        if army_at is not None:
            if int(army_at) not in provinces:
                raise ValueError(f"Starting army of {nid} is outside the map.")
            starting_armies.append((nid, int(army_at)))

    for army_id, (nid, pid) in enumerate(starting_armies, start=1):
        world.spawn_army(nid, pid, army_id=army_id)

    return world


# ---------- Construction ----------


def build_army(world: World, nation_id: str, province_id: int) -> Optional[Army]:
    """Pay BUILD_COST and raise a fresh army at an owned province, or do nothing."""
    province = world.provinces.get(province_id)
    if province is None or province.owner != nation_id:
        return None
    if not world.debit(nation_id, BUILD_COST):
        return None
    army = world.spawn_army(nation_id, province_id)
    world.log_event(
        "army_built",
        [province_id],
        [nation_id],
        f"t={world.tick}: {world.nation_name(nation_id)} raised army #{army.id} "
        f"at province #{province_id}.",
    )
    return army


# ---------- Pipeline stages ----------


def advance_movement(world: World) -> List[int]:
    """Count down every army in transit; arrivals relocate and go idle."""
    arrived: List[int] = []
    for army in world.armies.values():
        state = army.state
        if not isinstance(state, Moving):
            continue
        remaining = state.ticks_remaining - 1
        if remaining <= 0:
            army.location = state.destination
            army.state = IDLE
            arrived.append(army.id)
        else:
            army.state = Moving(state.destination, remaining)
    return arrived


def _morale_after_victory(morale: float, casualty_rate: float) -> float:
    if casualty_rate > HEAVY_CASUALTIES:
        return max(MORALE_FLOOR_HEAVY, morale - 0.3)
    if casualty_rate > LIGHT_CASUALTIES:
        return max(MORALE_FLOOR_LIGHT, morale - 0.1)
    return min(MORALE_CEILING, morale + 0.1)


def _resolve_battle(world: World, location: int, forces: Dict[str, List[Army]]) -> BattleReport:
    strengths = {nid: sum(a.effective_strength for a in armies) for nid, armies in forces.items()}
    troops = {nid: sum(a.size for a in armies) for nid, armies in forces.items()}

    # Strictly greater wins, so an exact tie goes to the first nation encountered.
    winner: Optional[str] = None
    best = 0.0
    for nid, strength in strengths.items():
        if winner is None or strength > best:
            winner = nid
            best = strength

    losers = [nid for nid in forces if nid != winner]
    losing_strength = sum(strengths[nid] for nid in losers)
    casualty_rate = min(MAX_CASUALTY_RATE, losing_strength / best * CASUALTY_FACTOR)

    destroyed: List[int] = []
    troops_destroyed = 0
    for nid in losers:
        for army in forces[nid]:
            world.remove_army(army.id)
            destroyed.append(army.id)
            troops_destroyed += army.size

    winner_losses = 0
    for army in forces[winner]:
        new_size = max(MIN_ARMY_SIZE, math.floor(army.size * (1 - casualty_rate)))
        winner_losses += army.size - new_size
        army.size = new_size
        army.morale = _morale_after_victory(army.morale, casualty_rate)

    world.set_owner(location, winner)

    text = (
        f"t={world.tick}: Battle at province #{location}: {world.nation_name(winner)} "
        f"({best:.0f}) defeated {', '.join(world.nation_name(nid) for nid in losers)} "
        f"({losing_strength:.0f}); {troops_destroyed} troops destroyed, "
        f"{casualty_rate * 100:.0f}% casualties for the victor."
    )
    world.log_event("battle", [location], [winner] + losers, text)
    for nid in losers:
        for army in forces[nid]:
            world.log_event(
                "army_destroyed",
                [location],
                [nid],
                f"t={world.tick}: {world.nation_name(nid)} army #{army.id} "
                f"({army.size} troops) destroyed at province #{location}.",
            )

    return BattleReport(
        location=location,
        winner=winner,
        losers=losers,
        casualty_rate=casualty_rate,
        strengths=strengths,
        troops=troops,
        destroyed_armies=destroyed,
        troops_destroyed=troops_destroyed,
        winner_losses=winner_losses,
    )


def resolve_combat(world: World) -> List[BattleReport]:
    """Every location hosting more than one nation fights it out."""
    by_location: Dict[int, List[Army]] = {}
    for army in world.armies.values():
        by_location.setdefault(army.location, []).append(army)

    reports: List[BattleReport] = []
    for location, armies_here in by_location.items():
        forces: Dict[str, List[Army]] = {}
        for army in armies_here:
            forces.setdefault(army.owner, []).append(army)
        if len(forces) < 2:
            continue
        reports.append(_resolve_battle(world, location, forces))
    return reports


def advance_conquest(world: World) -> Dict[int, str]:
    """
    Sole stationary occupants of a foreign or unowned province accumulate
    progress; at CONQUEST_TICKS the province changes hands.
    """
    stationary: Dict[int, List[Army]] = {}
    for army in world.armies.values():
        if army.is_moving:
            continue
        stationary.setdefault(army.location, []).append(army)

    captures: Dict[int, str] = {}
    for pid, province in world.provinces.items():
        present = stationary.get(pid)
        if not present:
            continue

        if len(present) > 1:
            for army in present:
                army.state = IDLE
            continue

        army = present[0]
        if army.owner == province.owner:
            army.state = IDLE
            continue

        progress = army.conquest_progress + 1
        if progress < CONQUEST_TICKS:
            army.state = Occupying(progress)
            continue

        old_owner = province.owner
        world.set_owner(pid, army.owner)
        army.state = IDLE
        captures[pid] = army.owner
        text = f"t={world.tick}: {world.nation_name(army.owner)} occupied province #{pid}"
        if old_owner is not None:
            text += f", taking it from {world.nation_name(old_owner)}."
        else:
            text += "."
        world.log_event(
            "conquest",
            [pid],
            [army.owner] + ([old_owner] if old_owner else []),
            text,
        )
    return captures


def collect_income(world: World) -> Dict[str, int]:
    income: Dict[str, int] = {}
    for nid in world.nations:
        amount = world.income_of(nid)
        world.credit(nid, amount)
        income[nid] = amount
    return income


def victory_threshold(total_provinces: int) -> int:
    return math.ceil(VICTORY_SHARE * total_provinces)


def check_victory(world: World) -> Optional[str]:
    threshold = victory_threshold(len(world.provinces))
    counts: Dict[str, int] = {nid: 0 for nid in world.nations}
    for province in world.provinces.values():
        if province.owner in counts:
            counts[province.owner] += 1

    for nid, count in counts.items():
        if count >= threshold:
            world.winner = nid
            world.game_over = True
            world.paused = True
            world.log_event(
                "victory",
                [],
                [nid],
                f"t={world.tick}: {world.nation_name(nid)} wins the game with "
                f"{count}/{len(world.provinces)} provinces!",
            )
            return nid
    return None


def advance_world(world: World) -> Optional[TickSummary]:
    """
    Advance the world by one tick. Paused or finished worlds are left
    untouched and None is returned.
    """
    from bots import run_ai  # late import to avoid cyclic import

    if world.paused or world.game_over:
        return None

    world.tick += 1
    advance_movement(world)
    battles = resolve_combat(world)
    captures = advance_conquest(world)
    income = collect_income(world)

    orders: List[Order] = []
    built: List[int] = []
    if world.tick % AI_CADENCE == 0:
        orders, built = run_ai(world)

    winner = check_victory(world)

    return TickSummary(
        tick=world.tick,
        battles=battles,
        captures=captures,
        income=income,
        orders=orders,
        built=built,
        winner=winner,
    )


# ---------- Human requests ----------


def request_move(world: World, origin_id: int, target_id: int) -> bool:
    """
    Send every stationary human army at origin toward an adjacent target.
    Refused (False, nothing changes) when the target is not adjacent, no such
    army stands at origin, or the game is already over.
    """
    if world.game_over:
        return False
    human = world.human_nation()
    if human is None:
        return False
    origin = world.provinces.get(origin_id)
    if origin is None or target_id not in world.provinces:
        return False
    if target_id not in origin.neighbors:
        return False

    movers = [a for a in world.stationary_armies_at(origin_id) if a.owner == human.id]
    if not movers:
        return False

    for army in movers:
        army.state = Moving(target_id, MOVE_TICKS)
    world.log_event(
        "army_move",
        [origin_id, target_id],
        [human.id],
        f"t={world.tick}: {human.name} marched {len(movers)} "
        f"{'army' if len(movers) == 1 else 'armies'} from province #{origin_id} "
        f"to province #{target_id}.",
    )
    return True


def request_build(world: World, province_id: int) -> bool:
    """
    Raise a human army at an owned province. Refused (False, nothing changes)
    when the province is not the human nation's, the treasury is short of
    BUILD_COST, or the game is already over.
    """
    if world.game_over:
        return False
    human = world.human_nation()
    if human is None:
        return False
    return build_army(world, human.id, province_id) is not None


# ---------- Snapshot ----------


def snapshot(world: World) -> Dict[str, Any]:
    """Plain-data view of the world for the presentation layer."""
    return {
        "tick": world.tick,
        "paused": world.paused,
        "game_over": world.game_over,
        "winner": world.winner,
        "width": world.width,
        "height": world.height,
        "capitals": list(world.capitals),
        "provinces": [
            {
                "id": p.id,
                "x": p.x,
                "y": p.y,
                "owner": p.owner,
                "neighbors": list(p.neighbors),
            }
            for p in world.provinces.values()
        ],
        "armies": [
            {
                "id": a.id,
                "owner": a.owner,
                "size": a.size,
                "morale": a.morale,
                "location": a.location,
                "state": a.state.name,
                "destination": a.destination,
                "ticks_remaining": a.ticks_remaining,
                "conquest_progress": a.conquest_progress,
            }
            for a in world.armies.values()
        ],
        "nations": [
            {
                "id": n.id,
                "name": n.name,
                "color": n.color,
                "human": n.is_human,
                "treasury": n.treasury,
                "income": world.income_of(n.id),
                "provinces": world.province_count(n.id),
            }
            for n in world.nations.values()
        ],
    }
