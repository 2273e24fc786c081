import pytest

from bots import choose_target, get_ai_debug_state, run_ai, score_target
from world import BUILD_COST, MOVE_TICKS, Moving, Occupying

from conftest import FixedRandom


def _surround(world, owner, province_ids):
    for pid in province_ids:
        world.set_owner(pid, owner)


def test_prefers_undefended_neutral_over_costly_attack(empty_world):
    # red army at 6; neighbors are 5 (left), 7 (right), 1 (up), 11 (down)
    _surround(empty_world, "red", [6, 1, 11])
    empty_world.set_owner(7, "blue")
    empty_world.spawn_army("blue", 7, size=2000)
    army = empty_world.spawn_army("red", 6)

    assert score_target(empty_world, army, empty_world.provinces[5]) == 30
    assert score_target(empty_world, army, empty_world.provinces[7]) == 5

    order = choose_target(empty_world, army)
    assert order.target_id == 5
    assert order.reason == "expand"
    assert order.score == 30


def test_stays_put_when_nothing_beats_threshold(empty_world):
    _surround(empty_world, "red", [6, 1, 11, 5])
    empty_world.set_owner(7, "blue")
    empty_world.spawn_army("blue", 7, size=2000)
    army = empty_world.spawn_army("red", 6)

    assert choose_target(empty_world, army) is None


def test_no_foreign_neighbors_means_no_move(empty_world):
    _surround(empty_world, "red", [6, 5, 7, 1, 11])
    army = empty_world.spawn_army("red", 6)

    assert choose_target(empty_world, army) is None


def test_defense_comes_before_scoring(empty_world):
    _surround(empty_world, "red", [6, 1, 11, 7])
    empty_world.spawn_army("green", 7, size=5000)
    army = empty_world.spawn_army("red", 6)

    order = choose_target(empty_world, army)

    assert order.target_id == 7
    assert order.reason == "defend"
    assert order.score is None


@pytest.mark.parametrize(
    "defender_size, expected",
    [
        (800, 15 + 10),  # more than 1.2x the defence
        (900, 15 + 5),  # merely stronger
        (1000, 15 - 10),  # not stronger
    ],
)
def test_strength_ratio_scoring(empty_world, defender_size, expected):
    empty_world.set_owner(7, "blue")
    empty_world.spawn_army("blue", 7, size=defender_size)
    army = empty_world.spawn_army("red", 6)

    assert score_target(empty_world, army, empty_world.provinces[7]) == expected


def test_foreign_capitals_pull_armies(empty_world):
    empty_world.capitals = [0, 19]
    army = empty_world.spawn_army("red", 6)
    target = empty_world.provinces[1]  # one step from 0, six from 19

    assert score_target(empty_world, army, target) == 10 + 20 + 9 + 4

    empty_world.set_owner(0, "red")
    assert score_target(empty_world, army, target) == 10 + 20 + 4


def test_ties_keep_the_first_neighbor(empty_world):
    army = empty_world.spawn_army("red", 6)

    order = choose_target(empty_world, army)

    assert order.target_id == 5


def test_run_ai_moves_idle_computer_armies(empty_world):
    empty_world.rng = FixedRandom(0.99)
    _surround(empty_world, "red", [6, 1, 11, 7])
    army = empty_world.spawn_army("red", 6)
    human = empty_world.spawn_army("blue", 12)

    orders, built = run_ai(empty_world)

    assert built == []
    assert [(o.army_id, o.target_id) for o in orders] == [(army.id, 5)]
    assert army.state == Moving(5, MOVE_TICKS)
    assert human.is_idle


def test_occupying_and_moving_armies_are_left_alone(empty_world):
    empty_world.rng = FixedRandom(0.99)
    occupying = empty_world.spawn_army("red", 6)
    occupying.state = Occupying(1)
    moving = empty_world.spawn_army("green", 13)
    moving.state = Moving(14, 2)

    orders, _ = run_ai(empty_world)

    assert orders == []
    assert occupying.state == Occupying(1)
    assert moving.state == Moving(14, 2)


def test_construction_at_first_owned_province(empty_world):
    empty_world.rng = FixedRandom(0.05)
    _surround(empty_world, "red", [9, 3])
    empty_world.nations["red"].treasury = BUILD_COST + 7

    orders, built = run_ai(empty_world)

    assert len(built) == 1
    army = empty_world.armies[built[0]]
    assert army.id == 100
    assert army.owner == "red"
    assert army.location == 3
    assert army.size == 1000
    assert army.morale == 1.0
    assert empty_world.nations["red"].treasury == 7
    assert empty_world.rng.calls == 2  # red and green roll, blue is human


def test_construction_needs_funds_and_land(empty_world):
    rng = FixedRandom(0.0)
    empty_world.rng = rng
    empty_world.set_owner(9, "red")
    empty_world.nations["red"].treasury = BUILD_COST - 1
    empty_world.nations["green"].treasury = 1000  # owns nothing

    orders, built = run_ai(empty_world)

    assert built == []
    assert empty_world.nations["red"].treasury == BUILD_COST - 1
    assert empty_world.nations["green"].treasury == 1000
    assert rng.calls == 2


def test_debug_state(empty_world):
    empty_world.set_owner(9, "red")
    empty_world.spawn_army("red", 9)
    moving = empty_world.spawn_army("red", 9)
    moving.state = Moving(8, 1)

    state = get_ai_debug_state(empty_world)

    assert set(state) == {"red", "green"}
    assert state["red"]["idle"] == 1
    assert state["red"]["moving"] == 1
    assert state["red"]["troops"] == 2000
