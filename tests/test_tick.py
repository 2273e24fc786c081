import pytest

from world import (
    BUILD_COST,
    MIN_ARMY_SIZE,
    Moving,
    advance_world,
    create_world,
    request_build,
    snapshot,
)

from conftest import NATIONS


def test_paused_tick_is_a_no_op(empty_world):
    army = empty_world.spawn_army("red", 6)
    army.state = Moving(7, 1)
    empty_world.set_owner(6, "red")
    empty_world.paused = True
    before = snapshot(empty_world)

    assert advance_world(empty_world) is None
    assert snapshot(empty_world) == before

    empty_world.paused = False
    summary = advance_world(empty_world)
    assert summary.tick == 1
    assert army.location == 7


def test_movement_resolves_before_combat(empty_world):
    attacker = empty_world.spawn_army("blue", 6)
    attacker.state = Moving(7, 1)
    defender = empty_world.spawn_army("red", 7, size=500)

    summary = advance_world(empty_world)

    assert len(summary.battles) == 1
    assert summary.battles[0].location == 7
    assert summary.battles[0].winner == "blue"
    assert defender.id not in empty_world.armies
    assert empty_world.provinces[7].owner == "blue"


def test_ai_only_runs_on_cadence_ticks(empty_world):
    empty_world.set_owner(6, "red")
    empty_world.spawn_army("red", 6)

    first = advance_world(empty_world)
    second = advance_world(empty_world)

    assert first.orders == []
    assert len(second.orders) == 1
    assert second.orders[0].nation == "red"


def test_build_request(empty_world):
    empty_world.set_owner(3, "blue")
    empty_world.nations["blue"].treasury = BUILD_COST

    assert request_build(empty_world, 3) is True
    assert empty_world.nations["blue"].treasury == 0
    built = list(empty_world.armies.values())[-1]
    assert built.owner == "blue"
    assert built.location == 3
    assert built.size == 1000
    assert built.morale == 1.0
    assert built.is_idle


@pytest.mark.parametrize(
    "owner, treasury, province",
    [
        ("blue", BUILD_COST - 1, 3),  # too poor
        ("red", BUILD_COST, 3),  # not ours
        (None, BUILD_COST, 3),  # nobody's
        ("blue", BUILD_COST, 42),  # off the map
    ],
)
def test_build_request_rejections(empty_world, owner, treasury, province):
    empty_world.set_owner(3, owner)
    empty_world.nations["blue"].treasury = treasury
    before = snapshot(empty_world)

    assert request_build(empty_world, province) is False
    assert snapshot(empty_world) == before


def test_default_setup():
    world = create_world(seed=0)

    assert len(world.provinces) == 20
    assert [p.id for p in world.owned_provinces("blue")] == [0, 1, 5]
    assert [p.id for p in world.owned_provinces("red")] == [9, 14]
    assert [p.id for p in world.owned_provinces("green")] == [18, 19]
    assert [(a.id, a.owner, a.location) for a in world.armies.values()] == [
        (1, "blue", 0),
        (2, "red", 9),
        (3, "green", 19),
    ]
    assert world.human_nation().id == "blue"
    assert all(n.treasury == 200 for n in world.nations.values())
    assert world.provinces[6].neighbors == (5, 7, 1, 11)
    assert world.provinces[19].neighbors == (18, 14)


def test_invalid_layouts_are_refused():
    with pytest.raises(ValueError):
        create_world(nations={"a": {"provinces": [0]}, "b": {"provinces": [0]}}, capitals=[])
    with pytest.raises(ValueError):
        create_world(nations={"a": {"provinces": [20]}}, capitals=[])
    with pytest.raises(ValueError):
        create_world(nations=NATIONS, capitals=[25])


def _run(seed, ticks):
    world = create_world(seed=seed)
    for _ in range(ticks):
        advance_world(world)
    return world


def test_same_seed_same_game():
    a = _run(1234, 150)
    b = _run(1234, 150)

    assert snapshot(a) == snapshot(b)
    assert [ev.text for ev in a.history] == [ev.text for ev in b.history]


def test_invariants_hold_every_tick():
    world = create_world(seed=99)
    nation_ids = set(world.nations)
    for _ in range(300):
        advance_world(world)
        for province in world.provinces.values():
            assert province.owner is None or province.owner in nation_ids
        for army in world.armies.values():
            assert army.size >= MIN_ARMY_SIZE
            assert 0.3 - 1e-9 <= army.morale <= 1.2 + 1e-9
            if army.is_moving:
                assert army.ticks_remaining > 0
                assert army.destination in world.provinces[army.location].neighbors
        for nation in world.nations.values():
            assert nation.treasury >= 0
        if world.game_over:
            break


def test_build_request_rejected_after_game_over(empty_world):
    empty_world.set_owner(3, "blue")
    empty_world.nations["blue"].treasury = BUILD_COST
    empty_world.game_over = True
    before = snapshot(empty_world)

    assert request_build(empty_world, 3) is False
    assert snapshot(empty_world) == before
