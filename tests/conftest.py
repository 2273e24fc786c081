import pytest

from world import create_world

NATIONS = {
    "blue": {"name": "Blue Empire", "human": True},
    "red": {"name": "Red Kingdom"},
    "green": {"name": "Green Republic"},
}


class FixedRandom:
    """Stand-in random source that always rolls the same value."""

    def __init__(self, value: float):
        self.value = value
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        return self.value


@pytest.fixture
def empty_world():
    """5x4 map, three nations, no owners, no armies, no capitals, empty treasuries."""
    return create_world(nations=NATIONS, capitals=[], seed=1, starting_treasury=0)
