from __future__ import annotations

from status.feed import StatusFeed


class FakeClock:
    def __init__(self) -> None:
        self.t = 0.0

    def __call__(self) -> float:
        return self.t


def test_duplicates_are_ignored():
    feed = StatusFeed(lifespan_s=30.0, clock=FakeClock())
    feed.add("Retrieved 3 locations")
    feed.add("Loaded 2 QCT zones")
    feed.add("Retrieved 3 locations")
    assert feed.messages() == ["Retrieved 3 locations", "Loaded 2 QCT zones"]


def test_all_messages_clear_after_lifespan_from_last_add():
    clock = FakeClock()
    feed = StatusFeed(lifespan_s=30.0, clock=clock)
    feed.add("a")
    clock.t = 20.0
    feed.add("b")
    clock.t = 45.0
    assert feed.messages() == ["a", "b"]
    clock.t = 50.0
    assert feed.messages() == []
    feed.add("a")
    assert feed.messages() == ["a"]
