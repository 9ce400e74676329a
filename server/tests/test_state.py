"""Tests for session state tracking."""

from __future__ import annotations

import logging

import pytest

from gamecon.dispatcher import ProtocolDispatcher
from gamecon.models import Collision, EventRecord, MessageKind, Vector3
from gamecon.state import SessionState, SessionTracker


@pytest.fixture
def tracker() -> SessionTracker:
    return SessionTracker()


@pytest.fixture
def dispatcher(tracker: SessionTracker) -> ProtocolDispatcher:
    return ProtocolDispatcher(tracker)


# ==============================================================================
# Happy Path Tests
# ==============================================================================


class TestSessionTrackerHappyPath:
    """The tracker keeps the session in step with the callbacks."""

    def test_connection_counters(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        dispatcher.handle_connect()
        dispatcher.tick()
        dispatcher.tick()

        summary = tracker.state.snapshot()
        assert summary["connected"] is True
        assert summary["connection_count"] == 1
        assert summary["tick_count"] == 2
        assert summary["connected_at"] is not None

    def test_create_registers_object(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        dispatcher.handle_line("enemy.create i 3")

        record = tracker.state.get_object("enemy", 3)
        assert record is not None
        assert record.key == "enemy3"
        assert record.created is True

    def test_destroy_removes_object(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        dispatcher.handle_line("enemy.create i 3")
        dispatcher.handle_line("enemy.destroy i 3")

        assert tracker.state.get_object("enemy", 3) is None

    def test_vectors_update_matching_field(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        dispatcher.handle_line("player.create i 0")
        dispatcher.handle_line('player.pos v "1 2 3"')
        dispatcher.handle_line('player.vel v "0 0 -9.8"')
        dispatcher.handle_line('player.dir v "0 1 0"')
        dispatcher.handle_line('player.up v "0 0 1"')

        record = tracker.state.get_object("player")
        assert record is not None
        assert record.pos == Vector3(x=1, y=2, z=3)
        assert record.vel == Vector3(x=0, y=0, z=-9.8)
        assert record.dir == Vector3(x=0, y=1, z=0)
        assert record.params["up"] == Vector3(x=0, y=0, z=1)

    def test_scalar_values_stored_per_param(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        dispatcher.handle_line('light.on B "5 1"')
        dispatcher.handle_line('team.score I "2 40"')
        dispatcher.handle_line("car.speed r 12.5")
        dispatcher.handle_line('hud.text s "game_over"')

        assert tracker.state.get_object("light", 5).params == {"on": True}  # type: ignore[union-attr]
        assert tracker.state.get_object("team", 2).params == {"score": 40}  # type: ignore[union-attr]
        assert tracker.state.get_object("car").params == {"speed": 12.5}  # type: ignore[union-attr]
        assert tracker.state.get_object("hud").params == {"text": "game_over"}  # type: ignore[union-attr]

    def test_hit_stored_as_last_collision(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        dispatcher.handle_line('char.hit c "wood 0.8"')
        dispatcher.handle_line('char.hit c "stone 1.5"')

        record = tracker.state.get_object("char")
        assert record is not None
        assert record.last_hit == Collision(other_name="stone", velocity=1.5)

    def test_objects_without_create_are_registered_on_first_sight(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        dispatcher.handle_line('bullet.pos V "17 4 5 6"')

        record = tracker.state.get_object("bullet", 17)
        assert record is not None
        assert record.created is False
        assert record.pos == Vector3(x=4, y=5, z=6)

    def test_recent_events(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        dispatcher.handle_line("enemy.create i 1")
        dispatcher.handle_line("enemy.health I \"1 90\"")
        dispatcher.handle_line("odd.thing z stuff")

        events = tracker.state.recent_events()
        assert [e.kind for e in events] == [
            MessageKind.CREATE,
            MessageKind.INT,
            MessageKind.OTHER,
        ]
        assert events[1].param == "health"
        assert events[1].value == 90
        assert events[2].object == "odd.thing"
        assert events[2].value == "stuff"
        assert tracker.state.snapshot()["message_count"] == 3

    def test_event_observers(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        seen: list[EventRecord] = []
        tracker.on_event(seen.append)

        dispatcher.handle_line("door.open b 1")

        assert len(seen) == 1
        assert seen[0].kind is MessageKind.BOOL
        assert seen[0].object == "door"


# ==============================================================================
# Edge Case Tests
# ==============================================================================


class TestSessionTrackerEdgeCases:
    """Tests for disconnects, limits and copies."""

    def test_disconnect_clears_objects_but_keeps_counters(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        dispatcher.handle_connect()
        dispatcher.handle_line("enemy.create i 1")
        dispatcher.handle_disconnect()

        summary = tracker.state.snapshot()
        assert summary["connected"] is False
        assert summary["object_count"] == 0
        assert summary["connection_count"] == 1
        assert summary["message_count"] == 1

    def test_destroy_unknown_object_is_harmless(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        dispatcher.handle_line("ghost.destroy i 9")

        assert tracker.state.list_objects() == []
        assert tracker.state.recent_events()[0].kind is MessageKind.DESTROY

    def test_event_log_is_bounded(self) -> None:
        tracker = SessionTracker(SessionState(max_events=5))
        dispatcher = ProtocolDispatcher(tracker)

        for i in range(12):
            dispatcher.handle_line(f"counter i {i}")

        events = tracker.state.recent_events()
        assert [e.value for e in events] == [7, 8, 9, 10, 11]
        assert tracker.state.message_count == 12

    def test_recent_events_limit(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        for i in range(4):
            dispatcher.handle_line(f"counter i {i}")

        assert [e.value for e in tracker.state.recent_events(2)] == [2, 3]
        assert tracker.state.recent_events(0) == []

    def test_readers_get_copies(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        dispatcher.handle_line("team.score i 1")

        copy = tracker.state.get_object("team")
        assert copy is not None
        copy.params["score"] = 999

        assert tracker.state.get_object("team").params["score"] == 1  # type: ignore[union-attr]

    def test_objects_with_same_display_key_stay_separate(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        """obj1 #2 and obj #12 both display as "obj12" but are different objects."""
        dispatcher.handle_line('obj1.score I "2 10"')
        dispatcher.handle_line('obj.score I "12 20"')

        first = tracker.state.get_object("obj1", 2)
        second = tracker.state.get_object("obj", 12)
        assert first is not None and second is not None
        assert first.key == second.key == "obj12"
        assert first.params == {"score": 10}
        assert second.params == {"score": 20}
        assert len(tracker.state.list_objects()) == 2

        dispatcher.handle_line("obj.destroy i 12")
        assert tracker.state.get_object("obj1", 2) is not None

    def test_list_objects_sorted_by_key(
        self, tracker: SessionTracker, dispatcher: ProtocolDispatcher
    ) -> None:
        dispatcher.handle_line("zombie.create i 2")
        dispatcher.handle_line("apple.create i 0")
        dispatcher.handle_line("zombie.create i 1")

        assert [r.key for r in tracker.state.list_objects()] == [
            "apple",
            "zombie1",
            "zombie2",
        ]


# ==============================================================================
# Error Handling Tests
# ==============================================================================


class TestSessionTrackerErrors:
    """Observer failures never reach the dispatcher."""

    def test_failing_observer_is_logged(
        self,
        tracker: SessionTracker,
        dispatcher: ProtocolDispatcher,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        seen: list[EventRecord] = []

        def broken(event: EventRecord) -> None:
            raise RuntimeError("observer broke")

        tracker.on_event(broken)
        tracker.on_event(seen.append)

        with caplog.at_level(logging.ERROR, logger="gamecon.state"):
            dispatcher.handle_line("door.open b 1")

        assert "observer broke" in caplog.text
        assert "broken" in caplog.text
        assert len(seen) == 1
