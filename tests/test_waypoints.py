import pytest

from errors import MalformedChunkError
from waypoints import WaypointCursor, parse_movement, parse_movements, parse_waypoint


def test_parse_waypoint_accepts_whole_float_times() -> None:
    waypoint = parse_waypoint({"time": 1420102800.0, "lng": 11.5, "lat": 48.1})
    assert waypoint.time == 1420102800
    assert isinstance(waypoint.time, int)
    assert waypoint.position.lng == pytest.approx(11.5)


@pytest.mark.parametrize(
    "record",
    [
        {"time": 10, "lng": 11.5},
        {"time": "10", "lng": 11.5, "lat": 48.1},
        {"time": 10.5, "lng": 11.5, "lat": 48.1},
        {"time": 10, "lng": True, "lat": 48.1},
        ["not", "an", "object"],
    ],
)
def test_parse_waypoint_rejects_bad_records(record) -> None:
    with pytest.raises(MalformedChunkError):
        parse_waypoint(record)


def test_parse_movement(make_record) -> None:
    movement = parse_movement(make_record([100, 150, 200]))
    assert movement.start_time == 100
    assert movement.end_time == 200
    assert movement.duration == 100
    assert [w.time for w in movement.waypoints] == [100, 150, 200]
    assert len(movement) == 3


def test_movement_without_waypoints_is_malformed(make_record) -> None:
    record = make_record([100])
    record["waypoints"] = []
    with pytest.raises(MalformedChunkError):
        parse_movement(record)


def test_parse_movements_skips_null_entries(make_record) -> None:
    movements = parse_movements([make_record([1, 2]), None, make_record([5, 6])])
    assert [m.start_time for m in movements] == [1, 5]


def test_cursor_walks_across_movements(make_movement) -> None:
    cursor = WaypointCursor([make_movement([10, 20]), make_movement([30])])

    assert cursor.get_next_wakeup() == 10
    assert cursor.remaining() == 3
    assert cursor.get_next_waypoint().time == 10
    assert cursor.is_first_waypoint()
    assert cursor.get_next_waypoint().time == 20
    assert not cursor.is_first_waypoint()
    assert cursor.position == (1, 0)
    assert cursor.get_next_wakeup() == 30
    assert cursor.peek_next_waypoint().time == 30
    assert cursor.get_next_waypoint().time == 30
    assert cursor.is_first_waypoint()

    assert cursor.has_finished_history()
    assert cursor.get_next_wakeup() == -1
    assert cursor.peek_next_waypoint() is None
    assert cursor.get_next_waypoint() is None
    assert cursor.remaining() == 0


def test_empty_cursor_is_finished() -> None:
    cursor = WaypointCursor()
    assert cursor.has_finished_history()
    assert cursor.get_next_wakeup() == -1


def test_exhausted_cursor_stays_exhausted(make_movement) -> None:
    cursor = WaypointCursor([make_movement([10])])
    cursor.get_next_waypoint()
    assert cursor.has_finished_history()

    assert cursor.add_movements([make_movement([50, 60])]) == 1

    assert len(cursor) == 2
    assert cursor.has_finished_history()
    assert cursor.peek_next_waypoint() is None
    assert cursor.get_next_wakeup() == -1


def test_arrival_merge_appends_and_keeps_position(make_movement) -> None:
    first = make_movement([10, 20, 30])
    cursor = WaypointCursor([first])
    cursor.get_next_waypoint()

    late = make_movement([5, 6])
    cursor.add_movements([late])

    assert cursor.movements == [first, late]
    assert cursor.position == (0, 1)
    assert cursor.peek_next_waypoint().time == 20


def test_time_merge_inserts_into_unread_tail(make_movement) -> None:
    a, b, c = make_movement([100, 110]), make_movement([200]), make_movement([300])
    cursor = WaypointCursor([a, c], merge_order="time")
    cursor.add_movements([b])
    assert cursor.movements == [a, b, c]

    cursor.get_next_waypoint()
    early = make_movement([50])
    cursor.add_movements([early])

    # `a` is in progress, so the early trip goes right after it.
    assert cursor.movements == [a, early, b, c]
    assert cursor.position == (0, 1)


def test_invalid_merge_order() -> None:
    with pytest.raises(ValueError):
        WaypointCursor(merge_order="random")


@pytest.mark.parametrize("merge_order", ["arrival", "time"])
def test_consuming_the_last_waypoint_latches_without_a_check(make_movement, merge_order) -> None:
    cursor = WaypointCursor([make_movement([1000])], merge_order=merge_order)
    cursor.get_next_waypoint()

    cursor.add_movements([make_movement([5000, 5100])])

    assert cursor.has_finished_history()
    assert cursor.peek_next_waypoint() is None
    assert cursor.get_next_wakeup() == -1
    assert len(cursor) == 2


def test_empty_cursor_does_not_revive(make_movement) -> None:
    cursor = WaypointCursor()
    cursor.add_movements([make_movement([10, 20])])
    assert cursor.has_finished_history()
    assert cursor.get_next_waypoint() is None
