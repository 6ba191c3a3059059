import numpy as np

from entity import NO_WAKEUP, Entity, EntityState


def test_two_waypoint_trip(make_movement, marker_factory, renderer, timers) -> None:
    trip = make_movement([1000, 1100])
    entity = Entity(7, [trip], marker_factory)
    assert entity.get_name() == "bike_7"
    assert entity.next_wakeup_time == 1000
    assert entity.state is EntityState.UNSEEN
    assert entity.is_due(1000)
    assert not entity.is_due(999)

    # First sample: the marker appears, nothing is animated.
    entity.wakeup(1000)
    assert entity.marker is not None
    assert entity.state is EntityState.IDLE
    assert entity.next_wakeup_time == 1000
    assert renderer.markers[7].visible
    assert renderer.markers[7].coords == trip.waypoints[0].position.coords()

    # Second sample: animated move lasting the gap between the samples.
    entity.wakeup(1000)
    assert entity.next_wakeup_time == 1100
    assert entity.state is EntityState.MOVING
    assert not entity.is_due(2000)
    timers.advance(10_000)
    assert entity.state is EntityState.IDLE
    assert np.array_equal(entity.marker.coords, trip.waypoints[1].position.projected)

    # History exhausted: hidden and never due again.
    entity.wakeup(1100)
    assert entity.next_wakeup_time == NO_WAKEUP
    assert entity.state is EntityState.FINISHED
    assert not renderer.markers[7].visible
    assert not entity.is_due(10**12)


def test_animation_duration_matches_sample_gap(make_movement, marker_factory, timers, settings) -> None:
    entity = Entity(1, [make_movement([1000, 1100])], marker_factory)
    entity.wakeup(1000)
    entity.wakeup(1000)

    # 100 s * 100 ms / 15 s of wall-clock.
    wall_ms = 100 * settings.speed / settings.step_size
    timers.advance(wall_ms - 20)
    assert entity.is_moving()
    timers.advance(21)
    assert not entity.is_moving()


def test_catch_up_collapses_to_one_instant_move(make_movement, marker_factory, renderer, timers) -> None:
    trip = make_movement([1000, 1100, 1200, 1300, 1400])
    entity = Entity(2, [trip], marker_factory)
    entity.wakeup(1000)
    drawn = renderer.markers[2]
    assert drawn.moves == 0

    entity.wakeup(1350)

    assert drawn.moves == 1
    assert not entity.is_moving()
    assert timers.pending() == 0
    assert entity.next_wakeup_time == 1300
    assert drawn.coords == trip.waypoints[3].position.coords()
    assert entity.moves.peek_next_waypoint().time == 1400


def test_new_trip_relocates_while_hidden(make_movement, marker_factory, renderer, timers) -> None:
    first, second = make_movement([1000, 1100]), make_movement([2000, 2100], lng0=11.7)
    entity = Entity(3, [first, second], marker_factory)
    entity.wakeup(1000)
    entity.wakeup(1000)
    timers.advance(10_000)
    assert entity.next_wakeup_time == 1100

    entity.wakeup(1100)
    assert entity.next_wakeup_time == 2000
    assert not renderer.markers[3].visible
    assert not entity.is_moving()
    assert renderer.markers[3].coords == second.waypoints[0].position.coords()

    entity.wakeup(2000)
    assert renderer.markers[3].visible
    assert entity.is_moving()
    assert entity.next_wakeup_time == 2100


def test_late_movements_merge_without_reset(make_movement, marker_factory) -> None:
    first = make_movement([1000, 1100, 1200])
    entity = Entity(4, [first], marker_factory)
    entity.wakeup(1000)

    late = make_movement([5000, 5100])
    assert entity.add_movements([late]) == 1

    assert entity.moves.movements == [first, late]
    assert entity.moves.position == (0, 1)
    assert entity.next_wakeup_time == 1000


def test_prune_drops_old_samples(make_movement, marker_factory) -> None:
    entity = Entity(5, [make_movement([1000, 1100, 1200, 1300, 1400])], marker_factory)

    assert entity.prune(1250) == 3
    assert entity.moves.peek_next_waypoint().time == 1300
    assert entity.prune(1250) == 0


def test_trip_summary(make_movement, marker_factory) -> None:
    entity = Entity(6, [make_movement([0, 300]), make_movement([1000, 1060])], marker_factory)
    assert entity.trip_summary() == ["Trip 1 : 300", "Trip 2 : 60"]


def test_entity_without_movements_is_finished(marker_factory) -> None:
    entity = Entity(8, [], marker_factory)
    assert entity.next_wakeup_time == NO_WAKEUP
    assert entity.state is EntityState.FINISHED
    assert not entity.is_due(10**9)


def test_single_sample_history_stays_finished_after_merge(make_movement, marker_factory, renderer) -> None:
    entity = Entity(1, [make_movement([1000])], marker_factory)
    entity.wakeup(1000)

    entity.add_movements([make_movement([5000, 5100])])
    entity.wakeup(5000)

    assert entity.next_wakeup_time == NO_WAKEUP
    assert entity.state is EntityState.FINISHED
    assert not renderer.markers[1].visible
