from entityManager import EntityManager


def test_upsert_creates_then_merges(make_movement, marker_factory) -> None:
    manager = EntityManager(marker_factory)
    first = make_movement([1000, 1100])
    entity = manager.upsert(5, [first])
    entity.wakeup(1000)

    second = make_movement([3000, 3100])
    assert manager.upsert(5, [second]) is entity

    assert len(manager) == 1
    assert 5 in manager
    assert entity.moves.movements == [first, second]
    assert entity.moves.position == (0, 1)
    assert entity.marker is not None


def test_wakeup_due_only_wakes_due_entities(make_movement, marker_factory) -> None:
    manager = EntityManager(marker_factory)
    manager.upsert_many([
        (1, [make_movement([1000, 1100])]),
        (2, [make_movement([5000, 5100])]),
    ])

    assert manager.wakeup_due(1000) == 1
    assert manager.get(1).marker is not None
    assert manager.get(2).marker is None
    assert [entity.id for entity in manager] == [1, 2]
    assert len(list(manager.markers())) == 1


def test_prune_and_close(make_movement, marker_factory, timers) -> None:
    manager = EntityManager(marker_factory)
    manager.upsert(1, [make_movement([1000, 1100, 1200])])
    manager.upsert(2, [make_movement([1000, 1500])])
    manager.wakeup_due(1000)
    manager.wakeup_due(1000)
    assert timers.pending() == 2

    manager.close()

    assert timers.pending() == 0
    assert not any(marker.is_moving for marker in manager.markers())
    assert manager.prune(1300) == 1
    assert manager.get(1).moves.peek_next_waypoint() is None


def test_time_merge_order_is_forwarded(make_movement, marker_factory) -> None:
    manager = EntityManager(marker_factory, merge_order="time")
    late, early = make_movement([5000]), make_movement([2000])
    manager.upsert(1, [late])
    manager.upsert(1, [early])
    assert manager.get(1).moves.movements == [early, late]
    assert manager.get(1).moves.merge_order == "time"
    assert manager.get(1).next_wakeup_time == 2000
