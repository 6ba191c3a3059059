from types import SimpleNamespace

import numpy as np
import pytest

from config import ReplaySettings
from geometry_utils.geopoint import GeoPoint
from marker import Marker

START = GeoPoint(11.50, 48.10)
END = GeoPoint(11.60, 48.20)


def test_new_marker_starts_hidden(make_marker, renderer) -> None:
    marker = make_marker(START)
    drawn = renderer.markers[1]

    assert marker.is_hidden is True
    assert drawn.visible is False
    assert drawn.coords == START.coords()

    marker.show()
    marker.show()
    assert drawn.visible is True
    assert marker.is_hidden is False


def test_move_interpolates_over_ticks(make_marker, renderer, timers, settings) -> None:
    marker = make_marker(START)
    drawn = renderer.markers[1]

    # 15 s at speed 100 and step 15 is 100 ms of wall-clock, split in 50 ticks.
    assert settings.ticks == 50
    assert marker.move(END, 15) is True
    assert marker.is_moving
    assert drawn.moves == 0

    timers.advance(2)
    expected = START.projected + (END.projected - START.projected) / 50
    assert marker.tick_count == 1
    assert np.allclose(marker.coords, expected)

    timers.advance(98)
    assert not marker.is_moving
    assert marker.tick_count == 50
    assert drawn.moves == 50
    assert np.array_equal(marker.coords, END.projected)
    assert drawn.coords == END.coords()
    assert marker.position == END
    assert timers.pending() == 0


def test_move_is_rejected_while_moving(make_marker, timers) -> None:
    marker = make_marker(START)
    other = GeoPoint(12.0, 49.0)

    assert marker.move(END, 15) is True
    assert marker.move(other, 15) is False

    timers.advance(1000)
    assert marker.position == END
    assert np.array_equal(marker.coords, END.projected)


@pytest.mark.parametrize("duration", [0, -5])
def test_non_positive_duration_places_immediately(make_marker, renderer, timers, duration) -> None:
    marker = make_marker(START)

    assert marker.move(END, duration) is True

    assert not marker.is_moving
    assert renderer.markers[1].moves == 1
    assert np.array_equal(marker.coords, END.projected)
    assert timers.pending() == 0


def test_speed_of_one_places_immediately(renderer, timers) -> None:
    settings = ReplaySettings(speed=1, step_size=15)
    marker = Marker(SimpleNamespace(id=3), START, renderer, timers, settings)

    marker.move(END, 600)

    assert not marker.is_moving
    assert renderer.markers[3].coords == END.coords()


def test_trace_follows_the_marker(make_marker, renderer, timers) -> None:
    third = GeoPoint(11.70, 48.25)
    marker = make_marker(START)
    trace = renderer.traces[0]
    assert trace.points == [START.coords()]

    marker.move(END, 15)
    assert trace.points == [START.coords(), START.coords()]
    timers.advance(50)
    assert len(trace.points) == 2
    assert trace.points[-1] == marker._as_tuple(marker.coords)

    timers.advance(50)
    assert trace.points == [START.coords(), END.coords()]

    marker.move(third, 0)
    assert trace.points == [START.coords(), END.coords(), third.coords()]


def test_drawing_flags(renderer, timers) -> None:
    settings = ReplaySettings(draw_markers=False, draw_lines=False)
    marker = Marker(SimpleNamespace(id=9), START, renderer, timers, settings)

    marker.move(END, 0)
    marker.show()

    assert renderer.markers == {}
    assert renderer.traces == []
    assert np.array_equal(marker.coords, END.projected)


def test_cancel_stops_the_animation(make_marker, timers) -> None:
    marker = make_marker(START)
    marker.move(END, 15)
    timers.advance(10)

    marker.cancel()
    reached = marker.coords.copy()
    timers.advance(1000)

    assert not marker.is_moving
    assert timers.pending() == 0
    assert np.array_equal(marker.coords, reached)
