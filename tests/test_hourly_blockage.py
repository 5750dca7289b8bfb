from datetime import date

import pytest

from dutycompass.availability import AvailabilityResolver
from dutycompass.models import HourlyBlockage, Person, TeamRotation

DAY = date(2024, 4, 5)
P = Person("p1", team_id="t1")
ALWAYS_BASE = [TeamRotation("t1", date(2024, 1, 1), ["base"])]


def resolve(*blockages, rotations=ALWAYS_BASE):
    return AvailabilityResolver(rotations, [], list(blockages)).get_effective_availability(P, DAY)


def test_arrival_from_midnight_block():
    avail = resolve(HourlyBlockage("p1", DAY, "00:00", "14:00"))
    assert avail.status == "arrival"
    assert avail.start_hour == "14:00"
    assert avail.end_hour == "23:59"
    assert avail.is_available
    assert avail.source == "blockage"


def test_departure_until_end_of_day():
    avail = resolve(HourlyBlockage("p1", DAY, "16:30", "23:59"))
    assert avail.status == "departure"
    assert avail.end_hour == "16:30"
    assert avail.start_hour == "00:00"


def test_bounded_window_keeps_base():
    avail = resolve(HourlyBlockage("p1", DAY, "09:00", "17:00"))
    assert avail.status == "base"
    assert (avail.start_hour, avail.end_hour) == ("09:00", "17:00")


def test_full_day_block_is_unavailable():
    avail = resolve(HourlyBlockage("p1", DAY, "00:00", "23:59"))
    assert avail.status == "unavailable"
    assert not avail.is_available


def test_arrival_and_departure_fold_into_window():
    avail = resolve(
        HourlyBlockage("p1", DAY, "18:00", "23:59"),
        HourlyBlockage("p1", DAY, "00:00", "08:00"),
    )
    assert avail.status == "base"
    assert (avail.start_hour, avail.end_hour) == ("08:00", "18:00")


def test_crossing_blocks_leave_nothing():
    avail = resolve(
        HourlyBlockage("p1", DAY, "00:00", "15:00"),
        HourlyBlockage("p1", DAY, "12:00", "23:59"),
    )
    assert avail.status == "unavailable"


def test_block_on_other_date_is_ignored():
    avail = resolve(HourlyBlockage("p1", date(2024, 4, 6), "00:00", "14:00"))
    assert avail.status == "base"
    assert avail.source == "rotation"


def test_block_does_not_touch_home_day():
    home_rotation = [TeamRotation("t1", date(2024, 1, 1), ["home"])]
    avail = resolve(HourlyBlockage("p1", DAY, "00:00", "14:00"), rotations=home_rotation)
    assert avail.status == "home"
    assert avail.source == "rotation"


@pytest.mark.parametrize("start,end", [("09:00:00", "14:00"), ("9", "14")])
def test_times_are_normalized(start, end):
    avail = resolve(HourlyBlockage("p1", DAY, start, end))
    assert (avail.start_hour, avail.end_hour) == ("09:00", "14:00")


def test_garbage_times_are_skipped():
    avail = resolve(HourlyBlockage("p1", DAY, "soon", "later"))
    assert avail.status == "base"
