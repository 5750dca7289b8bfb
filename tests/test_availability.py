from datetime import date, datetime

import pytest

from dutycompass import availability
from dutycompass.availability import (
    PRECEDENCE, AvailabilityResolver, get_effective_availability, is_status_present,
)
from dutycompass.models import (
    Absence, DailyPresenceSnapshot, EffectiveAvailability, HourlyBlockage, Person, TeamRotation,
)

P = Person("p1", team_id="t1")
ROT = [TeamRotation.from_days("t1", date(2024, 1, 1), days_on_base=4, days_at_home=3)]


@pytest.mark.parametrize("day", [date(2024, 1, 1), date(1999, 12, 31), date(2030, 7, 4)])
def test_default_is_base_everywhere(day):
    avail = AvailabilityResolver().get_effective_availability(Person("nobody"), day)
    assert avail == EffectiveAvailability("base", "00:00", "23:59", None, True, "rotation")


def test_precedence_order_is_explicit():
    assert [name for name, _ in PRECEDENCE] == ["absences", "blockages", "snapshots"]


def test_accepts_strings_and_datetimes():
    res = AvailabilityResolver(ROT)
    assert res.get_effective_availability(P, "2024-01-05").status == "home"
    assert res.get_effective_availability(P, datetime(2024, 1, 5, 13, 0)).status == "home"


def test_malformed_query_date_fails_closed():
    avail = AvailabilityResolver(ROT).get_effective_availability(P, "yesterday-ish")
    assert avail.status == "base"
    assert avail.is_available


def test_inactive_person_ignores_everything():
    person = Person("p1", team_id="t1", is_active=False)
    absences = [Absence("p1", date(2024, 1, 2), date(2024, 1, 2), status="approved")]
    snapshots = [DailyPresenceSnapshot("p1", date(2024, 1, 2), "home")]
    avail = AvailabilityResolver(ROT, absences, [], snapshots).get_effective_availability(person, date(2024, 1, 2))
    assert avail.status == "base"
    assert avail.is_available


def test_deterministic_and_memoized():
    absences = [Absence("p1", date(2024, 1, 2), date(2024, 1, 3), reason="gimel", status="approved")]
    res = AvailabilityResolver(ROT, absences, [])
    first = [res.get_effective_availability(P, d) for d, _ in res.resolve_range(P, "2024-01-01", "2024-01-14")]
    again = [a for _, a in AvailabilityResolver(ROT, absences, []).resolve_range(P, date(2024, 1, 1), date(2024, 1, 14))]
    assert first == again
    # second lookup is served from the memo
    assert res.get_effective_availability(P, date(2024, 1, 2)) is res.get_effective_availability(P, date(2024, 1, 2))


def test_resolve_range_covers_each_day_once():
    days = [d for d, _ in AvailabilityResolver(ROT).resolve_range(P, date(2024, 1, 30), date(2024, 2, 2))]
    assert days == [date(2024, 1, 30), date(2024, 1, 31), date(2024, 2, 1), date(2024, 2, 2)]


def test_functional_entry_point_reuses_resolver():
    absences = [Absence("p1", date(2024, 3, 10), date(2024, 3, 12), reason="gimel", status="approved")]
    rotations, blockages = [], []
    avail = get_effective_availability(Person("p1"), date(2024, 3, 11), rotations, absences, blockages)
    assert (avail.status, avail.home_status_type) == ("home", "gimel")
    resolver = availability._last[1]
    get_effective_availability(Person("p1"), date(2024, 3, 12), rotations, absences, blockages)
    assert availability._last[1] is resolver
    # a new collection object means a new resolver
    get_effective_availability(Person("p1"), date(2024, 3, 12), rotations, list(absences), blockages)
    assert availability._last[1] is not resolver


@pytest.mark.parametrize("avail,time_str,expected", [
    (EffectiveAvailability("base"), "03:00", True),
    (EffectiveAvailability("home", is_available=False), "12:00", False),
    (EffectiveAvailability("arrival", start_hour="14:00"), "13:59", False),
    (EffectiveAvailability("arrival", start_hour="14:00"), "14:00", True),
    (EffectiveAvailability("departure", end_hour="16:00"), "15:59", True),
    (EffectiveAvailability("departure", end_hour="16:00"), "16:00", False),
    (EffectiveAvailability("base", start_hour="09:00", end_hour="17:00"), "08:30", False),
    (EffectiveAvailability("base", start_hour="09:00", end_hour="17:00"), "12:00", True),
    (EffectiveAvailability("base", start_hour="09:00", end_hour="17:00"), "17:00", False),
    (EffectiveAvailability("קורס", is_available=False), "12:00", False),
])
def test_is_status_present(avail, time_str, expected):
    assert is_status_present(avail, time_str) is expected


def test_is_status_present_rejects_bad_time():
    with pytest.raises(ValueError):
        is_status_present(EffectiveAvailability("base"), "noon")


def test_person_present_at_hour_with_blockage():
    blockages = [HourlyBlockage("p1", date(2024, 1, 2), "00:00", "10:00")]
    res = AvailabilityResolver(ROT, [], blockages)
    assert not res.is_person_present_at(P, date(2024, 1, 2), "09:00")
    assert res.is_person_present_at(P, date(2024, 1, 2), "10:15")
    assert not res.is_person_present_at(P, date(2024, 1, 5), "10:15")


def test_reset_cache_drops_functional_resolver():
    rotations, absences, blockages = [], [], []
    get_effective_availability(P, date(2024, 1, 1), rotations, absences, blockages)
    resolver = availability._last[1]
    availability.reset_cache()
    assert availability._last is None
    get_effective_availability(P, date(2024, 1, 1), rotations, absences, blockages)
    assert availability._last[1] is not resolver
