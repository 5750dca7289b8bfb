from datetime import date, datetime

import pytest

from dutycompass.availability import AvailabilityResolver
from dutycompass.data import Database
from dutycompass.models import (
    Absence, DailyPresenceSnapshot, HourlyBlockage, Person, PersonalRotation, TeamRotation,
)


@pytest.fixture
def temp_db(tmp_path):
    db = Database(db_path=str(tmp_path / "test.db"))
    try:
        yield db
    finally:
        # Verbindung schließen, tmp_path räumt pytest selbst auf
        db.close()


def test_people_round_trip(temp_db):
    db = temp_db
    db.save_person(Person("p1", team_id="t1"))
    db.save_person(Person("p2", is_active=False,
                          personal_rotation=PersonalRotation(11, 3, date(2024, 1, 1))))
    people = db.load_people()
    assert [p.id for p in people] == ["p1", "p2"]
    assert people[0].team_id == "t1" and people[0].personal_rotation is None
    assert not people[1].is_active
    assert people[1].personal_rotation.days_on == 11
    assert people[1].personal_rotation.start_date == "2024-01-01"
    assert db.get_person("p3") is None


def test_rotation_round_trip(temp_db):
    db = temp_db
    db.save_rotation(TeamRotation.from_days("t1", date(2024, 1, 1), 4, 3, departure_time="16:00"))
    rot, = db.load_rotations()
    assert rot.pattern == ("arrival", "base", "base", "departure", "home", "home", "home")
    assert rot.cycle_start == "2024-01-01"
    assert rot.end_date is None
    assert rot.departure_time == "16:00"


def test_absences_save_load_delete(temp_db):
    db = temp_db
    first = db.save_absence(Absence("p1", date(2024, 5, 1), date(2024, 5, 2), "gimel", "approved",
                                    created_at=datetime(2024, 4, 1, 8, 30)))
    db.save_absence(Absence("p2", date(2024, 5, 3), date(2024, 5, 3)))
    assert len(db.load_absences()) == 2
    mine, = db.load_absences("p1")
    assert mine.id == str(first)
    assert mine.created_at == "2024-04-01T08:30:00"
    db.delete_absence(mine.id)
    assert [a.person_id for a in db.load_absences()] == ["p2"]


def test_snapshot_replaces_same_day(temp_db):
    db = temp_db
    db.save_snapshot(DailyPresenceSnapshot("p1", date(2024, 5, 1), "base"))
    db.save_snapshot(DailyPresenceSnapshot("p1", date(2024, 5, 1), {"v2_state": "home", "home_status_type": "gimel"}))
    snap, = db.load_snapshots()
    assert snap.status == {"v2_state": "home", "home_status_type": "gimel"}


def test_stored_records_drive_resolver(temp_db):
    db = temp_db
    db.save_rotation(TeamRotation.from_days("t1", date(2024, 1, 1), 4, 3))
    db.save_absence(Absence("p1", date(2024, 1, 2), date(2024, 1, 2), "gimel", "approved"))
    db.save_blockage(HourlyBlockage("p1", date(2024, 1, 3), "00:00", "09:00"))
    db.save_snapshot(DailyPresenceSnapshot("p1", date(2024, 1, 5), "בסיס"))
    res = AvailabilityResolver(**db.load_all())
    person = Person("p1", team_id="t1")
    assert res.get_effective_availability(person, date(2024, 1, 2)).home_status_type == "gimel"
    assert res.get_effective_availability(person, date(2024, 1, 3)).start_hour == "09:00"
    assert res.get_effective_availability(person, date(2024, 1, 5)).status == "base"
    assert res.get_effective_availability(person, date(2024, 1, 6)).status == "home"


def test_personal_rotation_without_counts_still_resolves(temp_db):
    db = temp_db
    db.save_person(Person("p1", personal_rotation=PersonalRotation(None, None, date(2024, 1, 1))))
    person, = db.load_people()
    res = AvailabilityResolver(**db.load_all())
    assert res.get_effective_availability(person, date(2024, 1, 1)).status == "arrival"
    assert res.get_effective_availability(person, date(2024, 1, 2)).status == "home"
