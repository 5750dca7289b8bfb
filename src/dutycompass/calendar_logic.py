# src/dutycompass/calendar_logic.py
import logging
from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, Iterator, Optional

from dateutil.rrule import DAILY, rrule

from .config import DEFAULT_POLICY, AvailabilityPolicy
from .models import (
    ARRIVAL, AWAY_STATUSES, BASE, DEPARTURE, SOURCE_ROTATION,
    EffectiveAvailability, Person, TeamRotation, cycle_pattern, normalize_time, to_date,
)


def days_between(start: date, end: date) -> int:
    return (end - start).days


def iter_days(start: date, end: date) -> Iterator[date]:
    """Alle Tage von start bis end (inklusive). Leer, wenn end < start."""
    if end < start:
        return iter(())
    return (dt.date() for dt in rrule(DAILY, dtstart=start, until=end))


def rotation_status_for(rotation: TeamRotation, day: date) -> Optional[str]:
    """
    Status of the rotation pattern on `day`, or None when the rotation does not
    cover it (empty pattern or past its end date). Days before cycle_start wrap
    around backwards through the cycle.
    """
    if not rotation.pattern_length:
        return None
    if rotation.end_date is not None and day > rotation.end_date:
        return None
    offset = days_between(rotation.cycle_start, day) % rotation.pattern_length
    return rotation.pattern[offset]


def default_availability(policy: AvailabilityPolicy = DEFAULT_POLICY) -> EffectiveAvailability:
    return EffectiveAvailability(
        status=BASE,
        start_hour=policy.day_start,
        end_hour=policy.day_end,
        is_available=True,
        source=SOURCE_ROTATION,
    )


class RotationScheduleResolver:
    """Baseline status from the team (or personal) rotation."""

    def __init__(self, rotations: Iterable[TeamRotation] = (), policy: AvailabilityPolicy = DEFAULT_POLICY):
        self.policy = policy
        self._by_team: Dict[str, TeamRotation] = {}
        for rot in rotations:
            try:
                rot = replace(
                    rot,
                    cycle_start=to_date(rot.cycle_start),
                    end_date=to_date(rot.end_date) if rot.end_date else None,
                )
            except ValueError as e:
                logging.debug(f"Skipping rotation of team {rot.team_id!r}: {e}")
                continue
            # first rotation per team wins
            self._by_team.setdefault(rot.team_id, rot)

    def rotation_for(self, person: Person) -> Optional[TeamRotation]:
        if person.team_id is None:
            return None
        return self._by_team.get(person.team_id)

    def resolve(self, person: Person, day: date) -> EffectiveAvailability:
        if not person.is_active:
            return default_availability(self.policy)

        rotation = self.rotation_for(person)
        if rotation is not None:
            status = rotation_status_for(rotation, day)
            if status is not None:
                return self._from_status(status, rotation.arrival_time, rotation.departure_time)

        personal = person.personal_rotation
        if personal is not None and personal.is_active:
            try:
                start = to_date(personal.start_date)
            except ValueError:
                return default_availability(self.policy)
            pattern = cycle_pattern(personal.days_on, personal.days_off)
            status = pattern[days_between(start, day) % len(pattern)]
            return self._from_status(status)

        return default_availability(self.policy)

    def _from_status(self, status: str, arrival_time: Optional[str] = None,
                     departure_time: Optional[str] = None) -> EffectiveAvailability:
        p = self.policy
        if status == 'full':
            status = BASE
        if status in AWAY_STATUSES:
            return EffectiveAvailability(
                status=status,
                start_hour=p.day_start,
                end_hour=p.day_end,
                is_available=False,
                source=SOURCE_ROTATION,
            )
        start_hour = normalize_time(arrival_time, p.day_start) if status == ARRIVAL else p.day_start
        end_hour = normalize_time(departure_time, p.day_end) if status == DEPARTURE else p.day_end
        return EffectiveAvailability(
            status=status,
            start_hour=start_hour,
            end_hour=end_hour,
            is_available=True,
            source=SOURCE_ROTATION,
        )
