# src/dutycompass/timeline.py
"""
Compress day-by-day availability into home/base periods for the leave forecast.
"""
import logging
from datetime import date, timedelta
from typing import Dict, List, NamedTuple, Optional, Sequence

from .availability import AvailabilityResolver
from .calendar_logic import default_availability, iter_days
from .config import AvailabilityPolicy
from .models import (
    ARRIVAL, DEPARTURE, HOME, LEAVE, PERIOD_BASE, PERIOD_HOME, Absence,
    DailyPresenceSnapshot, EffectiveAvailability, HourlyBlockage, Period, Person,
    TeamRotation, to_date,
)

ONE_DAY = timedelta(days=1)


class DayTransition(NamedTuple):
    day: date
    availability: EffectiveAvailability
    is_arrival: bool
    is_departure: bool


def is_arrival_boundary(prev: Optional[EffectiveAvailability], current: EffectiveAvailability,
                        policy: AvailabilityPolicy) -> bool:
    """
    `current` is an arrival day if the day before was spent away (and was not
    itself a partial return with its own end hour) or it starts late.
    """
    if current.is_away:
        return False
    prev_away = (prev is not None and prev.is_away
                 and prev.end_hour == policy.day_end)
    return prev_away or current.start_hour != policy.day_start


def is_departure_boundary(current: EffectiveAvailability, nxt: Optional[EffectiveAvailability],
                          policy: AvailabilityPolicy) -> bool:
    """
    `current` is a departure day if the next day is spent away (and is not a
    partial departure with its own start hour) or it ends early.
    """
    if current.is_away:
        return False
    next_away = (nxt is not None and nxt.is_away
                 and nxt.start_hour == policy.day_start)
    return next_away or current.end_hour != policy.day_end


def period_bucket(avail: EffectiveAvailability) -> str:
    if avail.status == DEPARTURE:
        return PERIOD_HOME
    if avail.status == ARRIVAL:
        return PERIOD_BASE
    if not avail.is_available or avail.status in (HOME, LEAVE):
        return PERIOD_HOME
    return PERIOD_BASE


class TimelineCompressor:

    def __init__(self, resolver: AvailabilityResolver, policy: Optional[AvailabilityPolicy] = None):
        self.resolver = resolver
        self.policy = policy or resolver.policy

    def _availability(self, person: Person, day: date) -> EffectiveAvailability:
        try:
            return self.resolver.get_effective_availability(person, day)
        except Exception as e:
            logging.warning(f"Availability for {person.id} on {day.isoformat()} failed, using default: {e}")
            return default_availability(self.policy)

    def _resolve_window(self, person: Person, start: date, end: date) -> Dict[date, EffectiveAvailability]:
        # one extra day on each side so the edges can see their neighbours
        return {d: self._availability(person, d) for d in iter_days(start - ONE_DAY, end + ONE_DAY)}

    def day_transitions(self, person: Person, start, end) -> List[DayTransition]:
        start, end = to_date(start), to_date(end)
        if end < start:
            return []
        avail = self._resolve_window(person, start, end)
        out = []
        for d in iter_days(start, end):
            out.append(DayTransition(
                day=d,
                availability=avail[d],
                is_arrival=is_arrival_boundary(avail[d - ONE_DAY], avail[d], self.policy),
                is_departure=is_departure_boundary(avail[d], avail[d + ONE_DAY], self.policy),
            ))
        return out

    def compress(self, person: Person, start, end, today=None) -> List[Period]:
        """
        Periods covering start..end (inclusive) in order, with no gaps. `today`
        is the reference for days_until and defaults to `start`.
        """
        start, end = to_date(start), to_date(end)
        if end < start:
            return []
        today = to_date(today) if today is not None else start
        avail = {d: self._availability(person, d) for d in iter_days(start, end)}

        runs = []
        current = None
        for d in iter_days(start, end):
            kind = period_bucket(avail[d])
            if current is not None and current['type'] == kind:
                current['end'] = d
                if not current['home_status_type'] and avail[d].home_status_type:
                    current['home_status_type'] = avail[d].home_status_type
            else:
                if current is not None:
                    runs.append(current)
                current = {'type': kind, 'start': d, 'end': d,
                           'home_status_type': avail[d].home_status_type}
        runs.append(current)

        return [self._to_period(run, avail, today) for run in runs]

    def _to_period(self, run: dict, avail: Dict[date, EffectiveAvailability], today: date) -> Period:
        p = self.policy
        start, end = run['start'], run['end']
        first = avail[start]
        common = dict(
            type=run['type'],
            start_date=start,
            end_date=end,
            duration_days=(end - start).days + 1,
            days_until=(start - today).days,
            home_status_type=run['home_status_type'],
        )

        if run['type'] == PERIOD_HOME:
            hour = first.end_hour
            if not hour or hour == p.day_end:
                hour = p.default_departure_time
            return Period(departure_time=hour, departure_date=start, **common)

        hour = first.start_hour
        if not hour or hour == p.day_start:
            hour = p.default_return_time
        return Period(return_time=hour, return_date=start, **common)


def compress_timeline(person: Person, start, end, rotations: Sequence[TeamRotation],
                      absences: Sequence[Absence], blockages: Sequence[HourlyBlockage],
                      snapshots: Optional[Sequence[DailyPresenceSnapshot]] = None,
                      today=None, policy: Optional[AvailabilityPolicy] = None) -> List[Period]:
    resolver = AvailabilityResolver(rotations, absences, blockages, snapshots, policy)
    return TimelineCompressor(resolver).compress(person, start, end, today=today)
