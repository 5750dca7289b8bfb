# src/dutycompass/availability.py
"""
Resolve one EffectiveAvailability per (person, day).

Precedence, highest first: snapshot > blockage > absence > rotation > default.
The overlays are applied bottom-up in the order of `PRECEDENCE`; an overlay
that short-circuits (the snapshot) is consulted first so lower layers are not
evaluated at all when it has a record for the day.
"""
import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .calendar_logic import RotationScheduleResolver, default_availability, iter_days
from .config import DEFAULT_POLICY, AvailabilityPolicy
from .errors import MalformedDate
from .models import (
    ARRIVAL, AWAY_STATUSES, DEPARTURE, Absence, DailyPresenceSnapshot,
    EffectiveAvailability, HourlyBlockage, Person, TeamRotation, normalize_time, to_date,
)
from .overlays import (
    AbsenceOverlay, HourlyBlockageOverlay, Overlay, PresenceSnapshotOverlay,
)

# lowest to highest; each entry is built from the collection of the same name
PRECEDENCE = (
    ('absences', AbsenceOverlay),
    ('blockages', HourlyBlockageOverlay),
    ('snapshots', PresenceSnapshotOverlay),
)


class AvailabilityResolver:
    """
    Holds the indexed input collections for one resolution batch.

    Building the resolver is the indexing pre-pass; every lookup after that is
    a dictionary hit plus a short scan of one person's absences. Results are
    memoized per (person, day) for the lifetime of the instance, so build a new
    resolver whenever any of the input collections changes.

    Pass snapshots=None to leave the snapshot layer out entirely.
    """

    def __init__(self, rotations: Iterable[TeamRotation] = (), absences: Iterable[Absence] = (),
                 blockages: Iterable[HourlyBlockage] = (),
                 snapshots: Optional[Iterable[DailyPresenceSnapshot]] = None,
                 policy: Optional[AvailabilityPolicy] = None):
        self.policy = policy or DEFAULT_POLICY
        self.rotations = RotationScheduleResolver(rotations, self.policy)
        sources = {'absences': absences, 'blockages': blockages, 'snapshots': snapshots}
        self.overlays: List[Overlay] = [
            overlay_cls(sources[name], self.policy)
            for name, overlay_cls in PRECEDENCE
            if sources[name] is not None
        ]
        self._short_circuit = [o for o in reversed(self.overlays) if o.short_circuits]
        self._cache: Dict[Tuple[Person, date], EffectiveAvailability] = {}

    def get_effective_availability(self, person: Person, day) -> EffectiveAvailability:
        try:
            day = to_date(day)
        except MalformedDate as e:
            logging.debug(f"{e}; falling back to the default status")
            return default_availability(self.policy)

        key = (person, day)
        cached = self._cache.get(key)
        if cached is None:
            cached = self._resolve(person, day)
            self._cache[key] = cached
        return cached

    def _resolve(self, person: Person, day: date) -> EffectiveAvailability:
        if not person.is_active:
            return default_availability(self.policy)

        for overlay in self._short_circuit:
            hit = overlay.lookup(person, day)
            if hit is not None:
                return hit

        candidate = self.rotations.resolve(person, day)
        for overlay in self.overlays:
            candidate = overlay.apply(person, day, candidate)
        return candidate

    def resolve_range(self, person: Person, start, end) -> List[Tuple[date, EffectiveAvailability]]:
        start, end = to_date(start), to_date(end)
        return [(d, self.get_effective_availability(person, d)) for d in iter_days(start, end)]

    def is_person_present_at(self, person: Person, day, time_str: str) -> bool:
        avail = self.get_effective_availability(person, day)
        return is_status_present(avail, time_str, self.policy)

    def clear_cache(self):
        self._cache.clear()


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(':')
    return int(hours) * 60 + int(minutes)


def is_status_present(avail: EffectiveAvailability, time_str: str,
                      policy: AvailabilityPolicy = DEFAULT_POLICY) -> bool:
    """
    Is the person physically at base at `time_str` ("HH:MM") on that day?

    Away statuses never count. Arrival days count from start_hour, departure
    days until (excluding) end_hour, and a base day with a bounded window only
    inside that window.
    """
    if not avail.is_available or avail.status in AWAY_STATUSES:
        return False
    target = normalize_time(time_str, None)
    if target is None:
        raise ValueError(f"expected HH:MM, got {time_str!r}")
    now = _minutes(target)
    start = _minutes(avail.start_hour)
    end = _minutes(avail.end_hour)

    if avail.status == ARRIVAL:
        return now >= start
    if avail.status == DEPARTURE:
        return now < end
    if avail.start_hour != policy.day_start and now < start:
        return False
    if avail.end_hour != policy.day_end and now >= end:
        return False
    return True


# last resolver built by get_effective_availability(), with the collections it was built from
_last: Optional[Tuple[tuple, AvailabilityResolver]] = None


def get_effective_availability(person: Person, day, rotations: Sequence[TeamRotation],
                               absences: Sequence[Absence], blockages: Sequence[HourlyBlockage],
                               snapshots: Optional[Sequence[DailyPresenceSnapshot]] = None,
                               policy: Optional[AvailabilityPolicy] = None) -> EffectiveAvailability:
    """
    Functional entry point. Re-uses the previous resolver (and its memo) as long
    as the very same collection objects are passed again; in-place mutation of
    a collection is not detected. The memo lives until other collections are
    passed or reset_cache() is called.
    """
    global _last
    inputs = (rotations, absences, blockages, snapshots, policy)
    if _last is None or any(a is not b for a, b in zip(_last[0], inputs)):
        _last = (inputs, AvailabilityResolver(rotations, absences, blockages, snapshots, policy))
    return _last[1].get_effective_availability(person, day)


def reset_cache():
    """Drop the resolver kept by get_effective_availability()."""
    global _last
    _last = None
