# src/dutycompass/overlays.py
"""
Overlays refine the rotation baseline for one (person, day).

Each overlay indexes its records once when it is constructed and then answers
lookups from those indexes. `apply` either returns the candidate it was given
unchanged or a new EffectiveAvailability tagged with the overlay's source.
"""
import logging
from abc import ABC, abstractmethod
from bisect import bisect_right
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .config import DEFAULT_POLICY, AvailabilityPolicy
from .models import (
    APPROVED, ARRIVAL, BASE, DEPARTURE, HOME, HOME_STATUS_TYPES, LEAVE,
    PRESENT_STATUSES, SICK, SOURCE_ABSENCE, SOURCE_BLOCKAGE, SOURCE_SNAPSHOT,
    UNAVAILABLE, Absence, DailyPresenceSnapshot, EffectiveAvailability,
    HourlyBlockage, Person, normalize_time, to_date, to_datetime,
)

NOT_DEFINED = "not_defined"

_BASE_LABELS = frozenset({BASE, 'full', 'present', 'בסיס', 'בבסיס'})
_HOME_LABELS = frozenset({HOME, 'vacation', 'בית'})
_AWAY_LABELS = frozenset({UNAVAILABLE, SICK, LEAVE})


def normalize_snapshot_status(raw, policy: AvailabilityPolicy = DEFAULT_POLICY,
                              start_time: Optional[str] = None,
                              end_time: Optional[str] = None) -> EffectiveAvailability:
    """
    Turn a recorded presence value into an EffectiveAvailability.

    Accepts a plain label ("base", "home", "בסיס", ...) or a mapping in the
    v2 shape ({v2_state, home_status_type, start_time, end_time}; `status` is
    read when `v2_state` is missing). Explicit start/end arguments are hints
    for the string form and are overridden by times inside a mapping.
    Unknown labels come back as-is with is_available=False.
    """
    home_type = None
    if isinstance(raw, Mapping):
        label = raw.get('v2_state') or raw.get('status')
        home_type = raw.get('home_status_type') or raw.get('homeStatusType')
        start_time = raw.get('start_time') or raw.get('startHour') or start_time
        end_time = raw.get('end_time') or raw.get('endHour') or end_time
    else:
        label = raw

    start_hour = normalize_time(start_time, policy.day_start)
    end_hour = normalize_time(end_time, policy.day_end)
    if end_hour == policy.day_start:
        # midnight as an end means "until the end of the day"
        end_hour = policy.day_end

    text = str(label).strip() if label is not None else ''
    key = text.lower()

    if key in _BASE_LABELS:
        if start_hour != policy.day_start:
            status = ARRIVAL
        elif end_hour != policy.day_end:
            status = DEPARTURE
        else:
            status = BASE
        return EffectiveAvailability(status, start_hour, end_hour, None, True, SOURCE_SNAPSHOT)

    if key in (ARRIVAL, DEPARTURE):
        return EffectiveAvailability(key, start_hour, end_hour, None, True, SOURCE_SNAPSHOT)

    if key in _HOME_LABELS or key in HOME_STATUS_TYPES:
        if not home_type:
            home_type = key if key in HOME_STATUS_TYPES else policy.fallback_home_status_type
        return EffectiveAvailability(HOME, start_hour, end_hour, home_type, False, SOURCE_SNAPSHOT)

    if key in _AWAY_LABELS:
        return EffectiveAvailability(key, start_hour, end_hour, None, False, SOURCE_SNAPSHOT)

    return EffectiveAvailability(text or NOT_DEFINED, policy.day_start, policy.day_end,
                                 None, False, SOURCE_SNAPSHOT)


class Overlay(ABC):
    """One layer of the precedence stack."""

    source: str = ''
    # True when a hit makes every lower layer irrelevant for that day
    short_circuits: bool = False

    def __init__(self, policy: AvailabilityPolicy = DEFAULT_POLICY):
        self.policy = policy

    @abstractmethod
    def apply(self, person: Person, day: date, candidate: EffectiveAvailability) -> EffectiveAvailability:
        raise NotImplementedError

    def lookup(self, person: Person, day: date) -> Optional[EffectiveAvailability]:
        return None


def _naive_utc(stamp: Optional[datetime]) -> datetime:
    if stamp is None:
        return datetime.min
    if stamp.tzinfo is not None:
        return stamp.astimezone(timezone.utc).replace(tzinfo=None)
    return stamp


class AbsenceOverlay(Overlay):
    """Approved leave turns the day into a home day."""

    source = SOURCE_ABSENCE

    def __init__(self, absences: Iterable[Absence] = (), policy: AvailabilityPolicy = DEFAULT_POLICY):
        super().__init__(policy)
        by_person: Dict[str, List[Tuple[date, date, tuple, Absence]]] = defaultdict(list)
        for a in absences:
            if str(a.status or '').strip().lower() != APPROVED:
                continue
            try:
                start = to_date(a.start_date)
                end = to_date(a.end_date)
            except ValueError as e:
                logging.debug(f"Skipping absence {a.id!r}: {e}")
                continue
            try:
                created = _naive_utc(to_datetime(a.created_at))
            except ValueError as e:
                # only ranks overlaps; a bad stamp sorts like a missing one
                logging.debug(f"Absence {a.id!r} has no usable created_at: {e}")
                created = datetime.min
            rank = (created, (end - start).days, start, str(a.id or ''))
            by_person[a.person_id].append((start, end, rank, a))

        self._index: Dict[str, Tuple[List[date], List[Tuple[date, date, tuple, Absence]]]] = {}
        for person_id, items in by_person.items():
            items.sort(key=lambda it: it[0])
            self._index[person_id] = ([it[0] for it in items], items)

    def select(self, person_id: str, day: date) -> Optional[Absence]:
        """
        The approved absence covering `day`. Overlaps resolve to the latest
        created_at, then the longest span, then the later start, then the id.
        """
        entry = self._index.get(person_id)
        if entry is None:
            return None
        starts, items = entry
        upto = bisect_right(starts, day)
        best = None
        for start, end, rank, absence in items[:upto]:
            if end >= day and (best is None or rank > best[0]):
                best = (rank, absence)
        return best[1] if best else None

    def apply(self, person, day, candidate):
        absence = self.select(person.id, day)
        if absence is None:
            return candidate
        return EffectiveAvailability(
            status=HOME,
            start_hour=self.policy.day_start,
            end_hour=self.policy.day_end,
            home_status_type=self.policy.home_status_for_reason(absence.reason),
            is_available=False,
            source=SOURCE_ABSENCE,
        )


class HourlyBlockageOverlay(Overlay):
    """
    Partial-day exceptions on a day the person would otherwise be present.

      00:00 -> X      arrival at X
      X -> 23:59      departure at X
      X -> Y          present only between X and Y (status stays base)
      00:00 -> 23:59  unavailable all day

    Several blockages on one date fold together: the latest arrival and the
    earliest departure win. If nothing of the day is left the person is
    unavailable.
    """

    source = SOURCE_BLOCKAGE

    def __init__(self, blockages: Iterable[HourlyBlockage] = (), policy: AvailabilityPolicy = DEFAULT_POLICY):
        super().__init__(policy)
        index: Dict[Tuple[str, date], List[Tuple[str, str]]] = defaultdict(list)
        for b in blockages:
            try:
                day = to_date(b.date)
            except ValueError as e:
                logging.debug(f"Skipping blockage {b.id!r}: {e}")
                continue
            start = normalize_time(b.start_time, None)
            end = normalize_time(b.end_time, None)
            if start is None or end is None:
                logging.debug(f"Skipping blockage {b.id!r}: bad times {b.start_time!r}-{b.end_time!r}")
                continue
            index[(b.person_id, day)].append((start, end))
        self._index = {key: sorted(windows) for key, windows in index.items()}

    def windows_for(self, person_id: str, day: date) -> List[Tuple[str, str]]:
        return self._index.get((person_id, day), [])

    def apply(self, person, day, candidate):
        if candidate.status not in PRESENT_STATUSES or not candidate.is_available:
            return candidate
        windows = self.windows_for(person.id, day)
        if not windows:
            return candidate

        p = self.policy
        start_hour, end_hour = candidate.start_hour, candidate.end_hour
        for start, end in windows:
            if start == p.day_start and end == p.day_end:
                return self._unavailable()
            if start == p.day_start:
                start_hour = max(start_hour, end)
            elif end == p.day_end:
                end_hour = min(end_hour, start)
            else:
                start_hour = max(start_hour, start)
                end_hour = min(end_hour, end)

        if start_hour >= end_hour:
            return self._unavailable()

        late_start = start_hour != p.day_start
        early_end = end_hour != p.day_end
        if late_start and early_end:
            status = BASE
        elif late_start:
            status = ARRIVAL
        elif early_end:
            status = DEPARTURE
        else:
            status = candidate.status
        return EffectiveAvailability(status, start_hour, end_hour, None, True, SOURCE_BLOCKAGE)

    def _unavailable(self) -> EffectiveAvailability:
        return EffectiveAvailability(UNAVAILABLE, self.policy.day_start, self.policy.day_end,
                                     None, False, SOURCE_BLOCKAGE)


class PresenceSnapshotOverlay(Overlay):
    """A recorded presence for the exact date replaces everything computed."""

    source = SOURCE_SNAPSHOT
    short_circuits = True

    def __init__(self, snapshots: Iterable[DailyPresenceSnapshot] = (), policy: AvailabilityPolicy = DEFAULT_POLICY):
        super().__init__(policy)
        self._index: Dict[Tuple[str, date], EffectiveAvailability] = {}
        for snap in snapshots:
            try:
                day = to_date(snap.date)
            except ValueError as e:
                logging.debug(f"Skipping snapshot for {snap.person_id!r}: {e}")
                continue
            # later records for the same day replace earlier ones
            self._index[(snap.person_id, day)] = normalize_snapshot_status(
                snap.status, policy, snap.start_time, snap.end_time)

    def lookup(self, person, day):
        return self._index.get((person.id, day))

    def apply(self, person, day, candidate):
        found = self.lookup(person, day)
        return found if found is not None else candidate
