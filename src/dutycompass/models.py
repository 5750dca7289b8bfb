# src/dutycompass/models.py
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping, Optional, Tuple, Union

from dateutil.parser import isoparse

from .errors import MalformedDate

# Status-Vokabular
BASE = "base"
HOME = "home"
ARRIVAL = "arrival"
DEPARTURE = "departure"
UNAVAILABLE = "unavailable"
SICK = "sick"
LEAVE = "leave"

STATUSES = (BASE, HOME, ARRIVAL, DEPARTURE, UNAVAILABLE, SICK, LEAVE)
PRESENT_STATUSES = frozenset({BASE, ARRIVAL, DEPARTURE})
AWAY_STATUSES = frozenset({HOME, UNAVAILABLE, SICK, LEAVE})

# Sub-classification of a home day
LEAVE_SHAMP = "leave_shamp"
GIMEL = "gimel"
ABSENT = "absent"
ORGANIZATION_DAYS = "organization_days"
NOT_IN_SHAMP = "not_in_shamp"

HOME_STATUS_TYPES = (LEAVE_SHAMP, GIMEL, ABSENT, ORGANIZATION_DAYS, NOT_IN_SHAMP)

# Which layer produced a value
SOURCE_ROTATION = "rotation"
SOURCE_ABSENCE = "absence"
SOURCE_BLOCKAGE = "blockage"
SOURCE_SNAPSHOT = "snapshot"

# Absence workflow
PENDING = "pending"
APPROVED = "approved"
DENIED = "denied"

PERIOD_HOME = "home"
PERIOD_BASE = "base"


def to_date(value) -> date:
    """Coerce a date, datetime or ISO string to a date. Raises MalformedDate."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return isoparse(value.strip()).date()
        except (ValueError, OverflowError):
            raise MalformedDate(value)
    raise MalformedDate(value)


def to_datetime(value) -> Optional[datetime]:
    """Like to_date for timestamps; None stays None."""
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return isoparse(str(value).strip())
    except (ValueError, OverflowError):
        raise MalformedDate(value)


def normalize_time(value, fallback: Optional[str]) -> Optional[str]:
    """'9:5', '09:05:00' and '09' all become 'HH:MM'. Garbage yields fallback."""
    if value is None:
        return fallback
    text = str(value).strip()
    if not text:
        return fallback
    parts = text.split(':')
    try:
        hours = int(parts[0])
        minutes = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    except ValueError:
        return fallback
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return fallback
    return f"{hours:02d}:{minutes:02d}"


@dataclass(frozen=True)
class PersonalRotation:
    """Persönlicher Rhythmus: days_on Tage im Stützpunkt, dann days_off zu Hause."""
    days_on: int
    days_off: int
    start_date: date
    is_active: bool = True


@dataclass(frozen=True)
class Person:
    id: str
    team_id: Optional[str] = None
    is_active: bool = True
    personal_rotation: Optional[PersonalRotation] = None


@dataclass(frozen=True)
class TeamRotation:
    """
    A repeating team cycle. `pattern[i]` is the status for the day that lies
    i days (mod len(pattern)) after `cycle_start`.
    """
    team_id: str
    cycle_start: date
    pattern: Tuple[str, ...]
    end_date: Optional[date] = None
    arrival_time: Optional[str] = None     # "HH:MM", shown on arrival days
    departure_time: Optional[str] = None   # "HH:MM", shown on departure days

    def __post_init__(self):
        # lists are accepted for convenience but the record stays hashable
        if not isinstance(self.pattern, tuple):
            object.__setattr__(self, "pattern", tuple(self.pattern))

    @property
    def pattern_length(self) -> int:
        return len(self.pattern)

    @classmethod
    def from_days(cls, team_id: str, cycle_start: date, days_on_base: int, days_at_home: int,
                  end_date: Optional[date] = None, arrival_time: Optional[str] = None,
                  departure_time: Optional[str] = None) -> "TeamRotation":
        """Build the usual on/off cycle: arrival, base..., departure, home..."""
        return cls(
            team_id=team_id,
            cycle_start=cycle_start,
            pattern=cycle_pattern(days_on_base, days_at_home),
            end_date=end_date,
            arrival_time=arrival_time,
            departure_time=departure_time,
        )


def _day_count(value, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def cycle_pattern(days_on: int, days_off: int) -> Tuple[str, ...]:
    """Missing or unreadable counts default to one day each."""
    days_on = max(_day_count(days_on, 1), 1)
    days_off = max(_day_count(days_off, 1), 0)
    out = []
    for offset in range(days_on + days_off):
        if offset == 0:
            out.append(ARRIVAL)
        elif offset < days_on - 1:
            out.append(BASE)
        elif offset == days_on - 1:
            out.append(DEPARTURE)
        else:
            out.append(HOME)
    return tuple(out)


@dataclass(frozen=True)
class Absence:
    """Leave request over an inclusive date range. Only approved ones count."""
    person_id: str
    start_date: date
    end_date: date
    reason: str = ""
    status: str = PENDING
    created_at: Optional[datetime] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class HourlyBlockage:
    person_id: str
    date: date
    start_time: str
    end_time: str
    reason: str = ""
    id: Optional[str] = None


@dataclass(frozen=True)
class DailyPresenceSnapshot:
    """Manually recorded presence for exactly one date.

    `status` is either a plain label ("base", "home", ...) or a mapping with
    v2_state / status / home_status_type / start_time / end_time.
    """
    person_id: str
    date: date
    status: Union[str, Mapping[str, Any]]
    start_time: Optional[str] = None
    end_time: Optional[str] = None


@dataclass(frozen=True)
class EffectiveAvailability:
    status: str
    start_hour: str = "00:00"
    end_hour: str = "23:59"
    home_status_type: Optional[str] = None
    is_available: bool = True
    source: str = SOURCE_ROTATION

    @property
    def is_away(self) -> bool:
        return (not self.is_available) or self.status in AWAY_STATUSES


@dataclass(frozen=True)
class Period:
    """Zusammenhängender Block gleichartiger Tage (home/base) für die Vorschau."""
    type: str
    start_date: date
    end_date: date
    duration_days: int
    days_until: int
    home_status_type: Optional[str] = None
    departure_time: Optional[str] = None
    departure_date: Optional[date] = None
    return_time: Optional[str] = None
    return_date: Optional[date] = None
