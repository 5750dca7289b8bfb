"""dutycompass: availability resolution for rotating units."""

from .availability import (
    AvailabilityResolver, get_effective_availability, is_status_present, reset_cache,
)
from .config import AvailabilityPolicy, load_policy
from .models import (
    Absence, DailyPresenceSnapshot, EffectiveAvailability, HourlyBlockage,
    Period, Person, PersonalRotation, TeamRotation,
)
from .timeline import TimelineCompressor, compress_timeline

__version__ = "0.1.0"
