from collections import Counter
from datetime import date
from typing import Dict, Iterable, List, Optional

from dutycompass.availability import AvailabilityResolver, is_status_present
from dutycompass.models import HOME, PERIOD_HOME, Period, Person


def summarize_headcount(people: Iterable[Person], day: date, resolver: AvailabilityResolver,
                        at: Optional[str] = None) -> Dict:
    """
    Tagesübersicht für eine Einheit:
      total             : number of people considered
      present           : at base (at time `at`, if given)
      home              : home days
      unavailable       : neither present nor home (sick, blocked, unknown, or outside their hours)
      by_status         : count per resolved status label
      home_status_types : count per home sub-type
    """
    by_status = Counter()
    home_types = Counter()
    present = home = total = 0
    for person in people:
        total += 1
        avail = resolver.get_effective_availability(person, day)
        by_status[avail.status] += 1
        if avail.status == HOME:
            home += 1
            home_types[avail.home_status_type or resolver.policy.fallback_home_status_type] += 1
            continue
        if at is not None:
            is_here = is_status_present(avail, at, resolver.policy)
        else:
            is_here = not avail.is_away
        if is_here:
            present += 1

    return {
        'total': total,
        'present': present,
        'home': home,
        'unavailable': total - present - home,
        'by_status': dict(by_status),
        'home_status_types': dict(home_types),
    }


def summarize_periods(periods: List[Period]) -> Dict[str, int]:
    """Home/base day totals of a compressed timeline."""
    home_days = sum(p.duration_days for p in periods if p.type == PERIOD_HOME)
    total = sum(p.duration_days for p in periods)
    return {
        'total_days': total,
        'home_days': home_days,
        'base_days': total - home_days,
        'home_periods': sum(1 for p in periods if p.type == PERIOD_HOME),
    }
