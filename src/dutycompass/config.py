import json
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

# reason text (lower-cased) -> home_status_type
DEFAULT_REASON_MAP = {
    'leave_shamp': 'leave_shamp',
    'חופשה בשמפ': 'leave_shamp',
    'vacation': 'leave_shamp',
    'gimel': 'gimel',
    "ג'": 'gimel',
    'גימלים': 'gimel',
    'absent': 'absent',
    'נפקד': 'absent',
    'organization_days': 'organization_days',
    'ימי התארגנות': 'organization_days',
    'not_in_shamp': 'not_in_shamp',
    'לא בשמ"פ': 'not_in_shamp',
}


@dataclass(frozen=True)
class AvailabilityPolicy:
    """All hour sentinels and fallback values used by the engine."""
    day_start: str = '00:00'
    day_end: str = '23:59'
    default_departure_time: str = '14:00'
    default_return_time: str = '10:00'
    fallback_home_status_type: str = 'leave_shamp'
    absence_reason_map: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_REASON_MAP))

    def home_status_for_reason(self, reason: Optional[str]) -> str:
        key = (reason or '').split('|')[0].strip().lower()
        return self.absence_reason_map.get(key, self.fallback_home_status_type)


DEFAULT_POLICY = AvailabilityPolicy()


def _config_path():
    base = os.path.join(os.path.expanduser('~'), '.dutycompass')
    os.makedirs(base, exist_ok=True)
    return os.path.join(base, 'dutycompass_config.json')


def _defaults() -> Dict:
    return {
        'policy': {
            'day_start': DEFAULT_POLICY.day_start,
            'day_end': DEFAULT_POLICY.day_end,
            'default_departure_time': DEFAULT_POLICY.default_departure_time,
            'default_return_time': DEFAULT_POLICY.default_return_time,
            'fallback_home_status_type': DEFAULT_POLICY.fallback_home_status_type,
        },
        'database': os.path.join(os.path.expanduser('~'), '.dutycompass', 'dutycompass.db'),
    }


def load_config(path: Optional[str] = None) -> Dict:
    path = path or _config_path()
    if not os.path.exists(path):
        return _defaults()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError):
        return _defaults()


def save_config(cfg: dict, path: Optional[str] = None):
    path = path or _config_path()
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(cfg, f, ensure_ascii=False, indent=2)


def load_policy(cfg: Optional[Mapping] = None) -> AvailabilityPolicy:
    """Build a policy from the 'policy' section of a config dict."""
    if cfg is None:
        cfg = load_config()
    section = dict(cfg.get('policy') or {})
    kwargs = {}
    for name in ('day_start', 'day_end', 'default_departure_time',
                 'default_return_time', 'fallback_home_status_type'):
        if section.get(name):
            kwargs[name] = str(section[name])
    extra = section.get('absence_reasons') or {}
    if extra:
        reasons = dict(DEFAULT_REASON_MAP)
        reasons.update({str(k).strip().lower(): str(v) for k, v in extra.items()})
        kwargs['absence_reason_map'] = reasons
    return AvailabilityPolicy(**kwargs)
