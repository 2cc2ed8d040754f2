"""
Core — Domain Configuration

Tolerances and detector parameters live in ``settings.FRESHSTOCK`` so that
they can differ per deployment (or per environment variable) instead of
being hard-coded in the computations. Missing keys fall back to DEFAULTS;
nested dicts are merged one level deep.

@file core/config.py
"""

from decimal import Decimal

from django.conf import settings

DEFAULTS = {
    # Loss-rate status bands, in percent of arrivals.
    'LOSS_RATE_THRESHOLDS': {
        'acceptable': Decimal('5'),
        'warning': Decimal('10'),
        'critical': Decimal('15'),
    },
    # |change%| below this is a stable trend.
    'TREND_STABLE_BAND': Decimal('5'),
    'ABNORMAL_LOSS': {
        'history_weeks': 4,
        'margin_points': Decimal('5'),
        'min_arrivals': Decimal('1'),
    },
    'SPOILAGE_SHARE': {
        'threshold': Decimal('70'),
        'expected': Decimal('50'),
    },
    'DAILY_LOSS': {
        'history_days': 30,
        'multiplier': Decimal('3'),
    },
    'UNUSUAL_FLOW': {
        'recent_days': 7,
        'history_days': 30,
        'variance_percentage': Decimal('50'),
        'high_percentage': Decimal('80'),
    },
    'INVENTORY_DISCREPANCY': {
        'value_threshold': Decimal('100000'),
        'percentage_threshold': Decimal('10'),
    },
    # Count-line severity bands, in percent of theoretical quantity.
    'COUNT_SEVERITY_BANDS': {
        'low': Decimal('1'),
        'medium': Decimal('5'),
        'high': Decimal('10'),
    },
    'ANALYSIS_SCHEDULE': {
        'interval_minutes': 60,
        'lock_timeout_seconds': 600,
    },
}


def freshstock_setting(key: str):
    """Return ``FRESHSTOCK[key]`` merged over the default value."""
    default = DEFAULTS[key]
    configured = getattr(settings, 'FRESHSTOCK', {}).get(key)
    if configured is None:
        return default
    if isinstance(default, dict):
        merged = dict(default)
        merged.update({k: _coerce(v, default.get(k)) for k, v in configured.items()})
        return merged
    return _coerce(configured, default)


def _coerce(value, default):
    if isinstance(default, Decimal) and not isinstance(value, Decimal):
        return Decimal(str(value))
    return value
