#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
ユーティリティ関数
Money conversion, localized names, ISO dates and dashboard time windows
"""

import logging
import re
from collections import namedtuple
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Iterable, Optional

import pytz

from .config import Config

logger = logging.getLogger(__name__)

PREFERRED_LOCALES = ('en-AU', 'en')

CURRENCY_SYMBOLS = {
    'AUD': '$',
    'NZD': 'NZ$',
    'USD': 'US$',
    'EUR': '€',
    'GBP': '£',
}

TimeWindow = namedtuple('TimeWindow', ['start', 'end'])

TIME_RANGE_ALIASES = {
    'today': 'today',
    'day': 'today',
    'week': 'week',
    'month': 'month',
    'year': 'year',
    'all': 'all',
}


# --- money -------------------------------------------------------------------

def cents_to_amount(cent_amount) -> float:
    """Minor units -> currency units. The single place amounts are divided by 100."""
    if cent_amount is None:
        return 0.0
    return float(Decimal(int(cent_amount)) / 100)


def amount_to_cents(amount) -> int:
    """Currency units -> minor units, rounded half-up to the nearest cent"""
    if amount is None:
        return 0
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"Not a monetary amount: {amount!r}")
    return int((value * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def format_money(cent_amount: int, currency_code: str = None) -> str:
    """Format minor units for display, e.g. 123456 AUD -> "$1,234.56"

    Currencies without a known symbol are prefixed with their ISO code.
    """
    currency_code = currency_code or Config.DEFAULT_CURRENCY
    value = Decimal(int(cent_amount)) / 100
    sign = '-' if value < 0 else ''
    symbol = CURRENCY_SYMBOLS.get(currency_code, f"{currency_code} ")
    return f"{sign}{symbol}{abs(value):,.2f}"


def parse_money(text: str) -> int:
    """Parse a displayed money string back to minor units"""
    if text is None:
        raise ValueError("Cannot parse an empty money value")
    negative = text.strip().startswith('-') or text.strip().startswith('(')
    digits = re.sub(r'[^0-9.]', '', text)
    if not digits:
        raise ValueError(f"Not a money value: {text!r}")
    cents = amount_to_cents(digits)
    return -cents if negative else cents


def percentage(part: float, whole: float) -> float:
    """part / whole * 100, 0 when whole is not positive"""
    if not whole or whole <= 0:
        return 0.0
    return (part * 100) / whole


# --- names -------------------------------------------------------------------

def get_localized_name(names: Optional[Dict[str, str]], default: str = 'Unnamed Discount',
                       locales: Iterable[str] = PREFERRED_LOCALES) -> str:
    """Pick a display string from a locale map, falling back to the first value"""
    if not names:
        return default
    for locale in locales:
        if names.get(locale):
            return names[locale]
    for value in names.values():
        if value:
            return value
    return default


# --- dates -------------------------------------------------------------------

def parse_iso_datetime(value) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Anything that cannot be parsed is treated as absent. Naive values are
    taken to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith('Z') or text.endswith('z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Ignoring malformed date: {value!r}")
            return None
    else:
        return None

    try:
        return as_utc(parsed)
    except (OverflowError, ValueError):
        # e.g. 0001-01-01T00:00:00+01:00 has no UTC equivalent
        logger.debug(f"Ignoring out of range date: {value!r}")
        return None


def as_utc(value: Optional[datetime]) -> datetime:
    """Aware UTC datetime; naive values are taken to be UTC, None is now"""
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_api_timestamp(value: datetime) -> str:
    """UTC timestamp in the form the commerce platform expects in predicates"""
    utc_value = value.astimezone(timezone.utc)
    return utc_value.strftime('%Y-%m-%dT%H:%M:%S.') + f"{utc_value.microsecond // 1000:03d}Z"


def get_timezone(tz_name: str = None):
    return pytz.timezone(tz_name or Config.DASHBOARD_TIMEZONE)


def now_in_timezone(tz_name: str = None) -> datetime:
    return datetime.now(get_timezone(tz_name))


def normalize_time_range(value: Optional[str], default: str) -> str:
    """Map a query-string range onto a canonical one, falling back to the default"""
    if value is None:
        return TIME_RANGE_ALIASES[default]
    return TIME_RANGE_ALIASES.get(value.strip().lower(), TIME_RANGE_ALIASES[default])


def _local_midnight(tz, day) -> datetime:
    return tz.localize(datetime(day.year, day.month, day.day))


def resolve_time_window(time_range: str, now: datetime = None, tz_name: str = None) -> Optional[TimeWindow]:
    """Calendar-aligned window for a dashboard range in the dashboard timezone.

    The window is inclusive of ``start`` and exclusive of ``end``; ``end`` is
    the next local midnight. ``all`` has no window and returns None.
    """
    canonical = TIME_RANGE_ALIASES.get(time_range)
    if canonical is None:
        raise ValueError(f"Unsupported time range: {time_range}")
    if canonical == 'all':
        return None

    tz = get_timezone(tz_name)
    local_now = as_utc(now).astimezone(tz)
    today = local_now.date()

    if canonical == 'today':
        first_day = today
    elif canonical == 'week':
        first_day = today - timedelta(days=today.weekday())
    elif canonical == 'month':
        first_day = today.replace(day=1)
    else:
        first_day = today.replace(month=1, day=1)

    return TimeWindow(
        start=_local_midnight(tz, first_day),
        end=_local_midnight(tz, today + timedelta(days=1)),
    )
