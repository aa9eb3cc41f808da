"""
ユーティリティ関数のテスト
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytz

from core.utils import (
    amount_to_cents,
    cents_to_amount,
    format_money,
    get_localized_name,
    normalize_time_range,
    parse_iso_datetime,
    parse_money,
    percentage,
    resolve_time_window,
    to_api_timestamp,
)

SYDNEY = pytz.timezone('Australia/Sydney')


def test_cents_to_amount():
    assert cents_to_amount(123456) == 1234.56
    assert cents_to_amount(None) == 0.0
    assert cents_to_amount(-5) == -0.05


def test_amount_to_cents_rounds_half_up():
    assert amount_to_cents('19.99') == 1999
    assert amount_to_cents(0.005) == 1
    assert amount_to_cents(None) == 0
    with pytest.raises(ValueError):
        amount_to_cents('abc')


@pytest.mark.parametrize('cents,currency,text', [
    (123456, 'AUD', '$1,234.56'),
    (5, 'NZD', 'NZ$0.05'),
    (-2500, 'AUD', '-$25.00'),
    (100000, 'JPY', 'JPY 1,000.00'),
])
def test_format_money(cents, currency, text):
    assert format_money(cents, currency) == text


def test_formatted_money_parses_back_to_the_same_cents():
    for cents in (0, 1, 99, 123456, -2500):
        assert parse_money(format_money(cents, 'AUD')) == cents


def test_parse_money_rejects_text_without_digits():
    with pytest.raises(ValueError):
        parse_money('$')


def test_percentage_guards_non_positive_wholes():
    assert percentage(45, 100) == 45.0
    assert percentage(10, 0) == 0
    assert percentage(10, -1) == 0
    assert percentage(10, None) == 0


def test_localized_name_prefers_australian_english():
    assert get_localized_name({'de': 'Rabatt', 'en': 'Discount', 'en-AU': 'Promo'}) == 'Promo'
    assert get_localized_name({'de': 'Rabatt', 'en': 'Discount'}) == 'Discount'
    assert get_localized_name({'de': 'Rabatt'}) == 'Rabatt'
    assert get_localized_name({}) == 'Unnamed Discount'
    assert get_localized_name(None, default='Unknown') == 'Unknown'


def test_parse_iso_datetime():
    assert parse_iso_datetime('2025-01-15T01:00:00.000Z') == datetime(2025, 1, 15, 1, tzinfo=timezone.utc)
    assert parse_iso_datetime('2025-01-15T12:00:00+11:00') == datetime(2025, 1, 15, 1, tzinfo=timezone.utc)
    assert parse_iso_datetime('2025-01-15T01:00:00') == datetime(2025, 1, 15, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize('value', [None, '', '   ', 'not-a-date', '2025-13-45T00:00:00Z', 12345])
def test_unparseable_dates_are_absent(value):
    assert parse_iso_datetime(value) is None


def test_api_timestamp_is_utc_with_milliseconds():
    moment = SYDNEY.localize(datetime(2025, 1, 15, 0, 0, 0, 250000))
    assert to_api_timestamp(moment) == '2025-01-14T13:00:00.250Z'


@pytest.mark.parametrize('value,default,expected', [
    (None, 'today', 'today'),
    ('day', 'all', 'today'),
    ('  WEEK ', 'today', 'week'),
    ('fortnight', 'all', 'all'),
    ('year', 'today', 'year'),
])
def test_normalize_time_range(value, default, expected):
    assert normalize_time_range(value, default) == expected


def test_today_window_is_local_calendar_day():
    now = datetime(2025, 1, 15, 1, 0, tzinfo=timezone.utc)  # 12:00 in Sydney

    window = resolve_time_window('today', now, 'Australia/Sydney')

    assert window.start == SYDNEY.localize(datetime(2025, 1, 15))
    assert window.end == SYDNEY.localize(datetime(2025, 1, 16))
    assert window.start.utcoffset() == timedelta(hours=11)


def test_week_window_starts_on_monday():
    now = datetime(2025, 1, 15, 1, 0, tzinfo=timezone.utc)  # Wednesday

    window = resolve_time_window('week', now, 'Australia/Sydney')

    assert window.start == SYDNEY.localize(datetime(2025, 1, 13))
    assert window.end == SYDNEY.localize(datetime(2025, 1, 16))


def test_month_window_follows_the_local_date():
    # still January in UTC, already February in Sydney
    now = datetime(2025, 1, 31, 14, 0, tzinfo=timezone.utc)

    window = resolve_time_window('month', now, 'Australia/Sydney')

    assert window.start == SYDNEY.localize(datetime(2025, 2, 1))
    assert window.end == SYDNEY.localize(datetime(2025, 2, 2))


def test_year_window():
    now = datetime(2025, 6, 1, 2, 0, tzinfo=timezone.utc)
    window = resolve_time_window('year', now, 'Australia/Sydney')
    assert window.start == SYDNEY.localize(datetime(2025, 1, 1))


def test_window_across_daylight_saving_start():
    # clocks go forward on 2025-10-05 in Sydney, so the day is 23 hours long
    now = SYDNEY.localize(datetime(2025, 10, 5, 12, 0))

    window = resolve_time_window('today', now, 'Australia/Sydney')

    assert window.start.utcoffset() == timedelta(hours=10)
    assert window.end.utcoffset() == timedelta(hours=11)
    assert window.end - window.start == timedelta(hours=23)


def test_all_has_no_window():
    assert resolve_time_window('all', datetime.now(timezone.utc)) is None


def test_unknown_range_is_rejected():
    with pytest.raises(ValueError):
        resolve_time_window('fortnight')


@pytest.mark.parametrize('value', ['0001-01-01T00:00:00+01:00', '9999-12-31T23:59:59-01:00'])
def test_dates_without_a_utc_equivalent_are_absent(value):
    assert parse_iso_datetime(value) is None


def test_naive_now_is_read_as_utc():
    # 14:00 UTC on the 31st is already 1 February in Sydney
    naive = datetime(2025, 1, 31, 14, 0)

    window = resolve_time_window('month', naive, 'Australia/Sydney')

    assert window == resolve_time_window('month', naive.replace(tzinfo=timezone.utc), 'Australia/Sydney')
    assert window.start == SYDNEY.localize(datetime(2025, 2, 1))
