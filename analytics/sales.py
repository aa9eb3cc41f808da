#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
売上分析
Order volume, sales performance buckets, top products and order locations
"""

import calendar
import logging
from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Sequence

from core.utils import as_utc, cents_to_amount, get_localized_name, get_timezone
from .models import Order

logger = logging.getLogger(__name__)

WEEKDAY_LABELS = ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun']
MONTH_LABELS = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']


def total_sales(orders: Sequence[Order]) -> Dict:
    """合計売上"""
    total_cents = sum(order.total_price.cent_amount for order in orders)
    order_count = len(orders)
    return {
        'totalSales': cents_to_amount(total_cents),
        'orderCount': order_count,
        'averageOrderValue': round(cents_to_amount(total_cents) / order_count, 2) if order_count > 0 else 0,
    }


def _seed_buckets(time_range: str, local_now: datetime) -> 'OrderedDict[str, int]':
    buckets = OrderedDict()
    if time_range == 'today':
        for hour in range(24):
            buckets[f"{hour:02d}:00"] = 0
    elif time_range == 'week':
        for label in WEEKDAY_LABELS:
            buckets[label] = 0
    elif time_range == 'month':
        days_in_month = calendar.monthrange(local_now.year, local_now.month)[1]
        for day in range(1, days_in_month + 1):
            buckets[f"{day:02d} {MONTH_LABELS[local_now.month - 1]}"] = 0
    elif time_range == 'year':
        for month in range(local_now.month):
            buckets[MONTH_LABELS[month]] = 0
    else:
        raise ValueError(f"Unsupported time range: {time_range}")
    return buckets


def _bucket_label(time_range: str, moment: datetime) -> str:
    if time_range == 'today':
        return f"{moment.hour:02d}:00"
    if time_range == 'week':
        return WEEKDAY_LABELS[moment.weekday()]
    if time_range == 'month':
        return f"{moment.day:02d} {MONTH_LABELS[moment.month - 1]}"
    return MONTH_LABELS[moment.month - 1]


def sales_performance(orders: Sequence[Order], time_range: str, now: datetime = None,
                      tz_name: str = None) -> List[Dict]:
    """Sales amount per time bucket in the dashboard timezone.

    Buckets are pre-seeded so empty periods show as zero; orders that fall
    outside the seeded buckets are ignored.
    """
    tz = get_timezone(tz_name)
    local_now = as_utc(now).astimezone(tz)
    buckets = _seed_buckets(time_range, local_now)

    for order in orders:
        created = order.created
        if created is None:
            continue
        label = _bucket_label(time_range, created.astimezone(tz))
        if label in buckets:
            buckets[label] += order.total_price.cent_amount

    return [
        {'time': label, 'amount': round(cents_to_amount(cents), 2)}
        for label, cents in buckets.items()
    ]


def top_products(orders: Sequence[Order], limit: int = 10) -> List[Dict]:
    """売上上位商品 (revenue = unit price x quantity)"""
    products: Dict[str, Dict] = {}

    for order in orders:
        for item in order.line_items:
            unit_cents = item.price.value.cent_amount if item.price else 0
            if item.product_id not in products:
                products[item.product_id] = {
                    'id': item.product_id,
                    'name': get_localized_name(item.name, default='Unknown Product'),
                    'sku': (item.variant.sku if item.variant else None) or 'N/A',
                    'revenue_cents': 0,
                    'quantitySold': 0,
                }
            product = products[item.product_id]
            product['revenue_cents'] += unit_cents * item.quantity
            product['quantitySold'] += item.quantity

    ranked = sorted(products.values(), key=lambda p: p['revenue_cents'], reverse=True)[:limit]
    for product in ranked:
        product['revenue'] = cents_to_amount(product.pop('revenue_cents'))
    return ranked


def order_locations(orders: Sequence[Order], by: str = 'state') -> List[Dict]:
    """Order counts per billing state or city, most orders first"""
    if by not in ('state', 'city'):
        raise ValueError(f"Unsupported location grouping: {by}")

    counts: Dict[str, int] = {}
    for order in orders:
        address = order.billing_address
        place = getattr(address, by, None) if address else None
        if place:
            counts[place] = counts.get(place, 0) + 1

    return [
        {'name': name, 'value': count}
        for name, count in sorted(counts.items(), key=lambda x: x[1], reverse=True)
    ]
