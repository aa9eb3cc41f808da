#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
割引集計モジュール
Joins discount metadata (budget cap, application cap, campaign fields) with
usage figures taken either from raw orders or from pre-grouped warehouse
rows, and computes utilisation percentages.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Union

from core.config import Config
from core.utils import amount_to_cents, cents_to_amount, percentage
from .models import (
    Discount,
    DiscountCapRecord,
    DiscountUsageRecord,
    DiscountUsageSummary,
    Order,
    UsageTotals,
)

logger = logging.getLogger(__name__)

NEAR_CAP_THRESHOLD = 80.0
WARNING_LEVEL = 70.0
CRITICAL_LEVEL = 90.0

UsageSource = Union[Sequence[Order], Sequence[UsageTotals]]


def iter_discount_applications(order: Order):
    """Yield (discount_id, cent_amount, quantity, line_item, currency) for every
    included discount on every discounted unit group of an order.

    Unresolvable references are logged and skipped.
    """
    for line_item in order.line_items:
        for price_info in line_item.discounted_price_per_quantity:
            if price_info.discounted_price is None:
                continue
            for included in price_info.discounted_price.included_discounts:
                discount_id = included.discount.resolved_id
                if not discount_id:
                    logger.warning(f"Could not determine discount id on order {order.id}")
                    continue
                yield (
                    discount_id,
                    included.discounted_amount.cent_amount * price_info.quantity,
                    price_info.quantity,
                    line_item,
                    included.discounted_amount.currency_code,
                )


def build_cap_record(discount: Discount) -> DiscountCapRecord:
    """Initial, zero-usage record for a discount"""
    cap = discount.cap
    return DiscountCapRecord(
        id=discount.id,
        name=discount.display_name,
        key=discount.key,
        version=discount.version,
        is_active=discount.is_active,
        total_budget=cap.amount if cap else 0.0,
        application_cap=discount.application_cap,
        currency_code=cap.currency_code if cap else Config.DEFAULT_CURRENCY,
        auto_disable=discount.auto_disable,
        campaign_key=discount.campaign_key,
        campaign_name=discount.campaign_name,
    )


def _is_order_source(usage_source) -> bool:
    return bool(usage_source) and isinstance(usage_source[0], Order)


def aggregate_usage(discounts: Iterable[Discount], usage_source: Optional[UsageSource],
                    time_window: Optional[str] = None) -> List[DiscountCapRecord]:
    """One normalised utilisation record per discount.

    ``usage_source`` is either a list of orders, scanned line item by line
    item, or a list of pre-grouped warehouse totals. ``time_window`` is only
    carried for logging; the caller has already bounded the source.
    Usage pointing at a discount that is not in ``discounts`` is skipped with
    a warning. No ordering is imposed on the result.
    """
    records: Dict[str, DiscountCapRecord] = {}
    for discount in discounts:
        records[discount.id] = build_cap_record(discount)

    usage_source = list(usage_source or [])
    skipped = set()

    if _is_order_source(usage_source):
        spent_cents: Dict[str, int] = defaultdict(int)
        orders_by_discount: Dict[str, set] = defaultdict(set)

        for order in usage_source:
            for discount_id, cents, _quantity, _item, _currency in iter_discount_applications(order):
                record = records.get(discount_id)
                if record is None:
                    if discount_id not in skipped:
                        logger.warning(f"Discount {discount_id} found in order but not in the discount list")
                    skipped.add(discount_id)
                    continue
                spent_cents[discount_id] += cents
                orders_by_discount[discount_id].add(order.id)
                record.total_usage += 1

        for discount_id, cents in spent_cents.items():
            records[discount_id].total_spent = cents_to_amount(cents)
            records[discount_id].order_count = len(orders_by_discount[discount_id])
    else:
        for row in usage_source:
            record = records.get(row.discount_id)
            if record is None:
                logger.warning(f"Usage row for unknown discount {row.discount_id} skipped")
                skipped.add(row.discount_id)
                continue
            record.total_spent = float(row.total_spent)
            record.order_count = int(row.order_count)

    for record in records.values():
        record.budget_percentage = percentage(record.total_spent, record.total_budget)
        record.usage_percentage = percentage(record.total_usage, record.application_cap)

    logger.info(
        f"Aggregated usage for {len(records)} discounts "
        f"(window={time_window or 'all'}, skipped={len(skipped)})"
    )
    return list(records.values())


def summarize_discount_usage(discounts: Iterable[Discount], orders: Sequence[Order]) -> Dict:
    """Live usage totals from recent orders.

    Unlike :func:`aggregate_usage`, discounts missing from the discount list
    are still reported, under the name "Unknown Discount".
    """
    known = {d.id: d for d in discounts}
    summaries: Dict[str, DiscountUsageSummary] = {}
    spent_cents: Dict[str, int] = defaultdict(int)
    affected_orders: Dict[str, set] = defaultdict(set)
    total_orders_cents = 0

    for order in orders:
        total_orders_cents += order.total_price.cent_amount
        for discount_id, cents, _quantity, _item, currency in iter_discount_applications(order):
            if discount_id not in summaries:
                discount = known.get(discount_id)
                summaries[discount_id] = DiscountUsageSummary(
                    id=discount_id,
                    name=discount.display_name if discount else 'Unknown Discount',
                    key=discount.key if discount else None,
                    is_active=discount.is_active if discount else False,
                    currency_code=currency,
                )
            spent_cents[discount_id] += cents
            summaries[discount_id].order_count += 1
            affected_orders[discount_id].add(order.id)

    results = []
    for discount_id, summary in summaries.items():
        summary.total_amount = cents_to_amount(spent_cents[discount_id])
        summary.unique_order_count = len(affected_orders[discount_id])
        results.append(summary.to_dict())

    return {
        'results': results,
        'totalOrdersValue': cents_to_amount(total_orders_cents),
        'orderCount': len(orders),
    }


def usage_record_key(record: DiscountUsageRecord) -> tuple:
    """Identity of a warehouse row; redelivered events reproduce it exactly"""
    return (
        record.discount_id,
        record.order_id,
        record.product_id,
        record.quantity,
        amount_to_cents(record.discount_amount),
        record.timestamp,
    )


def total_usage_records(records: Iterable[DiscountUsageRecord], dedupe: bool = True) -> List[UsageTotals]:
    """Group raw warehouse rows into per-discount totals.

    With ``dedupe`` identical rows are counted once.
    """
    seen = set()
    spent_cents: Dict[str, int] = defaultdict(int)
    orders: Dict[str, set] = defaultdict(set)
    duplicates = 0

    for record in records:
        if dedupe:
            identity = usage_record_key(record)
            if identity in seen:
                duplicates += 1
                continue
            seen.add(identity)
        spent_cents[record.discount_id] += amount_to_cents(record.discount_amount)
        orders[record.discount_id].add(record.order_id)

    if duplicates:
        logger.warning(f"Ignored {duplicates} duplicate usage rows")

    return [
        UsageTotals(
            discount_id=discount_id,
            total_spent=cents_to_amount(cents),
            order_count=len(orders[discount_id]),
        )
        for discount_id, cents in spent_cents.items()
    ]


def count_unique_orders(records: Iterable[DiscountUsageRecord]) -> int:
    return len({record.order_id for record in records})


def usage_level(value: float) -> str:
    if value >= CRITICAL_LEVEL:
        return 'critical'
    if value >= WARNING_LEVEL:
        return 'warning'
    return 'normal'


def calculate_cap_metrics(records: Iterable[DiscountCapRecord], threshold: float = NEAR_CAP_THRESHOLD) -> Dict:
    """Averages over capped discounts and how many are close to their cap"""
    budget_capped = 0
    budget_used = 0.0
    usage_capped = 0
    usage_used = 0.0
    near_budget = 0
    near_usage = 0

    for record in records:
        if record.total_budget > 0:
            budget_capped += 1
            budget_used += record.budget_percentage
            if record.budget_percentage >= threshold:
                near_budget += 1
        if record.application_cap > 0:
            usage_capped += 1
            usage_used += record.usage_percentage
            if record.usage_percentage >= threshold:
                near_usage += 1

    return {
        'avgBudgetUsage': budget_used / budget_capped if budget_capped else 0.0,
        'avgUsage': usage_used / usage_capped if usage_capped else 0.0,
        'discountsNearBudgetCap': near_budget,
        'discountsNearUsageCap': near_usage,
        'totalBudgetCaps': budget_capped,
        'totalUsageCaps': usage_capped,
    }
