#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
ダッシュボード API
Orders, discount usage, budget/cap utilisation and campaign endpoints
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from core.exceptions import DashboardError
from core.utils import normalize_time_range, now_in_timezone, resolve_time_window
from .campaigns import classify_campaigns, summarize_campaigns
from .discount_aggregation import aggregate_usage, calculate_cap_metrics, summarize_discount_usage, usage_level
from .models import Discount, Order
from .sales import order_locations, sales_performance, top_products, total_sales

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])

CUSTOM_TYPE_EXPANSION = ['custom.type']


def error_response(message: str, error: Exception) -> JSONResponse:
    """Failure body shared by every endpoint"""
    return JSONResponse(
        status_code=500,
        content={
            "error": message,
            "details": str(error) or error.__class__.__name__,
            "timestamp": now_in_timezone().isoformat(),
        }
    )


def _commerce(request: Request):
    client = getattr(request.app.state, 'commerce_client', None)
    if client is None:
        raise DashboardError("Commerce API client not configured")
    return client


def _warehouse(request: Request):
    client = getattr(request.app.state, 'warehouse_client', None)
    if client is None:
        raise DashboardError("Warehouse client not configured")
    return client


def _parse_active(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered == 'true':
        return True
    if lowered == 'false':
        return False
    return None


def parse_discounts(body: Dict) -> List[Discount]:
    """Validate discount payloads, skipping ones that cannot be read"""
    discounts = []
    for raw in body.get('results', []) or []:
        try:
            discounts.append(Discount.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping unreadable discount {raw.get('id') if isinstance(raw, dict) else raw}: {e}")
    return discounts


def parse_orders(body: Dict) -> List[Order]:
    """Validate order payloads, skipping ones that cannot be read"""
    orders = []
    for raw in body.get('results', []) or []:
        try:
            orders.append(Order.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping unreadable order {raw.get('id') if isinstance(raw, dict) else raw}: {e}")
    return orders


def _order_range(value: Optional[str]) -> str:
    time_range = normalize_time_range(value, 'today')
    # the order views always need a bounded window
    return 'today' if time_range == 'all' else time_range


def _window_dict(window) -> Optional[Dict[str, str]]:
    if window is None:
        return None
    return {"start": window.start.isoformat(), "end": window.end.isoformat()}


@router.get("/orders")
def get_orders(
    request: Request,
    time_range: Optional[str] = Query(None, alias="timeRange", description="today / week / month / year")
):
    """期間内の注文一覧"""
    try:
        time_range = _order_range(time_range)
        window = resolve_time_window(time_range, now_in_timezone())
        body = _commerce(request).get_orders(start=window.start, end=window.end)

        return {
            **body,
            "timeRange": time_range,
            "window": _window_dict(window),
        }

    except Exception as e:
        logger.error(f"Error fetching orders: {e}")
        return error_response("Failed to fetch orders", e)


@router.get("/orders/summary")
def get_order_summary(
    request: Request,
    time_range: Optional[str] = Query(None, alias="timeRange", description="today / week / month / year")
):
    """売上サマリー: total sales, performance buckets, top products, locations"""
    try:
        time_range = _order_range(time_range)
        now = now_in_timezone()
        window = resolve_time_window(time_range, now)
        orders = parse_orders(_commerce(request).get_orders(start=window.start, end=window.end))

        return {
            "timeRange": time_range,
            "window": _window_dict(window),
            "totals": total_sales(orders),
            "salesPerformance": sales_performance(orders, time_range, now),
            "topProducts": top_products(orders),
            "locations": {
                "state": order_locations(orders, 'state'),
                "city": order_locations(orders, 'city'),
            },
            "timestamp": now.isoformat(),
        }

    except Exception as e:
        logger.error(f"Error building order summary: {e}")
        return error_response("Failed to build order summary", e)


@router.get("/discounts")
def get_discounts(
    request: Request,
    active: Optional[str] = Query(None, description="true / false")
):
    """割引一覧"""
    try:
        logger.info(f"Fetching discounts, active filter: {active}")
        return _commerce(request).get_discounts(
            active=_parse_active(active),
            sort=['lastModifiedAt desc'],
        )

    except Exception as e:
        logger.error(f"Error fetching discounts: {e}")
        return error_response("Failed to fetch discounts", e)


@router.get("/discounts/usage")
def get_discount_usage(request: Request):
    """直近の注文から計算した割引利用状況"""
    try:
        commerce = _commerce(request)
        discounts = parse_discounts(commerce.get_discounts())
        orders = parse_orders(commerce.get_orders(with_discounts=True, expand_discounts=True))
        logger.info(f"Computing usage from {len(orders)} orders for {len(discounts)} discounts")
        return summarize_discount_usage(discounts, orders)

    except Exception as e:
        logger.error(f"Error fetching discount usage data: {e}")
        return error_response("Failed to fetch discount usage data", e)


@router.get("/discounts/budget")
def get_discount_budget(
    request: Request,
    time_range: Optional[str] = Query(None, alias="timeRange", description="day / week / month / all")
):
    """予算消化率 (warehouse usage)"""
    try:
        time_range = normalize_time_range(time_range, 'all')
        window = resolve_time_window(time_range, now_in_timezone())

        discounts = parse_discounts(_commerce(request).get_discounts(expand=CUSTOM_TYPE_EXPANSION))
        warehouse = _warehouse(request)
        usage = warehouse.fetch_usage_totals(window)
        total_orders = warehouse.fetch_unique_order_count(window)

        records = aggregate_usage(discounts, usage, time_range)
        results = []
        for record in records:
            if record.total_budget <= 0:
                continue
            data = record.to_dict()
            data["spentPercentage"] = record.budget_percentage
            results.append(data)

        logger.info(f"Processed budget data: {len(results)} discounts with budget caps, {total_orders} orders")
        return {
            "results": results,
            "timeRange": time_range,
            "totalOrders": total_orders,
        }

    except Exception as e:
        logger.error(f"Error fetching discount budget data: {e}")
        return error_response("Failed to fetch discount budget data", e)


@router.get("/discounts/caps")
def get_discount_caps(
    request: Request,
    time_range: Optional[str] = Query(None, alias="timeRange", description="day / week / month / all")
):
    """予算・利用回数の上限に対する消化状況"""
    try:
        time_range = normalize_time_range(time_range, 'all')
        window = resolve_time_window(time_range, now_in_timezone())

        commerce = _commerce(request)
        discounts = parse_discounts(commerce.get_discounts(expand=CUSTOM_TYPE_EXPANSION))
        orders = parse_orders(commerce.get_orders(
            start=window.start if window else None,
            end=window.end if window else None,
            with_discounts=True,
            expand_discounts=True,
        ))

        records = aggregate_usage(discounts, orders, time_range)
        results = []
        for record in records:
            data = record.to_dict()
            data["budgetLevel"] = usage_level(record.budget_percentage)
            data["usageLevel"] = usage_level(record.usage_percentage)
            results.append(data)

        return {
            "results": results,
            "timeRange": time_range,
            "totalOrders": len({order.id for order in orders}),
            "metrics": calculate_cap_metrics(records),
        }

    except Exception as e:
        logger.error(f"Error fetching discount cap data: {e}")
        return error_response("Failed to fetch discount cap data", e)


@router.get("/campaigns")
def get_campaigns(
    request: Request,
    active: Optional[str] = Query(None, description="true / false")
):
    """キャンペーン別の割引グループ"""
    try:
        now = now_in_timezone()
        discounts = parse_discounts(_commerce(request).get_discounts(
            active=_parse_active(active),
            expand=CUSTOM_TYPE_EXPANSION,
        ))
        campaigns = classify_campaigns(discounts, now)

        return {
            "results": [campaign.to_dict() for campaign in campaigns],
            "summary": summarize_campaigns(campaigns),
            "timestamp": now.isoformat(),
        }

    except Exception as e:
        logger.error(f"Error classifying campaigns: {e}")
        return error_response("Failed to fetch campaigns", e)
