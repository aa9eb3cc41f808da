#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
キャンペーン分類モジュール
Groups discounts by campaign key and derives each campaign's validity
window, lifecycle status and timeline geometry.
"""

import logging
import re
from collections import Counter
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from core.utils import as_utc
from .models import Campaign, Discount, TimelineBar, UNCATEGORIZED

logger = logging.getLogger(__name__)

STATUS_PRIORITY = {
    'active': 0,
    'upcoming': 1,
    'ongoing': 2,
    'mixed': 3,
    'expired': 4,
    'unknown': 5,
}

UNCATEGORIZED_NAME = 'Uncategorized Campaign'

# 180日のウィンドウ、今日より前に1/3
TIMELINE_DAYS = 180
TIMELINE_DAYS_BEFORE = TIMELINE_DAYS // 3


def format_campaign_name(campaign_key: str) -> str:
    """summer-sale / summer_sale -> Summer Sale"""
    words = re.sub(r'[-_]', ' ', campaign_key).split()
    return ' '.join(word[:1].upper() + word[1:].lower() for word in words)


def campaign_status(valid_from: Optional[datetime], valid_until: Optional[datetime],
                    any_active: bool, now: datetime) -> str:
    if valid_from and valid_until:
        if now < valid_from:
            status = 'upcoming'
        elif now > valid_until:
            status = 'expired'
        else:
            status = 'active'
    elif valid_from:
        status = 'upcoming' if now < valid_from else 'active'
    elif valid_until:
        status = 'expired' if now > valid_until else 'active'
    else:
        status = 'ongoing'

    # 日付上は無効だが有効フラグが立っている
    if any_active and status in ('expired', 'upcoming'):
        status = 'mixed'
    return status


def _discount_sort_key(discount: Discount):
    return (
        0 if discount.is_active else 1,
        -discount.application_cap,
        discount.display_name.lower(),
    )


def _campaign_sort_key(campaign: Campaign):
    priority = STATUS_PRIORITY.get(campaign.status, STATUS_PRIORITY['unknown'])
    if campaign.valid_from is None:
        return (priority, 1, 0.0, campaign.name.lower())
    timestamp = campaign.valid_from.timestamp()
    if campaign.status != 'upcoming':
        timestamp = -timestamp
    return (priority, 0, timestamp, campaign.name.lower())


def classify_campaigns(discounts: Iterable[Discount], now: datetime = None) -> List[Campaign]:
    """Group discounts into campaigns and classify them.

    Campaigns come back ordered by status priority, then by start date
    (earliest first when upcoming, latest first otherwise, undated last),
    then by name. Member discounts are ordered active first, then by
    descending application cap, then by name.
    """
    now = as_utc(now)
    campaigns: Dict[str, Campaign] = {}

    for discount in discounts:
        key = discount.campaign_key or UNCATEGORIZED

        if key not in campaigns:
            if discount.campaign_name:
                name = discount.campaign_name
            elif key != UNCATEGORIZED:
                name = format_campaign_name(key) or UNCATEGORIZED_NAME
            else:
                name = UNCATEGORIZED_NAME
            campaigns[key] = Campaign(id=key, name=name)

        campaign = campaigns[key]
        campaign.discounts.append(discount)

        start = discount.effective_start
        end = discount.effective_end
        if start and (campaign.valid_from is None or start < campaign.valid_from):
            campaign.valid_from = start
        if end and (campaign.valid_until is None or end > campaign.valid_until):
            campaign.valid_until = end

    for campaign in campaigns.values():
        any_active = any(d.is_active for d in campaign.discounts)
        campaign.status = campaign_status(campaign.valid_from, campaign.valid_until, any_active, now)
        campaign.discounts.sort(key=_discount_sort_key)
        campaign.timeline = timeline_bar(campaign.valid_from, campaign.valid_until, now)

    result = sorted(campaigns.values(), key=_campaign_sort_key)
    logger.info(f"Classified {len(result)} campaigns from discounts")
    return result


def timeline_bar(valid_from: Optional[datetime], valid_until: Optional[datetime],
                 now: datetime = None) -> TimelineBar:
    """Position of a validity span on a 180 day window around today.

    All values are percentages of the window. The bar is clamped to the
    window; ``width`` is never negative.
    """
    now = as_utc(now)
    window_start = now - timedelta(days=TIMELINE_DAYS_BEFORE)
    window_end = window_start + timedelta(days=TIMELINE_DAYS)
    total = (window_end - window_start).total_seconds()

    def position(moment: datetime) -> float:
        return (moment - window_start).total_seconds() / total * 100

    today = position(now)

    if valid_from is None and valid_until is None:
        return TimelineBar(left=0.0, width=100.0, today=today, state='unbounded')

    left = 0.0
    if valid_from and valid_from > window_start:
        left = min(position(valid_from), 100.0)

    right = 100.0
    if valid_until and valid_until < window_end:
        right = max(position(valid_until), 0.0)

    if valid_from and now < valid_from:
        state = 'upcoming'
    elif valid_until and now > valid_until:
        state = 'expired'
    elif valid_from and valid_until:
        state = 'active'
    else:
        state = 'open'

    return TimelineBar(left=left, width=max(0.0, right - left), today=today, state=state)


def summarize_campaigns(campaigns: Iterable[Campaign]) -> Dict[str, int]:
    """Number of campaigns per status, every status present"""
    counts = Counter(campaign.status for campaign in campaigns)
    return {status: counts.get(status, 0) for status in STATUS_PRIORITY}
