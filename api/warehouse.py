#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Warehouse Query Client
割引利用データの集計クエリ (Supabase)

Aggregation runs in the database through the functions defined in
``sql/discount_usage_functions.sql``. When a function call fails the rows
are read directly and grouped in Python instead.
"""

import logging
from typing import Any, List, Optional

from core.config import Config
from core.exceptions import WarehouseError
from core.utils import TimeWindow
from analytics.discount_aggregation import count_unique_orders, total_usage_records
from analytics.models import DiscountUsageRecord, UsageTotals

logger = logging.getLogger(__name__)

USAGE_COLUMNS = 'discount_id, order_id, timestamp, discount_amount, currency_code, quantity, product_id'
PAGE_SIZE = 1000


class WarehouseClient:
    """割引利用データ (discount usage rows) の読み取り専用クライアント"""

    def __init__(self, client, table: str = None, dedupe: Optional[bool] = None):
        self.client = client
        self.table = table or Config.WAREHOUSE_TABLE
        self.dedupe = Config.WAREHOUSE_DEDUPE_ROWS if dedupe is None else dedupe

    def _require_client(self):
        if self.client is None:
            raise WarehouseError("Warehouse connection not configured")
        return self.client

    @staticmethod
    def _window_params(window: Optional[TimeWindow]) -> dict:
        if window is None:
            return {'p_start': None, 'p_end': None}
        return {'p_start': window.start.isoformat(), 'p_end': window.end.isoformat()}

    def fetch_usage_records(self, window: Optional[TimeWindow] = None) -> List[DiscountUsageRecord]:
        """Raw usage rows in the window, read page by page"""
        client = self._require_client()
        records = []
        offset = 0

        try:
            while True:
                query = client.table(self.table).select(USAGE_COLUMNS)
                if window is not None:
                    query = query.gte('timestamp', window.start.isoformat()).lt('timestamp', window.end.isoformat())
                result = query.range(offset, offset + PAGE_SIZE - 1).execute()
                rows = result.data or []
                records.extend(DiscountUsageRecord.model_validate(row) for row in rows)
                if len(rows) < PAGE_SIZE:
                    break
                offset += PAGE_SIZE
        except Exception as e:
            logger.error(f"Failed to read usage rows from {self.table}: {e}")
            raise WarehouseError(f"Failed to read usage rows: {e}") from e

        logger.info(f"Read {len(records)} usage rows from {self.table}")
        return records

    def fetch_usage_totals(self, window: Optional[TimeWindow] = None) -> List[UsageTotals]:
        """discount_id毎の合計金額と注文数"""
        client = self._require_client()
        params = self._window_params(window)
        params['p_dedupe'] = self.dedupe

        try:
            result = client.rpc('discount_usage_totals', params).execute()
            rows = result.data or []
            logger.info(f"Retrieved usage data for {len(rows)} discounts")
            return [UsageTotals.model_validate(row) for row in rows]
        except Exception as e:
            logger.warning(f"discount_usage_totals failed, grouping rows locally: {e}")

        return total_usage_records(self.fetch_usage_records(window), dedupe=self.dedupe)

    def fetch_unique_order_count(self, window: Optional[TimeWindow] = None) -> int:
        """期間内のユニーク注文数"""
        client = self._require_client()

        try:
            result = client.rpc('discount_usage_order_count', self._window_params(window)).execute()
            return self._scalar(result.data, 'unique_order_count')
        except Exception as e:
            logger.warning(f"discount_usage_order_count failed, counting rows locally: {e}")

        return count_unique_orders(self.fetch_usage_records(window))

    @staticmethod
    def _scalar(data: Any, column: str) -> int:
        if data is None:
            return 0
        if isinstance(data, list):
            if not data:
                return 0
            data = data[0]
        if isinstance(data, dict):
            return int(data.get(column) or 0)
        return int(data)
