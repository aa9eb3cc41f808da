#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
データベース接続管理モジュール
Supabase (warehouse) client initialisation
"""

import logging
from typing import Optional
from supabase import create_client, Client
from .config import Config

logger = logging.getLogger(__name__)


class Database:
    """データベース接続管理クラス

    Built once by the application lifespan and handed to the warehouse
    client; nothing in the package holds a module-level connection.
    """

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None):
        self.url = url if url is not None else Config.SUPABASE_URL
        self.key = key if key is not None else Config.SUPABASE_KEY
        self._client: Optional[Client] = None

    def get_client(self) -> Optional[Client]:
        """Supabaseクライアントを取得"""
        if self._client is None:
            self._client = self._initialize_client()
        return self._client

    def _initialize_client(self) -> Optional[Client]:
        try:
            if not self.url or not self.key:
                logger.warning("Supabase credentials are not configured")
                return None

            client = create_client(self.url, self.key)
            logger.info(f"Supabase client initialised: {self.url}")
            return client

        except Exception as e:
            logger.error(f"Failed to initialise Supabase client: {e}")
            return None

    def test_connection(self, table: Optional[str] = None) -> bool:
        """データベース接続をテスト"""
        client = self.get_client()
        if not client:
            return False

        try:
            client.table(table or Config.WAREHOUSE_TABLE).select("discount_id").limit(1).execute()
            return True
        except Exception as e:
            logger.error(f"Warehouse connection test failed: {e}")
            return False
