#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
設定管理モジュール
Environment loading and application settings
"""

import os
import logging
from dotenv import load_dotenv

# 環境変数の読み込み
load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """アプリケーション設定"""

    # commercetools API設定
    CTP_PROJECT_KEY = os.getenv('CTP_PROJECT_KEY', '')
    CTP_AUTH_URL = os.getenv('CTP_AUTH_URL', 'https://auth.australia-southeast1.gcp.commercetools.com')
    CTP_API_URL = os.getenv('CTP_API_URL', 'https://api.australia-southeast1.gcp.commercetools.com')
    CTP_CLIENT_ID = os.getenv('CTP_CLIENT_ID', '')
    CTP_CLIENT_SECRET = os.getenv('CTP_CLIENT_SECRET', '')
    CTP_SCOPE = os.getenv('CTP_SCOPE', '')

    # Supabase (warehouse) 設定
    SUPABASE_URL = os.getenv('SUPABASE_URL')
    SUPABASE_KEY = os.getenv('SUPABASE_KEY')
    WAREHOUSE_TABLE = os.getenv('WAREHOUSE_TABLE', 'discount_budget_usage')
    WAREHOUSE_DEDUPE_ROWS = _env_bool('WAREHOUSE_DEDUPE_ROWS', True)

    # ダッシュボード設定
    DASHBOARD_TIMEZONE = os.getenv('DASHBOARD_TIMEZONE', 'Australia/Sydney')
    DEFAULT_CURRENCY = os.getenv('DEFAULT_CURRENCY', 'AUD')
    HTTP_TIMEOUT = float(os.getenv('HTTP_TIMEOUT', '30'))
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    PORT = int(os.getenv('PORT', '8080'))

    # アプリケーション設定
    APP_NAME = "Discount Analytics Dashboard API"
    APP_VERSION = "1.0.0"

    @classmethod
    def validate_required_env(cls):
        """必須環境変数の検証"""
        required = {
            'CTP_PROJECT_KEY': cls.CTP_PROJECT_KEY,
            'CTP_CLIENT_ID': cls.CTP_CLIENT_ID,
            'CTP_CLIENT_SECRET': cls.CTP_CLIENT_SECRET,
            'SUPABASE_URL': cls.SUPABASE_URL,
            'SUPABASE_KEY': cls.SUPABASE_KEY,
        }

        missing = [key for key, value in required.items() if not value]

        if missing:
            error_msg = f"Required environment variables are not set: {', '.join(missing)}"
            logger.error(error_msg)
            raise ValueError(error_msg)

        return True

    @classmethod
    def is_warehouse_available(cls) -> bool:
        """Supabase warehouse credentials are present"""
        return bool(cls.SUPABASE_URL and cls.SUPABASE_KEY)


def setup_logging():
    """Configure logging settings"""
    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
