#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
commercetools API処理モジュール
Cart discount and order queries against the commerce platform
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from core.config import Config
from core.exceptions import CommerceAPIError
from core.utils import to_api_timestamp

logger = logging.getLogger(__name__)

MAX_DISCOUNT_LIMIT = 100
MAX_ORDER_LIMIT = 500
DISCOUNT_EXPANSION = 'lineItems[*].discountedPricePerQuantity[*].discountedPrice.includedDiscounts[*].discount'
HAS_DISCOUNTED_LINE_ITEM = 'lineItems(discountedPricePerQuantity is defined)'

# トークン期限の少し前に再取得
TOKEN_EXPIRY_MARGIN = 60


class CommercetoolsAPI:
    """commercetools APIクライアント

    Authenticates with the client-credentials flow and keeps the access
    token until shortly before it expires. One instance is shared by all
    requests; call ``close()`` on shutdown.
    """

    def __init__(self, project_key: str = None, client_id: str = None, client_secret: str = None,
                 auth_url: str = None, api_url: str = None, scope: str = None,
                 timeout: float = None, transport: httpx.BaseTransport = None):
        self.project_key = project_key or Config.CTP_PROJECT_KEY
        self.client_id = client_id or Config.CTP_CLIENT_ID
        self.client_secret = client_secret or Config.CTP_CLIENT_SECRET

        if not self.project_key or not self.client_id or not self.client_secret:
            raise ValueError("commercetools API credentials are not configured")

        self.auth_url = (auth_url or Config.CTP_AUTH_URL).rstrip('/')
        self.api_url = (api_url or Config.CTP_API_URL).rstrip('/')
        self.scope = scope if scope is not None else Config.CTP_SCOPE
        self.timeout = timeout or Config.HTTP_TIMEOUT

        self._client = httpx.Client(timeout=self.timeout, transport=transport)
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    def _get_access_token(self) -> str:
        """アクセストークンを取得"""
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        data = {'grant_type': 'client_credentials'}
        if self.scope:
            data['scope'] = self.scope

        try:
            response = self._client.post(
                f"{self.auth_url}/oauth/token",
                data=data,
                auth=(self.client_id, self.client_secret),
            )
        except httpx.HTTPError as e:
            raise CommerceAPIError(f"Token request failed: {e}") from e

        if response.status_code in (400, 401):
            raise CommerceAPIError(f"Authentication failed: {response.text}", response.status_code)
        if not response.is_success:
            raise CommerceAPIError(f"Unexpected status code from auth: {response.status_code}", response.status_code)

        try:
            payload = response.json()
            access_token = payload['access_token']
            expires_in = int(payload.get('expires_in', 172800))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise CommerceAPIError(f"Invalid token response: {e}") from e

        self._access_token = access_token
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
        logger.info("Obtained commercetools access token")
        return self._access_token

    def _get(self, path: str, params: Dict[str, Any] = None) -> Dict[str, Any]:
        url = f"{self.api_url}/{self.project_key}/{path}"
        headers = {'Authorization': f"Bearer {self._get_access_token()}"}

        try:
            response = self._client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"commercetools request failed: {path}: {e}")
            raise CommerceAPIError(f"Request failed: {e}") from e

        if response.status_code == 401:
            # 期限切れトークンは次回再取得
            self._access_token = None
            raise CommerceAPIError("Authentication failed", 401)
        if not response.is_success:
            raise CommerceAPIError(
                f"Unexpected status code {response.status_code} for {path}: {response.text}",
                response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise CommerceAPIError(f"Invalid response format: {e}") from e

    def get_discounts(self, active: Optional[bool] = None, limit: int = MAX_DISCOUNT_LIMIT,
                      expand: Optional[List[str]] = None, sort: Optional[List[str]] = None) -> Dict[str, Any]:
        """カートディスカウントの取得"""
        params: Dict[str, Any] = {'limit': min(max(int(limit), 1), MAX_DISCOUNT_LIMIT)}
        if active is not None:
            params['where'] = f"isActive={'true' if active else 'false'}"
        if expand:
            params['expand'] = list(expand)
        if sort:
            params['sort'] = list(sort)

        logger.info(f"Fetching cart discounts: {params}")
        body = self._get('cart-discounts', params)
        logger.info(f"Fetched {len(body.get('results', []))} discounts")
        return body

    def get_orders(self, start: Optional[datetime] = None, end: Optional[datetime] = None,
                   with_discounts: bool = False, expand_discounts: bool = False,
                   limit: int = MAX_ORDER_LIMIT) -> Dict[str, Any]:
        """注文データの検索 (newest first)"""
        predicates = []
        if with_discounts:
            predicates.append(HAS_DISCOUNTED_LINE_ITEM)
        if start is not None:
            predicates.append(f'createdAt >= "{to_api_timestamp(start)}"')
        if end is not None:
            predicates.append(f'createdAt < "{to_api_timestamp(end)}"')

        params: Dict[str, Any] = {
            'limit': min(max(int(limit), 1), MAX_ORDER_LIMIT),
            'sort': 'createdAt desc',
        }
        if predicates:
            params['where'] = ' and '.join(predicates)
        if expand_discounts:
            params['expand'] = DISCOUNT_EXPANSION

        logger.info(f"Fetching orders: {params.get('where', 'all')}")
        body = self._get('orders', params)
        logger.info(f"Fetched {len(body.get('results', []))} orders")
        return body

    def get_order(self, order_id: str) -> Dict[str, Any]:
        """注文の詳細情報を取得"""
        return self._get(f"orders/{order_id}")

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
