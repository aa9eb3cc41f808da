#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
割引分析ダッシュボード - メインアプリケーション
Discount Analytics Dashboard API
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from core.config import Config, setup_logging
from core.database import Database
from core.exceptions import DashboardError
from core.utils import now_in_timezone
from api.commercetools_api import CommercetoolsAPI
from api.warehouse import WarehouseClient
from analytics.dashboard_api import error_response, router

logger = logging.getLogger(__name__)


def _build_commerce_client():
    try:
        return CommercetoolsAPI()
    except ValueError as e:
        logger.warning(f"Commerce API client not created: {e}")
        return None


def _build_warehouse_client():
    return WarehouseClient(Database().get_client())


def create_app(commerce_client=None, warehouse_client=None) -> FastAPI:
    """アプリケーションの作成

    Clients passed in are used as they are; missing ones are built on
    startup and the ones built here are closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            Config.validate_required_env()
        except ValueError as e:
            logger.warning(f"Starting with incomplete configuration: {e}")

        owned = []
        if app.state.commerce_client is None:
            app.state.commerce_client = _build_commerce_client()
            if app.state.commerce_client is not None:
                owned.append(app.state.commerce_client)
        if app.state.warehouse_client is None:
            app.state.warehouse_client = _build_warehouse_client()

        logger.info(f"{Config.APP_NAME} {Config.APP_VERSION} started (timezone {Config.DASHBOARD_TIMEZONE})")
        try:
            yield
        finally:
            for client in owned:
                client.close()
            logger.info("Clients closed")

    app = FastAPI(
        title=Config.APP_NAME,
        version=Config.APP_VERSION,
        description="Read-only analytics over commerce orders and cart discounts",
        lifespan=lifespan,
    )
    app.state.commerce_client = commerce_client
    app.state.warehouse_client = warehouse_client

    # CORS設定
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(DashboardError)
    async def dashboard_error_handler(request: Request, exc: DashboardError):
        logger.error(f"Unhandled dashboard error on {request.url.path}: {exc}")
        return error_response("Request failed", exc)

    @app.get("/health")
    async def health_check():
        """ヘルスチェック"""
        return {
            "status": "healthy",
            "commerce_client": app.state.commerce_client is not None,
            "warehouse_configured": Config.is_warehouse_available(),
            "timezone": Config.DASHBOARD_TIMEZONE,
            "timestamp": now_in_timezone().isoformat(),
            "version": Config.APP_VERSION,
        }

    app.include_router(router)
    return app


setup_logging()
app = create_app()


# アプリケーションの起動
if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting {Config.APP_NAME} on port {Config.PORT}")
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=Config.PORT,
        reload=False,
        access_log=True
    )
