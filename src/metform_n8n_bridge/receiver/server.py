from typing import Optional

import uvicorn
from fastapi import FastAPI
from loguru import logger

from metform_n8n_bridge import __version__
from metform_n8n_bridge.common.config import BridgeConfig
from metform_n8n_bridge.common.log import configure_logging
from metform_n8n_bridge.common.metrics import metrics, start_metrics_server
from metform_n8n_bridge.receiver.routes import router


def create_app(config: BridgeConfig) -> FastAPI:
    app = FastAPI(
        title="MetForm n8n Webhook Bridge",
        description="Forwards MetForm submissions to an n8n webhook",
        version=__version__,
    )

    app.include_router(router)

    @app.on_event("startup")
    async def startup_event():
        configure_logging(config.log_level)

        # Start metrics server if enabled
        if config.metrics.enabled:
            start_metrics_server(config.metrics.port, config.metrics.host)
            logger.info(
                f"Metrics server started on {config.metrics.host}:{config.metrics.port}"
            )

        metrics.up.labels(component="receiver").set(1)

        logger.info(f"MetForm n8n bridge started on {config.host}:{config.port}")
        if config.submission_token:
            logger.info("Submission endpoint requires X-Submission-Token")
        if not config.admin_token:
            logger.info("Settings API disabled (no admin token configured)")

    @app.on_event("shutdown")
    async def shutdown_event():
        metrics.up.labels(component="receiver").set(0)
        logger.info("MetForm n8n bridge shutting down")

    return app


def run_server(config: Optional[BridgeConfig] = None):
    if not config:
        from metform_n8n_bridge.receiver.app import get_app_config

        config = get_app_config()

    app = create_app(config)

    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level="info",
    )
