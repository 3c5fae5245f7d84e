import asyncio
import json
import platform
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import aiohttp
from loguru import logger

from metform_n8n_bridge import __version__
from metform_n8n_bridge.common.metrics import measure_time, metrics
from metform_n8n_bridge.common.models import (
    ConfigurationError,
    FieldTree,
    OutboundPayload,
)
from metform_n8n_bridge.common.sanitize import sanitize_fields, sanitize_text
from metform_n8n_bridge.common.settings_store import SettingsStore

LOG_PREFIX = "[MetForm→n8n]"


def target_label(url: str) -> str:
    parsed_url = urlparse(url)
    return f"{parsed_url.netloc}{parsed_url.path}"


class WebhookForwarder:
    def __init__(
        self,
        settings_store: SettingsStore,
        site_url: str,
        debug: bool = False,
        timeout: int = 30,
        runtime_name: str = "Python",
        runtime_version: Optional[str] = None,
    ):
        self.settings_store = settings_store
        self.site_url = site_url
        self.debug = debug
        self.timeout = timeout
        self.user_agent = (
            f"MetForm-n8n-Webhook/{__version__} "
            f"{runtime_name}/{runtime_version or platform.python_version()}"
        )

    async def handle_submission(self, form_id: str, fields: FieldTree) -> None:
        """Forward one form submission to the configured webhook.

        Never raises: configuration problems, transport failures and remote
        rejections all end in a log entry.
        """
        metrics.submissions_total.inc()

        # Settings are read on every submission
        settings = self.settings_store.load()
        if not settings.enabled:
            metrics.delivery_skipped_total.labels(reason="disabled").inc()
            return

        try:
            settings.validate_delivery_config()
        except ConfigurationError as e:
            metrics.delivery_skipped_total.labels(reason="invalid_config").inc()
            self._log_error(str(e))
            return

        payload = self.build_payload(form_id, fields)
        await self.send_webhook(settings.webhook_url, settings.secret, payload)

    def build_payload(self, form_id: str, fields: FieldTree) -> OutboundPayload:
        return OutboundPayload(
            form_id=sanitize_text(form_id),
            fields=sanitize_fields(fields),
            timestamp=datetime.now().astimezone().isoformat(timespec="seconds"),
            site_url=self.site_url,
        )

    def build_headers(self, secret: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json; charset=utf-8",
            "X-Webhook-Secret": secret,
            "User-Agent": self.user_agent,
        }

    @measure_time(
        metrics.delivery_latency,
        lambda self, webhook_url, *args: {"target": target_label(webhook_url)},
    )
    async def send_webhook(
        self, webhook_url: str, secret: str, payload: OutboundPayload
    ) -> bool:
        """POST the payload once. Returns True only on HTTP 200."""
        target = target_label(webhook_url)
        context = payload.model_dump()
        try:
            body = json.dumps(context, allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            metrics.delivery_skipped_total.labels(reason="invalid_payload").inc()
            self._log_error(f"Payload is not valid JSON: {e}", context)
            return False

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    webhook_url,
                    headers=self.build_headers(secret),
                    data=body,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ssl=True,
                ) as response:
                    if response.status == 200:
                        metrics.delivery_total.labels(target=target).inc()
                        self._log_success("Webhook sent successfully", context)
                        return True

                    metrics.delivery_errors.labels(
                        target=target, status_code=response.status
                    ).inc()
                    response_text = await response.text(errors="replace")
                    self._log_error(
                        f"Unexpected response from webhook: {response.status}",
                        {"payload": context, "response_body": response_text},
                    )
                    return False
        except asyncio.TimeoutError:
            metrics.delivery_errors.labels(target=target, status_code="timeout").inc()
            self._log_error(
                f"Webhook request failed: timed out after {self.timeout}s", context
            )
        except aiohttp.ClientError as e:
            metrics.delivery_errors.labels(target=target, status_code="error").inc()
            self._log_error(f"Webhook request failed: {e}", context)

        return False

    def _log_error(self, message: str, context: Optional[Any] = None) -> None:
        logger.error(self._format(f"ERROR: {message}", context))

    def _log_success(self, message: str, context: Optional[Any] = None) -> None:
        # Success is only worth a log line in debug mode
        if self.debug:
            logger.info(self._format(f"SUCCESS: {message}", context))

    @staticmethod
    def _format(message: str, context: Optional[Any]) -> str:
        log_message = f"{LOG_PREFIX} {message}"
        if context:
            log_message += f" | Context: {json.dumps(context, ensure_ascii=False, default=str)}"
        return log_message
