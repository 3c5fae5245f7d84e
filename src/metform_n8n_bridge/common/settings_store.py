import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, NamedTuple, Optional

import yaml
from loguru import logger
from pydantic import ValidationError

from metform_n8n_bridge.common.config import BridgeConfig
from metform_n8n_bridge.common.models import (
    MIN_SECRET_LENGTH,
    SettingsUpdate,
    WebhookSettings,
    is_well_formed_url,
)
from metform_n8n_bridge.common.sanitize import sanitize_text


class SettingsStore(ABC):
    @abstractmethod
    def load(self) -> WebhookSettings:
        pass

    @abstractmethod
    def save(self, settings: WebhookSettings) -> None:
        pass


class InMemorySettingsStore(SettingsStore):
    def __init__(self, settings: Optional[WebhookSettings] = None):
        self._settings = settings or WebhookSettings()

    def load(self) -> WebhookSettings:
        return self._settings.model_copy()

    def save(self, settings: WebhookSettings) -> None:
        self._settings = settings.model_copy()


class YAMLSettingsStore(SettingsStore):
    """Settings kept in a YAML file, re-read on every load."""

    def __init__(self, path: str):
        self.path = Path(path)
        logger.info(f"Using settings file {self.path}")

    def load(self) -> WebhookSettings:
        if not self.path.exists():
            return WebhookSettings()

        try:
            with open(self.path, "r") as f:
                data = yaml.safe_load(f)
            return WebhookSettings.model_validate(data or {})
        except (yaml.YAMLError, ValidationError) as e:
            # Unreadable settings keep forwarding disabled
            logger.error(f"Invalid settings file {self.path}, using defaults: {e}")
            return WebhookSettings()

    def save(self, settings: WebhookSettings) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(settings.model_dump(), f, default_flow_style=False)
            os.replace(tmp_path, self.path)
        except Exception:
            os.unlink(tmp_path)
            raise
        logger.debug(f"Saved settings to {self.path}")


def create_settings_store(config: BridgeConfig) -> SettingsStore:
    return YAMLSettingsStore(config.settings_file)


class SettingsUpdateResult(NamedTuple):
    settings: WebhookSettings
    errors: List[str]


def apply_settings_update(
    store: SettingsStore, update: SettingsUpdate
) -> SettingsUpdateResult:
    """Validate and persist a settings write.

    A rejected field keeps its previously stored value; the remaining
    fields of the same update are still saved.
    """
    current = store.load()
    changes = {}
    errors = []

    if update.enabled is not None:
        changes["enabled"] = update.enabled

    if update.webhook_url is not None:
        url = update.webhook_url.strip()
        if url and not (url.startswith("https://") and is_well_formed_url(url)):
            errors.append("Webhook URL must use HTTPS for security.")
        else:
            changes["webhook_url"] = url

    if update.secret is not None:
        secret = sanitize_text(update.secret)
        if secret and len(secret) < MIN_SECRET_LENGTH:
            errors.append(
                f"Secret must be at least {MIN_SECRET_LENGTH} characters long for security."
            )
        else:
            changes["secret"] = secret

    settings = current.model_copy(update=changes)
    store.save(settings)

    for error in errors:
        logger.warning(f"Rejected settings change: {error}")

    return SettingsUpdateResult(settings=settings, errors=errors)
