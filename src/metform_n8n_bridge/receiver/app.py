import json
import sys
from pathlib import Path
from typing import Optional

import click
import yaml
from loguru import logger

from metform_n8n_bridge.common.config import BridgeConfig
from metform_n8n_bridge.common.log import configure_logging
from metform_n8n_bridge.common.models import SettingsUpdate
from metform_n8n_bridge.common.settings_store import (
    SettingsStore,
    apply_settings_update,
    create_settings_store,
)
from metform_n8n_bridge.forwarder.client import WebhookForwarder
from metform_n8n_bridge.receiver.server import run_server


_app_config: Optional[BridgeConfig] = None
_settings_store: Optional[SettingsStore] = None
_forwarder: Optional[WebhookForwarder] = None


def get_app_config() -> BridgeConfig:
    global _app_config
    if not _app_config:
        raise RuntimeError("Application config not initialized")
    return _app_config


def get_settings_store() -> SettingsStore:
    global _settings_store
    if not _settings_store:
        raise RuntimeError("Settings store not initialized")
    return _settings_store


def get_forwarder() -> WebhookForwarder:
    global _forwarder
    if not _forwarder:
        raise RuntimeError("Forwarder not initialized")
    return _forwarder


def load_config_from_file(config_path: str) -> BridgeConfig:
    """Load configuration from a YAML file, with env overrides for unset keys."""
    file_path = Path(config_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(file_path, "r") as f:
        config_data = yaml.safe_load(f)

    return BridgeConfig(**(config_data or {}))


def setup_app(config: BridgeConfig):
    """Initialize the application with the given config."""
    global _app_config, _settings_store, _forwarder

    configure_logging(config.log_level)

    _settings_store = create_settings_store(config)

    _forwarder = WebhookForwarder(
        settings_store=_settings_store,
        site_url=config.site_url,
        debug=config.debug,
        timeout=config.request_timeout,
        runtime_name=config.runtime_name,
        runtime_version=config.runtime_version,
    )

    _app_config = config

    logger.info("MetForm n8n bridge initialized")
    logger.info(f"Site URL: {config.site_url}")


@click.group()
def cli():
    """MetForm → n8n Webhook Bridge CLI"""
    pass


@cli.command("serve")
@click.option(
    "--config",
    "-c",
    required=True,
    help="Path to configuration file",
)
def serve(config: str):
    """Start the bridge server."""
    try:
        config_obj = load_config_from_file(config)
        setup_app(config_obj)
        run_server(config_obj)
    except Exception as e:
        logger.error(f"Failed to start bridge: {e}")
        sys.exit(1)


@cli.group("settings")
def settings_group():
    """Inspect or change the webhook settings."""
    pass


@settings_group.command("show")
@click.option("--config", "-c", required=True, help="Path to configuration file")
def settings_show(config: str):
    """Print the stored settings with the secret masked."""
    try:
        store = create_settings_store(load_config_from_file(config))
        click.echo(json.dumps(store.load().masked(), indent=2))
    except Exception as e:
        logger.error(f"Failed to read settings: {e}")
        sys.exit(1)


@settings_group.command("set")
@click.option("--config", "-c", required=True, help="Path to configuration file")
@click.option("--enable/--disable", "enabled", default=None, help="Toggle forwarding")
@click.option("--webhook-url", default=None, help="HTTPS webhook URL")
@click.option("--secret", default=None, help="Shared secret (min 12 chars)")
def settings_set(
    config: str,
    enabled: Optional[bool],
    webhook_url: Optional[str],
    secret: Optional[str],
):
    """Validate and store new settings; rejected values keep their old value."""
    try:
        store = create_settings_store(load_config_from_file(config))
        result = apply_settings_update(
            store,
            SettingsUpdate(enabled=enabled, webhook_url=webhook_url, secret=secret),
        )
    except Exception as e:
        logger.error(f"Failed to update settings: {e}")
        sys.exit(1)

    for error in result.errors:
        click.echo(f"Error: {error}", err=True)
    click.echo(json.dumps(result.settings.masked(), indent=2))
    if result.errors:
        sys.exit(1)


if __name__ == "__main__":
    cli()
