"""Receiver component: inbound submissions, settings API and CLI."""

from metform_n8n_bridge.receiver.app import (
    cli,
    get_app_config,
    get_forwarder,
    get_settings_store,
    load_config_from_file,
    setup_app,
)
from metform_n8n_bridge.receiver.server import create_app, run_server

__all__ = [
    "get_app_config",
    "get_forwarder",
    "get_settings_store",
    "load_config_from_file",
    "setup_app",
    "cli",
    "create_app",
    "run_server",
]
