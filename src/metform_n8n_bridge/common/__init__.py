"""Common utilities and models for the MetForm → n8n bridge."""

from metform_n8n_bridge.common.config import BridgeConfig, MetricsConfig
from metform_n8n_bridge.common.models import (
    ConfigurationError,
    OutboundPayload,
    SettingsUpdate,
    SubmissionEvent,
    WebhookSettings,
)
from metform_n8n_bridge.common.sanitize import sanitize_fields, sanitize_text
from metform_n8n_bridge.common.settings_store import (
    InMemorySettingsStore,
    SettingsStore,
    SettingsUpdateResult,
    YAMLSettingsStore,
    apply_settings_update,
    create_settings_store,
)
from metform_n8n_bridge.common.metrics import (
    MetricsRegistry,
    metrics,
    measure_time,
    start_metrics_server,
)

__all__ = [
    # Config
    "BridgeConfig",
    "MetricsConfig",
    # Models
    "ConfigurationError",
    "OutboundPayload",
    "SettingsUpdate",
    "SubmissionEvent",
    "WebhookSettings",
    # Sanitization
    "sanitize_fields",
    "sanitize_text",
    # Settings store
    "InMemorySettingsStore",
    "SettingsStore",
    "SettingsUpdateResult",
    "YAMLSettingsStore",
    "apply_settings_update",
    "create_settings_store",
    # Metrics
    "MetricsRegistry",
    "metrics",
    "measure_time",
    "start_metrics_server",
]
