"""Forwarder component: delivers submissions to the webhook endpoint."""

from metform_n8n_bridge.forwarder.client import WebhookForwarder, target_label

__all__ = [
    "WebhookForwarder",
    "target_label",
]
