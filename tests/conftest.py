from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from metform_n8n_bridge.common.config import BridgeConfig
from metform_n8n_bridge.common.models import WebhookSettings
from metform_n8n_bridge.common.settings_store import InMemorySettingsStore
from metform_n8n_bridge.forwarder.client import WebhookForwarder
from metform_n8n_bridge.receiver.server import create_app


VALID_URL = "https://n8n.example.com/hook"
VALID_SECRET = "abcdefghijkl"


def make_mock_session(status=200, text="OK", post_side_effect=None):
    """Build a mock aiohttp.ClientSession usable in nested ``async with`` blocks."""
    body = text.encode("utf-8") if isinstance(text, str) else text

    async def read_text(encoding=None, errors="strict"):
        return body.decode(encoding or "utf-8", errors)

    response = MagicMock()
    response.status = status
    response.text = AsyncMock(side_effect=read_text)

    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=response)
    cm.__aexit__ = AsyncMock(return_value=None)

    session = MagicMock()
    session.post = MagicMock(return_value=cm, side_effect=post_side_effect)
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    return session


@pytest.fixture
def mock_session_factory():
    """Fixture that provides the mock aiohttp session builder."""
    return make_mock_session


@pytest.fixture
def valid_settings():
    """Fixture that provides enabled settings that pass delivery validation."""
    return WebhookSettings(enabled=True, webhook_url=VALID_URL, secret=VALID_SECRET)


@pytest.fixture
def settings_store(valid_settings):
    """Fixture that provides an in-memory settings store with valid settings."""
    return InMemorySettingsStore(valid_settings)


@pytest.fixture
def bridge_config(tmp_path):
    """Fixture that provides a sample bridge configuration."""
    return BridgeConfig(
        log_level="INFO",
        site_url="https://forms.example.org",
        settings_file=str(tmp_path / "settings.yaml"),
        runtime_name="WordPress",
        runtime_version="6.5",
        admin_token="admin-token-123",
    )


@pytest.fixture
def forwarder(settings_store, bridge_config):
    """Fixture that provides a webhook forwarder backed by the in-memory store."""
    return WebhookForwarder(
        settings_store=settings_store,
        site_url=bridge_config.site_url,
        debug=False,
        timeout=bridge_config.request_timeout,
        runtime_name=bridge_config.runtime_name,
        runtime_version=bridge_config.runtime_version,
    )


@pytest.fixture
def mock_forwarder():
    """Fixture that provides a forwarder double recording submissions."""
    mock = MagicMock(spec=WebhookForwarder)
    mock.handle_submission = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def receiver_app(bridge_config, settings_store, mock_forwarder):
    """Fixture that provides a configured receiver FastAPI app."""
    with patch(
        "metform_n8n_bridge.receiver.app.get_app_config"
    ) as mock_get_config, patch(
        "metform_n8n_bridge.receiver.app.get_settings_store"
    ) as mock_get_store, patch(
        "metform_n8n_bridge.receiver.app.get_forwarder"
    ) as mock_get_forwarder:
        mock_get_config.return_value = bridge_config
        mock_get_store.return_value = settings_store
        mock_get_forwarder.return_value = mock_forwarder
        app = create_app(bridge_config)
        yield app


@pytest.fixture
def receiver_client(receiver_app):
    """Fixture that provides a test client for the receiver API."""
    return TestClient(receiver_app)
