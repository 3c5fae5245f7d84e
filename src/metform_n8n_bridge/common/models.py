from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

MIN_SECRET_LENGTH = 12

FieldTree = Union[Dict[str, Any], List[Any]]


class ConfigurationError(ValueError):
    """Raised when the stored webhook settings cannot be used for delivery."""


def is_well_formed_url(url: str) -> bool:
    if not url or any(ch.isspace() for ch in url):
        return False
    try:
        parsed = urlparse(url)
        # Accessing port validates it
        parsed.port
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc and parsed.hostname)


class WebhookSettings(BaseModel):
    enabled: bool = False
    webhook_url: str = ""
    secret: str = ""

    def validate_delivery_config(self) -> None:
        """Re-check the stored settings right before a delivery.

        The checks run in a fixed order and the first failing one wins.
        """
        if not self.webhook_url or not self.secret:
            raise ConfigurationError(
                "Invalid configuration: missing webhook URL or secret"
            )
        if not is_well_formed_url(self.webhook_url):
            raise ConfigurationError(
                "Invalid configuration: webhook URL is not a valid URL"
            )
        if not self.webhook_url.startswith("https://"):
            raise ConfigurationError("Webhook URL must use HTTPS for security")
        if len(self.secret) < MIN_SECRET_LENGTH:
            raise ConfigurationError(
                f"Secret must be at least {MIN_SECRET_LENGTH} characters long"
            )

    def masked(self) -> Dict[str, Any]:
        data = self.model_dump()
        if self.secret:
            data["secret"] = "*" * 8
        return data


class SettingsUpdate(BaseModel):
    enabled: Optional[bool] = None
    webhook_url: Optional[str] = None
    secret: Optional[str] = None


class SubmissionEvent(BaseModel):
    form_id: str = ""
    fields: FieldTree = Field(default_factory=dict)


class OutboundPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    form_id: str
    fields: Any
    timestamp: str
    site_url: str
