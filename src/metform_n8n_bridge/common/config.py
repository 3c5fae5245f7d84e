import platform
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MetricsConfig(BaseModel):
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 9090
    path: str = "/metrics"


class BridgeConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        env_prefix="METFORM_N8N_",
        extra="ignore",
    )

    log_level: str = "INFO"
    debug: bool = False  # gates success logging
    site_url: str
    host: str = "0.0.0.0"
    port: int = 8000
    settings_file: str = "settings.yaml"
    request_timeout: int = 30  # seconds
    runtime_name: str = "Python"
    runtime_version: str = Field(default_factory=platform.python_version)
    submission_token: Optional[str] = None
    admin_token: Optional[str] = None
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
