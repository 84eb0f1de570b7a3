from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_BACKOFF_BASE,
    DEFAULT_BACKOFF_CAP,
    DEFAULT_BACKOFF_INITIAL,
    DEFAULT_STEP_TIMEOUT_SECONDS,
)


class RedisConfig(BaseModel):
    """Configuration for Redis transport."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    key_prefix: str = "lumi"


class TransportConfig(BaseModel):
    """Transport configuration settings."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    redis: RedisConfig = Field(default_factory=RedisConfig)


class BackoffConfig(BaseModel):
    base: float = DEFAULT_BACKOFF_BASE
    initial: float = DEFAULT_BACKOFF_INITIAL
    cap: float = DEFAULT_BACKOFF_CAP


class AnalysisConfig(BaseModel):
    """Settings for the transcript extraction agent."""

    model: str = "google-gla:gemini-2.0-flash"
    timeout_seconds: float = DEFAULT_STEP_TIMEOUT_SECONDS


class AlertConfig(BaseModel):
    """Recipient lists for staff alerts, escalating with severity."""

    base: list[str] = Field(default_factory=lambda: ["alerts@aro-ha.com"])
    secondary: list[str] = Field(default_factory=lambda: ["wellness@aro-ha.com"])
    manager: list[str] = Field(default_factory=lambda: ["manager@aro-ha.com"])
    reservations: str = "reservations@aro-ha.com"
    spa: str = "spa@aro-ha.com"
    dashboard_url: str = "https://lumi.aro-ha.com"
    audit_log_path: Optional[str] = None


class EmailConfig(BaseModel):
    resend_api_key: Optional[str] = None
    from_email: str = "Lumi <lumi@aro-ha.com>"
    alerts_from_email: str = "Lumi Alerts <alerts@aro-ha.com>"
    base_url: str = "https://api.resend.com"
    timeout_seconds: float = 10.0


class AirtableConfig(BaseModel):
    """Airtable bases and tables backing the record store."""

    api_key: Optional[str] = None
    base_url: str = "https://api.airtable.com/v0"
    ai_knowledge_base_id: Optional[str] = None
    master_guest_base_id: Optional[str] = None
    current_retreat_base_id: Optional[str] = None
    checkin_table: str = "CHECKIN_ENTRIES"
    guests_table: str = "Guests"
    rooms_table: str = "Rooms"
    treatments_table: str = "Treatments"
    menu_table: str = "Menu"
    timeout_seconds: float = DEFAULT_STEP_TIMEOUT_SECONDS


class LumiConfig(BaseModel):
    """Top-level configuration model."""

    environment: Literal["development", "production", "test"] = "development"
    transport: TransportConfig = Field(default_factory=TransportConfig)
    database_url: Optional[str] = None
    store: Literal["inmemory", "airtable"] = "inmemory"
    webhook_secret: Optional[str] = None
    step_timeout_seconds: float = DEFAULT_STEP_TIMEOUT_SECONDS
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    alerts: AlertConfig = Field(default_factory=AlertConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    airtable: AirtableConfig = Field(default_factory=AirtableConfig)

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _apply_env_overrides(config: LumiConfig) -> LumiConfig:
    env = os.environ

    if env.get("LUMI_ENV"):
        config.environment = env["LUMI_ENV"]  # type: ignore[assignment]
    if env.get("LUMI_TRANSPORT"):
        config.transport.backend = env["LUMI_TRANSPORT"].lower()  # type: ignore[assignment]

    env_db_url = env.get("LUMI_DATABASE_URL") or env.get("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url

    if env.get("ELEVENLABS_WEBHOOK_SECRET"):
        config.webhook_secret = env["ELEVENLABS_WEBHOOK_SECRET"]
    if env.get("LUMI_ANALYSIS_MODEL"):
        config.analysis.model = env["LUMI_ANALYSIS_MODEL"]

    if env.get("RESEND_API_KEY"):
        config.email.resend_api_key = env["RESEND_API_KEY"]
    if env.get("RESEND_FROM_EMAIL"):
        config.email.from_email = env["RESEND_FROM_EMAIL"]
        config.email.alerts_from_email = env["RESEND_FROM_EMAIL"]

    if env.get("ALERT_EMAIL"):
        config.alerts.base = [env["ALERT_EMAIL"]]
    if env.get("HIGH_ALERT_EMAIL"):
        config.alerts.secondary = [env["HIGH_ALERT_EMAIL"]]
    if env.get("URGENT_ALERT_EMAIL"):
        config.alerts.manager = [env["URGENT_ALERT_EMAIL"]]

    airtable = config.airtable
    if env.get("AIRTABLE_API_KEY"):
        airtable.api_key = env["AIRTABLE_API_KEY"]
        config.store = "airtable"
    if env.get("AIRTABLE_BASE_ID"):
        airtable.ai_knowledge_base_id = env["AIRTABLE_BASE_ID"]
    if env.get("AIRTABLE_TABLE_ID"):
        airtable.checkin_table = env["AIRTABLE_TABLE_ID"]
    if env.get("AIRTABLE_MASTER_GUEST_BASE_ID"):
        airtable.master_guest_base_id = env["AIRTABLE_MASTER_GUEST_BASE_ID"]
    if env.get("AIRTABLE_CURRENT_RETREAT_BASE_ID"):
        airtable.current_retreat_base_id = env["AIRTABLE_CURRENT_RETREAT_BASE_ID"]
    return config


def load_config(path: Optional[str] = None) -> LumiConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to LUMI_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("LUMI_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = LumiConfig(**data)
    else:
        config = LumiConfig()

    return _apply_env_overrides(config)
