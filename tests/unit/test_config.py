"""Tests for configuration loading."""

from lumi.config import load_config
from lumi.store import InMemoryRecordStore, get_store
from lumi.transports import get_transport
from lumi.transports.redis import RedisTransport


def test_load_config_from_yaml(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
environment: production
transport:
  backend: redis
  redis:
    host: testhost
    port: 1234
alerts:
  base: [desk@example.com]
  manager: [boss@example.com]
backoff:
  initial: 0.5
"""
    )
    monkeypatch.setenv("LUMI_CONFIG", str(config_path))

    config = load_config()
    assert config.is_production
    assert config.transport.backend == "redis"
    assert config.transport.redis.host == "testhost"
    assert config.transport.redis.port == 1234
    assert config.alerts.base == ["desk@example.com"]
    assert config.alerts.manager == ["boss@example.com"]
    assert config.alerts.secondary == ["wellness@aro-ha.com"]
    assert config.backoff.initial == 0.5


def test_defaults_without_config_file():
    config = load_config()
    assert config.environment == "development"
    assert config.transport.backend == "inmemory"
    assert config.store == "inmemory"
    assert config.database_url is None
    assert isinstance(get_store(config), InMemoryRecordStore)


def test_env_overrides_yaml(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("transport:\n  backend: redis\n")
    monkeypatch.setenv("LUMI_CONFIG", str(config_path))
    monkeypatch.setenv("LUMI_TRANSPORT", "InMemory")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///tmp/lumi.db")
    monkeypatch.setenv("ELEVENLABS_WEBHOOK_SECRET", "shh")
    monkeypatch.setenv("URGENT_ALERT_EMAIL", "gm@example.com")

    config = load_config()
    assert config.transport.backend == "inmemory"
    assert config.database_url == "sqlite:///tmp/lumi.db"
    assert config.webhook_secret == "shh"
    assert config.alerts.manager == ["gm@example.com"]


def test_airtable_key_selects_airtable_store(monkeypatch):
    monkeypatch.setenv("AIRTABLE_API_KEY", "key123")
    monkeypatch.setenv("AIRTABLE_BASE_ID", "appKnowledge")
    monkeypatch.setenv("AIRTABLE_MASTER_GUEST_BASE_ID", "appGuests")

    config = load_config()
    assert config.store == "airtable"
    assert config.airtable.api_key == "key123"
    assert config.airtable.ai_knowledge_base_id == "appKnowledge"
    assert config.airtable.master_guest_base_id == "appGuests"


def test_get_transport_uses_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
transport:
  backend: redis
  redis:
    host: confighost
    port: 6380
"""
    )
    monkeypatch.setenv("LUMI_CONFIG", str(config_path))

    transport = get_transport()
    assert isinstance(transport, RedisTransport)
    assert transport.host == "confighost"
    assert transport.port == 6380
