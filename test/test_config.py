import pytest

from peercall.core.config import ServerConfig, DEFAULT_STUN_URLS


def test_defaults_use_public_stun_servers(monkeypatch):
    monkeypatch.delenv("TURN_ADDRESS", raising=False)
    monkeypatch.delenv("PEERCALL_STUN_URLS", raising=False)
    config = ServerConfig()

    assert config.poll_interval == 1.0
    assert len(config.rtc_config.iceServers) == 1
    assert config.rtc_config.iceServers[0].urls == DEFAULT_STUN_URLS


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PEERCALL_PORT", "9000")
    monkeypatch.setenv("PEERCALL_POLL_INTERVAL", "0.5")
    monkeypatch.setenv("PEERCALL_ROOM_IDLE_TIMEOUT", "0")
    monkeypatch.setenv("PEERCALL_CORS_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("PEERCALL_SIGNALING_URL", "http://coordinator:8080/")

    config = ServerConfig()

    assert config.port == 9000
    assert config.poll_interval == 0.5
    assert config.room_idle_timeout == 0
    assert config.cors_origins == ["http://a.test", "http://b.test"]
    assert config.signaling_url == "http://coordinator:8080"


def test_turn_server_added_when_configured(monkeypatch):
    monkeypatch.setenv("TURN_ADDRESS", "relay.example.com:3478?transport=udp")
    monkeypatch.setenv("TURN_USERNAME", "u")
    monkeypatch.setenv("TURN_PASSWORD", "p")

    servers = ServerConfig().rtc_config.iceServers

    assert len(servers) == 2
    assert servers[1].urls == "turn:relay.example.com:3478?transport=udp"
    assert servers[1].username == "u"
    assert servers[1].credential == "p"


def test_non_positive_poll_interval_rejected():
    with pytest.raises(ValueError):
        ServerConfig(poll_interval=0)
