import pytest

from signal_relay.config import RelaySettings


def test_defaults_from_empty_environment():
    settings = RelaySettings.from_env({})
    assert settings.port == 3030
    assert settings.token is None
    assert settings.max_connections == 50
    assert settings.cors_origins == ["*"]
    assert settings.join_broadcast_full_table is False


def test_values_from_environment():
    settings = RelaySettings.from_env(
        {
            "PORT": "4000",
            "RELAY_TOKEN": "secret",
            "MAX_CONNECTIONS": "3",
            "RATE_LIMIT_MAX_ATTEMPTS": "5",
            "RATE_LIMIT_WINDOW_S": "1.5",
            "JOIN_BROADCAST_FULL_TABLE": "true",
            "CORS_ORIGINS": "https://a.example, https://b.example",
            "LOG_LEVEL": "DEBUG",
        }
    )
    assert settings.port == 4000
    assert settings.token == "secret"
    assert settings.max_connections == 3
    assert settings.rate_limit_max_attempts == 5
    assert settings.rate_limit_window_s == 1.5
    assert settings.join_broadcast_full_table is True
    assert settings.cors_origins == ["https://a.example", "https://b.example"]
    assert settings.log_level == "debug"


def test_invalid_number_raises():
    with pytest.raises(ValueError):
        RelaySettings.from_env({"MAX_CONNECTIONS": "many"})
