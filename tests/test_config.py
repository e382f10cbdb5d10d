from __future__ import annotations

import pytest

from timedsend.config import TransmitterSettings
from timedsend.scheduler import DEFAULT_POLL_INTERVAL


def test_defaults_without_environment() -> None:
    settings = TransmitterSettings.from_env({})

    assert settings.connect_timeout == pytest.approx(30.0)
    assert settings.response_timeout is None
    assert settings.poll_interval == pytest.approx(DEFAULT_POLL_INTERVAL)
    assert settings.verify_tls is False
    assert settings.read_size == 65536


def test_values_read_from_mapping() -> None:
    settings = TransmitterSettings.from_env(
        {
            "TIMEDSEND_CONNECT_TIMEOUT": "2.5",
            "TIMEDSEND_RESPONSE_TIMEOUT": "10",
            "TIMEDSEND_POLL_INTERVAL": "0.0005",
            "TIMEDSEND_VERIFY_TLS": "yes",
            "TIMEDSEND_READ_SIZE": "1024",
        }
    )

    assert settings.connect_timeout == pytest.approx(2.5)
    assert settings.response_timeout == pytest.approx(10.0)
    assert settings.poll_interval == pytest.approx(0.0005)
    assert settings.verify_tls is True
    assert settings.read_size == 1024


def test_values_read_from_process_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TIMEDSEND_CONNECT_TIMEOUT", "4")
    monkeypatch.delenv("TIMEDSEND_VERIFY_TLS", raising=False)

    settings = TransmitterSettings.from_env()

    assert settings.connect_timeout == pytest.approx(4.0)
    assert settings.verify_tls is False


@pytest.mark.parametrize(
    "name,value",
    [
        ("TIMEDSEND_CONNECT_TIMEOUT", "soon"),
        ("TIMEDSEND_CONNECT_TIMEOUT", "-1"),
        ("TIMEDSEND_POLL_INTERVAL", "0"),
        ("TIMEDSEND_VERIFY_TLS", "maybe"),
    ],
)
def test_invalid_values_name_the_variable(name: str, value: str) -> None:
    with pytest.raises(ValueError, match=name):
        TransmitterSettings.from_env({name: value})


def test_direct_construction_is_validated() -> None:
    with pytest.raises(ValueError):
        TransmitterSettings(response_timeout=0)
