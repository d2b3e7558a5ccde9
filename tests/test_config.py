import pytest

from release_gate.config import GateSettings, load_settings


def test_defaults_when_environment_empty():
    settings = load_settings({})
    assert settings == GateSettings()
    assert settings.fails_open is True
    assert settings.release_hour_minute == (8, 0)
    assert settings.anchor == "utc"


def test_environment_overrides():
    settings = load_settings(
        {
            "RELEASE_GATE_FAIL_POLICY": "Closed",
            "RELEASE_GATE_RELEASE_TIME": "07:45",
            "RELEASE_GATE_LOCALE": "de",
            "RELEASE_GATE_ANCHOR": "student",
        }
    )
    assert settings.fails_open is False
    assert settings.release_hour_minute == (7, 45)
    assert settings.locale == "de"
    assert settings.anchor == "student"


def test_reads_os_environ(monkeypatch):
    monkeypatch.setenv("RELEASE_GATE_FAIL_POLICY", "closed")
    monkeypatch.delenv("RELEASE_GATE_RELEASE_TIME", raising=False)
    assert load_settings().fail_policy == "closed"


@pytest.mark.parametrize(
    "env",
    [
        {"RELEASE_GATE_FAIL_POLICY": "sometimes"},
        {"RELEASE_GATE_RELEASE_TIME": "25:00"},
        {"RELEASE_GATE_RELEASE_TIME": "eight"},
        {"RELEASE_GATE_ANCHOR": "moon"},
    ],
)
def test_invalid_values_raise(env):
    with pytest.raises(RuntimeError):
        load_settings(env)
