import pytest

from fakebusters.utils.feature_flags import (
    FeatureFlagKey,
    audit_trail_enabled,
    board_events_enabled,
    get_feature_flags,
    is_feature_enabled,
    refresh_feature_flag_cache,
)

_ENV_FLAG_MAPPING = {
    "AUDIT_TRAIL_ENABLED": "audit_trail_enabled",
    "BOARD_EVENTS_ENABLED": "board_events_enabled",
}


def test_get_feature_flags_defaults_true():
    assert get_feature_flags() == {
        "audit_trail_enabled": True,
        "board_events_enabled": True,
    }
    assert audit_trail_enabled() is True
    assert board_events_enabled() is True


@pytest.mark.parametrize("env_name,flag_key", list(_ENV_FLAG_MAPPING.items()))
def test_individual_flag_disabled_via_env(monkeypatch, env_name: str, flag_key: FeatureFlagKey):
    monkeypatch.setenv(env_name, "off")
    refresh_feature_flag_cache()

    assert get_feature_flags()[flag_key] is False
    assert is_feature_enabled(flag_key) is False


@pytest.mark.parametrize("raw_value", ["maybe", "junk", "2"])
def test_invalid_value_falls_back_to_default(monkeypatch, raw_value):
    monkeypatch.setenv("BOARD_EVENTS_ENABLED", raw_value)
    refresh_feature_flag_cache()

    assert board_events_enabled() is True


def test_refresh_feature_flag_cache_forces_reload(monkeypatch):
    monkeypatch.setenv("AUDIT_TRAIL_ENABLED", "false")
    refresh_feature_flag_cache()
    assert audit_trail_enabled() is False

    # Stale until the cache is cleared
    monkeypatch.setenv("AUDIT_TRAIL_ENABLED", "true")
    assert audit_trail_enabled() is False

    refresh_feature_flag_cache()
    assert audit_trail_enabled() is True
