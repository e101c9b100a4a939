import pytest

from vi_engine.config import Settings, load_settings


def test_defaults():
    settings = load_settings(environ={})

    assert settings == Settings()
    assert settings.api_base_url == "http://localhost:8000"
    assert settings.snapshot_limit == 4
    assert settings.tile_window_days == 30
    assert settings.fit_padding == (20, 20)


def test_environment_values_are_coerced():
    settings = load_settings(environ={
        "FIELDWATCH_API_BASE": "https://api.example",
        "FIELDWATCH_REQUEST_TIMEOUT": "12.5",
        "FIELDWATCH_SNAPSHOT_LIMIT": "6",
        "FIELDWATCH_FIT_PADDING": "10, 30",
        "FIELDWATCH_API_TOKEN": "abc",
    })

    assert settings.api_base_url == "https://api.example"
    assert settings.request_timeout == 12.5
    assert settings.snapshot_limit == 6
    assert settings.fit_padding == (10, 30)
    assert settings.api_token == "abc"


def test_overrides_win_over_environment_and_unknown_keys_ignored():
    settings = load_settings(
        overrides={"tile_window_days": 14, "label_locale": "th", "unknown": 1},
        environ={"FIELDWATCH_TILE_WINDOW_DAYS": "60"},
    )

    assert settings.tile_window_days == 14
    assert settings.label_locale == "th"


def test_invalid_values_rejected():
    with pytest.raises(ValueError):
        load_settings(overrides={"snapshot_limit": 0}, environ={})
    with pytest.raises(ValueError):
        load_settings(environ={"FIELDWATCH_TILE_WINDOW_DAYS": "soon"})
