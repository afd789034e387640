import pytest

from core import config as config_module


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    config_module.get_settings.cache_clear()
    yield
    config_module.get_settings.cache_clear()


def test_non_local_debug_mode_is_blocked(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("DEBUG", "true")

    with pytest.raises(ValueError, match="debug=true"):
        config_module.get_settings()


def test_correlation_needs_two_data_points(monkeypatch):
    monkeypatch.setenv("ANALYTICS_MIN_DATA_POINTS", "1")

    with pytest.raises(ValueError, match="analytics_min_data_points"):
        config_module.get_settings()


def test_significance_threshold_must_be_a_correlation(monkeypatch):
    monkeypatch.setenv("ANALYTICS_SIGNIFICANCE_THRESHOLD", "1.5")

    with pytest.raises(ValueError, match="analytics_significance_threshold"):
        config_module.get_settings()


def test_local_allows_debug(monkeypatch):
    monkeypatch.setenv("APP_ENV", "local")
    monkeypatch.setenv("DEBUG", "true")

    settings = config_module.get_settings()
    assert settings.debug is True
    assert settings.analytics_min_data_points == 5
    assert settings.analytics_statistics_window_days == 30
