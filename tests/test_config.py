import pytest

from proximity.config import ConfigError, load_settings
from proximity.geo.point import GeoPoint


def test_missing_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("PROXIMITY_GEOCODER_URL", raising=False)
    settings = load_settings(tmp_path / "absent.toml")
    assert settings.ranking.concurrency == 3
    assert settings.geocoder.timeout_seconds == 4.0
    assert settings.location.known_point() is None


def test_toml_values_and_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "settings.toml"
    path.write_text(
        """[geocoder]
timeout_seconds = 2.5
country_codes = "us"

[location]
known_lat = 40.0
known_lng = -73.5

[ranking]
concurrency = 5
""",
        encoding="utf-8",
    )
    monkeypatch.setenv("PROXIMITY_GEOCODER_URL", "https://geo.internal/search")
    settings = load_settings(path)
    assert settings.geocoder.base_url == "https://geo.internal/search"
    assert settings.geocoder.timeout_seconds == 2.5
    assert settings.geocoder.country_codes == "us"
    assert settings.ranking.concurrency == 5
    assert settings.location.known_point() == GeoPoint(lat=40.0, lng=-73.5)


@pytest.mark.parametrize(
    "body",
    [
        "[ranking]\nconcurrency = 0\n",
        "[location]\nknown_lat = 10.0\n",
        "[geocoder\n",
    ],
)
def test_invalid_settings_raise_config_error(tmp_path, body):
    path = tmp_path / "settings.toml"
    path.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(path)
