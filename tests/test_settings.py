import pytest

from core.settings import DATASET_MODES_DEFAULT, AppSettings, parse_dataset_modes


def test_defaults(monkeypatch):
    for name in ("APP_ENV", "ENV", "STOCK_API_BASE_URL", "DATASET_MODES", "DATASET_CACHE_TTL", "JWT_SECRET_KEYS", "JWT_SECRET_KEY"):
        monkeypatch.delenv(name, raising=False)

    settings = AppSettings.load()

    assert settings.stock_api_base_url == "http://localhost:8080"
    assert settings.dataset_cache_ttl == 60.0
    assert settings.mode_for("movements") == "client"
    assert settings.mode_for("products") == "server"
    assert settings.mode_for("unknown") == "client"
    assert settings.jwt_secret_keys == []
    assert not settings.is_production


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("APP_ENV", "Production")
    monkeypatch.setenv("STOCK_API_BASE_URL", "https://stock.example.com/")
    monkeypatch.setenv("STOCK_API_TIMEOUT", "2.5")
    monkeypatch.setenv("DATASET_MODES", "movements=server")
    monkeypatch.setenv("JWT_SECRET_KEYS", "k1, k2")
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://a.example, ,https://b.example")

    settings = AppSettings.load()

    assert settings.is_production
    assert settings.stock_api_base_url == "https://stock.example.com"
    assert settings.stock_api_timeout == 2.5
    assert settings.mode_for("movements") == "server"
    assert settings.mode_for("stocks") == "server"
    assert settings.jwt_secret_keys == ["k1", "k2"]
    assert settings.cors_allowed_origins == ["https://a.example", "https://b.example"]


def test_parse_dataset_modes():
    assert parse_dataset_modes(DATASET_MODES_DEFAULT) == {
        "movements": "client",
        "users": "client",
        "products": "server",
        "stocks": "server",
    }
    assert parse_dataset_modes(" Products = CLIENT ,") == {"products": "client"}
    assert parse_dataset_modes(None) == {}


@pytest.mark.parametrize("raw", ["movements", "movements=hybrid"])
def test_invalid_dataset_modes(raw):
    with pytest.raises(ValueError):
        parse_dataset_modes(raw)


def test_invalid_number(monkeypatch):
    monkeypatch.setenv("DATASET_CACHE_TTL", "soon")

    with pytest.raises(ValueError):
        AppSettings.load()
