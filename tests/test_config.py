import os

import pytest

from bookmap.config import AppConfig, load_dotenv, read_settings_file
from bookmap.errors import MissingConfiguration

ENV_KEYS = (
    "ALADIN_TTB_KEY",
    "SEOJI_KEY",
    "KOLIS_KEY",
    "BOOKMAP_REMOTE_URL",
    "BOOKMAP_LOCAL_SNAPSHOT",
    "BOOKMAP_ALLOWED_ORIGINS",
    "BOOKMAP_ALLOW_VERCEL_PREVIEW",
    "BOOKMAP_SETTINGS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for k in ENV_KEYS:
        monkeypatch.delenv(k, raising=False)


def test_from_env_defaults() -> None:
    cfg = AppConfig.from_env()
    assert cfg.aladin_ttb_key == ""
    assert cfg.local_snapshot == "data/books.json"
    assert cfg.allowed_origins == ["http://localhost:3000"]
    assert cfg.allow_vercel_preview is True
    assert (cfg.primary_attempts, cfg.fallback_attempts, cfg.cooldown_s) == (3, 2, 0.25)
    assert cfg.timeout_s is None


def test_from_env_values(monkeypatch) -> None:
    monkeypatch.setenv("ALADIN_TTB_KEY", " ttb123 ")
    monkeypatch.setenv("SEOJI_KEY", "seoji")
    monkeypatch.setenv("BOOKMAP_ALLOWED_ORIGINS", "https://bookmap.xyz, http://localhost:3000")
    monkeypatch.setenv("BOOKMAP_ALLOW_VERCEL_PREVIEW", "false")

    cfg = AppConfig.from_env()
    assert cfg.require_aladin_key() == "ttb123"
    # KOLIS falls back to the seoji key
    assert cfg.require_korlib_keys() == ("seoji", "seoji")
    assert cfg.allowed_origins == ["https://bookmap.xyz", "http://localhost:3000"]
    assert cfg.allow_vercel_preview is False


def test_missing_keys_raise() -> None:
    cfg = AppConfig()
    with pytest.raises(MissingConfiguration) as exc:
        cfg.require_aladin_key()
    assert "ALADIN_TTB_KEY" in str(exc.value)
    with pytest.raises(MissingConfiguration):
        cfg.require_korlib_keys()


def test_settings_file(tmp_path, monkeypatch) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("primary_attempts: 2\nfallback_attempts: 1\ncooldown_ms: 100\ntimeout_s: 8\nextra: 1\n", encoding="utf-8")
    monkeypatch.setenv("BOOKMAP_SETTINGS", str(path))

    cfg = AppConfig.from_env()
    assert cfg.primary_attempts == 2
    assert cfg.fallback_attempts == 1
    assert cfg.cooldown_s == pytest.approx(0.1)
    assert cfg.timeout_s == 8.0


def test_settings_file_errors(tmp_path) -> None:
    with pytest.raises(SystemExit):
        read_settings_file(tmp_path / "nope.yaml")

    listy = tmp_path / "list.yaml"
    listy.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(SystemExit):
        read_settings_file(listy)

    with pytest.raises(SystemExit):
        AppConfig().apply_settings({"primary_attempts": 0, "fallback_attempts": 0})


def test_load_dotenv_does_not_override(tmp_path, monkeypatch) -> None:
    env = tmp_path / "custom.env"
    env.write_text(
        "# comment\n"
        "export BOOKMAP_TEST_A='a b'  # trailing\n"
        "BOOKMAP_TEST_B=\"x#y\"\n"
        "BOOKMAP_TEST_C=from-file\n",
        encoding="utf-8",
    )
    for k in ("BOOKMAP_TEST_A", "BOOKMAP_TEST_B"):
        monkeypatch.setenv(k, "placeholder")
        monkeypatch.delenv(k)
    monkeypatch.setenv("BOOKMAP_TEST_C", "from-env")
    monkeypatch.setenv("ENV_PATH", str(env))

    assert load_dotenv() == str(env.resolve())
    assert os.environ["BOOKMAP_TEST_A"] == "a b"
    assert os.environ["BOOKMAP_TEST_B"] == "x#y"
    assert os.environ["BOOKMAP_TEST_C"] == "from-env"
