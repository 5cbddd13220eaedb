import pytest
from pydantic import ValidationError

from imagesync.core.config import SyncConfig, load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "IMAGESYNC_MANIFEST_PATH",
        "IMAGESYNC_RUN_TIMEOUT_SECONDS",
        "IMAGESYNC_MAX_WORKERS",
        "IMAGESYNC_LOG_LEVEL",
        "IMAGESYNC_LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = SyncConfig(_env_file=None)

    assert config.MANIFEST_PATH == ".images.yaml"
    assert config.RUN_TIMEOUT_SECONDS == 1800
    assert config.MAX_WORKERS == 1
    assert config.LOG_FORMAT == "console"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("IMAGESYNC_RUN_TIMEOUT_SECONDS", "90")
    monkeypatch.setenv("IMAGESYNC_MAX_WORKERS", "4")
    monkeypatch.setenv("IMAGESYNC_LOG_LEVEL", "debug")

    config = SyncConfig(_env_file=None)

    assert config.RUN_TIMEOUT_SECONDS == 90
    assert config.MAX_WORKERS == 4
    assert config.LOG_LEVEL == "DEBUG"


def test_explicit_values_win_and_none_is_ignored(monkeypatch):
    monkeypatch.setenv("IMAGESYNC_MANIFEST_PATH", "from-env.yaml")

    config = load_config(MANIFEST_PATH=None, RUN_TIMEOUT_SECONDS=30)

    assert config.MANIFEST_PATH == "from-env.yaml"
    assert config.RUN_TIMEOUT_SECONDS == 30


@pytest.mark.parametrize(
    "field, value",
    [
        ("RUN_TIMEOUT_SECONDS", 0),
        ("MAX_WORKERS", 0),
        ("LOG_LEVEL", "chatty"),
        ("LOG_FORMAT", "xml"),
    ],
)
def test_invalid_values(field, value):
    with pytest.raises(ValidationError):
        SyncConfig(_env_file=None, **{field: value})
