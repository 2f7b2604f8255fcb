from __future__ import annotations

import pytest

from backend.app import models
from backend.app.database import read_bool_env, read_int_env
from backend.app.settings import get_import_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_import_settings.cache_clear()
    yield
    get_import_settings.cache_clear()


def test_import_settings_defaults(monkeypatch):
    for name in (
        "IMPORT_MAX_FILE_BYTES",
        "IMPORT_MAX_RECORDS",
        "IMPORT_PREVIEW_LIMIT",
        "IMPORT_HISTORY_LIMIT",
        "IMPORT_DEFAULT_COMMIT_POLICY",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = get_import_settings()

    assert settings.max_file_bytes == 10 * 1024 * 1024
    assert settings.max_records == 1000
    assert settings.preview_limit == 10
    assert settings.history_limit == 10
    assert settings.default_commit_policy is models.CommitPolicy.BEST_EFFORT


def test_import_settings_from_environment(monkeypatch):
    monkeypatch.setenv("IMPORT_MAX_RECORDS", "50")
    monkeypatch.setenv("IMPORT_DEFAULT_COMMIT_POLICY", "All-Or-Nothing")

    settings = get_import_settings()

    assert settings.max_records == 50
    assert settings.default_commit_policy is models.CommitPolicy.ALL_OR_NOTHING


def test_invalid_values_raise(monkeypatch):
    monkeypatch.setenv("IMPORT_DEFAULT_COMMIT_POLICY", "sometimes")
    with pytest.raises(ValueError):
        get_import_settings()

    monkeypatch.setenv("SOME_INT", "-1")
    with pytest.raises(ValueError):
        read_int_env("SOME_INT", 3)
    monkeypatch.setenv("SOME_INT", "abc")
    with pytest.raises(ValueError):
        read_int_env("SOME_INT", 3)


def test_read_bool_env(monkeypatch):
    monkeypatch.setenv("SOME_FLAG", "Yes")
    assert read_bool_env("SOME_FLAG") is True
    monkeypatch.setenv("SOME_FLAG", "0")
    assert read_bool_env("SOME_FLAG", True) is False
    monkeypatch.delenv("SOME_FLAG")
    assert read_bool_env("SOME_FLAG", True) is True
