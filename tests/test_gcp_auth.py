import base64

import pytest

from pitchai.backend import gcp_auth


@pytest.fixture(autouse=True)
def clean_credentials_env(monkeypatch):
    for env_name, _ in gcp_auth.CREDENTIAL_SOURCES:
        monkeypatch.delenv(env_name, raising=False)
    for env_name in gcp_auth.PROJECT_ENV_VARS:
        monkeypatch.delenv(env_name, raising=False)
    gcp_auth.get_gcp_credentials.cache_clear()
    yield
    gcp_auth.get_gcp_credentials.cache_clear()


def test_no_credentials_falls_back_to_default():
    assert gcp_auth.get_gcp_credentials() is None
    assert gcp_auth.get_project_id_hint() is None


def test_invalid_inline_json_raises(monkeypatch):
    monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS_JSON", "{not json")
    with pytest.raises(RuntimeError):
        gcp_auth.get_gcp_credentials()


def test_base64_must_decode_to_object(monkeypatch):
    monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS_B64", base64.b64encode(b"[1, 2]").decode("ascii"))
    with pytest.raises(RuntimeError):
        gcp_auth.get_gcp_credentials()


def test_missing_key_file_raises(monkeypatch, tmp_path):
    monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", str(tmp_path / "missing.json"))
    with pytest.raises(RuntimeError):
        gcp_auth.get_gcp_credentials()


def test_project_hint_prefers_explicit_env(monkeypatch):
    monkeypatch.setenv("GCP_PROJECT_ID", "pitch-project")
    assert gcp_auth.get_project_id_hint() == "pitch-project"
