import base64
import binascii
import json
import logging
import os
from functools import lru_cache
from typing import Callable, Optional, Tuple

from google.oauth2 import service_account


logger = logging.getLogger("uvicorn.error")
CLOUD_PLATFORM_SCOPES = ("https://www.googleapis.com/auth/cloud-platform",)
PROJECT_ENV_VARS = ("PITCHAI_GCP_PROJECT", "GCP_PROJECT_ID")


def _json_object(raw: str, source: str) -> dict:
    try:
        info = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"{source} does not contain valid JSON.") from exc
    if not isinstance(info, dict):
        raise RuntimeError(f"{source} must contain a JSON object.")
    return info


def _from_b64(value: str, source: str) -> service_account.Credentials:
    padded = value + "=" * (-len(value) % 4)
    try:
        raw = base64.b64decode(padded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise RuntimeError(f"{source} is not valid base64.") from exc
    return service_account.Credentials.from_service_account_info(
        _json_object(raw, source), scopes=CLOUD_PLATFORM_SCOPES
    )


def _from_json(value: str, source: str) -> service_account.Credentials:
    return service_account.Credentials.from_service_account_info(
        _json_object(value, source), scopes=CLOUD_PLATFORM_SCOPES
    )


def _from_path(value: str, source: str) -> service_account.Credentials:
    if not os.path.exists(value):
        raise RuntimeError(f"{source} points to a missing file: {value}")
    return service_account.Credentials.from_service_account_file(value, scopes=CLOUD_PLATFORM_SCOPES)


# First non-empty variable wins.
CREDENTIAL_SOURCES: Tuple[Tuple[str, Callable[[str, str], service_account.Credentials]], ...] = (
    ("GOOGLE_APPLICATION_CREDENTIALS_B64", _from_b64),
    ("GOOGLE_APPLICATION_CREDENTIALS_JSON", _from_json),
    ("GOOGLE_APPLICATION_CREDENTIALS", _from_path),
)


@lru_cache(maxsize=1)
def get_gcp_credentials() -> Optional[service_account.Credentials]:
    """Service-account credentials for Speech and Storage clients.

    Returns None when no credential variable is set, so the Google clients
    fall back to application default credentials.
    """
    for env_name, loader in CREDENTIAL_SOURCES:
        value = os.getenv(env_name, "").strip()
        if value:
            credentials = loader(value, env_name)
            logger.info("gcp_credentials_loaded source=%s", env_name)
            return credentials
    return None


def get_project_id_hint() -> Optional[str]:
    for env_name in PROJECT_ENV_VARS:
        value = os.getenv(env_name, "").strip()
        if value:
            return value
    credentials = get_gcp_credentials()
    return getattr(credentials, "project_id", None) if credentials is not None else None
