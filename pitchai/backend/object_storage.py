import logging
from pathlib import Path
from typing import Optional, Protocol, Tuple
from urllib.parse import urlparse
from urllib.request import url2pathname

from google.api_core.exceptions import GoogleAPICallError, NotFound
from google.cloud import storage

from .config import Settings, load_settings
from .errors import StorageError
from .gcp_auth import get_gcp_credentials, get_project_id_hint


logger = logging.getLogger("uvicorn.error")
_storage_client: Optional[storage.Client] = None


class ObjectStorage(Protocol):
    storage_name: str

    def upload(self, data: bytes, path: str, content_type: Optional[str] = None) -> str:
        pass

    def download(self, url: str) -> bytes:
        pass


def get_storage_client() -> storage.Client:
    global _storage_client
    if _storage_client is None:
        credentials = get_gcp_credentials()
        project = get_project_id_hint()
        if credentials is not None or project:
            _storage_client = storage.Client(credentials=credentials, project=project)
        else:
            _storage_client = storage.Client()
    return _storage_client


def normalize_blob_path(blob_path: str) -> str:
    return blob_path.lstrip("/")


def build_gs_uri(bucket: str, blob_path: str) -> str:
    return f"gs://{bucket}/{normalize_blob_path(blob_path)}"


def parse_gcs_uri(gcs_uri: str) -> Tuple[str, str]:
    if not gcs_uri.startswith("gs://"):
        raise ValueError(f"Invalid GCS URI: {gcs_uri}")
    remainder = gcs_uri[5:]
    if "/" not in remainder:
        raise ValueError(f"GCS URI is missing object path: {gcs_uri}")
    bucket, blob_path = remainder.split("/", 1)
    if not bucket or not blob_path:
        raise ValueError(f"Invalid GCS URI: {gcs_uri}")
    return bucket, blob_path


def file_url_to_path(url: str) -> Path:
    if url.startswith("file://"):
        return Path(url2pathname(urlparse(url).path))
    return Path(url)


def download_gcs_bytes(gcs_uri: str) -> bytes:
    bucket, blob_path = parse_gcs_uri(gcs_uri)
    blob = get_storage_client().bucket(bucket).blob(normalize_blob_path(blob_path))
    try:
        return blob.download_as_bytes()
    except NotFound as exc:
        raise StorageError(f"GCS object not found: {gcs_uri}") from exc
    except GoogleAPICallError as exc:
        raise StorageError(f"Failed to download {gcs_uri}: {exc}") from exc


class GCSObjectStorage:
    storage_name = "gcs"

    def __init__(self, bucket: str) -> None:
        if not bucket:
            raise StorageError("A bucket name is required for GCS storage.")
        self.bucket = bucket

    def upload(self, data: bytes, path: str, content_type: Optional[str] = None) -> str:
        clean_path = normalize_blob_path(path)
        blob = get_storage_client().bucket(self.bucket).blob(clean_path)
        try:
            blob.upload_from_string(data, content_type=content_type or "application/octet-stream")
        except GoogleAPICallError as exc:
            raise StorageError(f"Failed to upload gs://{self.bucket}/{clean_path}: {exc}") from exc
        logger.info("object_uploaded uri=%s size_bytes=%s", build_gs_uri(self.bucket, clean_path), len(data))
        return build_gs_uri(self.bucket, clean_path)

    def download(self, url: str) -> bytes:
        return download_gcs_bytes(url)


class LocalObjectStorage:
    storage_name = "local"

    def __init__(self, root: str) -> None:
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / normalize_blob_path(path)).resolve()
        if self.root != target and self.root not in target.parents:
            raise StorageError(f"Object path escapes storage root: {path}")
        return target

    def upload(self, data: bytes, path: str, content_type: Optional[str] = None) -> str:
        del content_type
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Failed to write {target}: {exc}") from exc
        logger.info("object_uploaded uri=%s size_bytes=%s", target.as_uri(), len(data))
        return target.as_uri()

    def download(self, url: str) -> bytes:
        path = file_url_to_path(url)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc


def build_object_storage(settings: Optional[Settings] = None) -> ObjectStorage:
    settings = settings or load_settings()
    if settings.storage_bucket:
        return GCSObjectStorage(settings.storage_bucket)
    return LocalObjectStorage(settings.storage_dir)
