import io
import logging
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Protocol
from urllib.parse import urlparse

import httpx
from pptx import Presentation
from pptx.exc import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from .errors import ExtractionError, StorageError
from .object_storage import download_gcs_bytes, file_url_to_path


logger = logging.getLogger("uvicorn.error")
SUPPORTED_DECK_EXTENSIONS = {".pdf", ".pptx", ".ppt"}
DOWNLOAD_TIMEOUT_SECONDS = 60.0


class TextExtractionGateway(Protocol):
    def extract_text(self, document_url: str) -> str:
        pass


@dataclass
class DeckExtractionResult:
    extracted_text: str
    extracted_json: List[dict]
    num_pages_or_slides: int


def detect_extension(filename: str) -> str:
    return Path(filename or "").suffix.lower()


def sanitize_filename(filename: str) -> str:
    candidate = Path(filename or "").name
    if candidate in {"", ".", ".."}:
        candidate = "deck"

    sanitized = re.sub(r"[^A-Za-z0-9._-]", "_", candidate)
    if sanitized in {"", ".", ".."}:
        sanitized = "deck"

    stem = Path(sanitized).stem[:120] or "deck"
    ext = Path(sanitized).suffix[:20]
    return f"{stem}{ext}"


def validate_deck_extension(extension: str) -> None:
    if extension not in SUPPORTED_DECK_EXTENSIONS:
        raise ValueError("Unsupported deck format. Please upload PDF, PPTX, or PPT.")
    if extension == ".ppt":
        raise ValueError("Legacy .ppt is not supported yet. Please upload PDF or PPTX.")


def extract_deck_bytes(data: bytes, extension: str) -> DeckExtractionResult:
    try:
        if extension == ".pdf":
            return _extract_pdf(data)
        if extension == ".pptx":
            return _extract_pptx(data)
    except PdfReadError as exc:
        raise ExtractionError(f"Could not read PDF deck: {exc}") from exc
    except (PackageNotFoundError, zipfile.BadZipFile) as exc:
        raise ExtractionError(f"Could not open PPTX deck: {exc}") from exc
    except (ValueError, KeyError, OSError) as exc:
        raise ExtractionError(f"Could not read {extension} deck: {exc}") from exc
    if extension == ".ppt":
        raise ExtractionError("Legacy .ppt is not supported yet. Please upload PDF or PPTX.")
    raise ExtractionError(f"Unsupported deck format: {extension or 'unknown'}")


def _extract_pdf(data: bytes) -> DeckExtractionResult:
    reader = PdfReader(io.BytesIO(data))
    entries: List[dict] = []
    merged: List[str] = []

    for index, page in enumerate(reader.pages, start=1):
        text = (page.extract_text() or "").strip()
        entries.append({"index": index, "text": text})
        merged.append(f"PAGE {index}: {text}")

    return DeckExtractionResult(
        extracted_text="\n\n".join(merged).strip(),
        extracted_json=entries,
        num_pages_or_slides=len(reader.pages),
    )


def _extract_pptx(data: bytes) -> DeckExtractionResult:
    presentation = Presentation(io.BytesIO(data))
    entries: List[dict] = []
    merged: List[str] = []

    for index, slide in enumerate(presentation.slides, start=1):
        text_chunks: List[str] = []
        for shape in slide.shapes:
            text = getattr(shape, "text", "")
            if text:
                text_chunks.append(text.strip())

        slide_text = "\n".join(chunk for chunk in text_chunks if chunk).strip()
        entries.append({"index": index, "text": slide_text})
        merged.append(f"SLIDE {index}: {slide_text}")

    return DeckExtractionResult(
        extracted_text="\n\n".join(merged).strip(),
        extracted_json=entries,
        num_pages_or_slides=len(presentation.slides),
    )


def _download_http(url: str) -> bytes:
    try:
        response = httpx.get(url, timeout=DOWNLOAD_TIMEOUT_SECONDS, follow_redirects=True)
    except httpx.HTTPError as exc:
        raise ExtractionError(f"Failed to download document: {exc}") from exc
    if response.status_code >= 400:
        raise ExtractionError(f"Document download failed with HTTP {response.status_code}.")
    return response.content


class DeckTextExtractor:
    """Text extraction for PDF and PPTX decks referenced by URL or path."""

    def __init__(self, fetch: Optional[Callable[[str], bytes]] = None) -> None:
        self._fetch = fetch

    def fetch_bytes(self, document_url: str) -> bytes:
        if self._fetch is not None:
            return self._fetch(document_url)

        scheme = urlparse(document_url).scheme.lower()
        if scheme in {"http", "https"}:
            return _download_http(document_url)
        if scheme == "gs":
            try:
                return download_gcs_bytes(document_url)
            except StorageError as exc:
                raise ExtractionError(str(exc)) from exc

        path = file_url_to_path(document_url)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ExtractionError(f"Could not open document {path}: {exc}") from exc

    def extract(self, document_url: str) -> DeckExtractionResult:
        extension = detect_extension(urlparse(document_url).path or document_url)
        if extension not in SUPPORTED_DECK_EXTENSIONS:
            raise ExtractionError(f"Unsupported deck format: {extension or 'unknown'}")
        data = self.fetch_bytes(document_url)
        if not data:
            raise ExtractionError("Document is empty.")
        result = extract_deck_bytes(data, extension)
        logger.info(
            "deck_text_extracted url=%s pages_or_slides=%s chars=%s",
            document_url,
            result.num_pages_or_slides,
            len(result.extracted_text),
        )
        return result

    def extract_text(self, document_url: str) -> str:
        return self.extract(document_url).extracted_text
