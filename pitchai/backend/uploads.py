import logging
import time
from typing import Callable, List, Optional, Tuple

from .analysis import AnalysisAssembler
from .constants import MAX_DECK_UPLOAD_BYTES, MAX_UPLOAD_BYTES, VIDEO_CONTENT_TYPES
from .deck_extractor import (
    TextExtractionGateway,
    detect_extension,
    sanitize_filename,
    validate_deck_extension,
)
from .models import DeckAnalysis, PitchDeck, PitchVideo, VideoAnalysis, new_id, utc_now_iso
from .object_storage import ObjectStorage
from .storage import Repositories
from .transcription import TranscriptionGateway


logger = logging.getLogger("uvicorn.error")
ProgressCallback = Callable[[int], None]

DECK_CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}


def _emit(callback: Optional[ProgressCallback], progress: int) -> None:
    if callback is not None:
        callback(progress)


def _validate_payload(data: bytes, field_name: str, max_bytes: int) -> None:
    if not data:
        raise ValueError(f"{field_name} file is empty.")
    if len(data) > max_bytes:
        raise ValueError(f"{field_name} is too large. Max size is {max_bytes} bytes.")


def validate_video_file(filename: str, content_type: Optional[str] = None) -> str:
    """Return the video extension, or raise ValueError for unsupported files.

    MP4, MOV and AVI are accepted by extension. A file without an extension
    is accepted when its content type names one of those formats.
    """
    extension = detect_extension(filename)
    if extension in VIDEO_CONTENT_TYPES:
        return extension
    media_type = (content_type or "").split(";")[0].strip().lower()
    if not extension:
        for candidate, known_type in VIDEO_CONTENT_TYPES.items():
            if media_type == known_type:
                return candidate
    raise ValueError("Unsupported video format. Please upload an MP4, MOV or AVI file.")


def _object_path(kind: str, user_id: str, filename: str) -> str:
    return f"{kind}/{sanitize_filename(user_id)}/{int(time.time() * 1000)}-{sanitize_filename(filename)}"


class UploadPipeline:
    """Upload-then-analyze chains for decks and videos.

    Each stage runs after the previous one finishes. A failing stage marks
    the source record ``failed`` and the error is re-raised to the caller.
    """

    def __init__(
        self,
        repos: Repositories,
        storage: ObjectStorage,
        analysis: AnalysisAssembler,
        extractor: TextExtractionGateway,
        transcriber: TranscriptionGateway,
    ) -> None:
        self.repos = repos
        self.storage = storage
        self.analysis = analysis
        self.extractor = extractor
        self.transcriber = transcriber

    def upload_pitch_deck(
        self,
        data: bytes,
        filename: str,
        title: str,
        user_id: str,
        content_type: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Tuple[PitchDeck, DeckAnalysis]:
        extension = detect_extension(filename)
        validate_deck_extension(extension)
        _validate_payload(data, "deck", MAX_DECK_UPLOAD_BYTES)

        _emit(on_progress, 10)
        file_url = self.storage.upload(
            data,
            _object_path("pitch-decks", user_id, filename),
            content_type or DECK_CONTENT_TYPES.get(extension),
        )
        _emit(on_progress, 30)

        deck = PitchDeck(
            id=new_id("deck"),
            user_id=user_id,
            title=title,
            file_name=filename,
            file_url=file_url,
            file_type=extension.lstrip("."),
            uploaded_at=utc_now_iso(),
            analysis_status="processing",
        )
        self.repos.decks.create(deck)
        _emit(on_progress, 50)

        try:
            extracted_text = self.extractor.extract_text(file_url)
            _emit(on_progress, 70)

            analysis = self.analysis.analyze_deck(extracted_text, title, source_deck_id=deck.id)
            _emit(on_progress, 90)

            self.repos.deck_analyses.create(analysis)
            deck = self.repos.decks.update(
                deck.id,
                {"analysisStatus": "completed", "analysisResult": analysis.to_record()},
            )
        except Exception as exc:
            self.repos.decks.update(deck.id, {"analysisStatus": "failed"})
            logger.warning("deck_id=%s deck_upload_failed error=%s", deck.id, exc)
            raise

        _emit(on_progress, 100)
        logger.info("deck_id=%s deck_upload_done analysis_id=%s", deck.id, analysis.id)
        return deck, analysis

    def upload_pitch_video(
        self,
        data: bytes,
        filename: str,
        title: str,
        user_id: str,
        duration_seconds: float,
        content_type: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Tuple[PitchVideo, VideoAnalysis]:
        extension = validate_video_file(filename, content_type)
        _validate_payload(data, "video", MAX_UPLOAD_BYTES)

        _emit(on_progress, 10)
        file_url = self.storage.upload(
            data,
            _object_path("pitch-videos", user_id, filename),
            content_type or VIDEO_CONTENT_TYPES[extension],
        )
        _emit(on_progress, 25)

        video = PitchVideo(
            id=new_id("video"),
            user_id=user_id,
            title=title,
            file_name=filename,
            file_url=file_url,
            duration=max(0.0, float(duration_seconds or 0)),
            uploaded_at=utc_now_iso(),
            transcription_status="processing",
            analysis_status="processing",
        )
        self.repos.videos.create(video)
        _emit(on_progress, 40)

        try:
            transcription = self.transcriber.transcribe(data)
        except Exception as exc:
            self.repos.videos.update(video.id, {"transcriptionStatus": "failed", "analysisStatus": "failed"})
            logger.warning("video_id=%s transcription_failed error=%s", video.id, exc)
            raise
        _emit(on_progress, 60)

        self.repos.videos.update(
            video.id,
            {"transcription": transcription, "transcriptionStatus": "completed"},
        )
        _emit(on_progress, 75)

        try:
            analysis = self.analysis.analyze_video(transcription, video.duration or 0, source_video_id=video.id)
            _emit(on_progress, 90)

            self.repos.video_analyses.create(analysis)
            video = self.repos.videos.update(
                video.id,
                {"analysisStatus": "completed", "analysisResult": analysis.to_record()},
            )
        except Exception as exc:
            self.repos.videos.update(video.id, {"analysisStatus": "failed"})
            logger.warning("video_id=%s video_analysis_failed error=%s", video.id, exc)
            raise

        _emit(on_progress, 100)
        logger.info("video_id=%s video_upload_done analysis_id=%s", video.id, analysis.id)
        return video, analysis

    def list_user_decks(self, user_id: str) -> List[PitchDeck]:
        return self.repos.decks.list_for_user(user_id)

    def list_user_videos(self, user_id: str) -> List[PitchVideo]:
        return self.repos.videos.list_for_user(user_id)
