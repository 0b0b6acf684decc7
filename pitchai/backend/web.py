import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .analysis import AnalysisAssembler
from .config import Settings, load_settings
from .constants import CHUNK_SIZE, MAX_REQUEST_BYTES, MAX_UPLOAD_BYTES
from .deck_extractor import DeckTextExtractor
from .errors import AnalysisFailure, ExternalServiceError
from .llm_gateway import ChatCompletionGateway
from .models import (
    CreateReportRequest,
    DeckUploadResponse,
    InvestorQARequest,
    PitchReport,
    ShareReportResponse,
    VideoUploadResponse,
)
from .object_storage import build_object_storage
from .report import ReportAssembler
from .storage import Repositories, build_record_store
from .transcription import GoogleSpeechTranscriber, media_duration_seconds
from .uploads import UploadPipeline, validate_video_file


logger = logging.getLogger("uvicorn.error")


@dataclass
class Services:
    repos: Repositories
    analysis: AnalysisAssembler
    reports: ReportAssembler
    uploads: UploadPipeline
    storage_name: str
    object_storage_name: str


def build_services(settings: Optional[Settings] = None) -> Services:
    settings = settings or load_settings()
    repos = Repositories(build_record_store(settings.database_url))
    object_storage = build_object_storage(settings)
    extractor = DeckTextExtractor()
    analysis = AnalysisAssembler(ChatCompletionGateway(settings), model=settings.llm_model)
    return Services(
        repos=repos,
        analysis=analysis,
        reports=ReportAssembler(repos, analysis=analysis, extractor=extractor),
        uploads=UploadPipeline(
            repos,
            object_storage,
            analysis,
            extractor,
            GoogleSpeechTranscriber(settings),
        ),
        storage_name=repos.store.storage_name,
        object_storage_name=object_storage.storage_name,
    )


app = FastAPI(title="PitchAI Backend")
services = build_services()

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(load_settings().frontend_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def enforce_upload_size(request, call_next):
    if request.method in ("POST", "PUT") and request.url.path.startswith("/api/upload"):
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                if int(content_length) > MAX_REQUEST_BYTES:
                    return JSONResponse(
                        status_code=413,
                        content={"detail": f"Request too large. Max size is {MAX_REQUEST_BYTES} bytes."},
                    )
            except ValueError:
                pass
    return await call_next(request)


async def _read_upload(upload: UploadFile, field_name: str) -> bytes:
    chunks = []
    total_bytes = 0
    while True:
        chunk = await upload.read(CHUNK_SIZE)
        if not chunk:
            break
        total_bytes += len(chunk)
        if total_bytes > MAX_UPLOAD_BYTES:
            raise HTTPException(
                status_code=413,
                detail=f"{field_name} is too large. Max size is {MAX_UPLOAD_BYTES} bytes.",
            )
        chunks.append(chunk)
    await upload.close()
    if total_bytes == 0:
        raise HTTPException(status_code=400, detail=f"{field_name} file is empty.")
    return b"".join(chunks)


def _raise_for_failure(exc: Exception) -> None:
    if isinstance(exc, ValueError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if isinstance(exc, (AnalysisFailure, ExternalServiceError)):
        logger.warning("request_failed status=502 error=%s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    raise exc


def _get_report_or_404(report_id: str) -> PitchReport:
    report = services.reports.get_report(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found.")
    return report


@app.get("/health")
def health() -> dict:
    return {
        "status": "ok",
        "storage": services.storage_name,
        "object_storage": services.object_storage_name,
    }


@app.post("/api/upload/deck", response_model=DeckUploadResponse)
async def upload_deck(
    file: UploadFile = File(...),
    title: str = Form(...),
    user_id: str = Form(...),
) -> DeckUploadResponse:
    data = await _read_upload(file, "deck")
    try:
        deck, analysis = await run_in_threadpool(
            services.uploads.upload_pitch_deck,
            data,
            file.filename or "deck",
            title,
            user_id,
            file.content_type,
        )
    except Exception as exc:
        _raise_for_failure(exc)
    return DeckUploadResponse(deck=deck.to_record(), analysis=analysis.to_record())


@app.post("/api/upload/video", response_model=VideoUploadResponse)
async def upload_video(
    file: UploadFile = File(...),
    title: str = Form(...),
    user_id: str = Form(...),
    duration_seconds: Optional[float] = Form(None),
) -> VideoUploadResponse:
    data = await _read_upload(file, "video")
    try:
        suffix = validate_video_file(file.filename or "", file.content_type)
    except ValueError as exc:
        _raise_for_failure(exc)
    if duration_seconds is None:
        duration_seconds = await run_in_threadpool(media_duration_seconds, data, suffix) or 0.0
    try:
        video, analysis = await run_in_threadpool(
            services.uploads.upload_pitch_video,
            data,
            file.filename or "video",
            title,
            user_id,
            duration_seconds,
            file.content_type,
        )
    except Exception as exc:
        _raise_for_failure(exc)
    return VideoUploadResponse(video=video.to_record(), analysis=analysis.to_record())


@app.get("/api/users/{user_id}/decks")
def list_user_decks(user_id: str) -> list:
    return [deck.to_record() for deck in services.uploads.list_user_decks(user_id)]


@app.get("/api/users/{user_id}/videos")
def list_user_videos(user_id: str) -> list:
    return [video.to_record() for video in services.uploads.list_user_videos(user_id)]


@app.post("/api/analysis/qa")
def create_investor_qa(payload: InvestorQARequest) -> dict:
    try:
        qa = services.analysis.generate_investor_qa(
            payload.deck_text,
            payload.video_text,
            user_id=payload.user_id,
        )
    except Exception as exc:
        _raise_for_failure(exc)
    services.repos.investor_qas.create(qa)
    return qa.to_record()


@app.post("/api/reports")
def create_report(payload: CreateReportRequest) -> dict:
    try:
        report = services.reports.generate_report(
            payload.user_id,
            payload.title,
            deck_id=payload.deck_id,
            video_id=payload.video_id,
        )
    except Exception as exc:
        _raise_for_failure(exc)
    return report.to_record()


@app.get("/api/users/{user_id}/reports")
def list_user_reports(user_id: str) -> list:
    return [report.to_record() for report in services.reports.list_user_reports(user_id)]


@app.get("/api/reports/{report_id}")
def get_report(report_id: str) -> dict:
    return _get_report_or_404(report_id).to_record()


@app.post("/api/reports/{report_id}/share", response_model=ShareReportResponse)
def share_report(report_id: str) -> ShareReportResponse:
    report = _get_report_or_404(report_id)
    share_token = services.reports.share(report)
    return ShareReportResponse(report_id=report.id, share_token=share_token)


@app.get("/api/reports/{report_id}/export")
def export_report(report_id: str) -> Response:
    report = _get_report_or_404(report_id)
    content, media_type = services.reports.export_report(report)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="pitchai-report-{report.id}.html"'},
    )


@app.get("/api/shared/{share_token}")
def get_shared_report(share_token: str) -> dict:
    report = services.reports.get_shared_report(share_token)
    if report is None:
        raise HTTPException(status_code=404, detail="Shared report not found.")
    return report.to_record()
