import pytest

from pitchai.backend.analysis import AnalysisAssembler
from pitchai.backend.errors import AnalysisFailure, ExtractionError, GenerationError, TranscriptionError
from pitchai.backend import uploads
from pitchai.backend.uploads import UploadPipeline, validate_video_file

from conftest import (
    DECK_RESPONSE,
    VIDEO_RESPONSE,
    FakeExtractor,
    FakeLLM,
    FakeObjectStorage,
    FakeTranscriber,
)


def build_pipeline(repos, llm=None, extractor=None, transcriber=None):
    storage = FakeObjectStorage()
    pipeline = UploadPipeline(
        repos,
        storage,
        AnalysisAssembler(llm or FakeLLM([DECK_RESPONSE])),
        extractor or FakeExtractor(),
        transcriber or FakeTranscriber(" ".join(["pitch"] * 120)),
    )
    return pipeline, storage


def test_upload_pitch_deck_stores_and_analyzes(repos):
    pipeline, storage = build_pipeline(repos)
    progress = []

    deck, analysis = pipeline.upload_pitch_deck(
        b"%PDF-1.4 fake",
        "Seed Deck.pdf",
        "Seed Round",
        "user_1",
        on_progress=progress.append,
    )

    assert progress == [10, 30, 50, 70, 90, 100]
    assert deck.analysis_status == "completed"
    assert deck.analysis_result.id == analysis.id
    assert deck.file_type == "pdf"
    assert analysis.source_deck_id == deck.id
    assert analysis.overall_score == 8.0
    assert repos.deck_analyses.latest_for_deck(deck.id).id == analysis.id

    (url,) = storage.objects
    assert url.startswith("memory://pitch-decks/user_1/")
    assert url.endswith("-Seed_Deck.pdf")
    assert storage.objects[url][1] == "application/pdf"


def test_upload_pitch_deck_rejects_unsupported_format_before_storing(repos):
    pipeline, storage = build_pipeline(repos)

    with pytest.raises(ValueError):
        pipeline.upload_pitch_deck(b"data", "notes.txt", "Notes", "user_1")
    with pytest.raises(ValueError):
        pipeline.upload_pitch_deck(b"data", "legacy.ppt", "Legacy", "user_1")
    with pytest.raises(ValueError):
        pipeline.upload_pitch_deck(b"", "empty.pdf", "Empty", "user_1")

    assert storage.objects == {}
    assert repos.decks.list_for_user("user_1") == []


def test_upload_pitch_deck_marks_failed_on_extraction_error(repos):
    pipeline, _ = build_pipeline(repos, extractor=FakeExtractor(error=ExtractionError("corrupt pdf")))

    with pytest.raises(ExtractionError):
        pipeline.upload_pitch_deck(b"%PDF", "deck.pdf", "Deck", "user_1")

    (deck,) = pipeline.list_user_decks("user_1")
    assert deck.analysis_status == "failed"
    assert deck.analysis_result is None


def test_upload_pitch_deck_marks_failed_on_llm_error(repos):
    pipeline, _ = build_pipeline(repos, llm=FakeLLM(error=GenerationError("down")))

    with pytest.raises(AnalysisFailure):
        pipeline.upload_pitch_deck(b"%PDF", "deck.pdf", "Deck", "user_1")

    assert pipeline.list_user_decks("user_1")[0].analysis_status == "failed"


def test_upload_pitch_video_transcribes_and_analyzes(repos):
    pipeline, _ = build_pipeline(repos, llm=FakeLLM([VIDEO_RESPONSE]))
    progress = []

    video, analysis = pipeline.upload_pitch_video(
        b"video-bytes",
        "pitch.mp4",
        "Demo Day",
        "user_1",
        60,
        content_type="video/mp4",
        on_progress=progress.append,
    )

    assert progress == [10, 25, 40, 60, 75, 90, 100]
    assert video.transcription_status == "completed"
    assert video.analysis_status == "completed"
    assert video.transcription.startswith("pitch pitch")
    assert video.duration == 60.0
    assert analysis.speech_pace.words_per_minute == 120
    assert repos.video_analyses.latest_for_video(video.id).id == analysis.id
    assert [v.id for v in pipeline.list_user_videos("user_1")] == [video.id]


def test_upload_pitch_video_marks_both_statuses_failed_on_transcription_error(repos):
    pipeline, _ = build_pipeline(repos, transcriber=FakeTranscriber(error=TranscriptionError("ffmpeg missing")))

    with pytest.raises(TranscriptionError):
        pipeline.upload_pitch_video(b"video", "pitch.mp4", "Demo", "user_1", 30)

    (video,) = pipeline.list_user_videos("user_1")
    assert video.transcription_status == "failed"
    assert video.analysis_status == "failed"


def test_upload_pitch_video_keeps_transcript_when_analysis_fails(repos):
    pipeline, _ = build_pipeline(
        repos,
        llm=FakeLLM(error=GenerationError("down")),
        transcriber=FakeTranscriber("we help clinics"),
    )

    with pytest.raises(AnalysisFailure):
        pipeline.upload_pitch_video(b"video", "pitch.mp4", "Demo", "user_1", 30)

    (video,) = pipeline.list_user_videos("user_1")
    assert video.transcription_status == "completed"
    assert video.transcription == "we help clinics"
    assert video.analysis_status == "failed"


def test_upload_pitch_deck_rejects_files_over_deck_limit(repos, monkeypatch):
    pipeline, storage = build_pipeline(repos)
    monkeypatch.setattr(uploads, "MAX_DECK_UPLOAD_BYTES", 8)

    with pytest.raises(ValueError, match="too large"):
        pipeline.upload_pitch_deck(b"%PDF-1.4 larger", "deck.pdf", "Deck", "user_1")

    assert storage.objects == {}
    assert repos.decks.list_for_user("user_1") == []


def test_deck_limit_is_ten_megabytes(repos):
    pipeline, storage = build_pipeline(repos)
    oversized = b"%PDF" + b"0" * (10 * 1024 * 1024)

    with pytest.raises(ValueError):
        pipeline.upload_pitch_deck(oversized, "deck.pdf", "Deck", "user_1")
    assert storage.objects == {}


def test_upload_pitch_video_rejects_unsupported_format_before_storing(repos):
    pipeline, storage = build_pipeline(repos, llm=FakeLLM([VIDEO_RESPONSE]))

    with pytest.raises(ValueError, match="MP4, MOV or AVI"):
        pipeline.upload_pitch_video(b"hello", "notes.txt", "Demo", "user_1", 30, content_type="text/plain")
    with pytest.raises(ValueError):
        pipeline.upload_pitch_video(b"hello", "clip.mkv", "Demo", "user_1", 30, content_type="video/mp4")

    assert storage.objects == {}
    assert pipeline.list_user_videos("user_1") == []


def test_validate_video_file_accepts_known_extensions_and_types():
    assert validate_video_file("pitch.MOV") == ".mov"
    assert validate_video_file("pitch.avi", "application/octet-stream") == ".avi"
    assert validate_video_file("recording", "video/quicktime") == ".mov"
    assert validate_video_file("recording", "video/mp4; codecs=avc1") == ".mp4"
    with pytest.raises(ValueError):
        validate_video_file("recording", "text/plain")
    with pytest.raises(ValueError):
        validate_video_file("", None)


def test_upload_pitch_video_stores_with_format_content_type(repos):
    pipeline, storage = build_pipeline(repos, llm=FakeLLM([VIDEO_RESPONSE]))

    pipeline.upload_pitch_video(b"video", "pitch.mov", "Demo", "user_1", 30)

    ((url, (_, content_type)),) = storage.objects.items()
    assert url.endswith("-pitch.mov")
    assert content_type == "video/quicktime"
