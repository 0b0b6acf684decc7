import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Protocol

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import speech

from .config import Settings, load_settings
from .errors import TranscriptionError
from .gcp_auth import get_gcp_credentials
from .retry import call_with_retries


logger = logging.getLogger("uvicorn.error")
SAMPLE_RATE_HERTZ = 16000
RECOGNIZE_TIMEOUT_SECONDS = 900


class TranscriptionGateway(Protocol):
    def transcribe(self, audio_bytes: bytes) -> str:
        pass


def _require_binary(name: str) -> str:
    path = shutil.which(name)
    if not path:
        raise TranscriptionError(
            f"{name} is not installed or not on PATH. Install ffmpeg (macOS: brew install ffmpeg)."
        )
    return path


def convert_audio_to_wav_16khz_mono(input_path: Path, wav_path: Path) -> None:
    command = [
        _require_binary("ffmpeg"),
        "-y",
        "-i",
        str(input_path),
        "-ac",
        "1",
        "-ar",
        str(SAMPLE_RATE_HERTZ),
        "-f",
        "wav",
        str(wav_path),
    ]
    ffmpeg_result = subprocess.run(command, capture_output=True, text=True)
    if ffmpeg_result.returncode != 0:
        stderr_tail = (ffmpeg_result.stderr or "").strip().splitlines()
        message = stderr_tail[-1] if stderr_tail else "Unknown ffmpeg error"
        raise TranscriptionError(f"Audio conversion failed: {message}")

    if not wav_path.exists() or wav_path.stat().st_size == 0:
        raise TranscriptionError("Converted WAV audio is empty.")


def media_duration_seconds(media_bytes: bytes, suffix: str = ".bin") -> Optional[float]:
    """Media duration via ffprobe, or None when it cannot be determined."""
    ffprobe_path = shutil.which("ffprobe")
    if not ffprobe_path or not media_bytes:
        return None

    with tempfile.TemporaryDirectory(prefix="pitchai_duration_") as temp_dir:
        media_path = Path(temp_dir) / f"input{suffix}"
        media_path.write_bytes(media_bytes)
        result = subprocess.run(
            [
                ffprobe_path,
                "-v",
                "error",
                "-show_entries",
                "format=duration",
                "-of",
                "default=noprint_wrappers=1:nokey=1",
                str(media_path),
            ],
            capture_output=True,
            text=True,
        )
    if result.returncode != 0:
        logger.warning("ffprobe_failed stderr=%s", (result.stderr or "").strip()[-200:])
        return None
    try:
        return max(0.0, float((result.stdout or "").strip()))
    except ValueError:
        return None


def build_speech_client() -> speech.SpeechClient:
    credentials = get_gcp_credentials()
    if credentials is None:
        return speech.SpeechClient()
    return speech.SpeechClient(credentials=credentials)


def parse_speech_response(response) -> str:
    full_text_parts: List[str] = []
    for result in response.results:
        if not result.alternatives:
            continue
        transcript = (result.alternatives[0].transcript or "").strip()
        if transcript:
            full_text_parts.append(transcript)
    return " ".join(full_text_parts).strip()


class GoogleSpeechTranscriber:
    """Transcribes audio or video bytes with Google Cloud Speech-to-Text."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[speech.SpeechClient] = None) -> None:
        self._settings = settings or load_settings()
        self._client = client

    def _get_client(self) -> speech.SpeechClient:
        if self._client is None:
            self._client = build_speech_client()
        return self._client

    def _recognize(self, wav_bytes: bytes) -> str:
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=SAMPLE_RATE_HERTZ,
            language_code=self._settings.stt_language,
            enable_automatic_punctuation=True,
        )
        audio = speech.RecognitionAudio(content=wav_bytes)
        try:
            operation = self._get_client().long_running_recognize(config=config, audio=audio)
            response = operation.result(timeout=RECOGNIZE_TIMEOUT_SECONDS)
        except GoogleAPICallError as exc:
            raise TranscriptionError(f"Speech-to-Text request failed: {exc}") from exc
        except TimeoutError as exc:
            raise TranscriptionError("Speech-to-Text request timed out.") from exc
        return parse_speech_response(response)

    def transcribe(self, audio_bytes: bytes) -> str:
        if not audio_bytes:
            raise TranscriptionError("Audio payload is empty.")

        with tempfile.TemporaryDirectory(prefix="pitchai_stt_") as temp_dir:
            input_path = Path(temp_dir) / "input.media"
            wav_path = Path(temp_dir) / "audio.wav"
            input_path.write_bytes(audio_bytes)
            convert_audio_to_wav_16khz_mono(input_path, wav_path)
            wav_bytes = wav_path.read_bytes()

        transcript = call_with_retries(
            lambda: self._recognize(wav_bytes),
            operation="speech_transcribe",
            max_retries=self._settings.max_retries,
            backoff_seconds=self._settings.retry_backoff_seconds,
            retry_on=(TranscriptionError,),
        )
        logger.info("transcription_done chars=%s", len(transcript))
        return transcript
