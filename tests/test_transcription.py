from types import SimpleNamespace

import pytest

from pitchai.backend.errors import TranscriptionError
from pitchai.backend.transcription import GoogleSpeechTranscriber, parse_speech_response


def result(*transcripts):
    return SimpleNamespace(alternatives=[SimpleNamespace(transcript=text) for text in transcripts])


def test_parse_speech_response_joins_first_alternatives():
    response = SimpleNamespace(
        results=[
            result(" Hello investors. ", "Hello in vest ors"),
            SimpleNamespace(alternatives=[]),
            result(""),
            result("We help clinics."),
        ]
    )
    assert parse_speech_response(response) == "Hello investors. We help clinics."


def test_parse_speech_response_empty():
    assert parse_speech_response(SimpleNamespace(results=[])) == ""


def test_transcribe_rejects_empty_payload():
    settings = SimpleNamespace(stt_language="en-US", max_retries=0, retry_backoff_seconds=0.0)
    transcriber = GoogleSpeechTranscriber(settings=settings, client=object())
    with pytest.raises(TranscriptionError):
        transcriber.transcribe(b"")
