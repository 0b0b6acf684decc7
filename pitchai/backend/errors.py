from typing import Optional


class PitchAIError(Exception):
    """Base exception for the PitchAI backend."""


class ExternalServiceError(PitchAIError):
    """Raised when an external gateway call fails."""


class ExtractionError(ExternalServiceError):
    """Document text could not be extracted."""


class TranscriptionError(ExternalServiceError):
    """Audio could not be transcribed."""


class GenerationError(ExternalServiceError):
    """The LLM provider did not return a usable completion."""


class TransientGenerationError(GenerationError):
    """A timeout, transport failure, rate limit or 5xx that may succeed on retry."""


class StorageError(ExternalServiceError):
    """An object could not be written to or read from storage."""


class AnalysisFailure(PitchAIError):
    """Wraps an external failure raised while assembling an analysis."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause
