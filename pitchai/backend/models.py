import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Generic, List, Literal, NewType, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


T = TypeVar("T")

UserId = NewType("UserId", str)
DeckId = NewType("DeckId", str)
VideoId = NewType("VideoId", str)
DeckAnalysisId = NewType("DeckAnalysisId", str)
VideoAnalysisId = NewType("VideoAnalysisId", str)
InvestorQAId = NewType("InvestorQAId", str)
ReportId = NewType("ReportId", str)

ProcessingStatus = Literal["pending", "processing", "completed", "failed"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    """A parsed value plus whether the parser had to fall back to a default."""

    value: T
    was_defaulted: bool = False


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_record(cls, payload: dict):
        return cls.model_validate(payload)


class CategoryScore(Record):
    score: float
    feedback: str


class SpeechPace(Record):
    score: float
    words_per_minute: int = Field(ge=0)
    feedback: str


class FillerWordUsage(Record):
    score: float
    count: int = Field(ge=0)
    percentage: float = Field(ge=0, le=100)
    feedback: str
    breakdown: Dict[str, int] = Field(default_factory=dict)


class DeckAnalysis(Record):
    id: DeckAnalysisId
    source_deck_id: Optional[DeckId] = None
    overall_score: float
    clarity: CategoryScore
    storytelling: CategoryScore
    flow: CategoryScore
    key_strengths: List[str] = Field(default_factory=list)
    areas_for_improvement: List[str] = Field(default_factory=list)
    actionable_recommendations: List[str] = Field(default_factory=list)
    created_at: str


class VideoAnalysis(Record):
    id: VideoAnalysisId
    source_video_id: Optional[VideoId] = None
    overall_score: float
    speech_pace: SpeechPace
    filler_words: FillerWordUsage
    confidence: CategoryScore
    tone: CategoryScore
    key_strengths: List[str] = Field(default_factory=list)
    areas_for_improvement: List[str] = Field(default_factory=list)
    actionable_recommendations: List[str] = Field(default_factory=list)
    created_at: str


class QAItem(Record):
    question: str
    suggested_answer: str
    answer_quality: int = Field(ge=1, le=10)
    tips: List[str] = Field(default_factory=list)


class InvestorQA(Record):
    id: InvestorQAId
    user_id: UserId
    source_deck_id: Optional[DeckId] = None
    source_video_id: Optional[VideoId] = None
    questions: List[QAItem] = Field(default_factory=list)
    created_at: str


class PitchReport(Record):
    id: ReportId
    user_id: UserId
    source_deck_id: Optional[DeckId] = None
    source_video_id: Optional[VideoId] = None
    title: str
    overall_score: float
    deck_analysis: Optional[DeckAnalysis] = None
    video_analysis: Optional[VideoAnalysis] = None
    investor_qa: Optional[InvestorQA] = Field(default=None, alias="investorQA")
    created_at: str
    updated_at: str
    is_shared: bool = False
    share_token: Optional[str] = None


class PitchDeck(Record):
    id: DeckId
    user_id: UserId
    title: str
    file_name: str
    file_url: str
    file_type: Literal["pdf", "ppt", "pptx"]
    uploaded_at: str
    analysis_status: ProcessingStatus = "pending"
    analysis_result: Optional[DeckAnalysis] = None


class PitchVideo(Record):
    id: VideoId
    user_id: UserId
    title: str
    file_name: str
    file_url: str
    duration: Optional[float] = None
    uploaded_at: str
    transcription_status: ProcessingStatus = "pending"
    transcription: Optional[str] = None
    analysis_status: ProcessingStatus = "pending"
    analysis_result: Optional[VideoAnalysis] = None


# HTTP request/response bodies


class InvestorQARequest(BaseModel):
    user_id: str
    deck_text: Optional[str] = None
    video_text: Optional[str] = None


class CreateReportRequest(BaseModel):
    user_id: str
    title: str
    deck_id: Optional[str] = None
    video_id: Optional[str] = None


class DeckUploadResponse(BaseModel):
    deck: dict
    analysis: dict


class VideoUploadResponse(BaseModel):
    video: dict
    analysis: dict


class ShareReportResponse(BaseModel):
    report_id: str
    share_token: str
