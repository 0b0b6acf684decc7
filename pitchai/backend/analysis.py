from __future__ import annotations

import logging
from typing import Optional

from .errors import AnalysisFailure, PitchAIError
from .llm_gateway import LLMGateway
from .metrics import count_filler_words, count_words, words_per_minute
from .models import (
    CategoryScore,
    DeckAnalysis,
    FillerWordUsage,
    InvestorQA,
    SpeechPace,
    VideoAnalysis,
    new_id,
    utc_now_iso,
)
from .prompts.deck import DECK_ANALYSIS_VERSION, DECK_CATEGORIES, build_deck_prompt
from .prompts.investor_qa import INVESTOR_QA_VERSION, build_investor_qa_prompt
from .prompts.video import VIDEO_ANALYSIS_VERSION, VIDEO_CATEGORIES, build_video_prompt
from .response_parser import extract_feedback, extract_list, extract_score, parse_qa_items


logger = logging.getLogger("uvicorn.error")
DEFAULT_MODEL = "gpt-4o-mini"
DECK_MAX_TOKENS = 1500
VIDEO_MAX_TOKENS = 1500
QA_MAX_TOKENS = 2000

STRENGTHS_KEYWORD = "strengths"
IMPROVEMENT_KEYWORD = "improvement"
RECOMMENDATIONS_KEYWORD = "recommendations"


def mean_score(*scores: float) -> float:
    if not scores:
        return 0.0
    return round(sum(scores) / len(scores), 1)


def _category(response: str, keyword: str) -> CategoryScore:
    return CategoryScore(
        score=extract_score(response, keyword).value,
        feedback=extract_feedback(response, keyword).value,
    )


class AnalysisAssembler:
    """Builds deck, video and investor Q&A analyses from one LLM call each."""

    def __init__(self, llm: LLMGateway, model: Optional[str] = None) -> None:
        self.llm = llm
        self.model = model or DEFAULT_MODEL

    def _generate(self, prompt: str, max_tokens: int, artifact: str) -> str:
        try:
            return self.llm.generate_text(prompt, self.model, max_tokens)
        except PitchAIError as exc:
            logger.warning("artifact=%s llm_call_failed error=%s", artifact, exc)
            raise AnalysisFailure(f"Failed to generate {artifact}: {exc}", cause=exc) from exc
        except Exception as exc:
            logger.warning("artifact=%s llm_call_failed error=%s", artifact, exc, exc_info=True)
            raise AnalysisFailure(f"Unexpected error while generating {artifact}: {exc}", cause=exc) from exc

    def analyze_deck(self, text: str, title: str, source_deck_id: Optional[str] = None) -> DeckAnalysis:
        response = self._generate(build_deck_prompt(text, title), DECK_MAX_TOKENS, "deck_analysis")

        clarity, storytelling, flow = (_category(response, name) for name in DECK_CATEGORIES)
        analysis = DeckAnalysis(
            id=new_id("analysis"),
            source_deck_id=source_deck_id,
            overall_score=mean_score(clarity.score, storytelling.score, flow.score),
            clarity=clarity,
            storytelling=storytelling,
            flow=flow,
            key_strengths=extract_list(response, STRENGTHS_KEYWORD).value,
            areas_for_improvement=extract_list(response, IMPROVEMENT_KEYWORD).value,
            actionable_recommendations=extract_list(response, RECOMMENDATIONS_KEYWORD).value,
            created_at=utc_now_iso(),
        )
        logger.info(
            "deck_analysis_done analysis_id=%s version=%s overall=%s",
            analysis.id,
            DECK_ANALYSIS_VERSION,
            analysis.overall_score,
        )
        return analysis

    def analyze_video(
        self,
        transcript: str,
        duration_seconds: float,
        source_video_id: Optional[str] = None,
    ) -> VideoAnalysis:
        wpm = words_per_minute(transcript, duration_seconds)
        prompt = build_video_prompt(transcript, duration_seconds, wpm)
        response = self._generate(prompt, VIDEO_MAX_TOKENS, "video_analysis")

        pace = _category(response, VIDEO_CATEGORIES["speech_pace"])
        filler = _category(response, VIDEO_CATEGORIES["filler_words"])
        confidence = _category(response, VIDEO_CATEGORIES["confidence"])
        tone = _category(response, VIDEO_CATEGORIES["tone"])
        filler_stats = count_filler_words(transcript)

        analysis = VideoAnalysis(
            id=new_id("video_analysis"),
            source_video_id=source_video_id,
            overall_score=mean_score(pace.score, filler.score, confidence.score, tone.score),
            speech_pace=SpeechPace(score=pace.score, words_per_minute=wpm, feedback=pace.feedback),
            filler_words=FillerWordUsage(
                score=filler.score,
                count=filler_stats.count,
                percentage=filler_stats.percentage,
                feedback=filler.feedback,
                breakdown=filler_stats.breakdown,
            ),
            confidence=confidence,
            tone=tone,
            key_strengths=extract_list(response, STRENGTHS_KEYWORD).value,
            areas_for_improvement=extract_list(response, IMPROVEMENT_KEYWORD).value,
            actionable_recommendations=extract_list(response, RECOMMENDATIONS_KEYWORD).value,
            created_at=utc_now_iso(),
        )
        logger.info(
            "video_analysis_done analysis_id=%s version=%s words=%s wpm=%s fillers=%s overall=%s",
            analysis.id,
            VIDEO_ANALYSIS_VERSION,
            count_words(transcript),
            wpm,
            filler_stats.count,
            analysis.overall_score,
        )
        return analysis

    def generate_investor_qa(
        self,
        deck_text: Optional[str] = None,
        video_text: Optional[str] = None,
        *,
        user_id: str = "",
        source_deck_id: Optional[str] = None,
        source_video_id: Optional[str] = None,
    ) -> InvestorQA:
        parts = [part.strip() for part in (deck_text, video_text) if part and part.strip()]
        if not parts:
            raise ValueError("Investor Q&A needs deck text or a video transcript.")

        prompt = build_investor_qa_prompt("\n\n".join(parts))
        response = self._generate(prompt, QA_MAX_TOKENS, "investor_qa")
        questions = parse_qa_items(response)

        qa = InvestorQA(
            id=new_id("qa"),
            user_id=user_id,
            source_deck_id=source_deck_id,
            source_video_id=source_video_id,
            questions=questions,
            created_at=utc_now_iso(),
        )
        logger.info(
            "investor_qa_done qa_id=%s version=%s questions=%s",
            qa.id,
            INVESTOR_QA_VERSION,
            len(questions),
        )
        return qa
