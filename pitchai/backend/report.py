from __future__ import annotations

import html
import logging
import secrets
import string
import time
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from .analysis import AnalysisAssembler
from .constants import MAX_RENDERED_QA_ITEMS
from .deck_extractor import TextExtractionGateway
from .errors import ExternalServiceError
from .models import (
    CategoryScore,
    DeckAnalysis,
    InvestorQA,
    PitchReport,
    VideoAnalysis,
    new_id,
    utc_now_iso,
)
from .storage import Repositories


logger = logging.getLogger("uvicorn.error")
REPORT_MEDIA_TYPE = "text/html; charset=utf-8"
SHARE_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase
SHARE_SUFFIX_LENGTH = 9

REPORT_STYLE = """        body { font-family: Arial, sans-serif; margin: 40px; line-height: 1.6; }
        .header { text-align: center; margin-bottom: 40px; }
        .score { font-size: 2em; color: #6366F1; font-weight: bold; }
        .meta { color: #6B7280; font-size: 0.9em; }
        .section { margin-bottom: 30px; }
        .section h2 { color: #1F2937; border-bottom: 2px solid #6366F1; padding-bottom: 10px; }
        .feedback { background: #F9FAFB; padding: 15px; border-radius: 8px; margin: 10px 0; }
        .recommendations { background: #FEF3C7; padding: 15px; border-radius: 8px; }
        .qa-item { margin-bottom: 20px; padding: 15px; border: 1px solid #E5E7EB; border-radius: 8px; }
        .question { font-weight: bold; color: #1F2937; margin-bottom: 10px; }
        .answer { color: #4B5563; }
        ul { padding-left: 20px; }
        li { margin-bottom: 5px; }"""


def aggregate_score(deck_analysis: Optional[DeckAnalysis], video_analysis: Optional[VideoAnalysis]) -> float:
    scores = [
        analysis.overall_score
        for analysis in (deck_analysis, video_analysis)
        if analysis is not None
    ]
    if not scores:
        return 0
    return round(sum(scores) / len(scores), 1)


def generate_share_token() -> str:
    suffix = "".join(secrets.choice(SHARE_SUFFIX_ALPHABET) for _ in range(SHARE_SUFFIX_LENGTH))
    return f"share_{int(time.time() * 1000)}_{suffix}"


def _e(value) -> str:
    return html.escape(str(value), quote=True)


def _format_score(value: float) -> str:
    number = float(value)
    return str(int(number)) if number.is_integer() else str(number)


def _format_date(iso_value: str) -> str:
    try:
        return datetime.fromisoformat(iso_value).strftime("%B %d, %Y")
    except (TypeError, ValueError):
        return str(iso_value)


def _render_list(items: Iterable[str], indent: str) -> str:
    return "\n".join(f"{indent}<li>{_e(item)}</li>" for item in items)


def _render_category(label: str, category: CategoryScore, extra_lines: Tuple[str, ...] = ()) -> str:
    lines = [
        '        <div class="feedback">',
        f"            <h3>{_e(label)} ({_format_score(category.score)}/10)</h3>",
    ]
    lines.extend(f"            <p>{line}</p>" for line in extra_lines)
    lines.append(f"            <p>{_e(category.feedback)}</p>")
    lines.append("        </div>")
    return "\n".join(lines)


def _render_takeaways(strengths: List[str], improvements: List[str], recommendations: List[str]) -> str:
    return "\n".join(
        [
            "        <h3>Key Strengths</h3>",
            "        <ul>",
            _render_list(strengths, "            "),
            "        </ul>",
            "        <h3>Areas for Improvement</h3>",
            "        <ul>",
            _render_list(improvements, "            "),
            "        </ul>",
            '        <div class="recommendations">',
            "            <h3>Actionable Recommendations</h3>",
            "            <ul>",
            _render_list(recommendations, "                "),
            "            </ul>",
            "        </div>",
        ]
    )


def _render_deck_section(deck: DeckAnalysis) -> str:
    return "\n".join(
        [
            '    <div class="section">',
            "        <h2>Pitch Deck Analysis</h2>",
            f'        <p class="meta">Deck score: {_format_score(deck.overall_score)}/10 '
            f"&middot; Analysis {_e(deck.id)} &middot; {_e(_format_date(deck.created_at))}</p>",
            _render_category("Clarity", deck.clarity),
            _render_category("Storytelling", deck.storytelling),
            _render_category("Flow", deck.flow),
            _render_takeaways(deck.key_strengths, deck.areas_for_improvement, deck.actionable_recommendations),
            "    </div>",
        ]
    )


def _render_video_section(video: VideoAnalysis) -> str:
    filler = video.filler_words
    breakdown = ", ".join(f"{_e(word)}: {count}" for word, count in filler.breakdown.items())
    filler_lines = [
        '        <div class="feedback">',
        f"            <h3>Filler Words ({_format_score(filler.score)}/10)</h3>",
        f"            <p>Count: {filler.count} ({_format_score(filler.percentage)}%)</p>",
    ]
    if breakdown:
        filler_lines.append(f"            <p>Breakdown: {breakdown}</p>")
    filler_lines.append(f"            <p>{_e(filler.feedback)}</p>")
    filler_lines.append("        </div>")

    return "\n".join(
        [
            '    <div class="section">',
            "        <h2>Video Delivery Analysis</h2>",
            f'        <p class="meta">Delivery score: {_format_score(video.overall_score)}/10 '
            f"&middot; Analysis {_e(video.id)} &middot; {_e(_format_date(video.created_at))}</p>",
            _render_category(
                "Speech Pace",
                CategoryScore(score=video.speech_pace.score, feedback=video.speech_pace.feedback),
                (f"Words per minute: {video.speech_pace.words_per_minute}",),
            ),
            "\n".join(filler_lines),
            _render_category("Confidence", video.confidence),
            _render_category("Tone", video.tone),
            _render_takeaways(video.key_strengths, video.areas_for_improvement, video.actionable_recommendations),
            "    </div>",
        ]
    )


def _render_qa_section(qa: InvestorQA) -> str:
    lines = [
        '    <div class="section">',
        "        <h2>Investor Q&amp;A Simulation</h2>",
        "        <p>Practice these common investor questions to improve your pitch readiness:</p>",
    ]
    for index, item in enumerate(qa.questions[:MAX_RENDERED_QA_ITEMS], start=1):
        lines.extend(
            [
                '        <div class="qa-item">',
                f'            <div class="question">Q{index}: {_e(item.question)}</div>',
                f'            <div class="answer"><strong>Suggested Answer:</strong> {_e(item.suggested_answer)}</div>',
                f"            <div><strong>Answer Quality Score:</strong> {item.answer_quality}/10</div>",
                "            <div><strong>Tips:</strong></div>",
                "            <ul>",
                _render_list(item.tips, "                "),
                "            </ul>",
                "        </div>",
            ]
        )
    lines.append("    </div>")
    return "\n".join(lines)


def render_as_document(report: PitchReport) -> bytes:
    """Render a report as a standalone HTML page.

    Output depends only on the report, so the same report always renders to
    the same bytes.
    """
    sections: List[str] = []
    if report.deck_analysis is not None:
        sections.append(_render_deck_section(report.deck_analysis))
    if report.video_analysis is not None:
        sections.append(_render_video_section(report.video_analysis))
    if report.investor_qa is not None:
        sections.append(_render_qa_section(report.investor_qa))

    document = "\n".join(
        [
            "<!DOCTYPE html>",
            '<html lang="en">',
            "<head>",
            '    <meta charset="utf-8">',
            f"    <title>PitchAI Report - {_e(report.title)}</title>",
            "    <style>",
            REPORT_STYLE,
            "    </style>",
            "</head>",
            "<body>",
            '    <div class="header">',
            "        <h1>PitchAI Analysis Report</h1>",
            f"        <h2>{_e(report.title)}</h2>",
            f'        <div class="score">Overall Score: {_format_score(report.overall_score)}/10</div>',
            f"        <p>Generated on {_e(_format_date(report.created_at))}</p>",
            "    </div>",
            *sections,
            '    <div class="section">',
            "        <p><em>This report was generated by PitchAI - AI-powered pitch analysis platform</em></p>",
            "    </div>",
            "</body>",
            "</html>",
            "",
        ]
    )
    return document.encode("utf-8")


class ReportAssembler:
    """Combines analyses into reports, shares them and renders them."""

    def __init__(
        self,
        repos: Repositories,
        analysis: Optional[AnalysisAssembler] = None,
        extractor: Optional[TextExtractionGateway] = None,
    ) -> None:
        self.repos = repos
        self.analysis = analysis
        self.extractor = extractor

    def assemble(
        self,
        user_id: str,
        title: str,
        deck_analysis: Optional[DeckAnalysis] = None,
        video_analysis: Optional[VideoAnalysis] = None,
        investor_qa: Optional[InvestorQA] = None,
        *,
        source_deck_id: Optional[str] = None,
        source_video_id: Optional[str] = None,
    ) -> PitchReport:
        now = utc_now_iso()
        return PitchReport(
            id=new_id("report"),
            user_id=user_id,
            source_deck_id=source_deck_id or (deck_analysis.source_deck_id if deck_analysis else None),
            source_video_id=source_video_id or (video_analysis.source_video_id if video_analysis else None),
            title=title,
            overall_score=aggregate_score(deck_analysis, video_analysis),
            deck_analysis=deck_analysis,
            video_analysis=video_analysis,
            investor_qa=investor_qa,
            created_at=now,
            updated_at=now,
            is_shared=False,
            share_token=None,
        )

    def share(self, report: PitchReport) -> str:
        """Mark a report shared under a fresh token.

        Every call issues a new token; the stored record keeps the last one.
        """
        share_token = generate_share_token()
        updated_at = utc_now_iso()
        self.repos.reports.update(
            report.id,
            {"isShared": True, "shareToken": share_token, "updatedAt": updated_at},
        )
        report.is_shared = True
        report.share_token = share_token
        report.updated_at = updated_at
        logger.info("report_id=%s report_shared", report.id)
        return share_token

    def render_as_document(self, report: PitchReport) -> bytes:
        return render_as_document(report)

    def export_report(self, report: PitchReport) -> Tuple[bytes, str]:
        return render_as_document(report), REPORT_MEDIA_TYPE

    def _deck_text(self, deck_id: str) -> str:
        deck = self.repos.decks.get(deck_id)
        if deck is None or not deck.file_url or self.extractor is None:
            return ""
        try:
            return self.extractor.extract_text(deck.file_url)
        except ExternalServiceError as exc:
            logger.warning("deck_id=%s qa_deck_text_unavailable error=%s", deck_id, exc)
            return ""

    def _video_text(self, video_id: str) -> str:
        video = self.repos.videos.get(video_id)
        return (video.transcription or "") if video is not None else ""

    def generate_report(
        self,
        user_id: str,
        title: str,
        deck_id: Optional[str] = None,
        video_id: Optional[str] = None,
    ) -> PitchReport:
        deck_analysis = self.repos.deck_analyses.latest_for_deck(deck_id) if deck_id else None
        video_analysis = self.repos.video_analyses.latest_for_video(video_id) if video_id else None

        investor_qa: Optional[InvestorQA] = None
        if (deck_analysis or video_analysis) and self.analysis is not None:
            deck_text = self._deck_text(deck_id) if deck_id else ""
            video_text = self._video_text(video_id) if video_id else ""
            if deck_text or video_text:
                investor_qa = self.analysis.generate_investor_qa(
                    deck_text,
                    video_text,
                    user_id=user_id,
                    source_deck_id=deck_id,
                    source_video_id=video_id,
                )
                self.repos.investor_qas.create(investor_qa)

        report = self.assemble(
            user_id,
            title,
            deck_analysis,
            video_analysis,
            investor_qa,
            source_deck_id=deck_id,
            source_video_id=video_id,
        )
        self.repos.reports.create(report)
        logger.info(
            "report_id=%s report_generated user_id=%s overall=%s has_deck=%s has_video=%s has_qa=%s",
            report.id,
            user_id,
            report.overall_score,
            deck_analysis is not None,
            video_analysis is not None,
            investor_qa is not None,
        )
        return report

    def list_user_reports(self, user_id: str) -> List[PitchReport]:
        return self.repos.reports.list_for_user(user_id)

    def get_report(self, report_id: str) -> Optional[PitchReport]:
        return self.repos.reports.get(report_id)

    def get_shared_report(self, share_token: str) -> Optional[PitchReport]:
        if not share_token:
            return None
        return self.repos.reports.get_by_share_token(share_token)
