"""Turn free-form LLM prose into structured scores, feedback and lists.

Model output is not guaranteed to follow the requested layout, so every
function here returns a value for any input. Callers can check
``ParseResult.was_defaulted`` to see whether a fallback was used.
"""
from __future__ import annotations

import logging
import re
import zlib
from typing import List, Optional

from .constants import DEFAULT_CATEGORY_SCORE, MAX_LIST_ITEMS, MAX_QA_ITEMS
from .models import ParseResult, QAItem


logger = logging.getLogger("uvicorn.error")

NUMBER_PATTERN = r"(\d+(?:\.\d+)?)"
NUMBER_MARKER = r"\d+\.(?!\d)"
BULLET_PREFIX = re.compile(r"^\s*(?:(?:[-•*]|" + NUMBER_MARKER + r")\s*)+")
BULLET_LINE = re.compile(r"^\s*(?:[-•*]|" + NUMBER_MARKER + r")")
QA_BLOCK_START = re.compile(r"^" + NUMBER_MARKER + r"\s*")
SECTION_BOUNDARY_WORDS = ("score", "analysis")
QUESTION_PREFIX = re.compile(r"^\s*(?:\*\*)?question\s*:?\s*(?:\*\*)?\s*", re.IGNORECASE)
ANSWER_PREFIX = re.compile(r"^.*?answer\s*:?\s*(?:\*\*)?\s*", re.IGNORECASE)
ANSWER_QUALITY = re.compile(
    r"^(?:\*\*)?(?:answer\s+)?(?:quality(?:\s+score)?|score)(?:\*\*)?\s*[:\-]?\s*(?:\*\*)?\s*(\d{1,2})",
    re.IGNORECASE,
)
TIPS_HEADER = re.compile(r"^(?:\*\*)?(?:delivery\s+)?tips?\b", re.IGNORECASE)

DEFAULT_QA_TIPS = (
    "Be confident and specific in your response",
    "Use data to support your claims",
    "Keep your answer concise but comprehensive",
)
MIN_STANDIN_QUALITY = 7
MAX_STANDIN_QUALITY = 9


def default_feedback(category: str) -> str:
    return f"Analysis for {category} completed. See full report for details."


def extract_score(response: str, category: str) -> ParseResult[float]:
    pattern = re.compile(re.escape(category) + r"[:\s]*" + NUMBER_PATTERN, re.IGNORECASE)
    match = pattern.search(response or "")
    if match is None:
        logger.debug("score_defaulted category=%s default=%s", category, DEFAULT_CATEGORY_SCORE)
        return ParseResult(DEFAULT_CATEGORY_SCORE, was_defaulted=True)
    return ParseResult(float(match.group(1)))


def extract_feedback(response: str, category: str) -> ParseResult[str]:
    lines = (response or "").split("\n")
    needle = category.lower()

    for index, line in enumerate(lines):
        if needle not in line.lower():
            continue
        for following in lines[index + 1 :]:
            text = following.strip()
            if text:
                return ParseResult(text)
        break

    return ParseResult(default_feedback(category), was_defaulted=True)


def _strip_bullet(line: str) -> str:
    return BULLET_PREFIX.sub("", line, count=1).strip()


def extract_list(response: str, keyword: str) -> ParseResult[List[str]]:
    """Collect the bullet items that follow the first line naming ``keyword``.

    Bullet lines are always collected, whatever they mention. A non-bullet
    line ends collection when it is blank or looks like the start of another
    section (mentions "score" or "analysis").
    """
    needle = keyword.lower()
    items: List[str] = []
    collecting = False

    for line in (response or "").split("\n"):
        lowered = line.lower()
        if not collecting:
            if needle in lowered:
                collecting = True
            continue

        if BULLET_LINE.match(line):
            item = _strip_bullet(line)
            if item:
                items.append(item)
        elif not line.strip() or any(word in lowered for word in SECTION_BOUNDARY_WORDS):
            break

    items = items[:MAX_LIST_ITEMS]
    return ParseResult(items, was_defaulted=not items)


def standin_answer_quality(question: str) -> int:
    """Deterministic quality in [7, 9] for answers the model did not score."""
    span = MAX_STANDIN_QUALITY - MIN_STANDIN_QUALITY + 1
    return MIN_STANDIN_QUALITY + zlib.crc32(question.encode("utf-8")) % span


def _parse_answer_quality(lines: List[str]) -> Optional[int]:
    for line in lines:
        match = ANSWER_QUALITY.match(_strip_bullet(line))
        if match:
            value = int(match.group(1))
            if 1 <= value <= 10:
                return value
    return None


def _parse_tips(lines: List[str]) -> List[str]:
    tips: List[str] = []
    collecting = False
    for line in lines:
        if not collecting:
            header = _strip_bullet(line)
            if TIPS_HEADER.match(header):
                collecting = True
                inline = header.split(":", 1)[1].strip().strip("*").strip() if ":" in header else ""
                if inline:
                    tips.append(inline)
            continue
        if BULLET_LINE.match(line):
            tip = _strip_bullet(line)
            if tip:
                tips.append(tip)
        else:
            break
    return tips


def _parse_qa_block(block: str) -> Optional[QAItem]:
    lines = [line.strip() for line in block.split("\n") if line.strip()]
    if len(lines) < 2:
        return None

    question = QUESTION_PREFIX.sub("", lines[0]).strip().strip("*").strip()
    if not question:
        return None

    answer_line = next(
        (
            line
            for line in lines[1:]
            if "answer" in line.lower() and not ANSWER_QUALITY.match(_strip_bullet(line))
        ),
        None,
    )
    suggested_answer = ANSWER_PREFIX.sub("", answer_line, count=1).strip() if answer_line else ""

    quality = _parse_answer_quality(lines[1:])
    if quality is None:
        quality = standin_answer_quality(question)

    tips = _parse_tips(lines[1:]) or list(DEFAULT_QA_TIPS)

    return QAItem(
        question=question,
        suggested_answer=suggested_answer,
        answer_quality=quality,
        tips=tips,
    )


def parse_qa_items(response: str) -> List[QAItem]:
    """Split a numbered Q&A response into question blocks.

    Only top-level ``N.`` markers at the start of a line open a new block,
    so numbered tips inside a block are read as tips, not questions.
    """
    items: List[QAItem] = []
    blocks = _split_top_level_blocks(response or "")
    for block in blocks:
        item = _parse_qa_block(block)
        if item is not None:
            items.append(item)
        if len(items) >= MAX_QA_ITEMS:
            break
    return items


def _split_top_level_blocks(response: str) -> List[str]:
    blocks: List[str] = []
    current: List[str] = []
    started = False
    for line in response.split("\n"):
        if QA_BLOCK_START.match(line):
            if started:
                blocks.append("\n".join(current))
            current = [QA_BLOCK_START.sub("", line, count=1)]
            started = True
        elif started:
            current.append(line)
    if started:
        blocks.append("\n".join(current))
    return blocks
