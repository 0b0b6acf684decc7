from typing import List, Optional

import pytest

from pitchai.backend.analysis import AnalysisAssembler
from pitchai.backend.report import ReportAssembler
from pitchai.backend.storage import InMemoryRecordStore, Repositories


DECK_RESPONSE = """Clarity: 8
The problem statement is crisp and easy to follow.

Storytelling: 7
The narrative builds toward the ask but sags in the middle.

Flow: 9
Slides transition logically from problem to solution.

Overall Score: 8

Key Strengths:
- Clear market sizing
- Strong team slide

Areas for Improvement:
- Tighten the funding ask
- Add a competitor map

Actionable Recommendations:
1. Lead with traction numbers
2. Cut the appendix slides
"""

VIDEO_RESPONSE = """Pace: 8
Comfortable rhythm for an investor audience.

Filler: 6
Noticeable fillers in the opening minute.

Confidence: 7
Steady delivery with a few hesitant moments.

Tone: 9
Warm and persuasive throughout.

Key Strengths:
- Energetic opening

Areas for Improvement:
- Pause before key numbers

Recommendations:
- Rehearse the first thirty seconds
"""

QA_RESPONSE = """1. What is your customer acquisition cost?
Suggested Answer: Our blended CAC is $120 with a 14 month payback.
Quality Score: 8
Tips:
- Quote the exact number
- Explain the channel mix

2. Who are your main competitors?
Suggested Answer: Incumbent suites that are slow to adopt AI workflows.
Tips:
- Name them directly

3. How will you use the funds?
Suggested Answer: Sixty percent engineering, forty percent go-to-market.
Quality Score: 9
"""


class FakeLLM:
    """Returns canned responses in order and records every prompt."""

    def __init__(self, responses: Optional[List[str]] = None, error: Optional[Exception] = None) -> None:
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def generate_text(self, prompt: str, model: str, max_tokens: int) -> str:
        self.calls.append({"prompt": prompt, "model": model, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class FakeExtractor:
    def __init__(self, text: str = "Deck text about a B2B workflow product.", error: Optional[Exception] = None) -> None:
        self.text = text
        self.error = error
        self.urls = []

    def extract_text(self, document_url: str) -> str:
        self.urls.append(document_url)
        if self.error is not None:
            raise self.error
        return self.text


class FakeTranscriber:
    def __init__(self, text: str = "", error: Optional[Exception] = None) -> None:
        self.text = text
        self.error = error

    def transcribe(self, audio_bytes: bytes) -> str:
        if self.error is not None:
            raise self.error
        return self.text


class FakeObjectStorage:
    storage_name = "fake"

    def __init__(self) -> None:
        self.objects = {}

    def upload(self, data: bytes, path: str, content_type: Optional[str] = None) -> str:
        url = f"memory://{path}"
        self.objects[url] = (data, content_type)
        return url

    def download(self, url: str) -> bytes:
        return self.objects[url][0]


@pytest.fixture
def repos():
    return Repositories(InMemoryRecordStore())


@pytest.fixture
def fake_llm():
    return FakeLLM([DECK_RESPONSE])


@pytest.fixture
def assembler(fake_llm):
    return AnalysisAssembler(fake_llm, model="test-model")


@pytest.fixture
def report_assembler(repos):
    return ReportAssembler(repos)
