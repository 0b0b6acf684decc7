VIDEO_ANALYSIS_VERSION = "video_v1"

# Keyword searched in the model output for each delivery category.
VIDEO_CATEGORIES = {
    "speech_pace": "pace",
    "filler_words": "filler",
    "confidence": "confidence",
    "tone": "tone",
}

USER_PROMPT_TEMPLATE = """Analyze the following pitch video transcription for speech delivery quality.

Video Duration: {duration_seconds} seconds
Transcription:
{transcript}

Please analyze and score (1-10) the following aspects:

1. SPEECH PACE: Evaluate the speaking pace ({words_per_minute} WPM)
2. FILLER WORDS: Count and assess usage of "um", "uh", "like", "you know", etc.
3. CONFIDENCE: Assess confidence level based on word choice and structure
4. TONE: Evaluate enthusiasm, professionalism, and engagement

For each category, provide:
- A score from 1-10, written as "<Category>: <score>" on its own line
- Specific feedback explaining the score on the next line
- Actionable recommendations for improvement

Also provide:
- Overall delivery score (average of the four categories)
- 3-5 key strengths in delivery, as a bulleted list under a "Key Strengths" heading
- 3-5 areas for improvement, as a bulleted list under an "Areas for Improvement" heading
- 5-7 actionable recommendations for better delivery, as a bulleted list under a "Recommendations" heading

Focus on practical advice for improving pitch delivery and investor engagement."""


def _format_duration(duration_seconds: float) -> str:
    value = float(duration_seconds or 0)
    if value.is_integer():
        return str(int(value))
    return f"{value:.1f}"


def build_video_prompt(transcript: str, duration_seconds: float, words_per_minute: int) -> str:
    return (
        USER_PROMPT_TEMPLATE.replace("{duration_seconds}", _format_duration(duration_seconds))
        .replace("{transcript}", (transcript or "").strip())
        .replace("{words_per_minute}", str(int(words_per_minute)))
    )
