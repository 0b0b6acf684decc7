DECK_ANALYSIS_VERSION = "deck_v1"

DECK_CATEGORIES = ("clarity", "storytelling", "flow")

USER_PROMPT_TEMPLATE = """Analyze the following startup pitch deck content for a presentation titled "{title}".

Pitch Content:
{deck_text}

Please provide a comprehensive analysis with scores (1-10) and detailed feedback for:

1. CLARITY: How clear and understandable is the content?
2. STORYTELLING: How compelling is the narrative and flow?
3. FLOW: How well do the slides connect and build upon each other?

For each category, provide:
- A score from 1-10, written as "<Category>: <score>" on its own line
- Specific feedback explaining the score on the next line
- Actionable recommendations for improvement

Also provide:
- Overall score (average of the three categories)
- 3-5 key strengths, as a bulleted list under a "Key Strengths" heading
- 3-5 areas for improvement, as a bulleted list under an "Areas for Improvement" heading
- 5-7 actionable recommendations, as a bulleted list under a "Recommendations" heading

Format your response as a structured analysis that would be valuable for a founder preparing for investor meetings."""


def build_deck_prompt(deck_text: str, title: str) -> str:
    return USER_PROMPT_TEMPLATE.replace("{title}", (title or "").strip()).replace(
        "{deck_text}", (deck_text or "").strip()
    )
