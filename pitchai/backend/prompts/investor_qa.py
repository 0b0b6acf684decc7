INVESTOR_QA_VERSION = "qa_v1"

USER_PROMPT_TEMPLATE = """Based on the following startup pitch content, generate 8-10 typical investor questions that would likely be asked during a pitch meeting or due diligence process.

Pitch Content:
{pitch_content}

For each question, provide:
1. The investor question
2. A suggested high-quality answer
3. A quality score (1-10) for the suggested answer
4. 2-3 tips for delivering the answer effectively

Number each question ("1.", "2.", ...) at the start of its line, then put
"Suggested Answer:", "Quality Score:" and "Tips:" on the following lines,
with each tip as a "-" bullet.

Focus on questions that investors commonly ask about:
- Business model and revenue
- Market size and competition
- Team and execution capability
- Financial projections and funding needs
- Growth strategy and scalability
- Risk factors and mitigation

Make the questions realistic and challenging, as they would be in a real investor meeting."""


def build_investor_qa_prompt(pitch_content: str) -> str:
    return USER_PROMPT_TEMPLATE.replace("{pitch_content}", (pitch_content or "").strip())
