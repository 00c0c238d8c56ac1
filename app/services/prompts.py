"""
Prompt builders for portrait and reading generation.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from app.fsm.states import ReadingKind

logger = logging.getLogger(__name__)

# Image models reject prompts over 4000 characters
MAX_PORTRAIT_PROMPT_LENGTH = 3950
MIN_HINTS_LENGTH = 800
HINTS_MARKER = "Based on ALL quiz answers and astrology data:"

PORTRAIT_STYLE_DIRECTIVES = """You are a portrait artist. You are given a description of a person and you need to create a portrait of them. Maintain the style directives strictly.

IMAGE STYLE DIRECTIVES:
- Create a graphite realism portrait.
- Hand-drawn graphite pencil portrait on white paper, finished artwork only.
- Black and white only, no colors.
- Exactly ONE face, ONE person, with no duplicates, reflections, or mirrors.
- Full face visible with natural hair, neck and a small portion of the shoulders. Subject centered on a clean white background.
- Soft pencil pressure, fine linework, subtle cross-hatching, smooth tonal blending, visible paper grain.

ABSOLUTELY FORBIDDEN:
- Pencils, pens, brushes, erasers, hands, fingers, text, letters, numbers, logos, borders or frames.
- Anything other than the finished portrait drawing."""

REPORT_SYSTEM_PROMPT = """You are a warm, insightful astrologer writing a personal soulmate reading.
Write in a friendly, encouraging tone. Never be fatalistic or fear-inducing.
Keep it to 3-5 short paragraphs."""

HOROSCOPE_SYSTEM_PROMPT = """You are a warm astrologer writing short personalized horoscopes.
Be hope-oriented and specific to the person's sign and element.
Never be deterministic or fear-inducing."""

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def _joined(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value if v)
    return str(value) if value else ""


def portrait_hints(answers: Dict[str, Any], astrology: Dict[str, Any]) -> List[str]:
    """One line per non-empty quiz answer or astrology attribute."""
    # "Who are you interested in?" wins over the taker's own gender
    gender = answers.get("genderConfirm") or answers.get("gender") or "Person"
    ethnicity = answers.get("ethnicity")
    if ethnicity == "No preference":
        ethnicity = ""

    pairs = [
        ("Gender", gender),
        ("Ethnicity hint", ethnicity),
        ("Apparent age", answers.get("ageRange")),
        ("Vibe", _joined(answers.get("keyTraits"))),
        ("Appearance priority", answers.get("appearanceImportance")),
        ("Decision style", answers.get("decisionMaking")),
        ("Personal challenge", answers.get("challenge")),
        ("Avoids", answers.get("redFlag")),
        ("Prefers partner", answers.get("partnerPreference")),
        ("Relationship dynamic", answers.get("relationshipDynamic")),
        ("Love language", answers.get("loveLanguage")),
        ("Ideal connection", answers.get("idealConnection")),
        ("Biggest fear", answers.get("relationshipFear")),
        ("Life goals", _joined(answers.get("lifeGoals"))),
        ("Element", astrology.get("element")),
        ("Personality element (quiz)", answers.get("element")),
        ("Sun sign", astrology.get("sunSign")),
        ("Moon sign", astrology.get("moonSign")),
        ("Rising sign", astrology.get("risingSign")),
    ]
    return [f"{label}: {value}." for label, value in pairs if value]


def build_portrait_prompt(answers: Dict[str, Any], astrology: Dict[str, Any]) -> str:
    """
    Portrait prompt from every quiz answer.

    When the prompt exceeds the image model limit the style block is kept
    whole and the hints are cut, never below MIN_HINTS_LENGTH characters.
    """
    hints = "\n".join(
        ["Follow the style directives strictly. Do not deviate from them.", HINTS_MARKER]
        + portrait_hints(answers, astrology)
    )
    prompt = f"{PORTRAIT_STYLE_DIRECTIVES}\n\n{hints}".strip()

    if len(prompt) <= MAX_PORTRAIT_PROMPT_LENGTH:
        return prompt

    logger.warning(f"Portrait prompt too long ({len(prompt)} chars), truncating hints")
    available = MAX_PORTRAIT_PROMPT_LENGTH - len(PORTRAIT_STYLE_DIRECTIVES) - 50
    truncated = hints[: max(available, MIN_HINTS_LENGTH)]
    return f"{PORTRAIT_STYLE_DIRECTIVES} {truncated}".strip()


def build_report_prompt(answers: Dict[str, Any], astrology: Dict[str, Any]) -> str:
    hints = "\n".join(f"- {line}" for line in portrait_hints(answers, astrology))
    name = answers.get("name") or "the reader"
    return f"""Write a soulmate reading for {name}.

Profile:
{hints}

Describe the soulmate's personality, how they will meet, and what the
relationship will feel like."""


def build_horoscope_prompt(
    kind: ReadingKind,
    astrology: Dict[str, Any],
    target: date,
    answers: Optional[Dict[str, Any]] = None,
) -> str:
    """Prompt for one date-scoped reading."""
    sun_sign = astrology.get("sunSign") or "Unknown"
    element = astrology.get("element") or "Unknown"
    birth_date = astrology.get("birthDate") or "Unknown"
    traits = _joined((answers or {}).get("keyTraits")) or "Not specified"

    if kind == ReadingKind.MONTHLY:
        month_name = MONTH_NAMES[target.month - 1]
        return f"""Generate a personalized monthly horoscope for {month_name} {target.year}.

User Details:
- Sun Sign: {sun_sign}
- Element: {element}
- Birth Date: {birth_date}
- Key Traits: {traits}

Cover the overall theme, love and relationships, career and finances,
personal growth, and advice for the month's challenges."""

    day_name = target.strftime("%A")
    return f"""Generate the horoscope for {day_name}, {target.strftime("%B %d, %Y")}.

User Details:
- Sun Sign: {sun_sign}
- Element: {element}
- Birth Date: {birth_date}
- Key Traits: {traits}

Respond as JSON: {{"guidance": str, "emotionScore": int 1-10, "energyScore": int 1-10}}"""
