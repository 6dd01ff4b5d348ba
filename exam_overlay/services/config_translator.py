"""
services/config_translator.py

Configuration → (system instruction, output token budget, service tier).
Pure functions: no I/O, no global state.
"""

from enum import Enum
from typing import Dict, List, NamedTuple

from exam_overlay.models.exam_config import (
    ExamConfiguration,
    ExamType,
    Language,
    ResponseStyle,
    SubjectMode,
    check_style,
)


class Tier(str, Enum):
    FAST = "fast"
    VISION = "vision"


class Translation(NamedTuple):
    instruction: str
    token_budget: int
    tier: Tier


# ── Token budgets ───────────────────────────────────────────────────────────
# Hard output caps per response style; they physically enforce brevity.
TOKEN_BUDGETS: Dict[str, int] = {
    ResponseStyle.OPTION_ONLY.value: 20,
    ResponseStyle.SHORT.value: 50,
    ResponseStyle.MIXED_SHORT.value: 60,
    ResponseStyle.DETAILED.value: 150,
    ResponseStyle.MIXED_DETAILED.value: 150,
}
DEFAULT_TOKEN_BUDGET = 200

# ── Directive fragments ─────────────────────────────────────────────────────
_BASE = (
    "ROLE: High-Precision Exam Solver. Subject: {subject}.\n"
    "IMPERATIVE: MAXIMIZE SPEED. MINIMIZE TOKENS.\n"
    "\n"
    "CORE RULES:\n"
    "1. OUTPUT ONLY THE ANSWER. No intro, no reasoning (unless requested), no \"I think\".\n"
    "2. IF MULTIPLE CHOICE: Output **LETTER** only.\n"
    "3. IF OPEN QUESTION: Stick strictly to word limits."
)
VISION_DIRECTIVE = "VISION: Extract text/diagrams accurately. Solve immediately."

LANGUAGE_DIRECTIVES: Dict[Language, str] = {
    Language.ES: "LANG: RESPOND IN SPANISH.",
    Language.EN: "LANG: RESPOND IN ENGLISH.",
}

OPTION_ONLY_DIRECTIVE = "FORMAT: OPTION ONLY. Ex: **A**. Do not write the text of the option."
SHORT_DIRECTIVE = "FORMAT: ULTRA-CONCISE. Max 10 words. Telegraphic style."
DETAILED_CLOSED_DIRECTIVE = "FORMAT: Option (**A**) + 1 sentence explanation. Max 30 words."
DETAILED_OPEN_DIRECTIVE = "FORMAT: Concise Explanation. Max 30 words. High information density."
MIXED_SHORT_DIRECTIVE = "FORMAT: If MC -> **Letter** only. If Open -> Max 10 words."
MIXED_DETAILED_DIRECTIVE = "FORMAT: If MC -> **Letter** only. If Open -> Max 30 words."

SUBJECT_DIRECTIVES: Dict[SubjectMode, str] = {
    SubjectMode.MATH: "MATH: Return final numeric/algebraic result only.",
    SubjectMode.CODING: "CODE: Return code block only.",
}


def token_budget_for(response_style: str) -> int:
    """Output token cap for a style; unknown styles get DEFAULT_TOKEN_BUDGET."""
    key = response_style.value if isinstance(response_style, Enum) else response_style
    return TOKEN_BUDGETS.get(key, DEFAULT_TOKEN_BUDGET)


def tier_for(has_attachments: bool) -> Tier:
    return Tier.VISION if has_attachments else Tier.FAST


def _style_directive(config: ExamConfiguration) -> str:
    style = config.response_style
    if style == ResponseStyle.OPTION_ONLY:
        return OPTION_ONLY_DIRECTIVE
    if style == ResponseStyle.SHORT:
        return SHORT_DIRECTIVE
    if style == ResponseStyle.DETAILED:
        if config.exam_type == ExamType.CLOSED:
            return DETAILED_CLOSED_DIRECTIVE
        return DETAILED_OPEN_DIRECTIVE
    if style == ResponseStyle.MIXED_SHORT:
        return MIXED_SHORT_DIRECTIVE
    return MIXED_DETAILED_DIRECTIVE


def build_instruction(config: ExamConfiguration, has_attachments: bool) -> str:
    """
    Assemble the system instruction.

    Fragment order: base rules, vision, language, response style, subject.
    """
    fragments: List[str] = [_BASE.format(subject=config.subject_label)]

    if has_attachments:
        fragments.append(VISION_DIRECTIVE)

    language_directive = LANGUAGE_DIRECTIVES.get(config.language)
    if language_directive:
        fragments.append(language_directive)

    fragments.append(_style_directive(config))

    subject_directive = SUBJECT_DIRECTIVES.get(config.subject)
    if subject_directive:
        fragments.append(subject_directive)

    return " ".join(fragments)


def translate(config: ExamConfiguration, has_attachments: bool) -> Translation:
    """
    Translate a configuration into request parameters.

    Args:
        config:          Draft or active configuration.
        has_attachments: True when the submission carries at least one image.

    Returns:
        Translation(instruction, token_budget, tier).

    Raises:
        ConfigValidationError: response_style is not valid for exam_type.
    """
    check_style(config.exam_type, config.response_style)
    return Translation(
        instruction=build_instruction(config, has_attachments),
        token_budget=token_budget_for(config.response_style),
        tier=tier_for(has_attachments),
    )
