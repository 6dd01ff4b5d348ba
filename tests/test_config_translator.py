"""
Tests for configuration → instruction / token budget / tier translation
"""
import itertools

import pytest

from exam_overlay.errors import ConfigValidationError
from exam_overlay.models.exam_config import (
    ActiveConfiguration,
    ExamConfiguration,
    ExamType,
    ResponseStyle,
    VALID_STYLES,
    default_style_for,
)
from exam_overlay.services.config_translator import (
    DEFAULT_TOKEN_BUDGET,
    DETAILED_CLOSED_DIRECTIVE,
    DETAILED_OPEN_DIRECTIVE,
    LANGUAGE_DIRECTIVES,
    OPTION_ONLY_DIRECTIVE,
    SUBJECT_DIRECTIVES,
    Tier,
    VISION_DIRECTIVE,
    token_budget_for,
    translate,
)

ALL_PAIRS = list(itertools.product(list(ExamType), list(ResponseStyle)))

EXPECTED_BUDGETS = {
    ResponseStyle.OPTION_ONLY: 20,
    ResponseStyle.SHORT: 50,
    ResponseStyle.MIXED_SHORT: 60,
    ResponseStyle.DETAILED: 150,
    ResponseStyle.MIXED_DETAILED: 150,
}


@pytest.mark.parametrize("exam_type,style", ALL_PAIRS)
def test_pair_accepted_only_when_in_table(exam_type, style):
    config = ExamConfiguration(exam_type=exam_type, response_style=style)
    if style in VALID_STYLES[exam_type]:
        result = translate(config, has_attachments=False)
        assert result.token_budget == EXPECTED_BUDGETS[style]
    else:
        with pytest.raises(ConfigValidationError):
            translate(config, has_attachments=False)


@pytest.mark.parametrize("has_attachments", [False, True])
@pytest.mark.parametrize(
    "exam_type,style",
    [(t, s) for t, styles in VALID_STYLES.items() for s in styles],
)
def test_budget_and_tier(exam_type, style, has_attachments):
    config = ExamConfiguration(exam_type=exam_type, response_style=style)
    result = translate(config, has_attachments)

    assert result.token_budget in {20, 50, 60, 150, 200}
    assert result.token_budget == EXPECTED_BUDGETS[style]
    assert (result.tier == Tier.VISION) == has_attachments


def test_unknown_style_gets_default_budget():
    assert token_budget_for("essay") == DEFAULT_TOKEN_BUDGET == 200


def test_math_closed_spanish_example(math_closed_config):
    result = translate(math_closed_config, has_attachments=False)

    assert OPTION_ONLY_DIRECTIVE in result.instruction
    assert "SPANISH" in result.instruction
    assert "MATH:" in result.instruction
    assert VISION_DIRECTIVE not in result.instruction
    assert result.token_budget == 20
    assert result.tier == Tier.FAST


def test_same_config_with_attachment_uses_vision(math_closed_config):
    result = translate(math_closed_config, has_attachments=True)

    assert result.tier == Tier.VISION
    assert VISION_DIRECTIVE in result.instruction
    assert OPTION_ONLY_DIRECTIVE in result.instruction


def test_fragment_order(math_closed_config):
    text = translate(math_closed_config, has_attachments=True).instruction
    positions = [
        text.index("ROLE:"),
        text.index(VISION_DIRECTIVE),
        text.index("LANG:"),
        text.index(OPTION_ONLY_DIRECTIVE),
        text.index("MATH:"),
    ]
    assert positions == sorted(positions)


def test_auto_language_adds_no_directive():
    config = ExamConfiguration(language="auto")
    text = translate(config, False).instruction
    for directive in LANGUAGE_DIRECTIVES.values():
        assert directive not in text


def test_english_directive():
    text = translate(ExamConfiguration(language="en"), False).instruction
    assert "RESPOND IN ENGLISH" in text


def test_detailed_depends_on_exam_type():
    closed = translate(ExamConfiguration(exam_type="closed", response_style="detailed"), False)
    open_ = translate(ExamConfiguration(exam_type="open", response_style="detailed"), False)

    assert DETAILED_CLOSED_DIRECTIVE in closed.instruction
    assert DETAILED_OPEN_DIRECTIVE not in closed.instruction
    assert DETAILED_OPEN_DIRECTIVE in open_.instruction


def test_coding_subject_directive():
    text = translate(ExamConfiguration(subject="coding"), False).instruction
    assert "CODE: Return code block only." in text
    assert "MATH:" not in text


def test_custom_subject_label():
    config = ExamConfiguration(subject="custom", custom_subject="Derecho Romano")
    text = translate(config, False).instruction
    assert "Subject: Derecho Romano." in text


def test_blank_custom_subject_falls_back_to_general():
    config = ExamConfiguration(subject="custom", custom_subject="  ")
    text = translate(config, False).instruction
    assert "Subject: General." in text


def test_translation_is_deterministic(math_closed_config):
    assert translate(math_closed_config, True) == translate(math_closed_config, True)


def test_default_style_for_is_always_valid():
    for exam_type in ExamType:
        assert default_style_for(exam_type) in VALID_STYLES[exam_type]
    assert default_style_for("open") == ResponseStyle.SHORT
    assert default_style_for("closed") == ResponseStyle.OPTION_ONLY
    assert default_style_for("mixed") == ResponseStyle.MIXED_SHORT


def test_active_configuration_is_frozen(math_closed_config):
    active = ActiveConfiguration.from_draft(math_closed_config)
    with pytest.raises(Exception):
        active.language = "en"


def test_active_configuration_rejects_invalid_pair():
    draft = ExamConfiguration(exam_type="open", response_style="option_only")
    with pytest.raises(ConfigValidationError):
        ActiveConfiguration.from_draft(draft)


def test_subject_directives_cover_math_and_coding_only():
    assert {s.value for s in SUBJECT_DIRECTIVES} == {"math", "coding"}
