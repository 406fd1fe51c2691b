"""
tests for converting scoring feedback into refinement briefs
"""

from conftest import make_issue
from deckrefine.config import RefinementConfig, RoundStage
from deckrefine.feedback_converter import FeedbackConverter, render_prompt
from deckrefine.frameworks import get_framework
from deckrefine.models import DimensionScores, RoundRecord
from deckrefine.scoring import Dimension, IssueSeverity, IssueType


def scores(fa=80, ar=40, cc=65, bi=90):
    return DimensionScores(
        framework_adherence=fa, audience_readiness=ar, content_clarity=cc, business_impact=bi
    )


def convert(config, document, issues=None, round_number=1, history=None, preserve=None, framework_id="scqa"):
    return FeedbackConverter(config).convert(
        issues or [],
        scores(),
        80,
        round_number,
        history or [],
        preserve or [],
        get_framework(framework_id),
        document,
    )


def test_conversion_is_deterministic(weak_document, config):
    """test if equal input gives an equal brief"""
    issues = [make_issue("a", IssueSeverity.CRITICAL, slides=["s2"]), make_issue("b")]
    assert convert(config, weak_document, issues) == convert(config, weak_document, issues)


def test_critical_fixes_selection(weak_document):
    """test if fixes are critical or important, prioritized and capped"""
    issues = [
        make_issue("minor", IssueSeverity.MINOR, slides=["s1"]),
        make_issue("important", IssueSeverity.IMPORTANT, slides=["s3", "s4"]),
        make_issue("critical", IssueSeverity.CRITICAL, issue_type=IssueType.BUSINESS_VALUE),
        make_issue("another", IssueSeverity.IMPORTANT, issue_type=IssueType.ACTIONABILITY, slides=["s5"]),
    ]
    brief = convert(RefinementConfig(max_critical_fixes=2), weak_document, issues)
    assert [fix.issue_id for fix in brief.critical_fixes] == ["critical", "another"]
    assert [fix.priority for fix in brief.critical_fixes] == [1, 2]
    assert brief.critical_fixes[0].slide_id == "general"
    assert brief.critical_fixes[1].slide_id == "s5"
    assert "actionable next steps" in brief.critical_fixes[1].suggested_action

    brief = convert(RefinementConfig(), weak_document, issues)
    assert [fix.issue_id for fix in brief.critical_fixes] == ["critical", "another", "important"]
    assert brief.critical_fixes[2].slide_id == "s3"


def test_dimension_targets_sorted_by_gap(weak_document, config):
    """test if only dimensions below target get targets, widest gap first"""
    targets = convert(config, weak_document).dimension_targets
    assert [target.dimension for target in targets] == [
        Dimension.AUDIENCE_READINESS,
        Dimension.CONTENT_CLARITY,
    ]
    assert targets[0].gap == 40
    assert len(targets[0].action_items) == 4
    assert len(targets[1].action_items) == 3


def test_preservation_instructions(weak_document, config):
    """test slide and dimension preservation entries"""
    brief = convert(config, weak_document, preserve=["s4", "s404"])
    slide_ids = [instruction.slide_id for instruction in brief.preservation]
    assert slide_ids == ["s4", "general"]
    assert brief.preservation[0].elements_to_keep == ["Core content and messaging"]
    assert "business_impact" in brief.preservation[1].reason


def test_round_focus_follows_curriculum(weak_document, config):
    """test stage selection, fixed targets and gap closing"""
    first = convert(config, weak_document, round_number=1).round_focus
    assert first.primary_objective == "Fix critical structural and content issues"
    assert first.target_improvement == 15
    assert first.focus_dimensions == [Dimension.FRAMEWORK_ADHERENCE]

    brief = convert(config, weak_document, round_number=3)
    assert brief.round_focus.target_improvement == round(80 - brief.current_score, 2)
    assert "Achieve target score of 80" in brief.round_focus.acceptance_criteria

    # the last stage repeats for later rounds
    later = convert(config, weak_document, round_number=5).round_focus
    assert later.primary_objective == brief.round_focus.primary_objective


def test_custom_curriculum(weak_document):
    """test if a configured curriculum replaces the default one"""
    stage = RoundStage(
        name="only",
        primary_objective="Make it shorter",
        secondary_objectives=[],
        acceptance_criteria=["Reach {target_score}"],
        target_improvement=3,
    )
    focus = convert(RefinementConfig(curriculum=[stage]), weak_document, round_number=2).round_focus
    assert focus.primary_objective == "Make it shorter"
    assert focus.acceptance_criteria == ["Reach 80"]
    assert focus.target_improvement == 3


def test_framework_compliance(weak_document, config):
    """test alignment from framework issues and missing slide types"""
    framework_issue = make_issue("f", issue_type=IssueType.FRAMEWORK_STRUCTURE, framework_related=True)
    scqa = convert(config, weak_document, [framework_issue]).framework_compliance
    assert scqa.missing_elements == []
    assert scqa.current_alignment == 90

    prep = convert(config, weak_document, framework_id="prep").framework_compliance
    assert len(prep.missing_elements) == 3
    assert prep.current_alignment == 55


def test_render_prompt_sections(weak_document, config):
    """test if the rendered prompt carries every brief section"""
    record = RoundRecord(
        round=1,
        starting_score=50,
        ending_score=58,
        improvement=8,
        what_worked=["business_impact +12"],
        lessons_learned=["Metrics helped"],
    )
    issues = [make_issue("critical", IssueSeverity.CRITICAL, slides=["s2"])]
    text = render_prompt(convert(config, weak_document, issues, round_number=2, history=[record]))
    for heading in [
        "REFINEMENT HISTORY",
        "CRITICAL FIXES REQUIRED",
        "DIMENSION IMPROVEMENTS NEEDED",
        "PRESERVE THESE STRONG ELEMENTS",
        "ROUND 2 FOCUS",
        "FRAMEWORK COMPLIANCE (SCQA)",
        "OUTPUT REQUIREMENTS",
    ]:
        assert heading in text
    assert "Round 1: Score 50→58 (+8)" in text
    assert "What Worked: business_impact +12" in text
    assert "1. [s2] clarity_flow" in text
