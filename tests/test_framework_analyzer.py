"""
tests for framework recommendation
"""

import pytest

from conftest import FakeLLM
from deckrefine.errors import ConfigurationError, ErrorKind, Result
from deckrefine.framework_analyzer import FrameworkAnalyzer
from deckrefine.frameworks import FRAMEWORK_PRIORITY, FRAMEWORKS, get_frameworks_by_audience
from deckrefine.models import RefinementRequest


def evaluation(framework_id, score):
    return {
        "framework_id": framework_id,
        "suitability_score": score,
        "rationale": f"{framework_id} rationale",
        "strengths": ["clear"],
        "weaknesses": [],
    }


def test_rule_based_comparison_keywords(weak_document, config):
    """test if comparison wording selects the comparison framework"""
    analyzer = FrameworkAnalyzer(config)
    request = RefinementRequest(prompt="Compare three cloud vendors")
    analysis = analyzer.recommend(weak_document, request)
    assert analysis.recommended_framework == "comparison"
    assert analysis.confidence == 90
    assert analysis.source == "rule_based"
    assert analysis.alternative_framework == "scqa"


def test_rule_based_is_deterministic(weak_document, config):
    """test if the fallback gives identical output for identical input"""
    analyzer = FrameworkAnalyzer(config)
    request = RefinementRequest(prompt="Share our project results")
    assert analyzer.recommend(weak_document, request) == analyzer.recommend(weak_document, request)


def test_rule_based_audience_and_default(weak_document, config):
    """test audience rule and default framework"""
    analyzer = FrameworkAnalyzer(config)
    board = analyzer.recommend(weak_document, RefinementRequest(prompt="Quarterly update", audience="Board"))
    assert board.recommended_framework == "pyramid"

    default = analyzer.recommend(weak_document, RefinementRequest(prompt="Quarterly update", audience="team"))
    assert default.recommended_framework == "scqa"
    assert default.confidence == 70
    assert default.alternative_framework == "pyramid"

    scores = {e.framework_id: e.suitability_score for e in default.evaluations}
    assert [e.framework_id for e in default.evaluations] == FRAMEWORK_PRIORITY
    assert scores["scqa"] == 70
    assert scores["prep"] == 50


def test_llm_recommendation_uses_argmax(weak_document, config):
    """test if the recommended framework is the best evaluated one"""
    llm = FakeLLM([{
        "recommended_framework": "scqa",
        "confidence": 90,
        "rationale": "Problem solving deck",
        "evaluations": [evaluation("scqa", 70), evaluation("prep", 88), evaluation("star", 40)],
    }])
    analysis = FrameworkAnalyzer(config, llm).recommend(weak_document, RefinementRequest(prompt="x"))
    assert analysis.source == "llm"
    assert analysis.recommended_framework == "prep"
    assert analysis.confidence == 88
    assert len(analysis.evaluations) == len(FRAMEWORKS)

    scores = {e.framework_id: e.suitability_score for e in analysis.evaluations}
    # frameworks the model skipped get a neutral score
    assert scores["pyramid"] == 50
    assert scores["comparison"] == 50
    assert analysis.alternative_framework == "scqa"
    assert len(llm.calls) == 1


def test_llm_ties_break_by_fixed_order(weak_document, config):
    """test if equal suitability resolves to the earlier framework"""
    llm = FakeLLM([{
        "recommended_framework": "star",
        "confidence": 80,
        "evaluations": [evaluation(f, 80) for f in ["comparison", "star", "scqa", "prep", "pyramid"]],
    }])
    analysis = FrameworkAnalyzer(config, llm).recommend(weak_document, RefinementRequest())
    assert analysis.recommended_framework == "scqa"


def test_llm_invalid_primary_caps_confidence(weak_document, config):
    """test if an unknown recommended framework lowers confidence"""
    llm = FakeLLM([{
        "recommended_framework": "aida",
        "confidence": 95,
        "evaluations": [evaluation("star", 90)],
    }])
    analysis = FrameworkAnalyzer(config, llm).recommend(weak_document, RefinementRequest())
    assert analysis.recommended_framework == "star"
    assert analysis.confidence <= 60


def test_llm_failure_falls_back_to_rules(weak_document, config):
    """test if a failed call or unusable answer uses the rule-based path"""
    failing = FakeLLM([Result.failure(ErrorKind.TIMEOUT, "slow")])
    analysis = FrameworkAnalyzer(config, failing).recommend(weak_document, RefinementRequest())
    assert analysis.source == "rule_based"

    garbage = FakeLLM(["I cannot help with that"])
    analysis = FrameworkAnalyzer(config, garbage).recommend(weak_document, RefinementRequest(audience="team"))
    assert analysis.source == "rule_based"
    assert analysis.recommended_framework == "scqa"


@pytest.mark.parametrize("evaluations", [5, True, "scqa", {"framework_id": "scqa"}])
def test_wrong_shape_evaluations_fall_back_to_rules(weak_document, config, evaluations):
    """test if evaluations that are not a list use the rule-based path"""
    llm = FakeLLM(default={"evaluations": evaluations, "recommended_framework": "scqa"})
    analysis = FrameworkAnalyzer(config, llm).recommend(weak_document, RefinementRequest(audience="team"))
    assert analysis.source == "rule_based"
    assert analysis.recommended_framework == "scqa"
    assert len(llm.calls) == 1


def test_pinned_framework_skips_llm(weak_document, config):
    """test if a pinned framework is used without a remote call"""
    llm = FakeLLM()
    analysis = FrameworkAnalyzer(config, llm).recommend(weak_document, RefinementRequest(framework="star"))
    assert analysis.recommended_framework == "star"
    assert analysis.confidence == 100
    assert analysis.source == "pinned"
    assert llm.calls == []


def test_pinned_unknown_framework_fails(weak_document, config):
    """test if pinning an unknown framework raises a configuration error"""
    with pytest.raises(ConfigurationError):
        FrameworkAnalyzer(config).recommend(weak_document, RefinementRequest(framework="aida"))


def test_current_fit(strong_document, config):
    """test the detected structure of the current slides"""
    fit = FrameworkAnalyzer(config).detect_current_fit(strong_document, "comparison")
    assert fit.detected_framework in FRAMEWORKS
    assert 0 <= fit.alignment_score <= 100
    assert fit.framework_mismatch == (fit.detected_framework != "comparison")


def test_registry_queries():
    """test framework lookups by audience"""
    ids = [framework.id for framework in get_frameworks_by_audience("board members")]
    assert ids == ["scqa", "pyramid"]
