"""
tests for the refinement loop
uses scripted scorers and regenerators so no llm is needed
"""

import random
import threading

import pytest

from conftest import FakeLLM, ScriptedRegenerator, ScriptedScorer, build_document, make_issue
from deckrefine.config import RefinementConfig
from deckrefine.content_regenerator import ContentRegenerator
from deckrefine.errors import ConfigurationError
from deckrefine.framework_analyzer import FrameworkAnalyzer
from deckrefine.models import RefinementRequest, RefinementStage, SessionStatus, Slide, SlideType, StopReason
from deckrefine.orchestrator import (
    RefinementOrchestrator,
    create_orchestrator,
    identify_high_quality_slides,
    resolved_issues,
)
from deckrefine.progress_tracker import ProgressTracker
from deckrefine.scoring import IssueSeverity, IssueType, ScoringWeights


def build(scores, config=None, regenerator=None, issues=None, clock=None):
    config = config or RefinementConfig()
    scorer = ScriptedScorer(scores, issues)
    regenerator = regenerator or ScriptedRegenerator()
    kwargs = {"clock": clock} if clock is not None else {}
    orchestrator = RefinementOrchestrator(
        config,
        framework_analyzer=FrameworkAnalyzer(config),
        validation_agent=scorer,
        regenerator=regenerator,
        **kwargs,
    )
    return orchestrator, scorer, regenerator


def test_already_meets_target(weak_document):
    """test if a compliant document finishes with zero rounds"""
    orchestrator, scorer, regenerator = build([85])
    result = orchestrator.refine(weak_document)
    assert result.stop_reason == StopReason.TARGET_ACHIEVED
    assert result.status == SessionStatus.COMPLETED
    assert result.rounds == []
    assert result.target_achieved
    assert result.final_document == weak_document
    assert regenerator.calls == 0
    assert len(scorer.calls) == 1
    assert result.session_id.startswith("session_")


def test_minimal_improvement_stops(weak_document):
    """test if a small gain after round one is rejected"""
    orchestrator, scorer, regenerator = build([60, 61, 62])
    result = orchestrator.refine(weak_document)
    assert result.stop_reason == StopReason.MINIMAL_IMPROVEMENT
    assert len(result.rounds) == 2
    assert result.final_score == 61
    assert result.rounds[0].adopted
    assert not result.rounds[1].adopted
    assert result.final_document.slides[0].title == "Cloud Migration (rev 1)"
    # three scoring calls and two regeneration calls
    assert result.llm_calls == 5


def test_regression_keeps_best_document(weak_document):
    """test if a worse round is discarded and the earlier document kept"""
    orchestrator, _, _ = build([60, 70, 65])
    result = orchestrator.refine(weak_document)
    assert result.stop_reason == StopReason.NO_IMPROVEMENT
    assert result.final_score == 70
    assert result.final_document.slides[0].title == "Cloud Migration (rev 1)"
    assert [record.adopted for record in result.rounds] == [True, False]
    assert result.rounds[1].improvement == -5
    assert result.rounds[1].what_didnt_work


def test_structural_violation_stops_session(weak_document, config):
    """test if a regeneration that drops slides leaves the document unchanged"""
    short = weak_document.model_dump(mode="json")
    short["slides"] = short["slides"][:3]
    llm = FakeLLM(default=short)
    issues = [make_issue("crit", IssueSeverity.CRITICAL, slides=["s2"])]
    orchestrator, scorer, _ = build([60], regenerator=ContentRegenerator(config, llm), issues=issues)

    result = orchestrator.refine(weak_document)
    assert result.stop_reason == StopReason.REGENERATION_FAILED
    assert len(llm.calls) == 3
    assert result.final_document == weak_document
    assert result.final_score == 60
    assert len(result.rounds) == 1
    assert not result.rounds[0].success
    assert not result.rounds[0].adopted
    assert result.llm_calls == 4


def test_cancellation_between_rounds(weak_document):
    """test if a cancel request is honored before the next round"""
    cancel = threading.Event()
    regenerator = ScriptedRegenerator(on_call=lambda calls: cancel.set())
    orchestrator, _, _ = build([50, 60, 70], regenerator=regenerator)
    result = orchestrator.refine(weak_document, cancel_event=cancel)
    assert result.status == SessionStatus.CANCELLED
    assert result.stop_reason == StopReason.CANCELLED
    assert len(result.rounds) == 1
    assert result.final_score == 60
    assert regenerator.calls == 1


def test_constant_scores_stop_without_improvement(weak_document):
    """test if a round with no gain ends the session with the input document"""
    orchestrator, _, _ = build([60])
    result = orchestrator.refine(weak_document)
    assert result.stop_reason == StopReason.NO_IMPROVEMENT
    assert len(result.rounds) == 1
    assert result.final_document == weak_document
    assert result.final_score == 60


def test_max_rounds(weak_document):
    """test if steady gains run until the round limit"""
    orchestrator, _, regenerator = build([50, 55, 60, 65], config=RefinementConfig(target_score=100))
    result = orchestrator.refine(weak_document)
    assert result.stop_reason == StopReason.MAX_ROUNDS
    assert len(result.rounds) == 3
    assert result.final_score == 65
    assert not result.target_achieved

    # each brief carries the history of earlier rounds
    assert [len(brief.history) for brief in regenerator.briefs] == [0, 1, 2]
    assert [brief.round for brief in regenerator.briefs] == [1, 2, 3]

    summary = result.summary
    assert summary.score_improvement == 15
    assert summary.average_improvement_per_round == 5
    assert summary.most_effective_round == 1
    assert summary.key_improvements == []
    assert "framework_adherence: +15 points" in summary.major_dimension_improvements


def test_target_reached_mid_session(weak_document):
    """test if reaching the target stops the loop"""
    orchestrator, _, _ = build([60, 72, 83])
    result = orchestrator.refine(weak_document)
    assert result.stop_reason == StopReason.TARGET_ACHIEVED
    assert result.target_achieved
    assert len(result.rounds) == 2
    assert result.summary.key_improvements == ["Round 1: +12 points", "Round 2: +11 points"]


def test_convergence_near_target(weak_document):
    """test if a score within two points of the target counts as converged"""
    orchestrator, _, regenerator = build([79])
    result = orchestrator.refine(weak_document)
    assert result.stop_reason == StopReason.CONVERGED
    assert result.rounds == []
    assert regenerator.calls == 0


def test_time_budget(weak_document, fake_clock):
    """test if an exhausted time budget stops before the next round"""
    regenerator = ScriptedRegenerator(on_call=lambda calls: fake_clock.advance(40))
    orchestrator, _, _ = build(
        [50, 60, 70],
        config=RefinementConfig(time_budget_seconds=30),
        regenerator=regenerator,
        clock=fake_clock,
    )
    result = orchestrator.refine(weak_document)
    assert result.stop_reason == StopReason.TIME_BUDGET_EXHAUSTED
    assert len(result.rounds) == 1
    assert result.final_score == 60
    assert result.total_duration == 40


def test_invalid_config_fails_before_any_call(weak_document):
    """test if bad weights or an unknown framework raise before scoring"""
    bad_weights = RefinementConfig(weights=ScoringWeights(framework_adherence=0.5))
    orchestrator, scorer, regenerator = build([60], config=bad_weights)
    with pytest.raises(ConfigurationError):
        orchestrator.refine(weak_document)
    assert scorer.calls == []
    assert regenerator.calls == 0

    orchestrator, scorer, _ = build([60])
    with pytest.raises(ConfigurationError):
        orchestrator.refine(weak_document, RefinementRequest(framework="aida"))
    assert scorer.calls == []


def test_pinned_framework_is_scored(weak_document):
    """test if a pinned framework skips recommendation and is used for scoring"""
    orchestrator, scorer, _ = build([85], config=RefinementConfig(framework_id="prep"))
    result = orchestrator.refine(weak_document)
    assert scorer.calls[0][1] == "prep"
    assert result.framework_analysis.recommended_framework == "prep"
    assert result.framework_analysis.source == "pinned"


def test_failure_is_reraised_and_tracked(weak_document):
    """test if an unexpected error propagates and marks the session failed"""
    orchestrator, _, _ = build([60, RuntimeError("scorer crashed")])
    with pytest.raises(RuntimeError):
        orchestrator.refine(weak_document)
    progress = orchestrator.tracker.get_progress()
    assert progress.stage == RefinementStage.FAILED
    assert progress.error == "scorer crashed"


def test_final_score_never_below_initial(weak_document):
    """test monotonic adoption over random score sequences"""
    rng = random.Random(11)
    for _ in range(40):
        scores = [rng.randint(30, 90) for _ in range(6)]
        config = RefinementConfig(max_rounds=rng.randint(1, 5), target_score=rng.randint(60, 95))
        orchestrator, _, _ = build(list(scores), config=config)
        result = orchestrator.refine(weak_document)

        assert result.final_score >= result.initial_score
        assert len(result.rounds) <= config.max_rounds
        adopted = [record for record in result.rounds if record.adopted]
        endings = [record.ending_score for record in adopted]
        assert endings == sorted(set(endings))
        assert result.final_score == (endings[-1] if endings else result.initial_score)
        if not adopted:
            assert result.final_document == weak_document


def test_input_document_is_not_modified(weak_document):
    snapshot = weak_document.model_copy(deep=True)
    orchestrator, _, _ = build([50, 60, 70])
    orchestrator.refine(weak_document)
    assert weak_document == snapshot


def test_tracker_reaches_completed(weak_document):
    """test if the tracker shows a finished session"""
    tracker = ProgressTracker()
    config = RefinementConfig()
    orchestrator = RefinementOrchestrator(
        config,
        framework_analyzer=FrameworkAnalyzer(config),
        validation_agent=ScriptedScorer([60, 70, 81]),
        regenerator=ScriptedRegenerator(),
        tracker=tracker,
    )
    orchestrator.refine(weak_document)
    progress = tracker.get_progress()
    assert progress.stage == RefinementStage.COMPLETED
    assert progress.overall_percentage == 100
    assert progress.target_achieved
    assert [point.score for point in progress.quality.score_history] == [70, 81]


def test_high_quality_slides_and_resolution():
    """test slide issue load and resolved issue detection"""
    document = build_document([Slide(id=f"s{i}", type=SlideType.CUSTOM) for i in range(1, 6)])
    issues = [
        make_issue("crit", IssueSeverity.CRITICAL, slides=["s2"]),
        make_issue("minor", IssueSeverity.MINOR, slides=["s3"]),
        make_issue("imp", IssueSeverity.IMPORTANT, issue_type=IssueType.BUSINESS_VALUE, slides=["s4"]),
    ]
    assert identify_high_quality_slides(document, issues) == ["s1", "s3", "s5"]

    after = [make_issue("other", IssueSeverity.MINOR)]
    resolved = resolved_issues(issues, after)
    assert [issue.id for issue in resolved] == ["imp"]


def test_create_orchestrator_wires_one_service(weak_document, config):
    """test if the factory shares the given service across components"""
    llm = FakeLLM()
    orchestrator = create_orchestrator(config, llm)
    assert orchestrator.framework_analyzer.llm_service is llm
    assert orchestrator.validation_agent.llm_service is llm
    assert orchestrator.regenerator.llm_service is llm
