# bounded refinement loop: regenerate, re-score, decide
import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Tuple

from .config import RefinementConfig, validate_config
from .content_regenerator import ContentRegenerator
from .feedback_converter import FeedbackConverter
from .framework_analyzer import FrameworkAnalyzer
from .frameworks import require_framework
from .models import (
    Document,
    Framework,
    FrameworkAnalysis,
    Issue,
    RefinementRequest,
    RefinementStage,
    RoundRecord,
    ScoringResult,
    SessionResult,
    SessionStatus,
    SessionSummary,
    StopReason,
)
from .progress_tracker import ProgressTracker
from .scoring import IssueSeverity
from .validation_agent import ValidationAgent

logger = logging.getLogger(__name__)

# severity weights for the per-slide issue load
SLIDE_LOAD_WEIGHTS = {
    IssueSeverity.CRITICAL: 10,
    IssueSeverity.IMPORTANT: 5,
    IssueSeverity.MINOR: 2,
}
HIGH_QUALITY_LOAD = 5
CONVERGENCE_DISTANCE = 2
DIMINISHING_RETURN = 1
KEY_ROUND_IMPROVEMENT = 5
MAJOR_DIMENSION_IMPROVEMENT = 10


# slides whose weighted issue load is low enough to keep as they are
def identify_high_quality_slides(document: Document, issues: List[Issue]) -> List[str]:
    load: Dict[str, int] = {}
    for issue in issues:
        weight = SLIDE_LOAD_WEIGHTS.get(issue.severity, 1)
        for slide_id in issue.affected_slides or ["general"]:
            load[slide_id] = load.get(slide_id, 0) + weight
    return [slide.id for slide in document.slides if load.get(slide.id, 0) < HIGH_QUALITY_LOAD]


# issues from before a round whose type no longer appears after it
def resolved_issues(before: List[Issue], after: List[Issue]) -> List[Issue]:
    remaining_types = {issue.type for issue in after}
    return [issue for issue in before if issue.type not in remaining_types]


# controlling state machine for one or more sessions
class RefinementOrchestrator:
    """Run the refinement loop; every session owns its own state"""

    def __init__(
        self,
        config: RefinementConfig,
        framework_analyzer: FrameworkAnalyzer,
        validation_agent: ValidationAgent,
        regenerator: ContentRegenerator,
        converter: Optional[FeedbackConverter] = None,
        tracker: Optional[ProgressTracker] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.framework_analyzer = framework_analyzer
        self.validation_agent = validation_agent
        self.regenerator = regenerator
        self.converter = converter or FeedbackConverter(config)
        self.tracker = tracker or ProgressTracker(clock=clock)
        self.clock = clock

    def llm_calls(self) -> int:
        return self.framework_analyzer.llm_calls + self.validation_agent.llm_calls + self.regenerator.llm_calls

    # run a full session; the input document is never modified
    def refine(
        self,
        document: Document,
        request: Optional[RefinementRequest] = None,
        cancel_event=None,
    ) -> SessionResult:
        """
        Refine a document until the target is met or a stop condition fires.

        Args:
            document: presentation to refine
            request: original generation request, used as context
            cancel_event: object with is_set(), checked between rounds

        Returns:
            SessionResult with the best document found
        """
        request = request or RefinementRequest(audience=document.metadata.target_audience)
        validate_config(self.config)
        pinned = request.framework or self.config.framework_id
        if pinned:
            require_framework(pinned)

        session_id = f"session_{uuid.uuid4().hex[:12]}"
        start = self.clock()
        calls_before = self.llm_calls()
        target = self.config.target_score

        logger.info("=" * 60)
        logger.info(f"🚀 Starting refinement session {session_id}")
        logger.info(f"🎯 Target score: {target}, max rounds: {self.config.max_rounds}")
        logger.info("=" * 60)

        self.tracker.initialize_session(session_id, self.config.max_rounds, target)
        self.tracker.update_stage(RefinementStage.ANALYZING, "Performing initial analysis")

        try:
            analysis, initial = self._analyze(document, request, pinned)
            framework = require_framework(analysis.recommended_framework)
            self.tracker.set_initial_score(initial.overall_score)
            logger.info(f"📊 Initial quality score: {initial.overall_score}/100 ({initial.quality_level})")

            final_document, final, history, stop_reason = self._loop(
                document, initial, framework, start, cancel_event
            )

            status = SessionStatus.CANCELLED if stop_reason == StopReason.CANCELLED else SessionStatus.COMPLETED
            target_achieved = final.overall_score >= target
            self.tracker.update_stage(RefinementStage.COMPLETING)
            self.tracker.complete_session(target_achieved, final.overall_score)

            result = SessionResult(
                session_id=session_id,
                status=status,
                stop_reason=stop_reason,
                initial_document=document,
                final_document=final_document,
                initial_score=initial.overall_score,
                final_score=final.overall_score,
                initial_scores=initial.dimension_scores,
                final_scores=final.dimension_scores,
                target_score=target,
                target_achieved=target_achieved,
                rounds=history,
                framework_analysis=analysis,
                llm_calls=self.llm_calls() - calls_before,
                total_duration=self.clock() - start,
                summary=self.summarize(initial, final, history),
            )
            self._log_summary(result)
            return result

        except Exception as e:
            logger.error(f"❌ Refinement session failed: {e}")
            self.tracker.fail_session(str(e))
            raise

    # framework analysis and initial scoring; concurrent only when the framework is pinned
    def _analyze(
        self, document: Document, request: RefinementRequest, pinned: Optional[str]
    ) -> Tuple[FrameworkAnalysis, ScoringResult]:
        if pinned:
            with ThreadPoolExecutor(max_workers=2) as pool:
                analysis_future = pool.submit(self.framework_analyzer.recommend, document, request)
                scoring_future = pool.submit(self.validation_agent.score, document, pinned)
                return analysis_future.result(), scoring_future.result()

        analysis = self.framework_analyzer.recommend(document, request)
        return analysis, self.validation_agent.score(document, analysis.recommended_framework)

    def _loop(
        self,
        document: Document,
        initial: ScoringResult,
        framework: Framework,
        start: float,
        cancel_event,
    ) -> Tuple[Document, ScoringResult, List[RoundRecord], StopReason]:
        target = self.config.target_score
        current_document, current = document, initial
        previous_score = initial.overall_score
        history: List[RoundRecord] = []

        if current.overall_score >= target:
            logger.info("✅ Document already meets the target score")
            return current_document, current, history, StopReason.TARGET_ACHIEVED

        stop_reason = StopReason.MAX_ROUNDS
        for round_number in range(1, self.config.max_rounds + 1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("⚠️ Cancellation requested, stopping before the next round")
                stop_reason = StopReason.CANCELLED
                break
            budget = self.config.time_budget_seconds
            if budget is not None and self.clock() - start >= budget:
                logger.info(f"⚠️ Time budget of {budget:g}s exhausted")
                stop_reason = StopReason.TIME_BUDGET_EXHAUSTED
                break
            if self.has_converged(round_number, current.overall_score, previous_score, history):
                logger.info("⚠️ Convergence detected - minimal improvement possible")
                stop_reason = StopReason.CONVERGED
                break

            logger.info("=" * 60)
            logger.info(f"🔄 REFINEMENT ROUND {round_number}/{self.config.max_rounds}")
            logger.info("=" * 60)

            record, candidate, scoring = self.run_round(round_number, current_document, current, framework, history)
            history.append(record)

            if not record.adopted:
                stop_reason = StopReason(record.stop_reason)
                break

            previous_score = current.overall_score
            current_document, current = candidate, scoring
            if current.overall_score >= target:
                logger.info(f"🎯 Target quality achieved: {current.overall_score}/{target}")
                stop_reason = StopReason.TARGET_ACHIEVED
                break

        return current_document, current, history, stop_reason

    # any one condition halts the loop
    def has_converged(
        self, round_number: int, current_score: float, previous_score: float, history: List[RoundRecord]
    ) -> bool:
        if round_number > 1 and current_score == previous_score:
            return True
        if abs(self.config.target_score - current_score) < CONVERGENCE_DISTANCE:
            return True
        adopted = [record for record in history if record.adopted]
        if round_number > 2 and len(adopted) >= 2:
            if all(record.improvement < DIMINISHING_RETURN for record in adopted[-2:]):
                return True
        return False

    # one regenerate-score-decide iteration
    def run_round(
        self,
        round_number: int,
        document: Document,
        scoring: ScoringResult,
        framework: Framework,
        history: List[RoundRecord],
    ) -> Tuple[RoundRecord, Optional[Document], Optional[ScoringResult]]:
        round_start = self.clock()
        stage = self.config.stage_for_round(round_number)
        self.tracker.start_round(round_number, [dimension.value for dimension in stage.focus_dimensions])
        self.tracker.update_stage(RefinementStage.ANALYZING, f"Round {round_number}: Analyzing content issues")

        brief = self.converter.convert(
            scoring.issues,
            scoring.dimension_scores,
            self.config.target_score,
            round_number,
            history,
            identify_high_quality_slides(document, scoring.issues),
            framework,
            document,
        )
        plan = self.regenerator.plan_preservation(document, scoring.issues)

        self.tracker.update_stage(
            RefinementStage.GENERATING, f"Round {round_number}: Regenerating content with improvements"
        )
        regeneration = self.regenerator.regenerate(document, brief, plan)
        starting = scoring.overall_score

        if not regeneration.success:
            logger.error(f"❌ Round {round_number} regeneration failed: {regeneration.error}")
            lessons = ["Keep slide count, identifiers and types unchanged"]
            if regeneration.error_kind == "timeout":
                lessons = ["Generation timed out; a smaller change set may fit the time limit"]
            record = RoundRecord(
                round=round_number,
                starting_score=starting,
                ending_score=starting,
                improvement=0,
                issues_remaining=scoring.issues,
                what_didnt_work=[f"Regeneration failed: {regeneration.error}"],
                lessons_learned=lessons,
                duration=self.clock() - round_start,
                stop_reason=StopReason.REGENERATION_FAILED.value,
            )
            self.tracker.abandon_round(round_number, "regeneration failed")
            return record, None, None

        changes = [change.description for change in regeneration.changes]
        addressed = []
        for change in regeneration.changes:
            addressed.extend(issue_id for issue_id in change.issues_addressed if issue_id not in addressed)

        if not regeneration.modified_slides:
            logger.info(f"⚠️ Round {round_number} changed no slides - stopping refinement")
            record = RoundRecord(
                round=round_number,
                starting_score=starting,
                ending_score=starting,
                improvement=0,
                issues_remaining=scoring.issues,
                what_didnt_work=["No slide was changed by regeneration"],
                lessons_learned=["Every slide was preserved; the remaining issues need slide-level fixes"],
                duration=self.clock() - round_start,
                stop_reason=StopReason.NO_IMPROVEMENT.value,
            )
            self.tracker.abandon_round(round_number, "no slide changed")
            return record, None, None

        self.tracker.update_stage(RefinementStage.VALIDATING, f"Round {round_number}: Validating improvements")
        candidate = self.validation_agent.score(regeneration.document, framework.id)
        improvement = round(candidate.overall_score - starting, 2)

        logger.info(f"📈 Round {round_number} Results:")
        logger.info(f"   Before: {starting}/100")
        logger.info(f"   After: {candidate.overall_score}/100")
        logger.info(f"   Improvement: {improvement:+g} points")
        logger.info(f"   Changes: {len(regeneration.changes)}")

        stop_reason = None
        if improvement <= 0:
            logger.info(f"⚠️ No improvement in round {round_number} - keeping the previous document")
            stop_reason = StopReason.NO_IMPROVEMENT
        elif round_number > 1 and improvement < self.config.min_improvement:
            logger.info(f"⚠️ Below minimum improvement of {self.config.min_improvement:g} - stopping")
            stop_reason = StopReason.MINIMAL_IMPROVEMENT
        adopted = stop_reason is None

        old_scores = scoring.dimension_scores.as_dict()
        deltas = {
            dimension.value: round(value - old_scores[dimension], 2)
            for dimension, value in candidate.dimension_scores.as_dict().items()
        }
        resolved = resolved_issues(scoring.issues, candidate.issues)
        what_worked = [f"{name} {delta:+g}" for name, delta in deltas.items() if delta > 0]
        what_didnt_work = [f"{name} {delta:+g}" for name, delta in deltas.items() if delta < 0]
        lessons = self._lessons(improvement, adopted, deltas)

        record = RoundRecord(
            round=round_number,
            starting_score=starting,
            ending_score=candidate.overall_score,
            improvement=improvement,
            dimension_deltas=deltas,
            issues_addressed=addressed,
            issues_resolved=resolved,
            issues_remaining=candidate.issues,
            changes_attempted=changes,
            what_worked=what_worked,
            what_didnt_work=what_didnt_work,
            lessons_learned=lessons,
            duration=self.clock() - round_start,
            success=improvement > 0,
            adopted=adopted,
            stop_reason=stop_reason.value if stop_reason else None,
        )

        self.tracker.update_issue_resolution(
            total_issues=len(scoring.issues),
            critical_resolved=len([i for i in resolved if i.severity == IssueSeverity.CRITICAL]),
            important_resolved=len([i for i in resolved if i.severity == IssueSeverity.IMPORTANT]),
            minor_resolved=len([i for i in resolved if i.severity == IssueSeverity.MINOR]),
            remaining=len(candidate.issues),
        )

        if not adopted:
            self.tracker.abandon_round(round_number, stop_reason.value)
            return record, None, None

        self.tracker.update_stage(RefinementStage.APPLYING, f"Round {round_number}: Applying content changes")
        self.tracker.complete_round(round_number, candidate.overall_score, improvement)
        return record, regeneration.document, candidate

    def _lessons(self, improvement: float, adopted: bool, deltas: Dict[str, float]) -> List[str]:
        lessons = []
        if adopted:
            best = max(deltas, key=lambda name: deltas[name])
            if deltas[best] > 0:
                lessons.append(f"Changes aimed at {best} paid off most")
        elif improvement <= 0:
            lessons.append("This change set lowered quality; try a narrower rewrite")
        else:
            lessons.append("Returns are diminishing; remaining gains need targeted fixes")
        regressed = [name for name, delta in deltas.items() if delta < 0]
        if regressed:
            lessons.append(f"Protect {', '.join(regressed)} in the next rewrite")
        return lessons

    # aggregate figures over the adopted rounds
    def summarize(self, initial: ScoringResult, final: ScoringResult, history: List[RoundRecord]) -> SessionSummary:
        adopted = [record for record in history if record.adopted]
        resolved = [issue for record in adopted for issue in record.issues_resolved]
        total = round(final.overall_score - initial.overall_score, 2)

        most_effective = None
        if adopted:
            most_effective = max(adopted, key=lambda record: record.improvement).round

        initial_scores = initial.dimension_scores.as_dict()
        major = []
        for dimension, value in final.dimension_scores.as_dict().items():
            delta = value - initial_scores[dimension]
            if delta >= MAJOR_DIMENSION_IMPROVEMENT:
                major.append(f"{dimension.value}: +{delta:g} points")

        return SessionSummary(
            score_improvement=total,
            critical_issues_resolved=len([i for i in resolved if i.severity == IssueSeverity.CRITICAL]),
            important_issues_resolved=len([i for i in resolved if i.severity == IssueSeverity.IMPORTANT]),
            minor_issues_resolved=len([i for i in resolved if i.severity == IssueSeverity.MINOR]),
            average_improvement_per_round=round(total / len(adopted), 2) if adopted else 0.0,
            most_effective_round=most_effective,
            key_improvements=[
                f"Round {record.round}: +{record.improvement:g} points"
                for record in adopted
                if record.improvement > KEY_ROUND_IMPROVEMENT
            ],
            major_dimension_improvements=major,
        )

    def _log_summary(self, result: SessionResult):
        logger.info("=" * 60)
        logger.info("📋 REFINEMENT SUMMARY")
        logger.info("=" * 60)
        logger.info(f"Initial Score: {result.initial_score}/100")
        logger.info(f"Final Score: {result.final_score}/100")
        logger.info(f"Total Improvement: {result.summary.score_improvement:+g} points")
        logger.info(f"Target Achieved: {'✅ Yes' if result.target_achieved else '❌ No'}")
        logger.info(f"Stop Reason: {result.stop_reason.value}")
        logger.info(f"Rounds: {len(result.rounds)}")
        logger.info(f"LLM Calls: {result.llm_calls}")
        for record in result.rounds:
            mark = "✅" if record.adopted else "❌"
            logger.info(
                f"   Round {record.round}: {mark} {record.starting_score} → {record.ending_score} ({record.improvement:+g})"
            )


# wire every component to one llm service
def create_orchestrator(
    config: RefinementConfig,
    llm_service=None,
    tracker: Optional[ProgressTracker] = None,
) -> RefinementOrchestrator:
    if llm_service is None:
        from .llm_service import OllamaLLMService

        llm_service = OllamaLLMService(config.llm)

    return RefinementOrchestrator(
        config,
        framework_analyzer=FrameworkAnalyzer(config, llm_service),
        validation_agent=ValidationAgent(config, llm_service),
        regenerator=ContentRegenerator(config, llm_service),
        converter=FeedbackConverter(config),
        tracker=tracker,
    )
