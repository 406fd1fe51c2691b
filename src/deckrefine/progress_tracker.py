# progress state machine for a refinement session
import logging
import time
from typing import Callable, Dict, List, Optional

from .models import (
    IssueResolutionProgress,
    QualityProgression,
    RefinementProgress,
    RefinementStage,
    RoundProgress,
    ScorePoint,
)

logger = logging.getLogger(__name__)

# share of a round that is done when it reaches a stage
STAGE_PERCENTAGES: Dict[RefinementStage, float] = {
    RefinementStage.ANALYZING: 20,
    RefinementStage.GENERATING: 50,
    RefinementStage.VALIDATING: 80,
    RefinementStage.APPLYING: 90,
    RefinementStage.COMPLETED: 100,
}

STAGE_MESSAGES: Dict[RefinementStage, str] = {
    RefinementStage.INITIALIZING: "Initializing refinement session...",
    RefinementStage.ANALYZING: "Analyzing content and identifying issues...",
    RefinementStage.GENERATING: "Generating improved content...",
    RefinementStage.VALIDATING: "Validating improvements...",
    RefinementStage.APPLYING: "Applying content changes...",
    RefinementStage.COMPLETING: "Finalizing refinement...",
    RefinementStage.COMPLETED: "Refinement completed successfully",
    RefinementStage.FAILED: "Refinement failed",
}

DEFAULT_ROUND_SECONDS = 90.0  # used before any round has finished
DEFAULT_ROUND_REMAINING_SECONDS = 120.0  # used before the current round has progressed

ProgressCallback = Callable[[RefinementProgress], None]


# push channel re-emitting tracker snapshots
class ProgressEmitter:
    """Subscribe to progress snapshots; only the latest one is kept"""

    def __init__(self):
        self._listeners: List[ProgressCallback] = []
        self.latest: Optional[RefinementProgress] = None

    # register a callback and return a function that removes it
    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def emit(self, progress: RefinementProgress):
        self.latest = progress
        for callback in list(self._listeners):
            try:
                callback(progress)
            except Exception:
                # a failing listener must not stop the session
                logger.exception("Progress callback error")

    def clear(self):
        self._listeners = []


def format_time(seconds: float) -> str:
    total = int(seconds)
    minutes, remaining = divmod(total, 60)
    if minutes > 0:
        return f"{minutes}m {remaining}s"
    return f"{remaining}s"


# pure state machine; every change is published to the emitter
class ProgressTracker:
    """Track stages, rounds, score history and issue resolution for one session"""

    def __init__(self, emitter: Optional[ProgressEmitter] = None, clock: Callable[[], float] = time.monotonic):
        self.emitter = emitter
        self.clock = clock
        self.reset()

    def reset(self):
        self.session_id = ""
        self.total_rounds = 3
        self.current_round = 0
        self.session_start: Optional[float] = None
        self.rounds: List[RoundProgress] = []
        self.stage = RefinementStage.INITIALIZING
        self.status = ""
        self.target_achieved = False
        self.error: Optional[str] = None
        self.quality = QualityProgression()
        self.issue_resolution = IssueResolutionProgress()

    def initialize_session(self, session_id: str, total_rounds: int, target_score: float = 80):
        self.reset()
        self.session_id = session_id
        self.total_rounds = total_rounds
        self.session_start = self.clock()
        self.status = STAGE_MESSAGES[RefinementStage.INITIALIZING]
        self.quality = QualityProgression(target_score=target_score)
        logger.info(f"📊 Progress tracker initialized for session {session_id}")
        self._publish()

    def set_initial_score(self, score: float):
        self.quality.initial_score = score
        self.quality.current_score = score
        self._publish()

    def start_round(self, round_number: int, focus_areas: Optional[List[str]] = None):
        self.current_round = round_number
        self.issue_resolution.focus_areas = list(focus_areas or [])
        self.stage = RefinementStage.ANALYZING
        self.status = f"Starting round {round_number}/{self.total_rounds}"

        progress = RoundProgress(
            round=round_number,
            stage=RefinementStage.ANALYZING,
            status=self.status,
            start_time=self.clock(),
            starting_score=self.quality.current_score,
            completion_percentage=STAGE_PERCENTAGES[RefinementStage.ANALYZING],
        )
        self.rounds = [r for r in self.rounds if r.round != round_number] + [progress]
        logger.info(f"🔄 Started round {round_number}/{self.total_rounds}")
        self._publish()

    def update_stage(self, stage: RefinementStage, status: Optional[str] = None):
        self.stage = stage
        self.status = status or STAGE_MESSAGES.get(stage, "Processing...")

        current = self._current_round_progress()
        if current is not None and current.end_time is None:
            current.stage = stage
            current.status = self.status
            current.completion_percentage = STAGE_PERCENTAGES.get(stage, current.completion_percentage)
            current.estimated_time_remaining = self._estimate_round_remaining(current)
        self._publish()

    def complete_round(self, round_number: int, ending_score: float, improvement: float):
        progress = self._round(round_number)
        if progress is None:
            logger.warning(f"Cannot complete round {round_number}: round progress not found")
            return

        now = self.clock()
        progress.stage = RefinementStage.COMPLETED
        progress.status = f"Round {round_number} completed: {improvement:+g} points"
        progress.end_time = now
        progress.ending_score = ending_score
        progress.improvement = improvement
        progress.completion_percentage = 100
        progress.estimated_time_remaining = 0

        self.quality.current_score = ending_score
        self.quality.score_history.append(
            ScorePoint(round=round_number, score=ending_score, improvement=improvement, timestamp=now)
        )
        self._update_projection()
        logger.info(f"✅ Round {round_number} completed: {ending_score}/100 ({improvement:+g} points)")
        self._publish()

    # a round whose candidate was not adopted
    def abandon_round(self, round_number: int, reason: str):
        progress = self._round(round_number)
        if progress is None:
            return
        progress.status = f"Round {round_number} not applied: {reason}"
        progress.end_time = self.clock()
        progress.completion_percentage = 100
        progress.estimated_time_remaining = 0
        logger.info(f"⚠️ Round {round_number} not applied: {reason}")
        self._publish()

    def update_issue_resolution(
        self,
        total_issues: int,
        critical_resolved: int,
        important_resolved: int,
        minor_resolved: int,
        remaining: int,
    ):
        resolved = critical_resolved + important_resolved + minor_resolved
        self.issue_resolution = IssueResolutionProgress(
            total_issues_identified=total_issues,
            critical_issues_resolved=critical_resolved,
            important_issues_resolved=important_resolved,
            minor_issues_resolved=minor_resolved,
            issues_remaining=remaining,
            resolution_rate=resolved / total_issues * 100 if total_issues > 0 else 0.0,
            focus_areas=self.issue_resolution.focus_areas,
        )
        self._publish()

    def complete_session(self, target_achieved: bool, final_score: float):
        self.target_achieved = target_achieved
        self.stage = RefinementStage.COMPLETED
        self.quality.current_score = final_score
        if target_achieved:
            self.status = f"Refinement completed successfully! Final score: {final_score}/100"
        else:
            self.status = (
                f"Refinement completed. Final score: {final_score}/100 "
                f"(Target: {self.quality.target_score:g}/100)"
            )
        logger.info(f"🏁 Session completed: Target achieved: {target_achieved}, Final score: {final_score}")
        self._publish()

    def fail_session(self, error: str):
        self.error = error
        self.stage = RefinementStage.FAILED
        self.status = f"Refinement failed: {error}"
        logger.error(f"❌ Session failed: {error}")
        self._publish()

    # snapshot of the whole session
    def get_progress(self) -> RefinementProgress:
        elapsed = self.clock() - self.session_start if self.session_start is not None else 0.0
        return RefinementProgress(
            session_id=self.session_id,
            total_rounds=self.total_rounds,
            current_round=self.current_round,
            stage=self.stage,
            status=self.status,
            overall_percentage=self.overall_percentage(),
            time_elapsed=elapsed,
            estimated_time_remaining=self.estimate_time_remaining(),
            rounds=[r.model_copy() for r in self.rounds],
            quality=self.quality.model_copy(deep=True),
            issue_resolution=self.issue_resolution.model_copy(deep=True),
            target_achieved=self.target_achieved,
            error=self.error,
        )

    # short summary for progress bars and panels
    def get_progress_summary(self) -> Dict[str, object]:
        progress = self.get_progress()
        return {
            "stage": progress.stage.value.capitalize(),
            "status": progress.status,
            "percentage": round(progress.overall_percentage),
            "time_elapsed": format_time(progress.time_elapsed),
            "current_score": progress.quality.current_score,
            "target_score": progress.quality.target_score,
            "round_info": f"Round {progress.current_round}/{progress.total_rounds}",
        }

    def overall_percentage(self) -> float:
        if self.stage == RefinementStage.COMPLETED:
            return 100.0
        if self.stage == RefinementStage.FAILED:
            return 0.0

        completed = len([r for r in self.rounds if r.stage == RefinementStage.COMPLETED])
        current = self._current_round_progress()
        # a finished current round is already counted
        in_progress = 0.0
        if current is not None and current.stage != RefinementStage.COMPLETED:
            in_progress = current.completion_percentage / 100

        total = (completed + in_progress) / max(1, self.total_rounds)
        return min(100.0, max(0.0, total * 100))

    def estimate_time_remaining(self) -> float:
        if self.stage in (RefinementStage.COMPLETED, RefinementStage.FAILED):
            return 0.0

        finished = [r for r in self.rounds if r.end_time is not None]
        if not finished:
            rounds_remaining = self.total_rounds - self.current_round + 1
            return rounds_remaining * DEFAULT_ROUND_SECONDS

        average = sum(r.end_time - r.start_time for r in finished) / len(finished)
        rounds_remaining = self.total_rounds - len(finished)
        current = self._current_round_progress()
        current_remaining = 0.0
        if current is not None and current.end_time is None:
            current_remaining = self._estimate_round_remaining(current)
        return max(0.0, (rounds_remaining - 1) * average + current_remaining)

    def _estimate_round_remaining(self, progress: RoundProgress) -> float:
        if progress.completion_percentage >= 100:
            return 0.0
        if progress.completion_percentage <= 0:
            return DEFAULT_ROUND_REMAINING_SECONDS
        elapsed = self.clock() - progress.start_time
        rate = progress.completion_percentage / 100
        return max(0.0, elapsed / rate - elapsed)

    # linear extrapolation of the average improvement
    def _update_projection(self):
        history = self.quality.score_history
        if not history:
            return
        average = sum(point.improvement for point in history) / len(history)
        remaining = self.total_rounds - len(history)
        current = self.quality.current_score or 0.0
        self.quality.projected_final_score = current + average * remaining
        self.quality.on_track_to_target = self.quality.projected_final_score >= self.quality.target_score

    def _round(self, round_number: int) -> Optional[RoundProgress]:
        for progress in self.rounds:
            if progress.round == round_number:
                return progress
        return None

    def _current_round_progress(self) -> Optional[RoundProgress]:
        if self.current_round <= 0:
            return None
        return self._round(self.current_round)

    def _publish(self):
        if self.emitter is not None:
            self.emitter.emit(self.get_progress())
