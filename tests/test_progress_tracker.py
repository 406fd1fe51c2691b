"""
tests for the progress tracker and emitter
"""

import pytest

from deckrefine.models import RefinementStage
from deckrefine.progress_tracker import ProgressEmitter, ProgressTracker, format_time


@pytest.fixture
def tracker(fake_clock):
    tracker = ProgressTracker(clock=fake_clock)
    tracker.initialize_session("session_test", total_rounds=3, target_score=80)
    tracker.set_initial_score(60)
    return tracker


def test_percentage_follows_stages(tracker):
    """test overall percentage through one round"""
    assert tracker.overall_percentage() == 0
    tracker.start_round(1)
    assert tracker.overall_percentage() == pytest.approx(20 / 3)
    tracker.update_stage(RefinementStage.GENERATING)
    assert tracker.overall_percentage() == pytest.approx(50 / 3)
    tracker.update_stage(RefinementStage.VALIDATING)
    assert tracker.overall_percentage() == pytest.approx(80 / 3)


def test_completed_round_is_counted_once(tracker):
    """test if a completed current round does not count twice"""
    tracker.start_round(1)
    tracker.complete_round(1, 70, 10)
    assert tracker.overall_percentage() == pytest.approx(100 / 3)

    tracker.start_round(2)
    assert tracker.overall_percentage() == pytest.approx(120 / 3)


def test_session_end_states(tracker):
    """test completed and failed sessions"""
    tracker.start_round(1)
    tracker.complete_session(target_achieved=False, final_score=72)
    assert tracker.overall_percentage() == 100
    assert tracker.estimate_time_remaining() == 0
    assert "Target: 80/100" in tracker.status

    tracker.fail_session("connection refused")
    progress = tracker.get_progress()
    assert progress.stage == RefinementStage.FAILED
    assert progress.overall_percentage == 0
    assert progress.error == "connection refused"


def test_time_estimates(tracker, fake_clock):
    """test default and measured remaining time"""
    tracker.start_round(1)
    # no finished round yet: three rounds at the default duration
    assert tracker.estimate_time_remaining() == 270

    fake_clock.advance(60)
    tracker.complete_round(1, 70, 10)
    tracker.start_round(2)
    assert tracker.estimate_time_remaining() == pytest.approx(60)

    fake_clock.advance(10)
    # 20% done after 10s leaves 40s for this round plus one average round
    assert tracker.estimate_time_remaining() == pytest.approx(100)


def test_projection(tracker):
    """test linear projection of the final score"""
    tracker.start_round(1)
    tracker.complete_round(1, 70, 10)
    assert tracker.quality.projected_final_score == pytest.approx(90)
    assert tracker.quality.on_track_to_target

    tracker.start_round(2)
    tracker.complete_round(2, 71, 1)
    assert tracker.quality.projected_final_score == pytest.approx(76.5)
    assert not tracker.quality.on_track_to_target
    assert [point.score for point in tracker.quality.score_history] == [70, 71]


def test_abandoned_round(tracker):
    """test if a round that was not applied is closed without a score point"""
    tracker.start_round(1)
    tracker.abandon_round(1, "no improvement")
    progress = tracker.get_progress()
    assert progress.rounds[0].end_time is not None
    assert "not applied" in progress.rounds[0].status
    assert progress.quality.score_history == []
    assert progress.quality.current_score == 60


def test_issue_resolution(tracker):
    """test resolution counters and rate"""
    tracker.start_round(1, focus_areas=["framework_adherence"])
    tracker.update_issue_resolution(10, 2, 3, 1, 4)
    resolution = tracker.get_progress().issue_resolution
    assert resolution.resolution_rate == pytest.approx(60)
    assert resolution.issues_remaining == 4
    assert resolution.focus_areas == ["framework_adherence"]


def test_emitter_publishes_snapshots(fake_clock):
    """test subscribe, unsubscribe and failing listeners"""
    emitter = ProgressEmitter()
    received = []

    def broken(progress):
        raise RuntimeError("listener bug")

    emitter.subscribe(broken)
    unsubscribe = emitter.subscribe(received.append)

    tracker = ProgressTracker(emitter=emitter, clock=fake_clock)
    tracker.initialize_session("s", total_rounds=2)
    tracker.start_round(1)
    assert len(received) == 2
    assert received[-1].current_round == 1
    assert emitter.latest is received[-1]

    unsubscribe()
    tracker.update_stage(RefinementStage.GENERATING)
    assert len(received) == 2
    assert emitter.latest.stage == RefinementStage.GENERATING


def test_progress_summary(tracker, fake_clock):
    """test the short summary used by progress displays"""
    tracker.start_round(1)
    fake_clock.advance(65)
    summary = tracker.get_progress_summary()
    assert summary["stage"] == "Analyzing"
    assert summary["time_elapsed"] == "1m 5s"
    assert summary["round_info"] == "Round 1/3"
    assert summary["current_score"] == 60
    assert summary["target_score"] == 80
    assert summary["percentage"] == 7


def test_format_time():
    assert format_time(5.9) == "5s"
    assert format_time(125) == "2m 5s"
