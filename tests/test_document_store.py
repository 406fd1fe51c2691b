"""
tests for document persistence and statistics
"""

import pytest

from conftest import ScriptedRegenerator, ScriptedScorer
from deckrefine.config import RefinementConfig
from deckrefine.document_store import (
    get_document_statistics,
    load_document,
    load_session_result,
    save_document,
    save_session_result,
)
from deckrefine.framework_analyzer import FrameworkAnalyzer
from deckrefine.orchestrator import RefinementOrchestrator


def test_document_file_round_trip(tmp_path, strong_document):
    """test if a saved document loads back unchanged"""
    path = tmp_path / "nested" / "deck.json"
    save_document(strong_document, path)
    assert load_document(path) == strong_document


def test_load_document_from_session_file(tmp_path, weak_document):
    """test if a session result file yields its final document"""
    config = RefinementConfig()
    orchestrator = RefinementOrchestrator(
        config,
        framework_analyzer=FrameworkAnalyzer(config),
        validation_agent=ScriptedScorer([60, 70, 71]),
        regenerator=ScriptedRegenerator(),
    )
    result = orchestrator.refine(weak_document)
    path = tmp_path / "session.json"
    save_session_result(result, path)

    assert load_session_result(path) == result
    assert load_document(path) == result.final_document


def test_load_invalid_document_raises(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text('{"id": "x"}')
    with pytest.raises(ValueError):
        load_document(path)


def test_document_statistics(strong_document):
    """test slide, bullet, metric and speaker note counts"""
    stats = get_document_statistics(strong_document)
    assert stats["total_slides"] == 5
    assert stats["slides_by_type"] == {"title": 1, "problem": 1, "solution": 1, "benefits": 1, "next-steps": 1}
    assert stats["total_bullets"] == 9
    assert stats["total_metrics"] == 3
    assert stats["slides_with_speaker_notes"] == 1
    assert stats["speaker_notes_coverage"] == pytest.approx(20)
    assert stats["average_bullets_per_slide"] == pytest.approx(1.8)
    assert stats["version"] == "1.0"
