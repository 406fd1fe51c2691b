"""
tests for the typer command line interface
"""

import json

import pytest
from typer.testing import CliRunner

from conftest import FakeLLM
from deckrefine import cli
from deckrefine.document_store import load_session_result, save_document

runner = CliRunner()


@pytest.fixture
def document_file(tmp_path, weak_document):
    path = tmp_path / "deck.json"
    save_document(weak_document, path)
    return path


@pytest.fixture
def offline_llm(monkeypatch):
    llm = FakeLLM()
    monkeypatch.setattr(cli, "OllamaLLMService", lambda config: llm)
    return llm


def test_frameworks_command():
    """test if the frameworks table lists every framework"""
    result = runner.invoke(cli.app, ["frameworks"])
    assert result.exit_code == 0
    for framework_id in ["scqa", "prep", "star", "pyramid", "comparison"]:
        assert framework_id in result.output


def test_frameworks_filtered_by_audience():
    result = runner.invoke(cli.app, ["frameworks", "--audience", "procurement"])
    assert result.exit_code == 0
    assert "comparison" in result.output
    assert "scqa" not in result.output


def test_stats_command(document_file):
    """test document statistics output"""
    result = runner.invoke(cli.app, ["stats", str(document_file)])
    assert result.exit_code == 0
    assert "Total Slides" in result.output
    assert "5" in result.output


def test_missing_file_exits_with_error(tmp_path):
    """test if a missing document file is reported"""
    result = runner.invoke(cli.app, ["stats", str(tmp_path / "missing.json")])
    assert result.exit_code == 1
    assert "File not found" in result.output


def test_invalid_document_exits_with_error(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text(json.dumps({"title": "no slides"}))
    result = runner.invoke(cli.app, ["stats", str(path)])
    assert result.exit_code == 1
    assert "Error loading document" in result.output


def test_score_offline(document_file):
    """test rule-based scoring without any llm"""
    result = runner.invoke(cli.app, ["score", str(document_file), "--offline", "--framework", "scqa"])
    assert result.exit_code == 0
    assert "Quality Score" in result.output
    assert "rule_based" in result.output


def test_score_unknown_framework(document_file):
    """test if an unknown framework is a configuration error"""
    result = runner.invoke(cli.app, ["score", str(document_file), "--offline", "--framework", "aida"])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_refine_writes_outputs(tmp_path, document_file, weak_document, offline_llm):
    """test a refine run whose regeneration fails leaves the document as it was"""
    output = tmp_path / "out.json"
    session = tmp_path / "session.json"
    result = runner.invoke(
        cli.app,
        ["refine", str(document_file), "-o", str(output), "--session", str(session), "--target", "95"],
    )
    assert result.exit_code == 0, result.output
    assert "Refinement Summary" in result.output
    assert output.exists()

    saved = load_session_result(session)
    assert saved.stop_reason.value == "regeneration_failed"
    assert saved.final_document == weak_document
    assert offline_llm.calls


def test_refine_default_output_path(tmp_path, document_file, offline_llm):
    """test if the refined document lands next to the input by default"""
    result = runner.invoke(cli.app, ["refine", str(document_file), "--target", "10"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "deck.refined.json").exists()
