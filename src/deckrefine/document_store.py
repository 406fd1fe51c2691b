# json persistence for documents and session results
import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

from pydantic import BaseModel

from .models import Document, SessionResult

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _write_json(model: BaseModel, filepath: PathLike):
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(model.model_dump(mode="json"), f, indent=2, ensure_ascii=False)


def _read_json(filepath: PathLike) -> Dict[str, Any]:
    with open(filepath, "r", encoding="utf-8") as f:
        return json.load(f)


# save a document to a json file
def save_document(document: Document, filepath: PathLike):
    try:
        _write_json(document, filepath)
        logger.info(f"Document exported to {filepath}")
    except Exception as e:
        logger.error(f"Error exporting document: {str(e)}")
        raise


# load a document from a json file; a session result file yields its final document
def load_document(filepath: PathLike) -> Document:
    """Load a Document from JSON"""
    try:
        data = _read_json(filepath)
        if "final_document" in data and "slides" not in data:
            data = data["final_document"]
        return Document.model_validate(data)
    except Exception as e:
        logger.error(f"Error loading document: {str(e)}")
        raise


def save_session_result(result: SessionResult, filepath: PathLike):
    try:
        _write_json(result, filepath)
        logger.info(f"Session result exported to {filepath}")
    except Exception as e:
        logger.error(f"Error exporting session result: {str(e)}")
        raise


def load_session_result(filepath: PathLike) -> SessionResult:
    try:
        return SessionResult.model_validate(_read_json(filepath))
    except Exception as e:
        logger.error(f"Error loading session result: {str(e)}")
        raise


# statistics about the slides of a document
def get_document_statistics(document: Document) -> Dict[str, Any]:
    """Get statistics about the document"""
    total_slides = len(document.slides)

    slides_by_type: Dict[str, int] = {}
    for slide in document.slides:
        slides_by_type[slide.type.value] = slides_by_type.get(slide.type.value, 0) + 1

    total_bullets = sum(len(slide.content.bullet_points or []) for slide in document.slides)
    total_metrics = sum(len(slide.content.key_metrics or []) for slide in document.slides)
    slides_with_notes = len([slide for slide in document.slides if slide.metadata.get("speaker_notes")])

    return {
        "total_slides": total_slides,
        "slides_by_type": slides_by_type,
        "total_bullets": total_bullets,
        "total_metrics": total_metrics,
        "slides_with_speaker_notes": slides_with_notes,
        "speaker_notes_coverage": slides_with_notes / total_slides * 100 if total_slides > 0 else 0,
        "average_bullets_per_slide": total_bullets / total_slides if total_slides > 0 else 0,
        "version": document.metadata.version,
    }
