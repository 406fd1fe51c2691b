# scores documents with the llm and falls back to rule-based scoring
import logging
from typing import Any, Dict, List, Optional

from .config import RefinementConfig
from .content_analyzer import ContentAnalyzer
from .errors import ConfigurationError
from .frameworks import get_framework
from .models import DimensionScores, Document, Issue, ScoringResult
from .prompts import scoring_messages
from .response_parser import parse_structured_response
from .scoring import (
    Dimension,
    IssueSeverity,
    IssueType,
    clamp_score,
    prioritize_issues,
    quality_level,
    weighted_overall,
)

logger = logging.getLogger(__name__)

# fields that may be backfilled; dimension scores never are
RESPONSE_DEFAULTS = {"issues": [], "recommendations": []}

FRAMEWORK_ISSUE_TYPES = {IssueType.FRAMEWORK_STRUCTURE, IssueType.FRAMEWORK_CONTENT}


# validation agent producing a ScoringResult for a document
class ValidationAgent:
    """Score a document on four weighted dimensions and list its issues"""

    def __init__(self, config: RefinementConfig, llm_service=None, analyzer: Optional[ContentAnalyzer] = None):
        self.config = config
        self.llm_service = llm_service
        self.analyzer = analyzer or ContentAnalyzer(config)
        self.llm_calls = 0

    # score with the llm when available, otherwise with rules
    def score(self, document: Document, framework_id: str) -> ScoringResult:
        framework = get_framework(framework_id)
        if framework is None:
            raise ConfigurationError(f"Unknown framework '{framework_id}'")

        if self.llm_service is not None:
            self.llm_calls += 1
            result = self.llm_service.chat(
                scoring_messages(document, framework, self.config.weights, self.config.audience_level),
                max_tokens=self.config.llm.max_tokens,
                temperature=self.config.llm.temperature,
            )
            if result.ok:
                scoring = self._from_response(result.value, document, framework_id)
                if scoring is not None:
                    logger.info(f"📊 Model score: {scoring.overall_score} ({len(scoring.issues)} issues)")
                    return scoring
                logger.warning("⚠️ Scoring response failed validation, using rule-based scorer")
            else:
                logger.warning(f"⚠️ Scoring call failed ({result.kind.value}), using rule-based scorer")

        return self.analyzer.score(document, framework_id)

    # parse and validate a scoring response, None when unusable
    def _from_response(self, text: str, document: Document, framework_id: str) -> Optional[ScoringResult]:
        outcome = parse_structured_response(text, defaults=RESPONSE_DEFAULTS)
        if not outcome.ok:
            return None

        dimension_scores = self._parse_dimension_scores(outcome.data.get("dimension_scores"))
        if dimension_scores is None:
            return None

        issues = [
            issue
            for issue in self._parse_issues(outcome.data.get("issues"), document)
            if issue.confidence >= self.config.min_confidence
            and (self.config.include_minor_issues or issue.severity != IssueSeverity.MINOR)
        ]
        recommendations = outcome.data.get("recommendations")
        if not isinstance(recommendations, list):
            recommendations = []

        # the reported overall score is ignored
        overall = weighted_overall(dimension_scores, self.config.weights)
        return ScoringResult(
            dimension_scores=dimension_scores,
            overall_score=overall,
            quality_level=quality_level(overall),
            issues=prioritize_issues(issues),
            recommendations=[str(item) for item in recommendations],
            framework_id=framework_id,
            source="llm",
        )

    # every dimension must be present, numeric and within 0-100
    def _parse_dimension_scores(self, raw: Any) -> Optional[DimensionScores]:
        if not isinstance(raw, dict):
            logger.debug("Scoring response has no dimension_scores object")
            return None
        values: Dict[str, float] = {}
        for dimension in Dimension:
            value = raw.get(dimension.value)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                logger.debug(f"Dimension {dimension.value} missing or not numeric: {value!r}")
                return None
            if not 0 <= value <= 100:
                logger.debug(f"Dimension {dimension.value} out of range: {value}")
                return None
            values[dimension.value] = float(value)
        return DimensionScores(**values)

    def _parse_issues(self, raw: Any, document: Document) -> List[Issue]:
        if not isinstance(raw, list):
            return []
        slide_ids = document.slide_ids()
        issues = []
        for index, item in enumerate(raw):
            if not isinstance(item, dict):
                continue
            issue_type = _enum_or_default(IssueType, item.get("type"), IssueType.CONSISTENCY)
            try:
                confidence = clamp_score(float(item.get("confidence", 80)))
            except (TypeError, ValueError):
                confidence = 80.0
            issues.append(
                Issue(
                    id=str(item.get("id") or f"llm-issue-{index}"),
                    type=issue_type,
                    severity=_enum_or_default(IssueSeverity, item.get("severity"), IssueSeverity.MINOR),
                    title=str(item.get("title") or issue_type.value.replace("_", " ").title()),
                    description=str(item.get("description") or ""),
                    suggested_fix=str(item.get("suggested_fix") or ""),
                    confidence=confidence,
                    affected_slides=_resolve_slides(item.get("affected_slides"), slide_ids),
                    framework_related=issue_type in FRAMEWORK_ISSUE_TYPES,
                )
            )
        return issues


def _enum_or_default(enum_cls, value, default):
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        return default


# keep known slide ids; integers are read as 1-based slide positions
def _resolve_slides(raw: Any, slide_ids: List[str]) -> List[str]:
    if not isinstance(raw, list):
        return []
    resolved = []
    for ref in raw:
        if isinstance(ref, str) and ref in slide_ids:
            slide_id = ref
        elif isinstance(ref, int) and not isinstance(ref, bool) and 1 <= ref <= len(slide_ids):
            slide_id = slide_ids[ref - 1]
        else:
            continue
        if slide_id not in resolved:
            resolved.append(slide_id)
    return resolved
