# shared scoring vocabulary: dimensions, weights, severities and issue ordering
from enum import Enum
from functools import cmp_to_key
from typing import Dict, List, TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from .models import DimensionScores, Issue

WEIGHT_TOLERANCE = 1e-6


# quality axes every document is scored on
class Dimension(str, Enum):
    FRAMEWORK_ADHERENCE = "framework_adherence"
    AUDIENCE_READINESS = "audience_readiness"
    CONTENT_CLARITY = "content_clarity"
    BUSINESS_IMPACT = "business_impact"


# severity of an issue found during scoring
class IssueSeverity(str, Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    MINOR = "minor"


# categories of issues reported by the scorers
class IssueType(str, Enum):
    FRAMEWORK_STRUCTURE = "framework_structure"
    FRAMEWORK_CONTENT = "framework_content"
    AUDIENCE_MISMATCH = "audience_mismatch"
    TECHNICAL_DETAIL = "technical_detail"
    CLARITY_LANGUAGE = "clarity_language"
    CLARITY_FLOW = "clarity_flow"
    CONSISTENCY = "consistency"
    BUSINESS_VALUE = "business_value"
    BUSINESS_METRICS = "business_metrics"
    ACTIONABILITY = "actionability"


SEVERITY_PRIORITY: Dict[IssueSeverity, int] = {
    IssueSeverity.CRITICAL: 100,
    IssueSeverity.IMPORTANT: 50,
    IssueSeverity.MINOR: 10,
}

# lower number sorts first
ISSUE_TYPE_PRIORITY: Dict[IssueType, int] = {
    IssueType.FRAMEWORK_STRUCTURE: 1,
    IssueType.BUSINESS_VALUE: 2,
    IssueType.AUDIENCE_MISMATCH: 3,
    IssueType.FRAMEWORK_CONTENT: 4,
    IssueType.BUSINESS_METRICS: 5,
    IssueType.ACTIONABILITY: 6,
    IssueType.CLARITY_FLOW: 7,
    IssueType.CLARITY_LANGUAGE: 8,
    IssueType.TECHNICAL_DETAIL: 9,
    IssueType.CONSISTENCY: 10,
}

ISSUE_TYPE_CATEGORIES: Dict[str, List[IssueType]] = {
    "framework": [IssueType.FRAMEWORK_STRUCTURE, IssueType.FRAMEWORK_CONTENT],
    "audience": [IssueType.AUDIENCE_MISMATCH, IssueType.TECHNICAL_DETAIL],
    "clarity": [IssueType.CLARITY_LANGUAGE, IssueType.CLARITY_FLOW, IssueType.CONSISTENCY],
    "business": [IssueType.BUSINESS_VALUE, IssueType.BUSINESS_METRICS, IssueType.ACTIONABILITY],
}

QUALITY_THRESHOLDS = [
    ("excellent", 90),
    ("good", 75),
    ("acceptable", 60),
    ("needs_improvement", 40),
    ("poor", 0),
]


# relative weight of each dimension in the overall score
class ScoringWeights(BaseModel):
    framework_adherence: float = Field(0.25, ge=0)
    audience_readiness: float = Field(0.30, ge=0)
    content_clarity: float = Field(0.25, ge=0)
    business_impact: float = Field(0.20, ge=0)

    def total(self) -> float:
        return (
            self.framework_adherence
            + self.audience_readiness
            + self.content_clarity
            + self.business_impact
        )

    def is_normalized(self) -> bool:
        return abs(self.total() - 1.0) <= WEIGHT_TOLERANCE

    def as_dict(self) -> Dict[Dimension, float]:
        return {
            Dimension.FRAMEWORK_ADHERENCE: self.framework_adherence,
            Dimension.AUDIENCE_READINESS: self.audience_readiness,
            Dimension.CONTENT_CLARITY: self.content_clarity,
            Dimension.BUSINESS_IMPACT: self.business_impact,
        }


# clamp a value into the 0-100 score range
def clamp_score(value: float) -> float:
    return max(0.0, min(100.0, value))


# weighted sum of the dimension scores, rounded to two decimals
def weighted_overall(scores: "DimensionScores", weights: ScoringWeights) -> float:
    """Overall score as the weighted sum of the four dimensions"""
    values = scores.as_dict()
    total = sum(values[dimension] * weight for dimension, weight in weights.as_dict().items())
    return round(clamp_score(total), 2)


# map a score to a named quality level
def quality_level(score: float) -> str:
    for level, threshold in QUALITY_THRESHOLDS:
        if score >= threshold:
            return level
    return "poor"


# comparison used by prioritize_issues
def _compare_issues(a: "Issue", b: "Issue") -> int:
    severity_diff = SEVERITY_PRIORITY[b.severity] - SEVERITY_PRIORITY[a.severity]
    if severity_diff != 0:
        return severity_diff

    if a.framework_related != b.framework_related:
        return -1 if a.framework_related else 1

    # small confidence differences are treated as noise
    confidence_diff = b.confidence - a.confidence
    if abs(confidence_diff) > 5:
        return 1 if confidence_diff > 0 else -1

    scope_diff = len(b.affected_slides) - len(a.affected_slides)
    if scope_diff != 0:
        return scope_diff

    type_diff = ISSUE_TYPE_PRIORITY.get(a.type, 99) - ISSUE_TYPE_PRIORITY.get(b.type, 99)
    if type_diff != 0:
        return type_diff

    # ids make the order total for otherwise identical issues
    if a.id != b.id:
        return -1 if a.id < b.id else 1
    return 0


# sort issues by severity, framework relation, confidence, scope and type
def prioritize_issues(issues: List["Issue"]) -> List["Issue"]:
    """Return a new list of issues in priority order"""
    return sorted(issues, key=cmp_to_key(_compare_issues))
