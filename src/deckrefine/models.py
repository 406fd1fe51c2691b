# pydantic models for documents, scoring results and refinement sessions
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Dict, Any, Optional
from enum import Enum

from .scoring import Dimension, IssueSeverity, IssueType


# enum for the role a slide plays in the narrative
class SlideType(str, Enum):
    TITLE = "title"
    AGENDA = "agenda"
    PROBLEM = "problem"
    SOLUTION = "solution"
    FRAMEWORK = "framework"
    IMPLEMENTATION = "implementation"
    BENEFITS = "benefits"
    TIMELINE = "timeline"
    TEAM = "team"
    NEXT_STEPS = "next-steps"
    CONCLUSION = "conclusion"
    CUSTOM = "custom"


# enum for the visual layout family of a slide
class SlideLayout(str, Enum):
    TITLE_ONLY = "title-only"
    TITLE_CONTENT = "title-content"
    TWO_COLUMN = "two-column"
    THREE_COLUMN = "three-column"
    BULLET_LIST = "bullet-list"
    CENTERED = "centered"
    DIAGRAM = "diagram"
    METRICS = "metrics"
    QUOTE = "quote"
    CIRCLE = "circle"
    DIAMOND = "diamond"
    TABLE = "table"
    TIMELINE = "timeline"
    CHART = "chart"


# model for a titled group of items on a slide
class Section(BaseModel):
    title: str = ""
    description: str = ""
    items: List[str] = []


# model for a single headline number
class KeyMetric(BaseModel):
    label: str
    value: str
    description: Optional[str] = None
    trend: Optional[str] = None  # up, down or neutral


# content payload of a slide; unknown fields are kept as-is
class SlideContent(BaseModel):
    model_config = ConfigDict(extra="allow")

    main_text: Optional[str] = None
    bullet_points: Optional[List[str]] = None
    sections: Optional[List[Section]] = None
    key_metrics: Optional[List[KeyMetric]] = None
    diagram: Optional[Dict[str, Any]] = None
    quote: Optional[str] = None
    callout: Optional[str] = None
    chart: Optional[Dict[str, Any]] = None
    table: Optional[Dict[str, Any]] = None
    timeline: Optional[List[Dict[str, Any]]] = None


# model for a single slide; id and type never change across rounds
class Slide(BaseModel):
    id: str
    type: SlideType
    layout: SlideLayout = SlideLayout.TITLE_CONTENT
    title: str = ""
    subtitle: Optional[str] = None
    content: SlideContent = Field(default_factory=SlideContent)
    metadata: Dict[str, Any] = {}  # speaker_notes lives here


# document level metadata
class DocumentMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    target_audience: str = "executives"
    tone: str = "professional"
    presentation_type: str = "business"
    slide_count: Optional[int] = None
    version: str = "1.0"
    last_refined: Optional[str] = None


# model for a complete presentation; treated as an immutable value
class Document(BaseModel):
    id: str
    title: str
    subtitle: Optional[str] = None
    slides: List[Slide]
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)

    def slide_ids(self) -> List[str]:
        return [slide.id for slide in self.slides]

    def get_slide(self, slide_id: str) -> Optional[Slide]:
        for slide in self.slides:
            if slide.id == slide_id:
                return slide
        return None


# what the user originally asked for; context for framework choice and regeneration
class RefinementRequest(BaseModel):
    prompt: str = ""
    presentation_type: str = "business"
    audience: str = "executives"
    tone: str = "professional"
    slide_count: Optional[int] = None
    framework: Optional[str] = None  # pin a framework instead of recommending one


# model for the four dimension scores
class DimensionScores(BaseModel):
    framework_adherence: float = Field(ge=0, le=100)
    audience_readiness: float = Field(ge=0, le=100)
    content_clarity: float = Field(ge=0, le=100)
    business_impact: float = Field(ge=0, le=100)

    def as_dict(self) -> Dict[Dimension, float]:
        return {
            Dimension.FRAMEWORK_ADHERENCE: self.framework_adherence,
            Dimension.AUDIENCE_READINESS: self.audience_readiness,
            Dimension.CONTENT_CLARITY: self.content_clarity,
            Dimension.BUSINESS_IMPACT: self.business_impact,
        }


# model for a single defect found while scoring
class Issue(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: IssueType
    severity: IssueSeverity
    title: str
    description: str
    suggested_fix: str = ""
    confidence: float = Field(default=80, ge=0, le=100)
    affected_slides: List[str] = []  # slide ids
    framework_related: bool = False


# output shape shared by the llm scorer and the rule-based scorer
class ScoringResult(BaseModel):
    dimension_scores: DimensionScores
    overall_score: float
    quality_level: str
    issues: List[Issue] = []
    recommendations: List[str] = []
    framework_id: str
    source: str = "rule_based"  # llm or rule_based


# model for one step of a narrative framework
class FrameworkStep(BaseModel):
    key: str
    name: str
    description: str
    purpose: str
    indicators: List[str]


# model for how a framework maps onto slides
class SlideMappingGuide(BaseModel):
    typical_slide_count: int
    slide_sequence: List[str]
    content_focus: Dict[str, str]


# model for a named structural template
class Framework(BaseModel):
    id: str
    name: str
    description: str
    steps: List[FrameworkStep]
    best_for: List[str]
    characteristics: List[str] = []
    audience: List[str]
    slide_mapping: SlideMappingGuide
    step_slide_types: Dict[str, SlideType] = {}  # expected slide type per step key


# suitability of one framework for a document
class FrameworkEvaluation(BaseModel):
    framework_id: str
    suitability_score: float = Field(ge=0, le=100)
    rationale: str = ""
    strengths: List[str] = []
    weaknesses: List[str] = []


# how well the document follows its current structure
class FrameworkFit(BaseModel):
    detected_framework: str
    alignment_score: float = Field(ge=0, le=100)
    issues: List[str] = []
    framework_mismatch: bool = False


# output of the framework analyzer
class FrameworkAnalysis(BaseModel):
    recommended_framework: str
    confidence: float = Field(ge=0, le=100)
    rationale: str
    alternative_framework: Optional[str] = None
    evaluations: List[FrameworkEvaluation] = []
    current_fit: FrameworkFit
    source: str = "rule_based"


# one concrete fix in a refinement brief
class CriticalFix(BaseModel):
    priority: int
    issue_id: str
    slide_id: str  # "general" when the issue is not tied to a slide
    issue_type: IssueType
    severity: IssueSeverity
    description: str
    suggested_action: str


# improvement target for a dimension below the target score
class DimensionTarget(BaseModel):
    dimension: Dimension
    current_score: float
    target_score: float
    gap: float
    action_items: List[str]
    focus_areas: List[str]


# content that must survive regeneration
class PreservationInstruction(BaseModel):
    slide_id: str
    reason: str
    elements_to_keep: List[str]


# objectives for the current round
class RoundFocus(BaseModel):
    round: int
    primary_objective: str
    secondary_objectives: List[str]
    acceptance_criteria: List[str]
    target_improvement: float
    focus_dimensions: List[Dimension] = []


# gap between the document and its framework
class FrameworkCompliance(BaseModel):
    framework_id: str
    framework_name: str
    current_alignment: float
    required_elements: List[str]
    missing_elements: List[str]


# structured output of the feedback converter
class RefinementBrief(BaseModel):
    round: int
    current_score: float
    target_score: float
    system_context: str
    critical_fixes: List[CriticalFix]
    dimension_targets: List[DimensionTarget]
    preservation: List[PreservationInstruction]
    round_focus: RoundFocus
    framework_compliance: FrameworkCompliance
    history: List["RoundRecord"] = []
    output_requirements: List[str]


# per-slide decision on what to keep and what to regenerate
class SlidePreservation(BaseModel):
    slide_id: str
    preserve_completely: bool = False
    preserve_elements: List[str] = []
    modify_elements: List[str] = []


# enum for kinds of change a regeneration made to a slide
class ChangeType(str, Enum):
    CONTENT = "content"
    STRUCTURE = "structure"
    DATA = "data"
    FRAMEWORK = "framework"


# change log entry for one slide
class ContentChange(BaseModel):
    slide_id: str
    change_type: ChangeType
    description: str
    issues_addressed: List[str] = []  # issue ids
    before: Optional[str] = None
    after: Optional[str] = None


# output of the content regenerator
class RegenerationResult(BaseModel):
    success: bool
    document: Optional[Document] = None
    changes: List[ContentChange] = []
    preserved_slides: List[str] = []
    modified_slides: List[str] = []
    attempts: int = 0
    error: Optional[str] = None
    error_kind: Optional[str] = None
    duration: float = 0.0


# enum for why a session stopped
class StopReason(str, Enum):
    TARGET_ACHIEVED = "target_achieved"
    CONVERGED = "converged"
    MINIMAL_IMPROVEMENT = "minimal_improvement"
    NO_IMPROVEMENT = "no_improvement"
    REGENERATION_FAILED = "regeneration_failed"
    MAX_ROUNDS = "max_rounds"
    TIME_BUDGET_EXHAUSTED = "time_budget_exhausted"
    CANCELLED = "cancelled"
    ERROR = "error"


# enum for the terminal state of a session
class SessionStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


# immutable record of one refinement round
class RoundRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    round: int
    starting_score: float
    ending_score: float
    improvement: float
    dimension_deltas: Dict[str, float] = {}
    issues_addressed: List[str] = []  # issue ids claimed by the change log
    issues_resolved: List[Issue] = []  # issue types gone after re-scoring
    issues_remaining: List[Issue] = []
    changes_attempted: List[str] = []
    what_worked: List[str] = []
    what_didnt_work: List[str] = []
    lessons_learned: List[str] = []
    duration: float = 0.0
    success: bool = False
    adopted: bool = False
    stop_reason: Optional[str] = None


# aggregate figures for a finished session
class SessionSummary(BaseModel):
    score_improvement: float = 0.0
    critical_issues_resolved: int = 0
    important_issues_resolved: int = 0
    minor_issues_resolved: int = 0
    average_improvement_per_round: float = 0.0
    most_effective_round: Optional[int] = None
    key_improvements: List[str] = []
    major_dimension_improvements: List[str] = []


# stable result contract for every caller
class SessionResult(BaseModel):
    session_id: str
    status: SessionStatus
    stop_reason: StopReason
    initial_document: Document
    final_document: Document
    initial_score: float
    final_score: float
    initial_scores: DimensionScores
    final_scores: DimensionScores
    target_score: float
    target_achieved: bool
    rounds: List[RoundRecord] = []
    framework_analysis: FrameworkAnalysis
    llm_calls: int = 0
    total_duration: float = 0.0
    summary: SessionSummary = Field(default_factory=SessionSummary)


# enum for progress stages
class RefinementStage(str, Enum):
    INITIALIZING = "initializing"
    ANALYZING = "analyzing"
    GENERATING = "generating"
    VALIDATING = "validating"
    APPLYING = "applying"
    COMPLETING = "completing"
    COMPLETED = "completed"
    FAILED = "failed"


# progress of a single round
class RoundProgress(BaseModel):
    round: int
    stage: RefinementStage
    status: str
    start_time: float
    end_time: Optional[float] = None
    starting_score: Optional[float] = None
    ending_score: Optional[float] = None
    improvement: Optional[float] = None
    estimated_time_remaining: Optional[float] = None
    completion_percentage: float = 0.0


# one point of the score trajectory
class ScorePoint(BaseModel):
    round: int
    score: float
    improvement: float
    timestamp: float


# score trajectory and projection
class QualityProgression(BaseModel):
    initial_score: Optional[float] = None
    current_score: Optional[float] = None
    target_score: float = 80
    score_history: List[ScorePoint] = []
    projected_final_score: Optional[float] = None
    on_track_to_target: bool = True


# issue resolution counters
class IssueResolutionProgress(BaseModel):
    total_issues_identified: int = 0
    critical_issues_resolved: int = 0
    important_issues_resolved: int = 0
    minor_issues_resolved: int = 0
    issues_remaining: int = 0
    resolution_rate: float = 0.0
    focus_areas: List[str] = []


# snapshot published by the progress tracker
class RefinementProgress(BaseModel):
    session_id: str
    total_rounds: int
    current_round: int
    stage: RefinementStage
    status: str
    overall_percentage: float
    time_elapsed: float
    estimated_time_remaining: float
    rounds: List[RoundProgress] = []
    quality: QualityProgression
    issue_resolution: IssueResolutionProgress
    target_achieved: bool = False
    error: Optional[str] = None


# request body for framework recommendation
class RecommendFrameworkRequest(BaseModel):
    document: Document
    request: RefinementRequest = Field(default_factory=RefinementRequest)


# request body for scoring; without a framework one is recommended first
class ScoreDocumentRequest(BaseModel):
    document: Document
    framework_id: Optional[str] = None
    request: RefinementRequest = Field(default_factory=RefinementRequest)


# request body for a refinement session with optional config overrides
class RefineDocumentRequest(BaseModel):
    document: Document
    request: RefinementRequest = Field(default_factory=RefinementRequest)
    max_rounds: Optional[int] = None
    target_score: Optional[float] = None
    min_improvement: Optional[float] = None
    framework_id: Optional[str] = None

    def config_overrides(self) -> Dict[str, Any]:
        values = {
            "max_rounds": self.max_rounds,
            "target_score": self.target_score,
            "min_improvement": self.min_improvement,
            "framework_id": self.framework_id,
        }
        return {key: value for key, value in values.items() if value is not None}


RefinementBrief.model_rebuild()
