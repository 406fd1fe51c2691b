# deterministic rule-based scoring over extracted slide content
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .config import RefinementConfig
from .frameworks import get_framework
from .models import (
    DimensionScores,
    Document,
    Framework,
    Issue,
    KeyMetric,
    ScoringResult,
    Slide,
    SlideLayout,
)
from .scoring import (
    IssueSeverity,
    IssueType,
    clamp_score,
    prioritize_issues,
    quality_level,
    weighted_overall,
)

logger = logging.getLogger(__name__)

# keyword tables used by the sub-assessments
FLOW_TRANSITIONS = ["therefore", "because", "however", "consequently", "thus", "as a result"]
NARRATIVE_TRANSITIONS = ["therefore", "as a result", "consequently", "building on", "next", "moving to"]
EXECUTIVE_TERMS = ["strategic", "roi", "value", "impact", "growth", "competitive", "revenue"]
TECHNICAL_TERMS = ["implementation", "architecture", "configuration", "optimization"]
JARGON_TERMS = ["synergy", "leverage", "paradigm", "utilize"]
VALUE_INDICATORS = ["benefit", "advantage", "improvement", "save", "increase", "reduce"]
ACTION_VERBS = ["implement", "execute", "deploy", "launch", "initiate", "establish"]
TIMEFRAMES = ["immediately", "next quarter", "by end of year", "within 30 days"]
STRATEGIC_TERMS = ["strategic", "priority", "objective", "goal", "mission", "vision"]
FEASIBILITY_INDICATORS = ["timeline", "resource", "budget", "phase", "milestone"]
COMMON_WORDS = {"the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by", "a", "an"}

# issue-detection variants of the tables above
ISSUE_TECHNICAL_TERMS = TECHNICAL_TERMS + ["debugging"]
ISSUE_STRATEGIC_TERMS = ["strategic", "priority", "objective", "goal"]
ISSUE_IMPLEMENTATION_TERMS = ["timeline", "resource", "budget", "phase"]

ACTION_ITEM_PATTERN = re.compile(r"^(implement|execute|deploy|establish|create)")

# words per slide and bullets per slide
DENSITY_THRESHOLDS = {
    "words_per_slide": {"low": 50, "medium": 150, "high": 300},
    "bullets_per_slide": {"low": 3, "medium": 6, "high": 10},
}

# content fields each layout needs to render
LAYOUT_REQUIREMENTS: Dict[SlideLayout, List[str]] = {
    SlideLayout.METRICS: ["key_metrics"],
    SlideLayout.BULLET_LIST: ["bullet_points"],
    SlideLayout.TWO_COLUMN: ["sections"],
    SlideLayout.THREE_COLUMN: ["sections"],
    SlideLayout.CHART: ["chart"],
    SlideLayout.TABLE: ["table"],
    SlideLayout.TIMELINE: ["timeline"],
    SlideLayout.QUOTE: ["quote"],
    SlideLayout.DIAGRAM: ["diagram"],
}

RECOMMENDATION_THRESHOLD = 75
NEUTRAL_STRUCTURE_SCORE = 70
STEP_PRESENT_THRESHOLD = 30


# text and structural elements pulled out of a document
@dataclass
class ExtractedContent:
    text_content: List[str] = field(default_factory=list)
    slide_texts: List[Tuple[str, str]] = field(default_factory=list)  # (slide id, lowercase text)
    titles: List[str] = field(default_factory=list)
    bullet_points: List[str] = field(default_factory=list)
    callouts: List[str] = field(default_factory=list)
    metrics: List[KeyMetric] = field(default_factory=list)
    quantified_benefits: List[str] = field(default_factory=list)
    value_propositions: List[str] = field(default_factory=list)
    action_items: List[str] = field(default_factory=list)
    logical_gaps: List[str] = field(default_factory=list)

    @property
    def all_text(self) -> str:
        return " ".join(self.text_content).lower()

    @property
    def word_count(self) -> int:
        return len(" ".join(self.text_content).split())


# size and density figures for a document
@dataclass
class ContentMetrics:
    word_count: int
    slide_count: int
    bullet_point_count: int
    section_count: int
    metric_count: int
    has_callouts: bool
    has_diagrams: bool
    avg_words_per_slide: int
    content_density: str


# step coverage of a document against one framework
@dataclass
class ComplianceReport:
    expected_steps: List[str]
    present_steps: List[str]
    missing_steps: List[str]
    step_completeness: Dict[str, float]
    structure_score: float

    @property
    def average_completeness(self) -> float:
        if not self.step_completeness:
            return 100.0
        return sum(self.step_completeness.values()) / len(self.step_completeness)


def count_terms(text: str, terms: List[str]) -> int:
    """Number of distinct terms that appear in the text"""
    lower = text.lower()
    return len([term for term in terms if term.lower() in lower])


# headline text of a slide used for step and value detection
def _headline_text(slide: Slide) -> str:
    parts = [slide.title, slide.subtitle, slide.content.main_text]
    return " ".join(part for part in parts if part)


def _is_quantified(metric: KeyMetric) -> bool:
    value = metric.value.lower()
    return any(marker in value for marker in ("%", "$", "million", "billion")) or bool(re.search(r"\d", value))


# rule-based analyzer producing the same result shape as the llm scorer
class ContentAnalyzer:
    """Score documents with keyword heuristics and structural checks"""

    def __init__(self, config: Optional[RefinementConfig] = None):
        self.config = config or RefinementConfig()

    # pull text, structure and business elements out of every slide
    def extract(self, document: Document) -> ExtractedContent:
        content = ExtractedContent()
        for slide in document.slides:
            slide_parts: List[str] = []
            if slide.title:
                content.titles.append(slide.title)
                slide_parts.append(slide.title)
            if slide.subtitle:
                slide_parts.append(slide.subtitle)

            body = slide.content
            if body.main_text:
                slide_parts.append(body.main_text)
            if body.bullet_points:
                content.bullet_points.extend(body.bullet_points)
                slide_parts.extend(body.bullet_points)
            for section in body.sections or []:
                slide_parts.extend(part for part in (section.title, section.description) if part)
                content.bullet_points.extend(section.items)
                slide_parts.extend(section.items)
            for metric in body.key_metrics or []:
                content.metrics.append(metric)
                slide_parts.append(f"{metric.label}: {metric.value}")
                if _is_quantified(metric):
                    content.quantified_benefits.append(f"{metric.label}: {metric.value}")
            if body.callout:
                content.callouts.append(body.callout)
                slide_parts.append(body.callout)
            if body.quote:
                content.value_propositions.append(body.quote)
                slide_parts.append(body.quote)

            headline = _headline_text(slide)
            if "value" in headline.lower() or "benefit" in headline.lower():
                content.value_propositions.append(headline)
            for bullet in body.bullet_points or []:
                if ACTION_ITEM_PATTERN.match(bullet.lower()):
                    content.action_items.append(bullet)

            content.text_content.extend(slide_parts)
            content.slide_texts.append((slide.id, " ".join(slide_parts).lower()))

        content.logical_gaps = self._logical_gaps(content)
        return content

    # one gap per adjacent title pair when the deck has no transitions at all
    def _logical_gaps(self, content: ExtractedContent) -> List[str]:
        titles = content.titles
        if len(titles) <= 2:
            return []
        if count_terms(content.all_text, NARRATIVE_TRANSITIONS) > 0:
            return []
        return [
            f'Potential gap between "{titles[i - 1]}" and "{titles[i]}"'
            for i in range(1, len(titles))
        ]

    def metrics(self, document: Document) -> ContentMetrics:
        content = self.extract(document)
        slide_count = len(document.slides)
        avg_words = round(content.word_count / slide_count) if slide_count else 0

        thresholds = DENSITY_THRESHOLDS["words_per_slide"]
        density = "medium"
        if avg_words < thresholds["low"]:
            density = "low"
        elif avg_words > thresholds["high"]:
            density = "high"

        return ContentMetrics(
            word_count=content.word_count,
            slide_count=slide_count,
            bullet_point_count=len(content.bullet_points),
            section_count=sum(len(slide.content.sections or []) for slide in document.slides),
            metric_count=len(content.metrics),
            has_callouts=bool(content.callouts),
            has_diagrams=any(slide.content.diagram for slide in document.slides),
            avg_words_per_slide=avg_words,
            content_density=density,
        )

    # step coverage against a framework's indicator keywords
    def assess_compliance(self, content: ExtractedContent, framework: Optional[Framework]) -> ComplianceReport:
        if framework is None:
            return ComplianceReport([], [], [], {}, NEUTRAL_STRUCTURE_SCORE)

        all_text = content.all_text
        completeness: Dict[str, float] = {}
        present: List[str] = []
        for step in framework.steps:
            matches = count_terms(all_text, step.indicators)
            completeness[step.key] = min(100.0, matches / len(step.indicators) * 100)
            if completeness[step.key] > STEP_PRESENT_THRESHOLD:
                present.append(step.key)

        expected = [step.key for step in framework.steps]
        missing = [key for key in expected if key not in present]
        avg = sum(completeness.values()) / len(expected)
        structure = round(len(present) / len(expected) * 60 + avg * 0.4)
        return ComplianceReport(expected, present, missing, completeness, structure)

    def _logical_flow(self, content: ExtractedContent) -> float:
        if len(content.titles) < 2:
            return 80
        return min(100, 60 + count_terms(content.all_text, FLOW_TRANSITIONS) * 10)

    def score_framework_adherence(self, content: ExtractedContent, framework: Optional[Framework]) -> float:
        compliance = self.assess_compliance(content, framework)
        score = compliance.structure_score

        if compliance.expected_steps:
            missing_ratio = len(compliance.missing_steps) / len(compliance.expected_steps)
            score = score * (1 - missing_ratio * 0.5)
        score = score * (0.7 + 0.3 * (compliance.average_completeness / 100))

        score = score * 0.8 + self._logical_flow(content) * 0.2
        return round(clamp_score(score))

    def _language_score(self, content: ExtractedContent) -> float:
        text = content.all_text
        score = 70
        level = self.config.audience_level
        if level == "executive":
            score += min(20, count_terms(text, EXECUTIVE_TERMS) * 3)
            score -= min(15, count_terms(text, TECHNICAL_TERMS) * 2)
            score -= min(10, count_terms(text, JARGON_TERMS) * 4)
        elif level == "technical":
            score += min(20, count_terms(text, TECHNICAL_TERMS) * 3)
        else:
            score -= min(10, count_terms(text, JARGON_TERMS) * 4)
        return clamp_score(score)

    def score_audience_readiness(self, content: ExtractedContent) -> float:
        text = content.all_text
        value = min(100, 40 + count_terms(text, VALUE_INDICATORS) * 15)
        action = min(100, 50 + count_terms(text, ACTION_VERBS) * 12 + count_terms(text, TIMEFRAMES) * 8)

        score = 100.0
        score = score * 0.6 + self._language_score(content) * 0.4
        score = score * 0.7 + value * 0.3
        score = score * 0.7 + action * 0.3
        return round(clamp_score(score))

    # words longer than three characters used more than once
    def key_terms(self, content: ExtractedContent) -> List[str]:
        counts: Dict[str, int] = {}
        for word in content.all_text.split():
            clean = re.sub(r"[^\w]", "", word)
            if len(clean) > 3 and clean not in COMMON_WORDS:
                counts[clean] = counts.get(clean, 0) + 1
        return [word for word, count in counts.items() if count > 1]

    def score_content_clarity(self, content: ExtractedContent) -> float:
        terms = self.key_terms(content)
        consistency = min(100, 60 + len(terms) * 5) if terms else 50
        flow = max(30, 90 - len(content.logical_gaps) * 15)

        words = content.all_text.split()
        unique_ratio = len(set(words)) / len(words) if words else 1.0
        terminology = max(40, 100 - unique_ratio * 100)

        score = 100.0
        score = score * 0.6 + consistency * 0.4
        score = score * 0.65 + flow * 0.35
        score = score * 0.75 + terminology * 0.25
        return round(clamp_score(score))

    def score_business_impact(self, content: ExtractedContent) -> float:
        text = content.all_text
        quantification = min(100, len(content.metrics) * 20 + len(content.quantified_benefits) * 15)
        alignment = min(100, 40 + count_terms(text, STRATEGIC_TERMS) * 15)
        feasibility = min(100, 50 + count_terms(text, FEASIBILITY_INDICATORS) * 12)
        return round(clamp_score(quantification * 0.5 + alignment * 0.3 + feasibility * 0.2))

    # score all four dimensions; issues come from a separate pass
    def score_dimensions(self, document: Document, framework: Optional[Framework]) -> DimensionScores:
        content = self.extract(document)
        return DimensionScores(
            framework_adherence=self.score_framework_adherence(content, framework),
            audience_readiness=self.score_audience_readiness(content),
            content_clarity=self.score_content_clarity(content),
            business_impact=self.score_business_impact(content),
        )

    # full rule-based scoring result for a document
    def score(self, document: Document, framework_id: str) -> ScoringResult:
        """Score a document without any remote call"""
        framework = get_framework(framework_id)
        dimension_scores = self.score_dimensions(document, framework)
        overall = weighted_overall(dimension_scores, self.config.weights)
        issues = self.identify_issues(document, framework)

        logger.info(f"📊 Rule-based score: {overall} ({len(issues)} issues)")
        return ScoringResult(
            dimension_scores=dimension_scores,
            overall_score=overall,
            quality_level=quality_level(overall),
            issues=issues,
            recommendations=self.recommendations(dimension_scores, framework_id),
            framework_id=framework_id,
            source="rule_based",
        )

    # improvement hints for every dimension under the threshold
    def recommendations(self, scores: DimensionScores, framework_id: str) -> List[str]:
        recommendations = []
        if scores.framework_adherence < RECOMMENDATION_THRESHOLD:
            recommendations.append(
                f"Strengthen {framework_id.upper()} framework adherence by ensuring all required components are fully developed"
            )
        if scores.audience_readiness < RECOMMENDATION_THRESHOLD:
            recommendations.append(
                "Enhance audience appeal by focusing on strategic value, clear ROI, and actionable next steps"
            )
        if scores.content_clarity < RECOMMENDATION_THRESHOLD:
            recommendations.append(
                "Improve content clarity through consistent messaging, smoother transitions, and clearer terminology"
            )
        if scores.business_impact < RECOMMENDATION_THRESHOLD:
            recommendations.append(
                "Strengthen business impact by adding quantified benefits, strategic alignment, and implementation details"
            )
        return recommendations

    # collect, filter and prioritize issues across all dimensions
    def identify_issues(self, document: Document, framework: Optional[Framework]) -> List[Issue]:
        content = self.extract(document)
        issues: List[Issue] = []
        issues.extend(self._framework_issues(document, content, framework))
        issues.extend(self._audience_issues(document, content))
        issues.extend(self._clarity_issues(content))
        issues.extend(self._business_issues(content))
        issues.extend(self.check_layouts(document))

        filtered = [
            issue
            for issue in issues
            if issue.confidence >= self.config.min_confidence
            and (self.config.include_minor_issues or issue.severity != IssueSeverity.MINOR)
        ]
        return prioritize_issues(filtered)

    def _framework_issues(
        self, document: Document, content: ExtractedContent, framework: Optional[Framework]
    ) -> List[Issue]:
        if framework is None:
            return []
        issues = []
        compliance = self.assess_compliance(content, framework)
        name = framework.name.upper()

        for step in compliance.missing_steps:
            issues.append(
                Issue(
                    id=f"framework-missing-{step}",
                    type=IssueType.FRAMEWORK_STRUCTURE,
                    severity=IssueSeverity.CRITICAL,
                    title=f"Missing {name} Component: {step}",
                    description=f'The presentation is missing the "{step}" component required by the {name} framework',
                    suggested_fix=f'Add a dedicated slide or section addressing the "{step}" component with relevant content',
                    confidence=90,
                    framework_related=True,
                )
            )

        steps = {step.key: step for step in framework.steps}
        for key, completeness in compliance.step_completeness.items():
            if 0 < completeness < 60:
                issues.append(
                    Issue(
                        id=f"framework-incomplete-{key}",
                        type=IssueType.FRAMEWORK_CONTENT,
                        severity=IssueSeverity.IMPORTANT,
                        title=f"Incomplete {name} Component: {key}",
                        description=f'The "{key}" component is present but underdeveloped ({round(completeness)}% complete)',
                        suggested_fix=f'Strengthen the "{key}" section with more detailed content, examples, or supporting information',
                        confidence=80,
                        affected_slides=self._slides_with_terms_in_headline(document, steps[key].indicators),
                        framework_related=True,
                    )
                )

        if self._logical_flow(content) < 60:
            issues.append(
                Issue(
                    id="framework-flow",
                    type=IssueType.FRAMEWORK_STRUCTURE,
                    severity=IssueSeverity.IMPORTANT,
                    title="Poor Logical Flow",
                    description="Content does not follow a clear logical progression according to the framework",
                    suggested_fix="Reorganize content to follow the framework sequence and add transition statements between sections",
                    confidence=75,
                    framework_related=True,
                )
            )
        return issues

    def _audience_issues(self, document: Document, content: ExtractedContent) -> List[Issue]:
        issues = []
        technical_count = count_terms(content.all_text, ISSUE_TECHNICAL_TERMS)
        if technical_count > 3 and self.config.audience_level == "executive":
            issues.append(
                Issue(
                    id="executive-technical-language",
                    type=IssueType.AUDIENCE_MISMATCH,
                    severity=IssueSeverity.IMPORTANT,
                    title="Too Technical for Executive Audience",
                    description=f"Content contains {technical_count} technical terms that may not resonate with executives",
                    suggested_fix="Replace technical jargon with business-focused language emphasizing value and outcomes",
                    confidence=85,
                    affected_slides=self._slides_with_terms(content, ISSUE_TECHNICAL_TERMS),
                )
            )

        if not content.value_propositions:
            issues.append(
                Issue(
                    id="executive-no-value-prop",
                    type=IssueType.BUSINESS_VALUE,
                    severity=IssueSeverity.CRITICAL,
                    title="Missing Clear Value Proposition",
                    description="Presentation lacks a clear, compelling value proposition for its audience",
                    suggested_fix="Add a clear value proposition statement highlighting strategic benefits and business impact",
                    confidence=90,
                    affected_slides=document.slide_ids()[:1],
                )
            )

        if not content.action_items:
            issues.append(
                Issue(
                    id="executive-no-actions",
                    type=IssueType.ACTIONABILITY,
                    severity=IssueSeverity.IMPORTANT,
                    title="No Clear Action Items",
                    description="Presentation lacks specific, actionable next steps",
                    suggested_fix="Add specific action items with timelines, responsibilities, and decision points",
                    confidence=80,
                )
            )
        return issues

    def _clarity_issues(self, content: ExtractedContent) -> List[Issue]:
        issues = []
        for index, gap in enumerate(content.logical_gaps):
            issues.append(
                Issue(
                    id=f"clarity-gap-{index}",
                    type=IssueType.CLARITY_FLOW,
                    severity=IssueSeverity.IMPORTANT,
                    title="Logical Flow Gap",
                    description=gap,
                    suggested_fix="Add transition slides or statements to bridge the logical gap between topics",
                    confidence=70,
                )
            )

        if len(self.key_terms(content)) < 3:
            issues.append(
                Issue(
                    id="clarity-inconsistent-messaging",
                    type=IssueType.CONSISTENCY,
                    severity=IssueSeverity.MINOR,
                    title="Inconsistent Key Messaging",
                    description="Presentation lacks consistent key terms and messaging throughout",
                    suggested_fix="Establish and consistently use 3-5 key terms throughout the presentation",
                    confidence=65,
                )
            )

        avg_words = content.word_count / max(1, len(content.titles))
        if avg_words > 200:
            issues.append(
                Issue(
                    id="clarity-content-density",
                    type=IssueType.CLARITY_LANGUAGE,
                    severity=IssueSeverity.MINOR,
                    title="High Content Density",
                    description="Slides contain too much text, making them difficult to follow",
                    suggested_fix="Break down dense slides into multiple slides or use more visual elements",
                    confidence=75,
                )
            )
        return issues

    def _business_issues(self, content: ExtractedContent) -> List[Issue]:
        issues = []
        if not content.quantified_benefits:
            issues.append(
                Issue(
                    id="business-no-quantified-benefits",
                    type=IssueType.BUSINESS_METRICS,
                    severity=IssueSeverity.CRITICAL,
                    title="No Quantified Benefits",
                    description="Presentation lacks specific, measurable business benefits or ROI",
                    suggested_fix="Add specific metrics, percentages, or dollar amounts to quantify business value",
                    confidence=90,
                )
            )

        if count_terms(content.all_text, ISSUE_STRATEGIC_TERMS) < 2:
            issues.append(
                Issue(
                    id="business-weak-strategic-alignment",
                    type=IssueType.BUSINESS_VALUE,
                    severity=IssueSeverity.IMPORTANT,
                    title="Weak Strategic Alignment",
                    description="Content does not clearly connect to organizational strategy or priorities",
                    suggested_fix="Explicitly connect recommendations to company strategy, goals, or key priorities",
                    confidence=75,
                )
            )

        if count_terms(content.all_text, ISSUE_IMPLEMENTATION_TERMS) == 0:
            issues.append(
                Issue(
                    id="business-no-implementation",
                    type=IssueType.ACTIONABILITY,
                    severity=IssueSeverity.IMPORTANT,
                    title="Missing Implementation Details",
                    description="Presentation lacks practical implementation guidance (timeline, resources, budget)",
                    suggested_fix="Add implementation timeline, resource requirements, and budget considerations",
                    confidence=80,
                )
            )
        return issues

    # required-field checklist per layout
    def check_layouts(self, document: Document) -> List[Issue]:
        issues = []
        for slide in document.slides:
            for field_name in LAYOUT_REQUIREMENTS.get(slide.layout, []):
                if getattr(slide.content, field_name, None):
                    continue
                issues.append(
                    Issue(
                        id=f"layout-missing-{slide.id}-{field_name}",
                        type=IssueType.CONSISTENCY,
                        severity=IssueSeverity.MINOR,
                        title=f"Missing {field_name} for {slide.layout.value} layout",
                        description=f'Slide "{slide.title or slide.id}" uses the {slide.layout.value} layout but has no {field_name}',
                        suggested_fix=f"Add {field_name} content or switch the slide to a layout that fits its content",
                        confidence=85,
                        affected_slides=[slide.id],
                    )
                )
        return issues

    def _slides_with_terms(self, content: ExtractedContent, terms: List[str]) -> List[str]:
        return [slide_id for slide_id, text in content.slide_texts if count_terms(text, terms) > 0]

    def _slides_with_terms_in_headline(self, document: Document, terms: List[str]) -> List[str]:
        return [
            slide.id
            for slide in document.slides
            if count_terms(_headline_text(slide), terms) > 0
        ]
