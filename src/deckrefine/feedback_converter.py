# turns scoring feedback into a structured refinement brief
import logging
from typing import Dict, List

from .config import RefinementConfig
from .models import (
    CriticalFix,
    DimensionScores,
    DimensionTarget,
    Document,
    Framework,
    FrameworkCompliance,
    Issue,
    PreservationInstruction,
    RefinementBrief,
    RoundFocus,
    RoundRecord,
    Slide,
)
from .scoring import Dimension, IssueSeverity, IssueType, prioritize_issues, weighted_overall

logger = logging.getLogger(__name__)

# concrete action per issue type
ISSUE_ACTIONS: Dict[IssueType, str] = {
    IssueType.FRAMEWORK_STRUCTURE: "Restructure content to align with the selected framework structure",
    IssueType.FRAMEWORK_CONTENT: "Develop the underdeveloped framework step with specific content and supporting detail",
    IssueType.AUDIENCE_MISMATCH: "Adjust language, detail level, and focus to match target audience needs",
    IssueType.TECHNICAL_DETAIL: "Simplify technical details to the essential points the audience needs",
    IssueType.CLARITY_FLOW: "Reorganize content to follow a logical progression with clear transitions",
    IssueType.BUSINESS_VALUE: "Strengthen business justification with ROI metrics, cost-benefit analysis, and strategic alignment",
    IssueType.BUSINESS_METRICS: "Add supporting data, metrics, or evidence to validate key claims",
    IssueType.ACTIONABILITY: "Clarify recommendations with specific, actionable next steps and ownership",
    IssueType.CONSISTENCY: "Ensure consistent messaging and terminology throughout the presentation",
}

DIMENSION_ACTIONS: Dict[Dimension, List[str]] = {
    Dimension.FRAMEWORK_ADHERENCE: [
        "Cover every framework step with a dedicated slide or section",
        "Order slides to follow the framework sequence",
        "Add clear transitions between framework steps",
        "Reinforce the main message in the closing slide",
    ],
    Dimension.AUDIENCE_READINESS: [
        "Add executive summary with key decisions needed",
        "Focus on strategic impact and ROI",
        "Simplify technical details to essential points",
        "Include risk assessment and mitigation",
    ],
    Dimension.CONTENT_CLARITY: [
        "Improve logical flow between slides",
        "Add clear transitions and connectors",
        "Use consistent key terms throughout",
        "Remove jargon and simplify complex concepts",
    ],
    Dimension.BUSINESS_IMPACT: [
        "Add quantitative metrics and benchmarks",
        "Connect recommendations to strategic priorities",
        "Provide implementation roadmap with timeline and budget",
        "Define success metrics and KPIs",
    ],
}

DIMENSION_FOCUS: Dict[Dimension, List[str]] = {
    Dimension.FRAMEWORK_ADHERENCE: ["step_coverage", "sequence", "transitions"],
    Dimension.AUDIENCE_READINESS: ["strategic_focus", "decision_support", "risk_assessment", "ROI"],
    Dimension.CONTENT_CLARITY: ["logical_progression", "transitions", "narrative_coherence", "terminology"],
    Dimension.BUSINESS_IMPACT: ["metrics", "strategic_alignment", "feasibility", "value_proposition"],
}

OUTPUT_REQUIREMENTS = [
    "Maintain exact JSON structure of the original presentation",
    "Preserve all high-quality content identified",
    "Fix all critical and important issues",
    "Ensure framework compliance throughout",
    "Keep slide count consistent",
    "Improve low-scoring dimensions",
    "Maintain professional tone and style",
    "Ensure all content is factual and supported",
    "Return ONLY valid JSON, no additional text",
]


def action_for_issue(issue: Issue) -> str:
    action = ISSUE_ACTIONS.get(issue.type)
    if action:
        return action
    return issue.suggested_fix or f"Address {issue.type.value}: {issue.description}"


# strengths worth keeping on a high-quality slide
def slide_strengths(slide: Slide) -> List[str]:
    strengths = []
    if slide.content.key_metrics:
        strengths.append("Data-driven metrics and KPIs")
    if slide.content.sections:
        strengths.append("Well-structured sections and organization")
    if slide.metadata.get("speaker_notes"):
        strengths.append("Comprehensive speaker notes")
    if slide.content.callout:
        strengths.append("Clear callout or key message")
    return strengths or ["Core content and messaging"]


# pure converter from scoring feedback to a refinement brief
class FeedbackConverter:
    """Build refinement briefs; no network access, deterministic for equal input"""

    def __init__(self, config: RefinementConfig):
        self.config = config

    def convert(
        self,
        issues: List[Issue],
        dimension_scores: DimensionScores,
        target_score: float,
        round_number: int,
        history: List[RoundRecord],
        preserve_list: List[str],
        framework: Framework,
        document: Document,
    ) -> RefinementBrief:
        current_score = weighted_overall(dimension_scores, self.config.weights)
        return RefinementBrief(
            round=round_number,
            current_score=current_score,
            target_score=target_score,
            system_context=self.system_context(framework, document, current_score, target_score, round_number),
            critical_fixes=self.critical_fixes(issues),
            dimension_targets=self.dimension_targets(dimension_scores, target_score),
            preservation=self.preservation(document, preserve_list, dimension_scores),
            round_focus=self.round_focus(round_number, current_score, target_score),
            framework_compliance=self.framework_compliance(document, framework, issues),
            history=list(history),
            output_requirements=list(OUTPUT_REQUIREMENTS),
        )

    # top critical and important issues in priority order
    def critical_fixes(self, issues: List[Issue]) -> List[CriticalFix]:
        selected = [
            issue
            for issue in prioritize_issues(issues)
            if issue.severity in (IssueSeverity.CRITICAL, IssueSeverity.IMPORTANT)
        ][: self.config.max_critical_fixes]
        return [
            CriticalFix(
                priority=index + 1,
                issue_id=issue.id,
                slide_id=issue.affected_slides[0] if issue.affected_slides else "general",
                issue_type=issue.type,
                severity=issue.severity,
                description=issue.description,
                suggested_action=action_for_issue(issue),
            )
            for index, issue in enumerate(selected)
        ]

    # targets for dimensions below the target score, largest gap first
    def dimension_targets(self, scores: DimensionScores, target_score: float) -> List[DimensionTarget]:
        targets = []
        for dimension, score in scores.as_dict().items():
            if score >= target_score:
                continue
            needed = 4 if score < 50 else 3 if score < 70 else 2
            targets.append(
                DimensionTarget(
                    dimension=dimension,
                    current_score=score,
                    target_score=target_score,
                    gap=round(target_score - score, 2),
                    action_items=DIMENSION_ACTIONS[dimension][:needed],
                    focus_areas=list(DIMENSION_FOCUS[dimension]),
                )
            )
        # stable sort keeps dimension order for equal gaps
        return sorted(targets, key=lambda target: -target.gap)

    def preservation(
        self, document: Document, preserve_list: List[str], scores: DimensionScores
    ) -> List[PreservationInstruction]:
        instructions = []
        for slide_id in preserve_list:
            slide = document.get_slide(slide_id)
            if slide is None:
                continue
            instructions.append(
                PreservationInstruction(
                    slide_id=slide_id,
                    reason="High-quality content identified by validation",
                    elements_to_keep=slide_strengths(slide),
                )
            )

        for dimension, score in scores.as_dict().items():
            if score >= self.config.preservation_threshold:
                instructions.append(
                    PreservationInstruction(
                        slide_id="general",
                        reason=f"Excellent {dimension.value} ({score:g}/100)",
                        elements_to_keep=[f"Current {dimension.value} approach and style"],
                    )
                )
        return instructions

    # objectives taken from the configured curriculum
    def round_focus(self, round_number: int, current_score: float, target_score: float) -> RoundFocus:
        stage = self.config.stage_for_round(round_number)
        remaining = max(0.0, round(target_score - current_score, 2))
        improvement = stage.target_improvement if stage.target_improvement is not None else remaining
        return RoundFocus(
            round=round_number,
            primary_objective=stage.primary_objective,
            secondary_objectives=list(stage.secondary_objectives),
            acceptance_criteria=[
                criterion.replace("{target_score}", f"{target_score:g}") for criterion in stage.acceptance_criteria
            ],
            target_improvement=improvement,
            focus_dimensions=list(stage.focus_dimensions),
        )

    # alignment from framework issues and missing slide types
    def framework_compliance(
        self, document: Document, framework: Framework, issues: List[Issue]
    ) -> FrameworkCompliance:
        framework_issues = [issue for issue in issues if issue.framework_related]
        slide_types = {slide.type for slide in document.slides}

        missing = []
        for step in framework.steps:
            expected = framework.step_slide_types.get(step.key)
            if expected is not None and expected not in slide_types:
                missing.append(f"{step.name} ({expected.value} slide)")

        if not framework_issues and not missing:
            alignment = 100.0
        else:
            alignment = float(max(0, 100 - len(framework_issues) * 10 - len(missing) * 15))

        return FrameworkCompliance(
            framework_id=framework.id,
            framework_name=framework.name,
            current_alignment=alignment,
            required_elements=[f"{step.name}: {step.description}" for step in framework.steps],
            missing_elements=missing,
        )

    def system_context(
        self,
        framework: Framework,
        document: Document,
        current_score: float,
        target_score: float,
        round_number: int,
    ) -> str:
        return (
            f"You are refining a {framework.name} framework presentation for {document.metadata.target_audience}.\n"
            f"Current Quality Score: {current_score:g}/100\n"
            f"Target Score: {target_score:g}/100\n"
            f"Refinement Round: {round_number}\n"
            f"Gap to Close: {max(0.0, round(target_score - current_score, 2)):g} points\n\n"
            "Your task is to improve the presentation while preserving its strengths."
        )


def _join(items: List[str], empty: str = "none") -> str:
    return "; ".join(items) if items else empty


# render the learning context of earlier rounds
def render_history(history: List[RoundRecord]) -> str:
    lines = ["REFINEMENT HISTORY (Learning Context):"]
    for record in history:
        lines.append(
            f"Round {record.round}: Score {record.starting_score:g}→{record.ending_score:g} ({record.improvement:+g})"
        )
        lines.append(f"   Fixed: {_join([issue.title for issue in record.issues_resolved])}")
        lines.append(f"   Attempted: {_join(record.changes_attempted)}")
        lines.append(f"   What Worked: {_join(record.what_worked)}")
        lines.append(f"   What Didn't Work: {_join(record.what_didnt_work)}")
        lines.append(f"   Lessons: {_join(record.lessons_learned)}")
    return "\n".join(lines)


# full prompt text for the generation service
def render_prompt(brief: RefinementBrief) -> str:
    """Render a brief as the instruction text sent to the generation service"""
    parts = [brief.system_context]
    if brief.history:
        parts.append(render_history(brief.history))

    fixes = ["CRITICAL FIXES REQUIRED (Priority Order):"]
    for fix in brief.critical_fixes:
        fixes.append(f"{fix.priority}. [{fix.slide_id}] {fix.issue_type.value}")
        fixes.append(f"   Issue: {fix.description}")
        fixes.append(f"   Action: {fix.suggested_action}")
    if not brief.critical_fixes:
        fixes.append("None")
    parts.append("\n".join(fixes))

    targets = ["DIMENSION IMPROVEMENTS NEEDED:"]
    for target in brief.dimension_targets:
        targets.append(f"- {target.dimension.value}: {target.current_score:g}→{target.target_score:g}")
        targets.append(f"   Actions: {_join(target.action_items)}")
        targets.append(f"   Focus: {', '.join(target.focus_areas)}")
    if not brief.dimension_targets:
        targets.append("None")
    parts.append("\n".join(targets))

    preserve = ["PRESERVE THESE STRONG ELEMENTS:"]
    for instruction in brief.preservation:
        preserve.append(f"- {instruction.slide_id}: {instruction.reason}")
        preserve.append(f"   Keep: {', '.join(instruction.elements_to_keep)}")
    if not brief.preservation:
        preserve.append("None")
    parts.append("\n".join(preserve))

    focus = brief.round_focus
    parts.append(
        f"ROUND {focus.round} FOCUS:\n"
        f"Primary: {focus.primary_objective}\n"
        f"Secondary: {_join(focus.secondary_objectives)}\n"
        f"Success Criteria: {_join(focus.acceptance_criteria)}\n"
        f"Target Improvement: +{focus.target_improvement:g} points"
    )

    compliance = brief.framework_compliance
    missing = (
        f"Missing: {', '.join(compliance.missing_elements)}"
        if compliance.missing_elements
        else "All elements present"
    )
    parts.append(
        f"FRAMEWORK COMPLIANCE ({compliance.framework_name}):\n"
        f"Current Alignment: {compliance.current_alignment:g}%\n"
        f"Required Elements: {_join(compliance.required_elements)}\n"
        f"{missing}"
    )

    requirements = ["OUTPUT REQUIREMENTS:"]
    requirements.extend(f"{index}. {requirement}" for index, requirement in enumerate(brief.output_requirements, start=1))
    parts.append("\n".join(requirements))

    parts.append(
        "INSTRUCTIONS: Generate the improved presentation JSON that addresses all current issues "
        "while learning from refinement history. Build on what earlier rounds achieved."
    )
    return "\n\n".join(parts)
