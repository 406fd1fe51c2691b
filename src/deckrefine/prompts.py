# prompt templates for framework analysis, scoring and regeneration
import json
from typing import Dict, List

from .frameworks import get_all_frameworks
from .models import Document, Framework, Issue, RefinementRequest, Slide, SlidePreservation
from .scoring import ScoringWeights

JSON_ONLY_RULES = """ABSOLUTE CRITICAL REQUIREMENTS:
1. You MUST respond with ONLY pure JSON
2. NO markdown, NO code blocks, NO explanations
3. Your response MUST start with { and end with }
4. Keep all text short and simple"""

FRAMEWORK_SYSTEM_PROMPT = (
    "You are an expert presentation strategist. You match business presentations to the "
    "narrative framework that will make them most persuasive for their audience."
)

SCORING_SYSTEM_PROMPT = (
    "You are an expert presentation reviewer. You score business presentations against "
    "weighted quality dimensions and report concrete, slide-specific issues."
)

REGENERATION_SYSTEM_PROMPT = (
    "You are an expert presentation writer. You improve existing presentations by following "
    "refinement instructions exactly while keeping slide identity and preserved content intact."
)


# compact text summary of a document, one block per slide
def summarize_document(document: Document) -> str:
    lines = []
    for index, slide in enumerate(document.slides, start=1):
        lines.append(f"Slide {index} [id={slide.id}, type={slide.type.value}, layout={slide.layout.value}]: {slide.title}")
        if slide.subtitle:
            lines.append(f"  Subtitle: {slide.subtitle}")
        body = slide.content
        if body.main_text:
            lines.append(f"  Text: {body.main_text}")
        for bullet in body.bullet_points or []:
            lines.append(f"  - {bullet}")
        for section in body.sections or []:
            lines.append(f"  Section: {section.title} - {section.description}")
            for item in section.items:
                lines.append(f"    - {item}")
        for metric in body.key_metrics or []:
            lines.append(f"  Metric: {metric.label} = {metric.value}")
        if body.callout:
            lines.append(f"  Callout: {body.callout}")
        if body.quote:
            lines.append(f"  Quote: {body.quote}")
    return "\n".join(lines)


def _framework_catalog() -> str:
    blocks = []
    for framework in get_all_frameworks():
        steps = " -> ".join(step.name for step in framework.steps)
        blocks.append(
            f"- {framework.id} ({framework.name}): {framework.description}\n"
            f"  Steps: {steps}\n"
            f"  Best for: {', '.join(framework.best_for[:3])}"
        )
    return "\n".join(blocks)


# messages asking the model to recommend a framework
def framework_analysis_messages(document: Document, request: RefinementRequest) -> List[Dict[str, str]]:
    prompt = f"""Analyze this presentation request and choose the best narrative framework.

ORIGINAL REQUEST:
"{request.prompt}"

AUDIENCE: {request.audience}
PRESENTATION TYPE: {request.presentation_type}
TONE: {request.tone}

CURRENT PRESENTATION:
{summarize_document(document)}

AVAILABLE FRAMEWORKS:
{_framework_catalog()}

YOUR TASK:
1. Score every framework 0-100 for how well it fits this request and audience
2. Recommend the best framework and give a short rationale
3. Detect which framework the current slides follow and how well they follow it

{JSON_ONLY_RULES}

REQUIRED JSON FORMAT:
{{
  "recommended_framework": "scqa",
  "confidence": 85,
  "rationale": "short reason",
  "alternative_framework": "pyramid",
  "evaluations": [
    {{"framework_id": "scqa", "suitability_score": 85, "rationale": "short reason", "strengths": ["..."], "weaknesses": ["..."]}}
  ],
  "current_fit": {{"detected_framework": "scqa", "alignment_score": 70, "issues": ["..."], "framework_mismatch": false}}
}}"""
    return [
        {"role": "system", "content": FRAMEWORK_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def _framework_criteria(framework: Framework) -> str:
    return "\n".join(f"- {step.name}: {step.description}" for step in framework.steps)


# messages asking the model to score a document
def scoring_messages(
    document: Document,
    framework: Framework,
    weights: ScoringWeights,
    audience_level: str,
) -> List[Dict[str, str]]:
    prompt = f"""Evaluate this presentation for a {audience_level} audience.

TITLE: {document.title}
AUDIENCE: {document.metadata.target_audience}
SLIDES: {len(document.slides)}

FRAMEWORK: {framework.name}

CONTENT TO ANALYZE:
{summarize_document(document)}

EVALUATION DIMENSIONS:
1. framework_adherence (weight {weights.framework_adherence:.0%}): how well the content follows {framework.name}
{_framework_criteria(framework)}
2. audience_readiness (weight {weights.audience_readiness:.0%}): clear message, strategic focus, quantified value, clear next steps
3. content_clarity (weight {weights.content_clarity:.0%}): narrative flow, transitions, consistent terminology
4. business_impact (weight {weights.business_impact:.0%}): value proposition, evidence, implementation feasibility

ANALYSIS REQUIREMENTS:
1. Score each dimension 0-100
2. Identify specific issues with severity critical, important or minor
3. Reference affected slides by their id
4. Issue type must be one of: framework_structure, framework_content, audience_mismatch, technical_detail, clarity_language, clarity_flow, consistency, business_value, business_metrics, actionability

{JSON_ONLY_RULES}

REQUIRED JSON FORMAT:
{{
  "dimension_scores": {{"framework_adherence": 75, "audience_readiness": 70, "content_clarity": 80, "business_impact": 65}},
  "issues": [
    {{"id": "issue-1", "type": "business_metrics", "severity": "critical", "title": "short title", "description": "what is wrong", "suggested_fix": "how to fix it", "confidence": 85, "affected_slides": ["slide-1"]}}
  ],
  "recommendations": ["short recommendation"]
}}"""
    return [
        {"role": "system", "content": SCORING_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def _preservation_lines(plan: List[SlidePreservation]) -> str:
    lines = []
    for item in plan:
        if item.preserve_completely:
            lines.append(f"- {item.slide_id}: KEEP EXACTLY AS IS")
        else:
            lines.append(
                f"- {item.slide_id}: keep {', '.join(item.preserve_elements) or 'nothing'}; "
                f"improve {', '.join(item.modify_elements) or 'nothing'}"
            )
    return "\n".join(lines)


# messages asking the model to regenerate a document from a rendered brief
def regeneration_messages(
    document: Document,
    brief_prompt: str,
    plan: List[SlidePreservation],
) -> List[Dict[str, str]]:
    prompt = f"""{brief_prompt}

PRESERVATION PLAN (per slide):
{_preservation_lines(plan)}

CURRENT PRESENTATION (JSON):
{document.model_dump_json(indent=2, exclude_none=True)}

STRUCTURE RULES:
1. Return exactly {len(document.slides)} slides in the same order
2. Keep every slide "id" and "type" unchanged
3. Only change content the preservation plan allows you to change

{JSON_ONLY_RULES}

REQUIRED JSON FORMAT:
{{
  "document": {{ ...the full improved presentation with the same shape as the input... }},
  "changes": [
    {{"slide_id": "slide-1", "change_type": "content", "description": "what changed", "issues_addressed": ["issue-id"]}}
  ]
}}"""
    return [
        {"role": "system", "content": REGENERATION_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


# messages asking the model to fix one issue on one slide
def quick_fix_messages(slide: Slide, issue: Issue, framework: Framework) -> List[Dict[str, str]]:
    prompt = f"""Fix this issue on a single slide of a {framework.name} presentation.

ISSUE: {issue.title}
SEVERITY: {issue.severity.value}
DESCRIPTION: {issue.description}
SUGGESTED FIX: {issue.suggested_fix or "Use your judgement"}

SLIDE (JSON):
{json.dumps(slide.model_dump(mode="json", exclude_none=True), indent=2)}

RULES:
1. Keep "id" and "type" unchanged
2. Change only what is needed to fix the issue

{JSON_ONLY_RULES}

Return the fixed slide as a single JSON object with the same shape as the input."""
    return [
        {"role": "system", "content": REGENERATION_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]
