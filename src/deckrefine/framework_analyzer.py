# chooses the narrative framework a document should follow
import logging
from typing import Any, Dict, List, Optional

from .config import RefinementConfig
from .content_analyzer import ContentAnalyzer
from .frameworks import FRAMEWORK_PRIORITY, FRAMEWORKS, framework_rank, require_framework
from .models import Document, FrameworkAnalysis, FrameworkEvaluation, FrameworkFit, RefinementRequest
from .prompts import framework_analysis_messages
from .response_parser import parse_structured_response
from .scoring import clamp_score

logger = logging.getLogger(__name__)

# keyword rules checked in order; the first match wins
FALLBACK_RULES = [
    (
        "star",
        85,
        "prompt",
        ["case study", "project result", "success story", "results"],
        "Content indicates case study or project results, best suited for STAR framework",
    ),
    (
        "comparison",
        90,
        "prompt",
        ["compare", "vendor", "option", "selection"],
        "Content involves comparison or selection, optimal for Comparison framework",
    ),
    (
        "pyramid",
        80,
        "audience",
        ["executive", "c-level", "board"],
        "Executive audience benefits from Pyramid framework with conclusion-first approach",
    ),
    (
        "prep",
        75,
        "prompt",
        ["recommend", "propose", "argument"],
        "Content focuses on recommendations or arguments, well-suited for PREP framework",
    ),
]

DEFAULT_FRAMEWORK = "scqa"
DEFAULT_CONFIDENCE = 70
DEFAULT_RATIONALE = "Default framework selection based on general business presentation needs"
UNEVALUATED_SCORE = 50
INVALID_PRIMARY_CONFIDENCE_CAP = 60


# recommends a framework using the llm with a deterministic fallback
class FrameworkAnalyzer:
    """Score every known framework for fit and pick the best one"""

    def __init__(self, config: RefinementConfig, llm_service=None, analyzer: Optional[ContentAnalyzer] = None):
        self.config = config
        self.llm_service = llm_service
        self.analyzer = analyzer or ContentAnalyzer(config)
        self.llm_calls = 0

    # main entry point
    def recommend(self, document: Document, request: RefinementRequest) -> FrameworkAnalysis:
        pinned = request.framework or self.config.framework_id
        if pinned:
            return self.pinned_analysis(document, request, pinned)

        if self.llm_service is not None:
            logger.info("🎯 Asking the model for a framework recommendation")
            self.llm_calls += 1
            result = self.llm_service.chat(
                framework_analysis_messages(document, request),
                max_tokens=self.config.llm.max_tokens,
                temperature=self.config.llm.temperature,
            )
            if result.ok:
                outcome = parse_structured_response(result.value)
                if outcome.ok and isinstance(outcome.data.get("evaluations"), list):
                    analysis = self._validate_and_enrich(outcome.data, document)
                    logger.info(
                        f"✓ Framework recommended: {analysis.recommended_framework} ({analysis.confidence:.0f}%)"
                    )
                    return analysis
                logger.warning("⚠️ Framework analysis response was unusable, falling back to rules")
            else:
                logger.warning(f"⚠️ Framework analysis call failed ({result.kind.value}), falling back to rules")

        return self.rule_based(document, request)

    # deterministic keyword classifier over the request
    def rule_based(self, document: Document, request: RefinementRequest) -> FrameworkAnalysis:
        """Rule-based recommendation; identical input gives identical output"""
        prompt = f"{request.prompt} {request.presentation_type}".lower()
        audience = (request.audience or document.metadata.target_audience).lower()

        recommended, confidence, rationale = DEFAULT_FRAMEWORK, DEFAULT_CONFIDENCE, DEFAULT_RATIONALE
        for framework_id, rule_confidence, source, keywords, rule_rationale in FALLBACK_RULES:
            haystack = prompt if source == "prompt" else audience
            if any(keyword in haystack for keyword in keywords):
                recommended, confidence, rationale = framework_id, rule_confidence, rule_rationale
                break

        evaluations = []
        for framework_id in FRAMEWORK_PRIORITY:
            selected = framework_id == recommended
            evaluations.append(
                FrameworkEvaluation(
                    framework_id=framework_id,
                    suitability_score=confidence if selected else max(30, confidence - 20),
                    rationale=rationale if selected else f"Less suitable than {recommended} for this content",
                    strengths=["Selected as optimal framework"] if selected else [],
                    weaknesses=[] if selected else ["Not optimal for this specific content type"],
                )
            )

        logger.info(f"✓ Rule-based framework recommendation: {recommended} ({confidence}%)")
        return FrameworkAnalysis(
            recommended_framework=recommended,
            confidence=confidence,
            rationale=rationale,
            alternative_framework=DEFAULT_FRAMEWORK if recommended != DEFAULT_FRAMEWORK else "pyramid",
            evaluations=evaluations,
            current_fit=self.detect_current_fit(document, recommended),
            source="rule_based",
        )

    # a pinned framework skips the recommendation step
    def pinned_analysis(self, document: Document, request: RefinementRequest, framework_id: str) -> FrameworkAnalysis:
        framework = require_framework(framework_id)
        base = self.rule_based(document, request)
        logger.info(f"✓ Using pinned framework: {framework.name}")
        return base.model_copy(
            update={
                "recommended_framework": framework.id,
                "confidence": 100,
                "rationale": f"{framework.name} framework was requested explicitly",
                "current_fit": self.detect_current_fit(document, framework.id),
                "source": "pinned",
            }
        )

    # which framework the slides follow now, by step coverage
    def detect_current_fit(self, document: Document, recommended: str) -> FrameworkFit:
        content = self.analyzer.extract(document)
        coverage = {
            framework_id: self.analyzer.assess_compliance(content, framework).structure_score
            for framework_id, framework in FRAMEWORKS.items()
        }
        detected = min(coverage, key=lambda framework_id: framework_rank(framework_id, coverage[framework_id]))
        mismatch = detected != recommended

        issues = []
        if mismatch:
            issues.append(
                f"Slides follow {detected.upper()} more closely than the recommended {recommended.upper()}"
            )
        return FrameworkFit(
            detected_framework=detected,
            alignment_score=clamp_score(coverage[recommended]),
            issues=issues,
            framework_mismatch=mismatch,
        )

    # fill gaps in the model's answer and pick the argmax framework
    def _validate_and_enrich(self, data: Dict[str, Any], document: Document) -> FrameworkAnalysis:
        evaluations: Dict[str, FrameworkEvaluation] = {}
        for item in data.get("evaluations") or []:
            if not isinstance(item, dict):
                continue
            framework_id = str(item.get("framework_id", "")).lower()
            if framework_id not in FRAMEWORKS or framework_id in evaluations:
                continue
            evaluations[framework_id] = FrameworkEvaluation(
                framework_id=framework_id,
                suitability_score=clamp_score(_as_float(item.get("suitability_score"), UNEVALUATED_SCORE)),
                rationale=str(item.get("rationale") or ""),
                strengths=_as_strings(item.get("strengths")),
                weaknesses=_as_strings(item.get("weaknesses")),
            )

        for framework_id in FRAMEWORK_PRIORITY:
            if framework_id not in evaluations:
                evaluations[framework_id] = FrameworkEvaluation(
                    framework_id=framework_id,
                    suitability_score=UNEVALUATED_SCORE,
                    rationale="Not evaluated in initial analysis",
                    weaknesses=["Not fully analyzed"],
                )

        ordered = [evaluations[framework_id] for framework_id in FRAMEWORK_PRIORITY]
        best = min(ordered, key=lambda e: framework_rank(e.framework_id, e.suitability_score))

        claimed = str(data.get("recommended_framework", "")).lower()
        confidence = clamp_score(_as_float(data.get("confidence"), best.suitability_score))
        if claimed not in FRAMEWORKS:
            logger.warning(f"Invalid recommended framework: {claimed or '<missing>'}")
            confidence = min(confidence, INVALID_PRIMARY_CONFIDENCE_CAP)
        elif claimed != best.framework_id:
            confidence = min(confidence, best.suitability_score)

        alternative = str(data.get("alternative_framework") or "").lower()
        if alternative not in FRAMEWORKS or alternative == best.framework_id:
            ranked = sorted(ordered, key=lambda e: framework_rank(e.framework_id, e.suitability_score))
            alternative = ranked[1].framework_id

        return FrameworkAnalysis(
            recommended_framework=best.framework_id,
            confidence=confidence,
            rationale=str(data.get("rationale") or best.rationale),
            alternative_framework=alternative,
            evaluations=ordered,
            current_fit=self._parse_fit(data.get("current_fit"), document, best.framework_id),
            source="llm",
        )

    def _parse_fit(self, raw: Any, document: Document, recommended: str) -> FrameworkFit:
        if not isinstance(raw, dict) or str(raw.get("detected_framework", "")).lower() not in FRAMEWORKS:
            return self.detect_current_fit(document, recommended)
        detected = str(raw["detected_framework"]).lower()
        return FrameworkFit(
            detected_framework=detected,
            alignment_score=clamp_score(_as_float(raw.get("alignment_score"), UNEVALUATED_SCORE)),
            issues=_as_strings(raw.get("issues")),
            framework_mismatch=detected != recommended,
        )


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return float(default)


def _as_strings(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]
