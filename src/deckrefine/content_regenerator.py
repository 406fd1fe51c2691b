# selective regeneration of weak slides with preservation and merge
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from .config import RefinementConfig
from .errors import ErrorKind, ResponseParseError, StructuralViolationError
from .feedback_converter import render_prompt
from .models import (
    ChangeType,
    ContentChange,
    CriticalFix,
    Document,
    Framework,
    Issue,
    RefinementBrief,
    RegenerationResult,
    Slide,
    SlideContent,
    SlideLayout,
    SlidePreservation,
)
from .prompts import quick_fix_messages, regeneration_messages
from .response_parser import parse_structured_response
from .scoring import IssueSeverity, IssueType

logger = logging.getLogger(__name__)

# element to modify for each kind of issue on a slide
WEAK_ELEMENTS: Dict[IssueType, List[str]] = {
    IssueType.FRAMEWORK_CONTENT: ["content"],
    IssueType.BUSINESS_METRICS: ["data_support"],
    IssueType.CLARITY_LANGUAGE: ["messaging"],
    IssueType.CLARITY_FLOW: ["messaging", "transitions"],
}

CHANGE_DESCRIPTIONS: Dict[ChangeType, str] = {
    ChangeType.DATA: "Enhanced data support and metrics",
    ChangeType.STRUCTURE: "Restructured content for better flow",
    ChangeType.FRAMEWORK: "Aligned content with framework requirements",
    ChangeType.CONTENT: "Improved content clarity and messaging",
}

PRESERVE_ALL = "all"


# increment the minor part of a "major.minor" version
def increment_version(version: str) -> str:
    parts = (version or "1.0").split(".")
    try:
        minor = int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        minor = 0
    return f"{parts[0]}.{minor + 1}"


def _strong_elements(slide: Slide) -> List[str]:
    strong = []
    if slide.content.key_metrics:
        strong.append("metrics")
    if slide.content.chart:
        strong.append("visualization")
    if slide.content.sections and any(section.items for section in slide.content.sections):
        strong.append("structured_content")
    if slide.metadata.get("speaker_notes"):
        strong.append("speaker_notes")
    return strong or ["basic_structure"]


def _weak_elements(issues: List[Issue]) -> List[str]:
    weak: List[str] = []
    for issue in issues:
        for element in WEAK_ELEMENTS.get(issue.type, ["content"]):
            if element not in weak:
                weak.append(element)
    return weak


# regenerates documents through the generation service
class ContentRegenerator:
    """Regenerate only the weak parts of a document and merge the result"""

    def __init__(self, config: RefinementConfig, llm_service, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.llm_service = llm_service
        self.clock = clock
        self.llm_calls = 0

    # decide per slide what to keep and what to rewrite
    def plan_preservation(self, document: Document, issues: List[Issue]) -> List[SlidePreservation]:
        issues_by_slide: Dict[str, List[Issue]] = {}
        for issue in issues:
            for slide_id in issue.affected_slides:
                issues_by_slide.setdefault(slide_id, []).append(issue)

        plan = []
        for slide in document.slides:
            slide_issues = issues_by_slide.get(slide.id, [])
            critical = [i for i in slide_issues if i.severity == IssueSeverity.CRITICAL]
            important = [i for i in slide_issues if i.severity == IssueSeverity.IMPORTANT]

            if not critical and not important:
                plan.append(SlidePreservation(slide_id=slide.id, preserve_completely=True, preserve_elements=[PRESERVE_ALL]))
            elif not critical and len(important) <= 2:
                plan.append(
                    SlidePreservation(
                        slide_id=slide.id,
                        preserve_elements=_strong_elements(slide),
                        modify_elements=_weak_elements(critical + important),
                    )
                )
            else:
                plan.append(
                    SlidePreservation(
                        slide_id=slide.id,
                        preserve_elements=["structure", "key_metrics"],
                        modify_elements=["content", "messaging", "data"],
                    )
                )
        return plan

    # one regeneration attempt loop for a round
    def regenerate(
        self,
        document: Document,
        brief: RefinementBrief,
        plan: List[SlidePreservation],
    ) -> RegenerationResult:
        """Regenerate a document from a brief; the input document is never changed"""
        start = self.clock()
        logger.info(f"🔄 Starting content regeneration - Round {brief.round}")
        logger.info(f"📊 Current score: {brief.current_score}/100")
        logger.info(f"🎯 Target score: {brief.target_score}/100")

        if all(item.preserve_completely for item in plan):
            logger.info("✓ Every slide is preserved, nothing to regenerate")
            return RegenerationResult(
                success=True,
                document=document,
                preserved_slides=document.slide_ids(),
                attempts=0,
                duration=self.clock() - start,
            )

        messages = regeneration_messages(document, render_prompt(brief), plan)
        max_attempts = 1 + self.config.max_regeneration_retries
        error: Optional[str] = None
        error_kind: Optional[ErrorKind] = None
        attempts = 0

        while attempts < max_attempts:
            attempts += 1
            self.llm_calls += 1
            result = self.llm_service.chat(
                messages,
                max_tokens=self.config.llm.generation_max_tokens,
                temperature=self.config.llm.generation_temperature,
            )
            if not result.ok:
                error, error_kind = result.error, result.kind
                if not result.retryable:
                    logger.error(f"❌ Regeneration call failed without retry: {error}")
                    break
                logger.warning(f"⚠️ Attempt {attempts}/{max_attempts} failed ({error_kind.value}): {error}")
                continue

            try:
                candidate, claims = self._parse_candidate(result.value, document)
            except ResponseParseError as e:
                error, error_kind = str(e), ErrorKind.MALFORMED_RESPONSE
                logger.warning(f"⚠️ Attempt {attempts}/{max_attempts} returned unparseable content: {error}")
                continue
            except StructuralViolationError as e:
                error, error_kind = str(e), ErrorKind.STRUCTURAL_VIOLATION
                logger.warning(f"⚠️ Attempt {attempts}/{max_attempts} violated structure: {error}")
                continue

            merged, changed = self.merge(document, candidate, plan)
            changes = self.detect_changes(document, merged, brief.critical_fixes, claims)
            logger.info(f"✓ Regeneration succeeded after {attempts} attempt(s), {len(changed)} slides changed")
            return RegenerationResult(
                success=True,
                document=merged,
                changes=changes,
                preserved_slides=[item.slide_id for item in plan if item.preserve_completely],
                modified_slides=changed,
                attempts=attempts,
                duration=self.clock() - start,
            )

        logger.error(f"❌ Content regeneration failed: {error}")
        return RegenerationResult(
            success=False,
            error=error,
            error_kind=error_kind.value if error_kind else None,
            attempts=attempts,
            duration=self.clock() - start,
        )

    # parse the service response into a candidate document and claimed changes
    def _parse_candidate(self, text: str, original: Document) -> Tuple[Document, Dict[str, List[str]]]:
        outcome = parse_structured_response(text)
        if not outcome.ok:
            raise ResponseParseError("Response did not contain a JSON object")

        data = outcome.data
        raw_document = data.get("document") if isinstance(data.get("document"), dict) else data
        raw_slides = raw_document.get("slides")
        if not isinstance(raw_slides, list):
            raise ResponseParseError("Response has no slides list")

        self._validate_structure(original, raw_slides)

        slides_by_id = {raw["id"]: raw for raw in raw_slides}
        slides = []
        for original_slide in original.slides:
            raw = dict(slides_by_id[original_slide.id])
            raw["type"] = original_slide.type.value
            if raw.get("layout") not in {layout.value for layout in SlideLayout}:
                raw["layout"] = original_slide.layout.value
            try:
                slides.append(Slide.model_validate(raw))
            except ValidationError as e:
                raise ResponseParseError(f"Slide {original_slide.id} has invalid content: {e.error_count()} errors")

        candidate = original.model_copy(
            update={
                "title": str(raw_document.get("title") or original.title),
                "subtitle": raw_document.get("subtitle") or original.subtitle,
                "slides": slides,
            }
        )
        return candidate, self._claimed_issues(data.get("changes"))

    # slide count, identifiers and types must survive regeneration
    def _validate_structure(self, original: Document, raw_slides: List[Any]) -> None:
        if len(raw_slides) != len(original.slides):
            raise StructuralViolationError(
                f"Expected {len(original.slides)} slides, got {len(raw_slides)}"
            )
        ids = []
        for index, raw in enumerate(raw_slides):
            if not isinstance(raw, dict):
                raise StructuralViolationError(f"Slide {index} is not an object")
            if not raw.get("id"):
                raise StructuralViolationError(f"Slide {index} missing ID")
            if not raw.get("type"):
                raise StructuralViolationError(f"Slide {raw['id']} missing type")
            ids.append(raw["id"])
        missing = [slide_id for slide_id in original.slide_ids() if slide_id not in ids]
        if missing or len(set(ids)) != len(ids):
            raise StructuralViolationError(f"Slide identifiers changed, missing: {missing}")

    def _claimed_issues(self, raw_changes: Any) -> Dict[str, List[str]]:
        claims: Dict[str, List[str]] = {}
        if not isinstance(raw_changes, list):
            return claims
        for change in raw_changes:
            if not isinstance(change, dict) or not isinstance(change.get("issues_addressed"), list):
                continue
            slide_id = str(change.get("slide_id", "general"))
            claims.setdefault(slide_id, []).extend(str(item) for item in change["issues_addressed"])
        return claims

    # field level union of the old and new documents
    def merge(
        self, original: Document, candidate: Document, plan: List[SlidePreservation]
    ) -> Tuple[Document, List[str]]:
        """Return the merged document and the ids of slides that changed"""
        plan_by_id = {item.slide_id: item for item in plan}
        merged_slides = []
        changed = []
        for old in original.slides:
            new = candidate.get_slide(old.id)
            strategy = plan_by_id.get(old.id)
            if new is None or strategy is None or strategy.preserve_completely:
                merged_slides.append(old)
                continue
            merged = self._merge_slide(old, new, strategy.preserve_elements)
            if merged != old:
                changed.append(old.id)
            merged_slides.append(merged)

        if not changed:
            return original, []

        metadata = original.metadata.model_copy(
            update={
                "version": increment_version(original.metadata.version),
                "last_refined": datetime.now().isoformat(),
            }
        )
        document = original.model_copy(
            update={
                "title": candidate.title or original.title,
                "subtitle": candidate.subtitle or original.subtitle,
                "slides": merged_slides,
                "metadata": metadata,
            }
        )
        return document, changed

    def _merge_slide(self, old: Slide, new: Slide, preserve: List[str]) -> Slide:
        old_content = old.content.model_dump()
        new_content = new.content.model_dump()

        # prefer new, fall back to old
        content = dict(old_content)
        content.update({key: value for key, value in new_content.items() if value is not None})

        protected = []
        if "metrics" in preserve or "key_metrics" in preserve:
            protected.append("key_metrics")
        if "visualization" in preserve:
            protected.extend(["chart", "diagram"])
        if "structured_content" in preserve:
            protected.append("sections")
        for field_name in protected:
            if old_content.get(field_name) is not None:
                content[field_name] = old_content[field_name]

        metadata = {**old.metadata, **new.metadata}
        if "speaker_notes" in preserve and old.metadata.get("speaker_notes"):
            metadata["speaker_notes"] = old.metadata["speaker_notes"]

        keep_layout = "structure" in preserve or "basic_structure" in preserve
        return Slide(
            id=old.id,
            type=old.type,
            layout=old.layout if keep_layout else new.layout,
            title=new.title or old.title,
            subtitle=new.subtitle if new.subtitle is not None else old.subtitle,
            content=SlideContent.model_validate(content),
            metadata=metadata,
        )

    # change log entries for every slide that differs
    def detect_changes(
        self,
        original: Document,
        merged: Document,
        fixes: List[CriticalFix],
        claims: Optional[Dict[str, List[str]]] = None,
    ) -> List[ContentChange]:
        claims = claims or {}
        known_ids = {fix.issue_id for fix in fixes}
        changes = []
        for old in original.slides:
            new = merged.get_slide(old.id)
            if new is None or new == old:
                continue
            slide_fixes = [fix for fix in fixes if fix.slide_id == old.id]
            addressed = [fix.issue_id for fix in slide_fixes]
            for claimed in claims.get(old.id, []):
                if claimed in known_ids and claimed not in addressed:
                    addressed.append(claimed)

            if old.title != new.title:
                changes.append(
                    ContentChange(
                        slide_id=old.id,
                        change_type=ChangeType.CONTENT,
                        description="Updated slide title for clarity",
                        issues_addressed=[
                            fix.issue_id
                            for fix in slide_fixes
                            if fix.issue_type in (IssueType.CLARITY_LANGUAGE, IssueType.CLARITY_FLOW)
                        ],
                        before=old.title,
                        after=new.title,
                    )
                )

            if old.content != new.content or old.layout != new.layout or old.metadata != new.metadata:
                change_type = self._categorize(old, new)
                changes.append(
                    ContentChange(
                        slide_id=old.id,
                        change_type=change_type,
                        description=self._describe(change_type, slide_fixes, len(addressed)),
                        issues_addressed=addressed,
                    )
                )
        return changes

    def _categorize(self, old: Slide, new: Slide) -> ChangeType:
        if new.content.key_metrics and new.content.key_metrics != old.content.key_metrics:
            return ChangeType.DATA
        if new.layout != old.layout:
            return ChangeType.STRUCTURE
        if new.content.sections and len(new.content.sections) != len(old.content.sections or []):
            return ChangeType.STRUCTURE
        extras = new.content.model_extra or {}
        if extras.get("framework") or extras.get("methodology"):
            return ChangeType.FRAMEWORK
        return ChangeType.CONTENT

    def _describe(self, change_type: ChangeType, fixes: List[CriticalFix], addressed: int) -> str:
        description = CHANGE_DESCRIPTIONS[change_type]
        if any(fix.severity == IssueSeverity.CRITICAL for fix in fixes):
            description += " (addressed critical issues)"
        elif addressed:
            description += f" (resolved {addressed} issues)"
        return description

    # fix a single issue on a single slide; the original slide comes back on failure
    def quick_fix(self, slide: Slide, issue: Issue, framework: Framework) -> Slide:
        self.llm_calls += 1
        result = self.llm_service.chat(
            quick_fix_messages(slide, issue, framework),
            max_tokens=2048,
            temperature=self.config.llm.temperature,
        )
        if not result.ok:
            logger.error(f"✗ Quick fix failed: {result.error}")
            return slide

        outcome = parse_structured_response(result.value)
        if not outcome.ok:
            logger.error("✗ Quick fix returned no JSON object")
            return slide

        raw = outcome.data.get("slide") if isinstance(outcome.data.get("slide"), dict) else outcome.data
        raw = dict(raw, id=slide.id, type=slide.type.value)
        if raw.get("layout") not in {layout.value for layout in SlideLayout}:
            raw["layout"] = slide.layout.value
        try:
            fixed = Slide.model_validate(raw)
        except ValidationError as e:
            logger.error(f"✗ Quick fix returned an invalid slide: {e.error_count()} validation errors")
            return slide

        logger.info(f"✓ Quick fix applied to slide {slide.id} for issue {issue.id}")
        return fixed
