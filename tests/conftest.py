"""
shared fixtures for the deckrefine tests
fake llm services, scripted components and sample documents
"""

import json
import sys
from pathlib import Path

import pytest

# add src to python path so we can import the package without installing it
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from deckrefine.config import RefinementConfig  # noqa: E402
from deckrefine.errors import ErrorKind, Result  # noqa: E402
from deckrefine.models import (  # noqa: E402
    DimensionScores,
    Document,
    DocumentMetadata,
    Issue,
    KeyMetric,
    RegenerationResult,
    ScoringResult,
    Section,
    Slide,
    SlideContent,
    SlideLayout,
    SlideType,
)
from deckrefine.scoring import IssueSeverity, IssueType, quality_level  # noqa: E402


class FakeLLM:
    """llm service double answering chat() from a queue of scripted responses"""

    def __init__(self, responses=None, default=None, available=False):
        self.responses = list(responses or [])
        self.default = default
        self.available = available
        self.calls = []

    def check_availability(self):
        if self.available:
            return Result.success(["llama3:latest"])
        return Result.failure(ErrorKind.UNAVAILABLE, "Cannot connect to Ollama")

    def chat(self, messages, max_tokens=None, temperature=None):
        self.calls.append(messages)
        item = self.responses.pop(0) if self.responses else self.default
        if item is None:
            return Result.failure(ErrorKind.UNAVAILABLE, "no scripted response")
        if isinstance(item, Result):
            return item
        if isinstance(item, str):
            return Result.success(item)
        return Result.success(json.dumps(item))


class FakeClock:
    """manually advanced monotonic clock"""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_scoring(value, framework_id="scqa", issues=None):
    """scoring result whose four dimensions all equal value"""
    scores = DimensionScores(
        framework_adherence=value,
        audience_readiness=value,
        content_clarity=value,
        business_impact=value,
    )
    return ScoringResult(
        dimension_scores=scores,
        overall_score=value,
        quality_level=quality_level(value),
        issues=list(issues or []),
        framework_id=framework_id,
        source="llm",
    )


def make_issue(issue_id, severity=IssueSeverity.IMPORTANT, issue_type=IssueType.CLARITY_FLOW,
               slides=None, confidence=80, framework_related=False):
    return Issue(
        id=issue_id,
        type=issue_type,
        severity=severity,
        title=issue_id.replace("-", " ").title(),
        description=f"description of {issue_id}",
        suggested_fix=f"fix {issue_id}",
        confidence=confidence,
        affected_slides=list(slides or []),
        framework_related=framework_related,
    )


class ScriptedScorer:
    """validation agent double returning a scripted sequence of scores; the last one repeats"""

    def __init__(self, scores, issues=None):
        self.scores = list(scores)
        self.issues = list(issues or [])
        self.calls = []
        self.llm_calls = 0

    def score(self, document, framework_id):
        self.calls.append((document, framework_id))
        self.llm_calls += 1
        value = self.scores.pop(0) if len(self.scores) > 1 else self.scores[0]
        if isinstance(value, Exception):
            raise value
        return make_scoring(value, framework_id, self.issues)


def revise(document, number):
    """copy of a document with a changed first slide"""
    first = document.slides[0].model_copy(update={"title": f"{document.slides[0].title} (rev {number})"})
    return document.model_copy(update={"slides": [first] + document.slides[1:]})


class ScriptedRegenerator:
    """content regenerator double that always changes the first slide"""

    def __init__(self, on_call=None, failures=None):
        self.on_call = on_call
        self.failures = failures or {}
        self.calls = 0
        self.briefs = []
        self.llm_calls = 0

    def plan_preservation(self, document, issues):
        return []

    def regenerate(self, document, brief, plan):
        self.calls += 1
        self.llm_calls += 1
        self.briefs.append(brief)
        if self.on_call is not None:
            self.on_call(self.calls)
        if self.calls in self.failures:
            return RegenerationResult(
                success=False, error=self.failures[self.calls], error_kind="structural_violation", attempts=3
            )
        revised = revise(document, self.calls)
        return RegenerationResult(
            success=True,
            document=revised,
            modified_slides=[revised.slides[0].id],
            attempts=1,
        )


def build_document(slides, title="Cloud Migration Proposal", audience="executives"):
    return Document(
        id="deck-1",
        title=title,
        slides=slides,
        metadata=DocumentMetadata(target_audience=audience, slide_count=len(slides)),
    )


@pytest.fixture
def config():
    return RefinementConfig()


@pytest.fixture
def weak_document():
    """five slides with thin content, no metrics and no action items"""
    return build_document([
        Slide(id="s1", type=SlideType.TITLE, layout=SlideLayout.CENTERED, title="Cloud Migration"),
        Slide(
            id="s2",
            type=SlideType.PROBLEM,
            layout=SlideLayout.BULLET_LIST,
            title="Where we are",
            content=SlideContent(bullet_points=["Servers are old", "Costs are high"]),
        ),
        Slide(
            id="s3",
            type=SlideType.SOLUTION,
            layout=SlideLayout.TITLE_CONTENT,
            title="Move to the cloud",
            content=SlideContent(main_text="We should move our workloads."),
        ),
        Slide(id="s4", type=SlideType.BENEFITS, layout=SlideLayout.METRICS, title="Why it matters"),
        Slide(
            id="s5",
            type=SlideType.NEXT_STEPS,
            layout=SlideLayout.BULLET_LIST,
            title="Next",
            content=SlideContent(bullet_points=["Talk to vendors"]),
        ),
    ])


@pytest.fixture
def strong_document():
    """five slides covering scqa with metrics, value, actions and transitions"""
    return build_document([
        Slide(
            id="s1",
            type=SlideType.TITLE,
            layout=SlideLayout.CENTERED,
            title="Cloud Migration: Strategic Value for Growth",
            subtitle="A strategic proposal with clear ROI",
            content=SlideContent(callout="Cut infrastructure cost by 30% within 12 months"),
        ),
        Slide(
            id="s2",
            type=SlideType.PROBLEM,
            layout=SlideLayout.TWO_COLUMN,
            title="Current context and the core problem",
            content=SlideContent(
                main_text="Our current environment and background: the status quo is costly.",
                sections=[
                    Section(title="Challenge", items=["Aging hardware is a growing problem", "Capacity issue every quarter"]),
                    Section(title="Obstacle", items=["Difficulty scaling for growth", "Therefore revenue is at risk"]),
                ],
            ),
            metadata={"speaker_notes": "Explain the current state briefly."},
        ),
        Slide(
            id="s3",
            type=SlideType.SOLUTION,
            layout=SlideLayout.BULLET_LIST,
            title="How should we respond? Our recommendation and strategy",
            content=SlideContent(
                main_text="The decision: what approach gives the best value. Our proposal is a phased solution.",
                bullet_points=[
                    "Implement a phased migration as a strategic priority",
                    "Establish a cloud team with a clear budget and timeline",
                    "Deploy the first workloads next quarter",
                ],
            ),
        ),
        Slide(
            id="s4",
            type=SlideType.BENEFITS,
            layout=SlideLayout.METRICS,
            title="Benefits and business impact",
            content=SlideContent(
                key_metrics=[
                    KeyMetric(label="Cost reduction", value="30%", trend="up"),
                    KeyMetric(label="Annual savings", value="$2.4 million"),
                    KeyMetric(label="Deployment speed", value="3x faster"),
                ],
                bullet_points=["Increase agility", "Reduce risk", "Save operating cost"],
            ),
        ),
        Slide(
            id="s5",
            type=SlideType.NEXT_STEPS,
            layout=SlideLayout.BULLET_LIST,
            title="Next steps: goal and milestone plan",
            content=SlideContent(
                bullet_points=[
                    "Execute the vendor selection within 30 days",
                    "Launch phase one as a strategic objective",
                    "Establish milestone reviews with resource owners",
                ],
            ),
        ),
    ])


@pytest.fixture
def fake_clock():
    return FakeClock()
