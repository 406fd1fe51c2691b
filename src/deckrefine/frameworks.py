# static registry of supported narrative frameworks
from typing import Dict, List, Optional

from .errors import ConfigurationError
from .models import Framework, FrameworkStep, SlideMappingGuide, SlideType

# fixed order used to break ties between equally suitable frameworks
FRAMEWORK_PRIORITY: List[str] = ["scqa", "prep", "star", "pyramid", "comparison"]

SCQA = Framework(
    id="scqa",
    name="SCQA",
    description="Situation-Complication-Question-Answer framework for problem-solving presentations",
    steps=[
        FrameworkStep(
            key="situation",
            name="Situation",
            description="Establish the current context and environment",
            purpose="Set the stage and provide background understanding",
            indicators=["current", "context", "background", "status quo", "environment"],
        ),
        FrameworkStep(
            key="complication",
            name="Complication",
            description="Identify the core problem or challenge",
            purpose="Create urgency and highlight what needs to be addressed",
            indicators=["problem", "challenge", "issue", "difficulty", "obstacle"],
        ),
        FrameworkStep(
            key="question",
            name="Question",
            description="Frame the critical question that needs answering",
            purpose="Focus the audience on the key decision or solution needed",
            indicators=["how", "what", "should we", "decision", "approach"],
        ),
        FrameworkStep(
            key="answer",
            name="Answer",
            description="Provide the solution or recommendation",
            purpose="Present the proposed solution with implementation details",
            indicators=["solution", "recommendation", "strategy", "proposal", "approach"],
        ),
    ],
    best_for=[
        "Problem-solving presentations",
        "Strategic initiative proposals",
        "Change management presentations",
        "Consulting recommendations",
        "Business case development",
    ],
    characteristics=[
        "Logical problem-to-solution flow",
        "Creates urgency and need",
        "Decision-making focus",
    ],
    audience=["executives", "decision-makers", "stakeholders", "board members"],
    slide_mapping=SlideMappingGuide(
        typical_slide_count=5,
        slide_sequence=["title", "situation", "complication", "question/solution", "implementation"],
        content_focus={
            "title": "Value proposition and key message",
            "situation": "Current state analysis and context",
            "complication": "Problem definition with business impact",
            "question/solution": "Proposed solution and benefits",
            "implementation": "Action plan and next steps",
        },
    ),
    step_slide_types={
        "situation": SlideType.PROBLEM,
        "complication": SlideType.PROBLEM,
        "question": SlideType.PROBLEM,
        "answer": SlideType.SOLUTION,
    },
)

PREP = Framework(
    id="prep",
    name="PREP",
    description="Point-Reason-Example-Point framework for clear argumentation",
    steps=[
        FrameworkStep(
            key="point",
            name="Point",
            description="State the main message or position clearly",
            purpose="Lead with the key message upfront",
            indicators=["main point", "recommendation", "position", "conclusion"],
        ),
        FrameworkStep(
            key="reason",
            name="Reason",
            description="Provide logical rationale and supporting arguments",
            purpose="Build credibility through reasoning",
            indicators=["because", "rationale", "reasoning", "logic", "justification"],
        ),
        FrameworkStep(
            key="example",
            name="Example",
            description="Illustrate with concrete examples, data, or evidence",
            purpose="Make the argument tangible and believable",
            indicators=["example", "data", "evidence", "proof", "case study"],
        ),
        FrameworkStep(
            key="point_reinforced",
            name="Point (Reiterate)",
            description="Reinforce the main message",
            purpose="Ensure the key message is remembered",
            indicators=["therefore", "conclusion", "key takeaway", "summary"],
        ),
    ],
    best_for=[
        "Persuasive presentations",
        "Recommendation presentations",
        "Sales pitches",
        "Policy proposals",
        "Argument-based content",
    ],
    characteristics=["Direct and clear messaging", "Strong logical flow", "Memorable structure"],
    audience=["decision-makers", "stakeholders", "clients", "team members"],
    slide_mapping=SlideMappingGuide(
        typical_slide_count=4,
        slide_sequence=["title/point", "reasoning", "evidence/examples", "conclusion/point"],
        content_focus={
            "title/point": "Clear value proposition and main argument",
            "reasoning": "Logical rationale and supporting arguments",
            "evidence/examples": "Data, case studies, and proof points",
            "conclusion/point": "Reinforced message and call to action",
        },
    ),
    step_slide_types={
        "point": SlideType.CONCLUSION,
        "reason": SlideType.FRAMEWORK,
        "example": SlideType.BENEFITS,
        "point_reinforced": SlideType.CONCLUSION,
    },
)

STAR = Framework(
    id="star",
    name="STAR",
    description="Situation-Task-Action-Result framework for showcasing achievements",
    steps=[
        FrameworkStep(
            key="situation",
            name="Situation",
            description="Describe the context and background",
            purpose="Set the scene for the achievement story",
            indicators=["context", "background", "scenario", "setting"],
        ),
        FrameworkStep(
            key="task",
            name="Task",
            description="Define the specific objective or challenge",
            purpose="Clarify what needed to be accomplished",
            indicators=["objective", "goal", "challenge", "mission", "target"],
        ),
        FrameworkStep(
            key="action",
            name="Action",
            description="Explain the specific actions taken",
            purpose="Detail the methodology and approach used",
            indicators=["approach", "method", "implementation", "execution"],
        ),
        FrameworkStep(
            key="result",
            name="Result",
            description="Present the outcomes and impact achieved",
            purpose="Demonstrate success and value delivered",
            indicators=["outcome", "result", "achievement", "impact", "success"],
        ),
    ],
    best_for=[
        "Case study presentations",
        "Project success stories",
        "Achievement showcases",
        "Lessons learned sessions",
        "Capability demonstrations",
    ],
    characteristics=["Narrative structure", "Results-focused", "Measurable outcomes"],
    audience=["clients", "team members", "management", "stakeholders"],
    slide_mapping=SlideMappingGuide(
        typical_slide_count=5,
        slide_sequence=["title", "situation/context", "task/challenge", "action/approach", "results/impact"],
        content_focus={
            "title": "Achievement summary and value",
            "situation/context": "Background and starting point",
            "task/challenge": "Specific objectives and challenges",
            "action/approach": "Methodology and implementation details",
            "results/impact": "Quantified outcomes and business value",
        },
    ),
    step_slide_types={
        "situation": SlideType.PROBLEM,
        "task": SlideType.FRAMEWORK,
        "action": SlideType.SOLUTION,
        "result": SlideType.BENEFITS,
    },
)

PYRAMID = Framework(
    id="pyramid",
    name="Pyramid",
    description="Main Message-Supporting Arguments-Evidence framework for executive communication",
    steps=[
        FrameworkStep(
            key="main_message",
            name="Main Message",
            description="Lead with the key conclusion or recommendation",
            purpose="Provide the bottom line upfront",
            indicators=["recommendation", "conclusion", "bottom line", "key message"],
        ),
        FrameworkStep(
            key="supporting_arguments",
            name="Supporting Arguments",
            description="Present 2-3 key arguments that support the main message",
            purpose="Provide logical pillars for the recommendation",
            indicators=["argument", "reason", "pillar", "support"],
        ),
        FrameworkStep(
            key="evidence",
            name="Evidence",
            description="Back each argument with specific data and examples",
            purpose="Provide credible proof for each supporting argument",
            indicators=["data", "proof", "evidence", "analysis", "research"],
        ),
    ],
    best_for=[
        "Executive summaries",
        "Board presentations",
        "Strategic recommendations",
        "High-level briefings",
        "Decision support documents",
    ],
    characteristics=["Top-down communication", "Conclusion-first approach", "Hierarchical logic"],
    audience=["C-suite executives", "board members", "senior leadership"],
    slide_mapping=SlideMappingGuide(
        typical_slide_count=4,
        slide_sequence=["title/main message", "key arguments", "supporting evidence", "next steps"],
        content_focus={
            "title/main message": "Clear recommendation and value proposition",
            "key arguments": "2-3 main supporting pillars",
            "supporting evidence": "Data and proof points for each argument",
            "next steps": "Implementation roadmap and decisions needed",
        },
    ),
    step_slide_types={
        "main_message": SlideType.CONCLUSION,
        "supporting_arguments": SlideType.FRAMEWORK,
        "evidence": SlideType.BENEFITS,
    },
)

COMPARISON = Framework(
    id="comparison",
    name="Comparison",
    description="Options-Criteria-Analysis-Recommendation framework for decision support",
    steps=[
        FrameworkStep(
            key="options",
            name="Options",
            description="Present the available alternatives or choices",
            purpose="Establish the decision space and alternatives",
            indicators=["option", "alternative", "choice", "approach", "solution"],
        ),
        FrameworkStep(
            key="criteria",
            name="Criteria",
            description="Define the evaluation criteria and weighting",
            purpose="Establish objective basis for comparison",
            indicators=["criteria", "requirement", "factor", "evaluation"],
        ),
        FrameworkStep(
            key="analysis",
            name="Analysis",
            description="Systematically evaluate options against criteria",
            purpose="Provide objective comparison and scoring",
            indicators=["comparison", "evaluation", "assessment", "analysis"],
        ),
        FrameworkStep(
            key="recommendation",
            name="Recommendation",
            description="Present the recommended choice with rationale",
            purpose="Guide decision-making with clear recommendation",
            indicators=["recommendation", "preferred", "best choice", "selection"],
        ),
    ],
    best_for=[
        "Vendor selection presentations",
        "Technology choice decisions",
        "Strategic option evaluation",
        "Investment alternatives",
        "Process selection decisions",
    ],
    characteristics=["Systematic evaluation", "Objective comparison", "Criteria-based analysis"],
    audience=["decision-makers", "procurement teams", "selection committees"],
    slide_mapping=SlideMappingGuide(
        typical_slide_count=5,
        slide_sequence=["title", "options overview", "evaluation criteria", "comparative analysis", "recommendation"],
        content_focus={
            "title": "Decision context and objective",
            "options overview": "Available alternatives and key characteristics",
            "evaluation criteria": "Assessment factors and relative importance",
            "comparative analysis": "Side-by-side evaluation and scoring",
            "recommendation": "Preferred choice with supporting rationale",
        },
    ),
    step_slide_types={
        "options": SlideType.SOLUTION,
        "criteria": SlideType.FRAMEWORK,
        "recommendation": SlideType.CONCLUSION,
    },
)

FRAMEWORKS: Dict[str, Framework] = {
    framework.id: framework for framework in (SCQA, PREP, STAR, PYRAMID, COMPARISON)
}


# look up a framework, None when unknown
def get_framework(framework_id: str) -> Optional[Framework]:
    return FRAMEWORKS.get(framework_id)


# look up a framework and fail on unknown ids
def require_framework(framework_id: str) -> Framework:
    framework = FRAMEWORKS.get(framework_id)
    if framework is None:
        raise ConfigurationError(f"Unknown framework '{framework_id}'")
    return framework


def get_all_frameworks() -> List[Framework]:
    return [FRAMEWORKS[framework_id] for framework_id in FRAMEWORK_PRIORITY]


# frameworks whose best-fit use cases mention the given text
def get_frameworks_by_use_case(use_case: str) -> List[Framework]:
    needle = use_case.lower()
    return [f for f in get_all_frameworks() if any(needle in use.lower() for use in f.best_for)]


# frameworks suited to the given audience
def get_frameworks_by_audience(audience: str) -> List[Framework]:
    needle = audience.lower()
    return [f for f in get_all_frameworks() if any(needle in aud.lower() for aud in f.audience)]


# sort key: higher score first, then fixed framework order
def framework_rank(framework_id: str, score: float):
    order = FRAMEWORK_PRIORITY.index(framework_id) if framework_id in FRAMEWORK_PRIORITY else len(FRAMEWORK_PRIORITY)
    return (-score, order)
