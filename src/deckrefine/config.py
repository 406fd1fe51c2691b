# configuration passed explicitly into every component
import os
import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from .errors import ConfigurationError
from .scoring import Dimension, ScoringWeights

logger = logging.getLogger(__name__)


# connection settings for the ollama service
class LLMConfig(BaseModel):
    base_url: str = "http://localhost:11434"
    model: str = "llama3"
    timeout: float = Field(120.0, gt=0)  # seconds per remote call
    temperature: float = 0.3
    generation_temperature: float = 0.4  # a bit higher for rewriting
    max_tokens: int = 4000
    generation_max_tokens: int = 8192


# one stage of the round curriculum
class RoundStage(BaseModel):
    name: str
    primary_objective: str
    secondary_objectives: List[str]
    acceptance_criteria: List[str]
    target_improvement: Optional[float] = None  # None closes the remaining gap
    focus_dimensions: List[Dimension] = []


# default three stage curriculum; the last stage repeats for later rounds
DEFAULT_CURRICULUM: List[RoundStage] = [
    RoundStage(
        name="structure",
        primary_objective="Fix critical structural and content issues",
        secondary_objectives=[
            "Establish framework compliance",
            "Ensure content completeness",
            "Fix major logical flow problems",
        ],
        acceptance_criteria=[
            "All critical issues resolved",
            "Framework structure properly implemented",
            "Score improvement of at least 10-15 points",
        ],
        target_improvement=15,
        focus_dimensions=[Dimension.FRAMEWORK_ADHERENCE],
    ),
    RoundStage(
        name="audience",
        primary_objective="Enhance business impact and audience alignment",
        secondary_objectives=[
            "Strengthen value proposition",
            "Improve data support and evidence",
            "Enhance audience readiness",
        ],
        acceptance_criteria=[
            "Important issues addressed",
            "Business case clearly articulated",
            "Score improvement of at least 5-10 points",
        ],
        target_improvement=10,
        focus_dimensions=[Dimension.AUDIENCE_READINESS, Dimension.BUSINESS_IMPACT],
    ),
    RoundStage(
        name="clarity",
        primary_objective="Polish clarity and flow for maximum effectiveness",
        secondary_objectives=[
            "Refine language and clarity",
            "Smooth transitions between slides",
            "Ensure complete actionability",
        ],
        acceptance_criteria=[
            "Achieve target score of {target_score}",
            "All dimensions above 70",
            "Presentation is ready for its audience",
        ],
        target_improvement=None,
        focus_dimensions=[Dimension.CONTENT_CLARITY],
    ),
]


# settings for a refinement session
class RefinementConfig(BaseModel):
    max_rounds: int = Field(3, ge=1, le=10)
    target_score: float = Field(80, ge=0, le=100)
    min_improvement: float = Field(2, ge=0)
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    min_confidence: float = Field(70, ge=0, le=100)
    include_minor_issues: bool = True
    audience_level: str = "executive"  # executive, technical or general
    framework_id: Optional[str] = None
    max_critical_fixes: int = Field(10, ge=1)
    preservation_threshold: float = Field(85, ge=0, le=100)
    max_regeneration_retries: int = Field(2, ge=0)
    time_budget_seconds: Optional[float] = Field(None, gt=0)
    curriculum: List[RoundStage] = Field(default_factory=lambda: list(DEFAULT_CURRICULUM))
    llm: LLMConfig = Field(default_factory=LLMConfig)

    # stage used for a 1-indexed round
    def stage_for_round(self, round_number: int) -> RoundStage:
        index = min(max(round_number, 1), len(self.curriculum)) - 1
        return self.curriculum[index]

    # build a config from DECKREFINE_* environment variables
    @classmethod
    def from_env(cls, **overrides) -> "RefinementConfig":
        """Read configuration from the environment, keyword overrides win"""
        llm_values = {}
        if os.getenv("DECKREFINE_OLLAMA_URL"):
            llm_values["base_url"] = os.getenv("DECKREFINE_OLLAMA_URL")
        if os.getenv("DECKREFINE_MODEL"):
            llm_values["model"] = os.getenv("DECKREFINE_MODEL")
        if os.getenv("DECKREFINE_TIMEOUT"):
            llm_values["timeout"] = float(os.getenv("DECKREFINE_TIMEOUT"))

        values = {}
        if os.getenv("DECKREFINE_TARGET_SCORE"):
            values["target_score"] = float(os.getenv("DECKREFINE_TARGET_SCORE"))
        if os.getenv("DECKREFINE_MAX_ROUNDS"):
            values["max_rounds"] = int(os.getenv("DECKREFINE_MAX_ROUNDS"))
        if os.getenv("DECKREFINE_MIN_IMPROVEMENT"):
            values["min_improvement"] = float(os.getenv("DECKREFINE_MIN_IMPROVEMENT"))
        if llm_values:
            values["llm"] = LLMConfig(**llm_values)

        values.update(overrides)
        return cls(**values)


# fail fast on configuration that would make a session meaningless
def validate_config(config: RefinementConfig) -> RefinementConfig:
    """Raise ConfigurationError for invalid weights, frameworks or curriculum"""
    from .frameworks import FRAMEWORKS

    if any(weight < 0 for weight in config.weights.as_dict().values()):
        raise ConfigurationError("Dimension weights must not be negative")
    if not config.weights.is_normalized():
        raise ConfigurationError(
            f"Dimension weights must sum to 1.0, got {config.weights.total():.4f}"
        )
    if config.framework_id is not None and config.framework_id not in FRAMEWORKS:
        raise ConfigurationError(
            f"Unknown framework '{config.framework_id}'. Known frameworks: {', '.join(FRAMEWORKS)}"
        )
    if not config.curriculum:
        raise ConfigurationError("Round curriculum must contain at least one stage")
    if config.audience_level not in ("executive", "technical", "general"):
        raise ConfigurationError(f"Unknown audience level '{config.audience_level}'")

    logger.debug(f"✓ Configuration valid: target={config.target_score}, max_rounds={config.max_rounds}")
    return config
