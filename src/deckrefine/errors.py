# error types shared by the refinement components
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


# base error for everything raised by the package
class DeckRefineError(Exception):
    """Base class for deckrefine errors"""


# bad weights, unknown framework ids and similar; fatal before any remote call
class ConfigurationError(DeckRefineError):
    """Invalid refinement configuration"""


# the llm service answered with an error or could not be reached
class LLMServiceError(DeckRefineError):
    """LLM service call failed"""


# the llm service did not answer within the configured timeout
class LLMTimeoutError(LLMServiceError):
    """LLM service call timed out"""


# regenerated document lost slides, ids or types
class StructuralViolationError(DeckRefineError):
    """Regenerated document does not match the original structure"""


# every repair strategy failed on a service response
class ResponseParseError(DeckRefineError):
    """Service response could not be parsed"""


# categories of failure used for retry and fallback decisions
class ErrorKind(str, Enum):
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"
    MALFORMED_RESPONSE = "malformed_response"
    STRUCTURAL_VIOLATION = "structural_violation"
    CONFIGURATION = "configuration"


RETRYABLE_KINDS = {
    ErrorKind.UNAVAILABLE,
    ErrorKind.MALFORMED_RESPONSE,
    ErrorKind.STRUCTURAL_VIOLATION,
}


# outcome of a remote call, either a value or a classified error
@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, error: str) -> "Result[T]":
        return cls(error=error, kind=kind)

    @property
    def ok(self) -> bool:
        return self.kind is None

    @property
    def retryable(self) -> bool:
        """Timeouts and configuration problems are never retried"""
        return self.kind in RETRYABLE_KINDS
