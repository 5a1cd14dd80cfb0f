"""
Enumerations for claim detection data models.

Category and severity are closed taxonomies: the Response Normalizer maps
anything outside these sets onto a safe default.
"""

from enum import Enum


class ClaimCategory(str, Enum):
    """
    Closed taxonomy of complaint categories returned by the model.
    
    EXCLUDED is never produced by the model; it marks messages that the
    Exclusion Filter exempted from analysis.
    """
    
    ANSWER_QUALITY = "answer quality"
    ANSWER_DELAY = "answer delay"
    POINTLESS_CONVERSATION = "point less conversation"
    COMMUNICATION = "communication"
    OTHER = "other"
    NOT_CLAIM = "not_claim"
    EXCLUDED = "excluded"
    
    @classmethod
    def model_values(cls) -> tuple[str, ...]:
        """Values the model is allowed to return (everything but EXCLUDED)."""
        return tuple(c.value for c in cls if c is not cls.EXCLUDED)


class Severity(str, Enum):
    """
    Claim severity.
    
    NONE is reserved for excluded messages; the model may only return
    low, medium or high.
    """
    
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    NONE = "none"
    
    @classmethod
    def model_values(cls) -> tuple[str, ...]:
        return (cls.LOW.value, cls.MEDIUM.value, cls.HIGH.value)


class Backend(str, Enum):
    """Completion Service variant used for analysis."""
    
    HOSTED = "hosted"
    SELF_HOSTED = "self_hosted"


class RunStatus(str, Enum):
    """Terminal status of a ProcessingRun."""
    
    SUCCESS = "success"
    ERROR = "error"


class PipelineState(str, Enum):
    """Pipeline lifecycle state (single-flight)."""
    
    IDLE = "idle"
    RUNNING = "running"


class SelectionStrategy(str, Enum):
    """How the batch of candidate messages is chosen for a run."""
    
    DATE_RANGE = "date_range"
    MAILBOX = "mailbox"
    INCREMENTAL = "incremental"
