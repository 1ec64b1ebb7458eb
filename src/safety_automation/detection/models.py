"""Value types shared by the detection layers."""
from __future__ import annotations
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class SafetyCategory(str, Enum):
    """What a detector is screening for."""
    CRISIS = "crisis"
    GRIEF = "grief"


class DetectionMethod(str, Enum):
    """Which layer(s) produced a verdict."""
    PATTERN = "pattern"
    AI = "ai"
    BOTH = "both"
    NONE = "none"


class DetectionConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PatternConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    NONE = "none"


class PatternMatch(BaseModel):
    """Outcome of evaluating one category's pattern table."""
    model_config = ConfigDict(frozen=True)

    detected: bool = Field(default=False, description="Whether any pattern matched")
    confidence: PatternConfidence = Field(default=PatternConfidence.NONE, description="Tier of the first match")
    pattern_name: str | None = Field(default=None, description="Name of the matching pattern family")


class DetectionResult(BaseModel):
    """Verdict returned by the layered safety detector."""
    model_config = ConfigDict(frozen=True)

    is_detected: bool = Field(..., description="Whether the category was detected")
    detection_method: DetectionMethod = Field(..., description="Layer(s) that decided")
    confidence: DetectionConfidence = Field(..., description="Certainty of the verdict")
