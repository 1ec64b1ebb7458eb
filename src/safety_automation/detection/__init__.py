"""Layered crisis and grief detection."""
from .classifier import ContextualClassifier, LLMContextualClassifier
from .detector import LayeredSafetyDetector
from .feedback import (
    DetectionFeedback, DetectionFeedbackRepository, DetectionFeedbackService, DetectionStatistics,
)
from .models import (
    DetectionConfidence, DetectionMethod, DetectionResult, PatternConfidence, PatternMatch,
    SafetyCategory,
)
from .normalizer import normalize_text
from .patterns import PatternClassifier, PatternTable
from .resources import (
    SupportResource, generate_crisis_response, generate_grief_response,
    get_crisis_resources, get_grief_resources,
)

__all__ = [
    "ContextualClassifier",
    "LLMContextualClassifier",
    "LayeredSafetyDetector",
    "DetectionFeedback",
    "DetectionFeedbackRepository",
    "DetectionFeedbackService",
    "DetectionStatistics",
    "DetectionConfidence",
    "DetectionMethod",
    "DetectionResult",
    "PatternConfidence",
    "PatternMatch",
    "SafetyCategory",
    "normalize_text",
    "PatternClassifier",
    "PatternTable",
    "SupportResource",
    "generate_crisis_response",
    "generate_grief_response",
    "get_crisis_resources",
    "get_grief_resources",
]
