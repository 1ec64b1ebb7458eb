"""
Safety Automation Layered Detector - Pattern screening escalated to a contextual model.
Layer 1 answers immediately on explicit phrasing; ambiguous messages get a second
opinion from the contextual classifier, with a pattern-only fallback when it fails.
"""
from __future__ import annotations
import time
import structlog

from ..config import DetectorSettings
from .classifier import ContextualClassifier
from .models import (
    DetectionConfidence, DetectionMethod, DetectionResult, PatternMatch, SafetyCategory,
)
from .normalizer import normalize_text
from .patterns import PatternClassifier

logger = structlog.get_logger(__name__)

_EMPTY_RESULT = DetectionResult(
    is_detected=False, detection_method=DetectionMethod.NONE, confidence=DetectionConfidence.HIGH
)


class LayeredSafetyDetector:
    """Composes the pattern classifier and the contextual classifier into one verdict."""

    def __init__(
        self,
        classifier: ContextualClassifier | None = None,
        patterns: PatternClassifier | None = None,
        settings: DetectorSettings | None = None,
    ) -> None:
        self._settings = settings or DetectorSettings()
        self._classifier = classifier
        self._patterns = patterns or PatternClassifier()
        logger.info("safety_detector_initialized", contextual_available=self.contextual_available)

    @property
    def contextual_available(self) -> bool:
        return (
            self._settings.contextual_enabled
            and self._classifier is not None
            and self._classifier.is_configured
        )

    async def detect(self, message: str, category: SafetyCategory) -> DetectionResult:
        """Classify a message for one safety category."""
        start_time = time.perf_counter()
        normalized = normalize_text(message)
        if not normalized:
            return _EMPTY_RESULT
        high = self._patterns.match_high(normalized, category)
        if high.detected:
            result = DetectionResult(
                is_detected=True,
                detection_method=DetectionMethod.PATTERN,
                confidence=DetectionConfidence.HIGH,
            )
            self._log_result(category, result, high, start_time)
            return result
        medium = self._patterns.match_medium(normalized, category)
        if self.contextual_available:
            result = await self._consult_classifier(message, category, medium)
        else:
            result = DetectionResult(
                is_detected=medium.detected,
                detection_method=DetectionMethod.PATTERN,
                confidence=DetectionConfidence.MEDIUM,
            )
        self._log_result(category, result, medium, start_time)
        return result

    async def detect_crisis(self, message: str) -> DetectionResult:
        return await self.detect(message, SafetyCategory.CRISIS)

    async def detect_grief(self, message: str) -> DetectionResult:
        return await self.detect(message, SafetyCategory.GRIEF)

    async def _consult_classifier(
        self, message: str, category: SafetyCategory, medium: PatternMatch
    ) -> DetectionResult:
        try:
            confirmed = await self._classifier.classify(message, category)
        except Exception as e:
            logger.warning(
                "contextual_classifier_fallback",
                category=category.value,
                error=str(e),
                error_type=type(e).__name__,
                pattern_detected=medium.detected,
            )
            return DetectionResult(
                is_detected=medium.detected,
                detection_method=DetectionMethod.PATTERN,
                confidence=DetectionConfidence.LOW,
            )
        if confirmed:
            return DetectionResult(
                is_detected=True,
                detection_method=DetectionMethod.BOTH if medium.detected else DetectionMethod.AI,
                confidence=DetectionConfidence.MEDIUM,
            )
        return DetectionResult(
            is_detected=False,
            detection_method=DetectionMethod.BOTH,
            confidence=DetectionConfidence.HIGH,
        )

    @staticmethod
    def _log_result(
        category: SafetyCategory, result: DetectionResult, match: PatternMatch, start_time: float
    ) -> None:
        logger.info(
            "safety_detection_complete",
            category=category.value,
            detected=result.is_detected,
            method=result.detection_method.value,
            confidence=result.confidence.value,
            pattern=match.pattern_name,
            detection_time_ms=int((time.perf_counter() - start_time) * 1000),
        )
