"""
Safety Automation - Message Screening.
Runs crisis and grief detection for an incoming message, records detections for
review and announces crises on the event bus.
"""
from __future__ import annotations
from pydantic import BaseModel, Field
import structlog

from .detection.detector import LayeredSafetyDetector
from .detection.feedback import DetectionFeedbackService
from .detection.models import DetectionMethod, DetectionResult, SafetyCategory
from .detection.resources import generate_crisis_response, generate_grief_response
from .events import CrisisDetectedPayload, EventBus, WorkflowEventType

logger = structlog.get_logger(__name__)

DEFAULT_CRISIS_TYPE = "suicidal_ideation"


class ScreeningResult(BaseModel):
    """Outcome of screening one message."""
    crisis: DetectionResult
    grief: DetectionResult
    response: str | None = Field(default=None, description="Support text to show the member, if any")
    event_published: bool = False

    @property
    def requires_intervention(self) -> bool:
        return self.crisis.is_detected


class SafetyScreeningService:
    """Screens conversation messages before they reach the counseling pipeline."""

    def __init__(
        self,
        detector: LayeredSafetyDetector,
        event_bus: EventBus,
        feedback: DetectionFeedbackService | None = None,
    ) -> None:
        self._detector = detector
        self._event_bus = event_bus
        self._feedback = feedback

    async def screen_message(
        self,
        message: str,
        member_id: str | None = None,
        message_id: str | None = None,
        session_id: str | None = None,
    ) -> ScreeningResult:
        """
        Screen a message for crisis and grief.

        Anonymous messages (no ``member_id``) are screened but never published.
        """
        crisis = await self._detector.detect_crisis(message)
        grief = await self._detector.detect_grief(message)
        for category, result in ((SafetyCategory.CRISIS, crisis), (SafetyCategory.GRIEF, grief)):
            if result.is_detected and self._feedback is not None:
                await self._feedback.log_detection(
                    category, result, message,
                    session_id=session_id, message_id=message_id, user_id=member_id,
                )

        published = False
        if crisis.is_detected:
            logger.warning("crisis_detected", member_id=member_id or "anonymous",
                           method=crisis.detection_method.value, confidence=crisis.confidence.value)
            if member_id:
                published = await self._publish_crisis(crisis, message, member_id, message_id, session_id)
        if grief.is_detected:
            logger.info("grief_detected", member_id=member_id or "anonymous",
                        method=grief.detection_method.value, confidence=grief.confidence.value)

        if crisis.is_detected:
            response = generate_crisis_response()
        elif grief.is_detected:
            response = generate_grief_response()
        else:
            response = None
        return ScreeningResult(crisis=crisis, grief=grief, response=response, event_published=published)

    async def _publish_crisis(
        self,
        result: DetectionResult,
        message: str,
        member_id: str,
        message_id: str | None,
        session_id: str | None,
    ) -> bool:
        method = result.detection_method
        if method == DetectionMethod.NONE:
            method = DetectionMethod.PATTERN
        payload = CrisisDetectedPayload(
            member_id=member_id,
            crisis_type=DEFAULT_CRISIS_TYPE,
            confidence=result.confidence.value,
            detection_method=method.value,
            triggering_message=message,
            message_id=message_id,
            session_id=session_id,
        )
        try:
            await self._event_bus.publish(WorkflowEventType.CRISIS_DETECTED, payload.to_payload())
        except Exception as e:
            logger.error("crisis_event_publish_failed", member_id=member_id, error=str(e))
            return False
        return True
