"""
Safety Automation Detection Feedback - Audit trail of detections and reviewer feedback.
Used to measure detector accuracy and collect false positives for pattern refinement.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from collections import Counter
from datetime import datetime, timezone
from uuid import UUID, uuid4
from pydantic import BaseModel, Field
import structlog

from ..exceptions import EntityNotFoundError
from .models import DetectionResult, SafetyCategory

logger = structlog.get_logger(__name__)


class DetectionFeedback(BaseModel):
    """One logged detection plus optional reviewer feedback."""
    feedback_id: UUID = Field(default_factory=uuid4)
    detection_type: SafetyCategory = Field(..., description="Category that was detected")
    detection_method: str = Field(..., description="Layer(s) that decided")
    confidence_level: str = Field(..., description="Confidence of the verdict")
    message_content: str = Field(..., description="Message that triggered the detection")
    session_id: str | None = Field(default=None)
    message_id: str | None = Field(default=None)
    user_id: str | None = Field(default=None)
    detected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_accurate: bool | None = Field(default=None, description="Reviewer verdict")
    feedback_note: str | None = Field(default=None)
    feedback_submitted_at: datetime | None = Field(default=None)


class CountBucket(BaseModel):
    key: str
    count: int


class DetectionStatistics(BaseModel):
    """Aggregate accuracy figures for logged detections."""
    total_detections: int = 0
    feedback_submitted: int = 0
    accurate_detections: int = 0
    false_positives: int = 0
    accuracy_rate: str = "N/A"
    by_method: list[CountBucket] = Field(default_factory=list)
    by_confidence: list[CountBucket] = Field(default_factory=list)


class DetectionFeedbackRepository(ABC):
    """Abstract repository for detection feedback records."""

    @abstractmethod
    async def save(self, record: DetectionFeedback) -> DetectionFeedback:
        """Insert or replace a record."""
        pass

    @abstractmethod
    async def get_by_id(self, feedback_id: UUID) -> DetectionFeedback | None:
        """Get a record by ID."""
        pass

    @abstractmethod
    async def find_by_type(self, detection_type: SafetyCategory | None = None) -> list[DetectionFeedback]:
        """List records, optionally for one detection type."""
        pass


class DetectionFeedbackService:
    """Records detections and turns reviewer feedback into accuracy statistics."""

    def __init__(self, repository: DetectionFeedbackRepository) -> None:
        self._repository = repository

    async def log_detection(
        self,
        detection_type: SafetyCategory,
        result: DetectionResult,
        message: str,
        session_id: str | None = None,
        message_id: str | None = None,
        user_id: str | None = None,
    ) -> UUID | None:
        """Persist a detection. Failures are logged and never reach the caller."""
        record = DetectionFeedback(
            detection_type=detection_type,
            detection_method=result.detection_method.value,
            confidence_level=result.confidence.value,
            message_content=message,
            session_id=session_id,
            message_id=message_id,
            user_id=user_id,
        )
        try:
            saved = await self._repository.save(record)
        except Exception as e:
            logger.error("detection_log_failed", detection_type=detection_type.value, error=str(e))
            return None
        logger.info("detection_logged", feedback_id=str(saved.feedback_id),
                    detection_type=detection_type.value, method=record.detection_method,
                    confidence=record.confidence_level)
        return saved.feedback_id

    async def submit_feedback(
        self, feedback_id: UUID, is_accurate: bool, note: str | None = None
    ) -> DetectionFeedback:
        """Attach a reviewer verdict to a logged detection."""
        record = await self._repository.get_by_id(feedback_id)
        if record is None:
            raise EntityNotFoundError("DetectionFeedback", str(feedback_id))
        updated = record.model_copy(update={
            "is_accurate": is_accurate,
            "feedback_note": note,
            "feedback_submitted_at": datetime.now(timezone.utc),
        })
        await self._repository.save(updated)
        logger.info("detection_feedback_submitted", feedback_id=str(feedback_id),
                    is_accurate=is_accurate)
        return updated

    async def get_statistics(self, detection_type: SafetyCategory | None = None) -> DetectionStatistics:
        records = await self._repository.find_by_type(detection_type)
        reviewed = [r for r in records if r.feedback_submitted_at is not None]
        accurate = sum(1 for r in reviewed if r.is_accurate is True)
        false_positives = sum(1 for r in reviewed if r.is_accurate is False)
        accuracy_rate = f"{accurate / len(reviewed) * 100:.2f}%" if reviewed else "N/A"
        by_method = Counter(r.detection_method for r in records)
        by_confidence = Counter(r.confidence_level for r in records)
        return DetectionStatistics(
            total_detections=len(records),
            feedback_submitted=len(reviewed),
            accurate_detections=accurate,
            false_positives=false_positives,
            accuracy_rate=accuracy_rate,
            by_method=[CountBucket(key=k, count=v) for k, v in by_method.most_common()],
            by_confidence=[CountBucket(key=k, count=v) for k, v in by_confidence.most_common()],
        )

    async def get_false_positives(
        self, detection_type: SafetyCategory, limit: int = 50
    ) -> list[DetectionFeedback]:
        """Most recently reviewed detections marked inaccurate."""
        records = await self._repository.find_by_type(detection_type)
        false_positives = [r for r in records if r.is_accurate is False]
        false_positives.sort(key=lambda r: r.feedback_submitted_at, reverse=True)
        return false_positives[:limit]
