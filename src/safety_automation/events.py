"""
Safety Automation - Domain Events.
Workflow event types and the in-process event bus the rule engine subscribes to.
"""
from __future__ import annotations
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4
from pydantic import BaseModel, ConfigDict, Field
import structlog

logger = structlog.get_logger(__name__)

EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


class WorkflowEventType(str, Enum):
    """Event types that workflow rules can trigger on."""
    CRISIS_DETECTED = "crisis.detected"
    WELLBEING_STATUS_CHANGED = "wellbeing.status.changed"
    WELLBEING_TRAJECTORY_CHANGED = "wellbeing.trajectory.changed"
    ASSESSMENT_COMPLETED = "assessment.completed"
    ASSESSMENT_SCORE_CHANGED = "assessment.score.changed"
    TASK_COMPLETED = "task.completed"
    TASK_OVERDUE = "task.overdue"
    SESSION_COMPLETED = "session.completed"


def event_type_key(event_type: str | WorkflowEventType) -> str:
    return event_type.value if isinstance(event_type, WorkflowEventType) else event_type


class WorkflowEvent(BaseModel):
    """A single published event. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    event_id: UUID = Field(default_factory=uuid4)
    type: str = Field(..., description="Event type string")
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CrisisDetectedPayload(BaseModel):
    """Payload published on ``crisis.detected``. Keys are camelCase for rule conditions."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    member_id: str = Field(..., alias="memberId")
    crisis_type: str = Field(..., alias="crisisType")
    confidence: str = Field(...)
    detection_method: str = Field(..., alias="detectionMethod")
    triggering_message: str = Field(..., alias="triggeringMessage")
    message_id: str | None = Field(default=None, alias="messageId")
    session_id: str | None = Field(default=None, alias="sessionId")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class EventBus:
    """
    In-process publish/subscribe keyed by event type string.

    ``publish`` dispatches to every subscribed handler before returning.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def subscribe(self, event_type: str | WorkflowEventType, handler: EventHandler) -> None:
        """Register a handler for an event type."""
        key = event_type_key(event_type)
        self._handlers.setdefault(key, []).append(handler)
        logger.debug("event_handler_subscribed", event_type=key)

    def unsubscribe(self, event_type: str | WorkflowEventType, handler: EventHandler) -> None:
        """Remove a handler. Unknown handlers are ignored."""
        key = event_type_key(event_type)
        handlers = self._handlers.get(key, [])
        if handler in handlers:
            handlers.remove(handler)
            logger.debug("event_handler_unsubscribed", event_type=key)
        if not handlers:
            self._handlers.pop(key, None)

    def handler_count(self, event_type: str | WorkflowEventType) -> int:
        return len(self._handlers.get(event_type_key(event_type), []))

    async def publish(self, event_type: str | WorkflowEventType, payload: dict[str, Any]) -> WorkflowEvent:
        """Publish an event and wait for every handler to finish."""
        event = WorkflowEvent(type=event_type_key(event_type), payload=dict(payload))
        logger.info("workflow_event_published", event_type=event.type, event_id=str(event.event_id))
        await self._dispatch_event(event)
        return event

    async def _dispatch_event(self, event: WorkflowEvent) -> None:
        for handler in list(self._handlers.get(event.type, [])):
            try:
                await handler(dict(event.payload))
            except Exception as e:
                logger.error(
                    "event_handler_error",
                    event_type=event.type,
                    handler=getattr(handler, "__qualname__", type(handler).__name__),
                    error=str(e),
                )


_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get singleton event bus."""
    global _bus
    if _bus is None:
        _bus = EventBus()
    return _bus


def reset_event_bus() -> None:
    """Reset event bus singleton (for testing)."""
    global _bus
    _bus = None
