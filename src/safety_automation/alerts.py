"""
Safety Automation - Crisis Alerting.
Emails a member's assigned counselor when a crisis is detected, with per-message
deduplication, a per-member throttle window and an audit log of every decision.
"""
from __future__ import annotations
import asyncio
import html
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4
from pydantic import BaseModel, ConfigDict, Field
import structlog

from .config import CrisisAlertSettings
from .exceptions import EntityNotFoundError, ExternalServiceError
from .workflow.collaborators import CounselorDirectory, CrisisAlerter, EmailSender

logger = structlog.get_logger(__name__)

_METHOD_TEXT = {
    "pattern": "keyword pattern matching",
    "ai": "AI analysis",
    "both": "keyword patterns and AI analysis",
}

_ACTION_STEPS = (
    "Review the full conversation context immediately",
    "Assess the severity and urgency of the situation",
    "Contact the member directly via phone or secure message",
    "If immediate danger: Contact emergency services (988 Suicide & Crisis Lifeline)",
    "Document your assessment and actions taken in the member's file",
)


class CrisisAlertLog(BaseModel):
    """Audit entry for one crisis alert decision."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    member_id: str
    counselor_id: str | None = None
    crisis_type: str
    confidence: str
    detection_method: str
    triggering_message: str = ""
    message_id: str | None = None
    email_sent: bool = False
    throttled: bool = False
    throttle_reason: str | None = None
    error: str | None = None
    email_log_id: str | None = None
    deduplicated: bool = Field(default=False, description="Returned from an earlier alert for the same message")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CrisisAlertLogRepository(ABC):
    """Abstract store of crisis alert log entries."""

    @abstractmethod
    async def save(self, entry: CrisisAlertLog) -> CrisisAlertLog:
        pass

    @abstractmethod
    async def find_for_record(self, member_id: str, message_id: str) -> CrisisAlertLog | None:
        """Earliest entry without an error for the member and originating message."""
        pass

    @abstractmethod
    async def find_latest_sent(self, member_id: str, since: datetime) -> CrisisAlertLog | None:
        """Most recent entry with ``email_sent`` created at or after ``since``."""
        pass


class AlertEmail(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject: str
    html: str
    text: str


def render_crisis_alert_email(
    *,
    settings: CrisisAlertSettings,
    counselor_name: str,
    member_name: str,
    member_email: str,
    member_id: str,
    crisis_type: str,
    confidence: str,
    detection_method: str,
    triggering_message: str,
) -> AlertEmail:
    """Render the high-priority crisis alert sent to a counselor."""
    base_url = settings.web_app_url.rstrip("/")
    conversation_url = f"{base_url}/counsel/member/{member_id}/journal"
    profile_url = f"{base_url}/counsel/member/{member_id}/observations"
    method_text = _METHOD_TEXT.get(detection_method, detection_method)
    esc = html.escape
    steps_html = "".join(f"<li>{esc(step)}</li>" for step in _ACTION_STEPS)
    html_body = (
        f"<p>Hi {esc(counselor_name)},</p>"
        "<p><strong>Crisis Alert</strong>: this is an urgent notification requiring your immediate attention.</p>"
        f"<p>Our system has detected potential <strong>{esc(crisis_type)}</strong> indicators "
        f"in a conversation with <strong>{esc(member_name)}</strong>.</p>"
        "<table>"
        f"<tr><td>Confidence Level:</td><td>{esc(confidence.upper())}</td></tr>"
        f"<tr><td>Detection Method:</td><td>{esc(method_text)}</td></tr>"
        f"<tr><td>Member Email:</td><td>{esc(member_email)}</td></tr>"
        "</table>"
        f"<p>Triggering Message:</p><blockquote>\"{esc(triggering_message)}\"</blockquote>"
        f"<p><a href=\"{esc(conversation_url)}\">View Full Conversation</a></p>"
        f"<p>Immediate Action Steps:</p><ol>{steps_html}</ol>"
        "<p>This is an automated alert. Always use your professional judgment when assessing "
        "crisis situations.</p>"
        f"<p><a href=\"{esc(profile_url)}\">View Member Profile</a></p>"
        f"<p>In watchful care,<br/>The {esc(settings.app_name)} Crisis Detection Team</p>"
        f"<p>Questions? Contact {esc(settings.support_email)}</p>"
    )
    steps_text = "\n".join(f"{i}. {step}" for i, step in enumerate(_ACTION_STEPS, start=1))
    text_body = (
        f"Hi {counselor_name},\n\n"
        "CRISIS ALERT - IMMEDIATE ATTENTION REQUIRED\n\n"
        f"Our system has detected potential {crisis_type} indicators in a conversation with {member_name}.\n\n"
        "DETAILS:\n"
        f"- Confidence Level: {confidence.upper()}\n"
        f"- Detection Method: {method_text}\n"
        f"- Member Email: {member_email}\n\n"
        f"TRIGGERING MESSAGE:\n\"{triggering_message}\"\n\n"
        f"View Full Conversation:\n{conversation_url}\n\n"
        f"IMMEDIATE ACTION STEPS:\n{steps_text}\n\n"
        f"View Member Profile:\n{profile_url}\n\n"
        f"In watchful care,\nThe {settings.app_name} Crisis Detection Team"
    )
    return AlertEmail(
        subject=f"URGENT: Crisis Alert - {member_name}",
        html=html_body,
        text=text_body,
    )


class CrisisAlertService(CrisisAlerter):
    """Decides whether to email a crisis alert and records every decision."""

    def __init__(
        self,
        repository: CrisisAlertLogRepository,
        directory: CounselorDirectory,
        email_sender: EmailSender,
        settings: CrisisAlertSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._directory = directory
        self._email_sender = email_sender
        self._settings = settings or CrisisAlertSettings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._member_locks: dict[str, asyncio.Lock] = {}

    def _new_entry(
        self, member_id: str, message_id: str | None, event_data: dict[str, Any], **fields: Any
    ) -> CrisisAlertLog:
        return CrisisAlertLog(
            member_id=member_id,
            message_id=message_id,
            crisis_type=str(event_data.get("crisisType") or "unknown"),
            confidence=str(event_data.get("confidence") or "unknown"),
            detection_method=str(event_data.get("detectionMethod") or "unknown"),
            triggering_message=str(event_data.get("triggeringMessage") or ""),
            created_at=self._clock(),
            **fields,
        )

    async def send_crisis_alert(
        self, subject_id: str, originating_record_id: str | None, event_data: dict[str, Any]
    ) -> CrisisAlertLog:
        """
        Alert the member's counselor about a crisis detection.

        At most one alert is recorded per (member, originating message). Emails are
        throttled to one per member per throttle window. Calls for the same member
        run one at a time so concurrent deliveries of one event cannot both send.

        Raises:
            ExternalServiceError: when the alert email could not be delivered.
        """
        async with self._member_locks.setdefault(subject_id, asyncio.Lock()):
            return await self._send_serialized(subject_id, originating_record_id, event_data)

    async def _send_serialized(
        self, subject_id: str, originating_record_id: str | None, event_data: dict[str, Any]
    ) -> CrisisAlertLog:
        if originating_record_id:
            existing = await self._repository.find_for_record(subject_id, originating_record_id)
            if existing is not None:
                logger.info("crisis_alert_deduplicated", member_id=subject_id,
                            message_id=originating_record_id, alert_id=existing.id)
                return existing.model_copy(update={"deduplicated": True})

        counselor_id = await self._directory.get_assigned_counselor(subject_id)
        if counselor_id is None:
            logger.info("crisis_alert_no_counselor", member_id=subject_id)
            return await self._repository.save(
                self._new_entry(subject_id, originating_record_id, event_data)
            )

        window = timedelta(minutes=self._settings.throttle_window_minutes)
        recent = await self._repository.find_latest_sent(subject_id, self._clock() - window)
        if recent is not None:
            logger.info("crisis_alert_throttled", member_id=subject_id, previous_alert_id=recent.id)
            return await self._repository.save(self._new_entry(
                subject_id, originating_record_id, event_data,
                counselor_id=counselor_id,
                throttled=True,
                throttle_reason=(
                    "Previous alert sent within throttle window "
                    f"({self._settings.throttle_window_minutes} minutes)"
                ),
            ))

        try:
            email_log_id = await self._deliver(subject_id, counselor_id, event_data)
        except Exception as e:
            logger.error("crisis_alert_failed", member_id=subject_id, counselor_id=counselor_id,
                         error=str(e))
            await self._repository.save(self._new_entry(
                subject_id, originating_record_id, event_data,
                counselor_id=counselor_id, error=f"Error: {e}",
            ))
            if isinstance(e, ExternalServiceError):
                raise
            raise ExternalServiceError("crisis-alert", f"Failed to send crisis alert: {e}", cause=e) from e

        entry = await self._repository.save(self._new_entry(
            subject_id, originating_record_id, event_data,
            counselor_id=counselor_id, email_sent=True, email_log_id=email_log_id,
        ))
        logger.warning("crisis_alert_sent", member_id=subject_id, counselor_id=counselor_id,
                       alert_id=entry.id, crisis_type=entry.crisis_type, confidence=entry.confidence)
        return entry

    async def _deliver(self, member_id: str, counselor_id: str, event_data: dict[str, Any]) -> str | None:
        counselor_email = await self._directory.get_contact_email(counselor_id)
        if not counselor_email:
            raise EntityNotFoundError("CounselorContact", counselor_id)
        counselor_name = await self._directory.get_display_name(counselor_id) or "Counselor"
        member_name = await self._directory.get_display_name(member_id) or "Member"
        member_email = await self._directory.get_contact_email(member_id) or "Not available"
        email = render_crisis_alert_email(
            settings=self._settings,
            counselor_name=counselor_name,
            member_name=member_name,
            member_email=member_email,
            member_id=member_id,
            crisis_type=str(event_data.get("crisisType") or "crisis"),
            confidence=str(event_data.get("confidence") or "unknown"),
            detection_method=str(event_data.get("detectionMethod") or "pattern"),
            triggering_message=str(event_data.get("triggeringMessage") or ""),
        )
        result = await self._email_sender.send_email(
            to=counselor_email,
            subject=email.subject,
            html_body=email.html,
            text_body=email.text,
            priority="high",
            metadata={
                "memberId": member_id,
                "counselorId": counselor_id,
                "emailType": "crisis_alert",
                "crisisType": event_data.get("crisisType"),
                "confidence": event_data.get("confidence"),
            },
        )
        request_id = result.get("request_id") if isinstance(result, dict) else None
        return str(request_id) if request_id is not None else None

    async def handle_crisis_detected(self, payload: dict[str, Any]) -> None:
        """Event bus handler for ``crisis.detected``."""
        member_id = payload.get("memberId")
        if not isinstance(member_id, str) or not member_id:
            logger.warning("crisis_alert_payload_invalid", keys=sorted(payload))
            return
        try:
            await self.send_crisis_alert(member_id, payload.get("messageId"), payload)
        except ExternalServiceError as e:
            logger.error("crisis_alert_handler_failed", member_id=member_id, error=e.message)
