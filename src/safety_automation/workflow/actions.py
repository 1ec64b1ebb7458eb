"""
Safety Automation Action Dispatcher - Executes a rule's configured actions.
Each variant maps onto one domain collaborator; collaborator errors propagate
to the engine, which records them per action.
"""
from __future__ import annotations
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any
import structlog

from ..config import WorkflowSettings
from ..exceptions import EntityNotFoundError, UnknownActionTypeError, ValidationError
from .collaborators import (
    AssessmentAssigner, CounselorDirectory, CounselorNotifier, CrisisAlerter, TaskCreator,
)
from .models import ActionResult, ActionType, WorkflowAction

logger = structlog.get_logger(__name__)

_Handler = Callable[[WorkflowAction, dict[str, Any]], Awaitable[Any]]


class ActionDispatcher:
    """Translates workflow actions into calls against domain collaborators."""

    def __init__(
        self,
        alerter: CrisisAlerter,
        assessments: AssessmentAssigner,
        tasks: TaskCreator,
        notifier: CounselorNotifier,
        directory: CounselorDirectory,
        settings: WorkflowSettings | None = None,
    ) -> None:
        self._alerter = alerter
        self._assessments = assessments
        self._tasks = tasks
        self._notifier = notifier
        self._directory = directory
        self._settings = settings or WorkflowSettings()
        self._handlers: dict[ActionType, _Handler] = {
            ActionType.SEND_CRISIS_ALERT_EMAIL: self._send_crisis_alert_email,
            ActionType.AUTO_ASSIGN_ASSESSMENT: self._auto_assign_assessment,
            ActionType.AUTO_ASSIGN_TASK: self._auto_assign_task,
            ActionType.NOTIFY_COUNSELOR: self._notify_counselor,
        }

    async def execute(self, action: WorkflowAction, event_data: dict[str, Any]) -> ActionResult:
        """Run one action.

        Raises:
            UnknownActionTypeError: when ``action.type`` is not a recognized variant.
        """
        action_type = action.action_type
        if action_type is None:
            raise UnknownActionTypeError(action.type)
        logger.debug("workflow_action_executing", action_type=action_type.value,
                     member_id=event_data.get("memberId"))
        result = await self._handlers[action_type](action, event_data)
        return ActionResult(success=True, result=result)

    def _due_date(self) -> datetime:
        return datetime.now(timezone.utc) + timedelta(days=self._settings.due_in_days)

    def _counselor_id(self, event_data: dict[str, Any]) -> str:
        counselor_id = event_data.get("counselorId")
        return counselor_id if isinstance(counselor_id, str) and counselor_id else self._settings.fallback_assignee

    @staticmethod
    def _member_id(event_data: dict[str, Any]) -> str:
        member_id = event_data.get("memberId")
        if not isinstance(member_id, str) or not member_id:
            raise ValidationError("Event payload has no memberId", field="memberId")
        return member_id

    async def _send_crisis_alert_email(self, action: WorkflowAction, event_data: dict[str, Any]) -> Any:
        return await self._alerter.send_crisis_alert(
            subject_id=self._member_id(event_data),
            originating_record_id=event_data.get("messageId"),
            event_data=event_data,
        )

    async def _auto_assign_assessment(self, action: WorkflowAction, event_data: dict[str, Any]) -> Any:
        assessment_type = action.setting("assessmentType")
        if not isinstance(assessment_type, str) or not assessment_type:
            raise ValidationError("auto_assign_assessment requires assessmentType", field="assessmentType")
        return await self._assessments.assign_assessment(
            member_id=self._member_id(event_data),
            assessment_id=f"assessment-{assessment_type.lower()}",
            due_date=self._due_date(),
            assigned_by=self._counselor_id(event_data),
        )

    async def _auto_assign_task(self, action: WorkflowAction, event_data: dict[str, Any]) -> Any:
        return await self._tasks.create_task(
            member_id=self._member_id(event_data),
            counselor_id=self._counselor_id(event_data),
            task_type=action.setting("taskType", "custom"),
            title=action.setting("title", "Follow-up task"),
            description=action.setting("description", ""),
            due_date=self._due_date(),
        )

    async def _notify_counselor(self, action: WorkflowAction, event_data: dict[str, Any]) -> Any:
        counselor_id = self._counselor_id(event_data)
        address = await self._directory.get_contact_email(counselor_id)
        if not address:
            raise EntityNotFoundError("CounselorContact", counselor_id)
        return await self._notifier.send_notification(
            to=address,
            subject=action.setting("subject", "Workflow notification"),
            template=action.setting("template", action.setting("message", "")),
            context=dict(event_data),
        )
