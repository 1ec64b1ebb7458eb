"""
Test fixtures for the safety automation core.
In-memory repository implementations and recording collaborators for use in tests only.
"""
from __future__ import annotations
import asyncio
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog

from safety_automation.alerts import CrisisAlertLog, CrisisAlertLogRepository
from safety_automation.detection.classifier import ContextualClassifier
from safety_automation.detection.feedback import DetectionFeedback, DetectionFeedbackRepository
from safety_automation.detection.models import SafetyCategory
from safety_automation.workflow.collaborators import (
    AssessmentAssigner, CounselorDirectory, CounselorNotifier, CrisisAlerter, EmailSender,
    TaskCreator,
)
from safety_automation.workflow.models import RuleLevel, StoredRule, WorkflowExecution
from safety_automation.workflow.repository import ExecutionLogRepository, WorkflowRuleRepository

logger = structlog.get_logger(__name__)


def _by_priority(rules: list[StoredRule]) -> list[StoredRule]:
    return sorted(rules, key=lambda r: r.priority, reverse=True)


class InMemoryWorkflowRuleRepository(WorkflowRuleRepository):
    """In-memory implementation for testing."""

    def __init__(self, rules: list[StoredRule] | None = None) -> None:
        self._rules: dict[str, StoredRule] = {r.id: r for r in rules or []}
        self._lock = asyncio.Lock()

    async def find_active_by_priority_desc(self) -> list[StoredRule]:
        return _by_priority([r for r in self._rules.values() if r.is_active])

    async def find(
        self,
        level: RuleLevel | None = None,
        owner_id: str | None = None,
        is_active: bool | None = None,
    ) -> list[StoredRule]:
        rules = [
            r for r in self._rules.values()
            if (level is None or r.level == level)
            and (owner_id is None or r.owner_id == owner_id)
            and (is_active is None or r.is_active == is_active)
        ]
        return _by_priority(rules)

    async def find_applicable(self, organization_ids: list[str], counselor_id: str) -> list[StoredRule]:
        rules = [
            r for r in self._rules.values()
            if r.is_active and (
                r.level == RuleLevel.PLATFORM
                or (r.level == RuleLevel.ORGANIZATION and r.owner_id in organization_ids)
                or (r.level == RuleLevel.COUNSELOR and r.owner_id == counselor_id)
            )
        ]
        return _by_priority(rules)

    async def find_by_name(self, name: str, level: RuleLevel) -> StoredRule | None:
        for rule in self._rules.values():
            if rule.name == name and rule.level == level:
                return rule
        return None

    async def get_by_id(self, rule_id: str) -> StoredRule | None:
        return self._rules.get(rule_id)

    async def save(self, rule: StoredRule) -> StoredRule:
        async with self._lock:
            self._rules[rule.id] = rule
            logger.debug("rule_saved", rule_id=rule.id)
            return rule

    async def delete(self, rule_id: str) -> bool:
        async with self._lock:
            if rule_id in self._rules:
                del self._rules[rule_id]
                return True
            return False


class InMemoryExecutionLogRepository(ExecutionLogRepository):
    """In-memory implementation for testing."""

    def __init__(self) -> None:
        self.executions: list[WorkflowExecution] = []
        self._lock = asyncio.Lock()

    async def append(self, execution: WorkflowExecution) -> None:
        async with self._lock:
            self.executions.append(execution)

    async def find_for_member(self, member_id: str, limit: int = 50) -> list[WorkflowExecution]:
        matches = [e for e in reversed(self.executions) if e.member_id == member_id]
        return matches[:limit]

    async def find_for_rule(self, rule_id: str, limit: int = 50) -> list[WorkflowExecution]:
        matches = [e for e in reversed(self.executions) if e.rule_id == rule_id]
        return matches[:limit]


class InMemoryDetectionFeedbackRepository(DetectionFeedbackRepository):
    """In-memory implementation for testing."""

    def __init__(self) -> None:
        self._records: dict[UUID, DetectionFeedback] = {}
        self._lock = asyncio.Lock()

    async def save(self, record: DetectionFeedback) -> DetectionFeedback:
        async with self._lock:
            self._records[record.feedback_id] = record
            return record

    async def get_by_id(self, feedback_id: UUID) -> DetectionFeedback | None:
        return self._records.get(feedback_id)

    async def find_by_type(self, detection_type: SafetyCategory | None = None) -> list[DetectionFeedback]:
        return [r for r in self._records.values()
                if detection_type is None or r.detection_type == detection_type]


class InMemoryCrisisAlertLogRepository(CrisisAlertLogRepository):
    """In-memory implementation for testing."""

    def __init__(self) -> None:
        self.entries: list[CrisisAlertLog] = []
        self._lock = asyncio.Lock()

    async def save(self, entry: CrisisAlertLog) -> CrisisAlertLog:
        async with self._lock:
            self.entries.append(entry)
            return entry

    async def find_for_record(self, member_id: str, message_id: str) -> CrisisAlertLog | None:
        for entry in self.entries:
            if entry.member_id == member_id and entry.message_id == message_id and entry.error is None:
                return entry
        return None

    async def find_latest_sent(self, member_id: str, since: datetime) -> CrisisAlertLog | None:
        sent = [e for e in self.entries
                if e.member_id == member_id and e.email_sent and e.created_at >= since]
        return max(sent, key=lambda e: e.created_at, default=None)


class FakeCounselorDirectory(CounselorDirectory):
    """Directory backed by plain dictionaries."""

    def __init__(
        self,
        emails: dict[str, str] | None = None,
        names: dict[str, str] | None = None,
        assignments: dict[str, str] | None = None,
        organizations: dict[tuple[str, str], list[str]] | None = None,
    ) -> None:
        self.emails = emails or {}
        self.names = names or {}
        self.assignments = assignments or {}
        self.organizations = organizations or {}

    async def get_contact_email(self, user_id: str) -> str | None:
        return self.emails.get(user_id)

    async def get_assigned_counselor(self, member_id: str) -> str | None:
        return self.assignments.get(member_id)

    async def get_assignment_organizations(self, member_id: str, counselor_id: str) -> list[str]:
        return list(self.organizations.get((member_id, counselor_id), []))

    async def get_display_name(self, user_id: str) -> str | None:
        return self.names.get(user_id)


class _Recorder:
    def __init__(self, result: Any = None, fail_with: Exception | None = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self.result = result
        self.fail_with = fail_with

    def _record(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.fail_with is not None:
            raise self.fail_with
        return self.result


class RecordingAlerter(_Recorder, CrisisAlerter):
    async def send_crisis_alert(
        self, subject_id: str, originating_record_id: str | None, event_data: dict[str, Any]
    ) -> Any:
        return self._record(subject_id=subject_id, originating_record_id=originating_record_id,
                            event_data=event_data)


class RecordingAssessmentAssigner(_Recorder, AssessmentAssigner):
    async def assign_assessment(
        self, member_id: str, assessment_id: str, due_date: datetime, assigned_by: str
    ) -> Any:
        return self._record(member_id=member_id, assessment_id=assessment_id,
                            due_date=due_date, assigned_by=assigned_by)


class RecordingTaskCreator(_Recorder, TaskCreator):
    async def create_task(
        self,
        member_id: str,
        counselor_id: str,
        task_type: str,
        title: str,
        description: str,
        due_date: datetime,
    ) -> Any:
        return self._record(member_id=member_id, counselor_id=counselor_id, task_type=task_type,
                            title=title, description=description, due_date=due_date)


class RecordingNotifier(_Recorder, CounselorNotifier):
    async def send_notification(
        self, to: str, subject: str, template: str, context: dict[str, Any]
    ) -> Any:
        return self._record(to=to, subject=subject, template=template, context=context)


class RecordingEmailSender(_Recorder, EmailSender):
    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
        priority: str = "normal",
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return self._record(to=to, subject=subject, html_body=html_body, text_body=text_body,
                            priority=priority, metadata=metadata)


class StubClassifier(ContextualClassifier):
    """Contextual classifier with a fixed verdict or failure."""

    def __init__(
        self, verdict: bool = False, fail_with: Exception | None = None, configured: bool = True
    ) -> None:
        self.verdict = verdict
        self.fail_with = fail_with
        self.configured = configured
        self.calls: list[tuple[str, SafetyCategory]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def classify(self, message: str, category: SafetyCategory) -> bool:
        self.calls.append((message, category))
        if self.fail_with is not None:
            raise self.fail_with
        return self.verdict
