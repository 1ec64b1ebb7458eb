"""Domain services the action dispatcher and rule service call into."""
from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any


class CrisisAlerter(ABC):
    """Sends crisis alerts to a member's counselor."""

    @abstractmethod
    async def send_crisis_alert(
        self, subject_id: str, originating_record_id: str | None, event_data: dict[str, Any]
    ) -> Any:
        pass


class AssessmentAssigner(ABC):
    @abstractmethod
    async def assign_assessment(
        self, member_id: str, assessment_id: str, due_date: datetime, assigned_by: str
    ) -> Any:
        pass


class TaskCreator(ABC):
    @abstractmethod
    async def create_task(
        self,
        member_id: str,
        counselor_id: str,
        task_type: str,
        title: str,
        description: str,
        due_date: datetime,
    ) -> Any:
        pass


class CounselorNotifier(ABC):
    @abstractmethod
    async def send_notification(
        self, to: str, subject: str, template: str, context: dict[str, Any]
    ) -> Any:
        pass


class EmailSender(ABC):
    """Delivers a rendered email."""

    @abstractmethod
    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
        priority: str = "normal",
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        pass


class CounselorDirectory(ABC):
    """Looks up counselor contact details and counselor-member assignments."""

    @abstractmethod
    async def get_contact_email(self, user_id: str) -> str | None:
        """Email address of a user, or None if unknown."""
        pass

    @abstractmethod
    async def get_assigned_counselor(self, member_id: str) -> str | None:
        """Counselor with an active assignment to the member."""
        pass

    @abstractmethod
    async def get_assignment_organizations(self, member_id: str, counselor_id: str) -> list[str]:
        """Organizations through which the counselor is assigned to the member."""
        pass

    @abstractmethod
    async def get_display_name(self, user_id: str) -> str | None:
        """Human-readable name of a user, or None if unknown."""
        pass
