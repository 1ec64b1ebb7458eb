"""
Safety Automation Workflow Repositories.
Persistence contracts for workflow rules and the execution log.
Implementations raise RepositoryError when the backing store is unreachable.
"""
from __future__ import annotations
from abc import ABC, abstractmethod

from .models import RuleLevel, StoredRule, WorkflowExecution


class WorkflowRuleRepository(ABC):
    """Abstract store of workflow rules."""

    @abstractmethod
    async def find_active_by_priority_desc(self) -> list[StoredRule]:
        """Active rules only, highest priority first."""
        pass

    @abstractmethod
    async def find(
        self,
        level: RuleLevel | None = None,
        owner_id: str | None = None,
        is_active: bool | None = None,
    ) -> list[StoredRule]:
        """Rules matching every filter given, highest priority first."""
        pass

    @abstractmethod
    async def find_applicable(
        self, organization_ids: list[str], counselor_id: str
    ) -> list[StoredRule]:
        """Active platform rules, organization rules owned by any of the organizations,
        and counselor rules owned by the counselor, highest priority first."""
        pass

    @abstractmethod
    async def find_by_name(self, name: str, level: RuleLevel) -> StoredRule | None:
        pass

    @abstractmethod
    async def get_by_id(self, rule_id: str) -> StoredRule | None:
        pass

    @abstractmethod
    async def save(self, rule: StoredRule) -> StoredRule:
        """Insert or replace a rule."""
        pass

    @abstractmethod
    async def delete(self, rule_id: str) -> bool:
        """Remove a rule. Returns False when it did not exist."""
        pass


class ExecutionLogRepository(ABC):
    """Append-only log of workflow executions."""

    @abstractmethod
    async def append(self, execution: WorkflowExecution) -> None:
        pass

    @abstractmethod
    async def find_for_member(self, member_id: str, limit: int = 50) -> list[WorkflowExecution]:
        """Most recent executions whose context names the member."""
        pass

    @abstractmethod
    async def find_for_rule(self, rule_id: str, limit: int = 50) -> list[WorkflowExecution]:
        """Most recent executions of one rule."""
        pass
