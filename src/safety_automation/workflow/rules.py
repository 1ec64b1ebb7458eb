"""
Safety Automation Workflow Rule Service.
Rule administration with level/ownership authorization and member-scoped views.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any
from pydantic import BaseModel, ConfigDict, Field
import structlog

from ..config import WorkflowSettings
from ..exceptions import AuthorizationError, EntityNotFoundError, MalformedRuleError, ValidationError
from .collaborators import CounselorDirectory
from .models import MemberActivityEntry, RuleLevel, StoredRule, WorkflowExecution, parse_rule
from .repository import ExecutionLogRepository, WorkflowRuleRepository

logger = structlog.get_logger(__name__)

_UPDATABLE_FIELDS = frozenset({"name", "trigger", "conditions", "actions", "priority", "is_active"})
_IMMUTABLE_FIELDS = frozenset({"level", "owner_id"})


class Actor(BaseModel):
    """Identity performing a rule administration call."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    is_platform_admin: bool = False
    organization_ids: frozenset[str] = Field(default_factory=frozenset)


class WorkflowRuleService:
    """Create, query and maintain workflow rules."""

    def __init__(
        self,
        repository: WorkflowRuleRepository,
        execution_log: ExecutionLogRepository,
        directory: CounselorDirectory,
        settings: WorkflowSettings | None = None,
    ) -> None:
        self._repository = repository
        self._execution_log = execution_log
        self._directory = directory
        self._settings = settings or WorkflowSettings()

    @staticmethod
    def _authorize(actor: Actor, level: RuleLevel, owner_id: str | None) -> None:
        if actor.is_platform_admin:
            return
        allowed = (
            (level == RuleLevel.COUNSELOR and owner_id == actor.user_id)
            or (level == RuleLevel.ORGANIZATION and owner_id in actor.organization_ids)
        )
        if not allowed:
            raise AuthorizationError(
                f"Not permitted to manage {level.value} rules owned by {owner_id or 'platform'}",
                actor_id=actor.user_id,
            )

    @staticmethod
    def _validate_envelope(rule: StoredRule) -> None:
        try:
            parse_rule(rule)
        except MalformedRuleError as e:
            raise ValidationError(e.message, field=e.part) from e

    async def create_rule(
        self,
        actor: Actor,
        name: str,
        level: RuleLevel,
        trigger: dict[str, Any],
        actions: list[dict[str, Any]],
        owner_id: str | None = None,
        conditions: dict[str, Any] | None = None,
        priority: int = 0,
    ) -> StoredRule:
        """Create an active rule.

        Raises:
            ValidationError: when owner_id is missing below platform level or the rule is malformed.
            AuthorizationError: when the actor may not manage rules at that level/owner.
        """
        level = RuleLevel(level)
        if level != RuleLevel.PLATFORM and not owner_id:
            raise ValidationError(f"owner_id is required for {level.value} rules", field="owner_id")
        self._authorize(actor, level, owner_id)
        rule = StoredRule(
            name=name, level=level, owner_id=owner_id, trigger=trigger,
            conditions=conditions, actions=actions, priority=priority, is_active=True,
        )
        self._validate_envelope(rule)
        saved = await self._repository.save(rule)
        logger.info("workflow_rule_created", rule_id=saved.id, name=saved.name,
                    level=saved.level.value, actor_id=actor.user_id)
        return saved

    async def get_rules(
        self,
        level: RuleLevel | None = None,
        owner_id: str | None = None,
        is_active: bool | None = None,
    ) -> list[StoredRule]:
        """Rules matching the given filters, highest priority first."""
        rules = await self._repository.find(level=level, owner_id=owner_id, is_active=is_active)
        return sorted(rules, key=lambda r: r.priority, reverse=True)

    async def get_rule(self, rule_id: str) -> StoredRule:
        rule = await self._repository.get_by_id(rule_id)
        if rule is None:
            raise EntityNotFoundError("WorkflowRule", rule_id)
        return rule

    async def update_rule(self, actor: Actor, rule_id: str, **changes: Any) -> StoredRule:
        """Apply field changes to a rule. Level and owner cannot change."""
        immutable = _IMMUTABLE_FIELDS.intersection(changes)
        if immutable:
            raise ValidationError(
                f"Cannot change {', '.join(sorted(immutable))} of an existing rule",
                field=sorted(immutable)[0],
            )
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown rule fields: {', '.join(sorted(unknown))}",
                                  field=sorted(unknown)[0])
        rule = await self.get_rule(rule_id)
        self._authorize(actor, rule.level, rule.owner_id)
        updated = StoredRule.model_validate(
            {**rule.model_dump(), **changes, "updated_at": datetime.now(timezone.utc)}
        )
        self._validate_envelope(updated)
        saved = await self._repository.save(updated)
        logger.info("workflow_rule_updated", rule_id=rule_id, fields=sorted(changes),
                    actor_id=actor.user_id)
        return saved

    async def set_active(self, actor: Actor, rule_id: str, is_active: bool) -> StoredRule:
        return await self.update_rule(actor, rule_id, is_active=is_active)

    async def delete_rule(self, actor: Actor, rule_id: str) -> None:
        rule = await self.get_rule(rule_id)
        self._authorize(actor, rule.level, rule.owner_id)
        await self._repository.delete(rule_id)
        logger.info("workflow_rule_deleted", rule_id=rule_id, actor_id=actor.user_id)

    async def get_member_rules(self, member_id: str, counselor_id: str) -> list[StoredRule]:
        """Active rules that apply to a member seen by the given counselor."""
        organization_ids = await self._directory.get_assignment_organizations(member_id, counselor_id)
        rules = await self._repository.find_applicable(organization_ids, counselor_id)
        logger.debug("workflow_member_rules", member_id=member_id, counselor_id=counselor_id,
                     organizations=len(organization_ids), rules=len(rules))
        return rules

    async def get_member_activity(self, member_id: str) -> list[MemberActivityEntry]:
        """Most recent executions for a member, newest first."""
        executions = await self._execution_log.find_for_member(
            member_id, limit=self._settings.activity_limit
        )
        return [self._to_activity(execution) for execution in executions]

    async def get_rule_executions(self, rule_id: str, limit: int = 50) -> list[WorkflowExecution]:
        await self.get_rule(rule_id)
        return await self._execution_log.find_for_rule(rule_id, limit=limit)

    @staticmethod
    def _to_activity(execution: WorkflowExecution) -> MemberActivityEntry:
        actions_taken = ", ".join(str(o.action.get("type")) for o in execution.actions)
        return MemberActivityEntry(
            id=execution.id,
            rule_name=execution.rule_name or "Unknown rule",
            triggered_at=execution.executed_at,
            trigger_reason=execution.triggered_by or "Rule conditions met",
            actions_taken=actions_taken or "Actions executed",
        )
