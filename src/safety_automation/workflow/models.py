"""
Safety Automation Workflow Models - Rules, actions and execution records.
Stored rules keep trigger/conditions/actions as raw data; ``parse_rule`` validates
that envelope before the engine relies on it.
"""
from __future__ import annotations
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..exceptions import MalformedRuleError


class RuleLevel(str, Enum):
    """Scope a workflow rule applies to."""
    PLATFORM = "platform"
    ORGANIZATION = "organization"
    COUNSELOR = "counselor"


class ActionType(str, Enum):
    """Recognized action variants."""
    SEND_CRISIS_ALERT_EMAIL = "send_crisis_alert_email"
    AUTO_ASSIGN_ASSESSMENT = "auto_assign_assessment"
    AUTO_ASSIGN_TASK = "auto_assign_task"
    NOTIFY_COUNSELOR = "notify_counselor"

    @classmethod
    def parse(cls, value: str) -> ActionType | None:
        try:
            return cls(value)
        except ValueError:
            return None


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredRule(BaseModel):
    """A workflow rule as persisted. Payload fields are untrusted data."""
    id: str = Field(default_factory=_new_id)
    name: str = Field(..., min_length=1)
    level: RuleLevel = Field(...)
    owner_id: str | None = Field(default=None)
    trigger: Any = Field(..., description="Expected shape: {'event': str}")
    conditions: Any = Field(default=None, description="Expected shape: flat mapping or None")
    actions: Any = Field(default_factory=list, description="Expected shape: list of {'type': str, ...}")
    priority: int = Field(default=0)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _owner_required_below_platform(self) -> StoredRule:
        if self.level != RuleLevel.PLATFORM and not self.owner_id:
            raise ValueError(f"owner_id is required for {self.level.value} rules")
        return self


class WorkflowTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    event: str


class WorkflowAction(BaseModel):
    """One configured action. Unknown ``type`` strings are kept and rejected at dispatch."""
    model_config = ConfigDict(frozen=True)

    type: str
    config: dict[str, Any] = Field(default_factory=dict)
    extras: dict[str, Any] = Field(default_factory=dict, description="Inline keys stored beside type")

    @property
    def action_type(self) -> ActionType | None:
        return ActionType.parse(self.type)

    def setting(self, key: str, default: Any = None) -> Any:
        """Read a setting from ``config``, falling back to inline keys."""
        if key in self.config:
            return self.config[key]
        return self.extras.get(key, default)

    def describe(self) -> dict[str, Any]:
        return {"type": self.type, "config": {**self.extras, **self.config}}


class WorkflowRule(BaseModel):
    """A validated rule the engine can evaluate."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    level: RuleLevel
    owner_id: str | None
    trigger: WorkflowTrigger
    conditions: dict[str, Any] | None
    actions: tuple[WorkflowAction, ...]
    priority: int


def parse_trigger(rule: StoredRule) -> WorkflowTrigger:
    trigger = rule.trigger
    if not isinstance(trigger, Mapping):
        raise MalformedRuleError(rule.id, "trigger", "expected an object")
    event = trigger.get("event")
    if not isinstance(event, str) or not event:
        raise MalformedRuleError(rule.id, "trigger", "missing string 'event'")
    return WorkflowTrigger(event=event)


def parse_conditions(rule: StoredRule) -> dict[str, Any] | None:
    if rule.conditions is None:
        return None
    if not isinstance(rule.conditions, Mapping):
        raise MalformedRuleError(rule.id, "conditions", "expected an object")
    return dict(rule.conditions)


def parse_actions(rule: StoredRule) -> tuple[WorkflowAction, ...]:
    if not isinstance(rule.actions, (list, tuple)):
        raise MalformedRuleError(rule.id, "actions", "expected an array")
    parsed: list[WorkflowAction] = []
    for index, raw in enumerate(rule.actions):
        if not isinstance(raw, Mapping):
            raise MalformedRuleError(rule.id, "actions", f"action {index} is not an object")
        action_type = raw.get("type")
        if not isinstance(action_type, str) or not action_type:
            raise MalformedRuleError(rule.id, "actions", f"action {index} has no string 'type'")
        config = raw.get("config") or {}
        if not isinstance(config, Mapping):
            raise MalformedRuleError(rule.id, "actions", f"action {index} config is not an object")
        extras = {k: v for k, v in raw.items() if k not in ("type", "config")}
        parsed.append(WorkflowAction(type=action_type, config=dict(config), extras=extras))
    return tuple(parsed)


def parse_rule(rule: StoredRule) -> WorkflowRule:
    """Validate every part of a stored rule's envelope.

    Raises:
        MalformedRuleError: when trigger, conditions or actions have the wrong shape.
    """
    return WorkflowRule(
        id=rule.id,
        name=rule.name,
        level=rule.level,
        owner_id=rule.owner_id,
        trigger=parse_trigger(rule),
        conditions=parse_conditions(rule),
        actions=parse_actions(rule),
        priority=rule.priority,
    )


class ActionResult(BaseModel):
    """Successful dispatcher return value."""
    success: bool = True
    result: Any = None


class ActionOutcome(BaseModel):
    """Per-action slot of an execution record: either a result or an error."""
    model_config = ConfigDict(frozen=True)

    action: dict[str, Any]
    result: Any = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, action: WorkflowAction, result: Any) -> ActionOutcome:
        return cls(action=action.describe(), result=result)

    @classmethod
    def failed(cls, action: WorkflowAction, error: Exception) -> ActionOutcome:
        return cls(action=action.describe(), error=str(error) or type(error).__name__)


class WorkflowExecution(BaseModel):
    """Audit record of one rule match for one event."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    rule_id: str
    rule_name: str | None = None
    triggered_by: str
    context: dict[str, Any] = Field(default_factory=dict)
    actions: tuple[ActionOutcome, ...] = Field(default_factory=tuple)
    success: bool
    error: str | None = None
    executed_at: datetime = Field(default_factory=_utcnow)

    @property
    def member_id(self) -> str | None:
        value = self.context.get("memberId")
        return value if isinstance(value, str) else None

    @classmethod
    def from_outcomes(
        cls, rule: WorkflowRule, event_type: str, context: dict[str, Any],
        outcomes: list[ActionOutcome],
    ) -> WorkflowExecution:
        first_error = next((o.error for o in outcomes if o.error is not None), None)
        return cls(
            rule_id=rule.id,
            rule_name=rule.name,
            triggered_by=event_type,
            context=context,
            actions=tuple(outcomes),
            success=first_error is None,
            error=first_error,
        )


class MemberActivityEntry(BaseModel):
    """Execution summary shown on a member's activity feed."""
    id: str
    rule_name: str
    triggered_at: datetime
    trigger_reason: str
    actions_taken: str
