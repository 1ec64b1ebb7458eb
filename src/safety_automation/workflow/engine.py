"""
Safety Automation Workflow Engine - Event-driven rule evaluation.
Subscribes to the event bus, matches active rules by trigger and conditions in
priority order, runs their actions and records one execution per match.
"""
from __future__ import annotations
import copy
import time
from typing import Any
import structlog

from ..events import EventBus, EventHandler, WorkflowEventType, event_type_key
from ..exceptions import MalformedRuleError
from .actions import ActionDispatcher
from .models import (
    ActionOutcome, StoredRule, WorkflowAction, WorkflowExecution, WorkflowRule,
    parse_actions, parse_conditions, parse_trigger,
)
from .repository import ExecutionLogRepository, WorkflowRuleRepository

logger = structlog.get_logger(__name__)


def strict_equals(expected: Any, actual: Any) -> bool:
    """Equality without coercion: ``1 != True``, ``"1" != 1``, ``1 == 1.0``."""
    if isinstance(expected, bool) or isinstance(actual, bool):
        return isinstance(expected, bool) and isinstance(actual, bool) and expected == actual
    if isinstance(expected, (int, float)) and isinstance(actual, (int, float)):
        return expected == actual
    return type(expected) is type(actual) and expected == actual


def conditions_match(conditions: dict[str, Any] | None, event_data: dict[str, Any]) -> bool:
    """Every condition key must be present in the payload with a strictly equal value."""
    if not conditions:
        return True
    return all(
        key in event_data and strict_equals(expected, event_data[key])
        for key, expected in conditions.items()
    )


class WorkflowEngine:
    """Evaluates workflow rules for events published on the bus."""

    def __init__(
        self,
        event_bus: EventBus,
        rules: WorkflowRuleRepository,
        execution_log: ExecutionLogRepository,
        dispatcher: ActionDispatcher,
        event_types: list[str | WorkflowEventType] | None = None,
    ) -> None:
        self._bus = event_bus
        self._rules = rules
        self._execution_log = execution_log
        self._dispatcher = dispatcher
        self._event_types = [
            event_type_key(t) for t in (event_types or list(WorkflowEventType))
        ]
        self._subscriptions: dict[str, EventHandler] = {}

    @property
    def is_running(self) -> bool:
        return bool(self._subscriptions)

    async def start(self) -> None:
        """Subscribe to every known event type."""
        if self._subscriptions:
            return
        for event_type in self._event_types:
            handler = self._make_handler(event_type)
            self._bus.subscribe(event_type, handler)
            self._subscriptions[event_type] = handler
        logger.info("workflow_engine_started", event_types=self._event_types)

    async def stop(self) -> None:
        """Unsubscribe from the bus."""
        for event_type, handler in self._subscriptions.items():
            self._bus.unsubscribe(event_type, handler)
        self._subscriptions.clear()
        logger.info("workflow_engine_stopped")

    def _make_handler(self, event_type: str) -> EventHandler:
        async def handle(payload: dict[str, Any]) -> None:
            await self.evaluate_event(event_type, payload)
        handle.__qualname__ = f"WorkflowEngine.handle[{event_type}]"
        return handle

    async def evaluate_event(
        self, event_type: str | WorkflowEventType, event_data: dict[str, Any]
    ) -> list[WorkflowExecution]:
        """Run every matching active rule for one event, highest priority first.

        Rule-level failures are logged and never raised; returns the executions created.
        """
        key = event_type_key(event_type)
        start_time = time.perf_counter()
        try:
            rules = await self._rules.find_active_by_priority_desc()
        except Exception as e:
            logger.error("workflow_rules_unavailable", event_type=key, error=str(e))
            return []
        executions: list[WorkflowExecution] = []
        for stored in rules:
            if not stored.is_active:
                continue
            try:
                execution = await self._evaluate_rule(stored, key, event_data)
            except MalformedRuleError as e:
                logger.warning("workflow_rule_skipped", rule_id=stored.id, part=e.part, reason=e.reason)
                continue
            except Exception as e:
                logger.error("workflow_rule_failed", rule_id=stored.id, event_type=key, error=str(e))
                continue
            if execution is not None:
                executions.append(execution)
        logger.info(
            "workflow_event_evaluated",
            event_type=key,
            rules_considered=len(rules),
            rules_executed=len(executions),
            duration_ms=int((time.perf_counter() - start_time) * 1000),
        )
        return executions

    async def _evaluate_rule(
        self, stored: StoredRule, event_type: str, event_data: dict[str, Any]
    ) -> WorkflowExecution | None:
        trigger = parse_trigger(stored)
        if trigger.event != event_type:
            return None
        conditions = parse_conditions(stored)
        if not conditions_match(conditions, event_data):
            logger.debug("workflow_rule_conditions_unmet", rule_id=stored.id, event_type=event_type)
            return None
        actions = parse_actions(stored)
        rule = WorkflowRule(
            id=stored.id, name=stored.name, level=stored.level, owner_id=stored.owner_id,
            trigger=trigger, conditions=conditions, actions=actions, priority=stored.priority,
        )
        context = copy.deepcopy(event_data)
        outcomes = [await self._execute_action(rule, action, event_data) for action in rule.actions]
        execution = WorkflowExecution.from_outcomes(rule, event_type, context, outcomes)
        await self._execution_log.append(execution)
        logger.info(
            "workflow_rule_executed",
            rule_id=rule.id,
            rule_name=rule.name,
            priority=rule.priority,
            event_type=event_type,
            success=execution.success,
            actions=len(outcomes),
        )
        return execution

    async def _execute_action(
        self, rule: WorkflowRule, action: WorkflowAction, event_data: dict[str, Any]
    ) -> ActionOutcome:
        try:
            result = await self._dispatcher.execute(action, dict(event_data))
        except Exception as e:
            logger.warning("workflow_action_failed", rule_id=rule.id, action_type=action.type,
                           error=str(e))
            return ActionOutcome.failed(action, e)
        return ActionOutcome.ok(action, result.result)
