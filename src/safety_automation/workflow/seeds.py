"""Default platform workflow rules."""
from __future__ import annotations
import copy
from typing import Any
import structlog

from .models import RuleLevel, StoredRule
from .repository import WorkflowRuleRepository

logger = structlog.get_logger(__name__)

_PLATFORM_RULES: list[dict[str, Any]] = [
    {
        "name": "Crisis Detection → Alert + PHQ-9",
        "trigger": {"event": "crisis.detected"},
        "conditions": {"confidence": "high"},
        "actions": [
            {"type": "send_crisis_alert_email"},
            {"type": "auto_assign_assessment", "assessmentType": "PHQ-9"},
        ],
        "priority": 100,
    },
    {
        "name": "Wellbeing Declined → Notify Counselor + Task",
        "trigger": {"event": "wellbeing.status.changed"},
        "conditions": {"newStatus": "red"},
        "actions": [
            {
                "type": "notify_counselor",
                "subject": "Member wellbeing declined",
                "message": "A member you are counseling has declined to red status.",
            },
            {
                "type": "auto_assign_task",
                "taskType": "conversation_prompt",
                "title": "Check-in conversation",
                "description": "Have a check-in conversation to discuss recent struggles.",
            },
        ],
        "priority": 90,
    },
    {
        "name": "PHQ-9 Score Improving → Encouragement",
        "trigger": {"event": "assessment.completed"},
        "conditions": {"assessmentType": "PHQ-9"},
        "actions": [
            {
                "type": "notify_counselor",
                "subject": "Member showing improvement",
                "message": "A member's PHQ-9 score has improved significantly.",
            },
        ],
        "priority": 50,
    },
    {
        "name": "Task Overdue → Reminder",
        "trigger": {"event": "task.overdue"},
        "conditions": None,
        "actions": [
            {
                "type": "notify_counselor",
                "subject": "Task overdue",
                "message": "A task you assigned is now overdue.",
            },
        ],
        "priority": 30,
    },
]


def default_platform_rules() -> list[StoredRule]:
    """Fresh, unsaved copies of the built-in platform rules."""
    return [
        StoredRule(
            level=RuleLevel.PLATFORM, owner_id=None, is_active=True, **copy.deepcopy(definition)
        )
        for definition in _PLATFORM_RULES
    ]


async def seed_default_rules(repository: WorkflowRuleRepository) -> list[StoredRule]:
    """Install any missing platform rules. Existing rules with the same name are left alone.

    Returns:
        The rules created by this call.
    """
    created: list[StoredRule] = []
    for rule in default_platform_rules():
        existing = await repository.find_by_name(rule.name, RuleLevel.PLATFORM)
        if existing is not None:
            logger.debug("workflow_seed_rule_exists", name=rule.name, rule_id=existing.id)
            continue
        created.append(await repository.save(rule))
        logger.info("workflow_seed_rule_created", name=rule.name, priority=rule.priority)
    return created
