"""Event-driven workflow rules."""
from .actions import ActionDispatcher
from .collaborators import (
    AssessmentAssigner, CounselorDirectory, CounselorNotifier, CrisisAlerter, EmailSender,
    TaskCreator,
)
from .engine import WorkflowEngine, conditions_match, strict_equals
from .models import (
    ActionOutcome, ActionResult, ActionType, MemberActivityEntry, RuleLevel, StoredRule,
    WorkflowAction, WorkflowExecution, WorkflowRule, WorkflowTrigger, parse_rule,
)
from .repository import ExecutionLogRepository, WorkflowRuleRepository
from .rules import Actor, WorkflowRuleService
from .seeds import default_platform_rules, seed_default_rules

__all__ = [
    "ActionDispatcher",
    "AssessmentAssigner",
    "CounselorDirectory",
    "CounselorNotifier",
    "CrisisAlerter",
    "EmailSender",
    "TaskCreator",
    "WorkflowEngine",
    "conditions_match",
    "strict_equals",
    "ActionOutcome",
    "ActionResult",
    "ActionType",
    "MemberActivityEntry",
    "RuleLevel",
    "StoredRule",
    "WorkflowAction",
    "WorkflowExecution",
    "WorkflowRule",
    "WorkflowTrigger",
    "parse_rule",
    "ExecutionLogRepository",
    "WorkflowRuleRepository",
    "Actor",
    "WorkflowRuleService",
    "default_platform_rules",
    "seed_default_rules",
]
