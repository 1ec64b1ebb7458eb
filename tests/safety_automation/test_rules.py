"""
Unit tests for the workflow rule service and default rule seeding.
"""
from __future__ import annotations
from typing import Any
import pytest

from safety_automation.exceptions import AuthorizationError, EntityNotFoundError, ValidationError
from safety_automation.workflow.models import (
    ActionOutcome, RuleLevel, WorkflowAction, WorkflowExecution,
)
from safety_automation.workflow.rules import Actor, WorkflowRuleService
from safety_automation.workflow.seeds import default_platform_rules, seed_default_rules
from tests.safety_automation.fixtures import (
    FakeCounselorDirectory, InMemoryExecutionLogRepository, InMemoryWorkflowRuleRepository,
)

ADMIN = Actor(user_id="admin-1", is_platform_admin=True)
COUNSELOR = Actor(user_id="counselor-1", organization_ids=["org-1"])
OTHER_COUNSELOR = Actor(user_id="counselor-2", organization_ids=["org-2"])

TRIGGER = {"event": "task.overdue"}
ACTIONS: list[dict[str, Any]] = [{"type": "notify_counselor", "config": {"subject": "Overdue"}}]


class ServiceHarness:
    def __init__(self) -> None:
        self.rules = InMemoryWorkflowRuleRepository()
        self.log = InMemoryExecutionLogRepository()
        self.directory = FakeCounselorDirectory(organizations={("member-1", "counselor-1"): ["org-1"]})
        self.service = WorkflowRuleService(self.rules, self.log, self.directory)


@pytest.fixture
def harness() -> ServiceHarness:
    return ServiceHarness()


class TestCreateRule:
    """Tests for create_rule."""

    @pytest.mark.asyncio
    async def test_admin_creates_platform_rule(self, harness: ServiceHarness) -> None:
        """Test platform admins can create platform rules."""
        rule = await harness.service.create_rule(
            ADMIN, "Reminder", RuleLevel.PLATFORM, TRIGGER, ACTIONS, priority=30
        )
        assert rule.is_active is True
        assert await harness.rules.get_by_id(rule.id) == rule

    @pytest.mark.asyncio
    async def test_counselor_cannot_create_platform_rule(self, harness: ServiceHarness) -> None:
        """Test non-admins are refused platform rules."""
        with pytest.raises(AuthorizationError):
            await harness.service.create_rule(COUNSELOR, "Reminder", RuleLevel.PLATFORM, TRIGGER, ACTIONS)

    @pytest.mark.asyncio
    async def test_counselor_creates_own_rule(self, harness: ServiceHarness) -> None:
        """Test counselors can create rules they own."""
        rule = await harness.service.create_rule(
            COUNSELOR, "Mine", RuleLevel.COUNSELOR, TRIGGER, ACTIONS, owner_id="counselor-1"
        )
        assert rule.owner_id == "counselor-1"

    @pytest.mark.asyncio
    async def test_counselor_cannot_create_for_another(self, harness: ServiceHarness) -> None:
        """Test counselors cannot create rules owned by someone else."""
        with pytest.raises(AuthorizationError):
            await harness.service.create_rule(
                COUNSELOR, "Theirs", RuleLevel.COUNSELOR, TRIGGER, ACTIONS, owner_id="counselor-2"
            )

    @pytest.mark.asyncio
    async def test_organization_rule_needs_membership(self, harness: ServiceHarness) -> None:
        """Test organization rules require the actor to belong to the owner organization."""
        rule = await harness.service.create_rule(
            COUNSELOR, "Org", RuleLevel.ORGANIZATION, TRIGGER, ACTIONS, owner_id="org-1"
        )
        assert rule.level == RuleLevel.ORGANIZATION
        with pytest.raises(AuthorizationError):
            await harness.service.create_rule(
                COUNSELOR, "Org", RuleLevel.ORGANIZATION, TRIGGER, ACTIONS, owner_id="org-2"
            )

    @pytest.mark.asyncio
    async def test_owner_required(self, harness: ServiceHarness) -> None:
        """Test non-platform rules without an owner are rejected."""
        with pytest.raises(ValidationError):
            await harness.service.create_rule(ADMIN, "Orphan", RuleLevel.COUNSELOR, TRIGGER, ACTIONS)

    @pytest.mark.asyncio
    async def test_malformed_rule_rejected(self, harness: ServiceHarness) -> None:
        """Test rules with a malformed envelope are not stored."""
        with pytest.raises(ValidationError):
            await harness.service.create_rule(ADMIN, "Bad", RuleLevel.PLATFORM, {"on": "x"}, ACTIONS)
        assert await harness.rules.find() == []


class TestQueryRules:
    """Tests for get_rules and get_rule."""

    @pytest.mark.asyncio
    async def test_filters_and_order(self, harness: ServiceHarness) -> None:
        """Test filtering by level and ordering by priority."""
        await harness.service.create_rule(ADMIN, "Low", RuleLevel.PLATFORM, TRIGGER, ACTIONS, priority=1)
        await harness.service.create_rule(ADMIN, "High", RuleLevel.PLATFORM, TRIGGER, ACTIONS, priority=9)
        await harness.service.create_rule(
            COUNSELOR, "Mine", RuleLevel.COUNSELOR, TRIGGER, ACTIONS, owner_id="counselor-1", priority=5
        )
        assert [r.name for r in await harness.service.get_rules()] == ["High", "Mine", "Low"]
        assert [r.name for r in await harness.service.get_rules(level=RuleLevel.PLATFORM)] == ["High", "Low"]
        assert [r.name for r in await harness.service.get_rules(owner_id="counselor-1")] == ["Mine"]

    @pytest.mark.asyncio
    async def test_get_missing_rule(self, harness: ServiceHarness) -> None:
        """Test a missing rule raises EntityNotFoundError."""
        with pytest.raises(EntityNotFoundError):
            await harness.service.get_rule("missing")


class TestUpdateRule:
    """Tests for update_rule, set_active and delete_rule."""

    @pytest.mark.asyncio
    async def test_update_fields(self, harness: ServiceHarness) -> None:
        """Test name and priority changes are saved."""
        rule = await harness.service.create_rule(ADMIN, "Old", RuleLevel.PLATFORM, TRIGGER, ACTIONS)
        updated = await harness.service.update_rule(ADMIN, rule.id, name="New", priority=80)
        assert (updated.name, updated.priority) == ("New", 80)
        assert updated.updated_at >= rule.updated_at
        assert (await harness.service.get_rule(rule.id)).name == "New"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("changes", [{"level": "counselor"}, {"owner_id": "counselor-9"}])
    async def test_level_and_owner_immutable(self, harness: ServiceHarness, changes: dict[str, Any]) -> None:
        """Test level and owner cannot be changed."""
        rule = await harness.service.create_rule(ADMIN, "Fixed", RuleLevel.PLATFORM, TRIGGER, ACTIONS)
        with pytest.raises(ValidationError):
            await harness.service.update_rule(ADMIN, rule.id, **changes)

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, harness: ServiceHarness) -> None:
        """Test unknown fields are rejected."""
        rule = await harness.service.create_rule(ADMIN, "Rule", RuleLevel.PLATFORM, TRIGGER, ACTIONS)
        with pytest.raises(ValidationError):
            await harness.service.update_rule(ADMIN, rule.id, colour="red")

    @pytest.mark.asyncio
    async def test_other_counselor_cannot_update(self, harness: ServiceHarness) -> None:
        """Test ownership is enforced on update."""
        rule = await harness.service.create_rule(
            COUNSELOR, "Mine", RuleLevel.COUNSELOR, TRIGGER, ACTIONS, owner_id="counselor-1"
        )
        with pytest.raises(AuthorizationError):
            await harness.service.update_rule(OTHER_COUNSELOR, rule.id, name="Hijacked")

    @pytest.mark.asyncio
    async def test_set_active(self, harness: ServiceHarness) -> None:
        """Test soft disable and re-enable."""
        rule = await harness.service.create_rule(ADMIN, "Rule", RuleLevel.PLATFORM, TRIGGER, ACTIONS)
        assert (await harness.service.set_active(ADMIN, rule.id, False)).is_active is False
        assert await harness.rules.find_active_by_priority_desc() == []
        assert (await harness.service.set_active(ADMIN, rule.id, True)).is_active is True

    @pytest.mark.asyncio
    async def test_delete(self, harness: ServiceHarness) -> None:
        """Test hard delete with ownership check."""
        rule = await harness.service.create_rule(
            COUNSELOR, "Mine", RuleLevel.COUNSELOR, TRIGGER, ACTIONS, owner_id="counselor-1"
        )
        with pytest.raises(AuthorizationError):
            await harness.service.delete_rule(OTHER_COUNSELOR, rule.id)
        await harness.service.delete_rule(COUNSELOR, rule.id)
        with pytest.raises(EntityNotFoundError):
            await harness.service.get_rule(rule.id)


class TestMemberViews:
    """Tests for get_member_rules and get_member_activity."""

    @pytest.mark.asyncio
    async def test_member_rules_scope(self, harness: ServiceHarness) -> None:
        """Test platform, linked organization and own counselor rules apply."""
        await harness.service.create_rule(ADMIN, "Platform", RuleLevel.PLATFORM, TRIGGER, ACTIONS, priority=3)
        await harness.service.create_rule(
            ADMIN, "Org 1", RuleLevel.ORGANIZATION, TRIGGER, ACTIONS, owner_id="org-1", priority=2
        )
        await harness.service.create_rule(
            ADMIN, "Org 2", RuleLevel.ORGANIZATION, TRIGGER, ACTIONS, owner_id="org-2"
        )
        await harness.service.create_rule(
            ADMIN, "Mine", RuleLevel.COUNSELOR, TRIGGER, ACTIONS, owner_id="counselor-1", priority=1
        )
        await harness.service.create_rule(
            ADMIN, "Theirs", RuleLevel.COUNSELOR, TRIGGER, ACTIONS, owner_id="counselor-2"
        )
        disabled = await harness.service.create_rule(
            ADMIN, "Disabled", RuleLevel.PLATFORM, TRIGGER, ACTIONS, priority=9
        )
        await harness.service.set_active(ADMIN, disabled.id, False)
        rules = await harness.service.get_member_rules("member-1", "counselor-1")
        assert [r.name for r in rules] == ["Platform", "Org 1", "Mine"]

    @pytest.mark.asyncio
    async def test_member_activity(self, harness: ServiceHarness) -> None:
        """Test executions naming the member are summarized newest first."""
        rule = await harness.service.create_rule(ADMIN, "Reminder", RuleLevel.PLATFORM, TRIGGER, ACTIONS)
        action = WorkflowAction(type="notify_counselor")
        for member_id in ("member-1", "member-2", "member-1"):
            await harness.log.append(WorkflowExecution(
                rule_id=rule.id, rule_name=rule.name, triggered_by="task.overdue",
                context={"memberId": member_id}, actions=(ActionOutcome.ok(action, None),),
                success=True,
            ))
        activity = await harness.service.get_member_activity("member-1")
        assert len(activity) == 2
        assert activity[0].rule_name == "Reminder"
        assert activity[0].trigger_reason == "task.overdue"
        assert activity[0].actions_taken == "notify_counselor"
        assert activity[0].id == harness.log.executions[2].id

    @pytest.mark.asyncio
    async def test_member_activity_limit(self, harness: ServiceHarness) -> None:
        """Test at most fifty entries are returned."""
        for _ in range(55):
            await harness.log.append(WorkflowExecution(
                rule_id="r", rule_name="R", triggered_by="task.overdue",
                context={"memberId": "member-1"}, success=True,
            ))
        assert len(await harness.service.get_member_activity("member-1")) == 50

    @pytest.mark.asyncio
    async def test_rule_executions(self, harness: ServiceHarness) -> None:
        """Test executions can be listed per rule."""
        rule = await harness.service.create_rule(ADMIN, "Reminder", RuleLevel.PLATFORM, TRIGGER, ACTIONS)
        await harness.log.append(WorkflowExecution(
            rule_id=rule.id, rule_name=rule.name, triggered_by="task.overdue", success=True,
        ))
        assert len(await harness.service.get_rule_executions(rule.id)) == 1


class TestSeedRules:
    """Tests for the default platform rules."""

    def test_default_rules(self) -> None:
        """Test the built-in rules and their priorities."""
        rules = default_platform_rules()
        assert [r.priority for r in rules] == [100, 90, 50, 30]
        assert all(r.level == RuleLevel.PLATFORM and r.owner_id is None for r in rules)
        crisis = rules[0]
        assert crisis.trigger == {"event": "crisis.detected"}
        assert crisis.conditions == {"confidence": "high"}
        assert [a["type"] for a in crisis.actions] == ["send_crisis_alert_email", "auto_assign_assessment"]
        assert rules[3].conditions is None

    def test_default_rules_are_independent_copies(self) -> None:
        """Test changing a returned rule leaves later defaults untouched."""
        first = default_platform_rules()
        first[0].actions.append({"type": "notify_counselor"})
        first[0].conditions["confidence"] = "medium"
        first[1].trigger["event"] = "task.completed"
        fresh = default_platform_rules()
        assert len(fresh[0].actions) == 2
        assert fresh[0].conditions == {"confidence": "high"}
        assert fresh[1].trigger == {"event": "wellbeing.status.changed"}

    @pytest.mark.asyncio
    async def test_seeding_is_idempotent(self) -> None:
        """Test seeding twice creates each rule once."""
        repository = InMemoryWorkflowRuleRepository()
        created = await seed_default_rules(repository)
        assert len(created) == 4
        assert await seed_default_rules(repository) == []
        assert len(await repository.find()) == 4
