"""
Safety Automation Runtime - Component wiring and lifecycle.
Builds the detector, engine, dispatcher and alerting from configuration and
injected stores, and manages startup and shutdown.
"""
from __future__ import annotations
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import structlog

from .alerts import CrisisAlertLogRepository, CrisisAlertService
from .config import AutomationConfig, get_config
from .detection.classifier import ContextualClassifier, LLMContextualClassifier
from .detection.detector import LayeredSafetyDetector
from .detection.feedback import DetectionFeedbackRepository, DetectionFeedbackService
from .events import EventBus, WorkflowEventType
from .logging_config import configure_logging
from .notifications import NotificationServiceClient
from .screening import SafetyScreeningService
from .workflow.actions import ActionDispatcher
from .workflow.collaborators import AssessmentAssigner, CounselorDirectory, TaskCreator
from .workflow.engine import WorkflowEngine
from .workflow.repository import ExecutionLogRepository, WorkflowRuleRepository
from .workflow.rules import WorkflowRuleService
from .workflow.seeds import seed_default_rules

logger = structlog.get_logger(__name__)


class SafetyAutomation:
    """Container for a fully wired safety automation core."""

    def __init__(
        self,
        *,
        rules: WorkflowRuleRepository,
        execution_log: ExecutionLogRepository,
        alert_log: CrisisAlertLogRepository,
        feedback_store: DetectionFeedbackRepository,
        directory: CounselorDirectory,
        assessments: AssessmentAssigner,
        tasks: TaskCreator,
        config: AutomationConfig | None = None,
        event_bus: EventBus | None = None,
        classifier: ContextualClassifier | None = None,
        notifier: NotificationServiceClient | None = None,
    ) -> None:
        self.config = config or get_config()
        self.event_bus = event_bus or EventBus()
        self.rules = rules
        self.notifier = notifier or NotificationServiceClient(self.config.notification)
        self.classifier = classifier or LLMContextualClassifier(self.config.classifier)
        self.detector = LayeredSafetyDetector(
            classifier=self.classifier, settings=self.config.detector
        )
        self.feedback = DetectionFeedbackService(feedback_store)
        self.alerts = CrisisAlertService(
            alert_log, directory, self.notifier, settings=self.config.crisis_alert
        )
        self.dispatcher = ActionDispatcher(
            alerter=self.alerts,
            assessments=assessments,
            tasks=tasks,
            notifier=self.notifier,
            directory=directory,
            settings=self.config.workflow,
        )
        self.engine = WorkflowEngine(self.event_bus, rules, execution_log, self.dispatcher)
        self.rule_service = WorkflowRuleService(
            rules, execution_log, directory, settings=self.config.workflow
        )
        self.screening = SafetyScreeningService(self.detector, self.event_bus, self.feedback)

    async def start(self, seed_rules: bool = True) -> None:
        """Seed platform rules and subscribe the engine to the event bus."""
        logger.info("safety_automation_starting", environment=self.config.service.environment,
                    contextual_available=self.detector.contextual_available)
        if seed_rules:
            await seed_default_rules(self.rules)
        await self.engine.start()
        logger.info("safety_automation_started",
                    crisis_handlers=self.event_bus.handler_count(WorkflowEventType.CRISIS_DETECTED))

    async def stop(self) -> None:
        logger.info("safety_automation_stopping")
        await self.engine.stop()
        await self.notifier.close()
        logger.info("safety_automation_stopped")


@asynccontextmanager
async def running(automation: SafetyAutomation, seed_rules: bool = True) -> AsyncIterator[SafetyAutomation]:
    """Run the automation core for the duration of the block."""
    configure_logging(automation.config.service)
    await automation.start(seed_rules=seed_rules)
    try:
        yield automation
    finally:
        await automation.stop()
