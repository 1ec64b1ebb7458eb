"""
Safety Automation - Crisis/grief detection and event-driven counseling workflows.
"""
from .alerts import CrisisAlertLog, CrisisAlertLogRepository, CrisisAlertService
from .config import AutomationConfig, get_config, reset_config
from .detection import (
    DetectionConfidence, DetectionMethod, DetectionResult, LayeredSafetyDetector, SafetyCategory,
)
from .events import EventBus, WorkflowEventType, get_event_bus, reset_event_bus
from .exceptions import SafetyAutomationError
from .notifications import NotificationServiceClient
from .runtime import SafetyAutomation, running
from .screening import SafetyScreeningService, ScreeningResult
from .workflow import ActionDispatcher, WorkflowEngine, WorkflowRuleService

__version__ = "1.0.0"

__all__ = [
    "CrisisAlertLog",
    "CrisisAlertLogRepository",
    "CrisisAlertService",
    "AutomationConfig",
    "get_config",
    "reset_config",
    "DetectionConfidence",
    "DetectionMethod",
    "DetectionResult",
    "LayeredSafetyDetector",
    "SafetyCategory",
    "EventBus",
    "WorkflowEventType",
    "get_event_bus",
    "reset_event_bus",
    "SafetyAutomationError",
    "NotificationServiceClient",
    "SafetyAutomation",
    "running",
    "SafetyScreeningService",
    "ScreeningResult",
    "ActionDispatcher",
    "WorkflowEngine",
    "WorkflowRuleService",
]
