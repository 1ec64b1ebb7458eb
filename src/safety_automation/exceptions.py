"""
Safety Automation Exception Hierarchy.
Structured exceptions for the detection pipeline and workflow engine.
"""
from __future__ import annotations
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from pydantic import BaseModel, Field
import structlog

logger = structlog.get_logger(__name__)


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    RULE_DATA = "rule_data"
    EXTERNAL_SERVICE = "external_service"
    REPOSITORY = "repository"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


class ErrorContext(BaseModel):
    """Structured context for error tracking."""
    correlation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    service_name: str = Field(default="safety-automation")
    operation: str | None = None
    member_id: str | None = None
    additional_data: dict[str, Any] = Field(default_factory=dict)
    model_config = {"frozen": True}


class SafetyAutomationError(Exception):
    """Base exception for all safety automation errors."""
    error_code: str = "SAFETY_AUTOMATION_ERROR"
    category: ErrorCategory = ErrorCategory.INTERNAL
    severity: ErrorSeverity = ErrorSeverity.MEDIUM

    def __init__(self, message: str, *, context: ErrorContext | None = None,
                 cause: Exception | None = None, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.cause = cause
        self.details = details or {}
        self._log_error()

    def _log_error(self) -> None:
        log_data = {
            "error_code": self.error_code, "category": self.category.value,
            "severity": self.severity.value, "correlation_id": self.context.correlation_id,
            "operation": self.context.operation, "details": self.details,
        }
        if self.cause:
            log_data["cause_type"] = type(self.cause).__name__
            log_data["cause_message"] = str(self.cause)
        if self.severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
            logger.error(self.message, **log_data)
        else:
            logger.warning(self.message, **log_data)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "code": self.error_code, "message": self.message,
            "category": self.category.value, "severity": self.severity.value,
            "correlation_id": self.context.correlation_id, "details": self.details,
        }
        if self.cause:
            result["cause"] = {"type": type(self.cause).__name__, "message": str(self.cause)}
        return result


# Domain errors
class ValidationError(SafetyAutomationError):
    error_code = "VALIDATION_ERROR"
    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.LOW

    def __init__(self, message: str, *, field: str | None = None, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        super().__init__(message, details=details, **kwargs)
        self.field = field


class EntityNotFoundError(SafetyAutomationError):
    error_code = "ENTITY_NOT_FOUND"
    category = ErrorCategory.NOT_FOUND
    severity = ErrorSeverity.LOW

    def __init__(self, entity_type: str, entity_id: str, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        details.update({"entity_type": entity_type, "entity_id": entity_id})
        super().__init__(f"{entity_type} with ID '{entity_id}' not found", details=details, **kwargs)
        self.entity_type, self.entity_id = entity_type, entity_id


class AuthorizationError(SafetyAutomationError):
    error_code = "AUTHORIZATION_ERROR"
    category = ErrorCategory.AUTHORIZATION

    def __init__(self, message: str = "Access denied", *, actor_id: str | None = None,
                 **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        if actor_id:
            details["actor_id"] = actor_id
        super().__init__(message, details=details, **kwargs)
        self.actor_id = actor_id


class MalformedRuleError(SafetyAutomationError):
    error_code = "MALFORMED_RULE"
    category = ErrorCategory.RULE_DATA

    def __init__(self, rule_id: str, part: str, reason: str, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        details.update({"rule_id": rule_id, "part": part, "reason": reason})
        super().__init__(f"Rule '{rule_id}' has malformed {part}: {reason}", details=details, **kwargs)
        self.rule_id, self.part, self.reason = rule_id, part, reason


class UnknownActionTypeError(SafetyAutomationError):
    error_code = "UNKNOWN_ACTION_TYPE"
    category = ErrorCategory.RULE_DATA

    def __init__(self, action_type: str, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        details["action_type"] = action_type
        super().__init__(f"Unknown action type: {action_type}", details=details, **kwargs)
        self.action_type = action_type


# Infrastructure errors
class InfrastructureError(SafetyAutomationError):
    error_code = "INFRASTRUCTURE_ERROR"
    category = ErrorCategory.EXTERNAL_SERVICE
    severity = ErrorSeverity.HIGH


class RepositoryError(InfrastructureError):
    error_code = "REPOSITORY_ERROR"
    category = ErrorCategory.REPOSITORY

    def __init__(self, message: str, *, operation: str | None = None, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        if operation:
            details["repository_operation"] = operation
        super().__init__(message, details=details, **kwargs)


class ExternalServiceError(InfrastructureError):
    error_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service_name: str, message: str, *,
                 status_code: int | None = None, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        details["service_name"] = service_name
        if status_code:
            details["upstream_status"] = status_code
        super().__init__(message, details=details, **kwargs)
        self.service_name = service_name
        self.status_code = status_code


class ClassifierUnavailableError(ExternalServiceError):
    error_code = "CLASSIFIER_UNAVAILABLE"
    severity = ErrorSeverity.MEDIUM

    def __init__(self, provider: str, message: str, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        details["provider"] = provider
        super().__init__(service_name=f"classifier:{provider}", message=message,
                         details=details, **kwargs)


class NotificationDeliveryError(ExternalServiceError):
    error_code = "NOTIFICATION_DELIVERY_FAILED"
    severity = ErrorSeverity.CRITICAL

    def __init__(self, message: str, *, attempts: int, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        details["attempts"] = attempts
        super().__init__(service_name="notification-service", message=message,
                         details=details, **kwargs)
        self.attempts = attempts


class ConfigurationError(InfrastructureError):
    error_code = "CONFIGURATION_ERROR"
    category = ErrorCategory.CONFIGURATION
    severity = ErrorSeverity.CRITICAL

    def __init__(self, message: str, *, config_key: str | None = None, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, details=details, **kwargs)
