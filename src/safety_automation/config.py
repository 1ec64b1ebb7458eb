"""
Safety Automation - Centralized Configuration.
All detector, classifier, workflow and alerting settings with environment overrides.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Any
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from .exceptions import ConfigurationError

logger = structlog.get_logger(__name__)


class ServiceSettings(BaseSettings):
    """Process-level settings shared by every component."""
    service_name: str = Field(default="safety-automation")
    version: str = Field(default="1.0.0")
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    model_config = SettingsConfigDict(
        env_prefix="SAFETY_", env_file=".env", extra="ignore", case_sensitive=False
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"Invalid log level: {v}")
        return upper


class DetectorSettings(BaseSettings):
    """Layered safety detector behavior."""
    contextual_enabled: bool = Field(
        default=True, description="Consult the contextual classifier for ambiguous messages"
    )
    model_config = SettingsConfigDict(
        env_prefix="SAFETY_DETECTOR_", env_file=".env", extra="ignore"
    )


class ClassifierSettings(BaseSettings):
    """Contextual classifier (LLM) configuration."""
    provider: str = Field(default="anthropic", description="Model provider name")
    model_name: str = Field(default="claude-3-5-haiku-latest", description="Model to use")
    api_key: SecretStr | None = Field(default=None, description="Provider API key")
    temperature: Decimal = Field(default=Decimal("0.1"), ge=0, le=1, description="Sampling temperature")
    max_tokens: int = Field(default=10, ge=1, le=256, description="Maximum response tokens")
    timeout_seconds: float = Field(default=10.0, gt=0, le=120, description="Classifier call timeout")
    max_input_chars: int = Field(default=4000, ge=100, le=100000, description="Max message characters sent")
    model_config = SettingsConfigDict(
        env_prefix="SAFETY_CLASSIFIER_", env_file=".env", extra="ignore"
    )

    @property
    def is_configured(self) -> bool:
        return self.api_key is not None and bool(self.api_key.get_secret_value())


class WorkflowSettings(BaseSettings):
    """Workflow engine and action dispatcher configuration."""
    due_in_days: int = Field(default=7, ge=1, le=90, description="Due date offset for assigned work")
    fallback_assignee: str = Field(default="system", description="Assignee when no counselor is known")
    activity_limit: int = Field(default=50, ge=1, le=500, description="Executions shown per member")
    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_", env_file=".env", extra="ignore"
    )


class CrisisAlertSettings(BaseSettings):
    """Crisis alert email behavior."""
    throttle_window_minutes: int = Field(default=60, ge=1, le=1440, description="One alert per member per window")
    app_name: str = Field(default="MyChristianCounselor")
    web_app_url: str = Field(default="http://localhost:3699")
    support_email: str = Field(default="support@mychristiancounselor.com")
    model_config = SettingsConfigDict(
        env_prefix="CRISIS_ALERT_", env_file=".env", extra="ignore"
    )


class NotificationSettings(BaseSettings):
    """Outbound notification service client."""
    base_url: str = Field(default="http://localhost:8003", description="Notification service URL")
    timeout_seconds: int = Field(default=30, ge=1, le=300)
    max_retries: int = Field(default=3, ge=0, le=10)
    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATION_", env_file=".env", extra="ignore"
    )


class AutomationConfig(BaseModel):
    """Aggregate configuration for the safety automation core."""
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    detector: DetectorSettings = Field(default_factory=DetectorSettings)
    classifier: ClassifierSettings = Field(default_factory=ClassifierSettings)
    workflow: WorkflowSettings = Field(default_factory=WorkflowSettings)
    crisis_alert: CrisisAlertSettings = Field(default_factory=CrisisAlertSettings)
    notification: NotificationSettings = Field(default_factory=NotificationSettings)

    @classmethod
    def load(cls) -> AutomationConfig:
        """Load configuration from environment."""
        try:
            config = cls()
        except ValidationError as e:
            first = e.errors()[0]
            key = ".".join(str(part) for part in first["loc"])
            raise ConfigurationError(
                f"Invalid configuration: {first['msg']}", config_key=key or None, cause=e
            ) from e
        logger.info(
            "automation_config_loaded",
            environment=config.service.environment,
            contextual_enabled=config.detector.contextual_enabled,
            classifier_configured=config.classifier.is_configured,
            throttle_window_minutes=config.crisis_alert.throttle_window_minutes,
        )
        return config

    def to_dict(self, hide_secrets: bool = True) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        data = {
            "service": self.service.model_dump(),
            "detector": self.detector.model_dump(),
            "classifier": self.classifier.model_dump(),
            "workflow": self.workflow.model_dump(),
            "crisis_alert": self.crisis_alert.model_dump(),
            "notification": self.notification.model_dump(),
        }
        if self.classifier.api_key is not None:
            data["classifier"]["api_key"] = (
                "***" if hide_secrets else self.classifier.api_key.get_secret_value()
            )
        return data


_config: AutomationConfig | None = None


def get_config() -> AutomationConfig:
    """Get singleton automation configuration."""
    global _config
    if _config is None:
        _config = AutomationConfig.load()
    return _config


def reset_config() -> None:
    """Reset configuration singleton (for testing)."""
    global _config
    _config = None
