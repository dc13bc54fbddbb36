"""
Error models for podchaos.

This module defines the error records attached to campaign reports and the
exception hierarchy raised by the cluster adapter and the chaos engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ErrorCategory(Enum):
    """Categories of chaos errors."""

    DIRECTORY = "directory"
    EXECUTION = "execution"
    MUTATION = "mutation"
    SCHEDULE = "schedule"
    CONFIGURATION = "configuration"


class ErrorSeverity(Enum):
    """Severity levels for chaos errors."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


@dataclass
class ChaosError:
    """
    Represents an error that occurred while applying chaos to a victim.

    Attributes:
        error_code: Unique error identifier (e.g., "EXEC_OPEN_FAILED")
        message: Human-readable error description
        category: Error category (directory, execution, mutation)
        severity: Error severity level
        context: Additional context information
        remediation: Suggested fix for the error
        timestamp: When the error occurred
    """

    error_code: str
    message: str
    category: ErrorCategory
    severity: ErrorSeverity = ErrorSeverity.WARNING
    context: dict[str, Any] = field(default_factory=dict)
    remediation: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "context": self.context,
            "remediation": self.remediation,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChaosError":
        """Create ChaosError from dictionary."""
        return cls(
            error_code=data["error_code"],
            message=data["message"],
            category=ErrorCategory(data["category"]),
            severity=ErrorSeverity(data.get("severity", "warning")),
            context=data.get("context", {}),
            remediation=data.get("remediation"),
            timestamp=datetime.fromisoformat(data["timestamp"])
                if "timestamp" in data else datetime.utcnow(),
        )


class PodChaosError(Exception):
    """Base class for podchaos exceptions."""


class ClusterError(PodChaosError):
    """Raised when a cluster API call fails."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class DirectoryError(PodChaosError):
    """Raised when eligible targets cannot be listed or fetched."""


class ExecOpenError(PodChaosError):
    """Raised when an exec stream cannot be opened against a container."""

    def __init__(self, message: str, container: str = ""):
        super().__init__(message)
        self.container = container


class InvalidScheduleError(PodChaosError):
    """Raised when a cron schedule expression cannot be parsed."""


class ConfigValidationError(PodChaosError):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []
