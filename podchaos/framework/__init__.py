"""
Framework layer for podchaos: cluster access, configuration and error models.
"""

from .cluster import (
    ClusterDirectory,
    ExecStream,
    ExecTransport,
    KubectlCluster,
    KubectlExecStream,
)

from .config import (
    CampaignDefaults,
    ClusterConfig,
    CronConfig,
    EngineConfig,
    MonitorConfig,
    SeedConfig,
    load_config,
    validate_config,
)

from .models import (
    ChaosError,
    ClusterError,
    ConfigValidationError,
    DirectoryError,
    ErrorCategory,
    ErrorSeverity,
    ExecOpenError,
    InvalidScheduleError,
    PodChaosError,
)

__all__ = [
    # Cluster
    "ClusterDirectory",
    "ExecStream",
    "ExecTransport",
    "KubectlCluster",
    "KubectlExecStream",
    # Config
    "CampaignDefaults",
    "ClusterConfig",
    "CronConfig",
    "EngineConfig",
    "MonitorConfig",
    "SeedConfig",
    "load_config",
    "validate_config",
    # Errors
    "ChaosError",
    "ClusterError",
    "ConfigValidationError",
    "DirectoryError",
    "ErrorCategory",
    "ErrorSeverity",
    "ExecOpenError",
    "InvalidScheduleError",
    "PodChaosError",
]
