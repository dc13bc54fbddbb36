"""
Configuration management for podchaos.

This module handles loading, parsing, and validating engine configuration
from YAML files and command-line arguments.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from jsonschema import Draft7Validator

from .models import ConfigValidationError


VALID_CHAOS_KINDS = [
    "pod-delete", "cpu-stress", "memory-stress",
    "in-pod-cpu-stress", "in-pod-memory-stress", "in-pod-mixed-stress",
    "kill-process", "corrupt-memory",
]

DURATION_PATTERN = "^[0-9]+[smh]$"


# JSON Schema for configuration validation
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "cluster": {
            "type": "object",
            "properties": {
                "kubectl_path": {"type": "string", "minLength": 1},
                "kubeconfig": {"type": "string"},
                "context": {"type": "string"},
                "timeout_seconds": {"type": "integer", "minimum": 1}
            }
        },
        "campaign": {
            "type": "object",
            "properties": {
                "kind": {"type": "string", "enum": VALID_CHAOS_KINDS},
                "namespace": {"type": "string", "minLength": 1},
                "labels": {"type": "string"},
                "duration": {"type": "string", "pattern": DURATION_PATTERN},
                "intensity": {"type": "integer", "minimum": 1, "maximum": 10},
                "target_count": {"type": "integer", "minimum": 0},
                "monitor": {"type": "boolean"},
                "container": {"type": "string"}
            }
        },
        "monitor": {
            "type": "object",
            "properties": {
                "poll_interval_seconds": {"type": "number", "exclusiveMinimum": 0}
            }
        },
        "cron": {
            "type": "object",
            "properties": {
                "schedule": {"type": "string"},
                "kind": {"type": "string", "enum": VALID_CHAOS_KINDS},
                "probability": {"type": "number", "minimum": 0, "maximum": 1},
                "max_duration": {"type": "string", "pattern": DURATION_PATTERN},
                "namespace": {"type": "string", "minLength": 1},
                "labels": {"type": "string"}
            }
        },
        "seed": {
            "type": "object",
            "properties": {
                "count": {"type": "integer", "minimum": 1},
                "images": {
                    "type": "array",
                    "items": {"type": "string", "minLength": 1},
                    "minItems": 1
                }
            }
        }
    }
}


def validate_config(data: dict[str, Any]) -> list[str]:
    """
    Validate configuration data against the schema.

    Args:
        data: Configuration dictionary to validate

    Returns:
        List of validation error messages (empty if valid)
    """
    validator = Draft7Validator(CONFIG_SCHEMA)
    errors = []
    for error in validator.iter_errors(data):
        path = ".".join(str(p) for p in error.path) if error.path else "root"
        errors.append(f"{path}: {error.message}")
    return errors


def expand_env_vars(value: str) -> str:
    """
    Expand environment variables in a string.

    Supports ${VAR_NAME} syntax.
    """
    if not isinstance(value, str):
        return value

    pattern = r'\$\{([^}]+)\}'

    def replace_env(match):
        var_name = match.group(1)
        return os.environ.get(var_name, "")

    return re.sub(pattern, replace_env, value)


@dataclass
class ClusterConfig:
    """Configuration for reaching the cluster through kubectl."""

    kubectl_path: str = "kubectl"
    kubeconfig: str = ""
    context: str = ""
    timeout_seconds: int = 60

    def resolve_kubeconfig(self) -> Optional[str]:
        """Resolve the kubeconfig path, falling back to $KUBECONFIG."""
        return expand_env_vars(self.kubeconfig) or os.environ.get("KUBECONFIG") or None


@dataclass
class CampaignDefaults:
    """Default campaign parameters used when the CLI does not override them."""

    kind: str = "pod-delete"
    namespace: str = "default"
    labels: str = ""
    duration: str = "30s"
    intensity: int = 5
    target_count: int = 1
    monitor: bool = True
    container: str = ""


@dataclass
class MonitorConfig:
    """Configuration for the health monitor."""

    poll_interval_seconds: float = 5.0


@dataclass
class CronConfig:
    """Configuration for the cron trigger."""

    schedule: str = ""
    kind: str = "pod-delete"
    probability: float = 0.5
    max_duration: str = "5m"
    namespace: str = "default"
    labels: str = ""


@dataclass
class SeedConfig:
    """Configuration for creating test targets."""

    count: int = 3
    # empty means the built-in image pool
    images: list[str] = field(default_factory=list)


@dataclass
class EngineConfig:
    """
    Main configuration class for podchaos.

    Attributes:
        cluster: kubectl connection settings
        campaign: Campaign defaults
        monitor: Health monitor settings
        cron: Cron trigger settings
        seed: Test target settings
    """

    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    campaign: CampaignDefaults = field(default_factory=CampaignDefaults)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    cron: CronConfig = field(default_factory=CronConfig)
    seed: SeedConfig = field(default_factory=SeedConfig)

    def __post_init__(self):
        """Validate campaign defaults after initialization."""
        if self.campaign.kind not in VALID_CHAOS_KINDS:
            raise ValueError(
                f"Invalid campaign kind: {self.campaign.kind}. Must be one of {VALID_CHAOS_KINDS}"
            )
        if not 1 <= self.campaign.intensity <= 10:
            raise ValueError(f"Invalid intensity: {self.campaign.intensity}. Must be between 1 and 10")
        if self.cron.kind not in VALID_CHAOS_KINDS:
            raise ValueError(f"Invalid cron kind: {self.cron.kind}. Must be one of {VALID_CHAOS_KINDS}")
        if not 0.0 <= self.cron.probability <= 1.0:
            raise ValueError(f"Invalid probability: {self.cron.probability}. Must be between 0.0 and 1.0")
        if not re.match(DURATION_PATTERN, self.campaign.duration):
            raise ValueError(f"Invalid duration: {self.campaign.duration}. Expected e.g. 30s, 2m, 1h")
        if not re.match(DURATION_PATTERN, self.cron.max_duration):
            raise ValueError(f"Invalid max duration: {self.cron.max_duration}. Expected e.g. 30s, 2m, 1h")

    @classmethod
    def from_yaml(cls, path: Path | str, validate: bool = True) -> "EngineConfig":
        """
        Load configuration from a YAML file.

        Raises:
            FileNotFoundError: If the config file doesn't exist
            yaml.YAMLError: If the YAML is invalid
            ConfigValidationError: If validation fails
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if validate:
            errors = validate_config(data)
            if errors:
                raise ConfigValidationError(
                    f"Configuration validation failed with {len(errors)} error(s)",
                    errors=errors
                )

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineConfig":
        """Create configuration from a dictionary."""
        cluster_data = data.get("cluster", {})
        cluster = ClusterConfig(
            kubectl_path=cluster_data.get("kubectl_path", "kubectl"),
            kubeconfig=cluster_data.get("kubeconfig", ""),
            context=cluster_data.get("context", ""),
            timeout_seconds=cluster_data.get("timeout_seconds", 60),
        )

        campaign_data = data.get("campaign", {})
        campaign = CampaignDefaults(
            kind=campaign_data.get("kind", "pod-delete"),
            namespace=campaign_data.get("namespace", "default"),
            labels=campaign_data.get("labels", ""),
            duration=campaign_data.get("duration", "30s"),
            intensity=campaign_data.get("intensity", 5),
            target_count=campaign_data.get("target_count", 1),
            monitor=campaign_data.get("monitor", True),
            container=campaign_data.get("container", ""),
        )

        monitor_data = data.get("monitor", {})
        monitor = MonitorConfig(
            poll_interval_seconds=monitor_data.get("poll_interval_seconds", 5.0),
        )

        cron_data = data.get("cron", {})
        cron = CronConfig(
            schedule=cron_data.get("schedule", ""),
            kind=cron_data.get("kind", "pod-delete"),
            probability=cron_data.get("probability", 0.5),
            max_duration=cron_data.get("max_duration", "5m"),
            namespace=cron_data.get("namespace", "default"),
            labels=cron_data.get("labels", ""),
        )

        seed_data = data.get("seed", {})
        seed = SeedConfig(count=seed_data.get("count", 3))
        if "images" in seed_data:
            seed.images = list(seed_data["images"])

        return cls(cluster=cluster, campaign=campaign, monitor=monitor, cron=cron, seed=seed)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "cluster": {
                "kubectl_path": self.cluster.kubectl_path,
                "kubeconfig": self.cluster.kubeconfig,
                "context": self.cluster.context,
                "timeout_seconds": self.cluster.timeout_seconds,
            },
            "campaign": {
                "kind": self.campaign.kind,
                "namespace": self.campaign.namespace,
                "labels": self.campaign.labels,
                "duration": self.campaign.duration,
                "intensity": self.campaign.intensity,
                "target_count": self.campaign.target_count,
                "monitor": self.campaign.monitor,
                "container": self.campaign.container,
            },
            "monitor": {
                "poll_interval_seconds": self.monitor.poll_interval_seconds,
            },
            "cron": {
                "schedule": self.cron.schedule,
                "kind": self.cron.kind,
                "probability": self.cron.probability,
                "max_duration": self.cron.max_duration,
                "namespace": self.cron.namespace,
                "labels": self.cron.labels,
            },
            "seed": {
                "count": self.seed.count,
                "images": list(self.seed.images),
            },
        }

    def merge_cli_args(self, **overrides: Any) -> "EngineConfig":
        """
        Merge command-line arguments into the configuration.

        CLI arguments take precedence over file configuration. Keys are
        ``<section>_<field>`` (e.g. ``campaign_intensity``); None values are
        ignored.

        Returns:
            New EngineConfig with merged values
        """
        data = self.to_dict()
        for key, value in overrides.items():
            if value is None:
                continue
            section, _, name = key.partition("_")
            if section not in data or name not in data[section]:
                raise KeyError(f"Unknown configuration override: {key}")
            data[section][name] = value

        # from_dict re-runs __post_init__ validation on the merged values
        return EngineConfig.from_dict(data)


def load_config(
    config_path: Optional[Path | str] = None,
    validate: bool = True,
    **overrides: Any,
) -> EngineConfig:
    """
    Load and merge configuration from file and CLI arguments.

    This is the main entry point for loading configuration.

    Args:
        config_path: Path to YAML configuration file (optional)
        validate: Whether to validate configuration
        **overrides: ``<section>_<field>`` overrides from the command line

    Returns:
        EngineConfig with merged values
    """
    if config_path:
        config = EngineConfig.from_yaml(config_path, validate=validate)
    else:
        config = EngineConfig()

    return config.merge_cli_args(**overrides)
