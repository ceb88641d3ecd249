"""
Configuration for the replay engine and CLI.

Values come from EBREPLAY_* environment variables first, then from the CDK
outputs file (outputs.json) of the stack that provisions the bus, archive
and replay rule.

Environment Variables:
    EBREPLAY_REGION               AWS region (falls back to AWS_REGION / AWS_DEFAULT_REGION)
    EBREPLAY_ENDPOINT_URL         AWS endpoint override (localstack, etc.)
    EBREPLAY_EVENT_BUS_NAME       Target bus name        (outputs: eventBusName)
    EBREPLAY_EVENT_BUS_ARN        Target bus ARN         (outputs: eventBusArn)
    EBREPLAY_ARCHIVE_NAME         Archive name           (outputs: eventBusArchiveName)
    EBREPLAY_ARCHIVE_ARN          Archive ARN            (outputs: eventBusArchiveArn)
    EBREPLAY_REPLAY_RULE_NAME     Replay rule name       (outputs: replayRuleName)
    EBREPLAY_REPLAY_RULE_ROLE_ARN Replay rule role ARN   (outputs: replayRuleRoleArn)
    EBREPLAY_REPLAY_TARGET_ARN    Replay rule target ARN (outputs: replayTargetArn / replayStateMachineArn)
    EBREPLAY_TRIGGER_QUEUE_URL    SQS queue receiving replay triggers
    EBREPLAY_LOG_GROUP            CloudWatch log group for publish records
    EBREPLAY_LOG_STREAM           Log stream for publish records (default: ebreplay)
    EBREPLAY_DLQ_URL              SQS dead-letter queue for undeliverable records
    EBREPLAY_JOURNAL_PATH         Journal file path
    EBREPLAY_PACING_FACTOR        Time compression factor (default: 0.01)
    EBREPLAY_MAX_DELAY_SECONDS    Upper bound for a single wait
    EBREPLAY_METRICS_ENABLED      Start the Prometheus endpoint (true/false)
    EBREPLAY_METRICS_PORT         Prometheus endpoint port (default: 9108)
    EBREPLAY_OUTPUTS_FILE         Explicit outputs.json path
    EBREPLAY_STACK_NAME           Stack key inside outputs.json (default: InfraStack)
"""

import json
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from .core.errors import ConfigError

OUTPUTS_FILE_NAME = "outputs.json"
DEFAULT_STACK_NAME = "InfraStack"


@dataclass(frozen=True)
class StackOutputs:
    """Outputs of the provisioning stack."""
    event_bus_name: Optional[str] = None
    event_bus_arn: Optional[str] = None
    archive_name: Optional[str] = None
    archive_arn: Optional[str] = None
    replay_rule_name: Optional[str] = None
    replay_rule_role_arn: Optional[str] = None
    replay_target_arn: Optional[str] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "StackOutputs":
        return StackOutputs(
            event_bus_name=data.get("eventBusName"),
            event_bus_arn=data.get("eventBusArn"),
            archive_name=data.get("eventBusArchiveName"),
            archive_arn=data.get("eventBusArchiveArn"),
            replay_rule_name=_rule_name(data.get("replayRuleName")),
            replay_rule_role_arn=data.get("replayRuleRoleArn"),
            replay_target_arn=data.get("replayTargetArn") or data.get("replayStateMachineArn"),
        )

    @staticmethod
    def load(path: str, stack_name: str = DEFAULT_STACK_NAME) -> "StackOutputs":
        """
        Raises:
            ConfigError: If the file cannot be read or has no such stack
        """
        try:
            with open(path, "r") as f:
                outputs = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Cannot read stack outputs {path}: {e}") from e
        if not isinstance(outputs, dict) or stack_name not in outputs:
            raise ConfigError(f"Stack {stack_name!r} not found in {path}")
        return StackOutputs.from_dict(outputs[stack_name])

    @staticmethod
    def discover(root: Optional[str] = None) -> Optional[str]:
        """First outputs.json found walking down from root (default: cwd)."""
        for dirpath, dirnames, filenames in os.walk(root or os.getcwd()):
            dirnames[:] = sorted(d for d in dirnames if d not in ("node_modules", ".git"))
            if OUTPUTS_FILE_NAME in filenames:
                return os.path.join(dirpath, OUTPUTS_FILE_NAME)
        return None


def _rule_name(raw: Optional[str]) -> Optional[str]:
    """
    The stack exports the replay rule as "BUS_NAME|RULE_NAME"; keep the rule.

    Raises:
        ConfigError: If the value has no "|" separator
    """
    if raw is None:
        return None
    _, sep, after = raw.partition("|")
    if not sep:
        raise ConfigError(f"unable to parse replay rule name: {raw}")
    return after


def _env_bool(key: str, default: bool = False) -> bool:
    val = os.getenv(key)
    if val is None:
        return default
    return val.strip().lower() in ("1", "true", "yes", "on")


def _env_float(key: str, default: Optional[float]) -> Optional[float]:
    val = os.getenv(key)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {val!r}") from None


def _env_int(key: str, default: Optional[int]) -> Optional[int]:
    val = os.getenv(key)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {val!r}") from None


@dataclass(frozen=True)
class ReplayConfig:
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    event_bus_name: Optional[str] = None
    event_bus_arn: Optional[str] = None
    archive_name: Optional[str] = None
    archive_arn: Optional[str] = None
    replay_rule_name: Optional[str] = None
    replay_rule_role_arn: Optional[str] = None
    replay_target_arn: Optional[str] = None
    trigger_queue_url: Optional[str] = None
    log_group: Optional[str] = None
    log_stream: str = "ebreplay"
    dlq_url: Optional[str] = None
    journal_path: Optional[str] = None
    pacing_factor: float = 0.01
    max_delay_seconds: Optional[int] = None
    metrics_enabled: bool = False
    metrics_port: int = 9108

    @staticmethod
    def from_env(outputs: Optional[StackOutputs] = None) -> "ReplayConfig":
        """
        Build config from the environment, filling gaps from stack outputs.

        When outputs is None, EBREPLAY_OUTPUTS_FILE or a discovered
        outputs.json is used if present.
        """
        if outputs is None:
            path = os.getenv("EBREPLAY_OUTPUTS_FILE") or StackOutputs.discover()
            stack = os.getenv("EBREPLAY_STACK_NAME", DEFAULT_STACK_NAME)
            outputs = StackOutputs.load(path, stack) if path else StackOutputs()

        def pick(key: str, fallback: Optional[str]) -> Optional[str]:
            return os.getenv(key) or fallback

        return ReplayConfig(
            region=os.getenv("EBREPLAY_REGION") or os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION"),
            endpoint_url=os.getenv("EBREPLAY_ENDPOINT_URL"),
            event_bus_name=pick("EBREPLAY_EVENT_BUS_NAME", outputs.event_bus_name),
            event_bus_arn=pick("EBREPLAY_EVENT_BUS_ARN", outputs.event_bus_arn),
            archive_name=pick("EBREPLAY_ARCHIVE_NAME", outputs.archive_name),
            archive_arn=pick("EBREPLAY_ARCHIVE_ARN", outputs.archive_arn),
            replay_rule_name=pick("EBREPLAY_REPLAY_RULE_NAME", outputs.replay_rule_name),
            replay_rule_role_arn=pick("EBREPLAY_REPLAY_RULE_ROLE_ARN", outputs.replay_rule_role_arn),
            replay_target_arn=pick("EBREPLAY_REPLAY_TARGET_ARN", outputs.replay_target_arn),
            trigger_queue_url=os.getenv("EBREPLAY_TRIGGER_QUEUE_URL"),
            log_group=os.getenv("EBREPLAY_LOG_GROUP"),
            log_stream=os.getenv("EBREPLAY_LOG_STREAM", "ebreplay"),
            dlq_url=os.getenv("EBREPLAY_DLQ_URL"),
            journal_path=os.getenv("EBREPLAY_JOURNAL_PATH"),
            pacing_factor=_env_float("EBREPLAY_PACING_FACTOR", 0.01),
            max_delay_seconds=_env_int("EBREPLAY_MAX_DELAY_SECONDS", None),
            metrics_enabled=_env_bool("EBREPLAY_METRICS_ENABLED"),
            metrics_port=_env_int("EBREPLAY_METRICS_PORT", 9108),
        )

    def require(self, name: str) -> Any:
        """
        Get a config value that must be set.

        Raises:
            ConfigError: Naming the environment variable to set
        """
        known = {f.name for f in fields(self)}
        if name not in known:
            raise ConfigError(f"unknown config field: {name}")
        value = getattr(self, name)
        if value is None or value == "":
            raise ConfigError(f"{name} is not configured (set EBREPLAY_{name.upper()})")
        return value
