"""scheduled-task.yaml configuration loading and validation."""

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any

import jsonschema
import pulumi
import pulumi_aws
import yaml

from scheduled_task.spec.validator import validate_scheduled_task_spec

TRIGGER_EVENTBRIDGE = "eventbridge"
TRIGGER_STEPFUNCTIONS = "stepfunctions"

FARGATE_PROVIDERS = ("FARGATE", "FARGATE_SPOT")

DEFAULT_PLACEHOLDER_IMAGE = "public.ecr.aws/docker/library/busybox:latest"
DEFAULT_PLACEHOLDER_COMMAND = ["echo", "placeholder container, replaced by deployment"]


@dataclass
class ClusterConfig:
    arn: str | None = None
    create: bool = False


@dataclass
class RetryConfig:
    max_attempts: int = 3
    interval_seconds: int = 60
    backoff_rate: float = 2.0


@dataclass
class TriggerConfig:
    mode: str = TRIGGER_EVENTBRIDGE
    enabled: bool = True
    schedule_expression: str | None = None
    wait_seconds: int = 300
    max_iterations: int = 500
    retry: RetryConfig = field(default_factory=RetryConfig)
    maximum_event_age_seconds: int = 3600
    dead_letter_queue_arn: str | None = None

    @property
    def is_stepfunctions(self) -> bool:
        return self.mode == TRIGGER_STEPFUNCTIONS


@dataclass
class CapacityProviderItem:
    capacity_provider: str
    weight: int = 1
    base: int = 0


@dataclass
class ContainerConfig:
    name: str | None = None
    image: str = DEFAULT_PLACEHOLDER_IMAGE
    command: list[str] = field(default_factory=lambda: list(DEFAULT_PLACEHOLDER_COMMAND))
    environment: dict[str, str] = field(default_factory=dict)


@dataclass
class TaskConfig:
    cpu: int = 256
    memory: int = 512
    launch_type: str | None = "FARGATE"
    capacity_provider_strategy: list[CapacityProviderItem] = field(default_factory=list)
    platform_version: str | None = None
    network_mode: str = "awsvpc"
    task_count: int = 1
    timeout_seconds: int | None = None
    cpu_architecture: str = "X86_64"
    container: ContainerConfig = field(default_factory=ContainerConfig)

    @property
    def uses_capacity_providers(self) -> bool:
        return bool(self.capacity_provider_strategy)

    @property
    def is_fargate(self) -> bool:
        """True when tasks land on Fargate (launch type or Fargate capacity providers)."""
        if self.uses_capacity_providers:
            return all(
                item.capacity_provider in FARGATE_PROVIDERS
                for item in self.capacity_provider_strategy
            )
        return self.launch_type == "FARGATE"

    @property
    def compatibility(self) -> str:
        return "FARGATE" if self.is_fargate else "EC2"


@dataclass
class NetworkConfig:
    subnets: list[str] = field(default_factory=list)
    subnet_tag_key: str = "network"
    subnet_tag_value: str = "private"
    security_groups: list[str] = field(default_factory=list)
    assign_public_ip: bool = False


@dataclass
class IamConfig:
    task_role_arn: str | None = None
    execution_role_arn: str | None = None
    trigger_role_arn: str | None = None
    task_role_policy_arns: list[str] = field(default_factory=list)


@dataclass
class LogsConfig:
    retention_days: int = 30
    kms_key_id: str | None = None
    group_name: str | None = None
    state_machine_level: str = "ERROR"


@dataclass
class ScheduledTaskConfig:
    """Parsed and validated scheduled-task.yaml configuration."""

    name: str
    region: str
    raw_spec: dict[str, Any]
    cluster: ClusterConfig
    trigger: TriggerConfig
    task: TaskConfig = field(default_factory=TaskConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    iam: IamConfig = field(default_factory=IamConfig)
    logs: LogsConfig = field(default_factory=LogsConfig)
    description: str = ""
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def spec_sections(self) -> dict[str, Any]:
        """Return declared capability names and their section config (for registry).

        The trigger section is keyed by its mode so exactly one trigger capability runs.
        """
        sections: dict[str, Any] = {
            "logs": self.raw_spec.get("logs") or {},
            "task": self.raw_spec.get("task") or {},
        }
        if self.cluster.create:
            sections["cluster"] = self.raw_spec.get("cluster") or {}
        sections[self.trigger.mode] = self.raw_spec.get("trigger") or {}
        return sections

    @classmethod
    def from_file(cls, path: str) -> "ScheduledTaskConfig":
        """Load and validate scheduled-task.yaml from file path."""
        if not Path(path).exists():
            raise SystemExit(f"scheduled-task.yaml not found: {path}")

        with open(path, encoding="utf-8") as f:
            try:
                document = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise SystemExit(f"scheduled-task.yaml is not valid YAML: {path}\n{e}") from e
        if not isinstance(document, dict):
            raise SystemExit(
                f"scheduled-task.yaml must be a mapping: {path} "
                f"(got {type(document).__name__})"
            )

        try:
            validate_scheduled_task_spec(document)
        except jsonschema.ValidationError as e:
            raise SystemExit(str(e)) from e

        aws_config = pulumi.Config("aws")
        region = aws_config.require("region")
        return cls.from_dict(document, region)

    @classmethod
    def from_dict(cls, document: dict[str, Any], region: str) -> "ScheduledTaskConfig":
        """Build config from an already validated document."""
        metadata = document["metadata"]
        spec = document["spec"]

        c = spec.get("cluster") or {}
        cluster = ClusterConfig(arn=c.get("arn"), create=c.get("create", False))

        t = spec.get("trigger") or {}
        r = t.get("retry") or {}
        trigger = TriggerConfig(
            mode=t.get("mode", TRIGGER_EVENTBRIDGE),
            enabled=t.get("enabled", True),
            schedule_expression=t.get("scheduleExpression"),
            wait_seconds=t.get("waitSeconds", 300),
            max_iterations=t.get("maxIterations", 500),
            retry=RetryConfig(
                max_attempts=r.get("maxAttempts", 3),
                interval_seconds=r.get("intervalSeconds", 60),
                backoff_rate=float(r.get("backoffRate", 2.0)),
            ),
            maximum_event_age_seconds=t.get("maximumEventAgeSeconds", 3600),
            dead_letter_queue_arn=t.get("deadLetterQueueArn"),
        )

        tk = spec.get("task") or {}
        ct = tk.get("container") or {}
        strategy = [
            CapacityProviderItem(
                capacity_provider=item["capacityProvider"],
                weight=item.get("weight", 1),
                base=item.get("base", 0),
            )
            for item in tk.get("capacityProviderStrategy") or []
        ]
        # A strategy replaces the launch type entirely.
        launch_type = None if strategy else tk.get("launchType", "FARGATE")
        task = TaskConfig(
            cpu=tk.get("cpu", 256),
            memory=tk.get("memory", 512),
            launch_type=launch_type,
            capacity_provider_strategy=strategy,
            platform_version=tk.get("platformVersion"),
            network_mode=tk.get("networkMode", "awsvpc"),
            task_count=tk.get("taskCount", 1),
            timeout_seconds=tk.get("timeoutSeconds"),
            cpu_architecture=tk.get("cpuArchitecture", "X86_64"),
            container=ContainerConfig(
                name=ct.get("name"),
                image=ct.get("image", DEFAULT_PLACEHOLDER_IMAGE),
                command=ct.get("command", list(DEFAULT_PLACEHOLDER_COMMAND)),
                environment={k: str(v) for k, v in (ct.get("environment") or {}).items()},
            ),
        )

        n = spec.get("network") or {}
        tag = n.get("subnetTag") or {}
        network = NetworkConfig(
            subnets=n.get("subnets", []),
            subnet_tag_key=tag.get("key", "network"),
            subnet_tag_value=tag.get("value", "private"),
            security_groups=n.get("securityGroups", []),
            assign_public_ip=n.get("assignPublicIp", False),
        )

        i = spec.get("iam") or {}
        iam = IamConfig(
            task_role_arn=i.get("taskRoleArn"),
            execution_role_arn=i.get("executionRoleArn"),
            trigger_role_arn=i.get("triggerRoleArn"),
            task_role_policy_arns=i.get("taskRolePolicyArns", []),
        )

        lg = spec.get("logs") or {}
        logs = LogsConfig(
            retention_days=lg.get("retentionDays", 30),
            kms_key_id=lg.get("kmsKeyId"),
            group_name=lg.get("groupName"),
            state_machine_level=lg.get("stateMachineLevel", "ERROR"),
        )

        return cls(
            name=metadata["name"],
            region=region,
            raw_spec=spec,
            cluster=cluster,
            trigger=trigger,
            task=task,
            network=network,
            iam=iam,
            logs=logs,
            description=metadata.get("description", ""),
            tags={k: str(v) for k, v in (spec.get("tags") or {}).items()},
        )


def load_scheduled_task_config() -> ScheduledTaskConfig:
    """Load scheduled-task.yaml from SCHEDULED_TASK_YAML_PATH environment variable."""
    path = os.environ.get("SCHEDULED_TASK_YAML_PATH")
    if not path:
        raise SystemExit("SCHEDULED_TASK_YAML_PATH environment variable required")
    if not Path(path).exists():
        raise SystemExit("SCHEDULED_TASK_YAML_PATH must point to scheduled-task.yaml")
    return ScheduledTaskConfig.from_file(path)


def create_aws_provider(
    name: str,
    region: str,
    tags: dict[str, str] | None = None,
) -> pulumi_aws.Provider:
    """Create AWS provider with default resource tags."""
    default_tags = dict(tags or {})
    default_tags.update(
        {
            "service": name,
            "managed-by": "ecs-scheduled-task",
        }
    )
    return pulumi_aws.Provider(
        "aws-tagged",
        region=region,
        default_tags=pulumi_aws.ProviderDefaultTagsArgs(tags=default_tags),
    )
