"""ECS task definition with a placeholder container.

The container definition only needs to be valid; the deployment pipeline
registers new revisions with the real image. ignore_changes keeps the engine
from rolling those back on the next `pulumi up`.
"""

import json
from typing import Any

import pulumi
import pulumi_aws

from scheduled_task.config import ScheduledTaskConfig
from scheduled_task.shared import naming


def _make_container_def(
    config: ScheduledTaskConfig,
    log_group_name: str,
) -> str:
    """Build ECS container definition JSON string."""
    container = config.task.container
    container_spec: dict[str, Any] = {
        "name": naming.container_name(config.name, container.name),
        "image": container.image,
        "essential": True,
        "command": list(container.command),
        "environment": [
            {"name": key, "value": value}
            for key, value in sorted(container.environment.items())
        ],
        "logConfiguration": {
            "logDriver": "awslogs",
            "options": {
                "awslogs-region": config.region,
                "awslogs-group": log_group_name,
                "awslogs-stream-prefix": config.name,
            },
        },
    }
    return json.dumps([container_spec])


def create_task_definition(
    config: ScheduledTaskConfig,
    log_group: pulumi_aws.cloudwatch.LogGroup,
    task_role_arn: pulumi.Input[str],
    execution_role_arn: pulumi.Input[str],
    aws_provider: pulumi_aws.Provider,
) -> pulumi_aws.ecs.TaskDefinition:
    """Create ECS task definition for FARGATE or EC2 with one placeholder container."""
    task = config.task
    container_def = log_group.name.apply(lambda group: _make_container_def(config, group))
    task_def_args: dict[str, Any] = {
        "family": naming.task_family(config.name),
        "cpu": str(task.cpu),
        "memory": str(task.memory),
        "network_mode": task.network_mode,
        "requires_compatibilities": [task.compatibility],
        "execution_role_arn": execution_role_arn,
        "task_role_arn": task_role_arn,
        "container_definitions": container_def,
        "runtime_platform": pulumi_aws.ecs.TaskDefinitionRuntimePlatformArgs(
            operating_system_family="LINUX",
            cpu_architecture=task.cpu_architecture,
        ),
    }
    return pulumi_aws.ecs.TaskDefinition(
        f"{config.name}_task",
        opts=pulumi.ResourceOptions(
            provider=aws_provider,
            ignore_changes=["container_definitions"],
        ),
        **task_def_args,
    )
