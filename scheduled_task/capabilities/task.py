"""Task capability: ECS task definition with the placeholder container."""

from typing import Any

from scheduled_task.capabilities.context import CapabilityContext
from scheduled_task.capabilities.registry import Phase, register
from scheduled_task.compute.ecs_task import create_task_definition
from scheduled_task.shared import naming


@register("task", phase=Phase.COMPUTE, requires=["logs"])
def task_handler(
    section_config: dict[str, Any],
    ctx: CapabilityContext,
) -> None:
    """Create the task definition; triggers use the revision-less family ARN it records."""
    task_def = create_task_definition(
        ctx.config,
        ctx.require("logs.log_group"),
        ctx.require("iam.task_role_arn"),
        ctx.require("iam.execution_role_arn"),
        ctx.aws_provider,
    )
    family = naming.task_family(ctx.name)
    family_arn = naming.task_family_arn(*ctx.arn_parts, family)

    ctx.set("task.definition", task_def)
    ctx.set("task.family_arn", family_arn)
    ctx.export("task_definition_family", family)
    ctx.export("task_definition_family_arn", family_arn)
    ctx.export("task_definition_arn", task_def.arn)
