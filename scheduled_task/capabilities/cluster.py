"""Cluster capability: ECS cluster when spec.cluster.create is set."""

from typing import Any

from scheduled_task.capabilities.context import CapabilityContext
from scheduled_task.capabilities.registry import Phase, register
from scheduled_task.compute.ecs_cluster import create_ecs_cluster


@register("cluster", phase=Phase.INFRASTRUCTURE)
def cluster_handler(
    section_config: dict[str, Any],
    ctx: CapabilityContext,
) -> None:
    """Create the cluster and record its ARN for the task and trigger capabilities."""
    cluster = create_ecs_cluster(ctx.name, ctx.aws_provider)
    ctx.set("cluster.arn", cluster.arn)
    ctx.export("cluster_arn", cluster.arn)
