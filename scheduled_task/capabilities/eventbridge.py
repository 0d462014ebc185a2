"""EventBridge capability: schedule rule, ECS target, and the role EventBridge assumes."""

from typing import Any

import pulumi

from scheduled_task.capabilities.context import CapabilityContext
from scheduled_task.capabilities.registry import Phase, register
from scheduled_task.iam.roles import create_events_role
from scheduled_task.shared import naming
from scheduled_task.triggers.eventbridge import create_schedule_rule


@register("eventbridge", phase=Phase.TRIGGER, requires=["task"])
def eventbridge_handler(
    section_config: dict[str, Any],
    ctx: CapabilityContext,
) -> None:
    """Provision the schedule rule; section_config is the raw spec.trigger."""
    config = ctx.config
    cluster_arn = ctx.require("cluster.arn")
    family_arn = ctx.require("task.family_arn")

    if config.iam.trigger_role_arn:
        events_role_arn: pulumi.Input[str] = config.iam.trigger_role_arn
    else:
        role = create_events_role(
            ctx.name,
            naming.task_family_revisions_arn(*ctx.arn_parts, naming.task_family(ctx.name)),
            cluster_arn,
            [ctx.require("iam.task_role_arn"), ctx.require("iam.execution_role_arn")],
            ctx.aws_provider,
        )
        events_role_arn = role.arn

    rule, _target = create_schedule_rule(
        config,
        cluster_arn,
        family_arn,
        events_role_arn,
        ctx.infra.subnet_ids,
        ctx.infra.security_group_ids,
        ctx.aws_provider,
    )
    ctx.set("trigger.event_rule", rule)
    ctx.export("trigger_mode", "eventbridge")
    ctx.export("event_rule_arn", rule.arn)
    ctx.export("trigger_role_arn", events_role_arn)
