"""Step Functions capability: looping state machine and the role it assumes."""

from typing import Any

import pulumi

from scheduled_task.capabilities.context import CapabilityContext
from scheduled_task.capabilities.registry import Phase, register
from scheduled_task.iam.roles import create_states_role
from scheduled_task.shared import naming
from scheduled_task.triggers.stepfunctions import create_state_machine


@register("stepfunctions", phase=Phase.TRIGGER, requires=["task", "logs"])
def stepfunctions_handler(
    section_config: dict[str, Any],
    ctx: CapabilityContext,
) -> None:
    """Provision the run/wait loop state machine; section_config is the raw spec.trigger.

    The state machine is not started here; `scheduled-task start` starts the
    first execution.
    """
    config = ctx.config
    partition, region, account_id = ctx.arn_parts

    if config.iam.trigger_role_arn:
        states_role_arn: pulumi.Input[str] = config.iam.trigger_role_arn
    else:
        role = create_states_role(
            ctx.name,
            naming.task_family_revisions_arn(
                partition, region, account_id, naming.task_family(ctx.name)
            ),
            naming.ecs_sync_rule_arn(partition, region, account_id),
            naming.state_machine_arn(partition, region, account_id, ctx.name),
            [ctx.require("iam.task_role_arn"), ctx.require("iam.execution_role_arn")],
            ctx.aws_provider,
        )
        states_role_arn = role.arn

    state_machine = create_state_machine(
        config,
        ctx.require("cluster.arn"),
        ctx.require("task.family_arn"),
        states_role_arn,
        ctx.require("logs.log_group"),
        ctx.infra.subnet_ids,
        ctx.infra.security_group_ids,
        ctx.aws_provider,
    )
    ctx.set("trigger.state_machine", state_machine)
    ctx.export("trigger_mode", "stepfunctions")
    ctx.export("state_machine_arn", state_machine.arn)
    ctx.export("state_machine_enabled", config.trigger.enabled)
    ctx.export("trigger_role_arn", states_role_arn)
