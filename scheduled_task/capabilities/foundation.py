"""Foundation provisioning: task/execution roles and the cluster reference."""

import pulumi

from scheduled_task.capabilities.context import CapabilityContext
from scheduled_task.iam.roles import create_execution_role, create_task_role


def provision_foundation(ctx: CapabilityContext) -> None:
    """Resolve the task and execution role ARNs, creating roles that were not supplied.

    Also records the cluster ARN when an existing cluster is used; a created
    cluster is recorded by the cluster capability.
    """
    config = ctx.config
    iam = config.iam

    if iam.task_role_arn:
        pulumi.log.info(f"Using provided task role {iam.task_role_arn}")
        ctx.set("iam.task_role_arn", iam.task_role_arn)
    else:
        task_role = create_task_role(ctx.name, iam.task_role_policy_arns, ctx.aws_provider)
        ctx.set("iam.task_role_arn", task_role.arn)

    if iam.execution_role_arn:
        pulumi.log.info(f"Using provided execution role {iam.execution_role_arn}")
        ctx.set("iam.execution_role_arn", iam.execution_role_arn)
    else:
        execution_role = create_execution_role(ctx.name, ctx.infra.partition, ctx.aws_provider)
        ctx.set("iam.execution_role_arn", execution_role.arn)

    ctx.export("task_role_arn", ctx.require("iam.task_role_arn"))
    ctx.export("execution_role_arn", ctx.require("iam.execution_role_arn"))

    if not config.cluster.create:
        ctx.set("cluster.arn", config.cluster.arn)
        ctx.export("cluster_arn", config.cluster.arn)
