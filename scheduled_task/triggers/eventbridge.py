"""EventBridge schedule rule with an ECS RunTask target."""

import pulumi
import pulumi_aws

from scheduled_task.config import ScheduledTaskConfig
from scheduled_task.shared import naming


def _ecs_target_args(
    config: ScheduledTaskConfig,
    family_arn: str,
    subnet_ids: list[str],
    security_group_ids: list[str],
) -> pulumi_aws.cloudwatch.EventTargetEcsTargetArgs:
    task = config.task
    args: dict = {
        "task_definition_arn": family_arn,
        "task_count": task.task_count,
        "propagate_tags": "TASK_DEFINITION",
        "enable_ecs_managed_tags": True,
    }
    if task.uses_capacity_providers:
        args["capacity_provider_strategies"] = [
            pulumi_aws.cloudwatch.EventTargetEcsTargetCapacityProviderStrategyArgs(
                capacity_provider=item.capacity_provider,
                weight=item.weight,
                base=item.base,
            )
            for item in task.capacity_provider_strategy
        ]
    else:
        args["launch_type"] = task.launch_type
    if task.is_fargate and task.platform_version:
        args["platform_version"] = task.platform_version
    if task.network_mode == "awsvpc":
        args["network_configuration"] = pulumi_aws.cloudwatch.EventTargetEcsTargetNetworkConfigurationArgs(
            subnets=subnet_ids,
            security_groups=security_group_ids,
            assign_public_ip=config.network.assign_public_ip,
        )
    return pulumi_aws.cloudwatch.EventTargetEcsTargetArgs(**args)


def create_schedule_rule(
    config: ScheduledTaskConfig,
    cluster_arn: pulumi.Input[str],
    family_arn: str,
    events_role_arn: pulumi.Input[str],
    subnet_ids: list[str],
    security_group_ids: list[str],
    aws_provider: pulumi_aws.Provider,
) -> tuple[pulumi_aws.cloudwatch.EventRule, pulumi_aws.cloudwatch.EventTarget]:
    """Create the schedule rule and its ECS target; returns (rule, target)."""
    trigger = config.trigger
    rule = pulumi_aws.cloudwatch.EventRule(
        f"{config.name}_schedule",
        name=naming.event_rule_name(config.name),
        description=config.description or f"Runs {config.name} on {trigger.schedule_expression}",
        schedule_expression=trigger.schedule_expression,
        state="ENABLED" if trigger.enabled else "DISABLED",
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    if not trigger.enabled:
        pulumi.log.warn(f"Schedule for '{config.name}' is provisioned disabled")

    dead_letter = None
    if trigger.dead_letter_queue_arn:
        dead_letter = pulumi_aws.cloudwatch.EventTargetDeadLetterConfigArgs(
            arn=trigger.dead_letter_queue_arn,
        )
    target = pulumi_aws.cloudwatch.EventTarget(
        f"{config.name}_schedule_target",
        rule=rule.name,
        target_id=naming.task_family(config.name),
        arn=cluster_arn,
        role_arn=events_role_arn,
        ecs_target=_ecs_target_args(config, family_arn, subnet_ids, security_group_ids),
        retry_policy=pulumi_aws.cloudwatch.EventTargetRetryPolicyArgs(
            maximum_event_age_in_seconds=trigger.maximum_event_age_seconds,
            maximum_retry_attempts=trigger.retry.max_attempts,
        ),
        dead_letter_config=dead_letter,
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    return rule, target
