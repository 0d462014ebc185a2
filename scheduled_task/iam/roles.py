"""IAM roles for the ECS task, its execution, and the EventBridge/Step Functions trigger.

Each role is created only when no ARN is supplied in spec.iam; callers get back
an ARN (plain str or Output) either way.
"""

import json
from typing import Any

import pulumi
import pulumi_aws

from scheduled_task.shared import naming

ECS_TASK_EXECUTION_POLICY = "policy/service-role/AmazonECSTaskExecutionRolePolicy"


def _assume_role_policy(service: str) -> str:
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Action": "sts:AssumeRole",
                    "Effect": "Allow",
                    "Principal": {"Service": service},
                }
            ],
        }
    )


def _policy_document(statements: list[dict[str, Any]]) -> str:
    return json.dumps({"Version": "2012-10-17", "Statement": statements})


def create_task_role(
    name: str,
    policy_arns: list[str],
    aws_provider: pulumi_aws.Provider,
) -> pulumi_aws.iam.Role:
    """Create ECS task role (the container's identity) with the given managed policies."""
    task_role = pulumi_aws.iam.Role(
        f"{name}_task_role",
        name=naming.role_name(name, "task"),
        assume_role_policy=_assume_role_policy("ecs-tasks.amazonaws.com"),
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    for i, policy_arn in enumerate(policy_arns):
        pulumi_aws.iam.RolePolicyAttachment(
            f"{name}_task_policy_{i}",
            role=task_role.name,
            policy_arn=policy_arn,
            opts=pulumi.ResourceOptions(provider=aws_provider),
        )
    return task_role


def create_execution_role(
    name: str,
    partition: str,
    aws_provider: pulumi_aws.Provider,
) -> pulumi_aws.iam.Role:
    """Create ECS execution role (image pull, log delivery)."""
    execution_role = pulumi_aws.iam.Role(
        f"{name}_exec_role",
        name=naming.role_name(name, "exec"),
        assume_role_policy=_assume_role_policy("ecs-tasks.amazonaws.com"),
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    pulumi_aws.iam.RolePolicyAttachment(
        f"{name}_exec_policy",
        role=execution_role.name,
        policy_arn=f"arn:{partition}:iam::aws:{ECS_TASK_EXECUTION_POLICY}",
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    return execution_role


def events_policy(
    family_revisions_arn: str,
    cluster_arn: str,
    pass_role_arns: list[str],
) -> str:
    """Policy letting EventBridge run the task family on one cluster and pass its roles."""
    return _policy_document(
        [
            {
                "Effect": "Allow",
                "Action": "ecs:RunTask",
                "Resource": family_revisions_arn,
                "Condition": {"ArnLike": {"ecs:cluster": cluster_arn}},
            },
            {
                "Effect": "Allow",
                "Action": "ecs:TagResource",
                "Resource": "*",
                "Condition": {"StringEquals": {"ecs:CreateAction": "RunTask"}},
            },
            {
                "Effect": "Allow",
                "Action": "iam:PassRole",
                "Resource": sorted(set(pass_role_arns)),
            },
        ]
    )


def create_events_role(
    name: str,
    family_revisions_arn: str,
    cluster_arn: pulumi.Input[str],
    pass_role_arns: list[pulumi.Input[str]],
    aws_provider: pulumi_aws.Provider,
) -> pulumi_aws.iam.Role:
    """Create the role EventBridge assumes to call ecs:RunTask."""
    role = pulumi_aws.iam.Role(
        f"{name}_events_role",
        name=naming.role_name(name, "events"),
        assume_role_policy=_assume_role_policy("events.amazonaws.com"),
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    policy = pulumi.Output.all(cluster_arn, *pass_role_arns).apply(
        lambda args: events_policy(family_revisions_arn, args[0], list(args[1:]))
    )
    pulumi_aws.iam.RolePolicy(
        f"{name}_events_policy",
        role=role.id,
        policy=policy,
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    return role


def states_policy(
    family_revisions_arn: str,
    sync_rule_arn: str,
    own_state_machine_arn: str,
    pass_role_arns: list[str],
) -> str:
    """Policy for the looping state machine: run/track ECS tasks, restart itself, write logs."""
    return _policy_document(
        [
            {
                "Effect": "Allow",
                "Action": "ecs:RunTask",
                "Resource": family_revisions_arn,
            },
            {
                "Effect": "Allow",
                "Action": ["ecs:StopTask", "ecs:DescribeTasks", "ecs:TagResource"],
                "Resource": "*",
            },
            {
                "Effect": "Allow",
                "Action": ["events:PutTargets", "events:PutRule", "events:DescribeRule"],
                "Resource": sync_rule_arn,
            },
            {
                "Effect": "Allow",
                "Action": "iam:PassRole",
                "Resource": sorted(set(pass_role_arns)),
            },
            {
                "Effect": "Allow",
                "Action": "states:StartExecution",
                "Resource": own_state_machine_arn,
            },
            {
                "Effect": "Allow",
                "Action": [
                    "logs:CreateLogDelivery",
                    "logs:GetLogDelivery",
                    "logs:UpdateLogDelivery",
                    "logs:DeleteLogDelivery",
                    "logs:ListLogDeliveries",
                    "logs:PutResourcePolicy",
                    "logs:DescribeResourcePolicies",
                    "logs:DescribeLogGroups",
                ],
                "Resource": "*",
            },
        ]
    )


def create_states_role(
    name: str,
    family_revisions_arn: str,
    sync_rule_arn: str,
    own_state_machine_arn: str,
    pass_role_arns: list[pulumi.Input[str]],
    aws_provider: pulumi_aws.Provider,
) -> pulumi_aws.iam.Role:
    """Create the role the Step Functions state machine assumes."""
    role = pulumi_aws.iam.Role(
        f"{name}_states_role",
        name=naming.role_name(name, "states"),
        assume_role_policy=_assume_role_policy("states.amazonaws.com"),
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    policy = pulumi.Output.all(*pass_role_arns).apply(
        lambda arns: states_policy(
            family_revisions_arn, sync_rule_arn, own_state_machine_arn, list(arns)
        )
    )
    pulumi_aws.iam.RolePolicy(
        f"{name}_states_policy",
        role=role.id,
        policy=policy,
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    return role
