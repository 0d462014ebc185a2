"""Step Functions state machine that runs the task in a fixed-interval loop.

Each iteration runs two branches in parallel: the ECS task (retried with
backoff, failures caught so the loop never stops) and a fixed Wait. The next
iteration starts once both finish, so the effective interval is
max(task duration, waitSeconds).

Standard workflows cap execution history, so after maxIterations the machine
starts a fresh execution of itself and ends the current one.
"""

import json
from typing import Any

import pulumi
import pulumi_aws

from scheduled_task.config import ScheduledTaskConfig
from scheduled_task.shared import naming

RUN_TASK_SYNC = "arn:aws:states:::ecs:runTask.sync"
START_EXECUTION = "arn:aws:states:::states:startExecution"

INITIALIZE = "Initialize"
RESET_ITERATION = "ResetIteration"
RUN_AND_WAIT = "RunAndWait"
INCREMENT = "Increment"
CHECK_ITERATIONS = "CheckIterations"
CONTINUE_AS_NEW = "ContinueAsNew"

CONTINUE_RETRY_INTERVAL_SECONDS = 5
CONTINUE_RETRY_MAX_ATTEMPTS = 5


def run_task_parameters(
    config: ScheduledTaskConfig,
    cluster_arn: str,
    family_arn: str,
    subnet_ids: list[str],
    security_group_ids: list[str],
) -> dict[str, Any]:
    """ECS RunTask request body in the shape the states integration expects."""
    task = config.task
    params: dict[str, Any] = {
        "Cluster": cluster_arn,
        "TaskDefinition": family_arn,
        "Count": task.task_count,
        "PropagateTags": "TASK_DEFINITION",
        "EnableECSManagedTags": True,
    }
    if task.uses_capacity_providers:
        params["CapacityProviderStrategy"] = [
            {
                "CapacityProvider": item.capacity_provider,
                "Weight": item.weight,
                "Base": item.base,
            }
            for item in task.capacity_provider_strategy
        ]
    else:
        params["LaunchType"] = task.launch_type
    if task.is_fargate and task.platform_version:
        params["PlatformVersion"] = task.platform_version
    if task.network_mode == "awsvpc":
        params["NetworkConfiguration"] = {
            "AwsvpcConfiguration": {
                "Subnets": list(subnet_ids),
                "SecurityGroups": list(security_group_ids),
                "AssignPublicIp": "ENABLED" if config.network.assign_public_ip else "DISABLED",
            }
        }
    return params


def _run_task_branch(config: ScheduledTaskConfig, parameters: dict[str, Any]) -> dict[str, Any]:
    retry = config.trigger.retry
    run_task: dict[str, Any] = {
        "Type": "Task",
        "Resource": RUN_TASK_SYNC,
        "Parameters": parameters,
        "Retry": [
            {
                "ErrorEquals": ["States.ALL"],
                "IntervalSeconds": retry.interval_seconds,
                "MaxAttempts": retry.max_attempts,
                "BackoffRate": retry.backoff_rate,
            }
        ],
        "Catch": [
            {
                "ErrorEquals": ["States.ALL"],
                "ResultPath": "$.error",
                "Next": "TaskFailed",
            }
        ],
        "End": True,
    }
    if config.task.timeout_seconds:
        run_task["TimeoutSeconds"] = config.task.timeout_seconds
    return {
        "StartAt": "RunTask",
        "States": {
            "RunTask": run_task,
            "TaskFailed": {
                "Type": "Pass",
                "Comment": "Swallow the failure; the next iteration runs on schedule",
                "End": True,
            },
        },
    }


def _wait_branch(wait_seconds: int) -> dict[str, Any]:
    return {
        "StartAt": "Wait",
        "States": {
            "Wait": {"Type": "Wait", "Seconds": wait_seconds, "End": True},
        },
    }


def build_definition(
    config: ScheduledTaskConfig,
    cluster_arn: str,
    family_arn: str,
    subnet_ids: list[str],
    security_group_ids: list[str],
) -> dict[str, Any]:
    """Build the Amazon States Language document for the run/wait loop."""
    trigger = config.trigger
    parameters = run_task_parameters(
        config, cluster_arn, family_arn, subnet_ids, security_group_ids
    )
    states: dict[str, Any] = {
        INITIALIZE: {
            "Type": "Choice",
            "Choices": [
                {
                    "Variable": "$.iteration",
                    "IsPresent": True,
                    "Next": RUN_AND_WAIT,
                }
            ],
            "Default": RESET_ITERATION,
        },
        RESET_ITERATION: {
            "Type": "Pass",
            "Result": {"iteration": 0},
            "Next": RUN_AND_WAIT,
        },
        RUN_AND_WAIT: {
            "Type": "Parallel",
            "Branches": [
                _run_task_branch(config, parameters),
                _wait_branch(trigger.wait_seconds),
            ],
            "ResultPath": None,
            "Next": INCREMENT,
        },
        INCREMENT: {
            "Type": "Pass",
            "Parameters": {"iteration.$": "States.MathAdd($.iteration, 1)"},
            "Next": CHECK_ITERATIONS,
        },
        CHECK_ITERATIONS: {
            "Type": "Choice",
            "Choices": [
                {
                    "Variable": "$.iteration",
                    "NumericGreaterThanEquals": trigger.max_iterations,
                    "Next": CONTINUE_AS_NEW,
                }
            ],
            "Default": RUN_AND_WAIT,
        },
        CONTINUE_AS_NEW: {
            "Type": "Task",
            "Resource": START_EXECUTION,
            "Parameters": {
                "StateMachineArn.$": "$$.StateMachine.Id",
                "Input": {
                    "iteration": 0,
                    "AWS_STEP_FUNCTIONS_STARTED_BY_EXECUTION_ID.$": "$$.Execution.Id",
                },
            },
            "Retry": [
                {
                    "ErrorEquals": ["States.ALL"],
                    "IntervalSeconds": CONTINUE_RETRY_INTERVAL_SECONDS,
                    "MaxAttempts": CONTINUE_RETRY_MAX_ATTEMPTS,
                    "BackoffRate": 2.0,
                }
            ],
            "End": True,
        },
    }
    return {
        "Comment": f"Runs {config.name} every max(task duration, {trigger.wait_seconds}s)",
        "StartAt": INITIALIZE,
        "States": states,
    }


def create_state_machine(
    config: ScheduledTaskConfig,
    cluster_arn: pulumi.Input[str],
    family_arn: str,
    states_role_arn: pulumi.Input[str],
    log_group: pulumi_aws.cloudwatch.LogGroup,
    subnet_ids: list[str],
    security_group_ids: list[str],
    aws_provider: pulumi_aws.Provider,
) -> pulumi_aws.sfn.StateMachine:
    """Create the looping STANDARD state machine."""
    definition = pulumi.Output.from_input(cluster_arn).apply(
        lambda arn: json.dumps(
            build_definition(config, arn, family_arn, subnet_ids, security_group_ids)
        )
    )
    level = config.logs.state_machine_level
    logging_configuration = None
    if level != "OFF":
        logging_configuration = pulumi_aws.sfn.StateMachineLoggingConfigurationArgs(
            log_destination=log_group.arn.apply(lambda arn: f"{arn}:*"),
            include_execution_data=level == "ALL",
            level=level,
        )
    if not config.trigger.enabled:
        pulumi.log.warn(
            f"State machine for '{config.name}' is provisioned but will not be started"
        )
    return pulumi_aws.sfn.StateMachine(
        f"{config.name}_loop",
        name=naming.state_machine_name(config.name),
        type="STANDARD",
        role_arn=states_role_arn,
        definition=definition,
        logging_configuration=logging_configuration,
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
