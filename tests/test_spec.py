"""Tests for scheduled-task spec schema and cross-field validation."""

import copy
from pathlib import Path

import jsonschema
import pytest
import yaml

from scheduled_task.spec.validator import (
    check_cross_field_rules,
    load_schema,
    validate_scheduled_task_spec,
)

BASE = {
    "apiVersion": "scheduledtask.ops/v1",
    "kind": "ScheduledTask",
    "metadata": {"name": "my-task"},
    "spec": {
        "cluster": {"arn": "arn:aws:ecs:us-east-1:123456789012:cluster/main"},
        "trigger": {"mode": "eventbridge", "scheduleExpression": "rate(5 minutes)"},
        "network": {"securityGroups": ["sg-1"]},
    },
}


def _doc(**spec_overrides) -> dict:
    data = copy.deepcopy(BASE)
    data["spec"].update(spec_overrides)
    return data


def test_all_fixtures_validate() -> None:
    """All fixtures must pass validation (keeps fixtures in sync with schema)."""
    fixture_dir = Path(__file__).resolve().parent.parent / "fixtures"
    paths = sorted(fixture_dir.glob("*.yaml"))
    assert paths
    for path in paths:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        validate_scheduled_task_spec(data)


def test_minimal_document_validates() -> None:
    validate_scheduled_task_spec(_doc())


def test_missing_api_version() -> None:
    data = _doc()
    del data["apiVersion"]
    with pytest.raises(jsonschema.ValidationError) as exc_info:
        validate_scheduled_task_spec(data)
    assert "apiVersion" in str(exc_info.value)


def test_unsupported_api_version() -> None:
    data = _doc()
    data["apiVersion"] = "scheduledtask.ops/v9"
    with pytest.raises(ValueError, match="Unsupported apiVersion"):
        validate_scheduled_task_spec(data)


def test_load_schema_is_draft_2020_12() -> None:
    schema = load_schema("scheduledtask.ops/v1")
    jsonschema.Draft202012Validator.check_schema(schema)


def test_invalid_name_pattern() -> None:
    data = _doc()
    data["metadata"]["name"] = "Has_Upper"
    with pytest.raises(jsonschema.ValidationError) as exc_info:
        validate_scheduled_task_spec(data)
    assert "metadata.name" in str(exc_info.value)


def test_unknown_trigger_mode() -> None:
    data = _doc(trigger={"mode": "cron"})
    with pytest.raises(jsonschema.ValidationError) as exc_info:
        validate_scheduled_task_spec(data)
    assert "spec.trigger.mode" in str(exc_info.value)


def test_task_extra_field_rejected() -> None:
    data = _doc(task={"cpu": 256, "gpu": 1})
    with pytest.raises(jsonschema.ValidationError) as exc_info:
        validate_scheduled_task_spec(data)
    assert "additional" in str(exc_info.value).lower()


def test_invalid_retention_days() -> None:
    data = _doc(logs={"retentionDays": 10})
    with pytest.raises(jsonschema.ValidationError) as exc_info:
        validate_scheduled_task_spec(data)
    assert "retentionDays" in str(exc_info.value)


def test_report_truncates_after_ten_errors() -> None:
    """More than ten problems are summarised."""
    data = _doc(
        task={
            "cpu": 1,
            "memory": 1,
            "launchType": "LAMBDA",
            "networkMode": "mesh",
            "taskCount": 0,
            "cpuArchitecture": "MIPS",
        },
        logs={"retentionDays": 2, "stateMachineLevel": "DEBUG"},
        network={"subnets": ["nope"], "securityGroups": ["nope"], "assignPublicIp": "yes"},
        trigger={"mode": "eventbridge", "maxIterations": -1, "waitSeconds": "x"},
    )
    with pytest.raises(jsonschema.ValidationError) as exc_info:
        validate_scheduled_task_spec(data)
    message = str(exc_info.value)
    assert "  10. " in message
    assert "  11. " not in message
    assert "more errors" in message


def test_cluster_requires_exactly_one_source() -> None:
    neither = check_cross_field_rules(_doc(cluster={})["spec"])
    both = check_cross_field_rules(
        _doc(cluster={"arn": "arn:aws:ecs:us-east-1:1:cluster/a", "create": True})["spec"]
    )
    create_only = check_cross_field_rules(_doc(cluster={"create": True})["spec"])

    assert [p for p, _ in neither] == ["spec.cluster"]
    assert [p for p, _ in both] == ["spec.cluster"]
    assert create_only == []


def test_eventbridge_requires_schedule_expression() -> None:
    problems = check_cross_field_rules(_doc(trigger={"mode": "eventbridge"})["spec"])
    assert problems == [
        ("spec.trigger.scheduleExpression", "required when mode is 'eventbridge'")
    ]


def test_eventbridge_rejects_bare_cron() -> None:
    problems = check_cross_field_rules(
        _doc(trigger={"mode": "eventbridge", "scheduleExpression": "0 3 * * *"})["spec"]
    )
    assert len(problems) == 1
    assert "rate(...) or cron(...)" in problems[0][1]


def test_stepfunctions_needs_positive_wait() -> None:
    problems = check_cross_field_rules(
        _doc(trigger={"mode": "stepfunctions", "waitSeconds": 0})["spec"]
    )
    assert problems == [("spec.trigger.waitSeconds", "must be at least 1 second")]


def test_stepfunctions_does_not_need_schedule_expression() -> None:
    problems = check_cross_field_rules(_doc(trigger={"mode": "stepfunctions"})["spec"])
    assert problems == []


def test_max_iterations_bounded_by_history_limit() -> None:
    """Iterations times worst-case retry events must fit in one execution's history."""
    data = _doc(
        trigger={
            "mode": "stepfunctions",
            "maxIterations": 100000,
            "retry": {"maxAttempts": 10},
        }
    )
    with pytest.raises(jsonschema.ValidationError) as exc_info:
        validate_scheduled_task_spec(data)
    assert "spec.trigger.maxIterations" in str(exc_info.value)
    assert "at most 355 with retry.maxAttempts=10" in str(exc_info.value)


def test_max_iterations_limit_depends_on_retry_attempts() -> None:
    # (25000 - 100) // (20 + 5 * 3) == 711
    at_limit = _doc(trigger={"mode": "stepfunctions", "maxIterations": 711})
    over_limit = _doc(trigger={"mode": "stepfunctions", "maxIterations": 712})
    no_retries = _doc(
        trigger={"mode": "stepfunctions", "maxIterations": 1245, "retry": {"maxAttempts": 0}}
    )

    assert check_cross_field_rules(at_limit["spec"]) == []
    assert [p for p, _ in check_cross_field_rules(over_limit["spec"])] == [
        "spec.trigger.maxIterations"
    ]
    assert check_cross_field_rules(no_retries["spec"]) == []


def test_max_iterations_must_be_positive() -> None:
    with pytest.raises(jsonschema.ValidationError, match="maxIterations"):
        validate_scheduled_task_spec(_doc(trigger={"mode": "stepfunctions", "maxIterations": 0}))


def test_launch_type_and_strategy_are_exclusive() -> None:
    spec = _doc(
        task={
            "launchType": "FARGATE",
            "capacityProviderStrategy": [{"capacityProvider": "FARGATE_SPOT"}],
        }
    )["spec"]
    paths = [p for p, _ in check_cross_field_rules(spec)]
    assert paths == ["spec.task"]


def test_only_one_provider_may_set_base() -> None:
    spec = _doc(
        task={
            "capacityProviderStrategy": [
                {"capacityProvider": "FARGATE_SPOT", "base": 1},
                {"capacityProvider": "FARGATE", "base": 2},
            ]
        }
    )["spec"]
    paths = [p for p, _ in check_cross_field_rules(spec)]
    assert paths == ["spec.task.capacityProviderStrategy"]


def test_fargate_and_ec2_providers_cannot_mix() -> None:
    spec = _doc(
        task={
            "capacityProviderStrategy": [
                {"capacityProvider": "FARGATE_SPOT"},
                {"capacityProvider": "my-asg-provider"},
            ]
        }
    )["spec"]
    messages = [m for _, m in check_cross_field_rules(spec)]
    assert "Fargate and EC2 capacity providers cannot be mixed" in messages


def test_fargate_requires_awsvpc() -> None:
    spec = _doc(task={"launchType": "FARGATE", "networkMode": "bridge"})["spec"]
    assert ("spec.task.networkMode", "Fargate requires 'awsvpc'") in check_cross_field_rules(spec)


def test_platform_version_only_for_fargate() -> None:
    spec = _doc(
        task={"launchType": "EC2", "networkMode": "bridge", "platformVersion": "LATEST"}
    )["spec"]
    assert check_cross_field_rules(spec) == [
        ("spec.task.platformVersion", "only valid for Fargate tasks")
    ]


def test_awsvpc_requires_security_groups() -> None:
    spec = _doc(network={})["spec"]
    paths = [p for p, _ in check_cross_field_rules(spec)]
    assert paths == ["spec.network.securityGroups"]


def test_ec2_bridge_needs_no_network() -> None:
    spec = _doc(task={"launchType": "EC2", "networkMode": "bridge"}, network={})["spec"]
    assert check_cross_field_rules(spec) == []


def test_cross_field_errors_raise_through_validate() -> None:
    with pytest.raises(jsonschema.ValidationError) as exc_info:
        validate_scheduled_task_spec(_doc(cluster={}))
    assert "exactly one of 'arn' or 'create: true'" in str(exc_info.value)
