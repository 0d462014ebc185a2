"""Validate scheduled-task.yaml against the JSON Schema for the declared apiVersion.

The schema covers shape and enums; rules that span sections (cluster source,
trigger mode requirements, launch type vs capacity providers) are checked in
Python after the schema passes.
"""

import json
from pathlib import Path
from typing import Any

import jsonschema

MAX_REPORTED_ERRORS = 10

# STANDARD workflow execution history limit and the worst-case events one loop
# iteration emits (Parallel, RunTask, Wait, Increment, Choice) plus each retry.
HISTORY_EVENT_LIMIT = 25_000
HISTORY_HEADROOM_EVENTS = 100
EVENTS_PER_ITERATION = 20
EVENTS_PER_RETRY = 5
DEFAULT_MAX_ITERATIONS = 500
DEFAULT_RETRY_ATTEMPTS = 3


def _schema_dir() -> Path:
    """Directory containing schema files (scheduled_task/schema/)."""
    return Path(__file__).resolve().parent.parent / "schema"


def load_schema(api_version: str) -> dict:
    """Load the JSON Schema for the given apiVersion.

    apiVersion format is e.g. 'scheduledtask.ops/v1'.
    Schema file is named from the last segment, e.g. scheduled-task-v1.json.
    """
    if api_version == "scheduledtask.ops/v1":
        name = "scheduled-task-v1.json"
    else:
        raise ValueError(f"Unsupported apiVersion: {api_version}")
    path = _schema_dir() / name
    if not path.exists():
        raise FileNotFoundError(f"Schema not found: {path}")
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _format_errors(problems: list[tuple[str, str]]) -> str:
    lines = ["scheduled-task.yaml validation failed:"]
    for i, (path, message) in enumerate(problems[:MAX_REPORTED_ERRORS], 1):
        lines.append(f"  {i}. {path}: {message}")
    if len(problems) > MAX_REPORTED_ERRORS:
        lines.append(f"  ... and {len(problems) - MAX_REPORTED_ERRORS} more errors")
    return "\n".join(lines)


def check_cross_field_rules(spec: dict[str, Any]) -> list[tuple[str, str]]:
    """Return (path, message) pairs for rules the schema cannot express."""
    problems: list[tuple[str, str]] = []

    cluster = spec.get("cluster") or {}
    has_arn = bool(cluster.get("arn"))
    creates = bool(cluster.get("create"))
    if has_arn == creates:
        problems.append(("spec.cluster", "exactly one of 'arn' or 'create: true' is required"))

    trigger = spec.get("trigger") or {}
    mode = trigger.get("mode", "eventbridge")
    if mode == "eventbridge":
        expression = trigger.get("scheduleExpression")
        if not expression:
            problems.append(
                ("spec.trigger.scheduleExpression", "required when mode is 'eventbridge'")
            )
        elif not (expression.startswith("rate(") or expression.startswith("cron(")):
            problems.append(
                (
                    "spec.trigger.scheduleExpression",
                    f"must be a rate(...) or cron(...) expression, got {expression!r}",
                )
            )
    elif mode == "stepfunctions":
        if trigger.get("waitSeconds", 300) < 1:
            problems.append(("spec.trigger.waitSeconds", "must be at least 1 second"))
        max_iterations = trigger.get("maxIterations", DEFAULT_MAX_ITERATIONS)
        attempts = (trigger.get("retry") or {}).get("maxAttempts", DEFAULT_RETRY_ATTEMPTS)
        per_iteration = EVENTS_PER_ITERATION + EVENTS_PER_RETRY * attempts
        limit = (HISTORY_EVENT_LIMIT - HISTORY_HEADROOM_EVENTS) // per_iteration
        if max_iterations > limit:
            problems.append(
                (
                    "spec.trigger.maxIterations",
                    f"at most {limit} with retry.maxAttempts={attempts}, "
                    "or one execution exceeds the Step Functions history limit",
                )
            )

    task = spec.get("task") or {}
    strategy = task.get("capacityProviderStrategy") or []
    if strategy and "launchType" in task:
        problems.append(
            (
                "spec.task",
                "'launchType' and 'capacityProviderStrategy' are mutually exclusive",
            )
        )
    if sum(1 for item in strategy if item.get("base", 0) > 0) > 1:
        problems.append(
            ("spec.task.capacityProviderStrategy", "only one provider may set 'base'")
        )

    if strategy:
        fargate_items = [
            item for item in strategy if item["capacityProvider"] in ("FARGATE", "FARGATE_SPOT")
        ]
        if fargate_items and len(fargate_items) != len(strategy):
            problems.append(
                (
                    "spec.task.capacityProviderStrategy",
                    "Fargate and EC2 capacity providers cannot be mixed",
                )
            )
        is_fargate = bool(fargate_items)
    else:
        is_fargate = task.get("launchType", "FARGATE") == "FARGATE"

    network_mode = task.get("networkMode", "awsvpc")
    if is_fargate and network_mode != "awsvpc":
        problems.append(("spec.task.networkMode", "Fargate requires 'awsvpc'"))
    if not is_fargate and task.get("platformVersion"):
        problems.append(("spec.task.platformVersion", "only valid for Fargate tasks"))

    network = spec.get("network") or {}
    if network_mode == "awsvpc" and not network.get("securityGroups"):
        problems.append(
            ("spec.network.securityGroups", "at least one security group is required for 'awsvpc'")
        )

    return problems


def validate_scheduled_task_spec(data: dict) -> None:
    """Validate a parsed scheduled-task.yaml (dict) against its apiVersion schema.

    Raises:
        jsonschema.ValidationError: If validation fails. Message includes
            all error details. Caller may convert to SystemExit for CLI.
    """
    api_version = data.get("apiVersion")
    if not api_version:
        raise jsonschema.ValidationError("Missing required field: apiVersion")
    schema = load_schema(api_version)
    validator = jsonschema.Draft202012Validator(schema)
    errors = list(validator.iter_errors(data))
    if errors:
        problems = [
            (
                ".".join(str(p) for p in err.absolute_path) if err.absolute_path else "(root)",
                err.message,
            )
            for err in errors
        ]
        raise jsonschema.ValidationError(_format_errors(problems))

    problems = check_cross_field_rules(data["spec"])
    if problems:
        raise jsonschema.ValidationError(_format_errors(problems))
