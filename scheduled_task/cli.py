"""
Scheduled task CLI: setup, list, create, destroy, start, stop. Hides Pulumi from the user.
Run `scheduled-task setup` once; then `scheduled-task create <yaml>` and, for
stepfunctions triggers, `scheduled-task start <name>`.
"""

import json
import os
from pathlib import Path
import subprocess
import sys
from typing import Any

import yaml

CONFIG_DIR = ".scheduled-task"
CONFIG_FILENAME = "config.yaml"
PROGRAM_DIR = "scheduled_task"
TAG_MANAGED_BY = "managed-by"
TAG_MANAGED_BY_VALUE = "ecs-scheduled-task"
TAG_SERVICE = "service"
DEFAULT_STACK_PREFIX = "dev"


def _project_root() -> Path:
    """Directory containing scheduled_task/Pulumi.yaml. Use cwd as default."""
    return Path.cwd()


def _program_dir() -> Path:
    return _project_root() / PROGRAM_DIR


def _config_path() -> Path:
    return _project_root() / CONFIG_DIR / CONFIG_FILENAME


def _load_config() -> dict[str, Any] | None:
    path = _config_path()
    if not path.exists():
        return None
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else None


def _save_config(backend_url: str, region: str, stack_prefix: str = DEFAULT_STACK_PREFIX) -> None:
    path = _config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(
            {
                "backend_url": backend_url,
                "region": region,
                "stack_prefix": stack_prefix,
            },
            f,
            default_flow_style=False,
        )
    print(f"Configuration saved to {path}")


def _require_config() -> dict[str, Any]:
    config = _load_config()
    if not config or not config.get("backend_url") or not config.get("region"):
        print("Configuration missing or incomplete. Run: scheduled-task setup", file=sys.stderr)
        sys.exit(1)
    return config


def _require_program_dir() -> None:
    if not (_program_dir() / "Pulumi.yaml").exists():
        print(
            f"{PROGRAM_DIR}/Pulumi.yaml not found. Run this from the repository root.",
            file=sys.stderr,
        )
        sys.exit(1)


def _check_aws_credentials() -> bool:
    try:
        subprocess.run(
            ["aws", "sts", "get-caller-identity"],
            capture_output=True,
            check=True,
            timeout=10,
        )
        return True
    except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired):
        return False


def _run(
    cmd: list[str],
    env: dict[str, str] | None = None,
    check: bool = True,
    capture: bool = False,
) -> subprocess.CompletedProcess:
    full_env = os.environ.copy()
    if env:
        full_env.update(env)
    return subprocess.run(
        cmd,
        cwd=_project_root(),
        env=full_env,
        check=check,
        capture_output=capture,
        text=capture,
    )


def _pulumi(*args: str) -> list[str]:
    return ["pulumi", *args, "-C", PROGRAM_DIR]


def _task_name_from_yaml(path: Path) -> str:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data["metadata"]["name"]


def _stack_name(task_name: str, config: dict[str, Any]) -> str:
    prefix = config.get("stack_prefix", DEFAULT_STACK_PREFIX)
    region = config["region"]
    return f"{prefix}.{task_name}.{region}"


def _select_stack(stack: str, env: dict[str, str]) -> bool:
    result = _run(_pulumi("stack", "select", stack), env=env, check=False)
    return result.returncode == 0


def _stack_outputs(task_name: str, config: dict[str, Any]) -> dict[str, Any]:
    """Read stack outputs; exits when the stack does not exist."""
    stack = _stack_name(task_name, config)
    env = {"PULUMI_BACKEND_URL": config["backend_url"]}
    result = _run(
        _pulumi("stack", "output", "--json", "--stack", stack),
        env=env,
        check=False,
        capture=True,
    )
    if result.returncode != 0:
        print(f"No infrastructure found for task '{task_name}' (stack {stack}).", file=sys.stderr)
        sys.exit(1)
    return json.loads(result.stdout or "{}")


def _require_state_machine(task_name: str, outputs: dict[str, Any]) -> str:
    if outputs.get("trigger_mode") != "stepfunctions" or not outputs.get("state_machine_arn"):
        print(
            f"Task '{task_name}' uses an EventBridge schedule; there is no loop to start or stop.",
            file=sys.stderr,
        )
        sys.exit(1)
    return outputs["state_machine_arn"]


def _sfn_client(config: dict[str, Any]):
    try:
        import boto3
    except ImportError:
        print("Starting and stopping loops requires boto3. Install with: pip install -e .", file=sys.stderr)
        sys.exit(1)
    return boto3.client("stepfunctions", region_name=config["region"])


# --- setup ---


def _cmd_setup() -> None:
    print("First-time setup. You will need:")
    print("  1) AWS credentials (e.g. run: aws sso login)")
    print("  2) Pulumi state backend URL (e.g. s3://your-account-pulumi-state)")
    print("  3) Default AWS region (e.g. us-east-1)")
    print()

    if not _check_aws_credentials():
        print("AWS credentials not found. Log in (e.g. aws sso login) and try again.", file=sys.stderr)
        sys.exit(1)
    print("AWS credentials OK.")

    backend_url = os.environ.get("SCHEDULED_TASK_BACKEND_URL", "").strip()
    if not backend_url:
        backend_url = input("Pulumi state backend URL: ").strip()
    if not backend_url:
        print("Backend URL is required.", file=sys.stderr)
        sys.exit(1)

    region = os.environ.get("SCHEDULED_TASK_REGION", "").strip()
    if not region:
        region = input("Default AWS region (e.g. us-east-1): ").strip()
    if not region:
        print("Region is required.", file=sys.stderr)
        sys.exit(1)

    stack_prefix = (
        os.environ.get("SCHEDULED_TASK_STACK_PREFIX", DEFAULT_STACK_PREFIX).strip()
        or DEFAULT_STACK_PREFIX
    )
    _save_config(backend_url, region, stack_prefix)
    print("Setup complete. You can now use: scheduled-task list, create <path>, destroy <name>")


# --- list ---


def _cmd_list() -> None:
    try:
        import boto3
    except ImportError:
        print("Listing requires boto3. Install with: pip install -e .", file=sys.stderr)
        sys.exit(1)
    config = _load_config()
    region = config.get("region") if config else os.environ.get("AWS_REGION", "us-east-1")
    client = boto3.client("resourcegroupstaggingapi", region_name=region)
    tasks: dict[str, list[dict[str, str]]] = {}

    paginator = client.get_paginator("get_resources")
    for page in paginator.paginate(
        TagFilters=[{"Key": TAG_MANAGED_BY, "Values": [TAG_MANAGED_BY_VALUE]}],
        ResourcesPerPage=100,
    ):
        for r in page.get("ResourceTagList", []):
            arn = r.get("ResourceARN", "")
            tags = {t["Key"]: t["Value"] for t in r.get("Tags", [])}
            name = tags.get(TAG_SERVICE, "?")
            resource_type = arn.split(":")[2] if ":" in arn else "resource"
            tasks.setdefault(name, []).append({"arn": arn, "type": resource_type})

    if not tasks:
        print("No ecs-scheduled-task resources found.")
        return
    for name in sorted(tasks.keys()):
        print(f"\n{name}")
        for r in tasks[name]:
            print(f"  {r['type']}: {r['arn']}")


# --- create ---


def _cmd_create(task_yaml_path: str) -> None:
    config = _require_config()
    path = Path(task_yaml_path)
    if not path.is_absolute():
        path = _project_root() / path
    if not path.exists():
        print(f"File not found: {path}", file=sys.stderr)
        sys.exit(1)
    _require_program_dir()
    task_name = _task_name_from_yaml(path)
    stack = _stack_name(task_name, config)
    region = config["region"]

    env = {
        "SCHEDULED_TASK_YAML_PATH": str(path.resolve()),
        "PULUMI_BACKEND_URL": config["backend_url"],
    }
    if not _select_stack(stack, env):
        _run(_pulumi("stack", "init", stack), env=env)
    _run(_pulumi("config", "set", "aws:region", region), env=env)
    print(f"Provisioning infrastructure for task '{task_name}'...")
    _run(_pulumi("up", "-y"), env=env)
    print(f"Task '{task_name}' provisioned.")


# --- destroy ---


def _cmd_destroy(task_name: str) -> None:
    config = _require_config()
    _require_program_dir()
    stack = _stack_name(task_name, config)

    env = {"PULUMI_BACKEND_URL": config["backend_url"]}
    if not _select_stack(stack, env):
        print(f"No infrastructure found for task '{task_name}' (stack {stack}).", file=sys.stderr)
        sys.exit(1)
    confirm = input(f"This will remove all infrastructure for task '{task_name}'. Continue? [y/N]: ")
    if confirm.strip().lower() != "y":
        print("Cancelled.")
        sys.exit(0)
    _run(_pulumi("destroy", "-y"), env=env)
    rm = _run(_pulumi("stack", "rm", stack, "--yes"), env=env, check=False)
    if rm.returncode != 0:
        print(f"Stack {stack} could not be removed; remove it with 'pulumi stack rm'.", file=sys.stderr)
    print(f"Task '{task_name}' removed.")


# --- start / stop ---


def _cmd_start(task_name: str) -> None:
    config = _require_config()
    outputs = _stack_outputs(task_name, config)
    arn = _require_state_machine(task_name, outputs)
    if not outputs.get("state_machine_enabled", True):
        print(f"Task '{task_name}' is disabled (spec.trigger.enabled: false).", file=sys.stderr)
        sys.exit(1)
    client = _sfn_client(config)
    running = client.list_executions(stateMachineArn=arn, statusFilter="RUNNING", maxResults=1)
    if running.get("executions"):
        print(f"Loop for '{task_name}' is already running: {running['executions'][0]['executionArn']}")
        return
    execution = client.start_execution(stateMachineArn=arn, input=json.dumps({"iteration": 0}))
    print(f"Started loop for '{task_name}': {execution['executionArn']}")


def _cmd_stop(task_name: str) -> None:
    config = _require_config()
    arn = _require_state_machine(task_name, _stack_outputs(task_name, config))
    client = _sfn_client(config)
    stopped = 0
    paginator = client.get_paginator("list_executions")
    for page in paginator.paginate(stateMachineArn=arn, statusFilter="RUNNING"):
        for execution in page.get("executions", []):
            client.stop_execution(
                executionArn=execution["executionArn"],
                cause="Stopped by scheduled-task stop",
            )
            stopped += 1
    print(f"Stopped {stopped} running execution(s) for '{task_name}'.")


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(
        description="Manage ECS scheduled tasks (setup, list, create, destroy, start, stop)."
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("setup", help="One-time setup: AWS, state storage, region")
    sub.add_parser("list", help="List engine-managed resources by task")
    create_p = sub.add_parser("create", help="Provision infrastructure from a scheduled-task.yaml")
    create_p.add_argument("task_yaml", help="Path to scheduled-task.yaml")
    destroy_p = sub.add_parser("destroy", help="Remove all infrastructure for a task")
    destroy_p.add_argument("task_name", help="Task name (from metadata.name)")
    start_p = sub.add_parser("start", help="Start the Step Functions loop for a task")
    start_p.add_argument("task_name", help="Task name (from metadata.name)")
    stop_p = sub.add_parser("stop", help="Stop running Step Functions loop executions")
    stop_p.add_argument("task_name", help="Task name (from metadata.name)")
    args = parser.parse_args()

    if args.command == "setup":
        _cmd_setup()
    elif args.command == "list":
        _cmd_list()
    elif args.command == "create":
        _cmd_create(args.task_yaml)
    elif args.command == "destroy":
        _cmd_destroy(args.task_name)
    elif args.command == "start":
        _cmd_start(args.task_name)
    elif args.command == "stop":
        _cmd_stop(args.task_name)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
