"""Derived resource names and ARNs.

Every name here is a pure function of the task name plus, for ARNs, the
account/partition/region from SharedInfrastructure. Triggers point at the
task definition family (no revision) so revisions registered by the
deployment pipeline run without re-provisioning.
"""

IAM_ROLE_NAME_MAX = 64
EVENT_RULE_NAME_MAX = 64
STATE_MACHINE_NAME_MAX = 80
CONTAINER_NAME_MAX = 255

DEFAULT_LOG_GROUP_PREFIX = "/ecs/scheduled-task"
ECS_SYNC_RULE_NAME = "StepFunctionsGetEventsForECSTaskRule"


def container_name(name: str, override: str | None = None) -> str:
    """Container name for ECS; replace . and / with -."""
    if override:
        return override[:CONTAINER_NAME_MAX]
    return name.replace(".", "-").replace("/", "-")[:CONTAINER_NAME_MAX]


def task_family(name: str) -> str:
    return name


def log_group_name(name: str, override: str | None = None) -> str:
    return override or f"{DEFAULT_LOG_GROUP_PREFIX}/{name}"


def role_name(name: str, suffix: str) -> str:
    """IAM role name '<name>-<suffix>'; IAM caps role names at 64 chars."""
    return f"{name}-{suffix}"[:IAM_ROLE_NAME_MAX]


def event_rule_name(name: str) -> str:
    return f"{name}-schedule"[:EVENT_RULE_NAME_MAX]


def state_machine_name(name: str) -> str:
    return f"{name}-loop"[:STATE_MACHINE_NAME_MAX]


def task_family_arn(partition: str, region: str, account_id: str, family: str) -> str:
    """Task definition ARN without a revision; ECS resolves it to the latest ACTIVE one."""
    return f"arn:{partition}:ecs:{region}:{account_id}:task-definition/{family}"


def task_family_revisions_arn(partition: str, region: str, account_id: str, family: str) -> str:
    """IAM resource matching every revision of the family."""
    return f"{task_family_arn(partition, region, account_id, family)}:*"


def state_machine_arn(partition: str, region: str, account_id: str, name: str) -> str:
    return f"arn:{partition}:states:{region}:{account_id}:stateMachine:{state_machine_name(name)}"


def ecs_sync_rule_arn(partition: str, region: str, account_id: str) -> str:
    """Managed rule Step Functions creates for runTask.sync."""
    return f"arn:{partition}:events:{region}:{account_id}:rule/{ECS_SYNC_RULE_NAME}"
