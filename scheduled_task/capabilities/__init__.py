"""Capability modules: each provisions one slice of a scheduled task (logs, cluster, task, trigger).

Importing this package registers every capability in the registry.
"""

from scheduled_task.capabilities import (  # noqa: F401 - register capabilities
    cluster,
    eventbridge,
    logs,
    stepfunctions,
    task,
)
from scheduled_task.capabilities.foundation import provision_foundation
from scheduled_task.capabilities.registry import run_capabilities

__all__ = ["provision_foundation", "run_capabilities"]
