"""Logs capability: CloudWatch log group for the container and state machine."""

from typing import Any

from scheduled_task.capabilities.context import CapabilityContext
from scheduled_task.capabilities.registry import Phase, register
from scheduled_task.logs.log_group import create_log_group


@register("logs", phase=Phase.INFRASTRUCTURE)
def logs_handler(
    section_config: dict[str, Any],
    ctx: CapabilityContext,
) -> None:
    """Create the log group from ctx.config.logs; section_config is ignored."""
    log_group = create_log_group(ctx.name, ctx.config.logs, ctx.aws_provider)
    ctx.set("logs.log_group", log_group)
    ctx.export("log_group_name", log_group.name)
