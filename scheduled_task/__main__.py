"""
Scheduled task engine: provisions one ECS scheduled task from scheduled-task.yaml.
Creates the log group, IAM roles (unless supplied), an optional cluster, the task
definition with a placeholder container, and either an EventBridge schedule or a
Step Functions run/wait loop.
"""

import pulumi

from scheduled_task.capabilities import provision_foundation, run_capabilities
from scheduled_task.capabilities.context import CapabilityContext
from scheduled_task.config import create_aws_provider, load_scheduled_task_config
from scheduled_task.shared.lookups import lookup_shared_infrastructure

config = load_scheduled_task_config()
aws_provider = create_aws_provider(config.name, config.region, config.tags)
infra = lookup_shared_infrastructure(
    config.network,
    config.region,
    aws_provider,
    network_mode=config.task.network_mode,
)

ctx = CapabilityContext(config=config, infra=infra, aws_provider=aws_provider)
provision_foundation(ctx)
run_capabilities(config.spec_sections, ctx)

for key, value in ctx.exports.items():
    pulumi.export(key, value)
