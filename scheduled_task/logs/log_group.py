"""CloudWatch log group shared by the container and the state machine."""

import pulumi
import pulumi_aws

from scheduled_task.config import LogsConfig
from scheduled_task.shared import naming


def create_log_group(
    name: str,
    logs: LogsConfig,
    aws_provider: pulumi_aws.Provider,
) -> pulumi_aws.cloudwatch.LogGroup:
    """Create log group with retention; retentionDays 0 keeps logs forever."""
    return pulumi_aws.cloudwatch.LogGroup(
        f"{name}_logs",
        name=naming.log_group_name(name, logs.group_name),
        retention_in_days=logs.retention_days,
        kms_key_id=logs.kms_key_id,
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
