"""Lookup account identity and shared network resources."""

from dataclasses import dataclass

import pulumi
import pulumi_aws

from scheduled_task.config import NetworkConfig


@dataclass
class SharedInfrastructure:
    """Account and network identifiers used by every capability."""

    account_id: str
    partition: str
    region: str
    subnet_ids: list[str]
    security_group_ids: list[str]


def lookup_subnets(
    network: NetworkConfig,
    aws_provider: pulumi_aws.Provider,
) -> list[str]:
    """Return configured subnets, or subnets found by tag when none are configured."""
    if network.subnets:
        return list(network.subnets)
    tagged = pulumi_aws.ec2.get_subnets(
        filters=[
            pulumi_aws.ec2.GetSubnetsFilterArgs(
                name=f"tag:{network.subnet_tag_key}",
                values=[network.subnet_tag_value],
            )
        ],
        opts=pulumi.InvokeOptions(provider=aws_provider),
    )
    if not tagged.ids:
        raise SystemExit(
            f"No subnets found (tag {network.subnet_tag_key}={network.subnet_tag_value})"
        )
    pulumi.log.info(
        f"Using {len(tagged.ids)} subnets tagged "
        f"{network.subnet_tag_key}={network.subnet_tag_value}"
    )
    return list(tagged.ids)


def lookup_shared_infrastructure(
    network: NetworkConfig,
    region: str,
    aws_provider: pulumi_aws.Provider,
    network_mode: str = "awsvpc",
) -> SharedInfrastructure:
    """Lookup account identity and, for awsvpc tasks, subnets.

    Returns dataclass with all shared resource identifiers.
    Does not create any resources.
    """
    opts = pulumi.InvokeOptions(provider=aws_provider)
    identity = pulumi_aws.get_caller_identity(opts=opts)
    partition = pulumi_aws.get_partition(opts=opts)

    subnet_ids: list[str] = []
    if network_mode == "awsvpc":
        subnet_ids = lookup_subnets(network, aws_provider)

    return SharedInfrastructure(
        account_id=identity.account_id,
        partition=partition.partition,
        region=region,
        subnet_ids=subnet_ids,
        security_group_ids=list(network.security_groups),
    )
