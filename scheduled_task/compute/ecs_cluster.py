"""ECS cluster, created only when spec.cluster.create is set."""

import pulumi
import pulumi_aws


def create_ecs_cluster(
    name: str,
    aws_provider: pulumi_aws.Provider,
) -> pulumi_aws.ecs.Cluster:
    """Create ECS cluster with Fargate and Fargate Spot capacity providers."""
    cluster = pulumi_aws.ecs.Cluster(
        f"{name}_cluster",
        name=name,
        settings=[
            pulumi_aws.ecs.ClusterSettingArgs(
                name="containerInsights",
                value="disabled",
            )
        ],
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    pulumi_aws.ecs.ClusterCapacityProviders(
        f"{name}_cluster_capacity",
        cluster_name=cluster.name,
        capacity_providers=["FARGATE", "FARGATE_SPOT"],
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    return cluster
