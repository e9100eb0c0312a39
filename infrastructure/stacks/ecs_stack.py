"""Fargate service deployed blue/green by CodeDeploy."""

from __future__ import annotations

from typing import Any, Optional

from aws_cdk import (
    Duration,
    aws_ec2 as ec2,
    aws_ecr as ecr,
    aws_ecs as ecs,
    aws_elasticloadbalancingv2 as elbv2,
    aws_iam as iam,
)
from constructs import Construct

from infrastructure.config.types import EnvironmentConfig
from infrastructure.stacks.base import PlatformStack

# Healthy when something listens on :80 (0x0050) without needing curl in the image
PORT_80_LISTEN_CHECK = "awk 'NR>1 && $2 ~ /:0050$/ && $4==\"0A\"{f=1} END{exit f?0:1}' /proc/net/tcp"


class EcsStack(PlatformStack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        config: EnvironmentConfig,
        *,
        vpc: ec2.IVpc,
        ecs_sg: ec2.ISecurityGroup,
        repository: ecr.IRepository,
        target_group: elbv2.ApplicationTargetGroup,
        app_name: str,
        image_tag: str = "latest",
        desired_count: int = 2,
        min_capacity: int = 2,
        max_capacity: int = 4,
        cluster_name: Optional[str] = None,
        service_name: Optional[str] = None,
        task_family: Optional[str] = None,
        subnet_group_name: str = "ecs-private",
        **kwargs: Any,
    ) -> None:
        super().__init__(scope, construct_id, environment, config, **kwargs)
        self.app_name = app_name

        self.cluster = ecs.Cluster(
            self,
            "AppCluster",
            vpc=vpc,
            cluster_name=cluster_name or f"{app_name}-cluster",
            container_insights_v2=ecs.ContainerInsights.ENABLED,
        )

        self.task_definition = self._create_task_definition(repository, image_tag, task_family)

        self.service = ecs.FargateService(
            self,
            "AppService",
            cluster=self.cluster,
            task_definition=self.task_definition,
            desired_count=desired_count,
            service_name=service_name or f"{app_name}-service",
            security_groups=[ecs_sg],
            vpc_subnets=ec2.SubnetSelection(subnet_group_name=subnet_group_name),
            enable_execute_command=True,
            health_check_grace_period=Duration.seconds(60),
            deployment_controller=ecs.DeploymentController(type=ecs.DeploymentControllerType.CODE_DEPLOY),
        )
        self.service.attach_to_application_target_group(target_group)

        self._create_autoscaling(target_group, min_capacity, max_capacity)
        self._create_outputs()

    def _create_task_definition(
        self, repository: ecr.IRepository, image_tag: str, family: Optional[str]
    ) -> ecs.FargateTaskDefinition:
        execution_role = iam.Role(
            self,
            "TaskExecutionRole",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AmazonECSTaskExecutionRolePolicy"),
            ],
        )
        execution_role.add_to_policy(
            iam.PolicyStatement(
                actions=[
                    "logs:CreateLogGroup",
                    "logs:CreateLogStream",
                    "logs:PutLogEvents",
                    "logs:DescribeLogStreams",
                ],
                resources=["*"],
            )
        )
        task_role = iam.Role(self, "AppTaskRole", assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"))

        task_definition = ecs.FargateTaskDefinition(
            self,
            "TaskDef",
            cpu=256,
            memory_limit_mib=512,
            execution_role=execution_role,
            task_role=task_role,
            family=family or f"{self.app_name}-task",
        )
        task_definition.add_container(
            "app",
            image=ecs.ContainerImage.from_ecr_repository(repository, image_tag),
            logging=ecs.LogDrivers.aws_logs(stream_prefix=self.app_name),
            port_mappings=[ecs.PortMapping(container_port=80)],
            health_check=ecs.HealthCheck(
                command=["CMD-SHELL", PORT_80_LISTEN_CHECK],
                interval=Duration.seconds(30),
                timeout=Duration.seconds(5),
                retries=3,
                start_period=Duration.seconds(60),
            ),
            environment={
                "ENVIRONMENT": self.env_name,
                "APP_NAME": self.app_name,
            },
        )
        return task_definition

    def _create_autoscaling(
        self, target_group: elbv2.ApplicationTargetGroup, min_capacity: int, max_capacity: int
    ) -> None:
        scalable = self.service.auto_scale_task_count(min_capacity=min_capacity, max_capacity=max_capacity)
        scalable.scale_on_cpu_utilization(
            "Cpu50",
            target_utilization_percent=50,
            scale_in_cooldown=Duration.seconds(60),
            scale_out_cooldown=Duration.seconds(60),
        )
        scalable.scale_on_request_count(
            "Req100",
            requests_per_target=100,
            target_group=target_group,
            scale_in_cooldown=Duration.seconds(60),
            scale_out_cooldown=Duration.seconds(60),
        )

    def _create_outputs(self) -> None:
        self._publish("cluster_name", self.cluster.cluster_name, "ClusterName")
        self._publish("cluster_arn", self.cluster.cluster_arn, "ClusterArn")
        self._publish("service_name", self.service.service_name, "ServiceName")
        self._publish("task_family", self.task_definition.family, "TaskFamily")
