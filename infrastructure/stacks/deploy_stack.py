"""CodeDeploy application and ECS blue/green deployment group."""

from __future__ import annotations

from typing import Any

from aws_cdk import aws_codedeploy as codedeploy, aws_iam as iam
from constructs import Construct

from infrastructure.config.types import EnvironmentConfig
from infrastructure.stacks.base import PlatformStack, validate_role_arn_if_literal

DG = codedeploy.CfnDeploymentGroup

ROLLBACK_EVENTS = ["DEPLOYMENT_FAILURE", "DEPLOYMENT_STOP_ON_ALARM", "DEPLOYMENT_STOP_ON_REQUEST"]


class DeployStack(PlatformStack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        config: EnvironmentConfig,
        *,
        cluster_name: str,
        service_name: str,
        prod_listener_arn: str,
        test_listener_arn: str,
        tg_blue_name: str,
        tg_green_name: str,
        code_deploy_role_arn: str,
        application_name: str,
        deployment_group_name: str,
        termination_wait_minutes: int = 5,
        ready_wait_minutes: int = 300,
        **kwargs: Any,
    ) -> None:
        super().__init__(scope, construct_id, environment, config, **kwargs)

        validate_role_arn_if_literal("code_deploy_role_arn", code_deploy_role_arn)

        self.application = codedeploy.CfnApplication(
            self,
            "EcsApplication",
            application_name=application_name,
            compute_platform="ECS",
        )
        service_role = iam.Role.from_role_arn(self, "CdServiceRole", code_deploy_role_arn, mutable=False)

        self.deployment_group = DG(
            self,
            "EcsDeploymentGroup",
            application_name=self.application.ref,
            deployment_group_name=deployment_group_name,
            service_role_arn=service_role.role_arn,
            auto_rollback_configuration=DG.AutoRollbackConfigurationProperty(enabled=True, events=ROLLBACK_EVENTS),
            deployment_style=DG.DeploymentStyleProperty(
                deployment_option="WITH_TRAFFIC_CONTROL",
                deployment_type="BLUE_GREEN",
            ),
            blue_green_deployment_configuration=DG.BlueGreenDeploymentConfigurationProperty(
                terminate_blue_instances_on_deployment_success=DG.BlueInstanceTerminationOptionProperty(
                    action="TERMINATE",
                    termination_wait_time_in_minutes=termination_wait_minutes,
                ),
                # STOP_DEPLOYMENT waits for manual rerouting; CONTINUE_DEPLOYMENT shifts right away
                deployment_ready_option=DG.DeploymentReadyOptionProperty(
                    action_on_timeout="STOP_DEPLOYMENT",
                    wait_time_in_minutes=ready_wait_minutes,
                ),
            ),
            alarm_configuration=DG.AlarmConfigurationProperty(enabled=False),
            ecs_services=[DG.ECSServiceProperty(cluster_name=cluster_name, service_name=service_name)],
            load_balancer_info=DG.LoadBalancerInfoProperty(
                target_group_pair_info_list=[
                    DG.TargetGroupPairInfoProperty(
                        prod_traffic_route=DG.TrafficRouteProperty(listener_arns=[prod_listener_arn]),
                        test_traffic_route=DG.TrafficRouteProperty(listener_arns=[test_listener_arn]),
                        target_groups=[
                            DG.TargetGroupInfoProperty(name=tg_blue_name),
                            DG.TargetGroupInfoProperty(name=tg_green_name),
                        ],
                    )
                ]
            ),
        )
        self.deployment_group.add_dependency(self.application)

        self._publish("application_name", self.application.ref, "EcsAppName")
        self._publish("deployment_group_name", self.deployment_group.ref, "EcsDeploymentGroupName")
