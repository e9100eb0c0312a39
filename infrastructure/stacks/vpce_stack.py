"""VPC endpoints so isolated subnets can pull images, read secrets and ship logs."""

from __future__ import annotations

from typing import Any, Optional

from aws_cdk import aws_ec2 as ec2
from constructs import Construct

from infrastructure.config.types import EnvironmentConfig
from infrastructure.stacks.base import PlatformStack

INTERFACE_ENDPOINTS = (
    ("EcrApiEp", ec2.InterfaceVpcEndpointAwsService.ECR),
    ("EcrDkrEp", ec2.InterfaceVpcEndpointAwsService.ECR_DOCKER),
    ("SecretsManagerEp", ec2.InterfaceVpcEndpointAwsService.SECRETS_MANAGER),
    ("LogsEp", ec2.InterfaceVpcEndpointAwsService.CLOUDWATCH_LOGS),
    ("SsmEp", ec2.InterfaceVpcEndpointAwsService.SSM),
    ("SsmMessagesEp", ec2.InterfaceVpcEndpointAwsService.SSM_MESSAGES),
    ("Ec2MessagesEp", ec2.InterfaceVpcEndpointAwsService.EC2_MESSAGES),
)


class VpceStack(PlatformStack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        config: EnvironmentConfig,
        *,
        vpc: ec2.IVpc,
        vpce_sg: ec2.ISecurityGroup,
        jump_sg: Optional[ec2.ISecurityGroup] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(scope, construct_id, environment, config, **kwargs)

        s3_gateway = ec2.GatewayVpcEndpoint(
            self,
            "S3Gateway",
            vpc=vpc,
            service=ec2.GatewayVpcEndpointAwsService.S3,
            subnets=[ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_ISOLATED)],
        )

        endpoint_subnets = ec2.SubnetSelection(subnet_group_name="vpce-private")
        self.endpoints = [
            ec2.InterfaceVpcEndpoint(
                self,
                endpoint_id,
                vpc=vpc,
                service=service,
                subnets=endpoint_subnets,
                security_groups=[vpce_sg],
            )
            for endpoint_id, service in INTERFACE_ENDPOINTS
        ]

        # JumpBox uses the SSM endpoints for Session Manager
        if jump_sg is not None:
            ec2.CfnSecurityGroupIngress(
                self,
                "JumpToVpce",
                group_id=vpce_sg.security_group_id,
                source_security_group_id=jump_sg.security_group_id,
                ip_protocol="tcp",
                from_port=443,
                to_port=443,
                description="JumpBox-to-VPCE",
            )

        self._publish("s3_gateway_endpoint_id", s3_gateway.vpc_endpoint_id, "S3GatewayEndpointId")
