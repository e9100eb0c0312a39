"""Network foundation: VPC, subnet groups and tier security groups."""

from __future__ import annotations

from typing import Any, Dict, Sequence

from aws_cdk import CfnOutput, aws_ec2 as ec2
from constructs import Construct

from infrastructure.config.types import EnvironmentConfig
from infrastructure.stacks.base import PlatformStack

SUBNET_GROUPS = (
    ("alb-public", ec2.SubnetType.PUBLIC),
    ("jumpbox-public", ec2.SubnetType.PUBLIC),
    ("ecs-private", ec2.SubnetType.PRIVATE_ISOLATED),
    ("vpce-private", ec2.SubnetType.PRIVATE_ISOLATED),
    ("db-private", ec2.SubnetType.PRIVATE_ISOLATED),
)


class NetStack(PlatformStack):
    """VPC without NAT; isolated subnets reach AWS APIs through VPC endpoints."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        config: EnvironmentConfig,
        *,
        app_names: Sequence[str],
        cidr: str = "10.0.0.0/16",
        max_azs: int = 2,
        **kwargs: Any,
    ) -> None:
        super().__init__(scope, construct_id, environment, config, **kwargs)

        self.vpc = ec2.Vpc(
            self,
            "AppVpc",
            ip_addresses=ec2.IpAddresses.cidr(cidr),
            max_azs=max_azs,
            nat_gateways=0,
            subnet_configuration=[
                ec2.SubnetConfiguration(name=name, subnet_type=subnet_type, cidr_mask=24)
                for name, subnet_type in SUBNET_GROUPS
            ],
        )

        self.ecs_sg = self._security_group("EcsSg", "Security Group for ECS Service", allow_all_outbound=True)
        self.db_sg = self._security_group("DbSg", "Security Group for RDS", allow_all_outbound=False)
        self.jump_sg = self._security_group("JumpSg", "Security Group for JumpBox", allow_all_outbound=True)
        self.vpce_sg = self._security_group("VpceSg", "Security Group for VPC Endpoints", allow_all_outbound=True)
        self.alb_sgs: Dict[str, ec2.SecurityGroup] = {
            name: self._create_alb_security_group(name, index) for index, name in enumerate(app_names)
        }

        self._wire_rules()
        self._create_outputs()

    def _security_group(self, construct_id: str, description: str, *, allow_all_outbound: bool) -> ec2.SecurityGroup:
        return ec2.SecurityGroup(
            self,
            construct_id,
            vpc=self.vpc,
            description=description,
            allow_all_outbound=allow_all_outbound,
        )

    def _create_alb_security_group(self, app_name: str, index: int) -> ec2.SecurityGroup:
        construct_id = "AlbSg" if index == 0 else f"Alb{index + 1}Sg"
        sg = self._security_group(construct_id, f"Security Group for ALB ({app_name})", allow_all_outbound=False)
        sg.add_ingress_rule(ec2.Peer.any_ipv4(), ec2.Port.tcp(80), "Allow HTTP from Internet")
        sg.add_ingress_rule(ec2.Peer.any_ipv4(), ec2.Port.tcp(443), "Allow HTTPS from Internet")
        sg.add_egress_rule(self.ecs_sg, ec2.Port.tcp(80), "ALB-to-ECS")
        self.ecs_sg.add_ingress_rule(sg, ec2.Port.tcp(80), "ALB-to-ECS")
        return sg

    def _wire_rules(self) -> None:
        self.db_sg.add_ingress_rule(self.ecs_sg, ec2.Port.tcp(3306), "ECS-to-DB")
        self.db_sg.add_ingress_rule(self.jump_sg, ec2.Port.tcp(3306), "JumpBox-to-DB")
        self.vpce_sg.add_ingress_rule(self.ecs_sg, ec2.Port.tcp(443), "ECS-to-VPCE")

    def _create_outputs(self) -> None:
        self._publish("vpc", self.vpc)
        self._publish("ecs_sg", self.ecs_sg)
        self._publish("vpce_sg", self.vpce_sg)
        self._publish("db_sg", self.db_sg)
        self._publish("jump_sg", self.jump_sg)
        self._publish("alb_sgs", dict(self.alb_sgs))

        self._publish("vpc_id", self.vpc.vpc_id, "VpcId", "VPC ID")
        self._publish("ecs_sg_id", self.ecs_sg.security_group_id, "EcsSgId")
        self._publish("vpce_sg_id", self.vpce_sg.security_group_id, "VpceSgId")
        self._publish("db_sg_id", self.db_sg.security_group_id, "DbSgId")
        self._publish("jump_sg_id", self.jump_sg.security_group_id, "JumpSgId")
        for index, (name, sg) in enumerate(self.alb_sgs.items()):
            output_id = "AlbSgId" if index == 0 else f"Alb{index + 1}SgId"
            CfnOutput(self, output_id, value=sg.security_group_id, description=f"ALB security group for {name}")
