"""Public ALB with blue/green target groups and a WAF web ACL."""

from __future__ import annotations

from typing import Any, Optional

from aws_cdk import Duration, aws_ec2 as ec2, aws_elasticloadbalancingv2 as elbv2, aws_wafv2 as wafv2
from constructs import Construct

from infrastructure.config.types import EnvironmentConfig
from infrastructure.stacks.base import PlatformStack


class AlbStack(PlatformStack):
    """Application Load Balancer fronting one ECS service.

    With ``certificate_arn`` the prod listener serves HTTPS on 443 and port 80
    redirects to it; without one the prod listener is plain HTTP on 80. The
    test listener always carries green traffic for CodeDeploy validation.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        config: EnvironmentConfig,
        *,
        vpc: ec2.IVpc,
        alb_sg: ec2.ISecurityGroup,
        load_balancer_name: Optional[str] = None,
        certificate_arn: Optional[str] = None,
        subnet_group_name: str = "alb-public",
        test_listener_port: int = 9001,
        **kwargs: Any,
    ) -> None:
        super().__init__(scope, construct_id, environment, config, **kwargs)

        self.alb = elbv2.ApplicationLoadBalancer(
            self,
            "Alb",
            vpc=vpc,
            internet_facing=True,
            security_group=alb_sg,
            load_balancer_name=load_balancer_name,
            vpc_subnets=ec2.SubnetSelection(subnet_group_name=subnet_group_name),
        )

        self.tg_blue = self._create_target_group("TgBlue", vpc)
        self.tg_green = self._create_target_group("TgGreen", vpc)

        if certificate_arn:
            self._create_https_listeners(certificate_arn, test_listener_port)
        else:
            self._create_http_listeners(test_listener_port)

        self.web_acl = self._create_web_acl()
        wafv2.CfnWebACLAssociation(
            self,
            "WebAclAssociation",
            resource_arn=self.alb.load_balancer_arn,
            web_acl_arn=self.web_acl.attr_arn,
        )

        self._create_outputs()

    def _create_target_group(self, construct_id: str, vpc: ec2.IVpc) -> elbv2.ApplicationTargetGroup:
        return elbv2.ApplicationTargetGroup(
            self,
            construct_id,
            vpc=vpc,
            port=80,
            protocol=elbv2.ApplicationProtocol.HTTP,
            target_type=elbv2.TargetType.IP,
            health_check=elbv2.HealthCheck(path="/", interval=Duration.seconds(30)),
        )

    def _create_https_listeners(self, certificate_arn: str, test_port: int) -> None:
        certificates = [elbv2.ListenerCertificate.from_arn(certificate_arn)]
        self.alb.add_listener(
            "HttpListenerRedirect",
            port=80,
            default_action=elbv2.ListenerAction.redirect(protocol="HTTPS", port="443", permanent=True),
        )
        self.listener_prod = self.alb.add_listener(
            "HttpsListenerProd",
            port=443,
            protocol=elbv2.ApplicationProtocol.HTTPS,
            certificates=certificates,
            ssl_policy=elbv2.SslPolicy.RECOMMENDED_TLS,
            default_target_groups=[self.tg_blue],
        )
        self.listener_test = self.alb.add_listener(
            "HttpsListenerTest",
            port=test_port,
            protocol=elbv2.ApplicationProtocol.HTTPS,
            certificates=certificates,
            ssl_policy=elbv2.SslPolicy.RECOMMENDED_TLS,
            default_target_groups=[self.tg_green],
        )

    def _create_http_listeners(self, test_port: int) -> None:
        self.listener_prod = self.alb.add_listener(
            "HttpListenerProd",
            port=80,
            protocol=elbv2.ApplicationProtocol.HTTP,
            default_target_groups=[self.tg_blue],
        )
        self.listener_test = self.alb.add_listener(
            "HttpListenerTest",
            port=test_port,
            protocol=elbv2.ApplicationProtocol.HTTP,
            default_target_groups=[self.tg_green],
        )

    def _create_web_acl(self) -> wafv2.CfnWebACL:
        bad_bot_rule = wafv2.CfnWebACL.RuleProperty(
            name="BlockBadBotUA",
            priority=0,
            action=wafv2.CfnWebACL.RuleActionProperty(block={}),
            statement=wafv2.CfnWebACL.StatementProperty(
                byte_match_statement=wafv2.CfnWebACL.ByteMatchStatementProperty(
                    field_to_match=wafv2.CfnWebACL.FieldToMatchProperty(single_header={"Name": "user-agent"}),
                    positional_constraint="CONTAINS",
                    search_string="BadBot",
                    text_transformations=[wafv2.CfnWebACL.TextTransformationProperty(priority=0, type="NONE")],
                )
            ),
            visibility_config=self._visibility("BlockBadBotUA"),
        )
        managed_common_rule = wafv2.CfnWebACL.RuleProperty(
            name="AWSManagedCommonRuleSet",
            priority=1,
            override_action=wafv2.CfnWebACL.OverrideActionProperty(none={}),
            statement=wafv2.CfnWebACL.StatementProperty(
                managed_rule_group_statement=wafv2.CfnWebACL.ManagedRuleGroupStatementProperty(
                    vendor_name="AWS",
                    name="AWSManagedRulesCommonRuleSet",
                )
            ),
            visibility_config=self._visibility("AWSCommonRuleSet"),
        )
        return wafv2.CfnWebACL(
            self,
            "AlbWebAcl",
            scope="REGIONAL",
            default_action=wafv2.CfnWebACL.DefaultActionProperty(allow={}),
            visibility_config=self._visibility(f"{self.stack_name}-AlbWebAcl"[:128]),
            rules=[bad_bot_rule, managed_common_rule],
        )

    @staticmethod
    def _visibility(metric_name: str) -> wafv2.CfnWebACL.VisibilityConfigProperty:
        return wafv2.CfnWebACL.VisibilityConfigProperty(
            cloud_watch_metrics_enabled=True,
            sampled_requests_enabled=True,
            metric_name=metric_name,
        )

    def _create_outputs(self) -> None:
        self._publish("dns_name", self.alb.load_balancer_dns_name, "AlbDnsName", "ALB DNS name")
        self._publish("web_acl_arn", self.web_acl.attr_arn, "AlbWebAclArn")
        self._publish("prod_listener_arn", self.listener_prod.listener_arn, "ProdListenerArn")
        self._publish("test_listener_arn", self.listener_test.listener_arn, "TestListenerArn")
        self._publish("tg_blue_name", self.tg_blue.target_group_name, "TgBlueName")
        self._publish("tg_green_name", self.tg_green.target_group_name, "TgGreenName")
        self._publish("tg_blue_arn", self.tg_blue.target_group_arn, "TgBlueArn")
        self._publish("tg_green_arn", self.tg_green.target_group_arn, "TgGreenArn")
        self._publish("target_group_blue", self.tg_blue)
        self._publish("target_group_green", self.tg_green)
