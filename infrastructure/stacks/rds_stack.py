"""MySQL database plus per-application credentials."""

from __future__ import annotations

import json
from typing import Any, List, Sequence

from aws_cdk import RemovalPolicy, aws_ec2 as ec2, aws_rds as rds, aws_secretsmanager as secretsmanager
from constructs import Construct

from infrastructure.config.types import EnvironmentConfig
from infrastructure.stacks.base import PlatformStack


class RdsStack(PlatformStack):
    """Single-AZ MySQL 8.0 instance in the ``db-private`` subnets.

    The admin credentials live in their own secret; every application gets a
    separate secret so its task role can be granted read access to exactly
    one set of credentials.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        config: EnvironmentConfig,
        *,
        vpc: ec2.IVpc,
        db_sg: ec2.ISecurityGroup,
        app_names: Sequence[str],
        instance_type: str = "t3.micro",
        database_name: str = "customer_info",
        instance_identifier: str = "customer-info-db",
        **kwargs: Any,
    ) -> None:
        super().__init__(scope, construct_id, environment, config, **kwargs)

        self.db_secret = rds.DatabaseSecret(
            self,
            "DbSecret",
            secret_name=f"{instance_identifier}-credentials",
            username="admin",
        )

        self.db_instance = rds.DatabaseInstance(
            self,
            "Db",
            engine=rds.DatabaseInstanceEngine.mysql(version=rds.MysqlEngineVersion.VER_8_0_42),
            instance_identifier=instance_identifier,
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_group_name="db-private"),
            instance_type=ec2.InstanceType(instance_type),
            security_groups=[db_sg],
            credentials=rds.Credentials.from_secret(self.db_secret),
            multi_az=False,
            storage_type=rds.StorageType.GP3,
            allocated_storage=20,
            max_allocated_storage=100,
            deletion_protection=False,
            removal_policy=RemovalPolicy.DESTROY,
            database_name=database_name,
        )

        self.app_secrets: List[secretsmanager.Secret] = [
            self._create_app_secret(name, index) for index, name in enumerate(app_names)
        ]

        self._publish("db_host", self.db_instance.db_instance_endpoint_address, "DbEndpoint", "RDS endpoint address")
        self._publish("db_secret_arn", self.db_secret.secret_arn, "DbSecretArn", "Admin credentials secret ARN")
        self._publish("app_secret_arns", [secret.secret_arn for secret in self.app_secrets])

    def _create_app_secret(self, app_name: str, index: int) -> secretsmanager.Secret:
        # Application user is created by the app's migration; only the password is generated here
        return secretsmanager.Secret(
            self,
            "AppSecret" if index == 0 else f"AppSecret{index + 1}",
            secret_name=f"{app_name}-app-credentials",
            description=f"Database credentials for {app_name}",
            generate_secret_string=secretsmanager.SecretStringGenerator(
                secret_string_template=json.dumps({"username": app_name.replace("-", "_")}),
                generate_string_key="password",
                exclude_punctuation=True,
            ),
        )
