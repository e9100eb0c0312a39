"""GitHub connection used by the pipeline source stage."""

from __future__ import annotations

from typing import Any

from aws_cdk import aws_codestarconnections as codestar
from constructs import Construct

from infrastructure.config.types import EnvironmentConfig
from infrastructure.stacks.base import PlatformStack


class ConnectionStack(PlatformStack):
    """The connection is created PENDING and must be approved once in the console."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        config: EnvironmentConfig,
        *,
        connection_name: str = "CustomerInfoGitHub",
        **kwargs: Any,
    ) -> None:
        super().__init__(scope, construct_id, environment, config, **kwargs)

        connection = codestar.CfnConnection(
            self,
            "GitHubConnection",
            connection_name=connection_name,
            provider_type="GitHub",
        )
        self._publish(
            "connection_arn",
            connection.attr_connection_arn,
            "GitHubConnectionArn",
            "CodeStar connection ARN for GitHub",
        )
