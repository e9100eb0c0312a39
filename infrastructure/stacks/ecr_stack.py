"""Container image repositories, one per application."""

from __future__ import annotations

import re
from typing import Any, Dict, Sequence

from aws_cdk import CfnOutput, Duration, RemovalPolicy, aws_ecr as ecr
from constructs import Construct

from infrastructure.config.types import EnvironmentConfig
from infrastructure.stacks.base import PlatformStack


def _construct_id(repository_name: str) -> str:
    """customer-info/app -> CustomerInfoAppRepo"""
    parts = re.split(r"[^A-Za-z0-9]+", repository_name)
    return "".join(part[:1].upper() + part[1:] for part in parts if part) + "Repo"


class EcrStack(PlatformStack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        config: EnvironmentConfig,
        *,
        repository_names: Sequence[str],
        max_image_age_days: int = 7,
        **kwargs: Any,
    ) -> None:
        super().__init__(scope, construct_id, environment, config, **kwargs)

        self.repositories: Dict[str, ecr.Repository] = {}
        for name in repository_names:
            repository = ecr.Repository(
                self,
                _construct_id(name),
                repository_name=name,
                image_scan_on_push=True,
                removal_policy=RemovalPolicy.RETAIN,
            )
            repository.add_lifecycle_rule(
                description=f"Delete images older than {max_image_age_days} days",
                max_image_age=Duration.days(max_image_age_days),
                tag_status=ecr.TagStatus.ANY,
            )
            self.repositories[name] = repository
            CfnOutput(
                self,
                f"{_construct_id(name)}Uri",
                value=repository.repository_uri,
                description=f"ECR repository URI for {name}",
            )

        self._publish("repositories", dict(self.repositories))
        self._publish("repository_uris", [repo.repository_uri for repo in self.repositories.values()])
