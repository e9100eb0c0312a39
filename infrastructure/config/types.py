"""Typed configuration contracts for environment-specific settings."""

from __future__ import annotations

from typing import Dict, List, NotRequired, Required, TypedDict


class ApplicationConfig(TypedDict, total=False):
    """One containerised application served behind its own ALB and pipeline."""

    name: Required[str]
    ecr_repo_name: Required[str]
    pipeline_name: Required[str]
    github_repo: Required[str]
    github_branches: NotRequired[List[str]]

    deploy_application_name: Required[str]
    deployment_group_name: Required[str]
    load_balancer_name: NotRequired[str]
    build_project_name: Required[str]
    test_build_spec_file: NotRequired[str]

    cluster_name: NotRequired[str]
    service_name: NotRequired[str]
    task_family: NotRequired[str]
    image_tag: NotRequired[str]
    desired_count: NotRequired[int]
    https: NotRequired[bool]


class EnvironmentConfig(TypedDict, total=False):
    """Strongly-typed environment configuration contract."""

    region: Required[str]
    account_id: NotRequired[str | None]

    revision: NotRequired[str]

    vpc_cidr: NotRequired[str]
    max_azs: NotRequired[int]

    domain_name: NotRequired[str]
    hosted_zone_name: NotRequired[str]
    hosted_zone_id: NotRequired[str]

    github_owner: NotRequired[str]
    github_connection_name: NotRequired[str]
    github_oidc_provider_arn: NotRequired[str]

    db_instance_type: NotRequired[str]
    db_name: NotRequired[str]
    db_instance_identifier: NotRequired[str]

    ecr_max_image_age_days: NotRequired[int]

    applications: Required[List[ApplicationConfig]]

    tags: NotRequired[Dict[str, str]]
