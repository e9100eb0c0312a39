"""Fixed declaration sequences for each platform revision.

Revisions grow the platform step by step: ``network`` lays down the VPC and
an HTTP load balancer, ``foundation`` adds the container runtime, database,
IAM and build project, ``bluegreen`` adds the certificate, CodeDeploy and the
pipeline, and ``multi-app`` repeats the per-application stacks for every
configured application on shared network, registry, database and IAM stacks.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Sequence

from infrastructure.catalog.descriptors import (
    ACM_STACK,
    ALB_STACK,
    BUILD_STACK,
    CONNECTION_STACK,
    DEPLOY_STACK,
    ECR_STACK,
    ECS_STACK,
    IAM_STACK,
    NET_STACK,
    PIPELINE_STACK,
    RDS_STACK,
    VPCE_STACK,
    numbered,
)
from infrastructure.composition.model import StackInstance, declare, ref

DEFAULT_REVISION = "multi-app"


def _applications(config: Dict[str, Any], limit: int | None = None) -> List[Dict[str, Any]]:
    apps = list(config.get("applications") or [])
    if not apps:
        raise ValueError("Configuration declares no applications")
    seen: set = set()
    for app in apps:
        if app["name"] in seen:
            raise ValueError(f"Duplicate application name: {app['name']}")
        seen.add(app["name"])
    return apps[:limit] if limit else apps


def _github_repo(config: Dict[str, Any], app: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "owner": config.get("github_owner", ""),
        "repo": app["github_repo"],
        "branches": list(app.get("github_branches") or ["main"]),
    }


def _network(config: Dict[str, Any], apps: Sequence[Dict[str, Any]]) -> List[StackInstance]:
    return [
        declare(
            NET_STACK,
            app_names=[app["name"] for app in apps],
            cidr=config.get("vpc_cidr"),
            max_azs=config.get("max_azs"),
        ),
        declare(
            VPCE_STACK,
            vpc=ref("NetStack", "vpc"),
            vpce_sg=ref("NetStack", "vpce_sg"),
            jump_sg=ref("NetStack", "jump_sg"),
        ),
    ]


def _acm(config: Dict[str, Any]) -> StackInstance:
    return declare(
        ACM_STACK,
        domain_name=config.get("domain_name"),
        hosted_zone_name=config.get("hosted_zone_name"),
        hosted_zone_id=config.get("hosted_zone_id") or None,
    )


def _alb(app: Dict[str, Any], index: int, *, https: bool) -> StackInstance:
    return declare(
        numbered(ALB_STACK, index),
        vpc=ref("NetStack", "vpc"),
        alb_sg=ref("NetStack", "alb_sgs", app["name"]),
        load_balancer_name=app.get("load_balancer_name"),
        certificate_arn=ref("AcmStack", "certificate_arn") if https else None,
    )


def _ecr(config: Dict[str, Any], apps: Sequence[Dict[str, Any]]) -> StackInstance:
    return declare(
        ECR_STACK,
        repository_names=[app["ecr_repo_name"] for app in apps],
        max_image_age_days=config.get("ecr_max_image_age_days"),
    )


def _rds(config: Dict[str, Any], apps: Sequence[Dict[str, Any]]) -> StackInstance:
    return declare(
        RDS_STACK,
        vpc=ref("NetStack", "vpc"),
        db_sg=ref("NetStack", "db_sg"),
        app_names=[app["name"] for app in apps],
        instance_type=config.get("db_instance_type"),
        database_name=config.get("db_name"),
        instance_identifier=config.get("db_instance_identifier"),
    )


def _ecs(app: Dict[str, Any], index: int) -> StackInstance:
    return declare(
        numbered(ECS_STACK, index),
        vpc=ref("NetStack", "vpc"),
        ecs_sg=ref("NetStack", "ecs_sg"),
        repository=ref("EcrStack", "repositories", app["ecr_repo_name"]),
        target_group=ref(numbered(ALB_STACK, index).name, "target_group_blue"),
        app_name=app["name"],
        image_tag=app.get("image_tag"),
        desired_count=app.get("desired_count"),
        cluster_name=app.get("cluster_name"),
        service_name=app.get("service_name"),
        task_family=app.get("task_family"),
    )


def _connection(config: Dict[str, Any]) -> StackInstance:
    return declare(CONNECTION_STACK, connection_name=config.get("github_connection_name"))


def _iam(config: Dict[str, Any], apps: Sequence[Dict[str, Any]]) -> StackInstance:
    return declare(
        IAM_STACK,
        ecr_repo_names=[app["ecr_repo_name"] for app in apps],
        pipeline_names=[app["pipeline_name"] for app in apps],
        github_repos=[_github_repo(config, app) for app in apps],
        app_secret_arns=ref("RdsStack", "app_secret_arns"),
        github_connection_arn=ref("ConnectionStack", "connection_arn"),
    )


def _build(app: Dict[str, Any], index: int, *, with_tests: bool) -> StackInstance:
    return declare(
        numbered(BUILD_STACK, index),
        code_build_role_arn=ref("IamStack", "code_build_role_arn"),
        ecr_repo_name=app["ecr_repo_name"],
        project_name=app["build_project_name"],
        test_build_spec_file=app.get("test_build_spec_file") if with_tests else None,
    )


def _deploy(app: Dict[str, Any], index: int) -> StackInstance:
    alb = numbered(ALB_STACK, index).name
    ecs = numbered(ECS_STACK, index).name
    return declare(
        numbered(DEPLOY_STACK, index),
        cluster_name=ref(ecs, "cluster_name"),
        service_name=ref(ecs, "service_name"),
        prod_listener_arn=ref(alb, "prod_listener_arn"),
        test_listener_arn=ref(alb, "test_listener_arn"),
        tg_blue_name=ref(alb, "tg_blue_name"),
        tg_green_name=ref(alb, "tg_green_name"),
        code_deploy_role_arn=ref("IamStack", "code_deploy_role_arn"),
        application_name=app["deploy_application_name"],
        deployment_group_name=app["deployment_group_name"],
    )


def _pipeline(config: Dict[str, Any], app: Dict[str, Any], index: int) -> StackInstance:
    deploy = numbered(DEPLOY_STACK, index).name
    branches = app.get("github_branches") or ["main"]
    return declare(
        numbered(PIPELINE_STACK, index),
        pipeline_name=app["pipeline_name"],
        code_build_role_arn=ref("IamStack", "code_build_role_arn"),
        code_deploy_role_arn=ref("IamStack", "code_deploy_role_arn"),
        code_pipeline_role_arn=ref("IamStack", "code_pipeline_role_arn"),
        ecs_task_execution_role_arn=ref("IamStack", "ecs_task_execution_role_arn"),
        ecs_task_role_arn=ref("IamStack", "app_task_role_arn"),
        build_project_name=ref(numbered(BUILD_STACK, index).name, "project_name"),
        github_connection_arn=ref("ConnectionStack", "connection_arn"),
        github_owner=config.get("github_owner"),
        github_repo=app["github_repo"],
        github_branch=branches[0],
        ecr_repo_name=app["ecr_repo_name"],
        ecs_app_name=ref(deploy, "application_name"),
        ecs_deployment_group_name=ref(deploy, "deployment_group_name"),
        db_secret_arn=ref("RdsStack", "app_secret_arns", index),
        db_host=ref("RdsStack", "db_host"),
    )


def network_revision(config: Dict[str, Any]) -> List[StackInstance]:
    (app,) = _applications(config, limit=1)
    return [*_network(config, [app]), _alb(app, 0, https=False)]


def foundation_revision(config: Dict[str, Any]) -> List[StackInstance]:
    (app,) = _applications(config, limit=1)
    return [
        *network_revision(config),
        _ecr(config, [app]),
        _rds(config, [app]),
        _ecs(app, 0),
        _connection(config),
        _iam(config, [app]),
        _build(app, 0, with_tests=False),
    ]


def bluegreen_revision(config: Dict[str, Any]) -> List[StackInstance]:
    (app,) = _applications(config, limit=1)
    https = bool(app.get("https", True))
    stacks = _network(config, [app])
    if https:
        stacks.append(_acm(config))
    stacks += [
        _alb(app, 0, https=https),
        _ecr(config, [app]),
        _rds(config, [app]),
        _ecs(app, 0),
        _connection(config),
        _iam(config, [app]),
        _build(app, 0, with_tests=True),
        _deploy(app, 0),
        _pipeline(config, app, 0),
    ]
    return stacks


def multi_app_revision(config: Dict[str, Any]) -> List[StackInstance]:
    apps = _applications(config)
    stacks = _network(config, apps)
    if any(app.get("https", False) for app in apps):
        stacks.append(_acm(config))
    stacks += [_alb(app, idx, https=bool(app.get("https", False))) for idx, app in enumerate(apps)]
    stacks += [_ecr(config, apps), _rds(config, apps)]
    stacks += [_ecs(app, idx) for idx, app in enumerate(apps)]
    stacks += [_connection(config), _iam(config, apps)]
    stacks += [_build(app, idx, with_tests=True) for idx, app in enumerate(apps)]
    stacks += [_deploy(app, idx) for idx, app in enumerate(apps)]
    stacks += [_pipeline(config, app, idx) for idx, app in enumerate(apps)]
    return stacks


REVISIONS: Dict[str, Callable[[Dict[str, Any]], List[StackInstance]]] = {
    "network": network_revision,
    "foundation": foundation_revision,
    "bluegreen": bluegreen_revision,
    "multi-app": multi_app_revision,
}


def declare_stacks(config: Dict[str, Any], revision: str | None = None) -> List[StackInstance]:
    """Return the hard-coded stack declarations for ``revision``.

    Falls back to the revision named in ``config`` and then to the default.
    """
    name = revision or config.get("revision") or DEFAULT_REVISION
    if name not in REVISIONS:
        raise ValueError(f"Unknown revision: {name} (expected one of {', '.join(REVISIONS)})")
    return REVISIONS[name](config)
