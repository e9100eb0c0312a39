"""Descriptor templates for every stack of the ECS blue/green platform.

Each template declares the inputs a stack needs and the outputs it publishes.
Parameter names are shared with the keyword arguments of the matching CDK
stack class in ``infrastructure.stacks``; ``cfn_output`` names the
CloudFormation output a deployed stack carries for post-deploy validation.
"""

from __future__ import annotations

from typing import Dict

from infrastructure.composition.model import (
    IAM_ROLE_ARN_PATTERN,
    OutputSpec,
    ParamKind,
    StackDescriptor,
    optional,
    required,
)

HANDLE = ParamKind.HANDLE
LIST = ParamKind.LIST

APPLICATIONS_GROUP = "applications"


NET_STACK = StackDescriptor(
    name="NetStack",
    description="VPC with public/isolated subnet groups and the security groups wired between tiers",
    inputs=(
        required("app_names", LIST, description="One ALB security group is created per application"),
        optional("cidr", "10.0.0.0/16"),
        optional("max_azs", 2),
    ),
    outputs=(
        OutputSpec("vpc", HANDLE),
        OutputSpec("vpc_id", cfn_output="VpcId"),
        OutputSpec("ecs_sg", HANDLE),
        OutputSpec("vpce_sg", HANDLE),
        OutputSpec("db_sg", HANDLE),
        OutputSpec("jump_sg", HANDLE),
        OutputSpec("alb_sgs", HANDLE, keyed_by="app_names"),
        OutputSpec("ecs_sg_id", cfn_output="EcsSgId"),
        OutputSpec("vpce_sg_id", cfn_output="VpceSgId"),
        OutputSpec("db_sg_id", cfn_output="DbSgId"),
        OutputSpec("jump_sg_id", cfn_output="JumpSgId"),
    ),
)

VPCE_STACK = StackDescriptor(
    name="VpceStack",
    description="S3 gateway endpoint plus interface endpoints for ECR, Secrets Manager, Logs and SSM",
    inputs=(
        required("vpc", HANDLE),
        required("vpce_sg", HANDLE),
        optional("jump_sg", kind=HANDLE),
    ),
    outputs=(OutputSpec("s3_gateway_endpoint_id", cfn_output="S3GatewayEndpointId"),),
)

ACM_STACK = StackDescriptor(
    name="AcmStack",
    description="DNS-validated certificate for the public ALB domain",
    inputs=(
        required("domain_name"),
        required("hosted_zone_name"),
        optional("hosted_zone_id"),
    ),
    outputs=(OutputSpec("certificate_arn", cfn_output="CertificateArn"),),
)

ALB_STACK = StackDescriptor(
    name="AlbStack",
    description="Internet-facing ALB with blue/green target groups, prod/test listeners and a WAF web ACL",
    inputs=(
        required("vpc", HANDLE),
        required("alb_sg", HANDLE),
        optional("load_balancer_name"),
        optional("certificate_arn", description="HTTPS prod listener when set, plain HTTP otherwise"),
        optional("subnet_group_name", "alb-public"),
        optional("test_listener_port", 9001),
    ),
    outputs=(
        OutputSpec("dns_name", cfn_output="AlbDnsName"),
        OutputSpec("web_acl_arn", cfn_output="AlbWebAclArn"),
        OutputSpec("prod_listener_arn", cfn_output="ProdListenerArn"),
        OutputSpec("test_listener_arn", cfn_output="TestListenerArn"),
        OutputSpec("tg_blue_name", cfn_output="TgBlueName"),
        OutputSpec("tg_green_name", cfn_output="TgGreenName"),
        OutputSpec("tg_blue_arn", cfn_output="TgBlueArn"),
        OutputSpec("tg_green_arn", cfn_output="TgGreenArn"),
        OutputSpec("target_group_blue", HANDLE),
        OutputSpec("target_group_green", HANDLE),
    ),
)

ECR_STACK = StackDescriptor(
    name="EcrStack",
    description="Scan-on-push ECR repositories with an image age lifecycle rule",
    inputs=(
        required("repository_names", LIST),
        optional("max_image_age_days", 7),
    ),
    outputs=(
        OutputSpec("repositories", HANDLE, keyed_by="repository_names"),
        OutputSpec("repository_uris", LIST, keyed_by="repository_names"),
    ),
)

RDS_STACK = StackDescriptor(
    name="RdsStack",
    description="MySQL instance in the db-private subnets plus one credentials secret per application",
    inputs=(
        required("vpc", HANDLE),
        required("db_sg", HANDLE),
        required("app_names", LIST),
        optional("instance_type", "t3.micro"),
        optional("database_name", "customer_info"),
        optional("instance_identifier", "customer-info-db"),
    ),
    outputs=(
        OutputSpec("db_host", cfn_output="DbEndpoint"),
        OutputSpec("db_secret_arn", cfn_output="DbSecretArn"),
        OutputSpec("app_secret_arns", LIST, keyed_by="app_names"),
    ),
)

ECS_STACK = StackDescriptor(
    name="EcsStack",
    description="Fargate cluster and CodeDeploy-controlled service attached to the blue target group",
    inputs=(
        required("vpc", HANDLE),
        required("ecs_sg", HANDLE),
        required("repository", HANDLE),
        required("target_group", HANDLE),
        required("app_name"),
        optional("image_tag", "latest"),
        optional("desired_count", 2),
        optional("min_capacity", 2),
        optional("max_capacity", 4),
        optional("cluster_name"),
        optional("service_name"),
        optional("task_family"),
        optional("subnet_group_name", "ecs-private"),
    ),
    outputs=(
        OutputSpec("cluster_name", cfn_output="ClusterName"),
        OutputSpec("cluster_arn", cfn_output="ClusterArn"),
        OutputSpec("service_name", cfn_output="ServiceName"),
        OutputSpec("task_family", cfn_output="TaskFamily"),
    ),
)

CONNECTION_STACK = StackDescriptor(
    name="ConnectionStack",
    description="CodeStar connection to GitHub (approved manually in the console)",
    inputs=(optional("connection_name", "CustomerInfoGitHub"),),
    outputs=(OutputSpec("connection_arn", cfn_output="GitHubConnectionArn"),),
)

IAM_STACK = StackDescriptor(
    name="IamStack",
    description="Service roles for CodeBuild, CodeDeploy, CodePipeline and ECS plus a GitHub OIDC role",
    inputs=(
        required("ecr_repo_names", LIST, correlation_group=APPLICATIONS_GROUP),
        required("pipeline_names", LIST, correlation_group=APPLICATIONS_GROUP),
        required("github_repos", LIST, correlation_group=APPLICATIONS_GROUP),
        required("app_secret_arns", LIST, correlation_group=APPLICATIONS_GROUP),
        optional("github_connection_arn"),
        optional("oidc_role_name", "GitHubOIDCRole"),
    ),
    outputs=(
        OutputSpec("code_build_role_arn", cfn_output="CodeBuildRoleArn"),
        OutputSpec("code_deploy_role_arn", cfn_output="CodeDeployRoleArn"),
        OutputSpec("code_pipeline_role_arn", cfn_output="CodePipelineRoleArn"),
        OutputSpec("ecs_task_execution_role_arn", cfn_output="ECSTaskExecutionRoleArn"),
        OutputSpec("app_task_role_arn", cfn_output="AppTaskRoleArn"),
        OutputSpec("github_oidc_role_arn", cfn_output="GitHubOIDCRoleArn"),
    ),
)

BUILD_STACK = StackDescriptor(
    name="BuildStack",
    description="Privileged CodeBuild project that builds and pushes the application image",
    inputs=(
        required("code_build_role_arn", pattern=IAM_ROLE_ARN_PATTERN),
        required("ecr_repo_name"),
        required("project_name"),
        optional("build_spec_file", "buildspec.yml"),
        optional("test_build_spec_file", description="Adds a unit-test project when set"),
    ),
    outputs=(
        OutputSpec("project_name", cfn_output="CodeBuildProjectName"),
        OutputSpec("project_arn", cfn_output="CodeBuildProjectArn"),
        OutputSpec("ecr_registry", cfn_output="EcrRegistry"),
        OutputSpec("test_project_name"),
    ),
)

DEPLOY_STACK = StackDescriptor(
    name="DeployStack",
    description="CodeDeploy ECS application and blue/green deployment group",
    inputs=(
        required("cluster_name"),
        required("service_name"),
        required("prod_listener_arn"),
        required("test_listener_arn"),
        required("tg_blue_name"),
        required("tg_green_name"),
        required("code_deploy_role_arn", pattern=IAM_ROLE_ARN_PATTERN),
        required("application_name"),
        required("deployment_group_name"),
        optional("termination_wait_minutes", 5),
        optional("ready_wait_minutes", 300),
    ),
    outputs=(
        OutputSpec("application_name", cfn_output="EcsAppName"),
        OutputSpec("deployment_group_name", cfn_output="EcsDeploymentGroupName"),
    ),
)

PIPELINE_STACK = StackDescriptor(
    name="PipelineStack",
    description="Source (GitHub) -> Build (CodeBuild) -> Deploy (CodeDeploy blue/green) pipeline",
    inputs=(
        required("pipeline_name"),
        required("code_build_role_arn", pattern=IAM_ROLE_ARN_PATTERN),
        required("code_deploy_role_arn", pattern=IAM_ROLE_ARN_PATTERN),
        required("code_pipeline_role_arn", pattern=IAM_ROLE_ARN_PATTERN),
        required("ecs_task_execution_role_arn", pattern=IAM_ROLE_ARN_PATTERN),
        optional("ecs_task_role_arn", pattern=IAM_ROLE_ARN_PATTERN),
        required("build_project_name"),
        required("github_connection_arn"),
        required("github_owner"),
        required("github_repo"),
        optional("github_branch", "main"),
        required("ecr_repo_name"),
        required("ecs_app_name"),
        required("ecs_deployment_group_name"),
        optional("db_secret_arn"),
        optional("db_host"),
        optional("appspec_path", "deploy/ecs/appspec.yml"),
        optional("taskdef_path", "deploy/ecs/taskdef.json"),
    ),
    outputs=(
        OutputSpec("pipeline_name", cfn_output="PipelineName"),
        OutputSpec("artifact_bucket_name", cfn_output="ArtifactBucketName"),
    ),
)


TEMPLATES: Dict[str, StackDescriptor] = {
    descriptor.name: descriptor
    for descriptor in (
        NET_STACK,
        VPCE_STACK,
        ACM_STACK,
        ALB_STACK,
        ECR_STACK,
        RDS_STACK,
        ECS_STACK,
        CONNECTION_STACK,
        IAM_STACK,
        BUILD_STACK,
        DEPLOY_STACK,
        PIPELINE_STACK,
    )
}


def numbered(descriptor: StackDescriptor, index: int) -> StackDescriptor:
    """Name the ``index``-th copy of a template: AlbStack, Alb2Stack, Alb3Stack..."""
    if index == 0:
        return descriptor
    base = descriptor.name[: -len("Stack")] if descriptor.name.endswith("Stack") else descriptor.name
    return descriptor.named(f"{base}{index + 1}Stack")
