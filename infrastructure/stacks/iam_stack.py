"""Service roles shared by every application's build, deploy and runtime."""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional, Sequence

from aws_cdk import CfnOutput, Fn, aws_iam as iam, aws_secretsmanager as secretsmanager
from constructs import Construct

from infrastructure.config.types import EnvironmentConfig
from infrastructure.stacks.base import PlatformStack, dedupe

ARTIFACT_ACTIONS = ["s3:GetObject", "s3:PutObject", "s3:GetBucketLocation", "s3:ListBucket"]
KMS_ACTIONS = ["kms:Decrypt", "kms:Encrypt", "kms:GenerateDataKey*", "kms:DescribeKey"]


class IamStack(PlatformStack):
    """Roles for CodeBuild, CodeDeploy, CodePipeline, ECS tasks and GitHub Actions.

    The per-application arguments are parallel lists: item ``i`` of
    ``ecr_repo_names``, ``pipeline_names``, ``github_repos`` and
    ``app_secret_arns`` all describe the same application.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        config: EnvironmentConfig,
        *,
        ecr_repo_names: Sequence[str],
        pipeline_names: Sequence[str],
        github_repos: Sequence[Mapping[str, Any]],
        app_secret_arns: Sequence[str],
        github_connection_arn: Optional[str] = None,
        oidc_role_name: str = "GitHubOIDCRole",
        **kwargs: Any,
    ) -> None:
        super().__init__(scope, construct_id, environment, config, **kwargs)

        self.ecr_repo_arns = [
            self.format_arn(service="ecr", resource="repository", resource_name=name) for name in ecr_repo_names
        ]
        self.pipeline_arns = [self.format_arn(service="codepipeline", resource=name) for name in pipeline_names]
        self.app_secret_arns = list(app_secret_arns)

        self.code_build_role = self._create_code_build_role()
        self.code_deploy_role = self._create_code_deploy_role()
        self.ecs_task_execution_role = self._create_task_role(
            "EcsTaskExecutionRole",
            "Execution role for ECS tasks",
            managed_policy="service-role/AmazonECSTaskExecutionRolePolicy",
        )
        self.app_task_role = self._create_task_role("AppTaskRole", "Application task role for ECS tasks")
        self._grant_app_secrets()
        self.code_pipeline_role = self._create_code_pipeline_role(github_connection_arn)

        self.github_oidc_provider = self._create_github_oidc_provider()
        self.github_oidc_role = self._create_github_oidc_role(oidc_role_name, github_repos)

        self._create_outputs()

    def _create_code_build_role(self) -> iam.Role:
        role = iam.Role(
            self,
            "CodeBuildRole",
            assumed_by=iam.ServicePrincipal("codebuild.amazonaws.com"),
            description="Allows CodeBuild to push images to ECR and write logs",
        )
        role.add_to_policy(
            iam.PolicyStatement(
                actions=["logs:CreateLogGroup", "logs:CreateLogStream", "logs:PutLogEvents"],
                resources=["*"],
            )
        )
        role.add_to_policy(iam.PolicyStatement(actions=["ecr:GetAuthorizationToken"], resources=["*"]))
        role.add_to_policy(
            iam.PolicyStatement(
                actions=[
                    "ecr:BatchCheckLayerAvailability",
                    "ecr:InitiateLayerUpload",
                    "ecr:UploadLayerPart",
                    "ecr:CompleteLayerUpload",
                    "ecr:PutImage",
                    "ecr:BatchGetImage",
                    "ecr:GetDownloadUrlForLayer",
                ],
                resources=self.ecr_repo_arns,
            )
        )
        role.add_to_policy(iam.PolicyStatement(actions=ARTIFACT_ACTIONS, resources=["*"]))
        role.add_to_policy(iam.PolicyStatement(actions=KMS_ACTIONS, resources=["*"]))
        # Test reports (JUnit, coverage) published by the unit-test project
        role.add_to_policy(
            iam.PolicyStatement(actions=["codebuild:*Report*", "codebuild:BatchPut*"], resources=["*"])
        )
        return role

    def _create_code_deploy_role(self) -> iam.Role:
        role = iam.Role(
            self,
            "CodeDeployRole",
            assumed_by=iam.ServicePrincipal("codedeploy.amazonaws.com"),
            description="Allows CodeDeploy to perform ECS Blue/Green with ALB",
        )
        role.add_managed_policy(iam.ManagedPolicy.from_aws_managed_policy_name("AWSCodeDeployRoleForECS"))
        return role

    def _create_task_role(self, construct_id: str, description: str, managed_policy: Optional[str] = None) -> iam.Role:
        role = iam.Role(
            self,
            construct_id,
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            description=description,
        )
        if managed_policy:
            role.add_managed_policy(iam.ManagedPolicy.from_aws_managed_policy_name(managed_policy))
        return role

    def _grant_app_secrets(self) -> None:
        for index, arn in enumerate(self.app_secret_arns):
            secret = secretsmanager.Secret.from_secret_complete_arn(self, f"AppSecret{index}", arn)
            secret.grant_read(self.app_task_role)
            secret.grant_read(self.ecs_task_execution_role)

    def _create_code_pipeline_role(self, github_connection_arn: Optional[str]) -> iam.Role:
        role = iam.Role(
            self,
            "CodePipelineRole",
            assumed_by=iam.ServicePrincipal("codepipeline.amazonaws.com"),
            description="Allows CodePipeline to orchestrate Source/Build/Deploy",
        )
        role.add_to_policy(
            iam.PolicyStatement(actions=["codebuild:StartBuild", "codebuild:BatchGetBuilds"], resources=["*"])
        )
        role.add_to_policy(
            iam.PolicyStatement(
                actions=[
                    "codedeploy:CreateDeployment",
                    "codedeploy:Get*",
                    "codedeploy:RegisterApplicationRevision",
                ],
                resources=["*"],
            )
        )
        role.add_to_policy(iam.PolicyStatement(actions=ARTIFACT_ACTIONS, resources=["*"]))
        role.add_to_policy(iam.PolicyStatement(actions=KMS_ACTIONS, resources=["*"]))
        # CodeDeploy registers new task definitions that run as these roles
        role.add_to_policy(
            iam.PolicyStatement(
                actions=["ecs:RegisterTaskDefinition", "ecs:DescribeTaskDefinition", "ecs:DescribeServices"],
                resources=["*"],
            )
        )
        role.add_to_policy(
            iam.PolicyStatement(
                actions=["iam:PassRole"],
                resources=[
                    self.code_build_role.role_arn,
                    self.code_deploy_role.role_arn,
                    self.ecs_task_execution_role.role_arn,
                    self.app_task_role.role_arn,
                ],
                conditions={
                    "StringEqualsIfExists": {
                        "iam:PassedToService": [
                            "codebuild.amazonaws.com",
                            "codedeploy.amazonaws.com",
                            "ecs-tasks.amazonaws.com",
                        ]
                    }
                },
            )
        )
        if github_connection_arn:
            role.add_to_policy(
                iam.PolicyStatement(
                    actions=["codestar-connections:UseConnection", "codeconnections:UseConnection"],
                    resources=[github_connection_arn],
                )
            )
        return role

    def _create_github_oidc_provider(self) -> iam.IOpenIdConnectProvider:
        """Import an existing GitHub OIDC provider or create a new one.

        OIDC providers are account-wide resources. When one already exists, re-use it
        to avoid ``EntityAlreadyExistsException`` during deployments. Resolution order:

        1. Explicit config value ``config["github_oidc_provider_arn"]``
        2. CDK context value ``githubOidcProviderArn``
        3. Environment variable ``GITHUB_OIDC_PROVIDER_ARN``

        If no ARN is supplied, a new provider is created.
        """
        existing_provider_arn = self._resolve_github_oidc_provider_arn()
        if existing_provider_arn:
            return iam.OpenIdConnectProvider.from_open_id_connect_provider_arn(
                self,
                "GitHubOIDC",
                existing_provider_arn,
            )
        return iam.OpenIdConnectProvider(
            self,
            "GitHubOIDC",
            url="https://token.actions.githubusercontent.com",
            client_ids=["sts.amazonaws.com"],
        )

    def _resolve_github_oidc_provider_arn(self) -> Optional[str]:
        config_arn_raw = self.config.get("github_oidc_provider_arn")
        if isinstance(config_arn_raw, str) and config_arn_raw.strip():
            return config_arn_raw.strip()

        context_arn = self.node.try_get_context("githubOidcProviderArn")
        if isinstance(context_arn, str) and context_arn.strip():
            return context_arn.strip()

        env_arn = os.getenv("GITHUB_OIDC_PROVIDER_ARN", "")
        if env_arn.strip():
            return env_arn.strip()

        return None

    def _create_github_oidc_role(self, role_name: str, github_repos: Sequence[Mapping[str, Any]]) -> iam.Role:
        subjects = dedupe(
            f"repo:{repo['owner']}/{repo['repo']}:ref:refs/heads/{branch}"
            for repo in github_repos
            for branch in (repo.get("branches") or ["main"])
        )
        role = iam.Role(
            self,
            "GitHubOIDCRole",
            role_name=role_name,
            description="GitHub Actions OIDC role for the application repositories",
            assumed_by=iam.OpenIdConnectPrincipal(
                self.github_oidc_provider,
                conditions={
                    "StringEquals": {"token.actions.githubusercontent.com:aud": "sts.amazonaws.com"},
                    "StringLike": {"token.actions.githubusercontent.com:sub": subjects},
                },
            ),
        )
        role.add_to_policy(
            iam.PolicyStatement(actions=["codepipeline:StartPipelineExecution"], resources=self.pipeline_arns)
        )
        return role

    def _create_outputs(self) -> None:
        self._publish("code_build_role_arn", self.code_build_role.role_arn, "CodeBuildRoleArn")
        self._publish("code_deploy_role_arn", self.code_deploy_role.role_arn, "CodeDeployRoleArn")
        self._publish("code_pipeline_role_arn", self.code_pipeline_role.role_arn, "CodePipelineRoleArn")
        self._publish(
            "ecs_task_execution_role_arn", self.ecs_task_execution_role.role_arn, "ECSTaskExecutionRoleArn"
        )
        self._publish("app_task_role_arn", self.app_task_role.role_arn, "AppTaskRoleArn")
        self._publish("github_oidc_role_arn", self.github_oidc_role.role_arn, "GitHubOIDCRoleArn")

        CfnOutput(self, "TargetPipelineArns", value=Fn.join(",", self.pipeline_arns))
        CfnOutput(self, "TargetEcrRepoArns", value=Fn.join(",", self.ecr_repo_arns))
        CfnOutput(self, "TargetAppSecretArns", value=Fn.join(",", self.app_secret_arns))
