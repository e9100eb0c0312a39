"""Source -> Build -> Deploy pipeline for one application."""

from __future__ import annotations

from typing import Any, Optional

from aws_cdk import (
    aws_codebuild as codebuild,
    aws_codedeploy as codedeploy,
    aws_codepipeline as codepipeline,
    aws_codepipeline_actions as cpactions,
    aws_iam as iam,
)
from constructs import Construct

from infrastructure.config.types import EnvironmentConfig
from infrastructure.stacks.base import PlatformStack, validate_role_arn_if_literal


class PipelineStack(PlatformStack):
    """Pipeline wiring existing build project and CodeDeploy group together.

    Nothing here creates roles: the pipeline, build and deploy roles are
    imported from the IAM stack by ARN, the build project and deployment group
    by name.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        config: EnvironmentConfig,
        *,
        pipeline_name: str,
        code_build_role_arn: str,
        code_deploy_role_arn: str,
        code_pipeline_role_arn: str,
        ecs_task_execution_role_arn: str,
        build_project_name: str,
        github_connection_arn: str,
        github_owner: str,
        github_repo: str,
        ecr_repo_name: str,
        ecs_app_name: str,
        ecs_deployment_group_name: str,
        ecs_task_role_arn: Optional[str] = None,
        github_branch: str = "main",
        db_secret_arn: Optional[str] = None,
        db_host: Optional[str] = None,
        appspec_path: str = "deploy/ecs/appspec.yml",
        taskdef_path: str = "deploy/ecs/taskdef.json",
        **kwargs: Any,
    ) -> None:
        super().__init__(scope, construct_id, environment, config, **kwargs)

        for label, value in (
            ("code_build_role_arn", code_build_role_arn),
            ("code_deploy_role_arn", code_deploy_role_arn),
            ("code_pipeline_role_arn", code_pipeline_role_arn),
            ("ecs_task_execution_role_arn", ecs_task_execution_role_arn),
            ("ecs_task_role_arn", ecs_task_role_arn),
        ):
            validate_role_arn_if_literal(label, value)

        pipeline_role = iam.Role.from_role_arn(self, "ImportedCodePipelineRole", code_pipeline_role_arn, mutable=False)
        build_project = codebuild.Project.from_project_name(self, "BuildProject", build_project_name)
        application = codedeploy.EcsApplication.from_ecs_application_name(self, "EcsApp", ecs_app_name)
        deployment_group = codedeploy.EcsDeploymentGroup.from_ecs_deployment_group_attributes(
            self,
            "EcsDG",
            application=application,
            deployment_group_name=ecs_deployment_group_name,
        )

        source_output = codepipeline.Artifact("SourceArtifact")
        build_output = codepipeline.Artifact("BuildArtifact")

        self.pipeline = codepipeline.Pipeline(
            self,
            "Pipeline",
            pipeline_name=pipeline_name,
            role=pipeline_role,
            stages=[
                codepipeline.StageProps(
                    stage_name="Source",
                    actions=[
                        cpactions.CodeStarConnectionsSourceAction(
                            action_name="GitHub_Source",
                            owner=github_owner,
                            repo=github_repo,
                            branch=github_branch,
                            connection_arn=github_connection_arn,
                            output=source_output,
                            trigger_on_push=True,
                        )
                    ],
                ),
                codepipeline.StageProps(
                    stage_name="Build",
                    actions=[
                        cpactions.CodeBuildAction(
                            action_name="Docker_Build",
                            project=build_project,
                            input=source_output,
                            outputs=[build_output],
                            environment_variables=self._build_variables(
                                ecr_repo_name,
                                ecs_task_execution_role_arn,
                                ecs_task_role_arn,
                                db_host,
                                db_secret_arn,
                            ),
                        )
                    ],
                ),
                codepipeline.StageProps(
                    stage_name="Deploy",
                    actions=[
                        cpactions.CodeDeployEcsDeployAction(
                            action_name="ECS_BlueGreen",
                            deployment_group=deployment_group,
                            app_spec_template_file=source_output.at_path(appspec_path),
                            task_definition_template_file=build_output.at_path(taskdef_path),
                            container_image_inputs=[
                                cpactions.CodeDeployEcsContainerImageInput(
                                    input=build_output,
                                    task_definition_placeholder="IMAGE1_NAME",
                                )
                            ],
                        )
                    ],
                ),
            ],
        )

        # CodeDeploy reads the appspec/taskdef artifacts straight from the bucket
        code_deploy_role = iam.Role.from_role_arn(self, "ImportedCodeDeployRole", code_deploy_role_arn, mutable=False)
        self.pipeline.artifact_bucket.grant_read(code_deploy_role)
        if self.pipeline.artifact_bucket.encryption_key is not None:
            self.pipeline.artifact_bucket.encryption_key.grant_decrypt(code_deploy_role)

        self._publish("pipeline_name", self.pipeline.pipeline_name, "PipelineName")
        self._publish("artifact_bucket_name", self.pipeline.artifact_bucket.bucket_name, "ArtifactBucketName")

    @staticmethod
    def _build_variables(
        ecr_repo_name: str,
        execution_role_arn: str,
        task_role_arn: Optional[str],
        db_host: Optional[str],
        db_secret_arn: Optional[str],
    ) -> dict[str, codebuild.BuildEnvironmentVariable]:
        values = {
            "ECR_REPO": ecr_repo_name,
            "EXEC_ROLE_ARN": execution_role_arn,
            "TASK_ROLE_ARN": task_role_arn or execution_role_arn,
            "DB_HOST": db_host or "",
            "DB_SECRET_ARN": db_secret_arn or "",
        }
        return {name: codebuild.BuildEnvironmentVariable(value=value) for name, value in values.items()}
