"""CodeBuild projects started by the application pipeline."""

from __future__ import annotations

from typing import Any, Optional

from aws_cdk import aws_codebuild as codebuild, aws_iam as iam
from constructs import Construct

from infrastructure.config.types import EnvironmentConfig
from infrastructure.stacks.base import PlatformStack, validate_role_arn_if_literal


class BuildStack(PlatformStack):
    """Docker build/push project and, optionally, a unit-test project.

    Both run as the shared CodeBuild role from the IAM stack.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        config: EnvironmentConfig,
        *,
        code_build_role_arn: str,
        ecr_repo_name: str,
        project_name: str,
        build_spec_file: str = "buildspec.yml",
        test_build_spec_file: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(scope, construct_id, environment, config, **kwargs)

        validate_role_arn_if_literal("code_build_role_arn", code_build_role_arn)

        ecr_registry = f"{self.account}.dkr.ecr.{self.region}.amazonaws.com"
        role = iam.Role.from_role_arn(self, "ImportedCodeBuildRole", code_build_role_arn, mutable=False)

        self.project = codebuild.PipelineProject(
            self,
            "Project",
            project_name=project_name,
            role=role,
            environment=codebuild.BuildEnvironment(
                build_image=codebuild.LinuxBuildImage.STANDARD_7_0,
                privileged=True,
            ),
            build_spec=codebuild.BuildSpec.from_source_filename(build_spec_file),
            environment_variables={
                "ECR_REPO": codebuild.BuildEnvironmentVariable(value=ecr_repo_name),
                "AWS_ACCOUNT_ID": codebuild.BuildEnvironmentVariable(value=self.account),
                "AWS_REGION": codebuild.BuildEnvironmentVariable(value=self.region),
            },
        )

        self.test_project: Optional[codebuild.PipelineProject] = None
        if test_build_spec_file:
            self.test_project = codebuild.PipelineProject(
                self,
                "UnitTestProject",
                project_name=f"{project_name}-tests",
                role=role,
                environment=codebuild.BuildEnvironment(
                    build_image=codebuild.LinuxBuildImage.STANDARD_7_0,
                    privileged=False,
                ),
                build_spec=codebuild.BuildSpec.from_source_filename(test_build_spec_file),
            )

        self._publish("project_name", self.project.project_name, "CodeBuildProjectName")
        self._publish("project_arn", self.project.project_arn, "CodeBuildProjectArn")
        self._publish("ecr_registry", ecr_registry, "EcrRegistry")
        self._publish(
            "test_project_name",
            self.test_project.project_name if self.test_project else None,
            "TestCodeBuildProjectName" if self.test_project else None,
        )
