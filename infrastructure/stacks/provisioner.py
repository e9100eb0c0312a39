"""Provisioner that instantiates CDK stacks inside one App."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Type

import aws_cdk as cdk

from infrastructure.catalog import cloudformation_stack_name
from infrastructure.composition.model import DeploymentEnvironment, StackDescriptor
from infrastructure.config.types import EnvironmentConfig
from infrastructure.stacks.acm_stack import AcmStack
from infrastructure.stacks.alb_stack import AlbStack
from infrastructure.stacks.base import PlatformStack
from infrastructure.stacks.build_stack import BuildStack
from infrastructure.stacks.connection_stack import ConnectionStack
from infrastructure.stacks.deploy_stack import DeployStack
from infrastructure.stacks.ecr_stack import EcrStack
from infrastructure.stacks.ecs_stack import EcsStack
from infrastructure.stacks.iam_stack import IamStack
from infrastructure.stacks.net_stack import NetStack
from infrastructure.stacks.pipeline_stack import PipelineStack
from infrastructure.stacks.rds_stack import RdsStack
from infrastructure.stacks.vpce_stack import VpceStack
from infrastructure.utils.logger import get_logger

logger = get_logger(__name__)

STACK_CLASSES: Dict[str, Type[PlatformStack]] = {
    "NetStack": NetStack,
    "VpceStack": VpceStack,
    "AcmStack": AcmStack,
    "AlbStack": AlbStack,
    "EcrStack": EcrStack,
    "RdsStack": RdsStack,
    "EcsStack": EcsStack,
    "ConnectionStack": ConnectionStack,
    "IamStack": IamStack,
    "BuildStack": BuildStack,
    "DeployStack": DeployStack,
    "PipelineStack": PipelineStack,
}


class CdkProvisioner:
    """Create one CDK stack per descriptor and return its published outputs.

    Every stack lands in the same ``cdk.App`` so construct handles and tokens
    can flow between stacks; CDK turns them into cross-stack exports at synth
    time.
    """

    def __init__(
        self,
        app: cdk.App,
        environment_name: str,
        config: EnvironmentConfig,
        stack_classes: Optional[Mapping[str, Type[PlatformStack]]] = None,
    ) -> None:
        self.app = app
        self.environment_name = environment_name
        self.config = config
        self.stack_classes = dict(STACK_CLASSES if stack_classes is None else stack_classes)
        self.stacks: Dict[str, PlatformStack] = {}

    def provision(
        self,
        descriptor: StackDescriptor,
        inputs: Mapping[str, Any],
        environment: DeploymentEnvironment,
    ) -> Mapping[str, Any]:
        stack_class = self.stack_classes.get(descriptor.template or descriptor.name)
        if stack_class is None:
            raise KeyError(f"No stack class registered for template '{descriptor.template}'")

        stack_id = cloudformation_stack_name(self.environment_name, descriptor.name)
        logger.info(
            "Creating CDK stack",
            extra={"stack": descriptor.name, "template": descriptor.template, "stack_id": stack_id},
        )
        stack = stack_class(
            self.app,
            stack_id,
            environment=self.environment_name,
            config=self.config,
            env=cdk.Environment(account=environment.account, region=environment.region),
            description=descriptor.description or None,
            **dict(inputs),
        )
        cdk.Tags.of(stack).add("Stack", descriptor.name)
        self.stacks[descriptor.name] = stack
        return stack.outputs
