"""Common base for platform stacks driven by the composition graph."""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Optional

from aws_cdk import CfnOutput, Stack, Token
from constructs import Construct

from infrastructure.composition.model import IAM_ROLE_ARN_PATTERN
from infrastructure.config.types import EnvironmentConfig

_ROLE_ARN = re.compile(IAM_ROLE_ARN_PATTERN)


class PlatformStack(Stack):
    """Stack that records every value it hands to downstream stacks.

    ``outputs`` is what the provisioner returns to the orchestrator; its keys
    must match the outputs declared for the stack's template.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        config: EnvironmentConfig,
        **kwargs: Any,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.env_name = environment
        self.config: EnvironmentConfig = config
        self._outputs: Dict[str, Any] = {}

    @property
    def outputs(self) -> Dict[str, Any]:
        return dict(self._outputs)

    def _publish(
        self,
        name: str,
        value: Any,
        cfn_output: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        self._outputs[name] = value
        if cfn_output:
            CfnOutput(self, cfn_output, value=value, description=description)


def validate_role_arn_if_literal(label: str, value: Optional[str]) -> None:
    """Reject literal role ARNs with the wrong shape; tokens resolve at deploy time."""
    if value is None or Token.is_unresolved(value):
        return
    if not _ROLE_ARN.match(value):
        raise ValueError(f"{label} is invalid: {value}")


def dedupe(values: Iterable[str]) -> list[str]:
    """Return items without duplicates while preserving order."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        text = str(value or "").strip()
        if not text or text in seen:
            continue
        seen.add(text)
        result.append(text)
    return result
