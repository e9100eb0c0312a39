"""Stack templates and the fixed declaration sequences built from them."""

from .descriptors import TEMPLATES, numbered
from .revisions import DEFAULT_REVISION, REVISIONS, declare_stacks

STACK_PREFIX = "EcsDemo"


def cloudformation_stack_name(environment: str, stack: str) -> str:
    """CloudFormation stack name used for ``stack`` in ``environment``."""
    return f"{STACK_PREFIX}-{environment}-{stack}"


__all__ = [
    "DEFAULT_REVISION",
    "REVISIONS",
    "STACK_PREFIX",
    "TEMPLATES",
    "cloudformation_stack_name",
    "declare_stacks",
    "numbered",
]
