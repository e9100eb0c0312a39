"""Stack dependency graph: declaration model, validation and orchestration."""

from .errors import (
    CorrelationLengthMismatchError,
    CyclicDependencyError,
    DuplicateOutputError,
    DuplicateStackError,
    InvalidInputError,
    MissingInputError,
    OrchestrationError,
    ProvisioningError,
    UnknownProducerError,
    UnresolvedOutputError,
)
from .graph import CompositionGraph, build_graph
from .model import (
    IAM_ROLE_ARN_PATTERN,
    DeploymentEnvironment,
    OutputRef,
    OutputSpec,
    ParamKind,
    ParamSpec,
    ResourceHandle,
    StackDescriptor,
    StackInstance,
    StackState,
    declare,
    optional,
    ref,
    required,
)
from .orchestrator import OrchestrationReport, Orchestrator, Provisioner
from .provisioners import CallableProvisioner, DryRunProvisioner
from .registry import OutputRegistry

__all__ = [
    "CallableProvisioner",
    "CompositionGraph",
    "CorrelationLengthMismatchError",
    "CyclicDependencyError",
    "DeploymentEnvironment",
    "DryRunProvisioner",
    "DuplicateOutputError",
    "DuplicateStackError",
    "IAM_ROLE_ARN_PATTERN",
    "InvalidInputError",
    "MissingInputError",
    "OrchestrationError",
    "OrchestrationReport",
    "Orchestrator",
    "OutputRef",
    "OutputRegistry",
    "OutputSpec",
    "ParamKind",
    "ParamSpec",
    "Provisioner",
    "ProvisioningError",
    "ResourceHandle",
    "StackDescriptor",
    "StackInstance",
    "StackState",
    "UnknownProducerError",
    "UnresolvedOutputError",
    "build_graph",
    "declare",
    "optional",
    "ref",
    "required",
]
