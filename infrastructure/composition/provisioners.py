"""Provisioning collaborators that do not touch a cloud account."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from infrastructure.composition.model import DeploymentEnvironment, OutputSpec, ParamKind, StackDescriptor


def placeholder(stack: str, output: str, item: Optional[object] = None) -> str:
    suffix = "" if item is None else f"[{item}]"
    return "${" + f"{stack}.{output}{suffix}" + "}"


@dataclass
class DryRunProvisioner:
    """Return deterministic placeholder outputs and remember every call.

    Keyed outputs take their shape from the input they are keyed by: a list
    output gets one element per item, a handle output becomes a mapping from
    item to placeholder. ``failures`` maps a stack name to the exception to
    raise for it.
    """

    failures: Dict[str, BaseException] = field(default_factory=dict)
    calls: List[Tuple[str, Dict[str, Any], DeploymentEnvironment]] = field(default_factory=list)

    def provision(
        self,
        descriptor: StackDescriptor,
        inputs: Mapping[str, Any],
        environment: DeploymentEnvironment,
    ) -> Mapping[str, Any]:
        self.calls.append((descriptor.name, dict(inputs), environment))
        failure = self.failures.get(descriptor.name)
        if failure is not None:
            raise failure
        return {spec.name: self._value(descriptor.name, spec, inputs) for spec in descriptor.outputs}

    @property
    def provisioned(self) -> List[str]:
        return [name for name, _, _ in self.calls if name not in self.failures]

    @staticmethod
    def _value(stack: str, spec: OutputSpec, inputs: Mapping[str, Any]) -> Any:
        keys = list(inputs.get(spec.keyed_by) or []) if spec.keyed_by else None
        if spec.kind is ParamKind.LIST:
            if keys is None:
                return [placeholder(stack, spec.name, 0)]
            return [placeholder(stack, spec.name, key) for key in keys]
        if spec.kind is ParamKind.HANDLE and keys is not None:
            return {str(key): placeholder(stack, spec.name, key) for key in keys}
        return placeholder(stack, spec.name)


@dataclass
class CallableProvisioner:
    """Adapt a plain function to the provisioner protocol."""

    func: Callable[[StackDescriptor, Mapping[str, Any], DeploymentEnvironment], Mapping[str, Any]]

    def provision(
        self,
        descriptor: StackDescriptor,
        inputs: Mapping[str, Any],
        environment: DeploymentEnvironment,
    ) -> Mapping[str, Any]:
        return self.func(descriptor, inputs, environment)
