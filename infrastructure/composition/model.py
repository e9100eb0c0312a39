"""Typed contracts shared by the graph builder, registry and orchestrator."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Pattern, Tuple, Union

from infrastructure.composition.errors import OrchestrationError

IAM_ROLE_ARN_PATTERN = r"^arn:aws:iam::\d{12}:role/.+$"


class ParamKind(str, Enum):
    SCALAR = "scalar"
    LIST = "list"
    HANDLE = "handle"


SCALAR_TYPES = (str, int, float, bool)


@dataclass(frozen=True)
class ParamSpec:
    """Input parameter of a stack descriptor."""

    name: str
    kind: ParamKind = ParamKind.SCALAR
    required: bool = True
    default: Any = None
    correlation_group: Optional[str] = None
    pattern: Optional[str] = None
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Parameter name must be provided")
        if self.required and self.default is not None:
            raise ValueError(f"Required parameter '{self.name}' cannot declare a default")
        if self.correlation_group and self.kind is not ParamKind.LIST:
            raise ValueError(f"Correlated parameter '{self.name}' must be a list")
        if self.kind is ParamKind.LIST and isinstance(self.default, list):
            object.__setattr__(self, "default", tuple(self.default))

    @property
    def compiled_pattern(self) -> Optional[Pattern[str]]:
        return re.compile(self.pattern) if self.pattern else None


@dataclass(frozen=True)
class OutputSpec:
    """Output a stack promises to produce once provisioned."""

    name: str
    kind: ParamKind = ParamKind.SCALAR
    description: str = ""
    keyed_by: Optional[str] = None
    cfn_output: Optional[str] = None


def required(name: str, kind: ParamKind = ParamKind.SCALAR, **kwargs: Any) -> ParamSpec:
    return ParamSpec(name=name, kind=kind, required=True, **kwargs)


def optional(name: str, default: Any = None, kind: ParamKind = ParamKind.SCALAR, **kwargs: Any) -> ParamSpec:
    return ParamSpec(name=name, kind=kind, required=False, default=default, **kwargs)


@dataclass(frozen=True)
class StackDescriptor:
    """Named unit of provisioning with a typed input and output schema."""

    name: str
    inputs: Tuple[ParamSpec, ...] = ()
    outputs: Tuple[OutputSpec, ...] = ()
    template: Optional[str] = None
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))
        if not self.template:
            object.__setattr__(self, "template", self.name)
        _ensure_unique(self.name, "input", [p.name for p in self.inputs])
        _ensure_unique(self.name, "output", [o.name for o in self.outputs])
        input_names = {p.name for p in self.inputs}
        for spec in self.outputs:
            if spec.keyed_by and spec.keyed_by not in input_names:
                raise ValueError(f"{self.name}.{spec.name} is keyed by unknown input '{spec.keyed_by}'")

    def named(self, name: str) -> "StackDescriptor":
        """Return the same template under another stack name."""
        return replace(self, name=name, template=self.template)

    @property
    def required_inputs(self) -> Tuple[ParamSpec, ...]:
        return tuple(p for p in self.inputs if p.required)

    @property
    def optional_inputs(self) -> Tuple[ParamSpec, ...]:
        return tuple(p for p in self.inputs if not p.required)

    def input(self, name: str) -> Optional[ParamSpec]:
        for spec in self.inputs:
            if spec.name == name:
                return spec
        return None

    def output(self, name: str) -> Optional[OutputSpec]:
        for spec in self.outputs:
            if spec.name == name:
                return spec
        return None

    @property
    def output_names(self) -> Tuple[str, ...]:
        return tuple(o.name for o in self.outputs)

    def correlation_groups(self) -> Dict[str, Tuple[str, ...]]:
        groups: Dict[str, Tuple[str, ...]] = {}
        for spec in self.inputs:
            if spec.correlation_group:
                groups[spec.correlation_group] = groups.get(spec.correlation_group, ()) + (spec.name,)
        return groups


def _ensure_unique(stack: str, label: str, names: list[str]) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ValueError(f"{stack} declares {label} '{name}' more than once")
        seen.add(name)


@dataclass(frozen=True)
class OutputRef:
    """Binding expression referring to another stack's output."""

    stack: str
    output: str
    item: Optional[Union[int, str]] = None

    def __str__(self) -> str:
        base = f"{self.stack}.{self.output}"
        return base if self.item is None else f"{base}[{self.item}]"


def ref(stack: str, output: str, item: Optional[Union[int, str]] = None) -> OutputRef:
    return OutputRef(stack=stack, output=output, item=item)


def iter_refs(value: Any) -> Iterator[OutputRef]:
    """Yield every OutputRef nested inside a binding expression."""
    if isinstance(value, OutputRef):
        yield value
    elif isinstance(value, Mapping):
        for nested in value.values():
            yield from iter_refs(nested)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_refs(item)


def _freeze(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(item) for item in value)
    if isinstance(value, dict):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    return value


@dataclass(frozen=True)
class ResourceHandle:
    """Immutable reference to a provisioned capability."""

    stack_name: str
    output_name: str
    value: Any

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _freeze(self.value))

    @property
    def key(self) -> Tuple[str, str]:
        return (self.stack_name, self.output_name)


class StackState(str, Enum):
    PENDING = "pending"
    RESOLVING = "resolving"
    PROVISIONED = "provisioned"
    FAILED = "failed"


_TRANSITIONS: Dict[StackState, frozenset[StackState]] = {
    StackState.PENDING: frozenset({StackState.RESOLVING, StackState.FAILED}),
    StackState.RESOLVING: frozenset({StackState.PROVISIONED, StackState.FAILED}),
    StackState.PROVISIONED: frozenset(),
    StackState.FAILED: frozenset(),
}


@dataclass(eq=False)
class StackInstance:
    """A descriptor bound to concrete input expressions for one run."""

    descriptor: StackDescriptor
    bindings: Mapping[str, Any] = field(default_factory=dict)
    bound_inputs: Dict[str, Any] = field(default_factory=dict)
    state: StackState = StackState.PENDING
    outputs: Dict[str, ResourceHandle] = field(default_factory=dict)
    error: Optional[OrchestrationError] = None

    def __post_init__(self) -> None:
        self.bindings = MappingProxyType(dict(self.bindings))

    @property
    def name(self) -> str:
        return self.descriptor.name

    def transition(self, target: StackState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise ValueError(f"{self.name}: illegal transition {self.state.value} -> {target.value}")
        self.state = target

    def fail(self, error: OrchestrationError) -> None:
        self.transition(StackState.FAILED)
        self.error = error

    def reset(self) -> None:
        """Return to PENDING for a fresh run."""
        self.bound_inputs = {}
        self.outputs = {}
        self.error = None
        self.state = StackState.PENDING

    def references(self) -> Iterator[Tuple[str, OutputRef]]:
        for param, value in self.bindings.items():
            for found in iter_refs(value):
                yield param, found

    def __repr__(self) -> str:
        return f"StackInstance({self.name!r}, state={self.state.value})"


def declare(descriptor: StackDescriptor, **bindings: Any) -> StackInstance:
    return StackInstance(descriptor=descriptor, bindings=bindings)


@dataclass(frozen=True)
class DeploymentEnvironment:
    """Account/region shared by every stack in a run."""

    account: Optional[str] = None
    region: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DeploymentEnvironment":
        source = os.environ if environ is None else environ
        account = (source.get("CDK_DEFAULT_ACCOUNT") or "").strip() or None
        region = (source.get("CDK_DEFAULT_REGION") or "").strip() or None
        return cls(account=account, region=region)
