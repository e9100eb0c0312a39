"""Composition graph construction: reference scanning, validation and ordering.

Edges run producer -> consumer. All checks happen before any stack is
provisioned so a broken declaration never causes a side effect.
"""

from __future__ import annotations

import heapq
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

from infrastructure.composition.errors import (
    CorrelationLengthMismatchError,
    CyclicDependencyError,
    DuplicateStackError,
    InvalidInputError,
    UnknownProducerError,
)
from infrastructure.composition.model import (
    SCALAR_TYPES,
    OutputRef,
    ParamKind,
    ParamSpec,
    StackInstance,
    StackState,
)

Edge = Tuple[str, str]


class CompositionGraph:
    """Stack instances plus the producer -> consumer edges between them."""

    def __init__(self, nodes: Sequence[StackInstance], edges: Iterable[Edge]) -> None:
        self._nodes: Tuple[StackInstance, ...] = tuple(nodes)
        self._index: Dict[str, int] = {node.name: idx for idx, node in enumerate(self._nodes)}
        self._edges: frozenset[Edge] = frozenset(edges)
        self._producers: Dict[str, Set[str]] = {node.name: set() for node in self._nodes}
        self._consumers: Dict[str, Set[str]] = {node.name: set() for node in self._nodes}
        for producer, consumer in self._edges:
            self._producers[consumer].add(producer)
            self._consumers[producer].add(consumer)

    @property
    def nodes(self) -> Tuple[StackInstance, ...]:
        return self._nodes

    @property
    def edges(self) -> frozenset[Edge]:
        return self._edges

    def instance(self, name: str) -> StackInstance:
        return self._nodes[self._index[name]]

    def producers_of(self, name: str) -> Tuple[str, ...]:
        return tuple(sorted(self._producers[name], key=self._index.__getitem__))

    def consumers_of(self, name: str) -> Tuple[str, ...]:
        return tuple(sorted(self._consumers[name], key=self._index.__getitem__))

    def topological_order(self) -> List[StackInstance]:
        """Kahn's algorithm; ties are broken by declaration order."""
        in_degree = {name: len(producers) for name, producers in self._producers.items()}
        ready = [self._index[name] for name, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        order: List[StackInstance] = []
        while ready:
            node = self._nodes[heapq.heappop(ready)]
            order.append(node)
            for consumer in self._consumers[node.name]:
                in_degree[consumer] -= 1
                if in_degree[consumer] == 0:
                    heapq.heappush(ready, self._index[consumer])
        if len(order) != len(self._nodes):
            cycle = find_cycle(self._dependencies(), [node.name for node in self._nodes])
            raise CyclicDependencyError(cycle or [node.name for node in self._nodes if node not in order])
        return order

    def _dependencies(self) -> Dict[str, List[str]]:
        return {name: list(self.producers_of(name)) for name in self._index}

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[StackInstance]:
        return iter(self._nodes)

    def __contains__(self, name: object) -> bool:
        return name in self._index


def is_unbound(value: Any) -> bool:
    return value is None


def check_literal(stack: str, spec: ParamSpec, value: Any) -> None:
    """Validate a binding expression against its parameter at build time."""
    if isinstance(value, OutputRef):
        return
    if spec.kind is ParamKind.HANDLE:
        raise InvalidInputError(stack, spec.name, "handle parameters must reference another stack's output")
    if spec.kind is ParamKind.LIST:
        if not isinstance(value, (list, tuple)):
            raise InvalidInputError(stack, spec.name, f"expected a list, got {type(value).__name__}")
        candidates = [item for item in value if isinstance(item, str)]
    else:
        if isinstance(value, (list, tuple, Mapping)):
            raise InvalidInputError(stack, spec.name, f"expected a scalar, got {type(value).__name__}")
        candidates = [value] if isinstance(value, str) else []

    pattern = spec.compiled_pattern
    if pattern is None:
        return
    for text in candidates:
        if not pattern.match(text):
            raise InvalidInputError(stack, spec.name, f"'{text}' does not match {spec.pattern}")


def check_resolved(stack: str, spec: ParamSpec, value: Any) -> None:
    """Validate a fully resolved input value at bind time."""
    if value is None:
        return
    if spec.kind is ParamKind.LIST and not isinstance(value, (list, tuple)):
        raise InvalidInputError(stack, spec.name, f"resolved to {type(value).__name__}, expected a list")
    if spec.kind is ParamKind.SCALAR and not isinstance(value, SCALAR_TYPES):
        raise InvalidInputError(stack, spec.name, f"resolved to {type(value).__name__}, expected a scalar")


def check_correlations(instance: StackInstance, values: Mapping[str, Any], *, literal_only: bool) -> None:
    """Ensure arrays sharing a correlation group have identical lengths.

    With ``literal_only`` set, arrays bound to a whole reference are skipped;
    their length is only known once the producer has been provisioned.
    """
    for group, params in instance.descriptor.correlation_groups().items():
        names: List[str] = []
        lengths: List[int] = []
        for name in params:
            value = values.get(name)
            if literal_only and isinstance(value, OutputRef):
                continue
            if not isinstance(value, (list, tuple)):
                continue
            names.append(name)
            lengths.append(len(value))
        if len(set(lengths)) > 1:
            raise CorrelationLengthMismatchError(instance.name, group, names, lengths)


def effective_bindings(instance: StackInstance) -> Dict[str, Any]:
    """Bindings with declared defaults filled in for unbound optional inputs."""
    values: Dict[str, Any] = {}
    for spec in instance.descriptor.inputs:
        value = instance.bindings.get(spec.name)
        if is_unbound(value) and not spec.required:
            value = spec.default
        values[spec.name] = value
    return values


def find_cycle(dependencies: Mapping[str, Sequence[str]], order: Sequence[str]) -> Optional[List[str]]:
    """Return one dependency cycle as a closed path, or None.

    ``dependencies`` maps each node to the nodes it consumes from; the path
    reads "A needs B needs ... needs A".
    """
    white, gray, black = 0, 1, 2
    colour = {name: white for name in order}
    path: List[str] = []

    def dfs(node: str) -> Optional[List[str]]:
        colour[node] = gray
        path.append(node)
        for dependency in dependencies.get(node, ()):
            if colour[dependency] == gray:
                start = path.index(dependency)
                return path[start:] + [dependency]
            if colour[dependency] == white:
                found = dfs(dependency)
                if found:
                    return found
        path.pop()
        colour[node] = black
        return None

    for name in order:
        if colour[name] == white:
            found = dfs(name)
            if found:
                return found
    return None


def build_graph(declarations: Iterable[StackInstance]) -> CompositionGraph:
    """Validate declarations and infer the composition graph."""
    nodes = list(declarations)
    by_name: Dict[str, StackInstance] = {}
    for node in nodes:
        if node.name in by_name:
            raise DuplicateStackError(node.name)
        by_name[node.name] = node

    for node in nodes:
        descriptor = node.descriptor
        for param, value in node.bindings.items():
            spec = descriptor.input(param)
            if spec is None:
                raise InvalidInputError(node.name, param, "parameter is not declared by the stack")
            if not is_unbound(value):
                check_literal(node.name, spec, value)

    edges: Set[Edge] = set()
    dependencies: Dict[str, List[str]] = {node.name: [] for node in nodes}
    for node in nodes:
        for param, found in node.references():
            producer = by_name.get(found.stack)
            if producer is None:
                raise UnknownProducerError(node.name, param, found.stack, found.output)
            if producer.descriptor.output(found.output) is None:
                raise UnknownProducerError(
                    node.name,
                    param,
                    found.stack,
                    found.output,
                    reason=f"stack '{found.stack}' declares no output '{found.output}'",
                )
            edges.add((found.stack, node.name))
            if found.stack not in dependencies[node.name]:
                dependencies[node.name].append(found.stack)

    for node in nodes:
        check_correlations(node, effective_bindings(node), literal_only=True)

    cycle = find_cycle(dependencies, [node.name for node in nodes])
    if cycle:
        error = CyclicDependencyError(cycle)
        for name in error.nodes:
            member = by_name[name]
            if member.state is StackState.PENDING:
                member.fail(error)
        raise error

    return CompositionGraph(nodes, edges)
