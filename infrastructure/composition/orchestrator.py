"""Sequential, fail-fast instantiation of a composition graph."""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol

from infrastructure.composition.errors import (
    InvalidInputError,
    MissingInputError,
    OrchestrationError,
    ProvisioningError,
)
from infrastructure.composition.graph import (
    CompositionGraph,
    check_correlations,
    check_resolved,
    is_unbound,
)
from infrastructure.composition.model import (
    DeploymentEnvironment,
    OutputRef,
    ResourceHandle,
    StackDescriptor,
    StackInstance,
    StackState,
)
from infrastructure.composition.registry import OutputRegistry
from infrastructure.utils.logger import get_logger


class Provisioner(Protocol):
    """External collaborator that turns bound inputs into real resources."""

    def provision(
        self,
        descriptor: StackDescriptor,
        inputs: Mapping[str, Any],
        environment: DeploymentEnvironment,
    ) -> Mapping[str, Any]: ...


@dataclass
class OrchestrationReport:
    run_id: str
    order: List[str]
    registry: OutputRegistry
    instances: Dict[str, StackInstance] = field(default_factory=dict)

    def bound_inputs(self) -> Dict[str, Dict[str, Any]]:
        return {name: dict(instance.bound_inputs) for name, instance in self.instances.items()}


class Orchestrator:
    """Instantiate every stack of a graph in dependency order.

    Stacks are processed one at a time. The first failure marks its stack
    FAILED and stops the run; stacks provisioned before it are left in place
    and nothing is rolled back.
    """

    def __init__(
        self,
        provisioner: Provisioner,
        environment: Optional[DeploymentEnvironment] = None,
    ) -> None:
        self.provisioner = provisioner
        self.environment = environment or DeploymentEnvironment.from_env()

    def run(self, graph: CompositionGraph, registry: Optional[OutputRegistry] = None) -> OrchestrationReport:
        run_id = uuid.uuid4().hex[:12]
        logger = get_logger(__name__, run_id=run_id)
        registry = registry if registry is not None else OutputRegistry()
        registry.clear()
        for instance in graph.nodes:
            instance.reset()

        order = graph.topological_order()
        report = OrchestrationReport(
            run_id=run_id,
            order=[instance.name for instance in order],
            registry=registry,
            instances={instance.name: instance for instance in graph.nodes},
        )
        logger.info(
            "Starting orchestration",
            extra={
                "stack_count": len(order),
                "order": report.order,
                "account": self.environment.account,
                "region": self.environment.region,
            },
        )

        for instance in order:
            try:
                self._check_required(instance)
            except MissingInputError as exc:
                instance.fail(exc)
                logger.error(
                    "Missing required input; nothing provisioned",
                    extra={"stack": instance.name, "state": instance.state.value, "detail": exc.to_dict()},
                )
                raise

        for instance in order:
            try:
                self._instantiate(instance, registry, logger)
            except OrchestrationError as exc:
                if instance.state not in (StackState.FAILED, StackState.PROVISIONED):
                    instance.fail(exc)
                logger.error(
                    "Stack failed; halting run",
                    extra={"stack": instance.name, "state": instance.state.value, "detail": exc.to_dict()},
                )
                raise

        logger.info("Orchestration complete", extra={"stack_count": len(order), "outputs": len(registry)})
        return report

    def _instantiate(self, instance: StackInstance, registry: OutputRegistry, logger: Any) -> None:
        instance.transition(StackState.RESOLVING)
        logger.info("Resolving inputs", extra={"stack": instance.name, "state": instance.state.value})
        instance.bound_inputs = self._bind(instance, registry)

        try:
            produced = self.provisioner.provision(instance.descriptor, dict(instance.bound_inputs), self.environment)
        except OrchestrationError:
            raise
        except Exception as exc:
            raise ProvisioningError(instance.name, exc) from exc

        handles = self._collect_outputs(instance, produced, logger)
        for name, handle in handles.items():
            registry.put(instance.name, name, handle)
        registry.mark_provisioned(instance.name)
        instance.outputs = handles
        instance.transition(StackState.PROVISIONED)
        logger.info(
            "Stack provisioned",
            extra={"stack": instance.name, "state": instance.state.value, "outputs": sorted(handles)},
        )

    @staticmethod
    def _check_required(instance: StackInstance) -> None:
        for spec in instance.descriptor.required_inputs:
            if is_unbound(instance.bindings.get(spec.name)):
                raise MissingInputError(instance.name, spec.name)

    def _bind(self, instance: StackInstance, registry: OutputRegistry) -> Dict[str, Any]:
        bound: Dict[str, Any] = {}
        for spec in instance.descriptor.inputs:
            expression = instance.bindings.get(spec.name)
            if is_unbound(expression):
                if spec.required:
                    raise MissingInputError(instance.name, spec.name)
                value = copy.deepcopy(spec.default)
            else:
                value = self._resolve(instance.name, spec.name, expression, registry)
            check_resolved(instance.name, spec, value)
            bound[spec.name] = value
        check_correlations(instance, bound, literal_only=False)
        return bound

    def _resolve(self, stack: str, param: str, expression: Any, registry: OutputRegistry) -> Any:
        if isinstance(expression, OutputRef):
            value = registry.get(expression.stack, expression.output).value
            if expression.item is None:
                return value
            try:
                return value[expression.item]
            except (KeyError, IndexError, TypeError) as exc:
                raise InvalidInputError(stack, param, f"{expression} cannot be selected: {exc!r}") from exc
        if isinstance(expression, Mapping):
            return {key: self._resolve(stack, param, item, registry) for key, item in expression.items()}
        if isinstance(expression, (list, tuple)):
            return [self._resolve(stack, param, item, registry) for item in expression]
        return expression

    def _collect_outputs(
        self, instance: StackInstance, produced: Mapping[str, Any], logger: Any
    ) -> Dict[str, ResourceHandle]:
        if not isinstance(produced, Mapping):
            raise ProvisioningError(instance.name, f"provisioner returned {type(produced).__name__}, expected a mapping")
        missing = [name for name in instance.descriptor.output_names if name not in produced]
        if missing:
            raise ProvisioningError(instance.name, f"missing declared outputs: {', '.join(missing)}")
        extra = sorted(set(produced) - set(instance.descriptor.output_names))
        if extra:
            logger.warning("Ignoring undeclared outputs", extra={"stack": instance.name, "outputs": extra})
        return {
            name: ResourceHandle(stack_name=instance.name, output_name=name, value=produced[name])
            for name in instance.descriptor.output_names
        }
