"""Run summary models rendered by the CLI using Pydantic v2.

A summary is built either from a finished ``OrchestrationReport`` or from a
graph whose run stopped on an error, so the operator always sees the state
of every declared stack.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from infrastructure.composition.errors import OrchestrationError
from infrastructure.composition.graph import CompositionGraph
from infrastructure.composition.model import DeploymentEnvironment, OutputRef, StackInstance


def render_value(value: Any) -> Any:
    """Convert bound values and handle payloads into JSON-friendly data."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, OutputRef):
        return f"<{value}>"
    if isinstance(value, Mapping):
        return {str(key): render_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [render_value(item) for item in value]
    return str(value)


class ErrorDetail(BaseModel):
    error: str
    message: str
    stack: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_error(cls, exc: OrchestrationError) -> "ErrorDetail":
        payload = exc.to_dict()
        return cls(
            error=payload.pop("error"),
            message=payload.pop("message"),
            stack=payload.pop("stack", None),
            context={key: render_value(value) for key, value in payload.items()},
        )


class StackSummary(BaseModel):
    name: str
    template: str
    state: str
    depends_on: List[str] = Field(default_factory=list)
    inputs: Dict[str, Any] = Field(default_factory=dict)
    outputs: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def from_instance(cls, instance: StackInstance, depends_on: List[str]) -> "StackSummary":
        return cls(
            name=instance.name,
            template=instance.descriptor.template or instance.name,
            state=instance.state.value,
            depends_on=depends_on,
            inputs={key: render_value(value) for key, value in (instance.bound_inputs or instance.bindings).items()},
            outputs={key: render_value(handle.value) for key, handle in instance.outputs.items()},
            error=instance.error.message if instance.error is not None else None,
        )


class RunSummary(BaseModel):
    environment: str
    revision: str
    account: Optional[str] = None
    region: Optional[str] = None
    run_id: Optional[str] = None
    succeeded: bool
    order: List[str] = Field(default_factory=list)
    stacks: List[StackSummary] = Field(default_factory=list)
    error: Optional[ErrorDetail] = None

    @classmethod
    def build(
        cls,
        *,
        environment: str,
        revision: str,
        deployment: DeploymentEnvironment,
        graph: Optional[CompositionGraph] = None,
        instances: Optional[List[StackInstance]] = None,
        order: Optional[List[str]] = None,
        run_id: Optional[str] = None,
        error: Optional[OrchestrationError] = None,
    ) -> "RunSummary":
        members = list(graph.nodes) if graph is not None else list(instances or [])
        stacks = [
            StackSummary.from_instance(
                instance,
                list(graph.producers_of(instance.name)) if graph is not None else [],
            )
            for instance in members
        ]
        return cls(
            environment=environment,
            revision=revision,
            account=deployment.account,
            region=deployment.region,
            run_id=run_id,
            succeeded=error is None,
            order=list(order or []),
            stacks=stacks,
            error=ErrorDetail.from_error(error) if error is not None else None,
        )
