"""Error taxonomy for stack graph construction and orchestration.

Every error carries the structured context needed to point at the declaration
that is wrong (stack, parameter, cycle path, array lengths). None of them is
retried: the only remedy is fixing the declaration and running again.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple


class OrchestrationError(Exception):
    """Base class for every failure raised while building or running a stack graph."""

    def __init__(self, message: str, *, stack: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.stack = stack

    def context(self) -> Dict[str, Any]:
        """Return error-specific fields for diagnostics."""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": type(self).__name__,
            "message": self.message,
        }
        if self.stack is not None:
            payload["stack"] = self.stack
        payload.update(self.context())
        return payload


class DuplicateStackError(OrchestrationError):
    """Two declarations share the same stack name."""

    def __init__(self, stack: str) -> None:
        super().__init__(f"Stack '{stack}' is declared more than once", stack=stack)


class InvalidInputError(OrchestrationError):
    """A binding does not match its parameter declaration."""

    def __init__(self, stack: str, param: str, reason: str) -> None:
        super().__init__(f"{stack}.{param}: {reason}", stack=stack)
        self.param = param
        self.reason = reason

    def context(self) -> Dict[str, Any]:
        return {"param": self.param, "reason": self.reason}


class UnknownProducerError(OrchestrationError):
    """A binding references a stack (or output) that is not declared."""

    def __init__(self, stack: str, param: str, producer: str, output: str, *, reason: Optional[str] = None) -> None:
        detail = reason or f"stack '{producer}' is not declared"
        super().__init__(f"{stack}.{param} references {producer}.{output}: {detail}", stack=stack)
        self.param = param
        self.producer = producer
        self.output = output

    def context(self) -> Dict[str, Any]:
        return {"param": self.param, "producer": self.producer, "output": self.output}


class CyclicDependencyError(OrchestrationError):
    """The composition graph contains a cycle."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle: Tuple[str, ...] = tuple(cycle)
        super().__init__(f"Cyclic stack dependency: {' -> '.join(self.cycle)}", stack=self.cycle[0])

    @property
    def nodes(self) -> Tuple[str, ...]:
        """Distinct stacks on the cycle, in path order."""
        seen: list[str] = []
        for name in self.cycle:
            if name not in seen:
                seen.append(name)
        return tuple(seen)

    def context(self) -> Dict[str, Any]:
        return {"cycle": list(self.cycle)}


class CorrelationLengthMismatchError(OrchestrationError):
    """Parallel array parameters of one correlation group differ in length."""

    def __init__(self, stack: str, group: str, params: Sequence[str], lengths: Sequence[int]) -> None:
        self.group = group
        self.params: Tuple[str, ...] = tuple(params)
        self.lengths: Tuple[int, ...] = tuple(lengths)
        pairs = ", ".join(f"{name}={length}" for name, length in zip(self.params, self.lengths))
        super().__init__(f"{stack}: correlation group '{group}' has mismatched lengths ({pairs})", stack=stack)

    def context(self) -> Dict[str, Any]:
        return {"group": self.group, "params": list(self.params), "lengths": list(self.lengths)}


class MissingInputError(OrchestrationError):
    """A required input has neither a binding nor a default."""

    def __init__(self, stack: str, param: str) -> None:
        super().__init__(f"{stack}.{param} is required but was not bound", stack=stack)
        self.param = param

    def context(self) -> Dict[str, Any]:
        return {"param": self.param}


class DuplicateOutputError(OrchestrationError):
    """An output was recorded twice for the same stack."""

    def __init__(self, stack: str, output: str) -> None:
        super().__init__(f"Output {stack}.{output} is already recorded", stack=stack)
        self.output = output

    def context(self) -> Dict[str, Any]:
        return {"output": self.output}


class UnresolvedOutputError(OrchestrationError):
    """An output was requested before its producer was provisioned."""

    def __init__(self, stack: str, output: str) -> None:
        super().__init__(f"Output {stack}.{output} is not available: producer not provisioned", stack=stack)
        self.output = output

    def context(self) -> Dict[str, Any]:
        return {"output": self.output}


class ProvisioningError(OrchestrationError):
    """The provisioning collaborator failed for a stack."""

    def __init__(self, stack: str, cause: object) -> None:
        super().__init__(f"Provisioning {stack} failed: {cause}", stack=stack)
        self.cause = cause

    def context(self) -> Dict[str, Any]:
        kind = type(self.cause).__name__ if isinstance(self.cause, BaseException) else None
        return {"cause": str(self.cause), "cause_type": kind} if kind else {"cause": str(self.cause)}
