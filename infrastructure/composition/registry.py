"""Append-only store of outputs produced during one orchestration run."""

from __future__ import annotations

from typing import Dict, Iterator, List, Set, Tuple

from infrastructure.composition.errors import DuplicateOutputError, UnresolvedOutputError
from infrastructure.composition.model import ResourceHandle

OutputKey = Tuple[str, str]


class OutputRegistry:
    """Maps (stack, output) to the ResourceHandle recorded for it.

    Entries are never overwritten. A handle only becomes readable once its
    producer has been marked provisioned, so a half-recorded stack is never
    observed by consumers.
    """

    def __init__(self) -> None:
        self._handles: Dict[OutputKey, ResourceHandle] = {}
        self._provisioned: Set[str] = set()

    def put(self, stack: str, output: str, handle: ResourceHandle) -> None:
        key = (stack, output)
        if key in self._handles:
            raise DuplicateOutputError(stack, output)
        if handle.key != key:
            raise ValueError(f"Handle {handle.key} recorded under mismatched key {key}")
        self._handles[key] = handle

    def mark_provisioned(self, stack: str) -> None:
        self._provisioned.add(stack)

    def is_provisioned(self, stack: str) -> bool:
        return stack in self._provisioned

    def get(self, stack: str, output: str) -> ResourceHandle:
        handle = self._handles.get((stack, output))
        if handle is None or stack not in self._provisioned:
            raise UnresolvedOutputError(stack, output)
        return handle

    def outputs_of(self, stack: str) -> Dict[str, ResourceHandle]:
        if stack not in self._provisioned:
            return {}
        return {name: handle for (owner, name), handle in self._handles.items() if owner == stack}

    def keys(self) -> List[OutputKey]:
        return list(self._handles)

    def snapshot(self) -> Dict[str, object]:
        """Return a flat `Stack.output` -> value view for reporting."""
        return {f"{stack}.{output}": handle.value for (stack, output), handle in self._handles.items()}

    def clear(self) -> None:
        self._handles.clear()
        self._provisioned.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def __iter__(self) -> Iterator[OutputKey]:
        return iter(list(self._handles))
