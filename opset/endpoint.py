from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from .errors import FormattingError
from .operation_set import OperationSet
from .registry import ProcedureRegistry

MEDIUMS = MappingProxyType(
    {
        "request": ("body", "headers", "query", "params"),
        "response": ("body", "headers"),
        "error": ("body", "headers"),
    }
)


class EndpointOperations:
    """
    The operation sets applied to one endpoint's request, response and error.

    Every medium gets its own `OperationSet`, and all of them share one
    procedure registry, so a procedure registered later is visible to every
    medium straight away.

    Usage:
        endpoint = EndpointOperations(
            request={"body": [{"$unset": "legacy"}]},
            response={"body": {"$wrap": "result"}},
        )
        body = endpoint.response("body").process(body)
    """

    def __init__(
        self,
        request: Mapping[str, Any] | None = None,
        response: Mapping[str, Any] | None = None,
        error: Mapping[str, Any] | None = None,
        *,
        registry: ProcedureRegistry | None = None,
        description: str | None = None,
    ):
        self.registry = registry if registry is not None else ProcedureRegistry()
        self.description = description
        self._operations = {
            "request": self._build("request", request),
            "response": self._build("response", response),
            "error": self._build("error", error),
        }

    def _build(
        self, phase: str, operations: Mapping[str, Any] | None
    ) -> dict[str, OperationSet]:
        operations = operations or {}
        if not isinstance(operations, Mapping):
            raise FormattingError(
                f"Invalid {phase} operations. Expected object, got {type(operations).__name__}.",
                extra={phase: operations},
            )
        unknown = [medium for medium in operations if medium not in MEDIUMS[phase]]
        if unknown:
            raise FormattingError(
                f"Unknown {phase} medium(s): {', '.join(map(str, unknown))}. "
                f"Expected any of: {', '.join(MEDIUMS[phase])}.",
                extra={phase: operations},
            )
        return {
            medium: OperationSet(operations.get(medium), self.registry)
            for medium in MEDIUMS[phase]
        }

    def _medium(self, phase: str, medium: str | None):
        operations = self._operations[phase]
        if medium is None:
            return MappingProxyType(operations)
        try:
            return operations[medium]
        except KeyError as ex:
            raise KeyError(f"Unknown {phase} medium: {medium}") from ex

    def request(self, medium: str | None = None):
        return self._medium("request", medium)

    def response(self, medium: str | None = None):
        return self._medium("response", medium)

    def error(self, medium: str | None = None):
        return self._medium("error", medium)

    def set_procedure(
        self,
        name: str,
        procedure: OperationSet | Mapping[str, Any] | list | Callable[[Any], Any],
    ) -> OperationSet:
        return self.registry.register_procedure(name, procedure)
