from typing import Any

from .endpoint import MEDIUMS, EndpointOperations
from .errors import FormattingError, InvalidOperationError, OpSetError
from .operation_set import OperationSet
from .path import WILDCARD, Path
from .registry import ProcedureRegistry


def process(
    operations: Any, value: Any, registry: ProcedureRegistry | None = None
) -> Any:
    return OperationSet(operations, registry).process(value)


__all__ = [
    "EndpointOperations",
    "FormattingError",
    "InvalidOperationError",
    "MEDIUMS",
    "OpSetError",
    "OperationSet",
    "Path",
    "ProcedureRegistry",
    "WILDCARD",
    "process",
]
