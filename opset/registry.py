from collections.abc import Callable, Iterator, Mapping, MutableMapping
from typing import TYPE_CHECKING, Any

from .errors import FormattingError, InvalidOperationError

if TYPE_CHECKING:
    from .operation_set import OperationSet


class ProcedureRegistry(MutableMapping):
    """
    Named operation sets that `$procedure` / `$model` steps invoke.

    Operation sets hold the registry itself rather than a snapshot, so
    registering or replacing a procedure is seen by every holder at once.
    Assigning operation records or a plain function compiles them into an
    `OperationSet` bound to this registry.
    """

    def __init__(self, procedures: Mapping[str, Any] | None = None):
        self._procedures: dict[str, "OperationSet"] = {}
        for name, procedure in (procedures or {}).items():
            self.register_procedure(name, procedure)

    def register_procedure(
        self,
        name: str,
        procedure: "OperationSet | Mapping[str, Any] | list | Callable[[Any], Any]",
    ) -> "OperationSet":
        """
        Register (or replace) a named procedure.

        Args:
            name: Name used by `$procedure` / `$model` steps.
            procedure: An `OperationSet`, operation records to compile, or a
                function applied as a single `$func` step.

        Returns:
            The registered `OperationSet`.

        Raises:
            FormattingError: If the name is empty or the procedure is of an
                unsupported type, or its records are malformed.
        """
        from .operation_set import OperationSet

        if not isinstance(name, str) or not name:
            raise FormattingError(
                f"Procedure names must be non-empty strings, got {name!r}."
            )

        if isinstance(procedure, OperationSet):
            operation_set = procedure
        elif isinstance(procedure, Mapping | list | tuple):
            operation_set = OperationSet(procedure, self)
        elif callable(procedure):
            operation_set = OperationSet({"$func": procedure}, self)
        else:
            raise FormattingError(
                "Procedure must be an operation set, operation records or a function, "
                f"got {type(procedure).__name__}.",
                extra={"name": name},
            )

        self._procedures[name] = operation_set
        return operation_set

    def get_procedure(self, name: str) -> "OperationSet":
        try:
            return self._procedures[name]
        except KeyError as ex:
            raise InvalidOperationError(
                f"Procedure '{name}' is not registered.", extra={"name": name}
            ) from ex

    def __getitem__(self, name: str) -> "OperationSet":
        return self._procedures[name]

    def __setitem__(self, name: str, procedure: Any):
        self.register_procedure(name, procedure)

    def __delitem__(self, name: str):
        del self._procedures[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._procedures)

    def __len__(self) -> int:
        return len(self._procedures)

    def __repr__(self) -> str:
        return f"ProcedureRegistry({sorted(self._procedures)!r})"
