import copy
import logging
from collections.abc import Iterator, Mapping
from functools import partial
from typing import Any

from .config import resolve_max_procedure_depth
from .errors import FormattingError, InvalidOperationError
from .operations import Step, compile_steps, record_tag, run_step
from .registry import ProcedureRegistry

logger = logging.getLogger(__name__)


def _as_record_list(operations: Any) -> list[Any]:
    if operations is None:
        return []
    if isinstance(operations, Mapping):
        return [operations]
    if isinstance(operations, list | tuple):
        return list(operations)
    raise FormattingError(
        "Operations must be a record or a list of records, "
        f"got {type(operations).__name__}.",
        extra={"operations": operations},
    )


class OperationSet:
    """
    An ordered, taggable list of operation records.

    Records are checked against the operation vocabulary whenever the set
    is built or changed, so `process` never meets an unknown operation.
    Payload shapes are checked when their step runs.

    `add` and `remove` are meant for setup time: they are not safe to call
    while another thread is inside `process`.

    Usage:
        operation_set = OperationSet(
            [
                {"$cast": {"info.code": "number"}},
                {"$set": {"data.$.object": "user"}},
            ]
        )
        result = operation_set.process(payload)
    """

    def __init__(
        self,
        operations: Mapping[str, Any] | list | None = None,
        registry: ProcedureRegistry | None = None,
        *,
        copy_input: bool = True,
        max_depth: int | None = None,
    ):
        """
        Args:
            operations: A single operation record or a list of them.
            registry: Procedures available to `$procedure` / `$model` steps.
                Shared by reference; a private empty registry when omitted.
            copy_input: If True, `process` works on a deep copy and never
                mutates the caller's value.
            max_depth: Maximum procedure nesting; see
                `resolve_max_procedure_depth`.

        Raises:
            FormattingError: If any record is malformed.
        """
        records = _as_record_list(operations)
        self._steps: tuple[Step, ...] = compile_steps(records)
        self._records: list[dict[str, Any]] = [dict(record) for record in records]
        self.registry = registry if registry is not None else ProcedureRegistry()
        self.copy_input = copy_input
        self.max_depth = resolve_max_procedure_depth(max_depth)

    @property
    def steps(self) -> tuple[Step, ...]:
        return self._steps

    @property
    def records(self) -> list[dict[str, Any]]:
        return [dict(record) for record in self._records]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.records)

    def __repr__(self) -> str:
        return f"OperationSet({self._records!r})"

    def process(self, value: Any) -> Any:
        """
        Run every step, in order, against `value`.

        Returns:
            The transformed value. Root-level operations may return a value of
            a different type than the input.

        Raises:
            InvalidOperationError: If a step's payload has the wrong shape, an
                unregistered procedure is referenced, or procedures nest deeper
                than `max_depth`. Steps already run are not rolled back.
        """
        if self.copy_input:
            value = copy.deepcopy(value)
        return self._run(
            value, depth=0, max_depth=self.max_depth, registry=self.registry
        )

    def _run(
        self,
        value: Any,
        *,
        depth: int,
        max_depth: int,
        registry: ProcedureRegistry,
    ) -> Any:
        # Nested procedures resolve names in the registry that invoked them.
        procedures = partial(
            self._procedure_runner,
            depth=depth,
            max_depth=max_depth,
            registry=registry,
        )
        for step in self._steps:
            logger.debug(
                "Running %s from record %d at depth %d.",
                step.op.value,
                step.record_index,
                depth,
            )
            value = run_step(value, step, procedures)
        return value

    def _procedure_runner(
        self,
        name: str,
        *,
        depth: int,
        max_depth: int,
        registry: ProcedureRegistry,
    ):
        procedure = registry.get_procedure(name)

        def _invoke(current: Any) -> Any:
            if depth + 1 > max_depth:
                raise InvalidOperationError(
                    f"Procedure '{name}' exceeds the maximum nesting depth of {max_depth}.",
                    extra={"name": name, "depth": depth + 1},
                )
            logger.debug("Invoking procedure '%s' at depth %d.", name, depth + 1)
            return procedure._run(
                current, depth=depth + 1, max_depth=max_depth, registry=registry
            )

        return _invoke

    def get(self, index: int) -> dict[str, Any] | None:
        if isinstance(index, bool) or not isinstance(index, int):
            return None
        if not 0 <= index < len(self._records):
            return None
        return dict(self._records[index])

    def get_index_by_tag(self, tag: str) -> int | None:
        """Return the index of the last record tagged `tag`, or None."""
        for index in range(len(self._records) - 1, -1, -1):
            if record_tag(self._records[index]) == tag:
                return index
        return None

    def _require_tag(self, tag: Any) -> int:
        if not isinstance(tag, str):
            raise FormattingError(
                f"Invalid tag. Expected string, got {type(tag).__name__}.",
                extra={"tag": tag},
            )
        index = self.get_index_by_tag(tag)
        if index is None:
            raise FormattingError(f"No operation tagged '{tag}'.", extra={"tag": tag})
        return index

    def _insertion_index(self, *, before: Any, after: Any, at: Any) -> int:
        if at is not None:
            if (
                isinstance(at, bool)
                or not isinstance(at, int)
                or not 0 <= at <= len(self._records)
            ):
                raise FormattingError(
                    f"Invalid insertion index {at!r}. "
                    f"Expected an integer from 0 to {len(self._records)}.",
                    extra={"at": at},
                )
            return at
        if after is not None:
            return self._require_tag(after) + 1
        if before is not None:
            return self._require_tag(before)
        return len(self._records)

    def add(
        self,
        operations: Mapping[str, Any] | list,
        *,
        before: str | None = None,
        after: str | None = None,
        at: int | None = None,
    ) -> int:
        """
        Insert one or more records.

        When several positions are given, `at` wins over `after`, which wins
        over `before`. Tags resolve to the last record carrying them. With
        no position the records are appended.

        Returns:
            The index of the first inserted record.

        Raises:
            FormattingError: If a new record is malformed, the tag is unknown,
                or `at` is out of range. Nothing is inserted in that case.
        """
        records = _as_record_list(operations)
        compile_steps(records)
        index = self._insertion_index(before=before, after=after, at=at)

        updated = (
            self._records[:index]
            + [dict(record) for record in records]
            + self._records[index:]
        )
        self._steps = compile_steps(updated)
        self._records = updated
        return index

    def remove(self, index_or_tag: int | str) -> dict[str, Any] | None:
        """Remove a record by index or by (last matching) tag and return it."""
        if isinstance(index_or_tag, str):
            index = self.get_index_by_tag(index_or_tag)
        elif isinstance(index_or_tag, int) and not isinstance(index_or_tag, bool):
            index = index_or_tag
        else:
            raise FormattingError(
                f"Expected an index or a tag, got {type(index_or_tag).__name__}.",
                extra={"id": index_or_tag},
            )

        if index is None or not 0 <= index < len(self._records):
            return None

        updated = list(self._records)
        removed = updated.pop(index)
        self._steps = compile_steps(updated)
        self._records = updated
        return removed
