from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import FormattingError, InvalidOperationError
from .traversal import (
    MISSING,
    apply_at_path,
    cast_at,
    map_at,
    relocate,
    set_at,
    unset_at,
    wrap_at,
)

ProcedureLookup = Callable[[str], Callable[[Any], Any]]


class Op(Enum):
    # Declaration order is the order operations run within one record.
    SET = "$set"
    UNSET = "$unset"
    MOVE = "$move"
    COPY = "$copy"
    CAST = "$cast"
    MAP = "$map"
    WRAP = "$wrap"
    FUNC = "$func"
    PROCEDURE = "$procedure"
    MODEL = "$model"


TAG_KEY = "$tag"
_TAG_KEYS = frozenset({TAG_KEY, TAG_KEY[1:]})
_KEY_LOOKUP = {
    **{op.value: op for op in Op},
    **{op.value[1:]: op for op in Op},
}


@dataclass(frozen=True)
class Step:
    op: Op
    payload: Any
    record_index: int


def record_tag(record: Mapping[str, Any]) -> str | None:
    for key in _TAG_KEYS:
        if key in record:
            return record[key]
    return None


def validate_record(record: Any) -> dict[Op, Any]:
    """
    Check that `record` only uses known operation keys.

    Payloads are not inspected here; a payload of the wrong shape is only
    reported when the step runs.

    Returns:
        The record's operations keyed by `Op`.

    Raises:
        FormattingError: For non-mapping records, unknown or repeated keys,
            and non-string tags.
    """
    if not isinstance(record, Mapping):
        raise FormattingError(
            f"Operation records must be objects, got {type(record).__name__}.",
            extra={"record": record},
        )

    operations: dict[Op, Any] = {}
    seen_tag = False
    for key, payload in record.items():
        if key in _TAG_KEYS:
            if seen_tag:
                raise FormattingError(
                    "Operation record has more than one tag.", extra={"record": record}
                )
            if not isinstance(payload, str):
                raise FormattingError(
                    f"Invalid value for {TAG_KEY}. Expected string, got {type(payload).__name__}.",
                    extra={"record": record},
                )
            seen_tag = True
            continue

        op = _KEY_LOOKUP.get(key) if isinstance(key, str) else None
        if op is None:
            valid_options = ", ".join([known.value for known in Op] + [TAG_KEY])
            raise FormattingError(
                f"Unknown operation '{key}'. Expected one of: {valid_options}.",
                extra={"record": record},
            )
        if op in operations:
            raise FormattingError(
                f"Operation '{op.value}' appears more than once in one record.",
                extra={"record": record},
            )
        operations[op] = payload
    return operations


def compile_steps(records: Iterable[Any]) -> tuple[Step, ...]:
    steps: list[Step] = []
    for index, record in enumerate(records):
        operations = validate_record(record)
        for op in Op:
            if op in operations:
                steps.append(Step(op=op, payload=operations[op], record_index=index))
    return tuple(steps)


def _path_items(op: Op, payload: Any) -> list[tuple[str, Any]]:
    if not isinstance(payload, Mapping):
        raise InvalidOperationError(
            f"Invalid value for {op.value}. Expected object, got {type(payload).__name__}.",
            extra={"payload": payload},
        )
    items = list(payload.items())
    for field, _ in items:
        if not isinstance(field, str):
            raise InvalidOperationError(
                f"Invalid field key for {op.value}. Expected string, got {type(field).__name__}.",
                extra={"field": field},
            )
    return items


def _run_set(value, payload, _procedures):
    for field, new_value in _path_items(Op.SET, payload):
        value = set_at(value, field, new_value)
    return value


def _run_unset(value, payload, _procedures):
    fields = [payload] if isinstance(payload, str) else payload
    if not isinstance(fields, list | tuple) or not all(
        isinstance(field, str) for field in fields
    ):
        raise InvalidOperationError(
            "Invalid value for $unset. Expected a string or a list of strings.",
            extra={"payload": payload},
        )
    for field in fields:
        value = unset_at(value, field)
    return value


def _run_relocate(op: Op):
    def _run(value, payload, _procedures):
        for from_path, to_path in _path_items(op, payload):
            value = relocate(value, from_path, to_path, keep_source=op is Op.COPY)
        return value

    return _run


def _run_cast(value, payload, _procedures):
    for field, type_name in _path_items(Op.CAST, payload):
        value = cast_at(value, field, type_name)
    return value


def _run_map(value, payload, _procedures):
    for field, table in _path_items(Op.MAP, payload):
        value = map_at(value, field, table)
    return value


def _run_wrap(value, payload, _procedures):
    if isinstance(payload, str | list):
        return wrap_at(value, ".", payload)
    for field, wrapper in _path_items(Op.WRAP, payload):
        value = wrap_at(value, field, wrapper)
    return value


def _skip_missing(fn: Callable[[Any], Any]) -> Callable[[Any], Any]:
    def _leaf(current: Any) -> Any:
        if current is MISSING:
            return MISSING
        return fn(current)

    return _leaf


def _run_func(value, payload, _procedures):
    if callable(payload):
        return payload(value)
    for field, fn in _path_items(Op.FUNC, payload):
        if not callable(fn):
            raise InvalidOperationError(
                f"Invalid function for $func at '{field}'. Expected callable, got {type(fn).__name__}.",
                extra={"field": field},
            )
        value = apply_at_path(value, field, _skip_missing(fn))
    return value


def _run_procedures(op: Op):
    def _run(value, payload, procedures: ProcedureLookup):
        for field, names in _path_items(op, payload):
            if isinstance(names, str):
                names = [names]
            if not isinstance(names, list | tuple) or not all(
                isinstance(name, str) for name in names
            ):
                raise InvalidOperationError(
                    f"Invalid value for {op.value} at '{field}'. Expected a name or a list of names.",
                    extra={"field": field, "names": names},
                )
            # Resolve every name first so an unknown one fails even if the field is absent.
            runners = [procedures(name) for name in names]
            for runner in runners:
                value = apply_at_path(value, field, _skip_missing(runner))
        return value

    return _run


_HANDLERS: dict[Op, Callable[[Any, Any, ProcedureLookup], Any]] = {
    Op.SET: _run_set,
    Op.UNSET: _run_unset,
    Op.MOVE: _run_relocate(Op.MOVE),
    Op.COPY: _run_relocate(Op.COPY),
    Op.CAST: _run_cast,
    Op.MAP: _run_map,
    Op.WRAP: _run_wrap,
    Op.FUNC: _run_func,
    Op.PROCEDURE: _run_procedures(Op.PROCEDURE),
    Op.MODEL: _run_procedures(Op.MODEL),
}


def run_step(value: Any, step: Step, procedures: ProcedureLookup) -> Any:
    return _HANDLERS[step.op](value, step.payload, procedures)
