import copy
import logging
from collections.abc import Callable, Mapping, Sequence
from functools import lru_cache
from typing import Any, Protocol

from .casts import get_caster, to_string
from .errors import InvalidOperationError
from .path import WILDCARD, Path

logger = logging.getLogger(__name__)


class _Missing:
    _instance: "_Missing | None" = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


# Stands in for an absent field. A leaf returning it deletes the field.
MISSING: Any = _Missing()

Leaf = Callable[[Any], Any]


def _list_index(lst: list, key: str) -> int | None:
    if not (key.isascii() and key.isdigit()):
        return None
    idx = int(key)
    return idx if idx < len(lst) else None


def _get_child(current: Any, key: str) -> Any:
    if isinstance(current, dict):
        return current.get(key, MISSING)
    if isinstance(current, list):
        idx = _list_index(current, key)
        return MISSING if idx is None else current[idx]
    return MISSING


def _accepts(container: Any, key: str) -> bool:
    if isinstance(container, dict):
        return True
    if isinstance(container, list):
        return _list_index(container, key) is not None
    return False


def _put(container: dict | list, key: str, value: Any):
    if isinstance(container, dict):
        container[key] = value
    else:
        container[_list_index(container, key)] = value


class PathToken(Protocol):
    def apply(
        self,
        current: Any,
        remaining: Sequence["PathToken"],
        leaf: Leaf,
    ) -> Any: ...


class _KeyToken(PathToken):
    def __init__(self, key: str):
        self.key = key

    def apply(self, current, remaining, leaf):
        if isinstance(current, dict):
            if len(remaining) == 1:
                result = leaf(current.get(self.key, MISSING))
                if result is MISSING:
                    current.pop(self.key, None)
                else:
                    current[self.key] = result
                return current
            child = current.get(self.key)
            if isinstance(child, dict | list):
                current[self.key] = _apply_recurse(child, remaining[1:], leaf)
            return current

        if isinstance(current, list):
            idx = _list_index(current, self.key)
            if idx is None:
                return current
            if len(remaining) == 1:
                result = leaf(current[idx])
                # Positional deletes leave a None hole; lists never shift.
                current[idx] = None if result is MISSING else result
                return current
            child = current[idx]
            if isinstance(child, dict | list):
                current[idx] = _apply_recurse(child, remaining[1:], leaf)
            return current

        return current


class _WildcardToken(PathToken):
    def apply(self, current, remaining, leaf):
        if isinstance(current, dict):
            # Only lists fan out; on an object "$" is an ordinary key.
            return _KeyToken(WILDCARD).apply(current, remaining, leaf)
        if not isinstance(current, list):
            return current

        if len(remaining) == 1:
            for idx, item in enumerate(current):
                result = leaf(item)
                current[idx] = None if result is MISSING else result
            return current

        for idx, item in enumerate(current):
            if isinstance(item, dict | list):
                current[idx] = _apply_recurse(item, remaining[1:], leaf)
        return current


def _apply_recurse(current: Any, remaining: Sequence[PathToken], leaf: Leaf) -> Any:
    if not remaining:
        return leaf(current)

    tok = remaining[0]
    return tok.apply(current, remaining, leaf)


@lru_cache(maxsize=1024)
def _tokens_for(path: Path) -> tuple[PathToken, ...]:
    return tuple(
        _WildcardToken() if segment == WILDCARD else _KeyToken(segment)
        for segment in path.segments
    )


def apply_at_path(root: Any, path: str | Path, leaf: Leaf) -> Any:
    """
    Apply `leaf` to every field that `path` resolves to inside `root`.

    The leaf receives the current field value (or `MISSING` when the final
    key is absent) and returns the replacement; returning `MISSING` removes
    the field. Intermediate segments that are not objects or lists stop that
    branch silently and leave it unchanged.

    Args:
        root: Value to transform. Containers are mutated in place.
        path: Dot-delimited path; `""` or `"."` addresses `root` itself.
        leaf: Callable producing the new value for each resolved field.

    Returns:
        The transformed root. Always use the return value: root-level
        operations replace `root` entirely.

    Raises:
        InvalidOperationError: If `path` is not a string.
    """
    parsed = Path.parse(path)
    if parsed.is_root:
        result = leaf(root)
        return None if result is MISSING else result
    return _apply_recurse(root, _tokens_for(parsed), leaf)


def set_at(root: Any, path: str | Path, value: Any) -> Any:
    # Each write gets its own copy so wildcard writes never alias.
    return apply_at_path(root, path, lambda _current: copy.deepcopy(value))


def unset_at(root: Any, path: str | Path) -> Any:
    return apply_at_path(root, path, lambda _current: MISSING)


def cast_at(root: Any, path: str | Path, type_name: str) -> Any:
    caster = get_caster(type_name)

    def _cast(current: Any) -> Any:
        if current is MISSING:
            return MISSING
        return caster(current)

    return apply_at_path(root, path, _cast)


def _normalize_table(table: Any) -> dict[str, Any]:
    if not isinstance(table, Mapping):
        raise InvalidOperationError(
            f"Invalid map value for $map. Expected object, got {type(table).__name__}.",
            extra={"table": table},
        )
    return {to_string(key): mapped for key, mapped in table.items()}


def _lookup(value: Any, lookup: dict[str, Any]) -> Any:
    key = to_string(value)
    if key in lookup:
        return copy.deepcopy(lookup[key])
    if "" in lookup:
        return copy.deepcopy(lookup[""])
    return value


def map_value(value: Any, table: Mapping[Any, Any]) -> Any:
    """
    Substitute `value` through `table`.

    Keys are compared as strings, so `6` and `"6"` match the same entry. The
    `""` entry is the fallback for values with no entry of their own; with
    no fallback the value is returned unchanged.
    """
    return _lookup(value, _normalize_table(table))


def map_at(root: Any, path: str | Path, table: Mapping[Any, Any]) -> Any:
    lookup = _normalize_table(table)

    def _map(current: Any) -> Any:
        if current is MISSING:
            return MISSING
        return _lookup(current, lookup)

    return apply_at_path(root, path, _map)


def _check_wrapper(wrapper: Any):
    if not isinstance(wrapper, str | list):
        raise InvalidOperationError(
            f"Invalid value for $wrap. Expected string or array, got {type(wrapper).__name__}.",
            extra={"wrapper": wrapper},
        )


def wrap_value(value: Any, wrapper: str | list) -> Any:
    _check_wrapper(wrapper)
    if isinstance(wrapper, list):
        return [value]
    return {wrapper: value}


def wrap_at(root: Any, path: str | Path, wrapper: str | list) -> Any:
    _check_wrapper(wrapper)

    def _wrap(current: Any) -> Any:
        return wrap_value(None if current is MISSING else current, wrapper)

    return apply_at_path(root, path, _wrap)


def _relocation_path(raw: Any, role: str, op_name: str) -> Path:
    if not isinstance(raw, str | Path):
        raise InvalidOperationError(
            f"Invalid {role} key for {op_name}. Expected string, got {type(raw).__name__}.",
            extra={role: raw},
        )
    path = Path.parse(raw)
    if path.has_wildcard:
        raise InvalidOperationError(
            f"Cannot use {WILDCARD} iterator in {role} key for $copy and $move.",
            extra={role: path.raw},
        )
    return path


def _detach(parent: dict | list, key: str):
    if isinstance(parent, dict):
        del parent[key]
    else:
        parent[_list_index(parent, key)] = None


def _place(container: Any, segments: Sequence[str], value: Any) -> bool:
    if not _accepts(container, segments[0]):
        return False

    cursor = container
    for key, next_key in zip(segments, segments[1:]):
        child = _get_child(cursor, key)
        if not (isinstance(child, dict | list) and _accepts(child, next_key)):
            if child is not MISSING:
                logger.warning(
                    "Overwriting %s at '%s' with an object to reach '%s'.",
                    type(child).__name__,
                    key,
                    ".".join(segments),
                )
            child = {}
            _put(cursor, key, child)
        cursor = child
    _put(cursor, segments[-1], value)
    return True


def relocate(
    root: Any,
    from_path: str | Path,
    to_path: str | Path,
    keep_source: bool = False,
) -> Any:
    """
    Move (or copy, when `keep_source` is set) the value at `from_path` to `to_path`.

    Both paths are walked from their longest shared prefix. Missing
    destination objects are created, and a destination intermediate that is
    not an object is overwritten with one (logged at WARNING). If the source
    does not resolve, `root` is returned untouched.

    Raises:
        InvalidOperationError: If either path is not a string or contains
            the `$` iterator. Raised before anything is mutated.
    """
    op_name = "$copy" if keep_source else "$move"
    source = _relocation_path(from_path, "from", op_name)
    target = _relocation_path(to_path, "to", op_name)

    if source.is_root:
        value = copy.deepcopy(root) if keep_source else root
        if target.is_root:
            return value
        container = root if keep_source else {}
        if not _place(container, target.segments, value):
            return root
        return container

    if not isinstance(root, dict | list):
        return root

    # Both paths keep at least one segment below the shared prefix.
    depth = max(min(len(source), len(target)) - 1, 0)
    shared = source.common_prefix(target)[:depth]

    cursor = root
    for key in shared:
        cursor = _get_child(cursor, key)
        if not isinstance(cursor, dict | list):
            return root

    from_rest = source.segments[len(shared) :]
    to_rest = target.segments[len(shared) :]

    parent = cursor
    for key in from_rest[:-1]:
        parent = _get_child(parent, key)
        if not isinstance(parent, dict | list):
            return root
    value = _get_child(parent, from_rest[-1])
    if value is MISSING:
        return root
    if to_rest and not _accepts(cursor, to_rest[0]):
        return root

    if keep_source:
        value = copy.deepcopy(value)
    else:
        _detach(parent, from_rest[-1])

    if target.is_root:
        return value
    _place(cursor, to_rest, value)
    return root


def move_field(root: Any, from_path: str | Path, to_path: str | Path) -> Any:
    return relocate(root, from_path, to_path, keep_source=False)


def copy_field(root: Any, from_path: str | Path, to_path: str | Path) -> Any:
    return relocate(root, from_path, to_path, keep_source=True)
