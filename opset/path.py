from dataclasses import dataclass
from functools import lru_cache

from .errors import InvalidOperationError

WILDCARD = "$"
ROOT_MARKERS = frozenset({"", "."})


@dataclass(frozen=True)
class Path:
    raw: str
    segments: tuple[str, ...]

    @classmethod
    def parse(cls, raw: "str | Path") -> "Path":
        """
        Parse a dot-delimited field locator.

        `""` and `"."` both address the root value. The `$` segment fans out
        over every element of a list at that point.

        Raises:
            InvalidOperationError: If `raw` is not a string.
        """
        if isinstance(raw, Path):
            return raw
        if not isinstance(raw, str):
            raise InvalidOperationError(
                f"Invalid path. Expected string, got {type(raw).__name__}.",
                extra={"path": raw},
            )
        return _parse_path(raw)

    @property
    def is_root(self) -> bool:
        return not self.segments

    @property
    def has_wildcard(self) -> bool:
        return WILDCARD in self.segments

    def common_prefix(self, other: "Path") -> tuple[str, ...]:
        shared: list[str] = []
        for left, right in zip(self.segments, other.segments):
            if left != right:
                break
            shared.append(left)
        return tuple(shared)

    def __len__(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        return self.raw


@lru_cache(maxsize=1024)
def _parse_path(raw: str) -> Path:
    if raw in ROOT_MARKERS:
        return Path(raw=raw, segments=())
    return Path(raw=raw, segments=tuple(raw.split(".")))
