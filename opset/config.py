import os

MAX_DEPTH_ENV_VAR = "OPSET_MAX_PROCEDURE_DEPTH"
DEFAULT_MAX_PROCEDURE_DEPTH = 64


def resolve_max_procedure_depth(preference: int | None = None) -> int:
    """
    Resolve how deeply procedures may invoke one another.

    An explicit `preference` wins; otherwise `OPSET_MAX_PROCEDURE_DEPTH` is
    read from the environment, falling back to 64.

    Raises:
        ValueError: If the resolved depth is not a positive integer.
    """
    if preference is None:
        requested: object = os.getenv(
            MAX_DEPTH_ENV_VAR, str(DEFAULT_MAX_PROCEDURE_DEPTH)
        ).strip()
    else:
        requested = preference

    if isinstance(requested, bool):
        depth = None
    elif isinstance(requested, int):
        depth = requested
    else:
        try:
            depth = int(str(requested))
        except ValueError:
            depth = None

    if depth is None or depth < 1:
        raise ValueError(
            f"Invalid procedure depth '{requested}'. Expected a positive integer."
        )
    return depth
