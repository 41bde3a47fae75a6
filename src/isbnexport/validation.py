"""Shape checks for untrusted data.

Every external-data entry point (persisted coordinator snapshots, provider
JSON bodies) passes through ``check_shape`` before the data is trusted. The
result is a tagged value rather than an exception so callers decide whether a
mismatch is fatal (snapshot load) or a recorded fault (provider parsing).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class ShapeCheck(Generic[T]):
    ok: bool
    value: T | None = None
    errors: list[str] = field(default_factory=list)


def check_shape(shape: TypeAdapter[T], data: Any, *, path: str = "") -> ShapeCheck[T]:
    """Validate ``data`` against ``shape``, listing every mismatch found."""
    try:
        value = shape.validate_python(data)
    except ValidationError as exc:
        return ShapeCheck(
            ok=False,
            errors=[_describe(error, path) for error in exc.errors(include_url=False)],
        )
    return ShapeCheck(ok=True, value=value)


def _describe(error: Any, path: str) -> str:
    location = path + "".join(
        f"[{part}]" if isinstance(part, int) else f".{part}" for part in error["loc"]
    )
    return f"{location or '.'}: {error['msg']}"
