"""In-flight de-duplication and success memoization for async operations.

``RequestCoordinator`` wraps a single-argument async operation:

- a cached argument resolves immediately without running the operation,
- concurrent calls with an equal argument share one in-flight future,
- successes are cached, failures never are.

The success cache can be exported with ``save_cache`` and fed back into a new
instance; snapshot entries are shape-checked before any of them is loaded.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog
from pydantic import TypeAdapter

from isbnexport.errors import SnapshotValidationError
from isbnexport.validation import check_shape

log = structlog.get_logger()

A = TypeVar("A", bound=Hashable)
R = TypeVar("R")


@dataclass(frozen=True)
class CacheCheck(Generic[R]):
    hit: bool
    value: R | None = None


class RequestCoordinator(Generic[A, R]):
    def __init__(
        self,
        operation: Callable[[A], Awaitable[R]],
        *,
        saved: Sequence[Any] | None = None,
        argument_shape: TypeAdapter[A] | None = None,
        result_shape: TypeAdapter[R] | None = None,
    ) -> None:
        self._operation = operation
        self._cache: dict[A, R] = {}
        self._pending: dict[A, asyncio.Future[R]] = {}

        if saved is not None:
            if argument_shape is None or result_shape is None:
                raise ValueError("restoring a saved cache requires argument and result shapes")
            for argument, result in _validated_entries(saved, argument_shape, result_shape):
                self._cache[self.cache_key(argument)] = result
            log.debug("coordinator_cache_restored", entries=len(self._cache))

    def cache_key(self, argument: A) -> A:
        """Key under which ``argument`` is cached and de-duplicated."""
        return argument

    def __call__(self, argument: A) -> asyncio.Future[R]:
        key = self.cache_key(argument)

        if key in self._cache:
            resolved: asyncio.Future[R] = asyncio.get_running_loop().create_future()
            resolved.set_result(self._cache[key])
            return resolved

        pending = self._pending.get(key)
        if pending is not None:
            return pending

        # A synchronous raise from the operation propagates to the caller here.
        future = asyncio.ensure_future(self._operation(argument))
        self._pending[key] = future
        future.add_done_callback(lambda settled: self._settle(key, settled))
        return future

    def _settle(self, key: A, future: asyncio.Future[R]) -> None:
        if self._pending.get(key) is future:
            del self._pending[key]
        if future.cancelled():
            return
        # Retrieving the exception also marks it as observed for asyncio.
        if future.exception() is None:
            self._cache[key] = future.result()

    def check_cache(self, argument: A) -> CacheCheck[R]:
        """Look up ``argument`` without running the operation."""
        key = self.cache_key(argument)
        if key in self._cache:
            return CacheCheck(hit=True, value=self._cache[key])
        return CacheCheck(hit=False)

    def save_cache(self) -> list[tuple[A, R]]:
        """Snapshot of every cached success, suitable for persistence."""
        return list(self._cache.items())


def _validated_entries(
    saved: Sequence[Any],
    argument_shape: TypeAdapter[A],
    result_shape: TypeAdapter[R],
) -> list[tuple[A, R]]:
    if isinstance(saved, (str, bytes)) or not isinstance(saved, Sequence):
        raise SnapshotValidationError(
            [f".: expected a sequence of [argument, result] pairs, got {type(saved).__name__}"]
        )

    errors: list[str] = []
    entries: list[tuple[A, R]] = []
    for index, entry in enumerate(saved):
        if isinstance(entry, (str, bytes)) or not isinstance(entry, Sequence) or len(entry) != 2:
            errors.append(f"[{index}]: expected an [argument, result] pair")
            continue
        argument = check_shape(argument_shape, entry[0], path=f"[{index}][0]")
        result = check_shape(result_shape, entry[1], path=f"[{index}][1]")
        errors.extend(argument.errors)
        errors.extend(result.errors)
        if argument.ok and result.ok:
            entries.append((argument.value, result.value))  # type: ignore[arg-type]

    if errors:
        log.error("coordinator_snapshot_invalid", error_count=len(errors))
        raise SnapshotValidationError(errors)
    return entries
