"""Lazy stream operators usable on any async iterable."""
from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable
from typing import Any, Generic, TypeVar

from .core.errors import OperatorError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Operator = Callable[[AsyncIterable[Any]], AsyncIterator[Any]]


async def _resolve(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class _DerivedStream(Generic[R]):
    """Pulls from ``source`` on demand and forwards ``aclose`` to it once."""

    operator = "operator"

    def __init__(self, source: AsyncIterable[Any], callback: Callable[[Any], Any]) -> None:
        self._source: AsyncIterable[Any] | None = source
        self._iterator: AsyncIterator[Any] | None = None
        self._callback = callback

    def __aiter__(self) -> _DerivedStream[R]:
        return self

    async def __anext__(self) -> R:
        if self._source is None:
            raise StopAsyncIteration
        if self._iterator is None:
            self._iterator = aiter(self._source)
        while True:
            try:
                value = await anext(self._iterator)
            except Exception:
                # exhausted or failed; either way the source is finished
                await self.aclose()
                raise
            try:
                emit, result = await self._step(value)
            except Exception as exc:
                logger.debug("%s callback failed, closing source", self.operator)
                await self.aclose()
                raise OperatorError(self.operator, exc) from exc
            if emit:
                return result

    async def _step(self, value: Any) -> tuple[bool, Any]:
        raise NotImplementedError

    async def __aenter__(self) -> _DerivedStream[R]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        source, self._source = self._source, None
        if source is None:
            return
        target = self._iterator if self._iterator is not None else source
        self._iterator = None
        closer = getattr(target, "aclose", None)
        if closer is not None:
            await closer()


class _Mapped(_DerivedStream[R]):
    operator = "map"

    async def _step(self, value: Any) -> tuple[bool, Any]:
        return True, await _resolve(self._callback(value))


class _Filtered(_DerivedStream[T]):
    operator = "filter"

    async def _step(self, value: Any) -> tuple[bool, Any]:
        return bool(await _resolve(self._callback(value))), value


def _apply(kind: type[_DerivedStream[Any]], args: tuple[Any, ...]) -> Any:
    if len(args) == 2:
        source, callback = args
        return kind(source, callback)
    if len(args) == 1:
        (callback,) = args

        def operator(source: AsyncIterable[Any]) -> AsyncIterator[Any]:
            return kind(source, callback)

        return operator
    raise TypeError(f"{kind.operator}() takes a callback, optionally preceded by a source")


def map(*args: Any) -> Any:
    """Transform each value.

    ``map(source, transform)`` returns the derived stream; ``map(transform)``
    returns an operator for :func:`streamhub.pipe`. ``transform`` may be async.
    """

    return _apply(_Mapped, args)


def filter(*args: Any) -> Any:
    """Keep values for which ``predicate`` is truthy.

    Same call forms as :func:`map`; ``predicate`` may be async.
    """

    return _apply(_Filtered, args)
