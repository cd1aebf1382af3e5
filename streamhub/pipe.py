"""Left-to-right composition of a stream with operators."""
from __future__ import annotations

from collections.abc import AsyncIterable
from typing import Any

from .operators import Operator


def pipe(source: AsyncIterable[Any], *operators: Operator) -> AsyncIterable[Any]:
    """Feed ``source`` through ``operators`` in order.

    ``pipe(s, f, g)`` is ``g(f(s))``; with no operators ``source`` is
    returned unchanged. Closing the result closes every stage down to
    ``source``.
    """

    stream: AsyncIterable[Any] = source
    for operator in operators:
        stream = operator(stream)
    return stream
