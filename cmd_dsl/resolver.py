from __future__ import annotations

import logging
import os
from collections.abc import Iterable as IterableABC
from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, Iterator, List, Optional, TypeVar, Union

from .model import to_arg

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()
_NO_DEFAULT = object()


class Peekable(Generic[T]):
    """
    Iterator wrapper that can look one element ahead.

    The peeked element is handed back by the next call to ``__next__``, so a
    one-shot iterator is still walked exactly once.
    """

    def __init__(self, iterable: Iterable[T]) -> None:
        self._it = iter(iterable)
        self._head: Any = _MISSING

    def __iter__(self) -> Iterator[T]:
        return self

    def __next__(self) -> T:
        if self._head is not _MISSING:
            head, self._head = self._head, _MISSING
            return head
        return next(self._it)

    def peek(self, default: Any = _NO_DEFAULT) -> Any:
        if self._head is _MISSING:
            try:
                self._head = next(self._it)
            except StopIteration:
                if default is _NO_DEFAULT:
                    raise
                return default
        return self._head

    def is_empty(self) -> bool:
        return self.peek(_MISSING) is _MISSING


@dataclass(frozen=True)
class Plain:
    """Include ``value`` as one argument unless it is None."""

    value: Any = None


@dataclass(frozen=True)
class Flagged:
    """Include ``flag`` then ``value`` unless ``value`` is None; the flag never appears alone."""

    flag: Any
    value: Any = None


@dataclass(frozen=True)
class FlaggedList:
    """Include ``flag`` followed by every element of ``values`` unless there are none."""

    flag: Any
    values: Iterable[Any] = ()


Shape = Union[Plain, Flagged, FlaggedList]


@dataclass
class ArgumentList:
    """Append-only argument list; every method returns the list for chaining."""

    items: List[str] = field(default_factory=list)

    def arg(self, value: Any) -> "ArgumentList":
        self.items.append(to_arg(value))
        return self

    def args(self, values: Iterable[Any]) -> "ArgumentList":
        self.items.extend(to_arg(value) for value in values)
        return self

    def opt_arg(self, shape: Shape) -> "ArgumentList":
        return resolve(shape, self)

    def __iter__(self) -> Iterator[str]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


def is_single(value: Any) -> bool:
    """True for values that count as one argument even though they may be iterable."""
    if isinstance(value, (str, bytes, os.PathLike)):
        return True
    return not isinstance(value, IterableABC)


def shape_for(value: Any, flag: Optional[Any] = None) -> Shape:
    if flag is None:
        return Plain(value)
    if value is None or is_single(value):
        return Flagged(flag, value)
    return FlaggedList(flag, value)


def resolve(shape: Shape, target: Optional[ArgumentList] = None) -> ArgumentList:
    """
    Append the arguments ``shape`` asks for to ``target`` and return it.

    Plain(None) and Flagged(flag, None) append nothing. A FlaggedList appends
    ``flag`` once followed by all values, or nothing when the values are empty;
    the values are consumed in a single pass.
    """
    if target is None:
        target = ArgumentList()

    if isinstance(shape, Plain):
        if shape.value is not None:
            target.arg(shape.value)
    elif isinstance(shape, Flagged):
        if shape.value is not None:
            target.arg(shape.flag).arg(shape.value)
    elif isinstance(shape, FlaggedList):
        values = Peekable(shape.values)
        if values.is_empty():
            logger.debug("omitting flag %r: no values", shape.flag)
        else:
            target.arg(shape.flag).args(values)
    else:
        raise TypeError(f"Cannot resolve optional argument of type {type(shape).__name__}")
    return target
