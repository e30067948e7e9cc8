from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union


@dataclass
class Token:
    type: str
    value: str
    line: int
    column: int


@dataclass(frozen=True)
class Literal:
    """A bare word or quoted string, emitted verbatim."""

    text: str


@dataclass(frozen=True)
class EnvRef:
    """``(var(NAME))``: the caller's environment value, or ``""`` when unset."""

    name: str


@dataclass(frozen=True)
class Interpolate:
    """``(name)``: one argument from the string form of a live value."""

    ref: str


@dataclass(frozen=True)
class Spread:
    """``(name..)``: one argument per element of an iterable."""

    ref: str


@dataclass(frozen=True)
class OptionalArg:
    """``(name ?)`` or ``(flag name ?)``: handed to the resolver."""

    ref: str
    flag: Optional[Union[Literal, EnvRef]] = None


Rule = Union[Literal, EnvRef, Interpolate, Spread, OptionalArg]
ProgramRule = Union[Literal, EnvRef, Interpolate]


@dataclass(frozen=True)
class Plan:
    """A parsed command line: the program rule followed by one rule per argument token."""

    program: ProgramRule
    rules: Tuple[Rule, ...] = ()
    source: str = ""


@dataclass(frozen=True)
class Command:
    program: str
    args: Tuple[str, ...] = ()

    @property
    def argv(self) -> List[str]:
        return [self.program, *self.args]

    def __str__(self) -> str:
        return shlex.join(self.argv)


def to_arg(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, os.PathLike)):
        return os.fsdecode(value)
    return str(value)

