from __future__ import annotations

import inspect
import logging
import os
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from .model import (
    Command,
    EnvRef,
    Interpolate,
    Literal,
    OptionalArg,
    Plan,
    Rule,
    Spread,
    to_arg,
)
from .parser import parse
from .resolver import ArgumentList, resolve, shape_for

logger = logging.getLogger(__name__)


class Builder:
    """Evaluates a parsed plan against live values and the process environment."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None, environ: Optional[Mapping[str, str]] = None):
        self.values: Mapping[str, Any] = values if values is not None else {}
        self.environ: Mapping[str, str] = environ if environ is not None else os.environ

    def build(self, plan: Plan) -> Command:
        program = self._single(plan.program)
        target = ArgumentList()
        for rule in plan.rules:
            self._apply(rule, target)
        command = Command(program=program, args=tuple(target))
        logger.debug("built command: %s", command)
        return command

    def lookup(self, ref: str) -> Any:
        head, *attrs = ref.split(".")
        try:
            value = self.values[head]
        except KeyError as exc:
            raise KeyError(f"Value '{head}' is not bound (referenced as '{ref}')") from exc
        for attr in attrs:
            value = getattr(value, attr)
        return value

    def env(self, name: str) -> str:
        value = self.environ.get(name)
        if value is None:
            logger.debug("environment variable %s is unset; using empty string", name)
            return ""
        return value

    def _single(self, rule: Union[Literal, EnvRef, Interpolate]) -> str:
        if isinstance(rule, Literal):
            return rule.text
        if isinstance(rule, EnvRef):
            return self.env(rule.name)
        if isinstance(rule, Interpolate):
            return to_arg(self.lookup(rule.ref))
        raise TypeError(f"{type(rule).__name__} does not produce a single argument")

    def _apply(self, rule: Rule, target: ArgumentList) -> None:
        if isinstance(rule, EnvRef):
            target.arg(self.env(rule.name))
        elif isinstance(rule, OptionalArg):
            flag = self._single(rule.flag) if rule.flag is not None else None
            resolve(shape_for(self.lookup(rule.ref), flag), target)
        elif isinstance(rule, Spread):
            value = self.lookup(rule.ref)
            if isinstance(value, (str, bytes)):
                raise TypeError(f"Cannot spread '{rule.ref}': got {type(value).__name__}, expected an iterable of arguments")
            target.args(value)
        elif isinstance(rule, (Interpolate, Literal)):
            target.arg(self._single(rule))
        else:
            raise TypeError(f"Unknown rule {type(rule).__name__}")


def capture_values(
    values: Optional[Mapping[str, Any]],
    overrides: Mapping[str, Any],
    stacklevel: int = 1,
) -> Dict[str, Any]:
    """
    Merge ``overrides`` over ``values``.

    When neither is given, the globals and locals of the frame ``stacklevel``
    levels above the caller are used instead, so ``build("echo (name)")`` sees
    the caller's ``name``.
    """
    if values is not None or overrides:
        merged: Dict[str, Any] = dict(values or {})
        merged.update(overrides)
        return merged

    frame = inspect.currentframe()
    try:
        for _ in range(stacklevel + 1):
            if frame is None:
                break
            frame = frame.f_back
        if frame is None:
            return {}
        namespace = dict(frame.f_globals)
        namespace.update(frame.f_locals)
        return namespace
    finally:
        del frame


def to_plan(line: Union[str, Plan]) -> Plan:
    if isinstance(line, Plan):
        return line
    return parse(line)


def build(
    line: Union[str, Plan],
    values: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    **kwargs: Any,
) -> Command:
    namespace = capture_values(values, kwargs)
    return Builder(namespace, environ).build(to_plan(line))


def args(
    line: Union[str, Plan],
    values: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    **kwargs: Any,
) -> Iterator[str]:
    """Iterate over the program name followed by every argument, for extending an existing argv."""
    namespace = capture_values(values, kwargs)
    return iter(Builder(namespace, environ).build(to_plan(line)).argv)
