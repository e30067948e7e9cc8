from __future__ import annotations

import logging
import subprocess
from typing import Any, Mapping, Optional, Union

from .builder import Builder, capture_values, to_plan
from .model import Command, Plan
from .output import Output

logger = logging.getLogger(__name__)


def output(command: Command) -> Output:
    """Run ``command`` to completion with stdout and stderr captured."""
    logger.info("running %s", command)
    completed = subprocess.run(command.argv, capture_output=True)
    logger.debug("%s exited with status %s", command.program, completed.returncode)
    return Output(returncode=completed.returncode, stdout=completed.stdout, stderr=completed.stderr)


def status(command: Command) -> int:
    """Run ``command`` to completion with inherited stdio and return its exit status."""
    logger.info("running %s", command)
    completed = subprocess.run(command.argv)
    logger.debug("%s exited with status %s", command.program, completed.returncode)
    return completed.returncode


def spawn(command: Command, **popen_kwargs: Any) -> subprocess.Popen:
    """Start ``command`` and return without waiting for it."""
    logger.info("spawning %s", command)
    return subprocess.Popen(command.argv, **popen_kwargs)


def prepare(
    line: Union[str, Plan, Command],
    values: Optional[Mapping[str, Any]],
    environ: Optional[Mapping[str, str]],
    overrides: Mapping[str, Any],
) -> Command:
    """Build ``line`` on behalf of an entry point; captured names come from that entry point's caller."""
    if isinstance(line, Command):
        return line
    namespace = capture_values(values, overrides, stacklevel=2)
    return Builder(namespace, environ).build(to_plan(line))


def run(
    line: Union[str, Plan, Command],
    values: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    **kwargs: Any,
) -> Output:
    """Build ``line`` and run it with output captured."""
    return output(prepare(line, values, environ, kwargs))


def exec_(
    line: Union[str, Plan, Command],
    values: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    **kwargs: Any,
) -> int:
    return status(prepare(line, values, environ, kwargs))


def start(
    line: Union[str, Plan, Command],
    values: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    **kwargs: Any,
) -> subprocess.Popen:
    return spawn(prepare(line, values, environ, kwargs))
