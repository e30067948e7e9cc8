from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, TypeVar, Union

from . import invoker
from .model import Command, Plan
from .output import Output

logger = logging.getLogger(__name__)

R = TypeVar("R", Output, int)


class CommandFailed(Exception):
    """Base class for a command that did not run successfully."""


class StatusFailure(CommandFailed):
    """The process ran but exited with a non-success status."""

    def __init__(self, status: Optional[int], msg: Optional[str] = None):
        self.status = status
        self.msg = msg
        text = f"Failed with code {status}"
        if msg is not None:
            text = f"{text} {msg}"
        super().__init__(text)


class IOFailure(CommandFailed):
    """The process could not be started or waited on."""

    def __init__(self, error: OSError):
        self.error = error
        super().__init__(str(error))


def ok(result: R) -> R:
    """
    Return ``result`` if it describes a successful run, else raise StatusFailure.

    ``result`` is an ``Output`` or a bare exit status. For an ``Output`` the
    failure carries the lossy-decoded stderr; use ``ok_no_msg`` to leave it out.
    """
    if isinstance(result, Output):
        if result.success:
            return result
        raise StatusFailure(result.returncode, result.stderr_lossy())
    return ok_no_msg(result)


def ok_no_msg(result: R) -> R:
    """Like ``ok`` but the raised StatusFailure never carries output from the command."""
    status = result.returncode if isinstance(result, Output) else result
    if status == 0:
        return result
    raise StatusFailure(status)


def check(
    line: Union[str, Plan, Command],
    values: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    message: bool = True,
    **kwargs: Any,
) -> Output:
    """
    Build and run ``line``, returning its output only if it succeeded.

    Raises IOFailure when the process cannot be started and StatusFailure when
    it exits unsuccessfully.
    """
    command = invoker.prepare(line, values, environ, kwargs)
    try:
        result = invoker.output(command)
    except OSError as exc:
        logger.warning("could not run %s: %s", command, exc)
        raise IOFailure(exc) from exc
    if message:
        return ok(result)
    return ok_no_msg(result)
