from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


def decode(data: bytes) -> str:
    """Strict UTF-8 decode without trailing newlines; raises UnicodeDecodeError on invalid input."""
    return data.decode("utf-8").rstrip("\n")


def decode_lossy(data: bytes) -> str:
    """UTF-8 decode that replaces invalid sequences with U+FFFD, without trailing newlines."""
    return data.decode("utf-8", errors="replace").rstrip("\n")


@dataclass(frozen=True)
class Output:
    """Captured result of a finished process."""

    returncode: Optional[int]  # None means no exit status is available
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def stdout_text(self) -> str:
        return decode(self.stdout)

    def stderr_text(self) -> str:
        return decode(self.stderr)

    def stdout_lossy(self) -> str:
        return decode_lossy(self.stdout)

    def stderr_lossy(self) -> str:
        return decode_lossy(self.stderr)
