"""Exception hierarchy shared across the benchmark pipeline."""

from __future__ import annotations

from typing import Optional


class IbencError(Exception):
    """Base class for every error raised by ibenc."""


class ConfigError(IbencError):
    """Configuration file is missing or holds invalid values."""


class ProbeError(IbencError):
    pass


class ProbeExecutionError(ProbeError):
    """A single iperf3 invocation failed or produced unparseable output."""

    def __init__(self, message: str, output: str = "", returncode: Optional[int] = None):
        super().__init__(message)
        self.output = output
        self.returncode = returncode

    def __str__(self) -> str:
        base = super().__str__()
        if self.output:
            return f"{base}, output: {self.output.strip()}"
        return base


class BothDirectionsFailedError(ProbeError):
    """Neither the download nor the upload run produced a result."""


class EncodingError(IbencError):
    """Samples could not be serialized into a remote-write payload."""


class TransportError(IbencError):
    """The payload could not be delivered to the remote endpoint."""


class RemoteWriteError(TransportError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"remote write failed with status {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class RateLimitExceededError(TransportError):
    def __init__(self, attempts: int, body: str = ""):
        super().__init__(f"remote write still rate limited after {attempts} attempts: {body}")
        self.attempts = attempts
        self.body = body
