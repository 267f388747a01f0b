"""Exception taxonomy for upstream access.

Two orthogonal axes are encoded through multiple inheritance: *which*
upstream failed (``RpcError`` for monerod, ``HttpError`` for P2Pool) and
*how* it failed (``TransportError`` vs. ``UpstreamProtocolError``). Callers
can catch along either axis.
"""

from __future__ import annotations


class MoneroMeshError(Exception):
    """Base exception for all MoneroMesh errors."""

    pass


class TransportError(MoneroMeshError):
    """Raised when an upstream cannot be reached or times out."""

    pass


class UpstreamProtocolError(MoneroMeshError):
    """Raised when an upstream answers with an error or malformed payload."""

    pass


class InsufficientDataError(MoneroMeshError):
    """Raised when too few blocks are available for hashrate estimation."""

    def __init__(self, available: int, required: int = 2, *, unit: str = "block"):
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient block data: {available} {unit}(s) available, "
            f"{required} required"
        )


class RpcError(MoneroMeshError):
    """Raised when a monerod JSON-RPC call fails."""

    def __init__(self, method: str, message: str) -> None:
        self.method = method
        super().__init__(message)


class RpcTransportError(RpcError, TransportError):
    """Raised when the monerod RPC endpoint cannot be reached."""

    pass


class RpcResponseError(RpcError, UpstreamProtocolError):
    """Raised when the RPC envelope carries an ``error`` field."""

    def __init__(self, method: str, upstream_message: str, code: int | None = None):
        self.upstream_message = upstream_message
        self.code = code
        super().__init__(method, f"RPC Error: {upstream_message}")


class HttpError(MoneroMeshError):
    """Raised when a P2Pool HTTP request fails."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(message)


class HttpTransportError(HttpError, TransportError):
    """Raised when the P2Pool API cannot be reached."""

    pass


class HttpStatusError(HttpError, UpstreamProtocolError):
    """Raised when the P2Pool API answers with a non-2xx status."""

    def __init__(self, path: str, status: int, reason: str = "") -> None:
        self.status = status
        self.reason = reason
        detail = f"HTTP {status}"
        if reason:
            detail = f"{detail} {reason}"
        super().__init__(path, f"{detail} for {path}")


class HttpPayloadError(HttpError, UpstreamProtocolError):
    """Raised when the P2Pool API answers with a body that is not JSON."""

    pass
