"""Core device abstraction, status codes and the host response header."""

from __future__ import annotations

import abc
import struct
from dataclasses import dataclass
from enum import IntEnum
from types import TracebackType

MAILBOX_SIZE = 1024


class Status(IntEnum):
    """Status codes reported by the transports."""

    OK = 0
    UNKNOWN_VENDOR = 1
    INTERFACE_NOT_FOUND = 2
    MALLOC_FAILED = 3
    TIMEOUT = 4
    OUT_UNDERFLOW = 5
    IN_OVERFLOW = 6
    UNSUPPORTED_VERSION = 7
    INVALID_PARAMETER = 8
    FAIL = 9
    RESPONSE_BUFFER_OVERFLOW = 10
    INTERFACE_BUSY = 11


class HothError(Exception):
    """A transport operation failed with a given status."""

    def __init__(self, status: Status | int, message: str | None = None) -> None:
        try:
            status = Status(status)
        except ValueError:
            status = int(status)
        self.status = status
        self.message = message
        if message is None:
            message = status.name if isinstance(status, Status) else f"status {status}"
        super().__init__(message)


@dataclass(frozen=True)
class HostResponseHeader:
    """The 8-byte header that starts every host command response."""

    struct_version: int
    checksum: int
    result: int
    data_len: int
    reserved: int = 0

    _STRUCT = struct.Struct("<BBHHH")
    SIZE = 8

    @classmethod
    def from_bytes(cls, data: bytes) -> HostResponseHeader:
        """Parse the header from the start of ``data``."""
        if len(data) < cls.SIZE:
            raise ValueError(
                f"host response header needs {cls.SIZE} bytes, got {len(data)}"
            )
        return cls(*cls._STRUCT.unpack_from(data))

    def to_bytes(self) -> bytes:
        """Serialise the header to its wire form."""
        return self._STRUCT.pack(
            self.struct_version,
            self.checksum,
            self.result,
            self.data_len,
            self.reserved,
        )


class Device(abc.ABC):
    """A transport that carries host command requests and responses.

    Sending and receiving are not thread-safe: callers must make a send and
    the following receive atomic with respect to other callers.
    """

    @abc.abstractmethod
    def send(self, request: bytes) -> None:
        """Send a request: the request header followed by its payload."""

    @abc.abstractmethod
    def receive(self, max_size: int, timeout_ms: int) -> bytes:
        """Receive the response to the last request, at most ``max_size`` bytes.

        Raises HothError with Status.TIMEOUT if the response is not ready.
        """

    def close(self) -> None:
        """Release the resources held by the transport."""

    def claim(self) -> None:
        """Claim exclusive use of the transport."""

    def release(self) -> None:
        """Give up exclusive use of the transport."""

    def __enter__(self) -> Device:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()