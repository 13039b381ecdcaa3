"""USB FIFO driver: requests tagged with a random ID and matched on return."""

from __future__ import annotations

from collections.abc import Callable
from itertools import count
from typing import TypeVar

from hothlink.device import HothError, Status
from hothlink.usb_types import (
    ConfigDescriptor,
    InterfaceInfo,
    InterfaceType,
    UsbError,
    UsbErrorCode,
    UsbHandle,
    find_bulk_endpoints,
)

REQUEST_ID_SIZE = 16
MAX_REQUEST_SIZE = 1024
MTU = REQUEST_ID_SIZE + MAX_REQUEST_SIZE
MAX_STALE_RETRIES = 10

_T = TypeVar("_T")


def xorshift32(state: int) -> int:
    """Advance a 32-bit xorshift generator by one step and return the new state."""
    state &= 0xFFFFFFFF
    state ^= (state << 13) & 0xFFFFFFFF
    state ^= state >> 17
    state ^= (state << 5) & 0xFFFFFFFF
    return state


def _outcome(action: Callable[[], _T]) -> _T | UsbError:
    try:
        return action()
    except UsbError as err:
        return err


def _stalled(result: object) -> bool:
    return isinstance(result, UsbError) and result.code == UsbErrorCode.PIPE


class FifoDriver:
    """Sends tagged requests and picks the response carrying the same tag."""

    def __init__(
        self,
        handle: UsbHandle,
        config: ConfigDescriptor,
        info: InterfaceInfo,
        prng_seed: int = 0,
    ) -> None:
        if handle is None or config is None or info.type != InterfaceType.FIFO:
            raise UsbError(UsbErrorCode.INVALID_PARAM, "not a FIFO interface")
        interface = config.altsetting(info.interface_id, info.altsetting)
        ep_in, ep_out = find_bulk_endpoints(interface)
        self.handle = handle
        self.ep_in = ep_in.address
        self.ep_out = ep_out.address
        self.max_packet_size_in = ep_in.max_packet_size
        self.max_packet_size_out = ep_out.max_packet_size
        self._prng_state = prng_seed & 0xFFFFFFFF
        self._pending: bytes | None = None

    def _next_request_id(self) -> bytes:
        request_id = bytearray()
        for _ in range(REQUEST_ID_SIZE):
            self._prng_state = xorshift32(self._prng_state)
            request_id.append(self._prng_state & 0xFF)
        return bytes(request_id)

    def send_request(self, request: bytes) -> None:
        """Tag the request with a fresh ID; it goes out with the next receive."""
        if request is None or len(request) > MAX_REQUEST_SIZE:
            raise UsbError(UsbErrorCode.INVALID_PARAM, "request missing or too large")
        self._pending = self._next_request_id() + bytes(request)

    def _read_in(self, timeout_ms: int) -> bytes | UsbError:
        return _outcome(lambda: self.handle.bulk_read(self.ep_in, MTU, timeout_ms))

    def _exchange(
        self, packet: bytes, timeout_ms: int
    ) -> tuple[int | UsbError, bytes | UsbError]:
        written = _outcome(
            lambda: self.handle.bulk_write(
                self.ep_out, packet, timeout_ms, zero_packet=True
            )
        )
        if isinstance(written, UsbError) and not _stalled(written):
            return written, UsbError(UsbErrorCode.IO, "cancelled")
        return written, self._read_in(timeout_ms)

    def receive_response(self, max_size: int, timeout_ms: int = 0) -> bytes:
        """Send the pending request and return the response that matches it."""
        if max_size > MAX_REQUEST_SIZE:
            raise UsbError(UsbErrorCode.INVALID_PARAM, "response size too large")
        if self._pending is None:
            raise UsbError(UsbErrorCode.IO, "no request was sent")
        packet = self._pending
        try:
            return self._transact(packet, max_size, timeout_ms)
        finally:
            self._pending = None

    def _transact(self, packet: bytes, max_size: int, timeout_ms: int) -> bytes:
        max_in_size = REQUEST_ID_SIZE + max_size
        written, data = self._exchange(packet, timeout_ms)
        if _stalled(written) or _stalled(data):
            self.handle.clear_halt(self.ep_in)
            self.handle.clear_halt(self.ep_out)
            written, data = self._exchange(packet, timeout_ms)
        if isinstance(written, UsbError):
            raise written
        if written != len(packet):
            raise HothError(Status.OUT_UNDERFLOW, "incomplete request transfer")
        request_id = packet[:REQUEST_ID_SIZE]
        for attempt in count():
            if isinstance(data, UsbError):
                raise data
            if len(data) > max_in_size:
                raise HothError(Status.IN_OVERFLOW, "response larger than buffer")
            if len(data) < REQUEST_ID_SIZE:
                raise UsbError(UsbErrorCode.IO, "response shorter than request ID")
            if data[:REQUEST_ID_SIZE] == request_id:
                return bytes(data[REQUEST_ID_SIZE:])
            if attempt >= MAX_STALE_RETRIES:
                raise UsbError(UsbErrorCode.IO, "no response matched the request ID")
            # A response left behind by another client; read the next one.
            data = self._read_in(timeout_ms)
        raise AssertionError("unreachable")

    def close(self) -> None:
        """Drop any request still waiting to be sent."""
        self._pending = None