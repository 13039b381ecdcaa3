"""Host command transport that forwards requests to a daemon over D-Bus."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from hothlink.device import Device, HothError, Status

HOTHD_SERVICE = "xyz.openbmc_project.Control.Hoth"
HOTHD_OBJECT = "/xyz/openbmc_project/Control/Hoth"
HOTHD_INTERFACE = "xyz.openbmc_project.Control.Hoth"
SEND_HOST_CMD_METHOD = "SendHostCommand"


def with_hoth_id(base: str, delimiter: str, hoth_id: str) -> str:
    """Append ``delimiter`` and ``hoth_id`` to ``base`` unless the id is empty."""
    if not hoth_id:
        return base
    return f"{base}{delimiter}{hoth_id}"


@runtime_checkable
class DbusBus(Protocol):
    """A connection to the system bus able to make method calls."""

    def call(
        self,
        service: str,
        object_path: str,
        interface: str,
        method: str,
        payload: bytes,
        timeout_usec: int,
    ) -> bytes:
        """Call a method taking and returning a byte array; raise OSError on failure."""
        ...

    def close(self) -> None: ...


class DbusDevice(Device):
    """Sends each request as one SendHostCommand call to the host command daemon.

    The request is held until the response is asked for; only one request can
    be pending, and a new one replaces it.
    """

    def __init__(self, bus: DbusBus, hoth_id: str = "") -> None:
        if bus is None or hoth_id is None:
            raise HothError(Status.INVALID_PARAMETER, "bus and hoth id are required")
        self.bus = bus
        self.service = with_hoth_id(HOTHD_SERVICE, ".", hoth_id)
        self.object_path = with_hoth_id(HOTHD_OBJECT, "/", hoth_id)
        self._request: bytes | None = None

    def send(self, request: bytes) -> None:
        self._request = bytes(request)

    def receive(self, max_size: int, timeout_ms: int = 0) -> bytes:
        if self._request is None:
            raise HothError(Status.FAIL, "no pending request to receive a response for")
        request, self._request = self._request, None
        try:
            reply = self.bus.call(
                self.service,
                self.object_path,
                HOTHD_INTERFACE,
                SEND_HOST_CMD_METHOD,
                request,
                timeout_ms * 1000,
            )
        except OSError as err:
            raise HothError(Status.FAIL, f"D-Bus call failed: {err}") from err
        reply = bytes(reply)
        if len(reply) > max_size:
            raise HothError(
                Status.RESPONSE_BUFFER_OVERFLOW,
                f"response size ({len(reply)}) greater than max allowed size "
                f"({max_size})",
            )
        return reply

    def close(self) -> None:
        self._request = None
        self.bus.close()