"""USB mailbox driver: host commands written to and read from a device mailbox."""

from __future__ import annotations

import struct

from hothlink.device import HostResponseHeader, HothError, Status
from hothlink.usb_types import (
    ConfigDescriptor,
    InterfaceInfo,
    InterfaceType,
    UsbError,
    UsbErrorCode,
    UsbHandle,
    find_bulk_endpoints,
)

MAILBOX_MTU = 64

REQ_READ = 0x00
REQ_WRITE = 0x02
REQ_ERASE = 0x04

MAILBOX_SUCCESS = 0x00
MAILBOX_UNKNOWN_ERROR = 0x01
MAILBOX_INVAL = 0x02
MAILBOX_BUSY = 0x03

SUPPORTED_STRUCT_VERSION = 3

_REQUEST = struct.Struct("<BIB")
_RESPONSE = struct.Struct("<BB")


def _request_header(kind: int, offset: int, length: int) -> bytes:
    return _REQUEST.pack(kind, offset & 0xFFFFFFFF, length & 0xFF)


class MailboxDriver:
    """Moves host commands through the mailbox memory of a USB interface."""

    def __init__(
        self, handle: UsbHandle, config: ConfigDescriptor, info: InterfaceInfo
    ) -> None:
        if handle is None or config is None or info.type != InterfaceType.MAILBOX:
            raise UsbError(UsbErrorCode.INVALID_PARAM, "not a mailbox interface")
        interface = config.altsetting(info.interface_id, info.altsetting)
        ep_in, ep_out = find_bulk_endpoints(interface)
        self.handle = handle
        self.ep_in = ep_in.address
        self.ep_out = ep_out.address
        self.max_packet_size_in = ep_in.max_packet_size
        self.max_packet_size_out = ep_out.max_packet_size
        if (
            self.max_packet_size_out < _REQUEST.size + 1
            or self.max_packet_size_in < _RESPONSE.size + 1
            or self.max_packet_size_out > MAILBOX_MTU
            or self.max_packet_size_in > MAILBOX_MTU
        ):
            raise UsbError(UsbErrorCode.INVALID_PARAM, "unsupported packet sizes")

    def _check_status(self, reply: bytes) -> None:
        if len(reply) < _RESPONSE.size:
            raise UsbError(UsbErrorCode.IO, "short mailbox response")
        status, _ = _RESPONSE.unpack_from(reply)
        if status != MAILBOX_SUCCESS:
            raise UsbError(UsbErrorCode.IO, f"mailbox reported status {status}")

    def send_request(self, request: bytes) -> None:
        """Write the request into the mailbox in packet-sized pieces."""
        if request is None:
            raise UsbError(UsbErrorCode.INVALID_PARAM, "no request given")
        request = bytes(request)
        max_payload = self.max_packet_size_in - _REQUEST.size
        offset = 0
        while offset < len(request):
            chunk = request[offset : offset + max_payload]
            packet = _request_header(REQ_WRITE, offset, len(chunk)) + chunk
            written = self.handle.bulk_write(self.ep_out, packet, 0)
            if written != len(packet):
                raise UsbError(UsbErrorCode.IO, "incomplete mailbox write")
            reply = self.handle.bulk_read(self.ep_in, _RESPONSE.size, 0)
            if len(reply) != _RESPONSE.size:
                raise UsbError(UsbErrorCode.IO, "unexpected mailbox response size")
            self._check_status(reply)
            offset += len(chunk)

    def receive_response(self, max_size: int, timeout_ms: int = 0) -> bytes:
        """Read the response from the mailbox, at most ``max_size`` bytes."""
        if max_size < HostResponseHeader.SIZE:
            raise UsbError(UsbErrorCode.INVALID_PARAM, "response buffer too small")
        max_payload = self.max_packet_size_in - _RESPONSE.size
        response = bytearray(max_size)
        expected = max_size
        offset = 0
        while offset < expected:
            length = min(max_size - offset, max_payload)
            header = _request_header(REQ_READ, offset, length)
            written = self.handle.bulk_write(self.ep_out, header, timeout_ms)
            if written != len(header):
                raise UsbError(UsbErrorCode.IO, "incomplete mailbox read request")
            packet = self.handle.bulk_read(
                self.ep_in, _RESPONSE.size + length, timeout_ms
            )
            self._check_status(packet)
            data = bytes(packet[_RESPONSE.size : _RESPONSE.size + length])
            response[offset : offset + len(data)] = data
            if offset == 0 and length >= HostResponseHeader.SIZE:
                host_header = HostResponseHeader.from_bytes(bytes(response))
                if host_header.struct_version != SUPPORTED_STRUCT_VERSION:
                    raise HothError(
                        Status.UNSUPPORTED_VERSION,
                        f"unsupported response version {host_header.struct_version}",
                    )
                expected = min(
                    expected, HostResponseHeader.SIZE + host_header.data_len
                )
            offset += length
            if len(packet) < max_payload:
                break
        return bytes(response[:expected])

    def close(self) -> None:
        """Nothing to release: the mailbox holds no resources of its own."""