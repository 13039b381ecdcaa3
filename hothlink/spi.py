"""Host command transport over a SPI NOR mailbox driven through spidev."""

from __future__ import annotations

import array
import functools
import os
import struct
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from hothlink.device import Device, HostResponseHeader, HothError, Status

OPCODE_WRITE_ENABLE = 0x06
OPCODE_PAGE_PROGRAM = 0x02
OPCODE_READ = 0x03

_IOC_WRITE = 1
_IOC_SIZEBITS = 14
_SPI_IOC_MAGIC = ord("k")
_TRANSFER_LAYOUT = struct.Struct("=QQIIHBBBBBB")


def _iow(number: int, size: int) -> int:
    return (_IOC_WRITE << 30) | (size << 16) | (_SPI_IOC_MAGIC << 8) | number


SPI_IOC_WR_MODE = _iow(1, 1)
SPI_IOC_WR_BITS_PER_WORD = _iow(3, 1)
SPI_IOC_WR_MAX_SPEED_HZ = _iow(4, 4)


def spi_ioc_message(count: int) -> int:
    """The ioctl request number for a message of ``count`` transfers."""
    size = count * _TRANSFER_LAYOUT.size
    if size >= 1 << _IOC_SIZEBITS:
        size = 0
    return _iow(0, size)


def nor_address(address: int, four_byte: bool = True) -> bytes:
    """Encode a flash address big-endian, in 4 or 3 bytes."""
    if four_byte:
        return (address & 0xFFFFFFFF).to_bytes(4, "big")
    return (address & 0xFFFFFF).to_bytes(3, "big")


@dataclass(frozen=True)
class SpiTransfer:
    """One segment of a SPI message: bytes sent, or a number of bytes read."""

    tx: bytes = b""
    rx_len: int = 0
    cs_change: bool = False

    @property
    def length(self) -> int:
        return len(self.tx) if self.tx else self.rx_len


Transact = Callable[[Sequence[SpiTransfer]], list]


def _spidev_transact(fd: int, transfers: Sequence[SpiTransfer]) -> list[bytes]:
    """Run the transfers as one spidev message; return what each one read."""
    import fcntl

    keep_alive = []
    rx_buffers: list[array.array | None] = []
    descriptors = bytearray()
    for transfer in transfers:
        tx_address = 0
        rx_address = 0
        if transfer.tx:
            tx_buffer = array.array("B", transfer.tx)
            keep_alive.append(tx_buffer)
            tx_address = tx_buffer.buffer_info()[0]
        rx_buffer = None
        if transfer.rx_len:
            rx_buffer = array.array("B", bytes(transfer.rx_len))
            rx_address = rx_buffer.buffer_info()[0]
        rx_buffers.append(rx_buffer)
        descriptors += _TRANSFER_LAYOUT.pack(
            tx_address,
            rx_address,
            transfer.length,
            0,
            0,
            0,
            1 if transfer.cs_change else 0,
            0,
            0,
            0,
            0,
        )
    try:
        fcntl.ioctl(fd, spi_ioc_message(len(transfers)), bytes(descriptors))
    except OSError as err:
        raise HothError(Status.FAIL, f"SPI transfer failed: {err}") from err
    return [b"" if buf is None else buf.tobytes() for buf in rx_buffers]


class SpiDevice(Device):
    """A mailbox at a fixed address of a SPI NOR flash emulated by the device.

    In atomic mode a request is held back until the response is asked for,
    and both go out as a single SPI message.
    """

    def __init__(
        self,
        fd: int,
        mailbox: int = 0,
        atomic: bool = False,
        transact: Transact | None = None,
    ) -> None:
        self.fd = fd
        self.mailbox = mailbox
        self.atomic = bool(atomic)
        self.address_mode_4b = True
        self._transact = transact or functools.partial(_spidev_transact, fd)
        self._buffered: bytes | None = None

    def _address(self, offset: int = 0) -> bytes:
        return nor_address(self.mailbox + offset, self.address_mode_4b)

    def _check(self, length: int) -> None:
        if self.fd < 0 or length == 0:
            raise HothError(Status.INVALID_PARAMETER, "closed device or empty transfer")

    def _write(self, data: bytes) -> None:
        self._check(len(data))
        self._transact(
            [
                SpiTransfer(tx=bytes([OPCODE_WRITE_ENABLE]), cs_change=True),
                SpiTransfer(tx=bytes([OPCODE_PAGE_PROGRAM]) + self._address()),
                SpiTransfer(tx=data),
            ]
        )

    def _read(self, offset: int, length: int) -> bytes:
        self._check(length)
        results = self._transact(
            [
                SpiTransfer(tx=bytes([OPCODE_READ]) + self._address(offset)),
                SpiTransfer(rx_len=length),
            ]
        )
        return bytes(results[1])[:length]

    def send(self, request: bytes) -> None:
        request = bytes(request)
        if not self.atomic:
            self._write(request)
            return
        if self._buffered is not None:
            raise HothError(Status.INTERFACE_BUSY, "a request is already pending")
        self._buffered = request

    def receive(self, max_size: int, timeout_ms: int = 0) -> bytes:
        header_size = HostResponseHeader.SIZE
        if max_size < header_size:
            raise HothError(
                Status.INVALID_PARAMETER,
                f"response buffer must hold at least {header_size} bytes",
            )
        if self.atomic:
            return self._send_and_receive(max_size)
        raw_header = self._read(0, header_size)
        header = HostResponseHeader.from_bytes(raw_header)
        if max_size < header_size + header.data_len:
            raise HothError(
                Status.RESPONSE_BUFFER_OVERFLOW,
                f"response of {header_size + header.data_len} bytes "
                f"exceeds {max_size}",
            )
        return raw_header + self._read(header_size, header.data_len)

    def _send_and_receive(self, max_size: int) -> bytes:
        if self._buffered is None:
            raise HothError(Status.INTERFACE_BUSY, "no request is pending")
        request, self._buffered = self._buffered, None
        read_command = bytes([OPCODE_READ]) + self._address()
        results = self._transact(
            [
                SpiTransfer(tx=bytes([OPCODE_WRITE_ENABLE]), cs_change=True),
                SpiTransfer(tx=bytes([OPCODE_PAGE_PROGRAM]) + self._address()),
                SpiTransfer(tx=request, cs_change=True),
                SpiTransfer(tx=read_command),
                SpiTransfer(rx_len=max_size),
            ]
        )
        response = bytes(results[4])[:max_size]
        header = HostResponseHeader.from_bytes(response)
        return response[: HostResponseHeader.SIZE + header.data_len]

    def close(self) -> None:
        self._buffered = None
        if self.fd >= 0:
            try:
                os.close(self.fd)
            finally:
                self.fd = -1


def open_spi(
    path: str | None,
    mailbox: int = 0,
    bits: int = 0,
    mode: int = 0,
    speed: int = 0,
    atomic: bool = False,
) -> SpiDevice:
    """Open a spidev node and configure word size, mode and clock if given."""
    if path is None:
        raise HothError(Status.INVALID_PARAMETER, "a device path is required")
    try:
        fd = os.open(path, os.O_RDWR)
    except OSError as err:
        raise HothError(
            Status.INTERFACE_NOT_FOUND, f"cannot open {path}: {err}"
        ) from err
    settings = [
        (bits, SPI_IOC_WR_BITS_PER_WORD, struct.pack("=B", bits & 0xFF)),
        (mode, SPI_IOC_WR_MODE, struct.pack("=B", mode & 0xFF)),
        (speed, SPI_IOC_WR_MAX_SPEED_HZ, struct.pack("=I", speed & 0xFFFFFFFF)),
    ]
    try:
        import fcntl

        for value, request, payload in settings:
            if value:
                fcntl.ioctl(fd, request, payload)
    except OSError as err:
        os.close(fd)
        raise HothError(Status.FAIL, f"cannot configure {path}: {err}") from err
    return SpiDevice(fd, mailbox, atomic)