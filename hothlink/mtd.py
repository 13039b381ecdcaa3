"""Host command transport over an MTD flash device holding a mailbox."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

from hothlink.device import Device, HostResponseHeader, HothError, Status

DEFAULT_PROC_MTD = "/proc/mtd"

_LINE = re.compile(r"^mtd(\d+):\s*(\S+)\s+(\S+)\s+(\S+)")


@dataclass(frozen=True)
class MtdEntry:
    """One partition listed in /proc/mtd."""

    index: int
    size: str
    erase_size: str
    name: str

    @property
    def path(self) -> str:
        return f"/dev/mtd{self.index}"


def parse_proc_mtd(text: str) -> list[MtdEntry]:
    """Parse the contents of /proc/mtd, skipping lines that list no partition."""
    entries = []
    for line in text.splitlines():
        match = _LINE.match(line)
        if match is None:
            continue
        index, size, erase_size, name = match.groups()
        if name.startswith('"') and len(name) > 2:
            name = name[1:-1]
        entries.append(MtdEntry(int(index), size, erase_size, name))
    return entries


def resolve_mtd_path(name: str, proc_path: str = DEFAULT_PROC_MTD) -> str:
    """Return the device path of the first partition called ``name``."""
    try:
        with open(proc_path, encoding="utf-8", errors="replace") as proc:
            text = proc.read()
    except OSError as err:
        raise HothError(
            Status.INTERFACE_NOT_FOUND, f"cannot read {proc_path}: {err}"
        ) from err
    for entry in parse_proc_mtd(text):
        if entry.name == name:
            return entry.path
    raise HothError(Status.INTERFACE_NOT_FOUND, f"no MTD partition named {name!r}")


class MtdDevice(Device):
    """A mailbox at a fixed address of an open MTD device."""

    def __init__(self, fd: int, mailbox: int = 0) -> None:
        self.fd = fd
        self.mailbox = mailbox

    def _check_open(self) -> None:
        if self.fd < 0:
            raise HothError(Status.INVALID_PARAMETER, "device is closed")

    def _seek(self, address: int) -> None:
        try:
            os.lseek(self.fd, address, os.SEEK_SET)
        except OSError as err:
            raise HothError(Status.FAIL, f"seek failed: {err}") from err

    def _read(self, address: int, length: int) -> bytes:
        self._check_open()
        if length == 0:
            return b""
        self._seek(address)
        chunks = []
        remaining = length
        while remaining > 0:
            try:
                chunk = os.read(self.fd, remaining)
            except OSError as err:
                raise HothError(Status.FAIL, f"read failed: {err}") from err
            if not chunk:
                raise HothError(Status.IN_OVERFLOW, "end of device reached")
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def _write(self, address: int, data: bytes) -> None:
        self._check_open()
        if not data:
            raise HothError(Status.INVALID_PARAMETER, "nothing to write")
        self._seek(address)
        try:
            written = os.write(self.fd, data)
        except OSError as err:
            raise HothError(Status.FAIL, f"write failed: {err}") from err
        if written != len(data):
            raise HothError(Status.OUT_UNDERFLOW, "incomplete write")

    def send(self, request: bytes) -> None:
        self._write(self.mailbox, bytes(request))

    def receive(self, max_size: int, timeout_ms: int = 0) -> bytes:
        header_size = HostResponseHeader.SIZE
        if max_size < header_size:
            raise HothError(
                Status.INVALID_PARAMETER,
                f"response buffer must hold at least {header_size} bytes",
            )
        raw_header = self._read(self.mailbox, header_size)
        header = HostResponseHeader.from_bytes(raw_header)
        if max_size < header_size + header.data_len:
            raise HothError(
                Status.RESPONSE_BUFFER_OVERFLOW,
                f"response of {header_size + header.data_len} bytes "
                f"exceeds {max_size}",
            )
        payload = self._read(self.mailbox + header_size, header.data_len)
        return raw_header + payload

    def close(self) -> None:
        if self.fd >= 0:
            try:
                os.close(self.fd)
            finally:
                self.fd = -1


def open_mtd(
    path: str | None = "",
    name: str | None = "",
    mailbox: int = 0,
    proc_path: str = DEFAULT_PROC_MTD,
) -> MtdDevice:
    """Open an MTD device by path, or by partition name when no path is given."""
    if path is None or name is None:
        raise HothError(Status.INVALID_PARAMETER, "path and name are required")
    resolved = path if path else resolve_mtd_path(name, proc_path)
    try:
        fd = os.open(resolved, os.O_RDWR)
    except OSError as err:
        raise HothError(
            Status.INTERFACE_NOT_FOUND, f"cannot open {resolved}: {err}"
        ) from err
    return MtdDevice(fd, mailbox)