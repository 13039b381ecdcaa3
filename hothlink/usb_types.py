"""USB descriptors, error codes and the backend interfaces the USB drivers use."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Protocol, runtime_checkable

VENDOR_ID = 0x18D1
INTERFACE_CLASS = 0xFF
MAILBOX_INTERFACE_SUBCLASS = 0x71
MAILBOX_INTERFACE_PROTOCOL = 0x01
FIFO_INTERFACE_SUBCLASS = 0x58
FIFO_INTERFACE_PROTOCOL = 0x01

ENDPOINT_DIR_MASK = 0x80
ENDPOINT_IN = 0x80
ENDPOINT_OUT = 0x00
TRANSFER_TYPE_MASK = 0x03
TRANSFER_TYPE_BULK = 2

MAX_PORTS = 16


class InterfaceType(IntEnum):
    UNKNOWN = 0
    MAILBOX = 1
    FIFO = 2


class TransferStatus(IntEnum):
    COMPLETED = 0
    ERROR = 1
    TIMED_OUT = 2
    CANCELLED = 3
    STALL = 4
    NO_DEVICE = 5
    OVERFLOW = 6


class UsbErrorCode(IntEnum):
    SUCCESS = 0
    IO = -1
    INVALID_PARAM = -2
    ACCESS = -3
    NO_DEVICE = -4
    NOT_FOUND = -5
    BUSY = -6
    TIMEOUT = -7
    OVERFLOW = -8
    PIPE = -9
    INTERRUPTED = -10
    NO_MEM = -11
    NOT_SUPPORTED = -12
    OTHER = -99


class UsbError(Exception):
    """A USB operation failed with a USB error code."""

    def __init__(self, code: UsbErrorCode | int, message: str | None = None) -> None:
        try:
            code = UsbErrorCode(code)
        except ValueError:
            code = UsbErrorCode.OTHER
        self.code = code
        super().__init__(message or code.name)


def transfer_status_to_error(status: TransferStatus | int) -> UsbErrorCode:
    """Map the final status of a transfer to the matching error code."""
    mapping = {
        TransferStatus.COMPLETED: UsbErrorCode.SUCCESS,
        TransferStatus.ERROR: UsbErrorCode.IO,
        TransferStatus.CANCELLED: UsbErrorCode.IO,
        TransferStatus.TIMED_OUT: UsbErrorCode.TIMEOUT,
        TransferStatus.STALL: UsbErrorCode.PIPE,
        TransferStatus.NO_DEVICE: UsbErrorCode.NO_DEVICE,
        TransferStatus.OVERFLOW: UsbErrorCode.OVERFLOW,
    }
    try:
        return mapping[TransferStatus(status)]
    except ValueError:
        return UsbErrorCode.OTHER


@dataclass(frozen=True)
class EndpointDescriptor:
    address: int
    attributes: int
    max_packet_size: int

    @property
    def is_in(self) -> bool:
        return (self.address & ENDPOINT_DIR_MASK) == ENDPOINT_IN

    @property
    def is_bulk(self) -> bool:
        return (self.attributes & TRANSFER_TYPE_MASK) == TRANSFER_TYPE_BULK


@dataclass(frozen=True)
class InterfaceDescriptor:
    interface_class: int
    interface_subclass: int
    interface_protocol: int
    endpoints: tuple[EndpointDescriptor, ...] = ()


@dataclass(frozen=True)
class ConfigDescriptor:
    """The active configuration: for each interface, its alternate settings."""

    interfaces: tuple[tuple[InterfaceDescriptor, ...], ...] = ()

    def altsetting(self, interface_id: int, altsetting: int) -> InterfaceDescriptor:
        return self.interfaces[interface_id][altsetting]


@dataclass(frozen=True)
class DeviceDescriptor:
    vendor_id: int
    product_id: int


@dataclass(frozen=True)
class InterfaceInfo:
    type: InterfaceType = InterfaceType.UNKNOWN
    interface_id: int = 0
    altsetting: int = 0


@dataclass(frozen=True)
class UsbLocation:
    """Where a device sits: its bus and the chain of hub ports leading to it."""

    bus: int
    ports: tuple[int, ...] = field(default=())

    def __post_init__(self) -> None:
        if not 0 <= self.bus <= 0xFF:
            raise ValueError(f"bus number out of range: {self.bus}")
        if len(self.ports) > MAX_PORTS:
            raise ValueError(f"at most {MAX_PORTS} ports, got {len(self.ports)}")
        object.__setattr__(self, "ports", tuple(self.ports))

    @property
    def num_ports(self) -> int:
        return len(self.ports)


@runtime_checkable
class UsbHandle(Protocol):
    """An opened USB device. Failures raise UsbError."""

    def claim_interface(self, interface_id: int) -> None: ...

    def release_interface(self, interface_id: int) -> None: ...

    def bulk_write(
        self, endpoint: int, data: bytes, timeout_ms: int, zero_packet: bool = False
    ) -> int:
        """Write ``data``; return the number of bytes transferred."""
        ...

    def bulk_read(self, endpoint: int, length: int, timeout_ms: int) -> bytes:
        """Read up to ``length`` bytes."""
        ...

    def clear_halt(self, endpoint: int) -> None: ...

    def close(self) -> None: ...


@runtime_checkable
class UsbPort(Protocol):
    """A USB device seen on the bus, not yet opened. Failures raise UsbError."""

    @property
    def descriptor(self) -> DeviceDescriptor: ...

    @property
    def active_config(self) -> ConfigDescriptor: ...

    @property
    def bus_number(self) -> int: ...

    @property
    def port_numbers(self) -> tuple[int, ...]: ...

    def open(self) -> UsbHandle: ...


def find_interface(config: ConfigDescriptor) -> InterfaceInfo:
    """Find the first mailbox or FIFO interface of the configuration."""
    for interface_id, settings in enumerate(config.interfaces):
        for altsetting, interface in enumerate(settings):
            if interface.interface_class != INTERFACE_CLASS:
                continue
            kind = {
                (MAILBOX_INTERFACE_SUBCLASS, MAILBOX_INTERFACE_PROTOCOL): (
                    InterfaceType.MAILBOX
                ),
                (FIFO_INTERFACE_SUBCLASS, FIFO_INTERFACE_PROTOCOL): InterfaceType.FIFO,
            }.get((interface.interface_subclass, interface.interface_protocol))
            if kind is not None:
                return InterfaceInfo(kind, interface_id, altsetting)
    return InterfaceInfo()


def find_bulk_endpoints(
    interface: InterfaceDescriptor,
) -> tuple[EndpointDescriptor, EndpointDescriptor]:
    """Return the single bulk IN and single bulk OUT endpoint of an interface."""
    ep_in = None
    ep_out = None
    for endpoint in interface.endpoints:
        if not endpoint.is_bulk:
            continue
        if endpoint.is_in:
            if ep_in is not None:
                raise UsbError(UsbErrorCode.INVALID_PARAM, "more than one bulk IN endpoint")
            ep_in = endpoint
        else:
            if ep_out is not None:
                raise UsbError(
                    UsbErrorCode.INVALID_PARAM, "more than one bulk OUT endpoint"
                )
            ep_out = endpoint
    if ep_in is None or ep_out is None:
        raise UsbError(UsbErrorCode.INVALID_PARAM, "bulk IN and OUT endpoints required")
    return ep_in, ep_out