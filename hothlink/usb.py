"""Host command transport over USB, using the mailbox or FIFO driver."""

from __future__ import annotations

import contextlib
from collections.abc import Iterable

from hothlink.device import Device, HothError, Status
from hothlink.usb_fifo import FifoDriver
from hothlink.usb_mailbox import MailboxDriver
from hothlink.usb_types import (
    MAX_PORTS,
    VENDOR_ID,
    DeviceDescriptor,
    InterfaceInfo,
    InterfaceType,
    UsbError,
    UsbErrorCode,
    UsbHandle,
    UsbLocation,
    UsbPort,
    find_interface,
)

HOTH_VENDOR_ID = 0x18D1
HOTH_B_PRODUCT_ID = 0x5014
HOTH_D_PRODUCT_ID = 0x022A


class UsbDevice(Device):
    """An opened USB interface together with the driver that speaks to it."""

    def __init__(
        self,
        handle: UsbHandle,
        info: InterfaceInfo,
        driver: MailboxDriver | FifoDriver,
    ) -> None:
        self.handle = handle
        self.info = info
        self.driver = driver
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise UsbError(UsbErrorCode.INVALID_PARAM, "device is closed")

    def send(self, request: bytes) -> None:
        self._check_open()
        self.driver.send_request(request)

    def receive(self, max_size: int, timeout_ms: int = 0) -> bytes:
        self._check_open()
        return self.driver.receive_response(max_size, timeout_ms)

    def close(self) -> None:
        if self._closed:
            return
        self.driver.close()
        self._closed = True
        with contextlib.suppress(UsbError):
            self.handle.release_interface(self.info.interface_id)
        self.handle.close()

    def claim(self) -> None:
        self._check_open()
        try:
            self.handle.claim_interface(self.info.interface_id)
        except UsbError as err:
            if err.code == UsbErrorCode.BUSY:
                raise HothError(Status.INTERFACE_BUSY, "interface is busy") from err
            raise

    def release(self) -> None:
        self._check_open()
        self.handle.release_interface(self.info.interface_id)


def open_usb(port: UsbPort, prng_seed: int = 0) -> UsbDevice:
    """Open a device, claim its host command interface and attach a driver."""
    if port is None:
        raise UsbError(UsbErrorCode.INVALID_PARAM, "no USB device given")
    descriptor = port.descriptor
    if descriptor.vendor_id != VENDOR_ID:
        raise HothError(
            Status.UNKNOWN_VENDOR, f"unknown vendor 0x{descriptor.vendor_id:04x}"
        )
    config = port.active_config
    info = find_interface(config)
    if info.type == InterfaceType.UNKNOWN:
        raise HothError(Status.INTERFACE_NOT_FOUND, "no supported interface found")
    handle = port.open()
    try:
        handle.claim_interface(info.interface_id)
        driver: MailboxDriver | FifoDriver
        if info.type == InterfaceType.MAILBOX:
            driver = MailboxDriver(handle, config, info)
        else:
            driver = FifoDriver(handle, config, info, prng_seed)
    except BaseException:
        with contextlib.suppress(UsbError):
            handle.release_interface(info.interface_id)
        handle.close()
        raise
    return UsbDevice(handle, info, driver)


def device_is_hoth(descriptor: DeviceDescriptor | None) -> bool:
    """Whether the descriptor names one of the known host command devices."""
    return (
        descriptor is not None
        and descriptor.vendor_id == HOTH_VENDOR_ID
        and descriptor.product_id in (HOTH_B_PRODUCT_ID, HOTH_D_PRODUCT_ID)
    )


def get_usb_loc(port: UsbPort) -> UsbLocation:
    """Return the bus and port chain where the device is attached."""
    if port is None:
        raise UsbError(UsbErrorCode.INVALID_PARAM, "no USB device given")
    ports = tuple(port.port_numbers)
    if len(ports) > MAX_PORTS:
        raise UsbError(UsbErrorCode.OVERFLOW, f"more than {MAX_PORTS} ports")
    return UsbLocation(port.bus_number, ports)


def find_usb_device(ports: Iterable[UsbPort], location: UsbLocation) -> UsbPort:
    """Find the host command device attached at ``location``."""
    if ports is None or location is None:
        raise UsbError(UsbErrorCode.INVALID_PARAM, "devices and location required")
    for port in ports:
        try:
            loc = get_usb_loc(port)
        except UsbError:
            continue
        if loc != location:
            continue
        try:
            descriptor = port.descriptor
        except UsbError:
            continue
        if device_is_hoth(descriptor):
            return port
    raise HothError(Status.INTERFACE_NOT_FOUND, f"no device at {location}")