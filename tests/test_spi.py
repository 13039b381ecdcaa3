import os

import pytest

from hothlink.device import HostResponseHeader, HothError, Status
from hothlink.spi import (
    OPCODE_PAGE_PROGRAM,
    OPCODE_READ,
    OPCODE_WRITE_ENABLE,
    SpiDevice,
    SpiTransfer,
    nor_address,
    open_spi,
)

MAILBOX = 0x2000


class FakeFlash:
    """Interprets SPI NOR commands against an in-memory image."""

    def __init__(self, size=0x4000):
        self.memory = bytearray(size)
        self.messages = []
        self.reply = None
        self.fail = False

    def __call__(self, transfers):
        self.messages.append(list(transfers))
        if self.fail:
            raise HothError(Status.FAIL, "bus error")
        results = []
        pending = None
        address = 0
        for transfer in transfers:
            if pending == "write":
                if self.reply is not None:
                    data = self.reply
                else:
                    data = transfer.tx
                self.memory[address:address + len(data)] = data
                pending = None
                results.append(b"")
            elif pending == "read":
                results.append(bytes(self.memory[address:address + transfer.rx_len]))
                pending = None
            else:
                opcode = transfer.tx[0]
                if opcode in (OPCODE_PAGE_PROGRAM, OPCODE_READ):
                    address = int.from_bytes(transfer.tx[1:], "big")
                    pending = "write" if opcode == OPCODE_PAGE_PROGRAM else "read"
                results.append(b"")
        return results


def response(payload, result=0):
    header = HostResponseHeader(3, 0, result, len(payload))
    return header.to_bytes() + payload


@pytest.fixture
def fd():
    descriptor = os.open(os.devnull, os.O_RDWR)
    yield descriptor
    try:
        os.close(descriptor)
    except OSError:
        pass


def test_nor_address_four_byte():
    assert nor_address(0x12345678, True) == bytes([0x12, 0x34, 0x56, 0x78])


def test_nor_address_three_byte_drops_top_byte():
    assert nor_address(0x12345678, False) == bytes([0x34, 0x56, 0x78])


def test_transfer_length():
    assert SpiTransfer(tx=b"abc").length == 3
    assert SpiTransfer(rx_len=9).length == 9


def test_send_writes_enable_then_program(fd):
    flash = FakeFlash()
    device = SpiDevice(fd, MAILBOX, transact=flash)
    device.send(b"request")
    (message,) = flash.messages
    assert message[0] == SpiTransfer(tx=bytes([OPCODE_WRITE_ENABLE]), cs_change=True)
    assert message[1].tx == bytes([OPCODE_PAGE_PROGRAM]) + nor_address(MAILBOX)
    assert flash.memory[MAILBOX:MAILBOX + 7] == b"request"


def test_receive_reads_header_then_payload(fd):
    flash = FakeFlash()
    expected = response(b"\x01\x02\x03\x04")
    flash.memory[MAILBOX:MAILBOX + len(expected)] = expected
    device = SpiDevice(fd, MAILBOX, transact=flash)
    assert device.receive(64) == expected
    assert len(flash.messages) == 2
    assert flash.messages[1][0].tx[1:] == nor_address(MAILBOX + HostResponseHeader.SIZE)


def test_receive_rejects_small_buffer(fd):
    device = SpiDevice(fd, MAILBOX, transact=FakeFlash())
    with pytest.raises(HothError) as info:
        device.receive(HostResponseHeader.SIZE - 1)
    assert info.value.status == Status.INVALID_PARAMETER


def test_receive_overflow(fd):
    flash = FakeFlash()
    data = response(bytes(32))
    flash.memory[MAILBOX:MAILBOX + len(data)] = data
    device = SpiDevice(fd, MAILBOX, transact=flash)
    with pytest.raises(HothError) as info:
        device.receive(16)
    assert info.value.status == Status.RESPONSE_BUFFER_OVERFLOW


def test_send_empty_request_is_invalid(fd):
    device = SpiDevice(fd, MAILBOX, transact=FakeFlash())
    with pytest.raises(HothError) as info:
        device.send(b"")
    assert info.value.status == Status.INVALID_PARAMETER


def test_closed_device_is_invalid(fd):
    device = SpiDevice(fd, MAILBOX, transact=FakeFlash())
    device.close()
    assert device.fd == -1
    with pytest.raises(HothError) as info:
        device.send(b"x")
    assert info.value.status == Status.INVALID_PARAMETER


def test_atomic_round_trip_in_one_message(fd):
    flash = FakeFlash()
    expected = response(b"pong")
    flash.reply = expected
    device = SpiDevice(fd, MAILBOX, atomic=True, transact=flash)
    device.send(b"ping")
    assert flash.messages == []
    assert device.receive(64) == expected
    (message,) = flash.messages
    assert len(message) == 5
    assert message[2].tx == b"ping"
    assert message[4].rx_len == 64


def test_atomic_second_send_is_busy(fd):
    device = SpiDevice(fd, MAILBOX, atomic=True, transact=FakeFlash())
    device.send(b"one")
    with pytest.raises(HothError) as info:
        device.send(b"two")
    assert info.value.status == Status.INTERFACE_BUSY


def test_atomic_receive_without_send_is_busy(fd):
    device = SpiDevice(fd, MAILBOX, atomic=True, transact=FakeFlash())
    with pytest.raises(HothError) as info:
        device.receive(64)
    assert info.value.status == Status.INTERFACE_BUSY


def test_atomic_failure_clears_pending_request(fd):
    flash = FakeFlash()
    flash.fail = True
    device = SpiDevice(fd, MAILBOX, atomic=True, transact=flash)
    device.send(b"one")
    with pytest.raises(HothError) as info:
        device.receive(64)
    assert info.value.status == Status.FAIL
    flash.fail = False
    flash.reply = response(b"")
    device.send(b"two")
    assert device.receive(64) == response(b"")


def test_open_spi_requires_path():
    with pytest.raises(HothError) as info:
        open_spi(None)
    assert info.value.status == Status.INVALID_PARAMETER


def test_open_spi_missing_device(tmp_path):
    with pytest.raises(HothError) as info:
        open_spi(str(tmp_path / "missing"))
    assert info.value.status == Status.INTERFACE_NOT_FOUND