import os

import pytest

from hothlink.device import HostResponseHeader, HothError, Status
from hothlink.mtd import (
    MtdDevice,
    MtdEntry,
    open_mtd,
    parse_proc_mtd,
    resolve_mtd_path,
)

PROC_TEXT = (
    "dev:    size   erasesize  name\n"
    'mtd0: 00100000 00010000 "bios"\n'
    'mtd1: 00002000 00001000 "hoth-mailbox"\n'
    "garbage line\n"
)


@pytest.fixture
def image(tmp_path):
    path = tmp_path / "flash.bin"
    path.write_bytes(bytes(256))
    return path


@pytest.fixture
def proc_file(tmp_path):
    path = tmp_path / "mtd"
    path.write_text(PROC_TEXT)
    return path


def _write_at(path, offset, data):
    with open(path, "r+b") as f:
        f.seek(offset)
        f.write(data)


def test_parse_proc_mtd_strips_quotes_and_skips_header():
    entries = parse_proc_mtd(PROC_TEXT)
    assert entries == [
        MtdEntry(0, "00100000", "00010000", "bios"),
        MtdEntry(1, "00002000", "00001000", "hoth-mailbox"),
    ]
    assert entries[1].path == "/dev/mtd1"


def test_parse_proc_mtd_keeps_unquoted_names():
    assert [e.name for e in parse_proc_mtd("mtd3: 1 2 plain\n")] == ["plain"]


def test_resolve_mtd_path_finds_named_partition(proc_file):
    assert resolve_mtd_path("hoth-mailbox", str(proc_file)) == "/dev/mtd1"


def test_resolve_mtd_path_missing_name(proc_file):
    with pytest.raises(HothError) as info:
        resolve_mtd_path("absent", str(proc_file))
    assert info.value.status == Status.INTERFACE_NOT_FOUND


def test_resolve_mtd_path_missing_proc_file(tmp_path):
    with pytest.raises(HothError) as info:
        resolve_mtd_path("bios", str(tmp_path / "nope"))
    assert info.value.status == Status.INTERFACE_NOT_FOUND


def test_send_writes_request_at_mailbox(image):
    with open_mtd(path=str(image), mailbox=16) as dev:
        dev.send(b"\x03\x01\x02\x03")
    assert image.read_bytes()[16:20] == b"\x03\x01\x02\x03"


def test_send_empty_request_is_invalid(image):
    with open_mtd(path=str(image)) as dev:
        with pytest.raises(HothError) as info:
            dev.send(b"")
    assert info.value.status == Status.INVALID_PARAMETER


def test_receive_reads_header_and_payload(image):
    header = HostResponseHeader(3, 0, 0, 4).to_bytes()
    _write_at(image, 32, header + b"abcd" + b"zz")
    with open_mtd(path=str(image), mailbox=32) as dev:
        response = dev.receive(64, 0)
    assert response == header + b"abcd"
    assert HostResponseHeader.from_bytes(response).data_len == len(response) - 8


def test_round_trip_through_mailbox(image):
    header = HostResponseHeader(3, 0, 0, 2).to_bytes()
    with open_mtd(path=str(image), mailbox=8) as dev:
        dev.send(header + b"hi")
        assert dev.receive(1024, 0) == header + b"hi"


def test_receive_small_buffer_is_invalid(image):
    with open_mtd(path=str(image)) as dev:
        with pytest.raises(HothError) as info:
            dev.receive(7, 0)
    assert info.value.status == Status.INVALID_PARAMETER


def test_receive_buffer_overflow(image):
    _write_at(image, 0, HostResponseHeader(3, 0, 0, 10).to_bytes())
    with open_mtd(path=str(image)) as dev:
        with pytest.raises(HothError) as info:
            dev.receive(17, 0)
    assert info.value.status == Status.RESPONSE_BUFFER_OVERFLOW


def test_receive_past_end_of_device(tmp_path):
    path = tmp_path / "short.bin"
    path.write_bytes(HostResponseHeader(3, 0, 0, 100).to_bytes() + b"xy")
    with open_mtd(path=str(path)) as dev:
        with pytest.raises(HothError) as info:
            dev.receive(1024, 0)
    assert info.value.status == Status.IN_OVERFLOW


def test_close_releases_descriptor(image):
    fd = os.open(str(image), os.O_RDWR)
    dev = MtdDevice(fd, 0)
    dev.close()
    assert dev.fd == -1
    with pytest.raises(OSError):
        os.fstat(fd)
    with pytest.raises(HothError) as info:
        dev.send(b"x")
    assert info.value.status == Status.INVALID_PARAMETER


def test_open_mtd_by_name_uses_proc_listing(tmp_path):
    proc = tmp_path / "mtd"
    proc.write_text('mtd0: 1 1 "other"\n')
    with pytest.raises(HothError) as info:
        open_mtd(name="hoth", proc_path=str(proc))
    assert info.value.status == Status.INTERFACE_NOT_FOUND


def test_open_mtd_missing_path(tmp_path):
    with pytest.raises(HothError) as info:
        open_mtd(path=str(tmp_path / "missing"))
    assert info.value.status == Status.INTERFACE_NOT_FOUND


def test_open_mtd_requires_path_and_name():
    with pytest.raises(HothError) as info:
        open_mtd(path=None, name="x")
    assert info.value.status == Status.INVALID_PARAMETER