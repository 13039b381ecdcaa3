import struct

import pytest

from hothlink import commands as c


def test_hello_request_is_little_endian_u32():
    assert c.HelloRequest(0x01020304).pack() == bytes([4, 3, 2, 1])


def test_hello_response_unpack():
    wire = struct.pack("<I", 7 + c.HELLO_RESPONSE_OFFSET)
    assert c.HelloResponse.unpack(wire).out_data == 7 + c.HELLO_RESPONSE_OFFSET


def test_hello_response_rejects_short():
    with pytest.raises(ValueError):
        c.HelloResponse.unpack(b"\x01\x02")


def test_flash_spi_info_unpack():
    wire = b"\xef\x40\x19" + b"\x00" + b"\xef\x18" + b"\x02\x03"
    info = c.FlashSpiInfo.unpack(wire)
    assert info.jedec == b"\xef\x40\x19"
    assert info.reserved0 == 0
    assert info.mfr_dev_id == b"\xef\x18"
    assert (info.sr1, info.sr2) == (2, 3)


def test_reset_target_request_layout():
    wire = c.ResetTargetRequest(5, c.TargetResetOption.SET).pack()
    assert len(wire) == 17
    assert struct.unpack_from("<IB", wire) == (5, c.TargetResetOption.SET)
    assert wire[5:] == bytes(12)


def test_reset_target_defaults_to_pulse():
    wire = c.ResetTargetRequest().pack()
    assert wire[4] == c.TargetResetOption.PULSE


def test_channel_read_request_fields():
    wire = c.ChannelReadRequest(1, 200, 64, 1000).pack()
    assert struct.unpack("<IIII", wire) == (1, 200, 64, 1000)


def test_channel_read_response_splits_offset_and_data():
    resp = c.ChannelReadResponse.unpack(struct.pack("<I", 42) + b"hello")
    assert resp.offset == 42
    assert resp.data == b"hello"


def test_channel_status_round_trip():
    assert struct.unpack("<I", c.ChannelStatusRequest(9).pack()) == (9,)
    assert c.ChannelStatusResponse.unpack(struct.pack("<I", 77)).write_offset == 77


def test_channel_write_v0_and_v1():
    v0 = c.ChannelWriteRequest(3, b"ab").pack()
    assert v0 == struct.pack("<I", 3) + b"ab"
    v1 = c.ChannelWriteRequest(3, b"ab", c.CHANNEL_WRITE_FLAG_SEND_BREAK).pack()
    assert v1 == struct.pack("<II", 3, c.CHANNEL_WRITE_FLAG_SEND_BREAK) + b"ab"


def test_uart_config_round_trip():
    cfg = c.UartConfig(115200)
    assert c.UartConfig.unpack(cfg.pack()) == cfg


def test_uart_config_get_and_set_requests():
    assert c.UartConfigGetRequest(2).pack() == struct.pack("<I", 2)
    cfg = c.UartConfig(9600)
    assert c.UartConfigSetRequest(2, cfg).pack() == struct.pack("<I", 2) + cfg.pack()


def test_console_read_request_single_byte():
    assert c.ConsoleReadRequest(c.ConsoleReadSubcmd.RECENT).pack() == bytes(
        [c.ConsoleReadSubcmd.RECENT]
    )


def test_authz_nonce_response_unpack():
    nonce = bytes(range(32))
    resp = c.AuthzNonceResponse.unpack(nonce + struct.pack("<I", 6))
    assert resp.nonce == nonce
    assert resp.supported_key_info == 6


def test_authz_command_request_layout():
    nonce = bytes(range(32))
    req = c.AuthzCommandRequest(
        signature=b"\x11" * 64, size=12, key_info=4, dev_id_0=10, dev_id_1=20,
        nonce=nonce, opcode=3, arg_bytes=struct.pack("<I", 99),
    )
    wire = req.pack()
    assert wire[:64] == b"\x11" * 64
    assert struct.unpack_from("<IIIII", wire, 64) == (
        c.AUTHORIZED_COMMAND_VERSION, 12, 4, 10, 20,
    )
    assert wire[84:116] == nonce
    assert struct.unpack_from("<II", wire, 116) == (3, 99)
    assert len(wire) == 124


def test_authz_command_rejects_bad_signature():
    with pytest.raises(ValueError):
        c.AuthzCommandRequest(signature=b"\x00" * 10).pack()


def test_authz_command_rejects_partial_word_args():
    with pytest.raises(ValueError):
        c.AuthzCommandRequest(arg_bytes=b"\x01\x02\x03").pack()


def test_srtm_request_layout():
    wire = c.SrtmRequest(b"measure").pack()
    assert struct.unpack_from("<H", wire) == (len(b"measure"),)
    assert wire[2:2 + len(b"measure")] == b"measure"
    assert len(wire) % 4 == 0


def test_srtm_request_rejects_oversized_data():
    with pytest.raises(ValueError):
        c.SrtmRequest(b"x" * (c.SRTM_DATA_MAX_SIZE_BYTES + 1)).pack()


def test_target_control_request():
    wire = c.TargetControlRequest(
        c.TargetControlFunction.I2C_MUX, c.TargetControlAction.ENABLE
    ).pack()
    assert struct.unpack("<HH", wire) == (
        c.TargetControlFunction.I2C_MUX,
        c.TargetControlAction.ENABLE,
    )


def test_target_control_response_maps_status():
    resp = c.TargetControlResponse.unpack(struct.pack("<H", 2))
    assert resp.status is c.TargetControlStatus.ENABLED
    assert resp.status == c.TargetControlStatus.EXTERNAL_USB_HOST_PRESENT


def test_target_control_response_keeps_unknown_status():
    assert c.TargetControlResponse.unpack(struct.pack("<H", 500)).status == 500


def test_jtag_read_idcode_request_is_header_only():
    wire = c.JtagRequest(c.JtagOperation.READ_IDCODE, clk_idiv=7).pack()
    assert struct.unpack("<HBB", wire) == (7, c.JtagOperation.READ_IDCODE, 0)


def test_jtag_bypass_request_appends_pattern():
    pattern = bytes(range(64))
    wire = c.JtagRequest(c.JtagOperation.TEST_BYPASS, tdi_pattern=pattern).pack()
    assert wire[4:] == pattern


def test_jtag_bypass_requires_full_pattern():
    with pytest.raises(ValueError):
        c.JtagRequest(c.JtagOperation.TEST_BYPASS, tdi_pattern=b"\x00").pack()


def test_jtag_pld_request_appends_offset():
    wire = c.JtagRequest(c.JtagOperation.VERIFY_PLD, data_offset=0x1000).pack()
    assert struct.unpack_from("<I", wire, 4) == (0x1000,)
    with pytest.raises(ValueError):
        c.JtagRequest(c.JtagOperation.PROGRAM_AND_VERIFY_PLD).pack()


def test_jtag_responses_unpack():
    assert c.JtagIdcodeResponse.unpack(struct.pack("<I", 0x4BA00477)).idcode == 0x4BA00477
    pattern = bytes(reversed(range(64)))
    assert c.JtagBypassResponse.unpack(pattern).tdo_pattern == pattern
    with pytest.raises(ValueError):
        c.JtagBypassResponse.unpack(pattern[:10])


def test_image_alias():
    assert c.HothImage(2) is c.HothImage.RW_A
    assert c.HothImage(2) is c.HothImage.RW
    assert c.HothImage(3) is c.HothImage.RO_B