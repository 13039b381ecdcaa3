"""Host command identifiers and their request and response layouts."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum

CMD_HELLO = 0x0001
CMD_FLASH_SPI_INFO = 0x0018
CMD_CONSOLE_REQUEST = 0x0097
CMD_CONSOLE_READ = 0x0098

PRV_CMD_RESET_TARGET = 0x0012
PRV_CMD_ARM_COORDINATED_RESET = 0x001A
PRV_CMD_AUTHZ_COMMAND = 0x0034
PRV_CMD_GET_AUTHZ_COMMAND_NONCE = 0x0035
PRV_CMD_CHANNEL_READ = 0x0036
PRV_CMD_CHANNEL_STATUS = 0x0037
PRV_CMD_CHANNEL_WRITE = 0x0038
PRV_CMD_CHANNEL_UART_CONFIG_GET = 0x0039
PRV_CMD_CHANNEL_UART_CONFIG_SET = 0x003A
PRV_CMD_SPS_PASSTHROUGH_DISABLE = 0x003B
PRV_CMD_SPS_PASSTHROUGH_ENABLE = 0x003C
PRV_CMD_SRTM = 0x0044
PRV_CMD_TARGET_CONTROL = 0x0047
PRV_CMD_JTAG_OPERATION = 0x0048

HELLO_RESPONSE_OFFSET = 0x01020304
RESET_TARGET_ID_RSTCTRL0 = 0
CHANNEL_WRITE_FLAG_FORCE_DRIVE_TX = 1 << 0
CHANNEL_WRITE_FLAG_SEND_BREAK = 1 << 1

AUTHORIZED_COMMAND_SIGNATURE_SIZE = 64
AUTHORIZED_COMMAND_NONCE_SIZE = 32
AUTHORIZED_COMMAND_VERSION = 1

MAILBOX_SIZE = 1024
SRTM_DATA_MAX_SIZE_BYTES = 64
JTAG_TEST_BYPASS_PATTERN_LEN = 64


class HothImage(IntEnum):
    UNKNOWN = 0
    RO = 1
    RW = 2
    RW_A = 2
    RO_B = 3
    RW_B = 4


class TargetResetOption(IntEnum):
    RELEASE = 0
    SET = 1
    PULSE = 2


class ConsoleReadSubcmd(IntEnum):
    NEXT = 0
    RECENT = 1


class TargetControlAction(IntEnum):
    GET_STATUS = 0
    DISABLE = 1
    ENABLE = 2


class TargetControlFunction(IntEnum):
    RESERVED0 = 0
    RESERVED1 = 1
    I2C_MUX = 2
    GENERIC_MUX = 3
    DETECT_EXTERNAL_USB_HOST_PRESENCE = 4


class TargetControlStatus(IntEnum):
    UNKNOWN = 0
    DISABLED = 1
    ENABLED = 2
    EXTERNAL_USB_HOST_NOT_PRESENT = 1
    EXTERNAL_USB_HOST_PRESENT = 2


class JtagOperation(IntEnum):
    UNDEFINED = 0
    READ_IDCODE = 1
    TEST_BYPASS = 2
    PROGRAM_AND_VERIFY_PLD = 3
    VERIFY_PLD = 4


def _unpack(layout: struct.Struct, data: bytes, what: str) -> tuple:
    if len(data) < layout.size:
        raise ValueError(f"{what} needs {layout.size} bytes, got {len(data)}")
    return layout.unpack_from(data)


def _check_length(value: bytes, size: int, what: str) -> None:
    if len(value) != size:
        raise ValueError(f"{what} must be {size} bytes, got {len(value)}")


_U32 = struct.Struct("<I")


@dataclass(frozen=True)
class HelloRequest:
    in_data: int

    def pack(self) -> bytes:
        return _U32.pack(self.in_data)


@dataclass(frozen=True)
class HelloResponse:
    """Response to hello; ``out_data`` is the request value plus 0x01020304."""

    out_data: int

    @classmethod
    def unpack(cls, data: bytes) -> HelloResponse:
        return cls(*_unpack(_U32, data, "hello response"))


@dataclass(frozen=True)
class FlashSpiInfo:
    jedec: bytes
    reserved0: int
    mfr_dev_id: bytes
    sr1: int
    sr2: int

    _LAYOUT = struct.Struct("<3sB2sBB")

    @classmethod
    def unpack(cls, data: bytes) -> FlashSpiInfo:
        return cls(*_unpack(cls._LAYOUT, data, "flash SPI info"))


@dataclass(frozen=True)
class ResetTargetRequest:
    target_id: int = RESET_TARGET_ID_RSTCTRL0
    reset_option: TargetResetOption = TargetResetOption.PULSE

    _LAYOUT = struct.Struct("<IB12x")

    def pack(self) -> bytes:
        return self._LAYOUT.pack(self.target_id, int(self.reset_option))


@dataclass(frozen=True)
class ChannelReadRequest:
    channel_id: int
    offset: int
    size: int
    timeout_us: int = 0

    _LAYOUT = struct.Struct("<IIII")

    def pack(self) -> bytes:
        return self._LAYOUT.pack(
            self.channel_id, self.offset, self.size, self.timeout_us
        )


@dataclass(frozen=True)
class ChannelReadResponse:
    """The offset where data was found, and the data itself."""

    offset: int
    data: bytes

    @classmethod
    def unpack(cls, data: bytes) -> ChannelReadResponse:
        (offset,) = _unpack(_U32, data, "channel read response")
        return cls(offset, bytes(data[_U32.size:]))


@dataclass(frozen=True)
class ChannelStatusRequest:
    channel_id: int

    def pack(self) -> bytes:
        return _U32.pack(self.channel_id)


@dataclass(frozen=True)
class ChannelStatusResponse:
    write_offset: int

    @classmethod
    def unpack(cls, data: bytes) -> ChannelStatusResponse:
        return cls(*_unpack(_U32, data, "channel status response"))


@dataclass(frozen=True)
class ChannelWriteRequest:
    """A channel write; with ``flags`` set it uses the version 1 layout."""

    channel_id: int
    data: bytes
    flags: int | None = None

    def pack(self) -> bytes:
        if self.flags is None:
            header = _U32.pack(self.channel_id)
        else:
            header = struct.pack("<II", self.channel_id, self.flags)
        return header + bytes(self.data)


@dataclass(frozen=True)
class UartConfig:
    baud_rate: int
    reserved: int = 0

    _LAYOUT = struct.Struct("<II")

    def pack(self) -> bytes:
        return self._LAYOUT.pack(self.baud_rate, self.reserved)

    @classmethod
    def unpack(cls, data: bytes) -> UartConfig:
        return cls(*_unpack(cls._LAYOUT, data, "UART config"))


@dataclass(frozen=True)
class UartConfigGetRequest:
    channel_id: int

    def pack(self) -> bytes:
        return _U32.pack(self.channel_id)


@dataclass(frozen=True)
class UartConfigSetRequest:
    channel_id: int
    config: UartConfig

    def pack(self) -> bytes:
        return _U32.pack(self.channel_id) + self.config.pack()


@dataclass(frozen=True)
class ConsoleReadRequest:
    subcmd: ConsoleReadSubcmd = ConsoleReadSubcmd.NEXT

    def pack(self) -> bytes:
        return struct.pack("<B", int(self.subcmd))


@dataclass(frozen=True)
class AuthzNonceResponse:
    nonce: bytes
    supported_key_info: int

    _LAYOUT = struct.Struct(f"<{AUTHORIZED_COMMAND_NONCE_SIZE}sI")

    @classmethod
    def unpack(cls, data: bytes) -> AuthzNonceResponse:
        return cls(*_unpack(cls._LAYOUT, data, "authorization nonce response"))


@dataclass(frozen=True)
class AuthzCommandRequest:
    signature: bytes = bytes(AUTHORIZED_COMMAND_SIGNATURE_SIZE)
    version: int = AUTHORIZED_COMMAND_VERSION
    size: int = 0
    key_info: int = 0
    dev_id_0: int = 0
    dev_id_1: int = 0
    nonce: bytes = bytes(AUTHORIZED_COMMAND_NONCE_SIZE)
    opcode: int = 0
    arg_bytes: bytes = field(default=b"")

    _LAYOUT = struct.Struct(
        f"<{AUTHORIZED_COMMAND_SIGNATURE_SIZE}sIIIII"
        f"{AUTHORIZED_COMMAND_NONCE_SIZE}sI"
    )

    def pack(self) -> bytes:
        _check_length(self.signature, AUTHORIZED_COMMAND_SIGNATURE_SIZE, "signature")
        _check_length(self.nonce, AUTHORIZED_COMMAND_NONCE_SIZE, "nonce")
        if len(self.arg_bytes) % 4:
            raise ValueError("argument bytes must be a whole number of 32-bit words")
        return (
            self._LAYOUT.pack(
                bytes(self.signature),
                self.version,
                self.size,
                self.key_info,
                self.dev_id_0,
                self.dev_id_1,
                bytes(self.nonce),
                self.opcode,
            )
            + bytes(self.arg_bytes)
        )


@dataclass(frozen=True)
class SrtmRequest:
    data: bytes

    _LAYOUT = struct.Struct(f"<H{SRTM_DATA_MAX_SIZE_BYTES}s2x")

    def pack(self) -> bytes:
        if len(self.data) > SRTM_DATA_MAX_SIZE_BYTES:
            raise ValueError(
                f"SRTM data may hold at most {SRTM_DATA_MAX_SIZE_BYTES} bytes, "
                f"got {len(self.data)}"
            )
        return self._LAYOUT.pack(len(self.data), bytes(self.data))


@dataclass(frozen=True)
class TargetControlRequest:
    function: TargetControlFunction
    action: TargetControlAction
    args: bytes = b""

    def pack(self) -> bytes:
        return struct.pack("<HH", int(self.function), int(self.action)) + bytes(
            self.args
        )


@dataclass(frozen=True)
class TargetControlResponse:
    status: TargetControlStatus | int

    _LAYOUT = struct.Struct("<H")

    @classmethod
    def unpack(cls, data: bytes) -> TargetControlResponse:
        (raw,) = _unpack(cls._LAYOUT, data, "target control response")
        try:
            return cls(TargetControlStatus(raw))
        except ValueError:
            return cls(raw)


@dataclass(frozen=True)
class JtagRequest:
    """A JTAG operation; the clock is about 48/(clk_idiv+1) MHz."""

    operation: JtagOperation
    clk_idiv: int = 0
    tdi_pattern: bytes | None = None
    data_offset: int | None = None

    _HEADER = struct.Struct("<HBx")

    def pack(self) -> bytes:
        header = self._HEADER.pack(self.clk_idiv, int(self.operation))
        if self.operation == JtagOperation.TEST_BYPASS:
            if self.tdi_pattern is None:
                raise ValueError("bypass test needs a TDI pattern")
            _check_length(self.tdi_pattern, JTAG_TEST_BYPASS_PATTERN_LEN, "TDI pattern")
            return header + bytes(self.tdi_pattern)
        if self.operation in (
            JtagOperation.PROGRAM_AND_VERIFY_PLD,
            JtagOperation.VERIFY_PLD,
        ):
            if self.data_offset is None:
                raise ValueError("PLD operations need a data offset")
            return header + _U32.pack(self.data_offset)
        return header


@dataclass(frozen=True)
class JtagIdcodeResponse:
    idcode: int

    @classmethod
    def unpack(cls, data: bytes) -> JtagIdcodeResponse:
        return cls(*_unpack(_U32, data, "JTAG IDCODE response"))


@dataclass(frozen=True)
class JtagBypassResponse:
    tdo_pattern: bytes

    _LAYOUT = struct.Struct(f"<{JTAG_TEST_BYPASS_PATTERN_LEN}s")

    @classmethod
    def unpack(cls, data: bytes) -> JtagBypassResponse:
        return cls(*_unpack(cls._LAYOUT, data, "JTAG bypass response"))