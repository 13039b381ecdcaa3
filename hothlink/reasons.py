"""Reset causes and firmware/payload update failure reasons."""

from __future__ import annotations

from enum import IntEnum, IntFlag


class ResetFlag(IntFlag):
    """Causes of the last reset, as a bit set."""

    OTHER = 1 << 0
    RESET_PIN = 1 << 1
    BROWNOUT = 1 << 2
    POWER_ON = 1 << 3
    WATCHDOG = 1 << 4
    SOFT = 1 << 5
    HIBERNATE = 1 << 6
    RTC_ALARM = 1 << 7
    WAKE_PIN = 1 << 8
    LOW_BATTERY = 1 << 9
    SYSJUMP = 1 << 10
    HARD = 1 << 11
    AP_OFF = 1 << 12
    PRESERVED = 1 << 13
    USB_RESUME = 1 << 14
    RDD = 1 << 15
    RBOX = 1 << 16
    SECURITY = 1 << 17
    AP_WATCHDOG = 1 << 18


class FirmwareUpdateFailure(IntEnum):
    SUCCESS = 0
    NO_HEADER_FOUND = 1
    INVALID_HEADER_SIZE = 2
    INVALID_DESCRIPTOR = 3
    DELIVERY_MECHANISM_MISMATCH = 4
    INVALID_REGION = 5
    VERIFY_BAD_HEADER = 6
    VERIFY_HASH_IMAGE_FAILED = 7
    VERIFY_HASH_FUSE_MAP_FAILED = 8
    VERIFY_HASH_INFO_MAP_FAILED = 9
    VERIFY_SIGNATURE_FAILED = 10
    HASH_IMAGE_FIPS_FAILED = 11
    VERIFY_FIPS_FAILED = 12
    EXTERNAL_AB_HEADER_MISMATCH = 13
    VERSIONS_EQUAL = 14
    FIRST_VERSION_NEWER = 15
    MAUV_UPDATE_NOT_ALLOWED = 16
    EVEN_ODD_ROLLBACK_NOT_ALLOWED = 17
    EVEN_ODD_ROLLBACK_PAYLOAD_TOO_OLD = 18
    MIRROR_VERIFY_FAILED = 19
    MIRROR_RW_FAILED = 20
    MIRROR_RO_FAILED = 21
    VERSION_MATCHES_DENYLIST = 22
    INVALID_DESCRIPTOR_VERSION = 23
    INVALID_RW_KEY_TRANSITION = 24
    ERROR_MAX = 25


class PayloadUpdateFailure(IntEnum):
    SUCCESS = 0
    VALIDATE_RUNTIME_FAILURE = 1
    VALIDATE_UNSUPPORTED_DESCRIPTOR = 2
    VALIDATE_INVALID_DESCRIPTOR = 3
    VALIDATE_INVALID_IMAGE_FAMILY = 4
    VALIDATE_IMAGE_TYPE_DISALLOWED = 5
    VALIDATE_DENYLISTED_VERSION = 6
    VALIDATE_UNTRUSTED_KEY = 7
    VALIDATE_INVALID_SIGNATURE = 8
    VALIDATE_INVALID_HASH = 9
    VALIDATE_PENDING = 10
    VALIDATE_INVALID_SESSION_ID = 11
    VALIDATE_FINGERPRINT_NOT_FOUND = 12
    VALIDATE_UNSUPPORTED_FINGERPRINT_HASH_TYPE = 13
    VALIDATE_MISSING_BOOT_HASH = 14
    VALIDATE_UNEXPECTED_SKIP_BOOT_VALIDATION_REGION = 15
    VALIDATE_MULTIPLE_DESCRIPTORS_FOUND = 16
    VALIDATE_RESERVED_8 = 17
    VALIDATE_RESERVED_9 = 18
    VALIDATE_RESERVED_10 = 19
    VALIDATE_RESERVED_11 = 20
    ERASE_FAILED = 21
    WRITE_FAILED = 22
    READ_FAILED = 23
    INVALID_PARAMS = 24
    INVALID_STAGING_OFFSET = 25
    INVALID_STAGING_SIZE = 26
    FILTER_CALLBACK_FAILED = 27
    ABORT_PENDING_UPDATE_FAILED = 28
    BAD_PACKET_HEADER = 29
    FPGA_UPDATE_HEADER_FAILED = 30
    REGIONS_NOT_COMPATIBLE_FOR_MIGRATION = 31
    MAUV_DOES_NOT_ALLOW_UPDATE = 32
    STAGING_AREA_INVALID = 33
    SET_ACTIVE_HALF_FAILED = 34
    CALLBACK_FAILED = 35
    SET_PENDING_MIGRATION_FAILED = 36
    CONFIRM_INVALID_TIMEOUT = 37
    CONFIRM_NOT_ENABLED = 38
    CONFIRM_NO_UPDATE_PAYLOAD = 39
    CONFIRM_NO_PENDING_PAYLOAD = 40
    CONFIRM_GNVRAM_ERROR = 41
    CONFIRM_REVERT_PAYLOAD = 42
    CONFIRM_NOT_SUPPORTED = 43
    GNVRAM_READ_ERROR = 44
    GNVRAM_WRITE_ERROR = 45
    ERROR_MAX = 46


def describe_reset_flags(value: int) -> list[str]:
    """Name each reset cause set in ``value``, lowest bit first.

    Bits that name no known cause are reported together as ``UNKNOWN(0x...)``.
    """
    if value < 0:
        raise ValueError("reset flags cannot be negative")
    names = []
    remaining = int(value)
    for flag in ResetFlag:
        if remaining & flag.value:
            names.append(flag.name)
            remaining &= ~flag.value
    if remaining:
        names.append(f"UNKNOWN(0x{remaining:x})")
    return names