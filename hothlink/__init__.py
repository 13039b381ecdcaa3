"""Host-command transports (MTD, SPI, USB, D-Bus) and message layouts for Hoth chips."""

__version__ = "0.1.0"
__all__ = [
    "commands",
    "dbus",
    "device",
    "mtd",
    "reasons",
    "spi",
    "usb",
    "usb_fifo",
    "usb_mailbox",
    "usb_types",
]