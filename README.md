# hothlink

`hothlink` sends host commands to a Hoth root-of-trust chip and reads back its
responses. It provides several transports that share one interface, and it
packs and unpacks the common command structures.

## The device interface

Every transport subclasses `hothlink.device.Device`. Each one offers:

- `send(request)`
- `receive(max_size, timeout_ms)`, which returns the response bytes
- `claim()` and `release()`
- `close()`

A `Device` also works as a context manager and closes itself on exit.

Errors are raised as exceptions:

- `hothlink.device.HothError` carries a `hothlink.device.Status` code, such as
  `INVALID_PARAMETER`, `RESPONSE_BUFFER_OVERFLOW` or `INTERFACE_BUSY`.
- USB-level failures raise `hothlink.usb_types.UsbError`, which carries a
  `UsbErrorCode`.

Every response begins with an 8-byte header. `HostResponseHeader.from_bytes`
parses that header and `to_bytes` writes it.

## Transports

### MTD

`hothlink.mtd.open_mtd(path, name, mailbox, proc_path)` opens an MTD device and
returns an `MtdDevice` that uses the mailbox at offset `mailbox`.

- If `path` is empty, the partition is looked up by `name` in `proc_path`
  (`/proc/mtd` by default).
- `parse_proc_mtd(text)` parses that listing and returns `MtdEntry` items.
- `resolve_mtd_path(name, proc_path)` returns `/dev/mtdN` for the first
  partition with a matching name.

### SPI

`hothlink.spi.open_spi(path, mailbox, bits, mode, speed, atomic)` opens a
spidev node and returns a `SpiDevice`.

- Non-zero values of `bits`, `mode` and `speed` are applied to the node with
  ioctls.
- The mailbox is reached with the SPI-NOR opcodes write-enable, page-program
  and read, using 4-byte addresses.
- With `atomic=True`, `send` only buffers the request. `receive` then writes
  the request and reads the response in one SPI message. A second `send` before
  `receive` raises `INTERFACE_BUSY`.
- `SpiDevice` takes an optional `transact` callable. The callable receives a
  list of `SpiTransfer` segments and returns the bytes read by each segment.
  This lets you drive the device without a spidev node.

### USB

`hothlink.usb.open_usb(port, prng_seed)` takes a `UsbPort`.

1. It checks the vendor ID.
2. It finds the first mailbox or FIFO interface in the active configuration.
3. It opens the device and claims that interface.
4. It returns a `UsbDevice` backed by either `MailboxDriver` or `FifoDriver`.

The two drivers work as follows:

- `MailboxDriver` writes the request into device memory in packet-sized pieces.
  It reads the response back and accepts only response struct version 3.
- `FifoDriver` tags each request with a 16-byte ID drawn from a xorshift32
  generator seeded by `prng_seed`. It sends the request when `receive` is
  called. It skips up to ten stale responses whose ID does not match, and it
  clears a stalled endpoint once.

Other helpers in `hothlink.usb`:

- `device_is_hoth(descriptor)` recognises the known product IDs.
- `get_usb_loc(port)` returns a `UsbLocation` (bus plus port chain).
- `find_usb_device(ports, location)` returns the Hoth device found at a given
  location.

### D-Bus

`hothlink.dbus.DbusDevice(bus, hoth_id)` forwards requests to a host command
daemon as `SendHostCommand` calls.

- The service and object names get `.<hoth_id>` and `/<hoth_id>` appended when
  `hoth_id` is not empty.
- The request is held until `receive` is called.
- The timeout is passed on in microseconds.

## Example

```python
import struct

from hothlink.commands import CMD_HELLO, HelloResponse
from hothlink.device import HostResponseHeader
from hothlink.mtd import open_mtd

request = build_request(CMD_HELLO, struct.pack("<I", 1))  # your framing

with open_mtd("", "hoth-mailbox", 0, "/proc/mtd") as dev:
    dev.send(request)
    response = dev.receive(1024, 1000)
    header = HostResponseHeader.from_bytes(response)
    print(header.result, HelloResponse.unpack(response[HostResponseHeader.SIZE:]))
```

## Command structures

`hothlink.commands` holds the command identifiers (`CMD_*`, `PRV_CMD_*`) and
frozen dataclasses for requests and responses. Request classes have `pack()`
and response classes have `unpack(data)`. The following are covered:

- hello
- flash SPI info
- target reset
- channel read, write and status
- UART config get and set
- console read
- authorization nonce and authorized command
- SRTM (at most 64 bytes of data)
- target control
- JTAG operations and their responses

`hothlink.reasons` provides:

- the `ResetFlag` bits
- the `FirmwareUpdateFailure` and `PayloadUpdateFailure` codes
- `describe_reset_flags(value)`, which lists the names of the flags that are
  set. Any remaining unknown bits are reported as `UNKNOWN(0x...)`.

## What it does not do

- **No USB backend.** The package does not enumerate the bus or talk to a USB
  stack. You supply objects that satisfy the `UsbPort` and `UsbHandle`
  protocols in `hothlink.usb_types`.
- **No D-Bus connection.** You supply a `DbusBus` whose `call` method sends the
  byte array.
- **No request framing or checksums.** The package does not build the host
  command request header or compute checksums. `send` takes the complete
  request bytes.
- **No command-line tool.** The package is a library only.

## Tests

```
pip install -e .[test]
pytest
```