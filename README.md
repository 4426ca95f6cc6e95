# pcitools

Tools for working with PCI devices on Linux from Python:

- **`pcitools.pciids`** parses the `pci.ids` database into `PciIds`, `Vendor`,
  `Device`, `Subsystem`, `PciClass`, `SubClass` and `ProgIf` objects. Each
  `parse_*` function returns a `(value, rest)` pair and raises `ParseError`
  when the input does not match; `load_from_file` parses a whole file and
  raises `ParseError` if anything is left over.
- **`pcitools.codegen`** turns a parsed database into the source of a Python
  module of `IntEnum` classes for device classes, subclasses and programming
  interfaces (`generate_source`); `sanitize` turns a name into CamelCase.
- **`pcitools.classes`** holds those enumerations for the known class table.
  `decode_class(class_code, subclass, prog_if)` returns a `DecodedClass`
  and raises `UnknownClassError` for identifiers it does not know;
  `default_class()` gives `PciDeviceClass.UnassignedClass`.
- **`pcitools.pci`** parses PCI addresses (`PciAddress.parse`) and decodes and
  re-encodes the 64-byte configuration header (`PciDevice.from_bytes`,
  `PciDevice.to_bytes`, `PciDevice.read`). Type 0 and type 1 header layouts
  are supported; anything else raises `PciError`.
- **`pcitools.vfio_structs`** packs and unpacks the VFIO group status, device
  info and region info structures and holds the ioctl request numbers.
- **`pcitools.vfio`** opens `/dev/vfio`: `VfioContainer`, `VfioGroup` and
  `VfioDevice`, each usable as a context manager.
- **`pcitools.nvme_registers`** decodes the NVMe CAP, VS, CC and CSTS
  registers and encodes and decodes 64-byte submission entries (`Command`)
  and 16-byte completion entries (`Completion`).
- **`pcitools.nvme`** provides `NvmeController`, which reads and writes those
  registers in any writable buffer of at least 64 bytes, or in BAR 0 of a
  VFIO device mapped with `NvmeController.from_device`, and runs the enable,
  shutdown and disable sequence.
- **`pcitools.dma`** provides `DmaQueue`, a ring of fixed-size entries in a
  page-aligned anonymous mapping.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Usage

Parse the `pci.ids` database:

```python
from pcitools.pciids import load_from_file

ids = load_from_file("/usr/share/hwdata/pci.ids")
for vendor in ids.vendors[:3]:
    print(f"{vendor.id:04x} {vendor.name}")
```

Parse a PCI address and read a device's configuration header from sysfs:

```python
from pcitools.pci import PciAddress, PciDevice

address = PciAddress.parse("02:00.0")
print(address)            # 0000:02:00.0
device = PciDevice.read(address, "/sys/bus/pci/devices")
print(device.pci_id)
```

Decode a class triple:

```python
from pcitools.classes import decode_class

print(decode_class(0x01, 0x08, 0x02))
```

Decode NVMe registers held in a buffer:

```python
from pcitools.nvme import NvmeController

registers = bytearray(64)
controller = NvmeController(registers)
print(controller.spec_version())
controller.enable()
print(controller.configuration().en)   # True
```

## Commands

`pcitools-dump-pci` walks `/sys/bus/pci/devices` in name order, prints
`Successfully parsed device at <address>` for each device whose header it
can decode and dumps the decoded header to standard error; devices it
cannot read or decode are reported as skipped. `--sysfs-root` selects
another directory:

```
pcitools-dump-pci
```

`pcitools-generate-ids` reads `/usr/share/hwdata/pci.ids` and writes the
generated enumeration module to `ids.py` in the current directory.
`--input` and `--output` choose other paths:

```
pcitools-generate-ids
```

`pcitools-kv` opens the NVMe controller at `02:00.0` (or the address given)
through VFIO, prints its spec version and capabilities table, then enables,
shuts down and disables it, waiting for each step, and finally sleeps
(`--sleep`, 30 seconds by default). `--sysfs-root` and `--vfio-dir` change
where it looks. It needs a device bound to `vfio-pci` and permission to use
`/dev/vfio`:

```
pcitools-kv
```

## What it does not do

`NvmeController` only handles the controller registers: it sets up no admin
or I/O queues and submits no commands. `Command` and `Completion` encode and
decode queue entries but nothing sends them to a device, and `DmaQueue` can
be pushed to but not read back. No IOMMU DMA mappings are made.