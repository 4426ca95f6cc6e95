"""PCI bus addresses and the 64-byte PCI configuration header."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Callable, ClassVar, Union

from .classes import DecodedClass, UnknownClassError, decode_class, default_class

SYSFS_PCI_DEVICES = Path("/sys/bus/pci/devices")

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


class PciError(ValueError):
    """Raised for malformed addresses or configuration data."""


def _parse_hex(text: str, bdf: str, limit: int) -> int:
    if not text or not set(text) <= _HEX_DIGITS:
        raise PciError(f"Invalid hex number {text!r} in bdf '{bdf}'")
    value = int(text, 16)
    if value > limit:
        raise PciError(f"Number {text!r} out of range in bdf '{bdf}'")
    return value


@dataclass(frozen=True)
class PciAddress:
    """A PCI domain, bus, device and function."""

    domain: int = 0
    bus: int = 0
    device: int = 0
    function: int = 0

    @classmethod
    def parse(cls, bdf: str) -> PciAddress:
        """Parse ``[domain:]bus:device.function`` written in hex."""
        parts = bdf.split(":")
        if len(parts) == 3:
            dom, bus_text, dev_fn = parts
        elif len(parts) == 2:
            dom = "0000"
            bus_text, dev_fn = parts
        else:
            raise PciError(f"Invalid bdf format -- '{bdf}'")

        pieces = dev_fn.split(".")
        if len(pieces) != 2:
            raise PciError(f"Invalid bdf format -- '{bdf}'")
        dev_text, fn_text = pieces

        domain = _parse_hex(dom, bdf, 0xFFFF)
        bus = _parse_hex(bus_text, bdf, 0xFF)
        device = _parse_hex(dev_text, bdf, 0xFF)
        function = _parse_hex(fn_text, bdf, 0xFF)

        if device > 31:
            raise PciError(f"device must be <= 31, we got '{device}'")
        if function > 7:
            raise PciError(f"device function must be <= 7, we got '{function}'")
        return cls(domain, bus, device, function)

    def __str__(self) -> str:
        return f"{self.domain:04x}:{self.bus:02x}:{self.device:02x}.{self.function}"


class DevSelTiming(IntEnum):
    FAST = 0x0
    MEDIUM = 0x1
    SLOW = 0x2


_BitField = tuple[str, int, int, Callable[[int], object]]


class _BitRegister:
    """Mixin for registers described by (name, shift, width, kind) entries."""

    _LAYOUT: ClassVar[tuple[_BitField, ...]] = ()

    @classmethod
    def _from_int(cls, value: int):
        values = {}
        for name, shift, width, kind in cls._LAYOUT:
            raw = (value >> shift) & ((1 << width) - 1)
            try:
                values[name] = kind(raw)
            except ValueError:
                raise PciError(
                    f"invalid value {raw} for {cls.__name__}.{name}"
                ) from None
        return cls(**values)

    def _to_int(self) -> int:
        value = 0
        for name, shift, width, _ in self._LAYOUT:
            value |= (int(getattr(self, name)) & ((1 << width) - 1)) << shift
        return value


@dataclass
class PciStatusRegister(_BitRegister):
    _LAYOUT: ClassVar[tuple[_BitField, ...]] = (
        ("master_data_parity_error", 8, 1, bool),
        ("devsel_timing", 9, 2, DevSelTiming),
        ("signalled_target_abort", 11, 1, bool),
        ("received_target_abort", 12, 1, bool),
        ("received_master_abort", 13, 1, bool),
        ("signalled_system_error", 14, 1, bool),
        ("detected_parity_error", 15, 1, bool),
        ("reserved_02_00", 0, 3, int),
        ("interrupt_status", 3, 1, bool),
        ("capabilities_list", 4, 1, bool),
        ("mhz66_capable", 5, 1, bool),
        ("reserved_06", 6, 1, int),
        ("fast_back_to_back_capable", 7, 1, bool),
    )

    fast_back_to_back_capable: bool = False
    reserved_06: int = 0
    mhz66_capable: bool = False
    capabilities_list: bool = False
    interrupt_status: bool = False
    reserved_02_00: int = 0
    detected_parity_error: bool = False
    signalled_system_error: bool = False
    received_master_abort: bool = False
    received_target_abort: bool = False
    signalled_target_abort: bool = False
    devsel_timing: DevSelTiming = DevSelTiming.SLOW
    master_data_parity_error: bool = False


@dataclass
class PciCommandRegister(_BitRegister):
    _LAYOUT: ClassVar[tuple[_BitField, ...]] = (
        ("io_space", 0, 1, bool),
        ("memory_space", 1, 1, bool),
        ("bus_master", 2, 1, bool),
        ("special_cycles", 3, 1, bool),
        ("memory_write_and_invalidate_enable", 4, 1, bool),
        ("vga_palette_snoop", 5, 1, bool),
        ("parity_error_response", 6, 1, bool),
        ("reserved_07", 7, 1, int),
        ("serr_enable", 8, 1, bool),
        ("fast_back_to_back_enable", 9, 1, bool),
        ("interrupt_disable", 10, 1, bool),
        ("reserved_15_11", 11, 5, int),
    )

    reserved_07: int = 0
    parity_error_response: bool = False
    vga_palette_snoop: bool = False
    memory_write_and_invalidate_enable: bool = False
    special_cycles: bool = False
    bus_master: bool = False
    memory_space: bool = False
    io_space: bool = False
    reserved_15_11: int = 0
    interrupt_disable: bool = False
    fast_back_to_back_enable: bool = False
    serr_enable: bool = False


@dataclass
class PciBist(_BitRegister):
    _LAYOUT: ClassVar[tuple[_BitField, ...]] = (
        ("failure_code", 0, 4, int),
        ("reserved_05_04", 4, 2, int),
        ("start_test", 6, 1, bool),
        ("supported", 7, 1, bool),
    )

    supported: bool = False
    start_test: bool = False
    reserved_05_04: int = 0
    failure_code: int = 0


@dataclass
class PciHeader(_BitRegister):
    _LAYOUT: ClassVar[tuple[_BitField, ...]] = (
        ("layout", 0, 7, int),
        ("multifunction", 7, 1, bool),
    )

    multifunction: bool = False
    layout: int = 0


@dataclass
class PciBaseLayout:
    """Type 0 (endpoint) header fields following the common header."""

    LAYOUT_ID: ClassVar[int] = 0x00
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<6IIHHIB3sIBBBB")

    bar: tuple[int, ...] = (0,) * 6
    cardbus_cis_pointer: int = 0
    subsystem_vendor_id: int = 0
    subsystem_id: int = 0
    expansion_rom_base_address: int = 0
    capabilities_pointer: int = 0
    reserved1: bytes = bytes(3)
    reserved2: int = 0
    interrupt_line: int = 0
    interrupt_pin: int = 0
    min_grant: int = 0
    max_latency: int = 0

    @classmethod
    def _unpack(cls, data: bytes) -> PciBaseLayout:
        v = cls._STRUCT.unpack(data)
        return cls(
            bar=tuple(v[0:6]),
            cardbus_cis_pointer=v[6],
            subsystem_vendor_id=v[7],
            subsystem_id=v[8],
            expansion_rom_base_address=v[9],
            capabilities_pointer=v[10],
            reserved1=v[11],
            reserved2=v[12],
            interrupt_line=v[13],
            interrupt_pin=v[14],
            min_grant=v[15],
            max_latency=v[16],
        )

    def _pack(self) -> bytes:
        return self._STRUCT.pack(
            *self.bar,
            self.cardbus_cis_pointer,
            self.subsystem_vendor_id,
            self.subsystem_id,
            self.expansion_rom_base_address,
            self.capabilities_pointer,
            self.reserved1,
            self.reserved2,
            self.interrupt_line,
            self.interrupt_pin,
            self.min_grant,
            self.max_latency,
        )


@dataclass
class PciToPciBridgeLayout:
    """Type 1 (PCI-to-PCI bridge) header fields following the common header."""

    LAYOUT_ID: ClassVar[int] = 0x01
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<2I6B5H2I2HB3sI2BH")

    bar: tuple[int, ...] = (0,) * 2
    primary_bus_number: int = 0
    secondary_bus_number: int = 0
    subordinate_bus_number: int = 0
    secondary_latency_timer: int = 0
    io_base: int = 0
    io_limit: int = 0
    secondary_status: int = 0
    memory_base: int = 0
    memory_limit: int = 0
    prefetchable_memory_base: int = 0
    prefetchable_memory_limit: int = 0
    prefetchable_base_upper: int = 0
    prefetchable_limit_upper: int = 0
    io_base_upper: int = 0
    io_limit_upper: int = 0
    capabilities_pointer: int = 0
    reserved: bytes = bytes(3)
    expansion_rom_base_address: int = 0
    interrupt_line: int = 0
    interrupt_pin: int = 0
    bridge_control: int = 0

    @classmethod
    def _unpack(cls, data: bytes) -> PciToPciBridgeLayout:
        v = cls._STRUCT.unpack(data)
        return cls(
            bar=tuple(v[0:2]),
            primary_bus_number=v[2],
            secondary_bus_number=v[3],
            subordinate_bus_number=v[4],
            secondary_latency_timer=v[5],
            io_base=v[6],
            io_limit=v[7],
            secondary_status=v[8],
            memory_base=v[9],
            memory_limit=v[10],
            prefetchable_memory_base=v[11],
            prefetchable_memory_limit=v[12],
            prefetchable_base_upper=v[13],
            prefetchable_limit_upper=v[14],
            io_base_upper=v[15],
            io_limit_upper=v[16],
            capabilities_pointer=v[17],
            reserved=v[18],
            expansion_rom_base_address=v[19],
            interrupt_line=v[20],
            interrupt_pin=v[21],
            bridge_control=v[22],
        )

    def _pack(self) -> bytes:
        return self._STRUCT.pack(
            *self.bar,
            self.primary_bus_number,
            self.secondary_bus_number,
            self.subordinate_bus_number,
            self.secondary_latency_timer,
            self.io_base,
            self.io_limit,
            self.secondary_status,
            self.memory_base,
            self.memory_limit,
            self.prefetchable_memory_base,
            self.prefetchable_memory_limit,
            self.prefetchable_base_upper,
            self.prefetchable_limit_upper,
            self.io_base_upper,
            self.io_limit_upper,
            self.capabilities_pointer,
            self.reserved,
            self.expansion_rom_base_address,
            self.interrupt_line,
            self.interrupt_pin,
            self.bridge_control,
        )


PciLayout = Union[PciBaseLayout, PciToPciBridgeLayout]

_LAYOUTS: dict[int, type] = {
    PciBaseLayout.LAYOUT_ID: PciBaseLayout,
    PciToPciBridgeLayout.LAYOUT_ID: PciToPciBridgeLayout,
}

_COMMON_HEADER = struct.Struct("<4H8B")


@dataclass
class PciDevice:
    """A decoded PCI configuration header.

    ``pci_id`` is not stored in the header; it is derived from the class,
    subclass and programming-interface bytes.
    """

    SERIALIZED_BYTE_SIZE: ClassVar[int] = 64

    vendor_id: int = 0
    device_id: int = 0
    command: PciCommandRegister = field(default_factory=PciCommandRegister)
    status: PciStatusRegister = field(default_factory=PciStatusRegister)
    revision_id: int = 0
    prog_if: int = 0
    subclass: int = 0
    class_code: int = 0
    cache_line_size: int = 0
    latency_timer: int = 0
    header_type: PciHeader = field(default_factory=PciHeader)
    bist: PciBist = field(default_factory=PciBist)
    layout: PciLayout = field(default_factory=PciBaseLayout)
    pci_id: DecodedClass = field(default_factory=default_class)

    @classmethod
    def from_bytes(cls, data: bytes) -> PciDevice:
        """Decode the first 64 bytes of configuration space; extra bytes are ignored."""
        data = bytes(data)
        if len(data) < cls.SERIALIZED_BYTE_SIZE:
            raise PciError(
                f"need {cls.SERIALIZED_BYTE_SIZE} bytes of configuration space, "
                f"got {len(data)}"
            )
        (
            vendor_id, device_id, command, status,
            revision_id, prog_if, subclass, class_code,
            cache_line_size, latency_timer, header, bist,
        ) = _COMMON_HEADER.unpack_from(data)

        header_type = PciHeader._from_int(header)
        layout_cls = _LAYOUTS.get(header_type.layout)
        if layout_cls is None:
            raise PciError(f"unsupported header layout 0x{header_type.layout:02x}")
        layout = layout_cls._unpack(
            data[_COMMON_HEADER.size:cls.SERIALIZED_BYTE_SIZE]
        )

        try:
            pci_id = decode_class(class_code, subclass, prog_if)
        except UnknownClassError as err:
            raise PciError(str(err)) from err

        return cls(
            vendor_id=vendor_id,
            device_id=device_id,
            command=PciCommandRegister._from_int(command),
            status=PciStatusRegister._from_int(status),
            revision_id=revision_id,
            prog_if=prog_if,
            subclass=subclass,
            class_code=class_code,
            cache_line_size=cache_line_size,
            latency_timer=latency_timer,
            header_type=header_type,
            bist=PciBist._from_int(bist),
            layout=layout,
            pci_id=pci_id,
        )

    def to_bytes(self) -> bytes:
        """Encode the header back into its 64-byte form."""
        header = _COMMON_HEADER.pack(
            self.vendor_id,
            self.device_id,
            self.command._to_int(),
            self.status._to_int(),
            self.revision_id,
            self.prog_if,
            self.subclass,
            self.class_code,
            self.cache_line_size,
            self.latency_timer,
            self.header_type._to_int(),
            self.bist._to_int(),
        )
        return header + self.layout._pack()

    @classmethod
    def read(
        cls,
        address: PciAddress | str,
        sysfs_root: str | Path = SYSFS_PCI_DEVICES,
    ) -> PciDevice:
        """Read and decode ``<sysfs_root>/<address>/config``."""
        if isinstance(address, str):
            address = PciAddress.parse(address)
        path = Path(sysfs_root) / str(address) / "config"
        return cls.from_bytes(path.read_bytes())