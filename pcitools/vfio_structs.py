"""Wire structures and request numbers for the VFIO ioctl interface.

All structures are laid out in native little-endian order as the kernel
expects them on little-endian hosts.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

VFIO_API_VERSION_EXPECTED = 0
VFIO_IOMMU_TYPE1V2 = 3

VFIO_TYPE = 0x3B00

VFIO_GET_API_VERSION_IOCTL = VFIO_TYPE | 100
VFIO_CHECK_EXTENSION_IOCTL = VFIO_TYPE | 101
VFIO_SET_IOMMU_IOCTL = VFIO_TYPE | 102
VFIO_GROUP_GET_STATUS = VFIO_TYPE | 103
VFIO_GROUP_SET_CONTAINER = VFIO_TYPE | 104
VFIO_GROUP_GET_DEVICE_FD = VFIO_TYPE | 106
VFIO_DEVICE_GET_INFO = VFIO_TYPE | 107
VFIO_DEVICE_GET_REGION_INFO = VFIO_TYPE | 108


def _unpack(layout: struct.Struct, data: bytes, name: str) -> tuple:
    if len(data) < layout.size:
        raise ValueError(f"{name} needs {layout.size} bytes, got {len(data)}")
    return layout.unpack_from(data)


class VfioGroupStatusFlag(Enum):
    CONTAINER_SET = 1 << 1
    VIABLE = 1 << 0


@dataclass
class VfioGroupStatus:
    """``struct vfio_group_status``."""

    SERIALIZED_BYTE_SIZE: ClassVar[int] = 8
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<2I")

    argsz: int = SERIALIZED_BYTE_SIZE
    flag_bits: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> VfioGroupStatus:
        argsz, flag_bits = _unpack(cls._STRUCT, data, cls.__name__)
        return cls(argsz, flag_bits)

    def to_bytes(self) -> bytes:
        return self._STRUCT.pack(self.argsz, self.flag_bits)

    def flag(self, flag: VfioGroupStatusFlag) -> bool:
        return bool(self.flag_bits & flag.value)

    def flags(self) -> list[VfioGroupStatusFlag]:
        return [flag for flag in VfioGroupStatusFlag if self.flag(flag)]


class VfioDeviceInfoFlag(Enum):
    RESET = 1 << 0
    PCI = 1 << 1
    PLATFORM = 1 << 2
    AMBA = 1 << 3
    CCW = 1 << 4
    AP = 1 << 5
    FSL_MC = 1 << 6
    CAPS = 1 << 7
    CDX = 1 << 8


@dataclass
class VfioDeviceInfo:
    """``struct vfio_device_info``."""

    SERIALIZED_BYTE_SIZE: ClassVar[int] = 24
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<6I")

    argsz: int = SERIALIZED_BYTE_SIZE
    flag_bits: int = 0
    num_regions: int = 0
    num_irqs: int = 0
    cap_offset: int = 0
    padding: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> VfioDeviceInfo:
        return cls(*_unpack(cls._STRUCT, data, cls.__name__))

    def to_bytes(self) -> bytes:
        return self._STRUCT.pack(
            self.argsz,
            self.flag_bits,
            self.num_regions,
            self.num_irqs,
            self.cap_offset,
            self.padding,
        )

    def flag(self, flag: VfioDeviceInfoFlag) -> bool:
        return bool(self.flag_bits & flag.value)

    def flags(self) -> list[VfioDeviceInfoFlag]:
        return [flag for flag in VfioDeviceInfoFlag if self.flag(flag)]


class VfioRegionInfoFlag(Enum):
    READ = 1 << 0
    WRITE = 1 << 1
    MMAP = 1 << 2
    CAPS = 1 << 3


@dataclass
class VfioRegionInfo:
    """``struct vfio_region_info``."""

    SERIALIZED_BYTE_SIZE: ClassVar[int] = 32
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<4I2Q")

    argsz: int = SERIALIZED_BYTE_SIZE
    flag_bits: int = 0
    index: int = 0
    cap_offset: int = 0
    size: int = 0
    offset: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> VfioRegionInfo:
        return cls(*_unpack(cls._STRUCT, data, cls.__name__))

    def to_bytes(self) -> bytes:
        return self._STRUCT.pack(
            self.argsz,
            self.flag_bits,
            self.index,
            self.cap_offset,
            self.size,
            self.offset,
        )

    def flag(self, flag: VfioRegionInfoFlag) -> bool:
        return bool(self.flag_bits & flag.value)