import struct

import pytest

from pcitools.vfio_structs import (
    VfioDeviceInfo,
    VfioDeviceInfoFlag,
    VfioGroupStatus,
    VfioGroupStatusFlag,
    VfioRegionInfo,
    VfioRegionInfoFlag,
)


def test_status_decode():
    data = bytes([0x10, 0x00, 0x00, 0x00, 0x03, 0x00, 0x00, 0x00])
    status = VfioGroupStatus.from_bytes(data)
    assert status.argsz == 0x10
    assert status.flag(VfioGroupStatusFlag.VIABLE) is True
    assert status.flag(VfioGroupStatusFlag.CONTAINER_SET) is True


def test_status_decode_single_flag():
    data = bytes([0x08, 0x00, 0x00, 0x00, 0x01, 0x00, 0x00, 0x00])
    status = VfioGroupStatus.from_bytes(data)
    assert status.argsz == 0x08
    assert status.flag(VfioGroupStatusFlag.VIABLE) is True
    assert status.flag(VfioGroupStatusFlag.CONTAINER_SET) is False


def test_status_decode_no_flags():
    data = bytes([0x04, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00])
    status = VfioGroupStatus.from_bytes(data)
    assert status.argsz == 0x04
    assert status.flag(VfioGroupStatusFlag.VIABLE) is False
    assert status.flag(VfioGroupStatusFlag.CONTAINER_SET) is False
    assert status.flags() == []


def test_size():
    data = bytes([0xBE, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00])
    status = VfioGroupStatus.from_bytes(data)
    assert len(status.to_bytes()) == VfioGroupStatus.SERIALIZED_BYTE_SIZE


def test_status_flags_order_and_round_trip():
    data = bytes([0x08, 0x00, 0x00, 0x00, 0x03, 0x00, 0x00, 0x00])
    status = VfioGroupStatus.from_bytes(data)
    assert status.flags() == [VfioGroupStatusFlag.CONTAINER_SET, VfioGroupStatusFlag.VIABLE]
    assert status.to_bytes() == data


def test_status_default_request():
    assert VfioGroupStatus().to_bytes() == bytes([0x08, 0, 0, 0, 0, 0, 0, 0])


def test_status_short_data():
    with pytest.raises(ValueError):
        VfioGroupStatus.from_bytes(bytes(7))


def test_device_info_decode():
    data = struct.pack("<6I", 24, 0x103, 9, 5, 0, 0)
    info = VfioDeviceInfo.from_bytes(data)
    assert info.flags() == [
        VfioDeviceInfoFlag.RESET,
        VfioDeviceInfoFlag.PCI,
        VfioDeviceInfoFlag.CDX,
    ]
    assert info.flag(VfioDeviceInfoFlag.PCI)
    assert not info.flag(VfioDeviceInfoFlag.PLATFORM)
    assert info.num_regions == 9
    assert info.num_irqs == 5
    assert info.to_bytes() == data


def test_device_info_default_request():
    info = VfioDeviceInfo()
    assert len(info.to_bytes()) == VfioDeviceInfo.SERIALIZED_BYTE_SIZE
    assert info.argsz == VfioDeviceInfo.SERIALIZED_BYTE_SIZE
    assert info.flags() == []


def test_device_info_short_data():
    with pytest.raises(ValueError):
        VfioDeviceInfo.from_bytes(bytes(23))


def test_region_info_decode():
    data = struct.pack("<4I2Q", 32, 0x7, 0, 0, 0x4000, 0x10000000000)
    region = VfioRegionInfo.from_bytes(data)
    assert region.flag(VfioRegionInfoFlag.READ)
    assert region.flag(VfioRegionInfoFlag.WRITE)
    assert region.flag(VfioRegionInfoFlag.MMAP)
    assert not region.flag(VfioRegionInfoFlag.CAPS)
    assert region.size == 0x4000
    assert region.offset == 0x10000000000
    assert region.to_bytes() == data


def test_region_info_caps_flag_byte():
    data = bytes([0x20, 0, 0, 0, 0x08, 0, 0, 0]) + bytes(24)
    region = VfioRegionInfo.from_bytes(data)
    assert region.flag(VfioRegionInfoFlag.CAPS)
    assert not region.flag(VfioRegionInfoFlag.READ)


def test_region_info_request_round_trip():
    request = VfioRegionInfo(index=3)
    decoded = VfioRegionInfo.from_bytes(request.to_bytes())
    assert decoded == request
    assert decoded.argsz == VfioRegionInfo.SERIALIZED_BYTE_SIZE


def test_region_info_short_data():
    with pytest.raises(ValueError):
        VfioRegionInfo.from_bytes(bytes(31))