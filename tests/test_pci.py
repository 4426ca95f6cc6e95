import struct

import pytest

from pcitools.classes import (
    BridgePCIBridgeProgIf,
    BridgeSubtype,
    MassStorageControllerNonVolatileMemoryControllerProgIf,
    MassStorageControllerSubtype,
    PciDeviceClass,
    default_class,
)
from pcitools.pci import (
    DevSelTiming,
    PciAddress,
    PciBaseLayout,
    PciDevice,
    PciError,
    PciToPciBridgeLayout,
)

BASE_LAYOUT = struct.Struct("<6IIHHIB3sIBBBB")


def _config(
    *,
    command=0,
    status=0,
    class_code=0x01,
    subclass=0x08,
    prog_if=0x02,
    header=0x00,
    bist=0,
    layout=None,
):
    if layout is None:
        layout = bytes(48)
    common = struct.pack(
        "<4H8B", 0xABCD, 0x0001, command, status,
        0x03, prog_if, subclass, class_code, 0x10, 0x20, header, bist,
    )
    return common + layout


def test_parse_full_address():
    address = PciAddress.parse("0001:0a:1f.7")
    assert address == PciAddress(0x0001, 0x0A, 0x1F, 0x7)
    assert str(address) == "0001:0a:1f.7"


def test_parse_short_address_defaults_domain():
    address = PciAddress.parse("02:00.0")
    assert address == PciAddress(0, 0x02, 0x00, 0)
    assert str(address) == "0000:02:00.0"


def test_display_is_lower_case():
    text = "0000:AB:01.2"
    assert str(PciAddress.parse(text)) == text.lower()


def test_device_and_function_boundaries_accepted():
    address = PciAddress.parse("00:1f.7")
    assert (address.device, address.function) == (0x1F, 7)


@pytest.mark.parametrize(
    "bdf",
    [
        "",
        "02",
        "02:00",
        "1:2:3:4.0",
        "02:00.0.1",
        "zz:00.0",
        "02:20.0",
        "02:00.8",
        "10000:00:00.0",
        "02:100.0",
        ":00.0",
        "02:.0",
    ],
)
def test_invalid_addresses(bdf):
    with pytest.raises(PciError):
        PciAddress.parse(bdf)


def test_device_range_message():
    with pytest.raises(PciError, match="device must be <= 31"):
        PciAddress.parse("02:20.0")


def test_function_range_message():
    with pytest.raises(PciError, match="device function must be <= 7"):
        PciAddress.parse("02:00.8")


def test_decode_common_header():
    device = PciDevice.from_bytes(_config())
    assert device.vendor_id == 0xABCD
    assert device.device_id == 0x0001
    assert (device.class_code, device.subclass, device.prog_if) == (0x01, 0x08, 0x02)
    assert device.pci_id.device_class is PciDeviceClass.MassStorageController
    assert device.pci_id.subclass is MassStorageControllerSubtype.NonVolatileMemoryController
    assert (
        device.pci_id.prog_if
        is MassStorageControllerNonVolatileMemoryControllerProgIf.NVMExpress
    )
    assert isinstance(device.layout, PciBaseLayout)


def test_command_register_bits():
    device = PciDevice.from_bytes(_config(command=0x0006))
    assert device.command.memory_space
    assert device.command.bus_master
    assert not device.command.io_space
    assert not device.command.interrupt_disable


def test_status_register_bits():
    device = PciDevice.from_bytes(_config(status=0x0010))
    assert device.status.capabilities_list
    assert device.status.devsel_timing is DevSelTiming.FAST


def test_invalid_devsel_timing():
    with pytest.raises(PciError):
        PciDevice.from_bytes(_config(status=0x0600))


def test_type0_layout_fields():
    layout = BASE_LAYOUT.pack(
        1, 2, 3, 4, 5, 6, 7, 0x1111, 0x2222, 8, 0x40, b"\x00\x00\x00", 0, 11, 1, 0, 0
    )
    device = PciDevice.from_bytes(_config(layout=layout))
    assert device.layout.bar == (1, 2, 3, 4, 5, 6)
    assert device.layout.subsystem_vendor_id == 0x1111
    assert device.layout.subsystem_id == 0x2222
    assert device.layout.capabilities_pointer == 0x40
    assert device.layout.interrupt_line == 11


def test_bridge_layout_and_multifunction():
    data = _config(class_code=0x06, subclass=0x04, prog_if=0x00, header=0x81,
                   layout=bytes(range(48)))
    device = PciDevice.from_bytes(data)
    assert device.header_type.multifunction
    assert device.header_type.layout == PciToPciBridgeLayout.LAYOUT_ID
    assert isinstance(device.layout, PciToPciBridgeLayout)
    assert device.pci_id.subclass is BridgeSubtype.PCIBridge
    assert device.pci_id.prog_if is BridgePCIBridgeProgIf.NormalDecode


@pytest.mark.parametrize(
    "kwargs",
    [
        {"command": 0x0406, "status": 0x0210, "bist": 0x8F, "layout": bytes(range(48))},
        {"class_code": 0x06, "subclass": 0x04, "prog_if": 0x01, "header": 0x81,
         "layout": bytes(range(100, 148))},
        {"status": 0xFFFF & ~0x0600 | 0x0200, "command": 0xFFFF},
    ],
)
def test_round_trip(kwargs):
    data = _config(**kwargs)
    assert PciDevice.from_bytes(data).to_bytes() == data


def test_trailing_bytes_ignored():
    data = _config()
    assert PciDevice.from_bytes(data + bytes(192)) == PciDevice.from_bytes(data)


def test_short_data_rejected():
    with pytest.raises(PciError):
        PciDevice.from_bytes(_config()[:63])


def test_unsupported_layout_rejected():
    with pytest.raises(PciError, match="layout"):
        PciDevice.from_bytes(_config(header=0x02))


def test_unknown_class_rejected():
    with pytest.raises(PciError):
        PciDevice.from_bytes(_config(class_code=0x50))


def test_default_device_serialises_to_full_size():
    device = PciDevice()
    assert len(device.to_bytes()) == PciDevice.SERIALIZED_BYTE_SIZE
    assert device.pci_id == default_class()
    assert device.status.devsel_timing is DevSelTiming.SLOW


def test_read_from_sysfs(tmp_path):
    data = _config(command=0x0002)
    config = tmp_path / "0000:02:00.0" / "config"
    config.parent.mkdir()
    config.write_bytes(data + bytes(192))
    expected = PciDevice.from_bytes(data)
    assert PciDevice.read(PciAddress.parse("02:00.0"), tmp_path) == expected
    assert PciDevice.read("0000:02:00.0", tmp_path) == expected


def test_read_missing_device(tmp_path):
    with pytest.raises(FileNotFoundError):
        PciDevice.read(PciAddress.parse("02:00.0"), tmp_path)