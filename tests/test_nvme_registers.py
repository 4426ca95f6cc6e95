import pytest

from pcitools.nvme_registers import (
    ArbitrationMechanism,
    Command,
    CommandSetSelected,
    Completion,
    ControllerConfiguration,
    ControllerStatus,
    DataTransfer,
    FusedOperation,
    NvmeCapabilities,
    NvmeSpecVersion,
    Opcode,
    ShutdownNotification,
    ShutdownStatus,
)


def test_spec_version_fields():
    version = NvmeSpecVersion.from_raw((2 << 16) | (1 << 8) | 3)
    assert (version.mjr, version.mnr, version.ter) == (2, 1, 3)
    assert str(version) == "2.1.3"


def test_spec_version_out_of_range():
    with pytest.raises(ValueError):
        NvmeSpecVersion.from_raw(1 << 32)


def test_capabilities_css_io_is_inverted():
    assert NvmeCapabilities.from_raw(0).css_io is True
    assert NvmeCapabilities.from_raw(1 << 44).css_io is False


def test_capabilities_mqes_and_timeout():
    caps = NvmeCapabilities.from_raw((200 << 24) | 0x3FF)
    assert caps.to == 200
    assert caps.mqes == 0x3FF
    assert caps.cqr is False


def test_capabilities_table():
    table = NvmeCapabilities.from_raw(0).table()
    lines = table.splitlines()
    assert "| CMBS   | false | Controller Memory Buffer Supported |" in lines
    assert len({len(line) for line in lines}) == 1
    assert any("Maximum Queue Entries Supported" in line for line in lines)


def test_capabilities_out_of_range():
    with pytest.raises(ValueError):
        NvmeCapabilities.from_raw(-1)


def test_configuration_enable_bit():
    assert ControllerConfiguration.from_raw(1).en is True
    assert ControllerConfiguration.from_raw(0).en is False


def test_configuration_round_trip():
    cc = ControllerConfiguration(
        iocqes=4,
        iosqes=6,
        shn=ShutdownNotification.NORMAL,
        ams=ArbitrationMechanism.VENDOR_SPECIFIC,
        mps=2,
        css=CommandSetSelected.ADMIN_ONLY,
        en=True,
    )
    assert ControllerConfiguration.from_raw(cc.to_raw()) == cc


@pytest.mark.parametrize("raw", [0, 1, 0x00460001, 0xFF000000])
def test_configuration_raw_round_trip(raw):
    assert ControllerConfiguration.from_raw(raw).to_raw() == raw


def test_configuration_rejects_undefined_shutdown_notification():
    with pytest.raises(ValueError):
        ControllerConfiguration.from_raw(0b11 << 14)


def test_configuration_rejects_oversized_field():
    with pytest.raises(ValueError):
        ControllerConfiguration(iocqes=16).to_raw()


def test_status_ready_and_shutdown():
    assert ControllerStatus.from_raw(1).rdy is True
    status = ControllerStatus.from_raw(ShutdownStatus.SHUTDOWN_COMPLETE << 2)
    assert status.shst is ShutdownStatus.SHUTDOWN_COMPLETE
    assert status.rdy is False
    assert ControllerStatus.from_raw(status.to_raw()) == status


def test_status_rejects_undefined_shutdown_status():
    with pytest.raises(ValueError):
        ControllerStatus.from_raw(0b11 << 2)


@pytest.mark.parametrize(
    "raw, text",
    [
        (0b00 << 2, "Normal  Operation"),
        (0b01 << 2, "Shutdown Occuring"),
        (0b10 << 2, "Shutdown Complete"),
    ],
)
def test_shutdown_status_text(raw, text):
    assert str(ControllerStatus.from_raw(raw).shst) == text


def test_command_prp_round_trip():
    command = Command(
        cid=0x1234,
        fuse=FusedOperation.FUSED_FIRST_COMMAND,
        nsid=7,
        mptr=0xABCDEF,
        prp1=0x1000,
        prp2=0x2000,
        cdw10=1,
        cdw15=9,
    )
    data = command.to_bytes()
    assert len(data) == Command.SIZE
    assert data[-1] == Opcode.IDENTIFY
    assert data[-4:-2] == (0x1234).to_bytes(2, "big")
    assert Command.from_bytes(data) == command


def test_command_sgl_round_trip():
    command = Command(psdt=DataTransfer.SGL_QWORD_ALIGNED, sgl1=(1 << 100) + 5)
    assert Command.from_bytes(command.to_bytes()) == command


def test_command_wrong_length():
    with pytest.raises(ValueError):
        Command.from_bytes(bytes(Command.SIZE - 1))


def test_command_unknown_opcode():
    data = bytearray(Command().to_bytes())
    data[-1] = 0xEE
    with pytest.raises(ValueError):
        Command.from_bytes(bytes(data))


def test_completion_round_trip():
    completion = Completion(
        command_specific=3, sqid=1, sqhd=2, status_field=0x7FFF, phase=True, cid=9
    )
    data = completion.to_bytes()
    assert len(data) == Completion.SIZE
    assert data[13] & 1 == 1
    assert Completion.from_bytes(data) == completion


def test_completion_wrong_length():
    with pytest.raises(ValueError):
        Completion.from_bytes(bytes(Completion.SIZE + 1))


def test_completion_status_field_too_wide():
    with pytest.raises(ValueError):
        Completion(status_field=1 << 15).to_bytes()