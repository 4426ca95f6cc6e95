"""NVMe controller registers and queue entry layouts.

Registers are decoded from the raw integer read out of the controller's
register window. Undefined enumeration values and values that do not fit
their field raise :class:`ValueError`.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, ClassVar

_Field = tuple[str, int, int, Callable[[int], object]]


def _inverted(raw: int) -> bool:
    return not raw


class _Register:
    """Mixin for registers described by (name, shift, width, kind) entries."""

    _WIDTH: ClassVar[int] = 32
    _LAYOUT: ClassVar[tuple[_Field, ...]] = ()

    @classmethod
    def _decode(cls, value: int):
        if not 0 <= value < 1 << cls._WIDTH:
            raise ValueError(f"{value:#x} does not fit in {cls._WIDTH} bits")
        values = {}
        for name, shift, width, kind in cls._LAYOUT:
            raw = (value >> shift) & ((1 << width) - 1)
            try:
                values[name] = kind(raw)
            except ValueError:
                raise ValueError(
                    f"invalid value {raw:#x} for {cls.__name__}.{name}"
                ) from None
        return cls(**values)

    def _to_raw(self) -> int:
        value = 0
        for name, shift, width, _ in self._LAYOUT:
            field_value = int(getattr(self, name))
            if not 0 <= field_value < 1 << width:
                raise ValueError(
                    f"{type(self).__name__}.{name}={field_value} does not fit in {width} bits"
                )
            value |= field_value << shift
        return value


def _table_row(name: str, value: object, description: str) -> str:
    text = str(value).lower() if isinstance(value, bool) else str(value)
    return f"| {name:<6} | {text:>5} | {description:<34} |"


@dataclass(frozen=True)
class NvmeCapabilities(_Register):
    """The 64-bit CAP register."""

    _WIDTH: ClassVar[int] = 64
    _LAYOUT: ClassVar[tuple[_Field, ...]] = (
        ("cmbs", 57, 1, bool),
        ("pmrs", 56, 1, bool),
        ("mpsmax", 52, 4, int),
        ("mpsmin", 48, 4, int),
        ("bps", 45, 1, bool),
        ("css_io", 44, 1, _inverted),
        ("css_nvm", 37, 1, bool),
        ("nssrs", 36, 1, bool),
        ("dstrd", 32, 4, int),
        ("to", 24, 8, int),
        ("ams_wrrups", 18, 1, bool),
        ("ams_vendor", 17, 1, bool),
        ("cqr", 16, 1, bool),
        ("mqes", 0, 16, int),
    )

    cmbs: bool
    pmrs: bool
    mpsmax: int
    mpsmin: int
    bps: bool
    css_io: bool
    css_nvm: bool
    nssrs: bool
    dstrd: int
    to: int
    ams_wrrups: bool
    ams_vendor: bool
    cqr: bool
    mqes: int

    @classmethod
    def from_raw(cls, value: int) -> NvmeCapabilities:
        """Decode the raw 64-bit register value."""
        return cls._decode(value)

    def table(self) -> str:
        """Render the capabilities as a text table."""
        border = "+--------+-------+------------------------------------+"
        lines = [
            "+" + "-" * 53 + "+",
            f"| {'NVMe Capabilities':<51} |",
            border,
            f"| {'Name':<6} | {'Value':<5} | {'Description':<34} |",
            border,
            _table_row("CMBS", self.cmbs, "Controller Memory Buffer Supported"),
            _table_row("PMRS", self.pmrs, "Persistent Memory Region Supported"),
            _table_row("MPSMAX", self.mpsmax, "Memory Page Size Maximum"),
            _table_row("MPSMIN", self.mpsmin, "Memory Page Size Minimum"),
            _table_row("BPS", self.bps, "Boot Partition Support"),
            _table_row("NSSRS", self.nssrs, "NVM Subsystem Reset Supported"),
            _table_row("DSTRD", self.dstrd, "Doorbell Stride"),
            _table_row("TO", self.to, "Timeout (500ms units)"),
            _table_row("CQR", self.cqr, "Contiguous Queues Required"),
            _table_row("MQES", self.mqes, "Maximum Queue Entries Supported"),
            border,
        ]
        return "\n".join(lines)


@dataclass(frozen=True)
class NvmeSpecVersion(_Register):
    """The VS register."""

    _LAYOUT: ClassVar[tuple[_Field, ...]] = (
        ("mjr", 16, 16, int),
        ("mnr", 8, 8, int),
        ("ter", 0, 8, int),
    )

    mjr: int
    mnr: int
    ter: int

    @classmethod
    def from_raw(cls, value: int) -> NvmeSpecVersion:
        """Decode the raw 32-bit register value."""
        return cls._decode(value)

    def __str__(self) -> str:
        return f"{self.mjr}.{self.mnr}.{self.ter}"


class ShutdownNotification(IntEnum):
    NOOP = 0b00
    NORMAL = 0b01
    ABRUPT = 0b10


class ArbitrationMechanism(IntEnum):
    ROUND_ROBIN = 0b000
    WEIGHTED_ROUND_ROBIN_URGENT = 0b001
    VENDOR_SPECIFIC = 0b111


class CommandSetSelected(IntEnum):
    NVM = 0b000
    ADMIN_ONLY = 0b111


class ShutdownStatus(IntEnum):
    NORMAL_OPERATION = 0b00
    SHUTDOWN_OCCURRING = 0b01
    SHUTDOWN_COMPLETE = 0b10

    def __str__(self) -> str:
        return _SHUTDOWN_STATUS_TEXT[self]


_SHUTDOWN_STATUS_TEXT = {
    ShutdownStatus.NORMAL_OPERATION: "Normal  Operation",
    ShutdownStatus.SHUTDOWN_OCCURRING: "Shutdown Occuring",
    ShutdownStatus.SHUTDOWN_COMPLETE: "Shutdown Complete",
}


@dataclass
class ControllerConfiguration(_Register):
    """The CC register."""

    _LAYOUT: ClassVar[tuple[_Field, ...]] = (
        ("reserved_31_24", 24, 8, int),
        ("iocqes", 20, 4, int),
        ("iosqes", 16, 4, int),
        ("shn", 14, 2, ShutdownNotification),
        ("ams", 11, 3, ArbitrationMechanism),
        ("mps", 7, 4, int),
        ("css", 4, 3, CommandSetSelected),
        ("reserved_03_01", 1, 3, int),
        ("en", 0, 1, bool),
    )

    iocqes: int = 0
    iosqes: int = 0
    shn: ShutdownNotification = ShutdownNotification.NOOP
    ams: ArbitrationMechanism = ArbitrationMechanism.ROUND_ROBIN
    mps: int = 0
    css: CommandSetSelected = CommandSetSelected.NVM
    en: bool = False
    reserved_31_24: int = 0
    reserved_03_01: int = 0

    @classmethod
    def from_raw(cls, value: int) -> ControllerConfiguration:
        """Decode the raw 32-bit register value."""
        return cls._decode(value)

    def to_raw(self) -> int:
        return self._to_raw()


@dataclass
class ControllerStatus(_Register):
    """The CSTS register."""

    _LAYOUT: ClassVar[tuple[_Field, ...]] = (
        ("reserved_31_06", 6, 26, int),
        ("pp", 5, 1, bool),
        ("nssro", 4, 1, bool),
        ("shst", 2, 2, ShutdownStatus),
        ("cfs", 1, 1, bool),
        ("rdy", 0, 1, bool),
    )

    pp: bool = False
    nssro: bool = False
    shst: ShutdownStatus = ShutdownStatus.NORMAL_OPERATION
    cfs: bool = False
    rdy: bool = False
    reserved_31_06: int = 0

    @classmethod
    def from_raw(cls, value: int) -> ControllerStatus:
        """Decode the raw 32-bit register value."""
        return cls._decode(value)

    def to_raw(self) -> int:
        return self._to_raw()


class Opcode(IntEnum):
    IDENTIFY = 0x06


class DataTransfer(IntEnum):
    PRP = 0b00
    SGL_BYTE_ALIGNED = 0b01
    SGL_QWORD_ALIGNED = 0b10


class FusedOperation(IntEnum):
    NORMAL = 0b00
    FUSED_FIRST_COMMAND = 0b01
    FUSED_SECOND_COMMAND = 0b10


def _decode_enum(kind: type[IntEnum], raw: int, name: str):
    try:
        return kind(raw)
    except ValueError:
        raise ValueError(f"invalid value {raw:#x} for {name}") from None


_COMMAND_HEAD = struct.Struct(">6I")
_COMMAND_TAIL = struct.Struct(">QQIHBB")


@dataclass
class Command:
    """A 64-byte submission queue entry.

    The data pointer holds ``prp1``/``prp2`` when ``psdt`` is PRP and
    ``sgl1`` otherwise.
    """

    SIZE: ClassVar[int] = 64

    opcode: Opcode = Opcode.IDENTIFY
    cid: int = 0
    psdt: DataTransfer = DataTransfer.PRP
    fuse: FusedOperation = FusedOperation.NORMAL
    nsid: int = 0
    mptr: int = 0
    prp1: int = 0
    prp2: int = 0
    sgl1: int = 0
    cdw10: int = 0
    cdw11: int = 0
    cdw12: int = 0
    cdw13: int = 0
    cdw14: int = 0
    cdw15: int = 0
    reserved: int = 0

    def to_bytes(self) -> bytes:
        head = _COMMAND_HEAD.pack(
            self.cdw15, self.cdw14, self.cdw13, self.cdw12, self.cdw11, self.cdw10
        )
        if self.psdt is DataTransfer.PRP:
            dptr = struct.pack(">QQ", self.prp2, self.prp1)
        else:
            dptr = self.sgl1.to_bytes(16, "big")
        flags = (int(self.psdt) << 6) | int(self.fuse)
        tail = _COMMAND_TAIL.pack(
            self.mptr, self.reserved, self.nsid, self.cid, flags, int(self.opcode)
        )
        return head + dptr + tail

    @classmethod
    def from_bytes(cls, data: bytes) -> Command:
        data = bytes(data)
        if len(data) != cls.SIZE:
            raise ValueError(f"a command is {cls.SIZE} bytes, got {len(data)}")
        cdw15, cdw14, cdw13, cdw12, cdw11, cdw10 = _COMMAND_HEAD.unpack_from(data)
        dptr = data[_COMMAND_HEAD.size:_COMMAND_HEAD.size + 16]
        mptr, reserved, nsid, cid, flags, opcode = _COMMAND_TAIL.unpack_from(
            data, _COMMAND_HEAD.size + 16
        )
        psdt = _decode_enum(DataTransfer, flags >> 6, "psdt")
        fuse = _decode_enum(FusedOperation, flags & 0b11, "fuse")
        command = cls(
            opcode=_decode_enum(Opcode, opcode, "opcode"),
            cid=cid,
            psdt=psdt,
            fuse=fuse,
            nsid=nsid,
            mptr=mptr,
            cdw10=cdw10,
            cdw11=cdw11,
            cdw12=cdw12,
            cdw13=cdw13,
            cdw14=cdw14,
            cdw15=cdw15,
            reserved=reserved,
        )
        if psdt is DataTransfer.PRP:
            command.prp2, command.prp1 = struct.unpack(">QQ", dptr)
        else:
            command.sgl1 = int.from_bytes(dptr, "big")
        return command


_COMPLETION = struct.Struct(">IIHHHH")


@dataclass
class Completion:
    """A 16-byte completion queue entry."""

    SIZE: ClassVar[int] = 16

    command_specific: int = 0
    reserved: int = 0
    sqid: int = 0
    sqhd: int = 0
    status_field: int = 0
    phase: bool = False
    cid: int = 0

    def to_bytes(self) -> bytes:
        if not 0 <= self.status_field < 1 << 15:
            raise ValueError(f"status field {self.status_field:#x} does not fit in 15 bits")
        return _COMPLETION.pack(
            self.command_specific,
            self.reserved,
            self.sqid,
            self.sqhd,
            (self.status_field << 1) | int(self.phase),
            self.cid,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Completion:
        data = bytes(data)
        if len(data) != cls.SIZE:
            raise ValueError(f"a completion is {cls.SIZE} bytes, got {len(data)}")
        dw0, dw1, sqid, sqhd, status, cid = _COMPLETION.unpack(data)
        return cls(dw0, dw1, sqid, sqhd, status >> 1, bool(status & 1), cid)