"""An NVMe controller driven through its memory-mapped register window.

The controller reads and writes the CAP, VS, CC and CSTS registers of a
register block held in any writable buffer, normally BAR 0 of a VFIO device
mapped into memory. Invalid register contents, refused state changes and
timeouts raise :class:`NvmeError`.
"""

from __future__ import annotations

import mmap
import struct
import time
from typing import Callable, Optional, TypeVar

from .nvme_registers import (
    ControllerConfiguration,
    ControllerStatus,
    NvmeCapabilities,
    NvmeSpecVersion,
    ShutdownNotification,
    ShutdownStatus,
)
from .vfio import VfioDevice

REGISTER_BLOCK_SIZE = 64

_CAP_OFFSET = 0x00
_VS_OFFSET = 0x08
_CC_OFFSET = 0x14
_CSTS_OFFSET = 0x1C

_U64 = struct.Struct("<Q")
_U32 = struct.Struct("<I")

R = TypeVar("R")


class NvmeError(RuntimeError):
    """Raised when the controller is in the wrong state or misbehaves."""


class NvmeController:
    """An NVMe controller backed by a register buffer of at least 64 bytes."""

    def __init__(
        self,
        registers,
        *,
        device: Optional[VfioDevice] = None,
        poll_attempts: int = 100,
        poll_interval: float = 0.01,
    ) -> None:
        if len(registers) < REGISTER_BLOCK_SIZE:
            raise NvmeError(
                f"register window needs {REGISTER_BLOCK_SIZE} bytes, got {len(registers)}"
            )
        self._registers = registers
        self._owns_registers = False
        self.device = device
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval

    @classmethod
    def from_device(cls, device: VfioDevice) -> NvmeController:
        """Map region 0 (BAR 0) of a VFIO device and drive it."""
        region = device.region_info(0)
        if region.size < REGISTER_BLOCK_SIZE:
            raise NvmeError(
                f"region 0 is {region.size} bytes, too small for the NVMe registers"
            )
        mapping = mmap.mmap(
            device.fileno(),
            region.size,
            flags=mmap.MAP_SHARED,
            prot=mmap.PROT_READ | mmap.PROT_WRITE,
            offset=region.offset,
        )
        controller = cls(mapping, device=device)
        controller._owns_registers = True
        return controller

    def _buffer(self):
        if self._registers is None:
            raise NvmeError("NvmeController is closed")
        return self._registers

    def _read32(self, offset: int) -> int:
        return _U32.unpack_from(self._buffer(), offset)[0]

    @staticmethod
    def _decode(decoder: Callable[[int], R], value: int) -> R:
        try:
            return decoder(value)
        except ValueError as err:
            raise NvmeError(str(err)) from err

    def capabilities(self) -> NvmeCapabilities:
        value = _U64.unpack_from(self._buffer(), _CAP_OFFSET)[0]
        return self._decode(NvmeCapabilities.from_raw, value)

    def spec_version(self) -> NvmeSpecVersion:
        return self._decode(NvmeSpecVersion.from_raw, self._read32(_VS_OFFSET))

    def configuration(self) -> ControllerConfiguration:
        return self._decode(ControllerConfiguration.from_raw, self._read32(_CC_OFFSET))

    def status(self) -> ControllerStatus:
        return self._decode(ControllerStatus.from_raw, self._read32(_CSTS_OFFSET))

    def write_configuration(self, cc: ControllerConfiguration) -> None:
        value = self._decode(lambda _: cc.to_raw(), 0)
        _U32.pack_into(self._buffer(), _CC_OFFSET, value)

    def enable(self) -> None:
        cc = self.configuration()
        if cc.en:
            raise NvmeError("Controller is already enabled; refusing to enable twice")
        cc.iocqes = 4
        cc.iosqes = 4
        cc.en = True
        self.write_configuration(cc)

    def ready(self) -> bool:
        return self.status().rdy

    def _poll(self, condition: Callable[[], bool], message: str) -> None:
        for _ in range(self.poll_attempts):
            if condition():
                return
            time.sleep(self.poll_interval)
        raise NvmeError(message)

    def wait_for_ready(self) -> None:
        self._poll(self.ready, "Timeout waiting for NVMe controller to become ready")

    def wait_for_stop(self) -> None:
        self._poll(lambda: not self.ready(), "Timeout waiting for NVMe controller to stop")

    def wait_for_shutdown(self) -> None:
        self._poll(
            lambda: self.status().shst is ShutdownStatus.SHUTDOWN_COMPLETE,
            "Timeout waiting for NVMe controller to shutdown",
        )

    def shutdown(self) -> None:
        cc = self.configuration()
        cc.shn = ShutdownNotification.NORMAL
        self.write_configuration(cc)

    def disable(self) -> None:
        cc = self.configuration()
        if not cc.en:
            raise NvmeError("Controller is already disabled; refusing to disable twice")
        cc.en = False
        self.write_configuration(cc)

    def print_spec_version(self) -> None:
        print(f"NVMe spec version: {self.spec_version()}")

    def print_caps_table(self) -> None:
        print(self.capabilities().table())

    def close(self) -> None:
        """Release the register window; an owned mapping is unmapped."""
        registers, self._registers = self._registers, None
        if registers is not None and self._owns_registers:
            registers.close()

    def __enter__(self) -> NvmeController:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()