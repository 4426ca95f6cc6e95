"""VFIO containers, groups and devices.

A :class:`VfioContainer` owns the ``/dev/vfio/vfio`` handle, a
:class:`VfioGroup` owns one ``/dev/vfio/<group>`` handle attached to a
container, and a :class:`VfioDevice` owns the device descriptor handed out
by its group. Failed system calls raise :class:`OSError`; inconsistent
kernel answers and lookups raise :class:`VfioError`.
"""

from __future__ import annotations

import fcntl
import os
import re
import struct
from pathlib import Path

from .pci import SYSFS_PCI_DEVICES, PciAddress
from .vfio_structs import (
    VFIO_API_VERSION_EXPECTED,
    VFIO_CHECK_EXTENSION_IOCTL,
    VFIO_DEVICE_GET_INFO,
    VFIO_DEVICE_GET_REGION_INFO,
    VFIO_GET_API_VERSION_IOCTL,
    VFIO_GROUP_GET_DEVICE_FD,
    VFIO_GROUP_GET_STATUS,
    VFIO_GROUP_SET_CONTAINER,
    VFIO_IOMMU_TYPE1V2,
    VFIO_SET_IOMMU_IOCTL,
    VfioDeviceInfo,
    VfioGroupStatus,
    VfioGroupStatusFlag,
    VfioRegionInfo,
)

VFIO_DIR = Path("/dev/vfio")
REGION_COUNT = 9

_GROUP_ID = re.compile(r"[0-9]+")


class VfioError(RuntimeError):
    """Raised when VFIO state is not what an operation needs."""


def _as_address(address: PciAddress | str) -> PciAddress:
    return PciAddress.parse(address) if isinstance(address, str) else address


def _ioctl_struct(fd: int, request: int, payload: bytes) -> bytes:
    """Issue an ioctl that fills in a structure in place and return its bytes."""
    buffer = bytearray(payload)
    fcntl.ioctl(fd, request, buffer, True)
    return bytes(buffer)


class _Handle:
    """An owned file descriptor that can be closed once."""

    def __init__(self, fd: int) -> None:
        self._fd = fd

    def _open_fd(self) -> int:
        if self._fd < 0:
            raise VfioError(f"{type(self).__name__} is closed")
        return self._fd

    def _close_fd(self) -> None:
        if self._fd >= 0:
            fd, self._fd = self._fd, -1
            os.close(fd)

    def close(self) -> None:
        self._close_fd()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class VfioDevice(_Handle):
    """A PCI device opened through its VFIO group."""

    def __init__(self, fd: int, group_id: int, address: PciAddress | str) -> None:
        super().__init__(fd)
        self.group_id = group_id
        self.address = _as_address(address)

    def fileno(self) -> int:
        """Return the device descriptor."""
        return self._open_fd()

    def device_info(self) -> VfioDeviceInfo:
        reply = _ioctl_struct(
            self.fileno(), VFIO_DEVICE_GET_INFO, VfioDeviceInfo().to_bytes()
        )
        return VfioDeviceInfo.from_bytes(reply)

    def region_info(self, index: int) -> VfioRegionInfo:
        if not 0 <= index < REGION_COUNT:
            raise VfioError("Vfio region index is out of range")
        reply = _ioctl_struct(
            self.fileno(),
            VFIO_DEVICE_GET_REGION_INFO,
            VfioRegionInfo(index=index).to_bytes(),
        )
        return VfioRegionInfo.from_bytes(reply)

    def __repr__(self) -> str:
        return f"VfioDevice(address='{self.address}', group_id={self.group_id})"


class VfioGroup(_Handle):
    """An IOMMU group attached to a container."""

    def __init__(
        self,
        container: VfioContainer,
        group_id: int,
        vfio_dir: str | Path = VFIO_DIR,
    ) -> None:
        super().__init__(os.open(Path(vfio_dir) / str(group_id), os.O_RDWR))
        self.id = group_id
        self.devices: list[VfioDevice] = []
        try:
            self._attach(container)
        except BaseException:
            self._close_fd()
            raise

    def fileno(self) -> int:
        """Return the group descriptor."""
        return self._open_fd()

    def _attach(self, container: VfioContainer) -> None:
        if not self.status().flag(VfioGroupStatusFlag.VIABLE):
            raise VfioError("VFIO group not viable")

        fcntl.ioctl(
            self.fileno(), VFIO_GROUP_SET_CONTAINER, struct.pack("i", container.fileno())
        )
        if not self.status().flag(VfioGroupStatusFlag.CONTAINER_SET):
            raise VfioError("Failed to set vfio container for vfio group")

        fcntl.ioctl(container.fileno(), VFIO_SET_IOMMU_IOCTL, VFIO_IOMMU_TYPE1V2)

    @staticmethod
    def id_from_address(
        address: PciAddress | str, sysfs_root: str | Path = SYSFS_PCI_DEVICES
    ) -> int:
        """Resolve the IOMMU group number of a PCI device from sysfs."""
        link = Path(sysfs_root) / str(_as_address(address)) / "iommu_group"
        name = Path(os.readlink(link)).name
        if not _GROUP_ID.fullmatch(name) or int(name) >= 1 << 32:
            raise VfioError(f"invalid IOMMU group name {name!r}")
        return int(name)

    def add_device(self, address: PciAddress | str) -> VfioDevice:
        address = _as_address(address)
        name = bytearray(str(address).encode("ascii") + b"\0")
        fd = fcntl.ioctl(self.fileno(), VFIO_GROUP_GET_DEVICE_FD, name, True)
        device = VfioDevice(fd, self.id, address)
        self.devices.append(device)
        return device

    def get_device(self, address: PciAddress | str) -> VfioDevice:
        address = _as_address(address)
        for device in self.devices:
            if device.address == address:
                return device
        raise VfioError(
            f"No pci device with address {address} found in VfioGroup. "
            "Did you forget to call add_device()?"
        )

    def status(self) -> VfioGroupStatus:
        reply = _ioctl_struct(
            self.fileno(), VFIO_GROUP_GET_STATUS, VfioGroupStatus().to_bytes()
        )
        return VfioGroupStatus.from_bytes(reply)

    def close(self) -> None:
        for device in self.devices:
            device.close()
        self._close_fd()

    def __repr__(self) -> str:
        return f"VfioGroup(id={self.id}, devices={self.devices!r})"


class VfioContainer(_Handle):
    """The VFIO container, checked for API version and Type1v2 IOMMU support."""

    def __init__(self, vfio_dir: str | Path = VFIO_DIR) -> None:
        self._vfio_dir = Path(vfio_dir)
        super().__init__(os.open(self._vfio_dir / "vfio", os.O_RDWR))
        self.groups: list[VfioGroup] = []
        try:
            self._check()
        except BaseException:
            self._close_fd()
            raise

    def fileno(self) -> int:
        """Return the container descriptor."""
        return self._open_fd()

    def _check(self) -> None:
        version = fcntl.ioctl(self.fileno(), VFIO_GET_API_VERSION_IOCTL)
        if version != VFIO_API_VERSION_EXPECTED:
            raise VfioError("VFIO API version mismatch")
        supported = fcntl.ioctl(
            self.fileno(), VFIO_CHECK_EXTENSION_IOCTL, VFIO_IOMMU_TYPE1V2
        )
        if supported == 0:
            raise VfioError("VFIO TYPE1v2 IOMMU not supported")

    def add_group(self, group_id: int) -> VfioGroup:
        group = VfioGroup(self, group_id, self._vfio_dir)
        self.groups.append(group)
        return group

    def close(self) -> None:
        for group in self.groups:
            group.close()
        self._close_fd()

    def __repr__(self) -> str:
        return f"VfioContainer(groups={self.groups!r})"