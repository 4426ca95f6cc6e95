"""Bring an NVMe controller up and down through VFIO."""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

from .nvme import NvmeController, NvmeError
from .pci import SYSFS_PCI_DEVICES, PciAddress, PciError
from .vfio import VFIO_DIR, VfioContainer, VfioError, VfioGroup


def _step(message: str, action, wait) -> None:
    print(message, end="", flush=True)
    action()
    wait()
    print("Successful!")


def _run(args: argparse.Namespace) -> None:
    print(f"Using device path -- {args.address}", file=sys.stderr)
    address = PciAddress.parse(args.address)
    group_id = VfioGroup.id_from_address(address, args.sysfs_root)
    with VfioContainer(args.vfio_dir) as container:
        group = container.add_group(group_id)
        group.add_device(address)
        device = group.get_device(address)

        with NvmeController.from_device(device) as controller:
            controller.print_spec_version()
            controller.print_caps_table()

            _step("Enabling controller... ", controller.enable, controller.wait_for_ready)
            _step(
                "Telling controller to shutdown... ",
                controller.shutdown,
                controller.wait_for_shutdown,
            )
            _step("Disabling controller... ", controller.disable, controller.wait_for_stop)

            print(f"Sleeping for {args.sleep:g} seconds (it is safe to ctrl-c)....")
            time.sleep(args.sleep)
            print("thats all folks")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Enable, shut down and disable an NVMe controller bound to VFIO."
    )
    parser.add_argument("address", nargs="?", default="02:00.0", help="PCI address")
    parser.add_argument("--sysfs-root", type=Path, default=SYSFS_PCI_DEVICES)
    parser.add_argument("--vfio-dir", type=Path, default=VFIO_DIR)
    parser.add_argument("--sleep", type=float, default=30.0)
    args = parser.parse_args(argv)

    try:
        _run(args)
    except (OSError, PciError, VfioError, NvmeError) as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())