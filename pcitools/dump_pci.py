"""Decode and dump the configuration header of every PCI device in sysfs."""

from __future__ import annotations

import argparse
import pprint
import sys
from pathlib import Path

from .pci import SYSFS_PCI_DEVICES, PciAddress, PciDevice, PciError


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Decode the configuration space of every PCI device."
    )
    parser.add_argument(
        "--sysfs-root",
        type=Path,
        default=SYSFS_PCI_DEVICES,
        help="directory holding one entry per PCI device",
    )
    args = parser.parse_args(argv)

    try:
        entries = sorted(args.sysfs_root.iterdir(), key=lambda entry: entry.name)
    except OSError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1

    for entry in entries:
        name = entry.name
        try:
            address = PciAddress.parse(name)
        except PciError as err:
            print(f"Error: {err}", file=sys.stderr)
            return 1
        try:
            device = PciDevice.read(address, args.sysfs_root)
        except (OSError, PciError):
            print(f"skipping on parse failure: {name}", file=sys.stderr)
            continue
        print(f"Successfully parsed device at {name}")
        pprint.pprint(device, stream=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())