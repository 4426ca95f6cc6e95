"""Generate a Python module of PCI class enumerations from a ``pci.ids`` file."""

from __future__ import annotations

import argparse
import re
from pathlib import Path

from .pciids import PciClass, PciIds, SubClass, load_from_file

DEFAULT_INPUT = Path("/usr/share/hwdata/pci.ids")
DEFAULT_OUTPUT = Path("ids.py")

_SEPARATORS = re.compile(r"[\W_]+")


def sanitize(name: str) -> str:
    """Turn a free-form name such as "Mass storage" into CamelCase."""
    return "".join(
        word[0].upper() + word[1:] for word in _SEPARATORS.split(name) if word
    )


def _identifier(name: str) -> str:
    ident = sanitize(name)
    if not ident:
        raise ValueError(f"cannot form an identifier from {name!r}")
    if ident[0].isnumeric():
        ident = "_" + ident
    return ident


def _prog_if_enum_name(pci_class: PciClass, subclass: SubClass) -> str:
    return f"{_identifier(pci_class.name)}{sanitize(subclass.name)}ProgIf"


def _subtype_enum_name(pci_class: PciClass) -> str:
    return f"{_identifier(pci_class.name)}Subtype"


def _enum_block(name: str, members: list[tuple[str, int]]) -> list[str]:
    lines = ["", "", f"class {name}(IntEnum):"]
    lines.extend(f"    {member} = 0x{value:02X}" for member, value in members)
    if not members:
        lines.append("    pass")
    return lines


def generate_source(pci_ids: PciIds) -> str:
    """Render the class, subclass and programming-interface enums as Python source."""
    lines = [
        '"""PCI device class identifiers generated from pci.ids."""',
        "",
        "from enum import IntEnum",
    ]

    for pci_class in pci_ids.classes:
        for subclass in pci_class.subclasses:
            if subclass.prog_ifs:
                lines += _enum_block(
                    _prog_if_enum_name(pci_class, subclass),
                    [(_identifier(p.name), p.id) for p in subclass.prog_ifs],
                )

    for pci_class in pci_ids.classes:
        if pci_class.subclasses:
            lines += _enum_block(
                _subtype_enum_name(pci_class),
                [(_identifier(sc.name), sc.id) for sc in pci_class.subclasses],
            )

    lines += _enum_block(
        "PciDeviceClass",
        [(_identifier(c.name), c.id) for c in pci_ids.classes],
    )

    lines += ["", "", "SUBTYPES = {"]
    for pci_class in pci_ids.classes:
        if pci_class.subclasses:
            lines.append(
                f"    PciDeviceClass.{_identifier(pci_class.name)}: "
                f"{_subtype_enum_name(pci_class)},"
            )
    lines.append("}")

    lines += ["", "PROG_IFS = {"]
    for pci_class in pci_ids.classes:
        for subclass in pci_class.subclasses:
            if subclass.prog_ifs:
                lines.append(
                    f"    (PciDeviceClass.{_identifier(pci_class.name)}, "
                    f"{_subtype_enum_name(pci_class)}.{_identifier(subclass.name)}): "
                    f"{_prog_if_enum_name(pci_class, subclass)},"
                )
    lines.append("}")

    if any(_identifier(c.name) == "UnassignedClass" for c in pci_ids.classes):
        lines += ["", "DEFAULT_CLASS = PciDeviceClass.UnassignedClass"]

    return "\n".join(lines) + "\n"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Generate PCI class enumerations from a pci.ids database."
    )
    parser.add_argument("--input", type=Path, default=DEFAULT_INPUT, help="pci.ids file to read")
    parser.add_argument("--output", type=Path, default=DEFAULT_OUTPUT, help="module to write")
    args = parser.parse_args(argv)

    pci_ids = load_from_file(args.input)
    args.output.write_text(generate_source(pci_ids), encoding="utf-8")
    return 0