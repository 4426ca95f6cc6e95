"""Parser for the ``pci.ids`` database of vendors, devices and device classes.

Every ``parse_*`` and ``take_*`` function takes the text to parse and
returns a ``(value, rest)`` pair, where ``rest`` is the unconsumed input.
A failed parse raises :class:`ParseError`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, TypeVar

T = TypeVar("T")

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_LINE_BREAK = re.compile(r"[\r\n]")


class ParseError(ValueError):
    """Raised when the input does not match the ``pci.ids`` grammar."""

    def __init__(self, message: str, remaining: str) -> None:
        super().__init__(f"{message} at {remaining[:40]!r}")
        self.remaining = remaining


@dataclass
class ProgIf:
    id: int
    name: str


@dataclass
class SubClass:
    id: int
    name: str
    prog_ifs: list[ProgIf] = field(default_factory=list)


@dataclass
class PciClass:
    id: int
    name: str
    subclasses: list[SubClass] = field(default_factory=list)


@dataclass
class Subsystem:
    subvendor_id: int
    subdevice_id: int
    name: str


@dataclass
class Device:
    id: int
    name: str
    subsystems: list[Subsystem] = field(default_factory=list)


@dataclass
class Vendor:
    id: int
    name: str
    devices: list[Device] = field(default_factory=list)


@dataclass
class PciIds:
    classes: list[PciClass] = field(default_factory=list)
    vendors: list[Vendor] = field(default_factory=list)


def _tag(text: str, prefix: str) -> str:
    if not text.startswith(prefix):
        raise ParseError(f"expected {prefix!r}", text)
    return text[len(prefix):]


def _line_ending(text: str) -> str:
    if text.startswith("\n"):
        return text[1:]
    if text.startswith("\r\n"):
        return text[2:]
    raise ParseError("expected a line ending", text)


def _space1(text: str) -> str:
    rest = text.lstrip(" \t")
    if len(rest) == len(text):
        raise ParseError("expected whitespace", text)
    return rest


def _not_line_ending(text: str) -> tuple[str, str]:
    match = _LINE_BREAK.search(text)
    if match is None:
        return text, ""
    pos = match.start()
    if text[pos] == "\r" and not text.startswith("\r\n", pos):
        raise ParseError("carriage return without line feed", text[pos:])
    return text[:pos], text[pos:]


def _take_hex(text: str, width: int) -> tuple[int, str]:
    digits = text[:width]
    if len(digits) < width or not all(ch in _HEX_DIGITS for ch in digits):
        raise ParseError(f"expected {width} hex digits", text)
    return int(digits, 16), text[width:]


def _many(parser: Callable[[str], tuple[T, str]], text: str) -> tuple[list[T], str]:
    items: list[T] = []
    while True:
        try:
            item, text = parser(text)
        except ParseError:
            return items, text
        items.append(item)


def _scrub(text: str) -> str:
    """Skip any run of comment lines and empty lines."""
    while True:
        try:
            if text.startswith("#"):
                _, text = take_rest_of_line(text[1:])
            else:
                text = _line_ending(text)
        except ParseError:
            return text


def take_rest_of_line(text: str) -> tuple[str, str]:
    """Take everything up to the line ending, consuming the ending if present."""
    line, rest = _not_line_ending(text)
    if rest:
        rest = _line_ending(rest)
    return line, rest


def take_u8_from_hex(text: str) -> tuple[int, str]:
    """Take exactly two hex digits."""
    return _take_hex(text, 2)


def take_u16_from_hex(text: str) -> tuple[int, str]:
    """Take exactly four hex digits."""
    return _take_hex(text, 4)


def parse_prog_if(text: str) -> tuple[ProgIf, str]:
    rest = _tag(_scrub(text), "\t\t")
    prog_if_id, rest = take_u8_from_hex(rest)
    name, rest = take_rest_of_line(_space1(rest))
    return ProgIf(prog_if_id, name), rest


def parse_subclass(text: str) -> tuple[SubClass, str]:
    rest = _tag(_scrub(text), "\t")
    subclass_id, rest = take_u8_from_hex(rest)
    name, rest = take_rest_of_line(_space1(rest))
    prog_ifs, rest = _many(parse_prog_if, rest)
    return SubClass(subclass_id, name, prog_ifs), rest


def parse_class(text: str) -> tuple[PciClass, str]:
    rest = _space1(_tag(_scrub(text), "C"))
    class_id, rest = take_u8_from_hex(rest)
    name, rest = take_rest_of_line(_space1(rest))
    subclasses, rest = _many(parse_subclass, rest)
    return PciClass(class_id, name, subclasses), rest


def parse_subsystem(text: str) -> tuple[Subsystem, str]:
    rest = _tag(_scrub(text), "\t\t")
    subvendor_id, rest = take_u16_from_hex(rest)
    subdevice_id, rest = take_u16_from_hex(_space1(rest))
    name, rest = take_rest_of_line(_space1(rest))
    return Subsystem(subvendor_id, subdevice_id, name), rest


def parse_device(text: str) -> tuple[Device, str]:
    rest = _tag(_scrub(text), "\t")
    device_id, rest = take_u16_from_hex(rest)
    name, rest = take_rest_of_line(_space1(rest))
    subsystems, rest = _many(parse_subsystem, rest)
    return Device(device_id, name, subsystems), rest


def parse_vendor(text: str) -> tuple[Vendor, str]:
    rest = _scrub(text)
    vendor_id, rest = take_u16_from_hex(rest)
    name, rest = take_rest_of_line(_space1(rest))
    devices, rest = _many(parse_device, rest)
    return Vendor(vendor_id, name, devices), rest


def parse_pci_ids(text: str) -> tuple[PciIds, str]:
    """Parse all vendors followed by all device classes."""
    vendors, rest = _many(parse_vendor, text)
    classes, rest = _many(parse_class, rest)
    return PciIds(classes=classes, vendors=vendors), rest


def load_from_file(path: str | Path) -> PciIds:
    """Read and parse a whole ``pci.ids`` file."""
    text = Path(path).read_text(encoding="utf-8")
    pci_ids, rest = parse_pci_ids(text)
    if rest:
        raise ParseError("unparsed input remains", rest)
    return pci_ids