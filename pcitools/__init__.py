"""PCI configuration decoding, pci.ids parsing, VFIO access and NVMe register handling."""

__version__ = "0.1.0"