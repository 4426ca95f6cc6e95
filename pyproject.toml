[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pcitools"
version = "0.1.0"
description = "PCI configuration space decoding, pci.ids parsing, VFIO access and NVMe controller register handling"
requires-python = ">=3.10"
keywords = ["pci", "pci.ids", "vfio", "nvme", "sysfs", "linux"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware :: Hardware Drivers",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
pcitools-generate-ids = "pcitools.codegen:main"
pcitools-dump-pci = "pcitools.dump_pci:main"
pcitools-kv = "pcitools.kv:main"

[tool.hatch.build.targets.wheel]
packages = ["pcitools"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
