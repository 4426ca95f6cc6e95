import ast

import pytest

from pcitools.codegen import generate_source, main, sanitize
from pcitools.pciids import PciClass, PciIds, load_from_file, parse_pci_ids

FIXTURE = (
    "# made-up vendor section\n"
    "1234  Example Vendor\n"
    "\n"
    "C 03  Display controller\n"
    "\t00  VGA compatible controller\n"
    "\t\t00  VGA controller\n"
    "\t\t01  8514 controller\n"
    "\t01  XGA compatible controller\n"
    "\t02  3D controller\n"
    "\t80  Display controller\n"
    "C 13  Non-Essential Instrumentation\n"
    "C ff  Unassigned class\n"
)


def _generated_tree():
    pci_ids, rest = parse_pci_ids(FIXTURE)
    assert rest == ""
    return ast.parse(generate_source(pci_ids))


def _class_names(tree):
    return [node.name for node in tree.body if isinstance(node, ast.ClassDef)]


def _members(tree, name):
    (cls,) = [n for n in tree.body if isinstance(n, ast.ClassDef) and n.name == name]
    return {
        stmt.targets[0].id: ast.literal_eval(stmt.value)
        for stmt in cls.body
        if isinstance(stmt, ast.Assign)
    }


def _assignment(tree, name):
    for node in tree.body:
        if isinstance(node, ast.Assign) and node.targets[0].id == name:
            return node.value
    raise LookupError(name)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Mass storage controller", "MassStorageController"),
        ("Non-Volatile memory controller", "NonVolatileMemoryController"),
        ("CXL Memory Device (CXL 2.x)", "CXLMemoryDeviceCXL2X"),
        ("VGA compatible controller", "VGACompatibleController"),
        ("8514 controller", "8514Controller"),
    ],
)
def test_sanitize(name, expected):
    assert sanitize(name) == expected


def test_sanitize_drops_all_separators():
    assert sanitize("--- ()") == ""


def test_prog_if_enum_members():
    tree = _generated_tree()
    assert _members(tree, "DisplayControllerVGACompatibleControllerProgIf") == {
        "VGAController": 0x00,
        "_8514Controller": 0x01,
    }


def test_subtype_enum_members():
    tree = _generated_tree()
    assert _members(tree, "DisplayControllerSubtype") == {
        "VGACompatibleController": 0x00,
        "XGACompatibleController": 0x01,
        "_3DController": 0x02,
        "DisplayController": 0x80,
    }


def test_class_enum_and_ordering():
    tree = _generated_tree()
    names = _class_names(tree)
    assert names == [
        "DisplayControllerVGACompatibleControllerProgIf",
        "DisplayControllerSubtype",
        "PciDeviceClass",
    ]
    assert _members(tree, "PciDeviceClass") == {
        "DisplayController": 0x03,
        "NonEssentialInstrumentation": 0x13,
        "UnassignedClass": 0xFF,
    }


def test_lookup_tables():
    tree = _generated_tree()
    subtypes = _assignment(tree, "SUBTYPES")
    assert [ast.unparse(k) for k in subtypes.keys] == ["PciDeviceClass.DisplayController"]
    assert [ast.unparse(v) for v in subtypes.values] == ["DisplayControllerSubtype"]

    prog_ifs = _assignment(tree, "PROG_IFS")
    assert [[ast.unparse(e) for e in k.elts] for k in prog_ifs.keys] == [
        ["PciDeviceClass.DisplayController", "DisplayControllerSubtype.VGACompatibleController"]
    ]
    assert [ast.unparse(v) for v in prog_ifs.values] == [
        "DisplayControllerVGACompatibleControllerProgIf"
    ]
    assert ast.unparse(_assignment(tree, "DEFAULT_CLASS")) == "PciDeviceClass.UnassignedClass"


def test_empty_database_has_no_default():
    tree = ast.parse(generate_source(PciIds()))
    assert _class_names(tree) == ["PciDeviceClass"]
    with pytest.raises(LookupError):
        _assignment(tree, "DEFAULT_CLASS")


def test_unusable_name_is_rejected():
    with pytest.raises(ValueError):
        generate_source(PciIds(classes=[PciClass(0x01, "---", [])]))


def test_main_writes_generated_module(tmp_path):
    source = tmp_path / "pci.ids"
    source.write_text(FIXTURE, encoding="utf-8")
    output = tmp_path / "ids.py"

    assert main(["--input", str(source), "--output", str(output)]) == 0
    assert output.read_text(encoding="utf-8") == generate_source(load_from_file(source))