from __future__ import annotations

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
import njsgen_core as njsgen  # noqa: E402
from njsgen_core import core as njs_core  # noqa: E402


def make_context() -> njs_core.TypeContext:
    return njsgen.build_type_context(
        {
            "enumerations": {"Color": ["RED", "GREEN"]},
            "structures": {
                "Point": {"members": {"x": "int", "y": "int"}},
                "Node": {"noTypeDef": True, "members": {"next": "struct Node*"}},
            },
            "unions": {"Value": {"members": {"i": "int", "f": "float"}}},
            "functionTypes": {"Callback": {"parameters": {"v": "int"}}},
        }
    )


class TypeResolverTests(unittest.TestCase):
    def setUp(self) -> None:
        self.ctxt = make_context()

    def test_declarators_round_trip(self) -> None:
        for text in (
            "int",
            "const char*",
            "char* const",
            "unsigned long long",
            "Point*",
            "Point*[3]",
            "int[4]",
            "void*",
            "Callback",
            "struct Node*",
            "enum Mode",
        ):
            ctype = self.ctxt.parse(text)
            self.assertEqual(str(ctype), text)
            self.assertEqual(self.ctxt.parse(str(ctype)), ctype)

    def test_declare_places_name_inside_declarator(self) -> None:
        self.assertEqual(self.ctxt.parse("int[4]").declare("a"), "int a[4]")
        self.assertEqual(self.ctxt.parse("Point*[3]").declare("p"), "Point* p[3]")
        self.assertEqual(self.ctxt.parse("const char*").declare("s"), "const char* s")

    def test_models(self) -> None:
        pointer = self.ctxt.parse("const char*")
        self.assertTrue(pointer.is_pointer)
        assert pointer.value_type is not None
        self.assertTrue(pointer.value_type.is_const)
        self.assertTrue(self.ctxt.parse("Point").is_box)
        self.assertTrue(self.ctxt.parse("Callback").is_function)
        self.assertTrue(self.ctxt.parse("Color").is_primitive)
        self.assertTrue(self.ctxt.parse("void").is_void)

        array = self.ctxt.parse("double[N]")
        self.assertTrue(array.is_array)
        self.assertEqual(array.length, "N")
        self.assertEqual(njs_core.array_decay(array), self.ctxt.parse("double*"))

    def test_whitespace_is_normalized(self) -> None:
        self.assertEqual(self.ctxt.parse("unsigned   int"), self.ctxt.parse("unsigned int"))

    def test_tagged_box_reference(self) -> None:
        ctype = self.ctxt.parse("struct Node")
        self.assertEqual(ctype.tag, "struct")
        self.assertEqual(str(ctype), "struct Node")
        self.assertEqual(str(self.ctxt.parse("union Value")), "Value")

    def test_unknown_type_raises(self) -> None:
        with self.assertRaises(njsgen.UnknownTypeError):
            self.ctxt.parse("Missing*")
        with self.assertRaises(njsgen.UnknownTypeError):
            self.ctxt.parse("  ")

    def test_kind_mismatch_raises(self) -> None:
        with self.assertRaises(njsgen.KindMismatchError):
            self.ctxt.parse("union Point")
        with self.assertRaises(njsgen.KindMismatchError):
            self.ctxt.parse("struct Value")

    def test_globals_box_is_not_a_type(self) -> None:
        ctxt = njsgen.build_type_context({"variables": {"counter": "int"}})
        with self.assertRaises(njsgen.UnknownTypeError):
            ctxt.parse("$")

    def test_element_and_ffi_types(self) -> None:
        self.assertEqual(njs_core.element_type_of(self.ctxt.parse("uint8_t")), "RJS_ARRAY_ELEMENT_UINT8")
        self.assertEqual(njs_core.element_type_of(self.ctxt.parse("Color")), "RJS_ARRAY_ELEMENT_INT")
        with self.assertRaises(njsgen.NjsGenError):
            njs_core.element_type_of(self.ctxt.parse("Point"))

        self.assertEqual(njs_core.ffi_type_of(self.ctxt.parse("int")), "ffi_type_sint")
        self.assertEqual(njs_core.ffi_type_of(self.ctxt.parse("double")), "ffi_type_double")
        self.assertEqual(njs_core.ffi_type_of(self.ctxt.parse("Point*")), "ffi_type_pointer")
        self.assertEqual(njs_core.ffi_type_of(self.ctxt.parse("Callback")), "ffi_type_pointer")
        self.assertEqual(njs_core.ffi_type_of(self.ctxt.parse("Color")), "ffi_type_sint")
        with self.assertRaises(njsgen.NjsGenError):
            njs_core.ffi_type_of(self.ctxt.parse("Point"))


if __name__ == "__main__":
    unittest.main()
