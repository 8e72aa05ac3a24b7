from __future__ import annotations

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from njsgen_core import core as njs_core  # noqa: E402


class ReindentTests(unittest.TestCase):
    def test_later_lines_follow_insertion_column(self) -> None:
        self.assertEqual(
            njs_core.reindent("    x = ", "a(\n    b);\n"),
            ["    x = a(", "        b);"],
        )

    def test_empty_snippet_adds_nothing(self) -> None:
        self.assertEqual(njs_core.reindent("    ", ""), [])

    def test_whitespace_only_lines_become_empty(self) -> None:
        self.assertEqual(njs_core.reindent("  ", "a\n   \nb"), ["  a", "", "  b"])


class CodeBuilderTests(unittest.TestCase):
    def test_indented_block(self) -> None:
        builder = njs_core.CodeBuilder()
        builder.line("{")
        with builder.indented():
            builder.block("int a;\nint b;\n")
            builder.blank()
            builder.line("return 0;")
        builder.line("}")
        self.assertEqual(builder.text(), "{\n    int a;\n    int b;\n\n    return 0;\n}")

    def test_slot_markers(self) -> None:
        self.assertEqual(
            njs_core.slot("DECL"),
            "/*NJSGEN DECL BEGIN*/\n/*NJSGEN TODO*/\n/*NJSGEN DECL END*/",
        )


class FunctionBuilderTests(unittest.TestCase):
    def test_regions_render_in_order(self) -> None:
        builder = njs_core.FunctionBuilder("njs_demo_nf", "Demo")
        builder.add_output("/*output*/\n")
        builder.add_body("/*body*/\n")
        builder.add_check("/*check*/\n")
        builder.add_input("/*input*/\n")
        builder.add_init("/*init*/\n")
        builder.add_release("/*release*/\n")
        builder.declare_value("njs_tmp")
        builder.declare_value("njs_tmp")

        text = builder.render()
        order = [text.index(f"/*{name}*/") for name in ("init", "input", "check", "body", "output")]
        self.assertEqual(order, sorted(order))
        self.assertTrue(text.startswith("/*Demo*/\nstatic NJS_NATIVE_FUNC(njs_demo_nf)\n{"))
        self.assertEqual(text.count("RJS_Value *njs_tmp = rjs_value_stack_push(njs_rt);"), 1)
        self.assertLess(text.index("end:"), text.index("/*release*/"))
        self.assertTrue(text.endswith("    rjs_value_stack_restore(njs_rt, njs_top);\n    return njs_r;\n}"))

    def test_module_data_is_requested_once(self) -> None:
        builder = njs_core.FunctionBuilder("njs_demo_nf", "Demo")
        self.assertFalse(builder.uses_module_data)
        builder.require_module_data()
        builder.require_module_data()
        self.assertTrue(builder.uses_module_data)
        self.assertEqual(builder.render().count("NJS_ModuleData *njs_md;"), 1)

    def test_callback_builder_swaps_input_and_output(self) -> None:
        builder = njs_core.FfiCallbackFunctionBuilder("njs_cb_ffi2js", "cb")
        builder.add_input("/*input*/\n")
        builder.add_output("/*output*/\n")
        text = builder.render()
        self.assertLess(text.index("/*output*/"), text.index("/*input*/"))
        self.assertIn("njs_cb_ffi2js (RJS_Runtime *njs_rt, void **njs_argp", text)


class ModuleDataTests(unittest.TestCase):
    def test_unused_module_data_renders_nothing(self) -> None:
        data = njs_core.ModuleData()
        self.assertEqual(data.render_decl(), "")
        self.assertEqual(data.render_init(), "")

    def test_module_data_members(self) -> None:
        data = njs_core.ModuleData()
        data.add_ctype("Point")
        data.add_prop("rem")
        data.add_prop("rem")
        decl = data.render_decl()
        self.assertIn("RJS_CType *ctype_Point;", decl)
        self.assertEqual(decl.count("RJS_PropertyName pn_rem;"), 1)
        self.assertIn("rjs_gc_scan_value(njs_rt, &njs_md->str_rem);", decl)
        self.assertIn("/*NJSGEN MODULE_DATA_DECL BEGIN*/", decl)
        self.assertIn('rjs_string_from_chars(njs_rt, &njs_md->str_rem, "rem", -1);', data.render_init())

    def test_export_table(self) -> None:
        table = njs_core.ExportTable()
        table.add("Point")
        table.add("Point")
        text = table.render()
        self.assertEqual(text.count('{NULL, NULL, "Point", "Point"},'), 1)
        self.assertTrue(text.endswith("    {NULL, NULL, NULL, NULL}\n};"))


if __name__ == "__main__":
    unittest.main()
