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
            "structures": {"Point": {"members": {"x": "int", "y": "int"}}},
            "functionTypes": {"Callback": {"parameters": {"v": "int"}}},
        }
    )


class ConverterDispatchTests(unittest.TestCase):
    def setUp(self) -> None:
        self.ctxt = make_context()

    def request(self, type_text: str, mode: str, **kwargs: object) -> njsgen.ConvertRequest:
        return njsgen.ConvertRequest(
            name="v",
            type=self.ctxt.parse(type_text),
            c_expr="njs_arg_v",
            js_expr="njs_arg_v_v",
            mode=mode,
            **kwargs,  # type: ignore[arg-type]
        )

    def test_c_to_js_first_match(self) -> None:
        cases = [
            ("int", njs_core.MODE_RETURN, {}, "number"),
            ("const char*", njs_core.MODE_RETURN, {}, "string"),
            ("char[16]", njs_core.MODE_GETTER, {}, "string"),
            ("Point", njs_core.MODE_GETTER, {}, "box reference"),
            ("Point", njs_core.MODE_RETURN, {}, "box copy"),
            ("Point*", njs_core.MODE_RETURN, {}, "box pointer"),
            ("Point*", njs_core.MODE_RETURN, {"length": "4"}, "box array"),
            ("Point[4]", njs_core.MODE_GETTER, {}, "box array getter"),
            ("Point*[4]", njs_core.MODE_GETTER, {}, "box pointer array"),
            ("Point**", njs_core.MODE_RETURN, {"null_terminated": True}, "box pointer array"),
            ("int*", njs_core.MODE_RETURN, {"length": "n"}, "typed array"),
            ("int[4]", njs_core.MODE_GETTER, {}, "typed array getter"),
            ("Callback", njs_core.MODE_RETURN, {}, "function"),
            ("void*", njs_core.MODE_RETURN, {}, "void pointer"),
            ("int*", njs_core.MODE_RETURN, {}, "opaque pointer"),
        ]
        for type_text, mode, extra, expected in cases:
            with self.subTest(type=type_text, mode=mode):
                rule = njsgen.C_TO_JS.match(self.request(type_text, mode, **extra))
                self.assertEqual(rule.name, expected)

    def test_js_to_c_first_match(self) -> None:
        cases = [
            ("int", njs_core.MODE_IN_PARAM, {}, "number"),
            ("const char*", njs_core.MODE_IN_PARAM, {}, "string"),
            ("char[16]", njs_core.MODE_SETTER, {}, "string buffer"),
            ("Point", njs_core.MODE_IN_PARAM, {}, "box"),
            ("Point*", njs_core.MODE_IN_PARAM, {}, "box pointer"),
            ("void*", njs_core.MODE_IN_PARAM, {}, "void pointer"),
            ("Point*", njs_core.MODE_IN_PARAM, {"length": "n"}, "box array"),
            ("Point[4]", njs_core.MODE_SETTER, {}, "box array setter"),
            ("int*", njs_core.MODE_IN_PARAM, {"length": "n"}, "typed array"),
            ("int[4]", njs_core.MODE_SETTER, {}, "typed array setter"),
            ("Point**", njs_core.MODE_IN_PARAM, {}, "box pointer array"),
            ("Callback", njs_core.MODE_IN_PARAM, {}, "function"),
            ("int*", njs_core.MODE_IN_PARAM, {}, "opaque pointer"),
        ]
        for type_text, mode, extra, expected in cases:
            with self.subTest(type=type_text, mode=mode):
                rule = njsgen.JS_TO_C.match(self.request(type_text, mode, **extra))
                self.assertEqual(rule.name, expected)

    def test_rule_order_is_stable(self) -> None:
        self.assertEqual(njsgen.C_TO_JS.rule_names()[:2], ["number", "string"])
        self.assertEqual(njsgen.JS_TO_C.rule_names()[-1], "opaque pointer")

    def test_no_match_raises(self) -> None:
        with self.assertRaises(njsgen.NjsGenError):
            njsgen.C_TO_JS.match(self.request("void", njs_core.MODE_RETURN))
        with self.assertRaises(njsgen.NjsGenError):
            njsgen.JS_TO_C.match(self.request("void", njs_core.MODE_IN_PARAM))

    def test_invalid_mode_raises(self) -> None:
        with self.assertRaises(njsgen.NjsGenError):
            self.request("int", "sideways")

    def test_length_check_goes_to_check_region(self) -> None:
        builder = njs_core.FunctionBuilder("njs_fill_nf", "fill")
        njsgen.JS_TO_C.convert(builder, self.request("int*", njs_core.MODE_IN_PARAM, length="njs_arg_n"))
        check = builder.sections[njs_core.REGION_CHECK]
        self.assertIn("rjs_get_c_array_length(njs_rt, njs_arg_v_v) < njs_arg_n", check)
        self.assertIn("the typed array length is less than expected length", check)
        self.assertIn("RJS_ARRAY_ELEMENT_INT", builder.sections[njs_core.REGION_INPUT])

    def test_callback_length_check_follows_result_fetch(self) -> None:
        builder = njs_core.FfiCallbackFunctionBuilder("njs_Reader_ffi2js", "Reader")
        njsgen.JS_TO_C.convert(builder, self.request("int*", njs_core.MODE_CALLBACK, length="njs_arg_n"))
        self.assertEqual(builder.sections[njs_core.REGION_CHECK], "")
        fetch = builder.sections[njs_core.REGION_INPUT]
        self.assertLess(fetch.index("RJS_ARRAY_ELEMENT_INT"), fetch.index("< njs_arg_n"))

    def test_string_ownership_flags(self) -> None:
        builder = njs_core.FunctionBuilder("njs_name_nf", "name")
        njsgen.C_TO_JS.convert(builder, self.request("char*", njs_core.MODE_RETURN, is_new=True))
        self.assertIn("free((void*)njs_arg_v);", builder.sections[njs_core.REGION_OUTPUT])

        builder = njs_core.FunctionBuilder("njs_set_name_nf", "set_name")
        njsgen.JS_TO_C.convert(builder, self.request("char*", njs_core.MODE_IN_PARAM, is_free=True))
        self.assertIn("strdup(njs_arg_v)", builder.sections[njs_core.REGION_INPUT])
        self.assertIn("rjs_char_buffer_deinit(njs_rt, &njs_v_cb);", builder.release_code)

    def test_box_copy_owns_new_buffer(self) -> None:
        builder = njs_core.FunctionBuilder("njs_origin_nf", "origin")
        njsgen.C_TO_JS.convert(builder, self.request("Point", njs_core.MODE_RETURN))
        output = builder.sections[njs_core.REGION_OUTPUT]
        self.assertIn("njs_v_copy = malloc(sizeof(Point))", output)
        self.assertIn("RJS_CPTR_FL_AUTO_FREE", output)
        self.assertIn("Point* njs_v_copy;", builder.decl_code)


class ConverterInjectionTests(unittest.TestCase):
    def test_generator_uses_injected_tables(self) -> None:
        def emit(builder: njs_core.FunctionBuilder, req: njsgen.ConvertRequest) -> None:
            builder.add_output(f"/*custom {req.name}*/\n")

        custom = njsgen.ConverterTable(
            name="custom",
            rules=(njsgen.ConverterRule("number", lambda req: req.type.is_primitive, emit),)
            + njsgen.C_TO_JS.rules,
        )
        ctxt = njsgen.build_type_context({"functions": {"count": {"return": "int"}}})
        text = njsgen.generate_module(ctxt, c_to_js=custom)
        self.assertIn("/*custom return*/", text)
        self.assertNotIn("rjs_value_set_number(njs_rt, njs_rv, njs_ret);", text)


if __name__ == "__main__":
    unittest.main()
