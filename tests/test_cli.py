from __future__ import annotations

import argparse
import contextlib
import io
import json
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from njsgen_core import cli as njs_cli  # noqa: E402
from njsgen_core.commands import command_generate  # noqa: E402

DEMO_IDL = {
    "numberMacros": ["DEMO_MAX"],
    "structures": {"Point": {"members": {"x": "int32_t", "y": "int32_t"}}},
    "functions": {"add": {"parameters": {"a": "Point*", "b": "Point*"}, "return": "Point"}},
}


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.idl_path = self.root / "demo.json"
        self.idl_path.write_text(json.dumps(DEMO_IDL, indent=2), encoding="utf-8")

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def run_main(self, *argv: str) -> tuple[int, str, str]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            exit_code = njs_cli.main(list(argv))
        return exit_code, stdout.getvalue(), stderr.getvalue()

    def test_default_output_path(self) -> None:
        exit_code, stdout, _ = self.run_main(str(self.idl_path))
        self.assertEqual(exit_code, 0)
        self.assertIn("[demo.json] generate: output=updated", stdout)
        output = self.root / "demo.c"
        self.assertTrue(output.exists())
        text = output.read_text(encoding="utf-8")
        self.assertIn('njs_add_func(njs_rt, njs_mod, "add", njs_add_nf, 2);', text)
        self.assertIn("RJS_CPTR_TYPE_VALUE, 1, RJS_CPTR_FL_AUTO_FREE, njs_rv)", text)

    def test_explicit_output_and_check(self) -> None:
        output = self.root / "build" / "glue.c"
        exit_code, _, _ = self.run_main(str(self.idl_path), "-o", str(output))
        self.assertEqual(exit_code, 0)

        exit_code, stdout, _ = self.run_main(str(self.idl_path), "-o", str(output), "--check")
        self.assertEqual(exit_code, 0)
        self.assertIn("output=unchanged", stdout)

        output.write_text(output.read_text(encoding="utf-8").replace("#include <ratjs.h>", ""), encoding="utf-8")
        exit_code, stdout, _ = self.run_main(str(self.idl_path), "-o", str(output), "--check", "--print-diff")
        self.assertEqual(exit_code, 1)
        self.assertIn("output=drift", stdout)
        self.assertIn("+#include <ratjs.h>", stdout)

    def test_hand_edited_slots_survive_regeneration(self) -> None:
        output = self.root / "demo.c"
        self.run_main(str(self.idl_path))
        text = output.read_text(encoding="utf-8")
        edited = text.replace(
            "/*NJSGEN DECL BEGIN*/\n/*NJSGEN TODO*/",
            "/*NJSGEN DECL BEGIN*/\n#include \"demo.h\"",
        )
        output.write_text(edited, encoding="utf-8")

        exit_code, stdout, _ = self.run_main(str(self.idl_path))
        self.assertEqual(exit_code, 0)
        self.assertIn("output=unchanged", stdout)
        self.assertEqual(output.read_text(encoding="utf-8"), edited)

    def test_dry_run_does_not_write(self) -> None:
        exit_code, stdout, _ = self.run_main(str(self.idl_path), "--dry-run")
        self.assertEqual(exit_code, 0)
        self.assertIn("output=would_write", stdout)
        self.assertFalse((self.root / "demo.c").exists())

    def test_errors_exit_with_code_2(self) -> None:
        bad = self.root / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        exit_code, _, stderr = self.run_main(str(bad))
        self.assertEqual(exit_code, 2)
        self.assertIn("njsgen error:", stderr)

        missing = self.root / "missing.json"
        exit_code, _, stderr = self.run_main(str(missing))
        self.assertEqual(exit_code, 2)
        self.assertIn("Unable to read JSON file", stderr)

        unknown = self.root / "unknown.json"
        unknown.write_text(json.dumps({"functions": {"f": {"return": "Missing"}}}), encoding="utf-8")
        exit_code, _, stderr = self.run_main(str(unknown))
        self.assertEqual(exit_code, 2)
        self.assertIn('unknown type "Missing"', stderr)
        self.assertFalse((self.root / "unknown.c").exists())

    def test_schema_validation(self) -> None:
        idl = {"structures": {"Point": {"members": {"x": {"type": "int", "bogus": True}}}}}
        path = self.root / "schema.json"
        path.write_text(json.dumps(idl), encoding="utf-8")

        exit_code, _, _ = self.run_main(str(path))
        self.assertEqual(exit_code, 0)

        exit_code, _, stderr = self.run_main(str(path), "-v", "-o", str(self.root / "schema_checked.c"))
        self.assertEqual(exit_code, 2)
        self.assertIn("failed JSON schema validation", stderr)

        exit_code, _, _ = self.run_main(str(self.idl_path), "--validate")
        self.assertEqual(exit_code, 0)

    def test_pointer_references_are_resolved_before_validation(self) -> None:
        idl = {
            "structures": {
                "Point": {"members": {"x": "int32_t", "y": "int32_t"}},
                "Size": {"$ref": "#/structures/Point", "readonly": True},
            }
        }
        path = self.root / "refs.json"
        path.write_text(json.dumps(idl), encoding="utf-8")

        exit_code, _, _ = self.run_main(str(path), "-v")
        self.assertEqual(exit_code, 0)
        text = (self.root / "refs.c").read_text(encoding="utf-8")
        self.assertIn("static NJS_NATIVE_FUNC(njs_Size_x_get)", text)
        self.assertNotIn("njs_Size_x_set", text)

        path.write_text(json.dumps({"structures": {"Size": {"$ref": "#/structures/Missing"}}}), encoding="utf-8")
        exit_code, _, stderr = self.run_main(str(path))
        self.assertEqual(exit_code, 2)
        self.assertIn("Unable to resolve $ref '#/structures/Missing'", stderr)

    def test_command_generate_namespace(self) -> None:
        output = self.root / "ns.c"
        exit_code = command_generate(
            argparse.Namespace(
                input=str(self.idl_path),
                output=str(output),
                validate=False,
                check=False,
                dry_run=False,
                print_diff=False,
            )
        )
        self.assertEqual(exit_code, 0)
        self.assertTrue(output.exists())


if __name__ == "__main__":
    unittest.main()
