from __future__ import annotations

import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
import njsgen_core as njsgen  # noqa: E402
from njsgen_core import core as njs_core  # noqa: E402

NEW_TEXT = """/*header v2*/
/*NJSGEN DECL BEGIN*/
/*NJSGEN TODO*/
/*NJSGEN DECL END*/
static const char *table[] = {
    "a",
    /*NJSGEN TABLE BEGIN*/
    /*NJSGEN TODO*/
    /*NJSGEN TABLE END*/
};
/*NJSGEN EXTRA BEGIN*/
/*NJSGEN TODO*/
/*NJSGEN EXTRA END*/
"""

OLD_TEXT = """/*header v1*/
/*NJSGEN DECL BEGIN*/
#define MY_FLAG 1
/*NJSGEN DECL END*/
static const char *table[] = {
    /*NJSGEN TABLE BEGIN*/
    "custom",
    /*NJSGEN TABLE END*/
};
"""


class SlotParserTests(unittest.TestCase):
    def test_render_reproduces_input(self) -> None:
        for text in (NEW_TEXT, OLD_TEXT, "", "no slots\n"):
            self.assertEqual(njsgen.parse_slots(text).render(), text)

    def test_nested_slots(self) -> None:
        root = njsgen.parse_slots(
            "/*NJSGEN OUTER BEGIN*/\nx\n/*NJSGEN INNER BEGIN*/\ny\n/*NJSGEN INNER END*/\n/*NJSGEN OUTER END*/"
        )
        self.assertEqual(list(root.children), ["OUTER"])
        outer = root.children["OUTER"]
        self.assertEqual(list(outer.children), ["INNER"])
        self.assertEqual(outer.children["INNER"].items, ["y"])

    def test_malformed_markers(self) -> None:
        with self.assertRaises(njsgen.MalformedMergeTagError):
            njsgen.parse_slots("/*NJSGEN A BEGIN*/\n/*NJSGEN B END*/\n")
        with self.assertRaises(njsgen.MalformedMergeTagError):
            njsgen.parse_slots("/*NJSGEN A END*/\n")
        with self.assertRaises(njsgen.MalformedMergeTagError):
            njsgen.parse_slots("/*NJSGEN A BEGIN*/\nint x;\n")


class MergeTextTests(unittest.TestCase):
    def test_old_slot_content_is_preserved(self) -> None:
        merged = njsgen.merge_text(NEW_TEXT, OLD_TEXT)
        self.assertIn("/*header v2*/", merged)
        self.assertNotIn("/*header v1*/", merged)
        self.assertIn("/*NJSGEN DECL BEGIN*/\n#define MY_FLAG 1\n/*NJSGEN DECL END*/", merged)
        self.assertIn('    "a",\n    /*NJSGEN TABLE BEGIN*/\n    "custom",\n    /*NJSGEN TABLE END*/', merged)
        self.assertIn("/*NJSGEN EXTRA BEGIN*/\n/*NJSGEN TODO*/\n/*NJSGEN EXTRA END*/", merged)

    def test_merge_is_idempotent(self) -> None:
        merged = njsgen.merge_text(NEW_TEXT, OLD_TEXT)
        self.assertEqual(njsgen.merge_text(NEW_TEXT, merged), merged)
        self.assertEqual(njsgen.merge_text(NEW_TEXT, NEW_TEXT), NEW_TEXT)

    def test_missing_old_text(self) -> None:
        self.assertEqual(njsgen.merge_text(NEW_TEXT, None), NEW_TEXT)

    def test_only_immediate_children_are_matched(self) -> None:
        new = "/*NJSGEN A BEGIN*/\n/*NJSGEN B BEGIN*/\nnew\n/*NJSGEN B END*/\n/*NJSGEN A END*/\n/*NJSGEN B BEGIN*/\ntop\n/*NJSGEN B END*/"
        old = "/*NJSGEN C BEGIN*/\n/*NJSGEN B BEGIN*/\nold\n/*NJSGEN B END*/\n/*NJSGEN C END*/"
        merged = njsgen.merge_text(new, old)
        self.assertEqual(merged, new)

    def test_malformed_old_text_raises(self) -> None:
        with self.assertRaises(njsgen.MalformedMergeTagError):
            njsgen.merge_text(NEW_TEXT, "/*NJSGEN DECL BEGIN*/\n")


class MergeIntoFileTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_statuses(self) -> None:
        path = self.root / "out" / "demo.c"

        status, diff = njsgen.merge_into_file(path, NEW_TEXT, dry_run=True)
        self.assertEqual(status, "would_write")
        self.assertFalse(path.exists())
        self.assertIn("+/*header v2*/", diff)

        status, _ = njsgen.merge_into_file(path, NEW_TEXT)
        self.assertEqual(status, "updated")
        self.assertEqual(path.read_text(encoding="utf-8"), NEW_TEXT)

        status, diff = njsgen.merge_into_file(path, NEW_TEXT, check=True)
        self.assertEqual((status, diff), ("unchanged", ""))

        edited = NEW_TEXT.replace("/*NJSGEN DECL BEGIN*/\n/*NJSGEN TODO*/", "/*NJSGEN DECL BEGIN*/\nint keep;")
        path.write_text(edited, encoding="utf-8")
        status, _ = njsgen.merge_into_file(path, NEW_TEXT, check=True)
        self.assertEqual(status, "unchanged")

        path.write_text(edited.replace("/*header v2*/", "/*stale*/"), encoding="utf-8")
        status, diff = njsgen.merge_into_file(path, NEW_TEXT, check=True)
        self.assertEqual(status, "drift")
        self.assertIn("-/*stale*/", diff)

        status, _ = njsgen.merge_into_file(path, NEW_TEXT)
        self.assertEqual(status, "updated")
        self.assertEqual(path.read_text(encoding="utf-8"), edited)

    def test_unified_diff_labels(self) -> None:
        diff = njs_core.compute_unified_diff("a\n", "b\n", "a/x.c", "b/x.c")
        self.assertEqual(diff.splitlines()[:2], ["--- a/x.c", "+++ b/x.c"])


if __name__ == "__main__":
    unittest.main()
