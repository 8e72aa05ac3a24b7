from __future__ import annotations

import difflib
import re
from dataclasses import dataclass, field
from pathlib import Path

from ._core_base import MalformedMergeTagError, NjsGenError

MARKER_RE = re.compile(r"/\*NJSGEN (.+?) (BEGIN|END)\*/")


@dataclass
class Slot:
    """A tagged region of generated text.

    ``items`` holds plain lines and nested slots in document order. The root slot
    has no tag and no marker lines.
    """

    tag: str | None = None
    begin_line: str = ""
    end_line: str = ""
    items: list[str | Slot] = field(default_factory=list)
    children: dict[str, Slot] = field(default_factory=dict)

    def add_child(self, child: Slot) -> None:
        self.items.append(child)
        self.children[str(child.tag)] = child

    def lines(self) -> list[str]:
        out: list[str] = []
        if self.tag is not None:
            out.append(self.begin_line)
        for item in self.items:
            if isinstance(item, Slot):
                out.extend(item.lines())
            else:
                out.append(item)
        if self.tag is not None:
            out.append(self.end_line)
        return out

    def render(self) -> str:
        return "\n".join(self.lines())


def parse_slots(text: str) -> Slot:
    root = Slot()
    stack = [root]
    for lineno, line in enumerate(text.split("\n"), start=1):
        m = MARKER_RE.search(line)
        if m is None:
            stack[-1].items.append(line)
            continue

        tag, command = m.group(1), m.group(2)
        if command == "BEGIN":
            slot = Slot(tag=tag, begin_line=line)
            stack[-1].add_child(slot)
            stack.append(slot)
            continue

        current = stack[-1]
        if current.tag is None:
            raise MalformedMergeTagError(f"line {lineno}: slot \"{tag}\" ends without a matching BEGIN")
        if current.tag != tag:
            raise MalformedMergeTagError(f"line {lineno}: slot tag \"{tag}\" mismatch, expected \"{current.tag}\"")
        current.end_line = line
        stack.pop()

    if len(stack) > 1:
        raise MalformedMergeTagError(f"slot \"{stack[-1].tag}\" is not closed")
    return root


def merge_slots(new: Slot, old: Slot) -> None:
    """Carry hand-edited slot content from ``old`` into ``new`` in place."""
    for item in new.items:
        if not isinstance(item, Slot):
            continue
        previous = old.children.get(str(item.tag))
        if previous is None:
            continue
        item.items = previous.items
        item.children = previous.children


def merge_text(new_text: str, old_text: str | None) -> str:
    if old_text is None:
        return new_text
    new_root = parse_slots(new_text)
    merge_slots(new_root, parse_slots(old_text))
    return new_root.render()


def read_text_if_exists(path: Path) -> str:
    if not path.exists():
        return ""
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise NjsGenError(f"Unable to read file '{path}': {exc}") from exc


def write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def normalized_lines(value: str) -> list[str]:
    return value.replace("\r\n", "\n").splitlines()


def compute_unified_diff(old_content: str, new_content: str, old_label: str, new_label: str) -> str:
    diff_lines = difflib.unified_diff(
        normalized_lines(old_content),
        normalized_lines(new_content),
        fromfile=old_label,
        tofile=new_label,
        lineterm="",
    )
    return "\n".join(diff_lines)


def write_artifact_if_changed(
    *,
    path: Path,
    content: str,
    dry_run: bool,
    check: bool,
) -> tuple[str, str]:
    old_content = read_text_if_exists(path)
    if old_content == content:
        return "unchanged", ""
    if check:
        return "drift", compute_unified_diff(old_content, content, f"a/{path}", f"b/{path}")
    if dry_run:
        return "would_write", compute_unified_diff(old_content, content, f"a/{path}", f"b/{path}")
    write_text(path, content)
    return "updated", compute_unified_diff(old_content, content, f"a/{path}", f"b/{path}")


def merge_into_file(
    path: Path,
    content: str,
    *,
    dry_run: bool = False,
    check: bool = False,
) -> tuple[str, str]:
    """Merge freshly generated ``content`` with ``path`` and write the result if it changed."""
    old_text = read_text_if_exists(path) if path.exists() else None
    merged = merge_text(content, old_text)
    return write_artifact_if_changed(path=path, content=merged, dry_run=dry_run, check=check)
