from __future__ import annotations

import contextlib
from typing import Iterator

from ._core_types import CType

SLOT_PLACEHOLDER = "/*NJSGEN TODO*/"
INDENT_UNIT = "    "

REGION_INIT = "init"
REGION_INPUT = "input"
REGION_CHECK = "check"
REGION_BODY = "body"
REGION_OUTPUT = "output"


def leading_whitespace(value: str) -> str:
    return value[: len(value) - len(value.lstrip())]


def reindent(head: str, snippet: str) -> list[str]:
    """Split ``snippet`` into lines placed after ``head``.

    The first line continues ``head``; every later line is shifted to the column
    where ``head``'s text starts. Whitespace-only lines become empty and a
    trailing newline does not produce an extra line.
    """
    if snippet == "":
        return []
    parts = snippet.split("\n")
    if len(parts) > 1 and parts[-1].strip() == "":
        parts = parts[:-1]
    column = leading_whitespace(head)
    out: list[str] = []
    for idx, part in enumerate(parts):
        line = f"{head}{part}" if idx == 0 else f"{column}{part}"
        out.append(line if line.strip() else "")
    return out


class CodeBuilder:
    def __init__(self, indent: str = "") -> None:
        self.lines: list[str] = []
        self.indent = indent

    def line(self, text: str = "") -> CodeBuilder:
        self.lines.append(f"{self.indent}{text}" if text.strip() else "")
        return self

    def block(self, snippet: str, lead: str = "") -> CodeBuilder:
        self.lines.extend(reindent(f"{self.indent}{lead}", snippet))
        return self

    def blank(self) -> CodeBuilder:
        self.lines.append("")
        return self

    @contextlib.contextmanager
    def indented(self, unit: str = INDENT_UNIT) -> Iterator[CodeBuilder]:
        saved = self.indent
        self.indent = f"{saved}{unit}"
        try:
            yield self
        finally:
            self.indent = saved

    def text(self) -> str:
        return "\n".join(self.lines)


def slot(tag: str, data: str = SLOT_PLACEHOLDER) -> str:
    builder = CodeBuilder()
    builder.line(f"/*NJSGEN {tag} BEGIN*/")
    builder.block(data)
    builder.line(f"/*NJSGEN {tag} END*/")
    return builder.text()


class FunctionBuilder:
    """Accumulates the regions of one generated native function.

    Converter rules append C text to the regions; the final layout is
    declarations, init, input conversion, checks, the call, output conversion,
    then release code after the ``end`` label.
    """

    section_order = (REGION_INIT, REGION_INPUT, REGION_CHECK, REGION_BODY, REGION_OUTPUT)

    def __init__(self, name: str, description: str) -> None:
        self.name = name
        self.description = description
        self.decl_code = ""
        self.release_code = ""
        self.sections: dict[str, str] = {region: "" for region in self.section_order}
        self._requested: set[str] = set()

    def add_decl(self, code: str) -> None:
        self.decl_code += code

    def add_init(self, code: str) -> None:
        self.sections[REGION_INIT] += code

    def add_input(self, code: str) -> None:
        self.sections[REGION_INPUT] += code

    def add_check(self, code: str) -> None:
        self.sections[REGION_CHECK] += code

    def add_body(self, code: str) -> None:
        self.sections[REGION_BODY] += code

    def add_output(self, code: str) -> None:
        self.sections[REGION_OUTPUT] += code

    def add_release(self, code: str) -> None:
        self.release_code += code

    def request_once(self, key: str) -> bool:
        if key in self._requested:
            return False
        self._requested.add(key)
        return True

    def require_module_data(self) -> None:
        if not self.request_once("module_data"):
            return
        self.declare_value("njs_mod")
        self.add_decl("NJS_ModuleData *njs_md;\n")
        self.add_init(
            "/*Get module data.*/\n"
            "rjs_get_function_module(njs_rt, njs_func, njs_mod);\n"
            "njs_md = rjs_module_get_data(njs_rt, njs_mod);\n"
        )

    @property
    def uses_module_data(self) -> bool:
        return "module_data" in self._requested

    def declare_value(self, name: str) -> None:
        if self.request_once(f"value:{name}"):
            self.add_decl(f"RJS_Value *{name} = rjs_value_stack_push(njs_rt);\n")

    def declare_var(self, ctype: CType, name: str) -> None:
        if self.request_once(f"var:{name}"):
            self.add_decl(f"{ctype.declare(name)};\n")

    def declare_char_buffer(self, name: str) -> None:
        if not self.request_once(f"char_buffer:{name}"):
            return
        self.add_decl(f"RJS_CharBuffer {name};\n")
        self.add_init(f"rjs_char_buffer_init(njs_rt, &{name});\n")
        self.add_release(f"rjs_char_buffer_deinit(njs_rt, &{name});\n")

    def declaration(self) -> str:
        return f"NJS_NATIVE_FUNC({self.name})"

    def invoke(self, func_name: str, params: str, ret_assign: str) -> str:
        return f"{ret_assign}{func_name}({params});"

    def render(self) -> str:
        builder = CodeBuilder()
        builder.line(f"/*{self.description}*/")
        builder.block(f"static {self.declaration()}")
        builder.line("{")
        with builder.indented():
            builder.line("size_t njs_top = rjs_value_stack_save(njs_rt);")
            builder.line("RJS_Result njs_r;")
            builder.block(self.decl_code)
            builder.blank()
            for region in self.section_order:
                code = self.sections[region]
                if code:
                    builder.block(code)
                    builder.blank()
            builder.line("njs_r = RJS_OK;")
            builder.line("goto end;")
        builder.line("end:")
        with builder.indented():
            builder.block(self.release_code)
            builder.line("rjs_value_stack_restore(njs_rt, njs_top);")
            builder.line("return njs_r;")
        builder.line("}")
        return builder.text()


class FfiCallFunctionBuilder(FunctionBuilder):
    """Runtime to native trampoline: calls a C function pointer through libffi."""

    def declaration(self) -> str:
        return (
            "RJS_Result\n"
            f"{self.name} (RJS_Runtime *njs_rt, ffi_cif *njs_cif, RJS_Value *njs_args, size_t njs_argc, "
            "void *njs_cf, RJS_Value *njs_rv, void *njs_data)"
        )

    def require_module_data(self) -> None:
        if self.request_once("module_data"):
            self.add_decl("NJS_ModuleData *njs_md = njs_data;\n")

    def invoke(self, func_name: str, params: str, ret_assign: str) -> str:
        return "ffi_call(njs_cif, njs_cf, njs_rp, njs_argp);"


class FfiCallbackFunctionBuilder(FunctionBuilder):
    """Native to runtime trampoline: native arguments in, runtime result out."""

    section_order = (REGION_INIT, REGION_OUTPUT, REGION_CHECK, REGION_BODY, REGION_INPUT)

    def declaration(self) -> str:
        return (
            "RJS_Result\n"
            f"{self.name} (RJS_Runtime *njs_rt, void **njs_argp, int njs_argc, RJS_Value *njs_fn, "
            "void *njs_rp, void *njs_data)"
        )

    def require_module_data(self) -> None:
        if self.request_once("module_data"):
            self.add_decl("NJS_ModuleData *njs_md = njs_data;\n")


class ExportTable:
    def __init__(self) -> None:
        self.symbols: dict[str, None] = {}

    def add(self, symbol: str) -> None:
        self.symbols[symbol] = None

    def render(self) -> str:
        builder = CodeBuilder()
        builder.line("/*Local export symbols.*/")
        builder.line("static const RJS_ModuleExportDesc")
        builder.line("njs_local_exports[] = {")
        with builder.indented():
            for symbol in self.symbols:
                builder.line(f'{{NULL, NULL, "{symbol}", "{symbol}"}},')
            builder.block(slot("EXPORT_TABLE_DECL"))
            builder.line("{NULL, NULL, NULL, NULL}")
        builder.line("};")
        return builder.text()


class ModuleData:
    """Per-module runtime data: C type handles and interned property names."""

    def __init__(self) -> None:
        self.ctypes: dict[str, None] = {}
        self.func_types: dict[str, None] = {}
        self.props: dict[str, None] = {}

    def add_ctype(self, name: str) -> None:
        self.ctypes[name] = None

    def add_func_type(self, name: str) -> None:
        self.func_types[name] = None

    def add_prop(self, name: str) -> None:
        self.props[name] = None

    @property
    def is_needed(self) -> bool:
        return bool(self.ctypes or self.func_types or self.props)

    def render_decl(self) -> str:
        if not self.is_needed:
            return ""

        builder = CodeBuilder()
        builder.line("/*NJS module data.*/")
        builder.line("typedef struct {")
        with builder.indented():
            for name in list(self.ctypes) + list(self.func_types):
                builder.line(f"RJS_CType *ctype_{name};")
            for name in self.props:
                builder.line(f"RJS_Value str_{name};")
            for name in self.props:
                builder.line(f"RJS_PropertyName pn_{name};")
            builder.block(slot("MODULE_DATA_DECL"))
        builder.line("} NJS_ModuleData;")
        builder.blank()

        builder.line("/*Scan the referenced things in the module data.*/")
        builder.line("static void")
        builder.line("njs_module_data_scan (RJS_Runtime *njs_rt, void *njs_p)")
        builder.line("{")
        with builder.indented():
            builder.line("NJS_ModuleData *njs_md = njs_p;")
            builder.blank()
            builder.line("njs_md = njs_md;")
            for name in self.props:
                builder.line(f"rjs_gc_scan_value(njs_rt, &njs_md->str_{name});")
            builder.blank()
            builder.block(slot("MODULE_DATA_SCAN"))
        builder.line("}")
        builder.blank()

        builder.line("/*Free the module data.*/")
        builder.line("static void")
        builder.line("njs_module_data_free (RJS_Runtime *njs_rt, void *njs_p)")
        builder.line("{")
        with builder.indented():
            builder.line("NJS_ModuleData *njs_md = njs_p;")
            builder.blank()
            for name in self.props:
                builder.line(f"rjs_property_name_deinit(njs_rt, &njs_md->pn_{name});")
            builder.blank()
            builder.block(slot("MODULE_DATA_FREE"))
            builder.blank()
            builder.line("free(njs_md);")
        builder.line("}")
        return builder.text()

    def render_init(self) -> str:
        if not self.is_needed:
            return ""

        builder = CodeBuilder()
        builder.line("NJS_ModuleData *njs_md;")
        builder.blank()
        builder.line("/*Initialize the module data.*/")
        builder.line("njs_md = malloc(sizeof(NJS_ModuleData));")
        builder.line("assert(njs_md);")
        for name in list(self.ctypes) + list(self.func_types):
            builder.line(f"njs_md->ctype_{name} = NULL;")
        for name in self.props:
            builder.line(f"rjs_value_set_undefined(njs_rt, &njs_md->str_{name});")
        builder.line("rjs_module_set_data(njs_rt, njs_mod, njs_md, njs_module_data_scan, njs_module_data_free);")
        for name in self.props:
            builder.line(f'rjs_string_from_chars(njs_rt, &njs_md->str_{name}, "{name}", -1);')
        for name in self.props:
            builder.line(f"rjs_property_name_init(njs_rt, &njs_md->pn_{name}, &njs_md->str_{name});")
        return builder.text()
