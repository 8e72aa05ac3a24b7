from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from ._core_base import NjsGenError
from ._core_codegen import FunctionBuilder
from ._core_types import (
    MODEL_ARRAY,
    MODEL_BOX,
    MODEL_FUNCTION,
    MODEL_POINTER,
    MODEL_PRIMITIVE,
    MODEL_VOID,
    CType,
    element_type_of,
)

MODE_GETTER = "getter"
MODE_SETTER = "setter"
MODE_RETURN = "return"
MODE_IN_PARAM = "in_param"
MODE_OUT_PARAM = "out_param"
MODE_CALLBACK = "callback"

CONVERT_MODES = (MODE_GETTER, MODE_SETTER, MODE_RETURN, MODE_IN_PARAM, MODE_OUT_PARAM, MODE_CALLBACK)


@dataclass(frozen=True)
class ConvertRequest:
    """One value conversion between a C expression and a runtime value slot."""

    name: str
    type: CType
    c_expr: str
    js_expr: str
    mode: str
    length: str | None = None
    null_terminated: bool = False
    is_new: bool = False
    is_free: bool = False

    def __post_init__(self) -> None:
        if self.mode not in CONVERT_MODES:
            raise NjsGenError(f"unknown conversion mode '{self.mode}'")

    @property
    def has_length(self) -> bool:
        return self.length is not None


@dataclass(frozen=True)
class ConverterRule:
    name: str
    test: Callable[[ConvertRequest], bool]
    emit: Callable[[FunctionBuilder, ConvertRequest], None]


@dataclass(frozen=True)
class ConverterTable:
    """Ordered rules; the first rule whose test matches handles the request."""

    name: str
    rules: tuple[ConverterRule, ...]

    def match(self, request: ConvertRequest) -> ConverterRule:
        for rule in self.rules:
            if rule.test(request):
                return rule
        raise NjsGenError(
            f"{self.name}: no conversion for \"{request.name}\" of type \"{request.type}\" in {request.mode} mode"
        )

    def convert(self, builder: FunctionBuilder, request: ConvertRequest) -> ConverterRule:
        rule = self.match(request)
        rule.emit(builder, request)
        return rule

    def rule_names(self) -> list[str]:
        return [rule.name for rule in self.rules]


def _model(ctype: CType | None) -> str | None:
    return ctype.model if ctype is not None else None


def _points_to(req: ConvertRequest, model: str) -> bool:
    return req.type.model == MODEL_POINTER and _model(req.type.value_type) == model


def _array_of(req: ConvertRequest, model: str) -> bool:
    return req.type.model == MODEL_ARRAY and _model(req.type.item_type) == model


def _is_char(ctype: CType | None) -> bool:
    return ctype is not None and ctype.model == MODEL_PRIMITIVE and ctype.name == "char"


def _box_name(ctype: CType) -> str:
    return ctype.require_target().name


def _plain_box(ctype: CType) -> CType:
    return CType(model=MODEL_BOX, name=ctype.name, tag=ctype.tag)


def _box_pointer_target(ctype: CType) -> CType | None:
    inner = ctype.target
    if inner is None or inner.model != MODEL_POINTER:
        return None
    if _model(inner.value_type) != MODEL_BOX:
        return None
    return inner.value_type


def _require_box_pointer_target(ctype: CType) -> CType:
    box = _box_pointer_target(ctype)
    if box is None:
        raise NjsGenError(f"\"{ctype}\" is not an array of structure or union pointers")
    return box


def _primitive_element(ctype: CType) -> str:
    return element_type_of(ctype.require_target())


def _owner_flags(req: ConvertRequest) -> str:
    return "RJS_CPTR_FL_AUTO_FREE" if req.is_new else "0"


def _goto_on_error(call: str) -> str:
    return f"if ((njs_r = {call}) == RJS_ERR)\n    goto end;\n"


def _null_or(req: ConvertRequest, call: str) -> str:
    return (
        f"if ({req.c_expr} == NULL) {{\n"
        f"    rjs_value_set_null(njs_rt, {req.js_expr});\n"
        f"}} else if ((njs_r = {call}) == RJS_ERR) {{\n"
        "    goto end;\n"
        "}\n"
    )


def _length_check(builder: FunctionBuilder, req: ConvertRequest, what: str) -> None:
    if req.length is None:
        return
    code = (
        f"/*Check the length of \"{req.name}\".*/\n"
        f"if (rjs_get_c_array_length(njs_rt, {req.js_expr}) < {req.length}) {{\n"
        f"    njs_r = rjs_throw_range_error(njs_rt, \"the {what} length is less than expected length\");\n"
        "    goto end;\n"
        "}\n"
    )
    if req.mode == MODE_CALLBACK:
        # Callback results only exist once the runtime function has returned.
        builder.add_input(code)
    else:
        builder.add_check(code)


# Native value -> runtime value.


def _c2js_number(builder: FunctionBuilder, req: ConvertRequest) -> None:
    builder.add_output(f"rjs_value_set_number(njs_rt, {req.js_expr}, {req.c_expr});\n")


def _is_string(req: ConvertRequest) -> bool:
    return req.type.model in (MODEL_POINTER, MODEL_ARRAY) and _is_char(req.type.target)


def _c2js_string(builder: FunctionBuilder, req: ConvertRequest) -> None:
    if req.type.model == MODEL_POINTER:
        code = (
            f"if ({req.c_expr} == NULL) {{\n"
            f"    rjs_value_set_null(njs_rt, {req.js_expr});\n"
            f"}} else if ((njs_r = rjs_string_from_enc_chars(njs_rt, {req.js_expr}, {req.c_expr}, -1, NULL)) == RJS_ERR) {{\n"
            "    goto end;\n"
            "}\n"
        )
    else:
        code = _goto_on_error(f"rjs_string_from_enc_chars(njs_rt, {req.js_expr}, {req.c_expr}, -1, NULL)")
    builder.add_output(code)
    if req.is_new and req.type.model == MODEL_POINTER:
        builder.add_output(f"free((void*){req.c_expr});\n")


def _c2js_box_ref(builder: FunctionBuilder, req: ConvertRequest) -> None:
    builder.require_module_data()
    builder.add_output(
        _goto_on_error(
            f"rjs_create_c_ptr(njs_rt, njs_md->ctype_{req.type.name}, (void*)&{req.c_expr}, "
            f"RJS_CPTR_TYPE_VALUE, 1, 0, {req.js_expr})"
        )
    )


def _c2js_box_copy(builder: FunctionBuilder, req: ConvertRequest) -> None:
    copy = f"njs_{req.name}_copy"
    builder.require_module_data()
    plain = _plain_box(req.type)
    builder.declare_var(plain.pointer(), copy)
    builder.add_output(
        f"/*Copy \"{req.name}\" to a new {req.type.name} buffer.*/\n"
        f"if (!({copy} = malloc(sizeof({plain})))) {{\n"
        "    njs_r = rjs_throw_range_error(njs_rt, \"cannot allocate enough memory\");\n"
        "    goto end;\n"
        "}\n"
        f"*{copy} = {req.c_expr};\n"
        f"if ((njs_r = rjs_create_c_ptr(njs_rt, njs_md->ctype_{req.type.name}, {copy}, "
        f"RJS_CPTR_TYPE_VALUE, 1, RJS_CPTR_FL_AUTO_FREE, {req.js_expr})) == RJS_ERR) {{\n"
        f"    free({copy});\n"
        "    goto end;\n"
        "}\n"
    )


def _c2js_box_pointer(builder: FunctionBuilder, req: ConvertRequest) -> None:
    builder.require_module_data()
    builder.add_output(
        _null_or(
            req,
            f"rjs_create_c_ptr(njs_rt, njs_md->ctype_{_box_name(req.type)}, (void*){req.c_expr}, "
            f"RJS_CPTR_TYPE_VALUE, 1, {_owner_flags(req)}, {req.js_expr})",
        )
    )


def _is_c2js_box_array(req: ConvertRequest) -> bool:
    if _points_to(req, MODEL_BOX) and req.has_length:
        return True
    return _array_of(req, MODEL_BOX) and req.mode != MODE_GETTER


def _c2js_box_array(builder: FunctionBuilder, req: ConvertRequest) -> None:
    length = req.length if req.length is not None else "-1"
    builder.require_module_data()
    builder.add_output(
        _null_or(
            req,
            f"rjs_create_c_ptr(njs_rt, njs_md->ctype_{_box_name(req.type)}, (void*){req.c_expr}, "
            f"RJS_CPTR_TYPE_ARRAY, {length}, {_owner_flags(req)}, {req.js_expr})",
        )
    )


def _c2js_box_array_getter(builder: FunctionBuilder, req: ConvertRequest) -> None:
    builder.require_module_data()
    builder.add_output(
        _goto_on_error(
            f"rjs_create_c_ptr(njs_rt, njs_md->ctype_{_box_name(req.type)}, (void*){req.c_expr}, "
            f"RJS_CPTR_TYPE_ARRAY, RJS_N_ELEM({req.c_expr}), 0, {req.js_expr})"
        )
    )


def _is_box_pointer_array(req: ConvertRequest) -> bool:
    if _box_pointer_target(req.type) is None:
        return False
    if req.type.model == MODEL_POINTER:
        return req.has_length or req.null_terminated
    return True


def _c2js_box_pointer_array(builder: FunctionBuilder, req: ConvertRequest) -> None:
    box = _require_box_pointer_target(req.type)
    target = req.type.require_target()

    length_code = ""
    if req.length is not None:
        length = req.length
    elif req.type.model == MODEL_ARRAY:
        length = f"RJS_N_ELEM({req.c_expr})"
    elif req.null_terminated:
        length = f"njs_{req.name}_len"
        length_code = (
            f"size_t {length} = 0;\n"
            f"{target.pointer().declare('njs_pp')};\n"
            "\n"
            f"for (njs_pp = {req.c_expr}; *njs_pp; njs_pp ++)\n"
            f"    {length} ++;\n"
        )
    else:
        length = "-1"

    create = _goto_on_error(
        f"rjs_create_c_ptr(njs_rt, njs_md->ctype_{box.name}, (void*){req.c_expr}, "
        f"RJS_CPTR_TYPE_PTR_ARRAY, {length}, {_owner_flags(req)}, {req.js_expr})"
    )
    builder.require_module_data()
    if req.type.model == MODEL_ARRAY:
        builder.add_output(create)
        return

    lines = [
        f"if ({req.c_expr} == NULL) {{",
        f"    rjs_value_set_null(njs_rt, {req.js_expr});",
        "} else {",
    ]
    for part in (length_code + create).rstrip("\n").split("\n"):
        lines.append(f"    {part}" if part else "")
    lines.append("}")
    builder.add_output("\n".join(lines) + "\n")


def _is_c2js_typed_array(req: ConvertRequest) -> bool:
    if _points_to(req, MODEL_PRIMITIVE) and req.has_length:
        return True
    return _array_of(req, MODEL_PRIMITIVE) and req.mode != MODE_GETTER


def _c2js_typed_array(builder: FunctionBuilder, req: ConvertRequest) -> None:
    length = req.length if req.length is not None else "-1"
    builder.add_output(
        _null_or(
            req,
            f"rjs_create_c_typed_array(njs_rt, {_primitive_element(req.type)}, (void*){req.c_expr}, "
            f"{length}, {req.js_expr})",
        )
    )


def _c2js_typed_array_getter(builder: FunctionBuilder, req: ConvertRequest) -> None:
    length = req.length if req.length is not None else f"RJS_N_ELEM({req.c_expr})"
    builder.add_output(
        _goto_on_error(
            f"rjs_create_c_typed_array(njs_rt, {_primitive_element(req.type)}, (void*){req.c_expr}, "
            f"{length}, {req.js_expr})"
        )
    )


def _c2js_function(builder: FunctionBuilder, req: ConvertRequest) -> None:
    builder.require_module_data()
    builder.add_output(
        f"if ({req.c_expr} == NULL)\n"
        f"    rjs_value_set_null(njs_rt, {req.js_expr});\n"
        f"else if ((njs_r = rjs_create_c_func_ptr(njs_rt, njs_md->ctype_{req.type.name}, {req.c_expr}, {req.js_expr})) == RJS_ERR)\n"
        "    goto end;\n"
    )


def _c2js_opaque_pointer(builder: FunctionBuilder, req: ConvertRequest) -> None:
    builder.add_output(
        _null_or(
            req,
            f"rjs_create_c_ptr(njs_rt, NULL, (void*){req.c_expr}, RJS_CPTR_TYPE_UNKNOWN, 1, "
            f"{_owner_flags(req)}, {req.js_expr})",
        )
    )


# Runtime value -> native value.


def _js2c_number(builder: FunctionBuilder, req: ConvertRequest) -> None:
    number = f"njs_{req.name}_num"
    if builder.request_once(f"var:{number}"):
        builder.add_decl(f"RJS_Number {number};\n")
    builder.add_input(
        f"if ((njs_r = rjs_to_number(njs_rt, {req.js_expr}, &{number})) == RJS_ERR)\n"
        "    goto end;\n"
        f"{req.c_expr} = {number};\n"
    )


def _js2c_string(builder: FunctionBuilder, req: ConvertRequest) -> None:
    string = f"njs_{req.name}_str"
    char_buffer = f"njs_{req.name}_cb"
    builder.declare_value(string)
    builder.declare_char_buffer(char_buffer)

    lines = [
        f"if (rjs_value_is_null(njs_rt, {req.js_expr}) || rjs_value_is_undefined(njs_rt, {req.js_expr})) {{",
        f"    {req.c_expr} = NULL;",
        "} else {",
        f"    if ((njs_r = rjs_to_string(njs_rt, {req.js_expr}, {string})) == RJS_ERR)",
        "        goto end;",
        f"    if (!({req.c_expr} = rjs_string_to_enc_chars(njs_rt, {string}, &{char_buffer}, NULL))) {{",
        "        njs_r = RJS_ERR;",
        "        goto end;",
        "    }",
    ]
    if req.is_free:
        # The callee owns the string, hand it a heap copy.
        lines.extend(
            [
                f"    if (!({req.c_expr} = strdup({req.c_expr}))) {{",
                "        njs_r = rjs_throw_range_error(njs_rt, \"cannot allocate enough memory\");",
                "        goto end;",
                "    }",
            ]
        )
    lines.append("}")
    builder.add_input("\n".join(lines) + "\n")


def _is_js2c_string_buffer(req: ConvertRequest) -> bool:
    if _points_to(req, MODEL_PRIMITIVE) and _is_char(req.type.value_type) and req.has_length:
        return True
    return req.type.model == MODEL_ARRAY and _is_char(req.type.item_type)


def _js2c_string_buffer(builder: FunctionBuilder, req: ConvertRequest) -> None:
    string = f"njs_{req.name}_str"
    char_buffer = f"njs_{req.name}_cb"
    cstr = f"njs_{req.name}_cstr"
    length = req.length if req.length is not None else f"sizeof({req.c_expr})"

    builder.declare_value(string)
    if builder.request_once(f"var:{cstr}"):
        builder.add_decl(f"const char *{cstr};\n")
    builder.declare_char_buffer(char_buffer)
    builder.add_input(
        f"if ((njs_r = rjs_to_string(njs_rt, {req.js_expr}, {string})) == RJS_ERR)\n"
        "    goto end;\n"
        f"if (!({cstr} = rjs_string_to_enc_chars(njs_rt, {string}, &{char_buffer}, NULL))) {{\n"
        "    njs_r = RJS_ERR;\n"
        "    goto end;\n"
        "}\n"
        f"if (snprintf({req.c_expr}, {length}, \"%s\", {cstr}) >= {length}) {{\n"
        "    njs_r = rjs_throw_range_error(njs_rt, \"input string is too long\");\n"
        "    goto end;\n"
        "}\n"
    )


def _js2c_box(builder: FunctionBuilder, req: ConvertRequest) -> None:
    cptr = f"njs_{req.name}_cptr"
    cptr_value = f"njs_{req.name}_cptrv"
    ctype = f"njs_md->ctype_{req.type.name}"

    builder.require_module_data()
    builder.declare_var(_plain_box(req.type).pointer(), cptr)
    builder.declare_value(cptr_value)
    builder.add_input(
        f"if (rjs_is_c_ptr(njs_rt, {req.js_expr})) {{\n"
        f"    if (!({cptr} = rjs_get_c_ptr(njs_rt, {ctype}, RJS_CPTR_TYPE_VALUE, {req.js_expr}))) {{\n"
        "        njs_r = RJS_ERR;\n"
        "        goto end;\n"
        "    }\n"
        f"    {req.c_expr} = *{cptr};\n"
        "} else {\n"
        f"    if ((njs_r = rjs_create_c_ptr(njs_rt, {ctype}, &{req.c_expr}, RJS_CPTR_TYPE_VALUE, 1, 0, {cptr_value})) == RJS_ERR)\n"
        "        goto end;\n"
        f"    if ((njs_r = rjs_object_assign(njs_rt, {cptr_value}, {req.js_expr})) == RJS_ERR)\n"
        "        goto end;\n"
        "}\n"
    )


def _get_c_ptr(req: ConvertRequest, ctype: str, ptype: str) -> str:
    return (
        f"if (!({req.c_expr} = rjs_get_c_ptr(njs_rt, {ctype}, {ptype}, {req.js_expr}))) {{\n"
        "    njs_r = RJS_ERR;\n"
        "    goto end;\n"
        "}\n"
    )


def _js2c_box_pointer(builder: FunctionBuilder, req: ConvertRequest) -> None:
    builder.require_module_data()
    builder.add_input(_get_c_ptr(req, f"njs_md->ctype_{_box_name(req.type)}", "RJS_CPTR_TYPE_VALUE"))


def _js2c_void_pointer(builder: FunctionBuilder, req: ConvertRequest) -> None:
    builder.add_input(_get_c_ptr(req, "NULL", "RJS_CPTR_TYPE_UNKNOWN"))


def _is_js2c_box_array(req: ConvertRequest) -> bool:
    if _points_to(req, MODEL_BOX) and req.has_length:
        return True
    return _array_of(req, MODEL_BOX) and req.mode != MODE_SETTER


def _js2c_box_array(builder: FunctionBuilder, req: ConvertRequest) -> None:
    builder.require_module_data()
    builder.add_input(_get_c_ptr(req, f"njs_md->ctype_{_box_name(req.type)}", "RJS_CPTR_TYPE_ARRAY"))
    _length_check(builder, req, "C array")


def _js2c_box_array_setter(builder: FunctionBuilder, req: ConvertRequest) -> None:
    item = req.type.require_target()
    cptr = f"njs_{req.name}_cptr"
    length = f"njs_{req.name}_len"

    builder.require_module_data()
    builder.declare_var(item.pointer(), cptr)
    if builder.request_once(f"var:{length}"):
        builder.add_decl(f"size_t {length};\n")
    builder.add_input(
        f"if (!({cptr} = rjs_get_c_ptr(njs_rt, njs_md->ctype_{item.name}, RJS_CPTR_TYPE_ARRAY, {req.js_expr}))) {{\n"
        "    njs_r = RJS_ERR;\n"
        "    goto end;\n"
        "}\n"
        f"{length} = rjs_get_c_array_length(njs_rt, {req.js_expr});\n"
        f"RJS_ELEM_CPY({req.c_expr}, {cptr}, RJS_MIN({length}, RJS_N_ELEM({req.c_expr})));\n"
    )


def _is_js2c_typed_array(req: ConvertRequest) -> bool:
    if _points_to(req, MODEL_PRIMITIVE) and req.has_length:
        return True
    return _array_of(req, MODEL_PRIMITIVE) and req.mode != MODE_SETTER


def _js2c_typed_array(builder: FunctionBuilder, req: ConvertRequest) -> None:
    builder.add_input(
        f"if (rjs_value_is_null(njs_rt, {req.js_expr}) || rjs_value_is_undefined(njs_rt, {req.js_expr})) {{\n"
        f"    {req.c_expr} = NULL;\n"
        f"}} else if (!({req.c_expr} = rjs_get_c_ptr(njs_rt, NULL, {_primitive_element(req.type)}, {req.js_expr}))) {{\n"
        "    njs_r = rjs_throw_type_error(njs_rt, \"typed array type mismatch\");\n"
        "    goto end;\n"
        "}\n"
    )
    _length_check(builder, req, "typed array")


def _js2c_typed_array_setter(builder: FunctionBuilder, req: ConvertRequest) -> None:
    item = req.type.require_target()
    cptr = f"njs_{req.name}_cptr"
    length = req.length if req.length is not None else f"RJS_N_ELEM({req.c_expr})"
    check = ConvertRequest(
        name=req.name,
        type=req.type,
        c_expr=req.c_expr,
        js_expr=req.js_expr,
        mode=req.mode,
        length=length,
    )

    builder.declare_var(item.pointer(), cptr)
    builder.add_input(
        f"if (!({cptr} = rjs_get_c_ptr(njs_rt, NULL, {_primitive_element(req.type)}, {req.js_expr}))) {{\n"
        "    njs_r = rjs_throw_type_error(njs_rt, \"typed array type mismatch\");\n"
        "    goto end;\n"
        "}\n"
    )
    _length_check(builder, check, "typed array")
    builder.add_body(
        f"/*Copy \"{req.name}\".*/\n"
        f"RJS_ELEM_CPY({req.c_expr}, {cptr}, {length});\n"
    )


def _is_js2c_box_pointer_array(req: ConvertRequest) -> bool:
    if _box_pointer_target(req.type) is None:
        return False
    return req.type.model == MODEL_POINTER or req.mode != MODE_SETTER


def _js2c_box_pointer_array(builder: FunctionBuilder, req: ConvertRequest) -> None:
    box = _require_box_pointer_target(req.type)
    builder.require_module_data()
    builder.add_input(_get_c_ptr(req, f"njs_md->ctype_{box.name}", "RJS_CPTR_TYPE_PTR_ARRAY"))
    _length_check(builder, req, "C pointer array")


def _js2c_function(builder: FunctionBuilder, req: ConvertRequest) -> None:
    builder.require_module_data()
    builder.add_input(
        f"if (rjs_value_is_null(njs_rt, {req.js_expr}) || rjs_value_is_undefined(njs_rt, {req.js_expr}))\n"
        f"    {req.c_expr} = NULL;\n"
        f"else if (!({req.c_expr} = rjs_get_c_ptr(njs_rt, njs_md->ctype_{req.type.name}, RJS_CPTR_TYPE_C_FUNC, {req.js_expr}))) {{\n"
        "    njs_r = RJS_ERR;\n"
        "    goto end;\n"
        "}\n"
    )


def _js2c_opaque_pointer(builder: FunctionBuilder, req: ConvertRequest) -> None:
    builder.add_input(
        f"if (rjs_value_is_null(njs_rt, {req.js_expr}) || rjs_value_is_undefined(njs_rt, {req.js_expr})) {{\n"
        f"    {req.c_expr} = NULL;\n"
        f"}} else if (!({req.c_expr} = rjs_get_c_ptr(njs_rt, NULL, RJS_CPTR_TYPE_UNKNOWN, {req.js_expr}))) {{\n"
        "    njs_r = RJS_ERR;\n"
        "    goto end;\n"
        "}\n"
    )


def _is_js2c_opaque(req: ConvertRequest) -> bool:
    if req.type.model == MODEL_POINTER:
        return True
    return req.type.model == MODEL_ARRAY and req.mode != MODE_SETTER


C_TO_JS = ConverterTable(
    name="c2js",
    rules=(
        ConverterRule("number", lambda req: req.type.model == MODEL_PRIMITIVE, _c2js_number),
        ConverterRule("string", _is_string, _c2js_string),
        ConverterRule(
            "box reference",
            lambda req: req.type.model == MODEL_BOX and req.mode == MODE_GETTER,
            _c2js_box_ref,
        ),
        ConverterRule("box copy", lambda req: req.type.model == MODEL_BOX, _c2js_box_copy),
        ConverterRule(
            "box pointer",
            lambda req: _points_to(req, MODEL_BOX) and not req.has_length,
            _c2js_box_pointer,
        ),
        ConverterRule("box array", _is_c2js_box_array, _c2js_box_array),
        ConverterRule(
            "box array getter",
            lambda req: _array_of(req, MODEL_BOX) and req.mode == MODE_GETTER,
            _c2js_box_array_getter,
        ),
        ConverterRule("box pointer array", _is_box_pointer_array, _c2js_box_pointer_array),
        ConverterRule("typed array", _is_c2js_typed_array, _c2js_typed_array),
        ConverterRule(
            "typed array getter",
            lambda req: _array_of(req, MODEL_PRIMITIVE) and req.mode == MODE_GETTER,
            _c2js_typed_array_getter,
        ),
        ConverterRule("function", lambda req: req.type.model == MODEL_FUNCTION, _c2js_function),
        ConverterRule("void pointer", lambda req: _points_to(req, MODEL_VOID), _c2js_opaque_pointer),
        ConverterRule(
            "opaque pointer",
            lambda req: req.type.model in (MODEL_POINTER, MODEL_ARRAY),
            _c2js_opaque_pointer,
        ),
    ),
)

JS_TO_C = ConverterTable(
    name="js2c",
    rules=(
        ConverterRule("number", lambda req: req.type.model == MODEL_PRIMITIVE, _js2c_number),
        ConverterRule(
            "string",
            lambda req: not req.has_length and _points_to(req, MODEL_PRIMITIVE) and _is_char(req.type.value_type),
            _js2c_string,
        ),
        ConverterRule("string buffer", _is_js2c_string_buffer, _js2c_string_buffer),
        ConverterRule("box", lambda req: req.type.model == MODEL_BOX, _js2c_box),
        ConverterRule(
            "box pointer",
            lambda req: _points_to(req, MODEL_BOX) and not req.has_length,
            _js2c_box_pointer,
        ),
        ConverterRule("void pointer", lambda req: _points_to(req, MODEL_VOID), _js2c_void_pointer),
        ConverterRule("box array", _is_js2c_box_array, _js2c_box_array),
        ConverterRule(
            "box array setter",
            lambda req: _array_of(req, MODEL_BOX) and req.mode == MODE_SETTER,
            _js2c_box_array_setter,
        ),
        ConverterRule("typed array", _is_js2c_typed_array, _js2c_typed_array),
        ConverterRule(
            "typed array setter",
            lambda req: _array_of(req, MODEL_PRIMITIVE) and req.mode == MODE_SETTER,
            _js2c_typed_array_setter,
        ),
        ConverterRule("box pointer array", _is_js2c_box_pointer_array, _js2c_box_pointer_array),
        ConverterRule("function", lambda req: req.type.model == MODEL_FUNCTION, _js2c_function),
        ConverterRule("opaque pointer", _is_js2c_opaque, _js2c_opaque_pointer),
    ),
)
