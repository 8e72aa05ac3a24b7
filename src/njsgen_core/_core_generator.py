from __future__ import annotations

from dataclasses import dataclass

from ._core_base import NjsGenError
from ._core_codegen import (
    REGION_OUTPUT,
    CodeBuilder,
    ExportTable,
    FfiCallbackFunctionBuilder,
    FfiCallFunctionBuilder,
    FunctionBuilder,
    ModuleData,
    slot,
)
from ._core_context import (
    DIRECTION_INOUT,
    RETURN_NAME,
    CBox,
    CFunction,
    CMember,
    CParameter,
    TypeContext,
)
from ._core_converter import (
    C_TO_JS,
    JS_TO_C,
    MODE_CALLBACK,
    MODE_GETTER,
    MODE_IN_PARAM,
    MODE_OUT_PARAM,
    MODE_RETURN,
    MODE_SETTER,
    ConverterTable,
    ConvertRequest,
)
from ._core_types import MODEL_ARRAY, array_decay, ffi_type_of

MODULE_BANNER = """/**
 * Generated by njsgen
 */"""

NATIVE_FUNC_MACRO = """#define NJS_NATIVE_FUNC(n)\\
    RJS_Result n (RJS_Runtime *njs_rt, RJS_Value *njs_func, RJS_Value *njs_thiz, RJS_Value *njs_args, size_t njs_argc, RJS_Value *njs_nt, RJS_Value *njs_rv)"""

MODULE_HELPERS = """/*Add a number symbol.*/
static void
njs_add_number (RJS_Runtime *njs_rt, RJS_Value *njs_mod, const char *njs_ncstr, RJS_Number njs_n)
{
    size_t njs_top = rjs_value_stack_save(njs_rt);
    RJS_Value *njs_name = rjs_value_stack_push(njs_rt);
    RJS_Value *njs_v = rjs_value_stack_push(njs_rt);

    rjs_string_from_chars(njs_rt, njs_name, njs_ncstr, -1);
    rjs_value_set_number(njs_rt, njs_v, njs_n);
    rjs_module_add_binding(njs_rt, njs_mod, njs_name, njs_v);

    rjs_value_stack_restore(njs_rt, njs_top);
}

/*Add structure or union object.*/
static void
njs_add_box (RJS_Runtime *njs_rt, RJS_Value *njs_mod, const char *njs_ncstr, size_t njs_size, RJS_Value *njs_proto, RJS_NativeFunc njs_constr_nf)
{
    rjs_ordinary_object_create(njs_rt, NULL, njs_proto);

    if (njs_constr_nf) {
        size_t njs_top = rjs_value_stack_save(njs_rt);
        RJS_Value *njs_name = rjs_value_stack_push(njs_rt);
        RJS_Value *njs_constr = rjs_value_stack_push(njs_rt);
        RJS_Value *njs_sizep = rjs_value_stack_push(njs_rt);
        RJS_PropertyName njs_pn;

        rjs_string_from_chars(njs_rt, njs_name, njs_ncstr, -1);
        rjs_create_builtin_function(njs_rt, njs_mod, njs_constr_nf, 1, njs_name, NULL, NULL, NULL, njs_constr);
        rjs_make_constructor(njs_rt, njs_constr, RJS_FALSE, njs_proto);
        rjs_module_add_binding(njs_rt, njs_mod, njs_name, njs_constr);

        rjs_string_from_chars(njs_rt, njs_name, "size", -1);
        rjs_value_set_number(njs_rt, njs_sizep, njs_size);
        rjs_property_name_init(njs_rt, &njs_pn, njs_name);
        rjs_create_data_property(njs_rt, njs_constr, &njs_pn, njs_sizep);
        rjs_property_name_deinit(njs_rt, &njs_pn);

        rjs_value_stack_restore(njs_rt, njs_top);
    } else if (!strcmp(njs_ncstr, "$")) {
        size_t njs_top = rjs_value_stack_save(njs_rt);
        RJS_Value *njs_name = rjs_value_stack_push(njs_rt);

        rjs_string_from_chars(njs_rt, njs_name, njs_ncstr, -1);
        rjs_module_add_binding(njs_rt, njs_mod, njs_name, njs_proto);

        rjs_value_stack_restore(njs_rt, njs_top);
    }
}

/*Add a C type.*/
static void
njs_add_ctype (RJS_Runtime *njs_rt, const char *njs_ncstr, size_t njs_size, RJS_Value *njs_proto, RJS_CType **njs_pctype)
{
    size_t njs_top = rjs_value_stack_save(njs_rt);
    RJS_Value *njs_name = rjs_value_stack_push(njs_rt);

    rjs_string_from_chars(njs_rt, njs_name, njs_ncstr, -1);
    rjs_create_c_type(njs_rt, njs_name, njs_size, njs_proto, njs_pctype);

    rjs_value_stack_restore(njs_rt, njs_top);
}

/*Add member accessor.*/
static void
njs_add_accessor (RJS_Runtime *njs_rt, RJS_Value *njs_mod, RJS_Value *njs_proto, const char *njs_ncstr, RJS_NativeFunc njs_get, RJS_NativeFunc njs_set)
{
    size_t njs_top = rjs_value_stack_save(njs_rt);
    RJS_Value *njs_name = rjs_value_stack_push(njs_rt);

    rjs_string_from_chars(njs_rt, njs_name, njs_ncstr, -1);
    rjs_create_builtin_accessor(njs_rt, njs_mod, njs_proto, njs_get, njs_set, njs_name, NULL);

    rjs_value_stack_restore(njs_rt, njs_top);
}

/*Add function.*/
static void
njs_add_func (RJS_Runtime *njs_rt, RJS_Value *njs_mod, const char *njs_ncstr, RJS_NativeFunc njs_nf, size_t njs_pn)
{
    size_t njs_top = rjs_value_stack_save(njs_rt);
    RJS_Value *njs_name = rjs_value_stack_push(njs_rt);
    RJS_Value *njs_func = rjs_value_stack_push(njs_rt);

    rjs_string_from_chars(njs_rt, njs_name, njs_ncstr, -1);
    rjs_create_builtin_function(njs_rt, njs_mod, njs_nf, njs_pn, njs_name, NULL, NULL, NULL, njs_func);
    rjs_module_add_binding(njs_rt, njs_mod, njs_name, njs_func);

    rjs_value_stack_restore(njs_rt, njs_top);
}"""


@dataclass(frozen=True)
class Accessor:
    box: str
    member: str
    getter: str
    setter: str | None


def _proto_var(box: CBox) -> str:
    return "njs_vars" if box.is_globals else f"njs_{box.name}_proto"


def _accessor_prefix(box: CBox, member: CMember) -> str:
    if box.is_globals:
        return member.c_name
    return f"{box.name}_{member.c_name}"


def _indent_text(code: str, unit: str = "    ") -> str:
    return "".join(f"{unit}{line}" if line.strip() else line for line in code.splitlines(keepends=True))


class ModuleGenerator:
    """Builds the C glue module for a resolved TypeContext.

    The converter tables are injected so callers can extend or replace the
    conversion rules without touching module level state.
    """

    def __init__(
        self,
        ctxt: TypeContext,
        *,
        c_to_js: ConverterTable = C_TO_JS,
        js_to_c: ConverterTable = JS_TO_C,
    ) -> None:
        if not ctxt.resolved:
            raise NjsGenError("type context must be resolved before generating code")
        self.ctxt = ctxt
        self.c_to_js = c_to_js
        self.js_to_c = js_to_c
        self._reset()

    def _reset(self) -> None:
        self.module_data = ModuleData()
        self.export_table = ExportTable()
        self.accessors: list[Accessor] = []
        self.function_code: list[str] = []

    def _param_length(self, func: CFunction, param: CParameter) -> str | None:
        if param.length is not None:
            return func.resolve_length(param.length)
        ctype = param.resolved_type
        if ctype.model == MODEL_ARRAY:
            return ctype.length
        return None

    def _member_length(self, box: CBox, member: CMember) -> str | None:
        if member.length is None:
            return None
        if box.is_globals:
            return member.length
        return box.resolve_length(member.length)

    def _fetch_instance(self, builder: FunctionBuilder, box: CBox) -> None:
        builder.require_module_data()
        builder.add_decl(f"{box.c_name} *njs_cptr;\n")
        builder.add_input(
            f"/*Get the {box.name} pointer.*/\n"
            f"if (!(njs_cptr = rjs_get_c_ptr(njs_rt, njs_md->ctype_{box.name}, RJS_CPTR_TYPE_VALUE, njs_thiz))) {{\n"
            "    njs_r = RJS_ERR;\n"
            "    goto end;\n"
            "}\n"
        )

    def add_constructor(self, box: CBox) -> FunctionBuilder:
        builder = FunctionBuilder(f"njs_{box.name}_constructor", f'Constructor of "{box.name}"')
        builder.require_module_data()
        builder.add_decl(
            "RJS_Value *njs_arg = rjs_argument_get(njs_rt, njs_args, njs_argc, 0);\n"
            "size_t njs_nitem = 1;\n"
            "RJS_Value *njs_init_obj = NULL;\n"
            "RJS_CPtrType njs_cptr_type = RJS_CPTR_TYPE_VALUE;\n"
            "int njs_cptr_flags = RJS_CPTR_FL_AUTO_FREE;\n"
            f"{box.c_name} *njs_cptr;\n"
        )
        builder.add_init(
            "if (rjs_value_is_number(njs_rt, njs_arg)) {\n"
            "    /*Get the array's length.*/\n"
            "    int64_t njs_len;\n"
            "    if ((njs_r = rjs_to_length(njs_rt, njs_arg, &njs_len)) == RJS_ERR)\n"
            "        goto end;\n"
            "    njs_nitem = njs_len;\n"
            "    njs_cptr_type = RJS_CPTR_TYPE_ARRAY;\n"
            "    njs_arg = rjs_argument_get(njs_rt, njs_args, njs_argc, 1);\n"
            "} else if (rjs_value_is_object(njs_rt, njs_arg)) {\n"
            "    /*Get the initialize object.*/\n"
            "    njs_init_obj = njs_arg;\n"
            "    njs_arg = rjs_argument_get(njs_rt, njs_args, njs_argc, 1);\n"
            "}\n"
            "\n"
            "/*Check the automatically free flag.*/\n"
            "if (!rjs_value_is_undefined(njs_rt, njs_arg)) {\n"
            "    if (!rjs_to_boolean(njs_rt, njs_arg))\n"
            "        njs_cptr_flags &= ~RJS_CPTR_FL_AUTO_FREE;\n"
            "}\n"
        )
        builder.add_body(
            f"/*Allocate the {box.name} buffer.*/\n"
            f"njs_cptr = malloc(sizeof({box.c_name}) * njs_nitem);\n"
            "if (!njs_cptr) {\n"
            "    njs_r = rjs_throw_range_error(njs_rt, \"cannot allocate enough memory\");\n"
            "    goto end;\n"
            "}\n"
            f"memset(njs_cptr, 0, njs_nitem * sizeof({box.c_name}));\n"
            "\n"
            "/*Create the C pointer object.*/\n"
            f"if ((njs_r = rjs_create_c_ptr(njs_rt, njs_md->ctype_{box.name}, njs_cptr, njs_cptr_type, njs_nitem, njs_cptr_flags, njs_rv)) == RJS_ERR)\n"
            "    goto end;\n"
            "\n"
            f"/*Initialize the {box.name}.*/\n"
            "if (njs_init_obj) {\n"
            "    if ((njs_r = rjs_object_assign(njs_rt, njs_rv, njs_init_obj)) == RJS_ERR)\n"
            "        goto end;\n"
            "}\n"
        )
        self.function_code.append(builder.render())
        return builder

    def add_getter(self, box: CBox, member: CMember) -> FunctionBuilder:
        builder = FunctionBuilder(f"njs_{_accessor_prefix(box, member)}_get", f'Getter of "{box.name}.{member.name}"')

        if box.is_globals:
            c_expr = member.name
        else:
            self._fetch_instance(builder, box)
            c_expr = f"njs_cptr->{member.name}"

        builder.add_output(f'/*Get "{member.name}".*/\n')
        self.c_to_js.convert(
            builder,
            ConvertRequest(
                name=member.c_name,
                type=member.resolved_type,
                c_expr=c_expr,
                js_expr="njs_rv",
                mode=MODE_GETTER,
                length=self._member_length(box, member),
                null_terminated=member.null_terminated,
            ),
        )
        self.function_code.append(builder.render())
        return builder

    def add_setter(self, box: CBox, member: CMember) -> FunctionBuilder:
        builder = FunctionBuilder(f"njs_{_accessor_prefix(box, member)}_set", f'Setter of "{box.name}.{member.name}"')
        builder.add_decl("RJS_Value *njs_arg = rjs_argument_get(njs_rt, njs_args, njs_argc, 0);\n")

        if box.is_globals:
            c_expr = member.name
        else:
            self._fetch_instance(builder, box)
            c_expr = f"njs_cptr->{member.name}"

        builder.add_input(f'/*Set "{member.name}".*/\n')
        self.js_to_c.convert(
            builder,
            ConvertRequest(
                name=member.c_name,
                type=member.resolved_type,
                c_expr=c_expr,
                js_expr="njs_arg",
                mode=MODE_SETTER,
                length=self._member_length(box, member),
                null_terminated=member.null_terminated,
            ),
        )
        builder.add_body("rjs_value_set_undefined(njs_rt, njs_rv);\n")
        self.function_code.append(builder.render())
        return builder

    def add_accessors(self, box: CBox) -> None:
        for member in box.members.values():
            prefix = _accessor_prefix(box, member)
            self.add_getter(box, member)
            setter = None
            if not member.readonly:
                self.add_setter(box, member)
                setter = f"njs_{prefix}_set"
            self.accessors.append(Accessor(box=box.name, member=member.name, getter=f"njs_{prefix}_get", setter=setter))

    def build_function(self, builder: FunctionBuilder, func: CFunction) -> None:
        """Marshal runtime arguments, call ``func`` and marshal its results back."""
        args: list[str] = []
        arg_index = 0
        needs_result_object = func.has_outputs

        for param in func.parameters.values():
            var = f"njs_arg_{param.name}"
            storage = var
            js_value = f"njs_arg_v_{param.name}"
            ctype = param.resolved_type
            length = self._param_length(func, param)

            builder.declare_var(array_decay(ctype), var)

            if param.is_output:
                ctype = ctype.require_target()
                storage = f"njs_arg_d_{param.name}"
                builder.declare_var(ctype, storage)
                builder.add_init(f"{var} = &{storage};\n")
                builder.require_module_data()
                self.module_data.add_prop(param.name)

                builder.add_output(f'/*Convert the output parameter "{param.name}".*/\n')
                self.c_to_js.convert(
                    builder,
                    ConvertRequest(
                        name=param.name,
                        type=ctype,
                        c_expr=storage,
                        js_expr="njs_ret_p",
                        mode=MODE_OUT_PARAM,
                        length=length,
                        null_terminated=param.null_terminated,
                        is_new=param.is_new,
                        is_free=param.is_free,
                    ),
                )
                builder.add_output(
                    f"rjs_create_data_property_or_throw(njs_rt, njs_rv, &njs_md->pn_{param.name}, njs_ret_p);\n"
                )

            if param.is_input:
                builder.add_decl(f"RJS_Value *{js_value} = rjs_argument_get(njs_rt, njs_args, njs_argc, {arg_index});\n")
                arg_index += 1
                builder.add_input(f'/*Convert input parameter "{param.name}".*/\n')
                self.js_to_c.convert(
                    builder,
                    ConvertRequest(
                        name=param.name,
                        type=ctype,
                        c_expr=storage,
                        js_expr=js_value,
                        mode=MODE_IN_PARAM,
                        length=length,
                        null_terminated=param.null_terminated,
                        is_new=param.is_new,
                        is_free=param.is_free,
                    ),
                )

            args.append(var)

        ret_assign = ""
        ret = func.return_param
        if ret is not None:
            ret_type = ret.resolved_type
            builder.declare_var(ret_type, "njs_ret")
            ret_assign = "njs_ret = "
            js_value = "njs_ret_p" if needs_result_object else "njs_rv"

            builder.add_output("/*Convert the return value.*/\n")
            start = len(builder.sections[REGION_OUTPUT])
            self.c_to_js.convert(
                builder,
                ConvertRequest(
                    name=RETURN_NAME,
                    type=ret_type,
                    c_expr="njs_ret",
                    js_expr=js_value,
                    mode=MODE_RETURN,
                    length=self._param_length(func, ret),
                    null_terminated=ret.null_terminated,
                    is_new=ret.is_new,
                    is_free=ret.is_free,
                ),
            )
            if ret.has_negative_one:
                converted = builder.sections[REGION_OUTPUT][start:]
                builder.sections[REGION_OUTPUT] = builder.sections[REGION_OUTPUT][:start]
                builder.add_output(
                    f"if (njs_ret == ({ret_type})-1) {{\n"
                    f"    rjs_value_set_number(njs_rt, {js_value}, -1);\n"
                    "} else {\n"
                    f"{_indent_text(converted)}"
                    "}\n"
                )

            if needs_result_object:
                builder.require_module_data()
                self.module_data.add_prop(RETURN_NAME)
                builder.add_output(
                    f"rjs_create_data_property_or_throw(njs_rt, njs_rv, &njs_md->pn_{RETURN_NAME}, njs_ret_p);\n"
                )
        elif not needs_result_object:
            builder.add_output("rjs_value_set_undefined(njs_rt, njs_rv);\n")

        builder.add_body(f'/*Call "{func.name}".*/\n{builder.invoke(func.name, ", ".join(args), ret_assign)}\n')

        if needs_result_object:
            builder.declare_value("njs_ret_p")
            builder.add_body("/*Create return object.*/\nrjs_ordinary_object_create(njs_rt, NULL, njs_rv);\n")

    def build_callback(self, builder: FunctionBuilder, func: CFunction) -> None:
        """Convert native argument slots, call the stored runtime function and write results back."""
        builder.add_decl("RJS_Value *njs_rv = rjs_value_stack_push(njs_rt);\nRJS_Value *njs_arg;\n")
        has_result_object = func.has_outputs

        for index, param in enumerate(func.parameters.values()):
            if not param.is_input:
                continue
            var = f"njs_arg_{param.name}"
            ctype = array_decay(param.resolved_type)
            builder.declare_var(ctype, var)
            builder.add_output(f'/*Get parameter "{param.name}".*/\n{var} = *({ctype}*)njs_argp[{index}];\n')

        if has_result_object:
            builder.declare_value("njs_ret_p")

        js_index = 0
        for index, param in enumerate(func.parameters.values()):
            param_type = param.resolved_type
            length = self._param_length(func, param)

            if param.is_input:
                builder.add_output(f'/*Convert parameter "{param.name}".*/\n')
                builder.add_output(f"njs_arg = rjs_value_buffer_item(njs_rt, njs_args, {js_index});\n")
                js_index += 1

                c_expr = f"njs_arg_{param.name}"
                ctype = array_decay(param_type)
                if param.direction == DIRECTION_INOUT:
                    c_expr = f"*{c_expr}"
                    ctype = ctype.require_target()

                self.c_to_js.convert(
                    builder,
                    ConvertRequest(
                        name=param.name,
                        type=ctype,
                        c_expr=c_expr,
                        js_expr="njs_arg",
                        mode=MODE_CALLBACK,
                        length=length,
                        null_terminated=param.null_terminated,
                        is_new=param.is_new,
                        is_free=param.is_free,
                    ),
                )

            if param.is_output:
                builder.require_module_data()
                self.module_data.add_prop(param.name)
                builder.add_input(
                    f'/*Convert output value of "{param.name}".*/\n'
                    f"if ((njs_r = rjs_get_v(njs_rt, njs_rv, &njs_md->pn_{param.name}, njs_ret_p)) == RJS_ERR)\n"
                    "    goto end;\n"
                )
                self.js_to_c.convert(
                    builder,
                    ConvertRequest(
                        name=param.name,
                        type=param_type.require_target(),
                        c_expr=f"**({param_type}*)njs_argp[{index}]",
                        js_expr="njs_ret_p",
                        mode=MODE_CALLBACK,
                        length=length,
                        null_terminated=param.null_terminated,
                        is_new=param.is_new,
                        is_free=param.is_free,
                    ),
                )

        builder.add_decl(f"RJS_Value *njs_args = rjs_value_stack_push_n(njs_rt, {js_index});\n")
        builder.add_body(
            "/*Call the JS function.*/\n"
            f"if ((njs_r = rjs_call(njs_rt, njs_fn, rjs_v_undefined(njs_rt), njs_args, {js_index}, njs_rv)) == RJS_ERR)\n"
            "    goto end;\n"
        )

        ret = func.return_param
        if ret is None:
            return
        ret_type = ret.resolved_type

        builder.add_input("/*Convert return value.*/\n")
        js_value = "njs_rv"
        if has_result_object:
            builder.require_module_data()
            self.module_data.add_prop(RETURN_NAME)
            builder.add_input(
                f"if ((njs_r = rjs_get_v(njs_rt, njs_rv, &njs_md->pn_{RETURN_NAME}, njs_ret_p)) == RJS_ERR)\n"
                "    goto end;\n"
            )
            js_value = "njs_ret_p"

        self.js_to_c.convert(
            builder,
            ConvertRequest(
                name=RETURN_NAME,
                type=ret_type,
                c_expr=f"*({ret_type}*)njs_rp",
                js_expr=js_value,
                mode=MODE_CALLBACK,
                length=self._param_length(func, ret),
                null_terminated=ret.null_terminated,
                is_new=ret.is_new,
            ),
        )

    def add_function(self, func: CFunction) -> FunctionBuilder:
        builder = FunctionBuilder(f"njs_{func.name}_nf", f'Wrapper of "{func.name}"')
        self.build_function(builder, func)
        self.function_code.append(builder.render())
        return builder

    def add_function_type(self, ftype: CFunction) -> None:
        param_count = len(ftype.parameters)
        call = FfiCallFunctionBuilder(f"njs_{ftype.name}_js2ffi", f'"{ftype.name}" js -> ffi.')
        callback = FfiCallbackFunctionBuilder(f"njs_{ftype.name}_ffi2js", f'"{ftype.name}" ffi -> js.')
        constructor = FunctionBuilder(f"njs_{ftype.name}_constructor", f'Constructor of "{ftype.name}"')

        call.add_decl(f"void *njs_rp = NULL;\nvoid *njs_argp[{max(param_count, 1)}];\n")
        self.build_function(call, ftype)
        self.build_callback(callback, ftype)

        ffi_types: list[str] = []
        if ftype.parameters:
            call.add_input("/*Store arguments to ffi arguments pointer array.*/\n")
        for index, param in enumerate(ftype.parameters.values()):
            ffi_types.append(f"njs_atypes[{index}] = &{ffi_type_of(param.resolved_type)};")
            call.add_input(f"njs_argp[{index}] = &njs_arg_{param.name};\n")

        ret = ftype.return_param
        if ret is not None:
            ffi_types.append(f"njs_rtype = &{ffi_type_of(ret.resolved_type)};")
            call.add_input("njs_rp = &njs_ret;\n")
        else:
            ffi_types.append("njs_rtype = &ffi_type_void;")

        constructor.add_decl(
            "RJS_Value *njs_arg = rjs_argument_get(njs_rt, njs_args, njs_argc, 0);\n"
            "size_t njs_nitem = 1;\n"
            "RJS_CPtrType njs_cptr_type = RJS_CPTR_TYPE_C_WRAPPER;\n"
            "void *njs_cptr;\n"
        )
        constructor.require_module_data()
        constructor.add_body(
            "if (rjs_value_is_number(njs_rt, njs_arg)) {\n"
            "    /*Get the array's length.*/\n"
            "    int64_t njs_len;\n"
            "    int njs_cptr_flags = RJS_CPTR_FL_AUTO_FREE;\n"
            "\n"
            "    if ((njs_r = rjs_to_length(njs_rt, njs_arg, &njs_len)) == RJS_ERR)\n"
            "        goto end;\n"
            "    njs_nitem = njs_len;\n"
            "    njs_cptr_type = RJS_CPTR_TYPE_ARRAY;\n"
            "\n"
            f"    /*Allocate the {ftype.name} buffer.*/\n"
            "    njs_cptr = malloc(sizeof(void*) * njs_nitem);\n"
            "    if (!njs_cptr) {\n"
            "        njs_r = rjs_throw_range_error(njs_rt, \"cannot allocate enough memory\");\n"
            "        goto end;\n"
            "    }\n"
            "    memset(njs_cptr, 0, njs_nitem * sizeof(void*));\n"
            "\n"
            "    njs_arg = rjs_argument_get(njs_rt, njs_args, njs_argc, 1);\n"
            "    if (!rjs_value_is_undefined(njs_rt, njs_arg) && !rjs_to_boolean(njs_rt, njs_arg))\n"
            "        njs_cptr_flags &= ~RJS_CPTR_FL_AUTO_FREE;\n"
            "\n"
            "    /*Create the C pointer object.*/\n"
            f"    if ((njs_r = rjs_create_c_ptr(njs_rt, njs_md->ctype_{ftype.name}, njs_cptr, njs_cptr_type, njs_nitem, njs_cptr_flags, njs_rv)) == RJS_ERR) {{\n"
            "        free(njs_cptr);\n"
            "        goto end;\n"
            "    }\n"
            "} else {\n"
            f"    if (!(njs_cptr = rjs_get_c_ptr(njs_rt, njs_md->ctype_{ftype.name}, RJS_CPTR_TYPE_C_FUNC, njs_arg))) {{\n"
            "        njs_r = RJS_ERR;\n"
            "        goto end;\n"
            "    }\n"
            "\n"
            "    rjs_value_copy(njs_rt, njs_rv, njs_arg);\n"
            "}\n"
        )

        self.function_code.append(call.render())
        self.function_code.append(callback.render())
        self.function_code.append(constructor.render())
        self.function_code.append(self._render_function_type_registrar(ftype, ffi_types))

    def _render_function_type_registrar(self, ftype: CFunction, ffi_types: list[str]) -> str:
        param_count = len(ftype.parameters)
        builder = CodeBuilder()
        builder.line(f'/*Add function type "{ftype.name}".*/')
        builder.line("static void")
        builder.line(
            f"njs_add_func_type_{ftype.name} (RJS_Runtime *njs_rt, RJS_Value *njs_mod, "
            "RJS_CType **njs_pctype, void *njs_data)"
        )
        builder.line("{")
        with builder.indented():
            builder.line("size_t njs_top = rjs_value_stack_save(njs_rt);")
            builder.line("RJS_Value *njs_name = rjs_value_stack_push(njs_rt);")
            builder.line("RJS_Value *njs_proto = rjs_value_stack_push(njs_rt);")
            builder.line("RJS_Value *njs_constr = rjs_value_stack_push(njs_rt);")
            builder.line("RJS_Realm *njs_realm = rjs_realm_current(njs_rt);")
            builder.line("ffi_type *njs_rtype;")
            builder.line(f"ffi_type *njs_atypes[{max(param_count, 1)}];")
            builder.blank()
            builder.line(f'rjs_string_from_chars(njs_rt, njs_name, "{ftype.name}", -1);')
            for line in ffi_types:
                builder.line(line)
            builder.line(
                f"rjs_create_c_func_type(njs_rt, njs_name, {param_count}, njs_rtype, njs_atypes, "
                f"njs_{ftype.name}_js2ffi, njs_{ftype.name}_ffi2js, njs_data, njs_pctype);"
            )
            builder.blank()
            builder.line("rjs_ordinary_object_create(njs_rt, rjs_realm_function_prototype(njs_realm), njs_proto);")
            builder.line(
                f"rjs_create_builtin_function(njs_rt, njs_mod, njs_{ftype.name}_constructor, 1, "
                "njs_name, NULL, NULL, NULL, njs_constr);"
            )
            builder.line("rjs_make_constructor(njs_rt, njs_constr, RJS_FALSE, njs_proto);")
            builder.line("rjs_module_add_binding(njs_rt, njs_mod, njs_name, njs_constr);")
            builder.blank()
            builder.line("rjs_value_stack_restore(njs_rt, njs_top);")
        builder.line("}")
        return builder.text()

    def generate(self) -> str:
        self._reset()
        ctxt = self.ctxt

        for number in ctxt.numbers:
            self.export_table.add(number)

        for box in ctxt.boxes.values():
            if not box.is_globals:
                self.module_data.add_ctype(box.name)
            if not box.no_constructor:
                self.export_table.add(box.name)
                self.add_constructor(box)
            elif box.is_globals:
                self.export_table.add(box.name)
            self.add_accessors(box)

        for ftype in ctxt.function_types.values():
            self.export_table.add(ftype.name)
            self.module_data.add_func_type(ftype.name)
            self.add_function_type(ftype)

        for func in ctxt.functions:
            self.export_table.add(func.name)
            self.add_function(func)

        return self.render_module()

    def _render_module_exec(self) -> str:
        ctxt = self.ctxt
        boxes = list(ctxt.boxes.values())
        builder = CodeBuilder()
        builder.line("/*Initialize the local bindings.*/")
        builder.line("RJS_Result")
        builder.line("ratjs_module_exec (RJS_Runtime *njs_rt, RJS_Value *njs_mod)")
        builder.line("{")
        with builder.indented():
            builder.line("size_t njs_top = rjs_value_stack_save(njs_rt);")
            for box in boxes:
                builder.line(f"RJS_Value *{_proto_var(box)} = rjs_value_stack_push(njs_rt);")
            builder.block(self.module_data.render_init())
            builder.blank()

            if ctxt.numbers:
                builder.line("/*Set number symbols.*/")
                for number in ctxt.numbers:
                    builder.line(f'njs_add_number(njs_rt, njs_mod, "{number}", {number});')
                builder.blank()

            if boxes:
                builder.line("/*Add box objects.*/")
                for box in boxes:
                    constructor = "NULL" if box.no_constructor else f"njs_{box.name}_constructor"
                    size = "0" if box.is_globals else f"sizeof({box.c_name})"
                    builder.line(f'njs_add_box(njs_rt, njs_mod, "{box.name}", {size}, {_proto_var(box)}, {constructor});')
                builder.blank()

            typed_boxes = [box for box in boxes if not box.is_globals]
            if typed_boxes:
                builder.line("/*Add C types.*/")
                for box in typed_boxes:
                    builder.line(
                        f'njs_add_ctype(njs_rt, "{box.name}", sizeof({box.c_name}), {_proto_var(box)}, '
                        f"&njs_md->ctype_{box.name});"
                    )
                builder.blank()

            if self.accessors:
                builder.line("/*Add accessors.*/")
                by_name = ctxt.boxes
                for accessor in self.accessors:
                    builder.line(
                        f"njs_add_accessor(njs_rt, njs_mod, {_proto_var(by_name[accessor.box])}, "
                        f'"{accessor.member}", {accessor.getter}, {accessor.setter or "NULL"});'
                    )
                builder.blank()

            if ctxt.function_types:
                builder.line("/*Add function types.*/")
                for ftype in ctxt.function_types.values():
                    builder.line(f"njs_add_func_type_{ftype.name}(njs_rt, njs_mod, &njs_md->ctype_{ftype.name}, njs_md);")
                builder.blank()

            if ctxt.functions:
                builder.line("/*Add functions.*/")
                for func in ctxt.functions:
                    builder.line(f'njs_add_func(njs_rt, njs_mod, "{func.name}", njs_{func.name}_nf, {func.input_count});')
                builder.blank()

            builder.block(slot("MODULE_EXEC"))
            builder.blank()
            builder.line("rjs_value_stack_restore(njs_rt, njs_top);")
            builder.line("return RJS_OK;")
        builder.line("}")
        return builder.text()

    def render_module(self) -> str:
        builder = CodeBuilder()
        builder.block(MODULE_BANNER)
        builder.blank()
        builder.block(slot("INCLUDE_HEAD"))
        builder.line("#include <assert.h>")
        builder.line("#include <stdio.h>")
        builder.line("#include <string.h>")
        builder.line("#include <stdlib.h>")
        builder.line("#include <ratjs.h>")
        builder.block(slot("INCLUDE_TAIL"))
        builder.blank()
        builder.block(NATIVE_FUNC_MACRO)
        builder.blank()
        builder.block(slot("DECL"))
        builder.blank()
        builder.block(self.export_table.render())
        builder.blank()
        module_data = self.module_data.render_decl()
        if module_data:
            builder.block(module_data)
            builder.blank()
        builder.block(slot("FUNC_HEAD"))
        builder.blank()
        if self.function_code:
            builder.block("\n\n".join(self.function_code))
            builder.blank()
        builder.block(slot("FUNC_TAIL"))
        builder.blank()
        builder.block(MODULE_HELPERS)
        builder.blank()
        builder.line("/*Set the export symbols.*/")
        builder.line("RJS_Result")
        builder.line("ratjs_module_init (RJS_Runtime *njs_rt, RJS_Value *njs_mod)")
        builder.line("{")
        with builder.indented():
            builder.line("/*Add export entries.*/")
            builder.line("rjs_module_set_import_export(njs_rt, njs_mod, NULL, njs_local_exports, NULL, NULL);")
            builder.blank()
            builder.block(slot("MODULE_INIT"))
            builder.blank()
            builder.line("return RJS_OK;")
        builder.line("}")
        builder.blank()
        builder.block(self._render_module_exec())
        return builder.text() + "\n"


def generate_module(
    ctxt: TypeContext,
    *,
    c_to_js: ConverterTable = C_TO_JS,
    js_to_c: ConverterTable = JS_TO_C,
) -> str:
    return ModuleGenerator(ctxt, c_to_js=c_to_js, js_to_c=js_to_c).generate()
