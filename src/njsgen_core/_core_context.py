from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from ._core_base import DuplicateSymbolError, NjsGenError
from ._core_types import (
    BOX_GLOBALS,
    BOX_STRUCT,
    BOX_UNION,
    BUILTIN_PRIMITIVE_NAMES,
    MODEL_POINTER,
    MODEL_PRIMITIVE,
    MODEL_VOID,
    CType,
    parse_type,
)

DIRECTION_IN = "in"
DIRECTION_OUT = "out"
DIRECTION_INOUT = "inout"

GLOBALS_BOX_NAME = "$"
RETURN_NAME = "return"
MEMBER_PREFIX = "njs_cptr->"
PARAMETER_PREFIX = "njs_arg_"

_NAME_RE = re.compile(r"(?<![\w.])[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*")


def resolve_length(expr: str, names: Any, prefix: str) -> str:
    """Prefix every name of ``expr`` that refers to a sibling declaration.

    Names may be dotted (``hdr.count``), matching flattened nested members. A
    dotted name is prefixed when it or one of its leading parts is declared.
    """

    def replace(m: re.Match[str]) -> str:
        text = m.group(0)
        parts = text.split(".")
        for end in range(len(parts), 0, -1):
            if ".".join(parts[:end]) in names:
                return f"{prefix}{text}"
        return text

    return _NAME_RE.sub(replace, expr)


def _resolved(ctype: CType | None, what: str) -> CType:
    if ctype is None:
        raise NjsGenError(f"{what} has no resolved type, resolve the type context first")
    return ctype


def _length_value(decl: dict[str, Any]) -> str | None:
    value = decl.get("length")
    if value is None or value == "":
        return None
    return str(value)


@dataclass
class CMember:
    name: str
    type_decl: str
    length: str | None = None
    null_terminated: bool = False
    readonly: bool = False
    type: CType | None = None

    @property
    def c_name(self) -> str:
        return self.name.replace(".", "_")

    @property
    def resolved_type(self) -> CType:
        return _resolved(self.type, f"member \"{self.name}\"")


@dataclass
class CBox:
    name: str
    kind: str
    readonly: bool = False
    no_constructor: bool = False
    no_typedef: bool = False
    members: dict[str, CMember] = field(default_factory=dict)

    @property
    def c_name(self) -> str:
        if self.no_typedef and self.kind in (BOX_STRUCT, BOX_UNION):
            return f"{self.kind} {self.name}"
        return self.name

    @property
    def is_globals(self) -> bool:
        return self.kind == BOX_GLOBALS

    def add_member(self, name: str, decl: Any) -> CMember:
        if name in self.members:
            raise DuplicateSymbolError(f"member \"{name}\" of \"{self.name}\" is already defined")

        member = CMember(name=name, type_decl="", readonly=self.readonly)
        if isinstance(decl, str):
            member.type_decl = decl
        else:
            member.type_decl = decl["type"]
            if decl.get("readonly") is not None:
                member.readonly = bool(decl["readonly"])
            member.null_terminated = bool(decl.get("nullTerminated", False))
            member.length = _length_value(decl)

        self.members[name] = member
        return member

    def add_members(self, members: dict[str, Any], prefix: str | None = None) -> None:
        for name, decl in members.items():
            path = f"{prefix}.{name}" if prefix is not None else name
            if isinstance(decl, dict) and ("struct" in decl or "union" in decl):
                nested = decl.get("struct") or decl.get("union") or {}
                self.add_members(nested, path)
            else:
                self.add_member(path, decl)

    def resolve_length(self, expr: str, prefix: str = MEMBER_PREFIX) -> str:
        return resolve_length(expr, self.members, prefix)


@dataclass
class CParameter:
    name: str
    type_decl: str
    direction: str = DIRECTION_IN
    length: str | None = None
    null_terminated: bool = False
    is_new: bool = False
    is_free: bool = False
    has_negative_one: bool = False
    type: CType | None = None

    @property
    def resolved_type(self) -> CType:
        return _resolved(self.type, f"parameter \"{self.name}\"")

    @property
    def is_input(self) -> bool:
        return self.direction != DIRECTION_OUT

    @property
    def is_output(self) -> bool:
        return self.direction != DIRECTION_IN


@dataclass
class CFunction:
    name: str
    parameters: dict[str, CParameter] = field(default_factory=dict)
    return_param: CParameter | None = None
    is_type: bool = False

    @property
    def input_count(self) -> int:
        return sum(1 for param in self.parameters.values() if param.is_input)

    @property
    def has_outputs(self) -> bool:
        return any(param.is_output for param in self.parameters.values())

    def resolve_length(self, expr: str, prefix: str = PARAMETER_PREFIX) -> str:
        return resolve_length(expr, self.parameters, prefix)


def build_parameter(name: str | None, decl: Any) -> CParameter:
    param = CParameter(name=name if name is not None else RETURN_NAME, type_decl="")
    if isinstance(decl, str):
        param.type_decl = decl
        if name is None:
            param.direction = DIRECTION_OUT
        return param

    param.type_decl = decl["type"]
    direction = decl.get("direction")
    if direction is not None:
        if direction not in (DIRECTION_IN, DIRECTION_OUT, DIRECTION_INOUT):
            raise NjsGenError(f"parameter \"{param.name}\" has invalid direction '{direction}'")
        param.direction = direction
    elif name is None:
        param.direction = DIRECTION_OUT

    param.null_terminated = bool(decl.get("nullTerminated", False))
    param.has_negative_one = bool(decl.get("-1", False))
    param.is_new = bool(decl.get("new", False))
    param.is_free = bool(decl.get("free", False))
    param.length = _length_value(decl)
    return param


def build_function(name: str, decl: dict[str, Any], *, is_type: bool = False) -> CFunction:
    func = CFunction(name=name, is_type=is_type)
    for param_name, param_decl in (decl.get("parameters") or {}).items():
        if param_name == RETURN_NAME:
            raise NjsGenError(f"function \"{name}\" cannot name a parameter \"{RETURN_NAME}\"")
        func.parameters[param_name] = build_parameter(param_name, param_decl)
    if decl.get("return") is not None:
        func.return_param = build_parameter(None, decl["return"])
    return func


def finalize_direction(param: CParameter) -> str:
    ctype = param.resolved_type
    if ctype.model == MODEL_POINTER and param.length is None:
        if ctype.require_target().model in (MODEL_PRIMITIVE, MODEL_POINTER):
            return param.direction
    return DIRECTION_IN


class TypeContext:
    """Symbol tables for one generator run.

    Declarations are registered first and their type strings resolved in a
    second pass, so a structure may reference one declared after it.
    """

    def __init__(self) -> None:
        self.primitive_names: set[str] = set(BUILTIN_PRIMITIVE_NAMES)
        self.enumerations: dict[str, list[str]] = {}
        self.numbers: dict[str, None] = {}
        self.boxes: dict[str, CBox] = {}
        self.function_types: dict[str, CFunction] = {}
        self.functions: list[CFunction] = []
        self.resolved = False

    def _check_type_name(self, name: str) -> None:
        if name in self.boxes or name in self.function_types or name in self.primitive_names:
            raise DuplicateSymbolError(f"\"{name}\" is already defined")

    def add_number(self, name: str) -> None:
        if name in self.numbers:
            raise DuplicateSymbolError(f"number \"{name}\" is already defined")
        self.numbers[name] = None

    def add_enumeration(self, name: str, items: list[str]) -> None:
        self._check_type_name(name)
        self.primitive_names.add(name)
        self.enumerations[name] = list(items)
        for item in items:
            self.add_number(item)

    def add_box(self, kind: str, name: str, decl: dict[str, Any] | None = None) -> CBox:
        self._check_type_name(name)

        decl = decl or {}
        box = CBox(
            name=name,
            kind=kind,
            readonly=bool(decl.get("readonly", False)),
            no_constructor=bool(decl.get("noConstructor", False)),
            no_typedef=bool(decl.get("noTypeDef", False)),
        )
        self.boxes[name] = box
        box.add_members(decl.get("members") or {})
        return box

    def add_function_type(self, name: str, decl: dict[str, Any]) -> CFunction:
        self._check_type_name(name)
        func = build_function(name, decl, is_type=True)
        self.function_types[name] = func
        return func

    def add_function(self, name: str, decl: dict[str, Any]) -> CFunction:
        if any(func.name == name for func in self.functions):
            raise DuplicateSymbolError(f"function \"{name}\" is already defined")
        func = build_function(name, decl)
        self.functions.append(func)
        return func

    def add_variables(self, variables: dict[str, Any]) -> CBox:
        box = self.add_box(BOX_GLOBALS, GLOBALS_BOX_NAME, {"noConstructor": True})
        for name, decl in variables.items():
            box.add_member(name, decl)
        return box

    def parse(self, text: str) -> CType:
        return parse_type(text, self)

    def resolve(self) -> None:
        for box in self.boxes.values():
            for member in box.members.values():
                member.type = self.parse(member.type_decl)
                if member.type.is_const:
                    member.readonly = True

        for func in list(self.function_types.values()) + self.functions:
            for param in func.parameters.values():
                param.type = self.parse(param.type_decl)
                param.direction = finalize_direction(param)

            ret = func.return_param
            if ret is not None:
                ret.type = self.parse(ret.type_decl)
                if ret.type.model == MODEL_VOID:
                    func.return_param = None

        self.resolved = True

    @property
    def globals_box(self) -> CBox | None:
        return self.boxes.get(GLOBALS_BOX_NAME)


def build_type_context(idl: dict[str, Any]) -> TypeContext:
    ctxt = TypeContext()

    for name in idl.get("numberMacros") or []:
        ctxt.add_number(name)

    for name, items in (idl.get("enumerations") or {}).items():
        ctxt.add_enumeration(name, items)

    for name, decl in (idl.get("structures") or {}).items():
        ctxt.add_box(BOX_STRUCT, name, decl)
    for name, decl in (idl.get("unions") or {}).items():
        ctxt.add_box(BOX_UNION, name, decl)

    for name, decl in (idl.get("functionTypes") or {}).items():
        ctxt.add_function_type(name, decl)

    for name, decl in (idl.get("functions") or {}).items():
        ctxt.add_function(name, decl)

    variables = idl.get("variables")
    if variables:
        ctxt.add_variables(variables)

    ctxt.resolve()
    return ctxt
