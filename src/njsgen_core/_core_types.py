from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ._core_base import KindMismatchError, NjsGenError, UnknownTypeError

if TYPE_CHECKING:
    from ._core_context import TypeContext

MODEL_VOID = "void"
MODEL_PRIMITIVE = "primitive"
MODEL_POINTER = "pointer"
MODEL_ARRAY = "array"
MODEL_FUNCTION = "function"
MODEL_BOX = "box"

BOX_STRUCT = "struct"
BOX_UNION = "union"
BOX_GLOBALS = "globals"

BUILTIN_PRIMITIVE_NAMES = (
    "char",
    "short",
    "long",
    "long long",
    "signed char",
    "signed short",
    "signed int",
    "signed long",
    "signed long long",
    "unsigned char",
    "unsigned short",
    "unsigned int",
    "unsigned long",
    "unsigned long long",
    "int",
    "int8_t",
    "int16_t",
    "int32_t",
    "int64_t",
    "uint8_t",
    "uint16_t",
    "uint32_t",
    "uint64_t",
    "size_t",
    "ssize_t",
    "float",
    "double",
    "bool",
    "RJS_Result",
    "RJS_Bool",
)

ELEMENT_TYPES = {
    "int8_t": "RJS_ARRAY_ELEMENT_INT8",
    "int16_t": "RJS_ARRAY_ELEMENT_INT16",
    "int32_t": "RJS_ARRAY_ELEMENT_INT32",
    "int64_t": "RJS_ARRAY_ELEMENT_BIGINT64",
    "uint8_t": "RJS_ARRAY_ELEMENT_UINT8",
    "uint16_t": "RJS_ARRAY_ELEMENT_UINT16",
    "uint32_t": "RJS_ARRAY_ELEMENT_UINT32",
    "uint64_t": "RJS_ARRAY_ELEMENT_BIGUINT64",
    "float": "RJS_ARRAY_ELEMENT_FLOAT32",
    "double": "RJS_ARRAY_ELEMENT_FLOAT64",
    "char": "RJS_ARRAY_ELEMENT_CHAR",
    "signed char": "RJS_ARRAY_ELEMENT_INT8",
    "unsigned char": "RJS_ARRAY_ELEMENT_UCHAR",
    "short": "RJS_ARRAY_ELEMENT_SHORT",
    "signed short": "RJS_ARRAY_ELEMENT_SHORT",
    "unsigned short": "RJS_ARRAY_ELEMENT_USHORT",
    "int": "RJS_ARRAY_ELEMENT_INT",
    "signed int": "RJS_ARRAY_ELEMENT_INT",
    "unsigned int": "RJS_ARRAY_ELEMENT_UINT",
    "long": "RJS_ARRAY_ELEMENT_LONG",
    "signed long": "RJS_ARRAY_ELEMENT_LONG",
    "unsigned long": "RJS_ARRAY_ELEMENT_ULONG",
    "long long": "RJS_ARRAY_ELEMENT_LLONG",
    "signed long long": "RJS_ARRAY_ELEMENT_LLONG",
    "unsigned long long": "RJS_ARRAY_ELEMENT_ULLONG",
    "ssize_t": "RJS_ARRAY_ELEMENT_SSIZE_T",
    "size_t": "RJS_ARRAY_ELEMENT_SIZE_T",
    "bool": "RJS_ARRAY_ELEMENT_UINT8",
    "RJS_Bool": "RJS_ARRAY_ELEMENT_UINT8",
    "RJS_Result": "RJS_ARRAY_ELEMENT_INT",
}

FFI_TYPES = {
    "char": "ffi_type_schar",
    "signed char": "ffi_type_schar",
    "unsigned char": "ffi_type_uchar",
    "short": "ffi_type_sshort",
    "signed short": "ffi_type_sshort",
    "unsigned short": "ffi_type_ushort",
    "int": "ffi_type_sint",
    "signed int": "ffi_type_sint",
    "unsigned int": "ffi_type_uint",
    "long": "ffi_type_slong",
    "signed long": "ffi_type_slong",
    "unsigned long": "ffi_type_ulong",
    "long long": "ffi_type_sint64",
    "signed long long": "ffi_type_sint64",
    "unsigned long long": "ffi_type_uint64",
    "int8_t": "ffi_type_sint8",
    "uint8_t": "ffi_type_uint8",
    "int16_t": "ffi_type_sint16",
    "uint16_t": "ffi_type_uint16",
    "int32_t": "ffi_type_sint32",
    "uint32_t": "ffi_type_uint32",
    "int64_t": "ffi_type_sint64",
    "uint64_t": "ffi_type_uint64",
    "size_t": "ffi_type_pointer",
    "ssize_t": "ffi_type_pointer",
    "float": "ffi_type_float",
    "double": "ffi_type_double",
    "bool": "ffi_type_uint8",
    "RJS_Bool": "ffi_type_uint8",
    "RJS_Result": "ffi_type_sint",
}

_ARRAY_RE = re.compile(r"(.+)\[(.*)\]")
_CONST_POINTER_RE = re.compile(r"(.+)\*\s*const")
_POINTER_RE = re.compile(r"(.+)\*")
_CONST_RE = re.compile(r"const\s+(.+)")
_ENUM_RE = re.compile(r"enum\s+\w+")
_TAGGED_RE = re.compile(r"(struct|union)\s+(.+)")


@dataclass(frozen=True)
class CType:
    model: str
    name: str = ""
    is_const: bool = False
    value_type: CType | None = None
    item_type: CType | None = None
    length: str | None = None
    tag: str | None = None

    def pointer(self) -> CType:
        return CType(model=MODEL_POINTER, value_type=self)

    def declare(self, var_name: str) -> str:
        return _render(self, f" {var_name}", "", "")

    def __str__(self) -> str:
        return _render(self, "", "", "")

    @property
    def is_primitive(self) -> bool:
        return self.model == MODEL_PRIMITIVE

    @property
    def is_pointer(self) -> bool:
        return self.model == MODEL_POINTER

    @property
    def is_array(self) -> bool:
        return self.model == MODEL_ARRAY

    @property
    def is_box(self) -> bool:
        return self.model == MODEL_BOX

    @property
    def is_function(self) -> bool:
        return self.model == MODEL_FUNCTION

    @property
    def is_void(self) -> bool:
        return self.model == MODEL_VOID

    @property
    def target(self) -> CType | None:
        """Pointed-to type of a pointer, element type of an array."""
        if self.model == MODEL_POINTER:
            return self.value_type
        if self.model == MODEL_ARRAY:
            return self.item_type
        return None

    def require_target(self) -> CType:
        target = self.target
        if target is None:
            raise KindMismatchError(f"{self.model} type '{self.name}' has no pointed-to or element type")
        return target


def _render(ctype: CType, ident: str, pre: str, post: str) -> str:
    if ctype.model == MODEL_POINTER:
        star = "* const" if ctype.is_const else "*"
        return _render(ctype.require_target(), ident, f"{star}{pre}", post)
    if ctype.model == MODEL_ARRAY:
        return _render(ctype.require_target(), ident, pre, f"[{ctype.length}]{post}")

    base = f"{ctype.tag} {ctype.name}" if ctype.tag else ctype.name
    const = "const " if ctype.is_const else ""
    return f"{const}{base}{pre}{ident}{post}"


def declare(ctype: CType, var_name: str) -> str:
    return ctype.declare(var_name)


def render(ctype: CType) -> str:
    return str(ctype)


def pointer_to(ctype: CType) -> CType:
    return ctype.pointer()


def array_decay(ctype: CType) -> CType:
    if ctype.model == MODEL_ARRAY:
        return ctype.require_target().pointer()
    return ctype


def normalize_type_name(value: str) -> str:
    return " ".join(value.split())


def parse_type(text: str, ctxt: TypeContext) -> CType:
    """Parse a declarator string such as ``const char*`` or ``Point[4]``.

    Suffixes are peeled right to left (array bound, ``* const``, ``*``), then a
    leading ``const``, then the remaining name is looked up in the context.
    """
    value = text.strip()
    if not value:
        raise UnknownTypeError("empty type string")

    m = _ARRAY_RE.fullmatch(value)
    if m:
        return CType(model=MODEL_ARRAY, item_type=parse_type(m.group(1), ctxt), length=m.group(2).strip())

    m = _CONST_POINTER_RE.fullmatch(value)
    if m:
        return CType(model=MODEL_POINTER, is_const=True, value_type=parse_type(m.group(1), ctxt))

    m = _POINTER_RE.fullmatch(value)
    if m:
        return CType(model=MODEL_POINTER, value_type=parse_type(m.group(1), ctxt))

    is_const = False
    m = _CONST_RE.fullmatch(value)
    if m:
        is_const = True
        value = m.group(1).strip()

    name = normalize_type_name(value)
    if name in ctxt.primitive_names:
        return CType(model=MODEL_PRIMITIVE, name=name, is_const=is_const)
    if name in ctxt.function_types:
        return CType(model=MODEL_FUNCTION, name=name, is_const=is_const)
    if name == "void":
        return CType(model=MODEL_VOID, name=name, is_const=is_const)
    if _ENUM_RE.fullmatch(name):
        return CType(model=MODEL_PRIMITIVE, name=name, is_const=is_const)

    kind: str | None = None
    m = _TAGGED_RE.fullmatch(name)
    if m:
        kind = m.group(1)
        name = m.group(2)

    box = ctxt.boxes.get(name)
    if box is None or box.kind == BOX_GLOBALS:
        raise UnknownTypeError(f"unknown type \"{text.strip()}\"")
    if kind is not None and box.kind != kind:
        raise KindMismatchError(f"\"{kind} {name}\" refers to {box.kind} \"{name}\"")

    return CType(
        model=MODEL_BOX,
        name=name,
        is_const=is_const,
        tag=box.kind if box.no_typedef else None,
    )


def element_type_of(ctype: CType) -> str:
    """Typed array element kind for a primitive type."""
    if ctype.model != MODEL_PRIMITIVE:
        raise NjsGenError(f"\"{ctype}\" cannot be stored in a typed array")
    element = ELEMENT_TYPES.get(ctype.name)
    if element is None:
        # Declared enumerations are the only non-builtin primitives.
        return "RJS_ARRAY_ELEMENT_INT"
    return element


def ffi_type_of(ctype: CType) -> str:
    if ctype.model in (MODEL_POINTER, MODEL_ARRAY, MODEL_FUNCTION):
        return "ffi_type_pointer"
    if ctype.model == MODEL_VOID:
        return "ffi_type_void"
    if ctype.model == MODEL_PRIMITIVE:
        # Enumerations are int sized.
        return FFI_TYPES.get(ctype.name, "ffi_type_sint")
    raise NjsGenError(f"\"{ctype}\" cannot be passed by value through a function pointer")
