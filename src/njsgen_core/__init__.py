from __future__ import annotations

from ._core_base import (
    TOOL_VERSION,
    DuplicateSymbolError,
    IdlValidationError,
    KindMismatchError,
    MalformedMergeTagError,
    NjsGenError,
    UnknownTypeError,
    load_idl,
    resolve_pointers,
)
from ._core_context import TypeContext, build_type_context
from ._core_converter import C_TO_JS, JS_TO_C, ConverterRule, ConverterTable, ConvertRequest
from ._core_generator import ModuleGenerator, generate_module
from ._core_merge import merge_into_file, merge_text, parse_slots

__version__ = TOOL_VERSION

__all__ = [
    "C_TO_JS",
    "JS_TO_C",
    "ConvertRequest",
    "ConverterRule",
    "ConverterTable",
    "DuplicateSymbolError",
    "IdlValidationError",
    "KindMismatchError",
    "MalformedMergeTagError",
    "ModuleGenerator",
    "NjsGenError",
    "TypeContext",
    "UnknownTypeError",
    "build_type_context",
    "generate_module",
    "load_idl",
    "merge_into_file",
    "merge_text",
    "parse_slots",
    "resolve_pointers",
]
