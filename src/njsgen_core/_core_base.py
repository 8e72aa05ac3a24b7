from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonpointer
import jsonschema

TOOL_VERSION = "1.0.0"
IDL_SECTIONS = (
    "numberMacros",
    "enumerations",
    "structures",
    "unions",
    "functionTypes",
    "functions",
    "variables",
)
PARAMETER_DIRECTIONS = ("in", "out", "inout")


class NjsGenError(Exception):
    pass


class DuplicateSymbolError(NjsGenError):
    pass


class UnknownTypeError(NjsGenError):
    pass


class KindMismatchError(NjsGenError):
    pass


class MalformedMergeTagError(NjsGenError):
    pass


class IdlValidationError(NjsGenError):
    pass


def load_json(path: Path) -> dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise NjsGenError(f"Unable to read JSON file '{path}': {exc}") from exc
    except json.JSONDecodeError as exc:
        raise NjsGenError(f"Invalid JSON in '{path}': {exc}") from exc
    if not isinstance(payload, dict):
        raise IdlValidationError(f"'{path}' must contain a JSON object at top level.")
    return payload


def _lookup_pointer(document: dict[str, Any], ref: Any) -> Any:
    if not isinstance(ref, str) or not ref.startswith("#"):
        raise NjsGenError(f"Unsupported $ref {ref!r}: only pointers into the same document ('#/...') are allowed.")
    try:
        return jsonpointer.resolve_pointer(document, ref[1:])
    except jsonpointer.JsonPointerException as exc:
        raise NjsGenError(f"Unable to resolve $ref '{ref}': {exc}") from exc


def resolve_pointers(payload: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``payload`` with every ``{"$ref": "#/..."}`` object replaced.

    The referencing object takes the keys of its target that it does not define
    itself, so ``{"$ref": "#/structures/Base", "readonly": true}`` extends
    ``Base``. Targets are resolved recursively; a reference cycle is an error.
    """

    def resolve(value: Any, active: tuple[str, ...]) -> Any:
        if isinstance(value, list):
            return [resolve(item, active) for item in value]
        if not isinstance(value, dict):
            return value

        out = {key: resolve(item, active) for key, item in value.items() if key != "$ref"}
        if "$ref" not in value:
            return out

        ref = value["$ref"]
        if ref in active:
            raise NjsGenError(f"Circular $ref '{ref}'.")
        target = resolve(_lookup_pointer(payload, ref), active + (ref,))
        if not isinstance(target, dict):
            if out:
                raise NjsGenError(f"$ref '{ref}' points to a non-object value and cannot carry extra keys.")
            return target
        for key, item in target.items():
            out.setdefault(key, item)
        return out

    resolved = resolve(payload, ())
    if not isinstance(resolved, dict):
        raise IdlValidationError("The top-level $ref must point to a JSON object.")
    return resolved


def get_schema_path(kind: str) -> Path:
    base = Path(__file__).resolve().parent / "schemas"
    mapping = {
        "idl": base / "idl.schema.json",
    }
    if kind not in mapping:
        raise NjsGenError(f"Unknown schema kind: {kind}")
    return mapping[kind]


def validate_with_jsonschema(kind: str, payload: dict[str, Any]) -> None:
    schema_path = get_schema_path(kind)
    if not schema_path.exists():
        raise NjsGenError(f"schema file not found: {schema_path}")

    schema_payload = load_json(schema_path)
    try:
        jsonschema.validate(payload, schema_payload)
    except jsonschema.ValidationError as exc:
        location = ".".join(str(item) for item in exc.absolute_path) or "<root>"
        raise IdlValidationError(f"{kind} failed JSON schema validation at {location}: {exc.message}") from exc


def _require_object(value: Any, label: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise IdlValidationError(f"{label} must be an object")
    return value


def _require_string_list(value: Any, label: str) -> list[str]:
    if not isinstance(value, list):
        raise IdlValidationError(f"{label} must be an array of strings")
    for idx, item in enumerate(value):
        if not isinstance(item, str) or not item:
            raise IdlValidationError(f"{label}[{idx}] must be a non-empty string")
    return value


def _validate_flag(decl: dict[str, Any], key: str, label: str) -> None:
    if key in decl and not isinstance(decl[key], bool):
        raise IdlValidationError(f"{label}.{key} must be a boolean")


def _validate_length(decl: dict[str, Any], label: str) -> None:
    if "length" not in decl:
        return
    value = decl["length"]
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise IdlValidationError(f"{label}.length must be a string or integer expression")


def validate_member_decl(decl: Any, label: str) -> None:
    if isinstance(decl, str):
        return
    if not isinstance(decl, dict):
        raise IdlValidationError(f"{label} must be a type string or object")

    nested_keys = [key for key in ("struct", "union") if key in decl]
    if nested_keys:
        if len(nested_keys) > 1:
            raise IdlValidationError(f"{label} cannot declare both 'struct' and 'union'")
        nested = _require_object(decl[nested_keys[0]], f"{label}.{nested_keys[0]}")
        for name, member in nested.items():
            validate_member_decl(member, f"{label}.{nested_keys[0]}.{name}")
        return

    if not isinstance(decl.get("type"), str) or not decl["type"].strip():
        raise IdlValidationError(f"{label}.type must be a non-empty string")
    _validate_flag(decl, "readonly", label)
    _validate_flag(decl, "nullTerminated", label)
    _validate_length(decl, label)


def validate_parameter_decl(decl: Any, label: str) -> None:
    if isinstance(decl, str):
        return
    if not isinstance(decl, dict):
        raise IdlValidationError(f"{label} must be a type string or object")
    if not isinstance(decl.get("type"), str) or not decl["type"].strip():
        raise IdlValidationError(f"{label}.type must be a non-empty string")

    direction = decl.get("direction")
    if direction is not None and direction not in PARAMETER_DIRECTIONS:
        raise IdlValidationError(
            f"{label}.direction must be one of {', '.join(PARAMETER_DIRECTIONS)}, got '{direction}'"
        )
    for key in ("nullTerminated", "-1", "new", "free"):
        _validate_flag(decl, key, label)
    _validate_length(decl, label)


def validate_function_decl(decl: Any, label: str) -> None:
    decl = _require_object(decl, label)
    parameters = decl.get("parameters")
    if parameters is not None:
        parameters = _require_object(parameters, f"{label}.parameters")
        for name, param in parameters.items():
            if name == "return":
                raise IdlValidationError(f"{label}.parameters cannot use the reserved name 'return'")
            validate_parameter_decl(param, f"{label}.parameters.{name}")
    if "return" in decl:
        validate_parameter_decl(decl["return"], f"{label}.return")


def validate_idl_payload(payload: dict[str, Any], label: str = "idl") -> None:
    if not isinstance(payload, dict):
        raise IdlValidationError(f"{label} must be an object")

    unknown = sorted(key for key in payload if key not in IDL_SECTIONS and not key.startswith("$"))
    if unknown:
        raise IdlValidationError(f"{label} has unknown sections: {', '.join(unknown)}")

    if "numberMacros" in payload:
        _require_string_list(payload["numberMacros"], f"{label}.numberMacros")

    if "enumerations" in payload:
        enumerations = _require_object(payload["enumerations"], f"{label}.enumerations")
        for name, items in enumerations.items():
            _require_string_list(items, f"{label}.enumerations.{name}")

    for section in ("structures", "unions"):
        if section not in payload:
            continue
        boxes = _require_object(payload[section], f"{label}.{section}")
        for name, decl in boxes.items():
            box_label = f"{label}.{section}.{name}"
            decl = _require_object(decl, box_label)
            for key in ("readonly", "noConstructor", "noTypeDef"):
                _validate_flag(decl, key, box_label)
            members = _require_object(decl.get("members", {}), f"{box_label}.members")
            for member_name, member in members.items():
                validate_member_decl(member, f"{box_label}.members.{member_name}")

    for section in ("functionTypes", "functions"):
        if section not in payload:
            continue
        functions = _require_object(payload[section], f"{label}.{section}")
        for name, decl in functions.items():
            validate_function_decl(decl, f"{label}.{section}.{name}")

    if "variables" in payload:
        variables = _require_object(payload["variables"], f"{label}.variables")
        for name, decl in variables.items():
            validate_member_decl(decl, f"{label}.variables.{name}")


def load_idl(path: Path, *, validate_schema: bool = False) -> dict[str, Any]:
    payload = resolve_pointers(load_json(path))
    if validate_schema:
        validate_with_jsonschema("idl", payload)
    validate_idl_payload(payload, label=path.name)
    return payload
