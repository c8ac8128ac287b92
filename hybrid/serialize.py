"""Serialization of IR objects to JSON-compatible dicts."""

from __future__ import annotations

import dataclasses
import json

from .ir import IR, ClassDecl, ClassRef, Function, Type


def serialize(obj: object) -> object:
    """Recursively serialize an object to a JSON-compatible structure."""
    if obj is None:
        return None
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, (int, float)):
        return obj
    if isinstance(obj, str):
        return obj
    if isinstance(obj, (list, tuple)):
        return [serialize(x) for x in obj]
    if isinstance(obj, (set, frozenset)):
        items: list[object] = [serialize(x) for x in obj]
        try:
            items.sort()
        except TypeError:
            pass
        return items
    if isinstance(obj, dict):
        return {str(k): serialize(v) for k, v in obj.items()}
    return _ir_serialize(obj)


def _ir_serialize(obj: object) -> object:
    """Serialize IR dataclasses; derived properties ride along with the stored fields."""
    if not dataclasses.is_dataclass(obj):
        return repr(obj)
    result: dict[str, object] = {"_type": type(obj).__name__}
    for f in dataclasses.fields(obj):
        result[f.name] = serialize(getattr(obj, f.name))
    if isinstance(obj, ClassRef):
        result["base_name"] = obj.base_name
    elif isinstance(obj, Function):
        result["is_async"] = obj.is_async
        result["is_polymorphic"] = obj.is_polymorphic
    elif isinstance(obj, ClassDecl):
        result["is_polymorphic"] = obj.is_polymorphic
    return result


def ir_to_dict(ir: IR) -> dict[str, object]:
    """The translation unit as a JSON-compatible dict."""
    return {
        "classes": serialize(ir.classes),
        "functions": serialize(ir.functions),
        "global_vars": serialize(ir.global_vars),
        "types": {name: _type_label(t) for name, t in ir.types.items()},
    }


def _type_label(typ: Type) -> str:
    return f"{type(typ).__name__}({typ.name})"


def to_json(obj: object) -> str:
    """Serialize object to pretty-printed JSON."""
    return json.dumps(obj, indent=2)
