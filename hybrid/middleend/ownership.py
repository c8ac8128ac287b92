"""Ownership analysis of parameters.

Annotations added:
    Function.moved_params: list[str] - parameters whose value the function takes
    Function.borrowed_params: list[str] - reference/pointer parameters it only uses

A parameter is moved when it is passed to std::move, is an rvalue
reference, or is an owning value (unique_ptr, class, container) stored
into a field. A reference or raw pointer parameter that is not moved is
borrowed. Plain by-value scalars are neither.
"""

from __future__ import annotations

import logging
import re

from ..ir import (
    IR,
    ClassRef,
    Container,
    Function,
    Pointer,
    Reference,
    StructRef,
    TemplateParamRef,
    Type,
)

logger = logging.getLogger(__name__)


def is_owning_value(typ: Type) -> bool:
    """True for types whose by-value passing transfers a resource."""
    if isinstance(typ, Pointer):
        return typ.ownership != "raw"
    return isinstance(typ, (ClassRef, StructRef, Container, TemplateParamRef))


def _stored_into_field(func: Function, name: str, fields: set[str]) -> bool:
    value = rf"(?:std::move\s*\(\s*)?{re.escape(name)}\b"
    for member, init in func.initializers:
        if member in fields and re.fullmatch(rf"\s*{value}\s*\)?\s*", init):
            return True
    if not func.body or not fields:
        return False
    for m in re.finditer(rf"(?:\bthis\s*->\s*)?\b(\w+)\s*=\s*{value}\s*\)?\s*;", func.body):
        if m.group(1) in fields and m.group(1) != name:
            return True
        if m.group(0).lstrip().startswith("this") and m.group(1) in fields:
            return True
    return False


def analyze_function(func: Function, fields: set[str]) -> None:
    func.moved_params = []
    func.borrowed_params = []
    body = func.body or ""
    for param in func.params:
        name = param.name
        if not name:
            continue
        typ = param.typ
        moved = bool(re.search(rf"\bstd::move\s*\(\s*{re.escape(name)}\s*\)", body))
        if isinstance(typ, Reference) and typ.is_rvalue:
            moved = True
        elif not moved and is_owning_value(typ):
            moved = _stored_into_field(func, name, fields)
        if moved:
            func.moved_params.append(name)
        elif isinstance(typ, Reference) or (isinstance(typ, Pointer) and typ.ownership == "raw"):
            func.borrowed_params.append(name)


def analyze_ownership(ir: IR) -> None:
    """Classify parameters of every function and method."""
    for decl in ir.classes:
        fields = {v.name for v in decl.fields}
        for method in decl.methods:
            analyze_function(method, fields)
    for func in ir.functions:
        analyze_function(func, set())
    moved = sum(len(f.moved_params) for f in ir.all_functions())
    logger.debug("ownership: %d moved parameters", moved)
