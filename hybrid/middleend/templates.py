"""Template analysis: parameter lists, generic rendering, pattern heuristics.

Annotations added:
    ClassDecl.template_params / Function.template_params
    ClassDecl.specialization / Function.specialization (template<> prefixes)

Rendering:
    to_rust_generics:  <T: A + B, const N: usize>
    to_go_type_params: [T any, K A | B]   (non-type parameters dropped)

Heuristics never change the IR. Backends consult them: container-shaped
templates may derive Default in Rust, and enable_if guards get a note.
"""

from __future__ import annotations

import logging

from ..frontend.scan import find_top_level, split_top_level
from ..ir import (
    IR,
    ClassDecl,
    ClassRef,
    Function,
    NestedTemplateParam,
    NonTypeParam,
    Primitive,
    TemplateParameter,
    TemplateSpecialization,
    TypeParam,
)

logger = logging.getLogger(__name__)

# Declared type of a non-type parameter -> Rust const generic type.
RUST_CONST_TYPES: dict[str, str] = {
    "int": "usize",
    "int32_t": "i32",
    "size_t": "usize",
    "std::size_t": "usize",
    "unsigned": "u32",
    "unsigned int": "u32",
    "uint32_t": "u32",
    "bool": "bool",
    "char": "char",
    "long": "i64",
    "int64_t": "i64",
    "uint64_t": "u64",
}

# Standard concepts recognized as constraints on a type parameter.
CONCEPTS: set[str] = {
    "integral", "signed_integral", "unsigned_integral", "floating_point",
    "copyable", "movable", "regular", "semiregular", "totally_ordered",
    "equality_comparable", "default_initializable", "copy_constructible",
}

_RUST_BOUNDS: dict[str, str] = {
    "integral": "Copy + Ord",
    "signed_integral": "Copy + Ord",
    "unsigned_integral": "Copy + Ord",
    "floating_point": "Copy + PartialOrd",
    "copyable": "Clone",
    "copy_constructible": "Clone",
    "movable": "Sized",
    "regular": "Clone + Default + PartialEq",
    "semiregular": "Clone + Default",
    "totally_ordered": "Ord",
    "equality_comparable": "PartialEq",
    "default_initializable": "Default",
}

_GO_CONSTRAINTS: dict[str, str] = {
    "integral": "~int | ~int8 | ~int16 | ~int32 | ~int64",
    "signed_integral": "~int | ~int8 | ~int16 | ~int32 | ~int64",
    "unsigned_integral": "~uint | ~uint8 | ~uint16 | ~uint32 | ~uint64",
    "floating_point": "~float32 | ~float64",
    "totally_ordered": "cmp.Ordered",
    "equality_comparable": "comparable",
    "regular": "comparable",
}

_CONTAINER_METHODS = {"push_back", "insert", "size", "begin", "end"}


def _strip_std(name: str) -> str:
    return name[5:] if name.startswith("std::") else name


def _split_default(text: str) -> tuple[str, str | None]:
    eq = find_top_level(text, "=", angles=True)
    if eq < 0:
        return text.strip(), None
    return text[:eq].strip(), text[eq + 1 :].strip()


def _parse_param(text: str) -> TemplateParameter | None:
    text = " ".join(text.split())
    if not text:
        return None
    first = text.split(" ", 1)[0]
    if first.startswith("template") and (first == "template" or first[8] == "<"):
        gt = text.rfind(">")
        tail = text[gt + 1 :].split() if gt >= 0 else text.split()[1:]
        words = [w for w in tail if w not in ("class", "typename", "...")]
        name = words[0].split("=", 1)[0].strip() if words else ""
        return NestedTemplateParam(name=name)
    keyword = first.rstrip(".")
    if keyword in ("typename", "class"):
        decl, default = _split_default(text[len(keyword) :])
        name = decl.replace("...", "").strip()
        return TypeParam(name=name, default=default)
    decl, default = _split_default(text)
    tokens = decl.split()
    if not tokens:
        return None
    if len(tokens) == 2 and _strip_std(tokens[0]) in CONCEPTS:
        return TypeParam(name=tokens[1], default=default, constraints=[tokens[0]])
    name = tokens[-1].lstrip("*&.")
    type_name = " ".join(tokens[:-1])
    param_type = ClassRef(name=type_name)
    if type_name in RUST_CONST_TYPES or _strip_std(type_name) in ("size_t", "int64_t", "uint64_t"):
        param_type = Primitive("bool" if type_name == "bool" else "integer", name=type_name)
    return NonTypeParam(name=name, param_type=param_type, default=default)


def analyze_template_params(text: str | None) -> list[TemplateParameter]:
    """Parse 'template<typename T, int N = 4>' into parameters. Never fails."""
    if not text:
        return []
    start = text.find("<")
    end = text.rfind(">")
    if start < 0 or end <= start:
        return []
    params: list[TemplateParameter] = []
    for part in split_top_level(text[start + 1 : end]):
        param = _parse_param(part)
        if param is not None and param.name:
            params.append(param)
    return params


def _rust_const_type(type_name: str) -> str:
    return RUST_CONST_TYPES.get(type_name, RUST_CONST_TYPES.get(_strip_std(type_name), "usize"))


def to_rust_generics(params: list[TemplateParameter]) -> str:
    """Render parameters as a Rust generic list; "" when empty."""
    if not params:
        return ""
    parts: list[str] = []
    for param in params:
        if isinstance(param, TypeParam):
            if param.constraints:
                bounds = [_RUST_BOUNDS.get(_strip_std(c), _strip_std(c)) for c in param.constraints]
                parts.append(f"{param.name}: {' + '.join(bounds)}")
            else:
                parts.append(param.name)
        elif isinstance(param, NonTypeParam):
            parts.append(f"const {param.name}: {_rust_const_type(param.param_type.name)}")
        elif isinstance(param, NestedTemplateParam):
            parts.append(param.name)
        else:
            raise NotImplementedError(f"template parameter: {type(param).__name__}")
    return "<" + ", ".join(parts) + ">"


def to_go_type_params(params: list[TemplateParameter]) -> str:
    """Render parameters as a Go type parameter list; "" when nothing is representable.

    Non-type parameters have no Go equivalent and are dropped.
    """
    parts: list[str] = []
    for param in params:
        if isinstance(param, TypeParam):
            if param.constraints:
                bounds = [_GO_CONSTRAINTS.get(_strip_std(c), _strip_std(c)) for c in param.constraints]
                parts.append(f"{param.name} {' | '.join(bounds)}")
            else:
                parts.append(f"{param.name} any")
        elif isinstance(param, NestedTemplateParam):
            parts.append(f"{param.name} any")
        elif isinstance(param, NonTypeParam):
            continue
        else:
            raise NotImplementedError(f"template parameter: {type(param).__name__}")
    if not parts:
        return ""
    return "[" + ", ".join(parts) + "]"


def is_container_template(decl: ClassDecl) -> bool:
    """Template class exposing container-style methods."""
    if not decl.is_template:
        return False
    return any(m.name in _CONTAINER_METHODS for m in decl.methods)


def is_algorithm_template(func: Function) -> bool:
    """Template function taking iterator-typed parameters."""
    if not func.is_template:
        return False
    return any("iterator" in p.typ.name.lower() for p in func.params)


def has_sfinae_pattern(func: Function) -> bool:
    """enable_if in the return type or a parameter type."""
    if func.ret is not None and "enable_if" in func.ret.name:
        return True
    return any("enable_if" in p.typ.name for p in func.params)


def _is_explicit_specialization(text: str | None) -> bool:
    return text is not None and text.replace(" ", "") == "template<>"


def analyze_template_class(decl: ClassDecl) -> None:
    if decl.template_text is None:
        return
    decl.is_template = True
    decl.template_params = analyze_template_params(decl.template_text)
    for method in decl.methods:
        if method.template_text is not None:
            analyze_template_function(method)


def analyze_template_function(func: Function) -> None:
    if func.template_text is None:
        return
    func.is_template = True
    func.template_params = analyze_template_params(func.template_text)
    if _is_explicit_specialization(func.template_text) and not func.specialization.specialized_args:
        func.specialization = TemplateSpecialization(is_partial=False, specialized_args=[])


def analyze_templates(ir: IR) -> None:
    """Fill template parameters for every templated class and function."""
    count = 0
    for decl in ir.classes:
        if decl.template_text is not None:
            analyze_template_class(decl)
            count += 1
        else:
            for method in decl.methods:
                if method.template_text is not None:
                    analyze_template_function(method)
                    count += 1
    for func in ir.functions:
        if func.template_text is not None:
            analyze_template_function(func)
            count += 1
    logger.debug("templates: %d templated declarations", count)
