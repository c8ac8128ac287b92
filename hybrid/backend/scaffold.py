"""Companion test scaffolds: one test per class and free function."""

from __future__ import annotations

from ..ir import IR, ClassDecl, Function, Primitive
from .base import EmitOptions
from .go import GoBackend
from .rust import RustBackend
from .util import go_to_pascal, to_snake


def _default_constructor(decl: ClassDecl) -> Function | None:
    """Constructor callable without arguments; a synthetic one when the class declares none."""
    ctors = [m for m in decl.methods if m.is_constructor]
    if not ctors:
        return Function(name=decl.name, body="", is_constructor=True)
    for ctor in ctors:
        if all(p.has_default for p in ctor.params):
            return ctor
    return None


def _testable(func: Function) -> bool:
    return (
        func.body is not None
        and func.name != "main"
        and not func.params
        and not func.template_params
        and not func.coroutine.is_coroutine
    )


def _returns_value(func: Function) -> bool:
    return func.ret is not None and not (isinstance(func.ret, Primitive) and func.ret.kind == "void")


def rust_tests(ir: IR, options: EmitOptions | None = None) -> str:
    """#[cfg(test)] module exercising each class and free function."""
    backend = RustBackend(ir, options)
    lines = ["#[cfg(test)]", "mod tests {", "    use super::*;"]
    for decl in backend.classes:
        lines.append("")
        lines.append("    #[test]")
        lines.append(f"    fn test_{to_snake(decl.name)}() {{")
        ctor = _default_constructor(decl)
        _, args = backend._generics(decl)
        if ctor is None or args or not backend.has_struct(decl) or backend.is_abstract(decl):
            lines.append(f"        // {decl.name} needs arguments or a concrete type to construct")
        elif backend.is_fallible(ctor):
            name = backend.struct_name(decl)
            lines.append(f'        let _value = {name}::new().expect("construct {decl.name}");')
        else:
            lines.append(f"        let _value = {backend.struct_name(decl)}::new();")
        lines.append("    }")
    for func in ir.functions:
        if not _testable(func):
            continue
        name = backend.ident(func.name)
        lines.append("")
        lines.append("    #[test]")
        lines.append(f"    fn test_{to_snake(func.name)}() {{")
        if backend.is_fallible(func):
            lines.append(f"        assert!({name}().is_ok());")
        elif _returns_value(func):
            lines.append(f"        let _result = {name}();")
        else:
            lines.append(f"        {name}();")
        lines.append("    }")
    lines.append("}")
    return "\n".join(lines) + "\n"


def go_tests(ir: IR, options: EmitOptions | None = None) -> str:
    """_test.go file exercising each class and free function."""
    backend = GoBackend(ir, options)
    lines = [f"package {backend.package_name()}", "", 'import "testing"']
    for decl in backend.classes:
        lines.append("")
        lines.append(f"func Test{go_to_pascal(decl.name)}(t *testing.T) {{")
        ctor = _default_constructor(decl)
        if ctor is None or decl.template_params or backend.introduces_virtuals(decl):
            lines.append(f"\t// {decl.name} needs arguments or a concrete type to construct")
        else:
            index = 1
            ctors = [m for m in decl.methods if m.is_constructor]
            if ctor in ctors:
                index = ctors.index(ctor) + 1
            name = backend._constructor_name(decl, index)
            if backend.is_fallible(ctor):
                lines.append(f"\tif _, err := {name}(); err != nil {{")
                lines.append("\t\tt.Fatal(err)")
                lines.append("\t}")
            else:
                lines.append(f"\tif {name}() == nil {{")
                lines.append(f'\t\tt.Fatal("{name} returned nil")')
                lines.append("\t}")
        lines.append("}")
    for func in ir.functions:
        if not _testable(func):
            continue
        name = backend.func_name(func)
        lines.append("")
        lines.append(f"func Test{go_to_pascal(func.name)}(t *testing.T) {{")
        if backend._returns_error(func):
            check = f"_, err := {name}()" if _returns_value(func) else f"err := {name}()"
            lines.append(f"\tif {check}; err != nil {{")
            lines.append("\t\tt.Fatal(err)")
            lines.append("\t}")
        elif _returns_value(func):
            lines.append(f"\t_ = {name}()")
        else:
            lines.append(f"\t{name}()")
        lines.append("}")
    return "\n".join(lines) + "\n"
