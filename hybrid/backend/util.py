"""Shared utilities for backend code emitters."""

from __future__ import annotations

import re

# Go reserved words that need renaming
GO_RESERVED = frozenset(
    {
        "break",
        "case",
        "chan",
        "const",
        "continue",
        "default",
        "defer",
        "else",
        "fallthrough",
        "for",
        "func",
        "go",
        "goto",
        "if",
        "import",
        "interface",
        "map",
        "package",
        "range",
        "return",
        "select",
        "struct",
        "switch",
        "type",
        "var",
    }
)

# Predeclared Go identifiers that a translated local would shadow
GO_PREDECLARED = frozenset({"len", "cap", "append", "copy", "delete", "new", "make", "string", "error", "nil"})

RUST_RESERVED = frozenset({
    "as", "async", "await", "break", "const", "continue", "crate", "dyn",
    "else", "enum", "extern", "false", "fn", "for", "if", "impl", "in",
    "let", "loop", "match", "mod", "move", "mut", "pub", "ref", "return",
    "self", "Self", "static", "struct", "super", "trait", "true", "type",
    "union", "unsafe", "use", "where", "while", "abstract", "become", "box",
    "do", "final", "macro", "override", "priv", "try", "typeof", "unsized",
    "virtual", "yield",
})

# operator spelling -> method name used by both targets
OPERATOR_NAMES: dict[str, str] = {
    "operator==": "eq",
    "operator!=": "ne",
    "operator<": "lt",
    "operator<=": "le",
    "operator>": "gt",
    "operator>=": "ge",
    "operator+": "add",
    "operator-": "sub",
    "operator*": "mul",
    "operator/": "div",
    "operator%": "rem",
    "operator+=": "add_assign",
    "operator-=": "sub_assign",
    "operator[]": "index",
    "operator()": "call",
    "operator<<": "shl",
    "operator>>": "shr",
    "operator=": "assign",
    "operator!": "not",
    "operator<=>": "cmp",
}


def _upper_first(s: str) -> str:
    """Uppercase the first character of a string."""
    return (s[0].upper() + s[1:]) if s else ""


def member_base_name(name: str) -> str:
    """Strip operator spellings and trailing underscores used for members."""
    compact = name.replace(" ", "")
    if compact.startswith("operator"):
        return OPERATOR_NAMES.get(compact, "op")
    return name


def go_to_pascal(name: str) -> str:
    """Convert snake_case or camelCase to PascalCase for Go. A leading underscore stays unexported."""
    name = member_base_name(name)
    is_private = name.startswith("_")
    name = name.strip("_")
    parts = name.split("_")
    result = "".join(_upper_first(p) for p in parts)
    if name.isupper():
        return result
    if is_private:
        return result[0].lower() + result[1:] if result else result
    return result


def go_to_camel(name: str) -> str:
    """Convert snake_case to camelCase for Go."""
    name = member_base_name(name)
    if name.startswith("_"):
        name = name[1:]
    name = name.rstrip("_") or name
    parts = name.split("_")
    if not parts:
        return name
    if name.isupper():
        return name
    result = parts[0] + "".join(_upper_first(p) for p in parts[1:])
    if result in GO_RESERVED or result in GO_PREDECLARED:
        return result + "_"
    return result


def to_snake(name: str) -> str:
    """Convert camelCase/PascalCase to snake_case."""
    name = member_base_name(name)
    trailing = name.endswith("_")
    name = name.strip("_")
    if "_" in name or name.islower():
        result = name.lower()
    elif name.isupper():
        result = name.lower()
    else:
        s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", name)
        result = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1).lower()
    if trailing and not result:
        return "_"
    return result


def to_screaming_snake(name: str) -> str:
    """Convert to SCREAMING_SNAKE_CASE."""
    return to_snake(name).upper()


def rust_safe(name: str) -> str:
    """Rename identifiers that collide with Rust keywords."""
    if name in ("self", "Self", "crate", "super"):
        return name + "_"
    if name in RUST_RESERVED:
        return "r#" + name
    return name


class Emitter:
    """Base class for code emitters with indentation tracking."""

    def __init__(self, indent_str: str = "    ") -> None:
        self.indent: int = 0
        self.lines: list[str] = []
        self._indent_str = indent_str

    def line(self, text: str = "") -> None:
        """Emit a line with current indentation."""
        if text:
            self.lines.append(self._indent_str * self.indent + text)
        else:
            self.lines.append("")

    def output(self) -> str:
        """Return the accumulated output as a string."""
        return "\n".join(self.lines)
