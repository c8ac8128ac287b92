"""Structural parser: C++ text -> IR.

Recovers declarations, not expressions. Classes, methods, fields, free
functions, globals, enums and template prefixes are located with a
balanced-brace scanner; function bodies are kept as raw text plus a
statement skeleton. Malformed input yields fewer entries, never an error.
"""

from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from ..ir import (
    IR,
    VOID,
    AccessSection,
    Array,
    AsyncPrimitive,
    ClassDecl,
    ClassRef,
    Container,
    EnumRef,
    ExceptionSpec,
    FuncType,
    Function,
    Parameter,
    Pointer,
    Primitive,
    Reference,
    StructRef,
    SyncPrimitive,
    TemplateParamRef,
    TemplateSpecialization,
    Type,
    Variable,
)
from .scan import (
    Comment,
    comment_text,
    find_matching,
    find_top_level,
    scan_comments,
    skip_to_semicolon,
    skip_ws,
    split_statements,
    split_top_level,
    statement_end,
)

logger = logging.getLogger(__name__)


class ReadError(Exception):
    """Input file missing, unreadable or not UTF-8."""

    def __init__(self, path: str, reason: str):
        self.path: str = str(path)
        self.reason: str = reason
        super().__init__(f"cannot read {path}: {reason}")


# ============================================================
# TYPES
# ============================================================

# name -> (kind, size in bytes)
PRIMITIVES: dict[str, tuple[str, int]] = {
    "void": ("void", 0),
    "bool": ("bool", 1),
    "char": ("integer", 1),
    "signed char": ("integer", 1),
    "unsigned char": ("integer", 1),
    "wchar_t": ("integer", 4),
    "char16_t": ("integer", 2),
    "char32_t": ("integer", 4),
    "short": ("integer", 2),
    "short int": ("integer", 2),
    "unsigned short": ("integer", 2),
    "int": ("integer", 4),
    "signed": ("integer", 4),
    "signed int": ("integer", 4),
    "unsigned": ("integer", 4),
    "unsigned int": ("integer", 4),
    "long": ("integer", 8),
    "long int": ("integer", 8),
    "unsigned long": ("integer", 8),
    "unsigned long int": ("integer", 8),
    "long long": ("integer", 8),
    "long long int": ("integer", 8),
    "unsigned long long": ("integer", 8),
    "size_t": ("integer", 8),
    "ptrdiff_t": ("integer", 8),
    "int8_t": ("integer", 1),
    "int16_t": ("integer", 2),
    "int32_t": ("integer", 4),
    "int64_t": ("integer", 8),
    "uint8_t": ("integer", 1),
    "uint16_t": ("integer", 2),
    "uint32_t": ("integer", 4),
    "uint64_t": ("integer", 8),
    "float": ("float", 4),
    "double": ("float", 8),
    "long double": ("float", 16),
}

_CONTAINERS: set[str] = {
    "vector", "list", "deque", "map", "unordered_map", "set", "unordered_set",
    "string", "pair", "optional",
}

_SYNC: dict[str, str] = {
    "thread": "thread",
    "jthread": "thread",
    "mutex": "mutex",
    "recursive_mutex": "recursive_mutex",
    "shared_mutex": "shared_mutex",
    "timed_mutex": "timed_mutex",
    "atomic": "atomic",
    "condition_variable": "condition_variable",
    "condition_variable_any": "condition_variable",
    "lock_guard": "lock_guard",
    "unique_lock": "unique_lock",
    "shared_lock": "shared_lock",
    "scoped_lock": "scoped_lock",
}

_ASYNC: set[str] = {"future", "shared_future", "promise", "coroutine_handle", "task"}

# Words that can end a type but never name a parameter.
_TYPE_WORDS: set[str] = {w for name in PRIMITIVES for w in name.split()} | {
    "const", "volatile", "auto", "struct", "class", "enum", "typename",
}

_QUALIFIERS = ("const ", "volatile ", "typename ", "struct ", "class ", "enum ")


@dataclass
class TypeScope:
    """Names that change how a bare identifier parses."""

    template_names: set[str] = field(default_factory=set)
    structs: set[str] = field(default_factory=set)
    enums: set[str] = field(default_factory=set)

    def with_templates(self, names: set[str]) -> TypeScope:
        if not names:
            return self
        return TypeScope(self.template_names | names, self.structs, self.enums)


def _normalize(text: str) -> str:
    s = " ".join(text.split())
    s = re.sub(r"\s*([<>,*&:\[\]])\s*", r"\1", s)
    s = s.replace(",", ", ")
    return s


def _strip_suffix_word(s: str, word: str) -> str | None:
    if s.endswith(word) and (len(s) == len(word) or not (s[-len(word) - 1].isalnum() or s[-len(word) - 1] == "_")):
        return s[: -len(word)].rstrip()
    return None


def parse_type(text: str, scope: TypeScope | None = None) -> Type:
    """Parse a type spelling into a Type tree. Unknown names become ClassRef."""
    if scope is None:
        scope = TypeScope()
    s = _normalize(text)
    is_const = False
    rest = _strip_suffix_word(s, "const")
    if rest:
        is_const = True
        s = rest
    # Declarator suffixes first: "const T&" is a reference to a const T.
    if s.endswith("&&"):
        inner = parse_type(s[:-2], scope)
        return Reference(element=inner, is_rvalue=True, name=s, is_const=inner.is_const, is_mutable=not inner.is_const)
    if s.endswith("&"):
        inner = parse_type(s[:-1], scope)
        return Reference(element=inner, name=s, is_const=inner.is_const, is_mutable=not inner.is_const)
    if s.endswith("*"):
        inner = parse_type(s[:-1], scope)
        return Pointer(element=inner, name=s, is_const=is_const, size_bytes=8, alignment=8)
    stripped = True
    while stripped:
        stripped = False
        for q in _QUALIFIERS:
            if s.startswith(q):
                if q == "const ":
                    is_const = True
                s = s[len(q) :].lstrip()
                stripped = True
    if s.endswith("]") and "[" in s:
        open_index = s.rindex("[")
        inner = parse_type(s[:open_index], scope)
        size = s[open_index + 1 : -1].strip() or None
        return Array(element=inner, size=size, name=s, is_const=is_const)
    base = s
    args: list[Type] = []
    lt = s.find("<")
    if lt > 0 and s.endswith(">"):
        gt = find_matching(s, lt)
        if gt == len(s) - 1:
            base = s[:lt]
            args = [parse_type(a, scope) for a in split_top_level(s[lt + 1 : gt])]
    bare = base[5:] if base.startswith("std::") else base
    full = ("const " if is_const else "") + s
    if bare in ("unique_ptr", "shared_ptr") and args:
        ownership = "unique" if bare == "unique_ptr" else "shared"
        return Pointer(element=args[0], ownership=ownership, name=full, is_const=is_const, size_bytes=8, alignment=8)
    if bare == "array" and len(args) == 2:
        return Array(element=args[0], size=args[1].name, name=full, is_const=is_const)
    if bare in _CONTAINERS and (bare == "string" or args or base.startswith("std::")):
        element = args[0] if args else None
        value = args[1] if len(args) > 1 and bare in ("map", "unordered_map", "pair") else None
        return Container(kind=bare, element=element, value=value, name=full, is_const=is_const)
    if bare in _SYNC:
        return SyncPrimitive(kind=_SYNC[bare], element=args[0] if args else None, name=full, is_const=is_const)
    if bare in _ASYNC:
        return AsyncPrimitive(kind=bare, element=args[0] if args else None, name=full, is_const=is_const)
    if bare == "function":
        return FuncType(name=full, is_const=is_const)
    if bare in PRIMITIVES and not args:
        kind, size = PRIMITIVES[bare]
        return Primitive(kind, name=bare, is_const=is_const, is_mutable=not is_const, size_bytes=size, alignment=size)
    if bare in scope.template_names and not args:
        return TemplateParamRef(name=bare, is_const=is_const)
    if bare in scope.enums and not args:
        return EnumRef(name=bare, is_const=is_const, size_bytes=4, alignment=4)
    if bare in scope.structs and not args:
        return StructRef(name=bare, is_const=is_const)
    return ClassRef(name=s, args=args, is_const=is_const, is_mutable=not is_const)


# ============================================================
# DECLARATORS
# ============================================================

_LAST_DECLARATOR_RE = re.compile(r"([*&]*)\s*(?<![:\w])([A-Za-z_]\w*)\s*(\[[^\]]*\])?\s*$")
_BITFIELD_RE = re.compile(r"\s*:\s*\d+\s*$")
_DECL_SPECIFIERS = ("static", "extern", "inline", "mutable", "constexpr", "thread_local", "register")


def _take_specifiers(text: str, words: tuple[str, ...]) -> tuple[str, set[str]]:
    found: set[str] = set()
    s = text.strip()
    changed = True
    while changed:
        changed = False
        for w in words:
            if s.startswith(w) and (len(s) == len(w) or not (s[len(w)].isalnum() or s[len(w)] == "_")):
                found.add(w)
                s = s[len(w) :].lstrip()
                changed = True
    return s, found


def _split_decl(decl: str) -> tuple[str, str, str | None, str] | None:
    """Split 'Type *name[N] = init' into (type_text, name, array, init)."""
    init = ""
    eq = find_top_level(decl, "=", angles=True)
    if eq >= 0:
        init = decl[eq + 1 :].strip()
        decl = decl[:eq]
    else:
        brace = find_top_level(decl, "{", angles=True)
        if brace >= 0:
            close = find_matching(decl, brace)
            init = decl[brace : close + 1].strip() if close > 0 else decl[brace:].strip()
            decl = decl[:brace]
    decl = _BITFIELD_RE.sub("", decl).rstrip()
    m = _LAST_DECLARATOR_RE.search(decl)
    if m is None or m.group(2) in _TYPE_WORDS:
        return None
    type_text = decl[: m.start(2)].strip()
    if not type_text.replace("*", "").replace("&", "").strip():
        return None
    return type_text, m.group(2), m.group(3), init


def _array_of(typ: Type, array: str | None) -> Type:
    if array is None:
        return typ
    size = array[1:-1].strip() or None
    return Array(element=typ, size=size, name=f"{typ.name}{array}")


def parse_variables(stmt: str, scope: TypeScope | None = None) -> list[Variable]:
    """Parse '[static] [const] Type a = 1, *b, c[4]' into Variables."""
    text, specs = _take_specifiers(stmt, _DECL_SPECIFIERS)
    decls = split_top_level(text)
    if not decls:
        return []
    first = _split_decl(decls[0])
    if first is None:
        return []
    type_text, name, array, init = first
    base_text = type_text.rstrip("*& ")
    is_static = "static" in specs
    result: list[Variable] = []
    for i, decl in enumerate(decls):
        if i == 0:
            spelled = type_text
        else:
            parts = _split_decl(base_text + " " + decl)
            if parts is None:
                continue
            spelled, name, array, init = parts
        typ = _array_of(parse_type(spelled, scope), array)
        is_const = typ.is_const or "constexpr" in specs
        if "constexpr" in specs:
            typ.is_const = True
            typ.is_mutable = False
        result.append(Variable(name, typ, is_static=is_static, is_const=is_const, initializer=init))
    return result


def parse_params(text: str, scope: TypeScope | None = None) -> list[Parameter]:
    """Parse a parameter list (without parentheses)."""
    parts = split_top_level(text)
    if parts == ["void"]:
        return []
    params: list[Parameter] = []
    for part in parts:
        if part == "..." or not part:
            continue
        default = None
        eq = find_top_level(part, "=", angles=True)
        if eq >= 0:
            default = part[eq + 1 :].strip()
            part = part[:eq].strip()
        m = _LAST_DECLARATOR_RE.search(part)
        type_text = part
        name = ""
        array = None
        if m is not None and m.group(2) not in _TYPE_WORDS:
            before = part[: m.start(2)].strip()
            if before.replace("*", "").replace("&", "").strip():
                type_text = part[: m.start(2)].strip()
                name = m.group(2)
                array = m.group(3)
        typ = _array_of(parse_type(type_text, scope), array)
        params.append(Parameter(name, typ, default))
    return params


# ============================================================
# SIGNATURES
# ============================================================

_FUNC_SPECIFIERS = (
    "virtual", "static", "inline", "explicit", "constexpr", "consteval", "friend", "extern",
)
_ATTRIBUTE_RE = re.compile(r"\[\[[^\]]*\]\]\s*")
_ARGS = r"<(?:[^<>;{}()]|<[^<>;{}()]*>)*>"
_QUALNAME_RE = re.compile(
    rf"((?:[A-Za-z_]\w*\s*(?:{_ARGS})?\s*::\s*)*"
    r"(?:~\s*)?(?:operator\s*\(\s*\)|operator\s*[^\s\w(]+|operator\s+\w+|[A-Za-z_]\w*)"
    rf"\s*(?:{_ARGS})?)\s*$"
)
_INIT_NAME_RE = re.compile(rf"[A-Za-z_][\w:]*(?:{_ARGS})?")
_TEMPLATE_WORD_RE = re.compile(r"template\b")
_CLASS_HEAD_RE = re.compile(
    r"^\s*(class|struct|union)\s+(?:alignas\s*\([^)]*\)\s*)?(?:\[\[[^\]]*\]\]\s*)?"
    r"([A-Za-z_]\w*)\s*(<.*?>)?\s*(final\s*)?(?::\s*(.*))?$",
    re.DOTALL,
)
_ENUM_HEAD_RE = re.compile(r"^\s*enum\s+(?:class\s+|struct\s+)?([A-Za-z_]\w*)?")
_ACCESS_RE = re.compile(r"(public|protected|private)\s*:(?!:)")
_NAMESPACE_RE = re.compile(r"^\s*(?:inline\s+)?namespace\b")
_EXTERN_C_RE = re.compile(r'^\s*extern\s+"C(?:\+\+)?"\s*$')
_TEMPLATE_NAMES_RE = re.compile(r"\b(?:typename|class)\s*(?:\.\.\.\s*)?([A-Za-z_]\w*)")
_NOEXCEPT_RE = re.compile(r"\bnoexcept\b(?:\s*\(\s*([^)]*)\))?")
_THROW_SPEC_RE = re.compile(r"\bthrow\s*\(([^)]*)\)")


def template_names(template_text: str | None) -> set[str]:
    if not template_text:
        return set()
    return set(_TEMPLATE_NAMES_RE.findall(template_text))


def _split_qualified(name: str) -> list[str]:
    """Split A<T>::B::c at top-level '::'."""
    parts: list[str] = []
    depth = 0
    start = 0
    i = 0
    while i < len(name):
        c = name[i]
        if c == "<":
            depth += 1
        elif c == ">":
            depth -= 1
        elif c == ":" and depth == 0 and name.startswith("::", i):
            parts.append(name[start:i])
            start = i + 2
            i += 2
            continue
        i += 1
    parts.append(name[start:])
    return parts


@dataclass
class Signature:
    """A function header split into its pieces."""

    owner: str
    func: Function
    deleted: bool = False


def _apply_tail(func: Function, tail: str) -> bool:
    """Apply qualifiers after the parameter list; returns True for = delete."""
    tail = " ".join(tail.split())
    trailing_ret = None
    if "->" in tail:
        tail, trailing_ret = tail.split("->", 1)
        for word in (" override", " final", " noexcept", " ="):
            cut = trailing_ret.find(word)
            if cut >= 0:
                tail += trailing_ret[cut:]
                trailing_ret = trailing_ret[:cut]
    if re.search(r"\bconst\b", tail):
        func.is_const = True
    if re.search(r"\b(override|final)\b", tail):
        func.is_override = True
    spec = ExceptionSpec()
    m = _NOEXCEPT_RE.search(tail)
    if m is not None and (m.group(1) is None or m.group(1).strip() != "false"):
        spec.is_noexcept = True
    m = _THROW_SPEC_RE.search(tail)
    if m is not None:
        types = [t.strip() for t in m.group(1).split(",") if t.strip()]
        if types:
            spec.can_throw = True
            spec.throw_types = types
        else:
            spec.is_noexcept = True
    func.exception_spec = spec
    if re.search(r"=\s*0\s*$", tail):
        func.is_pure_virtual = True
        func.is_virtual = True
    if re.search(r"=\s*default\s*$", tail):
        func.body = ""
    if trailing_ret is not None and trailing_ret.strip():
        func.ret = parse_type(trailing_ret)
    return bool(re.search(r"=\s*delete\s*$", tail))


def parse_signature(
    prefix: str, params_text: str, tail: str, class_name: str = "", scope: TypeScope | None = None
) -> Signature | None:
    """Parse 'specifiers ret Owner::name' + params + tail into a Function.

    class_name is the enclosing class for in-class declarations. Returns None
    when no function name can be found.
    """
    prefix = _ATTRIBUTE_RE.sub("", " ".join(prefix.split()))
    prefix, specs = _take_specifiers(prefix, _FUNC_SPECIFIERS)
    m = _QUALNAME_RE.search(prefix)
    if m is None:
        return None
    qualified = "".join(m.group(1).split()) if "operator" not in m.group(1) else m.group(1).strip()
    ret_text, more = _take_specifiers(prefix[: m.start(1)].strip(), _FUNC_SPECIFIERS)
    specs |= more
    parts = _split_qualified(qualified)
    raw_name = parts[-1]
    owner = "::".join(p.split("<", 1)[0] for p in parts[:-1])
    specialized: list[str] = []
    name = raw_name
    if not raw_name.startswith("operator") and "<" in raw_name:
        name = raw_name.split("<", 1)[0]
        specialized = split_top_level(raw_name[raw_name.index("<") + 1 : raw_name.rindex(">")])
    owner_class = owner.rsplit("::", 1)[-1] if owner else class_name
    func = Function(name=name)
    if specialized:
        func.specialization = TemplateSpecialization(is_partial=False, specialized_args=specialized)
    func.is_static = "static" in specs
    func.is_virtual = "virtual" in specs
    func.params = parse_params(params_text, scope)
    deleted = _apply_tail(func, tail)
    if name.startswith("~"):
        func.is_destructor = True
        func.name = "~" + name[1:].strip()
        func.ret = VOID
    elif owner_class and name == owner_class and ret_text in ("", owner_class):
        func.is_constructor = True
        func.ret = None
    elif func.ret is None:
        if not ret_text:
            return None
        func.ret = parse_type(ret_text, scope)
    return Signature(owner=owner, func=func, deleted=deleted)


# ============================================================
# PARSER
# ============================================================


@dataclass
class _FunctionExtent:
    params_open: int
    params_close: int
    terminator: int
    initializers: list[tuple[str, str]] = field(default_factory=list)


class Parser:
    """Walks cleaned source text and fills an IR."""

    def __init__(self, source: str):
        self.source = source
        self.text, self.comments = scan_comments(source)
        self.comment_ends = [c.end for c in self.comments]
        self.newlines = [i for i, c in enumerate(self.text) if c == "\n"]
        self.ir = IR()
        self.scope = TypeScope()
        self.pending: list[tuple[str, Function]] = []
        self._access = "private"
        self._prescan()

    def _prescan(self) -> None:
        for m in re.finditer(r"\bstruct\s+([A-Za-z_]\w*)\s*[:{]", self.text):
            self.scope.structs.add(m.group(1))
        for m in re.finditer(r"\benum\s+(?:class\s+|struct\s+)?([A-Za-z_]\w*)", self.text):
            self.scope.enums.add(m.group(1))

    def line_of(self, pos: int) -> int:
        return bisect.bisect_left(self.newlines, pos) + 1

    def doc_before(self, pos: int) -> str | None:
        """Text of the comment block directly above pos, if any."""
        texts: list[str] = []
        j = pos
        k = bisect.bisect_right(self.comment_ends, j) - 1
        while k >= 0:
            c: Comment = self.comments[k]
            gap = self.source[c.end : j]
            if gap.strip() or gap.count("\n") > 1:
                break
            line_start = self.source.rfind("\n", 0, c.start) + 1
            if self.source[line_start : c.start].strip():
                break
            texts.append(comment_text(c.text))
            j = c.start
            k -= 1
        if not texts:
            return None
        doc = "\n".join(reversed(texts)).strip()
        return doc or None

    def parse(self) -> IR:
        self.parse_block(0, len(self.text))
        for owner, func in self.pending:
            decl = self.ir.find_class(owner)
            if decl is not None:
                self._attach_method(decl, func)
            else:
                self._add_free_function(func)
        logger.debug(
            "parsed %d classes, %d functions, %d globals",
            len(self.ir.classes),
            len(self.ir.functions),
            len(self.ir.global_vars),
        )
        return self.ir

    # --- top level ---

    def parse_block(self, start: int, end: int) -> None:
        text = self.text
        pos = start
        while True:
            pos = skip_ws(text, pos, end)
            if pos >= end:
                return
            if text[pos] in ";}":
                pos += 1
                continue
            new_pos = self.parse_declaration(pos, end, None, None)
            pos = new_pos if new_pos > pos else pos + 1

    def _template_prefix(self, pos: int, end: int) -> tuple[str, int] | None:
        """If a template<...> prefix starts at pos, return (text, position after it)."""
        text = self.text
        if not text.startswith("template", pos):
            return None
        lt = skip_ws(text, pos + len("template"), end)
        if lt >= end or text[lt] != "<":
            return None
        gt = find_matching(text, lt)
        if gt < 0 or gt >= end:
            return None
        return " ".join(text[pos : gt + 1].split()), gt + 1

    def _skip_statement(self, pos: int, end: int) -> int:
        semi = skip_to_semicolon(self.text, pos, end)
        return end if semi < 0 else semi + 1

    def _skip_declaration(self, pos: int, end: int) -> int:
        """Skip a declaration that may own a block (friend function with a body)."""
        stop = statement_end(self.text, pos, end)
        if stop < 0:
            return end
        if self.text[stop] == ";":
            return stop + 1
        close = find_matching(self.text, stop)
        if close < 0:
            return end
        after = skip_ws(self.text, close + 1, end)
        if after < end and self.text[after] == ";":
            return after + 1
        return close + 1

    def parse_declaration(self, pos: int, end: int, template_text: str | None, cls: ClassDecl | None) -> int:
        """Parse one declaration at pos; returns the position after it."""
        text = self.text
        decl_start = pos
        prefix = self._template_prefix(pos, end)
        if prefix is not None:
            template_text, pos = prefix
            pos = skip_ws(text, pos, end)
            if pos >= end:
                return end
        elif _TEMPLATE_WORD_RE.match(text, pos):
            return self._skip_statement(pos, end)
        stop = statement_end(text, pos, end)
        if stop < 0:
            return end
        header = text[pos:stop]
        first = header.split(None, 1)[0] if header.strip() else ""
        if cls is None and _NAMESPACE_RE.match(header) and text[stop] == "{":
            close = find_matching(text, stop)
            if close < 0:
                return end
            self.parse_block(stop + 1, close)
            return close + 1
        if cls is None and _EXTERN_C_RE.match(header) and text[stop] == "{":
            close = find_matching(text, stop)
            if close < 0:
                return end
            self.parse_block(stop + 1, close)
            return close + 1
        if first in ("using", "typedef", "static_assert"):
            return self._skip_statement(pos, end)
        if first == "friend":
            return self._skip_declaration(pos, end)
        m = _CLASS_HEAD_RE.match(header)
        if m is not None:
            if text[stop] != "{":
                return stop + 1
            close = find_matching(text, stop)
            if close < 0:
                return end
            decl = self.parse_class(m, template_text, stop, close, decl_start)
            if cls is not None:
                cls.nested.append(decl.name)
            return self._skip_statement(close + 1, end) if self._has_declarators(close + 1, end) else close + 1
        em = _ENUM_HEAD_RE.match(header)
        if em is not None:
            if em.group(1):
                self.scope.enums.add(em.group(1))
                self.ir.register_type(em.group(1), EnumRef(name=em.group(1), size_bytes=4, alignment=4))
            return self._skip_statement(pos, end)
        paren = find_top_level(header, "(", angles=True)
        eq = find_top_level(header, "=", angles=True)
        if paren >= 0 and (eq < 0 or paren < eq):
            return self.parse_function(pos, end, template_text, cls, decl_start)
        semi = skip_to_semicolon(text, pos, end)
        if semi < 0:
            return end
        scope = self.scope.with_templates(template_names(template_text))
        if cls is not None:
            scope = scope.with_templates(template_names(cls.template_text))
        variables = parse_variables(text[pos:semi], scope)
        if cls is None:
            for var in variables:
                self.ir.add_global_variable(var)
        else:
            for var in variables:
                cls.fields.append(var)
                self._record_member(cls, var.name)
        return semi + 1

    def _has_declarators(self, pos: int, end: int) -> bool:
        """True if text after a class body continues the declaration (obj; or ;)."""
        after = skip_ws(self.text, pos, end)
        return after < end and (self.text[after] == ";" or self.text[after].isalpha() or self.text[after] in "*&")

    # --- functions ---

    def _skip_initializers(self, pos: int, end: int) -> tuple[int, list[tuple[str, str]]]:
        """Walk ': a(x), b{y}' and return (index of body '{', initializers)."""
        text = self.text
        inits: list[tuple[str, str]] = []
        while pos < end:
            pos = skip_ws(text, pos, end)
            m = _INIT_NAME_RE.match(text, pos)
            if m is None:
                return -1, inits
            pos = skip_ws(text, m.end(), end)
            if pos >= end or text[pos] not in "({":
                return -1, inits
            close = find_matching(text, pos)
            if close < 0:
                return -1, inits
            inits.append(("".join(m.group(0).split()), " ".join(text[pos + 1 : close].split())))
            pos = skip_ws(text, close + 1, end)
            if pos < end and text[pos] == ",":
                pos += 1
                continue
            if pos < end and text[pos] == "{":
                return pos, inits
            return -1, inits
        return -1, inits

    def _function_extent(self, pos: int, end: int) -> _FunctionExtent | None:
        text = self.text
        stop = statement_end(text, pos, end)
        if stop < 0:
            return None
        rel = find_top_level(text[pos:stop], "(", angles=True)
        if rel < 0:
            return None
        open_index = pos + rel
        if text[pos:open_index].rstrip().endswith("operator"):
            close0 = find_matching(text, open_index)
            nxt = text.find("(", close0 + 1, end) if close0 > 0 else -1
            if nxt < 0:
                return None
            open_index = nxt
        close = find_matching(text, open_index)
        if close < 0 or close >= end:
            return None
        i = close + 1
        while i < end:
            i = skip_ws(text, i, end)
            if i >= end:
                return None
            c = text[i]
            if c in ";{":
                return _FunctionExtent(open_index, close, i)
            if c == ":" and not text.startswith("::", i):
                body, inits = self._skip_initializers(i + 1, end)
                if body < 0:
                    return None
                return _FunctionExtent(open_index, close, body, inits)
            if c in "([":
                j = find_matching(text, i)
                if j < 0:
                    return None
                i = j + 1
                continue
            if c == "<":
                j = find_matching(text, i)
                i = j + 1 if j > 0 else i + 1
                continue
            if c == "}":
                return None
            i += 1
        return None

    def parse_function(self, pos: int, end: int, template_text: str | None, cls: ClassDecl | None, decl_start: int) -> int:
        text = self.text
        extent = self._function_extent(pos, end)
        if extent is None:
            return self._skip_declaration(pos, end)
        term = extent.terminator
        body_close = -1
        if text[term] == "{":
            body_close = find_matching(text, term)
            if body_close < 0:
                return end
            next_pos = body_close + 1
        else:
            next_pos = term + 1
        scope = self.scope.with_templates(template_names(template_text))
        if cls is not None:
            scope = scope.with_templates(template_names(cls.template_text))
        sig = parse_signature(
            text[pos : extent.params_open],
            text[extent.params_open + 1 : extent.params_close],
            text[extent.params_close + 1 : term],
            cls.name if cls is not None else "",
            scope,
        )
        if sig is None or sig.deleted:
            return next_pos
        func = sig.func
        func.line = self.line_of(pos)
        func.doc = self.doc_before(decl_start)
        func.initializers = extent.initializers
        if template_text is not None:
            func.template_text = template_text
            func.is_template = True
        if body_close >= 0:
            func.body = text[term + 1 : body_close]
            func.body_line = self.line_of(term)
            func.stmts = split_statements(func.body, func.body_line)
        if cls is not None:
            cls.methods.append(func)
            self._record_member(cls, func.name)
        elif sig.owner:
            owner = sig.owner.rsplit("::", 1)[-1]
            decl = self.ir.find_class(owner)
            if decl is None:
                self.pending.append((owner, func))
            else:
                self._attach_method(decl, func)
        elif not func.is_constructor:
            self._add_free_function(func)
        return next_pos

    def _attach_method(self, decl: ClassDecl, func: Function) -> None:
        """Attach an out-of-class definition to its in-class declaration."""
        if func.name == decl.name:
            func.is_constructor = True
            func.ret = None
        for method in decl.methods:
            if method.name == func.name and method.body is None and len(method.params) == len(func.params):
                method.body = func.body
                method.body_line = func.body_line
                method.stmts = func.stmts
                method.initializers = func.initializers or method.initializers
                method.params = func.params
                if func.doc and not method.doc:
                    method.doc = func.doc
                if func.exception_spec.can_throw or func.exception_spec.is_noexcept:
                    method.exception_spec = func.exception_spec
                return
        func.is_template = func.is_template and decl.template_text is None
        if not func.is_template:
            func.template_text = None
        decl.methods.append(func)
        self._record_member(decl, func.name)

    def _add_free_function(self, func: Function) -> None:
        """Add a free function; a definition replaces an earlier prototype."""
        for i, existing in enumerate(self.ir.functions):
            if existing.name != func.name or len(existing.params) != len(func.params):
                continue
            if existing.body is None and func.body is not None:
                if existing.doc and not func.doc:
                    func.doc = existing.doc
                self.ir.functions[i] = func
                return
            if func.body is None:
                return
        self.ir.add_function(func)

    # --- classes ---

    def _record_member(self, cls: ClassDecl, name: str) -> None:
        if not cls.access_sections or cls.access_sections[-1].level != self._access:
            cls.access_sections.append(AccessSection(self._access))
        members = cls.access_sections[-1].members
        if name not in members:
            members.append(name)

    def parse_class(self, head: re.Match[str], template_text: str | None, open_index: int, close: int, decl_start: int) -> ClassDecl:
        kind, name, spec_args, _, bases = head.groups()
        decl = ClassDecl(name=name, is_struct=kind != "class")
        decl.line = self.line_of(decl_start)
        decl.doc = self.doc_before(decl_start)
        if template_text is not None:
            decl.template_text = template_text
            decl.is_template = True
        if spec_args:
            args = split_top_level(spec_args.strip()[1:-1])
            decl.specialization = TemplateSpecialization(
                is_partial=template_text is not None and template_text.replace(" ", "") != "template<>",
                specialized_args=args,
            )
        if bases:
            for base in split_top_level(bases):
                words = [w for w in base.split() if w not in ("public", "protected", "private", "virtual")]
                if words:
                    decl.base_classes.append(" ".join(words))
        self.ir.add_class(decl)
        self.ir.register_type(name, StructRef(name=name) if decl.is_struct else ClassRef(name=name))
        if decl.is_struct:
            self.scope.structs.add(name)
        saved = self._access
        self._access = "public" if decl.is_struct else "private"
        self.parse_class_body(decl, open_index + 1, close)
        self._access = saved
        return decl

    def parse_class_body(self, decl: ClassDecl, start: int, end: int) -> None:
        text = self.text
        pos = start
        while True:
            pos = skip_ws(text, pos, end)
            if pos >= end:
                return
            if text[pos] in ";}":
                pos += 1
                continue
            m = _ACCESS_RE.match(text, pos)
            if m is not None:
                self._access = m.group(1)
                pos = m.end()
                continue
            new_pos = self.parse_declaration(pos, end, None, decl)
            pos = new_pos if new_pos > pos else pos + 1


def parse_string(source: str) -> IR:
    """Parse C++ source text into a fresh IR. Never raises on malformed input."""
    return Parser(source).parse()


def parse_file(path: str | Path) -> IR:
    """Read and parse a file; raises ReadError if it cannot be read as UTF-8."""
    try:
        source = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ReadError(str(path), "no such file") from None
    except UnicodeDecodeError as e:
        raise ReadError(str(path), "not valid UTF-8") from e
    except OSError as e:
        raise ReadError(str(path), e.strerror or str(e)) from e
    logger.debug("read %s (%d bytes)", path, len(source))
    return parse_string(source)
