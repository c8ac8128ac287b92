"""Backend base: the statement walker and lookups shared by both targets.

A backend reads each function's statement skeleton, turns every
SimpleStmt into an Op (see lower.py) and dispatches to per-target emit
methods. Block statements (if/else chains, loops, switch, try) are
regrouped here so the targets only see whole constructs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..frontend.parse import TypeScope, parse_type
from ..frontend.scan import find_matching, find_top_level, split_statements, split_top_level
from ..ir import (
    IR,
    VOID,
    Array,
    AsyncPrimitive,
    BlockStmt,
    ClassDecl,
    ClassRef,
    Container,
    Function,
    Pointer,
    Primitive,
    Reference,
    SimpleStmt,
    Stmt,
    StructRef,
    Type,
    Variable,
)
from ..middleend.exceptions import parse_catch
from ..middleend.templates import has_sfinae_pattern
from .lower import (
    Assign,
    Binary,
    Call,
    CaseOp,
    CoReturnOp,
    DeclOp,
    DeleteOp,
    Expr,
    ExprOp,
    Index,
    JumpOp,
    Lit,
    Member,
    Name,
    Op,
    PrintOp,
    ReturnOp,
    Ternary,
    ThrowOp,
    Unary,
    UnsupportedOp,
    YieldOp,
    contains_raw,
    read_expr,
    read_statement,
)
from .util import Emitter

INT = Primitive("integer", name="int", size_bytes=4, alignment=4)
DOUBLE = Primitive("float", name="double", size_bytes=8, alignment=8)
BOOL = Primitive("bool", name="bool", size_bytes=1, alignment=1)
STRING = Container(kind="string", name="std::string")

_COMPARISONS = {"==", "!=", "<", ">", "<=", ">=", "&&", "||"}

EXCEPTION_BASES = {
    "exception", "runtime_error", "logic_error", "invalid_argument", "out_of_range",
    "length_error", "domain_error", "overflow_error", "underflow_error", "range_error",
    "bad_alloc",
}


@dataclass
class EmitOptions:
    """Generation switches shared by both backends."""

    safety_checks: bool = True
    preserve_comments: bool = True
    module_name: str = "main"


# ============================================================
# BLOCK SHAPES
# ============================================================


@dataclass
class IfChain:
    """if / else if / else, flattened."""

    branches: list[tuple[str, list[Stmt]]] = field(default_factory=list)
    else_body: list[Stmt] | None = None


@dataclass
class ForHead:
    """Parsed for(...) header. kind is "range" or "classic"."""

    kind: str
    var: str = ""
    var_type: str = ""
    iterable: str = ""
    init: str = ""
    cond: str = ""
    step: str = ""


@dataclass
class SwitchCase:
    """One group of case labels; values is empty for default."""

    values: list[Expr] = field(default_factory=list)
    body: list[Stmt] = field(default_factory=list)
    is_default: bool = False


@dataclass
class CatchBlock:
    exception_type: str
    var: str
    body: list[Stmt]


def has_return(stmts: list[Stmt]) -> bool:
    """True if a return or co_return appears anywhere in stmts, lambdas excluded."""
    for stmt in stmts:
        if isinstance(stmt, SimpleStmt):
            if re.match(r"(co_)?return\b", stmt.text):
                return True
        elif isinstance(stmt, BlockStmt) and has_return(stmt.body):
            return True
    return False


def keyword_of(head: str) -> str:
    word = head.split("(", 1)[0].strip()
    return word.split()[0].rstrip(":") if word else ""


def paren_text(head: str) -> str:
    """Text inside the first balanced (...) of a block head."""
    open_index = head.find("(")
    if open_index < 0:
        return ""
    close = find_matching(head, open_index)
    if close < 0:
        return head[open_index + 1 :].strip()
    return head[open_index + 1 : close].strip()


def split_for_head(head: str) -> ForHead:
    inner = paren_text(head)
    parts = split_top_level(inner, ";")
    if len(parts) == 1 or ";" not in inner:
        colon = find_top_level(inner, ":")
        while colon >= 0 and inner[colon : colon + 2] == "::":
            nxt = find_top_level(inner[colon + 2 :], ":")
            colon = colon + 2 + nxt if nxt >= 0 else -1
        if colon >= 0:
            decl = inner[:colon].strip()
            iterable = inner[colon + 1 :].strip()
            bracket = decl.find("[")
            if bracket >= 0 and decl.endswith("]"):
                names = ", ".join(n.strip() for n in decl[bracket + 1 : -1].split(","))
                return ForHead(kind="range", var=names, var_type=decl[:bracket].strip(), iterable=iterable)
            m = re.search(r"([A-Za-z_]\w*)\s*$", decl)
            var = m.group(1) if m else decl
            var_type = decl[: m.start(1)].strip() if m else ""
            return ForHead(kind="range", var=var, var_type=var_type, iterable=iterable)
    pieces = inner.split(";")
    while len(pieces) < 3:
        pieces.append("")
    return ForHead(kind="classic", init=pieces[0].strip(), cond=pieces[1].strip(), step=";".join(pieces[2:]).strip())


def split_case_label(head: str) -> tuple[str, str]:
    """Split 'case X: rest' into ('case X', rest); rest may be a block head."""
    depth = 0
    i = 0
    while i < len(head):
        c = head[i]
        if c in "([":
            depth += 1
        elif c in ")]":
            depth -= 1
        elif c == ":" and depth == 0:
            if head[i + 1 : i + 2] == ":" or (i > 0 and head[i - 1] == ":"):
                i += 2 if head[i + 1 : i + 2] == ":" else 1
                continue
            return head[:i].strip(), head[i + 1 :].strip()
        i += 1
    return head.strip(), ""


def collect_cases(body: list[Stmt]) -> list[SwitchCase]:
    cases: list[SwitchCase] = []
    current: SwitchCase | None = None

    def start(label: str) -> SwitchCase:
        nonlocal current
        is_default = label.startswith("default")
        value = None if is_default else read_expr(label[len("case") :])
        if current is not None and not current.body:
            if value is not None:
                current.values.append(value)
            current.is_default = current.is_default or is_default
            return current
        current = SwitchCase(values=[value] if value is not None else [], is_default=is_default)
        cases.append(current)
        return current

    for stmt in body:
        if isinstance(stmt, BlockStmt) and keyword_of(stmt.head) in ("case", "default"):
            label, rest = split_case_label(stmt.head)
            group = start(label)
            if rest:
                group.body.append(BlockStmt(head=rest, body=stmt.body, line=stmt.line))
            else:
                group.body.extend(stmt.body)
            continue
        if isinstance(stmt, SimpleStmt) and keyword_of(stmt.text) in ("case", "default"):
            label, rest = split_case_label(stmt.text)
            group = start(label)
            if rest:
                group.body.append(SimpleStmt(text=rest, line=stmt.line))
            continue
        if current is None:
            continue
        current.body.append(stmt)
    for case in cases:
        # switch arms never fall through in either target
        for i, stmt in enumerate(case.body):
            if isinstance(stmt, SimpleStmt) and stmt.text == "break":
                del case.body[i:]
                break
    return cases


def is_coroutine_plumbing(decl: ClassDecl) -> bool:
    """Coroutine return-object classes (those defining promise_type)."""
    return decl.name == "promise_type" or "promise_type" in decl.nested


def coroutine_value_type(func: Function) -> Type:
    """Value a coroutine produces: the argument of its return object (Task -> void)."""
    ret = func.ret
    if isinstance(ret, ClassRef) and ret.args:
        return ret.args[0]
    if isinstance(ret, Primitive):
        return ret
    return VOID


def strip_indirection(typ: Type | None) -> Type | None:
    while isinstance(typ, (Pointer, Reference)):
        typ = typ.element
    return typ


# ============================================================
# BACKEND
# ============================================================


class Backend(Emitter):
    """Abstract base for RustBackend and GoBackend."""

    target = ""

    def __init__(self, ir: IR, options: EmitOptions | None = None, indent_str: str = "    ") -> None:
        super().__init__(indent_str)
        self.ir = ir
        self.options = options or EmitOptions()
        self.cls: ClassDecl | None = None
        self.func: Function | None = None
        self.scopes: list[dict[str, Type]] = []
        self.skipped: set[str] = {d.name for d in ir.classes if is_coroutine_plumbing(d)}
        self.classes: list[ClassDecl] = [d for d in ir.classes if d.name not in self.skipped]

    def emit(self) -> str:
        raise NotImplementedError

    # --- scopes ---

    def push_scope(self) -> None:
        self.scopes.append({})

    def pop_scope(self) -> None:
        self.scopes.pop()

    def declare(self, name: str, typ: Type) -> None:
        if self.scopes:
            self.scopes[-1][name] = typ

    def local_type(self, name: str) -> Type | None:
        for scope in reversed(self.scopes):
            if name in scope:
                return scope[name]
        return None

    def is_local(self, name: str) -> bool:
        return self.local_type(name) is not None

    def enter_function(self, func: Function, cls: ClassDecl | None) -> None:
        self.func = func
        self.cls = cls
        self.scopes = [{}]
        for param in func.params:
            if param.name:
                self.declare(param.name, param.typ)

    def leave_function(self) -> None:
        self.func = None
        self.scopes = []

    # --- class lookups ---

    def find_class(self, name: str) -> ClassDecl | None:
        name = name.split("<", 1)[0].strip()
        if name.startswith("std::"):
            return None
        if "::" in name:
            name = name.rsplit("::", 1)[-1]
        if name in self.skipped:
            return None
        return self.ir.find_class(name)

    def class_of_type(self, typ: Type | None) -> ClassDecl | None:
        typ = strip_indirection(typ)
        if isinstance(typ, ClassRef):
            return self.find_class(typ.base_name)
        if isinstance(typ, StructRef):
            return self.find_class(typ.name)
        return None

    def base_decls(self, decl: ClassDecl) -> list[ClassDecl]:
        result: list[ClassDecl] = []
        for name in decl.base_classes:
            base = self.find_class(name)
            if base is not None and base is not decl:
                result.append(base)
        return result

    def ancestors(self, decl: ClassDecl) -> list[ClassDecl]:
        seen: list[ClassDecl] = []
        stack = self.base_decls(decl)
        while stack:
            base = stack.pop(0)
            if base in seen or base is decl:
                continue
            seen.append(base)
            stack.extend(self.base_decls(base))
        return seen

    def introduces_virtuals(self, decl: ClassDecl) -> bool:
        """True when decl declares virtual methods of its own (becomes a trait/interface)."""
        own = [m for m in decl.virtual_methods if not m.is_override]
        inherited = {m.name for base in self.ancestors(decl) for m in base.virtual_methods}
        return any(m.name not in inherited for m in own)

    def interfaces_of(self, decl: ClassDecl) -> list[ClassDecl]:
        """Ancestors (and decl itself) that introduce virtual methods, nearest last."""
        chain = [b for b in reversed(self.ancestors(decl)) if self.introduces_virtuals(b)]
        if self.introduces_virtuals(decl):
            chain.append(decl)
        return chain

    def is_interface_class(self, decl: ClassDecl | None) -> bool:
        return decl is not None and self.introduces_virtuals(decl)

    def find_field(self, name: str, decl: ClassDecl | None = None) -> Variable | None:
        decl = decl or self.cls
        if decl is None:
            return None
        for candidate in [decl] + self.ancestors(decl):
            for var in candidate.fields:
                if var.name == name:
                    return var
        return None

    def field_owner(self, name: str, decl: ClassDecl | None = None) -> ClassDecl | None:
        decl = decl or self.cls
        if decl is None:
            return None
        for candidate in [decl] + self.ancestors(decl):
            if any(v.name == name for v in candidate.fields):
                return candidate
        return None

    def find_method(self, name: str, decl: ClassDecl | None = None) -> Function | None:
        decl = decl or self.cls
        if decl is None:
            return None
        for candidate in [decl] + self.ancestors(decl):
            method = candidate.find_method(name)
            if method is not None:
                return method
        return None

    def find_function(self, name: str) -> Function | None:
        for func in self.ir.functions:
            if func.name == name and func.body is not None:
                return func
        for func in self.ir.functions:
            if func.name == name:
                return func
        return None

    def find_global(self, name: str) -> Variable | None:
        for var in self.ir.global_vars:
            if var.name == name:
                return var
        return None

    def is_member_name(self, name: str) -> bool:
        """Bare name inside a method that refers to a field of the class."""
        return self.cls is not None and not self.is_local(name) and self.find_field(name) is not None

    def is_member_call(self, name: str) -> bool:
        return self.cls is not None and not self.is_local(name) and self.find_method(name) is not None

    # --- fallibility ---

    def is_fallible(self, func: Function | None) -> bool:
        """Function lowered to Result / (T, error)."""
        if func is None:
            return False
        spec = func.exception_spec
        return func.may_throw and spec.can_throw and not spec.is_noexcept

    def is_exception_class(self, decl: ClassDecl) -> bool:
        for name in decl.base_classes:
            if name.removeprefix("std::") in EXCEPTION_BASES:
                return True
        if any(decl.name in f.exception_spec.throw_types for f in self.ir.all_functions()):
            return True
        return any(self.is_exception_class(b) for b in self.base_decls(decl))

    def type_name(self, decl: ClassDecl) -> str:
        """Target name of a class; explicit specializations get their arguments appended."""
        args = decl.specialization.specialized_args
        if not args or decl.template_params:
            return decl.name
        suffix = "".join(re.sub(r"\W", "", a.removeprefix("std::")).capitalize() for a in args)
        return decl.name + suffix

    def call_target(self, call: Call) -> Function | None:
        """Function or method a call resolves to, if it is declared in the unit."""
        func = call.func
        if isinstance(func, Name):
            if len(func.parts) == 2:
                decl = self.find_class(func.parts[0])
                if decl is not None:
                    return decl.find_method(func.last)
            if self.is_member_call(func.last):
                return self.find_method(func.last)
            return self.find_function(func.last)
        if isinstance(func, Member):
            decl = self.class_of_type(self.type_of(func.obj))
            if decl is not None:
                return self.find_method(func.name, decl)
        return None

    def calls_fallible(self, expr: Expr) -> bool:
        return isinstance(expr, Call) and self.is_fallible(self.call_target(expr))

    def is_generator_call(self, expr: Expr) -> bool:
        if not isinstance(expr, Call):
            return False
        target = self.call_target(expr)
        return target is not None and target.coroutine.is_generator

    # --- light type inference ---

    def type_of(self, expr: Expr | None) -> Type | None:
        if expr is None:
            return None
        if isinstance(expr, Lit):
            if expr.kind == "str":
                return STRING
            if expr.kind == "bool":
                return BOOL
            if expr.kind == "num":
                text = expr.text.lower()
                is_float = ("." in text or "e" in text) and not text.startswith("0x")
                return DOUBLE if is_float else INT
            return None
        if isinstance(expr, Name):
            if len(expr.parts) == 1:
                name = expr.last
                if name == "this" and self.cls is not None:
                    return Pointer(element=ClassRef(name=self.cls.name))
                local = self.local_type(name)
                if local is not None:
                    return local
                var = self.find_field(name)
                if var is not None:
                    return var.typ
                var = self.find_global(name)
                return var.typ if var is not None else None
            return None
        if isinstance(expr, Member):
            decl = self.class_of_type(self.type_of(expr.obj))
            if decl is not None:
                var = self.find_field(expr.name, decl)
                return var.typ if var is not None else None
            return None
        if isinstance(expr, Call):
            if isinstance(expr.func, Member):
                owner = strip_indirection(self.type_of(expr.func.obj))
                if isinstance(owner, Container):
                    if expr.func.name in ("size", "length", "count"):
                        return INT
                    if expr.func.name in ("front", "back", "at", "top"):
                        return owner.element if owner.kind != "string" else None
                    if expr.func.name == "substr":
                        return STRING
                    if expr.func.name == "empty":
                        return BOOL
                if isinstance(owner, AsyncPrimitive) and expr.func.name == "get":
                    return owner.element
            target = self.call_target(expr)
            if target is not None and target.ret is not None:
                return target.ret
            if isinstance(expr.func, Name) and self.find_class(expr.func.last) is not None:
                return ClassRef(name=expr.func.last)
            if isinstance(expr.func, Name) and expr.func.last == "to_string":
                return STRING
            return None
        if isinstance(expr, Index):
            base = strip_indirection(self.type_of(expr.obj))
            if isinstance(base, Array):
                return base.element
            if isinstance(base, Container):
                if base.kind in ("map", "unordered_map"):
                    return base.value
                return base.element
            return None
        if isinstance(expr, Binary):
            if expr.op in _COMPARISONS:
                return BOOL
            left = self.type_of(expr.left)
            right = self.type_of(expr.right)
            if self.is_string(left) or self.is_string(right):
                return STRING
            if isinstance(right, Primitive) and right.kind == "float":
                return right
            return left
        if isinstance(expr, Unary):
            if expr.op == "!":
                return BOOL
            if expr.op == "*":
                inner = self.type_of(expr.operand)
                return inner.element if isinstance(inner, (Pointer, Reference)) else None
            return self.type_of(expr.operand)
        if isinstance(expr, Ternary):
            return self.type_of(expr.then) or self.type_of(expr.else_)
        if isinstance(expr, Assign):
            return self.type_of(expr.target)
        return None

    @staticmethod
    def is_string(typ: Type | None) -> bool:
        typ = strip_indirection(typ)
        return isinstance(typ, Container) and typ.kind == "string"

    def parse_local_type(self, text: str) -> Type:
        names: set[str] = set()
        for owner in (self.cls, self.func):
            if owner is not None and owner.template_params:
                names |= {p.name for p in owner.template_params}
        return parse_type(text, TypeScope(template_names=names))

    def template_names(self) -> set[str]:
        names: set[str] = set()
        for owner in (self.cls, self.func):
            if owner is not None:
                names |= {p.name for p in owner.template_params}
        return names

    # --- walker ---

    def emit_body(self, func: Function) -> None:
        stmts = func.stmts
        if not stmts and func.body:
            stmts = split_statements(func.body, func.body_line or func.line)
        self.emit_stmts(stmts)

    def emit_stmts(self, stmts: list[Stmt]) -> None:
        i = 0
        while i < len(stmts):
            i = self.emit_stmt_at(stmts, i)

    def emit_stmt_at(self, stmts: list[Stmt], i: int) -> int:
        """Emit stmts[i] (and any continuation blocks); return the next index."""
        stmt = stmts[i]
        if isinstance(stmt, SimpleStmt):
            self.emit_op(read_statement(stmt.text, self.template_names()), stmt)
            return i + 1
        if not isinstance(stmt, BlockStmt):
            raise NotImplementedError(f"{self.target} stmt: {type(stmt).__name__}")
        kw = keyword_of(stmt.head)
        if stmt.head == "":
            self.emit_bare_block(stmt.body)
            return i + 1
        if kw == "if":
            chain = IfChain(branches=[(paren_text(stmt.head), stmt.body)])
            j = i + 1
            while j < len(stmts) and isinstance(stmts[j], BlockStmt) and keyword_of(stmts[j].head) == "else":
                nxt = stmts[j]
                rest = nxt.head[len("else") :].strip()
                if keyword_of(rest) == "if":
                    chain.branches.append((paren_text(rest), nxt.body))
                    j += 1
                    continue
                chain.else_body = nxt.body
                j += 1
                break
            self.emit_if(chain)
            return j
        if kw == "while":
            self.emit_while(paren_text(stmt.head), stmt.body)
            return i + 1
        if kw == "do":
            if i + 1 < len(stmts) and isinstance(stmts[i + 1], SimpleStmt) and keyword_of(stmts[i + 1].text) == "while":
                self.emit_do_while(stmt.body, paren_text(stmts[i + 1].text))
                return i + 2
            self.emit_do_while(stmt.body, "true")
            return i + 1
        if kw == "for":
            head = split_for_head(stmt.head)
            if head.kind == "range":
                self.emit_range_for(head, stmt.body)
            else:
                self.emit_for(head, stmt.body)
            return i + 1
        if kw == "switch":
            self.emit_switch(paren_text(stmt.head), collect_cases(stmt.body))
            return i + 1
        if kw == "try":
            catches: list[CatchBlock] = []
            j = i + 1
            while j < len(stmts) and isinstance(stmts[j], BlockStmt) and keyword_of(stmts[j].head) == "catch":
                exc_type, var = parse_catch(paren_text(stmts[j].head))
                catches.append(CatchBlock(exc_type, var, stmts[j].body))
                j += 1
            self.emit_try(stmt.body, catches)
            return j
        self.emit_unsupported(stmt.head + " { ... }")
        return i + 1

    def emit_op(self, op: Op, stmt: SimpleStmt) -> None:
        if contains_raw(op):
            self.emit_unsupported(stmt.text)
            return
        if isinstance(op, DeclOp):
            self.emit_decl(op)
        elif isinstance(op, ExprOp):
            self.emit_expr_stmt(op.expr)
        elif isinstance(op, ReturnOp):
            self.emit_return(op.value)
        elif isinstance(op, ThrowOp):
            self.emit_throw(op.value)
        elif isinstance(op, PrintOp):
            self.emit_print(op)
        elif isinstance(op, JumpOp):
            self.line(f"{op.word}" + self.terminator)
        elif isinstance(op, YieldOp):
            self.emit_yield(op.value)
        elif isinstance(op, CoReturnOp):
            self.emit_co_return(op.value)
        elif isinstance(op, DeleteOp):
            self.emit_delete(op.target)
        elif isinstance(op, CaseOp):
            self.emit_unsupported(stmt.text)
        elif isinstance(op, UnsupportedOp):
            self.emit_unsupported(op.text)
        else:
            raise NotImplementedError(f"{self.target} stmt: {type(op).__name__}")

    terminator = ""

    def emit_nested(self, stmts: list[Stmt]) -> None:
        self.indent += 1
        self.push_scope()
        self.emit_stmts(stmts)
        self.pop_scope()
        self.indent -= 1

    def capture(self, stmts: list[Stmt], extra_indent: int = 1) -> list[str]:
        """Emit stmts into a detached buffer (lambda bodies)."""
        saved_lines, saved_indent = self.lines, self.indent
        self.lines = []
        self.indent = saved_indent + extra_indent
        self.push_scope()
        try:
            self.emit_stmts(stmts)
            return self.lines
        finally:
            self.pop_scope()
            self.lines, self.indent = saved_lines, saved_indent

    def emit_unsupported(self, text: str) -> None:
        self.line(f"// unsupported: {' '.join(text.split())}")

    def emit_doc(self, doc: str | None, prefix: str = "//") -> None:
        if not doc or not self.options.preserve_comments:
            return
        for text in doc.split("\n"):
            self.line(f"{prefix} {text}".rstrip())

    def emit_constraint_note(self, func: Function) -> None:
        """enable_if guards have no counterpart in either target; say so at the definition."""
        if self.options.preserve_comments and has_sfinae_pattern(func):
            self.line("// enable_if constraint from the C++ source is not enforced")

    # Hooks each target implements.

    def emit_if(self, chain: IfChain) -> None:
        raise NotImplementedError

    def emit_while(self, cond: str, body: list[Stmt]) -> None:
        raise NotImplementedError

    def emit_do_while(self, body: list[Stmt], cond: str) -> None:
        raise NotImplementedError

    def emit_for(self, head: ForHead, body: list[Stmt]) -> None:
        raise NotImplementedError

    def emit_range_for(self, head: ForHead, body: list[Stmt]) -> None:
        raise NotImplementedError

    def emit_switch(self, subject: str, cases: list[SwitchCase]) -> None:
        raise NotImplementedError

    def emit_try(self, body: list[Stmt], catches: list[CatchBlock]) -> None:
        raise NotImplementedError

    def emit_bare_block(self, body: list[Stmt]) -> None:
        raise NotImplementedError

    def emit_decl(self, op: DeclOp) -> None:
        raise NotImplementedError

    def emit_expr_stmt(self, expr: Expr) -> None:
        raise NotImplementedError

    def emit_return(self, value: Expr | None) -> None:
        raise NotImplementedError

    def emit_throw(self, value: Expr | None) -> None:
        raise NotImplementedError

    def emit_print(self, op: PrintOp) -> None:
        raise NotImplementedError

    def emit_yield(self, value: Expr) -> None:
        raise NotImplementedError

    def emit_co_return(self, value: Expr | None) -> None:
        raise NotImplementedError

    def emit_delete(self, target: Expr) -> None:
        raise NotImplementedError


def printf_to_placeholders(fmt: str, placeholder: str) -> str:
    """Replace printf conversions (%d, %5.2f, %s) with a target placeholder."""
    escaped = "%%" if placeholder.startswith("%") else "%"
    return re.sub(
        r"%[-+ #0]*\d*(?:\.\d+)?(?:hh|h|ll|l|z|j|t|L)?([diouxXeEfgGcsp%])",
        lambda m: escaped if m.group(1) == "%" else placeholder,
        fmt,
    )


def function_parts(typ: Type) -> tuple[str, str]:
    """(return text, parameter text) of a std::function<R(Args)> spelling."""
    m = re.search(r"<\s*(.*?)\s*\((.*)\)\s*>\s*$", typ.name)
    if m is None:
        return "void", ""
    return m.group(1), m.group(2)
