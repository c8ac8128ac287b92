"""GoBackend: IR -> Go (Target-Beta).

Classes become structs reached through pointers; a class introducing
virtual methods also becomes an interface, satisfied structurally by the
structs that embed its <Name>Base. Functions that may throw return
(T, error). Threads are goroutines joined through sync.WaitGroup, locks
are Lock plus defer Unlock, coroutines and futures are channels.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..frontend.parse import parse_params
from ..frontend.scan import find_matching, split_statements, split_top_level
from ..ir import (
    VOID,
    Array,
    AsyncPrimitive,
    BlockStmt,
    ClassDecl,
    ClassRef,
    Container,
    EnumRef,
    FuncType,
    Function,
    NonTypeParam,
    Pointer,
    Primitive,
    Reference,
    SimpleStmt,
    Stmt,
    StructRef,
    SyncPrimitive,
    TemplateParamRef,
    Type,
    Variable,
)
from ..middleend.templates import to_go_type_params
from .base import (
    Backend,
    CatchBlock,
    EmitOptions,
    ForHead,
    IfChain,
    SwitchCase,
    coroutine_value_type,
    function_parts,
    has_return,
    strip_indirection,
)
from .lower import (
    Assign,
    Binary,
    Call,
    Cast,
    DeclOp,
    Expr,
    Index,
    InitList,
    Lambda,
    Lit,
    Member,
    Name,
    New,
    PrintOp,
    Raw,
    Ternary,
    Unary,
    read_args,
    read_expr,
    read_statement,
)
from .util import go_to_camel, go_to_pascal

# Go operator precedence (higher number = tighter binding).
_GO_PREC: dict[str, int] = {
    "||": 1, "&&": 2,
    "==": 3, "!=": 3, "<": 3, "<=": 3, ">": 3, ">=": 3,
    "+": 4, "-": 4, "|": 4, "^": 4,
    "*": 5, "/": 5, "%": 5, "<<": 5, ">>": 5, "&": 5,
}

_INT_TYPES: dict[str, str] = {
    "char": "byte",
    "wchar_t": "rune",
    "char32_t": "rune",
    "signed char": "int8",
    "int8_t": "int8",
    "unsigned char": "uint8",
    "uint8_t": "uint8",
    "short": "int16",
    "short int": "int16",
    "int16_t": "int16",
    "unsigned short": "uint16",
    "uint16_t": "uint16",
    "char16_t": "uint16",
    "int": "int",
    "signed": "int",
    "signed int": "int",
    "int32_t": "int32",
    "unsigned": "uint",
    "unsigned int": "uint",
    "uint32_t": "uint32",
    "long": "int64",
    "long int": "int64",
    "long long": "int64",
    "long long int": "int64",
    "int64_t": "int64",
    "unsigned long": "uint64",
    "unsigned long int": "uint64",
    "unsigned long long": "uint64",
    "uint64_t": "uint64",
    "size_t": "int",
    "ptrdiff_t": "int",
}

# Go type -> sync/atomic type
_ATOMICS: dict[str, str] = {
    "int": "Int64",
    "int64": "Int64",
    "int32": "Int32",
    "uint": "Uint64",
    "uint64": "Uint64",
    "uint32": "Uint32",
    "bool": "Bool",
}

_MATH: dict[str, str] = {
    "sqrt": "Sqrt",
    "floor": "Floor",
    "ceil": "Ceil",
    "round": "Round",
    "sin": "Sin",
    "cos": "Cos",
    "tan": "Tan",
    "exp": "Exp",
    "log": "Log",
    "log10": "Log10",
    "log2": "Log2",
    "fabs": "Abs",
}

_DURATIONS: dict[str, str] = {
    "nanoseconds": "time.Nanosecond",
    "microseconds": "time.Microsecond",
    "milliseconds": "time.Millisecond",
    "seconds": "time.Second",
}

# Each entry: (prefix found in the emitted code, import path)
_IMPORTS: list[tuple[str, str]] = [
    ("cmp.", '"cmp"'),
    ("errors.", '"errors"'),
    ("fmt.", '"fmt"'),
    ("math.", '"math"'),
    ("os.", '"os"'),
    ("reflect.", '"reflect"'),
    ("runtime.", '"runtime"'),
    ("strings.", '"strings"'),
    ("sync.", '"sync"'),
    ("atomic.", '"sync/atomic"'),
    ("time.", '"time"'),
]

_STD_ERRORS = {
    "exception", "runtime_error", "logic_error", "invalid_argument", "out_of_range",
    "length_error", "domain_error", "overflow_error", "underflow_error", "range_error",
}


def _go_prec(op: str) -> int:
    return _GO_PREC.get(op, 6)


def _str_lit(text: str) -> str:
    """C++ string literal -> Go string literal."""
    m = re.match(r'^(?:u8|u|U|L)?(R?)"(.*)"$', text, re.DOTALL)
    if m is None:
        return text
    if m.group(1):
        inner = m.group(2)
        if inner.startswith("(") and inner.endswith(")"):
            inner = inner[1:-1]
        return f"`{inner}`"
    return f'"{m.group(2)}"'


def _num_lit(text: str) -> str:
    s = text.rstrip("uUlL")
    if s.lower().startswith(("0x", "0b")):
        return s
    if s.endswith(("f", "F")) and ("." in s or "e" in s.lower()):
        s = s[:-1]
    if s.endswith("."):
        s += "0"
    if s.startswith("."):
        s = "0" + s
    return s


def _go_format(fmt: str) -> str:
    """printf conversions Go's fmt does not accept, rewritten."""
    def fix(m: re.Match) -> str:
        verb = m.group(2)
        if verb in "iu":
            verb = "d"
        return f"%{m.group(1)}{verb}"

    return re.sub(r"%([-+ #0]*\d*(?:\.\d+)?)(?:hh|h|ll|l|z|j|t|L)?([diouxXeEfgGcsp])", fix, fmt)


def _mentions(stmts: list[Stmt], name: str) -> bool:
    pattern = re.compile(rf"\b{re.escape(name)}\b")
    for stmt in stmts:
        if isinstance(stmt, SimpleStmt) and pattern.search(stmt.text):
            return True
        if isinstance(stmt, BlockStmt) and (pattern.search(stmt.head) or _mentions(stmt.body, name)):
            return True
    return False


def _negate(value: str) -> str:
    call = re.match(r"[\w.]+\(", value)
    if re.fullmatch(r"[\w.]+", value) or (call and find_matching(value, call.end() - 1) == len(value) - 1):
        return f"-{value}"
    return f"-({value})"


@dataclass
class TryExit:
    """Variables that carry a return out of a try closure. value is "" when nothing is returned."""

    done: str
    value: str = ""
    ret: Type | None = None


class GoBackend(Backend):
    """Emit Go code from the IR."""

    target = "Go"
    terminator = ""

    def __init__(self, ir, options: EmitOptions | None = None) -> None:
        super().__init__(ir, options, "\t")
        self.err_modes: list[str] = []
        self.deref: set[str] = set()
        self.unlocks: list[list[str]] = []
        self.lock_of: dict[str, str] = {}
        self.catch_errs: list[str] = []
        self.init_lines: list[str] = []
        self.tmp_count = 0
        self.chan_name = ""
        self.try_exits: list[TryExit | None] = []
        self.lvalue = False

    def emit(self) -> str:
        self.lines = []
        self.indent = 0
        self.init_lines = []
        for var in self.ir.global_vars:
            self._emit_global(var)
        for decl in self.classes:
            self._emit_class(decl)
        if self.init_lines:
            self.line("func init() {")
            for text in self.init_lines:
                self.line("\t" + text)
            self.line("}")
            self.line("")
        for func in self.ir.functions:
            if func.body is None:
                continue
            self._emit_function(func)
        body = self.output().strip("\n")
        self.lines = []
        helpers = self._needed_helpers(body)
        self._emit_header(body + "\n".join(source for _, source in helpers))
        for _, source in helpers:
            for text in source.split("\n"):
                self.lines.append(text)
            self.line("")
        return self.output() + "\n" + body + "\n"

    def package_name(self) -> str:
        if any(f.name == "main" and f.body is not None for f in self.ir.functions):
            return "main"
        name = re.sub(r"\W", "", self.options.module_name.lower())
        return name or "main"

    def _emit_header(self, code: str) -> None:
        if self.options.preserve_comments:
            self.line(f"// Code generated by hybrid-transpiler from {self.options.module_name}. DO NOT EDIT.")
            self.line("")
        self.line(f"package {self.package_name()}")
        self.line("")
        imports = [path for prefix, path in _IMPORTS if re.search(r"(?<![\w.])" + re.escape(prefix), code)]
        if len(imports) == 1:
            self.line(f"import {imports[0]}")
            self.line("")
        elif imports:
            self.line("import (")
            self.indent += 1
            for path in imports:
                self.line(path)
            self.indent -= 1
            self.line(")")
            self.line("")

    # Each helper: (trigger substring, Go source)
    _HELPERS: list[tuple[str, str]] = [
        (
            "_ternary(",
            """func _ternary[T any](cond bool, a T, b T) T {
	if cond {
		return a
	}
	return b
}""",
        ),
        (
            "_spawn(",
            """func _spawn(f func()) *sync.WaitGroup {
	wg := &sync.WaitGroup{}
	wg.Add(1)
	go func() {
		defer wg.Done()
		f()
	}()
	return wg
}""",
        ),
        (
            "_async(",
            """func _async[T any](f func() T) chan T {
	ch := make(chan T, 1)
	go func() {
		ch <- f()
	}()
	return ch
}""",
        ),
        (
            "Pair[",
            """type Pair[K any, V any] struct {
	First  K
	Second V
}""",
        ),
        (
            "_makePair(",
            """func _makePair[K any, V any](first K, second V) Pair[K, V] {
	return Pair[K, V]{first, second}
}""",
        ),
        (
            "_count(",
            """func _count[K comparable, V any](m map[K]V, key K) int {
	if _, ok := m[key]; ok {
		return 1
	}
	return 0
}""",
        ),
        (
            "_repeat(",
            """func _repeat[T any](n int, value T) []T {
	result := make([]T, n)
	for i := range result {
		result[i] = value
	}
	return result
}""",
        ),
        (
            "_ptr(",
            """func _ptr[T any](value T) *T {
	return &value
}""",
        ),
        (
            "_as[",
            """func _as[T any](value any) T {
	result, _ := value.(T)
	return result
}""",
        ),
        (
            "_asError[",
            """func _asError[T error](err error) (T, bool) {
	var target T
	ok := errors.As(err, &target)
	return target, ok
}""",
        ),
        (
            "_abs(",
            """func _abs[T ~int | ~int8 | ~int16 | ~int32 | ~int64 | ~float32 | ~float64](v T) T {
	if v < 0 {
		return -v
	}
	return v
}""",
        ),
        (
            "_postInc(",
            """func _postInc[T ~int | ~int8 | ~int16 | ~int32 | ~int64 | ~uint | ~uint8 | ~uint16 | ~uint32 | ~uint64](p *T) T {
	old := *p
	*p++
	return old
}""",
        ),
        (
            "_postDec(",
            """func _postDec[T ~int | ~int8 | ~int16 | ~int32 | ~int64 | ~uint | ~uint8 | ~uint16 | ~uint32 | ~uint64](p *T) T {
	old := *p
	*p--
	return old
}""",
        ),
    ]

    def _needed_helpers(self, body: str) -> list[tuple[str, str]]:
        """Helpers referenced by body, or by other needed helpers."""
        needed: set[str] = set()
        text = body
        changed = True
        while changed:
            changed = False
            for trigger, source in self._HELPERS:
                if trigger not in needed and trigger in text:
                    needed.add(trigger)
                    text += "\n" + source
                    changed = True
        return [(t, s) for t, s in self._HELPERS if t in needed]

    # ── naming ───────────────────────────────────────────────

    def local(self, name: str) -> str:
        if name == "self":
            return "self_"
        return go_to_camel(name) or "_"

    def func_name(self, func: Function) -> str:
        if func.name == "main":
            return "main"
        return go_to_pascal(func.name)

    def global_name(self, var: Variable, owner: ClassDecl | None = None) -> str:
        if owner is not None:
            return go_to_pascal(owner.name) + go_to_pascal(var.name)
        if var.is_const or var.typ.is_const:
            return go_to_pascal(var.name)
        return go_to_camel(var.name)

    def _introducer(self, decl: ClassDecl, name: str) -> ClassDecl:
        """Class whose access decides the Go name of method name."""
        owner = decl
        for candidate in [decl] + self.ancestors(decl):
            if candidate.find_method(name) is not None:
                owner = candidate
        return owner

    def method_name(self, decl: ClassDecl | None, name: str) -> str:
        if name == "what":
            return "What"
        if decl is None:
            return go_to_pascal(name)
        owner = self._introducer(decl, name)
        if owner.find_method(name) is None:
            return go_to_pascal(name)
        if owner.access_of(name) == "public":
            return go_to_pascal(name)
        return go_to_camel(name)

    def _method_names(self, decl: ClassDecl) -> set[str]:
        names: set[str] = set()
        for candidate in [decl] + self.ancestors(decl):
            for method in candidate.methods:
                if not method.is_constructor and not method.is_destructor:
                    names.add(self.method_name(candidate, method.name))
        return names

    def field_name(self, decl: ClassDecl | None, name: str) -> str:
        owner = self.field_owner(name, decl) if decl is not None else None
        if owner is None:
            owner = next((c for c in self.classes if any(f.name == name for f in c.fields)), None)
        if owner is None:
            return go_to_pascal(name)
        base = go_to_pascal(name) if owner.access_of(name) == "public" else go_to_camel(name)
        methods = self._method_names(owner)
        if base in methods:
            base = go_to_camel(name)
        if base in methods:
            base += "Val"
        return base

    def member_name(self, decl: ClassDecl | None, name: str) -> str:
        """Go name of a field reached through an object of class decl."""
        if decl is None:
            decl = next((c for c in self.classes if any(f.name == name for f in c.fields)), None)
        return self.field_name(decl, name)

    # ── types ────────────────────────────────────────────────

    def gtype(self, typ: Type | None) -> str:
        if typ is None:
            return "any"
        if isinstance(typ, Primitive):
            if typ.kind == "void":
                return ""
            if typ.kind == "bool":
                return "bool"
            if typ.kind == "float":
                return "float32" if typ.name == "float" else "float64"
            return _INT_TYPES.get(typ.name, "int")
        if isinstance(typ, Pointer):
            elem = typ.element
            if isinstance(elem, Primitive) and elem.name == "char":
                return "string"
            decl = self.class_of_type(elem)
            if decl is not None or isinstance(elem, (ClassRef, TemplateParamRef)):
                return self.gtype(elem)
            return f"*{self.gtype(elem)}"
        if isinstance(typ, Reference):
            elem = typ.element
            if not elem.is_const and not typ.is_rvalue and isinstance(elem, Primitive):
                return f"*{self.gtype(elem)}"
            return self.gtype(elem)
        if isinstance(typ, Array):
            if typ.size and typ.size.isdigit():
                return f"[{typ.size}]{self.gtype(typ.element)}"
            return f"[]{self.gtype(typ.element)}"
        if isinstance(typ, TemplateParamRef):
            return typ.name if typ.name in self.type_names() else "any"
        if isinstance(typ, (StructRef, EnumRef)):
            decl = self.find_class(typ.name)
            if decl is not None:
                return f"*{self.type_name(decl)}"
            return "int" if isinstance(typ, EnumRef) else go_to_pascal(typ.name)
        if isinstance(typ, ClassRef):
            if typ.base_name == "auto":
                return ""
            decl = self.find_class(typ.base_name)
            args = [a for a in typ.args]
            targs = f"[{', '.join(self.gtype(a) for a in args)}]" if args else ""
            if decl is not None:
                if self.introduces_virtuals(decl):
                    return decl.name
                return f"*{self.type_name(decl)}{targs}"
            name = typ.base_name.split("::")[-1]
            if name in self.type_names():
                return name
            return go_to_pascal(name) + targs
        if isinstance(typ, FuncType):
            ret, params = function_parts(typ)
            param_types = ", ".join(self.gtype(p.typ) for p in parse_params(params))
            ret_type = self.gtype(self.parse_local_type(ret))
            return f"func({param_types}) {ret_type}".rstrip()
        if isinstance(typ, Container):
            return self._container_type(typ)
        if isinstance(typ, SyncPrimitive):
            if typ.kind == "thread":
                return "*sync.WaitGroup"
            if typ.kind == "shared_mutex":
                return "sync.RWMutex"
            if typ.kind in ("mutex", "recursive_mutex", "timed_mutex"):
                return "sync.Mutex"
            if typ.kind == "atomic":
                return f"atomic.{self._atomic_kind(typ.element)}"
            if typ.kind == "condition_variable":
                return "*sync.Cond"
            return ""
        if isinstance(typ, AsyncPrimitive):
            value = self.gtype(typ.element) if typ.element is not None else ""
            return f"chan {value or 'struct{}'}"
        raise NotImplementedError(f"Go type: {typ}")

    def _container_type(self, typ: Container) -> str:
        if typ.kind == "string":
            return "string"
        elem = self.gtype(typ.element)
        if typ.kind == "pair":
            return f"Pair[{elem}, {self.gtype(typ.value)}]"
        if typ.kind == "optional":
            return elem if elem.startswith("*") else f"*{elem}"
        if typ.kind in ("map", "unordered_map"):
            return f"map[{elem}]{self.gtype(typ.value)}"
        if typ.kind in ("set", "unordered_set"):
            return f"map[{elem}]struct{{}}"
        return f"[]{elem}"

    def _atomic_kind(self, element: Type | None) -> str:
        return _ATOMICS.get(self.gtype(element) if element is not None else "int", "Int64")

    def type_names(self) -> set[str]:
        names: set[str] = set()
        for owner in (self.cls, self.func):
            if owner is not None:
                names |= {p.name for p in owner.template_params if not isinstance(p, NonTypeParam)}
        return names

    def zero(self, typ: Type | None) -> str:
        """Zero value literal of typ."""
        text = self.gtype(typ)
        if text in ("", "any"):
            return "nil"
        if text == "bool":
            return "false"
        if text == "string":
            return '""'
        if text in _INT_TYPES.values() or text in ("float32", "float64"):
            return "0"
        if text.startswith(("*", "[]", "map[", "chan ", "func(")) or self.is_interface_class(self.class_of_type(typ)):
            return "nil"
        if text in self.type_names():
            return f"*new({text})"
        return f"{text}{{}}"

    def init_value(self, typ: Type) -> str | None:
        """Value a declaration without initializer needs; None when the zero value will do."""
        if isinstance(typ, Reference):
            return None
        if isinstance(typ, Container) and typ.kind in ("map", "unordered_map", "set", "unordered_set"):
            return f"make({self.gtype(typ)})"
        if isinstance(typ, AsyncPrimitive):
            return f"make({self.gtype(typ)}, 1)"
        if isinstance(typ, (ClassRef, StructRef)):
            decl = self.class_of_type(typ)
            if decl is not None and not self.introduces_virtuals(decl):
                return self._new_call(decl, [], typ)
        return None

    # ── globals ──────────────────────────────────────────────

    def _emit_global(self, var: Variable, owner: ClassDecl | None = None) -> None:
        name = self.global_name(var, owner)
        typ = var.typ
        if isinstance(typ, SyncPrimitive):
            if typ.kind == "condition_variable":
                mutex = self._first_global_mutex(owner)
                self.line(f"var {name} = sync.NewCond(&{mutex})" if mutex else f"var {name} = sync.NewCond(&sync.Mutex{{}})")
            else:
                self.line(f"var {name} {self.gtype(typ)}")
                args = self._initializer_args(var) if typ.kind == "atomic" else []
                if args:
                    self.init_lines.append(f"{name}.Store({self._atomic_arg(args[0], typ)})")
            self.line("")
            return
        if var.initializer:
            value = self._initializer(typ, var.initializer)
        else:
            value = self.init_value(typ)
        is_const = var.is_const or typ.is_const
        simple = isinstance(typ, Primitive) or self.is_string(typ) or (
            isinstance(typ, Pointer) and isinstance(typ.element, Primitive) and typ.element.name == "char"
        )
        if is_const and simple and value is not None:
            self.line(f"const {name} {self.gtype(typ)} = {value}")
        elif value is not None:
            self.line(f"var {name} {self.gtype(typ)} = {value}")
        else:
            self.line(f"var {name} {self.gtype(typ)}")
        self.line("")

    def _first_global_mutex(self, owner: ClassDecl | None) -> str:
        pool = [f for f in owner.fields if f.is_static] if owner is not None else self.ir.global_vars
        for var in pool:
            if isinstance(var.typ, SyncPrimitive) and var.typ.kind in ("mutex", "recursive_mutex", "timed_mutex"):
                return self.global_name(var, owner)
        return ""

    def _initializer_args(self, var: Variable) -> list[Expr]:
        text = (var.initializer or "").strip()
        if text.startswith("{") and text.endswith("}"):
            return read_args(text[1:-1])
        return [read_expr(text)] if text else []

    def _initializer(self, typ: Type, text: str) -> str:
        text = text.strip()
        if text.startswith("{") and text.endswith("}"):
            return self._construct(typ, read_args(text[1:-1]), brace=True)
        return self.coerce(read_expr(text), typ)

    # ── classes ──────────────────────────────────────────────

    def struct_name(self, decl: ClassDecl) -> str:
        if self.introduces_virtuals(decl):
            return decl.name + "Base"
        return self.type_name(decl)

    def _type_params(self, decl: ClassDecl) -> tuple[str, str]:
        """(declaration type parameters, type arguments) of a class."""
        params = to_go_type_params(decl.template_params)
        if not params:
            return "", ""
        names = [p.name for p in decl.template_params if not isinstance(p, NonTypeParam)]
        return params, f"[{', '.join(names)}]"

    def _emit_class(self, decl: ClassDecl) -> None:
        self.cls = decl
        self.emit_doc(decl.doc)
        if self.introduces_virtuals(decl):
            self._emit_interface(decl)
        self._emit_struct(decl)
        ctors = [m for m in decl.methods if m.is_constructor]
        if not ctors:
            self._emit_constructor(decl, Function(name=decl.name, body="", is_constructor=True), 1)
        for i, ctor in enumerate(ctors):
            self._emit_constructor(decl, ctor, i + 1)
        for method in decl.methods:
            if method.is_constructor or method.is_pure_virtual:
                continue
            if method.is_destructor:
                if method.body is not None:
                    self._emit_method(decl, method, "Close")
                continue
            self._emit_method(decl, method)
        if self.is_exception_class(decl) and decl.find_method("what") is None and not any(
            self.is_exception_class(b) for b in self.base_decls(decl)
        ):
            _, args = self._type_params(decl)
            self.line(f"func (self *{self.struct_name(decl)}{args}) Error() string {{")
            self.line("\treturn self.message")
            self.line("}")
            self.line("")
        elif self.is_exception_class(decl) and decl.find_method("what") is not None:
            _, args = self._type_params(decl)
            self.line(f"func (self *{self.struct_name(decl)}{args}) Error() string {{")
            self.line("\treturn self.What()")
            self.line("}")
            self.line("")
        self.cls = None

    def _interface_methods(self, decl: ClassDecl) -> list[Function]:
        inherited = {m.name for base in self.ancestors(decl) for m in base.methods}
        seen: set[str] = set()
        result: list[Function] = []
        for method in decl.methods:
            if method.is_constructor or method.is_destructor or method.is_static:
                continue
            if not method.is_polymorphic and decl.access_of(method.name) != "public":
                continue
            if method.name in inherited or method.name in seen:
                continue
            seen.add(method.name)
            result.append(method)
        return result

    def _emit_interface(self, decl: ClassDecl) -> None:
        self.line(f"type {decl.name} interface {{")
        self.indent += 1
        for base in self.base_decls(decl):
            if self.interfaces_of(base):
                self.line(base.name)
        for method in self._interface_methods(decl):
            self.emit_doc(method.doc)
            self.line(f"{self.method_name(decl, method.name)}{self._signature_tail(method)}")
        self.indent -= 1
        self.line("}")
        self.line("")

    def _emit_struct(self, decl: ClassDecl) -> None:
        params, _ = self._type_params(decl)
        self.line(f"type {self.struct_name(decl)}{params} struct {{")
        self.indent += 1
        for base in self.base_decls(decl):
            self.line(f"*{self.struct_name(base)}")
        if self.is_exception_class(decl) and not any(self.is_exception_class(b) for b in self.base_decls(decl)):
            if not any(f.name == "message" for f in decl.fields):
                self.line("message string")
        for var in decl.fields:
            if var.is_static:
                continue
            self.line(f"{self.field_name(decl, var.name)} {self.gtype(var.typ)}")
        self.indent -= 1
        self.line("}")
        self.line("")
        for var in decl.fields:
            if var.is_static:
                self._emit_global(var, decl)

    def _signature_tail(self, func: Function) -> str:
        """(params) results."""
        params = ", ".join(self._param(func, i) for i in range(len(func.params)))
        return f"({params}){self._results(func)}"

    def _param(self, func: Function, index: int) -> str:
        param = func.params[index]
        name = self.local(param.name) if param.name else "_"
        return f"{name} {self.gtype(param.typ)}"

    def _value_type(self, func: Function) -> str:
        if func.coroutine.is_coroutine:
            value = self.gtype(coroutine_value_type(func))
            return f"<-chan {value or 'struct{}'}"
        if func.name == "main" and self.cls is None:
            return ""
        return self.gtype(func.ret) if func.ret is not None else ""

    def _returns_error(self, func: Function) -> bool:
        if func.coroutine.is_coroutine or (func.name == "main" and self.cls is None):
            return False
        return self.is_fallible(func)

    def _results(self, func: Function) -> str:
        value = self._value_type(func)
        if self._returns_error(func):
            return f" ({value}, error)" if value else " error"
        return f" {value}" if value else ""

    def _emit_function(self, func: Function) -> None:
        self.emit_doc(func.doc)
        self.emit_constraint_note(func)
        generics = to_go_type_params(func.template_params)
        self.func = func
        self.line(f"func {self.func_name(func)}{generics}{self._signature_tail(func)} {{")
        self._emit_fn_body(func, None)
        self.line("}")
        self.line("")

    def _emit_method(self, decl: ClassDecl, method: Function, name: str | None = None) -> None:
        params, args = self._type_params(decl)
        self.func = method
        self.emit_doc(method.doc)
        self.emit_constraint_note(method)
        struct = self.struct_name(decl)
        if method.is_static:
            head = f"func {go_to_pascal(decl.name)}{go_to_pascal(method.name)}{params}"
        else:
            head = f"func (self *{struct}{args}) {name or self.method_name(decl, method.name)}"
        self.line(f"{head}{self._signature_tail(method)} {{")
        if method.body is None:
            self.line(f'\tpanic("{decl.name}::{method.name} has no definition")')
        else:
            self._emit_fn_body(method, decl)
        self.line("}")
        self.line("")

    def _constructor_name(self, decl: ClassDecl, index: int) -> str:
        return f"New{self.struct_name(decl)}" + (str(index) if index > 1 else "")

    def _emit_constructor(self, decl: ClassDecl, ctor: Function, index: int) -> None:
        params, args = self._type_params(decl)
        struct = f"*{self.struct_name(decl)}{args}"
        fallible = self.is_fallible(ctor)
        results = f"({struct}, error)" if fallible else struct
        self.emit_doc(ctor.doc)
        plist = ", ".join(self._param(ctor, i) for i in range(len(ctor.params)))
        self.line(f"func {self._constructor_name(decl, index)}{params}({plist}) {results} {{")
        saved = self._save()
        self.enter_function(ctor, decl)
        self._reset_function_state("ctor" if fallible else "panic")
        self.indent += 1
        self._prologue(ctor)
        self.line(f"self := &{self.struct_name(decl)}{args}{{}}")
        inits = dict(ctor.initializers)
        for base in self.base_decls(decl):
            base_args: list[Expr] = []
            for key, value in inits.items():
                if key.split("<", 1)[0] == base.name:
                    base_args = read_args(value)
            self.line(f"self.{self.struct_name(base)} = {self._new_call(base, base_args, None)}")
        if self.is_exception_class(decl):
            for key, value in inits.items():
                if key.removeprefix("std::") in _STD_ERRORS:
                    self.line(f"self.message = {self.expr(read_expr(value))}")
        self._emit_field_inits(decl, inits)
        stmts = list(ctor.stmts)
        if not stmts and ctor.body:
            stmts = split_statements(ctor.body, ctor.body_line or ctor.line)
        self.emit_stmts(stmts)
        self.line("return self, nil" if fallible else "return self")
        self.indent -= 1
        self.line("}")
        self.line("")
        self._restore(saved)

    def _emit_field_inits(self, decl: ClassDecl, inits: dict[str, str]) -> None:
        channels: dict[str, str] = {}
        promises = [f for f in decl.fields if isinstance(f.typ, AsyncPrimitive) and f.typ.kind == "promise"]
        futures = [f for f in decl.fields if isinstance(f.typ, AsyncPrimitive) and f.typ.kind in ("future", "shared_future")]
        for promise in promises:
            partner = next((f for f in futures if f.name in inits and promise.name in inits[f.name]), None)
            if partner is None and futures:
                partner = futures[0]
            if partner is not None:
                futures.remove(partner)
                channels[partner.name] = f"self.{self.field_name(decl, promise.name)}"
        for var in decl.fields:
            if var.is_static:
                continue
            target = f"self.{self.field_name(decl, var.name)}"
            typ = var.typ
            if var.name in channels:
                self.line(f"{target} = {channels[var.name]}")
                continue
            args: list[Expr] | None = None
            if var.name in inits:
                args = read_args(inits[var.name])
            elif var.initializer:
                args = self._initializer_args(var)
            if isinstance(typ, SyncPrimitive):
                if typ.kind == "atomic" and args:
                    self.line(f"{target}.Store({self._atomic_arg(args[0], typ)})")
                elif typ.kind == "condition_variable":
                    mutex = next(
                        (f for f in decl.fields if isinstance(f.typ, SyncPrimitive) and f.typ.kind in ("mutex", "recursive_mutex", "timed_mutex") and not f.is_static),
                        None,
                    )
                    lock = f"&self.{self.field_name(decl, mutex.name)}" if mutex is not None else "&sync.Mutex{}"
                    self.line(f"{target} = sync.NewCond({lock})")
                continue
            if args is not None:
                brace = var.initializer is not None and var.initializer.strip().startswith("{") and var.name not in inits
                if len(args) == 1 and not brace and self.class_of_type(typ) is None:
                    self.line(f"{target} = {self.coerce(args[0], typ)}")
                else:
                    self.line(f"{target} = {self._construct(typ, args, brace=brace)}")
                continue
            value = self.init_value(typ)
            if value is not None:
                self.line(f"{target} = {value}")

    # ── function bodies ──────────────────────────────────────

    def _save(self) -> tuple:
        return (
            self.func, self.cls, self.scopes, self.err_modes, self.deref, self.unlocks,
            self.lock_of, self.catch_errs, self.tmp_count, self.chan_name, self.try_exits,
        )

    def _restore(self, saved: tuple) -> None:
        (
            self.func, self.cls, self.scopes, self.err_modes, self.deref, self.unlocks,
            self.lock_of, self.catch_errs, self.tmp_count, self.chan_name, self.try_exits,
        ) = saved

    def _reset_function_state(self, mode: str) -> None:
        self.err_modes = [mode]
        self.deref = set()
        self.unlocks = []
        self.lock_of = {}
        self.catch_errs = []
        self.tmp_count = 0
        self.chan_name = ""
        self.try_exits = []
        for param in self.func.params:
            if isinstance(param.typ, Reference) and self.gtype(param.typ).startswith("*") and param.name:
                if isinstance(param.typ.element, Primitive):
                    self.deref.add(param.name)

    def _prologue(self, func: Function) -> None:
        if not self.options.safety_checks:
            return
        for param in func.params:
            if not param.name or not isinstance(param.typ, Pointer):
                continue
            elem = param.typ.element
            if isinstance(elem, Primitive) and elem.name == "char":
                continue
            name = self.local(param.name)
            self.line(f"if {name} == nil {{")
            self.line(f'\tpanic("{param.name} must not be null")')
            self.line("}")

    def _emit_fn_body(self, func: Function, decl: ClassDecl | None) -> None:
        saved = self._save()
        self.enter_function(func, decl)
        fallible = self._returns_error(func)
        self._reset_function_state("func" if fallible else "panic")
        self.indent += 1
        self._prologue(func)
        stmts = list(func.stmts)
        if not stmts and func.body:
            stmts = split_statements(func.body, func.body_line or func.line)
        if func.name == "main" and decl is None and stmts:
            last = stmts[-1]
            if isinstance(last, SimpleStmt) and re.fullmatch(r"return\s+0|return", last.text):
                stmts = stmts[:-1]
        if func.coroutine.is_coroutine:
            value = self.gtype(coroutine_value_type(func)) or "struct{}"
            buffered = "" if func.coroutine.is_generator else ", 1"
            self.line(f"ch := make(chan {value}{buffered})")
            self.line("go func() {")
            self.indent += 1
            self.line("defer close(ch)")
            self.chan_name = "ch"
            self.err_modes = ["panic"]
            self.emit_stmts(stmts)
            self.indent -= 1
            self.line("}()")
            self.line("return ch")
        else:
            self.emit_stmts(stmts)
            if not self._ends_with_exit(stmts):
                if self._value_type(func):
                    self.line('panic("unreachable")')
                elif fallible:
                    self.line("return nil")
        self.indent -= 1
        self._restore(saved)

    @staticmethod
    def _ends_with_exit(stmts: list[Stmt]) -> bool:
        if not stmts:
            return False
        last = stmts[-1]
        return isinstance(last, SimpleStmt) and bool(re.match(r"(return|throw|co_return)\b", last.text))

    def emit_nested(self, stmts: list[Stmt]) -> None:
        self.indent += 1
        self.push_scope()
        self.unlocks.append([])
        self.emit_stmts(stmts)
        for text in reversed(self.unlocks.pop()):
            self.line(text)
        self.pop_scope()
        self.indent -= 1

    def capture(self, stmts: list[Stmt], extra_indent: int = 1) -> list[str]:
        saved_unlocks, saved_deref = self.unlocks, self.deref
        self.unlocks = []
        try:
            return super().capture(stmts, extra_indent)
        finally:
            self.unlocks, self.deref = saved_unlocks, saved_deref

    # ── errors ───────────────────────────────────────────────

    def _fail(self, error: str) -> None:
        """Leave the current context with error."""
        mode = self.err_modes[-1]
        if mode == "try":
            self.line(f"return {error}")
        elif mode == "ctor":
            self.line(f"return nil, {error}")
        elif mode == "func":
            value = self._value_type(self.func)
            self.line(f"return {self.zero(self.func.ret)}, {error}" if value else f"return {error}")
        else:
            self.line(f"panic({error})")

    def _check_err(self) -> None:
        self.line("if err != nil {")
        self.indent += 1
        self._fail("err")
        self.indent -= 1
        self.line("}")

    def _hoist(self, call_text: str, target: Function) -> str:
        """Run a fallible call ahead of the current statement; return its value."""
        if not self._value_type(target):
            self.line(f"if err := {call_text}; err != nil {{")
            self.indent += 1
            self._fail("err")
            self.indent -= 1
            self.line("}")
            return ""
        self.tmp_count += 1
        tmp = f"tmp{self.tmp_count}"
        self.line(f"{tmp}, err := {call_text}")
        self._check_err()
        return tmp

    # ── statements ───────────────────────────────────────────

    def emit_if(self, chain: IfChain) -> None:
        conds = [self.cond(read_expr(cond)) for cond, _ in chain.branches[:1]]
        self.line(f"if {conds[0]} {{")
        self.emit_nested(chain.branches[0][1])
        for cond, body in chain.branches[1:]:
            self.line(f"}} else if {self.cond(read_expr(cond))} {{")
            self.emit_nested(body)
        if chain.else_body is not None:
            self.line("} else {")
            self.emit_nested(chain.else_body)
        self.line("}")

    def emit_while(self, cond: str, body: list[Stmt]) -> None:
        text = self.cond(read_expr(cond))
        self.line("for {" if text == "true" else f"for {text} {{")
        self.emit_nested(body)
        self.line("}")

    def emit_do_while(self, body: list[Stmt], cond: str) -> None:
        self.line("for {")
        self.emit_nested(body)
        text = self.cond(read_expr(cond))
        if text != "true":
            self.line(f"\tif !({text}) {{")
            self.line("\t\tbreak")
            self.line("\t}")
        self.line("}")

    def emit_for(self, head: ForHead, body: list[Stmt]) -> None:
        self.push_scope()
        init = self._for_init(head.init) if head.init else ""
        cond = self.cond(read_expr(head.cond)) if head.cond else ""
        steps = [self._statement_expr(read_expr(s)) for s in split_top_level(head.step)] if head.step else []
        if init is not None and len(steps) <= 1 and all("\n" not in s for s in steps):
            step = steps[0] if steps else ""
            if not init and not step:
                self.line(f"for {cond} {{" if cond else "for {")
            else:
                self.line(f"for {init}; {cond}; {step} {{")
            self.emit_nested(body)
            self.line("}")
            self.pop_scope()
            return
        self.line("{")
        self.indent += 1
        self.emit_op(read_statement(head.init, self.template_names()), SimpleStmt(text=head.init))
        self.line(f"for {cond} {{" if cond else "for {")
        self.emit_nested(body)
        for step in steps:
            self.line("\t" + step)
        self.line("}")
        self.indent -= 1
        self.line("}")
        self.pop_scope()

    def _for_init(self, text: str) -> str | None:
        """Init clause as one Go simple statement, or None."""
        op = read_statement(text, self.template_names())
        if isinstance(op, DeclOp) and op.init is not None and "," not in text:
            self.declare(op.name, op.typ)
            return f"{self.local(op.name)} := {self.coerce(op.init, op.typ)}"
        lines = self.capture([SimpleStmt(text=text)], 0)
        if len(lines) == 1:
            return lines[0].strip()
        return None

    def emit_range_for(self, head: ForHead, body: list[Stmt]) -> None:
        iterable_expr = read_expr(head.iterable)
        iterable = self.expr(iterable_expr)
        typ = strip_indirection(self.type_of(iterable_expr))
        names = [v.strip() for v in head.var.split(",")]
        self.push_scope()
        element = typ.element if isinstance(typ, (Container, Array)) else None
        prelude: list[str] = []
        if self.is_generator_call(iterable_expr):
            element = coroutine_value_type(self.call_target(iterable_expr))
            self.line(f"for {self.local(names[0])} := range {iterable} {{")
        elif isinstance(typ, AsyncPrimitive):
            self.line(f"for {self.local(names[0])} := range {iterable} {{")
        elif isinstance(typ, Container) and typ.kind in ("map", "unordered_map"):
            if len(names) == 2:
                self.line(f"for {self.local(names[0])}, {self.local(names[1])} := range {iterable} {{")
                self.declare(names[0], typ.element)
                self.declare(names[1], typ.value)
            else:
                var = self.local(names[0])
                self.line(f"for {var}Key, {var}Value := range {iterable} {{")
                prelude.append(f"{var} := _makePair({var}Key, {var}Value)")
                element = Container(kind="pair", element=typ.element, value=typ.value, name="pair")
        elif isinstance(typ, Container) and typ.kind in ("set", "unordered_set"):
            self.line(f"for {self.local(names[0])} := range {iterable} {{")
        elif len(names) > 1:
            self.line(f"for _, item := range {iterable} {{")
            prelude.append(f"{', '.join(self.local(n) for n in names[:2])} := item.First, item.Second")
        else:
            self.line(f"for _, {self.local(names[0])} := range {iterable} {{")
        if len(names) == 1:
            self.declare(names[0], element or self.parse_local_type("auto"))
        else:
            for name in names:
                if self.local_type(name) is None:
                    self.declare(name, self.parse_local_type("auto"))
        for text in prelude:
            self.line("\t" + text)
        self.emit_nested(body)
        self.line("}")
        self.pop_scope()

    def emit_switch(self, subject: str, cases: list[SwitchCase]) -> None:
        self.line(f"switch {self.expr(read_expr(subject))} {{")
        for case in cases:
            if case.is_default:
                self.line("default:")
            else:
                self.line(f"case {', '.join(self.expr(v) for v in case.values)}:")
            self.emit_nested(case.body)
        self.line("}")

    def emit_try(self, body: list[Stmt], catches: list[CatchBlock]) -> None:
        slot = self._open_try_exit(body)
        self.line("if err := func() (err error) {")
        self.indent += 1
        self.err_modes.append("try")
        self.try_exits.append(slot)
        self.push_scope()
        self.unlocks.append([])
        self.emit_stmts(body)
        for text in reversed(self.unlocks.pop()):
            self.line(text)
        self.pop_scope()
        self.try_exits.pop()
        self.err_modes.pop()
        if not self._ends_with_exit(body):
            self.line("return nil")
        self.indent -= 1
        self.line("}(); err != nil {")
        self.indent += 1
        self.catch_errs.append("err")
        opened = False
        generic: CatchBlock | None = None
        for catch in catches:
            decl = self.find_class(catch.exception_type)
            if decl is None:
                generic = catch
                break
            var = self.local(catch.var) if catch.var and _mentions(catch.body, catch.var) else "_"
            test = f"{var}, ok := _asError[*{self.struct_name(decl)}](err); ok"
            self.line(f"{'} else if' if opened else 'if'} {test} {{")
            opened = True
            self._emit_catch_body(catch, ClassRef(name=decl.name))
        if opened:
            self.line("} else {")
            self.indent += 1
        if generic is not None:
            if generic.var and _mentions(generic.body, generic.var):
                self.line(f"{self.local(generic.var)} := err")
            self.push_scope()
            if generic.var:
                self.declare(generic.var, self.parse_local_type("std::exception"))
            self.unlocks.append([])
            self.emit_stmts(generic.body)
            for text in reversed(self.unlocks.pop()):
                self.line(text)
            self.pop_scope()
        else:
            self._fail("err")
        if opened:
            self.indent -= 1
            self.line("}")
        self.catch_errs.pop()
        self.indent -= 1
        self.line("}")
        if slot is not None:
            self.line(f"if {slot.done} {{")
            self.indent += 1
            self._leave_with(slot.value)
            self.indent -= 1
            self.line("}")

    def _open_try_exit(self, body: list[Stmt]) -> TryExit | None:
        """Declare the variables a return inside the try body writes to."""
        if not has_return(body):
            return None
        self.tmp_count += 1
        n = self.tmp_count
        func = self.func
        value_type, ret = "", None
        if self.chan_name or func is None or func.is_constructor:
            pass
        elif func.name == "main" and self.cls is None:
            value_type, ret = "int", func.ret
        else:
            value_type, ret = self._value_type(func), func.ret
        slot = TryExit(done=f"done{n}", value=f"result{n}" if value_type else "", ret=ret)
        if slot.value:
            self.line(f"var {slot.value} {value_type}")
        self.line(f"{slot.done} := false")
        return slot

    def _leave_with(self, value: str) -> None:
        """Return value ("" for none) from the enclosing context."""
        mode = self.err_modes[-1]
        func = self.func
        if mode == "try":
            slot = self.try_exits[-1] if self.try_exits else None
            if slot is not None:
                if value and slot.value:
                    self.line(f"{slot.value} = {value}")
                self.line(f"{slot.done} = true")
            self.line("return nil")
        elif self.chan_name:
            self.line("return")
        elif func is not None and func.name == "main" and self.cls is None:
            self.line(f"os.Exit({value or '0'})")
        elif func is not None and func.is_constructor:
            self.line("return self, nil" if mode == "ctor" else "return self")
        elif mode == "func":
            self.line(f"return {value}, nil" if value else "return nil")
        else:
            self.line(f"return {value}" if value else "return")

    def _return_from_try(self, value: Expr | None) -> None:
        slot = self.try_exits[-1] if self.try_exits else None
        if value is not None and self.chan_name:
            self.line(f"{self.chan_name} <- {self.expr(value)}")
        elif value is not None and slot is not None and slot.value:
            if isinstance(value, Call):
                target = self.call_target(value)
                if target is not None and self._returns_error(target) and self._value_type(target):
                    self.line(f"{slot.value}, err = {self._call_text(value)}")
                    self._check_err()
                    value = None
            if value is not None:
                self.line(f"{slot.value} = {self.coerce(value, slot.ret)}")
        elif value is not None:
            self.emit_expr_stmt(value)
        if slot is not None:
            self.line(f"{slot.done} = true")
        self.line("return nil")

    def _emit_catch_body(self, catch: CatchBlock, typ: Type) -> None:
        self.indent += 1
        self.push_scope()
        if catch.var:
            self.declare(catch.var, typ)
        self.unlocks.append([])
        self.emit_stmts(catch.body)
        for text in reversed(self.unlocks.pop()):
            self.line(text)
        self.pop_scope()
        self.indent -= 1

    def emit_bare_block(self, body: list[Stmt]) -> None:
        self.line("{")
        self.emit_nested(body)
        self.line("}")

    def emit_decl(self, op: DeclOp) -> None:
        typ = op.typ
        name = self.local(op.name)
        auto = isinstance(typ, ClassRef) and typ.base_name == "auto"
        self.declare(op.name, (self.type_of(op.init) or typ) if auto else typ)
        if isinstance(typ, SyncPrimitive):
            self._emit_sync_decl(op, name)
            return
        if isinstance(op.init, Call) and isinstance(op.init.func, Member) and op.init.func.name == "get_future":
            self.line(f"{name} := {self.expr(op.init.func.obj)}")
            return
        if op.init is not None and self._is_async_launch(op.init):
            text, ret = self._async_launch(op.init.args)
            if not isinstance(typ, AsyncPrimitive):
                self.declare(op.name, AsyncPrimitive(kind="future", element=ret, name="std::future"))
            self.line(f"{name} := {text}")
            return
        if op.init is not None and isinstance(op.init, Call):
            target = self.call_target(op.init)
            if target is not None and self._returns_error(target) and self._value_type(target):
                self.line(f"{name}, err := {self._call_text(op.init)}")
                self._check_err()
                return
        if isinstance(typ, Reference) and not typ.is_rvalue and op.init is not None:
            if isinstance(strip_indirection(typ), Primitive) and not typ.element.is_const:
                self.deref.add(op.name)
                self.lvalue = True
                target = self.expr(op.init)
                self.lvalue = False
                self.line(f"{name} := &{target}")
                return
        if op.init is not None:
            if isinstance(typ, Pointer) and isinstance(op.init, Lit) and op.init.kind == "null":
                self.line(f"var {name} {self.gtype(typ)}")
                return
            value = self.expr(op.init) if auto else self.coerce(op.init, typ)
            self.line(f"{name} := {value}")
            return
        if op.args is not None:
            self.line(f"{name} := {self._construct(typ, op.args, brace=op.brace)}")
            return
        value = self.init_value(typ)
        if value is not None:
            self.line(f"{name} := {value}")
        else:
            self.line(f"var {name} {self.gtype(typ)}")

    def _emit_sync_decl(self, op: DeclOp, name: str) -> None:
        typ = op.typ
        args = op.args or []
        if typ.kind in ("lock_guard", "scoped_lock", "unique_lock", "shared_lock"):
            mutex_expr = args[0] if args else op.init
            if mutex_expr is None:
                return
            mutex = self.expr(mutex_expr)
            mutex_type = strip_indirection(self.type_of(mutex_expr))
            read = typ.kind == "shared_lock" and isinstance(mutex_type, SyncPrimitive) and mutex_type.kind == "shared_mutex"
            lock, unlock = ("RLock", "RUnlock") if read else ("Lock", "Unlock")
            self.lock_of[op.name] = f"{mutex}.{unlock}()"
            self.line(f"{mutex}.{lock}()")
            body = (self.func.body or "") if self.func is not None else ""
            manual = re.search(rf"\b{re.escape(op.name)}\s*\.\s*unlock\s*\(", body)
            if manual:
                return
            if self.unlocks:
                self.unlocks[-1].append(f"{mutex}.{unlock}()")
            else:
                self.line(f"defer {mutex}.{unlock}()")
            return
        if typ.kind == "thread":
            source = args if op.args is not None else (op.init.args if isinstance(op.init, Call) else [])
            if not source:
                self.line(f"var {name} *sync.WaitGroup")
                return
            self.line(f"{name} := {self._spawn(source)}")
            return
        if typ.kind == "atomic":
            self.line(f"var {name} {self.gtype(typ)}")
            value = args[0] if args else op.init
            if value is not None and not (isinstance(value, Lit) and value.text in ("0", "false")):
                self.line(f"{name}.Store({self._atomic_arg(value, typ)})")
            return
        if typ.kind == "condition_variable":
            mutex = self._nearest_mutex()
            self.line(f"{name} := sync.NewCond({mutex})")
            return
        self.line(f"var {name} {self.gtype(typ)}")

    def _nearest_mutex(self) -> str:
        for scope in reversed(self.scopes):
            for var_name, typ in scope.items():
                if isinstance(typ, SyncPrimitive) and typ.kind in ("mutex", "recursive_mutex", "timed_mutex"):
                    return f"&{self.local(var_name)}"
        if self.cls is not None:
            for var in self.cls.fields:
                if isinstance(var.typ, SyncPrimitive) and var.typ.kind == "mutex" and not var.is_static:
                    return f"&self.{self.field_name(self.cls, var.name)}"
        mutex = self._first_global_mutex(None)
        return f"&{mutex}" if mutex else "&sync.Mutex{}"

    def emit_expr_stmt(self, expr: Expr) -> None:
        text = self._statement_expr(expr)
        if text:
            self.line(text)

    def _statement_expr(self, expr: Expr) -> str:
        if isinstance(expr, Unary) and expr.op in ("++", "--"):
            if self._is_atomic(expr.operand):
                delta = "1" if expr.op == "++" else "-1"
                return f"{self.expr(expr.operand, raw_atomic=True)}.Add({delta})"
            self.lvalue = True
            target = self.expr(expr.operand)
            self.lvalue = False
            return f"{target}{expr.op}"
        if isinstance(expr, Assign):
            return self._assign(expr)
        if isinstance(expr, Call):
            special = self._statement_call(expr)
            if special is not None:
                return special
            target = self.call_target(expr)
            if target is not None and self._returns_error(target):
                text = self._call_text(expr)
                if self._value_type(target):
                    self.line(f"if _, err := {text}; err != nil {{")
                else:
                    self.line(f"if err := {text}; err != nil {{")
                self.indent += 1
                self._fail("err")
                self.indent -= 1
                return "}"
        text = self.expr(expr)
        if isinstance(expr, (Binary, Lit, Name, Member, Index)):
            return f"_ = {text}"
        return text

    def _assign(self, expr: Assign) -> str:
        if self._is_atomic(expr.target):
            target = self.expr(expr.target, raw_atomic=True)
            typ = strip_indirection(self.type_of(expr.target))
            if expr.op == "=":
                return f"{target}.Store({self._atomic_arg(expr.value, typ)})"
            if expr.op in ("+=", "-="):
                value = self._atomic_arg(expr.value, typ)
                return f"{target}.Add({value if expr.op == '+=' else _negate(value)})"
        target_type = strip_indirection(self.type_of(expr.target))
        self.lvalue = True
        lhs = self.expr(expr.target)
        self.lvalue = False
        if isinstance(target_type, SyncPrimitive) and target_type.kind == "thread":
            if isinstance(expr.value, Call):
                return f"{lhs} = {self._spawn(expr.value.args)}"
        value = self.coerce(expr.value, self.type_of(expr.target)) if expr.op == "=" else self.expr(expr.value)
        if expr.op in ("&&=", "||="):
            return f"{lhs} = {lhs} {expr.op[:2]} {value}"
        return f"{lhs} {expr.op} {value}"

    def _statement_call(self, call: Call) -> str | None:
        func = call.func
        args = call.args
        if isinstance(func, Name):
            qual = func.qualified.removeprefix("std::")
            if qual == "async":
                return f"{self._async(args)}"
            if qual == "swap" and len(args) == 2:
                a, b = self.expr(args[0]), self.expr(args[1])
                return f"{a}, {b} = {b}, {a}"
            if qual == "printf" and args:
                return self._printf(args)
        if not isinstance(func, Member):
            return None
        name = func.name
        obj_type = strip_indirection(self.type_of(func.obj))
        if isinstance(func.obj, Name) and func.obj.last in self.lock_of and name in ("unlock", "lock"):
            unlock = self.lock_of[func.obj.last]
            return unlock if name == "unlock" else unlock.replace("Unlock()", "Lock()")
        if isinstance(obj_type, SyncPrimitive):
            obj = self.expr(func.obj, raw_atomic=True)
            if obj_type.kind == "atomic" and name in ("fetch_add", "fetch_sub") and args:
                value = self._atomic_arg(args[0], obj_type)
                return f"{obj}.Add({value if name == 'fetch_add' else _negate(value)})"
            if obj_type.kind == "thread":
                if name == "join":
                    return f"{obj}.Wait()"
                if name == "detach":
                    return ""
            if obj_type.kind == "condition_variable":
                if name == "wait":
                    if len(args) > 1:
                        pred = self._predicate(args[1])
                        return f"for !({pred}) {{\n{self._indent_str * (self.indent + 1)}{obj}.Wait()\n{self._indent_str * self.indent}}}"
                    return f"{obj}.Wait()"
                if name == "notify_one":
                    return f"{obj}.Signal()"
                if name == "notify_all":
                    return f"{obj}.Broadcast()"
            if obj_type.kind in ("mutex", "recursive_mutex", "timed_mutex", "shared_mutex"):
                if name in ("lock", "unlock"):
                    return f"{obj}.{name.capitalize()}()"
        if isinstance(func.obj, Call) and name == "detach":
            return self._spawn(func.obj.args)
        if isinstance(obj_type, AsyncPrimitive) and name == "set_value":
            value = self.expr(args[0]) if args else "struct{}{}"
            return f"{self.expr(func.obj)} <- {value}"
        if isinstance(obj_type, AsyncPrimitive) and name == "wait":
            obj = self.expr(func.obj)
            return f"{obj} <- <-{obj}"
        if isinstance(obj_type, Container) or obj_type is None:
            return self._container_statement(func, obj_type, args)
        return None

    def _container_statement(self, func: Member, typ: Container | None, args: list[Expr]) -> str | None:
        name = func.name
        kind = typ.kind if typ is not None else "vector"
        element = typ.element if typ is not None else None
        if name not in ("push_back", "emplace_back", "pop_back", "clear", "insert", "erase", "push_front", "emplace_front", "pop_front"):
            return None
        if typ is None and name not in ("push_back", "emplace_back", "pop_back"):
            return None
        self.lvalue = True
        obj = self.expr(func.obj)
        self.lvalue = False
        if name in ("push_back", "emplace_back"):
            if isinstance(element, SyncPrimitive) and element.kind == "thread":
                return f"{obj} = append({obj}, {self._spawn(args)})"
            if name == "emplace_back" and self.class_of_type(element) is not None:
                return f"{obj} = append({obj}, {self._construct(element, args)})"
            if name == "emplace_back" and isinstance(element, Container) and element.kind == "pair":
                return f"{obj} = append({obj}, {self._construct(element, args)})"
            values = ", ".join(self.coerce(a, element) for a in args)
            return f"{obj} = append({obj}, {values})"
        if name in ("push_front", "emplace_front"):
            values = ", ".join(self.coerce(a, element) for a in args)
            return f"{obj} = append([]{self.gtype(element)}{{{values}}}, {obj}...)"
        if name == "pop_back":
            return f"{obj} = {obj}[:len({obj})-1]"
        if name == "pop_front":
            return f"{obj} = {obj}[1:]"
        if name == "clear":
            if kind in ("map", "unordered_map", "set", "unordered_set"):
                return f"clear({obj})"
            return f"{obj} = {obj}[:0]"
        if name == "insert" and kind in ("set", "unordered_set") and args:
            return f"{obj}[{self.coerce(args[0], element)}] = struct{{}}{{}}"
        if name == "insert" and kind in ("map", "unordered_map") and args:
            pair = args[0]
            if isinstance(pair, InitList) and len(pair.items) == 2:
                return f"{obj}[{self.expr(pair.items[0])}] = {self.expr(pair.items[1])}"
            if isinstance(pair, Call) and len(pair.args) == 2:
                return f"{obj}[{self.expr(pair.args[0])}] = {self.expr(pair.args[1])}"
        if name == "erase" and kind in ("map", "unordered_map", "set", "unordered_set") and args:
            return f"delete({obj}, {self.expr(args[0])})"
        return None

    def _predicate(self, expr: Expr) -> str:
        if isinstance(expr, Lambda):
            stmts = split_statements(expr.body)
            if len(stmts) == 1 and isinstance(stmts[0], SimpleStmt) and stmts[0].text.startswith("return"):
                return self.expr(read_expr(stmts[0].text[len("return") :]))
        return f"{self.expr(expr)}()"

    def emit_return(self, value: Expr | None) -> None:
        func = self.func
        mode = self.err_modes[-1]
        if mode == "try":
            self._return_from_try(value)
            return
        if func is not None and func.name == "main" and self.cls is None:
            self.line(f"os.Exit({self.expr(value) if value is not None else '0'})")
            return
        if func is not None and func.is_constructor:
            self.line("return self, nil" if mode == "ctor" else "return self")
            return
        if self.chan_name:
            if value is not None:
                self.line(f"{self.chan_name} <- {self.expr(value)}")
            self.line("return")
            return
        if value is None:
            self.line("return nil" if mode == "func" else "return")
            return
        ret = func.ret if func is not None else None
        if mode == "func":
            if isinstance(value, Call):
                target = self.call_target(value)
                if target is not None and self._returns_error(target) and self._value_type(target):
                    self.line(f"return {self._call_text(value)}")
                    return
            self.line(f"return {self.coerce(value, ret)}, nil")
            return
        self.line(f"return {self.coerce(value, ret)}")

    def emit_throw(self, value: Expr | None) -> None:
        if value is None:
            error = self.catch_errs[-1] if self.catch_errs else 'errors.New("rethrow outside catch")'
        elif isinstance(value, Call) and isinstance(value.func, Name):
            decl = self.find_class(value.func.last)
            if decl is not None:
                error = self._new_call(decl, value.args, None)
            elif value.args:
                message = value.args[0]
                if self.is_string(self.type_of(message)):
                    error = f"errors.New({self.expr(message)})"
                else:
                    error = f'fmt.Errorf("%v", {self.expr(message)})'
            else:
                error = f'errors.New("{value.func.last}")'
        else:
            error = f'fmt.Errorf("%v", {self.expr(value)})'
        self._fail(error)

    def emit_print(self, op: PrintOp) -> None:
        fmt: list[str] = []
        args: list[str] = []
        for item in op.items:
            if isinstance(item, Lit) and item.kind == "str" and not item.text.startswith("R"):
                fmt.append(_str_lit(item.text)[1:-1].replace("%", "%%"))
            elif isinstance(item, Lit) and item.kind == "char":
                inner = item.text[1:-1]
                fmt.append('\\"' if inner == '"' else inner.replace("%", "%%").replace("\\'", "'"))
            else:
                fmt.append("%v")
                args.append(self.expr(item))
        text = "".join(fmt) + ("\\n" if op.newline else "")
        rest = "".join(", " + a for a in args)
        if op.stderr:
            self.line(f'fmt.Fprintf(os.Stderr, "{text}"{rest})')
        elif not args and op.newline:
            self.line(f'fmt.Println("{"".join(fmt)}")')
        else:
            self.line(f'fmt.Printf("{text}"{rest})')

    def _printf(self, args: list[Expr]) -> str:
        fmt = args[0]
        if not (isinstance(fmt, Lit) and fmt.kind == "str"):
            return f"fmt.Print({self.expr(fmt)})"
        rest = "".join(", " + self.expr(a) for a in args[1:])
        return f'fmt.Printf("{_go_format(_str_lit(fmt.text)[1:-1])}"{rest})'

    def emit_yield(self, value: Expr) -> None:
        self.line(f"{self.chan_name or 'ch'} <- {self.expr(value)}")

    def emit_co_return(self, value: Expr | None) -> None:
        if self.func is not None and self.func.coroutine.is_generator:
            value = None
        if self.err_modes[-1] == "try":
            self._return_from_try(value)
            return
        if value is not None:
            self.line(f"{self.chan_name or 'ch'} <- {self.expr(value)}")
        self.line("return")

    def emit_delete(self, target: Expr) -> None:
        self.lvalue = True
        text = self.expr(target)
        self.lvalue = False
        self.line(f"{text} = nil")

    # ── threads and tasks ────────────────────────────────────

    def _is_async_launch(self, expr: Expr) -> bool:
        return isinstance(expr, Call) and isinstance(expr.func, Name) and expr.func.qualified in ("std::async", "async")

    def _task_args(self, args: list[Expr]) -> list[Expr]:
        args = list(args)
        if args and isinstance(args[0], Name) and args[0].qualified.startswith("std::launch::"):
            args = args[1:]
        return args

    def _lambda_lines(self, callee: Lambda, args: list[Expr]) -> tuple[list[str], Type | None]:
        """Body lines of a lambda run as a task; args bind its parameters."""
        params = parse_params(callee.params)
        pad = self._indent_str * (self.indent + 1)
        prelude = [f"{pad}{self.local(p.name)} := {self.expr(a)}" for p, a in zip(params, args)]
        self.push_scope()
        for param in params:
            self.declare(param.name, param.typ)
        ret = self.parse_local_type(callee.ret) if callee.ret else self._lambda_ret(callee)
        lines = self._closure_body(callee, params, ret)
        self.pop_scope()
        return prelude + lines, ret

    def _closure_body(self, callee: Lambda, params, ret: Type | None) -> list[str]:
        saved_func, saved_chan = self.func, self.chan_name
        self.func = Function(name="<lambda>", ret=ret or VOID, params=params)
        self.chan_name = ""
        self.err_modes.append("panic")
        try:
            return self.capture(split_statements(callee.body))
        finally:
            self.err_modes.pop()
            self.func, self.chan_name = saved_func, saved_chan

    def _task(self, args: list[Expr]) -> tuple[list[str] | None, str, Type | None]:
        """(lambda body lines, call text, result type) of a thread or async task."""
        callee, rest = args[0], args[1:]
        if isinstance(callee, Lambda):
            lines, ret = self._lambda_lines(callee, rest)
            return lines, "", ret
        if isinstance(callee, Unary) and callee.op == "&":
            callee = callee.operand
        if isinstance(callee, Name) and len(callee.parts) == 2 and rest:
            decl = self.find_class(callee.parts[0])
            if decl is not None:
                method = decl.find_method(callee.last)
                text = f"{self.expr(rest[0])}.{self.method_name(decl, callee.last)}({self._call_args(method, rest[1:])})"
                return None, text, method.ret if method is not None else None
        call = Call(func=callee, args=rest)
        target = self.call_target(call)
        return None, self.expr(call), target.ret if target is not None else None

    def _spawn(self, args: list[Expr]) -> str:
        args = self._task_args(args)
        if not args:
            return "_spawn(func() {})"
        lines, call, _ = self._task(args)
        if lines is None:
            lines = [self._indent_str * (self.indent + 1) + call]
        closing = self._indent_str * self.indent + "})"
        return "_spawn(func() {\n" + "\n".join(lines) + "\n" + closing

    def _async(self, args: list[Expr]) -> str:
        return self._async_launch(args)[0]

    def _async_launch(self, args: list[Expr]) -> tuple[str, Type | None]:
        """Channel-returning launch text and the task's result type."""
        args = self._task_args(args)
        if not args:
            return "_async(func() struct{} { return struct{}{} })", None
        lines, call, ret = self._task(args)
        value = self.gtype(ret) if ret is not None else ""
        pad = self._indent_str * (self.indent + 1)
        if lines is None:
            lines = [pad + (f"return {call}" if value else call)]
        if not value:
            lines.append(pad + "return struct{}{}")
            value = "struct{}"
        closing = self._indent_str * self.indent + "})"
        return f"_async(func() {value} {{\n" + "\n".join(lines) + "\n" + closing, ret

    # ── expressions ──────────────────────────────────────────

    def cond(self, expr: Expr) -> str:
        typ = self.type_of(expr)
        text = self.expr(expr)
        if isinstance(expr, Lit) and expr.kind == "num":
            return "true" if expr.text not in ("0", "0.0") else "false"
        base = typ.element if isinstance(typ, Reference) else typ
        if isinstance(base, Primitive) and base.kind in ("integer", "float"):
            return f"{self._paren(expr, text)} != 0"
        if isinstance(base, Pointer) or (isinstance(base, Container) and base.kind == "optional"):
            return f"{text} != nil"
        return text

    def _paren(self, expr: Expr, text: str) -> str:
        return f"({text})" if isinstance(expr, (Binary, Ternary, Assign)) else text

    def coerce(self, expr: Expr | None, typ: Type | None) -> str:
        if expr is None:
            return ""
        base = typ.element if isinstance(typ, Reference) else typ
        if isinstance(expr, InitList) and base is not None:
            return self._construct(base, expr.items, brace=True)
        if isinstance(expr, Lit) and expr.kind == "null":
            return "nil"
        target = self.gtype(base) if base is not None else ""
        if isinstance(base, Primitive) and base.kind in ("integer", "float"):
            text = self.expr(expr)
            if isinstance(expr, Lit) and expr.kind == "num":
                if target == "float64" and "." not in text and "e" not in text.lower() and not text.startswith("0x"):
                    return text + ".0"
                if target in ("int", "float64"):
                    return text
                return f"{target}({text})"
            if isinstance(expr, Lit) and expr.kind == "char":
                return text
            source = self.type_of(expr)
            source_base = source.element if isinstance(source, Reference) else source
            if isinstance(source_base, Primitive) and self.gtype(source_base) != target and target:
                return f"{target}({text})"
            if isinstance(expr, Call) and isinstance(expr.func, Member) and expr.func.name in ("size", "length") and target != "int":
                return f"{target}({text})"
            return text
        if isinstance(base, SyncPrimitive) and base.kind == "atomic":
            return self.expr(expr)
        if isinstance(expr, New) and isinstance(base, Pointer):
            return self.expr(expr)
        return self.expr(expr)

    def _atomic_arg(self, expr: Expr, typ: Type | None) -> str:
        element = typ.element if isinstance(typ, SyncPrimitive) else None
        kind = self._atomic_kind(element)
        text = self.expr(expr)
        if isinstance(expr, Lit):
            return text
        go_value = {"Int64": "int64", "Int32": "int32", "Uint64": "uint64", "Uint32": "uint32"}.get(kind)
        source = self.type_of(expr)
        if go_value is not None and not (isinstance(source, Primitive) and self.gtype(source) == go_value):
            return f"{go_value}({text})"
        return text

    def _construct(self, typ: Type, args: list[Expr], brace: bool = False) -> str:
        if isinstance(typ, Reference):
            typ = typ.element
        if isinstance(typ, Container):
            gt = self.gtype(typ)
            if typ.kind == "string":
                if not args:
                    return '""'
                if len(args) == 2:
                    return f"strings.Repeat(string({self.expr(args[1])}), {self.expr(args[0])})"
                return self.expr(args[0])
            if typ.kind in ("vector", "deque", "list"):
                if brace:
                    return f"{gt}{{{', '.join(self.coerce(a, typ.element) for a in args)}}}"
                if not args:
                    return f"{gt}{{}}"
                if len(args) > 1:
                    return f"_repeat({self.expr(args[0])}, {self.coerce(args[1], typ.element)})"
                return f"make({gt}, {self.expr(args[0])})"
            if typ.kind == "pair":
                if len(args) == 2:
                    return f"{gt}{{{self.coerce(args[0], typ.element)}, {self.coerce(args[1], typ.value)}}}"
                return f"{gt}{{}}"
            if typ.kind in ("map", "unordered_map"):
                entries = []
                for item in args:
                    if isinstance(item, InitList) and len(item.items) == 2:
                        entries.append(f"{self.coerce(item.items[0], typ.element)}: {self.coerce(item.items[1], typ.value)}")
                return f"{gt}{{{', '.join(entries)}}}"
            if typ.kind in ("set", "unordered_set"):
                entries = [f"{self.coerce(a, typ.element)}: {{}}" for a in args]
                return f"{gt}{{{', '.join(entries)}}}"
            if typ.kind == "optional":
                return f"_ptr({self.coerce(args[0], typ.element)})" if args else "nil"
        if isinstance(typ, Array):
            return f"{self.gtype(typ)}{{{', '.join(self.coerce(a, typ.element) for a in args)}}}"
        if isinstance(typ, Primitive):
            return self.coerce(args[0], typ) if args else self.zero(typ)
        if isinstance(typ, Pointer):
            return self.coerce(args[0], typ) if args else "nil"
        decl = self.class_of_type(typ)
        if decl is not None:
            if brace and decl.is_struct and not any(m.is_constructor for m in decl.methods) and args:
                fields = [f for f in decl.fields if not f.is_static]
                parts = [f"{self.field_name(decl, f.name)}: {self.coerce(a, f.typ)}" for f, a in zip(fields, args)]
                return f"&{self.struct_name(decl)}{{{', '.join(parts)}}}"
            return self._new_call(decl, args, typ)
        if isinstance(typ, AsyncPrimitive):
            return f"make({self.gtype(typ)}, 1)"
        if not args:
            return self.zero(typ)
        return self.expr(args[0])

    def _new_call(self, decl: ClassDecl, args: list[Expr], typ: Type | None) -> str:
        ctors = [m for m in decl.methods if m.is_constructor]
        index = 1
        target = ctors[0] if ctors else None
        for i, ctor in enumerate(ctors):
            required = sum(1 for p in ctor.params if not p.has_default)
            if required <= len(args) <= len(ctor.params):
                index = i + 1
                target = ctor
                break
        targs = ""
        if isinstance(typ, ClassRef) and typ.args and to_go_type_params(decl.template_params):
            targs = f"[{', '.join(self.gtype(a) for a in typ.args)}]"
        text = f"{self._constructor_name(decl, index)}{targs}({self._call_args(target, args)})"
        if target is not None and self._returns_error(target):
            return self._hoist(text, Function(name=decl.name, ret=ClassRef(name=decl.name)))
        return text

    def _call_args(self, target: Function | None, args: list[Expr]) -> str:
        if target is None:
            return ", ".join(self.expr(a) for a in args)
        parts: list[str] = []
        for i, arg in enumerate(args):
            if i >= len(target.params):
                parts.append(self.expr(arg))
                continue
            parts.append(self._arg(arg, target.params[i].typ))
        for param in target.params[len(args) :]:
            if param.default is not None:
                parts.append(self.coerce(read_expr(param.default), param.typ))
        return ", ".join(parts)

    def _arg(self, arg: Expr, typ: Type) -> str:
        if isinstance(arg, Call) and isinstance(arg.func, Name) and arg.func.qualified in ("std::move", "move") and arg.args:
            arg = arg.args[0]
        if self.gtype(typ).startswith("*") and isinstance(typ, Reference) and isinstance(typ.element, Primitive):
            if isinstance(arg, Name) and arg.last in self.deref and self.is_local(arg.last):
                return self.local(arg.last)
            self.lvalue = True
            text = self.expr(arg)
            self.lvalue = False
            return f"&{text}"
        if isinstance(typ, Pointer) and isinstance(arg, Unary) and arg.op == "&":
            if self.class_of_type(arg.operand) is not None or self.class_of_type(self.type_of(arg.operand)) is not None:
                return self.expr(arg.operand)
        return self.coerce(arg, typ)

    def _call_text(self, call: Call) -> str:
        """Call text without hoisting (the caller handles the error)."""
        saved = self._hoisting
        self._hoisting = False
        try:
            return self.expr(call)
        finally:
            self._hoisting = saved

    _hoisting = True

    def _is_atomic(self, expr: Expr) -> bool:
        typ = strip_indirection(self.type_of(expr))
        return isinstance(typ, SyncPrimitive) and typ.kind == "atomic"

    def wrap(self, expr: Expr, parent_op: str, is_right: bool) -> str:
        s = self.expr(expr)
        if isinstance(expr, Binary):
            child_prec = _go_prec(expr.op)
            parent_prec = _go_prec(parent_op)
            if child_prec < parent_prec or (is_right and child_prec == parent_prec):
                return f"({s})"
        return s

    def expr(self, expr: Expr, raw_atomic: bool = False) -> str:
        if isinstance(expr, Lit):
            return self._emit_Lit(expr)
        if isinstance(expr, Name):
            text = self._emit_Name(expr)
            if not raw_atomic and not self.lvalue and self._is_atomic(expr):
                return self._atomic_load(expr, text)
            return text
        if isinstance(expr, Binary):
            return self._emit_Binary(expr)
        if isinstance(expr, Unary):
            return self._emit_Unary(expr)
        if isinstance(expr, Assign):
            return f"/* unsupported: assignment inside expression */ {self.expr(expr.target)}"
        if isinstance(expr, Ternary):
            return f"_ternary({self.cond(expr.cond)}, {self.expr(expr.then)}, {self.expr(expr.else_)})"
        if isinstance(expr, Call):
            return self._emit_Call(expr)
        if isinstance(expr, Member):
            text = self._emit_Member(expr)
            if not raw_atomic and not self.lvalue and self._is_atomic(expr):
                return self._atomic_load(expr, text)
            return text
        if isinstance(expr, Index):
            return f"{self.wrap(expr.obj, '.', False)}[{self.expr(expr.index)}]"
        if isinstance(expr, Cast):
            return self._emit_Cast(expr)
        if isinstance(expr, New):
            return self._emit_New(expr)
        if isinstance(expr, Lambda):
            return self._emit_Lambda(expr)
        if isinstance(expr, InitList):
            return f"[]any{{{', '.join(self.expr(i) for i in expr.items)}}}"
        if isinstance(expr, Raw):
            return f"/* unsupported: {expr.text} */"
        raise NotImplementedError(f"Go expr: {type(expr).__name__}")

    def _atomic_load(self, expr: Expr, text: str) -> str:
        typ = strip_indirection(self.type_of(expr))
        element = typ.element if isinstance(typ, SyncPrimitive) else None
        load = f"{text}.Load()"
        if element is not None and self.gtype(element) == "int":
            return f"int({load})"
        return load

    def _emit_Lit(self, expr: Lit) -> str:
        if expr.kind == "num":
            return _num_lit(expr.text)
        if expr.kind == "str":
            return _str_lit(expr.text)
        if expr.kind == "null":
            return "nil"
        return expr.text

    def _emit_Name(self, expr: Name) -> str:
        if len(expr.parts) > 1:
            return self._qualified_name(expr)
        name = expr.last
        if name == "this":
            return "self"
        if self.is_local(name):
            local = self.local(name)
            if name in self.deref:
                return f"*{local}"
            return local
        if self.cls is not None:
            var = self.find_field(name)
            if var is not None:
                owner = self.field_owner(name)
                if var.is_static:
                    return self.global_name(var, owner)
                return f"self.{self.field_name(owner, name)}"
        var = self.find_global(name)
        if var is not None:
            return self.global_name(var)
        if self.find_function(name) is not None:
            return self.func_name(self.find_function(name))
        return self.local(name)

    def _qualified_name(self, expr: Name) -> str:
        parts = [p for p in expr.parts if p != "std"]
        if expr.qualified in ("std::string::npos", "string::npos"):
            return "-1"
        if not parts:
            return "nil"
        owner = self.find_class(parts[0]) if len(parts) == 2 else None
        if owner is not None:
            var = next((f for f in owner.fields if f.name == parts[1] and f.is_static), None)
            if var is not None:
                return self.global_name(var, owner)
            method = owner.find_method(parts[1])
            if method is not None and method.is_static:
                return go_to_pascal(owner.name) + go_to_pascal(parts[1])
        return "".join(go_to_pascal(p) for p in parts)

    def _emit_Binary(self, expr: Binary) -> str:
        op = expr.op
        if op == "<=>":
            return f"cmp.Compare({self.expr(expr.left)}, {self.expr(expr.right)})"
        left = self.wrap(expr.left, op, False)
        right = self.wrap(expr.right, op, True)
        if op == "+" and (self.is_string(self.type_of(expr.left)) or self.is_string(self.type_of(expr.right))):
            if isinstance(expr.right, Lit) and expr.right.kind == "char":
                right = f"string({right})"
            elif isinstance(expr.left, Lit) and expr.left.kind == "char":
                left = f"string({left})"
        if op in ("&&", "||"):
            if not isinstance(expr.left, Binary):
                left = self.cond(expr.left)
            if not isinstance(expr.right, Binary):
                right = self.cond(expr.right)
        return f"{left} {op} {right}"

    def _emit_Unary(self, expr: Unary) -> str:
        op = expr.op
        if op in ("++", "--"):
            if self._is_atomic(expr.operand):
                obj = self.expr(expr.operand, raw_atomic=True)
                delta = "1" if op == "++" else "-1"
                if expr.postfix:
                    return f"({obj}.Add({delta}) - {delta})"
                return f"{obj}.Add({delta})"
            self.lvalue = True
            target = self.expr(expr.operand)
            self.lvalue = False
            helper = "_postInc" if op == "++" else "_postDec"
            if expr.postfix:
                return f"{helper}(&{target})"
            return f"({helper}(&{target}) {'+' if op == '++' else '-'} 1)"
        if op == "co_await":
            return f"<-{self.wrap(expr.operand, '.', False)}"
        if op == "sizeof":
            return f"int(reflect.TypeOf({self.expr(expr.operand)}).Size())"
        if op == "&":
            if self.class_of_type(self.type_of(expr.operand)) is not None:
                return self.expr(expr.operand)
            self.lvalue = True
            inner = self.expr(expr.operand)
            self.lvalue = False
            return f"&{inner}"
        if op == "*":
            typ = self.type_of(expr.operand)
            if self.class_of_type(typ) is not None or not isinstance(typ, Pointer):
                return self.expr(expr.operand)
            return f"*{self.wrap(expr.operand, '*', True)}"
        if op == "!":
            return f"!{self._paren(expr.operand, self.cond(expr.operand))}" if not isinstance(
                self.type_of(expr.operand), Pointer
            ) else f"{self.expr(expr.operand)} == nil"
        if op == "~":
            return f"^{self.wrap(expr.operand, '^', True)}"
        operand = self.expr(expr.operand)
        if isinstance(expr.operand, (Binary, Ternary)):
            operand = f"({operand})"
        return f"{op}{operand}"

    def _emit_Member(self, expr: Member) -> str:
        name = expr.name
        owner = strip_indirection(self.type_of(expr.obj))
        obj = self.wrap(expr.obj, ".", False)
        if isinstance(expr.obj, Name) and expr.obj.last == "this":
            obj = "self"
        if isinstance(expr.obj, Unary) and expr.obj.op in ("*", "&", "!", "-"):
            obj = f"({obj})"
        if name in ("first", "second") and (isinstance(owner, Container) or owner is None):
            return f"{obj}.{'First' if name == 'first' else 'Second'}"
        decl = self.class_of_type(owner) if owner is not None else None
        if isinstance(expr.obj, Name) and expr.obj.last == "this":
            decl = self.cls
        return f"{obj}.{self.member_name(decl, name)}"

    def _emit_Cast(self, expr: Cast) -> str:
        target = self.parse_local_type(expr.typ)
        inner = self.expr(expr.expr)
        if expr.kind == "dynamic":
            return f"_as[{self.gtype(target)}]({inner})"
        text = self.gtype(target)
        if text.startswith("*") or self.class_of_type(target) is not None:
            return inner
        if not text:
            return inner
        return f"{text}({inner})"

    def _emit_New(self, expr: New) -> str:
        if expr.typ.endswith("[]"):
            elem = self.parse_local_type(expr.typ[:-2])
            size = self.expr(expr.args[0]) if expr.args else "0"
            return f"make([]{self.gtype(elem)}, {size})"
        typ = self.parse_local_type(expr.typ)
        if self.class_of_type(typ) is not None:
            return self._construct(typ, expr.args)
        return f"_ptr({self._construct(typ, expr.args)})"

    def _lambda_ret(self, expr: Lambda) -> Type | None:
        stmts = split_statements(expr.body)
        for stmt in stmts:
            if isinstance(stmt, SimpleStmt) and re.match(r"return\b\s*\S", stmt.text):
                return self.type_of(read_expr(stmt.text[len("return") :])) or self.parse_local_type("int")
        return None

    def _emit_Lambda(self, expr: Lambda) -> str:
        params = parse_params(expr.params)
        self.push_scope()
        for p in params:
            self.declare(p.name, p.typ)
        param_text = ", ".join(f"{self.local(p.name)} {self.gtype(p.typ) or 'any'}" for p in params)
        ret = self.parse_local_type(expr.ret) if expr.ret else self._lambda_ret(expr)
        ret_text = f" {self.gtype(ret)}" if ret is not None and self.gtype(ret) else ""
        body = self._closure_body(expr, params, ret)
        self.pop_scope()
        closing = self._indent_str * self.indent + "}"
        return f"func({param_text}){ret_text} {{\n" + "\n".join(body) + "\n" + closing

    def _emit_Call(self, expr: Call) -> str:
        func = expr.func
        if isinstance(func, Name):
            text = self._call_name(expr, func)
        elif isinstance(func, Member):
            text = self._call_member(expr, func)
        else:
            text = f"({self.expr(func)})({', '.join(self.expr(a) for a in expr.args)})"
        target = self.call_target(expr)
        if self._hoisting and target is not None and self._returns_error(target) and not target.is_constructor:
            return self._hoist(text, target)
        return text

    def _call_name(self, expr: Call, func: Name) -> str:
        qual = func.qualified.removeprefix("std::")
        args = expr.args
        last = func.last
        if qual in ("make_unique", "make_shared") and func.targs:
            typ = self.parse_local_type(func.targs[0])
            if self.class_of_type(typ) is not None:
                return self._construct(typ, args)
            return f"_ptr({self._construct(typ, args)})"
        if qual in ("move", "ref", "cref", "forward") and args:
            return self.expr(args[0])
        if qual == "to_string" and args:
            return f"fmt.Sprint({self.expr(args[0])})"
        if qual in ("max", "min") and len(args) == 2:
            return f"{qual}({self.expr(args[0])}, {self.expr(args[1])})"
        if qual in ("abs",) and len(args) == 1:
            return f"_abs({self.expr(args[0])})"
        if qual in _MATH and len(args) == 1:
            return f"math.{_MATH[qual]}(float64({self.expr(args[0])}))"
        if qual == "pow" and len(args) == 2:
            return f"math.Pow(float64({self.expr(args[0])}), float64({self.expr(args[1])}))"
        if qual in ("make_pair", "pair") and len(args) == 2:
            return f"_makePair({self.expr(args[0])}, {self.expr(args[1])})"
        if qual == "get" and func.targs and args:
            return f"{self.wrap(args[0], '.', False)}.{'First' if func.targs[0] == '0' else 'Second'}"
        if qual == "this_thread::sleep_for" and args:
            return f"time.Sleep({self.expr(args[0])})"
        if qual == "this_thread::yield":
            return "runtime.Gosched()"
        if qual.startswith("chrono::") and last in _DURATIONS and args:
            return f"time.Duration({self.expr(args[0])}) * {_DURATIONS[last]}"
        if qual == "async":
            return self._async(args)
        if qual == "thread":
            return self._spawn(args)
        if last == "printf" and args:
            return self._printf(args)
        if qual in ("string",):
            return self._construct(self.parse_local_type("std::string"), args)
        decl = self.find_class(last) if len(func.parts) == 1 else None
        if decl is not None:
            return self._construct(ClassRef(name=decl.name, args=[self.parse_local_type(t) for t in func.targs]), args, brace=expr.brace)
        if len(func.parts) == 2 and self.cls is not None:
            base = self.find_class(func.parts[0])
            if base is not None and base is not self.cls and base in self.ancestors(self.cls):
                method = base.find_method(last)
                return f"self.{self.struct_name(base)}.{self.method_name(base, last)}({self._call_args(method, args)})"
        target = self.call_target(expr)
        call_args = self._call_args(target, args)
        if len(func.parts) == 1 and self.is_member_call(last):
            method = self.find_method(last)
            if method is not None and method.is_static:
                owner = next(c for c in [self.cls] + self.ancestors(self.cls) if c.find_method(last) is method)
                return f"{go_to_pascal(owner.name)}{go_to_pascal(last)}({call_args})"
            return f"self.{self.method_name(self.cls, last)}({call_args})"
        if len(func.parts) == 1 and self.is_local(last):
            return f"{self.local(last)}({call_args})"
        if len(func.parts) == 2:
            owner = self.find_class(func.parts[0])
            method = owner.find_method(last) if owner is not None else None
            if method is not None and method.is_static:
                return f"{go_to_pascal(owner.name)}{go_to_pascal(last)}({call_args})"
        if len(func.parts) > 1:
            return f"{self._qualified_name(func)}({call_args})"
        callee = self.find_function(last)
        name = self.func_name(callee) if callee is not None else go_to_pascal(last)
        targs = ""
        if func.targs and callee is not None and to_go_type_params(callee.template_params):
            targs = f"[{', '.join(self.gtype(self.parse_local_type(t)) for t in func.targs)}]"
        return f"{name}{targs}({call_args})"

    def _call_member(self, expr: Call, func: Member) -> str:
        name = func.name
        args = expr.args
        obj_type = strip_indirection(self.type_of(func.obj))
        if isinstance(obj_type, SyncPrimitive):
            return self._sync_call(expr, func, obj_type)
        if isinstance(obj_type, AsyncPrimitive):
            obj = self.expr(func.obj)
            if name == "get":
                return f"<-{obj}"
            if name == "wait":
                return f"{obj} <- <-{obj}"
            if name == "get_future":
                return obj
            if name == "set_value":
                return f"{obj} <- {self.expr(args[0]) if args else 'struct{}{}'}"
        obj = self.wrap(func.obj, ".", False)
        if isinstance(func.obj, Name) and func.obj.last == "this":
            obj = "self"
        if isinstance(func.obj, Unary) and func.obj.op == "*":
            obj = f"({obj})"
        if isinstance(obj_type, Container) or (obj_type is None and name in _CONTAINER_METHODS):
            special = self._container_call(obj, obj_type, name, args)
            if special is not None:
                return special
        decl = self.class_of_type(obj_type) if obj_type is not None else None
        if isinstance(func.obj, Name) and func.obj.last == "this":
            decl = self.cls
        if name == "what" and not args and (decl is None or self.find_method("what", decl) is None):
            return f"{obj}.Error()"
        if name == "get" and not args and isinstance(obj_type, Pointer):
            return obj
        target = self.call_target(expr)
        return f"{obj}.{self.method_name(decl, name)}({self._call_args(target, args)})"

    def _sync_call(self, expr: Call, func: Member, typ: SyncPrimitive) -> str:
        obj = self.expr(func.obj, raw_atomic=True)
        name = func.name
        args = expr.args
        if typ.kind == "atomic":
            if name == "load":
                return self._atomic_load(func.obj, obj)
            if name == "store" and args:
                return f"{obj}.Store({self._atomic_arg(args[0], typ)})"
            if name in ("fetch_add", "fetch_sub") and args:
                value = self._atomic_arg(args[0], typ)
                delta = value if name == "fetch_add" else _negate(value)
                undo = "-" if name == "fetch_add" else "+"
                return f"({obj}.Add({delta}) {undo} {value})"
            if name == "exchange" and args:
                return f"{obj}.Swap({self._atomic_arg(args[0], typ)})"
            if name.startswith("compare_exchange") and len(args) >= 2:
                return f"{obj}.CompareAndSwap({self._atomic_arg(args[0], typ)}, {self._atomic_arg(args[1], typ)})"
        if typ.kind == "thread":
            if name == "join":
                return f"{obj}.Wait()"
            if name == "joinable":
                return f"{obj} != nil"
        if typ.kind == "condition_variable":
            if name == "notify_one":
                return f"{obj}.Signal()"
            if name == "notify_all":
                return f"{obj}.Broadcast()"
            if name == "wait":
                return f"{obj}.Wait()"
        if name in ("lock", "unlock", "try_lock"):
            method = {"lock": "Lock", "unlock": "Unlock", "try_lock": "TryLock"}[name]
            return f"{obj}.{method}()"
        return f"{obj}.{go_to_pascal(name)}({', '.join(self.expr(a) for a in args)})"

    def _container_call(self, obj: str, typ: Container | None, name: str, args: list[Expr]) -> str | None:
        kind = typ.kind if typ is not None else "vector"
        if name in ("size", "length"):
            return f"len({obj})"
        if name == "empty":
            return f"len({obj}) == 0"
        if name == "back":
            return f"{obj}[len({obj})-1]"
        if name == "front":
            return f"{obj}[0]"
        if name == "at" and args:
            return f"{obj}[{self.expr(args[0])}]"
        if name == "count" and args and kind in ("map", "unordered_map", "set", "unordered_set"):
            return f"_count({obj}, {self.expr(args[0])})"
        if name == "contains" and args:
            return f"_count({obj}, {self.expr(args[0])}) > 0"
        if name == "c_str" or name == "str":
            return obj
        if name == "substr" and args:
            start = self.expr(args[0])
            if len(args) > 1:
                return f"{obj}[{start}:{start}+{self.expr(args[1])}]"
            return f"{obj}[{start}:]"
        if name == "find" and args and kind == "string":
            needle = self.expr(args[0])
            if isinstance(args[0], Lit) and args[0].kind == "char":
                needle = f"string({needle})"
            return f"strings.Index({obj}, {needle})"
        if name == "append" and args:
            return f"{obj} + {self.expr(args[0])}"
        if name == "value" and kind == "optional":
            return f"*{obj}"
        if name == "has_value" and kind == "optional":
            return f"{obj} != nil"
        if name in ("begin", "end", "data"):
            return obj
        return None


_CONTAINER_METHODS = {"size", "empty", "back", "front"}
