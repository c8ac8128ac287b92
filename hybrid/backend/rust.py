"""RustBackend: IR -> Rust (Target-Alpha).

Safe Rust only. Classes become structs; a class introducing virtual
methods becomes a trait plus a <Name>Base struct holding its data, and
derived classes embed their base data and implement the trait. Functions
that may throw return Result<T, Box<dyn Error>>. Threads, locks, atomics
and channels map onto std::thread and std::sync.
"""

from __future__ import annotations

import re

from ..frontend.parse import parse_params
from ..frontend.scan import split_statements, split_top_level
from ..ir import (
    VOID,
    Array,
    AsyncPrimitive,
    ClassDecl,
    ClassRef,
    Container,
    EnumRef,
    FuncType,
    Function,
    Pointer,
    Primitive,
    Reference,
    SimpleStmt,
    StructRef,
    SyncPrimitive,
    TemplateParamRef,
    Type,
    Variable,
)
from ..middleend.templates import is_container_template, to_rust_generics
from .base import (
    Backend,
    DOUBLE,
    CatchBlock,
    EmitOptions,
    ForHead,
    IfChain,
    SwitchCase,
    coroutine_value_type,
    function_parts,
    has_return,
    printf_to_placeholders,
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
from .util import rust_safe, to_snake, to_screaming_snake

# Rust operator precedence (higher number = tighter binding).
# In Rust, bitwise ops bind tighter than comparisons (unlike C).
_RUST_PREC: dict[str, int] = {
    "||": 1, "&&": 2,
    "==": 3, "!=": 3, "<": 3, "<=": 3, ">": 3, ">=": 3,
    "|": 4, "^": 5, "&": 6,
    "<<": 7, ">>": 7,
    "+": 8, "-": 8,
    "*": 9, "/": 9, "%": 9,
}

_INT_TYPES: dict[str, str] = {
    "char": "char",
    "wchar_t": "char",
    "char32_t": "char",
    "signed char": "i8",
    "int8_t": "i8",
    "unsigned char": "u8",
    "uint8_t": "u8",
    "short": "i16",
    "short int": "i16",
    "int16_t": "i16",
    "unsigned short": "u16",
    "uint16_t": "u16",
    "char16_t": "u16",
    "int": "i32",
    "signed": "i32",
    "signed int": "i32",
    "int32_t": "i32",
    "unsigned": "u32",
    "unsigned int": "u32",
    "uint32_t": "u32",
    "long": "i64",
    "long int": "i64",
    "long long": "i64",
    "long long int": "i64",
    "int64_t": "i64",
    "unsigned long": "u64",
    "unsigned long int": "u64",
    "unsigned long long": "u64",
    "uint64_t": "u64",
    "size_t": "usize",
    "ptrdiff_t": "isize",
}

_COLLECTIONS: dict[str, str] = {
    "vector": "Vec",
    "list": "LinkedList",
    "deque": "VecDeque",
    "map": "BTreeMap",
    "unordered_map": "HashMap",
    "set": "BTreeSet",
    "unordered_set": "HashSet",
}

_ATOMICS: dict[str, str] = {
    "bool": "AtomicBool",
    "i8": "AtomicI8",
    "u8": "AtomicU8",
    "i16": "AtomicI16",
    "u16": "AtomicU16",
    "i32": "AtomicI32",
    "u32": "AtomicU32",
    "i64": "AtomicI64",
    "u64": "AtomicU64",
    "usize": "AtomicUsize",
    "isize": "AtomicIsize",
}

_ATOMIC_METHODS: dict[str, str] = {
    "load": "load",
    "store": "store",
    "exchange": "swap",
    "fetch_add": "fetch_add",
    "fetch_sub": "fetch_sub",
    "fetch_and": "fetch_and",
    "fetch_or": "fetch_or",
    "fetch_xor": "fetch_xor",
    "compare_exchange_strong": "compare_exchange",
    "compare_exchange_weak": "compare_exchange_weak",
}

_DURATIONS: dict[str, str] = {
    "nanoseconds": "from_nanos",
    "microseconds": "from_micros",
    "milliseconds": "from_millis",
    "seconds": "from_secs",
}

_MIXED_NUMERIC_OPS = {"+", "-", "*", "/", "<", ">", "<=", ">=", "==", "!="}
_MATH_METHODS = {"sqrt", "abs", "floor", "ceil", "round", "sin", "cos", "tan", "exp", "ln", "log10", "log2"}

# Each entry: (pattern found in the emitted body, use declaration)
_USES: list[tuple[str, str]] = [
    (r"\bBTreeMap\b", "use std::collections::BTreeMap;"),
    (r"\bBTreeSet\b", "use std::collections::BTreeSet;"),
    (r"\bHashMap\b", "use std::collections::HashMap;"),
    (r"\bHashSet\b", "use std::collections::HashSet;"),
    (r"\bLinkedList\b", "use std::collections::LinkedList;"),
    (r"\bVecDeque\b", "use std::collections::VecDeque;"),
    (r"\bdyn Error\b|\bimpl Error for\b", "use std::error::Error;"),
    (r"\bfmt::", "use std::fmt;"),
    (r"\bRc\b", "use std::rc::Rc;"),
    (r"\bCondvar\b", "use std::sync::Condvar;"),
    (r"\bMutex\b", "use std::sync::Mutex;"),
    (r"\bRwLock\b", "use std::sync::RwLock;"),
    (r"\bmpsc::", "use std::sync::mpsc;"),
    (r"\bthread::", "use std::thread;"),
    (r"\bDuration::", "use std::time::Duration;"),
]


def _rust_prec(op: str) -> int:
    return _RUST_PREC.get(op, 10)


def _str_lit(text: str) -> str:
    """C++ string literal -> Rust string literal."""
    m = re.match(r'^(?:u8|u|U|L)?(R?)"(.*)"$', text, re.DOTALL)
    if m is None:
        return text
    if m.group(1):
        inner = m.group(2)
        if inner.startswith("(") and inner.endswith(")"):
            inner = inner[1:-1]
        return f'r#"{inner}"#'
    return f'"{m.group(2)}"'


def _num_lit(text: str) -> str:
    s = text.rstrip("uUlL")
    if s.lower().startswith("0x") or s.lower().startswith("0b"):
        return s
    if s.endswith(("f", "F")) and ("." in s or "e" in s.lower()):
        s = s[:-1]
    if s.endswith("."):
        s += "0"
    if s.startswith("."):
        s = "0" + s
    return s


def _is_smart(typ: Type | None) -> bool:
    return isinstance(typ, Pointer) and typ.ownership in ("unique", "shared")


class RustBackend(Backend):
    """Emit Rust code from the IR."""

    target = "Rust"
    terminator = ";"

    def __init__(self, ir, options: EmitOptions | None = None) -> None:
        super().__init__(ir, options, "    ")
        self.self_name = "self"
        self.result_ctx: list[bool] = []
        self.try_marks: list[int] = []
        self.generator = False
        self.handles: set[str] = set()
        self.receivers: dict[str, str] = {}
        self.plain_refs: set[str] = set()
        self.lvalue = False

    def emit(self) -> str:
        self.lines = []
        self.indent = 0
        for var in self.ir.global_vars:
            self._emit_global(var)
        for decl in self.classes:
            self._emit_class(decl)
        for func in self.ir.functions:
            if func.body is None:
                continue
            self._emit_function(func, None)
        body = self.output().strip("\n")
        self.lines = []
        self._emit_header(body)
        header = self.output()
        return (header + "\n" if header else "") + body + "\n"

    def _emit_header(self, body: str) -> None:
        if self.options.preserve_comments:
            self.line(f"// Generated by hybrid-transpiler from {self.options.module_name}. Do not edit.")
        if self.options.safety_checks:
            self.line("#![forbid(unsafe_code)]")
        if self.lines:
            self.line("")
        uses = [use for pattern, use in _USES if re.search(pattern, body)]
        atomics = sorted(set(re.findall(r"\b(Atomic(?:Bool|[IU](?:8|16|32|64|size)))\b", body)))
        if atomics or "Ordering::" in body:
            names = atomics + (["Ordering"] if "Ordering::" in body else [])
            uses.append("use std::sync::atomic::{" + ", ".join(names) + "};")
        for use in sorted(uses):
            self.line(use)
        if uses:
            self.line("")

    # ── naming ───────────────────────────────────────────────

    def ident(self, name: str) -> str:
        snake = to_snake(name)
        return rust_safe(snake) if snake else "_"

    def global_name(self, var: Variable, owner: ClassDecl | None = None) -> str:
        prefix = f"{owner.name}_" if owner is not None else ""
        return to_screaming_snake(prefix + var.name)

    # ── types ────────────────────────────────────────────────

    def rtype(self, typ: Type | None, pos: str = "local") -> str:
        """Rust spelling of a type. pos is field, param, ret or local."""
        if typ is None:
            return "_"
        if isinstance(typ, Primitive):
            if typ.kind == "void":
                return "()"
            if typ.kind == "bool":
                return "bool"
            if typ.kind == "float":
                return "f32" if typ.name == "float" else "f64"
            return _INT_TYPES.get(typ.name, "i32")
        if isinstance(typ, Pointer):
            elem = typ.element
            if isinstance(elem, Primitive) and elem.name == "char":
                return "&str" if pos == "param" else "String"
            inner = self.rtype_dyn(elem)
            if typ.ownership in ("unique", "shared"):
                owner = f"{'Box' if typ.ownership == 'unique' else 'Rc'}<{inner}>"
                return f"Option<{owner}>" if pos == "field" else owner
            if pos == "param":
                ref = "&" if elem.is_const else "&mut "
                if self.options.safety_checks:
                    return f"Option<{ref}{inner}>"
                return f"{ref}{inner}"
            return f"Option<Box<{inner}>>"
        if isinstance(typ, Reference):
            elem = typ.element
            if typ.is_rvalue or pos in ("field", "local"):
                return self.rtype(elem, pos)
            if isinstance(elem, Container) and elem.kind == "string" and elem.is_const:
                return "&str"
            ref = "&" if elem.is_const else "&mut "
            return f"{ref}{self.rtype_dyn(elem)}"
        if isinstance(typ, Array):
            if typ.size:
                return f"[{self.rtype(typ.element)}; {typ.size}]"
            return f"Vec<{self.rtype(typ.element)}>"
        if isinstance(typ, (StructRef, EnumRef, TemplateParamRef)):
            return typ.name
        if isinstance(typ, ClassRef):
            decl = self.find_class(typ.base_name)
            name = typ.base_name.removeprefix("std::")
            if decl is not None:
                name = decl.name + "Base" if self.is_interface_class(decl) and decl.fields else self.type_name(decl)
            if name == "auto":
                return "_"
            if typ.args:
                return f"{name}<{', '.join(self.rtype(a) for a in typ.args)}>"
            return name
        if isinstance(typ, FuncType):
            return f"Box<dyn Fn({self._fn_type_params(typ)}){self._fn_type_ret(typ)}>"
        if isinstance(typ, Container):
            return self._container_type(typ)
        if isinstance(typ, SyncPrimitive):
            return self._sync_type(typ, pos)
        if isinstance(typ, AsyncPrimitive):
            value = self.rtype(typ.element) if typ.element is not None else "()"
            if typ.kind in ("future", "shared_future"):
                return f"mpsc::Receiver<{value}>"
            if typ.kind == "promise":
                return f"mpsc::Sender<{value}>"
            return typ.name
        raise NotImplementedError(f"Rust type: {typ}")

    def rtype_dyn(self, typ: Type) -> str:
        """Type behind a pointer or reference; interface classes become trait objects."""
        decl = self.class_of_type(typ)
        if decl is not None and self.is_interface_class(decl):
            return f"dyn {decl.name}"
        return self.rtype(typ)

    def _fn_type_params(self, typ: FuncType) -> str:
        _, params = function_parts(typ)
        return ", ".join(self.rtype(p.typ, "param") for p in parse_params(params))

    def _fn_type_ret(self, typ: FuncType) -> str:
        ret, _ = function_parts(typ)
        ret_type = self.parse_local_type(ret)
        if isinstance(ret_type, Primitive) and ret_type.kind == "void":
            return ""
        return f" -> {self.rtype(ret_type)}"

    def _container_type(self, typ: Container) -> str:
        if typ.kind == "string":
            return "String"
        elem = self.rtype(typ.element) if typ.element is not None else "_"
        if typ.kind == "pair":
            return f"({elem}, {self.rtype(typ.value)})"
        if typ.kind == "optional":
            return f"Option<{elem}>"
        if typ.kind in ("map", "unordered_map"):
            return f"{_COLLECTIONS[typ.kind]}<{elem}, {self.rtype(typ.value)}>"
        return f"{_COLLECTIONS[typ.kind]}<{elem}>"

    def _sync_type(self, typ: SyncPrimitive, pos: str) -> str:
        if typ.kind == "thread":
            return "Option<thread::JoinHandle<()>>" if pos == "field" else "thread::JoinHandle<()>"
        if typ.kind in ("mutex", "recursive_mutex", "timed_mutex"):
            return "Mutex<()>"
        if typ.kind == "shared_mutex":
            return "RwLock<()>"
        if typ.kind == "atomic":
            return self._atomic_type(typ.element)
        if typ.kind == "condition_variable":
            return "Condvar"
        return "std::sync::MutexGuard<'_, ()>"

    def _atomic_type(self, element: Type | None) -> str:
        value = self.rtype(element) if element is not None else "i32"
        return _ATOMICS.get(value, "AtomicI32")

    def default_value(self, typ: Type) -> str:
        if isinstance(typ, Primitive):
            if typ.kind == "bool":
                return "false"
            if typ.kind == "float":
                return "0.0"
            if _INT_TYPES.get(typ.name) == "char":
                return "'\\0'"
            return "0"
        if isinstance(typ, Pointer):
            elem = typ.element
            if isinstance(elem, Primitive) and elem.name == "char":
                return "String::new()"
            if typ.ownership == "raw":
                return "None"
            wrapper = "Box" if typ.ownership == "unique" else "Rc"
            return f"{wrapper}::new({self.default_value(elem)})"
        if isinstance(typ, Reference):
            return self.default_value(typ.element)
        if isinstance(typ, Array):
            if typ.size:
                return f"[{self.default_value(typ.element)}; {typ.size}]"
            return "Vec::new()"
        if isinstance(typ, Container):
            if typ.kind == "string":
                return "String::new()"
            if typ.kind == "pair":
                return f"({self.default_value(typ.element or VOID)}, {self.default_value(typ.value or VOID)})"
            if typ.kind == "optional":
                return "None"
            return f"{_COLLECTIONS[typ.kind]}::new()"
        if isinstance(typ, SyncPrimitive):
            if typ.kind == "thread":
                return "None"
            if typ.kind == "shared_mutex":
                return "RwLock::new(())"
            if typ.kind in ("mutex", "recursive_mutex", "timed_mutex"):
                return "Mutex::new(())"
            if typ.kind == "atomic":
                atomic = self._atomic_type(typ.element)
                return f"{atomic}::new({'false' if atomic == 'AtomicBool' else '0'})"
            if typ.kind == "condition_variable":
                return "Condvar::new()"
        if isinstance(typ, AsyncPrimitive) and typ.kind in ("future", "shared_future"):
            return "mpsc::channel().1"
        if isinstance(typ, AsyncPrimitive) and typ.kind == "promise":
            return "mpsc::channel().0"
        decl = self.class_of_type(typ)
        if decl is not None and not (self.is_interface_class(decl) and not decl.fields):
            return f"{self.rtype(typ)}::new()"
        if isinstance(typ, Primitive) and typ.kind == "void":
            return "()"
        return "Default::default()"

    # ── globals ──────────────────────────────────────────────

    @staticmethod
    def is_static_item(var: Variable) -> bool:
        """Global read without a lock: constants and synchronization objects."""
        if var.is_const or var.typ.is_const:
            return True
        return isinstance(var.typ, SyncPrimitive) and var.typ.kind != "thread"

    def _emit_global(self, var: Variable, owner: ClassDecl | None = None) -> None:
        name = self.global_name(var, owner)
        typ = self.rtype(var.typ, "field")
        if isinstance(var.typ, SyncPrimitive) and var.typ.kind != "thread":
            value = self.default_value(var.typ)
            if var.typ.kind == "atomic" and var.initializer:
                text = var.initializer.strip()
                args = read_args(text[1:-1]) if text.startswith("{") else [read_expr(text)]
                if args:
                    value = f"{typ}::new({self.expr(args[0])})"
            self.line(f"static {name}: {typ} = {value};")
            self.line("")
            return
        if isinstance(var.typ, Pointer) and isinstance(var.typ.element, Primitive) and var.typ.element.name == "char":
            typ = "&str"
        if var.initializer:
            value = self._hold(var.typ, self._initializer(var.typ, var.initializer))
        else:
            value = self.field_default(var.typ)
        if var.is_const or var.typ.is_const:
            if typ == "String":
                typ = "&str"
                value = value.removesuffix(".to_string()")
            self.line(f"pub const {name}: {typ} = {value};")
        else:
            self.line(f"static {name}: Mutex<{typ}> = Mutex::new({value});")
        self.line("")

    def _initializer(self, typ: Type, text: str) -> str:
        text = text.strip()
        if text.startswith("{") and text.endswith("}"):
            return self._construct(typ, read_args(text[1:-1]), brace=True)
        return self.coerce(read_expr(text), typ)

    # ── classes ──────────────────────────────────────────────

    def has_struct(self, decl: ClassDecl) -> bool:
        return not self.introduces_virtuals(decl) or bool(decl.fields)

    def struct_name(self, decl: ClassDecl) -> str:
        if self.introduces_virtuals(decl):
            return decl.name + "Base"
        return self.type_name(decl)

    def data_bases(self, decl: ClassDecl) -> list[ClassDecl]:
        return [b for b in self.base_decls(decl) if self.has_struct(b)]

    def embed_name(self, decl: ClassDecl, base: ClassDecl) -> str:
        if len(self.data_bases(decl)) == 1:
            return "base"
        return "base_" + to_snake(base.name)

    def data_path(self, decl: ClassDecl, target: ClassDecl) -> str | None:
        """Field path from decl's struct to target's embedded data."""
        for base in self.data_bases(decl):
            name = self.embed_name(decl, base)
            if base is target:
                return name
            rest = self.data_path(base, target)
            if rest is not None:
                return f"{name}.{rest}"
        return None

    def introduced_methods(self, decl: ClassDecl) -> list[Function]:
        inherited = {m.name for base in self.ancestors(decl) for m in base.virtual_methods}
        seen: set[str] = set()
        result: list[Function] = []
        for method in decl.virtual_methods:
            if method.name in inherited or method.name in seen:
                continue
            seen.add(method.name)
            result.append(method)
        return result

    def resolve_virtual(self, decl: ClassDecl, name: str) -> tuple[ClassDecl, Function] | None:
        for candidate in [decl] + self.ancestors(decl):
            method = candidate.find_method(name)
            if method is not None and method.body is not None and not method.is_pure_virtual:
                return candidate, method
        return None

    def is_abstract(self, decl: ClassDecl) -> bool:
        for iface in self.interfaces_of(decl):
            for method in self.introduced_methods(iface):
                if self.resolve_virtual(decl, method.name) is None and method.is_pure_virtual:
                    return True
        return False

    def _generics(self, decl: ClassDecl) -> tuple[str, str]:
        """(impl generics, type arguments) for a class."""
        generics = to_rust_generics(decl.template_params)
        if not generics:
            return "", ""
        names = ", ".join(p.name for p in decl.template_params)
        return generics, f"<{names}>"

    def _emit_class(self, decl: ClassDecl) -> None:
        self.cls = decl
        self.emit_doc(decl.doc, "///")
        if self.introduces_virtuals(decl):
            self._emit_trait(decl)
        if self.has_struct(decl):
            self._emit_struct(decl)
            self._emit_impl(decl)
            self._emit_trait_impls(decl)
            if self.is_exception_class(decl):
                self._emit_error_impls(decl)
            destructor = next((m for m in decl.methods if m.is_destructor and m.body is not None), None)
            if destructor is not None:
                self._emit_drop(decl, destructor)
        self.cls = None

    def _emit_trait(self, decl: ClassDecl) -> None:
        supers = [b.name for b in self.base_decls(decl) if self.interfaces_of(b)]
        bound = f": {' + '.join(supers)}" if supers else ""
        self.line(f"pub trait {decl.name}{bound} {{")
        self.indent += 1
        defaults = not decl.fields
        for method in self.introduced_methods(decl):
            self.emit_doc(method.doc, "///")
            sig = self._signature(method, decl, pub="")
            if defaults and method.body is not None and not method.is_pure_virtual:
                self.line(f"{sig} {{")
                self._emit_fn_body(method, decl)
                self.line("}")
            else:
                self.line(f"{sig};")
        if defaults:
            for method in decl.methods:
                if method.is_polymorphic or method.is_constructor or method.is_destructor or method.is_static:
                    continue
                if method.body is None:
                    continue
                self.line(f"{self._signature(method, decl, pub='')} {{")
                self._emit_fn_body(method, decl)
                self.line("}")
        self.indent -= 1
        self.line("}")
        self.line("")

    def _emit_struct(self, decl: ClassDecl) -> None:
        generics, _ = self._generics(decl)
        name = self.struct_name(decl)
        if self.is_exception_class(decl):
            self.line("#[derive(Debug)]")
        elif self._derives_default(decl):
            self.line("#[derive(Default)]")
        self.line(f"pub struct {name}{generics} {{")
        self.indent += 1
        for base in self.data_bases(decl):
            self.line(f"{self.embed_name(decl, base)}: {self.struct_name(base)},")
        if self.is_exception_class(decl) and not any(f.name == "message" for f in decl.fields):
            self.line("pub message: String,")
        for var in decl.fields:
            if var.is_static:
                continue
            vis = "pub " if decl.access_of(var.name) == "public" else ""
            self.line(f"{vis}{self.ident(var.name)}: {self.rtype(var.typ, 'field')},")
        self.indent -= 1
        self.line("}")
        self.line("")
        for var in decl.fields:
            if var.is_static:
                self._emit_global(var, decl)

    def _derives_default(self, decl: ClassDecl) -> bool:
        """Container-shaped templates holding only containers and scalars."""
        if not is_container_template(decl) or self.data_bases(decl):
            return False
        for var in decl.fields:
            if var.is_static:
                continue
            if not isinstance(var.typ, (Container, Primitive)):
                return False
        return True

    def _inherent_methods(self, decl: ClassDecl) -> list[Function]:
        interface = self.introduces_virtuals(decl)
        concrete = not self.is_abstract(decl)
        result: list[Function] = []
        for method in decl.methods:
            if method.is_constructor or method.is_destructor:
                continue
            if method.is_polymorphic:
                if not interface or concrete or method.is_pure_virtual:
                    continue
                if method.body is None:
                    continue
            if self.is_exception_class(decl) and method.name == "what":
                result.append(method)
                continue
            if interface and not decl.fields:
                continue
            result.append(method)
        return result

    def _emit_impl(self, decl: ClassDecl) -> None:
        generics, args = self._generics(decl)
        name = self.struct_name(decl)
        self.line(f"impl{generics} {name}{args} {{")
        self.indent += 1
        ctors = [m for m in decl.methods if m.is_constructor]
        if not ctors:
            self._emit_constructor(decl, Function(name=decl.name, body="", is_constructor=True), "new")
        for i, ctor in enumerate(ctors):
            self._emit_constructor(decl, ctor, "new" if i == 0 else f"new_{i + 1}")
        for method in self._inherent_methods(decl):
            self._emit_method(method, decl)
        self.indent -= 1
        self.line("}")
        self.line("")

    def _emit_trait_impls(self, decl: ClassDecl) -> None:
        generics, args = self._generics(decl)
        name = self.struct_name(decl)
        for iface in self.interfaces_of(decl):
            if iface is decl and self.is_abstract(decl):
                continue
            self.line(f"impl{generics} {iface.name} for {name}{args} {{")
            self.indent += 1
            for method in self.introduced_methods(iface):
                resolved = self.resolve_virtual(decl, method.name)
                sig = self._signature(method, decl, pub="")
                if resolved is None:
                    self.line(f"{sig} {{")
                    self.line(f'{self._indent_str}unimplemented!("{decl.name}::{method.name}")')
                    self.line("}")
                    continue
                owner, impl = resolved
                if owner is decl:
                    self.emit_doc(impl.doc, "///")
                    self.line(f"{self._signature(impl, decl, pub='', receiver_from=method)} {{")
                    self._emit_fn_body(impl, decl)
                    self.line("}")
                    continue
                if owner is iface and not iface.fields:
                    continue
                path = self.data_path(decl, owner)
                if path is None:
                    continue
                call_args = ", ".join(self.ident(p.name) for p in method.params if p.name)
                self.line(f"{sig} {{")
                self.line(f"{self._indent_str}self.{path}.{self.ident(method.name)}({call_args})")
                self.line("}")
            self.indent -= 1
            self.line("}")
            self.line("")

    def _emit_error_impls(self, decl: ClassDecl) -> None:
        name = self.struct_name(decl)
        message = "self.what()" if decl.find_method("what") is not None else "self.message"
        self.line(f"impl fmt::Display for {name} {{")
        self.indent += 1
        self.line("fn fmt(&self, f: &mut fmt::Formatter<'_>) -> fmt::Result {")
        self.line(f'{self._indent_str}write!(f, "{{}}", {message})')
        self.line("}")
        self.indent -= 1
        self.line("}")
        self.line("")
        self.line(f"impl Error for {name} {{}}")
        self.line("")

    def _emit_drop(self, decl: ClassDecl, destructor: Function) -> None:
        generics, args = self._generics(decl)
        self.line(f"impl{generics} Drop for {self.struct_name(decl)}{args} {{")
        self.indent += 1
        self.line("fn drop(&mut self) {")
        self._emit_fn_body(destructor, decl)
        self.line("}")
        self.indent -= 1
        self.line("}")
        self.line("")

    # ── functions ────────────────────────────────────────────

    def _param(self, func: Function, index: int) -> str:
        param = func.params[index]
        name = self.ident(param.name) if param.name else f"_arg{index}"
        typ = param.typ
        if param.name in func.moved_params and isinstance(typ, Reference):
            return f"{name}: {self.rtype(typ.element)}"
        return f"{name}: {self.rtype(typ, 'param')}"

    def _return_type(self, func: Function) -> str:
        """Text after the parameter list (" -> T" or "")."""
        if func.coroutine.is_generator:
            return f" -> impl Iterator<Item = {self.rtype(coroutine_value_type(func))}>"
        ret = coroutine_value_type(func) if func.coroutine.is_coroutine else func.ret
        if func.name == "main" and self.cls is None:
            ret = VOID
        value = self.rtype(ret, "ret") if ret is not None else "Self"
        if self.is_fallible(func):
            if value == "()":
                return " -> Result<(), Box<dyn Error>>"
            return f" -> Result<{value}, Box<dyn Error>>"
        if value == "()":
            return ""
        return f" -> {value}"

    def _signature(
        self, func: Function, decl: ClassDecl | None, pub: str = "pub ", receiver_from: Function | None = None
    ) -> str:
        params = [self._param(func, i) for i in range(len(func.params))]
        if decl is not None and not func.is_static:
            shape = receiver_from or func
            params.insert(0, "&self" if shape.is_const else "&mut self")
        generics = to_rust_generics(func.template_params) if decl is None or func.template_params else ""
        qualifier = "async " if func.coroutine.is_coroutine and not func.coroutine.is_generator else ""
        name = "main" if func.name == "main" and decl is None else self.ident(func.name)
        if func.name == "main" and decl is None:
            params = []
            pub = ""
        return f"{pub}{qualifier}fn {name}{generics}({', '.join(params)}){self._return_type(func)}"

    def _emit_function(self, func: Function, decl: ClassDecl | None) -> None:
        self.emit_doc(func.doc, "///")
        self.emit_constraint_note(func)
        self.line(f"{self._signature(func, decl)} {{")
        self._emit_fn_body(func, decl)
        self.line("}")
        self.line("")

    def _emit_method(self, func: Function, decl: ClassDecl) -> None:
        if func.body is None and not func.is_pure_virtual:
            self.emit_doc(func.doc, "///")
            self.emit_constraint_note(func)
            self.line(f"{self._signature(func, decl, self._vis(func, decl))} {{")
            self.line(f'{self._indent_str}unimplemented!("{decl.name}::{func.name}")')
            self.line("}")
            return
        self.emit_doc(func.doc, "///")
        self.emit_constraint_note(func)
        self.line(f"{self._signature(func, decl, self._vis(func, decl))} {{")
        self._emit_fn_body(func, decl)
        self.line("}")

    def _vis(self, func: Function, decl: ClassDecl) -> str:
        return "pub " if decl.access_of(func.name) == "public" else ""

    def _prologue(self, func: Function) -> None:
        """Null checks for raw pointer parameters."""
        self.plain_refs = set()
        for param in func.params:
            if isinstance(param.typ, Pointer) and param.typ.ownership == "raw" and param.name:
                elem = param.typ.element
                if isinstance(elem, Primitive) and elem.name == "char":
                    continue
                self.plain_refs.add(param.name)
                if self.options.safety_checks:
                    name = self.ident(param.name)
                    self.line(f'let {name} = {name}.expect("{param.name} must not be null");')

    def _emit_fn_body(self, func: Function, decl: ClassDecl | None) -> None:
        saved = (self.func, self.cls, self.scopes, self.result_ctx, self.try_marks, self.generator, self.self_name)
        self.enter_function(func, decl)
        self.cls = decl
        self.self_name = "self"
        self.handles = set()
        self.receivers = {}
        self.result_ctx = [self.is_fallible(func)]
        self.try_marks = []
        self.indent += 1
        self._prologue(func)
        stmts = list(func.stmts)
        if not stmts and func.body:
            stmts = split_statements(func.body, func.body_line or func.line)
        if func.name == "main" and decl is None and stmts:
            last = stmts[-1]
            if hasattr(last, "text") and re.fullmatch(r"return\s+0|return", last.text):
                stmts = stmts[:-1]
        if func.coroutine.is_generator:
            self.line("let (tx, rx) = mpsc::sync_channel(0);")
            self.line("thread::spawn(move || {")
            self.generator = True
            self.result_ctx = [False]
            self.indent += 1
            self.emit_stmts(stmts)
            self.indent -= 1
            self.generator = False
            self.line("});")
            self.line("rx.into_iter()")
        else:
            self.emit_stmts(stmts)
            if self.is_fallible(func) and not self._ends_with_exit(stmts):
                self.line("Ok(())" if self._return_type(func).endswith("<(), Box<dyn Error>>") else "unreachable!()")
            elif self._return_type(func) and not self._ends_with_exit(stmts):
                self.line("unreachable!()")
        self.indent -= 1
        self.func, self.cls, self.scopes, self.result_ctx, self.try_marks, self.generator, self.self_name = saved

    @staticmethod
    def _ends_with_exit(stmts) -> bool:
        if not stmts:
            return False
        text = getattr(stmts[-1], "text", "")
        return bool(re.match(r"(return|throw|co_return)\b", text))

    def _emit_constructor(self, decl: ClassDecl, ctor: Function, name: str) -> None:
        saved = (self.func, self.cls, self.scopes, self.result_ctx, self.try_marks, self.self_name)
        self.enter_function(ctor, decl)
        self.result_ctx = [self.is_fallible(ctor)]
        self.try_marks = []
        self.handles = set()
        self.receivers = {}
        self.emit_doc(ctor.doc, "///")
        params = ", ".join(self._param(ctor, i) for i in range(len(ctor.params)))
        ret = "Result<Self, Box<dyn Error>>" if self.is_fallible(ctor) else "Self"
        self.line(f"pub fn {name}({params}) -> {ret} {{")
        self.indent += 1
        self._prologue(ctor)
        inits = dict(ctor.initializers)
        self._emit_channels(decl, inits)
        fields: list[str] = []
        for base in self.data_bases(decl):
            args = ""
            for key, value in inits.items():
                if key.split("<", 1)[0] == base.name:
                    args = ", ".join(self.expr(a) for a in read_args(value))
            fields.append(f"{self.embed_name(decl, base)}: {self.struct_name(base)}::new({args})")
        if self.is_exception_class(decl) and not any(f.name == "message" for f in decl.fields):
            message = "String::new()"
            for key, value in inits.items():
                if key.removeprefix("std::") in ("exception", "runtime_error", "logic_error", "invalid_argument", "out_of_range"):
                    message = f"{self.expr(read_expr(value))}.to_string()"
            fields.append(f"message: {message}")
        for var in decl.fields:
            if var.is_static:
                continue
            fields.append(f"{self.ident(var.name)}: {self._field_value(var, inits)}")
        stmts = list(ctor.stmts)
        if not stmts and ctor.body:
            stmts = split_statements(ctor.body, ctor.body_line or ctor.line)
        wrap = "Ok({})" if self.is_fallible(ctor) else "{}"
        if not stmts:
            self._emit_struct_literal("Self", fields, wrap)
        else:
            self._emit_struct_literal("let mut this = Self", fields, "{};")
            self.self_name = "this"
            self.emit_stmts(stmts)
            self.line(wrap.format("this"))
        self.indent -= 1
        self.line("}")
        self.func, self.cls, self.scopes, self.result_ctx, self.try_marks, self.self_name = saved

    def _emit_struct_literal(self, head: str, fields: list[str], wrap: str) -> None:
        if not fields:
            self.line(wrap.format(head + " {}"))
            return
        opener = wrap.split("{}")[0]
        closer = wrap.split("{}")[1] if "{}" in wrap else ""
        self.line(f"{opener}{head} {{")
        self.indent += 1
        for text in fields:
            self.line(f"{text},")
        self.indent -= 1
        self.line(f"}}{closer}")

    def _emit_channels(self, decl: ClassDecl, inits: dict[str, str]) -> None:
        """Create one channel per promise field, paired with the future fed from it."""
        promises = [f for f in decl.fields if isinstance(f.typ, AsyncPrimitive) and f.typ.kind == "promise"]
        futures = [f for f in decl.fields if isinstance(f.typ, AsyncPrimitive) and f.typ.kind in ("future", "shared_future")]
        unpaired = list(futures)
        for promise in promises:
            partner = next((f for f in unpaired if f.name in inits and promise.name in inits[f.name]), None)
            if partner is None and unpaired:
                partner = unpaired[0]
            if partner is not None:
                unpaired.remove(partner)
            value = self.rtype(promise.typ.element) if promise.typ.element is not None else "()"
            tx = f"{self.ident(promise.name)}_tx"
            rx = f"{self.ident(promise.name)}_rx"
            self.line(f"let ({tx}, {rx}) = mpsc::channel::<{value}>();")
            self.receivers[promise.name] = tx
            if partner is not None:
                self.receivers[partner.name] = rx

    def _field_value(self, var: Variable, inits: dict[str, str]) -> str:
        if var.name in self.receivers:
            return self.receivers[var.name]
        if var.name in inits:
            args = read_args(inits[var.name])
            if isinstance(var.typ, SyncPrimitive) and var.typ.kind == "atomic" and args:
                return f"{self._atomic_type(var.typ.element)}::new({self.expr(args[0])})"
            if len(args) == 1 and not self.class_of_type(var.typ):
                return self._hold(var.typ, self.coerce(args[0], var.typ))
            return self._hold(var.typ, self._construct(var.typ, args))
        if var.initializer:
            return self._hold(var.typ, self._initializer(var.typ, var.initializer))
        return self.field_default(var.typ)

    def field_default(self, typ: Type) -> str:
        """Smart pointers start out null, as in C++."""
        return "None" if _is_smart(typ) else self.default_value(typ)

    @staticmethod
    def _hold(typ: Type, value: str) -> str:
        """Wrap a value stored into an Option-held smart pointer field."""
        if _is_smart(typ) and value != "None":
            return f"Some({value})"
        return value

    # ── statements ───────────────────────────────────────────

    def emit_if(self, chain: IfChain) -> None:
        for i, (cond, body) in enumerate(chain.branches):
            text = self.cond(read_expr(cond))
            if i == 0:
                self.line(f"if {text} {{")
            else:
                self.line(f"}} else if {text} {{")
            self.emit_nested(body)
        if chain.else_body is not None:
            self.line("} else {")
            self.emit_nested(chain.else_body)
        self.line("}")

    def emit_while(self, cond: str, body) -> None:
        text = self.cond(read_expr(cond))
        self.line("loop {" if text == "true" else f"while {text} {{")
        self.emit_nested(body)
        self.line("}")

    def emit_do_while(self, body, cond: str) -> None:
        self.line("loop {")
        self.emit_nested(body)
        self.indent += 1
        self.line(f"if !({self.cond(read_expr(cond))}) {{")
        self.line(f"{self._indent_str}break;")
        self.line("}")
        self.indent -= 1
        self.line("}")

    def emit_for(self, head: ForHead, body) -> None:
        rng = self._counting_range(head)
        if rng is not None:
            var, text = rng
            self.line(f"for {self.ident(var)} in {text} {{")
            self.indent += 1
            self.push_scope()
            self.declare(var, self.parse_local_type("int"))
            self.emit_stmts(body)
            self.pop_scope()
            self.indent -= 1
            self.line("}")
            return
        self.line("{")
        self.indent += 1
        self.push_scope()
        if head.init:
            self.emit_op(read_statement(head.init, self.template_names()), SimpleStmt(text=head.init))
        cond = self.cond(read_expr(head.cond)) if head.cond else "true"
        self.line("loop {" if cond == "true" else f"while {cond} {{")
        self.indent += 1
        self.push_scope()
        self.emit_stmts(body)
        self.pop_scope()
        if head.step:
            for step in split_top_level(head.step):
                self.emit_expr_stmt(read_expr(step))
        self.indent -= 1
        self.line("}")
        self.pop_scope()
        self.indent -= 1
        self.line("}")

    def _counting_range(self, head: ForHead) -> tuple[str, str] | None:
        m = re.fullmatch(r"(?:[\w:]+\s+)*?(?:int|size_t|long|unsigned|auto|[\w:]+_t)?\s*([A-Za-z_]\w*)\s*=\s*(.+)", head.init)
        if m is None:
            return None
        var, start = m.group(1), m.group(2).strip()
        c = re.fullmatch(rf"{var}\s*(<|<=|>=|>)\s*(.+)", head.cond)
        if c is None:
            return None
        op, bound = c.group(1), c.group(2).strip()
        step = head.step.replace(" ", "")
        lo = self.expr(read_expr(start))
        hi = self.expr(read_expr(bound))
        if step in (f"++{var}", f"{var}++", f"{var}+=1") and op in ("<", "<="):
            return var, f"{lo}..{'=' if op == '<=' else ''}{self._paren_range(hi)}"
        if step in (f"--{var}", f"{var}--", f"{var}-=1") and op in (">", ">="):
            lower = hi if op == ">=" else f"{self._paren_range(hi)} + 1"
            return var, f"({lower}..={lo}).rev()"
        return None

    @staticmethod
    def _paren_range(text: str) -> str:
        return f"({text})" if " " in text and not text.startswith("(") else text

    def emit_range_for(self, head: ForHead, body) -> None:
        iterable_expr = read_expr(head.iterable)
        iterable = self.expr(iterable_expr)
        typ = strip_indirection(self.type_of(iterable_expr))
        if "," in head.var:
            pattern = "(" + ", ".join(self.ident(v.strip()) for v in head.var.split(",")) + ")"
        else:
            pattern = self.ident(head.var)
        if self.is_generator_call(iterable_expr):
            source = iterable
        elif isinstance(typ, Container) and isinstance(typ.element, SyncPrimitive) and typ.element.kind == "thread":
            source = f"{iterable}.drain(..)"
        elif "&" in head.var_type and "const" not in head.var_type:
            source = f"{iterable}.iter_mut()"
        elif isinstance(typ, Container) and typ.kind == "string":
            source = f"{iterable}.chars()"
        else:
            source = f"{iterable}.iter()"
        self.line(f"for {pattern} in {source} {{")
        self.indent += 1
        self.push_scope()
        element = None
        if isinstance(typ, (Container, Array)):
            element = typ.element
        if "," not in head.var:
            self.declare(head.var, element or self.parse_local_type("auto"))
        else:
            for v in head.var.split(","):
                self.declare(v.strip(), self.parse_local_type("auto"))
        self.emit_stmts(body)
        self.pop_scope()
        self.indent -= 1
        self.line("}")

    def emit_switch(self, subject: str, cases: list[SwitchCase]) -> None:
        self.line(f"match {self.expr(read_expr(subject))} {{")
        self.indent += 1
        has_default = False
        for case in cases:
            if case.is_default:
                has_default = True
                label = "_"
            else:
                label = " | ".join(self.expr(v) for v in case.values)
            self.line(f"{label} => {{")
            self.emit_nested(case.body)
            self.line("}")
        if not has_default:
            self.line("_ => {}")
        self.indent -= 1
        self.line("}")

    def emit_try(self, body, catches: list[CatchBlock]) -> None:
        value = self._try_value_type(body)
        if value is None:
            self.line("match (|| -> Result<(), Box<dyn Error>> {")
        else:
            self.line(f"match (|| -> Result<Option<{value}>, Box<dyn Error>> {{")
        self.indent += 1
        self.result_ctx.append(True)
        if value is not None:
            self.try_marks.append(len(self.result_ctx))
        self.push_scope()
        self.emit_stmts(body)
        self.pop_scope()
        if value is not None:
            self.try_marks.pop()
        self.result_ctx.pop()
        if not self._ends_with_exit(body):
            self.line("Ok(())" if value is None else "Ok(None)")
        self.indent -= 1
        self.line("})() {")
        self.indent += 1
        if value is None:
            self.line("Ok(()) => {}")
        else:
            self.line(f"Ok(Some(v)) => {self._leave_with('v')},")
            self.line("Ok(None) => {}")
        generic = False
        for catch in catches:
            decl = self.find_class(catch.exception_type)
            var = self.ident(catch.var) if catch.var else "_e"
            if decl is not None:
                guard = f" if e.is::<{self.struct_name(decl)}>()"
                self.line(f"Err(e){guard} => {{")
                self.indent += 1
                if catch.var:
                    self.line(f"let {var} = e.downcast_ref::<{self.struct_name(decl)}>().unwrap();")
            else:
                generic = True
                self.line(f"Err({'e' if catch.var else '_e'}) => {{")
                self.indent += 1
                if catch.var and var != "e":
                    self.line(f"let {var} = e;")
            self.push_scope()
            if catch.var:
                self.declare(catch.var, self.parse_local_type(catch.exception_type or "std::exception"))
            self.emit_stmts(catch.body)
            self.pop_scope()
            self.indent -= 1
            self.line("}")
            if generic:
                break
        if not generic:
            self.line("Err(e) => return Err(e)," if self.result_ctx[-1] else 'Err(e) => panic!("{}", e),')
        self.indent -= 1
        self.line("}")

    def emit_bare_block(self, body) -> None:
        self.line("{")
        self.emit_nested(body)
        self.line("}")

    def emit_decl(self, op: DeclOp) -> None:
        typ = op.typ
        name = self.ident(op.name)
        explicit = not (isinstance(typ, ClassRef) and typ.base_name == "auto")
        self.declare(op.name, typ if explicit else (self.type_of(op.init) or typ))
        if isinstance(typ, SyncPrimitive):
            self._emit_sync_decl(op, name)
            return
        if isinstance(typ, AsyncPrimitive) and typ.kind == "promise":
            value = self.rtype(typ.element) if typ.element is not None else "()"
            self.line(f"let ({name}, {name}_rx) = mpsc::channel::<{value}>();")
            return
        if op.init is not None and self._is_async_launch(op.init):
            self.handles.add(op.name)
            self.line(f"let {name} = {self._spawn(op.init.args)};")
            return
        if isinstance(op.init, Call) and isinstance(op.init.func, Member) and op.init.func.name == "get_future":
            obj = op.init.func.obj
            if isinstance(obj, Name) and obj.last in self.receivers:
                self.line(f"let {name} = {self.receivers[obj.last]};")
                return
            self.line(f"let {name} = {self.expr(obj)}_rx;")
            return
        mut = "" if typ.is_const else "mut "
        annotation = ""
        if explicit and not isinstance(typ, (Pointer, Reference)) or (
            isinstance(typ, Pointer) and isinstance(op.init, Lit) and op.init.kind == "null"
        ):
            annotation = f": {self.rtype(typ, 'local')}"
        if op.init is not None:
            value = self.coerce(op.init, typ) if explicit else self.expr(op.init)
            if isinstance(typ, Reference) and not typ.is_rvalue:
                value = ("&" if typ.element.is_const else "&mut ") + value
            value = self._try_suffix(op.init, value)
        elif op.args is not None:
            value = self._construct(typ, op.args, brace=op.brace)
        else:
            value = self.default_value(typ)
        self.line(f"let {mut}{name}{annotation} = {value};")

    def _emit_sync_decl(self, op: DeclOp, name: str) -> None:
        typ = op.typ
        args = op.args or []
        if typ.kind in ("lock_guard", "scoped_lock", "unique_lock", "shared_lock"):
            mutex = args[0] if args else (op.init or Raw(text=""))
            mutex_type = strip_indirection(self.type_of(mutex))
            method = "lock"
            if isinstance(mutex_type, SyncPrimitive) and mutex_type.kind == "shared_mutex":
                method = "read" if typ.kind == "shared_lock" else "write"
            binding = f"mut {name}" if typ.kind == "unique_lock" else f"_{name}"
            self.line(f"let {binding} = {self.expr(mutex)}.{method}().unwrap();")
            return
        if typ.kind == "thread":
            if not args and op.init is None:
                self.line(f"let mut {name}: Option<thread::JoinHandle<()>> = None;")
                return
            source = args if op.args is not None else (op.init.args if isinstance(op.init, Call) else [])
            self.line(f"let {name} = {self._spawn(source)};")
            return
        if typ.kind == "atomic":
            value = args[0] if args else op.init
            start = self.expr(value) if value is not None else self.default_value(typ).split("(", 1)[1][:-1]
            self.line(f"let {name} = {self._atomic_type(typ.element)}::new({start});")
            return
        self.line(f"let {name} = {self.default_value(typ)};")

    def emit_expr_stmt(self, expr: Expr) -> None:
        line = self._statement_expr(expr)
        if line:
            self.line(line)

    def _statement_expr(self, expr: Expr) -> str:
        if isinstance(expr, Unary) and expr.op in ("++", "--"):
            return self._increment(expr.operand, "+" if expr.op == "++" else "-", Lit(kind="num", text="1"))
        if isinstance(expr, Assign):
            return self._assign(expr)
        if isinstance(expr, Call):
            special = self._statement_call(expr)
            if special is not None:
                return special
        text = self._try_suffix(expr, self.expr(expr))
        return f"{text};"

    def _increment(self, target: Expr, op: str, amount: Expr) -> str:
        if self._is_atomic(target):
            method = "fetch_add" if op == "+" else "fetch_sub"
            return f"{self.expr(target, raw_atomic=True)}.{method}({self.expr(amount)}, Ordering::SeqCst);"
        self.lvalue = True
        lhs = self.expr(target)
        self.lvalue = False
        return f"{lhs} {op}= {self.expr(amount)};"

    def _assign(self, expr: Assign) -> str:
        target_type = self.type_of(expr.target)
        if self._is_atomic(expr.target):
            if expr.op == "=":
                return f"{self.expr(expr.target, raw_atomic=True)}.store({self.expr(expr.value)}, Ordering::SeqCst);"
            if expr.op in ("+=", "-="):
                return self._increment(expr.target, expr.op[0], expr.value)
        self.lvalue = True
        lhs = self.expr(expr.target)
        self.lvalue = False
        base_type = strip_indirection(target_type)
        if isinstance(base_type, SyncPrimitive) and base_type.kind == "thread":
            spawn = self._spawn(expr.value.args) if isinstance(expr.value, Call) else self.expr(expr.value)
            return f"{lhs} = Some({spawn});"
        value = self.coerce(expr.value, target_type) if expr.op == "=" else self.expr(expr.value)
        value = self._try_suffix(expr.value, value)
        if expr.op == "=" and self._is_field_ref(expr.target):
            value = self._hold(target_type, value)
        if self.is_string(target_type) and expr.op == "+=":
            if isinstance(expr.value, Lit) and expr.value.kind == "char":
                return f"{lhs}.push({value});"
            return f"{lhs}.push_str({self._as_str(expr.value, value)});"
        return f"{lhs} {expr.op} {value};"

    def _as_str(self, expr: Expr, text: str) -> str:
        if isinstance(expr, Lit) and expr.kind == "str":
            return text
        return f"&{text}"

    def _statement_call(self, call: Call) -> str | None:
        func = call.func
        if isinstance(func, Name) and func.qualified in ("std::async", "async"):
            return f"{self._spawn(call.args)};"
        if isinstance(func, Name) and func.last == "printf" and call.args:
            return self._printf(call.args, "print")
        if isinstance(func, Member):
            obj_type = strip_indirection(self.type_of(func.obj))
            obj = self.expr(func.obj, raw_atomic=True)
            if func.name == "detach":
                if isinstance(func.obj, Call):
                    return f"drop({self._spawn(func.obj.args)});"
                return f"drop({obj});"
            if func.name == "join":
                if isinstance(func.obj, Name) and self.is_member_name(func.obj.last):
                    return f"{obj}.take().unwrap().join().unwrap();"
                return f"{obj}.join().unwrap();"
            if func.name == "lock" and isinstance(obj_type, SyncPrimitive):
                return f"let _guard = {obj}.lock().unwrap();"
            if func.name == "unlock" and isinstance(obj_type, SyncPrimitive):
                return "drop(_guard);"
            if func.name == "wait" and isinstance(obj_type, SyncPrimitive) and obj_type.kind == "condition_variable":
                lock = self.expr(call.args[0]) if call.args else "_guard"
                if len(call.args) > 1:
                    pred = self._predicate(call.args[1])
                    return f"{lock} = {obj}.wait_while({lock}, |_| !({pred})).unwrap();"
                return f"{lock} = {obj}.wait({lock}).unwrap();"
        return None

    def _predicate(self, expr: Expr) -> str:
        if isinstance(expr, Lambda):
            stmts = split_statements(expr.body)
            if len(stmts) == 1 and hasattr(stmts[0], "text") and stmts[0].text.startswith("return"):
                return self.expr(read_expr(stmts[0].text[len("return") :]))
        return f"({self.expr(expr)})()"

    def emit_return(self, value: Expr | None) -> None:
        func = self.func
        if func is not None and func.name == "main" and self.cls is None:
            code = self.expr(value) if value is not None else "0"
            self.line(f"std::process::exit({code});")
            return
        if self.self_name == "this":
            text = "this"
        else:
            ret = func.ret if func is not None else None
            if func is not None and func.coroutine.is_coroutine:
                ret = coroutine_value_type(func)
            text = self._try_suffix(value, self.coerce(value, ret)) if value is not None else ""
        if self._in_try_closure():
            self.line(f"return Ok(Some({text or '()'}));")
        elif self.result_ctx[-1]:
            self.line(f"return Ok({text or '()'});")
        elif text:
            self.line(f"return {text};")
        else:
            self.line("return;")

    def _in_try_closure(self) -> bool:
        return bool(self.try_marks) and self.try_marks[-1] == len(self.result_ctx)

    def _try_value_type(self, body) -> str | None:
        """Type a return inside the try body carries out; None when the body never returns."""
        func = self.func
        if func is None or self.generator or self.self_name == "this" or not has_return(body):
            return None
        if func.name == "main" and self.cls is None:
            return None
        if any(not ctx for ctx in self.result_ctx[1:]):
            return None
        ret = coroutine_value_type(func) if func.coroutine.is_coroutine else func.ret
        if ret is None:
            return None
        return self.rtype(ret, "ret")

    def _leave_with(self, value: str) -> str:
        """Expression returning value from the context around a try."""
        if self._in_try_closure():
            return f"return Ok(Some({value}))"
        if self.result_ctx[-1]:
            return f"return Ok({value})"
        return f"return {value}"

    def emit_throw(self, value: Expr | None) -> None:
        if value is None:
            error = "e"
        elif isinstance(value, Call) and isinstance(value.func, Name):
            decl = self.find_class(value.func.last)
            if decl is not None:
                error = f"Box::new({self._construct(ClassRef(name=decl.name), value.args)})"
            elif value.args:
                error = f"Box::from({self.expr(value.args[0])})"
            else:
                error = f'Box::from("{value.func.last}")'
        else:
            error = f'Box::from(format!("{{}}", {self.expr(value)}))'
        if self.result_ctx[-1]:
            self.line(f"return Err({error});")
        else:
            self.line(f"panic!(\"{{}}\", {error});")

    def emit_print(self, op: PrintOp) -> None:
        fmt: list[str] = []
        args: list[str] = []
        for item in op.items:
            if isinstance(item, Lit) and item.kind == "str" and not item.text.startswith("R"):
                fmt.append(_str_lit(item.text)[1:-1].replace("{", "{{").replace("}", "}}"))
            elif isinstance(item, Lit) and item.kind == "char":
                fmt.append(item.text[1:-1].replace("{", "{{").replace("}", "}}"))
            else:
                fmt.append("{}")
                args.append(self.expr(item))
        macro = ("eprint" if op.stderr else "print") + ("ln" if op.newline else "")
        rest = "".join(", " + a for a in args)
        self.line(f'{macro}!("{"".join(fmt)}"{rest});')

    def _printf(self, args: list[Expr], macro: str) -> str:
        fmt = args[0]
        if not (isinstance(fmt, Lit) and fmt.kind == "str"):
            return f'{macro}!("{{}}", {self.expr(fmt)});'
        inner = _str_lit(fmt.text)[1:-1].replace("{", "{{").replace("}", "}}")
        inner = printf_to_placeholders(inner, "{}")
        rest = "".join(", " + self.expr(a) for a in args[1:])
        return f'{macro}!("{inner}"{rest});'

    def emit_yield(self, value: Expr) -> None:
        self.line(f"if tx.send({self.expr(value)}).is_err() {{")
        self.line(f"{self._indent_str}return;")
        self.line("}")

    def emit_co_return(self, value: Expr | None) -> None:
        if self.generator:
            self.line("return Ok(());" if self.result_ctx[-1] else "return;")
            return
        self.emit_return(value)

    def emit_delete(self, target: Expr) -> None:
        if isinstance(target, Name) and self.is_local(target.last):
            self.line(f"drop({self.expr(target)});")
            return
        self.lvalue = True
        text = self.expr(target)
        self.lvalue = False
        self.line(f"{text} = None;")

    # ── threads and tasks ────────────────────────────────────

    def _is_async_launch(self, expr: Expr) -> bool:
        return isinstance(expr, Call) and isinstance(expr.func, Name) and expr.func.qualified in ("std::async", "async")

    def _spawn(self, args: list[Expr]) -> str:
        """thread::spawn for a callee plus arguments (launch policy dropped)."""
        args = list(args)
        if args and isinstance(args[0], Name) and args[0].qualified.startswith("std::launch::"):
            args = args[1:]
        if not args:
            return "thread::spawn(|| {})"
        callee, rest = args[0], args[1:]
        if isinstance(callee, Lambda):
            params = parse_params(callee.params)
            saved_lines, saved_indent = self.lines, self.indent
            self.lines = []
            self.indent = saved_indent + 1
            self.push_scope()
            for param, arg in zip(params, rest):
                self.declare(param.name, param.typ)
                self.line(f"let {self.ident(param.name)} = {self.expr(arg)};")
            self.result_ctx.append(False)
            self.emit_stmts(split_statements(callee.body))
            self.result_ctx.pop()
            self.pop_scope()
            body = self.lines
            self.lines, self.indent = saved_lines, saved_indent
            closing = self._indent_str * saved_indent + "})"
            return "thread::spawn(move || {\n" + "\n".join(body) + "\n" + closing
        if isinstance(callee, Unary) and callee.op == "&":
            callee = callee.operand
        call = Call(func=callee, args=rest)
        return f"thread::spawn(move || {self.expr(call)})"

    # ── expressions ──────────────────────────────────────────

    def cond(self, expr: Expr) -> str:
        """Condition with C++ truthiness made explicit."""
        typ = self.type_of(expr)
        text = self.expr(expr)
        if self._option_held(expr, typ):
            return f"{text}.is_some()"
        if isinstance(typ, Primitive) and typ.kind in ("integer", "float") and not isinstance(expr, Lit):
            return f"{text} != 0"
        if isinstance(expr, Lit) and expr.kind == "num":
            return "true" if expr.text not in ("0", "0.0") else "false"
        return text

    def _plain_ref(self, expr: Expr) -> bool:
        return isinstance(expr, Name) and expr.last in self.plain_refs and self.is_local(expr.last)

    def _is_field_ref(self, expr: Expr) -> bool:
        if isinstance(expr, Member):
            return True
        if not (isinstance(expr, Name) and len(expr.parts) == 1) or self.is_local(expr.last):
            return False
        return self.find_field(expr.last) is not None

    def _option_held(self, expr: Expr, typ: Type | None) -> bool:
        """Pointer kept in an Option: raw pointers, and smart pointers stored in fields."""
        if not isinstance(typ, Pointer) or self._plain_ref(expr):
            return False
        return typ.ownership == "raw" or (_is_smart(typ) and self._is_field_ref(expr))

    def coerce(self, expr: Expr | None, typ: Type | None) -> str:
        """Expression adapted to a destination type."""
        if expr is None:
            return ""
        base = strip_indirection(typ) if isinstance(typ, Reference) else typ
        if isinstance(expr, Lit):
            if expr.kind == "str" and isinstance(base, Container) and base.kind == "string" and not isinstance(typ, Reference):
                return f"{_str_lit(expr.text)}.to_string()"
            if expr.kind == "num" and isinstance(base, Primitive) and base.kind == "float":
                text = _num_lit(expr.text)
                return text if "." in text or "e" in text.lower() else text + ".0"
            if expr.kind == "null" and isinstance(base, Pointer):
                return "None"
        if isinstance(expr, InitList):
            return self._construct(base or VOID, expr.items, brace=True)
        if isinstance(base, Pointer) and base.ownership == "raw" and isinstance(expr, New):
            return f"Some({self.expr(expr)})"
        if isinstance(base, SyncPrimitive) and base.kind == "atomic" and not self._is_atomic(expr):
            return f"{self._atomic_type(base.element)}::new({self.expr(expr)})"
        return self.expr(expr)

    def _construct(self, typ: Type, args: list[Expr], brace: bool = False) -> str:
        """Value of typ built from constructor or brace arguments."""
        if isinstance(typ, Reference):
            typ = typ.element
        if isinstance(typ, Container):
            if typ.kind == "string":
                if not args:
                    return "String::new()"
                return f"String::from({self.expr(args[0])})"
            if typ.kind in ("vector", "deque", "list") and args:
                if brace:
                    items = ", ".join(self.coerce(a, typ.element) for a in args)
                    if typ.kind == "vector":
                        return f"vec![{items}]"
                    return f"{_COLLECTIONS[typ.kind]}::from([{items}])"
                fill = self.coerce(args[1], typ.element) if len(args) > 1 else self.default_value(typ.element or VOID)
                return f"vec![{fill}; {self.expr(args[0])} as usize]"
            if typ.kind == "pair" and len(args) == 2:
                return f"({self.coerce(args[0], typ.element)}, {self.coerce(args[1], typ.value)})"
            if typ.kind in ("map", "unordered_map") and brace and args:
                pairs = ", ".join(self._map_entry(a, typ) for a in args)
                return f"{_COLLECTIONS[typ.kind]}::from([{pairs}])"
            if typ.kind in ("set", "unordered_set") and brace and args:
                items = ", ".join(self.coerce(a, typ.element) for a in args)
                return f"{_COLLECTIONS[typ.kind]}::from([{items}])"
            return self.default_value(typ)
        if isinstance(typ, Array):
            items = ", ".join(self.coerce(a, typ.element) for a in args)
            if not args:
                return self.default_value(typ)
            return f"[{items}]"
        if isinstance(typ, Primitive):
            if not args:
                return self.default_value(typ)
            return self.coerce(args[0], typ)
        if isinstance(typ, Pointer):
            if not args:
                return self.default_value(typ)
            return self.coerce(args[0], typ)
        decl = self.class_of_type(typ)
        if decl is not None:
            if brace and decl.is_struct and not any(m.is_constructor for m in decl.methods):
                fields = [f for f in decl.fields if not f.is_static]
                parts = [f"{self.ident(f.name)}: {self._hold(f.typ, self.coerce(a, f.typ))}" for f, a in zip(fields, args)]
                parts += [f"{self.ident(f.name)}: {self.field_default(f.typ)}" for f in fields[len(args) :]]
                return f"{self.struct_name(decl)} {{ {', '.join(parts)} }}"
            return self._new_call(decl, args)
        if not args:
            return self.default_value(typ)
        return f"{self.rtype(typ)}::new({', '.join(self.expr(a) for a in args)})"

    def _map_entry(self, item: Expr, typ: Container) -> str:
        if isinstance(item, InitList) and len(item.items) == 2:
            return f"({self.coerce(item.items[0], typ.element)}, {self.coerce(item.items[1], typ.value)})"
        return self.expr(item)

    def _new_call(self, decl: ClassDecl, args: list[Expr]) -> str:
        ctors = [m for m in decl.methods if m.is_constructor]
        name = "new"
        target = ctors[0] if ctors else None
        for i, ctor in enumerate(ctors):
            required = sum(1 for p in ctor.params if not p.has_default)
            if required <= len(args) <= len(ctor.params):
                name = "new" if i == 0 else f"new_{i + 1}"
                target = ctor
                break
        text = f"{self.struct_name(decl)}::{name}({self._call_args(target, args)})"
        if target is not None and self.is_fallible(target):
            return self._try_suffix_text(text)
        return text

    def _call_args(self, target: Function | None, args: list[Expr]) -> str:
        if target is None:
            return ", ".join(self.expr(a) for a in args)
        parts: list[str] = []
        for i, arg in enumerate(args):
            if i >= len(target.params):
                parts.append(self.expr(arg))
                continue
            param = target.params[i]
            parts.append(self._arg(arg, param.typ, param.name in target.moved_params))
        for param in target.params[len(args) :]:
            if param.default is not None:
                parts.append(self.coerce(read_expr(param.default), param.typ))
        return ", ".join(parts)

    def _arg(self, arg: Expr, typ: Type, moved: bool) -> str:
        if isinstance(arg, Call) and isinstance(arg.func, Name) and arg.func.qualified in ("std::move", "move"):
            return self.expr(arg) if arg.args else ""
        if isinstance(typ, Reference) and not typ.is_rvalue and not moved:
            if isinstance(arg, Lit):
                return self.coerce(arg, typ)
            arg_type = self.type_of(arg)
            if isinstance(arg_type, Reference):
                return self.expr(arg)
            if isinstance(typ.element, Container) and typ.element.kind == "string" and typ.element.is_const:
                return f"&{self.expr(arg)}"
            return ("&" if typ.element.is_const else "&mut ") + self.expr(arg)
        if isinstance(typ, Pointer) and typ.ownership == "raw":
            if isinstance(arg, Lit) and arg.kind == "null":
                return "None"
            if isinstance(arg, Unary) and arg.op == "&":
                ref = "&" if typ.element.is_const else "&mut "
                inner = ref + self.expr(arg.operand)
                return f"Some({inner})" if self.options.safety_checks else inner
            if self._plain_ref(arg):
                return f"Some({self.expr(arg)})" if self.options.safety_checks else self.expr(arg)
            return f"{self.expr(arg)}.as_deref()"
        return self.coerce(arg, typ)

    def _try_suffix(self, expr: Expr | None, text: str) -> str:
        if expr is not None and self.calls_fallible(expr) and not text.endswith(("?", ".unwrap()")):
            return self._try_suffix_text(text)
        return text

    def _try_suffix_text(self, text: str) -> str:
        return text + ("?" if self.result_ctx and self.result_ctx[-1] else ".unwrap()")

    def _is_atomic(self, expr: Expr) -> bool:
        typ = strip_indirection(self.type_of(expr))
        return isinstance(typ, SyncPrimitive) and typ.kind == "atomic"

    def wrap(self, expr: Expr, parent_op: str, is_right: bool) -> str:
        """Emit expr, adding parens if its precedence requires it."""
        s = self.expr(expr)
        if isinstance(expr, Binary):
            child_prec = _rust_prec(expr.op)
            parent_prec = _rust_prec(parent_op)
            if child_prec < parent_prec or (is_right and child_prec == parent_prec):
                return f"({s})"
        elif isinstance(expr, (Ternary, Assign, Cast)):
            return f"({s})"
        return s

    def expr(self, expr: Expr, raw_atomic: bool = False) -> str:
        if isinstance(expr, Lit):
            return self._emit_Lit(expr)
        if isinstance(expr, Name):
            text = self._emit_Name(expr)
            if not raw_atomic and not self.lvalue and self._is_atomic(expr):
                return f"{text}.load(Ordering::SeqCst)"
            return text
        if isinstance(expr, Binary):
            return self._emit_Binary(expr)
        if isinstance(expr, Unary):
            return self._emit_Unary(expr)
        if isinstance(expr, Assign):
            return self._assign(expr).rstrip(";")
        if isinstance(expr, Ternary):
            return f"if {self.cond(expr.cond)} {{ {self.expr(expr.then)} }} else {{ {self.expr(expr.else_)} }}"
        if isinstance(expr, Call):
            return self._emit_Call(expr)
        if isinstance(expr, Member):
            text = self._emit_Member(expr)
            if not raw_atomic and not self.lvalue and self._is_atomic(expr):
                return f"{text}.load(Ordering::SeqCst)"
            return text
        if isinstance(expr, Index):
            return self._emit_Index(expr)
        if isinstance(expr, Cast):
            return self._emit_Cast(expr)
        if isinstance(expr, New):
            return self._emit_New(expr)
        if isinstance(expr, Lambda):
            return self._emit_Lambda(expr)
        if isinstance(expr, InitList):
            return f"vec![{', '.join(self.expr(i) for i in expr.items)}]"
        if isinstance(expr, Raw):
            return f"/* unsupported: {expr.text} */"
        raise NotImplementedError(f"Rust expr: {type(expr).__name__}")

    def _emit_Lit(self, expr: Lit) -> str:
        if expr.kind == "num":
            return _num_lit(expr.text)
        if expr.kind == "str":
            return _str_lit(expr.text)
        if expr.kind == "null":
            return "None"
        return expr.text

    def _emit_Name(self, expr: Name) -> str:
        if len(expr.parts) > 1:
            return self._qualified_name(expr)
        name = expr.last
        if name == "this":
            return self.self_name
        if self.is_local(name):
            return self.ident(name)
        if self.cls is not None:
            var = self.find_field(name)
            if var is not None:
                owner = self.field_owner(name)
                if var.is_static:
                    return f"(*{self.global_name(var, owner)}.lock().unwrap())" if not self.is_static_item(var) else self.global_name(var, owner)
                return f"{self.self_name}.{self._member_path(owner)}{self.ident(name)}"
        var = self.find_global(name)
        if var is not None:
            if self.is_static_item(var):
                return self.global_name(var)
            return f"(*{self.global_name(var)}.lock().unwrap())"
        return self.ident(name)

    def _member_path(self, owner: ClassDecl | None) -> str:
        if owner is None or self.cls is None or owner is self.cls:
            return ""
        path = self.data_path(self.cls, owner)
        return f"{path}." if path else ""

    def _qualified_name(self, expr: Name) -> str:
        parts = [p for p in expr.parts if p != "std"]
        if not parts:
            return "std"
        if expr.qualified in ("std::string::npos", "string::npos"):
            return "usize::MAX"
        owner = self.find_class(parts[0]) if len(parts) == 2 else None
        if owner is not None:
            var = next((f for f in owner.fields if f.name == parts[1] and f.is_static), None)
            if var is not None:
                return self.global_name(var, owner) if self.is_static_item(var) else f"(*{self.global_name(var, owner)}.lock().unwrap())"
            return f"{self.struct_name(owner)}::{self.ident(parts[1])}"
        return "::".join(parts)

    def _emit_Binary(self, expr: Binary) -> str:
        op = expr.op
        if op in ("==", "!=") and (self._is_null(expr.left) or self._is_null(expr.right)):
            other = expr.right if self._is_null(expr.left) else expr.left
            if self._plain_ref(other):
                return "false" if op == "==" else "true"
            return f"{self.expr(other)}.{'is_none' if op == '==' else 'is_some'}()"
        if op == "+" and (self.is_string(self.type_of(expr.left)) or self.is_string(self.type_of(expr.right))):
            parts = self._concat_parts(expr)
            fmt = "".join("{}" for _ in parts)
            return f'format!("{fmt}", {", ".join(parts)})'
        if op == "<=>":
            return f"{self.wrap(expr.left, '==', False)}.cmp(&{self.wrap(expr.right, '==', True)})"
        left = self.wrap(expr.left, op, False)
        right = self.wrap(expr.right, op, True)
        if op in _MIXED_NUMERIC_OPS:
            if self._int_literal(expr.left) and self._is_float(expr.right):
                left = self.coerce(expr.left, DOUBLE)
            elif self._int_literal(expr.right) and self._is_float(expr.left):
                right = self.coerce(expr.right, DOUBLE)
        return f"{left} {op} {right}"

    def _concat_parts(self, expr: Expr) -> list[str]:
        if isinstance(expr, Binary) and expr.op == "+":
            return self._concat_parts(expr.left) + self._concat_parts(expr.right)
        return [self.expr(expr)]

    @staticmethod
    def _is_null(expr: Expr) -> bool:
        return isinstance(expr, Lit) and expr.kind == "null"

    @staticmethod
    def _int_literal(expr: Expr) -> bool:
        if not (isinstance(expr, Lit) and expr.kind == "num"):
            return False
        text = expr.text.lower()
        return not text.startswith(("0x", "0b")) and "." not in text and "e" not in text

    def _is_float(self, expr: Expr) -> bool:
        typ = strip_indirection(self.type_of(expr))
        return isinstance(typ, Primitive) and typ.kind == "float"

    def _emit_Unary(self, expr: Unary) -> str:
        op = expr.op
        if op in ("++", "--"):
            stmt = self._increment(expr.operand, "+" if op == "++" else "-", Lit(kind="num", text="1")).rstrip(";")
            target = self.expr(expr.operand)
            if expr.postfix:
                return f"{{ let old = {target}; {stmt}; old }}"
            return f"{{ {stmt}; {target} }}"
        if op == "co_await":
            return f"{self.wrap(expr.operand, '.', False)}.await"
        if op == "sizeof":
            return f"std::mem::size_of_val(&{self.expr(expr.operand)})"
        if op == "&":
            return f"&{self.wrap(expr.operand, '&', True)}"
        if op == "*":
            typ = self.type_of(expr.operand)
            if self._option_held(expr.operand, typ):
                return f"{self.expr(expr.operand)}.as_ref().unwrap()"
            return f"*{self.wrap(expr.operand, '*', True)}"
        if op == "~":
            return f"!{self.wrap(expr.operand, '!', True)}"
        operand = self.expr(expr.operand)
        if isinstance(expr.operand, (Binary, Ternary, Assign)):
            operand = f"({operand})"
        if op == "!":
            typ = self.type_of(expr.operand)
            if self._option_held(expr.operand, typ):
                return f"{self.expr(expr.operand)}.is_none()"
        return f"{op}{operand}"

    def _emit_Member(self, expr: Member) -> str:
        name = expr.name
        if name in ("first", "second"):
            owner = strip_indirection(self.type_of(expr.obj))
            if isinstance(owner, Container) and owner.kind in ("pair", "map", "unordered_map") or owner is None:
                return f"{self.wrap(expr.obj, '.', False)}.{0 if name == 'first' else 1}"
        obj = self._receiver(expr)
        return f"{obj}.{self.ident(name)}"

    def _receiver(self, expr: Member) -> str:
        """Object text for obj.m / obj->m, unwrapping Option-held raw pointers."""
        if isinstance(expr.obj, Name) and expr.obj.last == "this":
            decl = self.cls
            owner = self.field_owner(expr.name) if decl is not None else None
            path = self._member_path(owner).rstrip(".")
            return f"{self.self_name}.{path}" if path else self.self_name
        obj = self.expr(expr.obj)
        if isinstance(expr.obj, (Binary, Unary, Ternary, Cast)):
            obj = f"({obj})"
        if expr.arrow:
            typ = self.type_of(expr.obj)
            if self._option_held(expr.obj, typ):
                return f"{obj}.{'as_mut' if self.lvalue else 'as_ref'}().unwrap()"
        return obj

    def _emit_Index(self, expr: Index) -> str:
        obj = self.wrap(expr.obj, ".", False)
        owner = strip_indirection(self.type_of(expr.obj))
        index = self.expr(expr.index)
        if isinstance(owner, Container) and owner.kind in ("map", "unordered_map"):
            if self.lvalue:
                default = self.default_value(owner.value or VOID)
                return f"*{obj}.entry({index}).or_insert({default})"
            return f"{obj}[&{index}]"
        index_type = self.type_of(expr.index)
        if isinstance(expr.index, Lit) or (isinstance(index_type, Primitive) and _INT_TYPES.get(index_type.name) == "usize"):
            return f"{obj}[{index}]"
        if isinstance(expr.index, (Binary, Ternary)):
            index = f"({index})"
        return f"{obj}[{index} as usize]"

    def _emit_Cast(self, expr: Cast) -> str:
        target = self.parse_local_type(expr.typ)
        inner = self.wrap(expr.expr, "as", False)
        if expr.kind == "dynamic":
            decl = self.class_of_type(target)
            name = self.struct_name(decl) if decl is not None else self.rtype(strip_indirection(target))
            return f"{inner}.downcast_ref::<{name}>()"
        return f"{inner} as {self.rtype(target)}"

    def _emit_New(self, expr: New) -> str:
        if expr.typ.endswith("[]"):
            elem = self.parse_local_type(expr.typ[:-2])
            size = self.expr(expr.args[0]) if expr.args else "0"
            return f"vec![{self.default_value(elem)}; {size} as usize]"
        typ = self.parse_local_type(expr.typ)
        return f"Box::new({self._construct(typ, expr.args)})"

    def _emit_Lambda(self, expr: Lambda) -> str:
        params = parse_params(expr.params, None)
        names = []
        for p in params:
            t = self.rtype(p.typ, "param")
            names.append(f"{self.ident(p.name)}: {t}" if t != "_" else self.ident(p.name))
        head = f"move |{', '.join(names)}|" if "=" in expr.captures or "this" in expr.captures else f"|{', '.join(names)}|"
        stmts = split_statements(expr.body)
        self.push_scope()
        for p in params:
            self.declare(p.name, p.typ)
        try:
            if len(stmts) == 1 and hasattr(stmts[0], "text") and re.match(r"return\b", stmts[0].text):
                self.result_ctx.append(False)
                value = self.expr(read_expr(stmts[0].text[len("return") :]))
                self.result_ctx.pop()
                return f"{head} {value}"
            self.result_ctx.append(False)
            body = self.capture(stmts)
            self.result_ctx.pop()
        finally:
            self.pop_scope()
        closing = self._indent_str * self.indent + "}"
        return f"{head} {{\n" + "\n".join(body) + "\n" + closing

    def _emit_Call(self, expr: Call) -> str:
        func = expr.func
        if isinstance(func, Name):
            return self._call_name(expr, func)
        if isinstance(func, Member):
            return self._call_member(expr, func)
        if isinstance(func, Lambda):
            return f"({self.expr(func)})({', '.join(self.expr(a) for a in expr.args)})"
        return f"({self.expr(func)})({', '.join(self.expr(a) for a in expr.args)})"

    def _call_name(self, expr: Call, func: Name) -> str:
        qual = func.qualified.removeprefix("std::")
        args = expr.args
        last = func.last
        if qual in ("make_unique", "make_shared") and func.targs:
            typ = self.parse_local_type(func.targs[0])
            wrapper = "Box" if qual == "make_unique" else "Rc"
            return f"{wrapper}::new({self._construct(typ, args)})"
        if qual == "move" and args:
            if _is_smart(self.type_of(args[0])) and self._is_field_ref(args[0]):
                return f"{self.expr(args[0])}.take().unwrap()"
            return self.expr(args[0])
        if qual in ("ref", "cref") and args:
            return self.expr(args[0])
        if qual == "to_string" and args:
            return f"{self.wrap(args[0], '.', False)}.to_string()"
        if qual in ("max", "min") and len(args) == 2:
            return f"{self.wrap(args[0], '.', False)}.{qual}({self.expr(args[1])})"
        if qual in _MATH_METHODS | {"log", "fabs"} and len(args) == 1:
            method = {"log": "ln", "fabs": "abs"}.get(qual, qual)
            return f"{self.wrap(args[0], '.', False)}.{method}()"
        if qual == "pow" and len(args) == 2:
            return f"({self.expr(args[0])} as f64).powf({self.expr(args[1])} as f64)"
        if qual == "swap" and len(args) == 2:
            return f"std::mem::swap(&mut {self.expr(args[0])}, &mut {self.expr(args[1])})"
        if qual in ("make_pair", "make_tuple", "pair", "tuple"):
            return f"({', '.join(self.expr(a) for a in args)})"
        if qual == "get" and func.targs and args:
            return f"{self.wrap(args[0], '.', False)}.{func.targs[0]}"
        if qual == "this_thread::sleep_for" and args:
            return f"thread::sleep({self.expr(args[0])})"
        if qual == "this_thread::yield":
            return "thread::yield_now()"
        if qual.startswith("chrono::") and last in _DURATIONS and args:
            return f"Duration::{_DURATIONS[last]}({self.expr(args[0])} as u64)"
        if qual in ("async", "thread"):
            return self._spawn(args)
        if last == "printf" and args:
            return self._printf(args, "print").rstrip(";")
        if qual in ("string", "vector") and not args:
            return self.default_value(self.parse_local_type(func.qualified))
        decl = self.find_class(last) if len(func.parts) == 1 else None
        if decl is not None:
            return self._construct(ClassRef(name=decl.name), args, brace=expr.brace)
        if len(func.parts) == 2 and self.cls is not None:
            base = self.find_class(func.parts[0])
            if base is not None and base is not self.cls and base in self.ancestors(self.cls):
                path = self.data_path(self.cls, base)
                method = base.find_method(last)
                call_args = self._call_args(method, args)
                if path is not None:
                    return f"{self.self_name}.{path}.{self.ident(last)}({call_args})"
                return f"{self.self_name}.{self.ident(last)}({call_args})"
        target = self.call_target(expr)
        call_args = self._call_args(target, args)
        if len(func.parts) == 1 and self.is_member_call(last):
            method = self.find_method(last)
            if method is not None and method.is_static:
                return f"Self::{self.ident(last)}({call_args})"
            owner = next((c for c in [self.cls] + self.ancestors(self.cls) if c.find_method(last) is method), self.cls)
            path = ""
            if method is not None and not method.is_polymorphic:
                path = self._member_path(owner)
            return f"{self.self_name}.{path}{self.ident(last)}({call_args})"
        if len(func.parts) == 1 and self.is_local(last):
            return f"{self.ident(last)}({call_args})"
        name = self._qualified_name(func) if len(func.parts) > 1 else self.ident(last)
        return f"{name}({call_args})"

    def _call_member(self, expr: Call, func: Member) -> str:
        name = func.name
        args = expr.args
        obj_type = strip_indirection(self.type_of(func.obj))
        if isinstance(obj_type, SyncPrimitive):
            return self._sync_call(expr, func, obj_type)
        if isinstance(obj_type, AsyncPrimitive) or (
            isinstance(func.obj, Name) and func.obj.last in self.handles and name == "get"
        ):
            return self._async_call(expr, func, obj_type)
        obj = self._receiver(func)
        if isinstance(obj_type, Container) or (obj_type is None and name in _CONTAINER_METHODS):
            special = self._container_call(obj, obj_type, name, args)
            if special is not None:
                return special
        if name == "what" and not args:
            return f"{obj}.to_string()"
        if name == "get" and not args and isinstance(obj_type, Pointer):
            return f"&*{obj}"
        target = self.call_target(expr)
        text = f"{obj}.{self.ident(name)}({self._call_args(target, args)})"
        return text

    def _sync_call(self, expr: Call, func: Member, typ: SyncPrimitive) -> str:
        obj = self.expr(func.obj, raw_atomic=True)
        name = func.name
        args = [self.expr(a) for a in expr.args]
        if typ.kind == "atomic" and name in _ATOMIC_METHODS:
            method = _ATOMIC_METHODS[name]
            if name.startswith("compare_exchange"):
                expected, desired = (args + ["0", "0"])[:2]
                return f"{obj}.{method}({expected}, {desired}, Ordering::SeqCst, Ordering::SeqCst).is_ok()"
            return f"{obj}.{method}({', '.join(args + ['Ordering::SeqCst'])})"
        if typ.kind == "thread" and name == "join":
            return f"{obj}.join().unwrap()"
        if typ.kind == "thread" and name == "joinable":
            return f"!{obj}.is_finished()"
        if typ.kind in ("mutex", "recursive_mutex", "timed_mutex", "shared_mutex"):
            if name in ("lock", "try_lock"):
                return f"{obj}.{name}().unwrap()"
        if typ.kind == "condition_variable" and name in ("notify_one", "notify_all"):
            return f"{obj}.{name}()"
        return f"{obj}.{self.ident(name)}({', '.join(args)})"

    def _async_call(self, expr: Call, func: Member, typ) -> str:
        obj = self.expr(func.obj)
        name = func.name
        args = expr.args
        if isinstance(func.obj, Name) and func.obj.last in self.handles:
            if name == "get":
                return f"{obj}.join().unwrap()"
            if name == "wait":
                return "()"
        if name == "get":
            return f"{obj}.recv().unwrap()"
        if name == "set_value":
            value = self.expr(args[0]) if args else "()"
            return f"{obj}.send({value}).unwrap()"
        if name == "get_future":
            return f"{obj}_rx"
        if name == "wait":
            return "()"
        return f"{obj}.{self.ident(name)}({', '.join(self.expr(a) for a in args)})"

    def _container_call(self, obj: str, typ: Container | None, name: str, args: list[Expr]) -> str | None:
        kind = typ.kind if typ is not None else "vector"
        element = typ.element if typ is not None else None
        values = [self.coerce(a, element) for a in args]
        if name in ("push_back", "emplace_back"):
            if element is not None and isinstance(element, SyncPrimitive) and element.kind == "thread":
                return f"{obj}.push({self._spawn(args)})"
            if name == "emplace_back" and self.class_of_type(element) is not None:
                return f"{obj}.push({self._construct(element, args)})"
            return f"{obj}.{'push' if kind == 'vector' else 'push_back'}({', '.join(values)})"
        if name in ("push_front", "emplace_front"):
            return f"{obj}.push_front({', '.join(values)})"
        if name == "pop_back":
            return f"{obj}.{'pop' if kind == 'vector' else 'pop_back'}()"
        if name == "pop_front":
            return f"{obj}.pop_front()"
        if name in ("size", "length"):
            return f"{obj}.len()"
        if name == "empty":
            return f"{obj}.is_empty()"
        if name == "clear":
            return f"{obj}.clear()"
        if name in ("back", "front"):
            if kind == "vector":
                return f"{obj}.{'last' if name == 'back' else 'first'}().unwrap()"
            return f"{obj}.{name}().unwrap()"
        if name == "at" and args:
            if kind in ("map", "unordered_map"):
                return f"{obj}[&{self.expr(args[0])}]"
            return f"{obj}[{self.expr(args[0])} as usize]"
        if name == "count" and args and kind in ("map", "unordered_map", "set", "unordered_set"):
            method = "contains_key" if kind in ("map", "unordered_map") else "contains"
            return f"({obj}.{method}(&{self.expr(args[0])}) as usize)"
        if name == "contains" and args:
            method = "contains_key" if kind in ("map", "unordered_map") else "contains"
            return f"{obj}.{method}(&{self.expr(args[0])})"
        if name == "insert" and args and kind in ("set", "unordered_set"):
            return f"{obj}.insert({values[0]})"
        if name == "erase" and args and kind in ("map", "unordered_map", "set", "unordered_set"):
            return f"{obj}.remove(&{self.expr(args[0])})"
        if name == "c_str":
            return f"{obj}.as_str()"
        if name == "substr" and args:
            start = self.expr(args[0])
            if len(args) > 1:
                return f"{obj}[{start}..{start} + {self.expr(args[1])}].to_string()"
            return f"{obj}[{start}..].to_string()"
        if name == "append" and args:
            return f"{obj}.push_str({self._as_str(args[0], self.expr(args[0]))})"
        if name == "find" and args and kind == "string":
            return f"{obj}.find({self.expr(args[0])}).unwrap_or(usize::MAX)"
        if name == "begin" or name == "end":
            return f"{obj}.iter()"
        if name == "value" and kind == "optional":
            return f"{obj}.unwrap()"
        if name == "has_value" and kind == "optional":
            return f"{obj}.is_some()"
        return None


_CONTAINER_METHODS = {"push_back", "emplace_back", "pop_back", "size", "empty", "clear", "back", "front"}

