"""Hybrid IR - shared vocabulary of the transpiler pipeline.

This module defines the IR node types and documents their semantics and
invariants.

Architecture:
    C++ text -> Frontend (parse) -> [IR] -> Middleend (analyze) -> Backend -> Rust | Go

The frontend produces the structural IR. Middleend passes annotate it in
place. Backends emit code and never mutate it.

Descriptors (ThreadInfo, CoroutineInfo, ...) are facts about the SOURCE
program being translated. They never describe the transpiler's own
execution.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


# ============================================================
# TYPES
#
# Types form a tree: each composite owns its children. The parser
# rebuilds them from text on every parse, so nothing is shared.
# ============================================================


@dataclass(kw_only=True)
class Type:
    """Base for all types. Abstract.

    name is the normalized source spelling ("const std::string&", "Box<T>").
    size_bytes/alignment are 0 when unknown.
    """

    name: str = ""
    is_const: bool = False
    is_mutable: bool = True
    size_bytes: int = 0
    alignment: int = 0


@dataclass
class Primitive(Type):
    """Built-in scalar types.

    | Kind    | Source                      | Rust        | Go        |
    |---------|-----------------------------|-------------|-----------|
    | void    | void                        | ()          | (none)    |
    | bool    | bool                        | bool        | bool      |
    | integer | char short int long size_t  | i8..i64 usize | int8..int64 uint |
    | float   | float double                | f32 f64     | float32 float64 |

    The exact width is recovered from name by the backends.
    """

    kind: Literal["void", "bool", "integer", "float"]


@dataclass
class Pointer(Type):
    """Pointer, raw or smart.

    | Ownership | Source               | Rust        | Go  |
    |-----------|----------------------|-------------|-----|
    | raw       | T*                   | Option<&T>  | *T  |
    | unique    | std::unique_ptr<T>   | Box<T>      | *T  |
    | shared    | std::shared_ptr<T>   | Rc<T>       | *T  |
    """

    element: Type
    ownership: Literal["raw", "unique", "shared"] = "raw"


@dataclass
class Reference(Type):
    """Lvalue (T&) or rvalue (T&&) reference.

    Rust: &T / &mut T (rvalue references take ownership: T). Go: *T.
    """

    element: Type
    is_rvalue: bool = False


@dataclass
class Array(Type):
    """Fixed-size array T[N]. size is the raw bound text, None if omitted.

    Rust: [T; N]. Go: [N]T.
    """

    element: Type
    size: str | None = None


@dataclass
class StructRef(Type):
    """Reference to a struct declared in the unit."""


@dataclass
class ClassRef(Type):
    """Reference to a class, or any unrecognized type name.

    name keeps the raw spelling including template arguments; args holds
    the parsed arguments of a trailing <...>.
    """

    args: list[Type] = field(default_factory=list)

    @property
    def base_name(self) -> str:
        return self.name.split("<", 1)[0].strip()


@dataclass
class EnumRef(Type):
    """Reference to an enum declared in the unit."""


@dataclass
class FuncType(Type):
    """Function type (std::function<...> or a function pointer spelling)."""


@dataclass
class TemplateParamRef(Type):
    """Use of a template type parameter (T inside template<typename T>)."""


ContainerKind = Literal[
    "vector", "list", "deque", "map", "unordered_map", "set", "unordered_set",
    "string", "pair", "optional",
]


@dataclass
class Container(Type):
    """Standard library container.

    | Kind          | Rust          | Go           |
    |---------------|---------------|--------------|
    | vector        | Vec<T>        | []T          |
    | list          | LinkedList<T> | []T          |
    | deque         | VecDeque<T>   | []T          |
    | map           | BTreeMap<K,V> | map[K]V      |
    | unordered_map | HashMap<K,V>  | map[K]V      |
    | set           | BTreeSet<T>   | map[T]struct{} |
    | unordered_set | HashSet<T>    | map[T]struct{} |
    | string        | String        | string       |
    | pair          | (A, B)        | struct{First A; Second B} |
    | optional      | Option<T>     | *T           |

    Invariants:
    - value is set only for map, unordered_map and pair
    """

    kind: ContainerKind
    element: Type | None = None
    value: Type | None = None


SyncKind = Literal[
    "thread", "mutex", "recursive_mutex", "shared_mutex", "timed_mutex", "atomic",
    "condition_variable", "lock_guard", "unique_lock", "shared_lock", "scoped_lock",
]


@dataclass
class SyncPrimitive(Type):
    """Concurrency primitive of the source program.

    element is the value type of atomic<T> and the mutex type of lock<M>.
    """

    kind: SyncKind
    element: Type | None = None


AsyncKind = Literal["future", "shared_future", "promise", "coroutine_handle", "task"]


@dataclass
class AsyncPrimitive(Type):
    """Async primitive of the source program (future<T>, promise<T>, ...)."""

    kind: AsyncKind
    element: Type | None = None


VOID = Primitive("void", name="void")


# ============================================================
# DECLARATIONS
# ============================================================


@dataclass
class Variable:
    """Field or global variable. initializer is raw source text ("" if none)."""

    name: str
    typ: Type
    is_static: bool = False
    is_const: bool = False
    initializer: str = ""


@dataclass
class Parameter:
    """Function parameter. name is "" for unnamed parameters."""

    name: str
    typ: Type
    default: str | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not None


@dataclass
class ExceptionSpec:
    """What a function declares or is observed to throw.

    Invariants:
    - empty throw_types with can_throw means "any type"
    - is_noexcept excludes can_throw from making the function fallible
    """

    can_throw: bool = False
    throw_types: list[str] = field(default_factory=list)
    is_noexcept: bool = False


@dataclass
class CatchClause:
    """One catch handler. exception_type is "..." for catch-all."""

    exception_type: str
    exception_var: str
    handler_body: str


@dataclass
class TryCatchBlock:
    """A try block and its handlers, bodies kept as raw text."""

    try_body: str
    catch_clauses: list[CatchClause] = field(default_factory=list)


# --- Templates ---


@dataclass(kw_only=True)
class TemplateParameter:
    """Base for template parameters. Abstract."""

    name: str


@dataclass(kw_only=True)
class TypeParam(TemplateParameter):
    """typename T [= Default], optionally constrained (concepts)."""

    default: str | None = None
    constraints: list[str] = field(default_factory=list)


@dataclass(kw_only=True)
class NonTypeParam(TemplateParameter):
    """int N [= 4]. param_type carries the declared type name."""

    param_type: Type
    default: str | None = None


@dataclass(kw_only=True)
class NestedTemplateParam(TemplateParameter):
    """template<typename> class C."""


@dataclass
class TemplateSpecialization:
    """Arguments of an explicit (template<>) or partial specialization."""

    is_partial: bool = False
    specialized_args: list[str] = field(default_factory=list)


# --- Concurrency descriptors ---


@dataclass
class ThreadInfo:
    """A thread the source program spawns.

    var_name is "" for an anonymous std::thread(...).detach().
    """

    var_name: str
    target: str
    arguments: list[str] = field(default_factory=list)
    detached: bool = False


@dataclass
class MutexInfo:
    """A mutex of the source program and the type whose state it guards."""

    var_name: str
    kind: Literal["plain", "recursive", "shared", "timed"] = "plain"
    protected_type: str = ""


@dataclass
class LockInfo:
    """A scoped lock; scope_body is the rest of the enclosing block."""

    var_name: str
    kind: Literal["guard", "unique", "shared", "scoped"]
    mutex_name: str
    scope_body: str = ""


@dataclass
class AtomicInfo:
    """An atomic variable and the operations applied to it, in textual order."""

    var_name: str
    value_type: Type
    operations: list[str] = field(default_factory=list)


@dataclass
class ConditionVariableInfo:
    """A condition variable, its mutex and the predicates it waits on."""

    var_name: str
    mutex_name: str = ""
    wait_conditions: list[str] = field(default_factory=list)


# --- Async descriptors ---


@dataclass(kw_only=True)
class AsyncOperation:
    """One suspension keyword occurrence. Abstract.

    expression is trimmed text up to the statement terminator ("" for a
    bare co_return). line is the 1-indexed source line (0 = unknown).
    """

    expression: str
    line: int = 0


@dataclass(kw_only=True)
class AwaitOp(AsyncOperation):
    """co_await expr. Rust: expr.await. Go: <-expr."""


@dataclass(kw_only=True)
class ReturnOp(AsyncOperation):
    """co_return expr. Rust: return expr. Go: ch <- expr."""


@dataclass(kw_only=True)
class YieldOp(AsyncOperation):
    """co_yield expr. Rust: tx.send(expr). Go: ch <- expr."""


@dataclass
class CoroutineInfo:
    """Coroutine facts recovered from a function body.

    Invariants:
    - is_coroutine == uses_suspend or uses_return or uses_yield
    - is_generator == uses_yield
    """

    is_coroutine: bool = False
    operations: list[AsyncOperation] = field(default_factory=list)
    uses_suspend: bool = False
    uses_return: bool = False
    uses_yield: bool = False
    is_generator: bool = False


@dataclass
class FutureInfo:
    """std::future<T> declared in a body, heuristically paired with a promise."""

    var_name: str
    value_type: Type
    promise_var: str = ""
    is_shared: bool = False


@dataclass
class AsyncTaskInfo:
    """A std::async launch.

    Invariants:
    - detached == (var_name == "")
    """

    var_name: str
    function_name: str
    arguments: list[str] = field(default_factory=list)
    result_type: Type | None = None
    detached: bool = False


# --- Statement skeleton ---


@dataclass(kw_only=True)
class Stmt:
    """Base for body statements. Abstract.

    The parser recovers the block structure of a body once; statement
    text inside is kept verbatim for the backends to lower.
    """

    line: int = 0


@dataclass(kw_only=True)
class SimpleStmt(Stmt):
    """A statement terminated by ';' (terminator not included)."""

    text: str


@dataclass(kw_only=True)
class BlockStmt(Stmt):
    """head { body }. head is "" for a bare block, else e.g. "if (x > 0)"."""

    head: str
    body: list[Stmt] = field(default_factory=list)


# --- Functions and classes ---


@dataclass
class Function:
    """Function or method.

    Invariants:
    - ret is None iff is_constructor
    - body is None for a declaration without definition
    - is_async == coroutine.is_coroutine or futures or async_tasks

    Middleend annotations:
    - template_params/specialization (templates)
    - coroutine, futures, async_tasks (coroutines)
    - threads, mutexes, locks, atomics, condition_vars (concurrency)
    - try_catch_blocks, may_throw (exceptions)
    - moved_params, borrowed_params (ownership)
    """

    name: str
    ret: Type | None = None
    params: list[Parameter] = field(default_factory=list)
    body: str | None = None
    stmts: list[Stmt] = field(default_factory=list)
    doc: str | None = None
    line: int = 0
    body_line: int = 0
    is_const: bool = False
    is_static: bool = False
    is_virtual: bool = False
    is_pure_virtual: bool = False
    is_override: bool = False
    is_constructor: bool = False
    is_destructor: bool = False
    initializers: list[tuple[str, str]] = field(default_factory=list)
    # Exceptions
    exception_spec: ExceptionSpec = field(default_factory=ExceptionSpec)
    try_catch_blocks: list[TryCatchBlock] = field(default_factory=list)
    may_throw: bool = False
    # Templates
    template_text: str | None = None
    is_template: bool = False
    template_params: list[TemplateParameter] = field(default_factory=list)
    specialization: TemplateSpecialization = field(default_factory=TemplateSpecialization)
    # Concurrency
    threads: list[ThreadInfo] = field(default_factory=list)
    mutexes: list[MutexInfo] = field(default_factory=list)
    locks: list[LockInfo] = field(default_factory=list)
    atomics: list[AtomicInfo] = field(default_factory=list)
    condition_vars: list[ConditionVariableInfo] = field(default_factory=list)
    # Async
    coroutine: CoroutineInfo = field(default_factory=CoroutineInfo)
    futures: list[FutureInfo] = field(default_factory=list)
    async_tasks: list[AsyncTaskInfo] = field(default_factory=list)
    # Ownership
    moved_params: list[str] = field(default_factory=list)
    borrowed_params: list[str] = field(default_factory=list)

    @property
    def is_async(self) -> bool:
        return self.coroutine.is_coroutine or bool(self.futures) or bool(self.async_tasks)

    @property
    def is_polymorphic(self) -> bool:
        return self.is_virtual or self.is_override


@dataclass
class AccessSection:
    """A run of members between access labels."""

    level: Literal["public", "protected", "private"]
    members: list[str] = field(default_factory=list)


@dataclass
class ClassDecl:
    """Class or struct.

    Invariants:
    - base_classes are names as written; no cycle checking
    - access_sections are in source order

    Middleend annotations:
    - template_params/specialization (templates)
    - mutexes, atomics, condition_vars (concurrency)
    - thread_safe is reserved; None means not analyzed
    """

    name: str
    is_struct: bool = False
    fields: list[Variable] = field(default_factory=list)
    methods: list[Function] = field(default_factory=list)
    base_classes: list[str] = field(default_factory=list)
    access_sections: list[AccessSection] = field(default_factory=list)
    nested: list[str] = field(default_factory=list)
    doc: str | None = None
    line: int = 0
    # Templates
    template_text: str | None = None
    is_template: bool = False
    template_params: list[TemplateParameter] = field(default_factory=list)
    specialization: TemplateSpecialization = field(default_factory=TemplateSpecialization)
    # Concurrency
    mutexes: list[MutexInfo] = field(default_factory=list)
    atomics: list[AtomicInfo] = field(default_factory=list)
    condition_vars: list[ConditionVariableInfo] = field(default_factory=list)
    thread_safe: bool | None = None

    def find_method(self, name: str) -> Function | None:
        for method in self.methods:
            if method.name == name:
                return method
        return None

    def access_of(self, member: str) -> str:
        """Access level of a member; the class default if not listed."""
        for section in self.access_sections:
            if member in section.members:
                return section.level
        return "public" if self.is_struct else "private"

    @property
    def virtual_methods(self) -> list[Function]:
        return [m for m in self.methods if m.is_polymorphic and not m.is_destructor]

    @property
    def is_polymorphic(self) -> bool:
        return bool(self.virtual_methods)


# ============================================================
# ROOT
# ============================================================


@dataclass
class IR:
    """A complete translation unit.

    One IR is built per input, owned by the orchestrator and discarded
    after generation.

    Invariants:
    - types keys are unique; the last registration for a name wins
    """

    classes: list[ClassDecl] = field(default_factory=list)
    functions: list[Function] = field(default_factory=list)
    global_vars: list[Variable] = field(default_factory=list)
    types: dict[str, Type] = field(default_factory=dict)

    def add_class(self, decl: ClassDecl) -> None:
        self.classes.append(decl)

    def add_function(self, func: Function) -> None:
        self.functions.append(func)

    def add_global_variable(self, var: Variable) -> None:
        self.global_vars.append(var)

    def register_type(self, name: str, typ: Type) -> None:
        self.types[name] = typ

    def find_type(self, name: str) -> Type | None:
        return self.types.get(name)

    def find_class(self, name: str) -> ClassDecl | None:
        for decl in self.classes:
            if decl.name == name:
                return decl
        return None

    def all_functions(self) -> list[Function]:
        """Free functions followed by methods, in declaration order."""
        result = list(self.functions)
        for decl in self.classes:
            result.extend(decl.methods)
        return result
