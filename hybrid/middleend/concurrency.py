"""Concurrency analysis: threads, mutexes, locks, atomics, condition variables.

Annotations added:
    Function.threads / mutexes / locks / atomics / condition_vars
    ClassDecl.mutexes / atomics / condition_vars (from field types)

Everything here describes the program being translated. Detection is a
text scan of each body; anything not matched is simply not reported.
ClassDecl.thread_safe is left unset.
"""

from __future__ import annotations

import logging
import re

from ..frontend.parse import parse_type
from ..frontend.scan import find_matching, split_top_level
from ..ir import (
    IR,
    AtomicInfo,
    ClassDecl,
    ConditionVariableInfo,
    Function,
    LockInfo,
    MutexInfo,
    Primitive,
    SyncPrimitive,
    ThreadInfo,
    Type,
    Variable,
)

logger = logging.getLogger(__name__)

MUTEX_KINDS: dict[str, str] = {
    "mutex": "plain",
    "recursive_mutex": "recursive",
    "shared_mutex": "shared",
    "timed_mutex": "timed",
}

LOCK_KINDS: dict[str, str] = {
    "lock_guard": "guard",
    "unique_lock": "unique",
    "shared_lock": "shared",
    "scoped_lock": "scoped",
}

ATOMIC_OPS = (
    "load", "store", "fetch_add", "fetch_sub", "fetch_and", "fetch_or", "fetch_xor",
    "exchange", "compare_exchange_weak", "compare_exchange_strong",
)

_THREAD_DECL_RE = re.compile(r"\b(?:std::)?j?thread\s+(\w+)\s*([({])")
_THREAD_ANON_RE = re.compile(r"(?<![\w<])(?:std::)?j?thread\s*\(")
_THREAD_VECTOR_RE = re.compile(r"\b(?:std::)?vector\s*<\s*(?:std::)?j?thread\s*>\s*(\w+)")
_DETACH_RE = re.compile(r"\b(\w+)\s*\.\s*detach\s*\(\s*\)")
_DETACH_TAIL_RE = re.compile(r"\s*\.\s*detach\s*\(\s*\)")
_MUTEX_RE = re.compile(r"\b(?:std::)?(mutex|recursive_mutex|shared_mutex|timed_mutex)\s+(\w+)\s*[;{]")
_LOCK_RE = re.compile(r"\b(?:std::)?(lock_guard|unique_lock|shared_lock|scoped_lock)\s*(?:<[^<>;]*>)?\s+(\w+)\s*([({])")
_ATOMIC_RE = re.compile(r"\b(?:std::)?atomic\s*<\s*([^<>;]+?)\s*>\s+(\w+)")
_CONDVAR_RE = re.compile(r"\b(?:std::)?condition_variable(?:_any)?\s+(\w+)\s*;")
_WAIT_RE = re.compile(r"\b(\w+)\s*\.\s*wait(?:_for|_until)?\s*\(")


def _call_args(body: str, open_index: int) -> tuple[list[str], int]:
    close = find_matching(body, open_index)
    if close < 0:
        return [], open_index + 1
    return split_top_level(body[open_index + 1 : close]), close + 1


def _block_rest(body: str, pos: int) -> str:
    """Text from pos to the end of the enclosing block."""
    depth = 0
    i = pos
    while i < len(body):
        c = body[i]
        if c == "{":
            depth += 1
        elif c == "}":
            if depth == 0:
                break
            depth -= 1
        i += 1
    return body[pos:i].strip().lstrip(";").strip()


def find_threads(body: str) -> list[ThreadInfo]:
    threads: list[ThreadInfo] = []
    for m in _THREAD_DECL_RE.finditer(body):
        args, _ = _call_args(body, m.end() - 1)
        if args:
            threads.append(ThreadInfo(m.group(1), args[0], args[1:]))
    for m in _THREAD_ANON_RE.finditer(body):
        args, after = _call_args(body, m.end() - 1)
        if args and _DETACH_TAIL_RE.match(body, after) is not None:
            threads.append(ThreadInfo("", args[0], args[1:], detached=True))
    for m in _THREAD_VECTOR_RE.finditer(body):
        name = m.group(1)
        for call in re.finditer(rf"\b{re.escape(name)}\s*\.\s*(?:emplace_back|push_back)\s*\(", body):
            args, _ = _call_args(body, call.end() - 1)
            if args:
                threads.append(ThreadInfo(name, args[0], args[1:]))
    detached = {m.group(1) for m in _DETACH_RE.finditer(body)}
    for thread in threads:
        if thread.var_name and thread.var_name in detached:
            thread.detached = True
    return threads


def find_mutexes(body: str) -> list[MutexInfo]:
    return [MutexInfo(m.group(2), MUTEX_KINDS[m.group(1)]) for m in _MUTEX_RE.finditer(body)]


def find_locks(body: str) -> list[LockInfo]:
    locks: list[LockInfo] = []
    for m in _LOCK_RE.finditer(body):
        args, after = _call_args(body, m.end() - 1)
        mutex = args[0] if args else ""
        locks.append(LockInfo(m.group(2), LOCK_KINDS[m.group(1)], mutex, _block_rest(body, after)))
    return locks


def _atomic_operations(body: str, name: str) -> list[str]:
    pattern = re.compile(
        rf"\b{re.escape(name)}\s*(?:\.|->)\s*({'|'.join(ATOMIC_OPS)})\s*\("
        rf"|(\+\+|--)\s*{re.escape(name)}\b"
        rf"|\b{re.escape(name)}\s*(\+\+|--|\+=|-=)"
    )
    ops: list[str] = []
    for m in pattern.finditer(body):
        if m.group(1):
            ops.append(m.group(1))
        else:
            token = m.group(2) or m.group(3)
            ops.append("fetch_add" if token in ("++", "+=") else "fetch_sub")
    return ops


def find_atomics(body: str, known: dict[str, Type]) -> list[AtomicInfo]:
    """Atomics declared in body plus known atomics (fields, globals) it touches."""
    declared: dict[str, Type] = {}
    for m in _ATOMIC_RE.finditer(body):
        declared[m.group(2)] = parse_type(m.group(1))
    result: list[AtomicInfo] = []
    for name, typ in declared.items():
        result.append(AtomicInfo(name, typ, _atomic_operations(body, name)))
    for name, typ in known.items():
        if name in declared:
            continue
        ops = _atomic_operations(body, name)
        if ops:
            result.append(AtomicInfo(name, typ, ops))
    return result


def find_condition_vars(body: str, locks: list[LockInfo], known: set[str]) -> list[ConditionVariableInfo]:
    names = [m.group(1) for m in _CONDVAR_RE.finditer(body)]
    for name in sorted(known):
        if name not in names and re.search(rf"\b{re.escape(name)}\s*\.\s*(?:wait|notify)", body):
            names.append(name)
    lock_to_mutex = {lock.var_name: lock.mutex_name for lock in locks}
    infos: dict[str, ConditionVariableInfo] = {n: ConditionVariableInfo(n) for n in names}
    for m in _WAIT_RE.finditer(body):
        info = infos.get(m.group(1))
        if info is None:
            continue
        args, _ = _call_args(body, m.end() - 1)
        if args and not info.mutex_name:
            info.mutex_name = lock_to_mutex.get(args[0], args[0])
        if len(args) > 1:
            info.wait_conditions.append(args[-1])
    return list(infos.values())


def _known_atomics(fields: list[Variable]) -> dict[str, Type]:
    known: dict[str, Type] = {}
    for var in fields:
        if isinstance(var.typ, SyncPrimitive) and var.typ.kind == "atomic":
            known[var.name] = var.typ.element or Primitive("integer", name="int")
    return known


def _known_condvars(fields: list[Variable]) -> set[str]:
    return {v.name for v in fields if isinstance(v.typ, SyncPrimitive) and v.typ.kind == "condition_variable"}


def analyze_function(func: Function, atomics: dict[str, Type], condvars: set[str]) -> None:
    func.threads = []
    func.mutexes = []
    func.locks = []
    func.atomics = []
    func.condition_vars = []
    if not func.body:
        return
    body = func.body
    func.threads = find_threads(body)
    func.mutexes = find_mutexes(body)
    func.locks = find_locks(body)
    func.atomics = find_atomics(body, atomics)
    func.condition_vars = find_condition_vars(body, func.locks, condvars)


def analyze_class(decl: ClassDecl, global_atomics: dict[str, Type], global_condvars: set[str]) -> None:
    decl.mutexes = []
    decl.atomics = []
    decl.condition_vars = []
    for var in decl.fields:
        typ = var.typ
        if not isinstance(typ, SyncPrimitive):
            continue
        if typ.kind in MUTEX_KINDS:
            decl.mutexes.append(MutexInfo(var.name, MUTEX_KINDS[typ.kind], decl.name))
        elif typ.kind == "atomic":
            decl.atomics.append(AtomicInfo(var.name, typ.element or Primitive("integer", name="int")))
        elif typ.kind == "condition_variable":
            decl.condition_vars.append(ConditionVariableInfo(var.name))
    atomics = dict(global_atomics)
    atomics.update(_known_atomics(decl.fields))
    condvars = global_condvars | _known_condvars(decl.fields)
    for method in decl.methods:
        analyze_function(method, atomics, condvars)
        for used in method.atomics:
            for info in decl.atomics:
                if info.var_name == used.var_name:
                    info.operations.extend(used.operations)
        for used_cv in method.condition_vars:
            for cv in decl.condition_vars:
                if cv.var_name == used_cv.var_name:
                    cv.mutex_name = cv.mutex_name or used_cv.mutex_name
                    cv.wait_conditions.extend(used_cv.wait_conditions)


def analyze_concurrency(ir: IR) -> None:
    """Annotate every function and class with concurrency descriptors."""
    global_atomics = _known_atomics(ir.global_vars)
    global_condvars = _known_condvars(ir.global_vars)
    for decl in ir.classes:
        analyze_class(decl, global_atomics, global_condvars)
    for func in ir.functions:
        analyze_function(func, global_atomics, global_condvars)
    threads = sum(len(f.threads) for f in ir.all_functions())
    locks = sum(len(f.locks) for f in ir.all_functions())
    logger.debug("concurrency: %d threads, %d locks", threads, locks)
