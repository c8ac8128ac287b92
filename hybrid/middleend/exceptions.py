"""Exception analysis: throw sites and try/catch blocks.

Annotations added:
    Function.exception_spec: throw types observed in the body are appended
    Function.try_catch_blocks: list[TryCatchBlock]
    Function.may_throw: bool - not noexcept, and throws or handles exceptions

The signature part of exception_spec (noexcept, throw(...)) is filled by
the parser; this pass only adds what the body shows.
"""

from __future__ import annotations

import logging
import re

from ..frontend.scan import find_matching, skip_ws
from ..ir import IR, CatchClause, Function, TryCatchBlock

logger = logging.getLogger(__name__)

_TRY_RE = re.compile(r"\btry\s*\{")
_CATCH_RE = re.compile(r"catch\s*\(")
_THROW_RE = re.compile(r"\bthrow\b\s*([^;]*);")
_CATCH_VAR_RE = re.compile(r"(?<![:\w])([A-Za-z_]\w*)\s*$")


def thrown_type(expression: str) -> str:
    """Type named by a throw expression, "" if it cannot be told."""
    expr = expression.strip()
    if expr.startswith("new "):
        expr = expr[4:].strip()
    for stop in "({":
        cut = expr.find(stop)
        if cut > 0:
            return expr[:cut].strip()
    return ""


def parse_catch(decl: str) -> tuple[str, str]:
    """Split a catch declaration into (type, variable)."""
    decl = " ".join(decl.split())
    if decl == "...":
        return "...", ""
    m = _CATCH_VAR_RE.search(decl)
    type_text = decl
    var = ""
    if m is not None and decl[: m.start(1)].strip(" &*"):
        type_text = decl[: m.start(1)]
        var = m.group(1)
    type_text = type_text.replace("const ", "").rstrip(" &*").strip()
    return type_text, var


def find_try_blocks(body: str) -> list[TryCatchBlock]:
    blocks: list[TryCatchBlock] = []
    for m in _TRY_RE.finditer(body):
        open_index = m.end() - 1
        close = find_matching(body, open_index)
        if close < 0:
            continue
        block = TryCatchBlock(body[open_index + 1 : close].strip())
        pos = skip_ws(body, close + 1)
        while True:
            cm = _CATCH_RE.match(body, pos)
            if cm is None:
                break
            paren = cm.end() - 1
            paren_close = find_matching(body, paren)
            if paren_close < 0:
                break
            brace = skip_ws(body, paren_close + 1)
            if brace >= len(body) or body[brace] != "{":
                break
            brace_close = find_matching(body, brace)
            if brace_close < 0:
                break
            exc_type, var = parse_catch(body[paren + 1 : paren_close])
            block.catch_clauses.append(CatchClause(exc_type, var, body[brace + 1 : brace_close].strip()))
            pos = skip_ws(body, brace_close + 1)
        blocks.append(block)
    return blocks


def analyze_function(func: Function) -> None:
    spec = func.exception_spec
    func.try_catch_blocks = []
    if func.body:
        func.try_catch_blocks = find_try_blocks(func.body)
        for m in _THROW_RE.finditer(func.body):
            spec.can_throw = True
            name = thrown_type(m.group(1))
            if name and name not in spec.throw_types:
                spec.throw_types.append(name)
    func.may_throw = not spec.is_noexcept and (spec.can_throw or bool(func.try_catch_blocks))


def analyze_exceptions(ir: IR) -> None:
    """Record throw sites and handlers for every function and method."""
    count = 0
    for func in ir.all_functions():
        analyze_function(func)
        if func.may_throw:
            count += 1
    logger.debug("exceptions: %d functions may throw", count)
