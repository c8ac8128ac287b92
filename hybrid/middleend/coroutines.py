"""Async analysis: coroutine keywords, futures/promises, std::async launches.

Annotations added:
    Function.coroutine: CoroutineInfo - suspension points in textual order
    Function.futures: list[FutureInfo] - future declarations, paired with promises
    Function.async_tasks: list[AsyncTaskInfo] - one per std::async call site

Function.is_async is derived from these three and is never stored.

Future/promise pairing is positional: each promise declaration takes the
first future not yet paired. With several futures in one body the pairing
can be wrong; there is no use-def analysis to do better.
"""

from __future__ import annotations

import logging
import re

from ..frontend.parse import parse_type
from ..frontend.scan import find_matching, split_top_level
from ..ir import (
    IR,
    AsyncOperation,
    AsyncTaskInfo,
    AwaitOp,
    CoroutineInfo,
    Function,
    FutureInfo,
    ReturnOp,
    Type,
    YieldOp,
)

logger = logging.getLogger(__name__)

_SUSPEND_RE = re.compile(r"\bco_(await|return|yield)\b\s*([^;]*)")
_TARGS = r"<((?:[^<>;]|<[^<>;]*>)*)>"
_FUTURE_RE = re.compile(rf"\b(?:std::)?(future|shared_future)\s*{_TARGS}\s*(\w+)\s*(?=[=;({{])")
_PROMISE_RE = re.compile(rf"\b(?:std::)?promise\s*{_TARGS}\s*(\w+)")
_ASYNC_CALL_RE = re.compile(r"(?<![\w.>:])(?:std::)?async\s*\(")
_BOUND_RE = re.compile(
    rf"(?:\b(auto|(?:std::)?(?:shared_)?future\s*{_TARGS})\s+)?(\w+)\s*=\s*$"
)

_OP_CLASSES: dict[str, type[AsyncOperation]] = {
    "await": AwaitOp,
    "return": ReturnOp,
    "yield": YieldOp,
}


def find_suspension_points(body: str, base_line: int = 0) -> CoroutineInfo:
    """Collect co_await/co_return/co_yield occurrences in textual order."""
    info = CoroutineInfo()
    for m in _SUSPEND_RE.finditer(body):
        keyword = m.group(1)
        line = base_line + body.count("\n", 0, m.start()) if base_line else 0
        op = _OP_CLASSES[keyword](expression=m.group(2).strip(), line=line)
        info.operations.append(op)
        if keyword == "await":
            info.uses_suspend = True
        elif keyword == "return":
            info.uses_return = True
        else:
            info.uses_yield = True
    info.is_generator = info.uses_yield
    info.is_coroutine = info.uses_suspend or info.uses_return or info.uses_yield
    return info


def find_futures(body: str) -> list[FutureInfo]:
    """Future declarations. Each promise declaration pairs with the first unpaired future."""
    futures: list[FutureInfo] = []
    for m in _FUTURE_RE.finditer(body):
        futures.append(
            FutureInfo(
                var_name=m.group(3),
                value_type=parse_type(m.group(2)),
                is_shared=m.group(1) == "shared_future",
            )
        )
    for m in _PROMISE_RE.finditer(body):
        for future in futures:
            if not future.promise_var:
                future.promise_var = m.group(2)
                break
    return futures


def _binding(body: str, call_start: int, futures: list[FutureInfo]) -> tuple[str, Type | None]:
    """Variable a std::async call is assigned to, and its declared result type."""
    line_start = max(body.rfind(";", 0, call_start), body.rfind("{", 0, call_start), body.rfind("}", 0, call_start))
    m = _BOUND_RE.search(body[line_start + 1 : call_start])
    if m is None:
        return "", None
    declared, targ, name = m.group(1), m.group(2), m.group(3)
    if declared == "auto":
        return name, None
    if targ is not None:
        return name, parse_type(targ)
    for future in futures:
        if future.var_name == name:
            return name, future.value_type
    return name, None


def find_async_tasks(body: str, futures: list[FutureInfo]) -> list[AsyncTaskInfo]:
    """One AsyncTaskInfo per std::async call site."""
    tasks: list[AsyncTaskInfo] = []
    for m in _ASYNC_CALL_RE.finditer(body):
        open_index = m.end() - 1
        close = find_matching(body, open_index)
        if close < 0:
            continue
        args = split_top_level(body[open_index + 1 : close])
        if args and re.match(r"(?:std::)?launch::", args[0]):
            args = args[1:]
        if not args:
            continue
        var_name, result_type = _binding(body, m.start(), futures)
        tasks.append(
            AsyncTaskInfo(
                var_name=var_name,
                function_name=args[0],
                arguments=args[1:],
                result_type=result_type,
                detached=var_name == "",
            )
        )
    return tasks


def analyze_async(func: Function) -> None:
    """Recompute the async metadata of one function from its body."""
    func.coroutine = CoroutineInfo()
    func.futures = []
    func.async_tasks = []
    if not func.body:
        return
    func.coroutine = find_suspension_points(func.body, func.body_line)
    func.futures = find_futures(func.body)
    func.async_tasks = find_async_tasks(func.body, func.futures)


def analyze_coroutines(ir: IR) -> None:
    """Run analyze_async over every function and method."""
    count = 0
    for func in ir.all_functions():
        analyze_async(func)
        if func.is_async:
            count += 1
    logger.debug("coroutines: %d async functions", count)
