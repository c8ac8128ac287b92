"""Direct tests of the analysis helpers that the pipeline exposes as API."""

import pytest

from hybrid import analyze_async, analyze_template_params, parse_string
from hybrid.ir import (
    AwaitOp,
    ClassRef,
    Function,
    NestedTemplateParam,
    NonTypeParam,
    Parameter,
    Pointer,
    Primitive,
    Reference,
    ReturnOp,
    TypeParam,
    YieldOp,
)
from hybrid.middleend.exceptions import parse_catch, thrown_type
from hybrid.middleend.ownership import is_owning_value
from hybrid.middleend.templates import (
    has_sfinae_pattern,
    is_algorithm_template,
    is_container_template,
    to_go_type_params,
    to_rust_generics,
)
from hybrid.transpiler import analyze


def make_function(body: str | None) -> Function:
    return Function(name="f", ret=Primitive(kind="void", name="void"), body=body)


# --- Templates ---


def test_template_type_and_value_params():
    params = analyze_template_params("template<typename T, int N = 4>")
    assert [p.name for p in params] == ["T", "N"]
    assert isinstance(params[0], TypeParam)
    assert isinstance(params[1], NonTypeParam)
    assert params[1].default == "4"
    assert params[1].param_type.name == "int"


def test_template_default_type():
    params = analyze_template_params("template<class K, class V = std::string>")
    assert isinstance(params[1], TypeParam)
    assert params[1].default == "std::string"


def test_template_concept_constraint():
    (param,) = analyze_template_params("template<std::integral T>")
    assert isinstance(param, TypeParam)
    assert param.constraints == ["std::integral"]


def test_template_template_param():
    (param,) = analyze_template_params("template<template<typename> class C>")
    assert isinstance(param, NestedTemplateParam)
    assert param.name == "C"


@pytest.mark.parametrize("text", [None, "", "template<>", "template"])
def test_template_params_empty(text):
    assert analyze_template_params(text) == []


def test_rust_generics_rendering():
    params = analyze_template_params("template<typename T, int N>")
    assert to_rust_generics(params) == "<T, const N: usize>"
    assert to_rust_generics([]) == ""


def test_rust_generics_concept_bounds():
    params = analyze_template_params("template<std::integral T>")
    assert to_rust_generics(params) == "<T: Copy + Ord>"


def test_go_type_params_drop_value_params():
    params = analyze_template_params("template<typename T, int N>")
    assert to_go_type_params(params) == "[T any]"
    only_value = analyze_template_params("template<int N>")
    assert to_go_type_params(only_value) == ""


def test_container_template_heuristic():
    ir = analyze(
        parse_string(
            "template<typename T> class Stack {\n"
            "public:\n"
            "    void push_back(T v) {}\n"
            "    int size() const { return 0; }\n"
            "};\n"
            "class Plain { public: void push_back(int v) {} };\n"
        )
    )
    stack, plain = ir.classes
    assert is_container_template(stack)
    assert not is_container_template(plain)


def test_algorithm_template_heuristic():
    ir = analyze(
        parse_string(
            "template<typename Iterator> void walk(Iterator first, Iterator last) {}\n"
            "template<typename T> T twice(T v) { return v + v; }\n"
        )
    )
    walk, twice = ir.functions
    assert is_algorithm_template(walk)
    assert not is_algorithm_template(twice)


def test_sfinae_heuristic():
    int_type = Primitive(kind="integer", name="int")
    guarded_ret = Function(name="f", ret=ClassRef(name="std::enable_if_t<B, int>"))
    guarded_param = Function(
        name="g",
        ret=int_type,
        params=[Parameter(name="tag", typ=ClassRef(name="std::enable_if_t<B, int>"))],
    )
    plain = Function(name="h", ret=int_type, params=[Parameter(name="x", typ=int_type)])
    assert has_sfinae_pattern(guarded_ret)
    assert has_sfinae_pattern(guarded_param)
    assert not has_sfinae_pattern(plain)


# --- Async ---


def test_generator_operations_in_order():
    func = make_function("co_yield 1; co_await tick(); co_return;")
    analyze_async(func)
    ops = func.coroutine.operations
    assert [type(op) for op in ops] == [YieldOp, AwaitOp, ReturnOp]
    assert ops[0].expression == "1"
    assert ops[1].expression == "tick()"
    assert func.coroutine.is_generator
    assert func.coroutine.is_coroutine
    assert func.is_async


def test_promise_pairs_with_future():
    func = make_function("std::promise<int> p; std::future<int> f = p.get_future(); return f.get();")
    analyze_async(func)
    (future,) = func.futures
    assert future.var_name == "f"
    assert future.promise_var == "p"
    assert future.value_type.name == "int"
    assert not future.is_shared


def test_async_launch_policy_skipped():
    func = make_function("auto t = std::async(std::launch::async, work, 3); t.get();")
    analyze_async(func)
    (task,) = func.async_tasks
    assert task.var_name == "t"
    assert task.function_name == "work"
    assert task.arguments == ["3"]
    assert task.result_type is None
    assert not task.detached


def test_async_result_type_from_future_decl():
    func = make_function("std::future<double> r = std::async(compute);")
    analyze_async(func)
    (task,) = func.async_tasks
    assert task.var_name == "r"
    assert task.result_type is not None
    assert task.result_type.name == "double"


def test_unbound_async_is_detached():
    func = make_function("std::async(work);")
    analyze_async(func)
    (task,) = func.async_tasks
    assert task.detached
    assert task.var_name == ""


def test_analyze_async_resets_previous_state():
    func = make_function("co_yield 1;")
    analyze_async(func)
    func.body = "return;"
    analyze_async(func)
    assert not func.coroutine.operations
    assert not func.is_async


def test_declaration_without_body_is_not_async():
    func = make_function(None)
    analyze_async(func)
    assert not func.is_async


# --- Exceptions ---


@pytest.mark.parametrize(
    "expression,expected",
    [
        ('std::runtime_error("bad")', "std::runtime_error"),
        ("new Oops()", "Oops"),
        ("MyError{}", "MyError"),
        ("42", ""),
        ("e", ""),
    ],
)
def test_thrown_type(expression, expected):
    assert thrown_type(expression) == expected


@pytest.mark.parametrize(
    "decl,expected",
    [
        ("const std::exception& e", ("std::exception", "e")),
        ("std::out_of_range &err", ("std::out_of_range", "err")),
        ("...", ("...", "")),
        ("int", ("int", "")),
    ],
)
def test_parse_catch(decl, expected):
    assert parse_catch(decl) == expected


# --- Ownership ---


def test_owning_values():
    int_type = Primitive(kind="integer", name="int")
    widget = ClassRef(name="Widget")
    assert is_owning_value(widget)
    assert is_owning_value(Pointer(name="std::unique_ptr<Widget>", element=widget, ownership="unique"))
    assert not is_owning_value(Pointer(name="Widget*", element=widget))
    assert not is_owning_value(int_type)
    assert not is_owning_value(Reference(name="Widget&", element=widget))
