"""Backend entry points: profile selection, options, determinism."""

import pytest

from hybrid import GenerationError, Profile, generate, generate_tests, parse_string
from hybrid.backend import EmitOptions
from hybrid.backend.lower import Lambda, read_expr
from hybrid.transpiler import analyze

SOURCE = """\
/// Adds two numbers.
int add(int a, int b) { return a + b; }

class Counter {
public:
    Counter() : n(0) {}
    void bump() { n++; }
    int value() const { return n; }
private:
    int n;
};
"""


def build(source: str = SOURCE):
    return analyze(parse_string(source))


@pytest.mark.parametrize("profile", [Profile.RUST, Profile.GO])
def test_output_is_deterministic(profile):
    ir = build()
    assert generate(profile, ir) == generate(profile, ir)
    assert generate(profile, ir) == generate(profile, build())


def test_profile_accepts_name():
    ir = build()
    assert generate("rust", ir) == generate(Profile.RUST, ir)
    assert generate("GO", ir) == generate(Profile.GO, ir)


def test_missing_profile():
    with pytest.raises(GenerationError, match="no output profile"):
        generate(None, build())


def test_unknown_profile():
    with pytest.raises(GenerationError, match="unknown output profile"):
        generate("python", build())
    with pytest.raises(GenerationError):
        generate_tests(42, build())


def test_profile_extensions():
    assert Profile.RUST.extension == ".rs"
    assert Profile.GO.extension == ".go"


def test_rust_header_and_safety():
    text = generate(Profile.RUST, build(), EmitOptions(module_name="sample"))
    lines = text.split("\n")
    assert lines[0] == "// Generated by hybrid-transpiler from sample. Do not edit."
    assert lines[1] == "#![forbid(unsafe_code)]"
    assert "/// Adds two numbers." in lines


def test_rust_without_safety_checks():
    text = generate(Profile.RUST, build(), EmitOptions(safety_checks=False))
    assert "#![forbid(unsafe_code)]" not in text


def test_rust_without_comments():
    text = generate(Profile.RUST, build(), EmitOptions(preserve_comments=False))
    assert "Generated by hybrid-transpiler" not in text
    assert "/// Adds two numbers." not in text
    assert "pub fn add(a: i32, b: i32) -> i32 {" in text


def test_go_header_and_package():
    text = generate(Profile.GO, build(), EmitOptions(module_name="sample"))
    lines = text.split("\n")
    assert lines[0] == "// Code generated by hybrid-transpiler from sample. DO NOT EDIT."
    assert lines[1] == ""
    assert lines[2] == "package sample"
    assert "// Adds two numbers." in lines


def test_go_main_package():
    ir = build("int main() { return 0; }")
    text = generate(Profile.GO, ir, EmitOptions(module_name="tool"))
    assert "package main" in text.split("\n")


def test_go_without_comments():
    text = generate(Profile.GO, build(), EmitOptions(preserve_comments=False, module_name="sample"))
    assert text.split("\n")[0] == "package sample"
    assert "// Adds two numbers." not in text


def test_rust_scaffold():
    text = generate_tests(Profile.RUST, build())
    assert text.startswith("#[cfg(test)]\nmod tests {\n    use super::*;\n")
    assert "    fn test_counter() {" in text
    assert "        let _value = Counter::new();" in text
    assert text.rstrip().endswith("}")


def test_go_scaffold():
    text = generate_tests(Profile.GO, build(), EmitOptions(module_name="sample"))
    lines = text.split("\n")
    assert lines[0] == "package sample"
    assert 'import "testing"' in lines
    assert "func TestCounter(t *testing.T) {" in lines
    assert "\tif NewCounter() == nil {" in lines


def test_scaffold_skips_functions_with_params():
    text = generate_tests(Profile.RUST, build())
    assert "test_add" not in text


@pytest.mark.parametrize(
    "source,expected",
    [
        ("struct Point { int x; };\n", "package sample\n\ntype Point struct {\n"),
        ("int check(int v) { if (v < 0) throw std::invalid_argument(\"neg\"); return v; }\n", 'import "errors"\n\nfunc Check('),
    ],
)
def test_go_header_is_followed_by_blank_line(source, expected):
    text = generate(Profile.GO, build(source), EmitOptions(module_name="sample", preserve_comments=False))
    assert expected in text


def test_rust_header_is_followed_by_blank_line():
    text = generate(Profile.RUST, build("int one() { return 1; }\n"))
    assert "#![forbid(unsafe_code)]\n\npub fn one() -> i32 {\n" in text
    bare = generate(Profile.RUST, build("int one() { return 1; }\n"), EmitOptions(safety_checks=False, preserve_comments=False))
    assert bare.startswith("pub fn one() -> i32 {\n")


def test_lambda_body_keeps_source_text():
    expr = read_expr('[x]() { std::cout << "a  b" << x << std::endl; }')
    assert isinstance(expr, Lambda)
    assert expr.body == 'std::cout << "a  b" << x << std::endl;'
