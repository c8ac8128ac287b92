"""Pytest-based code generation tests.

Test cases live in 03_codegen/<profile>.tests, where the file stem names
the output profile (rust or go). The expected section holds snippets of
the generated code; snippets are separated by blank lines and each one
must appear as consecutive lines, ignoring indentation. A line of the
form "not: text" asserts that text does not appear anywhere.
"""

from pathlib import Path

import pytest

from hybrid.backend import EmitOptions, generate
from hybrid.frontend import parse_string
from hybrid.transpiler import analyze

CODEGEN_DIR = Path(__file__).parent / "03_codegen"


def parse_codegen_file(path: Path) -> list[tuple[str, str, str]]:
    """Parse .tests file into (name, input, expected) tuples."""
    lines = path.read_text().split("\n")
    result: list[tuple[str, str, str]] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("=== "):
            test_name = line[4:].strip()
            i += 1
            input_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                input_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            expected_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                expected_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            result.append((test_name, "\n".join(input_lines), "\n".join(expected_lines).strip()))
        else:
            i += 1
    return result


def discover_codegen_tests() -> list[tuple[str, str, str, str]]:
    """Find all codegen tests, returns (test_id, profile, input, expected)."""
    results = []
    for test_file in sorted(CODEGEN_DIR.glob("*.tests")):
        for name, input_code, expected in parse_codegen_file(test_file):
            results.append((f"{test_file.stem}/{name}", test_file.stem, input_code, expected))
    return results


def contains_normalized(haystack: str, needle: str) -> bool:
    """Check if needle appears in haystack as consecutive lines, ignoring indentation."""
    hay_lines = [line.strip() for line in haystack.split("\n")]
    needle_lines = [line.strip() for line in needle.strip().split("\n")]
    n = len(needle_lines)
    for i in range(len(hay_lines) - n + 1):
        if hay_lines[i : i + n] == needle_lines:
            return True
    return False


def transpile(profile: str, source: str) -> str:
    ir = analyze(parse_string(source))
    return generate(profile, ir, EmitOptions(module_name="input"))


def pytest_generate_tests(metafunc):
    """Parametrize tests over codegen test files."""
    if "codegen_input" in metafunc.fixturenames:
        params = [
            pytest.param(profile, input_code, expected, id=test_id)
            for test_id, profile, input_code, expected in discover_codegen_tests()
        ]
        metafunc.parametrize("codegen_profile,codegen_input,codegen_expected", params)


def test_codegen(codegen_profile: str, codegen_input: str, codegen_expected: str):
    """Verify generated code contains every expected snippet."""
    output = transpile(codegen_profile, codegen_input)
    snippet: list[str] = []
    snippets: list[str] = []
    for line in codegen_expected.split("\n"):
        if line.startswith("not: "):
            absent = line[5:].strip()
            assert absent not in output, f"did not expect {absent!r} in output:\n{output}"
            continue
        if not line.strip():
            if snippet:
                snippets.append("\n".join(snippet))
                snippet = []
            continue
        snippet.append(line)
    if snippet:
        snippets.append("\n".join(snippet))
    for needle in snippets:
        if not contains_normalized(output, needle):
            pytest.fail(f"expected snippet not found:\n{needle}\n\n--- output ---\n{output}")
