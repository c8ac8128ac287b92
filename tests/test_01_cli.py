"""CLI tests for the hybrid-transpiler entry point.

Test cases live in 01_cli/*.tests files. Format:

    === test name
    args: -t go {input}
    C++ source here
    (written to input.cpp in a temporary directory)
    ---
    exit: 0
    stderr-contains: error
    file-contains: input.go package input
    ---

Placeholders in the args line:
    {input}   path of the written source file
    {dir}     the temporary directory

Assertion directives in the expected section:
    exit:             exact exit code
    stderr-contains:  stderr must contain substring
    stderr-empty:     stderr must be empty
    stdout-contains:  stdout must contain substring
    stdout-empty:     stdout must be empty
    file-contains:    NAME TEXT, file NAME in the directory must contain TEXT
    file-missing:     NAME must not exist in the directory
"""

import subprocess
import sys
from pathlib import Path

import pytest

CLI_DIR = Path(__file__).parent / "01_cli"
ROOT_DIR = Path(__file__).parent.parent


def parse_cli_test_file(path: Path) -> list[tuple[str, dict]]:
    """Parse a .tests file into (name, spec) tuples.

    Each spec dict has keys: args, source, assertions.
    """
    lines = path.read_text().split("\n")
    result: list[tuple[str, dict]] = []
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
            result.append((test_name, _parse_spec(input_lines, expected_lines)))
        else:
            i += 1
    return result


def _parse_spec(input_lines: list[str], expected_lines: list[str]) -> dict:
    """Parse input + expected lines into a test spec dict."""
    spec: dict = {"args": [], "source": "", "assertions": []}
    body_start = 0
    if input_lines and input_lines[0].startswith("args:"):
        args_str = input_lines[0][5:].strip()
        spec["args"] = args_str.split() if args_str else []
        body_start = 1
    spec["source"] = "\n".join(input_lines[body_start:])
    for line in expected_lines:
        line = line.strip()
        if not line:
            continue
        if line.startswith("exit:"):
            spec["assertions"].append(("exit", int(line[5:].strip())))
        elif line.startswith("stderr-contains:"):
            spec["assertions"].append(("stderr-contains", line[16:].strip()))
        elif line.startswith("stderr-empty:"):
            spec["assertions"].append(("stderr-empty", None))
        elif line.startswith("stdout-contains:"):
            spec["assertions"].append(("stdout-contains", line[16:].strip()))
        elif line.startswith("stdout-empty:"):
            spec["assertions"].append(("stdout-empty", None))
        elif line.startswith("file-contains:"):
            name, _, text = line[14:].strip().partition(" ")
            spec["assertions"].append(("file-contains", (name, text.strip())))
        elif line.startswith("file-missing:"):
            spec["assertions"].append(("file-missing", line[13:].strip()))
    return spec


def discover_cli_tests() -> list[tuple[str, dict]]:
    """Find all CLI tests across .tests files."""
    results = []
    for test_file in sorted(CLI_DIR.glob("*.tests")):
        for name, spec in parse_cli_test_file(test_file):
            results.append((f"{test_file.stem}/{name}", spec))
    return results


def run_cli(spec: dict, workdir: Path) -> subprocess.CompletedProcess[bytes]:
    """Write the source and run the CLI from a test spec."""
    source = workdir / "input.cpp"
    source.write_text(spec["source"], encoding="utf-8")
    args = [a.replace("{input}", str(source)).replace("{dir}", str(workdir)) for a in spec["args"]]
    cmd = [sys.executable, "-m", "hybrid", *args]
    return subprocess.run(cmd, capture_output=True, cwd=ROOT_DIR)


def check_assertions(result: subprocess.CompletedProcess[bytes], assertions: list[tuple], workdir: Path) -> None:
    """Check all assertions against a CLI result."""
    for kind, value in assertions:
        if kind == "exit":
            assert result.returncode == value, (
                f"expected exit {value}, got {result.returncode}"
                f"\nstderr: {result.stderr.decode(errors='replace')}"
            )
        elif kind == "stderr-contains":
            actual = result.stderr.decode(errors="replace")
            assert value in actual, f"expected stderr to contain {value!r}, got {actual!r}"
        elif kind == "stderr-empty":
            assert result.stderr == b"", f"expected empty stderr, got {result.stderr!r}"
        elif kind == "stdout-contains":
            actual = result.stdout.decode(errors="replace")
            assert value in actual, f"expected stdout to contain {value!r}, got {actual!r}"
        elif kind == "stdout-empty":
            assert result.stdout == b"", f"expected empty stdout, got {result.stdout[:200]!r}"
        elif kind == "file-contains":
            name, text = value
            path = workdir / name
            assert path.exists(), f"expected {name} to be written"
            actual = path.read_text(encoding="utf-8")
            assert text in actual, f"expected {name} to contain {text!r}, got:\n{actual}"
        elif kind == "file-missing":
            assert not (workdir / value).exists(), f"expected {value} not to be written"


def pytest_generate_tests(metafunc):
    """Parametrize test_cli over all .tests files."""
    if "cli_spec" in metafunc.fixturenames:
        params = [pytest.param(spec, id=test_id) for test_id, spec in discover_cli_tests()]
        metafunc.parametrize("cli_spec", params)


def test_cli(cli_spec: dict, tmp_path: Path) -> None:
    """Run a single CLI test case from .tests file."""
    result = run_cli(cli_spec, tmp_path)
    check_assertions(result, cli_spec["assertions"], tmp_path)
