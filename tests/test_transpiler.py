"""Pipeline orchestrator: output paths, scaffolds, failure handling."""

from pathlib import Path

from hybrid import Profile, Transpiler, TranspilerOptions
from hybrid.transpiler import output_path_for, scaffold_path_for

ONE = "int one() { return 1; }\n"


def test_output_path_for():
    assert output_path_for("src/a.cpp", Profile.RUST) == Path("src/a.rs")
    assert output_path_for("b.cc", Profile.GO) == Path("b.go")


def test_scaffold_path_for():
    assert scaffold_path_for("src/a.go", Profile.GO) == Path("src/a_test.go")


def test_transpile_writes_default_output(write_source):
    src = write_source(ONE)
    transpiler = Transpiler()
    assert transpiler.transpile(src)
    assert transpiler.last_error is None
    text = src.with_suffix(".rs").read_text(encoding="utf-8")
    assert "pub fn one() -> i32 {" in text


def test_transpile_explicit_output(write_source, tmp_path):
    src = write_source(ONE)
    out = tmp_path / "renamed.go"
    transpiler = Transpiler(TranspilerOptions(target=Profile.GO, output_path=str(out)))
    assert transpiler.transpile(src)
    assert "func One() int {" in out.read_text(encoding="utf-8")
    assert not src.with_suffix(".go").exists()


def test_missing_input_sets_last_error(tmp_path):
    missing = tmp_path / "absent.cpp"
    transpiler = Transpiler()
    assert not transpiler.transpile(missing)
    assert transpiler.last_error is not None
    assert "cannot read" in transpiler.last_error
    assert not (tmp_path / "absent.rs").exists()


def test_last_error_cleared_on_success(write_source, tmp_path):
    transpiler = Transpiler()
    assert not transpiler.transpile(tmp_path / "absent.cpp")
    assert transpiler.transpile(write_source(ONE))
    assert transpiler.last_error is None


def test_unwritable_output(write_source, tmp_path):
    src = write_source(ONE)
    out = tmp_path / "no_such_dir" / "out.rs"
    transpiler = Transpiler(TranspilerOptions(output_path=str(out)))
    assert not transpiler.transpile(src)
    assert "cannot write" in transpiler.last_error


def test_batch_stops_at_first_failure(write_source, tmp_path):
    first = write_source(ONE, "first.cpp")
    third = write_source(ONE, "third.cpp")
    transpiler = Transpiler()
    assert not transpiler.transpile_batch([first, tmp_path / "second.cpp", third])
    assert (tmp_path / "first.rs").exists()
    assert not (tmp_path / "third.rs").exists()
    assert "second.cpp" in transpiler.last_error


def test_batch_ignores_explicit_output(write_source, tmp_path):
    a = write_source(ONE, "a.cpp")
    b = write_source("int two() { return 2; }\n", "b.cpp")
    out = tmp_path / "single.rs"
    options = TranspilerOptions(output_path=str(out))
    transpiler = Transpiler(options)
    assert transpiler.transpile_batch([a, b])
    assert (tmp_path / "a.rs").exists()
    assert (tmp_path / "b.rs").exists()
    assert not out.exists()
    assert options.output_path == str(out)


def test_batch_units_are_independent(write_source, tmp_path):
    a = write_source("class Foo { public: int x; };\n", "a.cpp")
    b = write_source(ONE, "b.cpp")
    assert Transpiler().transpile_batch([a, b])
    assert "Foo" not in (tmp_path / "b.rs").read_text(encoding="utf-8")


def test_rust_scaffold_is_inline(write_source, tmp_path):
    src = write_source(ONE)
    transpiler = Transpiler(TranspilerOptions(generate_tests=True))
    assert transpiler.transpile(src)
    text = (tmp_path / "input.rs").read_text(encoding="utf-8")
    assert "pub fn one() -> i32 {" in text
    assert "#[cfg(test)]" in text
    assert "fn test_one() {" in text
    assert not (tmp_path / "input_test.rs").exists()


def test_go_scaffold_is_sibling_file(write_source, tmp_path):
    src = write_source(ONE)
    transpiler = Transpiler(TranspilerOptions(target=Profile.GO, generate_tests=True))
    assert transpiler.transpile(src)
    main_text = (tmp_path / "input.go").read_text(encoding="utf-8")
    test_text = (tmp_path / "input_test.go").read_text(encoding="utf-8")
    assert "testing" not in main_text
    assert "package input" in test_text
    assert "func TestOne(t *testing.T) {" in test_text


def test_translate_returns_outputs_without_writing(write_source, tmp_path):
    src = write_source(ONE)
    outputs = Transpiler(TranspilerOptions(target=Profile.GO, generate_tests=True)).translate(src)
    assert set(outputs) == {tmp_path / "input.go", tmp_path / "input_test.go"}
    assert not (tmp_path / "input.go").exists()


def test_failed_write_leaves_no_scaffold(write_source, tmp_path):
    src = write_source(ONE)
    out = tmp_path / "out.go"
    out.mkdir()
    transpiler = Transpiler(TranspilerOptions(target=Profile.GO, output_path=str(out), generate_tests=True))
    assert not transpiler.transpile(src)
    assert "cannot write" in transpiler.last_error
    assert sorted(p.name for p in tmp_path.iterdir()) == ["input.cpp", "out.go"]


def test_failed_scaffold_write_removes_main_output(write_source, tmp_path):
    src = write_source(ONE)
    (tmp_path / "input_test.go").mkdir()
    transpiler = Transpiler(TranspilerOptions(target=Profile.GO, generate_tests=True))
    assert not transpiler.transpile(src)
    assert "input_test.go" in transpiler.last_error
    assert not (tmp_path / "input.go").exists()
    assert sorted(p.name for p in tmp_path.iterdir()) == ["input.cpp", "input_test.go"]
