"""Pipeline orchestrator: parse -> analyze -> generate -> write."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .backend import EmitOptions, GenerationError, Profile, generate, generate_tests
from .frontend import ReadError, parse_file
from .ir import IR
from .middleend import analyze as run_passes

logger = logging.getLogger(__name__)


@dataclass
class TranspilerOptions:
    """Settings for one Transpiler.

    output_path applies to single-input runs; batch runs always derive
    the path from each input.
    """

    target: Profile = Profile.RUST
    output_path: str | None = None
    safety_checks: bool = True
    preserve_comments: bool = True
    generate_tests: bool = False


def output_path_for(input_path: str | Path, profile: Profile) -> Path:
    """Input path with its extension replaced by the profile's."""
    return Path(input_path).with_suffix(profile.extension)


def scaffold_path_for(output_path: str | Path, profile: Profile) -> Path:
    """Where the Go test scaffold lands; Rust scaffolds go inline."""
    path = Path(output_path)
    return path.with_name(path.stem + "_test" + profile.extension)


def analyze(ir: IR) -> IR:
    """Run every analysis pass over ir in order."""
    run_passes(ir)
    return ir


def _stage(path: Path, text: str) -> str:
    """Write text to a temp file in the destination directory; return its name."""
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix="." + path.name + ".", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
    except BaseException:
        _remove(tmp)
        raise
    return tmp


def _remove(path: str | Path) -> None:
    try:
        os.unlink(path)
    except OSError:
        pass


def _write_all(outputs: dict[Path, str]) -> None:
    """Stage every output, then rename them in order.

    On failure the temp files are removed, and so is any output this call
    created. A file that existed before keeps whatever the rename left.
    """
    staged: list[tuple[str, Path]] = []
    created: list[Path] = []
    current = None
    try:
        for path, text in outputs.items():
            current = path
            staged.append((_stage(path, text), path))
        for tmp, path in staged:
            current = path
            existed = path.exists()
            os.replace(tmp, path)
            if not existed:
                created.append(path)
    except OSError as e:
        for tmp, _ in staged:
            _remove(tmp)
        for path in created:
            _remove(path)
        raise GenerationError(f"cannot write {current}: {e.strerror or e}") from e


class Transpiler:
    """Drives whole translation units through the pipeline, one at a time."""

    def __init__(self, options: TranspilerOptions | None = None):
        self.options: TranspilerOptions = options or TranspilerOptions()
        self.last_error: str | None = None

    def _emit_options(self, input_path: Path) -> EmitOptions:
        return EmitOptions(
            safety_checks=self.options.safety_checks,
            preserve_comments=self.options.preserve_comments,
            module_name=input_path.stem,
        )

    def translate(self, input_path: str | Path) -> dict[Path, str]:
        """Produce every output text for one unit, keyed by destination path."""
        path = Path(input_path)
        profile = self.options.target
        if not isinstance(profile, Profile):
            raise GenerationError(f"unknown output profile: {profile!r}")
        ir = parse_file(path)
        logger.debug(
            "parsed %s: %d classes, %d functions, %d globals",
            path,
            len(ir.classes),
            len(ir.functions),
            len(ir.global_vars),
        )
        analyze(ir)
        options = self._emit_options(path)
        out = Path(self.options.output_path) if self.options.output_path else output_path_for(path, profile)
        text = generate(profile, ir, options)
        outputs: dict[Path, str] = {out: text}
        if self.options.generate_tests:
            scaffold = generate_tests(profile, ir, options)
            if profile is Profile.RUST:
                outputs[out] = text + "\n" + scaffold
            else:
                outputs[scaffold_path_for(out, profile)] = scaffold
        return outputs

    def transpile(self, input_path: str | Path) -> bool:
        """Translate one file; on failure store the message in last_error and return False."""
        self.last_error = None
        try:
            outputs = self.translate(input_path)
            _write_all(outputs)
            for path in outputs:
                logger.info("wrote %s", path)
        except (ReadError, GenerationError, OSError) as e:
            self.last_error = str(e)
            logger.warning("%s: %s", input_path, e)
            return False
        return True

    def transpile_batch(self, paths: list[str | Path]) -> bool:
        """Translate files in order, each with its own IR; stop at the first failure."""
        saved = self.options.output_path
        if len(paths) > 1:
            self.options.output_path = None
        try:
            for path in paths:
                if not self.transpile(path):
                    return False
        finally:
            self.options.output_path = saved
        return True
