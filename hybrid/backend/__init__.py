"""Code generators: IR -> Rust (Target-Alpha) | Go (Target-Beta)."""

from __future__ import annotations

import enum

from ..ir import IR
from .base import EmitOptions
from .go import GoBackend
from .rust import RustBackend
from .scaffold import go_tests, rust_tests


class Profile(enum.Enum):
    """Output profile."""

    RUST = "rust"
    GO = "go"

    @property
    def extension(self) -> str:
        return ".rs" if self is Profile.RUST else ".go"


class GenerationError(Exception):
    """No or unknown output profile, or the output could not be written."""


def _profile(profile: object) -> Profile:
    if isinstance(profile, Profile):
        return profile
    if isinstance(profile, str):
        try:
            return Profile(profile.lower())
        except ValueError:
            pass
    if profile is None:
        raise GenerationError("no output profile given")
    raise GenerationError(f"unknown output profile: {profile!r}")


def generate(profile: Profile | str | None, ir: IR, options: EmitOptions | None = None) -> str:
    """Emit target source for ir. Each call uses a fresh backend."""
    if _profile(profile) is Profile.RUST:
        return RustBackend(ir, options).emit()
    return GoBackend(ir, options).emit()


def generate_tests(profile: Profile | str | None, ir: IR, options: EmitOptions | None = None) -> str:
    """Emit the companion test scaffold for ir."""
    if _profile(profile) is Profile.RUST:
        return rust_tests(ir, options)
    return go_tests(ir, options)


__all__ = [
    "EmitOptions",
    "GenerationError",
    "GoBackend",
    "Profile",
    "RustBackend",
    "generate",
    "generate_tests",
]
