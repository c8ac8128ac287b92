"""hybrid - C++ to Rust / Go transpiler."""

__version__ = "0.1.0"

from .backend import GenerationError, Profile, generate, generate_tests
from .frontend import ReadError, parse_file, parse_string
from .middleend import analyze_async, analyze_template_params
from .transpiler import Transpiler, TranspilerOptions

__all__ = [
    "GenerationError",
    "Profile",
    "ReadError",
    "Transpiler",
    "TranspilerOptions",
    "analyze_async",
    "analyze_template_params",
    "generate",
    "generate_tests",
    "parse_file",
    "parse_string",
]
