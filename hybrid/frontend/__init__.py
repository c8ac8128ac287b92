"""Frontend package - converts C++ source text to IR."""

from .parse import ReadError, parse_file, parse_params, parse_string, parse_type, parse_variables
from .scan import find_matching, split_statements, split_top_level, strip_comments

__all__ = [
    "ReadError",
    "find_matching",
    "parse_file",
    "parse_params",
    "parse_string",
    "parse_type",
    "parse_variables",
    "split_statements",
    "split_top_level",
    "strip_comments",
]
