"""IR analysis passes (annotate in place, never restructure)."""

from ..ir import IR

from .concurrency import analyze_concurrency
from .coroutines import analyze_async, analyze_coroutines
from .exceptions import analyze_exceptions
from .ownership import analyze_ownership
from .templates import analyze_template_params, analyze_templates


def analyze(ir: IR) -> None:
    """Run all analysis passes, annotating IR nodes in place."""
    analyze_templates(ir)
    analyze_coroutines(ir)
    analyze_concurrency(ir)
    analyze_exceptions(ir)
    analyze_ownership(ir)


__all__ = [
    "analyze",
    "analyze_async",
    "analyze_concurrency",
    "analyze_coroutines",
    "analyze_exceptions",
    "analyze_ownership",
    "analyze_template_params",
    "analyze_templates",
]
