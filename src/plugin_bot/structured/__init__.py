"""Structured output recovery: parse, validate and sanitize model responses."""

from plugin_bot.structured.fallback import build_fallback_project, ensure_required_files
from plugin_bot.structured.parser import (
    PARSE_STRATEGIES,
    iter_candidates,
    parse_structured_output,
)
from plugin_bot.structured.sanitizer import (
    recover_patch,
    recover_project,
    sanitize_patch,
    sanitize_project,
)
from plugin_bot.structured.validator import Shape, ValidationReport, validate

__all__ = [
    "PARSE_STRATEGIES",
    "Shape",
    "ValidationReport",
    "build_fallback_project",
    "ensure_required_files",
    "iter_candidates",
    "parse_structured_output",
    "recover_patch",
    "recover_project",
    "sanitize_patch",
    "sanitize_project",
    "validate",
]
