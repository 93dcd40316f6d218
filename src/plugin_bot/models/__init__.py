"""Data models for the plugin bot."""

from plugin_bot.models.operation_models import (
    FileOperation,
    FixPatch,
    OperationKind,
    OperationResult,
)
from plugin_bot.models.project_models import (
    PluginFile,
    PluginProject,
    file_type_for,
    is_safe_relative_path,
    normalize_line_endings,
)
from plugin_bot.models.report_models import (
    BuildFailureKind,
    BuildStatus,
    CompilationResult,
    ErrorAnalysis,
    FixOutcome,
    FixResult,
    GenerationReport,
    GenerationRequest,
)

__all__ = [
    "BuildFailureKind",
    "BuildStatus",
    "CompilationResult",
    "ErrorAnalysis",
    "FileOperation",
    "FixOutcome",
    "FixPatch",
    "FixResult",
    "GenerationReport",
    "GenerationRequest",
    "OperationKind",
    "OperationResult",
    "PluginFile",
    "PluginProject",
    "file_type_for",
    "is_safe_relative_path",
    "normalize_line_endings",
]
