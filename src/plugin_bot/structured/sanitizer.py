"""Normalize parsed candidates into typed projects and patches."""

import logging

from pydantic import ValidationError

from plugin_bot.models import (
    FileOperation,
    FixPatch,
    PluginFile,
    PluginProject,
    file_type_for,
    is_safe_relative_path,
    normalize_line_endings,
)
from plugin_bot.structured.fallback import (
    DEFAULT_BUILD_INSTRUCTIONS,
    DEFAULT_DEPENDENCIES,
    DEFAULT_TARGET_VERSION,
    build_fallback_project,
)
from plugin_bot.structured.parser import iter_candidates
from plugin_bot.structured.validator import Shape, validate

logger = logging.getLogger(__name__)

DEFAULT_FIX_DESCRIPTION = "Automated error fix"
DEFAULT_EXPECTED_OUTCOME = "Compilation errors resolved"
DEFAULT_BUILD_COMMANDS = ("mvn clean compile",)
DEFAULT_OPERATION_REASON = "File operation"


def _string_or(value, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return default


def _string_list_or(value, default: tuple[str, ...]) -> list[str]:
    if isinstance(value, list):
        items = [item for item in value if isinstance(item, str) and item.strip()]
        if items:
            return items
    return list(default)


def _sanitize_file(entry) -> PluginFile | None:
    if not isinstance(entry, dict):
        return None
    path = entry.get("path")
    content = entry.get("content")
    if not isinstance(path, str) or not is_safe_relative_path(path):
        return None
    if not isinstance(content, str):
        return None
    file_type = entry.get("type")
    if not isinstance(file_type, str) or not file_type.strip():
        file_type = file_type_for(path)
    return PluginFile(path=path, content=normalize_line_endings(content), type=file_type)


def sanitize_project(candidate, plugin_name: str, requirements: str) -> PluginProject:
    """Coerce a (possibly partial) project candidate into a PluginProject.

    Never fails: invalid files are dropped one by one, blank scalars take
    defaults, and a candidate with no usable files becomes the fallback
    skeleton. A schema-valid candidate passes through unchanged.

    Args:
        candidate: Parsed mapping, or None when parsing failed.
        plugin_name: Requested plugin name, the default project name.
        requirements: Request text used for the fallback skeleton.

    Returns:
        A schema-valid PluginProject.
    """
    if not isinstance(candidate, dict):
        logger.warning("No usable project structure, using fallback skeleton")
        return build_fallback_project(plugin_name, requirements)

    raw_files = candidate.get("files")
    files: list[PluginFile] = []
    if isinstance(raw_files, list):
        for entry in raw_files:
            sanitized = _sanitize_file(entry)
            if sanitized is None:
                logger.debug("Dropping invalid file entry: %r", entry)
                continue
            files.append(sanitized)

    if not files:
        logger.warning("No valid files survived sanitizing, using fallback skeleton")
        return build_fallback_project(plugin_name, requirements)

    return PluginProject(
        name=_string_or(candidate.get("projectName"), plugin_name),
        target_version=_string_or(candidate.get("minecraftVersion"), DEFAULT_TARGET_VERSION),
        files=files,
        dependencies=_string_list_or(candidate.get("dependencies"), DEFAULT_DEPENDENCIES),
        build_instructions=_string_or(
            candidate.get("buildInstructions"), DEFAULT_BUILD_INSTRUCTIONS
        ),
    )


def _sanitize_operation(entry) -> FileOperation | None:
    if not isinstance(entry, dict):
        return None
    file_payload = entry.get("file")
    if not isinstance(file_payload, dict):
        return None

    for field in ("path", "oldPath", "newPath"):
        value = file_payload.get(field)
        if isinstance(value, str) and value and not is_safe_relative_path(value):
            logger.warning("Rejecting operation with unsafe %s: %s", field, value)
            return None

    content = file_payload.get("content")
    if content is not None and not isinstance(content, str):
        content = str(content)
    if isinstance(content, str):
        content = normalize_line_endings(content)

    normalized = {
        "type": entry.get("type"),
        "file": {
            "path": file_payload.get("path") or None,
            "oldPath": file_payload.get("oldPath") or None,
            "newPath": file_payload.get("newPath") or None,
            "content": content,
            "reason": _string_or(file_payload.get("reason"), DEFAULT_OPERATION_REASON),
        },
    }
    try:
        return FileOperation.from_wire(normalized)
    except ValueError:
        return None


def sanitize_patch(candidate) -> FixPatch:
    """Coerce a patch candidate into a FixPatch, keeping only valid operations.

    An empty ``operations`` list in the result means the model produced
    nothing actionable.
    """
    if not isinstance(candidate, dict):
        return FixPatch(
            description=DEFAULT_FIX_DESCRIPTION,
            build_commands=list(DEFAULT_BUILD_COMMANDS),
            expected_outcome=DEFAULT_EXPECTED_OUTCOME,
        )

    operations: list[FileOperation] = []
    raw_operations = candidate.get("operations")
    if isinstance(raw_operations, list):
        for entry in raw_operations:
            operation = _sanitize_operation(entry)
            if operation is None:
                logger.debug("Skipping invalid operation: %r", entry)
                continue
            operations.append(operation)

    return FixPatch(
        description=_string_or(candidate.get("fixDescription"), DEFAULT_FIX_DESCRIPTION),
        operations=operations,
        build_commands=_string_list_or(candidate.get("buildCommands"), DEFAULT_BUILD_COMMANDS),
        expected_outcome=_string_or(candidate.get("expectedOutcome"), DEFAULT_EXPECTED_OUTCOME),
    )


def recover_project(raw_text: str, plugin_name: str, requirements: str) -> PluginProject:
    """Run parse, validate and sanitize over raw model text.

    The first candidate that validates wins. Otherwise the first mapping any
    strategy produced is sanitized as partially usable; with no mapping at
    all the fallback skeleton is returned.
    """
    first_candidate: dict | None = None
    for strategy, candidate in iter_candidates(raw_text):
        report = validate(candidate, Shape.PROJECT)
        if report.valid:
            logger.debug("Project recovered with %s strategy", strategy)
            return sanitize_project(candidate, plugin_name, requirements)
        logger.debug(
            "Project candidate from %s strategy rejected: %s",
            strategy,
            "; ".join(report.violations),
        )
        if first_candidate is None:
            first_candidate = candidate

    if first_candidate is not None:
        logger.info("No candidate passed validation, sanitizing partial project")
    return sanitize_project(first_candidate, plugin_name, requirements)


def recover_patch(raw_text: str) -> FixPatch | None:
    """Run parse, validate and sanitize over a fix response.

    Returns:
        Sanitized FixPatch, or None when no strategy produced a mapping.
    """
    first_candidate: dict | None = None
    for strategy, candidate in iter_candidates(raw_text):
        report = validate(candidate, Shape.PATCH)
        if report.valid:
            logger.debug("Patch recovered with %s strategy", strategy)
            return sanitize_patch(candidate)
        logger.debug(
            "Patch candidate from %s strategy rejected: %s",
            strategy,
            "; ".join(report.violations),
        )
        if first_candidate is None:
            first_candidate = candidate

    if first_candidate is None:
        return None
    return sanitize_patch(first_candidate)
