"""Schema validation for parsed project and patch candidates.

Validation only reports; it never repairs a candidate.
"""

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from plugin_bot.models import OperationKind, is_safe_relative_path

PROJECT_REQUIRED_KEYS = (
    "projectName",
    "minecraftVersion",
    "files",
    "dependencies",
    "buildInstructions",
)
PATCH_REQUIRED_KEYS = (
    "fixDescription",
    "operations",
    "buildCommands",
    "expectedOutcome",
)
TARGET_VERSION_RE = re.compile(r"^\d+\.\d+(\.\d+)?$")
_OPERATION_KINDS = frozenset(kind.value for kind in OperationKind)
_OPERATION_PATH_FIELDS = ("path", "oldPath", "newPath")


class Shape(str, Enum):
    PROJECT = "project"
    PATCH = "patch"


class ValidationReport(BaseModel):
    model_config = ConfigDict(frozen=False)

    valid: bool
    violations: list[str] = Field(default_factory=list)


def _is_non_empty_string(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _check_optional_string(candidate: dict, key: str, violations: list[str]) -> None:
    value = candidate.get(key)
    if value is not None and not _is_non_empty_string(value):
        violations.append(f"{key} must be a non-empty string")


def _check_optional_list(candidate: dict, key: str, violations: list[str]) -> None:
    value = candidate.get(key)
    if value is not None and not isinstance(value, list):
        violations.append(f"{key} must be an array")


def validate_file_entry(entry, index: int) -> list[str]:
    """Validate one element of a project's ``files`` array."""
    if not isinstance(entry, dict):
        return [f"File {index} is not an object"]

    violations: list[str] = []
    path = entry.get("path")
    if not _is_non_empty_string(path):
        violations.append(f"File {index} missing or invalid path")
    elif not is_safe_relative_path(path):
        violations.append(f"File {index} has invalid path format: {path}")
    if not _is_non_empty_string(entry.get("content")):
        violations.append(f"File {index} missing or invalid content")
    if not _is_non_empty_string(entry.get("type")):
        violations.append(f"File {index} missing or invalid type")
    return violations


def validate_operation_entry(entry, index: int) -> list[str]:
    """Validate one element of a patch's ``operations`` array."""
    if not isinstance(entry, dict):
        return [f"Operation {index} is not an object"]

    violations: list[str] = []
    kind = entry.get("type")
    if kind not in _OPERATION_KINDS:
        violations.append(f"Operation {index} has invalid type: {kind}")

    file_payload = entry.get("file")
    if not isinstance(file_payload, dict):
        violations.append(f"Operation {index} missing file object")
        return violations

    if kind == OperationKind.RENAME.value:
        if not _is_non_empty_string(file_payload.get("oldPath")) or not _is_non_empty_string(
            file_payload.get("newPath")
        ):
            violations.append(f"RENAME operation {index} missing oldPath or newPath")
    elif kind == OperationKind.DELETE.value:
        if not _is_non_empty_string(file_payload.get("path")):
            violations.append(f"DELETE operation {index} missing path")
    elif kind in (OperationKind.CREATE.value, OperationKind.UPDATE.value):
        if not _is_non_empty_string(file_payload.get("path")):
            violations.append(f"{kind} operation {index} missing path")
        if not isinstance(file_payload.get("content"), str):
            violations.append(f"{kind} operation {index} missing or invalid content")

    for field in _OPERATION_PATH_FIELDS:
        value = file_payload.get(field)
        if isinstance(value, str) and value and not is_safe_relative_path(value):
            violations.append(f"Operation {index} has unsafe {field}: {value}")

    if not _is_non_empty_string(file_payload.get("reason")):
        violations.append(f"Operation {index} missing reason")
    return violations


def _validate_project(candidate: dict) -> list[str]:
    violations = [
        f"Missing required field: {key}"
        for key in PROJECT_REQUIRED_KEYS
        if key not in candidate
    ]
    _check_optional_string(candidate, "projectName", violations)

    version = candidate.get("minecraftVersion")
    if version is not None and not (
        isinstance(version, str) and TARGET_VERSION_RE.match(version)
    ):
        violations.append(
            "minecraftVersion must be a valid version string (e.g., 1.20.1)"
        )

    files = candidate.get("files")
    if files is not None:
        if not isinstance(files, list):
            violations.append("files must be an array")
        elif not files:
            violations.append("files array cannot be empty")
        else:
            for index, entry in enumerate(files):
                violations.extend(validate_file_entry(entry, index))

    _check_optional_list(candidate, "dependencies", violations)
    _check_optional_string(candidate, "buildInstructions", violations)
    return violations


def _validate_patch(candidate: dict) -> list[str]:
    violations = [
        f"Missing required field: {key}"
        for key in PATCH_REQUIRED_KEYS
        if key not in candidate
    ]
    _check_optional_string(candidate, "fixDescription", violations)

    operations = candidate.get("operations")
    if operations is not None:
        if not isinstance(operations, list):
            violations.append("operations must be an array")
        else:
            for index, entry in enumerate(operations):
                violations.extend(validate_operation_entry(entry, index))

    _check_optional_list(candidate, "buildCommands", violations)
    _check_optional_string(candidate, "expectedOutcome", violations)
    return violations


def validate(candidate, shape: Shape) -> ValidationReport:
    """Check a parsed candidate against the project or patch shape.

    Args:
        candidate: Object produced by the structured output parser.
        shape: Which shape to validate against.

    Returns:
        ValidationReport; ``valid`` is True only when no violations were found.
    """
    if not isinstance(candidate, dict):
        return ValidationReport(valid=False, violations=["Response is not an object"])

    if shape == Shape.PROJECT:
        violations = _validate_project(candidate)
    else:
        violations = _validate_patch(candidate)
    return ValidationReport(valid=not violations, violations=violations)
