"""Report models for builds, fix sessions and generation runs."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from plugin_bot.models.operation_models import FixPatch
from plugin_bot.models.project_models import PluginProject


class BuildFailureKind(str, Enum):
    MISSING_PROJECT = "missing_project"
    MISSING_MANIFEST = "missing_manifest"
    BUILD_FAILED = "build_failed"
    NO_ARTIFACT = "no_artifact"
    TIMEOUT = "timeout"
    TOOL_NOT_FOUND = "tool_not_found"


class FixOutcome(str, Enum):
    SUCCESS = "success"
    EXHAUSTED = "exhausted"
    UNRECOVERABLE = "unrecoverable"
    PROJECT_NOT_FOUND = "project_not_found"


class CompilationResult(BaseModel):
    model_config = ConfigDict(frozen=False)

    success: bool
    message: str
    build_output: str = ""                # stdout + stderr, verbatim
    errors: str | None = None             # stderr or exception text
    artifact_path: str | None = None      # main jar when success
    failure_kind: BuildFailureKind | None = None
    duration_seconds: float | None = None


class FixResult(BaseModel):
    model_config = ConfigDict(frozen=False)

    success: bool
    outcome: FixOutcome
    message: str
    fix_attempted: bool = False
    iterations: int = 0
    max_iterations_reached: bool = False
    original_errors: str | None = None    # first failing build's diagnostics
    final_compilation_result: CompilationResult | None = None
    last_patch: FixPatch | None = None
    operations_applied: int = 0
    finished_at: datetime = Field(default_factory=datetime.now)

    @property
    def artifact_path(self) -> str | None:
        if self.final_compilation_result is None:
            return None
        return self.final_compilation_result.artifact_path


class ErrorAnalysis(BaseModel):
    model_config = ConfigDict(frozen=False)

    has_errors: bool
    error_summary: str
    compilation_output: str = ""
    can_attempt_fix: bool = False


class GenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=False)

    user_id: str
    plugin_name: str
    requirements: str
    max_iterations: int = 3


class GenerationReport(BaseModel):
    model_config = ConfigDict(frozen=False)

    request: GenerationRequest
    project: PluginProject | None = None
    project_path: str
    reused_existing: bool = False
    enhanced_prompt: str | None = None
    compiled: bool = False
    artifact_path: str | None = None
    fix_result: FixResult | None = None
    generated_at: datetime = Field(default_factory=datetime.now)


class BuildStatus(BaseModel):
    model_config = ConfigDict(frozen=False)

    has_target: bool
    has_jar: bool
    jar_files: list[str] = Field(default_factory=list)
    last_modified: datetime | None = None
