"""High-level flows: generate and heal a plugin, fix an existing one, analyze errors."""

import logging
from pathlib import Path

from plugin_bot.agents.build_runner import (
    BUILD_MANIFEST,
    BuildRunner,
    MavenBuildRunner,
    extract_error_summary,
)
from plugin_bot.agents.exceptions import RequestValidationError
from plugin_bot.agents.fix_planner import FixPlanner
from plugin_bot.agents.generator import PluginGenerator, validate_request
from plugin_bot.agents.operation_executor import OperationExecutor
from plugin_bot.agents.project_store import ProjectStore
from plugin_bot.models import (
    ErrorAnalysis,
    FixOutcome,
    FixResult,
    GenerationReport,
    GenerationRequest,
)
from plugin_bot.orchestrator.exceptions import OrchestratorError
from plugin_bot.orchestrator.graph import build_graph
from plugin_bot.orchestrator.recovery import NO_OUTPUT_PLACEHOLDER, recursion_limit_for
from plugin_bot.orchestrator.state import (
    DEFAULT_FIX_ITERATIONS,
    FixSessionState,
    make_initial_state,
)

logger = logging.getLogger(__name__)


def result_from_state(state: FixSessionState) -> FixResult:
    """Convert a finished session state into a FixResult."""
    outcome = state["outcome"] or FixOutcome.UNRECOVERABLE
    return FixResult(
        success=outcome == FixOutcome.SUCCESS,
        outcome=outcome,
        message=state["message"],
        fix_attempted=state["fix_requested"] or state["iteration"] > 1,
        iterations=state["iteration"],
        max_iterations_reached=outcome == FixOutcome.EXHAUSTED,
        original_errors=state["first_error_snapshot"],
        final_compilation_result=state["last_compilation_result"],
        last_patch=state["patch"],
        operations_applied=state["operations_applied"],
    )


def run_fix_session(
    project_root: str | Path,
    plugin_name: str,
    runner: BuildRunner,
    store: ProjectStore,
    planner: FixPlanner,
    executor: OperationExecutor | None = None,
    max_iterations: int = DEFAULT_FIX_ITERATIONS,
    iteration: int = 0,
) -> FixResult:
    """Build the project and heal it until it compiles or the budget runs out.

    Args:
        project_root: Project tree to build and patch in place.
        plugin_name: Plugin name used in log lines and reports.
        runner: Build runner for every attempt.
        store: Project store for snapshots and fix audit records.
        planner: Fix planner that asks the model for patches.
        executor: Operation executor; a default one is created when omitted.
        max_iterations: Build attempts allowed, clamped to [1, 10].
        iteration: Builds already spent when resuming a session.

    Returns:
        FixResult; PROJECT_NOT_FOUND without building when the directory is
        missing.

    Raises:
        GraphBuildError: If the session graph cannot be built.
    """
    root = Path(project_root)
    if not root.is_dir():
        logger.warning("Project not found: %s", root)
        return FixResult(
            success=False,
            outcome=FixOutcome.PROJECT_NOT_FOUND,
            message=f"Project not found: {root}",
        )

    graph = build_graph(runner, store, planner, executor or OperationExecutor())
    state = make_initial_state(
        project_root=str(root),
        plugin_name=plugin_name,
        max_iterations=max_iterations,
        iteration=iteration,
    )
    logger.info(
        "Starting fix session for %s (max %d iterations)",
        plugin_name,
        state["max_iterations"],
    )
    final_state = graph.invoke(
        state,
        config={"recursion_limit": recursion_limit_for(state["max_iterations"])},
    )
    for error in final_state["errors"]:
        logger.debug("Session error: %s", error)
    return result_from_state(final_state)


class PluginWorkflow:
    """Generates plugins, persists them and drives the fix loop."""

    def __init__(
        self,
        generator: PluginGenerator,
        planner: FixPlanner,
        store: ProjectStore,
        runner: BuildRunner | None = None,
        executor: OperationExecutor | None = None,
    ) -> None:
        self.generator = generator
        self.planner = planner
        self.store = store
        self.runner = runner or MavenBuildRunner()
        self.executor = executor or OperationExecutor()

    def _fix(self, project_root: Path, plugin_name: str, max_iterations: int) -> FixResult:
        return run_fix_session(
            project_root,
            plugin_name,
            runner=self.runner,
            store=self.store,
            planner=self.planner,
            executor=self.executor,
            max_iterations=max_iterations,
        )

    def _try_existing(self, request: GenerationRequest, project_root: Path) -> GenerationReport | None:
        """Recompile and heal an existing project; None when it must be regenerated."""
        logger.info("Project %s already exists, recompiling", request.plugin_name)
        clean = getattr(self.runner, "clean", None)
        if callable(clean):
            clean(project_root)

        try:
            fix_result = self._fix(project_root, request.plugin_name, request.max_iterations)
        except OrchestratorError as exc:
            logger.warning(
                "Recompiling existing project %s failed (%s), regenerating",
                request.plugin_name,
                exc,
            )
            self.store.remove_project(project_root)
            return None

        if not fix_result.success:
            logger.warning(
                "Existing project %s could not be fixed (%s), regenerating",
                request.plugin_name,
                fix_result.message,
            )
            self.store.remove_project(project_root)
            return None

        return GenerationReport(
            request=request,
            project=self.store.read_project(project_root),
            project_path=str(project_root),
            reused_existing=True,
            compiled=True,
            artifact_path=fix_result.artifact_path,
            fix_result=fix_result,
        )

    def generate_plugin(
        self,
        request: GenerationRequest,
        compile_project: bool = True,
        enhance_prompt: bool = False,
    ) -> GenerationReport:
        """Generate, persist and optionally compile and heal a plugin.

        Flow:
        1. Reuse an existing project if it compiles (after healing),
           otherwise remove the old tree
        2. Optionally enhance the requirements
        3. Generate and write the project with its metadata
        4. Run the fix session when compiling

        Raises:
            RequestValidationError: If the request is invalid.
            GenerationError: If the model call fails.
            ProjectStoreError: If the project cannot be written.
        """
        errors = validate_request(request.plugin_name, request.requirements)
        if errors:
            raise RequestValidationError("; ".join(errors))

        project_root = self.store.project_path(request.user_id, request.plugin_name)

        if compile_project and (project_root / BUILD_MANIFEST).is_file():
            report = self._try_existing(request, project_root)
            if report is not None:
                return report
        if project_root.exists():
            logger.info("Replacing previous tree for %s", request.plugin_name)
            self.store.remove_project(project_root)

        enhanced: str | None = None
        requirements = request.requirements
        if enhance_prompt:
            enhanced = self.generator.enhance_prompt(request.plugin_name, requirements)
            requirements = enhanced

        project = self.generator.generate(request.plugin_name, requirements)
        written_root = self.store.write_project(
            project,
            project_root,
            metadata={
                "originalPrompt": request.requirements,
                "enhancedPrompt": enhanced,
                "userId": request.user_id,
            },
        )

        report = GenerationReport(
            request=request,
            project=project,
            project_path=str(written_root),
            enhanced_prompt=enhanced,
        )
        if not compile_project:
            return report

        fix_result = self._fix(written_root, request.plugin_name, request.max_iterations)
        report.fix_result = fix_result
        report.compiled = fix_result.success
        report.artifact_path = fix_result.artifact_path
        return report

    def fix_plugin(
        self,
        user_id: str,
        plugin_name: str,
        max_iterations: int = DEFAULT_FIX_ITERATIONS,
    ) -> FixResult:
        """Run a fix session against a previously generated project."""
        project_root = self.store.project_path(user_id, plugin_name)
        return self._fix(project_root, plugin_name, max_iterations)

    def analyze(self, user_id: str, plugin_name: str) -> ErrorAnalysis:
        """Build once and summarize compilation errors without fixing them."""
        project_root = self.store.project_path(user_id, plugin_name)
        if not project_root.is_dir():
            return ErrorAnalysis(
                has_errors=True,
                error_summary="Project not found",
                can_attempt_fix=False,
            )

        result = self.runner.build(project_root)
        output = result.build_output or result.errors or NO_OUTPUT_PLACEHOLDER
        if result.success:
            return ErrorAnalysis(
                has_errors=False,
                error_summary="No errors",
                compilation_output=output,
                can_attempt_fix=False,
            )
        return ErrorAnalysis(
            has_errors=True,
            error_summary=extract_error_summary(result.build_output or result.errors or ""),
            compilation_output=output,
            can_attempt_fix=True,
        )
