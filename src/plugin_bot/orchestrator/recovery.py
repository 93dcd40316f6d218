"""Pure routing helpers for the fix session graph.

All functions are stateless and have no external dependencies.
"""

from plugin_bot.models import CompilationResult, OperationResult
from plugin_bot.orchestrator.state import FixSessionState

NO_OUTPUT_PLACEHOLDER = "No output available"


def diagnostics_from(result: CompilationResult | None) -> str:
    """Return the compiler output worth showing the model.

    Args:
        result: Compilation result of the failing build.

    Returns:
        build_output, else errors, else a placeholder.
    """
    if result is None:
        return NO_OUTPUT_PLACEHOLDER
    if result.build_output and result.build_output.strip():
        return result.build_output
    if result.errors and result.errors.strip():
        return result.errors
    return NO_OUTPUT_PLACEHOLDER


def count_applied(results: list[OperationResult]) -> int:
    return sum(1 for result in results if result.success)


def route_after_build(state: FixSessionState) -> str:
    """Router for the post-build conditional edge.

    Returns:
        "success" when the build passed, "diagnose" while build attempts
        remain, "exhausted" otherwise.
    """
    result = state["last_compilation_result"]
    if result is not None and result.success:
        return "success"
    if state["iteration"] < state["max_iterations"]:
        return "diagnose"
    return "exhausted"


def route_after_diagnose(state: FixSessionState) -> str:
    if state["current_project"] is None:
        return "unrecoverable"
    return "patch"


def route_after_patch(state: FixSessionState) -> str:
    patch = state["patch"]
    if patch is None or not patch.is_actionable:
        return "unrecoverable"
    return "apply"


def route_after_apply(state: FixSessionState) -> str:
    if state["operations_applied"] > 0:
        return "build"
    return "unrecoverable"


def recursion_limit_for(max_iterations: int) -> int:
    """Graph step budget for a session of ``max_iterations`` builds.

    Each iteration visits at most four nodes (build, diagnose, patch,
    apply) and the session ends in one terminal node.
    """
    return max_iterations * 4 + 5
