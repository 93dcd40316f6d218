"""LangGraph state machine for the self-healing build loop.

Wires the build runner, project store, fix planner and operation executor
into a StateGraph that builds, diagnoses, patches and rebuilds until the
project compiles or the iteration budget runs out.
"""

import logging
import time
from typing import Callable

from langgraph.graph import END, START, StateGraph

from plugin_bot.agents.build_runner import BuildRunner
from plugin_bot.agents.fix_planner import FixPlanner
from plugin_bot.agents.operation_executor import OperationExecutor
from plugin_bot.agents.project_store import ProjectStore
from plugin_bot.models import CompilationResult, FixOutcome
from plugin_bot.orchestrator.exceptions import GraphBuildError
from plugin_bot.orchestrator.recovery import (
    count_applied,
    diagnostics_from,
    route_after_apply,
    route_after_build,
    route_after_diagnose,
    route_after_patch,
)
from plugin_bot.orchestrator.state import FixSessionState
from plugin_bot.structured import recover_patch

logger = logging.getLogger(__name__)


def make_build_node(runner: BuildRunner) -> Callable[[FixSessionState], dict]:
    """Factory: returns a node closure that runs one build.

    The closure:
    1. Increments ``iteration``
    2. Calls runner.build(project_root) -> CompilationResult
    3. Keeps the diagnostics of the first failing build in
       ``first_error_snapshot``

    On error: records a failed CompilationResult carrying the exception text.
    """

    def build_node(state: FixSessionState) -> dict:
        iteration = state["iteration"] + 1
        logger.info(
            "Building %s (attempt %d/%d)",
            state["plugin_name"],
            iteration,
            state["max_iterations"],
        )
        update: dict = {"iteration": iteration}
        started = time.monotonic()
        try:
            result = runner.build(state["project_root"])
        except Exception as exc:
            result = CompilationResult(
                success=False,
                message=f"Build failed: {exc}",
                errors=str(exc),
                duration_seconds=time.monotonic() - started,
            )
            update["errors"] = [f"build_node error: {exc}"]

        update["last_compilation_result"] = result
        if not result.success and state["first_error_snapshot"] is None:
            update["first_error_snapshot"] = diagnostics_from(result)
        logger.info("Build attempt %d: %s", iteration, result.message)
        return update

    return build_node


def make_diagnose_node(store: ProjectStore) -> Callable[[FixSessionState], dict]:
    """Factory: returns a node closure that snapshots the project for fixing.

    Reads the current project tree off disk and assembles diagnostics from
    the last compilation result. Clears the previous iteration's patch.

    On error: returns {"current_project": None, "errors": [str]}
    """

    def diagnose_node(state: FixSessionState) -> dict:
        update: dict = {
            "diagnostics": diagnostics_from(state["last_compilation_result"]),
            "patch": None,
            "operation_results": [],
            "operations_applied": 0,
        }
        try:
            project = store.read_project(state["project_root"])
        except Exception as exc:
            update["current_project"] = None
            update["errors"] = [f"diagnose_node error: {exc}"]
            return update

        logger.debug(
            "Diagnosing %s: %d files, %d chars of diagnostics",
            project.name,
            len(project.files),
            len(update["diagnostics"]),
        )
        update["current_project"] = project
        return update

    return diagnose_node


def make_patch_node(planner: FixPlanner) -> Callable[[FixSessionState], dict]:
    """Factory: returns a node closure that asks the model for a patch.

    The closure:
    1. Calls planner.plan(project, diagnostics, iteration) -> raw text
    2. Runs the text through parse, validate and sanitize (recover_patch)
    3. Returns {"fix_requested": True, "patch": FixPatch | None}

    Empty or whitespace text and model call failures leave ``patch`` None.
    """

    def patch_node(state: FixSessionState) -> dict:
        try:
            raw_text = planner.plan(
                state["current_project"],
                state["diagnostics"],
                state["iteration"],
            )
        except Exception as exc:
            return {
                "fix_requested": True,
                "patch": None,
                "errors": [f"patch_node error: {exc}"],
            }

        if not raw_text or not raw_text.strip():
            return {
                "fix_requested": True,
                "patch": None,
                "errors": ["patch_node: empty model response"],
            }

        patch = recover_patch(raw_text)
        if patch is None:
            return {
                "fix_requested": True,
                "patch": None,
                "errors": ["patch_node: unparseable model response"],
            }
        if not patch.is_actionable:
            return {
                "fix_requested": True,
                "patch": patch,
                "errors": ["patch_node: no valid operations in patch"],
            }

        logger.info(
            "Patch for iteration %d: %s (%d operations)",
            state["iteration"],
            patch.description,
            len(patch.operations),
        )
        return {"fix_requested": True, "patch": patch}

    return patch_node


def make_apply_node(
    executor: OperationExecutor, store: ProjectStore
) -> Callable[[FixSessionState], dict]:
    """Factory: returns a node closure that applies the patch to disk.

    The closure:
    1. Calls executor.apply(patch.operations, project_root)
    2. Records the attempt in project-info.json
    3. Returns {"operation_results": [...], "operations_applied": int}

    Permission failures propagate; any other error leaves
    ``operations_applied`` at 0.
    """

    def apply_node(state: FixSessionState) -> dict:
        patch = state["patch"]
        try:
            results = executor.apply(patch.operations, state["project_root"])
        except PermissionError:
            raise
        except Exception as exc:
            return {
                "operation_results": [],
                "operations_applied": 0,
                "errors": [f"apply_node error: {exc}"],
            }

        applied = count_applied(results)
        update: dict = {"operation_results": results, "operations_applied": applied}
        failed = [r.error for r in results if not r.success and r.error]
        if failed:
            update["errors"] = [f"apply_node: {error}" for error in failed]
        try:
            store.write_fix_audit(state["project_root"], patch, applied)
        except OSError as exc:
            logger.warning("Could not record fix attempt: %s", exc)
        return update

    return apply_node


def success_node(state: FixSessionState) -> dict:
    iteration = state["iteration"]
    message = f"Project compiled successfully after {iteration} iteration(s)"
    logger.info("%s: %s", state["plugin_name"], message)
    return {"outcome": FixOutcome.SUCCESS, "message": message}


def exhausted_node(state: FixSessionState) -> dict:
    message = f"Could not fix compilation errors after {state['iteration']} attempts"
    logger.warning("%s: %s", state["plugin_name"], message)
    return {"outcome": FixOutcome.EXHAUSTED, "message": message}


def unrecoverable_node(state: FixSessionState) -> dict:
    """Write the reason the session stopped before using its budget."""
    iteration = state["iteration"]
    patch = state["patch"]
    if state["current_project"] is None:
        message = "Could not read project from disk for error fixing"
    elif patch is None or not patch.is_actionable:
        message = f"Failed to generate fix for compilation errors (iteration {iteration})"
    else:
        message = f"No valid operations could be applied (iteration {iteration})"
    logger.warning("%s: %s", state["plugin_name"], message)
    return {"outcome": FixOutcome.UNRECOVERABLE, "message": message}


def build_graph(
    runner: BuildRunner,
    store: ProjectStore,
    planner: FixPlanner,
    executor: OperationExecutor,
):
    """Build and compile the fix session StateGraph.

    Edge topology:
      START -> build_node
      build_node -> conditional(route_after_build)
          -> {success_node, diagnose_node, exhausted_node}
      diagnose_node -> conditional(route_after_diagnose)
          -> {patch_node, unrecoverable_node}
      patch_node -> conditional(route_after_patch)
          -> {apply_node, unrecoverable_node}
      apply_node -> conditional(route_after_apply)
          -> {build_node, unrecoverable_node}
      success_node, exhausted_node, unrecoverable_node -> END

    Args:
        runner: Build runner used for every build attempt.
        store: Project store used to read the tree and record fix attempts.
        planner: Fix planner that asks the model for patches.
        executor: Operation executor that applies patches.

    Returns:
        CompiledStateGraph ready to invoke.

    Raises:
        GraphBuildError: If graph construction fails.
    """
    try:
        graph = StateGraph(FixSessionState)

        graph.add_node("build_node", make_build_node(runner))
        graph.add_node("diagnose_node", make_diagnose_node(store))
        graph.add_node("patch_node", make_patch_node(planner))
        graph.add_node("apply_node", make_apply_node(executor, store))
        graph.add_node("success_node", success_node)
        graph.add_node("exhausted_node", exhausted_node)
        graph.add_node("unrecoverable_node", unrecoverable_node)

        graph.add_edge(START, "build_node")
        graph.add_conditional_edges(
            "build_node",
            route_after_build,
            {
                "success": "success_node",
                "diagnose": "diagnose_node",
                "exhausted": "exhausted_node",
            },
        )
        graph.add_conditional_edges(
            "diagnose_node",
            route_after_diagnose,
            {"patch": "patch_node", "unrecoverable": "unrecoverable_node"},
        )
        graph.add_conditional_edges(
            "patch_node",
            route_after_patch,
            {"apply": "apply_node", "unrecoverable": "unrecoverable_node"},
        )
        graph.add_conditional_edges(
            "apply_node",
            route_after_apply,
            {"build": "build_node", "unrecoverable": "unrecoverable_node"},
        )

        graph.add_edge("success_node", END)
        graph.add_edge("exhausted_node", END)
        graph.add_edge("unrecoverable_node", END)

        return graph.compile()

    except Exception as exc:
        raise GraphBuildError(f"Failed to build fix session graph: {exc}") from exc
