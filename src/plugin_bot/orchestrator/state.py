"""State definition for the fix session graph."""

import operator
from typing import Annotated, TypedDict

from plugin_bot.models import (
    CompilationResult,
    FixOutcome,
    FixPatch,
    OperationResult,
    PluginProject,
)

MAX_ITERATIONS_LIMIT = 10
DEFAULT_FIX_ITERATIONS = 5


class FixSessionState(TypedDict):
    """State for one build, diagnose, patch and apply session.

    ``errors`` accumulates across nodes; every other field is overwritten by
    the node that returns it.
    """

    # Input
    project_root: str
    plugin_name: str
    max_iterations: int

    # Building
    iteration: int
    last_compilation_result: CompilationResult | None
    first_error_snapshot: str | None

    # Diagnosing
    current_project: PluginProject | None
    diagnostics: str

    # Patching and applying
    fix_requested: bool
    patch: FixPatch | None
    operation_results: list[OperationResult]
    operations_applied: int

    # Terminal
    outcome: FixOutcome | None
    message: str

    # Error accumulation
    errors: Annotated[list[str], operator.add]


def clamp_iterations(max_iterations: int) -> int:
    return max(1, min(max_iterations, MAX_ITERATIONS_LIMIT))


def make_initial_state(
    project_root: str,
    plugin_name: str,
    max_iterations: int = DEFAULT_FIX_ITERATIONS,
    iteration: int = 0,
) -> FixSessionState:
    """Create the initial state for a fix session.

    Args:
        project_root: Path of the project tree to build and patch.
        plugin_name: Plugin name used in log lines and reports.
        max_iterations: Build attempts allowed, clamped to [1, 10].
        iteration: Builds already spent when resuming a session.

    Returns:
        FixSessionState with every field initialised.
    """
    clamped = clamp_iterations(max_iterations)
    return {
        "project_root": project_root,
        "plugin_name": plugin_name,
        "max_iterations": clamped,
        "iteration": max(0, min(iteration, clamped - 1)),
        "last_compilation_result": None,
        "first_error_snapshot": None,
        "current_project": None,
        "diagnostics": "",
        "fix_requested": False,
        "patch": None,
        "operation_results": [],
        "operations_applied": 0,
        "outcome": None,
        "message": "",
        "errors": [],
    }
