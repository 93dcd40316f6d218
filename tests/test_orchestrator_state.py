"""Tests for FixSessionState construction."""

import pytest

from plugin_bot.orchestrator.state import (
    DEFAULT_FIX_ITERATIONS,
    MAX_ITERATIONS_LIMIT,
    make_initial_state,
)


class TestMakeInitialState:
    def test_defaults(self):
        state = make_initial_state("/tmp/p", "Greeter")
        assert state["project_root"] == "/tmp/p"
        assert state["plugin_name"] == "Greeter"
        assert state["max_iterations"] == DEFAULT_FIX_ITERATIONS
        assert state["iteration"] == 0
        assert state["last_compilation_result"] is None
        assert state["first_error_snapshot"] is None
        assert state["current_project"] is None
        assert state["patch"] is None
        assert state["operation_results"] == []
        assert state["operations_applied"] == 0
        assert state["fix_requested"] is False
        assert state["outcome"] is None
        assert state["errors"] == []

    @pytest.mark.parametrize(
        "requested, expected",
        [(0, 1), (-3, 1), (1, 1), (7, 7), (MAX_ITERATIONS_LIMIT, MAX_ITERATIONS_LIMIT), (99, MAX_ITERATIONS_LIMIT)],
    )
    def test_max_iterations_clamped(self, requested, expected):
        assert make_initial_state("/p", "X", max_iterations=requested)["max_iterations"] == expected

    def test_resume_keeps_iteration(self):
        assert make_initial_state("/p", "X", max_iterations=5, iteration=2)["iteration"] == 2

    def test_resume_leaves_room_for_one_build(self):
        assert make_initial_state("/p", "X", max_iterations=3, iteration=8)["iteration"] == 2

    def test_errors_list_not_shared(self):
        first = make_initial_state("/p", "X")
        second = make_initial_state("/p", "X")
        first["errors"].append("x")
        assert second["errors"] == []
