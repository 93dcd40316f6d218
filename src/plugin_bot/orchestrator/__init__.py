"""LangGraph orchestrator package for the self-healing build loop."""

from plugin_bot.orchestrator.exceptions import GraphBuildError, OrchestratorError
from plugin_bot.orchestrator.graph import build_graph
from plugin_bot.orchestrator.state import FixSessionState, make_initial_state
from plugin_bot.orchestrator.workflow import PluginWorkflow, run_fix_session

__all__ = [
    "FixSessionState",
    "GraphBuildError",
    "OrchestratorError",
    "PluginWorkflow",
    "build_graph",
    "make_initial_state",
    "run_fix_session",
]
