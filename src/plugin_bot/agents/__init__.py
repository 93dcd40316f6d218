"""Agent components for the plugin bot."""

from plugin_bot.agents.exceptions import (
    AgentError,
    GenerationError,
    ModelCallError,
    ModelClientError,
    ModelConfigError,
    OperationError,
    ProjectStoreError,
    RequestValidationError,
    UnsafePathError,
)
from plugin_bot.agents.build_runner import BuildRunner, MavenBuildRunner
from plugin_bot.agents.fix_planner import FixPlanner
from plugin_bot.agents.generator import PluginGenerator
from plugin_bot.agents.model_client import ModelClient, ModelConfig
from plugin_bot.agents.operation_executor import OperationExecutor
from plugin_bot.agents.project_store import ProjectStore

__all__ = [
    "AgentError",
    "BuildRunner",
    "FixPlanner",
    "GenerationError",
    "MavenBuildRunner",
    "ModelCallError",
    "ModelClient",
    "ModelClientError",
    "ModelConfig",
    "ModelConfigError",
    "OperationError",
    "OperationExecutor",
    "PluginGenerator",
    "ProjectStore",
    "ProjectStoreError",
    "RequestValidationError",
    "UnsafePathError",
]
