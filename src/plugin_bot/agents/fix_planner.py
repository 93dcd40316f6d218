"""Fix planner agent: asks the model for a patch against compiler errors."""

import logging

from plugin_bot.agents.model_client import ModelClient, ModelRequest
from plugin_bot.agents.prompts import FIX_SYSTEM_PROMPT, build_fix_prompt
from plugin_bot.models import PluginProject

logger = logging.getLogger(__name__)


class FixPlanner:
    """Sends a project snapshot plus diagnostics and returns the raw reply.

    Parsing is left to the caller so a reply that cannot be recovered is
    handled by the orchestrator rather than raised here.
    """

    def __init__(self, client: ModelClient) -> None:
        self.client: ModelClient = client

    def plan(self, project: PluginProject, diagnostics: str, iteration: int) -> str:
        """Return the model's raw fix response text.

        Raises:
            ModelCallError: If every configured provider failed.
        """
        config = self.client.config
        response = self.client.complete(
            ModelRequest(
                system_prompt=FIX_SYSTEM_PROMPT,
                user_prompt=build_fix_prompt(project, diagnostics, iteration),
                model=config.fix_model,
                temperature=config.fix_temperature,
                max_tokens=config.max_tokens,
            )
        )
        logger.info(
            "Fix response for iteration %d: %d characters", iteration, len(response.text)
        )
        return response.text
