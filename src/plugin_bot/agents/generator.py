"""Plugin generator agent: turns a request into a validated PluginProject."""

import logging
import re

from plugin_bot.agents.exceptions import (
    GenerationError,
    ModelCallError,
    RequestValidationError,
)
from plugin_bot.agents.model_client import ModelClient, ModelRequest
from plugin_bot.agents.prompts import (
    ENHANCEMENT_SYSTEM_PROMPT,
    GENERATION_SYSTEM_PROMPT,
    build_enhancement_prompt,
    build_generation_prompt,
)
from plugin_bot.models import PluginProject
from plugin_bot.structured import ensure_required_files, recover_project

logger = logging.getLogger(__name__)

# Constants
MAX_PLUGIN_NAME_LENGTH = 100
MAX_REQUIREMENTS_LENGTH = 50_000
PLUGIN_NAME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]*$")


def validate_request(plugin_name: str, requirements: str) -> list[str]:
    """Return every problem with the request parameters (empty when valid)."""
    errors: list[str] = []
    if not plugin_name or not plugin_name.strip():
        errors.append("Plugin name is required")
    if not requirements or not requirements.strip():
        errors.append("Requirements are required")
    if plugin_name and len(plugin_name) > MAX_PLUGIN_NAME_LENGTH:
        errors.append(f"Plugin name is too long (max {MAX_PLUGIN_NAME_LENGTH} characters)")
    if requirements and len(requirements) > MAX_REQUIREMENTS_LENGTH:
        errors.append(f"Requirements are too long (max {MAX_REQUIREMENTS_LENGTH} characters)")
    if plugin_name and not PLUGIN_NAME_RE.match(plugin_name):
        errors.append(
            "Plugin name must start with a letter and contain only letters, "
            "numbers, underscores, and hyphens"
        )
    return errors


class PluginGenerator:
    """Generates plugin projects through the model collaborator."""

    def __init__(self, client: ModelClient) -> None:
        self.client: ModelClient = client

    def enhance_prompt(self, plugin_name: str, requirements: str) -> str:
        """Expand a short request into detailed requirements.

        Falls back to the original requirements when the model returns
        nothing.

        Raises:
            GenerationError: If the model call fails.
        """
        config = self.client.config
        try:
            response = self.client.complete(
                ModelRequest(
                    system_prompt=ENHANCEMENT_SYSTEM_PROMPT,
                    user_prompt=build_enhancement_prompt(plugin_name, requirements),
                    model=config.enhancement_model,
                    temperature=config.enhancement_temperature,
                    max_tokens=config.max_tokens,
                )
            )
        except ModelCallError as exc:
            raise GenerationError(f"Prompt enhancement failed: {exc}") from exc

        enhanced = response.text.strip()
        if not enhanced:
            return requirements
        logger.info(
            "Prompt enhanced from %d to %d characters", len(requirements), len(enhanced)
        )
        return enhanced

    def generate(self, plugin_name: str, requirements: str) -> PluginProject:
        """Generate a project for the request.

        Flow:
        1. Validate the request parameters
        2. Ask the model for a project JSON document
        3. Recover a project from the raw text (parse, validate, sanitize,
           falling back to the skeleton)
        4. Add any missing descriptor, main class or build manifest

        Args:
            plugin_name: Plugin name; becomes the project name and package.
            requirements: Requirements text sent to the model.

        Returns:
            A schema-valid PluginProject.

        Raises:
            RequestValidationError: If the name or requirements are invalid.
            GenerationError: If the model call fails.
        """
        errors = validate_request(plugin_name, requirements)
        if errors:
            raise RequestValidationError("; ".join(errors))

        config = self.client.config
        try:
            response = self.client.complete(
                ModelRequest(
                    system_prompt=GENERATION_SYSTEM_PROMPT,
                    user_prompt=build_generation_prompt(plugin_name, requirements),
                    model=config.generation_model,
                    temperature=config.generation_temperature,
                    max_tokens=config.max_tokens,
                )
            )
        except ModelCallError as exc:
            raise GenerationError(f"Plugin generation failed: {exc}") from exc

        logger.info("Generation response: %d characters", len(response.text))
        project = recover_project(response.text, plugin_name, requirements)
        added = ensure_required_files(project, plugin_name, requirements)
        if added:
            logger.warning("Added missing required files: %s", ", ".join(added))
        logger.info("Generated project '%s' with %d files", project.name, len(project.files))
        return project
