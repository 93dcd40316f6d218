"""Model collaborator adapter: text in, text out, over Anthropic/OpenAI/OpenRouter."""

import logging
import os
from typing import Any, Literal

from anthropic import Anthropic
import openai
from pydantic import BaseModel, ConfigDict, Field

from plugin_bot.agents.exceptions import ModelCallError, ModelConfigError

logger = logging.getLogger(__name__)

# Constants
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
OPENAI_DEFAULT_MODEL = "gpt-4o-mini"
OPENROUTER_DEFAULT_MODEL = "anthropic/claude-sonnet-4.5"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_SITE_URL = "http://localhost:3000"
DEFAULT_SITE_NAME = "Plugin Bot"
DEFAULT_MODEL_TIMEOUT = 120.0
DEFAULT_MAX_TOKENS = 12000
SUPPORTED_PROVIDERS = frozenset({"auto", "anthropic", "openai", "openrouter"})

Provider = Literal["anthropic", "openai", "openrouter"]


class ModelConfig(BaseModel):
    """Explicit model configuration handed to ModelClient at construction."""

    model_config = ConfigDict(frozen=False)

    provider: str = "auto"
    fallback_provider: str | None = None
    allow_fallback: bool = False
    anthropic_api_key: str | None = Field(default=None, repr=False)
    openai_api_key: str | None = Field(default=None, repr=False)
    openrouter_api_key: str | None = Field(default=None, repr=False)
    openrouter_base_url: str = OPENROUTER_BASE_URL
    site_url: str = DEFAULT_SITE_URL
    site_name: str = DEFAULT_SITE_NAME
    generation_model: str = DEFAULT_MODEL
    fix_model: str = DEFAULT_MODEL
    enhancement_model: str = DEFAULT_MODEL
    generation_temperature: float = 0.3
    fix_temperature: float = 0.1
    enhancement_temperature: float = 0.5
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout_seconds: float = DEFAULT_MODEL_TIMEOUT

    @classmethod
    def from_env(cls, **overrides: Any) -> "ModelConfig":
        """Build a config from environment variables plus explicit overrides.

        Overrides whose value is None are ignored so CLI flags left unset do
        not clobber environment values.
        """
        model = os.getenv("PLUGIN_BOT_MODEL") or DEFAULT_MODEL
        values: dict[str, Any] = {
            "provider": os.getenv("PLUGIN_BOT_LLM_PROVIDER") or "auto",
            "anthropic_api_key": (
                os.getenv("ANTHROPIC_API_KEY") or os.getenv("CLAUDE_CODE_OAUTH_TOKEN")
            ),
            "openai_api_key": os.getenv("OPENAI_API_KEY"),
            "openrouter_api_key": os.getenv("OPENROUTER_API_KEY"),
            "site_url": os.getenv("OPENROUTER_SITE_URL") or DEFAULT_SITE_URL,
            "site_name": os.getenv("OPENROUTER_SITE_NAME") or DEFAULT_SITE_NAME,
            "generation_model": model,
            "fix_model": model,
            "enhancement_model": model,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class ModelRequest(BaseModel):
    model_config = ConfigDict(frozen=False)

    system_prompt: str
    user_prompt: str
    model: str = DEFAULT_MODEL
    temperature: float = 0.3
    max_tokens: int = DEFAULT_MAX_TOKENS


class ModelResponse(BaseModel):
    model_config = ConfigDict(frozen=False)

    text: str
    usage: dict[str, int] = Field(default_factory=dict)
    provider: str = ""
    model: str = ""


class ModelClient:
    """Sends a prompt pair to the configured provider chain and returns raw text."""

    def __init__(self, config: ModelConfig) -> None:
        """Initialize provider clients from ``config``.

        Raises:
            ModelConfigError: If no provider has an API key, or the selected
                provider or fallback is unsupported or has no key.
        """
        self.config: ModelConfig = config
        self._anthropic_client: Anthropic | None = None
        self._openai_client: openai.OpenAI | None = None
        self._openrouter_client: openai.OpenAI | None = None

        if config.anthropic_api_key:
            self._anthropic_client = Anthropic(
                api_key=config.anthropic_api_key,
                timeout=config.timeout_seconds,
            )
        if config.openai_api_key:
            self._openai_client = openai.OpenAI(
                api_key=config.openai_api_key,
                timeout=config.timeout_seconds,
            )
        if config.openrouter_api_key:
            self._openrouter_client = openai.OpenAI(
                api_key=config.openrouter_api_key,
                base_url=config.openrouter_base_url,
                timeout=config.timeout_seconds,
                default_headers={
                    "HTTP-Referer": config.site_url,
                    "X-Title": config.site_name,
                },
            )

        if not (self._anthropic_client or self._openai_client or self._openrouter_client):
            raise ModelConfigError(
                "No Anthropic, OpenAI or OpenRouter API key found. "
                "Set ANTHROPIC_API_KEY, OPENAI_API_KEY or OPENROUTER_API_KEY."
            )
        self._check_provider_config()

    def _normalize_provider(self, value: str) -> str:
        if value not in SUPPORTED_PROVIDERS:
            raise ModelConfigError(f"Unsupported provider: {value}")
        return value

    def _client_for(self, provider: str):
        return {
            "anthropic": self._anthropic_client,
            "openai": self._openai_client,
            "openrouter": self._openrouter_client,
        }.get(provider)

    def _check_provider_config(self) -> None:
        provider = self._normalize_provider(self.config.provider)
        if provider != "auto" and self._client_for(provider) is None:
            raise ModelConfigError(f"No API key found for --llm-provider={provider}.")
        fallback = self.config.fallback_provider
        if fallback:
            self._normalize_provider(fallback)
            if self.config.allow_fallback and self._client_for(fallback) is None:
                raise ModelConfigError(
                    f"Fallback provider requested as {fallback} but its API key is not set."
                )

    def _primary_provider(self) -> Provider:
        if self.config.provider == "auto":
            for candidate in ("anthropic", "openai", "openrouter"):
                if self._client_for(candidate) is not None:
                    return candidate
        return self.config.provider

    def _provider_chain(self) -> list[str]:
        chain: list[str] = [self._primary_provider()]
        fallback = self.config.fallback_provider
        if self.config.allow_fallback and fallback and fallback != "auto":
            if fallback != chain[0]:
                chain.append(fallback)
        return chain

    def _resolve_model(self, provider: str, model: str) -> str:
        if provider == "openai" and model.startswith("claude-"):
            return OPENAI_DEFAULT_MODEL
        if provider == "openrouter" and model.startswith("claude-"):
            return OPENROUTER_DEFAULT_MODEL
        return model

    def _call_anthropic(self, request: ModelRequest) -> ModelResponse:
        model = self._resolve_model("anthropic", request.model)
        response = self._anthropic_client.messages.create(
            model=model,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            system=request.system_prompt,
            messages=[{"role": "user", "content": request.user_prompt}],
        )
        text = "".join(
            getattr(block, "text", "")
            for block in response.content
            if getattr(block, "type", "text") == "text"
        )
        usage = getattr(response, "usage", None)
        usage_dict: dict[str, int] = {}
        if usage is not None:
            input_tokens = getattr(usage, "input_tokens", 0) or 0
            output_tokens = getattr(usage, "output_tokens", 0) or 0
            usage_dict = {
                "prompt_tokens": input_tokens,
                "completion_tokens": output_tokens,
                "total_tokens": input_tokens + output_tokens,
            }
        return ModelResponse(text=text, usage=usage_dict, provider="anthropic", model=model)

    def _call_chat_completions(self, provider: str, request: ModelRequest) -> ModelResponse:
        client = self._client_for(provider)
        model = self._resolve_model(provider, request.model)
        response = client.chat.completions.create(
            model=model,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            messages=[
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
        )
        if not response.choices:
            raise ModelCallError(f"{provider} returned no choices")
        text = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        usage_dict: dict[str, int] = {}
        if usage is not None:
            usage_dict = {
                "prompt_tokens": getattr(usage, "prompt_tokens", 0) or 0,
                "completion_tokens": getattr(usage, "completion_tokens", 0) or 0,
                "total_tokens": getattr(usage, "total_tokens", 0) or 0,
            }
        return ModelResponse(text=text, usage=usage_dict, provider=provider, model=model)

    def complete(self, request: ModelRequest) -> ModelResponse:
        """Send a request through the provider chain.

        Args:
            request: Prompt pair plus model selection and sampling settings.

        Returns:
            ModelResponse with the raw text; the text may be empty.

        Raises:
            ModelCallError: If every provider in the chain failed.
        """
        providers = self._provider_chain()
        last_error: Exception | None = None
        for provider in providers:
            if self._client_for(provider) is None:
                last_error = ModelCallError(f"{provider} client unavailable")
                continue
            try:
                if provider == "anthropic":
                    response = self._call_anthropic(request)
                else:
                    response = self._call_chat_completions(provider, request)
            except Exception as error:
                logger.warning(
                    "Model call via %s failed with %s: %s",
                    provider,
                    type(error).__name__,
                    error,
                )
                last_error = error
                continue
            logger.debug(
                "Model %s via %s returned %d chars, usage=%s",
                response.model,
                provider,
                len(response.text),
                response.usage,
            )
            return response

        raise ModelCallError(f"Failed to call LLM: {last_error}") from last_error
