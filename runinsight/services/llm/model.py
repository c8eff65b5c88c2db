"""LLM model abstraction for consistent model access across the application."""

from pydantic_ai.models import Model
from pydantic_ai.models.anthropic import AnthropicModel
from pydantic_ai.models.openai import OpenAIChatModel

from runinsight.config.settings import settings


def get_model(provider: str, model_name: str) -> Model:
    # Ensure provider keys from settings are visible to pydantic_ai
    settings.export_llm_keys()

    if provider == "anthropic":
        return AnthropicModel(model_name)
    if provider == "openai":
        return OpenAIChatModel(model_name)

    raise ValueError(f"Unsupported LLM provider: {provider}")
