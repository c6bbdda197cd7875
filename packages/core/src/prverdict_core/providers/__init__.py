from __future__ import annotations

from prverdict_core.providers.base import BaseCritic, CritiqueSourceError


def build_critic(config: dict) -> BaseCritic:
    """Instantiate the critic selected by ``config["provider"]``.

    Raises ValueError for an unknown provider or a missing API key.
    """
    provider = config.get("provider")
    model_name = config.get("model_name")
    if provider == "openai":
        from prverdict_core.providers.openai import OpenAICritic

        if not config.get("openai_api_key"):
            raise ValueError("OPENAI_API_KEY environment variable is not set.")
        return OpenAICritic(api_key=config["openai_api_key"], model=model_name)
    if provider == "anthropic":
        from prverdict_core.providers.anthropic import AnthropicCritic

        if not config.get("anthropic_api_key"):
            raise ValueError("ANTHROPIC_API_KEY environment variable is not set.")
        return AnthropicCritic(api_key=config["anthropic_api_key"], model=model_name)
    raise ValueError(f"Unknown model provider: {provider!r}. Choose 'openai' or 'anthropic'.")


__all__ = ["BaseCritic", "CritiqueSourceError", "build_critic"]
