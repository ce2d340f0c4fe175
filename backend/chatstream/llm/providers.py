"""
Provider registry.

WHAT: Static protocol facts per provider (auth placement, default base URL)
WHY: Adapter functions look these up instead of hard-coding vendor branches twice
HOW: Frozen dataclass per Provider in a module-level mapping
"""

from dataclasses import dataclass

from .types import AuthType, Provider


@dataclass(frozen=True)
class ProviderSpec:
    """Protocol facts for one provider."""
    provider: Provider
    display_name: str
    auth_type: AuthType
    default_base_url: str
    auth_header: str | None = None
    auth_query_param: str | None = None


PROVIDER_SPECS: dict[Provider, ProviderSpec] = {
    Provider.OPENAI: ProviderSpec(
        provider=Provider.OPENAI,
        display_name="OpenAI (compatible)",
        auth_type=AuthType.BEARER,
        default_base_url="https://api.openai.com",
    ),
    Provider.ANTHROPIC: ProviderSpec(
        provider=Provider.ANTHROPIC,
        display_name="Anthropic",
        auth_type=AuthType.CUSTOM_HEADER,
        default_base_url="https://api.anthropic.com",
        auth_header="x-api-key",
    ),
    Provider.GOOGLE: ProviderSpec(
        provider=Provider.GOOGLE,
        display_name="Google Gemini",
        auth_type=AuthType.QUERY_PARAM,
        default_base_url="https://generativelanguage.googleapis.com",
        auth_query_param="key",
    ),
}


def get_provider_spec(provider: Provider | str) -> ProviderSpec:
    """
    Look up the registry entry for a provider.

    Args:
        provider: Provider member or its string value

    Returns:
        ProviderSpec for the provider

    Raises:
        ValueError: If provider name is unknown
    """
    try:
        return PROVIDER_SPECS[Provider(provider)]
    except (ValueError, KeyError):
        raise ValueError(f"Unknown LLM provider: {provider}") from None
