"""Shared pydantic-ai model construction helpers."""

from __future__ import annotations

from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel, GoogleModelSettings
from pydantic_ai.providers.google import GoogleProvider

from clipfeed.core.settings import get_settings

GOOGLE_PREFIXES = {"google-gla", "google"}


def build_pydantic_model(model_spec: str) -> tuple[Model | str, GoogleModelSettings | None]:
    """Construct a pydantic-ai Model with explicit providers where required.

    Args:
        model_spec: Full model spec string (e.g., ``google-gla:gemini-2.5-flash``).

    Returns:
        Tuple of (model, model_settings). ``model`` is either a configured ``Model``
        instance or the raw ``model_spec`` when pydantic-ai can resolve it on its
        own (``test`` for instance). ``model_settings`` is only set for Google models.
    """
    settings = get_settings()

    provider_prefix = None
    model_name = model_spec
    if ":" in model_spec:
        provider_prefix, model_name = model_spec.split(":", 1)

    if provider_prefix in GOOGLE_PREFIXES or model_spec.startswith("gemini"):
        if not settings.google_api_key:
            raise ValueError("GOOGLE_API_KEY not configured in settings.")
        model = GoogleModel(model_name, provider=GoogleProvider(api_key=settings.google_api_key))
        # Thought traces would leak into the text we parse as JSON
        thinking_config: dict[str, object] = {"include_thoughts": False}
        if model_name.startswith("gemini-3"):
            thinking_config["thinking_level"] = "low"
        return model, GoogleModelSettings(google_thinking_config=thinking_config)

    return model_spec, None
