"""
Model catalog and per-user visibility.

The catalog is what the model picker offers. It never limits dispatch:
any model id, listed here or not, can be routed.
"""

from __future__ import annotations

from dataclasses import dataclass

from switchboard.routing import Provider, provider_tag

DEFAULT_MODEL = "openai/gpt-4o-mini"


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str

    @property
    def provider(self) -> Provider:
        return provider_tag(self.id)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "provider": self.provider.value}


MODEL_CATALOG: tuple[ModelInfo, ...] = (
    ModelInfo("openai/chatgpt-4o-latest", "ChatGPT 4o"),
    ModelInfo("openai/gpt-4.1-nano-2025-04-14", "GPT-4.1 Nano"),
    ModelInfo("openai/gpt-4.1-2025-04-14", "GPT-4.1"),
    ModelInfo("openai/o4-mini-2025-04-16", "O4 Mini"),
    ModelInfo("openai/o3-2025-04-16", "O3"),
    ModelInfo("openai/o3-mini-2025-01-31", "O3 Mini"),
    ModelInfo("anthropic/claude-sonnet-4-0", "Claude 4 Sonnet"),
    ModelInfo("anthropic/claude-4-opus", "Claude 4 Opus"),
    ModelInfo("anthropic/claude-3-5-haiku-latest", "Claude 3.5 Haiku"),
    ModelInfo("google/gemini-2.5-pro", "Gemini 2.5 Pro"),
    ModelInfo("google/gemini-2.5-flash", "Gemini 2.5 Flash"),
    ModelInfo("google/gemini-2.0-flash", "Gemini 2.0 Flash"),
)


def get_model(model_id: str) -> ModelInfo | None:
    for model in MODEL_CATALOG:
        if model.id == model_id:
            return model
    return None


def visible_models(preferences: dict[str, bool] | None) -> list[ModelInfo]:
    """
    Catalog entries the user has enabled.
    No enabled preference at all means everything is visible.
    """
    enabled = {model_id for model_id, on in (preferences or {}).items() if on}
    if not enabled:
        return list(MODEL_CATALOG)
    return [m for m in MODEL_CATALOG if m.id in enabled]


def group_by_provider(models: list[ModelInfo]) -> dict[str, list[ModelInfo]]:
    """Group for the picker, keeping catalog order."""
    grouped: dict[str, list[ModelInfo]] = {}
    for model in models:
        grouped.setdefault(model.provider.title, []).append(model)
    return grouped
