"""
Tests for the model catalog and visibility preferences.
Run with: pytest tests/test_catalog.py
"""

from switchboard.catalog import (
    DEFAULT_MODEL,
    MODEL_CATALOG,
    get_model,
    group_by_provider,
    visible_models,
)
from switchboard.routing import Provider


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def test_catalog_ids_are_namespaced_direct_providers():
    for model in MODEL_CATALOG:
        assert "/" in model.id
        assert model.provider.is_direct


def test_default_model_routes_to_openai():
    assert DEFAULT_MODEL.startswith("openai/")


def test_get_model():
    assert get_model("anthropic/claude-4-opus").name == "Claude 4 Opus"
    assert get_model("meta-llama/llama-3-70b-instruct") is None


def test_no_preferences_shows_everything():
    assert visible_models(None) == list(MODEL_CATALOG)
    assert visible_models({}) == list(MODEL_CATALOG)
    assert visible_models({"openai/o3-2025-04-16": False}) == list(MODEL_CATALOG)


def test_enabled_preferences_filter():
    models = visible_models({
        "google/gemini-2.5-pro": True,
        "openai/o3-2025-04-16": True,
        "anthropic/claude-4-opus": False,
    })
    assert [m.id for m in models] == ["openai/o3-2025-04-16", "google/gemini-2.5-pro"]


def test_group_by_provider_keeps_order():
    grouped = group_by_provider(list(MODEL_CATALOG))
    assert list(grouped) == ["OpenAI", "Anthropic", "Google"]
    assert grouped["Anthropic"][0].id == "anthropic/claude-sonnet-4-0"


def test_model_to_dict():
    info = get_model("google/gemini-2.5-flash").to_dict()
    assert info == {"id": "google/gemini-2.5-flash", "name": "Gemini 2.5 Flash", "provider": "google"}
    assert get_model("google/gemini-2.5-flash").provider is Provider.GOOGLE

