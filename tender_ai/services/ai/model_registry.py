"""Catalogue of selectable models and the system default per operation."""

from dataclasses import dataclass
from typing import Dict, Iterable, List

from tender_ai.core.config import settings
from tender_ai.schemas.enums import Operation, ProviderKind


@dataclass(frozen=True)
class ModelInfo:
    """A selectable model.

    `id` is the stable identifier stored in overrides and draft groups;
    `model_name` is what the provider API expects.
    """
    id: str
    label: str
    provider: ProviderKind
    model_name: str
    max_output_tokens: int
    embedding: bool = False


MODEL_REGISTRY: Dict[str, ModelInfo] = {
    info.id: info
    for info in (
        ModelInfo("gemini-2.5-pro", "Gemini 2.5 Pro", ProviderKind.GEMINI, "gemini-2.5-pro", 65536),
        ModelInfo("gemini-2.5-flash", "Gemini 2.5 Flash", ProviderKind.GEMINI, "gemini-2.5-flash", 65536),
        ModelInfo("gemini-2.0-flash", "Gemini 2.0 Flash", ProviderKind.GEMINI, "gemini-2.0-flash", 8192),
        ModelInfo(
            "claude-sonnet-4", "Claude Sonnet 4 (OpenRouter)", ProviderKind.OPENROUTER,
            "anthropic/claude-sonnet-4", 16000,
        ),
        ModelInfo("gpt-4o", "GPT-4o (OpenRouter)", ProviderKind.OPENROUTER, "openai/gpt-4o", 16384),
        ModelInfo(
            "gpt-4o-mini", "GPT-4o mini (OpenRouter)", ProviderKind.OPENROUTER, "openai/gpt-4o-mini", 16384,
        ),
        ModelInfo(
            "minilm-l6-v2", "MiniLM L6 v2 (local)", ProviderKind.LOCAL,
            settings.embedding.local_model, 0, embedding=True,
        ),
        ModelInfo(
            "gemini-text-embedding", "Gemini text embedding", ProviderKind.GEMINI,
            settings.embedding.gemini_model, 0, embedding=True,
        ),
    )
}

_EMBEDDING_DEFAULTS = {
    "local": "minilm-l6-v2",
    "gemini": "gemini-text-embedding",
}

DEFAULT_MODELS: Dict[Operation, str] = {
    Operation.ANALYSIS: "gemini-2.5-flash",
    Operation.STRUCTURE: "gemini-2.5-flash",
    Operation.EXTRACTION: "gemini-2.5-flash",
    Operation.DRAFTING: "gemini-2.5-pro",
    Operation.FEEDBACK: "gemini-2.5-flash",
    Operation.COMPLIANCE: "gemini-2.5-flash",
    Operation.CHAT: "gemini-2.5-flash",
    Operation.EMBEDDING: _EMBEDDING_DEFAULTS.get(settings.embedding.provider, "minilm-l6-v2"),
}


def get_model(model_id: str) -> ModelInfo:
    """Look up a registered model.

    Raises:
        KeyError: If the id is not registered
    """
    return MODEL_REGISTRY[model_id]


def is_registered(model_id: str) -> bool:
    return model_id in MODEL_REGISTRY


def supports_operation(model_id: str, operation: Operation) -> bool:
    """Registered, and an embedding model exactly when the operation is embedding."""
    info = MODEL_REGISTRY.get(model_id)
    if info is None:
        return False
    return info.embedding == (Operation(operation) == Operation.EMBEDDING)


def list_models(configured_providers: Iterable[ProviderKind]) -> List[dict]:
    """Registry entries annotated with whether their provider is usable."""
    configured = set(configured_providers)
    return [
        {
            "id": info.id,
            "label": info.label,
            "provider": info.provider.value,
            "max_output_tokens": info.max_output_tokens,
            "embedding": info.embedding,
            "available": info.provider in configured,
        }
        for info in MODEL_REGISTRY.values()
    ]
