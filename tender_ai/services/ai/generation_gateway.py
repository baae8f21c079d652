"""Uniform generation and embedding entry point over the provider variants.

Streaming contract:
- `on_token` receives fragments in arrival order.
- Exactly one terminal callback fires: `on_done(full_text)` or `on_error(exc)`.
- Setting `cancel_event` stops the provider stream promptly; no further
  tokens are delivered and `on_error` receives GenerationCancelledError.
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

from tender_ai.core.config import Settings
from tender_ai.core.exceptions import ConfigurationError, GenerationCancelledError
from tender_ai.core.llm_client import (
    GeminiProvider,
    LLMProvider,
    OpenRouterProvider,
    SentenceTransformerProvider,
)
from tender_ai.schemas.enums import Operation, ProviderKind
from tender_ai.services.ai.model_registry import DEFAULT_MODELS, ModelInfo, get_model
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

Callback = Callable[..., Union[None, Awaitable[None]]]


async def invoke_callback(callback: Optional[Callback], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


@dataclass
class StreamCallbacks:
    """Callbacks for one streamed generation. Each may be sync or async."""
    on_token: Optional[Callback] = None
    on_done: Optional[Callback] = None
    on_error: Optional[Callback] = None


class GenerationGateway:
    """Routes model ids to their provider and embeds with the configured embedder."""

    def __init__(self, providers: Mapping[ProviderKind, LLMProvider], embedder: LLMProvider):
        self.providers: Dict[ProviderKind, LLMProvider] = dict(providers)
        self.embedder = embedder

    def _route(self, model_id: str) -> tuple[ModelInfo, LLMProvider]:
        try:
            info = get_model(model_id)
        except KeyError as e:
            raise ConfigurationError(f"Unknown model '{model_id}'", e) from e
        provider = self.providers.get(info.provider)
        if provider is None:
            raise ConfigurationError(f"No provider registered for '{info.provider.value}'")
        return info, provider

    def configured_providers(self) -> List[ProviderKind]:
        return [kind for kind, provider in self.providers.items() if provider.is_configured]

    async def generate(self, model_id: str, system_prompt: str, user_prompt: str) -> str:
        """Return the complete completion text.

        Raises:
            ConfigurationError: Unknown model or missing provider credentials
            APIClientError: Provider call failed
        """
        info, provider = self._route(model_id)
        provider.ensure_configured()
        LOGGER.info(
            f"Generating with {info.id}",
            extra={"model": info.model_name, "provider": info.provider.value},
        )
        return await provider.generate(
            info.model_name, system_prompt, user_prompt, max_output_tokens=info.max_output_tokens
        )

    async def stream(
        self,
        model_id: str,
        system_prompt: str,
        user_prompt: str,
        callbacks: StreamCallbacks,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Stream a completion through the callbacks.

        Configuration problems (unknown model, missing credentials) raise
        ConfigurationError before streaming starts and fire no callback.
        """
        info, provider = self._route(model_id)
        provider.ensure_configured()
        cancel_event = cancel_event or asyncio.Event()

        parts: List[str] = []

        async def consume() -> None:
            async for token in provider.stream(
                info.model_name, system_prompt, user_prompt, max_output_tokens=info.max_output_tokens
            ):
                if cancel_event.is_set():
                    break
                parts.append(token)
                await invoke_callback(callbacks.on_token, token)

        consumer = asyncio.create_task(consume())
        cancel_waiter = asyncio.create_task(cancel_event.wait())
        try:
            await asyncio.wait({consumer, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            consumer.cancel()
            raise
        finally:
            cancel_waiter.cancel()

        if cancel_event.is_set():
            if not consumer.done():
                consumer.cancel()
            await asyncio.gather(consumer, return_exceptions=True)
            LOGGER.info(f"Stream cancelled for {info.id}", extra={"tokens": len(parts)})
            await invoke_callback(callbacks.on_error, GenerationCancelledError("Generation cancelled"))
            return

        error = consumer.exception()
        if error is not None:
            LOGGER.error(f"Stream failed for {info.id}: {error}", exc_info=error)
            await invoke_callback(callbacks.on_error, error)
            return

        await invoke_callback(callbacks.on_done, "".join(parts))

    async def embed(self, text: str) -> List[float]:
        self.embedder.ensure_configured()
        return await self.embedder.embed(text)

    async def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        self.embedder.ensure_configured()
        return await self.embedder.embed_many(texts)


def build_gateway(settings: Settings) -> GenerationGateway:
    """Construct every provider variant once and pick the embedder from settings."""
    providers: Dict[ProviderKind, LLMProvider] = {
        ProviderKind.GEMINI: GeminiProvider(
            api_key=settings.llm.gemini_api_key,
            embedding_model=settings.embedding.gemini_model,
            embedding_dimension=settings.embedding.dimension,
            max_retries=settings.llm.max_retries,
        ),
        ProviderKind.OPENROUTER: OpenRouterProvider(
            api_key=settings.llm.openrouter_api_key,
            base_url=settings.llm.openrouter_api_url,
            embedding_dimension=settings.embedding.dimension,
            timeout=settings.llm.request_timeout,
            max_retries=settings.llm.max_retries,
            retry_delay=settings.llm.retry_delay,
        ),
        ProviderKind.LOCAL: SentenceTransformerProvider(model_name=settings.embedding.local_model),
    }
    embedder = providers[get_model(DEFAULT_MODELS[Operation.EMBEDDING]).provider]
    LOGGER.info(
        "Generation gateway ready",
        extra={"embedder": embedder.kind.value, "providers": [k.value for k in providers]},
    )
    return GenerationGateway(providers, embedder)
