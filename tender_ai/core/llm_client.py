"""Model provider clients.

Each provider implements the same four calls (`generate`, `stream`,
`embed`, `embed_many`). Credentials are checked when a provider is
invoked, never at construction, so an instance can always be built and
wired even when its key is absent.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import httpx
from httpx import HTTPStatusError, TimeoutException
from google import genai
from google.genai import types

from tender_ai.core.exceptions import APIClientError, APITimeoutError, ConfigurationError
from tender_ai.schemas.enums import ProviderKind
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseLLMClient:
    """Base client for HTTP model API interactions.

    Handles common logic for HTTP requests, retries, timeout management,
    and error logging.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 3,
        retry_delay: int = 2
    ):
        """Initialize the client.

        Args:
            api_key: API key for authentication
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts
            retry_delay: Base delay for exponential backoff
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.logger = LOGGER

    def headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        default_headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if extra:
            default_headers.update(extra)
        return default_headers

    async def call_api(
        self,
        endpoint: str = "",
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """POST to the API with retry logic.

        Raises:
            APIClientError: If the API call fails after retries
            APITimeoutError: If the API call times out after retries
        """
        url = f"{self.base_url}{endpoint}"

        self.logger.debug(f"Calling model API: {url}", extra={"timeout": self.timeout})

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(url, headers=self.headers(headers), json=payload)
                    response.raise_for_status()
                    return response.json()

                except HTTPStatusError as e:
                    await self._handle_http_error(e, attempt, url)

                except TimeoutException as e:
                    await self._handle_timeout_error(e, attempt, url)

                except httpx.HTTPError as e:
                    await self._handle_generic_error(e, attempt, url)

        raise APIClientError(f"Failed to call API {url} after {self.max_retries} attempts")

    async def _handle_http_error(self, error: HTTPStatusError, attempt: int, url: str):
        """Handle HTTP status errors."""
        status_code = error.response.status_code
        error_body = error.response.text

        self.logger.warning(
            f"API HTTP error (Attempt {attempt + 1}/{self.max_retries})",
            extra={
                "url": url,
                "status_code": status_code,
                "error_body": error_body[:500]
            }
        )

        # Client errors (4xx) are final unless rate limited
        if 400 <= status_code < 500 and status_code != 429:
            raise APIClientError(f"API Client Error {status_code}: {error_body}", error) from error

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API HTTP Error {status_code} after retries", error) from error

    async def _handle_timeout_error(self, error: TimeoutException, attempt: int, url: str):
        """Handle timeout errors."""
        self.logger.warning(
            f"API Timeout (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url}
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APITimeoutError(f"API Timeout after {self.max_retries} attempts", error) from error

    async def _handle_generic_error(self, error: Exception, attempt: int, url: str):
        """Handle transport errors."""
        self.logger.warning(
            f"API Transport Error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url, "error": str(error)}
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API Error: {str(error)}", error) from error

    async def _wait_before_retry(self, attempt: int):
        """Exponential backoff wait."""
        await asyncio.sleep(self.retry_delay * (2 ** attempt))


class LLMProvider(ABC):
    """Common interface of every model provider."""

    kind: ProviderKind

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the provider has the credentials it needs."""

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when the provider cannot be called."""
        if not self.is_configured:
            raise ConfigurationError(f"Provider '{self.kind.value}' is not configured (missing API key)")

    @abstractmethod
    async def generate(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        """Return the full completion text."""

    @abstractmethod
    def stream(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Yield completion text fragments in order."""

    @abstractmethod
    async def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed several texts, preserving order."""

    async def embed(self, text: str) -> List[float]:
        vectors = await self.embed_many([text])
        return vectors[0]


class GeminiProvider(LLMProvider):
    """Google Gemini through the google-genai SDK."""

    kind = ProviderKind.GEMINI

    def __init__(
        self,
        api_key: str,
        embedding_model: str = "text-embedding-004",
        embedding_dimension: int = 384,
        max_retries: int = 3,
    ):
        self.api_key = api_key
        self.embedding_model = embedding_model
        self.embedding_dimension = embedding_dimension
        self.max_retries = max_retries
        self._client: Optional[genai.Client] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> genai.Client:
        """Lazily build the SDK client once credentials have been checked."""
        self.ensure_configured()
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
            LOGGER.info("Initialized Gemini client")
        return self._client

    def _config(self, system_prompt: str, max_output_tokens: Optional[int]) -> types.GenerateContentConfig:
        config = types.GenerateContentConfig(temperature=0.3)
        if system_prompt:
            config.system_instruction = system_prompt
        if max_output_tokens:
            config.max_output_tokens = max_output_tokens
        return config

    async def generate(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        client = self.client
        config = self._config(system_prompt, max_output_tokens)

        for attempt in range(self.max_retries):
            try:
                response = await client.aio.models.generate_content(
                    model=model,
                    contents=user_prompt,
                    config=config,
                )
                if not response.text:
                    LOGGER.warning("Empty response from Gemini", extra={"model": model})
                    return ""
                return response.text

            except Exception as e:
                LOGGER.warning(
                    f"Gemini API error (Attempt {attempt + 1}/{self.max_retries}): {e}"
                )
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2 ** attempt)
                else:
                    LOGGER.error(f"Gemini generation failed after retries: {e}", exc_info=True)
                    raise APIClientError(f"Gemini generation failed: {e}", e) from e

        raise APIClientError("Gemini generation failed")

    async def stream(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        client = self.client
        try:
            response_stream = await client.aio.models.generate_content_stream(
                model=model,
                contents=user_prompt,
                config=self._config(system_prompt, max_output_tokens),
            )
            async for chunk in response_stream:
                if chunk.text:
                    yield chunk.text
        except asyncio.CancelledError:
            raise
        except Exception as e:
            LOGGER.error(f"Gemini stream failed: {e}", exc_info=True)
            raise APIClientError(f"Gemini stream failed: {e}", e) from e

    async def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        client = self.client
        try:
            result = await client.aio.models.embed_content(
                model=self.embedding_model,
                contents=list(texts),
                config=types.EmbedContentConfig(output_dimensionality=self.embedding_dimension),
            )
        except Exception as e:
            LOGGER.error(f"Gemini embedding failed: {e}", exc_info=True)
            raise APIClientError(f"Gemini embedding failed: {e}", e) from e
        return [list(embedding.values) for embedding in result.embeddings]


class OpenRouterProvider(LLMProvider):
    """OpenRouter's OpenAI-compatible chat completions and embeddings API."""

    kind = ProviderKind.OPENROUTER

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        embedding_model: str = "openai/text-embedding-3-small",
        embedding_dimension: int = 384,
        timeout: int = 120,
        max_retries: int = 3,
        retry_delay: int = 2,
    ):
        self.api_key = api_key
        self.embedding_model = embedding_model
        self.embedding_dimension = embedding_dimension
        self.client = BaseLLMClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def _messages(system_prompt: str, user_prompt: str) -> List[Dict[str, str]]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        return messages

    async def generate(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        self.ensure_configured()
        payload: Dict[str, Any] = {
            "model": model,
            "messages": self._messages(system_prompt, user_prompt),
        }
        if max_output_tokens:
            payload["max_tokens"] = max_output_tokens

        response = await self.client.call_api("/chat/completions", payload=payload)

        choices = response.get("choices") or []
        if not choices:
            LOGGER.error(f"Unexpected OpenRouter response format: {response}")
            raise APIClientError("Invalid response format from OpenRouter")

        content = choices[0].get("message", {}).get("content") or ""
        if not content:
            LOGGER.warning("Empty response from OpenRouter", extra={"model": model})
        return content

    async def stream(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        self.ensure_configured()
        payload: Dict[str, Any] = {
            "model": model,
            "messages": self._messages(system_prompt, user_prompt),
            "stream": True,
        }
        if max_output_tokens:
            payload["max_tokens"] = max_output_tokens

        url = f"{self.client.base_url}/chat/completions"
        try:
            async with httpx.AsyncClient(timeout=self.client.timeout) as http:
                async with http.stream("POST", url, headers=self.client.headers(), json=payload) as response:
                    if response.status_code >= 400:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        raise APIClientError(f"OpenRouter stream error {response.status_code}: {body[:500]}")

                    async for line in response.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        data = line[len("data:"):].strip()
                        if data == "[DONE]":
                            break
                        try:
                            event = json.loads(data)
                        except json.JSONDecodeError:
                            LOGGER.debug(f"Skipping non-JSON stream line: {data[:100]}")
                            continue
                        choices = event.get("choices") or []
                        delta = choices[0].get("delta", {}).get("content") if choices else None
                        if delta:
                            yield delta
        except TimeoutException as e:
            raise APITimeoutError(f"OpenRouter stream timed out: {e}", e) from e
        except httpx.HTTPError as e:
            raise APIClientError(f"OpenRouter stream failed: {e}", e) from e

    async def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        self.ensure_configured()
        response = await self.client.call_api(
            "/embeddings",
            payload={
                "model": self.embedding_model,
                "input": list(texts),
                "dimensions": self.embedding_dimension,
            },
        )
        data = sorted(response.get("data") or [], key=lambda item: item.get("index", 0))
        if len(data) != len(texts):
            raise APIClientError(
                f"OpenRouter returned {len(data)} embeddings for {len(texts)} inputs"
            )
        return [list(item["embedding"]) for item in data]


class SentenceTransformerProvider(LLMProvider):
    """Local sentence-transformers embeddings; no text generation."""

    kind = ProviderKind.LOCAL

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None

    @property
    def is_configured(self) -> bool:
        return True

    @property
    def model(self):
        """Lazy loader for the SentenceTransformer model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            LOGGER.info(f"Loading embedding model: {self.model_name}")
            self._model = SentenceTransformer(self.model_name)
        return self._model

    async def generate(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        raise ConfigurationError(f"Local provider cannot generate text (model '{model}')")

    async def stream(
        self,
        model: str,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        raise ConfigurationError(f"Local provider cannot generate text (model '{model}')")
        yield  # pragma: no cover

    async def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        # SentenceTransformer.encode is CPU-bound; run in a thread
        embeddings = await asyncio.to_thread(self.model.encode, list(texts))
        return [list(map(float, vector)) for vector in embeddings]
