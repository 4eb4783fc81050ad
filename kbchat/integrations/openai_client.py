"""OpenAI-compatible client (DeepSeek chat, embeddings) with retry logic."""

import hashlib
import json
import math
import os
from pathlib import Path
from typing import Any

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..core.retrieval.text import normalize
from ..observability.logger import get_logger

logger = get_logger(__name__)

MOCK_EMBEDDING_DIMENSIONS = 64


class EmptyCompletionError(ValueError):
    """The model answered without any content."""


class CredentialCheck(BaseModel):
    """Result of a credential validation request."""

    valid: bool
    error: str | None = None


def is_test_mode() -> bool:
    return bool(os.getenv("KBCHAT_TEST_MODE") or os.getenv("KBCHAT_MOCK_LLM"))


def mask_api_key(api_key: str | None) -> str:
    """Show only the first 8 and last 4 characters of a key."""
    if not api_key:
        return ""
    return f"{api_key[:8]}...{api_key[-4:]}"


class LLMClient:
    """Wrapper for OpenAI-compatible APIs with retries and an embedding cache."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = "https://api.deepseek.com",
        model: str = "deepseek-chat",
        api_key_env: str = "DEEPSEEK_API_KEY",
        temperature: float = 0.6,
        max_tokens: int = 1024,
        timeout: int = 60,
        max_retries: int = 3,
        cache_dir: str | Path | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: API key (defaults to the ``api_key_env`` env var)
            base_url: API base URL (DeepSeek by default)
            model: Default chat or embedding model
            api_key_env: Environment variable holding the key
            temperature: Default sampling temperature
            max_tokens: Default completion length cap
            timeout: Request timeout in seconds
            max_retries: SDK-level retries per request
            cache_dir: Directory for the embedding cache (None disables it)
        """
        self.test_mode = is_test_mode()
        self.api_key = api_key or os.getenv(api_key_env)
        if not self.api_key and not self.test_mode:
            raise ValueError(f"API key must be provided or set in {api_key_env} env var")

        self.base_url = base_url
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.max_retries = max_retries

        self.client: AsyncOpenAI | None = None
        if not self.test_mode:
            self.client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=max_retries,
            )

        logger.info("llm_client_initialized", model=model, base_url=base_url, test_mode=self.test_mode)

        self._embedding_cache_path = Path(cache_dir) / "embeddings_cache.json" if cache_dir else None
        self._embedding_cache: dict[str, list[float]] = {}
        self._load_embedding_cache()

    @property
    def masked_api_key(self) -> str:
        return mask_api_key(self.api_key)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(OpenAIError),
        reraise=True,
    )
    async def create_chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> tuple[str, dict[str, Any]]:
        """Send a chat completion request.

        Args:
            messages: OpenAI-style ``{"role", "content"}`` messages
            model: Model to use (defaults to instance default)
            temperature: Sampling temperature
            max_tokens: Completion length cap

        Returns:
            Tuple of (stripped reply text, metadata including tokens used)

        Raises:
            OpenAIError: If the API call fails after retries
            EmptyCompletionError: If the reply has no content
        """
        model = model or self.model
        temperature = self.temperature if temperature is None else temperature
        max_tokens = max_tokens or self.max_tokens

        if self.test_mode:
            last_user = next((m["content"] for m in reversed(messages) if m.get("role") == "user"), "")
            return f"(mock) {last_user[:80]}喵", {"tokens_total": 0, "model": model, "mock": True}

        logger.info("creating_chat_completion", model=model, messages=len(messages))

        try:
            completion = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as e:
            logger.error("llm_error", error=str(e), model=model, exc_info=True)
            raise

        content = ""
        if completion.choices:
            content = (completion.choices[0].message.content or "").strip()
        if not content:
            raise EmptyCompletionError("API returned no reply content")

        usage = completion.usage
        usage_metadata = {
            "tokens_total": getattr(usage, "total_tokens", 0),
            "tokens_input": getattr(usage, "prompt_tokens", 0),
            "tokens_output": getattr(usage, "completion_tokens", 0),
            "response_id": getattr(completion, "id", None),
            "model": getattr(completion, "model", model),
        }
        logger.info(
            "chat_completion_created",
            response_id=usage_metadata["response_id"],
            tokens_total=usage_metadata["tokens_total"],
        )
        return content, usage_metadata

    async def validate_credentials(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> CredentialCheck:
        """Check a key by sending a tiny completion request.

        Args:
            api_key: Key to check (defaults to the configured key)
            base_url: Base URL to check against (defaults to the configured URL)

        Returns:
            CredentialCheck with the API's error message on failure
        """
        api_key = api_key or self.api_key
        base_url = base_url or self.base_url
        if not api_key or not base_url:
            return CredentialCheck(valid=False, error="API key and base URL must not be empty")

        if self.test_mode:
            return CredentialCheck(valid=True)

        probe = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=self.timeout, max_retries=0)
        try:
            await probe.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": "test"}],
                max_tokens=10,
            )
        except OpenAIError as e:
            logger.warning("credential_check_failed", base_url=base_url, error=str(e))
            return CredentialCheck(valid=False, error=str(e))
        finally:
            await probe.close()

        return CredentialCheck(valid=True)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(OpenAIError),
        reraise=True,
    )
    async def generate_embedding(
        self,
        text: str,
        model: str | None = None,
        dimensions: int | None = None,
    ) -> tuple[list[float], dict[str, Any]]:
        """Generate a text embedding.

        Args:
            text: Text to embed
            model: Embedding model (defaults to instance default)
            dimensions: Optional dimensions for compatible models

        Returns:
            Tuple of (embedding vector, metadata with usage info)

        Raises:
            OpenAIError: If the API call fails after retries
        """
        model = model or self.model
        logger.info("generating_embedding", model=model, text_length=len(text), test_mode=self.test_mode)

        if self.test_mode:
            embedding = self._mock_embedding(text, dimensions or MOCK_EMBEDDING_DIMENSIONS)
            return embedding, {"tokens_used": 0, "model": model, "dimensions": len(embedding), "mock": True}

        cache_key = self._cache_key(text, model, dimensions)
        if cache_key in self._embedding_cache:
            embedding = self._embedding_cache[cache_key]
            return embedding, {"tokens_used": 0, "model": model, "dimensions": len(embedding), "cached": True}

        try:
            response = await self.client.embeddings.create(
                model=model,
                input=text,
                **({"dimensions": dimensions} if dimensions else {}),
            )
        except OpenAIError as e:
            logger.error("embedding_error", error=str(e), model=model, exc_info=True)
            raise

        embedding = response.data[0].embedding
        self._embedding_cache[cache_key] = embedding
        self._persist_embedding_cache()

        return embedding, {
            "tokens_used": response.usage.total_tokens,
            "model": model,
            "dimensions": len(embedding),
        }

    async def generate_embeddings_batch(
        self,
        texts: list[str],
        model: str | None = None,
        dimensions: int | None = None,
        batch_size: int = 100,
    ) -> tuple[list[list[float]], dict[str, Any]]:
        """Generate embeddings for multiple texts in batches.

        Args:
            texts: Texts to embed
            model: Embedding model
            dimensions: Optional dimensions for embedding
            batch_size: Maximum texts per request

        Returns:
            Tuple of (embedding vectors in input order, aggregated metadata)

        Raises:
            OpenAIError: If an API call fails after retries
        """
        model = model or self.model
        logger.info("generating_embeddings_batch", count=len(texts), batch_size=batch_size, test_mode=self.test_mode)

        if self.test_mode:
            dim = dimensions or MOCK_EMBEDDING_DIMENSIONS
            return [self._mock_embedding(text, dim) for text in texts], {
                "tokens_used": 0,
                "texts_count": len(texts),
                "model": model,
                "dimensions": dim,
                "mock": True,
            }

        all_embeddings: list[list[float]] = []
        total_tokens = 0

        for i in range(0, len(texts), batch_size):
            batch = texts[i : i + batch_size]

            # Only call the API for texts missing from the cache
            batch_embeddings: list[list[float]] = []
            to_fetch_indices: list[int] = []
            to_fetch_texts: list[str] = []
            for idx, txt in enumerate(batch):
                key = self._cache_key(txt, model, dimensions)
                if key in self._embedding_cache:
                    batch_embeddings.append(self._embedding_cache[key])
                else:
                    to_fetch_indices.append(idx)
                    to_fetch_texts.append(txt)
                    batch_embeddings.append([])

            if to_fetch_texts:
                response = await self._embed_batch(to_fetch_texts, model, dimensions)
                total_tokens += response.usage.total_tokens
                for idx, item in zip(to_fetch_indices, response.data):
                    batch_embeddings[idx] = item.embedding
                    self._embedding_cache[self._cache_key(batch[idx], model, dimensions)] = item.embedding
                self._persist_embedding_cache()

            all_embeddings.extend(batch_embeddings)
            logger.info("batch_embedded", batch_num=i // batch_size + 1, batch_size=len(batch))

        return all_embeddings, {
            "tokens_used": total_tokens,
            "texts_count": len(texts),
            "model": model,
            "dimensions": len(all_embeddings[0]) if all_embeddings else 0,
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(OpenAIError),
        reraise=True,
    )
    async def _embed_batch(self, texts: list[str], model: str, dimensions: int | None) -> Any:
        try:
            return await self.client.embeddings.create(
                model=model,
                input=texts,
                **({"dimensions": dimensions} if dimensions else {}),
            )
        except OpenAIError as e:
            logger.error("batch_embedding_error", error=str(e), count=len(texts), exc_info=True)
            raise

    @staticmethod
    def hash_input(input_data: str | dict[str, Any]) -> str:
        """Create SHA-256 hash of input.

        Args:
            input_data: Input string or dictionary

        Returns:
            Hexadecimal hash string
        """
        if isinstance(input_data, dict):
            input_str = json.dumps(input_data, sort_keys=True, ensure_ascii=False)
        else:
            input_str = input_data
        return hashlib.sha256(input_str.encode("utf-8")).hexdigest()

    @staticmethod
    def _mock_embedding(text: str, dimensions: int) -> list[float]:
        """Deterministic offline embedding: hashed character bigrams, L2-normalized."""
        normalized = normalize(text).replace(" ", "")
        grams = [normalized[i : i + 2] for i in range(len(normalized) - 1)] or [normalized or "\0"]
        vector = [0.0] * dimensions
        for gram in grams:
            digest = hashlib.md5(gram.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "big") % dimensions] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        return [v / norm for v in vector]

    def _cache_key(self, text: str, model: str, dimensions: int | None) -> str:
        return self.hash_input({"text": text, "model": model, "dimensions": dimensions or "full"})

    def _load_embedding_cache(self) -> None:
        if self._embedding_cache_path is None:
            return
        try:
            if self._embedding_cache_path.exists():
                self._embedding_cache = json.loads(self._embedding_cache_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("embedding_cache_load_failed", error=str(exc), path=str(self._embedding_cache_path))

    def _persist_embedding_cache(self) -> None:
        if self._embedding_cache_path is None:
            return
        try:
            self._embedding_cache_path.parent.mkdir(parents=True, exist_ok=True)
            self._embedding_cache_path.write_text(json.dumps(self._embedding_cache), encoding="utf-8")
        except OSError as exc:
            logger.error("embedding_cache_persist_failed", error=str(exc), path=str(self._embedding_cache_path))


def build_llm_client(config: dict[str, Any]) -> LLMClient:
    """Chat client from the ``llm`` config section.

    Args:
        config: Full configuration dict

    Returns:
        LLMClient pointed at the chat model
    """
    llm_config = config.get("llm", {})
    return LLMClient(
        base_url=llm_config.get("base_url", "https://api.deepseek.com"),
        model=llm_config.get("model", "deepseek-chat"),
        api_key_env=llm_config.get("api_key_env", "DEEPSEEK_API_KEY"),
        temperature=llm_config.get("temperature", 0.6),
        max_tokens=llm_config.get("max_tokens", 1024),
        timeout=llm_config.get("timeout", 60),
        max_retries=llm_config.get("max_retries", 3),
    )


def build_embedding_client(config: dict[str, Any]) -> LLMClient:
    """Embedding client from the ``embedding`` config section.

    Args:
        config: Full configuration dict

    Returns:
        LLMClient pointed at the embedding model, with an on-disk cache
    """
    embedding_config = config.get("embedding", {})
    return LLMClient(
        base_url=embedding_config.get("base_url"),
        model=embedding_config.get("model", "text-embedding-3-small"),
        api_key_env=embedding_config.get("api_key_env", "OPENAI_API_KEY"),
        timeout=config.get("llm", {}).get("timeout", 60),
        cache_dir=config.get("storage", {}).get("cache_dir"),
    )
