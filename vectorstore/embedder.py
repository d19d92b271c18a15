"""OpenAI-compatible embedding client with retry logic.

Defaults to text-embedding-3-small. Any OpenAI-compatible embeddings
endpoint (for example Gemini's) can be used by passing ``base_url``.

A failed embedding is reported as ``None`` rather than raised: callers
treat a missing vector as "no evidence" and degrade accordingly.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import tiktoken
from openai import BadRequestError, OpenAI
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "text-embedding-3-small"
MAX_TOKENS_PER_TEXT = 8000  # under the 8192 model limit


class Embedder:
    """Embed fact and page text, one text per request."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_workers: int = 5,
        timeout: float = 30.0,
    ):
        self.model = model
        self.max_workers = max(1, max_workers)
        self.client = OpenAI(
            api_key=api_key or os.getenv("OPENAI_API_KEY"),
            base_url=base_url,
            timeout=timeout,
        )
        try:
            self._encoder = tiktoken.encoding_for_model(model)
        except KeyError:
            self._encoder = tiktoken.get_encoding("cl100k_base")

    def _clip(self, text: str) -> str:
        tokens = self._encoder.encode(text)
        if len(tokens) > MAX_TOKENS_PER_TEXT:
            logger.warning("Clipping %d-token text before embedding: '%.60s'", len(tokens), text)
            return self._encoder.decode(tokens[:MAX_TOKENS_PER_TEXT])
        return text

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_not_exception_type(BadRequestError),
        before_sleep=lambda retry_state: logger.warning(
            "Embedding attempt %d failed: %s",
            retry_state.attempt_number,
            retry_state.outcome.exception() if retry_state.outcome else "unknown",
        ),
    )
    def _embed_request(self, text: str) -> list[float]:
        response = self.client.embeddings.create(model=self.model, input=[text])
        return list(response.data[0].embedding)

    def embed(self, text: str) -> Optional[list[float]]:
        """Embed one text. Returns None if the text is empty or the call fails."""
        if not text or not text.strip():
            return None
        try:
            return self._embed_request(self._clip(text))
        except Exception as e:
            logger.warning("Embedding failed for '%.60s': %s", text, e)
            return None

    def embed_many(self, texts: list[str]) -> list[Optional[list[float]]]:
        """Embed texts concurrently. Output order matches input order."""
        if not texts:
            return []
        if self.max_workers == 1 or len(texts) == 1:
            return [self.embed(t) for t in texts]
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(self.embed, texts))
