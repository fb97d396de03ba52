"""Embedding generation against an external embedding model."""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass
from typing import Any, List, Mapping, Protocol, Sequence, Tuple

from langchain_community.embeddings import HuggingFaceEmbeddings
from langchain_core.embeddings import Embeddings as LangChainEmbeddings

from postsearch.errors import DimensionMismatchError, EmbeddingError
from postsearch.metrics.observability import PipelineMetrics, TimedSection, get_logger

LOGGER = get_logger("embeddings")


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding generation."""

    model: str = "@cf/baai/bge-m3"
    dim: int = 1024
    max_text_length: int = 8000
    batch_size: int = 50


class EmbeddingModel(Protocol):
    """Embedding model capability: ``run(model, {"text": [...]}) -> {"data": [[...], ...]}``."""

    def run(self, model: str, inputs: Mapping[str, Sequence[str]]) -> Mapping[str, Any]:
        """Return one vector per input text under the ``data`` key."""


class HashEmbeddingModel:
    """Deterministic lightweight embedding model used for tests and offline runs."""

    def __init__(self, dim: int = 1024, normalize: bool = True) -> None:
        self._dim = dim
        self._normalize = normalize
        self.calls: List[List[str]] = []

    def _hash_to_vector(self, text: str) -> List[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._dim]
        vector = [byte / 255.0 for byte in raw]
        if self._normalize:
            norm = math.sqrt(sum(value * value for value in vector)) or 1.0
            vector = [value / norm for value in vector]
        return vector

    def run(self, model: str, inputs: Mapping[str, Sequence[str]]) -> Mapping[str, Any]:
        texts = list(inputs.get("text", []))
        self.calls.append(texts)
        return {"data": [self._hash_to_vector(text) for text in texts]}


class LangChainEmbeddingModel:
    """Embedding model backed by a LangChain embeddings client (HuggingFace by default)."""

    def __init__(
        self,
        model_name: str = "BAAI/bge-m3",
        *,
        device: str | None = None,
        normalize: bool = True,
        cache_folder: str | None = None,
        client: LangChainEmbeddings | None = None,
    ) -> None:
        if client is None:
            model_kwargs = {"device": device} if device else {}
            kwargs: dict[str, Any] = {}
            if cache_folder:
                kwargs["cache_folder"] = cache_folder
            client = HuggingFaceEmbeddings(
                model_name=model_name,
                model_kwargs=model_kwargs,
                encode_kwargs={"normalize_embeddings": normalize},
                **kwargs,
            )
            LOGGER.info("embeddings.model_loaded", model=model_name)
        self._client = client

    def run(self, model: str, inputs: Mapping[str, Sequence[str]]) -> Mapping[str, Any]:
        return {"data": self._client.embed_documents(list(inputs.get("text", [])))}


class EmbeddingGenerator:
    """Turn texts into vectors in sequential, fixed-size batches.

    Texts are truncated to ``max_text_length`` characters before submission.
    A failing batch fails the whole call; nothing is retried here.
    """

    def __init__(self, model: EmbeddingModel, config: EmbeddingConfig | None = None) -> None:
        self._model = model
        self._config = config or EmbeddingConfig()

    @property
    def config(self) -> EmbeddingConfig:
        return self._config

    def embed(self, texts: Sequence[str]) -> List[Tuple[float, ...]]:
        if not texts:
            return []
        limit = self._config.max_text_length
        truncated = [text[:limit] for text in texts]
        size = max(1, self._config.batch_size)
        vectors: List[Tuple[float, ...]] = []
        for start in range(0, len(truncated), size):
            batch = truncated[start : start + size]
            vectors.extend(self._run_batch(batch))
        return vectors

    def embed_one(self, text: str) -> Tuple[float, ...]:
        vectors = self.embed([text])
        if not vectors:
            raise EmbeddingError("No embedding returned from model")
        return vectors[0]

    def _run_batch(self, batch: List[str]) -> List[Tuple[float, ...]]:
        with TimedSection(PipelineMetrics.observe_embedding_batch) as timer:
            try:
                result = self._model.run(self._config.model, {"text": batch})
            except Exception as exc:
                LOGGER.error("embedding.batch_failed", model=self._config.model, batch_size=len(batch), error=str(exc))
                raise EmbeddingError(f"Embedding model call failed: {exc}") from exc

        data = result.get("data") if isinstance(result, Mapping) else None
        if not data:
            raise EmbeddingError("No embeddings returned from model")
        if len(data) != len(batch):
            LOGGER.error("embedding.count_mismatch", expected=len(batch), actual=len(data))
            raise EmbeddingError(f"Embedding model returned {len(data)} vectors for {len(batch)} texts")
        for vector in data:
            if len(vector) != self._config.dim:
                mismatch = DimensionMismatchError(self._config.dim, len(vector))
                LOGGER.error("embedding.dimension_mismatch", expected=self._config.dim, actual=len(vector))
                raise EmbeddingError(f"Embedding model returned unusable vectors: {mismatch}") from mismatch
        LOGGER.debug("embedding.batch", batch_size=len(batch), duration_seconds=timer.duration)
        return [tuple(float(value) for value in vector) for vector in data]
