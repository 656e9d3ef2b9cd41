# cartwhisper/domain/services/embedding_svc.py

from __future__ import annotations
from typing import Any, Callable, Dict, Optional, Protocol, Sequence
import asyncio
import logging
import threading
import time

import numpy as np
from openai import AsyncOpenAI

from cartwhisper.core.config import Settings
from cartwhisper.core.errors import ModelUnavailable
from cartwhisper.domain.models.product import Product
from cartwhisper.domain.services.constants import EMBED_PROGRESS_EVERY
from cartwhisper.domain.services.text_projector import project_to_text
from cartwhisper.utils.cancel import CancelToken

logger = logging.getLogger(__name__)

# ---------- Model handle -------------------------------------------------------

class ModelHolder:
    """
    Lock-protected, load-once holder for a heavy model object.
    A failed load is not cached, so the next call tries again.
    """
    def __init__(self, loader: Callable[[], Any], name: str = "model"):
        self._loader = loader
        self.name = name
        self._model: Any = None
        self._lock = threading.Lock()
        self.load_count = 0

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def get(self) -> Any:
        if self._model is None:
            with self._lock:
                # Double-check after acquiring the lock
                if self._model is None:
                    logger.info(f"Loading embedding model {self.name}...")
                    t0 = time.perf_counter()
                    self._model = self._loader()
                    self.load_count += 1
                    logger.info(f"Embedding model {self.name} loaded in {time.perf_counter() - t0:.1f}s")
        return self._model

def l2_normalize(vec: Sequence[float]) -> np.ndarray:
    arr = np.asarray(vec, dtype=np.float64)
    norm = np.linalg.norm(arr)
    return arr / norm if norm > 0 else arr

# ---------- Embedders ----------------------------------------------------------

class Embedder(Protocol):
    name: str

    async def embed(self, text: str) -> np.ndarray:
        ...

class SentenceTransformerEmbedder:
    """
    Local sentence-transformers model (mean pooling is part of the model
    pipeline); vectors come back L2 normalized as float64.
    """
    def __init__(self, model_name: str):
        self.name = model_name
        self._holder = ModelHolder(self._load, name=model_name)

    def _load(self):
        from sentence_transformers import SentenceTransformer
        return SentenceTransformer(self.name)

    def _encode(self, text: str) -> np.ndarray:
        model = self._holder.get()
        vec = model.encode(text, normalize_embeddings=True, convert_to_numpy=True)
        return np.asarray(vec, dtype=np.float64)

    async def embed(self, text: str) -> np.ndarray:
        try:
            return await asyncio.to_thread(self._encode, text)
        except ModelUnavailable:
            raise
        except Exception as e:
            raise ModelUnavailable(self.name, e) from e

class OpenAIEmbedder:
    """Remote embeddings through the OpenAI API, normalized locally."""
    def __init__(self, api_key: str, model_name: str, timeout_s: float = 30.0, client: Optional[AsyncOpenAI] = None):
        self.name = model_name
        self.timeout_s = timeout_s
        self._client = client or AsyncOpenAI(api_key=api_key)

    async def embed(self, text: str) -> np.ndarray:
        try:
            # the API rejects empty input
            resp = await self._client.embeddings.create(model=self.name, input=text or " ", timeout=self.timeout_s)
            return l2_normalize(resp.data[0].embedding)
        except Exception as e:
            raise ModelUnavailable(self.name, e) from e

def build_embedder(settings: Settings) -> Embedder:
    if settings.EMBEDDING_BACKEND == "openai":
        if not settings.OPENAI_API_KEY:
            raise ModelUnavailable(settings.OPENAI_EMBEDDING_MODEL, RuntimeError("OPENAI_API_KEY is not set"))
        return OpenAIEmbedder(settings.OPENAI_API_KEY, settings.OPENAI_EMBEDDING_MODEL)
    return SentenceTransformerEmbedder(settings.EMBEDDING_MODEL)

# ---------- Public API --------------------------------------------------------

async def embed_catalog(
    products: Sequence[Product],
    embedder: Embedder,
    *,
    cancel_token: Optional[CancelToken] = None,
) -> Dict[str, np.ndarray]:
    """
    Embed every product sequentially (one model call at a time keeps memory flat).
    Any failure raises ModelUnavailable: a partial vector set is useless to the ranker.
    """
    start_ts = time.perf_counter()
    logger.info(f"[embed] start products={len(products)} model={embedder.name}")
    vectors: Dict[str, np.ndarray] = {}
    dim: Optional[int] = None

    for i, product in enumerate(products, start=1):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled("embedding")

        text = project_to_text(product)
        logger.debug(f"[embed] product_id={product.id} text={text!r}")
        vec = await embedder.embed(text)

        if dim is None:
            dim = int(vec.shape[0])
        elif vec.shape[0] != dim:
            raise ModelUnavailable(
                embedder.name,
                ValueError(f"inconsistent dimensionality {vec.shape[0]} != {dim} for {product.id}"),
            )
        vectors[product.id] = vec

        if i % EMBED_PROGRESS_EVERY == 0 or i == len(products):
            logger.info(f"[embed] progress {i}/{len(products)}")

    elapsed_ms = (time.perf_counter() - start_ts) * 1000.0
    logger.info(f"[embed] done vectors={len(vectors)} dim={dim} time_ms={elapsed_ms:.1f}")
    return vectors
