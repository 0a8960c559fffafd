"""Chunk and query embeddings from a local sentence-transformer model.

``embed_text`` and ``embed_batch`` call the model directly. The retrieval
engine and the pipeline use the async ``embed`` and ``embed_many``, which
push encoding onto a worker thread so queries keep flowing while a batch of
chunks is being embedded.
"""

import asyncio
import logging
from typing import List, Optional, Union

import numpy as np
from sentence_transformers import SentenceTransformer
import torch


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "all-mpnet-base-v2"


def detect_device() -> str:
    """Pick the fastest available torch backend: cuda, then mps, then cpu."""
    if torch.cuda.is_available():
        return "cuda"
    if torch.backends.mps.is_available():
        return "mps"
    return "cpu"


class EmbeddingService:
    """Sentence-transformer embedding provider.

    The model is loaded on first use, so constructing the service is cheap
    and works offline.

    Attributes:
        model_name: Model identifier passed to SentenceTransformer
        cache_dir: Download cache for model weights (None for the library default)
        device: torch device the model runs on
        batch_size: Encoding batch size for embed_batch
        normalize_embeddings: Return unit-length vectors
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        cache_dir: Optional[str] = None,
        device: Optional[str] = None,
        batch_size: int = 32,
        normalize_embeddings: bool = True,
    ):
        self.model_name = model_name
        self.cache_dir = cache_dir
        self.device = device or detect_device()
        self.batch_size = batch_size
        self.normalize_embeddings = normalize_embeddings
        self._model: Optional[SentenceTransformer] = None

        logger.info(f"EmbeddingService ready: model={model_name}, device={self.device}")

    @property
    def model(self) -> SentenceTransformer:
        """The loaded model; raises RuntimeError when loading fails."""
        if self._model is None:
            logger.info(f"Loading embedding model {self.model_name} on {self.device}")
            try:
                self._model = SentenceTransformer(
                    self.model_name,
                    cache_folder=self.cache_dir,
                    device=self.device,
                )
            except Exception as e:
                logger.error(f"Could not load embedding model {self.model_name}: {e}")
                raise RuntimeError(f"Could not load embedding model {self.model_name}: {e}") from e

        return self._model

    @property
    def dimension(self) -> int:
        return self.model.get_sentence_embedding_dimension()

    def _encode(self, inputs: Union[str, List[str]], **kwargs) -> np.ndarray:
        model = self.model
        try:
            return model.encode(
                inputs,
                convert_to_numpy=True,
                normalize_embeddings=self.normalize_embeddings,
                **kwargs,
            )
        except Exception as e:
            logger.error(f"Encoding failed with {self.model_name}: {e}")
            raise RuntimeError(f"Embedding failed: {e}") from e

    def embed_text(self, text: str) -> np.ndarray:
        """Embed one text.

        Raises:
            ValueError: If the text is blank
            RuntimeError: If the model cannot load or encode
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed blank text")

        return self._encode(text, show_progress_bar=False)

    def embed_batch(
        self,
        texts: List[str],
        batch_size: Optional[int] = None,
        show_progress: bool = False,
    ) -> np.ndarray:
        """Embed many texts, returning one row per input.

        Blank entries are not sent to the model; their rows are zero vectors,
        which score 0.0 against any query.

        Raises:
            ValueError: If ``texts`` is empty or holds only blank entries
            RuntimeError: If the model cannot load or encode
        """
        if not texts:
            raise ValueError("No texts to embed")

        keep = [i for i, text in enumerate(texts) if text and text.strip()]
        if not keep:
            raise ValueError("Every text in the batch is blank")

        encoded = self._encode(
            [texts[i] for i in keep],
            batch_size=batch_size or self.batch_size,
            show_progress_bar=show_progress,
        )
        if len(keep) == len(texts):
            return encoded

        logger.warning(f"{len(texts) - len(keep)} blank texts embedded as zero vectors")
        rows = np.zeros((len(texts), encoded.shape[1]), dtype=encoded.dtype)
        rows[keep] = encoded
        return rows

    async def embed(self, text: str) -> np.ndarray:
        return await asyncio.to_thread(self.embed_text, text)

    async def embed_many(self, texts: List[str]) -> List[np.ndarray]:
        return list(await asyncio.to_thread(self.embed_batch, texts))
