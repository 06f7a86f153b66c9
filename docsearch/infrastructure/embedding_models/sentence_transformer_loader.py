# File: docsearch/infrastructure/embedding_models/sentence_transformer_loader.py
import asyncio
import os
import structlog
import numpy as np
from typing import Any, Dict, List, Optional

from docsearch.application.ports.embedding_model_port import (
    EmbeddingModelPort, ModelLoaderPort, EmbeddingError
)
from docsearch.core.config import settings

log = structlog.get_logger(__name__)


class SentenceTransformerEmbeddingModel(EmbeddingModelPort):
    """Loaded SentenceTransformer; mean pooling comes from the model's pooling config."""

    def __init__(self, model: Any, model_name: str, task: str):
        self._model = model
        self._model_name = model_name
        self._task = task
        self._dimension = int(model.get_sentence_embedding_dimension() or 0)

    async def embed(self, text: str) -> List[float]:
        try:
            vector = await asyncio.to_thread(
                self._model.encode,
                text,
                normalize_embeddings=True,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception as e:
            raise EmbeddingError(f"Model {self._model_name} failed to embed text: {e}") from e
        return np.asarray(vector, dtype=np.float32).tolist()

    def get_model_info(self) -> Dict[str, Any]:
        return {"model_name": self._model_name, "task": self._task, "dimension": self._dimension}


class SentenceTransformerLoader(ModelLoaderPort):
    """
    Blocking loader for sentence-transformers models. Called from worker
    threads by the model manager.
    """

    def __init__(self, device: Optional[str] = None, cache_dir: Optional[str] = None):
        # Import lazily: torch is heavy and only the worker process needs it.
        global SentenceTransformer, torch
        try:
            from sentence_transformers import SentenceTransformer
            import torch
        except ImportError as e:
            log.critical("sentence_transformers or torch not installed. This loader requires them.", error=str(e))
            raise
        self._device = self._resolve_device(device or settings.EMBEDDING_DEVICE)
        self._cache_dir = cache_dir or settings.MODELS_PATH

    @staticmethod
    def _resolve_device(device: str) -> str:
        if device.startswith("cuda") and not torch.cuda.is_available():
            log.warning(f"EMBEDDING_DEVICE configured as '{device}' but CUDA is not available. Falling back to CPU.")
            return "cpu"
        return device

    def load_local(self, task: str, model_name: str, local_path: str, options: Dict[str, Any]) -> EmbeddingModelPort:
        if not os.path.isdir(local_path):
            raise FileNotFoundError(f"No local copy of {model_name} at {local_path}")
        model = SentenceTransformer(local_path, device=self._device, local_files_only=True, **options)
        return SentenceTransformerEmbeddingModel(model, model_name, task)

    def load_remote(self, task: str, model_name: str, local_path: str, options: Dict[str, Any]) -> EmbeddingModelPort:
        os.makedirs(self._cache_dir, exist_ok=True)
        model = SentenceTransformer(model_name, device=self._device, cache_folder=self._cache_dir, **options)
        model.save(local_path)
        log.info("Model persisted locally", model_name=model_name, local_path=local_path)
        return SentenceTransformerEmbeddingModel(model, model_name, task)
