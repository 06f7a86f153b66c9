# File: docsearch/infrastructure/embedding_models/model_manager.py
import asyncio
import os
import structlog
from typing import Any, Dict, List, Optional, Tuple

from tenacity import AsyncRetrying, retry_if_not_exception_type, stop_after_attempt, wait_fixed

from docsearch.application.ports.embedding_model_port import (
    EmbeddingModelPort, IncompatibleModelError, ModelLoaderPort, ModelLoadError
)
from docsearch.core.config import settings

log = structlog.get_logger(__name__)

ModelKey = Tuple[str, str]


class ModelManager:
    """
    Loads and caches one embedding model handle per (task, model_name).

    At most one load runs per key: concurrent callers of ensure_model for a key
    that is already loading await the same in-flight task. A load retries the
    requested model (local cache first, then remote download) with a fixed
    delay, then falls back to the task's default model, and finally raises
    ModelLoadError.

    Every loaded model must produce vectors of expected_dimension (the vector
    index dimension). A mismatch is not retried and a mismatching fallback is
    a ModelLoadError; 0 disables the check.
    """

    def __init__(
        self,
        loader: ModelLoaderPort,
        models_path: Optional[str] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        fallback_models: Optional[Dict[str, str]] = None,
        expected_dimension: Optional[int] = None,
    ):
        self.loader = loader
        self.models_path = models_path or settings.MODELS_PATH
        self.max_retries = settings.MODEL_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay = settings.MODEL_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        self.fallback_models = settings.MODEL_FALLBACKS if fallback_models is None else fallback_models
        self.expected_dimension = settings.EMBEDDING_DIMENSION if expected_dimension is None else expected_dimension

        self._loaded: Dict[ModelKey, EmbeddingModelPort] = {}
        self._loading: Dict[ModelKey, asyncio.Task] = {}
        self._lock = asyncio.Lock()
        self.log = log.bind(component="ModelManager", models_path=self.models_path)

    def local_model_path(self, model_name: str) -> str:
        return os.path.join(self.models_path, model_name.replace("/", "_"))

    async def ensure_model(self, task: str, model_name: str, options: Optional[Dict[str, Any]] = None) -> EmbeddingModelPort:
        key = (task, model_name)
        async with self._lock:
            model = self._loaded.get(key)
            if model is not None:
                self.log.debug("Model already loaded in memory", task=task, model_name=model_name)
                return model
            pending = self._loading.get(key)
            if pending is None:
                pending = asyncio.create_task(self._load_and_cache(key, options or {}))
                self._loading[key] = pending
            else:
                self.log.info("Model is currently being loaded, waiting...", task=task, model_name=model_name)
        # shield: a cancelled waiter must not cancel the load the others are awaiting.
        return await asyncio.shield(pending)

    async def _load_and_cache(self, key: ModelKey, options: Dict[str, Any]) -> EmbeddingModelPort:
        task, model_name = key
        try:
            model = await self._load_model(task, model_name, options)
            async with self._lock:
                self._loaded[key] = model
            self.log.info("Model successfully loaded and cached", task=task, model_name=model_name)
            return model
        except Exception as e:
            self.log.error("Failed to load model", task=task, model_name=model_name, error=str(e))
            raise
        finally:
            async with self._lock:
                self._loading.pop(key, None)

    async def _load_once(self, task: str, model_name: str, options: Dict[str, Any], attempt: int) -> EmbeddingModelPort:
        local_path = self.local_model_path(model_name)
        attempt_log = self.log.bind(task=task, model_name=model_name, attempt=attempt, max_attempts=self.max_retries + 1)
        if os.path.isdir(local_path):
            try:
                model = await asyncio.to_thread(self.loader.load_local, task, model_name, local_path, options)
                attempt_log.info("Model loaded from local cache", local_path=local_path)
                return model
            except Exception as local_err:
                attempt_log.warning("Local model failed to load, downloading instead", local_path=local_path, error=str(local_err))
        else:
            attempt_log.info("Model not found locally", local_path=local_path)

        attempt_log.info("Downloading model...")
        model = await asyncio.to_thread(self.loader.load_remote, task, model_name, local_path, options)
        attempt_log.info("Model downloaded and loaded successfully", local_path=local_path)
        return model

    def _check_dimension(self, model: EmbeddingModelPort, model_name: str) -> EmbeddingModelPort:
        if not self.expected_dimension:
            return model
        dimension = model.get_model_info().get("dimension")
        if dimension != self.expected_dimension:
            raise IncompatibleModelError(
                f"Model {model_name} produces {dimension}-dimensional vectors; "
                f"the vector index expects {self.expected_dimension}"
            )
        return model

    async def _load_model(self, task: str, model_name: str, options: Dict[str, Any]) -> EmbeddingModelPort:
        last_error: Optional[BaseException] = None
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries + 1),
                wait=wait_fixed(self.retry_delay),
                retry=retry_if_not_exception_type(IncompatibleModelError),
                reraise=True,
                before_sleep=lambda retry_state: self.log.warning(
                    "Model load attempt failed, retrying",
                    task=task,
                    model_name=model_name,
                    attempt_number=retry_state.attempt_number,
                    wait_time=self.retry_delay,
                    error=str(retry_state.outcome.exception()) if retry_state.outcome else "Unknown error",
                ),
            ):
                with attempt:
                    model = await self._load_once(task, model_name, options, attempt.retry_state.attempt_number)
                    return self._check_dimension(model, model_name)
        except Exception as e:
            last_error = e
            self.log.error("Exhausted load attempts for model", task=task, model_name=model_name,
                           attempts=self.max_retries + 1, error=str(e))

        fallback_model = self.fallback_models.get(task)
        if not fallback_model or fallback_model == model_name:
            raise ModelLoadError(task, model_name, fallback_model, last_error)

        self.log.warning("Attempting to use fallback model for task", task=task, fallback_model=fallback_model)
        try:
            model = await self._load_once(task, fallback_model, options, attempt=1)
            return self._check_dimension(model, fallback_model)
        except Exception as fallback_err:
            self.log.error("Fallback model also failed", task=task, fallback_model=fallback_model, error=str(fallback_err))
            raise ModelLoadError(task, model_name, fallback_model, last_error) from fallback_err

    def get_model(self, task: str, model_name: str) -> Optional[EmbeddingModelPort]:
        return self._loaded.get((task, model_name))

    def has_model(self, task: str, model_name: str) -> bool:
        return (task, model_name) in self._loaded

    def clear_model(self, task: str, model_name: str) -> bool:
        removed = self._loaded.pop((task, model_name), None) is not None
        if removed:
            self.log.info("Model removed from cache", task=task, model_name=model_name)
        return removed

    def clear_all_models(self) -> int:
        count = len(self._loaded)
        self._loaded.clear()
        self.log.info(f"Cleared {count} models from cache")
        return count

    def list_models(self) -> List[ModelKey]:
        return list(self._loaded.keys())

    def get_loading_status(self) -> Dict[str, List[ModelKey]]:
        return {
            "loaded": list(self._loaded.keys()),
            "loading": list(self._loading.keys()),
        }

    async def preload_models(self, models: List[Tuple[str, str]]) -> Dict[str, int]:
        """Loads several models concurrently; failures are logged and counted."""
        results = await asyncio.gather(
            *(self.ensure_model(task, model_name) for task, model_name in models),
            return_exceptions=True,
        )
        successful = 0
        for (task, model_name), result in zip(models, results):
            if isinstance(result, BaseException):
                self.log.error("Failed to preload model", task=task, model_name=model_name, error=str(result))
            else:
                successful += 1
        self.log.info(f"Preloaded {successful}/{len(models)} models successfully")
        return {"successful": successful, "total": len(models)}
