"""Unit tests for the embedding model manager."""

import asyncio

import pytest

from docsearch.application.ports.embedding_model_port import ModelLoadError
from docsearch.infrastructure.embedding_models.model_manager import ModelManager
from tests.unit.fakes import FakeLoader


def _manager(tmp_path, loader, fallbacks=None, max_retries=3, expected_dimension=4) -> ModelManager:
    return ModelManager(
        loader=loader,
        models_path=str(tmp_path),
        max_retries=max_retries,
        retry_delay=0,
        fallback_models=fallbacks if fallbacks is not None else {"x": "fallback/model"},
        expected_dimension=expected_dimension,
    )


async def test_concurrent_callers_share_a_single_load(tmp_path) -> None:
    """Ten concurrent ensure_model calls trigger exactly one load."""
    loader = FakeLoader(delay=0.05)
    manager = _manager(tmp_path, loader)

    handles = await asyncio.gather(*(manager.ensure_model("x", "y") for _ in range(10)))

    assert loader.remote_calls == ["y"]
    assert all(h is handles[0] for h in handles)
    assert manager.has_model("x", "y")


async def test_cached_model_is_returned_without_loading(tmp_path) -> None:
    loader = FakeLoader()
    manager = _manager(tmp_path, loader)
    first = await manager.ensure_model("x", "y")
    second = await manager.ensure_model("x", "y")
    assert first is second
    assert manager.get_model("x", "y") is first
    assert manager.get_model("x", "other") is None
    assert len(loader.remote_calls) == 1


async def test_local_copy_is_preferred(tmp_path) -> None:
    (tmp_path / "org_model").mkdir()
    loader = FakeLoader()
    manager = _manager(tmp_path, loader)

    await manager.ensure_model("x", "org/model")

    assert loader.local_calls == ["org/model"]
    assert loader.remote_calls == []
    assert manager.local_model_path("org/model") == str(tmp_path / "org_model")


async def test_broken_local_copy_falls_through_to_download(tmp_path) -> None:
    (tmp_path / "y").mkdir()
    loader = FakeLoader()

    def broken_local(task, model_name, local_path, options):
        loader.local_calls.append(model_name)
        raise OSError("corrupt")

    loader.load_local = broken_local
    manager = _manager(tmp_path, loader)

    model = await manager.ensure_model("x", "y")

    assert model.name == "y"
    assert loader.remote_calls == ["y"]


async def test_retries_then_falls_back(tmp_path) -> None:
    """The requested model is attempted max_retries + 1 times before the fallback."""
    loader = FakeLoader(broken={"y"})
    manager = _manager(tmp_path, loader, max_retries=2)

    model = await manager.ensure_model("x", "y")

    assert loader.remote_calls == ["y", "y", "y", "fallback/model"]
    assert model.name == "fallback/model"
    assert manager.has_model("x", "y")


async def test_terminal_error_names_task_and_both_models(tmp_path) -> None:
    loader = FakeLoader(broken={"y", "fallback/model"})
    manager = _manager(tmp_path, loader, max_retries=1)

    with pytest.raises(ModelLoadError) as exc_info:
        await manager.ensure_model("x", "y")

    message = str(exc_info.value)
    assert "(y)" in message and "fallback/model" in message and "task x" in message
    assert exc_info.value.task == "x"
    assert not manager.has_model("x", "y")
    assert manager.get_loading_status() == {"loaded": [], "loading": []}


async def test_missing_fallback_is_terminal(tmp_path) -> None:
    loader = FakeLoader(broken={"y"})
    manager = _manager(tmp_path, loader, fallbacks={}, max_retries=0)
    with pytest.raises(ModelLoadError):
        await manager.ensure_model("x", "y")
    assert loader.remote_calls == ["y"]


async def test_failed_load_can_be_retried_later(tmp_path) -> None:
    loader = FakeLoader(broken={"y", "fallback/model"})
    manager = _manager(tmp_path, loader, max_retries=0)
    with pytest.raises(ModelLoadError):
        await manager.ensure_model("x", "y")

    loader.broken.clear()
    model = await manager.ensure_model("x", "y")
    assert model.name == "y"


async def test_loading_status_reports_in_flight_keys(tmp_path) -> None:
    loader = FakeLoader(delay=0.1)
    manager = _manager(tmp_path, loader)

    pending = asyncio.create_task(manager.ensure_model("x", "y"))
    await asyncio.sleep(0.02)
    assert manager.get_loading_status()["loading"] == [("x", "y")]

    await pending
    assert manager.get_loading_status() == {"loaded": [("x", "y")], "loading": []}


async def test_clear_model_and_clear_all(tmp_path) -> None:
    manager = _manager(tmp_path, FakeLoader())
    await manager.ensure_model("x", "a")
    await manager.ensure_model("x", "b")

    assert manager.clear_model("x", "a") is True
    assert manager.clear_model("x", "a") is False
    assert manager.list_models() == [("x", "b")]
    assert manager.clear_all_models() == 1
    assert manager.list_models() == []


async def test_preload_counts_failures(tmp_path) -> None:
    loader = FakeLoader(broken={"bad", "fallback/model"})
    manager = _manager(tmp_path, loader, max_retries=0)
    summary = await manager.preload_models([("x", "good"), ("x", "bad")])
    assert summary == {"successful": 1, "total": 2}


async def test_model_with_the_wrong_dimension_falls_back_without_retrying(tmp_path) -> None:
    loader = FakeLoader(dimensions={"y": 384})
    manager = _manager(tmp_path, loader, max_retries=3)

    model = await manager.ensure_model("x", "y")

    assert loader.remote_calls == ["y", "fallback/model"]
    assert model.name == "fallback/model"
    assert model.get_model_info()["dimension"] == 4


async def test_fallback_with_the_wrong_dimension_is_a_load_error(tmp_path) -> None:
    loader = FakeLoader(broken={"y"}, dimensions={"fallback/model": 384})
    manager = _manager(tmp_path, loader, max_retries=0)

    with pytest.raises(ModelLoadError) as exc_info:
        await manager.ensure_model("x", "y")

    assert "384" in str(exc_info.value.__cause__)
    assert not manager.has_model("x", "y")


async def test_dimension_check_can_be_disabled(tmp_path) -> None:
    loader = FakeLoader(dimensions={"y": 384})
    manager = _manager(tmp_path, loader, expected_dimension=0)
    model = await manager.ensure_model("x", "y")
    assert model.name == "y"
