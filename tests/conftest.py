import pytest

from graphbatch.core import Batcher
from tests.mocks.graph import FakeGraphAPI, make_graph_executor


@pytest.fixture(autouse=True)
def test_set_env(monkeypatch):
    monkeypatch.delenv("GRAPHBATCH_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("GRAPHBATCH_APP_SECRET", raising=False)
    monkeypatch.delenv("GRAPHBATCH_API_VERSION", raising=False)


@pytest.fixture
def graph_api() -> FakeGraphAPI:
    """
    Create a fake Graph API with a few users.

    Returns
    -------
    FakeGraphAPI
        Fake serving ``123``, ``456`` and ``me``.
    """
    api = FakeGraphAPI()
    api.objects["123"] = {"id": "123", "name": "Alice"}
    api.objects["456"] = {"id": "456", "name": "Bob"}
    api.objects["me"] = {"id": "789", "name": "Carol"}
    return api


@pytest.fixture
def batcher(graph_api: FakeGraphAPI) -> Batcher:
    """
    Create a Batcher whose calls land on ``graph_api``.

    Returns
    -------
    Batcher
        Batcher with a test token.
    """
    return Batcher(access_token="test-token", executor=make_graph_executor(graph_api))
