"""
Shared pytest fixtures
"""

from typing import Any, Dict, List, Optional

import pytest

from promptstudio.config import TestingConfig
from promptstudio.database import init_db, make_engine, make_session_factory
from promptstudio.flow_engine.graph import Flow, FlowEdge, FlowNode
from promptstudio.services.ai.base import ModelInfo, ModelProvider, ModelRequest, ModelResponse
from promptstudio.services.ai.router import ModelProviderRouter
from promptstudio.services.flow_store import SqlAlchemyFlowStore


class FakeProvider(ModelProvider):
    """Scriptable provider that records every request it executes"""

    def __init__(
        self,
        name: str,
        models: Optional[List[str]] = None,
        content: str = 'fake response',
        available: bool = True,
        error: Optional[Exception] = None,
        responses: Optional[List[ModelResponse]] = None,
    ):
        self.name = name
        self.models = models or []
        self.content = content
        self.available = available
        self.error = error
        self.responses = list(responses or [])
        self.requests: List[ModelRequest] = []
        self.availability_checks = 0

    async def list_models(self) -> List[ModelInfo]:
        return [ModelInfo(id=model, name=model, provider=self.name) for model in self.models]

    async def is_available(self) -> bool:
        self.availability_checks += 1
        return self.available

    async def execute(self, request: ModelRequest) -> ModelResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        return ModelResponse(success=True, content=f"{self.content}: {request.prompt}", tokens_used=3)


@pytest.fixture
def test_config():
    return TestingConfig()


@pytest.fixture
def fake_provider():
    return FakeProvider('copilot', models=['gpt-4', 'gpt-3.5-turbo'])


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def router(fake_provider):
    return ModelProviderRouter([fake_provider])


def build_flow(
    nodes: List[Dict[str, Any]],
    edges: Optional[List[Any]] = None,
    flow_id: str = 'flow-1',
    name: str = 'Test Flow'
) -> Flow:
    """
    Build a Flow from compact node dicts and edge tuples.

    nodes: [{'id': 'a', 'type': 'variable', 'data': {...}}]
    edges: [('a', 'b'), ('c', 'd', 'true')]  (third item is the source handle)
    """
    flow_nodes = [
        FlowNode(id=node['id'], type=node['type'], data=dict(node.get('data', {})))
        for node in nodes
    ]
    flow_edges = []
    for idx, edge in enumerate(edges or []):
        source, target = edge[0], edge[1]
        handle = edge[2] if len(edge) > 2 else None
        flow_edges.append(FlowEdge(id=f"e{idx + 1}", source=source, target=target, source_handle=handle))
    return Flow(id=flow_id, name=name, nodes=flow_nodes, edges=flow_edges)


@pytest.fixture
def make_flow():
    return build_flow


@pytest.fixture
def store():
    """Flow store on a private in-memory SQLite database"""
    engine = make_engine('sqlite://')
    init_db(bind=engine)
    yield SqlAlchemyFlowStore(make_session_factory(engine))
    engine.dispose()
