"""
Execution Context - State owned by a single flow run

Everything mutable during a run lives here: the work queue, the executed set,
the variable environment and the trace. A new context is built for every
run, so concurrent runs never share state.
"""

import asyncio
import copy
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Deque, Dict, List, Optional, Set

from promptstudio.flow_engine.graph import Flow, FlowEdge, FlowNode
from promptstudio.flow_engine.models import NodeExecutionRecord
from promptstudio.flow_engine.variable_resolver import VariableResolver, node_output_key

if TYPE_CHECKING:
    from promptstudio.services.ai.router import ModelProviderRouter

logger = logging.getLogger(__name__)


@dataclass
class ExecutionContext:
    """
    Context provided to node handlers during execution
    """
    flow: Flow
    execution_id: str
    router: Optional['ModelProviderRouter'] = None
    default_model: str = 'gpt-3.5-turbo'
    cancel_event: Optional[asyncio.Event] = None

    # Insertion ordered; keys are only ever added
    environment: Dict[str, Any] = field(default_factory=dict)

    queue: Deque[FlowNode] = field(default_factory=deque)
    executed: Set[str] = field(default_factory=set)
    records: List[NodeExecutionRecord] = field(default_factory=list)

    # Edges deactivated by branch decisions or skipped sources
    inactive_edges: Set[tuple] = field(default_factory=set)

    @property
    def resolver(self) -> VariableResolver:
        return VariableResolver(self.environment)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def snapshot(self) -> Dict[str, Any]:
        """Copy of the environment for a node's input record"""
        try:
            return copy.deepcopy(self.environment)
        except (TypeError, copy.Error):
            return dict(self.environment)

    def set_node_output(self, node_id: str, output: Any):
        self.environment[node_output_key(node_id)] = output

    def is_edge_active(self, edge: FlowEdge) -> bool:
        return _edge_key(edge) not in self.inactive_edges

    def deactivate(self, edge: FlowEdge):
        self.inactive_edges.add(_edge_key(edge))


def _edge_key(edge: FlowEdge) -> tuple:
    return (edge.id, edge.source, edge.target, edge.source_handle)
