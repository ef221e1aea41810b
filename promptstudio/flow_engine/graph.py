"""
Flow Graph Model - Nodes, edges and structural validation

A flow is a directed graph of typed nodes. This module holds the data
structures, (de)serialisation of the persisted definition format:

    {
        "name": "...",
        "description": "...",
        "flowData": {
            "nodes": [{"id", "type", "position", "data"}],
            "edges": [{"id", "source", "target", "type"?, "sourceHandle"?}]
        }
    }

and the structural checks run before execution. Cycles are reported as
warnings only; the executor has its own fallback for graphs without a
starting node.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from promptstudio.flow_engine.errors import StructuralError

logger = logging.getLogger(__name__)


class FlowStatus(str, Enum):
    """Flow lifecycle status"""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class NodeType(str, Enum):
    """Node types available in the flow builder"""
    INPUT = "input"
    PROMPT = "prompt"
    LLM_CALL = "llmcall"
    VARIABLE = "variable"
    CONDITIONAL = "conditional"
    TRANSFORM = "transform"
    OUTPUT = "output"
    TEMPLATE = "template"
    LOOP = "loop"
    PARALLEL = "parallel"
    API_CALL = "apicall"
    VALIDATION = "validation"
    AGGREGATION = "aggregation"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional['NodeType']:
        """Case-insensitive lookup; None for unknown types"""
        if not value:
            return None
        normalized = value.strip().lower().replace('_', '').replace('-', '')
        for member in cls:
            if member.value == normalized:
                return member
        return None


# Config keys each node type needs before it can run
REQUIRED_FIELDS: Dict[NodeType, List[str]] = {
    NodeType.PROMPT: ['content'],
    NodeType.LLM_CALL: ['content'],
    NodeType.VARIABLE: ['name'],
    NodeType.CONDITIONAL: ['condition'],
}


@dataclass
class FlowNode:
    """Single typed unit of work"""
    id: str
    type: str
    data: Dict[str, Any] = field(default_factory=dict)
    position: Dict[str, float] = field(default_factory=lambda: {'x': 0, 'y': 0})

    @property
    def node_type(self) -> Optional[NodeType]:
        return NodeType.parse(self.type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'position': dict(self.position),
            'data': dict(self.data),
        }


@dataclass
class FlowEdge:
    """Directed connection, optionally labelled with a branch handle"""
    id: str
    source: str
    target: str
    source_handle: Optional[str] = None
    type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {'id': self.id, 'source': self.source, 'target': self.target}
        if self.type:
            result['type'] = self.type
        if self.source_handle:
            result['sourceHandle'] = self.source_handle
        return result


@dataclass
class ValidationIssue:
    """A single validation finding"""
    code: str
    message: str
    node_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'code': self.code, 'message': self.message, 'nodeId': self.node_id}


@dataclass
class FlowValidationResult:
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            'isValid': self.is_valid,
            'errors': [e.to_dict() for e in self.errors],
            'warnings': [w.to_dict() for w in self.warnings],
        }


@dataclass
class Flow:
    """
    Prompt flow definition.

    Nodes keep their declared order; the executor relies on it for the
    "first node" fallback.
    """
    id: str
    name: str
    nodes: List[FlowNode] = field(default_factory=list)
    edges: List[FlowEdge] = field(default_factory=list)
    description: str = ""
    version: str = "1.0.0"
    status: FlowStatus = FlowStatus.DRAFT
    tags: List[str] = field(default_factory=list)

    # --- lookups -------------------------------------------------------

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_ids(self) -> Set[str]:
        return {node.id for node in self.nodes}

    def incoming(self, node_id: str) -> List[FlowEdge]:
        return [edge for edge in self.edges if edge.target == node_id]

    def outgoing(self, node_id: str) -> List[FlowEdge]:
        return [edge for edge in self.edges if edge.source == node_id]

    def predecessors(self, node_id: str) -> List[str]:
        return [edge.source for edge in self.incoming(node_id)]

    def starting_nodes(self) -> List[FlowNode]:
        """Nodes with no incoming edge, in declared order"""
        targets = {edge.target for edge in self.edges}
        return [node for node in self.nodes if node.id not in targets]

    # --- structure -----------------------------------------------------

    def is_structurally_valid(self) -> bool:
        """At least one node, and every edge endpoint exists"""
        if not self.nodes:
            return False
        ids = self.node_ids()
        return all(edge.source in ids and edge.target in ids for edge in self.edges)

    def ensure_structurally_valid(self):
        """
        Raise StructuralError describing the first structural problem.

        Raises:
            StructuralError: No nodes, duplicate node ids or dangling edges
        """
        for issue in self._structural_issues():
            raise StructuralError(issue.message, flow_id=self.id)

    def _structural_issues(self) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []

        if not self.nodes:
            issues.append(ValidationIssue('no_nodes', "Flow must contain at least one node"))
            return issues

        seen: Set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                issues.append(ValidationIssue('duplicate_node', f"Duplicate node id: {node.id}", node.id))
            seen.add(node.id)

        for edge in self.edges:
            for endpoint, node_id in (('source', edge.source), ('target', edge.target)):
                if node_id not in seen:
                    issues.append(ValidationIssue(
                        'missing_node',
                        f"Edge {edge.id} references missing {endpoint} node: {node_id}"
                    ))
        return issues

    def find_cycle(self) -> Optional[List[str]]:
        """
        Return one cycle as a list of node ids (first id repeated at the end),
        or None when the graph is acyclic.
        """
        adjacency: Dict[str, List[str]] = {node.id: [] for node in self.nodes}
        for edge in self.edges:
            if edge.source in adjacency and edge.target in adjacency:
                adjacency[edge.source].append(edge.target)

        WHITE, GREY, BLACK = 0, 1, 2
        color = {node_id: WHITE for node_id in adjacency}

        for root in adjacency:
            if color[root] != WHITE:
                continue
            path = [root]
            color[root] = GREY
            stack = [iter(adjacency[root])]
            while stack:
                child = next(stack[-1], None)
                if child is None:
                    stack.pop()
                    color[path.pop()] = BLACK
                elif color[child] == GREY:
                    return path[path.index(child):] + [child]
                elif color[child] == WHITE:
                    color[child] = GREY
                    path.append(child)
                    stack.append(iter(adjacency[child]))
        return None

    def _reachable_from_start(self) -> Set[str]:
        starts = self.starting_nodes() or self.nodes[:1]
        reachable = {node.id for node in starts}
        frontier = list(reachable)
        while frontier:
            current = frontier.pop()
            for edge in self.outgoing(current):
                if edge.target not in reachable:
                    reachable.add(edge.target)
                    frontier.append(edge.target)
        return reachable

    def validate(self) -> FlowValidationResult:
        """
        Full validation: structural errors, missing required config and
        advisory warnings (cycles, unknown types, unreachable nodes).
        """
        result = FlowValidationResult(errors=self._structural_issues())
        if not self.nodes:
            return result

        output_nodes = 0
        for node in self.nodes:
            node_type = node.node_type
            if node_type is None:
                result.warnings.append(ValidationIssue(
                    'unknown_type', f"Unknown node type: {node.type}", node.id
                ))
                continue

            if node_type == NodeType.OUTPUT:
                output_nodes += 1

            for key in REQUIRED_FIELDS.get(node_type, []):
                value = node.data.get(key)
                if value is None or value == '':
                    result.errors.append(ValidationIssue(
                        'missing_field',
                        f"Node {node.id} ({node_type.value}) is missing required field '{key}'",
                        node.id
                    ))

        if output_nodes > 1:
            result.warnings.append(ValidationIssue(
                'multiple_outputs',
                f"Flow has {output_nodes} output nodes; the last completed node provides the result"
            ))

        cycle = self.find_cycle()
        if cycle:
            result.warnings.append(ValidationIssue(
                'cycle',
                f"Flow contains a cycle: {' -> '.join(cycle)}; nodes in it may never run"
            ))

        if result.is_valid:
            reachable = self._reachable_from_start()
            for node in self.nodes:
                if node.id not in reachable:
                    result.warnings.append(ValidationIssue(
                        'unreachable', f"Node {node.id} is not reachable from any starting node", node.id
                    ))

        return result

    # --- serialisation -------------------------------------------------

    @classmethod
    def from_definition(cls, definition: Dict[str, Any], flow_id: Optional[str] = None) -> 'Flow':
        """
        Build a Flow from the persisted/import definition format.

        Args:
            definition: Dict with name, description and flowData
            flow_id: Id to assign (falls back to definition['id'])

        Returns:
            Flow instance (not yet validated)
        """
        flow_data = definition.get('flowData') or definition.get('flow_data') or {}
        if isinstance(flow_data, str):
            try:
                flow_data = json.loads(flow_data)
            except ValueError as e:
                raise StructuralError(f"Invalid flowData JSON: {e}", flow_id=flow_id)

        nodes = [
            FlowNode(
                id=str(raw.get('id', '')),
                type=str(raw.get('type') or ''),
                data=dict(raw.get('data') or raw.get('config') or {}),
                position=dict(raw.get('position') or {'x': 0, 'y': 0}),
            )
            for raw in flow_data.get('nodes') or []
        ]
        edges = [
            FlowEdge(
                id=str(raw.get('id') or f"edge-{idx + 1}"),
                source=str(raw.get('source', '')),
                target=str(raw.get('target', '')),
                source_handle=raw.get('sourceHandle', raw.get('source_handle')),
                type=raw.get('type'),
            )
            for idx, raw in enumerate(flow_data.get('edges') or [])
        ]

        status = definition.get('status') or FlowStatus.DRAFT.value
        try:
            status = FlowStatus(str(status).lower())
        except ValueError:
            logger.warning(f"Unknown flow status '{status}', using draft")
            status = FlowStatus.DRAFT

        return cls(
            id=str(flow_id or definition.get('id') or ''),
            name=definition.get('name', ''),
            description=definition.get('description', '') or '',
            version=definition.get('version', '1.0.0') or '1.0.0',
            status=status,
            tags=list(definition.get('tags') or []),
            nodes=nodes,
            edges=edges,
        )

    def to_definition(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'version': self.version,
            'status': self.status.value,
            'tags': list(self.tags),
            'flowData': {
                'nodes': [node.to_dict() for node in self.nodes],
                'edges': [edge.to_dict() for edge in self.edges],
            },
        }
