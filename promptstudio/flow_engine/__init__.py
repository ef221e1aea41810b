"""
Flow Engine - Prompt flow execution system

This module handles execution of prompt flows: directed graphs of typed
nodes whose outputs are threaded through a shared variable environment.
"""

from promptstudio.flow_engine.errors import (
    FlowCancelledError,
    FlowEngineError,
    NodeExecutionError,
    StructuralError,
    ValidationError,
)
from promptstudio.flow_engine.executor import FlowExecutor
from promptstudio.flow_engine.graph import Flow, FlowEdge, FlowNode, FlowStatus, NodeType
from promptstudio.flow_engine.handlers import NodeHandlerRegistry, build_default_registry
from promptstudio.flow_engine.models import (
    FlowExecutionResult,
    FlowExecutionStatus,
    NodeExecutionRecord,
    NodeExecutionStatus,
)
from promptstudio.flow_engine.variable_resolver import VariableResolver

__all__ = [
    'FlowExecutor',
    'Flow',
    'FlowNode',
    'FlowEdge',
    'FlowStatus',
    'NodeType',
    'NodeHandlerRegistry',
    'build_default_registry',
    'FlowExecutionResult',
    'FlowExecutionStatus',
    'NodeExecutionRecord',
    'NodeExecutionStatus',
    'VariableResolver',
    'FlowEngineError',
    'StructuralError',
    'NodeExecutionError',
    'ValidationError',
    'FlowCancelledError',
]
