"""
Node Handlers - Executes individual flow nodes by type

Handles:
- Mapping NodeType -> async handler
- Reading each node's typed config from its data map
- Calling the model router for Prompt / LlmCall nodes
- Extension-point types that report they are not implemented yet

New node types are added by registering a handler; the executor loop does
not change:

    registry = build_default_registry()

    @registry.handler(NodeType.TRANSFORM)
    async def transform(node, context):
        ...
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from promptstudio.flow_engine.branching import evaluate_condition
from promptstudio.flow_engine.context import ExecutionContext
from promptstudio.flow_engine.errors import NodeExecutionError
from promptstudio.flow_engine.graph import FlowNode, NodeType
from promptstudio.flow_engine.models import BranchDecision, NotImplementedOutput
from promptstudio.services.ai.base import ModelRequest

logger = logging.getLogger(__name__)

NodeHandler = Callable[[FlowNode, ExecutionContext], Awaitable[Any]]

# Keys read from node data into ModelRequest.parameters
MODEL_PARAMETER_KEYS = ('temperature', 'maxTokens', 'max_tokens', 'topP', 'top_p', 'stop')


@dataclass
class VariableNodeConfig:
    name: str
    default_value: Any = None

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> 'VariableNodeConfig':
        return cls(
            name=str(data.get('name') or '').strip(),
            default_value=data.get('defaultValue', data.get('default_value')),
        )


@dataclass
class PromptNodeConfig:
    content: str
    system_message: Optional[str] = None
    model: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> 'PromptNodeConfig':
        parameters = dict(data.get('parameters') or {})
        for key in MODEL_PARAMETER_KEYS:
            if key in data and key not in parameters:
                parameters[key] = data[key]

        return cls(
            content=str(data.get('content') or ''),
            system_message=data.get('systemMessage', data.get('system_message')) or None,
            model=data.get('model') or data.get('modelId') or None,
            parameters=parameters,
        )


@dataclass
class ConditionalNodeConfig:
    condition: Any = None

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> 'ConditionalNodeConfig':
        return cls(condition=data.get('condition'))


@dataclass
class OutputNodeConfig:
    template: Optional[str] = None

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> 'OutputNodeConfig':
        return cls(template=data.get('template') or None)


class NodeHandlerRegistry:
    """
    Registry of node handlers keyed by NodeType.

    Not a module-level singleton: a test or a caller can build its own
    without touching shared state.
    """

    def __init__(self):
        self._handlers: Dict[NodeType, NodeHandler] = {}

    def register(self, node_type: NodeType, handler: NodeHandler):
        """Register (or replace) the handler for a node type"""
        self._handlers[node_type] = handler

    def handler(self, node_type: NodeType):
        """Decorator form of register()"""
        def decorator(func: NodeHandler) -> NodeHandler:
            self.register(node_type, func)
            return func
        return decorator

    def get(self, node_type: NodeType) -> Optional[NodeHandler]:
        return self._handlers.get(node_type)

    def registered_types(self):
        return list(self._handlers.keys())

    async def dispatch(self, node: FlowNode, context: ExecutionContext) -> Any:
        """
        Run the handler for node's type.

        Args:
            node: Node to execute
            context: Current run's execution context

        Returns:
            Handler output. Unknown or unregistered types produce a
            NotImplementedOutput instead of raising.
        """
        node_type = node.node_type
        if node_type is None:
            logger.warning(f"Unsupported node type '{node.type}' on node {node.id}")
            return NotImplementedOutput(node.type, f"Unsupported node type: {node.type}")

        handler = self._handlers.get(node_type)
        if handler is None:
            return NotImplementedOutput(node_type.value, f"Node type '{node_type.value}' has no handler")

        return await handler(node, context)


async def execute_variable_node(node: FlowNode, context: ExecutionContext) -> Any:
    config = VariableNodeConfig.from_data(node.data)

    if config.name in context.environment:
        return context.environment[config.name]
    if config.default_value is not None:
        return config.default_value
    return f"Variable '{config.name}' not found"


async def execute_prompt_node(node: FlowNode, context: ExecutionContext) -> Any:
    """
    Interpolate the prompt and run it through the model router.

    Raises:
        NodeExecutionError: No router configured or the model call failed
    """
    config = PromptNodeConfig.from_data(node.data)

    if context.router is None:
        raise NodeExecutionError("Model execution failed: no model router configured", node.id)

    resolver = context.resolver
    request = ModelRequest(
        model_id=config.model or context.default_model,
        prompt=resolver.resolve(config.content),
        system_message=resolver.resolve(config.system_message) if config.system_message else None,
        parameters=dict(config.parameters),
        variables=context.snapshot(),
    )

    logger.debug(f"Node {node.id}: calling model {request.model_id}")
    response = await context.router.execute(request)

    if not response.success:
        raise NodeExecutionError(f"Model execution failed: {response.error_message}", node.id)

    return response.content or "No content returned"


async def execute_conditional_node(node: FlowNode, context: ExecutionContext) -> BranchDecision:
    config = ConditionalNodeConfig.from_data(node.data)
    result = evaluate_condition(config.condition, context.environment)
    logger.debug(f"Node {node.id}: condition evaluated to {result}")
    return BranchDecision(result=result, condition=config.condition)


async def execute_output_node(node: FlowNode, context: ExecutionContext) -> Any:
    config = OutputNodeConfig.from_data(node.data)
    if config.template:
        return context.resolver.resolve(config.template)
    return dict(context.environment)


async def execute_not_implemented(node: FlowNode, context: ExecutionContext) -> NotImplementedOutput:
    node_type = node.node_type.value if node.node_type else node.type
    return NotImplementedOutput(node_type, f"{node_type} node execution is not implemented yet")


# Types that exist in the builder but have no behaviour yet
EXTENSION_TYPES = (
    NodeType.INPUT,
    NodeType.TRANSFORM,
    NodeType.TEMPLATE,
    NodeType.LOOP,
    NodeType.PARALLEL,
    NodeType.API_CALL,
    NodeType.VALIDATION,
    NodeType.AGGREGATION,
)


def build_default_registry() -> NodeHandlerRegistry:
    """Registry with the built-in handlers for every NodeType"""
    registry = NodeHandlerRegistry()
    registry.register(NodeType.VARIABLE, execute_variable_node)
    registry.register(NodeType.PROMPT, execute_prompt_node)
    registry.register(NodeType.LLM_CALL, execute_prompt_node)
    registry.register(NodeType.CONDITIONAL, execute_conditional_node)
    registry.register(NodeType.OUTPUT, execute_output_node)
    for node_type in EXTENSION_TYPES:
        registry.register(node_type, execute_not_implemented)
    return registry
