"""
Flow Executor - Main orchestrator for flow execution

Responsibilities:
- Pick starting nodes
- Schedule nodes in FIFO order once every predecessor is terminal
- Dispatch nodes to their handlers
- Merge completed outputs into the variable environment
- Route conditional branches (unchosen paths are recorded as skipped)
- Honour the cancel signal between nodes
"""

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import uuid4

from promptstudio.flow_engine.context import ExecutionContext
from promptstudio.flow_engine.errors import FlowCancelledError, FlowEngineError
from promptstudio.flow_engine.graph import Flow, FlowNode
from promptstudio.flow_engine.handlers import NodeHandlerRegistry, build_default_registry
from promptstudio.flow_engine.models import (
    BranchDecision,
    FlowExecutionResult,
    NodeExecutionRecord,
    NodeExecutionStatus,
)

if TYPE_CHECKING:
    from promptstudio.services.ai.router import ModelProviderRouter

logger = logging.getLogger(__name__)

DEFAULT_FLOW_OUTPUT = "Flow completed successfully"


class FlowExecutor:
    """
    Executes prompt flows.

    The executor holds no per-run state; every call to execute() builds its
    own ExecutionContext, so one instance can serve concurrent runs.

    Usage:
        executor = FlowExecutor(router=router)
        result = await executor.execute(flow, {'customer_query': 'Where is my refund?'})
    """

    def __init__(
        self,
        router: Optional['ModelProviderRouter'] = None,
        handlers: Optional[NodeHandlerRegistry] = None,
        default_model: str = 'gpt-3.5-turbo'
    ):
        """
        Initialize flow executor.

        Args:
            router: Model provider router used by Prompt/LlmCall nodes
            handlers: Node handler registry (defaults to the built-in handlers)
            default_model: Model used when a prompt node names none
        """
        self.router = router
        self.handlers = handlers or build_default_registry()
        self.default_model = default_model

    async def execute(
        self,
        flow: Flow,
        variables: Optional[Dict[str, Any]] = None,
        execution_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
        records: Optional[List[NodeExecutionRecord]] = None,
    ) -> FlowExecutionResult:
        """
        Execute a flow.

        Args:
            flow: Flow to run
            variables: Initial variable environment
            execution_id: Id for this run (generated when omitted)
            cancel_event: Set to stop the run before the next node
            records: List that receives each node record as the node finishes.
                The caller keeps the partial trace if the run is interrupted.

        Returns:
            FlowExecutionResult. Engine-level errors are returned as a failed
            result, never raised.
        """
        context = ExecutionContext(
            flow=flow,
            execution_id=execution_id or str(uuid4()),
            router=self.router,
            default_model=self.default_model,
            cancel_event=cancel_event,
            environment=dict(variables or {}),
        )
        if records is not None:
            context.records = records
        started_at = datetime.utcnow()
        logger.info(f"Executing flow {flow.id} ({flow.name}) as {context.execution_id}")

        try:
            flow.ensure_structurally_valid()
            await self._run(context)

        except FlowCancelledError as e:
            logger.info(f"Flow execution cancelled: {context.execution_id}")
            return FlowExecutionResult(
                success=False,
                execution_id=context.execution_id,
                node_executions=context.records,
                execution_time_ms=_elapsed_ms(started_at),
                error=e.message,
                cancelled=True,
            )

        except Exception as e:
            message = e.message if isinstance(e, FlowEngineError) else str(e)
            logger.error(f"Flow execution failed: {context.execution_id} - {message}", exc_info=True)
            return FlowExecutionResult(
                success=False,
                execution_id=context.execution_id,
                node_executions=context.records,
                execution_time_ms=_elapsed_ms(started_at),
                error=message,
            )

        output = self._final_output(context.records)
        logger.info(
            f"Flow execution completed: {context.execution_id} "
            f"({len(context.records)} nodes, {_elapsed_ms(started_at)}ms)"
        )
        return FlowExecutionResult(
            success=True,
            execution_id=context.execution_id,
            output=output,
            node_executions=context.records,
            execution_time_ms=_elapsed_ms(started_at),
        )

    async def _run(self, context: ExecutionContext):
        flow = context.flow

        # No node without incoming edges (fully cyclic graph): start from the first one
        starting_nodes = flow.starting_nodes() or flow.nodes[:1]
        context.queue.extend(starting_nodes)

        while context.queue:
            if context.cancelled:
                self._cancel_queued(context)
                raise FlowCancelledError(execution_id=context.execution_id)

            node = context.queue.popleft()
            if node.id in context.executed:
                continue

            if self._all_incoming_inactive(node, context):
                record = self._skip(node)
            else:
                record = await self._execute_node(node, context)

            context.records.append(record)
            context.executed.add(node.id)
            self._apply_record(node, record, context)
            self._enqueue_ready_successors(node, context)

    async def _execute_node(self, node: FlowNode, context: ExecutionContext) -> NodeExecutionRecord:
        record = NodeExecutionRecord(node_id=node.id, node_type=_type_name(node))
        record.start(context.snapshot())
        logger.debug(f"Executing node {node.id} ({record.node_type})")

        try:
            output = await self.handlers.dispatch(node, context)
            record.complete(output)
        except Exception as e:
            message = e.message if isinstance(e, FlowEngineError) else str(e)
            logger.error(f"Node {node.id} failed: {message}", exc_info=True)
            record.fail(message)

        return record

    def _skip(self, node: FlowNode) -> NodeExecutionRecord:
        logger.debug(f"Skipping node {node.id}: no active incoming edge")
        record = NodeExecutionRecord(node_id=node.id, node_type=_type_name(node))
        record.finish_as(NodeExecutionStatus.SKIPPED)
        return record

    def _apply_record(self, node: FlowNode, record: NodeExecutionRecord, context: ExecutionContext):
        outgoing = context.flow.outgoing(node.id)

        if record.status == NodeExecutionStatus.COMPLETED:
            context.set_node_output(node.id, record.output)

            if isinstance(record.output, BranchDecision):
                branch = record.output.branch
                for edge in outgoing:
                    if edge.source_handle and str(edge.source_handle).lower() != branch:
                        context.deactivate(edge)

        elif record.status == NodeExecutionStatus.SKIPPED:
            for edge in outgoing:
                context.deactivate(edge)

    def _all_incoming_inactive(self, node: FlowNode, context: ExecutionContext) -> bool:
        incoming = context.flow.incoming(node.id)
        if not incoming:
            return False
        return not any(context.is_edge_active(edge) for edge in incoming)

    def _enqueue_ready_successors(self, node: FlowNode, context: ExecutionContext):
        flow = context.flow
        for edge in flow.outgoing(node.id):
            if edge.target in context.executed:
                continue
            target = flow.get_node(edge.target)
            if target is None:
                continue
            # AND-join: every predecessor must have a terminal record
            if all(pred in context.executed for pred in flow.predecessors(target.id)):
                context.queue.append(target)

    def _cancel_queued(self, context: ExecutionContext):
        cancelled = set()
        while context.queue:
            node = context.queue.popleft()
            if node.id in context.executed or node.id in cancelled:
                continue
            record = NodeExecutionRecord(node_id=node.id, node_type=_type_name(node))
            record.finish_as(NodeExecutionStatus.CANCELLED, error="Execution cancelled")
            context.records.append(record)
            cancelled.add(node.id)

    def _final_output(self, records: List[NodeExecutionRecord]) -> Any:
        for record in reversed(records):
            if record.status == NodeExecutionStatus.COMPLETED:
                return record.output
        return DEFAULT_FLOW_OUTPUT


def _type_name(node: FlowNode) -> str:
    return node.node_type.value if node.node_type else node.type


def _elapsed_ms(started_at: datetime) -> int:
    return int((datetime.utcnow() - started_at).total_seconds() * 1000)
