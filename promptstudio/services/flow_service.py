"""
Flow Service - Load, validate, execute and persist prompt flows.

Owns what the executor deliberately does not: storage, full validation
before a run, the aggregate timeout and the map of running executions used
by stop_execution().
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import uuid4

from promptstudio.config import Config, get_config
from promptstudio.flow_engine.errors import ValidationError
from promptstudio.flow_engine.executor import FlowExecutor
from promptstudio.flow_engine.graph import Flow, FlowValidationResult
from promptstudio.flow_engine.handlers import NodeHandlerRegistry
from promptstudio.flow_engine.models import FlowExecutionResult, FlowExecutionStatus, NodeExecutionRecord
from promptstudio.services.ai.router import ModelProviderRouter
from promptstudio.services.flow_store import FlowStore

logger = logging.getLogger(__name__)


@dataclass
class FlowExecutionOptions:
    timeout_seconds: Optional[float] = None  # overrides Config.FLOW_EXECUTION_TIMEOUT
    persist: bool = True
    execution_id: Optional[str] = None  # lets the caller stop the run before it returns


class FlowService:
    """
    Usage:
        service = FlowService(SqlAlchemyFlowStore(SessionLocal), build_default_router())
        result = await service.execute_flow(flow_id, {'customer_query': '...'})
    """

    def __init__(
        self,
        store: FlowStore,
        router: ModelProviderRouter,
        config: Optional[Config] = None,
        handlers: Optional[NodeHandlerRegistry] = None
    ):
        self.store = store
        self.router = router
        self.config = config or get_config()
        self.executor = FlowExecutor(
            router=router,
            handlers=handlers,
            default_model=self.config.DEFAULT_MODEL,
        )
        # execution_id -> cancel signal
        self._running: Dict[str, asyncio.Event] = {}

    async def execute_flow(
        self,
        flow_id: str,
        variables: Optional[Dict[str, Any]] = None,
        options: Optional[FlowExecutionOptions] = None
    ) -> FlowExecutionResult:
        """
        Execute a stored flow.

        Args:
            flow_id: Flow id in the store
            variables: Initial variable environment
            options: Timeout override / persistence switch

        Returns:
            FlowExecutionResult (never raises for flow or node problems)
        """
        options = options or FlowExecutionOptions()
        variables = dict(variables or {})
        execution_id = options.execution_id or str(uuid4())

        flow = await self.store.get_flow(flow_id)
        if flow is None:
            logger.warning(f"Flow not found: {flow_id}")
            return FlowExecutionResult(success=False, execution_id=execution_id, error="Flow not found")

        error = self._check_runnable(flow)
        if error:
            return FlowExecutionResult(success=False, execution_id=execution_id, error=error)

        if options.persist:
            await self.store.add_execution(execution_id, flow, variables)

        records: List[NodeExecutionRecord] = []
        try:
            result = await self._run(flow, variables, execution_id, options.timeout_seconds, records)
        except asyncio.CancelledError:
            logger.warning(f"Flow execution task cancelled: {execution_id}")
            if options.persist:
                await self.store.update_execution(
                    execution_id,
                    FlowExecutionStatus.CANCELLED,
                    FlowExecutionResult(
                        success=False,
                        execution_id=execution_id,
                        node_executions=records,
                        error="Execution cancelled",
                        cancelled=True,
                    ),
                )
            raise

        if options.persist:
            await self.store.update_execution(execution_id, result.status, result)

        return result

    async def execute_definition(
        self,
        flow: Flow,
        variables: Optional[Dict[str, Any]] = None,
        timeout_seconds: Optional[float] = None
    ) -> FlowExecutionResult:
        """Run an unsaved flow (test runs from the builder). Nothing is persisted."""
        execution_id = str(uuid4())

        error = self._check_runnable(flow)
        if error:
            return FlowExecutionResult(success=False, execution_id=execution_id, error=error)

        return await self._run(flow, dict(variables or {}), execution_id, timeout_seconds, [])

    async def _run(
        self,
        flow: Flow,
        variables: Dict[str, Any],
        execution_id: str,
        timeout_seconds: Optional[float],
        records: List[NodeExecutionRecord]
    ) -> FlowExecutionResult:
        timeout = timeout_seconds or self.config.FLOW_EXECUTION_TIMEOUT
        cancel_event = asyncio.Event()
        self._running[execution_id] = cancel_event

        try:
            return await asyncio.wait_for(
                self.executor.execute(
                    flow,
                    variables,
                    execution_id=execution_id,
                    cancel_event=cancel_event,
                    records=records,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Flow execution timed out: {execution_id} after {timeout}s")
            return FlowExecutionResult(
                success=False,
                execution_id=execution_id,
                node_executions=list(records),
                error=f"Flow execution timed out after {timeout}s",
            )
        finally:
            self._running.pop(execution_id, None)

    def _check_runnable(self, flow: Flow) -> Optional[str]:
        """Error message when validation reports errors, else None"""
        validation = flow.validate()
        if not validation.errors:
            return None

        error = ValidationError(validation.errors)
        logger.warning(f"Flow {flow.id} failed validation: {error.message}")
        return error.message

    def stop_execution(self, execution_id: str) -> bool:
        """
        Signal a running execution to stop before its next node.

        Returns:
            False when no execution with that id is running
        """
        cancel_event = self._running.get(execution_id)
        if cancel_event is None:
            return False
        cancel_event.set()
        logger.info(f"Stop requested for execution: {execution_id}")
        return True

    def validate_flow(self, flow: Flow) -> FlowValidationResult:
        return flow.validate()

    def get_running_executions(self) -> List[str]:
        return list(self._running.keys())
