"""
Flow Store - Storage collaborator for flows and execution traces.

The engine only needs to load a flow and record executions; FlowStore is
that contract. SqlAlchemyFlowStore implements it on the ORM models, running
each blocking session in a worker thread so the event loop keeps serving
other flow runs.
"""

import abc
import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import sessionmaker

from promptstudio.flow_engine.graph import Flow
from promptstudio.flow_engine.models import FlowExecutionResult, FlowExecutionStatus, serialize_value
from promptstudio.models.flow import FlowExecutionModel, NodeExecutionModel, PromptFlowModel

logger = logging.getLogger(__name__)


class FlowStore(abc.ABC):
    """Async storage contract used by FlowService"""

    @abc.abstractmethod
    async def get_flow(self, flow_id: str) -> Optional[Flow]:
        ...

    @abc.abstractmethod
    async def save_flow(self, flow: Flow) -> Flow:
        ...

    @abc.abstractmethod
    async def add_execution(
        self,
        execution_id: str,
        flow: Flow,
        variables: Dict[str, Any],
        status: FlowExecutionStatus = FlowExecutionStatus.RUNNING
    ):
        ...

    @abc.abstractmethod
    async def update_execution(
        self,
        execution_id: str,
        status: FlowExecutionStatus,
        result: Optional[FlowExecutionResult] = None
    ):
        ...

    @abc.abstractmethod
    async def get_execution(self, execution_id: str) -> Optional[Dict[str, Any]]:
        ...


class SqlAlchemyFlowStore(FlowStore):
    """
    FlowStore on SQLAlchemy.

    Usage:
        store = SqlAlchemyFlowStore(SessionLocal)
        flow = await store.get_flow('flow-id')
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def get_flow(self, flow_id: str) -> Optional[Flow]:
        return await asyncio.to_thread(self._get_flow, flow_id)

    def _get_flow(self, flow_id: str) -> Optional[Flow]:
        with self.session_factory() as session:
            row = session.get(PromptFlowModel, flow_id)
            if row is None:
                return None
            return Flow.from_definition(row.to_definition(), flow_id=row.id)

    async def save_flow(self, flow: Flow) -> Flow:
        """Insert or update a flow. A flow without an id gets one."""
        return await asyncio.to_thread(self._save_flow, flow)

    def _save_flow(self, flow: Flow) -> Flow:
        definition = flow.to_definition()

        with self.session_factory() as session:
            row = session.get(PromptFlowModel, flow.id) if flow.id else None
            if row is None:
                row = PromptFlowModel(id=flow.id or str(uuid.uuid4()))
                session.add(row)

            row.name = flow.name
            row.description = flow.description
            row.version = flow.version
            row.status = flow.status.value
            row.tags = list(flow.tags)
            row.flow_data = definition['flowData']
            session.commit()

            flow.id = row.id

        logger.info(f"Saved flow: {flow.id} ({flow.name})")
        return flow

    async def add_execution(
        self,
        execution_id: str,
        flow: Flow,
        variables: Dict[str, Any],
        status: FlowExecutionStatus = FlowExecutionStatus.RUNNING
    ):
        await asyncio.to_thread(self._add_execution, execution_id, flow, variables, status)

    def _add_execution(
        self,
        execution_id: str,
        flow: Flow,
        variables: Dict[str, Any],
        status: FlowExecutionStatus
    ):
        with self.session_factory() as session:
            session.add(FlowExecutionModel(
                id=execution_id,
                flow_id=flow.id,
                status=status.value,
                input_variables=serialize_value(dict(variables or {})),
                started_at=datetime.utcnow(),
            ))
            session.commit()

        logger.debug(f"Recorded execution {execution_id} for flow {flow.id}")

    async def update_execution(
        self,
        execution_id: str,
        status: FlowExecutionStatus,
        result: Optional[FlowExecutionResult] = None
    ):
        """
        Update status and, when a result is given, the output and node trace.

        Raises:
            KeyError: Unknown execution id
        """
        await asyncio.to_thread(self._update_execution, execution_id, status, result)

    def _update_execution(
        self,
        execution_id: str,
        status: FlowExecutionStatus,
        result: Optional[FlowExecutionResult]
    ):
        with self.session_factory() as session:
            row = session.get(FlowExecutionModel, execution_id)
            if row is None:
                raise KeyError(f"Execution not found: {execution_id}")

            row.status = status.value

            if result is not None:
                row.output = serialize_value(result.output)
                row.error = result.error
                row.execution_time_ms = result.execution_time_ms
                row.finished_at = datetime.utcnow()

                row.node_executions = [
                    _node_row(position, record.to_dict())
                    for position, record in enumerate(result.node_executions)
                ]

            session.commit()

    async def get_execution(self, execution_id: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._get_execution, execution_id)

    def _get_execution(self, execution_id: str) -> Optional[Dict[str, Any]]:
        with self.session_factory() as session:
            row = session.get(FlowExecutionModel, execution_id)
            return row.to_dict() if row else None


def _node_row(position: int, record: Dict[str, Any]) -> NodeExecutionModel:
    return NodeExecutionModel(
        position=position,
        node_id=record['nodeId'],
        node_type=record['nodeType'],
        status=record['status'],
        input=record['input'],
        output=record['output'],
        error=record['error'],
        start_time=_parse_time(record['startTime']),
        end_time=_parse_time(record['endTime']),
        duration_ms=record['durationMs'],
    )


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None
