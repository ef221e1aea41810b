"""
Prompt Flow Models - Persisted flows and their execution traces
"""
import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from promptstudio.database import Base


class PromptFlowModel(Base):
    """
    Prompt Flow - Visual flow definition

    The node/edge graph is stored as the flowData JSON document.
    """
    __tablename__ = 'prompt_flows'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    name = Column(String(255), nullable=False)
    description = Column(Text, default='')
    version = Column(String(50), default='1.0.0', nullable=False)
    status = Column(String(50), default='draft', nullable=False)  # draft, published, archived
    tags = Column(JSON, default=list)

    # {nodes: [...], edges: [...]}
    flow_data = Column(JSON, nullable=False)

    executions = relationship('FlowExecutionModel', back_populates='flow', cascade='all, delete-orphan')

    __table_args__ = (
        Index('idx_prompt_flows_status', 'status'),
    )

    def to_definition(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description or '',
            'version': self.version,
            'status': self.status,
            'tags': list(self.tags or []),
            'flowData': self.flow_data or {},
        }

    def to_dict(self):
        result = self.to_definition()
        result['created_at'] = self.created_at.isoformat() if self.created_at else None
        result['updated_at'] = self.updated_at.isoformat() if self.updated_at else None
        return result


class FlowExecutionModel(Base):
    """
    Flow Execution - One run of a prompt flow
    """
    __tablename__ = 'flow_executions'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    flow_id = Column(String(36), ForeignKey('prompt_flows.id', ondelete='CASCADE'), nullable=False)

    # pending, running, completed, failed, cancelled
    status = Column(String(50), default='pending', nullable=False)

    input_variables = Column(JSON)
    output = Column(JSON)
    error = Column(Text)
    execution_time_ms = Column(Integer)

    started_at = Column(DateTime, default=datetime.utcnow)
    finished_at = Column(DateTime)

    flow = relationship('PromptFlowModel', back_populates='executions')
    node_executions = relationship(
        'NodeExecutionModel',
        back_populates='execution',
        cascade='all, delete-orphan',
        order_by='NodeExecutionModel.position'
    )

    __table_args__ = (
        Index('idx_flow_executions_flow_id', 'flow_id'),
        Index('idx_flow_executions_status', 'status'),
    )

    def to_dict(self):
        return {
            'executionId': self.id,
            'flowId': self.flow_id,
            'status': self.status,
            'variables': self.input_variables or {},
            'output': self.output,
            'error': self.error,
            'executionTimeMs': self.execution_time_ms,
            'startedAt': self.started_at.isoformat() if self.started_at else None,
            'finishedAt': self.finished_at.isoformat() if self.finished_at else None,
            'nodeExecutions': [node.to_dict() for node in self.node_executions],
        }


class NodeExecutionModel(Base):
    """
    Node Execution - Trace entry for one node of a flow execution
    """
    __tablename__ = 'node_executions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    execution_id = Column(String(36), ForeignKey('flow_executions.id', ondelete='CASCADE'), nullable=False)

    # Order in the trace
    position = Column(Integer, nullable=False)

    node_id = Column(String(255), nullable=False)
    node_type = Column(String(50))
    status = Column(String(50), nullable=False)
    input = Column(JSON)
    output = Column(JSON)
    error = Column(Text)

    start_time = Column(DateTime)
    end_time = Column(DateTime)
    duration_ms = Column(Integer)

    execution = relationship('FlowExecutionModel', back_populates='node_executions')

    __table_args__ = (
        Index('idx_node_executions_execution_id', 'execution_id'),
    )

    def to_dict(self):
        return {
            'nodeId': self.node_id,
            'nodeType': self.node_type,
            'status': self.status,
            'input': self.input,
            'output': self.output,
            'error': self.error,
            'startTime': self.start_time.isoformat() if self.start_time else None,
            'endTime': self.end_time.isoformat() if self.end_time else None,
            'durationMs': self.duration_ms,
        }
