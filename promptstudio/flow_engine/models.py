"""
Execution records produced by a flow run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class NodeExecutionStatus(str, Enum):
    """Node execution status"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"  # Unchosen conditional branch


class FlowExecutionStatus(str, Enum):
    """Flow run status"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class NotImplementedOutput:
    """Output of a node type that has no behaviour yet. Never raised."""
    node_type: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {'notImplemented': True, 'nodeType': self.node_type, 'message': self.message}

    def __str__(self):
        return self.message


@dataclass
class BranchDecision:
    """Result of a conditional node"""
    result: bool
    condition: Any = None

    @property
    def branch(self) -> str:
        return 'true' if self.result else 'false'

    def to_dict(self) -> Dict[str, Any]:
        return {'result': self.result, 'branch': self.branch}

    def __str__(self):
        return self.branch


def serialize_value(value: Any) -> Any:
    """Make node inputs/outputs JSON friendly"""
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    return value


@dataclass
class NodeExecutionRecord:
    """Trace entry for one node"""
    node_id: str
    node_type: Optional[str] = None
    status: NodeExecutionStatus = NodeExecutionStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    input: Optional[Dict[str, Any]] = None
    output: Any = None
    error: Optional[str] = None

    def start(self, input_snapshot: Dict[str, Any]):
        self.status = NodeExecutionStatus.RUNNING
        self.start_time = datetime.utcnow()
        self.input = input_snapshot

    def complete(self, output: Any):
        self.status = NodeExecutionStatus.COMPLETED
        self.output = output
        self.end_time = datetime.utcnow()

    def fail(self, error: str):
        self.status = NodeExecutionStatus.FAILED
        self.error = error
        self.end_time = datetime.utcnow()

    def finish_as(self, status: NodeExecutionStatus, error: Optional[str] = None):
        """Close a record that never ran (skipped/cancelled)"""
        now = datetime.utcnow()
        self.status = status
        self.start_time = self.start_time or now
        self.end_time = now
        self.error = error

    @property
    def duration_ms(self) -> int:
        if not self.start_time or not self.end_time:
            return 0
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nodeId': self.node_id,
            'nodeType': self.node_type,
            'startTime': self.start_time.isoformat() if self.start_time else None,
            'endTime': self.end_time.isoformat() if self.end_time else None,
            'input': serialize_value(self.input) if self.input else None,
            'output': serialize_value(self.output),
            'status': self.status.value,
            'error': self.error,
            'durationMs': self.duration_ms,
        }


@dataclass
class FlowExecutionResult:
    """Outcome of a flow run"""
    success: bool
    execution_id: Optional[str] = None
    output: Any = None
    node_executions: List[NodeExecutionRecord] = field(default_factory=list)
    execution_time_ms: int = 0
    error: Optional[str] = None
    cancelled: bool = False

    @property
    def status(self) -> FlowExecutionStatus:
        if self.cancelled:
            return FlowExecutionStatus.CANCELLED
        return FlowExecutionStatus.COMPLETED if self.success else FlowExecutionStatus.FAILED

    def get_record(self, node_id: str) -> Optional[NodeExecutionRecord]:
        for record in self.node_executions:
            if record.node_id == node_id:
                return record
        return None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'success': self.success,
            'executionId': self.execution_id,
            'output': serialize_value(self.output),
            'executionTimeMs': self.execution_time_ms,
            'cancelled': self.cancelled,
            'nodeExecutions': [record.to_dict() for record in self.node_executions],
        }
        if self.error:
            result['error'] = self.error
        return result
