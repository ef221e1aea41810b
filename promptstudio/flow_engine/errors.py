"""
Flow engine exceptions.
"""

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from promptstudio.flow_engine.graph import ValidationIssue


class FlowEngineError(Exception):
    """Base error raised by the flow engine"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class StructuralError(FlowEngineError):
    """Flow missing or graph malformed; aborts before any node runs"""

    def __init__(self, message: str, flow_id: Optional[str] = None):
        self.flow_id = flow_id
        super().__init__(message)


class NodeExecutionError(FlowEngineError):
    """Raised inside a node handler; recorded on that node only"""

    def __init__(self, message: str, node_id: Optional[str] = None):
        self.node_id = node_id
        super().__init__(message)

    def __str__(self):
        if self.node_id:
            return f"[node {self.node_id}] {self.message}"
        return self.message


class ValidationError(FlowEngineError):
    """Flow validation reported errors. Carries the typed issues."""

    def __init__(self, issues: List['ValidationIssue']):
        self.issues = list(issues)
        summary = '; '.join(issue.message for issue in self.issues) or 'Flow validation failed'
        super().__init__(summary)


class FlowCancelledError(FlowEngineError):
    """Execution stopped by an external cancel signal"""

    def __init__(self, message: str = "Execution cancelled", execution_id: Optional[str] = None):
        self.execution_id = execution_id
        super().__init__(message)
