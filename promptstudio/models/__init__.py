from .flow import FlowExecutionModel, NodeExecutionModel, PromptFlowModel

__all__ = [
    'PromptFlowModel',
    'FlowExecutionModel',
    'NodeExecutionModel',
]
