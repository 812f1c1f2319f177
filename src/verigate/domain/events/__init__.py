from .operation_events import OperationEvent

__all__ = ["OperationEvent"]
