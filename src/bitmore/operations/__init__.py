"""Remote insurance operations."""

from bitmore.operations.invoker import OperationInvoker
from bitmore.operations.registry import OPERATIONS, OperationName, OperationRegistry, OperationSpec

__all__ = ["OPERATIONS", "OperationInvoker", "OperationName", "OperationRegistry", "OperationSpec"]
