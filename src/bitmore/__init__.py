"""bitmore - conversational loan insurance agent."""

from bitmore.core import ConversationLoop, DecisionStep, SynthesisStep
from bitmore.operations import OperationInvoker, OperationRegistry

__version__ = "0.1.0"

__all__ = ["ConversationLoop", "DecisionStep", "OperationInvoker", "OperationRegistry", "SynthesisStep"]
