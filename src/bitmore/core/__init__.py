"""Core orchestration for bitmore."""

from bitmore.core.decision import DecisionStep
from bitmore.core.loop import ConversationLoop
from bitmore.core.synthesis import SynthesisStep

__all__ = ["ConversationLoop", "DecisionStep", "SynthesisStep"]
